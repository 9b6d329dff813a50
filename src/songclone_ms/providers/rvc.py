"""
Direct Voice Conversion via Replicate RVC.

One client serves two clone tiers:
    - trained: the user's own RVC model (.pth URL from a training run),
      sent as ``rvc_model="CUSTOM"`` plus ``custom_rvc_model_download_url``.
    - preset: a built-in voice of the model, picked by gender.

Request Flow:
    1. POST models/zsxkib/realistic-voice-cloning/predictions with
       ``Prefer: wait=55`` so most conversions finish inline.
    2. If the reply is still pending, poll the prediction a few times
       (3 x 5s by default, waiting before each read).
    3. Anything else (HTTP error, failed prediction, malformed body,
       exhausted poll, network error) yields None.

The tuning constants (index_rate 0.5, filter_radius 3, rms_mix_rate 0.25,
protect 0.33) are sent on every call and must not drift.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from songclone_ms.core.config import RVCConfig
from songclone_ms.core.errors import ProviderError
from songclone_ms.core.logging import get_logger, info, preview, verbose, warn
from songclone_ms.jobs.models import GenerationJob, JobKind
from songclone_ms.jobs.polling import PollBound, PollOutcome, PollStatus, poll
from songclone_ms.providers.replicate import FAILED, ReplicateClient, classify, first_output

_LOG = get_logger("songclone-ms.rvc")

CUSTOM_MODEL = "CUSTOM"
MALE_PRESET = "OG"
FEMALE_PRESET = "Ariana Grande"


def pick_gender_preset(gender: Optional[str]) -> str:
    """
    Pick a built-in RVC voice for the preset tier.

    "m" or "male" (any case) selects the male preset; everything else,
    including None, selects the female preset.
    """
    g = (gender or "").strip().lower()
    if g in ("m", "male"):
        return MALE_PRESET
    return FEMALE_PRESET


@dataclass(frozen=True)
class RVCModel:
    """
    Which voice the conversion should sing with.

    Build with RVCModel.trained(url) or RVCModel.preset(name).
    """
    kind: str
    value: str

    @classmethod
    def trained(cls, model_url: str) -> "RVCModel":
        return cls("trained", model_url)

    @classmethod
    def preset(cls, name: str) -> "RVCModel":
        return cls("preset", name)

    def as_input(self) -> Dict[str, str]:
        if self.kind == "trained":
            return {"rvc_model": CUSTOM_MODEL, "custom_rvc_model_download_url": self.value}
        return {"rvc_model": self.value}


class RVCClient:
    """
    Replicate RVC conversion client.

    Args:
        replicate: Authenticated ReplicateClient.
        config: RVC tuning and polling configuration.
        sleep: Awaitable sleep used between poll reads (injectable for tests).
    """

    def __init__(
        self,
        replicate: ReplicateClient,
        config: Optional[RVCConfig] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        self._replicate = replicate
        self._config = config or RVCConfig()
        self._sleep = sleep or asyncio.sleep

    def build_input(self, song_url: str, pitch_shift: int, model: RVCModel) -> Dict[str, Any]:
        c = self._config
        payload: Dict[str, Any] = {
            "song_input": song_url,
            "pitch_change": int(pitch_shift or 0),
            "index_rate": c.index_rate,
            "filter_radius": c.filter_radius,
            "rms_mix_rate": c.rms_mix_rate,
            "protect": c.protect,
        }
        payload.update(model.as_input())
        return payload

    async def convert(self, song_url: str, pitch_shift: int, model: RVCModel) -> Optional[str]:
        """
        Convert ``song_url`` to the given voice.

        Returns:
            URL of the converted audio, or None when the provider did not
            produce one. Never raises for provider trouble.
        """
        body = {"input": self.build_input(song_url, pitch_shift, model)}
        info(_LOG, "rvc_submit", model=model.kind, pitch=body["input"]["pitch_change"])

        try:
            prediction = await self._replicate.create_prediction(
                self._config.model_path, body, prefer_wait=self._config.prefer_wait_s
            )
        except (ProviderError, httpx.HTTPError) as e:
            warn(_LOG, "rvc_submit_failed", model=model.kind, reason=str(e))
            return None

        output = first_output(prediction.get("output"))
        if output:
            info(_LOG, "rvc_done_inline", model=model.kind, url=preview(output))
            return output

        prediction_id = prediction.get("id")
        if not prediction_id or prediction.get("status") == FAILED:
            warn(_LOG, "rvc_failed", model=model.kind, reason=str(prediction.get("error") or "no output"))
            return None

        verbose(_LOG, "rvc_pending", prediction=prediction_id)
        return await self._wait(prediction_id, model)

    async def _wait(self, prediction_id: str, model: RVCModel) -> Optional[str]:
        job = GenerationJob(id=prediction_id, kind=JobKind.CONVERT)

        async def probe() -> PollOutcome:
            try:
                prediction = await self._replicate.get_prediction(prediction_id)
            except (ProviderError, httpx.HTTPError):
                return PollOutcome.pending()
            if prediction is None:
                return PollOutcome.pending()
            outcome = classify(prediction)
            if outcome.status is PollStatus.SUCCESS:
                return PollOutcome.success(first_output(prediction.get("output")))
            return outcome

        try:
            url = await poll(
                probe,
                interval=self._config.poll_interval_s,
                bound=PollBound.attempts(self._config.poll_attempts),
                wait_first=True,
                kind="convert",
                job=job,
                sleep=self._sleep,
            )
        except ProviderError as e:
            warn(_LOG, "rvc_poll_gave_up", model=model.kind, reason=e.message)
            return None
        return url or None

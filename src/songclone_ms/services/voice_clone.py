"""
Three-Tier Voice Clone Orchestration.

Re-sings a generated song in the user's voice, degrading gracefully when
providers are missing or failing.

State Machine:
    TIER1_TRAINED -> TIER2_ZERO_SHOT -> TIER3_PRESET -> EXHAUSTED

    Each tier runs only when its gate passes; a usable URL stops the
    chain, anything else advances to the next tier.

    +-------------------+---------------------------------------------+
    | Tier              | Gate                                        |
    +-------------------+---------------------------------------------+
    | 1 trained (RVC)   | trainedModelRef set, not "preset:"/"data:", |
    |                   | Replicate configured                        |
    | 2 zero-shot       | a hosted sample: rawSampleUrl, else         |
    |   (Seed-VC)       | trainedModelRef, neither data:/preset:/blob:|
    | 3 preset (RVC)    | Replicate configured                        |
    +-------------------+---------------------------------------------+

EXHAUSTED is not an error: the original song URL comes back with
method "none" and a note saying which credential would unlock more.

Tiers run strictly one after another, never raced, so total latency is
bounded by the sum of the tier budgets and no quota is spent on a tier
whose result would be thrown away.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from songclone_ms.core.errors import ProviderError
from songclone_ms.core.logging import get_logger, info, preview, success, warn
from songclone_ms.core.metrics import metrics
from songclone_ms.providers.rvc import RVCClient, RVCModel, pick_gender_preset
from songclone_ms.providers.seedvc import SeedVCClient
from songclone_ms.services.validators import validate_gender
from songclone_ms.utils.timeit import timeit

_LOG = get_logger("songclone-ms.clone")

MIN_HOSTED_URL_LENGTH = 10
_UNHOSTED_PREFIXES = ("data:", "preset:", "blob:")
_UNTRAINED_PREFIXES = ("preset:", "data:")


class CloneMethod(str, Enum):
    TRAINED = "trained"
    ZERO_SHOT = "zero-shot"
    PRESET = "preset"
    NONE = "none"


class CloneTier(str, Enum):
    TIER1_TRAINED = "trained"
    TIER2_ZERO_SHOT = "zero-shot"
    TIER3_PRESET = "preset"
    EXHAUSTED = "exhausted"


class Gender(str, Enum):
    M = "M"
    F = "F"


@dataclass
class VoiceCloneRequest:
    """
    One clone request.

    Attributes:
        song_url: The song to re-sing.
        trained_model_ref: Trained model URL, a "preset:" tag, or a raw
            sample URL stored in the same slot.
        raw_sample_url: Reference recording for zero-shot conversion.
        gender: Picks the preset voice for tier 3.
        pitch_shift: Semitones applied by every tier.
    """
    song_url: str
    trained_model_ref: Optional[str] = None
    raw_sample_url: Optional[str] = None
    gender: Gender = Gender.F
    pitch_shift: int = 0

    def __post_init__(self):
        if not isinstance(self.gender, Gender):
            self.gender = Gender(validate_gender(self.gender))
        self.pitch_shift = int(self.pitch_shift or 0)


@dataclass
class FallbackResult:
    """What the caller plays back. Always produced."""
    url: str
    method: CloneMethod
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"success": True, "url": self.url, "method": self.method.value}
        if self.note:
            out["note"] = self.note
        return out


def hosted_url(url: Optional[str]) -> Optional[str]:
    """Return ``url`` if a remote service could fetch it, else None."""
    if not url:
        return None
    if url.startswith(_UNHOSTED_PREFIXES):
        return None
    if len(url) < MIN_HOSTED_URL_LENGTH:
        return None
    return url


def trained_model_url(ref: Optional[str]) -> Optional[str]:
    """Return ``ref`` if it can be used as a trained model, else None."""
    if not ref or ref.startswith(_UNTRAINED_PREFIXES):
        return None
    return ref


class VoiceCloneOrchestrator:
    """
    Runs the tier chain for one request at a time.

    Args:
        rvc: RVC client, or None when Replicate is not configured
            (tiers 1 and 3 are then never attempted).
        seedvc: Seed-VC client, or None to disable tier 2.
    """

    def __init__(self, rvc: Optional[RVCClient], seedvc: Optional[SeedVCClient]):
        self._rvc = rvc
        self._seedvc = seedvc

    async def clone(self, request: VoiceCloneRequest) -> FallbackResult:
        info(_LOG, "clone_request", song=preview(request.song_url),
             model=preview(request.trained_model_ref), sample=preview(request.raw_sample_url),
             gender=request.gender.value, pitch=request.pitch_shift)

        for tier in (CloneTier.TIER1_TRAINED, CloneTier.TIER2_ZERO_SHOT, CloneTier.TIER3_PRESET):
            url = await self._attempt(tier, request)
            if url:
                result = FallbackResult(url=url, method=CloneMethod(tier.value), note=self._note(tier, request))
                success(_LOG, "clone_done", method=result.method.value, url=preview(url))
                metrics.record_clone_result(result.method.value)
                return result

        warn(_LOG, "clone_exhausted", song=preview(request.song_url))
        metrics.record_clone_result(CloneMethod.NONE.value)
        return FallbackResult(
            url=request.song_url,
            method=CloneMethod.NONE,
            note=self._exhausted_note(request),
        )

    async def _attempt(self, tier: CloneTier, request: VoiceCloneRequest) -> Optional[str]:
        call = self._plan(tier, request)
        if call is None:
            info(_LOG, "tier_skipped", tier=tier.value, outcome="skipped")
            metrics.record_tier_attempt(tier.value, "skipped")
            return None

        info(_LOG, "tier_attempt", tier=tier.value)
        url: Optional[str] = None
        with timeit(f"tier.{tier.value}") as t:
            try:
                url = await call
            except (ProviderError, httpx.HTTPError) as e:
                warn(_LOG, "tier_error", tier=tier.value, reason=str(e))

        outcome = "success" if url else "failure"
        info(_LOG, "tier_result", tier=tier.value, outcome=outcome, seconds=t.seconds)
        metrics.record_tier_attempt(tier.value, outcome)
        return url

    def _plan(self, tier: CloneTier, request: VoiceCloneRequest):
        """Return the awaitable for ``tier`` or None if its gate fails."""
        if tier is CloneTier.TIER1_TRAINED:
            model_url = trained_model_url(request.trained_model_ref)
            if self._rvc is None or model_url is None:
                return None
            return self._rvc.convert(request.song_url, request.pitch_shift, RVCModel.trained(model_url))

        if tier is CloneTier.TIER2_ZERO_SHOT:
            sample = self.zero_shot_sample(request)
            if self._seedvc is None or sample is None:
                return None
            return self._seedvc.convert(request.song_url, sample, request.gender.value, request.pitch_shift)

        if tier is CloneTier.TIER3_PRESET:
            if self._rvc is None:
                return None
            preset = pick_gender_preset(request.gender.value)
            return self._rvc.convert(request.song_url, request.pitch_shift, RVCModel.preset(preset))

        return None

    @staticmethod
    def zero_shot_sample(request: VoiceCloneRequest) -> Optional[str]:
        return hosted_url(request.raw_sample_url) or hosted_url(request.trained_model_ref)

    @staticmethod
    def _note(tier: CloneTier, request: VoiceCloneRequest) -> str:
        if tier is CloneTier.TIER1_TRAINED:
            return "Voice cloned with your trained model!"
        if tier is CloneTier.TIER2_ZERO_SHOT:
            return "Voice cloned with Seed-VC!"
        preset = pick_gender_preset(request.gender.value)
        return (
            f"Used AI voice preset ({preset}). For your own voice, set "
            "UPLOADCARE_PUBLIC_KEY and complete voice setup."
        )

    def _exhausted_note(self, request: VoiceCloneRequest) -> str:
        hints: List[str] = []
        if self._rvc is None:
            hints.append("configure REPLICATE_API_TOKEN for trained and preset voices")
        if self.zero_shot_sample(request) is None:
            if request.raw_sample_url or request.trained_model_ref:
                hints.append("host your voice sample publicly (set UPLOADCARE_PUBLIC_KEY) for zero-shot cloning")
            else:
                hints.append("provide a voice sample for zero-shot cloning")
        if not hints:
            return "Voice cloning unavailable, using the original AI vocals. Please try again later."
        return "Voice cloning unavailable, using the original AI vocals. To enable it: " + "; ".join(hints) + "."

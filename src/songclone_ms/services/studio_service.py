"""
StudioService - Request Facade for Song and Voice Operations.

This module provides the StudioService class, the single entry point used
by both the HTTP API and the CLI. Every operation is stateless: an
httpx.AsyncClient is opened for the duration of one call, the provider
clients are built around it, and everything is discarded afterwards.

Operations:
    clone_voice        three-tier voice clone, never fails on provider trouble
    submit_training    package + upload + start an RVC training run
    training_status    one read of a training run, with progress estimate
    start_song         submit a Kie song task
    check_song         one read of a song task
    wait_for_song      poll a song task to completion
    separate_stems     demucs vocals / instrumental split
    transcribe         whisper speech-to-text
    upload             upload chain (Uploadcare -> Replicate -> data: URL)
    upload_config      which services are configured

Credentials:
    Operations that need a provider call ProviderCredentials.require()
    first, so a missing credential raises ConfigurationError before any
    network activity. Voice cloning is the exception: it degrades instead,
    skipping the tiers whose provider is not configured.

Example:
    >>> from songclone_ms.core.config import Settings
    >>> from songclone_ms.services import StudioService, VoiceCloneRequest
    >>>
    >>> service = StudioService(Settings(raw={}))
    >>> result = asyncio.run(service.clone_voice(
    ...     VoiceCloneRequest(song_url="https://cdn.example.com/song.mp3")
    ... ))
"""
from __future__ import annotations

import asyncio
import functools
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from songclone_ms import __version__
from songclone_ms.core.config import Defaults, ProviderCredentials, ServiceConfig, Settings
from songclone_ms.core.errors import ProviderError, ServiceError, ValidationError
from songclone_ms.core.logging import get_logger, info, preview, set_preview_chars, warn
from songclone_ms.core.metrics import metrics
from songclone_ms.jobs.song_poller import SongJobPoller
from songclone_ms.providers.kie import KieClient, SongRequest, SongTrack
from songclone_ms.providers.replicate import (
    DEMUCS_VERSION,
    SUCCEEDED,
    WHISPER_VERSION,
    ReplicateClient,
)
from songclone_ms.providers.rvc import RVCClient
from songclone_ms.providers.seedvc import SeedVCClient
from songclone_ms.providers.uploads import UploadResult, UploadService
from songclone_ms.services.training import (
    TrainingPackager,
    TrainingProgressEstimator,
    TrainingReport,
    report_from_prediction,
)
from songclone_ms.services.validators import (
    validate_job_id,
    validate_optional_url,
    validate_song_prompt,
    validate_song_url,
)
from songclone_ms.services.voice_clone import FallbackResult, VoiceCloneOrchestrator, VoiceCloneRequest

_LOG = get_logger("songclone-ms.service")

REPLICATE = "replicate_api_token"
KIE = "kie_api_key"


@dataclass
class StemsResult:
    vocals_url: str
    instrumental_url: str

    def to_dict(self) -> Dict[str, str]:
        return {"vocalsUrl": self.vocals_url, "instrumentalUrl": self.instrumental_url}


def extract_stems(output: Any, input_url: str) -> StemsResult:
    """
    Pick vocals and instrumental URLs out of a demucs output.

    Dict outputs use the named stems (vocals; no_vocals, then other);
    list outputs are positional. A missing instrumental falls back to the
    input URL.
    """
    vocals = instrumental = None
    if isinstance(output, dict):
        vocals = output.get("vocals")
        instrumental = output.get("no_vocals") or output.get("other")
    elif isinstance(output, list):
        vocals = output[0] if output else None
        instrumental = output[1] if len(output) > 1 else None
    if not vocals:
        raise ProviderError("Stem separation returned no vocals track")
    return StemsResult(vocals_url=vocals, instrumental_url=instrumental or input_url)


def extract_text(output: Any) -> str:
    """Flatten a whisper output (string, dict or segment list) to text."""
    if isinstance(output, str):
        return output.strip()
    if isinstance(output, dict):
        for key in ("text", "transcription"):
            if output.get(key):
                return str(output[key]).strip()
    if isinstance(output, list):
        parts = [s.get("text", "") if isinstance(s, dict) else str(s) for s in output]
        return " ".join(p.strip() for p in parts if p).strip()
    return str(output).strip()


def _tracked(operation: str):
    """Record request count and duration for an async service method."""
    def deco(fn: Callable[..., Awaitable[Any]]):
        @functools.wraps(fn)
        async def wrapped(*args, **kwargs):
            t0 = time.perf_counter()
            status = "success"
            try:
                return await fn(*args, **kwargs)
            except ServiceError as e:
                status = e.code
                raise
            except Exception:
                status = "INTERNAL_ERROR"
                raise
            finally:
                metrics.record_request(operation, status, time.perf_counter() - t0)
        return wrapped
    return deco


class StudioService:
    """
    Facade over every provider-backed operation.

    Args:
        settings: Application settings loaded from YAML.
        transport: Optional httpx transport; tests pass an
            httpx.MockTransport to fake every provider.
        credentials: Explicit credentials; defaults to
            settings.get_credentials() (environment wins over YAML).
        sleep: Awaitable sleep used by every poll loop.
        clock: Monotonic clock used by duration-bounded polls.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        credentials: Optional[ProviderCredentials] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._settings = settings
        self._config: ServiceConfig = settings.get_service_config()
        self._credentials = credentials if credentials is not None else settings.get_credentials()
        self._transport = transport
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic
        set_preview_chars(self._config.logging.url_preview_chars)
        self._estimator = TrainingProgressEstimator(
            floor=self._config.training.progress_floor,
            ceiling=self._config.training.progress_ceiling,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @property
    def credentials(self) -> ProviderCredentials:
        return self._credentials

    # =========================================================================
    # Client Construction
    # =========================================================================

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=self._config.endpoints.http_timeout_s,
        )

    def _replicate(self, http: httpx.AsyncClient) -> ReplicateClient:
        token = self._credentials.require(REPLICATE)
        return ReplicateClient(http, token, self._config.endpoints.replicate_base_url)

    def _poller(self, kie: Optional[KieClient] = None,
                replicate: Optional[ReplicateClient] = None) -> SongJobPoller:
        return SongJobPoller(kie=kie, replicate=replicate, config=self._config.polling,
                             sleep=self._sleep, clock=self._clock)

    def _kie(self, http: httpx.AsyncClient) -> KieClient:
        key = self._credentials.require(KIE)
        return KieClient(http, key, self._config.endpoints.kie_base_url, Defaults.SONG_CALLBACK_URL)

    def _orchestrator(self, http: httpx.AsyncClient) -> VoiceCloneOrchestrator:
        rvc: Optional[RVCClient] = None
        if self._credentials.has(REPLICATE):
            rvc = RVCClient(self._replicate(http), self._config.rvc, sleep=self._sleep)
        seedvc = SeedVCClient(
            http,
            self._config.endpoints.seedvc_space_url,
            self._config.seedvc,
            sleep=self._sleep,
            clock=self._clock,
        )
        return VoiceCloneOrchestrator(rvc=rvc, seedvc=seedvc)

    # =========================================================================
    # Voice Cloning
    # =========================================================================

    @_tracked("clone")
    async def clone_voice(self, request: VoiceCloneRequest) -> FallbackResult:
        """
        Re-sing a song in the user's voice with graceful degradation.

        Raises:
            ValidationError: songUrl missing or malformed. Provider failures
                never raise; they fall through to the next tier.
        """
        request.song_url = validate_song_url(request.song_url)
        request.trained_model_ref = validate_optional_url(request.trained_model_ref, "trainedModelRef")
        request.raw_sample_url = validate_optional_url(request.raw_sample_url, "rawSampleUrl")

        async with self._http() as http:
            return await self._orchestrator(http).clone(request)

    # =========================================================================
    # Training
    # =========================================================================

    @_tracked("train")
    async def submit_training(self, audio: bytes, content_type: str = "audio/wav") -> str:
        """Package audio and start a training run; returns the job id."""
        self._credentials.require(REPLICATE)
        async with self._http() as http:
            packager = TrainingPackager(self._replicate(http), self._config.training)
            return await packager.submit_training(audio, content_type)

    @_tracked("training_status")
    async def training_status(self, job_id: str) -> TrainingReport:
        """Read a training run once."""
        job_id = validate_job_id(job_id)
        self._credentials.require(REPLICATE)
        async with self._http() as http:
            prediction = await self._replicate(http).get_prediction(job_id)
        if prediction is None:
            raise ProviderError("Failed to check training status", details={"jobId": job_id})
        report = report_from_prediction(prediction, self._estimator, self._config.training.epochs)
        info(_LOG, "training_status", job=job_id, status=report.status.value, progress=report.progress)
        return report

    # =========================================================================
    # Songs
    # =========================================================================

    @_tracked("song_start")
    async def start_song(self, request: SongRequest) -> str:
        """Submit a song task; returns the task id."""
        validate_song_prompt(request.prompt, request.lyrics)
        self._credentials.require(KIE)
        async with self._http() as http:
            return await self._kie(http).start_song(request)

    @_tracked("song_check")
    async def check_song(self, task_id: str) -> Dict[str, Any]:
        """
        Read a song task once.

        Returns:
            {"taskId", "status", "ready"} plus the track fields once ready,
            or "error" once failed.
        """
        task_id = validate_job_id(task_id, "taskId")
        self._credentials.require(KIE)
        async with self._http() as http:
            check = await self._kie(http).check_song(task_id)

        result: Dict[str, Any] = {"taskId": task_id, "status": check.status, "ready": False}
        if check.outcome.payload is not None:
            result["ready"] = True
            result.update(check.outcome.payload.to_dict())
        elif check.outcome.reason is not None:
            result["error"] = check.outcome.reason
        return result

    @_tracked("song_wait")
    async def wait_for_song(self, task_id: str) -> SongTrack:
        """Poll a song task until it finishes (120 x 2s by default)."""
        task_id = validate_job_id(task_id, "taskId")
        self._credentials.require(KIE)
        async with self._http() as http:
            return await self._poller(kie=self._kie(http)).wait_for_song(task_id)

    # =========================================================================
    # Stems and Transcription
    # =========================================================================

    @_tracked("stems")
    async def separate_stems(self, audio_url: str) -> StemsResult:
        """Split a song into vocals and instrumental."""
        audio_url = validate_song_url(audio_url)
        self._credentials.require(REPLICATE)
        async with self._http() as http:
            replicate = self._replicate(http)
            prediction = await replicate.create_prediction(
                "predictions",
                {"version": DEMUCS_VERSION, "input": {"audio": audio_url, "stems": "vocals"}},
                prefer_wait=self._config.polling.stems_prefer_wait_s,
            )
            if prediction.get("status") != SUCCEEDED and prediction.get("id"):
                prediction = await self._poller(replicate=replicate).wait_for_stems(prediction["id"])

        if prediction.get("status") != SUCCEEDED or not prediction.get("output"):
            raise ProviderError("Stem separation timed out")
        stems = extract_stems(prediction["output"], audio_url)
        info(_LOG, "stems_done", vocals=preview(stems.vocals_url))
        return stems

    @_tracked("transcribe")
    async def transcribe(self, audio_url: Optional[str] = None, audio_base64: Optional[str] = None) -> str:
        """
        Transcribe speech. A hosted URL is preferred; base64 audio is sent
        inline as a data: URL.
        """
        if audio_url:
            audio_input = validate_song_url(audio_url)
        elif audio_base64:
            audio_input = f"data:audio/webm;base64,{audio_base64}"
        else:
            raise ValidationError("audioUrl or audioBase64 required", "AUDIO_REQUIRED")
        self._credentials.require(REPLICATE)

        info(_LOG, "transcribe_start", input="data URL" if audio_input.startswith("data:") else "hosted URL")
        async with self._http() as http:
            replicate = self._replicate(http)
            prediction = await replicate.create_prediction(
                "predictions",
                {
                    "version": WHISPER_VERSION,
                    "input": {"audio": audio_input, "task": "transcribe", "language": "english",
                              "batch_size": 64},
                },
                prefer_wait=self._config.polling.transcribe_prefer_wait_s,
            )
            if not (prediction.get("status") == SUCCEEDED and prediction.get("output")):
                if not prediction.get("id"):
                    raise ProviderError("Transcription returned no prediction id")
                prediction = await self._poller(replicate=replicate).wait_for_transcription(
                    prediction["id"]
                )

        text = extract_text(prediction["output"])
        if not text:
            warn(_LOG, "transcribe_empty")
        return text

    # =========================================================================
    # Uploads
    # =========================================================================

    @_tracked("upload")
    async def upload(
        self,
        data: bytes,
        content_type: Optional[str] = None,
        file_name: Optional[str] = None,
        force_hosted: bool = False,
    ) -> UploadResult:
        async with self._http() as http:
            uploads = UploadService(http, self._credentials, self._config.endpoints, self._config.uploads)
            return await uploads.upload(data, content_type, file_name, force_hosted)

    def upload_config(self) -> Dict[str, bool]:
        return {
            "uploadcare": self._credentials.has("uploadcare_public_key"),
            "replicate": self._credentials.has(REPLICATE),
            "kie": self._credentials.has(KIE),
        }

    # =========================================================================
    # Health Check
    # =========================================================================

    def get_health_info(self) -> Dict[str, Any]:
        """Service status plus which providers are configured (no secrets)."""
        return {
            "ok": True,
            "service": "songclone-ms",
            "version": __version__,
            "providers": self.upload_config(),
            "clone_tiers": {
                "trained": self._credentials.has(REPLICATE),
                "zero-shot": True,
                "preset": self._credentials.has(REPLICATE),
            },
            "seedvc_space": self._config.endpoints.seedvc_space_url,
        }


# =============================================================================
# Global Service Singleton
# =============================================================================

_service: Optional[StudioService] = None
_service_lock = threading.Lock()


def get_service(settings: Settings) -> StudioService:
    """
    Get or create the global StudioService instance.

    Thread-safe lazy singleton. The service holds only configuration, so
    sharing it across requests shares no mutable state.
    """
    global _service
    if _service is None:
        with _service_lock:
            if _service is None:
                _service = StudioService(settings)
    return _service


def reset_service() -> None:
    """Reset the global service instance (used by tests)."""
    global _service
    with _service_lock:
        _service = None

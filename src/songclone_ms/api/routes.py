"""
songclone-ms API Routes.

All endpoints delegate to the StudioService facade. Handlers are async;
every outbound provider call goes through httpx.AsyncClient.

Endpoints:
    POST /v1/voice/clone          - Three-tier voice clone (never fails on
                                    provider trouble, falls back instead)
    POST /v1/voice/train          - Start a voice model training run
    GET  /v1/voice/train/{jobId}  - Training status with progress estimate
    POST /v1/songs                - Start a song generation task
    GET  /v1/songs/{taskId}       - One status read of a song task
    POST /v1/stems                - Vocals / instrumental separation
    POST /v1/transcribe           - Speech-to-text
    POST /v1/uploads              - Upload audio, get a fetchable URL
    GET  /v1/uploads/config       - Which providers are configured
    GET  /health                  - Health check
    GET  /metrics                 - Prometheus metrics

Request Flow:
    1. Generate a 12-character request ID and set it in the log context
    2. Validate the body (services/validators.py), no network yet
    3. Call the StudioService operation
    4. Return JSON with an X-Request-Id header

Error Handling:
    Errors are returned as JSON:
    {
        "ok": false,
        "error": "<ERROR_CODE>",
        "message": "<human readable message>",
        "request_id": "<rid>"
    }

    HTTP status codes are mapped from the exception type:
        - ValidationError -> 400 Bad Request
        - ConfigurationError -> 500 Internal Server Error
        - PollTimeoutError -> 504 Gateway Timeout
        - ProviderError -> 502 Bad Gateway

Example Usage:
    >>> import httpx
    >>> r = httpx.post(
    ...     "http://localhost:8000/v1/voice/clone",
    ...     json={"songUrl": "https://cdn.example.com/song.mp3", "gender": "M"},
    ... )
    >>> r.json()["method"]
    'preset'
"""
from __future__ import annotations

import uuid
from typing import Any, Awaitable, Callable, Dict

from fastapi import APIRouter, Depends, Response
from fastapi.responses import JSONResponse

from songclone_ms.api.dependencies import get_studio_service
from songclone_ms.api.schemas import (
    CloneRequest,
    SongCreateRequest,
    StemsRequest,
    TranscribeRequest,
    TrainRequest,
    UploadRequest,
)
from songclone_ms.core.errors import (
    ConfigurationError,
    ErrorCode,
    PollTimeoutError,
    ProviderError,
    ServiceError,
    ValidationError,
)
from songclone_ms.core.logging import error, get_logger, set_request_id
from songclone_ms.core.metrics import metrics
from songclone_ms.providers.kie import DEFAULT_STYLE, DEFAULT_TITLE, SongRequest
from songclone_ms.services.studio_service import StudioService
from songclone_ms.services.validators import validate_audio_b64, validate_gender, validate_pitch_shift
from songclone_ms.services.voice_clone import VoiceCloneRequest

router = APIRouter()

_LOG = get_logger("songclone-ms.api")


def _status_for(e: ServiceError) -> int:
    # PollTimeoutError first: it is also a ProviderError.
    status_map = (
        (ValidationError, 400),
        (ConfigurationError, 500),
        (PollTimeoutError, 504),
        (ProviderError, 502),
    )
    for kind, status in status_map:
        if isinstance(e, kind):
            return status
    return 500


def _error_response(e: ServiceError, rid: str) -> JSONResponse:
    content = e.to_dict()
    content["request_id"] = rid
    return JSONResponse(status_code=_status_for(e), content=content, headers={"X-Request-Id": rid})


async def _handle(call: Callable[[], Awaitable[Dict[str, Any]]]) -> JSONResponse:
    """Run one handler body with request-id and error mapping."""
    rid = str(uuid.uuid4())[:12]
    set_request_id(rid)
    try:
        content = await call()
    except ServiceError as e:
        return _error_response(e, rid)
    except Exception as e:
        # Log internally but don't expose details
        error(_LOG, "unhandled_error", error=type(e).__name__, detail=str(e))
        return JSONResponse(
            status_code=500,
            content={
                "ok": False,
                "error": ErrorCode.INTERNAL_ERROR,
                "message": "Internal server error",
                "request_id": rid,
            },
            headers={"X-Request-Id": rid},
        )
    return JSONResponse(content=content, headers={"X-Request-Id": rid})


# =============================================================================
# Voice
# =============================================================================

@router.post("/v1/voice/clone")
async def clone_voice(req: CloneRequest, service: StudioService = Depends(get_studio_service)):
    """
    Re-sing a song in the user's voice.

    Always 200 once the request validates: when no tier succeeds the
    original songUrl comes back with method "none" and a note.
    """
    async def run() -> Dict[str, Any]:
        request = VoiceCloneRequest(
            song_url=req.song_url or "",
            trained_model_ref=req.trained_model_ref,
            raw_sample_url=req.raw_sample_url,
            gender=validate_gender(req.gender),
            pitch_shift=validate_pitch_shift(req.pitch_shift),
        )
        result = await service.clone_voice(request)
        return result.to_dict()

    return await _handle(run)


@router.post("/v1/voice/train")
async def train_voice(req: TrainRequest, service: StudioService = Depends(get_studio_service)):
    """Start training; returns immediately with the job id."""
    async def run() -> Dict[str, Any]:
        audio = validate_audio_b64(req.audio_base64)
        job_id = await service.submit_training(audio, req.content_type or "audio/wav")
        return {"success": True, "trainingJobId": job_id, "status": "TRAINING"}

    return await _handle(run)


@router.get("/v1/voice/train/{job_id}")
async def training_status(job_id: str, service: StudioService = Depends(get_studio_service)):
    async def run() -> Dict[str, Any]:
        report = await service.training_status(job_id)
        return report.to_dict()

    return await _handle(run)


# =============================================================================
# Songs, Stems, Transcription
# =============================================================================

@router.post("/v1/songs")
async def create_song(req: SongCreateRequest, service: StudioService = Depends(get_studio_service)):
    async def run() -> Dict[str, Any]:
        song = SongRequest(
            prompt=req.prompt or "",
            lyrics=req.lyrics or "",
            style=req.style or DEFAULT_STYLE,
            title=req.title or DEFAULT_TITLE,
            instrumental=req.instrumental,
            vocal_gender=validate_gender(req.vocal_gender).lower(),
        )
        task_id = await service.start_song(song)
        return {"success": True, "taskId": task_id, "status": "PENDING"}

    return await _handle(run)


@router.get("/v1/songs/{task_id}")
async def song_status(task_id: str, service: StudioService = Depends(get_studio_service)):
    return await _handle(lambda: service.check_song(task_id))


@router.post("/v1/stems")
async def separate_stems(req: StemsRequest, service: StudioService = Depends(get_studio_service)):
    async def run() -> Dict[str, Any]:
        stems = await service.separate_stems(req.audio_url or "")
        return stems.to_dict()

    return await _handle(run)


@router.post("/v1/transcribe")
async def transcribe(req: TranscribeRequest, service: StudioService = Depends(get_studio_service)):
    async def run() -> Dict[str, Any]:
        text = await service.transcribe(audio_url=req.audio_url, audio_base64=req.audio_base64)
        return {"text": text}

    return await _handle(run)


# =============================================================================
# Uploads
# =============================================================================

@router.post("/v1/uploads")
async def upload(req: UploadRequest, service: StudioService = Depends(get_studio_service)):
    async def run() -> Dict[str, Any]:
        data = validate_audio_b64(req.audio_base64)
        result = await service.upload(data, req.content_type, req.file_name, req.force_hosted)
        return result.to_dict()

    return await _handle(run)


@router.get("/v1/uploads/config")
async def upload_config(service: StudioService = Depends(get_studio_service)):
    return service.upload_config()


# =============================================================================
# Operations
# =============================================================================

@router.get("/health")
async def health(service: StudioService = Depends(get_studio_service)):
    """
    Health check endpoint for load balancers and orchestration.

    Reports version, configured providers and which clone tiers are
    reachable. Never contacts a provider and never exposes secrets.
    """
    return service.get_health_info()


@router.get("/metrics")
async def prometheus_metrics():
    """
    Prometheus metrics endpoint.

    Exposes:
        - songclone_requests_total: Requests by operation and status
        - songclone_request_duration_seconds: Latency per operation
        - songclone_clone_results_total: Clone results by method
        - songclone_tier_attempts_total: Tier attempts by outcome
        - songclone_poll_seconds: Time spent in poll loops
    """
    content, content_type = metrics.get_metrics_response()
    return Response(content=content, media_type=content_type)

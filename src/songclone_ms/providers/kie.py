"""
Song Generation via Kie.ai (Suno V5).

Kie wraps every reply in an envelope ``{"code": 200, "msg": ..., "data": ...}``;
a ``code`` other than 200 means the call did not go through even when the
HTTP status is 200.

Generation Flow:
    start_song:  POST {kie}/generate            -> data.taskId
    check_song:  GET  {kie}/generate/record-info?taskId=...

Task Status Vocabulary:
    SUCCESS, FIRST_SUCCESS, TEXT_SUCCESS  -> success once a track has an audio URL
    CREATE_TASK_FAILED, GENERATE_AUDIO_FAILED -> failure
    anything else (PENDING, TEXT_GENERATING, ...) -> pending
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from songclone_ms.core.errors import ProviderError
from songclone_ms.core.logging import get_logger, info, preview, verbose
from songclone_ms.jobs.polling import PollOutcome

_LOG = get_logger("songclone-ms.kie")

MODEL = "V5"
DEFAULT_STYLE = "Pop"
DEFAULT_TITLE = "Untitled Song"
DEFAULT_DURATION_S = 60

SUCCESS_STATES = ("SUCCESS", "FIRST_SUCCESS", "TEXT_SUCCESS")
FAILURE_STATES = ("CREATE_TASK_FAILED", "GENERATE_AUDIO_FAILED")


@dataclass
class SongRequest:
    """
    Song generation parameters.

    Either ``lyrics`` or ``prompt`` must be given; lyrics win when both are.
    ``vocal_gender`` is only sent for vocal (non-instrumental) songs.
    """
    prompt: Optional[str] = None
    lyrics: Optional[str] = None
    style: str = DEFAULT_STYLE
    title: str = DEFAULT_TITLE
    instrumental: bool = False
    vocal_gender: Optional[str] = "f"


@dataclass
class SongTrack:
    """A finished song."""
    audio_url: str
    title: str = DEFAULT_TITLE
    lyrics: str = ""
    duration: float = DEFAULT_DURATION_S
    style: str = DEFAULT_STYLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "audioUrl": self.audio_url,
            "title": self.title,
            "lyrics": self.lyrics,
            "duration": self.duration,
            "style": self.style,
        }


@dataclass
class SongCheck:
    """
    One status read of a song task.

    Attributes:
        outcome: Classified PollOutcome (payload is a SongTrack on success).
        status: Raw provider status ("PROCESSING" when the envelope failed).
    """
    outcome: PollOutcome
    status: str


def classify_record(envelope: Dict[str, Any]) -> SongCheck:
    """Map a record-info envelope to a SongCheck."""
    if envelope.get("code") != 200:
        return SongCheck(PollOutcome.pending(), "PROCESSING")

    data = envelope.get("data") or {}
    status = data.get("status") or "PROCESSING"

    if status in FAILURE_STATES:
        return SongCheck(PollOutcome.failure(data.get("errorMessage") or "Generation failed"), "FAILED")

    if status in SUCCESS_STATES:
        response = data.get("response") or {}
        tracks = response.get("sunoData") or response.get("data") or []
        track = tracks[0] if tracks else {}
        audio_url = track.get("audioUrl") or track.get("audio_url")
        if audio_url:
            song = SongTrack(
                audio_url=audio_url,
                title=track.get("title") or DEFAULT_TITLE,
                lyrics=track.get("prompt") or "",
                duration=track.get("duration") or DEFAULT_DURATION_S,
                style=track.get("tags") or DEFAULT_STYLE,
            )
            return SongCheck(PollOutcome.success(song), "SUCCESS")

    return SongCheck(PollOutcome.pending(), status)


class KieClient:
    """
    Kie.ai client bound to one API key.

    Args:
        http: Shared httpx.AsyncClient (owned by the caller).
        api_key: Kie API key.
        base_url: API root, normally https://api.kie.ai/api/v1.
        callback_url: Required by the API; results are read by polling.
    """

    def __init__(self, http: httpx.AsyncClient, api_key: str, base_url: str, callback_url: str):
        self._http = http
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._callback_url = callback_url

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderError(
                f"Kie.ai unreachable ({type(e).__name__})",
                details={"reason": type(e).__name__},
            ) from e

    def build_body(self, request: SongRequest) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": MODEL,
            "customMode": True,
            "instrumental": bool(request.instrumental),
            "style": request.style,
            "title": request.title,
            "prompt": request.lyrics or request.prompt,
            "callBackUrl": self._callback_url,
        }
        if not request.instrumental and request.vocal_gender:
            body["vocalGender"] = request.vocal_gender
        return body

    async def start_song(self, request: SongRequest) -> str:
        """
        Submit a song and return the task id.

        Raises:
            ProviderError: Envelope code is not 200 or no task id came back.
        """
        body = self.build_body(request)
        info(_LOG, "song_submit", style=request.style, instrumental=request.instrumental,
             lyrics=preview(body["prompt"]))

        response = await self._send("POST", f"{self._base_url}/generate", json=body, headers=self._headers())
        envelope = self._envelope(response)
        if response.is_error or envelope.get("code") != 200:
            raise ProviderError(
                f"Kie.ai: {envelope.get('msg') or response.text[:200]}",
                details={"status": response.status_code, "code": envelope.get("code")},
            )

        task_id = (envelope.get("data") or {}).get("taskId") or envelope.get("taskId")
        if not task_id:
            raise ProviderError("No task ID returned from Kie.ai")
        info(_LOG, "song_started", task=task_id)
        return str(task_id)

    async def check_song(self, task_id: str) -> SongCheck:
        """Read a task once and classify it."""
        response = await self._send(
            "GET",
            f"{self._base_url}/generate/record-info",
            params={"taskId": task_id},
            headers=self._headers(),
        )
        check = classify_record(self._envelope(response))
        verbose(_LOG, "song_status", task=task_id, status=check.status)
        return check

    async def probe(self, task_id: str) -> PollOutcome:
        try:
            check = await self.check_song(task_id)
        except ProviderError:
            return PollOutcome.pending()
        return check.outcome

    @staticmethod
    def _envelope(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError("Kie.ai returned malformed JSON") from e
        if not isinstance(data, dict):
            raise ProviderError("Kie.ai returned an unexpected payload")
        return data


__all__ = [
    "KieClient",
    "SongRequest",
    "SongTrack",
    "SongCheck",
    "classify_record",
]

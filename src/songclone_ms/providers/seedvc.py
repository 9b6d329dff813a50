"""
Zero-Shot Voice Conversion via the Seed-VC Gradio Space.

Seed-VC converts a song to the timbre of a short reference recording with
no training step. It runs as a public Hugging Face Space that sleeps when
idle, and it speaks the Gradio queue protocol instead of plain JSON.

Protocol:
    1. Warm-up: GET the space root (10s timeout, failures ignored), then
       pause briefly so a sleeping space can start booting.
    2. Submit: POST {space}/gradio_api/call/{endpoint} with
       ``{"data": [...]}``, an ORDERED positional parameter list. The
       reply carries an ``event_id``.
    3. Status: GET {space}/gradio_api/call/{endpoint}/{event_id}. The body
       is a text stream of ``event:`` and ``data:`` lines:

           event: generating
           data: [null, null]
           event: complete
           data: [{"path": "/tmp/gradio/x/stream.mp3"}, {"url": "https://..."}]

    4. Scan: an ``error`` event aborts. Every ``data:`` line is parsed as
       JSON; for a list, the second element (the full render) is
       preferred over the first (the streaming preview). A result needs
       both an extracted URL and a ``complete`` event, in any order.
    5. Repeat the status GET every 4s for up to 120s; each GET has its own
       15s timeout.

Endpoints (tried in order, first result wins):
    predict_1: V1 model with F0 conditioning, best for singing
        [source, reference, diffusion_steps=10, length_adjust=1.0,
         inference_cfg_rate=0.7, f0_condition=True, auto_f0_adjust=True,
         pitch_shift]
    predict: V2 model with style control
        [source, reference, diffusion_steps=30, length_adjust=1.0,
         intelligibility_cfg_rate=0.0, similarity_cfg_rate=0.7, top_p=0.9,
         temperature=1.0, repetition_penalty=1.0, convert_style=False,
         anonymization_only=False]

The reference URL must be publicly fetchable by the space; ``data:``
URIs do not work.
"""
from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional

import httpx

from songclone_ms.core.config import SeedVCConfig
from songclone_ms.core.errors import ProviderError
from songclone_ms.core.logging import debug, get_logger, info, preview, verbose, warn
from songclone_ms.jobs.models import GenerationJob, JobKind
from songclone_ms.jobs.polling import PollBound, PollOutcome, poll

_LOG = get_logger("songclone-ms.seedvc")

SINGING_ENDPOINT = "predict_1"
STYLE_ENDPOINT = "predict"

SOURCE_FILENAME = "source_song.mp3"
REFERENCE_FILENAME = "voice_sample.wav"


class StreamEventKind(str, Enum):
    DATA = "DATA"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"


@dataclass(frozen=True)
class StreamEvent:
    """One meaningful line of a Gradio status stream."""
    kind: StreamEventKind
    payload: Any = None


def iter_stream_events(text: str) -> Iterator[StreamEvent]:
    """
    Yield events from a status stream body, line by line.

    ``event:`` lines other than complete/error (generating, heartbeat)
    are skipped. A ``data:`` line whose JSON does not parse yields a DATA
    event with no payload.
    """
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if line.startswith("event:"):
            name = line[len("event:"):].strip().lower()
            if name == "error":
                yield StreamEvent(StreamEventKind.ERROR)
            elif name == "complete":
                yield StreamEvent(StreamEventKind.COMPLETE)
        elif line.startswith("data:"):
            body = line[len("data:"):].strip()
            try:
                payload = json.loads(body)
            except ValueError:
                payload = None
            yield StreamEvent(StreamEventKind.DATA, payload)


def extract_output_url(payload: Any, space_url: str) -> Optional[str]:
    """
    Pull a downloadable URL out of one ``data:`` payload.

    Only list payloads carry outputs. From the list, element 1 is
    preferred and element 0 is the fallback. Accepted shapes:
        "https://..."                    -> as is
        {"url": "https://..."}           -> url
        {"path": "/tmp/..."}             -> {space}/gradio_api/file={path}
        {"name": "/tmp/..."}             -> {space}/gradio_api/file={name}
    """
    if not isinstance(payload, list) or not payload:
        return None

    item = payload[1] if len(payload) > 1 and payload[1] else payload[0]
    if not item:
        return None

    if isinstance(item, str):
        return item if item.startswith("http") else None

    if isinstance(item, dict):
        if item.get("url"):
            return str(item["url"])
        file_ref = item.get("path") or item.get("name")
        if file_ref:
            return f"{space_url.rstrip('/')}/gradio_api/file={file_ref}"

    return None


@dataclass
class StreamScan:
    """
    Result of scanning one status stream body.

    Attributes:
        url: Last output URL seen on a data line, if any.
        complete: Whether a complete event was seen.
        error: Whether an error event was seen.
    """
    url: Optional[str] = None
    complete: bool = False
    error: bool = False

    @property
    def succeeded(self) -> bool:
        return not self.error and self.complete and self.url is not None


def scan_event_stream(text: str, space_url: str) -> StreamScan:
    """
    Scan a status stream body and classify it.

    The scan stops at the first error event. The complete flag and the
    extracted URL are tracked independently, so a data line arriving
    before its complete event still counts.

    Example:
        >>> body = 'data: [null, {"url": "https://x/out.wav"}]\\nevent: complete\\n'
        >>> scan_event_stream(body, "https://space").succeeded
        True
    """
    scan = StreamScan()
    for event in iter_stream_events(text):
        if event.kind is StreamEventKind.ERROR:
            scan.error = True
            return scan
        if event.kind is StreamEventKind.COMPLETE:
            scan.complete = True
            continue
        url = extract_output_url(event.payload, space_url)
        if url:
            scan.url = url
    return scan


def gradio_file_data(url: str, filename: str) -> Dict[str, Any]:
    """Wrap a URL as a Gradio FileData parameter."""
    return {
        "path": url,
        "url": url,
        "orig_name": filename,
        "meta": {"_type": "gradio.FileData"},
    }


class SeedVCClient:
    """
    Seed-VC Gradio space client.

    Args:
        http: Shared httpx.AsyncClient (owned by the caller).
        space_url: Root URL of the space.
        config: Timeouts, polling budget and diffusion steps.
        sleep: Awaitable sleep (injectable for tests).
        clock: Monotonic clock for the wall-clock budget (injectable).
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        space_url: str,
        config: Optional[SeedVCConfig] = None,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._http = http
        self._space_url = space_url.rstrip("/")
        self._config = config or SeedVCConfig()
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic

    def endpoint_url(self, endpoint: str) -> str:
        return f"{self._space_url}/gradio_api/call/{endpoint}"

    def singing_params(self, source: Dict[str, Any], reference: Dict[str, Any], semitones: int) -> List[Any]:
        return [
            source,
            reference,
            self._config.singing_diffusion_steps,
            1.0,        # length adjust
            0.7,        # inference cfg rate
            True,       # f0 condition
            True,       # auto f0 adjust
            semitones,
        ]

    def style_params(self, source: Dict[str, Any], reference: Dict[str, Any]) -> List[Any]:
        return [
            source,
            reference,
            self._config.style_diffusion_steps,
            1.0,        # length adjust
            0.0,        # intelligibility cfg rate
            0.7,        # similarity cfg rate
            0.9,        # top p
            1.0,        # temperature
            1.0,        # repetition penalty
            False,      # convert style
            False,      # anonymization only
        ]

    async def wake(self) -> None:
        """Ping the space root so a sleeping space starts booting."""
        verbose(_LOG, "seedvc_wake", space=self._space_url)
        try:
            await self._http.get(self._space_url, timeout=self._config.wake_timeout_s)
        except httpx.HTTPError as e:
            debug(_LOG, "seedvc_wake_ignored", reason=type(e).__name__)
            return
        await self._sleep(self._config.wake_settle_s)

    async def submit(self, endpoint: str, data: List[Any]) -> Optional[str]:
        """POST a job and return its event id, or None if refused."""
        response = await self._http.post(
            self.endpoint_url(endpoint),
            json={"data": data},
            timeout=self._config.submit_timeout_s,
        )
        if response.is_error:
            warn(_LOG, "seedvc_submit_rejected", endpoint=endpoint, status=response.status_code,
                 body=response.text[:150])
            return None
        try:
            event_id = response.json().get("event_id")
        except (ValueError, AttributeError):
            event_id = None
        if not event_id:
            warn(_LOG, "seedvc_no_event_id", endpoint=endpoint)
            return None
        verbose(_LOG, "seedvc_submitted", endpoint=endpoint, event_id=event_id)
        return str(event_id)

    async def await_result(self, endpoint: str, event_id: str) -> Optional[str]:
        """Read the status stream until a result, an error, or the budget runs out."""
        status_url = f"{self.endpoint_url(endpoint)}/{event_id}"
        job = GenerationJob(id=event_id, kind=JobKind.CONVERT)

        async def probe() -> PollOutcome:
            try:
                response = await self._http.get(status_url, timeout=self._config.status_timeout_s)
            except httpx.HTTPError as e:
                debug(_LOG, "seedvc_status_error", reason=type(e).__name__)
                return PollOutcome.pending()
            if response.is_error:
                return PollOutcome.pending()
            scan = scan_event_stream(response.text, self._space_url)
            if scan.error:
                return PollOutcome.failure(f"Seed-VC {endpoint} reported an error event")
            if scan.succeeded:
                return PollOutcome.success(scan.url)
            return PollOutcome.pending()

        try:
            return await poll(
                probe,
                interval=self._config.poll_interval_s,
                bound=PollBound.duration(self._config.max_wait_s),
                kind="convert",
                job=job,
                sleep=self._sleep,
                clock=self._clock,
            )
        except ProviderError as e:
            warn(_LOG, "seedvc_gave_up", endpoint=endpoint, reason=e.message)
            return None

    async def _call(self, endpoint: str, data: List[Any]) -> Optional[str]:
        try:
            event_id = await self.submit(endpoint, data)
        except httpx.HTTPError as e:
            warn(_LOG, "seedvc_submit_failed", endpoint=endpoint, reason=type(e).__name__)
            return None
        if event_id is None:
            return None
        return await self.await_result(endpoint, event_id)

    async def convert(
        self,
        song_url: str,
        voice_sample_url: str,
        gender: Optional[str] = None,
        pitch_shift: int = 0,
    ) -> Optional[str]:
        """
        Re-sing ``song_url`` with the voice in ``voice_sample_url``.

        Tries the singing endpoint first and the style endpoint second,
        strictly in that order.

        Returns:
            Output URL, or None if neither endpoint produced one.
        """
        semitones = int(pitch_shift or 0)
        source = gradio_file_data(song_url, SOURCE_FILENAME)
        reference = gradio_file_data(voice_sample_url, REFERENCE_FILENAME)
        info(_LOG, "seedvc_start", source=preview(song_url), reference=preview(voice_sample_url),
             gender=gender or "-", pitch=semitones)

        await self.wake()

        variants = (
            (SINGING_ENDPOINT, self.singing_params(source, reference, semitones)),
            (STYLE_ENDPOINT, self.style_params(source, reference)),
        )
        for endpoint, data in variants:
            url = await self._call(endpoint, data)
            if url:
                info(_LOG, "seedvc_done", endpoint=endpoint, url=preview(url))
                return url
        return None

"""
Replicate HTTP Client.

Thin async wrapper over the parts of the Replicate REST API that
songclone-ms uses: creating predictions (RVC conversion, RVC training,
demucs stem separation, whisper transcription), reading a prediction
back, and uploading files.

Status Vocabulary:
    starting, processing  -> pending
    succeeded             -> success (if output is present)
    failed, canceled      -> failure

``Prefer: wait=N`` asks Replicate to hold the create call open for up to
N seconds (max 60 for most models) and return the finished prediction
inline. When the model is slower, the reply is still ``starting`` or
``processing`` and the caller must poll ``/predictions/{id}``.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from songclone_ms.core.config import Defaults
from songclone_ms.core.errors import ProviderError
from songclone_ms.core.logging import debug, get_logger
from songclone_ms.jobs.polling import PollOutcome

_LOG = get_logger("songclone-ms.replicate")

DEMUCS_VERSION = "cjwbw/demucs:25a173108cff36ef9f80f854c162d01df9e6528be175794b81571db50571f6ce"
WHISPER_VERSION = (
    "vaibhavs10/incredibly-fast-whisper:"
    "3ab86df6c8f54c11309d4d1f930ac292bad43ace52d10c80d87eb258b3c9f79c"
)

SUCCEEDED = "succeeded"
FAILED = "failed"
CANCELED = "canceled"


def first_output(output: Any) -> Optional[str]:
    """Return the first output URL from a list or a bare string output."""
    if isinstance(output, list):
        return output[0] if output else None
    if isinstance(output, str):
        return output
    return None


def classify(prediction: Dict[str, Any]) -> PollOutcome:
    """
    Map a Replicate prediction to a PollOutcome.

    SUCCESS carries the whole prediction so callers can pick the output
    shape they expect.
    """
    status = prediction.get("status")
    if status == SUCCEEDED and prediction.get("output"):
        return PollOutcome.success(prediction)
    if status in (FAILED, CANCELED):
        return PollOutcome.failure(str(prediction.get("error") or f"prediction {status}"))
    return PollOutcome.pending()


class ReplicateClient:
    """
    Replicate API client bound to one token.

    Args:
        http: Shared httpx.AsyncClient (owned by the caller).
        token: Replicate API token.
        base_url: API root, normally https://api.replicate.com/v1.
    """

    def __init__(self, http: httpx.AsyncClient, token: str, base_url: str):
        self._http = http
        self._token = token
        self._base_url = base_url.rstrip("/")

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self, prefer_wait: Optional[int] = None) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self._token}"}
        if prefer_wait:
            headers["Prefer"] = f"wait={prefer_wait}"
        return headers

    def _timeout(self, prefer_wait: Optional[int] = None) -> httpx.Timeout:
        """
        Client timeout, with the read timeout stretched past a
        ``Prefer: wait`` hold so the reply arrives before the socket gives up.
        """
        base = self._http.timeout
        if not prefer_wait:
            return base
        read = prefer_wait + Defaults.PREFER_WAIT_MARGIN_S
        if base.read is not None and base.read >= read:
            return base
        return httpx.Timeout(connect=base.connect, read=read, write=base.write, pool=base.pool)

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise ProviderError(
                f"Replicate unreachable ({type(e).__name__})",
                details={"reason": type(e).__name__},
            ) from e

    async def create_prediction(
        self,
        path: str,
        body: Dict[str, Any],
        prefer_wait: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        POST a prediction.

        Args:
            path: "predictions" for version-pinned models, or
                "models/{owner}/{name}/predictions" for official models.
            body: Request body, ``{"input": ...}`` plus ``version`` if pinned.
            prefer_wait: Seconds to hold the call open for a synchronous result.

        Raises:
            ProviderError: Non-2xx reply or a body that is not a JSON object.
        """
        url = f"{self._base_url}/{path.lstrip('/')}"
        response = await self._send(
            "POST", url, json=body, headers=self._headers(prefer_wait), timeout=self._timeout(prefer_wait)
        )
        if response.is_error:
            raise ProviderError(
                f"Replicate error {response.status_code}",
                details={"status": response.status_code, "body": response.text[:200]},
            )
        return self._json_object(response)

    async def get_prediction(self, prediction_id: str) -> Optional[Dict[str, Any]]:
        """
        Read a prediction back.

        Returns None on a non-2xx reply so a transient error counts as
        "still pending" inside a poll loop.
        """
        url = f"{self._base_url}/predictions/{prediction_id}"
        response = await self._send("GET", url, headers=self._headers())
        if response.is_error:
            debug(_LOG, "prediction_read_failed", prediction=prediction_id, status=response.status_code)
            return None
        return self._json_object(response)

    async def probe(self, prediction_id: str) -> PollOutcome:
        """One status read classified for the polling engine; read errors count as pending."""
        try:
            prediction = await self.get_prediction(prediction_id)
        except ProviderError:
            return PollOutcome.pending()
        if prediction is None:
            return PollOutcome.pending()
        return classify(prediction)

    async def upload_file(self, data: bytes, filename: str, content_type: str) -> str:
        """
        Upload bytes to the Files API and return the download URL.

        The multipart field is ``content``. The URL comes from
        ``urls.get`` when present, otherwise ``url``.

        Raises:
            ProviderError: Upload rejected or no URL in the reply.
        """
        response = await self._send(
            "POST",
            f"{self._base_url}/files",
            headers=self._headers(),
            files={"content": (filename, data, content_type)},
        )
        if response.is_error:
            raise ProviderError(
                f"Replicate upload failed ({response.status_code})",
                details={"status": response.status_code, "body": response.text[:120]},
            )
        payload = self._json_object(response)
        url = (payload.get("urls") or {}).get("get") or payload.get("url")
        if not url:
            raise ProviderError("Replicate upload returned no URL")
        return url

    @staticmethod
    def _json_object(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError("Replicate returned malformed JSON") from e
        if not isinstance(data, dict):
            raise ProviderError("Replicate returned an unexpected payload")
        return data

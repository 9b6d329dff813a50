"""
Audio Upload Chain.

Recorded audio must be reachable by URL before any provider can use it.
Three strategies are tried in order:

    1. Uploadcare   -> public CDN URL (https://ucarecdn.com/{uuid}/).
                       The only option Seed-VC can fetch from.
    2. Replicate    -> authenticated Files API URL, files under 4000 KB.
                       Fine for Replicate models, not for Seed-VC.
    3. data: URL    -> inline base64, files under 2048 KB, hosted=False.
                       Fine for transcription only.

A strategy whose credential is missing is skipped; one that errors is
logged and the next is tried. When nothing fits, the upload fails with a
ProviderError naming the credential to configure.
"""
from __future__ import annotations

import base64
from dataclasses import asdict, dataclass
from typing import Dict, Optional

import httpx

from songclone_ms.core.config import ProviderCredentials, ProviderEndpoints, UploadConfig
from songclone_ms.core.errors import ProviderError
from songclone_ms.core.logging import get_logger, info, success, warn
from songclone_ms.providers.replicate import ReplicateClient

_LOG = get_logger("songclone-ms.uploads")

DEFAULT_CONTENT_TYPE = "audio/webm"


@dataclass(frozen=True)
class UploadResult:
    """
    Where an upload ended up.

    Attributes:
        url: Fetchable URL (or data: URI when hosted is False).
        hosted: Whether the URL points at a hosting service.
        service: "uploadcare", "replicate" or "dataurl".
    """
    url: str
    hosted: bool
    service: str

    def to_dict(self) -> Dict[str, object]:
        return asdict(self)


def size_kb(data: bytes) -> int:
    return round(len(data) / 1024)


class UploadService:
    """
    Runs the upload chain.

    Args:
        http: Shared httpx.AsyncClient (owned by the caller).
        credentials: Provider credentials; missing ones skip their step.
        endpoints: Provider URLs.
        config: Size limits.
    """

    def __init__(
        self,
        http: httpx.AsyncClient,
        credentials: ProviderCredentials,
        endpoints: Optional[ProviderEndpoints] = None,
        config: Optional[UploadConfig] = None,
    ):
        self._http = http
        self._credentials = credentials
        self._endpoints = endpoints or ProviderEndpoints()
        self._config = config or UploadConfig()

    def upload_config(self) -> Dict[str, bool]:
        """Which upload-related services are configured. Never exposes secrets."""
        return {
            "uploadcare": self._credentials.has("uploadcare_public_key"),
            "replicate": self._credentials.has("replicate_api_token"),
            "kie": self._credentials.has("kie_api_key"),
        }

    async def upload(
        self,
        data: bytes,
        content_type: Optional[str] = None,
        file_name: Optional[str] = None,
        force_hosted: bool = False,
    ) -> UploadResult:
        """
        Upload audio bytes and return where they can be fetched.

        Raises:
            ProviderError: No strategy could take the file.
        """
        mime = content_type or DEFAULT_CONTENT_TYPE
        name = file_name or "audio.webm"
        kb = size_kb(data)
        info(_LOG, "upload_start", name=name, kb=kb, mime=mime)

        if self._credentials.has("uploadcare_public_key"):
            url = await self._try_uploadcare(data, mime, name)
            if url:
                return self._done(url, True, "uploadcare")

        if self._credentials.has("replicate_api_token") and kb < self._config.replicate_max_kb:
            url = await self._try_replicate(data, mime, name)
            if url:
                return self._done(url, True, "replicate")

        if kb < self._config.data_url_max_kb:
            if force_hosted:
                warn(_LOG, "upload_not_hosted",
                     reason="hosted URL requested but no hosting service took the file; "
                            "zero-shot cloning needs UPLOADCARE_PUBLIC_KEY")
            encoded = base64.b64encode(data).decode("ascii")
            return self._done(f"data:{mime};base64,{encoded}", False, "dataurl")

        raise ProviderError(
            "No upload service configured. Set UPLOADCARE_PUBLIC_KEY.",
            details={"kb": kb},
        )

    def _done(self, url: str, hosted: bool, service: str) -> UploadResult:
        success(_LOG, "upload_done", service=service, hosted=hosted)
        return UploadResult(url=url, hosted=hosted, service=service)

    async def _try_uploadcare(self, data: bytes, mime: str, name: str) -> Optional[str]:
        try:
            response = await self._http.post(
                self._endpoints.uploadcare_upload_url,
                data={
                    "UPLOADCARE_PUB_KEY": self._credentials.uploadcare_public_key,
                    "UPLOADCARE_STORE": "1",
                },
                files={"file": (name, data, mime)},
            )
        except httpx.HTTPError as e:
            warn(_LOG, "uploadcare_error", reason=type(e).__name__)
            return None
        if response.is_error:
            warn(_LOG, "uploadcare_rejected", status=response.status_code, body=response.text[:120])
            return None
        try:
            file_id = response.json().get("file")
        except (ValueError, AttributeError):
            file_id = None
        if not file_id:
            return None
        return f"{self._endpoints.uploadcare_cdn_url.rstrip('/')}/{file_id}/"

    async def _try_replicate(self, data: bytes, mime: str, name: str) -> Optional[str]:
        client = ReplicateClient(
            self._http,
            self._credentials.replicate_api_token or "",
            self._endpoints.replicate_base_url,
        )
        try:
            return await client.upload_file(data, name, mime)
        except (ProviderError, httpx.HTTPError) as e:
            warn(_LOG, "replicate_upload_error", reason=str(e))
            return None

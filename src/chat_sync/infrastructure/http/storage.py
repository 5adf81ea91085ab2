"""Object storage adapter: presigned upload targets and download links."""
from __future__ import annotations

import logging
from typing import AsyncIterator
from urllib.parse import quote

import httpx

from chat_sync.application.dto.attachment import UploadTarget
from chat_sync.application.exceptions import RequestError, UploadError
from chat_sync.application.ports.storage import ProgressCallback

logger = logging.getLogger(__name__)


class HttpStorageGateway:
    """Asks the storage service for a presigned URL, then PUTs the bytes there.

    The upload body is streamed in ``chunk_size`` pieces so progress can be
    reported as the transfer advances.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        chunk_size: int = 64 * 1024,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._chunk_size = chunk_size
        self._api = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )
        # presigned URLs must not receive our bearer token
        self._uploads = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._api.aclose()
        await self._uploads.aclose()

    async def get_upload_target(self, key: str, content_type: str) -> UploadTarget:
        try:
            response = await self._api.post(
                "/api/v1/storage/upload-targets",
                json={"key": key, "content_type": content_type},
            )
            response.raise_for_status()
            data = response.json()
            return UploadTarget(
                key=data.get("key", key),
                url=data["url"],
                headers=dict(data.get("headers") or {"Content-Type": content_type}),
            )
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            raise UploadError(f"Could not obtain upload target for {key}: {exc}") from exc

    async def upload(
        self,
        target: UploadTarget,
        data: bytes,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        total = len(data)

        async def body() -> AsyncIterator[bytes]:
            sent = 0
            for offset in range(0, total, self._chunk_size):
                chunk = data[offset:offset + self._chunk_size]
                yield chunk
                sent += len(chunk)
                if on_progress is not None and total:
                    on_progress(sent / total)

        headers = {**target.headers, "Content-Length": str(total)}
        try:
            response = await self._uploads.put(target.url, content=body(), headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Upload of %s failed: %s", target.key, exc)
            raise UploadError(f"Upload of {target.key} failed: {exc}") from exc

    async def get_download_reference(self, key: str) -> str:
        try:
            response = await self._api.get(f"/api/v1/storage/objects/{quote(key, safe='')}/download")
            response.raise_for_status()
            return response.json()["url"]
        except httpx.HTTPStatusError as exc:
            raise RequestError(
                f"No download reference for {key}", status_code=exc.response.status_code,
            ) from exc
        except (httpx.HTTPError, KeyError, ValueError) as exc:
            raise RequestError(f"No download reference for {key}: {exc}") from exc

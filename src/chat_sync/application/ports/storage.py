from __future__ import annotations

from typing import Callable, Protocol

from chat_sync.application.dto.attachment import UploadTarget

ProgressCallback = Callable[[float], None]


class StorageGateway(Protocol):
    async def get_upload_target(self, key: str, content_type: str) -> UploadTarget: ...

    async def upload(
        self,
        target: UploadTarget,
        data: bytes,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """Stream ``data`` to ``target``. Raises UploadError."""
        ...

    async def get_download_reference(self, key: str) -> str: ...

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Attachment:
    """A file or recorded voice clip waiting in the composer."""

    file_name: str
    content_type: str
    data: bytes
    duration: int | None = None
    is_voice: bool = False

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return os.path.splitext(self.file_name)[1].lstrip(".")


@dataclass(frozen=True, slots=True)
class UploadTarget:
    """Where and how to PUT the bytes of one object."""

    key: str
    url: str
    headers: dict[str, str]

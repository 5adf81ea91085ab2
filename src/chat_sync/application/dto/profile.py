from __future__ import annotations

from dataclasses import dataclass

from chat_sync.domain.value_objects.enums import ProfileStatus

DEFAULT_AVATAR = "👤"
DEFAULT_STATUS = ProfileStatus.ONLINE


@dataclass(frozen=True, slots=True)
class CreateProfileDTO:
    id: str
    username: str
    email: str
    name: str | None = None
    avatar: str | None = None
    status: str | None = None

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Conversation:
    id: str
    title: str | None
    members: tuple[str, ...]
    is_group: bool
    last_message_at: datetime | None
    created_at: datetime
    updated_at: datetime

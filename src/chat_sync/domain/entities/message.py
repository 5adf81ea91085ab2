from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True, slots=True)
class Message:
    conversation_id: str
    msg_id: str
    sender_id: str
    created_at: datetime
    type: str
    body: str
    media_key: str | None = None
    read_by: frozenset[str] = field(default_factory=frozenset)

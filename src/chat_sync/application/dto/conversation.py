from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class CreateConversationDTO:
    member_ids: list[str] = field(default_factory=list)
    title: str | None = None

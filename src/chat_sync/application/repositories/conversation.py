from __future__ import annotations

from datetime import datetime
from typing import Protocol

from chat_sync.domain.entities.conversation import Conversation


class ConversationReader(Protocol):
    async def get_by_id(self, conversation_id: str) -> Conversation | None: ...

    async def list_for_user(
        self, user_id: str, *, cursor: str | None = None, limit: int = 20
    ) -> list[Conversation]: ...


class ConversationWriter(Protocol):
    async def create(self, conversation: Conversation) -> Conversation: ...

    async def touch_last_message_at(
        self, conversation_id: str, ts: datetime
    ) -> None: ...

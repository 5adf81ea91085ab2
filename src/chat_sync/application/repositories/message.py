from __future__ import annotations

from typing import Protocol

from chat_sync.domain.entities.message import Message


class MessageReader(Protocol):
    async def list_latest(
        self,
        conversation_id: str,
        *,
        before: str | None = None,
        limit: int = 50,
    ) -> tuple[list[Message], str | None]:
        """Newest ``limit`` messages older than the ``before`` cursor.

        Returns (items oldest-to-newest, cursor for the next older page).
        """
        ...


class MessageWriter(Protocol):
    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        """Insert message. Return (message, created). If conflict on msg_id → return existing."""
        ...

    async def get_by_msg_id(self, conversation_id: str, msg_id: str) -> Message | None: ...

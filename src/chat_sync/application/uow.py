from __future__ import annotations

from typing import Protocol

from chat_sync.application.repositories.conversation import (
    ConversationReader,
    ConversationWriter,
)
from chat_sync.application.repositories.message import MessageReader, MessageWriter
from chat_sync.application.repositories.profile import ProfileReader, ProfileWriter


class UnitOfWork(Protocol):
    conversations: ConversationReader
    conversations_w: ConversationWriter
    messages: MessageReader
    messages_w: MessageWriter
    profiles: ProfileReader
    profiles_w: ProfileWriter

    async def commit(self) -> None: ...
    async def rollback(self) -> None: ...
    async def flush(self) -> None: ...

"""Request/response contracts the sync core depends on."""
from __future__ import annotations

from typing import Any, Protocol

from chat_sync.application.dto.message import CreateMessageRequest, MessagePage


class MessageGateway(Protocol):
    async def list_messages(
        self,
        conversation_id: str,
        *,
        limit: int,
        next_token: str | None = None,
    ) -> MessagePage:
        """Newest page first; items oldest-to-newest within the page."""
        ...

    async def send_message(self, request: CreateMessageRequest) -> dict[str, Any]:
        """Create-message mutation. Returns the stored message payload."""
        ...


class ConversationGateway(Protocol):
    async def list_conversations(self) -> list[dict[str, Any]]: ...


class ProfileGateway(Protocol):
    async def create_profile(self, data: dict[str, Any]) -> dict[str, Any]:
        """Create or overwrite. Repeated calls update rather than reject."""
        ...

    async def get_profile(self, user_id: str) -> dict[str, Any]: ...

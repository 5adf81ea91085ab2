from __future__ import annotations

from chat_sync.application.dto.principal import Principal
from chat_sync.application.exceptions import ForbiddenError, NotFoundError
from chat_sync.domain.entities.conversation import Conversation


def assert_conversation_access(
    principal: Principal,
    conversation: Conversation | None,
) -> Conversation:
    """Raise if conversation doesn't exist or principal is not a member."""
    if conversation is None:
        raise NotFoundError("Conversation not found")

    if principal.user_id not in conversation.members:
        raise ForbiddenError("Not a member of this conversation")

    return conversation

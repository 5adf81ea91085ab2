from __future__ import annotations

import uuid
from datetime import datetime, timezone

from chat_sync.application.dto.conversation import CreateConversationDTO
from chat_sync.application.dto.principal import Principal
from chat_sync.application.exceptions import ValidationError
from chat_sync.application.policies.permissions import assert_conversation_access
from chat_sync.application.uow import UnitOfWork
from chat_sync.domain.entities.conversation import Conversation


async def create_conversation(
    principal: Principal,
    dto: CreateConversationDTO,
    uow: UnitOfWork,
) -> Conversation:
    """Create a conversation. The caller is always the first member."""
    members: list[str] = [principal.user_id]
    for member_id in dto.member_ids:
        member_id = member_id.strip()
        if member_id and member_id not in members:
            members.append(member_id)
    if len(members) < 2:
        raise ValidationError("A conversation needs at least one other member")

    now = datetime.now(timezone.utc)
    conversation = Conversation(
        id=str(uuid.uuid4()),
        title=dto.title,
        members=tuple(members),
        is_group=len(members) > 2,
        last_message_at=None,
        created_at=now,
        updated_at=now,
    )
    conversation = await uow.conversations_w.create(conversation)
    await uow.commit()
    return conversation


async def list_user_conversations(
    principal: Principal,
    cursor: str | None,
    limit: int,
    uow: UnitOfWork,
) -> list[Conversation]:
    return await uow.conversations.list_for_user(
        principal.user_id, cursor=cursor, limit=limit,
    )


async def get_conversation(
    conversation_id: str,
    principal: Principal,
    uow: UnitOfWork,
) -> Conversation:
    conversation = await uow.conversations.get_by_id(conversation_id)
    return assert_conversation_access(principal, conversation)

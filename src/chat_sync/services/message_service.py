from __future__ import annotations

import logging
from datetime import datetime, timezone

from chat_sync.application.dto.message import MessagePage, SendMessageDTO, message_to_payload
from chat_sync.application.dto.principal import Principal
from chat_sync.application.exceptions import ValidationError
from chat_sync.application.policies.permissions import assert_conversation_access
from chat_sync.application.ports.bus import EventPublisher
from chat_sync.application.uow import UnitOfWork
from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.enums import MessageType

logger = logging.getLogger(__name__)

MESSAGE_CREATED = "message.created"


def _validate(dto: SendMessageDTO) -> None:
    if not dto.msg_id.strip():
        raise ValidationError("msg_id must not be blank")
    if dto.type == MessageType.TEXT and not dto.body.strip():
        raise ValidationError("Text messages need a body")
    if dto.type == MessageType.FILE and not dto.media_key:
        raise ValidationError("File messages need a media_key")


async def send_message(
    conversation_id: str,
    principal: Principal,
    dto: SendMessageDTO,
    uow: UnitOfWork,
    publisher: EventPublisher | None = None,
    channel: str = "chat.fanout",
) -> tuple[Message, bool]:
    """Create a message idempotently.

    Returns (message, created). If a message with the same msg_id already
    exists in the conversation the stored one is returned with created=False
    and nothing is published.
    """
    _validate(dto)
    conversation = await uow.conversations.get_by_id(conversation_id)
    assert_conversation_access(principal, conversation)

    msg = Message(
        conversation_id=conversation_id,
        msg_id=dto.msg_id,
        sender_id=principal.user_id,
        created_at=datetime.now(timezone.utc),
        type=dto.type.value,
        body=dto.body,
        media_key=dto.media_key if dto.type == MessageType.FILE else None,
    )

    msg, created = await uow.messages_w.create_if_not_exists(msg)

    if created:
        await uow.conversations_w.touch_last_message_at(conversation_id, msg.created_at)
        await uow.commit()
        if publisher is not None:
            try:
                await publisher.publish(
                    channel,
                    {
                        "event_type": MESSAGE_CREATED,
                        "conversation_id": conversation_id,
                        "message": message_to_payload(msg),
                    },
                )
            except Exception:
                # already committed; pollers still pick the message up
                logger.exception("Failed to publish %s for %s", msg.msg_id, conversation_id)
        logger.info("Message %s created in %s by %s", msg.msg_id, conversation_id, principal.user_id)

    return msg, created


async def list_messages(
    conversation_id: str,
    principal: Principal,
    next_token: str | None,
    limit: int,
    uow: UnitOfWork,
) -> MessagePage:
    """Newest ``limit`` messages first; ``next_token`` walks to older pages."""
    conversation = await uow.conversations.get_by_id(conversation_id)
    assert_conversation_access(principal, conversation)
    items, token = await uow.messages.list_latest(
        conversation_id, before=next_token, limit=limit,
    )
    return MessagePage(items=[message_to_payload(m) for m in items], next_token=token)

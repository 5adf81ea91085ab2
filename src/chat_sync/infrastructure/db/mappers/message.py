from __future__ import annotations

from chat_sync.domain.entities.message import Message
from chat_sync.infrastructure.db.models.message import MessageModel


def model_to_entity(model: MessageModel) -> Message:
    return Message(
        conversation_id=model.conversation_id,
        msg_id=model.msg_id,
        sender_id=model.sender_id,
        created_at=model.created_at,
        type=model.type,
        body=model.body,
        media_key=model.media_key,
        read_by=frozenset(model.read_by or ()),
    )


def entity_to_model(entity: Message) -> MessageModel:
    return MessageModel(
        conversation_id=entity.conversation_id,
        msg_id=entity.msg_id,
        sender_id=entity.sender_id,
        created_at=entity.created_at,
        type=entity.type,
        body=entity.body,
        media_key=entity.media_key,
        read_by=sorted(entity.read_by),
    )

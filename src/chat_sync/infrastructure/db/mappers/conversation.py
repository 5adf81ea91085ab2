from __future__ import annotations

from chat_sync.domain.entities.conversation import Conversation
from chat_sync.infrastructure.db.models.conversation import ConversationMemberModel, ConversationModel


def model_to_entity(model: ConversationModel) -> Conversation:
    return Conversation(
        id=model.id,
        title=model.title,
        members=tuple(m.user_id for m in model.members),
        is_group=model.is_group,
        last_message_at=model.last_message_at,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def entity_to_model(entity: Conversation) -> ConversationModel:
    return ConversationModel(
        id=entity.id,
        title=entity.title,
        is_group=entity.is_group,
        last_message_at=entity.last_message_at,
        created_at=entity.created_at,
        updated_at=entity.updated_at,
        members=[
            ConversationMemberModel(user_id=user_id, position=position)
            for position, user_id in enumerate(entity.members)
        ],
    )

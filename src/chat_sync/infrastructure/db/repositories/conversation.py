from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chat_sync.domain.entities.conversation import Conversation
from chat_sync.infrastructure.db.mappers import conversation as mapper
from chat_sync.infrastructure.db.models.conversation import ConversationMemberModel, ConversationModel
from chat_sync.infrastructure.db.repositories._cursor import decode_cursor


class ConversationReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, conversation_id: str) -> Conversation | None:
        result = await self._session.get(ConversationModel, conversation_id)
        return mapper.model_to_entity(result) if result else None

    async def list_for_user(
        self,
        user_id: str,
        *,
        cursor: str | None = None,
        limit: int = 20,
    ) -> list[Conversation]:
        stmt = (
            select(ConversationModel)
            .join(
                ConversationMemberModel,
                ConversationMemberModel.conversation_id == ConversationModel.id,
            )
            .where(ConversationMemberModel.user_id == user_id)
            .order_by(ConversationModel.last_message_at.desc().nullslast(), ConversationModel.id)
            .limit(limit)
        )
        if cursor:
            ts, cid = decode_cursor(cursor)
            stmt = stmt.where(
                (ConversationModel.last_message_at < ts)
                | (
                    (ConversationModel.last_message_at == ts)
                    & (ConversationModel.id > cid)
                )
            )
        result = await self._session.execute(stmt)
        return [mapper.model_to_entity(m) for m in result.scalars().all()]


class ConversationWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, conversation: Conversation) -> Conversation:
        model = mapper.entity_to_model(conversation)
        self._session.add(model)
        await self._session.flush()
        return mapper.model_to_entity(model)

    async def touch_last_message_at(
        self,
        conversation_id: str,
        ts: datetime,
    ) -> None:
        stmt = (
            update(ConversationModel)
            .where(ConversationModel.id == conversation_id)
            .values(last_message_at=ts)
        )
        await self._session.execute(stmt)

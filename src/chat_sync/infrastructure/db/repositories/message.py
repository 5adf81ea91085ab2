from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from chat_sync.domain.entities.message import Message
from chat_sync.infrastructure.db.mappers import message as mapper
from chat_sync.infrastructure.db.models.message import MessageModel
from chat_sync.infrastructure.db.repositories._cursor import decode_cursor, encode_cursor


class MessageReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_latest(
        self,
        conversation_id: str,
        *,
        before: str | None = None,
        limit: int = 50,
    ) -> tuple[list[Message], str | None]:
        stmt = (
            select(MessageModel)
            .where(MessageModel.conversation_id == conversation_id)
            .order_by(MessageModel.created_at.desc(), MessageModel.msg_id.desc())
            .limit(limit + 1)
        )
        if before:
            ts, mid = decode_cursor(before)
            stmt = stmt.where(
                (MessageModel.created_at < ts)
                | ((MessageModel.created_at == ts) & (MessageModel.msg_id < mid))
            )
        result = await self._session.execute(stmt)
        rows = list(result.scalars().all())

        next_token = None
        if len(rows) > limit:
            rows = rows[:limit]
            oldest = rows[-1]
            next_token = encode_cursor(oldest.created_at, oldest.msg_id)
        rows.reverse()
        return [mapper.model_to_entity(m) for m in rows], next_token


class MessageWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        """Insert message idempotently. Returns (message, created_flag)."""
        model = mapper.entity_to_model(message)
        values = {
            "conversation_id": model.conversation_id,
            "msg_id": model.msg_id,
            "sender_id": model.sender_id,
            "type": model.type,
            "body": model.body,
            "media_key": model.media_key,
            "read_by": model.read_by,
            "created_at": model.created_at,
        }
        stmt = (
            pg_insert(MessageModel)
            .values(**values)
            .on_conflict_do_nothing(index_elements=["conversation_id", "msg_id"])
            .returning(MessageModel)
        )
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()

        if row is not None:
            return mapper.model_to_entity(row), True

        # conflict: return the stored row
        existing = await self.get_by_msg_id(message.conversation_id, message.msg_id)
        assert existing is not None
        return existing, False

    async def get_by_msg_id(self, conversation_id: str, msg_id: str) -> Message | None:
        result = await self._session.get(MessageModel, (conversation_id, msg_id))
        return mapper.model_to_entity(result) if result else None

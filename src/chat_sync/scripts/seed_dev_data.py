"""Seed development data: creates the schema, two profiles and a conversation."""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone

from chat_sync.domain.entities.conversation import Conversation
from chat_sync.domain.entities.message import Message
from chat_sync.domain.entities.profile import Profile
from chat_sync.domain.value_objects.enums import MessageType
from chat_sync.infrastructure.db.base import Base
from chat_sync.infrastructure.db.models import ConversationModel  # noqa: F401  registers metadata
from chat_sync.infrastructure.db.session import AsyncSessionLocal, engine
from chat_sync.infrastructure.db.uow import SqlAlchemyUoW

logger = logging.getLogger(__name__)

ALICE = "alice"
BOB = "bob"


async def seed() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        uow = SqlAlchemyUoW(session)
        now = datetime.now(timezone.utc)

        for user_id in (ALICE, BOB):
            await uow.profiles_w.put(
                Profile(
                    id=user_id,
                    username=user_id,
                    email=f"{user_id}@example.com",
                    name=user_id.title(),
                    avatar="👤",
                    status="online",
                    created_at=now,
                    updated_at=now,
                )
            )

        conv_id = str(uuid.uuid4())
        await uow.conversations_w.create(
            Conversation(
                id=conv_id,
                title=None,
                members=(ALICE, BOB),
                is_group=False,
                last_message_at=now,
                created_at=now,
                updated_at=now,
            )
        )

        messages_data = [
            (ALICE, "Hi Bob!"),
            (BOB, "Hey Alice, how's it going?"),
            (ALICE, "Good. Sending the report in a minute."),
        ]
        for offset, (sender_id, body) in enumerate(messages_data):
            await uow.messages_w.create_if_not_exists(
                Message(
                    conversation_id=conv_id,
                    msg_id=str(uuid.uuid4()),
                    sender_id=sender_id,
                    created_at=now - timedelta(seconds=len(messages_data) - offset),
                    type=MessageType.TEXT,
                    body=body,
                )
            )

        await uow.commit()
        logger.info("Seeded conversation %s with %d messages", conv_id, len(messages_data))


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    asyncio.run(seed())


if __name__ == "__main__":
    main()

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from chat_sync.domain.value_objects.enums import MessageType


class SendMessageRequest(BaseModel):
    msg_id: str = Field(min_length=1, max_length=64)
    type: MessageType = MessageType.TEXT
    body: str = ""
    media_key: str | None = None


class MessageResponse(BaseModel):
    conversation_id: str
    msg_id: str
    sender_id: str
    created_at: datetime
    type: str
    body: str
    media_key: str | None
    read_by: list[str] = []


class MessagePageResponse(BaseModel):
    items: list[MessageResponse]
    next_token: str | None = None

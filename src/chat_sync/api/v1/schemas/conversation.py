from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CreateConversationRequest(BaseModel):
    member_ids: list[str] = Field(min_length=1)
    title: str | None = None


class ConversationResponse(BaseModel):
    id: str
    title: str | None
    members: list[str]
    is_group: bool
    last_message_at: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

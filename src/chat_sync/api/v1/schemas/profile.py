from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class PutProfileRequest(BaseModel):
    id: str = ""
    username: str = ""
    email: str = ""
    name: str | None = None
    avatar: str | None = None
    status: str | None = None


class ProfileResponse(BaseModel):
    id: str
    username: str
    email: str
    name: str
    avatar: str
    status: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}

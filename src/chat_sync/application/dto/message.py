from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from chat_sync.application.exceptions import ValidationError
from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.enums import MessageType


class MessagePayload(BaseModel):
    """Wire shape of a message. Accepts snake_case and camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    conversation_id: str
    msg_id: str
    sender_id: str = ""
    created_at: datetime
    type: MessageType = MessageType.TEXT
    body: str = ""
    media_key: str | None = None
    read_by: list[str] = []

    @field_validator("msg_id", "conversation_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("created_at")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        # Legacy records carry naive timestamps; they are UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_entity(self) -> Message:
        return Message(
            conversation_id=self.conversation_id,
            msg_id=self.msg_id,
            sender_id=self.sender_id,
            created_at=self.created_at,
            type=self.type.value,
            body=self.body,
            media_key=self.media_key,
            read_by=frozenset(self.read_by),
        )


def message_from_payload(data: Message | Mapping[str, Any]) -> Message:
    """Validate a raw message payload. Raises ValidationError if malformed."""
    if isinstance(data, Message):
        return data
    if not isinstance(data, Mapping):
        raise ValidationError(f"Expected a mapping, got {type(data).__name__}")
    try:
        return MessagePayload.model_validate(data).to_entity()
    except PydanticValidationError as exc:
        raise ValidationError(f"Malformed message: {exc.error_count()} error(s)") from exc


def message_to_payload(message: Message) -> dict[str, Any]:
    return {
        "conversation_id": message.conversation_id,
        "msg_id": message.msg_id,
        "sender_id": message.sender_id,
        "created_at": message.created_at.isoformat(),
        "type": message.type,
        "body": message.body,
        "media_key": message.media_key,
        "read_by": sorted(message.read_by),
    }


@dataclass(frozen=True, slots=True)
class MessagePage:
    """One page of the paginated message query.

    Items are left as raw payloads so a single malformed record is rejected by
    the store instead of failing the whole page.
    """

    items: list[dict[str, Any]] = field(default_factory=list)
    next_token: str | None = None


@dataclass(frozen=True, slots=True)
class CreateMessageRequest:
    conversation_id: str
    msg_id: str
    type: MessageType = MessageType.TEXT
    body: str = ""
    media_key: str | None = None


@dataclass(frozen=True, slots=True)
class SendMessageDTO:
    msg_id: str
    type: MessageType = MessageType.TEXT
    body: str = ""
    media_key: str | None = None

"""Renderable message content.

A message body is either literal text or, for ``file`` messages, a JSON
envelope describing the stored object. ``parse_content`` turns a message into
exactly one variant of ``MessageContent``; callers match on the variant instead
of re-parsing the body.
"""
from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.enums import MessageType

VOICE_CONTENT_TYPE = "audio/webm"
UNKNOWN_CONTENT_TYPE = "application/octet-stream"


class FileEnvelope(BaseModel):
    """Metadata serialized into ``body`` when ``type == "file"``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    file_name: str
    file_size: int = 0
    file_type: str = UNKNOWN_CONTENT_TYPE
    media_key: str | None = None
    duration: int | None = None
    is_voice_message: bool | None = None

    def dumps(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


@dataclass(frozen=True, slots=True)
class TextContent:
    text: str


@dataclass(frozen=True, slots=True)
class FileContent:
    file_name: str
    file_size: int
    file_type: str
    media_key: str | None


@dataclass(frozen=True, slots=True)
class VoiceContent:
    file_name: str
    file_size: int
    file_type: str
    media_key: str | None
    duration: int


MessageContent = TextContent | FileContent | VoiceContent


def format_duration(seconds: int) -> str:
    """``75 -> "1:15"``"""
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes}:{secs:02d}"


def _is_voice(envelope: FileEnvelope) -> bool:
    if envelope.is_voice_message:
        return True
    # Older voice records predate the flag.
    return envelope.file_type == VOICE_CONTENT_TYPE and bool(envelope.duration)


def _parse_file(message: Message) -> FileContent | VoiceContent:
    try:
        envelope = FileEnvelope.model_validate_json(message.body)
    except PydanticValidationError:
        # Bare filename, as written by older clients.
        return FileContent(
            file_name=message.body,
            file_size=0,
            file_type=UNKNOWN_CONTENT_TYPE,
            media_key=message.media_key,
        )

    media_key = envelope.media_key or message.media_key
    if _is_voice(envelope):
        return VoiceContent(
            file_name=envelope.file_name,
            file_size=envelope.file_size,
            file_type=envelope.file_type,
            media_key=media_key,
            duration=envelope.duration or 0,
        )
    return FileContent(
        file_name=envelope.file_name,
        file_size=envelope.file_size,
        file_type=envelope.file_type,
        media_key=media_key,
    )


def parse_content(message: Message) -> MessageContent:
    match MessageType(message.type):
        case MessageType.TEXT:
            return TextContent(text=message.body)
        case MessageType.FILE:
            return _parse_file(message)


def matches_query(message: Message, query: str) -> bool:
    """Case-insensitive search over the body and, for files, the file name."""
    needle = query.strip().lower()
    if not needle:
        return True
    if needle in message.body.lower():
        return True
    match parse_content(message):
        case TextContent():
            return False
        case FileContent(file_name=name) | VoiceContent(file_name=name):
            return needle in name.lower()

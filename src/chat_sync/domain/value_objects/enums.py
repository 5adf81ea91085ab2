from __future__ import annotations

from enum import StrEnum


class MessageType(StrEnum):
    TEXT = "text"
    FILE = "file"


class ChannelState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"
    ERRORED = "errored"


class ProfileStatus(StrEnum):
    ONLINE = "online"
    AWAY = "away"
    OFFLINE = "offline"


class SessionState(StrEnum):
    NO_CONVERSATION = "no_conversation"
    ACTIVE = "active"

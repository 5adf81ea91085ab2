"""Shared test fixtures."""
from __future__ import annotations

import asyncio
import dataclasses
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from chat_sync.application.dto.attachment import UploadTarget
from chat_sync.application.dto.message import CreateMessageRequest, MessagePage, message_to_payload
from chat_sync.application.dto.principal import Principal
from chat_sync.application.exceptions import ChannelError, RequestError, UploadError
from chat_sync.domain.entities.conversation import Conversation
from chat_sync.domain.entities.message import Message
from chat_sync.domain.entities.profile import Profile
from chat_sync.domain.value_objects.enums import MessageType
from chat_sync.infrastructure.db.repositories._cursor import decode_cursor, encode_cursor

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def at(seconds: float) -> datetime:
    return BASE_TIME + timedelta(seconds=seconds)


async def settle(rounds: int = 20) -> None:
    """Let every runnable task advance until it blocks again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def user_principal() -> Principal:
    return Principal(user_id="alice", username="alice", email="alice@example.com", name="Alice")


@pytest.fixture
def other_principal() -> Principal:
    return Principal(user_id="mallory", username="mallory", email="mallory@example.com")


def make_conversation(
    *,
    conversation_id: str | None = None,
    members: tuple[str, ...] = ("alice", "bob"),
    title: str | None = None,
    last_message_at: datetime | None = None,
) -> Conversation:
    now = datetime.now(timezone.utc)
    return Conversation(
        id=conversation_id or str(uuid.uuid4()),
        title=title,
        members=members,
        is_group=len(members) > 2,
        last_message_at=last_message_at,
        created_at=now,
        updated_at=now,
    )


def make_message(
    *,
    conversation_id: str = "c1",
    msg_id: str | None = None,
    sender_id: str = "bob",
    body: str = "hello",
    created_at: datetime | None = None,
    type: str = MessageType.TEXT,
    media_key: str | None = None,
) -> Message:
    return Message(
        conversation_id=conversation_id,
        msg_id=msg_id or str(uuid.uuid4()),
        sender_id=sender_id,
        created_at=created_at or BASE_TIME,
        type=str(type),
        body=body,
        media_key=media_key,
    )


def make_payload(**kwargs: Any) -> dict[str, Any]:
    return message_to_payload(make_message(**kwargs))


# --------------------------------------------------------------------------
# Backend fakes (unit of work)
# --------------------------------------------------------------------------


@dataclass
class FakeConversationReader:
    _store: dict[str, Conversation] = field(default_factory=dict)

    async def get_by_id(self, conversation_id: str) -> Conversation | None:
        return self._store.get(conversation_id)

    async def list_for_user(self, user_id: str, *, cursor: str | None = None, limit: int = 20) -> list[Conversation]:
        convs = [c for c in self._store.values() if user_id in c.members]
        convs.sort(key=lambda c: c.last_message_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return convs[:limit]


@dataclass
class FakeConversationWriter:
    _reader: FakeConversationReader

    async def create(self, conversation: Conversation) -> Conversation:
        self._reader._store[conversation.id] = conversation
        return conversation

    async def touch_last_message_at(self, conversation_id: str, ts: datetime) -> None:
        conv = self._reader._store[conversation_id]
        self._reader._store[conversation_id] = dataclasses.replace(conv, last_message_at=ts)


@dataclass
class FakeMessageReader:
    _messages: list[Message] = field(default_factory=list)

    async def list_latest(
        self,
        conversation_id: str,
        *,
        before: str | None = None,
        limit: int = 50,
    ) -> tuple[list[Message], str | None]:
        rows = sorted(
            (m for m in self._messages if m.conversation_id == conversation_id),
            key=lambda m: (m.created_at, m.msg_id),
            reverse=True,
        )
        if before:
            ts, mid = decode_cursor(before)
            rows = [m for m in rows if (m.created_at, m.msg_id) < (ts, mid)]
        next_token = None
        if len(rows) > limit:
            rows = rows[:limit]
            next_token = encode_cursor(rows[-1].created_at, rows[-1].msg_id)
        rows.reverse()
        return rows, next_token


@dataclass
class FakeMessageWriter:
    _reader: FakeMessageReader

    async def create_if_not_exists(self, message: Message) -> tuple[Message, bool]:
        existing = await self.get_by_msg_id(message.conversation_id, message.msg_id)
        if existing is not None:
            return existing, False
        self._reader._messages.append(message)
        return message, True

    async def get_by_msg_id(self, conversation_id: str, msg_id: str) -> Message | None:
        for m in self._reader._messages:
            if m.conversation_id == conversation_id and m.msg_id == msg_id:
                return m
        return None


@dataclass
class FakeProfileReader:
    _store: dict[str, Profile] = field(default_factory=dict)

    async def get_by_id(self, user_id: str) -> Profile | None:
        return self._store.get(user_id)


@dataclass
class FakeProfileWriter:
    _reader: FakeProfileReader

    async def put(self, profile: Profile) -> Profile:
        self._reader._store[profile.id] = profile
        return profile


@dataclass
class FakeUoW:
    """In-memory UoW for unit tests."""
    conversations: FakeConversationReader = field(default_factory=FakeConversationReader)
    conversations_w: FakeConversationWriter | None = None
    messages: FakeMessageReader = field(default_factory=FakeMessageReader)
    messages_w: FakeMessageWriter | None = None
    profiles: FakeProfileReader = field(default_factory=FakeProfileReader)
    profiles_w: FakeProfileWriter | None = None
    _committed: bool = False

    def __post_init__(self) -> None:
        if self.conversations_w is None:
            self.conversations_w = FakeConversationWriter(self.conversations)
        if self.messages_w is None:
            self.messages_w = FakeMessageWriter(self.messages)
        if self.profiles_w is None:
            self.profiles_w = FakeProfileWriter(self.profiles)

    async def flush(self) -> None:
        pass

    async def commit(self) -> None:
        self._committed = True

    async def rollback(self) -> None:
        pass


@dataclass
class FakePublisher:
    published: list[tuple[str, dict[str, Any]]] = field(default_factory=list)

    async def publish(self, channel: str, payload: dict[str, Any]) -> None:
        self.published.append((channel, payload))


# --------------------------------------------------------------------------
# Client fakes (gateways, live transport, storage, clock, audio)
# --------------------------------------------------------------------------


class FakeChatApi:
    """Server-side message log plus the gateway calls the client makes against it."""

    def __init__(self) -> None:
        self.messages: dict[str, list[dict[str, Any]]] = {}
        self.conversations: list[dict[str, Any]] = []
        self.profiles: dict[str, dict[str, Any]] = {}
        self.list_calls: list[tuple[str, int, str | None]] = []
        self.sent: list[CreateMessageRequest] = []
        self.list_error: Exception | None = None
        self.send_error: Exception | None = None
        self.profile_error: Exception | None = None
        # when set, list_messages waits for it before answering
        self.list_gate: asyncio.Event | None = None
        self.next_created_at = at(100)

    def add(self, conversation_id: str, payload: dict[str, Any]) -> None:
        self.messages.setdefault(conversation_id, []).append(payload)

    async def list_messages(
        self,
        conversation_id: str,
        *,
        limit: int,
        next_token: str | None = None,
    ) -> MessagePage:
        self.list_calls.append((conversation_id, limit, next_token))
        if self.list_gate is not None:
            await self.list_gate.wait()
        if self.list_error is not None:
            raise self.list_error
        items = self.messages.get(conversation_id, [])
        end = int(next_token) if next_token else len(items)
        start = max(0, end - limit)
        return MessagePage(
            items=list(items[start:end]),
            next_token=str(start) if start > 0 else None,
        )

    async def send_message(self, request: CreateMessageRequest) -> dict[str, Any]:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(request)
        payload = {
            "conversation_id": request.conversation_id,
            "msg_id": request.msg_id,
            "sender_id": "alice",
            "created_at": self.next_created_at.isoformat(),
            "type": str(request.type),
            "body": request.body,
            "media_key": request.media_key,
            "read_by": [],
        }
        self.next_created_at += timedelta(seconds=1)
        self.add(request.conversation_id, payload)
        return payload

    async def list_conversations(self) -> list[dict[str, Any]]:
        return list(self.conversations)

    async def create_profile(self, data: dict[str, Any]) -> dict[str, Any]:
        if self.profile_error is not None:
            raise self.profile_error
        self.profiles[data["id"]] = dict(data)
        return dict(data)

    async def get_profile(self, user_id: str) -> dict[str, Any]:
        if user_id not in self.profiles:
            raise RequestError("Profile not found", status_code=404)
        return self.profiles[user_id]


_CLOSE = object()


class FakeLiveConnection:
    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        self.close_code: int | None = None
        self.closed = False
        self._queue: asyncio.Queue[Any] = asyncio.Queue()

    def push(self, payload: dict[str, Any]) -> None:
        self._queue.put_nowait(payload)

    def close_with(self, code: int) -> None:
        self._queue.put_nowait((_CLOSE, code, False))

    def fail(self, code: int = 1006) -> None:
        self._queue.put_nowait((_CLOSE, code, True))

    async def __aiter__(self):
        while True:
            item = await self._queue.get()
            if isinstance(item, tuple) and item and item[0] is _CLOSE:
                _, code, failed = item
                self.close_code = code
                if failed:
                    raise ChannelError("connection lost", close_code=code)
                return
            yield item

    async def close(self) -> None:
        self.closed = True


class FakeLiveTransport:
    def __init__(self, *, hang: bool = False) -> None:
        self.hang = hang
        self.connect_errors: list[Exception] = []
        self.connections: list[FakeLiveConnection] = []
        self.attempts: list[str] = []

    @property
    def last(self) -> FakeLiveConnection:
        return self.connections[-1]

    async def connect(self, conversation_id: str) -> FakeLiveConnection:
        self.attempts.append(conversation_id)
        if self.hang:
            await asyncio.Event().wait()
        if self.connect_errors:
            raise self.connect_errors.pop(0)
        connection = FakeLiveConnection(conversation_id)
        self.connections.append(connection)
        return connection


class FakeStorage:
    def __init__(self) -> None:
        self.uploads: dict[str, bytes] = {}
        self.targets: list[tuple[str, str]] = []
        self.fail_upload = False

    async def get_upload_target(self, key: str, content_type: str) -> UploadTarget:
        self.targets.append((key, content_type))
        return UploadTarget(key=key, url=f"https://upload.test/{key}", headers={"Content-Type": content_type})

    async def upload(self, target: UploadTarget, data: bytes, on_progress=None) -> None:
        if self.fail_upload:
            raise UploadError("storage unavailable")
        if on_progress is not None:
            on_progress(0.5)
        self.uploads[target.key] = data

    async def get_download_reference(self, key: str) -> str:
        return f"https://files.test/{key}"


class FakeClock:
    def __init__(self, now: datetime = BASE_TIME) -> None:
        self._now = now
        self._mono = 1000.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._mono

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)
        self._mono += seconds


class FakeAudioSource:
    instances: list[FakeAudioSource] = []

    def __init__(self, data: bytes = b"OggS-voice") -> None:
        self.data = data
        self.started = False
        self.stopped = False
        FakeAudioSource.instances.append(self)

    def start(self) -> None:
        self.started = True

    def stop(self) -> bytes:
        self.stopped = True
        return self.data


class ManualSleep:
    """Injectable ``sleep`` that only returns when the test releases it."""

    def __init__(self) -> None:
        self.delays: list[float] = []
        self._waiters: list[asyncio.Future[None]] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        future = asyncio.get_running_loop().create_future()
        self._waiters.append(future)
        await future

    @property
    def pending(self) -> int:
        return sum(1 for f in self._waiters if not f.done())

    def release(self) -> None:
        waiters, self._waiters = self._waiters, []
        for future in waiters:
            if not future.done():
                future.set_result(None)

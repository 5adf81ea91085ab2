from __future__ import annotations

import asyncio

import pytest

from chat_sync.application.exceptions import RequestError, ValidationError
from chat_sync.domain.value_objects.enums import ChannelState, SessionState
from chat_sync.sync.live import RetryPolicy
from chat_sync.sync.recorder import VoiceRecorder
from chat_sync.sync.session import ConversationSession
from tests.conftest import (
    FakeAudioSource,
    FakeChatApi,
    FakeClock,
    FakeLiveTransport,
    FakeStorage,
    ManualSleep,
    at,
    make_message,
    make_payload,
    settle,
)


@pytest.fixture
def api() -> FakeChatApi:
    api = FakeChatApi()
    api.conversations = [{"id": "c1"}, {"id": "c2"}]
    api.add("c1", make_payload(conversation_id="c1", msg_id="c1-m1", created_at=at(1)))
    api.add("c2", make_payload(conversation_id="c2", msg_id="c2-m1", created_at=at(1)))
    return api


@pytest.fixture
def transport() -> FakeLiveTransport:
    return FakeLiveTransport()


@pytest.fixture
def sleep() -> ManualSleep:
    return ManualSleep()


@pytest.fixture
def session(api, transport, sleep) -> ConversationSession:
    return ConversationSession(
        messages=api,
        conversations=api,
        transport=transport,
        user_id="alice",
        storage=FakeStorage(),
        recorder=VoiceRecorder(FakeAudioSource, clock=FakeClock(), sleep=ManualSleep()),
        retry=RetryPolicy(jitter=0.0),
        sleep=sleep,
    )


def _ids(session: ConversationSession) -> list[str]:
    return [m.msg_id for m in session.visible_messages()]


@pytest.mark.asyncio
async def test_open_auto_selects_first_conversation(session, transport):
    await session.open()
    await settle()

    assert session.state == SessionState.ACTIVE
    assert session.active_conversation_id == "c1"
    assert _ids(session) == ["c1-m1"]
    assert transport.attempts == ["c1"]
    assert session.channel_state == ChannelState.CONNECTED
    await session.close()


@pytest.mark.asyncio
async def test_open_prefers_given_conversation(session):
    await session.open("c2")

    assert session.active_conversation_id == "c2"
    await session.close()


@pytest.mark.asyncio
async def test_open_without_conversations_stays_idle(session, api):
    api.conversations = []

    assert await session.open() is None
    assert session.state == SessionState.NO_CONVERSATION


@pytest.mark.asyncio
async def test_selecting_active_conversation_is_a_noop(session, api):
    await session.open("c1")

    assert await session.select("c1") is None
    assert len(api.list_calls) == 1
    await session.close()


@pytest.mark.asyncio
async def test_switch_clears_view_and_stops_old_channels(session, transport):
    await session.open("c1")
    await settle()
    old = transport.last

    await session.select("c2")
    await settle()

    assert old.closed
    assert _ids(session) == ["c2-m1"]
    assert session.store.watermark == at(1)
    assert transport.attempts == ["c1", "c2"]
    await session.close()


@pytest.mark.asyncio
async def test_live_events_reach_the_store(session, transport):
    await session.open("c1")
    await settle()

    transport.last.push(make_payload(conversation_id="c1", msg_id="live-1", created_at=at(5)))
    await settle()

    assert _ids(session) == ["c1-m1", "live-1"]
    assert session.store.watermark == at(5)
    await session.close()


@pytest.mark.asyncio
async def test_events_for_inactive_conversation_are_dropped(session, transport):
    await session.open("c1")
    await settle()

    transport.last.push(make_payload(conversation_id="c2", msg_id="stray"))
    transport.last.push({"msg_id": "broken"})
    await settle()
    session._on_live_event("c2", make_payload(conversation_id="c2", msg_id="late"))

    assert _ids(session) == ["c1-m1"]
    await session.close()


@pytest.mark.asyncio
async def test_late_history_for_previous_conversation_is_discarded(session, api):
    api.list_gate = asyncio.Event()
    first = asyncio.create_task(session.select("c1"))
    await settle()

    second = asyncio.create_task(session.select("c2"))
    await settle()
    api.list_gate.set()
    await asyncio.gather(first, second)

    assert session.active_conversation_id == "c2"
    assert _ids(session) == ["c2-m1"]
    assert all(m.conversation_id == "c2" for m in session.visible_messages())
    await session.close()


async def _three_ticks(session: ConversationSession, sleep: ManualSleep, msg_id: str):
    counts, marks = [], []
    for _ in range(3):
        sleep.release()
        await settle()
        counts.append(sum(1 for m in session.store.messages() if m.msg_id == msg_id))
        marks.append(session.store.watermark)
    return counts, marks


@pytest.mark.asyncio
async def test_polling_delivers_when_live_never_connects(api, sleep):
    transport = FakeLiveTransport(hang=True)
    session = ConversationSession(
        messages=api, conversations=api, transport=transport, user_id="alice", sleep=sleep,
    )
    await session.open("c1")
    await settle()
    assert session.channel_state == ChannelState.CONNECTING
    before = session.store.watermark

    api.add("c1", make_payload(conversation_id="c1", msg_id="c1-m2", created_at=at(2)))
    counts, marks = await _three_ticks(session, sleep, "c1-m2")

    assert counts == [1, 1, 1]
    assert _ids(session) == ["c1-m1", "c1-m2"]
    assert [before, *marks] == sorted([before, *marks])
    assert marks[-1] == at(2)
    assert session.channel_state == ChannelState.CONNECTING
    await session.close()
    assert session.channel_state == ChannelState.IDLE


@pytest.mark.asyncio
async def test_polling_delivers_first_message_of_empty_conversation(sleep):
    api = FakeChatApi()
    api.conversations = [{"id": "c1"}]
    session = ConversationSession(
        messages=api, conversations=api, transport=FakeLiveTransport(hang=True),
        user_id="alice", sleep=sleep,
    )
    await session.open("c1")
    await settle()
    assert session.store.watermark is None
    assert session.store.history_loaded

    api.add("c1", make_payload(conversation_id="c1", msg_id="first", created_at=at(2)))
    counts, marks = await _three_ticks(session, sleep, "first")

    assert counts == [1, 1, 1]
    assert _ids(session) == ["first"]
    assert marks == [at(2), at(2), at(2)]
    await session.close()


@pytest.mark.asyncio
async def test_history_failure_surfaces_but_polling_keeps_running(session, api, sleep):
    api.list_error = RequestError("unavailable", status_code=503)

    with pytest.raises(RequestError):
        await session.select("c1")

    api.list_error = None
    sleep.release()
    await settle()
    sleep.release()
    await settle()

    assert session.active_conversation_id == "c1"
    assert len(api.list_calls) >= 3
    await session.close()


@pytest.mark.asyncio
async def test_send_schedules_an_extra_poll(session, api, sleep):
    await session.open("c1")
    await settle()
    session.composer.text = "hi"

    message = await session.send()
    await settle()

    assert message.msg_id in session.store
    assert 0.5 in sleep.delays
    assert session.composer.text == ""
    await session.close()


@pytest.mark.asyncio
async def test_send_without_conversation_fails(session):
    session.composer.text = "hi"

    with pytest.raises(ValidationError):
        await session.send()


@pytest.mark.asyncio
async def test_download_reference(session):
    file_message = make_message(type="file", body='{"fileName":"a.pdf","mediaKey":"uploads/a.pdf"}')

    assert await session.download_reference(file_message) == "https://files.test/uploads/a.pdf"
    with pytest.raises(ValidationError):
        await session.download_reference(make_message(body="just text"))


@pytest.mark.asyncio
async def test_close_releases_everything(session, transport):
    await session.open("c1")
    await settle()
    session.composer.start_recording()
    recorder = session.composer.recorder

    await session.close()

    assert transport.last.closed
    assert not recorder.is_recording
    assert FakeAudioSource.instances[-1].stopped
    assert session.state == SessionState.NO_CONVERSATION
    assert session.store.conversation_id is None
    assert len(session.store) == 0


@pytest.mark.asyncio
async def test_session_as_context_manager(api, transport, sleep):
    async with ConversationSession(
        messages=api, conversations=api, transport=transport, user_id="alice", sleep=sleep,
    ) as session:
        await session.open()
        await settle()

    assert transport.last.closed
    assert session.active_conversation_id is None


@pytest.mark.asyncio
async def test_switch_works_after_live_channel_crashed(api, sleep):
    transport = FakeLiveTransport()
    transport.connect_errors.append(RuntimeError("transport bug"))
    session = ConversationSession(
        messages=api, conversations=api, transport=transport, user_id="alice", sleep=sleep,
    )
    await session.open("c1")
    await settle()
    assert session.channel_state == ChannelState.ERRORED

    await session.select("c2")
    await settle()

    assert _ids(session) == ["c2-m1"]
    assert session.channel_state == ChannelState.CONNECTED
    await session.close()
    assert session.store.conversation_id is None

"""Lifecycle owner for the active conversation.

Entering a conversation: stop the old channels, clear the store and
watermark, then start the historical load, the live channel and the polling
fallback for the new id, in that order. Only this class mutates the store
directly; every other writer goes through it.
"""
from __future__ import annotations

import asyncio
import logging
from types import TracebackType
from typing import Any, Awaitable, Callable, Self

from chat_sync.application.dto.content import FileContent, TextContent, VoiceContent, parse_content
from chat_sync.application.dto.message import MessagePage, message_from_payload
from chat_sync.application.exceptions import RequestError, ValidationError
from chat_sync.application.ports.chat_api import ConversationGateway, MessageGateway
from chat_sync.application.ports.clock import Clock
from chat_sync.application.ports.live import LiveTransport
from chat_sync.application.ports.storage import ProgressCallback, StorageGateway
from chat_sync.domain.entities.message import Message
from chat_sync.domain.value_objects.enums import ChannelState, SessionState
from chat_sync.sync.history import HistoryLoader
from chat_sync.sync.live import LiveChannel, RetryPolicy, StateListener
from chat_sync.sync.polling import PollingFallback
from chat_sync.sync.recorder import VoiceRecorder
from chat_sync.sync.send import Composer, SendPipeline
from chat_sync.sync.store import MessageStore

logger = logging.getLogger(__name__)


class ConversationSession:
    def __init__(
        self,
        *,
        messages: MessageGateway,
        conversations: ConversationGateway,
        transport: LiveTransport,
        user_id: str,
        storage: StorageGateway | None = None,
        recorder: VoiceRecorder | None = None,
        clock: Clock | None = None,
        history_limit: int = 50,
        poll_interval: float = 2.0,
        poll_limit: int = 10,
        poll_after_send_delay: float | None = 0.5,
        retry: RetryPolicy | None = None,
        on_channel_state: StateListener | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.store = MessageStore()
        self.composer = Composer(recorder=recorder)
        self._conversations = conversations
        self._storage = storage
        self._poll_after_send_delay = poll_after_send_delay
        self._active: str | None = None

        self._history = HistoryLoader(messages, self.store, limit=history_limit)
        self._live = LiveChannel(
            transport,
            self._on_live_event,
            retry=retry,
            on_state_change=on_channel_state,
            sleep=sleep,
        )
        self._polling = PollingFallback(
            messages, self.store, interval=poll_interval, limit=poll_limit, sleep=sleep,
        )
        self._pipeline = SendPipeline(
            messages, self.store, user_id=user_id, storage=storage, clock=clock,
        )

    @property
    def state(self) -> SessionState:
        return SessionState.NO_CONVERSATION if self._active is None else SessionState.ACTIVE

    @property
    def active_conversation_id(self) -> str | None:
        return self._active

    @property
    def channel_state(self) -> ChannelState:
        return self._live.state

    async def open(self, preferred_id: str | None = None) -> MessagePage | None:
        """Activate ``preferred_id``, or the first available conversation if none is active."""
        if preferred_id:
            return await self.select(preferred_id)
        if self._active is not None:
            return None
        conversations = await self._conversations.list_conversations()
        if not conversations:
            logger.info("No conversations available to auto-select")
            return None
        first = str(conversations[0]["id"])
        logger.info("Auto-selecting conversation %s", first)
        return await self.select(first)

    async def select(self, conversation_id: str) -> MessagePage | None:
        """Switch to ``conversation_id``. Returns the first history page.

        A failed historical load raises RequestError once; live and polling
        keep running for the new conversation regardless.
        """
        if conversation_id == self._active:
            return None
        await self._leave()

        self.store.reset(conversation_id)
        self._active = conversation_id
        logger.info("Entering conversation %s", conversation_id)

        load = asyncio.create_task(
            self._history.load(conversation_id), name=f"history-{conversation_id}",
        )
        self._live.start(conversation_id)
        self._polling.start(conversation_id)
        return await load

    async def load_older(self, next_token: str) -> MessagePage:
        if self._active is None:
            raise ValidationError("No active conversation")
        return await self._history.load_older(self._active, next_token)

    async def send(self, on_progress: ProgressCallback | None = None) -> Message:
        if self._active is None:
            raise ValidationError("No active conversation")
        conversation_id = self._active
        message = await self._pipeline.send(conversation_id, self.composer, on_progress)
        if self._poll_after_send_delay is not None and self._active == conversation_id:
            self._polling.poll_soon(conversation_id, self._poll_after_send_delay)
        return message

    def visible_messages(self, query: str | None = None) -> list[Message]:
        return self.store.search(query)

    async def download_reference(self, message: Message) -> str:
        match parse_content(message):
            case TextContent():
                raise ValidationError("Not a file message")
            case FileContent(media_key=key) | VoiceContent(media_key=key):
                if not key:
                    raise ValidationError("File message has no storage reference")
                if self._storage is None:
                    raise RequestError("No storage configured")
                return await self._storage.get_download_reference(key)

    async def close(self) -> None:
        """Tear down: stop both channels, release the recorder, drop the view."""
        await self._leave()
        await self._polling.close()
        if self.composer.recorder is not None:
            self.composer.recorder.cancel()
        self.store.reset(None)
        logger.info("Session closed")

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def _leave(self) -> None:
        if self._active is None:
            return
        logger.info("Leaving conversation %s", self._active)
        await self._live.stop()
        await self._polling.stop()
        self._active = None

    def _on_live_event(self, conversation_id: str, payload: dict[str, Any]) -> None:
        if conversation_id != self._active:
            logger.debug("Dropping live event for inactive conversation %s", conversation_id)
            return
        try:
            message = message_from_payload(payload)
        except ValidationError as exc:
            logger.warning("Dropping malformed live event: %s", exc.detail)
            return
        if message.conversation_id != conversation_id:
            logger.debug(
                "Dropping live event for %s on channel %s",
                message.conversation_id, conversation_id,
            )
            return
        self.store.reconcile([message])

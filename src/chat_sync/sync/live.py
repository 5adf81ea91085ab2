"""Push subscription for the active conversation, with automatic reconnect."""
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from chat_sync.application.exceptions import ChannelError
from chat_sync.application.ports.live import LiveConnection, LiveTransport
from chat_sync.domain.value_objects.enums import ChannelState

logger = logging.getLogger(__name__)

EventSink = Callable[[str, dict[str, Any]], None]
StateListener = Callable[[ChannelState], None]
Sleep = Callable[[float], Awaitable[None]]

NORMAL_CLOSE_CODES = frozenset({1000, 1001})

CLOSE_CODE_DESCRIPTIONS: dict[int, str] = {
    1000: "Normal closure",
    1001: "Going away",
    1002: "Protocol error",
    1003: "Unsupported data",
    1006: "Abnormal closure - connection lost",
    1011: "Server error",
    1012: "Service restart",
    1013: "Try again later",
    1015: "TLS handshake failed",
}


def describe_close_code(code: int | None) -> str:
    if code is None:
        return "No close code"
    return CLOSE_CODE_DESCRIPTIONS.get(code, "Unknown close code")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Exponential backoff with jitter, capped delay, bounded attempts."""

    max_attempts: int = 10
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 1.0

    def delay_for(self, attempt: int, rand: Callable[[], float] = random.random) -> float:
        return min(self.base_delay * (2 ** attempt), self.max_delay) + rand() * self.jitter

    def should_retry(self, attempt: int, close_code: int | None) -> bool:
        if close_code in NORMAL_CLOSE_CODES:
            return False
        return attempt < self.max_attempts


class LiveChannel:
    """State machine: IDLE → CONNECTING → CONNECTED → (CLOSED | ERRORED).

    Every received payload is passed to ``sink`` together with the
    conversation id the subscription was opened for; the sink decides whether
    that conversation is still the active one.
    """

    def __init__(
        self,
        transport: LiveTransport,
        sink: EventSink,
        *,
        retry: RetryPolicy | None = None,
        on_state_change: StateListener | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._transport = transport
        self._sink = sink
        self._retry = retry or RetryPolicy()
        self._on_state_change = on_state_change
        self._sleep = sleep
        self._state = ChannelState.IDLE
        self._conversation_id: str | None = None
        self._connection: LiveConnection | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def conversation_id(self) -> str | None:
        return self._conversation_id

    def start(self, conversation_id: str) -> None:
        if self._task is not None and not self._task.done():
            raise RuntimeError("Live channel already running; stop it first")
        self._conversation_id = conversation_id
        self._task = asyncio.create_task(
            self._run(conversation_id), name=f"live-channel-{conversation_id}",
        )
        self._task.add_done_callback(self._on_run_done)

    async def stop(self) -> None:
        """Tear down deliberately: close the connection and go IDLE."""
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                # already logged by _on_run_done; teardown must still complete
                logger.debug("Live channel task had crashed before stop")
        await self._release()
        self._conversation_id = None
        self._set_state(ChannelState.IDLE)

    def _on_run_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Live channel task crashed", exc_info=exc)
            self._set_state(ChannelState.ERRORED)

    def _set_state(self, state: ChannelState) -> None:
        if state == self._state:
            return
        logger.debug("Live channel %s: %s → %s", self._conversation_id, self._state, state)
        self._state = state
        if self._on_state_change is not None:
            self._on_state_change(state)

    async def _release(self) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        try:
            await connection.close()
        except Exception:
            logger.warning("Error closing live connection", exc_info=True)

    async def _run(self, conversation_id: str) -> None:
        attempt = 0
        while True:
            self._set_state(ChannelState.CONNECTING)
            close_code: int | None = None
            try:
                self._connection = await self._transport.connect(conversation_id)
                self._set_state(ChannelState.CONNECTED)
                logger.info("Live channel connected for %s", conversation_id)
                attempt = 0
                async for payload in self._connection:
                    self._sink(conversation_id, payload)
                close_code = self._connection.close_code
                logger.info(
                    "Live channel closed with code %s: %s",
                    close_code, describe_close_code(close_code),
                )
                self._set_state(ChannelState.CLOSED)
            except ChannelError as exc:
                close_code = exc.close_code
                logger.warning(
                    "Live channel error for %s (%s): %s",
                    conversation_id, describe_close_code(close_code), exc.detail,
                )
                self._set_state(ChannelState.ERRORED)
            finally:
                await self._release()

            if not self._retry.should_retry(attempt, close_code):
                logger.info(
                    "Not retrying live channel for %s (attempt=%d, code=%s)",
                    conversation_id, attempt, close_code,
                )
                return
            delay = self._retry.delay_for(attempt)
            attempt += 1
            logger.info("Live channel retry %d for %s in %.2fs", attempt, conversation_id, delay)
            await self._sleep(delay)

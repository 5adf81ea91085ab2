"""Fixed-interval pull that guarantees delivery when the live channel is down."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from chat_sync.application.exceptions import RequestError
from chat_sync.application.ports.chat_api import MessageGateway
from chat_sync.sync.store import MessageStore, newest_timestamp, validate_batch

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class PollingFallback:
    """Re-fetches the newest messages every ``interval`` seconds.

    At most one poll per conversation is outstanding; a tick that fires while
    one is in flight is skipped. Results that resolve after the conversation
    changed are discarded.
    """

    def __init__(
        self,
        gateway: MessageGateway,
        store: MessageStore,
        *,
        interval: float = 2.0,
        limit: int = 10,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._gateway = gateway
        self._store = store
        self._interval = interval
        self._limit = limit
        self._sleep = sleep
        self._in_flight: set[str] = set()
        self._timer: asyncio.Task[None] | None = None
        self._polls: set[asyncio.Task[int]] = set()

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def is_polling(self, conversation_id: str) -> bool:
        return conversation_id in self._in_flight

    def start(self, conversation_id: str) -> None:
        if self.running:
            raise RuntimeError("Polling already running; stop it first")
        logger.info("Starting polling for %s every %.1fs", conversation_id, self._interval)
        self._timer = asyncio.create_task(
            self._tick_loop(conversation_id), name=f"poll-timer-{conversation_id}",
        )

    async def stop(self) -> None:
        """Release the timer. An in-flight poll finishes and is discarded."""
        timer, self._timer = self._timer, None
        if timer is None:
            return
        timer.cancel()
        try:
            await timer
        except asyncio.CancelledError:
            pass
        logger.info("Stopped polling")

    async def close(self) -> None:
        await self.stop()
        polls = list(self._polls)
        for task in polls:
            task.cancel()
        if polls:
            await asyncio.gather(*polls, return_exceptions=True)

    def poll_soon(self, conversation_id: str, delay: float = 0.0) -> None:
        """Schedule one extra poll outside the regular interval."""
        self._spawn(conversation_id, delay)

    async def _tick_loop(self, conversation_id: str) -> None:
        while True:
            await self._sleep(self._interval)
            if self.is_polling(conversation_id):
                logger.debug("Previous poll for %s still in flight, skipping tick", conversation_id)
                continue
            self._spawn(conversation_id)

    def _spawn(self, conversation_id: str, delay: float = 0.0) -> None:
        task = asyncio.create_task(
            self._delayed_tick(conversation_id, delay), name=f"poll-{conversation_id}",
        )
        self._polls.add(task)
        task.add_done_callback(self._on_poll_done)

    def _on_poll_done(self, task: asyncio.Task[int]) -> None:
        self._polls.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Poll task crashed", exc_info=exc)

    async def _delayed_tick(self, conversation_id: str, delay: float) -> int:
        if delay > 0:
            await self._sleep(delay)
        return await self.tick(conversation_id)

    async def tick(self, conversation_id: str) -> int:
        """Run one poll. Returns the number of inserted messages (0 if skipped)."""
        if conversation_id in self._in_flight:
            return 0
        self._in_flight.add(conversation_id)
        try:
            return await self._poll(conversation_id)
        except RequestError as exc:
            logger.warning("Poll for %s failed, retrying next tick: %s", conversation_id, exc.detail)
            return 0
        finally:
            self._in_flight.discard(conversation_id)

    async def _poll(self, conversation_id: str) -> int:
        page = await self._gateway.list_messages(conversation_id, limit=self._limit)
        if self._store.conversation_id != conversation_id:
            logger.debug("Discarding poll result for %s: conversation switched", conversation_id)
            return 0

        fetched = validate_batch(page.items, conversation_id)
        newest = newest_timestamp(fetched)
        if newest is None:
            return 0

        watermark = self._store.watermark
        if watermark is None:
            if not self._store.history_loaded:
                # history is still loading and overlaps this page; only mark the position
                self._store.advance_watermark(newest)
                logger.debug("First poll for %s, watermark set to %s", conversation_id, newest)
                return 0
            # history came back empty: everything fetched is new
            fresh = fetched
        else:
            fresh = [m for m in fetched if m.created_at > watermark]
        inserted = self._store.reconcile(fresh) if fresh else 0
        self._store.advance_watermark(newest)
        if inserted:
            logger.info("Poll found %d new message(s) for %s", inserted, conversation_id)
        return inserted

"""Cross-instance fan-out of message events over Redis Pub/Sub."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Coroutine

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from chat_sync.infrastructure.bus.serializer import deserialize_event, serialize_event

logger = logging.getLogger(__name__)

OnEventCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]
Sleep = Callable[[float], Awaitable[None]]


class RedisPubSubPublisher:
    """Implements application.ports.bus.EventPublisher.

    Every event is scoped to one conversation; subscribers route on
    ``conversation_id``.
    """

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def publish(self, channel: str, payload: dict[str, Any]) -> None:
        conversation_id = payload.get("conversation_id")
        if not conversation_id:
            raise ValueError("event payload has no conversation_id")
        event_type = payload.get("event_type", "unknown")
        receivers = await self._redis.publish(channel, serialize_event(event_type, payload))
        logger.debug(
            "Published %s for %s to %d instance(s)", event_type, conversation_id, receivers,
        )


class RedisPubSubSubscriber:
    """Feeds events from every instance to this instance's sockets.

    Events for conversations nobody here follows are dropped before the
    callback. A lost Redis connection is resubscribed with capped backoff;
    events published while disconnected are not replayed (clients poll).
    """

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnEventCallback,
        *,
        accepts: Callable[[str], bool] | None = None,
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 30.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._accepts = accepts
        self._reconnect_delay = reconnect_delay
        self._max_reconnect_delay = max_reconnect_delay
        self._sleep = sleep
        self._attempt = 0
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run(), name="redis-pubsub-subscriber")
        logger.info("Redis Pub/Sub subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Redis Pub/Sub subscriber ended with an error")
        logger.info("Redis Pub/Sub subscriber stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self._listen()
                reason = "listener ended"
            except (RedisError, OSError) as exc:
                reason = str(exc)
            delay = min(self._reconnect_delay * 2 ** self._attempt, self._max_reconnect_delay)
            self._attempt += 1
            logger.warning(
                "Pub/Sub connection on %s lost (%s), resubscribing in %.1fs",
                self._channel, reason, delay,
            )
            await self._sleep(delay)

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(self._channel)
            if self._attempt:
                logger.info("Resubscribed to %s after %d attempt(s)", self._channel, self._attempt)
            self._attempt = 0
            async for message in pubsub.listen():
                if message["type"] == "message":
                    await self._dispatch(message["data"])
        finally:
            await pubsub.aclose()

    async def _dispatch(self, raw: str | bytes) -> None:
        try:
            event_type, data = deserialize_event(raw)
        except (ValueError, KeyError, TypeError):
            logger.warning("Ignoring malformed Pub/Sub event on %s", self._channel)
            return

        conversation_id = data.get("conversation_id")
        if not conversation_id:
            logger.warning("Ignoring %s event without conversation_id", event_type)
            return
        if self._accepts is not None and not self._accepts(str(conversation_id)):
            return

        try:
            await self._callback(event_type, data)
        except Exception:
            logger.exception("Error delivering %s for %s", event_type, conversation_id)

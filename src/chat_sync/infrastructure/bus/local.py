"""In-process fan-out for single-instance deployments without Redis."""
from __future__ import annotations

import logging
from typing import Any

from chat_sync.infrastructure.bus.redis_pubsub import OnEventCallback

logger = logging.getLogger(__name__)


class LocalPublisher:
    """Implements application.ports.bus.EventPublisher by calling the fan-out directly.

    The channel name is ignored: every event reaches this process's sockets only.
    """

    def __init__(self, callback: OnEventCallback) -> None:
        self._callback = callback

    async def publish(self, channel: str, payload: dict[str, Any]) -> None:
        event_type = payload.get("event_type", "unknown")
        try:
            await self._callback(event_type, payload)
        except Exception:
            logger.exception("Local fan-out of %s failed", event_type)

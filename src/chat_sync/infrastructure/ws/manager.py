"""In-process WebSocket connection manager."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import WebSocket

from chat_sync.infrastructure.ws.protocol import WsOutbound

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks open sockets and the conversations each socket subscribed to.

    Subscriptions are per socket, so two devices of the same user can follow
    different conversations.
    """

    def __init__(self) -> None:
        self._connections: dict[str, set[WebSocket]] = {}
        self._subscriptions: dict[str, set[WebSocket]] = {}

    def connection_count(self, principal_key: str) -> int:
        return len(self._connections.get(principal_key, ()))

    def subscriber_count(self, conversation_id: str) -> int:
        return len(self._subscriptions.get(conversation_id, ()))

    async def connect(self, ws: WebSocket, principal_key: str) -> None:
        await ws.accept()
        self._connections.setdefault(principal_key, set()).add(ws)
        logger.debug("WS connected: %s (total=%d)", principal_key, len(self._connections))

    def disconnect(self, ws: WebSocket, principal_key: str) -> None:
        conns = self._connections.get(principal_key)
        if conns:
            conns.discard(ws)
            if not conns:
                del self._connections[principal_key]
        for conversation_id in list(self._subscriptions):
            self._drop(conversation_id, ws)
        logger.debug("WS disconnected: %s", principal_key)

    def subscribe(self, ws: WebSocket, conversation_id: str) -> None:
        self._subscriptions.setdefault(conversation_id, set()).add(ws)

    def unsubscribe(self, ws: WebSocket, conversation_id: str) -> None:
        self._drop(conversation_id, ws)

    def _drop(self, conversation_id: str, ws: WebSocket) -> None:
        subs = self._subscriptions.get(conversation_id)
        if subs is None:
            return
        subs.discard(ws)
        if not subs:
            del self._subscriptions[conversation_id]

    async def broadcast_to_conversation(
        self,
        conversation_id: str,
        event_type: str,
        data: dict[str, Any],
    ) -> None:
        """Send a WS message to every socket subscribed to a conversation."""
        raw = WsOutbound(type=event_type, data=data).model_dump_json()
        dead: list[WebSocket] = []
        for ws in list(self._subscriptions.get(conversation_id, ())):
            try:
                await ws.send_text(raw)
            except Exception:
                dead.append(ws)
        for ws in dead:
            logger.debug("Dropping dead socket from %s", conversation_id)
            for principal_key, conns in list(self._connections.items()):
                if ws in conns:
                    self.disconnect(ws, principal_key)
                    break
            else:
                self._drop(conversation_id, ws)

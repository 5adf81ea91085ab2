"""Live transport over the backend's ``/ws/chat`` endpoint."""
from __future__ import annotations

import logging
from typing import Any, AsyncIterator
from urllib.parse import urlencode

from pydantic import ValidationError as PydanticValidationError
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import (
    ConnectionClosed,
    ConnectionClosedError,
    ConnectionClosedOK,
    InvalidHandshake,
    InvalidURI,
)

from chat_sync.application.exceptions import ChannelError
from chat_sync.infrastructure.ws.protocol import WsInbound, WsOutbound

logger = logging.getLogger(__name__)


def _close_code(exc: ConnectionClosed) -> int | None:
    if exc.rcvd is not None:
        return exc.rcvd.code
    # no close frame received: the connection dropped
    return 1006


class WebSocketLiveConnection:
    """One subscribed socket. Yields message payloads of ``message.created`` events."""

    def __init__(self, ws: ClientConnection, conversation_id: str) -> None:
        self._ws = ws
        self._conversation_id = conversation_id
        self.close_code: int | None = None

    async def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        try:
            async for raw in self._ws:
                event = self._decode(raw)
                if event is None:
                    continue
                if event.type == "message.created":
                    if event.data.get("conversation_id") != self._conversation_id:
                        continue
                    message = event.data.get("message")
                    if isinstance(message, dict):
                        yield message
                elif event.type == "error":
                    logger.warning("Server error on live channel: %s", event.data.get("detail"))
        except ConnectionClosedOK as exc:
            self.close_code = _close_code(exc)
        except ConnectionClosedError as exc:
            self.close_code = _close_code(exc)
            raise ChannelError(str(exc), close_code=self.close_code) from exc
        else:
            self.close_code = self._ws.close_code

    async def close(self) -> None:
        await self._ws.close()

    @staticmethod
    def _decode(raw: str | bytes) -> WsOutbound | None:
        try:
            return WsOutbound.model_validate_json(raw)
        except PydanticValidationError:
            logger.warning("Ignoring malformed live frame")
            return None


class WebSocketLiveTransport:
    def __init__(self, ws_url: str, token: str, *, open_timeout: float = 10.0) -> None:
        self._url = f"{ws_url}?{urlencode({'token': token})}"
        self._open_timeout = open_timeout

    async def connect(self, conversation_id: str) -> WebSocketLiveConnection:
        try:
            ws = await connect(self._url, open_timeout=self._open_timeout)
        except (OSError, TimeoutError, InvalidHandshake, InvalidURI) as exc:
            raise ChannelError(f"Could not connect: {exc}") from exc

        subscribe = WsInbound(type="subscribe", data={"conversation_id": conversation_id})
        try:
            await ws.send(subscribe.model_dump_json())
        except ConnectionClosed as exc:
            raise ChannelError(str(exc), close_code=_close_code(exc)) from exc
        logger.debug("Subscribed to %s", conversation_id)
        return WebSocketLiveConnection(ws, conversation_id)

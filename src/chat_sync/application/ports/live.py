from __future__ import annotations

from typing import Any, AsyncIterator, Protocol


class LiveConnection(Protocol):
    """An open push subscription for one conversation."""

    close_code: int | None

    def __aiter__(self) -> AsyncIterator[dict[str, Any]]:
        """Yield message payloads until the peer closes; raise ChannelError on failure."""
        ...

    async def close(self) -> None: ...


class LiveTransport(Protocol):
    async def connect(self, conversation_id: str) -> LiveConnection:
        """Open and subscribe. Raises ChannelError if the connection fails."""
        ...

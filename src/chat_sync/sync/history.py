from __future__ import annotations

import logging

from chat_sync.application.dto.message import MessagePage
from chat_sync.application.ports.chat_api import MessageGateway
from chat_sync.sync.store import MessageStore, newest_timestamp, validate_batch

logger = logging.getLogger(__name__)


class HistoryLoader:
    """One-shot fetch of the newest page; seeds the store and the watermark."""

    def __init__(self, gateway: MessageGateway, store: MessageStore, *, limit: int = 50) -> None:
        self._gateway = gateway
        self._store = store
        self._limit = limit

    async def load(self, conversation_id: str, limit: int | None = None) -> MessagePage:
        """Fetch the first page. RequestError propagates; the store is left as it was."""
        page = await self._gateway.list_messages(conversation_id, limit=limit or self._limit)
        if self._store.conversation_id != conversation_id:
            logger.debug("Discarding history for %s: conversation switched", conversation_id)
            return page

        messages = validate_batch(page.items, conversation_id)
        self._store.reconcile(messages)
        self._store.advance_watermark(newest_timestamp(messages))
        self._store.mark_history_loaded()
        logger.info(
            "Loaded %d message(s) for %s (watermark=%s)",
            len(messages), conversation_id, self._store.watermark,
        )
        return page

    async def load_older(self, conversation_id: str, next_token: str) -> MessagePage:
        """Fetch an older page ("load more"). Older items sort into place on read."""
        page = await self._gateway.list_messages(
            conversation_id, limit=self._limit, next_token=next_token,
        )
        if self._store.conversation_id == conversation_id:
            self._store.reconcile(page.items)
        return page

"""Wire a ConversationSession to the real HTTP, storage and WebSocket adapters."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx

from chat_sync.application.exceptions import RequestError
from chat_sync.config import Settings, settings as default_settings
from chat_sync.infrastructure.audio.buffered import BufferedAudioSource
from chat_sync.infrastructure.auth.claims import principal_from_token
from chat_sync.infrastructure.http.api_client import HttpChatApi
from chat_sync.infrastructure.http.storage import HttpStorageGateway
from chat_sync.infrastructure.ws.transport import WebSocketLiveTransport
from chat_sync.sync.live import RetryPolicy, StateListener
from chat_sync.sync.profile import ensure_profile
from chat_sync.sync.recorder import VoiceRecorder
from chat_sync.sync.session import ConversationSession

logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_session(
    token: str,
    *,
    settings: Settings | None = None,
    preferred_conversation_id: str | None = None,
    on_channel_state: StateListener | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[ConversationSession]:
    """Yield a ready session; every adapter is closed on exit.

    A failed profile sync is logged and does not prevent the session from
    opening. A failed first history load does propagate.
    """
    cfg = settings or default_settings
    principal = principal_from_token(token)

    api = HttpChatApi(
        cfg.API_BASE_URL, token, timeout=cfg.HTTP_TIMEOUT, transport=http_transport,
    )
    storage = HttpStorageGateway(
        cfg.storage_url,
        token,
        chunk_size=cfg.UPLOAD_CHUNK_SIZE,
        timeout=cfg.HTTP_TIMEOUT,
        transport=http_transport,
    )
    session = ConversationSession(
        messages=api,
        conversations=api,
        transport=WebSocketLiveTransport(cfg.ws_url, token),
        user_id=principal.user_id,
        storage=storage,
        recorder=VoiceRecorder(BufferedAudioSource),
        history_limit=cfg.HISTORY_PAGE_SIZE,
        poll_interval=cfg.POLL_INTERVAL,
        poll_limit=cfg.POLL_LIMIT,
        poll_after_send_delay=cfg.POLL_AFTER_SEND_DELAY,
        retry=RetryPolicy(
            max_attempts=cfg.WS_RETRY_ATTEMPTS,
            base_delay=cfg.WS_RETRY_BASE_DELAY,
            max_delay=cfg.WS_RETRY_MAX_DELAY,
            jitter=cfg.WS_RETRY_JITTER,
        ),
        on_channel_state=on_channel_state,
    )
    try:
        try:
            await ensure_profile(principal, api)
        except RequestError as exc:
            logger.error("Profile sync failed for %s: %s", principal.user_id, exc.detail)
        await session.open(preferred_conversation_id)
        yield session
    finally:
        await session.close()
        await storage.aclose()
        await api.aclose()

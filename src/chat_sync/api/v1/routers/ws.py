from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError

from chat_sync.api.deps import get_uow, get_verifier
from chat_sync.application.dto.principal import Principal
from chat_sync.application.exceptions import ForbiddenError, NotFoundError
from chat_sync.application.uow import UnitOfWork
from chat_sync.config import settings
from chat_sync.infrastructure.ws.manager import ConnectionManager
from chat_sync.infrastructure.ws.protocol import WsInbound, WsOutbound
from chat_sync.services import conversation_service

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])

manager = ConnectionManager()


def get_manager() -> ConnectionManager:
    return manager


async def _authenticate(token: str) -> Principal | None:
    try:
        verifier = get_verifier()
        return await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws/chat")
async def ws_chat(
    websocket: WebSocket,
    token: str = Query(...),
) -> None:
    principal = await _authenticate(token)
    if principal is None:
        await websocket.close(code=4001, reason="Authentication failed")
        return

    pkey = principal.principal_key
    await manager.connect(websocket, pkey)

    heartbeat_task = asyncio.create_task(
        _heartbeat(websocket), name=f"ws-heartbeat-{pkey}",
    )
    try:
        await _read_loop(websocket, principal)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WS error for %s", pkey)
    finally:
        heartbeat_task.cancel()
        manager.disconnect(websocket, pkey)


async def _send(ws: WebSocket, event_type: str, data: dict | None = None) -> None:
    await ws.send_text(WsOutbound(type=event_type, data=data or {}).model_dump_json())


async def _heartbeat(ws: WebSocket) -> None:
    interval = settings.WS_HEARTBEAT_SECONDS
    try:
        while True:
            await asyncio.sleep(interval)
            await _send(ws, "pong")
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("Heartbeat stopped", exc_info=True)


async def _read_loop(ws: WebSocket, principal: Principal) -> None:
    while True:
        raw = await ws.receive_text()
        try:
            msg = WsInbound.model_validate_json(raw)
        except PydanticValidationError:
            await _send(ws, "error", {"code": "invalid_payload"})
            continue

        if msg.type == "ping":
            await _send(ws, "pong")

        elif msg.type == "subscribe":
            await _handle_subscribe(ws, principal, msg.data)

        elif msg.type == "unsubscribe":
            conversation_id = msg.data.get("conversation_id")
            if conversation_id:
                manager.unsubscribe(ws, str(conversation_id))

        else:
            await _send(ws, "error", {"code": "unknown_type", "type": msg.type})


@asynccontextmanager
async def _open_uow(ws: WebSocket) -> AsyncIterator[UnitOfWork]:
    """Run the ``get_uow`` dependency (or its override) outside a request scope."""
    provider = ws.app.dependency_overrides.get(get_uow, get_uow)
    gen = provider()
    try:
        yield await anext(gen)
    finally:
        await gen.aclose()


async def _handle_subscribe(ws: WebSocket, principal: Principal, data: dict) -> None:
    conversation_id = data.get("conversation_id")
    if not conversation_id:
        await _send(ws, "error", {"code": "invalid_data", "detail": "conversation_id is required"})
        return
    conversation_id = str(conversation_id)

    try:
        async with _open_uow(ws) as uow:
            await conversation_service.get_conversation(conversation_id, principal, uow)
    except (NotFoundError, ForbiddenError) as exc:
        await _send(ws, "error", {"code": "forbidden", "detail": exc.detail})
        return

    manager.subscribe(ws, conversation_id)
    await _send(ws, "subscribed", {"conversation_id": conversation_id})

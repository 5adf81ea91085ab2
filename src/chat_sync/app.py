from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import redis.asyncio as aioredis
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chat_sync.api.middleware.correlation_id import CorrelationIdMiddleware
from chat_sync.api.v1.routers import conversations, health, messages, profiles, ws
from chat_sync.application.exceptions import (
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from chat_sync.config import settings
from chat_sync.infrastructure.bus.local import LocalPublisher
from chat_sync.infrastructure.bus.redis_pubsub import RedisPubSubPublisher, RedisPubSubSubscriber

logger = logging.getLogger(__name__)


async def _on_pubsub_event(event_type: str, data: dict[str, Any]) -> None:
    """Deliver a message event to the sockets subscribed on this instance."""
    conversation_id = data.get("conversation_id")
    if not conversation_id:
        return
    await ws.get_manager().broadcast_to_conversation(
        str(conversation_id),
        event_type,
        {"conversation_id": conversation_id, "message": data.get("message")},
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    if not settings.REDIS_URL:
        app.state.redis = None
        app.state.publisher = LocalPublisher(_on_pubsub_event)
        logger.warning("REDIS_URL is empty: messages fan out to this process only")
        yield
        return

    app.state.redis = aioredis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
    )
    app.state.publisher = RedisPubSubPublisher(app.state.redis)
    logger.info("Redis connection pool created")

    subscriber = RedisPubSubSubscriber(
        app.state.redis,
        settings.REDIS_PUBSUB_CHANNEL,
        _on_pubsub_event,
        accepts=lambda conversation_id: ws.get_manager().subscriber_count(conversation_id) > 0,
    )
    await subscriber.start()
    app.state.pubsub_subscriber = subscriber

    try:
        yield
    finally:
        await subscriber.stop()
        await app.state.redis.aclose()
        logger.info("Redis connection pool closed")


def create_app() -> FastAPI:
    app = FastAPI(
        title="LeafFlow Chat Sync",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(conversations.router)
    app.include_router(messages.router)
    app.include_router(profiles.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(_req: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.detail})

    @app.exception_handler(ForbiddenError)
    async def _forbidden(_req: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.detail})

    @app.exception_handler(ValidationError)
    async def _validation(_req: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": exc.detail})

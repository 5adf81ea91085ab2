from __future__ import annotations

from fastapi import APIRouter, Query, Response

from chat_sync.api.deps import CurrentPrincipal, PublisherDep, UoWDep
from chat_sync.api.v1.schemas.message import MessagePageResponse, MessageResponse, SendMessageRequest
from chat_sync.application.dto.message import SendMessageDTO, message_to_payload
from chat_sync.config import settings
from chat_sync.services import message_service

router = APIRouter(prefix="/api/v1/chat/conversations", tags=["messages"])


@router.get("/{conversation_id}/messages", response_model=MessagePageResponse)
async def list_messages(
    conversation_id: str,
    principal: CurrentPrincipal,
    uow: UoWDep,
    next_token: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
) -> MessagePageResponse:
    page = await message_service.list_messages(
        conversation_id, principal, next_token, limit, uow,
    )
    return MessagePageResponse.model_validate({"items": page.items, "next_token": page.next_token})


@router.post("/{conversation_id}/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    conversation_id: str,
    body: SendMessageRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
    publisher: PublisherDep,
    response: Response,
) -> MessageResponse:
    msg, created = await message_service.send_message(
        conversation_id,
        principal,
        SendMessageDTO(
            msg_id=body.msg_id,
            type=body.type,
            body=body.body,
            media_key=body.media_key,
        ),
        uow,
        publisher,
        settings.REDIS_PUBSUB_CHANNEL,
    )
    if not created:
        response.status_code = 200
    return MessageResponse.model_validate(message_to_payload(msg))

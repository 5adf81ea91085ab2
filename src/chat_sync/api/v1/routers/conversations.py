from __future__ import annotations

from fastapi import APIRouter, Query

from chat_sync.api.deps import CurrentPrincipal, UoWDep
from chat_sync.api.v1.schemas.conversation import ConversationResponse, CreateConversationRequest
from chat_sync.application.dto.conversation import CreateConversationDTO
from chat_sync.domain.entities.conversation import Conversation
from chat_sync.services import conversation_service

router = APIRouter(prefix="/api/v1/chat/conversations", tags=["conversations"])


def _to_response(conv: Conversation) -> ConversationResponse:
    return ConversationResponse(
        id=conv.id,
        title=conv.title,
        members=list(conv.members),
        is_group=conv.is_group,
        last_message_at=conv.last_message_at,
        created_at=conv.created_at,
        updated_at=conv.updated_at,
    )


@router.get("", response_model=list[ConversationResponse])
async def list_conversations(
    principal: CurrentPrincipal,
    uow: UoWDep,
    cursor: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
) -> list[ConversationResponse]:
    convs = await conversation_service.list_user_conversations(
        principal, cursor, limit, uow,
    )
    return [_to_response(c) for c in convs]


@router.post("", response_model=ConversationResponse, status_code=201)
async def create_conversation(
    body: CreateConversationRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.create_conversation(
        principal, CreateConversationDTO(member_ids=body.member_ids, title=body.title), uow,
    )
    return _to_response(conv)


@router.get("/{conversation_id}", response_model=ConversationResponse)
async def get_conversation(
    conversation_id: str,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ConversationResponse:
    conv = await conversation_service.get_conversation(conversation_id, principal, uow)
    return _to_response(conv)

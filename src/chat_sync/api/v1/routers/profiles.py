from __future__ import annotations

from fastapi import APIRouter

from chat_sync.api.deps import CurrentPrincipal, UoWDep
from chat_sync.api.v1.schemas.profile import ProfileResponse, PutProfileRequest
from chat_sync.application.dto.profile import CreateProfileDTO
from chat_sync.services import profile_service

router = APIRouter(prefix="/api/v1/chat/profiles", tags=["profiles"])


@router.put("/me", response_model=ProfileResponse)
async def put_my_profile(
    body: PutProfileRequest,
    principal: CurrentPrincipal,
    uow: UoWDep,
) -> ProfileResponse:
    profile = await profile_service.create_profile(
        principal, CreateProfileDTO(**body.model_dump()), uow,
    )
    return ProfileResponse.model_validate(profile, from_attributes=True)


@router.get("/{user_id}", response_model=ProfileResponse)
async def get_profile(
    user_id: str,
    _principal: CurrentPrincipal,
    uow: UoWDep,
) -> ProfileResponse:
    profile = await profile_service.get_profile(user_id, uow)
    return ProfileResponse.model_validate(profile, from_attributes=True)

from __future__ import annotations

import logging
from datetime import datetime, timezone

from chat_sync.application.dto.principal import Principal
from chat_sync.application.dto.profile import DEFAULT_AVATAR, DEFAULT_STATUS, CreateProfileDTO
from chat_sync.application.exceptions import ForbiddenError, NotFoundError, ValidationError
from chat_sync.application.uow import UnitOfWork
from chat_sync.domain.entities.profile import Profile

logger = logging.getLogger(__name__)


async def create_profile(
    principal: Principal,
    dto: CreateProfileDTO,
    uow: UnitOfWork,
) -> Profile:
    """Create or overwrite the caller's profile.

    There is no existence check: a repeated call replaces the stored profile,
    timestamps included.
    """
    if not dto.id or not dto.username or not dto.email:
        raise ValidationError("Missing required fields: id, username, email")
    if dto.id != principal.user_id:
        raise ForbiddenError("Cannot write another user's profile")

    now = datetime.now(timezone.utc)
    profile = Profile(
        id=dto.id,
        username=dto.username,
        email=dto.email,
        name=dto.name or dto.username,
        avatar=dto.avatar or DEFAULT_AVATAR,
        status=dto.status or DEFAULT_STATUS,
        created_at=now,
        updated_at=now,
    )
    profile = await uow.profiles_w.put(profile)
    await uow.commit()
    logger.info("Profile written for %s", profile.id)
    return profile


async def get_profile(user_id: str, uow: UnitOfWork) -> Profile:
    profile = await uow.profiles.get_by_id(user_id)
    if profile is None:
        raise NotFoundError("Profile not found")
    return profile

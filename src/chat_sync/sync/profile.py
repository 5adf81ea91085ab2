from __future__ import annotations

import logging
from typing import Any

from chat_sync.application.dto.principal import Principal
from chat_sync.application.dto.profile import DEFAULT_AVATAR, DEFAULT_STATUS
from chat_sync.application.ports.chat_api import ProfileGateway

logger = logging.getLogger(__name__)


def profile_input(principal: Principal) -> dict[str, Any]:
    """Build the create-profile input from token claims."""
    username = (
        principal.username
        or (principal.email.split("@")[0] if principal.email else None)
        or principal.user_id
    )
    return {
        "id": principal.user_id,
        "username": username,
        "email": principal.email or "",
        "name": principal.name or principal.username or "User",
        "avatar": DEFAULT_AVATAR,
        "status": DEFAULT_STATUS,
    }


async def ensure_profile(principal: Principal, gateway: ProfileGateway) -> dict[str, Any]:
    """Create or refresh the caller's profile. Safe to repeat: the backend overwrites."""
    data = profile_input(principal)
    profile = await gateway.create_profile(data)
    logger.info("Profile synced for %s", principal.user_id)
    return profile

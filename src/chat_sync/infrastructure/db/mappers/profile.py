from __future__ import annotations

from chat_sync.domain.entities.profile import Profile
from chat_sync.infrastructure.db.models.profile import ProfileModel


def model_to_entity(model: ProfileModel) -> Profile:
    return Profile(
        id=model.id,
        username=model.username,
        email=model.email,
        name=model.name,
        avatar=model.avatar,
        status=model.status,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )

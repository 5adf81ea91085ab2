from __future__ import annotations

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from chat_sync.domain.entities.profile import Profile
from chat_sync.infrastructure.db.mappers import profile as mapper
from chat_sync.infrastructure.db.models.profile import ProfileModel


class ProfileReaderRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, user_id: str) -> Profile | None:
        result = await self._session.get(ProfileModel, user_id)
        return mapper.model_to_entity(result) if result else None


class ProfileWriterRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def put(self, profile: Profile) -> Profile:
        values = {
            "id": profile.id,
            "username": profile.username,
            "email": profile.email,
            "name": profile.name,
            "avatar": profile.avatar,
            "status": profile.status,
            "created_at": profile.created_at,
            "updated_at": profile.updated_at,
        }
        stmt = pg_insert(ProfileModel).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ProfileModel.id],
            set_={k: stmt.excluded[k] for k in values if k != "id"},
        ).returning(ProfileModel)
        result = await self._session.execute(stmt)
        return mapper.model_to_entity(result.scalar_one())

from __future__ import annotations

from typing import Protocol

from chat_sync.domain.entities.profile import Profile


class ProfileReader(Protocol):
    async def get_by_id(self, user_id: str) -> Profile | None: ...


class ProfileWriter(Protocol):
    async def put(self, profile: Profile) -> Profile:
        """Unconditional put: an existing profile with the same id is overwritten."""
        ...

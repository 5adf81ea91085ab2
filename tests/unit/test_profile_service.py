from __future__ import annotations

import pytest

from chat_sync.application.dto.profile import CreateProfileDTO
from chat_sync.application.exceptions import ForbiddenError, NotFoundError, ValidationError
from chat_sync.services import profile_service
from tests.conftest import FakeUoW


@pytest.mark.asyncio
async def test_create_profile_applies_defaults(user_principal):
    uow = FakeUoW()

    profile = await profile_service.create_profile(
        user_principal, CreateProfileDTO(id="alice", username="alice", email="alice@example.com"), uow,
    )

    assert profile.name == "alice"
    assert profile.avatar == "👤"
    assert profile.status == "online"
    assert profile.created_at == profile.updated_at
    assert uow._committed is True


@pytest.mark.asyncio
async def test_create_profile_overwrites_existing(user_principal):
    uow = FakeUoW()
    dto = CreateProfileDTO(id="alice", username="alice", email="alice@example.com")
    first = await profile_service.create_profile(user_principal, dto, uow)

    second = await profile_service.create_profile(
        user_principal,
        CreateProfileDTO(id="alice", username="alice2", email="alice@example.com", status="away"),
        uow,
    )

    assert (await profile_service.get_profile("alice", uow)) == second
    assert second.username == "alice2"
    assert second.status == "away"
    assert second.created_at >= first.created_at


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "dto",
    [
        CreateProfileDTO(id="alice", username="", email="alice@example.com"),
        CreateProfileDTO(id="alice", username="alice", email=""),
        CreateProfileDTO(id="", username="alice", email="alice@example.com"),
    ],
)
async def test_create_profile_requires_fields(user_principal, dto):
    with pytest.raises(ValidationError):
        await profile_service.create_profile(user_principal, dto, FakeUoW())


@pytest.mark.asyncio
async def test_cannot_write_someone_elses_profile(user_principal):
    with pytest.raises(ForbiddenError):
        await profile_service.create_profile(
            user_principal, CreateProfileDTO(id="bob", username="bob", email="bob@example.com"), FakeUoW(),
        )


@pytest.mark.asyncio
async def test_get_missing_profile():
    with pytest.raises(NotFoundError):
        await profile_service.get_profile("ghost", FakeUoW())

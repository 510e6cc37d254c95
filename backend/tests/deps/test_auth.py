from datetime import timedelta
from typing import Any

import pytest
from fastapi import HTTPException
from salon_reserve.config import Settings, get_settings
from salon_reserve.deps import get_current_actor, require_admin, require_super_admin
from salon_reserve.domain.actors import Actor
from salon_reserve.models import UserRole
from salon_reserve.utils.auth import create_access_token
from sqlalchemy.exc import ProgrammingError


class DummySession:
    def __init__(self, role: str | None | Exception) -> None:
        self.role = role
        self.rolled_back = False

    async def __aenter__(self) -> "DummySession":  # pragma: no cover
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:  # pragma: no cover
        return False

    async def scalar(self, *args: Any, **kwargs: Any) -> str | None:
        if isinstance(self.role, Exception):
            raise self.role
        return self.role

    async def rollback(self) -> None:
        self.rolled_back = True


@pytest.fixture(autouse=True)
def _set_auth_secret(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_SECRET", "testsecret")
    get_settings.cache_clear()


def _token(user_id: str = "user-123", **kwargs: Any) -> str:
    settings = Settings(auth_secret="testsecret")
    return create_access_token(
        user_id=user_id, secret=settings.auth_secret, algorithm=settings.auth_algorithm, **kwargs
    )


@pytest.mark.asyncio
async def test_valid_token_resolves_actor_with_role_from_database() -> None:
    session = DummySession(role="ADMIN")
    actor = await get_current_actor(authorization=f"Bearer {_token()}", session=session)  # type: ignore[arg-type]
    assert actor == Actor(user_id="user-123", role=UserRole.ADMIN)
    assert actor.is_admin is True
    assert session.rolled_back is True


@pytest.mark.asyncio
async def test_rejects_missing_header() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await get_current_actor(authorization=None, session=DummySession(role="CUSTOMER"))  # type: ignore[arg-type]
    assert excinfo.value.status_code == 401
    assert excinfo.value.headers == {"WWW-Authenticate": "Bearer"}


@pytest.mark.asyncio
async def test_rejects_non_bearer_scheme() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await get_current_actor(
            authorization=f"Basic {_token()}", session=DummySession(role="CUSTOMER")  # type: ignore[arg-type]
        )
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_rejects_expired_token() -> None:
    token = _token(expires_delta=timedelta(seconds=-1))
    with pytest.raises(HTTPException) as excinfo:
        await get_current_actor(authorization=f"Bearer {token}", session=DummySession(role="CUSTOMER"))  # type: ignore[arg-type]
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_rejects_token_signed_with_other_secret() -> None:
    token = create_access_token(user_id="user-1", secret="other")
    with pytest.raises(HTTPException) as excinfo:
        await get_current_actor(authorization=f"Bearer {token}", session=DummySession(role="CUSTOMER"))  # type: ignore[arg-type]
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_rejects_when_user_missing() -> None:
    with pytest.raises(HTTPException) as excinfo:
        await get_current_actor(authorization=f"Bearer {_token()}", session=DummySession(role=None))  # type: ignore[arg-type]
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_handles_missing_users_table() -> None:
    session = DummySession(role=ProgrammingError("missing", None, Exception("cause")))
    with pytest.raises(HTTPException) as excinfo:
        await get_current_actor(authorization=f"Bearer {_token()}", session=session)  # type: ignore[arg-type]
    assert excinfo.value.status_code == 500
    assert session.rolled_back is True


@pytest.mark.asyncio
async def test_role_guards() -> None:
    customer = Actor(user_id="u", role=UserRole.CUSTOMER)
    admin = Actor(user_id="a", role=UserRole.ADMIN)
    owner = Actor(user_id="s", role=UserRole.SUPER_ADMIN)

    with pytest.raises(HTTPException) as excinfo:
        await require_admin(actor=customer)
    assert excinfo.value.status_code == 403
    assert await require_admin(actor=admin) is admin
    assert await require_admin(actor=owner) is owner

    with pytest.raises(HTTPException):
        await require_super_admin(actor=admin)
    assert await require_super_admin(actor=owner) is owner


@pytest.mark.asyncio
async def test_rejects_token_issued_for_another_tenant() -> None:
    token = _token(tenant_id="other-salon")
    with pytest.raises(HTTPException) as excinfo:
        await get_current_actor(authorization=f"Bearer {token}", session=DummySession(role="ADMIN"))  # type: ignore[arg-type]
    assert excinfo.value.status_code == 401


@pytest.mark.asyncio
async def test_accepts_token_bound_to_configured_tenant() -> None:
    token = _token(tenant_id="demo-salon")
    actor = await get_current_actor(authorization=f"Bearer {token}", session=DummySession(role="CUSTOMER"))  # type: ignore[arg-type]
    assert actor.role == UserRole.CUSTOMER

import logging
from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session
from .domain.actors import Actor
from .models import User, UserRole
from .utils.auth import decode_access_token

logger = logging.getLogger(__name__)

_BEARER = {"WWW-Authenticate": "Bearer"}


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"error": message, "code": "UNAUTHORIZED"},
        headers=_BEARER,
    )


async def get_current_actor(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
) -> Actor:
    """Resolve the bearer token to a user; the role always comes from the users table."""
    if authorization is None:
        raise _unauthorized("認証が必要です")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise _unauthorized("認証が必要です")

    settings = get_settings()
    try:
        claims = decode_access_token(token, secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
    except ValueError as exc:
        raise _unauthorized("認証トークンが無効です") from exc
    if claims.tenant_id is not None and claims.tenant_id != settings.tenant_id:
        raise _unauthorized("この店舗のトークンではありません")
    user_id = claims.user_id

    try:
        role = await session.scalar(select(User.role).where(User.id == user_id))
    except ProgrammingError as exc:
        logger.error("users table is not available: %s", exc)
        await session.rollback()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "ユーザー情報を取得できません", "code": "INTERNAL_ERROR"},
        ) from exc
    # End the autobegun read so the route can open its own unit of work on this session.
    await session.rollback()
    if role is None:
        raise _unauthorized("ユーザーが見つかりません")
    return Actor(user_id=user_id, role=UserRole(role))


async def require_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "管理者権限が必要です", "code": "FORBIDDEN"},
        )
    return actor


async def require_super_admin(actor: Actor = Depends(get_current_actor)) -> Actor:
    if not actor.is_super_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"error": "スーパー管理者権限が必要です", "code": "FORBIDDEN"},
        )
    return actor


def get_tenant_id() -> str:
    return get_settings().tenant_id

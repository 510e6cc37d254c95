import logging
from typing import Dict

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session, get_tenant_id, require_super_admin
from ..domain.actors import Actor
from ..domain.errors import DomainError
from ..infrastructure.repositories import build_repositories
from ..schemas import Envelope
from ..usecases import store as store_usecase
from .errors import http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["feature-flags"])


@router.get("/feature-flags", response_model=Envelope[Dict[str, bool]])
async def get_feature_flags(
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[Dict[str, bool]]:
    flags = await store_usecase.get_feature_flags(build_repositories(session), tenant_id=tenant_id)
    return Envelope(data=flags.to_mapping())


@router.patch("/super-admin/feature-flags", response_model=Envelope[Dict[str, bool]])
async def update_feature_flags(
    values: Dict[str, bool] = Body(...),
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(require_super_admin),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[Dict[str, bool]]:
    try:
        async with session.begin():
            flags = await store_usecase.update_feature_flags(
                build_repositories(session), tenant_id=tenant_id, values=values
            )
    except DomainError as exc:
        raise http_error(exc) from exc
    logger.info("feature flags updated by %s: %s", actor.user_id, values)
    return Envelope(data=flags.to_mapping())

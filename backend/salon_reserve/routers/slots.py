from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session, get_tenant_id
from ..domain.errors import DomainError
from ..infrastructure.repositories import build_repositories
from ..schemas import AvailableSlot, Envelope
from ..usecases import slots as slot_usecase
from .errors import http_error

router = APIRouter(prefix="/api", tags=["slots"])


@router.get("/available-slots", response_model=Envelope[List[AvailableSlot]])
async def list_available_slots(
    day: date = Query(..., alias="date", description="Store-local date (YYYY-MM-DD)"),
    menu_id: UUID = Query(..., alias="menuId"),
    staff_id: Optional[UUID] = Query(default=None, alias="staffId"),
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[List[AvailableSlot]]:
    try:
        rows = await slot_usecase.list_available_slots(
            build_repositories(session),
            tenant_id=tenant_id,
            day=day,
            menu_id=str(menu_id),
            staff_id=str(staff_id) if staff_id else None,
        )
    except DomainError as exc:
        raise http_error(exc) from exc
    return Envelope(data=[AvailableSlot(**row) for row in rows])

import logging
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session, get_tenant_id, require_admin
from ..domain.errors import DomainError
from ..infrastructure.repositories import build_repositories
from ..models import ReservationStatus
from ..schemas import (
    BlockedTimeCreate,
    BlockedTimeRead,
    BlockedTimeUpdate,
    Envelope,
    MenuCreate,
    MenuRead,
    MenuUpdate,
    ReservationRead,
    ShiftsReplace,
    StaffCreate,
    StaffRead,
    StaffUpdate,
    StoreSettingsRead,
    StoreSettingsUpdate,
    VacationCreate,
)
from ..usecases import blocked_times as blocked_usecase
from ..usecases import catalog as catalog_usecase
from ..usecases import reservations as reservation_usecase
from ..usecases import store as store_usecase
from ..utils.time import to_jst_naive
from .errors import http_error, integrity_conflict, validation_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _local(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    try:
        return to_jst_naive(dt)
    except ValueError as exc:
        raise validation_error("タイムゾーン付きの日時を指定してください") from exc


@router.get("/reservations", response_model=Envelope[List[ReservationRead]])
async def list_reservations(
    date_from: Optional[date] = Query(default=None, alias="dateFrom"),
    date_to: Optional[date] = Query(default=None, alias="dateTo"),
    status_filter: Optional[ReservationStatus] = Query(default=None, alias="status"),
    staff_id: Optional[UUID] = Query(default=None, alias="staffId"),
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[List[ReservationRead]]:
    if date_from is not None and date_to is not None and date_to < date_from:
        raise validation_error("終了日は開始日以降を指定してください")
    rows = await reservation_usecase.list_reservations(
        build_repositories(session),
        tenant_id=tenant_id,
        date_from=date_from,
        date_to=date_to,
        status=status_filter,
        staff_id=str(staff_id) if staff_id else None,
    )
    return Envelope(data=[ReservationRead.from_db(row) for row in rows])


@router.get("/blocked-times", response_model=Envelope[List[BlockedTimeRead]])
async def list_blocked_times(
    start: datetime = Query(..., description="Timezone-aware ISO 8601"),
    end: datetime = Query(..., description="Timezone-aware ISO 8601"),
    staff_id: Optional[UUID] = Query(default=None, alias="staffId"),
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[List[BlockedTimeRead]]:
    try:
        rows = await blocked_usecase.list_blocked_times(
            build_repositories(session),
            tenant_id=tenant_id,
            start=_local(start),
            end=_local(end),
            staff_id=str(staff_id) if staff_id else None,
        )
    except DomainError as exc:
        raise http_error(exc) from exc
    return Envelope(data=[BlockedTimeRead.model_validate(row) for row in rows])


@router.post("/blocked-times", response_model=Envelope[BlockedTimeRead], status_code=status.HTTP_201_CREATED)
async def create_blocked_time(
    payload: BlockedTimeCreate,
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[BlockedTimeRead]:
    try:
        async with session.begin():
            blocked = await blocked_usecase.create_blocked_time(
                build_repositories(session),
                tenant_id=tenant_id,
                start_datetime=_local(payload.start_datetime),
                end_datetime=_local(payload.end_datetime),
                reason=payload.reason,
                description=payload.description,
                staff_id=str(payload.staff_id) if payload.staff_id else None,
            )
    except DomainError as exc:
        raise http_error(exc) from exc
    return Envelope(data=BlockedTimeRead.model_validate(blocked))


@router.patch("/blocked-times/{blocked_time_id}", response_model=Envelope[BlockedTimeRead])
async def update_blocked_time(
    payload: BlockedTimeUpdate,
    blocked_time_id: UUID = Path(...),
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[BlockedTimeRead]:
    try:
        async with session.begin():
            blocked = await blocked_usecase.update_blocked_time(
                build_repositories(session),
                tenant_id=tenant_id,
                blocked_time_id=str(blocked_time_id),
                start_datetime=_local(payload.start_datetime),
                end_datetime=_local(payload.end_datetime),
                reason=payload.reason,
                description=payload.description,
            )
    except DomainError as exc:
        raise http_error(exc) from exc
    return Envelope(data=BlockedTimeRead.model_validate(blocked))


@router.delete("/blocked-times/{blocked_time_id}", response_model=Envelope[None])
async def delete_blocked_time(
    blocked_time_id: UUID = Path(...),
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[None]:
    try:
        async with session.begin():
            await blocked_usecase.delete_blocked_time(
                build_repositories(session), tenant_id=tenant_id, blocked_time_id=str(blocked_time_id)
            )
    except DomainError as exc:
        raise http_error(exc) from exc
    return Envelope(data=None)


@router.get("/menus", response_model=Envelope[List[MenuRead]])
async def list_menus(
    include_inactive: bool = Query(default=True, alias="includeInactive"),
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[List[MenuRead]]:
    rows = await catalog_usecase.list_menus(
        build_repositories(session), tenant_id=tenant_id, include_inactive=include_inactive
    )
    return Envelope(data=[MenuRead.model_validate(row) for row in rows])


@router.post("/menus", response_model=Envelope[MenuRead], status_code=status.HTTP_201_CREATED)
async def create_menu(
    payload: MenuCreate,
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[MenuRead]:
    try:
        async with session.begin():
            menu = await catalog_usecase.create_menu(
                build_repositories(session), tenant_id=tenant_id, values=payload.model_dump()
            )
    except DomainError as exc:
        raise http_error(exc) from exc
    return Envelope(data=MenuRead.model_validate(menu))


@router.patch("/menus/{menu_id}", response_model=Envelope[MenuRead])
async def update_menu(
    payload: MenuUpdate,
    menu_id: UUID = Path(...),
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[MenuRead]:
    try:
        async with session.begin():
            menu = await catalog_usecase.update_menu(
                build_repositories(session),
                tenant_id=tenant_id,
                menu_id=str(menu_id),
                values=payload.model_dump(exclude_unset=True),
            )
    except DomainError as exc:
        raise http_error(exc) from exc
    return Envelope(data=MenuRead.model_validate(menu))


@router.delete("/menus/{menu_id}", response_model=Envelope[None])
async def delete_menu(
    menu_id: UUID = Path(...),
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[None]:
    try:
        async with session.begin():
            await catalog_usecase.delete_menu(build_repositories(session), tenant_id=tenant_id, menu_id=str(menu_id))
    except DomainError as exc:
        raise http_error(exc) from exc
    except IntegrityError as exc:
        raise integrity_conflict(exc) from exc
    return Envelope(data=None)


@router.get("/staff", response_model=Envelope[List[StaffRead]])
async def list_staff(
    include_inactive: bool = Query(default=True, alias="includeInactive"),
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[List[StaffRead]]:
    rows = await catalog_usecase.list_staff(
        build_repositories(session), tenant_id=tenant_id, include_inactive=include_inactive
    )
    return Envelope(data=[StaffRead.model_validate(row) for row in rows])


@router.post("/staff", response_model=Envelope[StaffRead], status_code=status.HTTP_201_CREATED)
async def create_staff(
    payload: StaffCreate,
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[StaffRead]:
    async with session.begin():
        staff = await catalog_usecase.create_staff(
            build_repositories(session), tenant_id=tenant_id, values=payload.model_dump()
        )
    return Envelope(data=StaffRead.model_validate(staff))


@router.patch("/staff/{staff_id}", response_model=Envelope[StaffRead])
async def update_staff(
    payload: StaffUpdate,
    staff_id: UUID = Path(...),
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[StaffRead]:
    try:
        async with session.begin():
            staff = await catalog_usecase.update_staff(
                build_repositories(session),
                tenant_id=tenant_id,
                staff_id=str(staff_id),
                values=payload.model_dump(exclude_unset=True),
            )
    except DomainError as exc:
        raise http_error(exc) from exc
    return Envelope(data=StaffRead.model_validate(staff))


@router.put("/staff/{staff_id}/shifts", response_model=Envelope[StaffRead])
async def replace_shifts(
    payload: ShiftsReplace,
    staff_id: UUID = Path(...),
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[StaffRead]:
    try:
        async with session.begin():
            staff = await catalog_usecase.replace_shifts(
                build_repositories(session),
                tenant_id=tenant_id,
                staff_id=str(staff_id),
                shifts=[(item.day_of_week, item.start_time, item.end_time) for item in payload.shifts],
            )
    except DomainError as exc:
        raise http_error(exc) from exc
    return Envelope(data=StaffRead.model_validate(staff))


@router.post("/staff/{staff_id}/vacations", response_model=Envelope[StaffRead], status_code=status.HTTP_201_CREATED)
async def add_vacation(
    payload: VacationCreate,
    staff_id: UUID = Path(...),
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[StaffRead]:
    try:
        async with session.begin():
            staff = await catalog_usecase.add_vacation(
                build_repositories(session),
                tenant_id=tenant_id,
                staff_id=str(staff_id),
                start_date=payload.start_date,
                end_date=payload.end_date,
                reason=payload.reason,
            )
    except DomainError as exc:
        raise http_error(exc) from exc
    return Envelope(data=StaffRead.model_validate(staff))


@router.get("/settings", response_model=Envelope[StoreSettingsRead])
async def get_settings(
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[StoreSettingsRead]:
    try:
        settings = await store_usecase.get_settings(build_repositories(session), tenant_id=tenant_id)
    except DomainError as exc:
        raise http_error(exc) from exc
    return Envelope(data=StoreSettingsRead.model_validate(settings))


@router.patch("/settings", response_model=Envelope[StoreSettingsRead])
async def update_settings(
    payload: StoreSettingsUpdate,
    session: AsyncSession = Depends(get_session),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[StoreSettingsRead]:
    try:
        async with session.begin():
            settings = await store_usecase.update_settings(
                build_repositories(session),
                tenant_id=tenant_id,
                values=payload.model_dump(exclude_unset=True),
            )
    except DomainError as exc:
        raise http_error(exc) from exc
    logger.info("store settings updated for tenant %s: %s", tenant_id, sorted(payload.model_fields_set))
    return Envelope(data=StoreSettingsRead.model_validate(settings))

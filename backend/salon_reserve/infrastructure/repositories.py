from __future__ import annotations

from datetime import date, datetime, time
from typing import Any, Iterable, Sequence

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..domain.repositories import (
    BlockedTimeRepository,
    MenuRepository,
    Repositories,
    ReservationRepository,
    SettingsRepository,
    StaffRepository,
)
from ..domain.slots import BLOCKING_STATUSES
from ..models import (
    BlockedTime,
    BlockedTimeReason,
    FeatureFlag,
    Menu,
    Reservation,
    ReservationStatus,
    Staff,
    StoreSettings,
    User,
)
from ..utils.time import utc_now_naive


class SqlAlchemySettingsRepository(SettingsRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, tenant_id: str) -> StoreSettings | None:
        return await self.session.get(StoreSettings, tenant_id)

    async def get_for_update(self, tenant_id: str) -> StoreSettings | None:
        stmt = select(StoreSettings).where(StoreSettings.tenant_id == tenant_id).with_for_update()
        result = await self.session.scalar(stmt)
        return result if isinstance(result, StoreSettings) else None

    async def get_flags(self, tenant_id: str) -> dict[str, bool]:
        rows = await self.session.scalars(select(FeatureFlag).where(FeatureFlag.tenant_id == tenant_id))
        return {flag.name: flag.enabled for flag in rows}

    async def set_flags(self, tenant_id: str, values: dict[str, bool]) -> dict[str, bool]:
        stmt = select(FeatureFlag).where(FeatureFlag.tenant_id == tenant_id).with_for_update()
        existing = {flag.name: flag for flag in await self.session.scalars(stmt)}
        now = utc_now_naive()
        for name, enabled in values.items():
            flag = existing.get(name)
            if flag is None:
                flag = FeatureFlag(tenant_id=tenant_id, name=name, enabled=enabled, updated_at=now)
                self.session.add(flag)
                existing[name] = flag
            else:
                flag.enabled = enabled
                flag.updated_at = now
        await self.session.flush()
        return {name: flag.enabled for name, flag in existing.items()}

    async def save(self, settings: StoreSettings) -> StoreSettings:
        self.session.add(settings)
        await self.session.flush()
        return settings


class SqlAlchemyStaffRepository(StaffRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    def _select(self) -> Select[tuple[Staff]]:
        return select(Staff).options(selectinload(Staff.shifts), selectinload(Staff.vacations))

    async def get(self, staff_id: str) -> Staff | None:
        return await self.session.scalar(self._select().where(Staff.id == staff_id))

    async def list_active(self, tenant_id: str) -> list[Staff]:
        stmt = (
            self._select()
            .where(Staff.tenant_id == tenant_id, Staff.is_active.is_(True))
            .order_by(Staff.created_at, Staff.id)
        )
        return list(await self.session.scalars(stmt))

    async def list_all(self, tenant_id: str) -> list[Staff]:
        stmt = self._select().where(Staff.tenant_id == tenant_id).order_by(Staff.created_at, Staff.id)
        return list(await self.session.scalars(stmt))

    async def lock(self, staff_ids: Iterable[str]) -> list[Staff]:
        ids = sorted(set(staff_ids))
        if not ids:
            return []
        # Ascending id order keeps lock acquisition deadlock-free across requests.
        stmt = self._select().where(Staff.id.in_(ids)).order_by(Staff.id).with_for_update()
        return list(await self.session.scalars(stmt))

    async def create(self, *, tenant_id: str, values: dict[str, Any]) -> Staff:
        now = utc_now_naive()
        staff = Staff(tenant_id=tenant_id, created_at=now, updated_at=now, shifts=[], vacations=[], **values)
        self.session.add(staff)
        await self.session.flush()
        return staff

    async def save(self, staff: Staff) -> Staff:
        self.session.add(staff)
        await self.session.flush()
        return staff


class SqlAlchemyMenuRepository(MenuRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, menu_id: str) -> Menu | None:
        return await self.session.get(Menu, menu_id)

    async def list_all(self, tenant_id: str, *, include_inactive: bool = False) -> list[Menu]:
        stmt = select(Menu).where(Menu.tenant_id == tenant_id).order_by(Menu.created_at, Menu.id)
        if not include_inactive:
            stmt = stmt.where(Menu.is_active.is_(True))
        return list(await self.session.scalars(stmt))

    async def create(self, *, tenant_id: str, values: dict[str, Any]) -> Menu:
        now = utc_now_naive()
        menu = Menu(tenant_id=tenant_id, created_at=now, updated_at=now, **values)
        self.session.add(menu)
        await self.session.flush()
        return menu

    async def save(self, menu: Menu) -> Menu:
        self.session.add(menu)
        await self.session.flush()
        return menu

    async def has_reservations(self, menu_id: str) -> bool:
        stmt = select(Reservation.id).where(Reservation.menu_id == menu_id).limit(1)
        return await self.session.scalar(stmt) is not None

    async def delete(self, menu: Menu) -> None:
        await self.session.delete(menu)
        await self.session.flush()


class SqlAlchemyBlockedTimeRepository(BlockedTimeRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, blocked_time_id: str) -> BlockedTime | None:
        return await self.session.get(BlockedTime, blocked_time_id)

    async def list_between(
        self,
        tenant_id: str,
        start: datetime,
        end: datetime,
        staff_id: str | None = None,
    ) -> list[BlockedTime]:
        stmt = (
            select(BlockedTime)
            .where(
                BlockedTime.tenant_id == tenant_id,
                BlockedTime.start_datetime < end,
                BlockedTime.end_datetime > start,
            )
            .order_by(BlockedTime.start_datetime)
        )
        if staff_id is not None:
            stmt = stmt.where((BlockedTime.staff_id.is_(None)) | (BlockedTime.staff_id == staff_id))
        return list(await self.session.scalars(stmt))

    async def create(
        self,
        *,
        tenant_id: str,
        staff_id: str | None,
        start_datetime: datetime,
        end_datetime: datetime,
        reason: BlockedTimeReason,
        description: str | None,
    ) -> BlockedTime:
        now = utc_now_naive()
        blocked = BlockedTime(
            tenant_id=tenant_id,
            staff_id=staff_id,
            start_datetime=start_datetime,
            end_datetime=end_datetime,
            reason=reason,
            description=description,
            created_at=now,
            updated_at=now,
        )
        self.session.add(blocked)
        await self.session.flush()
        return blocked

    async def save(self, blocked_time: BlockedTime) -> BlockedTime:
        self.session.add(blocked_time)
        await self.session.flush()
        return blocked_time

    async def delete(self, blocked_time: BlockedTime) -> None:
        await self.session.delete(blocked_time)
        await self.session.flush()


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, reservation_id: str) -> Reservation | None:
        return await self.session.get(Reservation, reservation_id)

    async def get_for_update(self, reservation_id: str) -> Reservation | None:
        stmt = select(Reservation).where(Reservation.id == reservation_id).with_for_update()
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Reservation) else None

    async def list_blocking_for_staff(self, staff_id: str | None, tenant_id: str, day: date) -> Sequence[Reservation]:
        stmt = select(Reservation).where(
            Reservation.tenant_id == tenant_id,
            Reservation.reserved_date == day,
            Reservation.status.in_(BLOCKING_STATUSES),
        )
        if staff_id is not None:
            stmt = stmt.where(Reservation.staff_id == staff_id)
        return list(await self.session.scalars(stmt.order_by(Reservation.reserved_time)))

    async def list_blocking_for_user(self, user_id: str, day: date) -> Sequence[Reservation]:
        stmt = select(Reservation).where(
            Reservation.user_id == user_id,
            Reservation.reserved_date == day,
            Reservation.status.in_(BLOCKING_STATUSES),
        )
        return list(await self.session.scalars(stmt))

    async def lock_customer(self, user_id: str) -> None:
        await self.session.scalar(select(User.id).where(User.id == user_id).with_for_update())

    async def create(
        self,
        *,
        tenant_id: str,
        user_id: str,
        staff_id: str | None,
        menu_id: str,
        reserved_date: date,
        reserved_time: time,
        duration: int,
        status: ReservationStatus,
        notes: str | None,
    ) -> Reservation:
        now = utc_now_naive()
        reservation = Reservation(
            tenant_id=tenant_id,
            user_id=user_id,
            staff_id=staff_id,
            menu_id=menu_id,
            reserved_date=reserved_date,
            reserved_time=reserved_time,
            duration=duration,
            status=status,
            notes=notes,
            version=1,
            created_at=now,
            updated_at=now,
        )
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def save(self, reservation: Reservation) -> Reservation:
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def list_by_user(self, user_id: str) -> list[Reservation]:
        stmt = (
            select(Reservation)
            .where(Reservation.user_id == user_id)
            .order_by(Reservation.reserved_date.desc(), Reservation.reserved_time.desc())
        )
        return list(await self.session.scalars(stmt))

    async def list_for_tenant(
        self,
        tenant_id: str,
        *,
        date_from: date | None = None,
        date_to: date | None = None,
        status: ReservationStatus | None = None,
        staff_id: str | None = None,
    ) -> list[Reservation]:
        stmt = select(Reservation).where(Reservation.tenant_id == tenant_id)
        if date_from is not None:
            stmt = stmt.where(Reservation.reserved_date >= date_from)
        if date_to is not None:
            stmt = stmt.where(Reservation.reserved_date <= date_to)
        if status is not None:
            stmt = stmt.where(Reservation.status == status)
        if staff_id is not None:
            stmt = stmt.where(Reservation.staff_id == staff_id)
        stmt = stmt.order_by(Reservation.reserved_date, Reservation.reserved_time)
        return list(await self.session.scalars(stmt))


def build_repositories(session: AsyncSession) -> Repositories:
    return Repositories(
        settings=SqlAlchemySettingsRepository(session),
        staff=SqlAlchemyStaffRepository(session),
        menus=SqlAlchemyMenuRepository(session),
        blocked_times=SqlAlchemyBlockedTimeRepository(session),
        reservations=SqlAlchemyReservationRepository(session),
    )

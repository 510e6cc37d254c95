from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Iterable, Protocol, Sequence

from ..models import (
    BlockedTime,
    BlockedTimeReason,
    Menu,
    Reservation,
    ReservationStatus,
    Staff,
    StoreSettings,
)


class SettingsRepository(Protocol):
    async def get(self, tenant_id: str) -> StoreSettings | None: ...

    async def get_for_update(self, tenant_id: str) -> StoreSettings | None: ...

    async def get_flags(self, tenant_id: str) -> dict[str, bool]: ...

    async def set_flags(self, tenant_id: str, values: dict[str, bool]) -> dict[str, bool]: ...

    async def save(self, settings: StoreSettings) -> StoreSettings: ...


class StaffRepository(Protocol):
    async def get(self, staff_id: str) -> Staff | None: ...

    async def list_active(self, tenant_id: str) -> list[Staff]: ...

    async def list_all(self, tenant_id: str) -> list[Staff]: ...

    async def lock(self, staff_ids: Iterable[str]) -> list[Staff]: ...

    async def create(self, *, tenant_id: str, values: dict[str, Any]) -> Staff: ...

    async def save(self, staff: Staff) -> Staff: ...


class MenuRepository(Protocol):
    async def get(self, menu_id: str) -> Menu | None: ...

    async def list_all(self, tenant_id: str, *, include_inactive: bool = False) -> list[Menu]: ...

    async def create(self, *, tenant_id: str, values: dict[str, Any]) -> Menu: ...

    async def save(self, menu: Menu) -> Menu: ...

    async def has_reservations(self, menu_id: str) -> bool: ...

    async def delete(self, menu: Menu) -> None: ...


class BlockedTimeRepository(Protocol):
    async def get(self, blocked_time_id: str) -> BlockedTime | None: ...

    async def list_between(
        self,
        tenant_id: str,
        start: datetime,
        end: datetime,
        staff_id: str | None = None,
    ) -> list[BlockedTime]: ...

    async def create(
        self,
        *,
        tenant_id: str,
        staff_id: str | None,
        start_datetime: datetime,
        end_datetime: datetime,
        reason: BlockedTimeReason,
        description: str | None,
    ) -> BlockedTime: ...

    async def save(self, blocked_time: BlockedTime) -> BlockedTime: ...

    async def delete(self, blocked_time: BlockedTime) -> None: ...


class ReservationRepository(Protocol):
    async def get(self, reservation_id: str) -> Reservation | None: ...

    async def get_for_update(self, reservation_id: str) -> Reservation | None: ...

    async def list_blocking_for_staff(
        self, staff_id: str | None, tenant_id: str, day: date
    ) -> Sequence[Reservation]:
        """PENDING/CONFIRMED bookings of one staff member; `None` returns every booking that day."""
        ...

    async def list_blocking_for_user(self, user_id: str, day: date) -> Sequence[Reservation]: ...

    async def lock_customer(self, user_id: str) -> None: ...

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
    ) -> Reservation: ...

    async def save(self, reservation: Reservation) -> Reservation: ...

    async def list_by_user(self, user_id: str) -> list[Reservation]: ...

    async def list_for_tenant(
        self,
        tenant_id: str,
        *,
        date_from: date | None = None,
        date_to: date | None = None,
        status: ReservationStatus | None = None,
        staff_id: str | None = None,
    ) -> list[Reservation]: ...


@dataclass
class Repositories:
    """Repositories sharing one session, i.e. one unit of work."""

    settings: SettingsRepository
    staff: StaffRepository
    menus: MenuRepository
    blocked_times: BlockedTimeRepository
    reservations: ReservationRepository

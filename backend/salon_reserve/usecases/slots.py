from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional, Sequence

from ..domain.conflicts import Availability, StaffCalendar, check_availability
from ..domain.errors import MenuNotFoundError, NotFoundError, StaffNotFoundError, ValidationError
from ..domain.flags import FeatureFlags
from ..domain.repositories import Repositories
from ..domain.slots import (
    BusinessHours,
    Interval,
    ShiftWindow,
    is_within_business_hours,
    occupied_intervals,
    spans_from,
)
from ..models import BlockedTime, Menu, Staff, StoreSettings
from ..utils.time import now_jst_naive


@dataclass(frozen=True)
class BookingContext:
    settings: StoreSettings
    hours: BusinessHours
    flags: FeatureFlags


async def load_context(repos: Repositories, tenant_id: str) -> BookingContext:
    settings = await repos.settings.get(tenant_id)
    if settings is None:
        raise NotFoundError("店舗設定が見つかりません")
    flags = FeatureFlags.from_mapping(await repos.settings.get_flags(tenant_id))
    return BookingContext(settings=settings, hours=BusinessHours.from_settings(settings), flags=flags)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def validate_booking_window(ctx: BookingContext, day: date, start: time, duration: int, *, now: datetime) -> None:
    """Checks that need no persisted reservations: past, advance window, closed day, alignment, hours."""
    begin = datetime.combine(day, start)
    if begin < now:
        raise ValidationError("過去の日時は予約できません")
    days_ahead = (day - now.date()).days
    if days_ahead < ctx.settings.min_advance_booking_days:
        raise ValidationError(f"予約は{ctx.settings.min_advance_booking_days}日前までに行ってください")
    if days_ahead > ctx.settings.max_advance_booking_days:
        raise ValidationError(f"予約は{ctx.settings.max_advance_booking_days}日先まで受け付けています")
    if ctx.hours.is_closed_on(day):
        raise ValidationError("定休日は予約できません")
    if begin < ctx.hours.opening(day):
        raise ValidationError("開店時刻より前の時間は予約できません")
    if not ctx.hours.is_aligned(start):
        raise ValidationError(f"予約時間は{ctx.hours.slot_minutes}分単位で指定してください")
    if not is_within_business_hours(ctx.hours, day, start, duration):
        raise ValidationError("終了時刻が閉店時刻を超えています")


def build_calendar(
    ctx: BookingContext,
    day: date,
    *,
    staff: Optional[Staff],
    reservations: Sequence[Any],
    blocked: Sequence[BlockedTime],
    exclude_reservation_id: Optional[str] = None,
    include_schedule: bool = True,
) -> StaffCalendar:
    """
    Occupancy of one staff member (or of the staff-less store calendar when
    `staff` is None). With `include_schedule=False` shift and vacation are
    left out, which lets callers tell "booked" apart from "not working".
    """
    staff_id = staff.id if staff is not None else None
    shift: Optional[ShiftWindow] = None
    on_vacation = False
    shift_required = False
    if staff is not None and include_schedule:
        shift_required = ctx.flags.staff_shift_management
        for entry in staff.shifts:
            if entry.day_of_week == day.weekday():
                shift = ShiftWindow(entry.start_time, entry.end_time)
                break
        on_vacation = any(v.start_date <= day <= v.end_date for v in staff.vacations)

    occupied = occupied_intervals(
        day,
        hours=ctx.hours,
        reservations=spans_from(reservations),
        blocked=[Interval(b.start_datetime, b.end_datetime) for b in blocked if b.staff_id in (None, staff_id)],
        shift=shift,
        shift_required=shift_required,
        on_vacation=on_vacation,
        exclude_reservation_id=exclude_reservation_id,
    )
    return StaffCalendar(
        staff_id=staff_id,
        occupied=tuple(occupied),
        is_active=staff.is_active if staff is not None else True,
    )


async def load_calendars(
    repos: Repositories,
    ctx: BookingContext,
    *,
    tenant_id: str,
    day: date,
    staff_list: Sequence[Optional[Staff]],
    exclude_reservation_id: Optional[str] = None,
) -> List[StaffCalendar]:
    start, end = day_bounds(day)
    blocked = await repos.blocked_times.list_between(tenant_id, start, end)
    calendars: List[StaffCalendar] = []
    for staff in staff_list:
        staff_id = staff.id if staff is not None else None
        reservations = await repos.reservations.list_blocking_for_staff(staff_id, tenant_id, day)
        calendars.append(
            build_calendar(
                ctx,
                day,
                staff=staff,
                reservations=reservations,
                blocked=blocked,
                exclude_reservation_id=exclude_reservation_id,
            )
        )
    return calendars


async def list_available_slots(
    repos: Repositories,
    *,
    tenant_id: str,
    day: date,
    menu_id: str,
    staff_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Aligned start times for `menu_id` on `day`, each flagged available or not.

    Starts whose duration would not fit inside business hours are never
    listed; closed days and days outside the advance-booking window list none.
    """
    now = now or now_jst_naive()
    ctx = await load_context(repos, tenant_id)
    menu: Optional[Menu] = await repos.menus.get(menu_id)
    if menu is None or menu.tenant_id != tenant_id or not menu.is_active:
        raise MenuNotFoundError("メニューが見つかりません")

    days_ahead = (day - now.date()).days
    if days_ahead < 0 or ctx.hours.is_closed_on(day):
        return []
    if days_ahead < ctx.settings.min_advance_booking_days or days_ahead > ctx.settings.max_advance_booking_days:
        return []

    staff_list: List[Optional[Staff]]
    if staff_id is not None and ctx.flags.staff_selection:
        staff = await repos.staff.get(staff_id)
        if staff is None or staff.tenant_id != tenant_id or not staff.is_active:
            raise StaffNotFoundError("スタッフが見つかりません")
        staff_list = [staff]
    else:
        staff_list = list(await repos.staff.list_active(tenant_id)) or [None]

    calendars = await load_calendars(repos, ctx, tenant_id=tenant_id, day=day, staff_list=staff_list)

    items: List[Dict[str, Any]] = []
    for start in ctx.hours.slot_starts(day, menu.duration):
        candidate = Interval(start, start + timedelta(minutes=menu.duration))
        free = [
            calendar.staff_id
            for calendar in calendars
            if calendar.is_active and check_availability(candidate, calendar.occupied) is Availability.AVAILABLE
        ]
        items.append(
            {
                "time": start.strftime("%H:%M"),
                "available": start >= now and bool(free),
                "staff_ids": [s for s in free if s],
            }
        )
    return items

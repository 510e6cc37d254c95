from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Optional

from ..domain.actors import Actor
from ..domain.conflicts import Availability, assign_staff, candidate_interval, check_availability
from ..domain.errors import (
    BookingClosedError,
    CancelNotAllowedError,
    DuplicateReservationError,
    ForbiddenError,
    MenuNotFoundError,
    NotFoundError,
    SlotConflictError,
    StaffNotFoundError,
    StaffUnavailableError,
    VersionConflictError,
)
from ..domain.repositories import Repositories
from ..domain.slots import Interval
from ..domain.status import (
    PERMISSION_DENIED,
    check_transition,
    ensure_deletable,
    ensure_editable,
    ensure_may_change_status,
)
from ..models import Menu, Reservation, ReservationStatus, Staff
from ..utils.time import now_jst_naive, utc_now_naive
from .slots import BookingContext, build_calendar, day_bounds, load_context, validate_booking_window

logger = logging.getLogger(__name__)

SLOT_TAKEN = "この時間は既に予約済みです"
STAFF_UNAVAILABLE = "選択されたスタッフは指定時間帯に対応できません"
PERSONAL_OVERLAP = "既にこの時間帯に予約があります"
RESERVATION_NOT_FOUND = "Reservation not found"

# Fields whose change moves the occupied interval.
_BOOKING_FIELDS = frozenset({"reserved_date", "reserved_time", "menu_id", "staff_id"})


@dataclass(frozen=True)
class ReservationChanges:
    """Requested edits; None means "leave as is"."""

    status: Optional[ReservationStatus] = None
    reserved_date: Optional[date] = None
    reserved_time: Optional[time] = None
    menu_id: Optional[str] = None
    staff_id: Optional[str] = None
    notes: Optional[str] = None

    def field_updates(self, reservation: Reservation) -> dict[str, Any]:
        updates: dict[str, Any] = {}
        for name in ("reserved_date", "reserved_time", "menu_id", "staff_id", "notes"):
            value = getattr(self, name)
            if value is not None and value != getattr(reservation, name):
                updates[name] = value
        return updates


async def _resolve_menu(repos: Repositories, tenant_id: str, menu_id: str) -> Menu:
    menu = await repos.menus.get(menu_id)
    if menu is None or menu.tenant_id != tenant_id or not menu.is_active:
        raise MenuNotFoundError("メニューが見つかりません")
    return menu


async def _claim_slot(
    repos: Repositories,
    ctx: BookingContext,
    *,
    tenant_id: str,
    candidate: Interval,
    staff_id: Optional[str],
    exclude_reservation_id: Optional[str] = None,
) -> Optional[str]:
    """
    Lock the calendars the decision depends on, re-read them and pick the staff
    member that gets `candidate`. Returns None for stores without staff.

    Must run inside the caller's transaction: the row locks are what stop two
    concurrent requests from both seeing the slot as free.
    """
    day = candidate.start.date()
    start, end = day_bounds(day)

    if staff_id is not None:
        locked = await repos.staff.lock([staff_id])
        staff = locked[0] if locked else None
        if staff is None or staff.tenant_id != tenant_id or not staff.is_active:
            raise StaffNotFoundError("スタッフが見つかりません")
        blocked = await repos.blocked_times.list_between(tenant_id, start, end)
        reservations = await repos.reservations.list_blocking_for_staff(staff.id, tenant_id, day)
        booked = build_calendar(
            ctx,
            day,
            staff=staff,
            reservations=reservations,
            blocked=blocked,
            exclude_reservation_id=exclude_reservation_id,
            include_schedule=False,
        )
        if check_availability(candidate, booked.occupied) is Availability.CONFLICT:
            raise SlotConflictError(SLOT_TAKEN)
        scheduled = build_calendar(
            ctx,
            day,
            staff=staff,
            reservations=reservations,
            blocked=blocked,
            exclude_reservation_id=exclude_reservation_id,
        )
        if check_availability(candidate, scheduled.occupied) is Availability.CONFLICT:
            raise StaffUnavailableError(STAFF_UNAVAILABLE)
        return staff.id

    active = await repos.staff.list_active(tenant_id)
    if not active:
        # No active staff: the settings row guards one store-wide calendar, which
        # still holds bookings made for staff who have since been deactivated.
        await repos.settings.get_for_update(tenant_id)
        blocked = await repos.blocked_times.list_between(tenant_id, start, end)
        reservations = await repos.reservations.list_blocking_for_staff(None, tenant_id, day)
        calendar = build_calendar(
            ctx,
            day,
            staff=None,
            reservations=reservations,
            blocked=blocked,
            exclude_reservation_id=exclude_reservation_id,
        )
        if check_availability(candidate, calendar.occupied) is Availability.CONFLICT:
            raise SlotConflictError(SLOT_TAKEN)
        return None

    locked_by_id = {staff.id: staff for staff in await repos.staff.lock(s.id for s in active)}
    candidates: list[Staff] = [locked_by_id[s.id] for s in active if s.id in locked_by_id]
    blocked = await repos.blocked_times.list_between(tenant_id, start, end)
    calendars = []
    for staff in candidates:
        reservations = await repos.reservations.list_blocking_for_staff(staff.id, tenant_id, day)
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
    chosen = assign_staff(calendars, candidate)
    if chosen is None:
        raise SlotConflictError(SLOT_TAKEN)
    return chosen


async def _ensure_no_personal_overlap(
    repos: Repositories,
    *,
    user_id: str,
    candidate: Interval,
    exclude_reservation_id: Optional[str] = None,
) -> None:
    # Taken after the calendar locks; serializes one customer's bookings across staff.
    await repos.reservations.lock_customer(user_id)
    for other in await repos.reservations.list_blocking_for_user(user_id, candidate.start.date()):
        if other.id == exclude_reservation_id:
            continue
        begin = datetime.combine(other.reserved_date, other.reserved_time)
        if Interval(begin, begin + timedelta(minutes=other.duration)).overlaps(candidate):
            raise DuplicateReservationError(PERSONAL_OVERLAP)


async def create_reservation(
    repos: Repositories,
    *,
    actor: Actor,
    tenant_id: str,
    menu_id: str,
    reserved_date: date,
    reserved_time: time,
    staff_id: Optional[str] = None,
    notes: Optional[str] = None,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Reservation:
    now = now or now_jst_naive()
    ctx = await load_context(repos, tenant_id)

    owner_id = actor.user_id
    if user_id is not None and user_id != actor.user_id:
        if not actor.is_admin:
            raise ForbiddenError(PERMISSION_DENIED)
        if not ctx.flags.manual_reservation:
            raise ForbiddenError("手動予約機能は無効になっています")
        owner_id = user_id
    if not actor.is_admin and not ctx.settings.is_public:
        raise BookingClosedError("現在予約を受け付けていません")

    menu = await _resolve_menu(repos, tenant_id, menu_id)
    validate_booking_window(ctx, reserved_date, reserved_time, menu.duration, now=now)
    candidate = candidate_interval(reserved_date, reserved_time, menu.duration)

    requested_staff = staff_id if ctx.flags.staff_selection or actor.is_admin else None
    try:
        assigned_staff = await _claim_slot(
            repos, ctx, tenant_id=tenant_id, candidate=candidate, staff_id=requested_staff
        )
    except SlotConflictError as exc:
        logger.info("booking rejected: %s (staff=%s start=%s)", exc.code, requested_staff, candidate.start)
        raise
    await _ensure_no_personal_overlap(repos, user_id=owner_id, candidate=candidate)

    reservation = await repos.reservations.create(
        tenant_id=tenant_id,
        user_id=owner_id,
        staff_id=assigned_staff,
        menu_id=menu.id,
        reserved_date=reserved_date,
        reserved_time=reserved_time,
        duration=menu.duration,
        status=ReservationStatus.CONFIRMED if actor.is_admin else ReservationStatus.PENDING,
        notes=notes,
    )
    logger.info("reservation %s booked for staff=%s at %s", reservation.id, assigned_staff, candidate.start)
    return reservation


async def _reschedule(
    repos: Repositories,
    ctx: BookingContext,
    *,
    tenant_id: str,
    reservation: Reservation,
    updates: dict[str, Any],
    now: datetime,
) -> dict[str, Any]:
    """Re-run the booking checks for the moved interval, ignoring the reservation's own slot."""
    duration = reservation.duration
    if "menu_id" in updates:
        duration = (await _resolve_menu(repos, tenant_id, updates["menu_id"])).duration
    day = updates.get("reserved_date", reservation.reserved_date)
    start = updates.get("reserved_time", reservation.reserved_time)
    validate_booking_window(ctx, day, start, duration, now=now)
    candidate = candidate_interval(day, start, duration)
    try:
        assigned_staff = await _claim_slot(
            repos,
            ctx,
            tenant_id=tenant_id,
            candidate=candidate,
            staff_id=updates.get("staff_id", reservation.staff_id),
            exclude_reservation_id=reservation.id,
        )
    except SlotConflictError as exc:
        logger.info("update of %s rejected: %s (start=%s)", reservation.id, exc.code, candidate.start)
        raise
    await _ensure_no_personal_overlap(
        repos,
        user_id=reservation.user_id,
        candidate=candidate,
        exclude_reservation_id=reservation.id,
    )
    return {"staff_id": assigned_staff, "duration": duration}


async def update_reservation(
    repos: Repositories,
    *,
    actor: Actor,
    tenant_id: str,
    reservation_id: str,
    changes: ReservationChanges,
    expected_version: Optional[int] = None,
    now: Optional[datetime] = None,
) -> tuple[Reservation, ReservationStatus]:
    """
    Apply `changes` atomically. Every check runs before the row is touched, so
    a rejected update leaves the reservation exactly as it was.

    Returns the reservation and its status before the update.
    """
    now = now or now_jst_naive()
    reservation = await repos.reservations.get_for_update(reservation_id)
    if reservation is None or reservation.tenant_id != tenant_id:
        raise NotFoundError(RESERVATION_NOT_FOUND)

    is_owner = reservation.user_id == actor.user_id
    if not (actor.is_admin or is_owner):
        raise ForbiddenError(PERMISSION_DENIED)
    if expected_version is not None and reservation.version != expected_version:
        raise VersionConflictError("予約が他の操作によって更新されています")

    previous_status = reservation.status
    new_status = changes.status if changes.status is not None and changes.status != reservation.status else None
    if new_status is not None:
        ensure_may_change_status(actor.role, is_owner=is_owner, requested=new_status)
        check_transition(reservation.status, new_status)
    if new_status is ReservationStatus.CANCELLED:
        await _ensure_before_deadline(repos, actor=actor, tenant_id=tenant_id, reservation=reservation, now=now)

    updates = changes.field_updates(reservation)
    if updates:
        ensure_editable(reservation.status)

    if _BOOKING_FIELDS & updates.keys():
        ctx = await load_context(repos, tenant_id)
        if not actor.is_admin:
            if not ctx.flags.reservation_update:
                raise ForbiddenError("予約変更機能は無効になっています")
            if not ctx.flags.staff_selection:
                updates.pop("staff_id", None)
        if _BOOKING_FIELDS & updates.keys():
            moved = await _reschedule(
                repos, ctx, tenant_id=tenant_id, reservation=reservation, updates=updates, now=now
            )
            updates.update(moved)

    if not updates and new_status is None:
        return reservation, previous_status

    for name, value in updates.items():
        setattr(reservation, name, value)
    if new_status is not None:
        reservation.status = new_status
    reservation.version += 1
    reservation.updated_at = utc_now_naive()
    updated = await repos.reservations.save(reservation)
    return updated, previous_status


async def cancel_reservation(
    repos: Repositories,
    *,
    actor: Actor,
    tenant_id: str,
    reservation_id: str,
    now: Optional[datetime] = None,
) -> tuple[Reservation, ReservationStatus]:
    """DELETE semantics: the row is kept and moved to CANCELLED."""
    now = now or now_jst_naive()
    reservation = await repos.reservations.get_for_update(reservation_id)
    if reservation is None or reservation.tenant_id != tenant_id:
        raise NotFoundError(RESERVATION_NOT_FOUND)
    is_owner = reservation.user_id == actor.user_id
    if not (actor.is_admin or is_owner):
        raise ForbiddenError(PERMISSION_DENIED)

    ensure_deletable(reservation.status)
    check_transition(reservation.status, ReservationStatus.CANCELLED)

    await _ensure_before_deadline(repos, actor=actor, tenant_id=tenant_id, reservation=reservation, now=now)

    previous_status = reservation.status
    reservation.status = ReservationStatus.CANCELLED
    reservation.version += 1
    reservation.updated_at = utc_now_naive()
    updated = await repos.reservations.save(reservation)
    return updated, previous_status


async def get_reservation(
    repos: Repositories,
    *,
    actor: Actor,
    tenant_id: str,
    reservation_id: str,
) -> Reservation:
    reservation = await repos.reservations.get(reservation_id)
    if reservation is None or reservation.tenant_id != tenant_id:
        raise NotFoundError(RESERVATION_NOT_FOUND)
    if not actor.is_admin and reservation.user_id != actor.user_id:
        raise ForbiddenError(PERMISSION_DENIED)
    return reservation


async def list_user_reservations(repos: Repositories, *, user_id: str) -> list[Reservation]:
    return await repos.reservations.list_by_user(user_id)


async def list_reservations(
    repos: Repositories,
    *,
    tenant_id: str,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    status: Optional[ReservationStatus] = None,
    staff_id: Optional[str] = None,
) -> list[Reservation]:
    return await repos.reservations.list_for_tenant(
        tenant_id,
        date_from=date_from,
        date_to=date_to,
        status=status,
        staff_id=staff_id,
    )


async def _ensure_before_deadline(
    repos: Repositories,
    *,
    actor: Actor,
    tenant_id: str,
    reservation: Reservation,
    now: datetime,
) -> None:
    """Customers may not cancel inside the store's cancellation deadline, by DELETE or by PATCH."""
    if actor.is_admin:
        return
    ctx = await load_context(repos, tenant_id)
    if _is_within_cutoff(reservation, hours=ctx.settings.cancellation_deadline_hours, now=now):
        raise CancelNotAllowedError("予約のキャンセル期限が過ぎています")


def _is_within_cutoff(reservation: Reservation, *, hours: int, now: datetime) -> bool:
    """True if `now` is within `hours` before the visit; 0 disables the deadline."""
    if hours <= 0:
        return False
    starts_at = datetime.combine(reservation.reserved_date, reservation.reserved_time)
    return now >= starts_at - timedelta(hours=hours)

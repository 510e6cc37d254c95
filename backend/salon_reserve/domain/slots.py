from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable, Optional, Sequence

from ..models import ReservationStatus

# Statuses that occupy a staff member's calendar.
BLOCKING_STATUSES = frozenset({ReservationStatus.PENDING, ReservationStatus.CONFIRMED})

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


@dataclass(frozen=True, order=True)
class Interval:
    """Half-open interval [start, end) in store-local time."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValueError("interval end must be after start")

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class BusinessHours:
    open_time: time
    close_time: time
    slot_minutes: int = 30
    closed_weekdays: frozenset[int] = field(default_factory=frozenset)
    break_start: Optional[time] = None
    break_end: Optional[time] = None

    @classmethod
    def from_settings(cls, settings) -> "BusinessHours":
        closed = frozenset(WEEKDAY_NAMES.index(name) for name in settings.closed_days or () if name in WEEKDAY_NAMES)
        return cls(
            open_time=settings.open_time,
            close_time=settings.close_time,
            slot_minutes=settings.slot_duration,
            closed_weekdays=closed,
            break_start=settings.break_time_start,
            break_end=settings.break_time_end,
        )

    def is_closed_on(self, day: date) -> bool:
        return day.weekday() in self.closed_weekdays

    def opening(self, day: date) -> datetime:
        return datetime.combine(day, self.open_time)

    def closing(self, day: date) -> datetime:
        return datetime.combine(day, self.close_time)

    def break_interval(self, day: date) -> Optional[Interval]:
        if self.break_start is None or self.break_end is None or self.break_start >= self.break_end:
            return None
        return Interval(datetime.combine(day, self.break_start), datetime.combine(day, self.break_end))

    def is_aligned(self, start: time) -> bool:
        offset = datetime.combine(date.min, start) - datetime.combine(date.min, self.open_time)
        if offset < timedelta(0):
            return False
        return (offset.total_seconds() / 60) % self.slot_minutes == 0

    def slot_starts(self, day: date, duration: int) -> list[datetime]:
        """Aligned start times whose whole duration fits between opening and closing."""
        starts: list[datetime] = []
        if duration <= 0:
            return starts
        cursor = self.opening(day)
        last_start = self.closing(day) - timedelta(minutes=duration)
        step = timedelta(minutes=self.slot_minutes)
        while cursor <= last_start:
            starts.append(cursor)
            cursor += step
        return starts


@dataclass(frozen=True)
class ReservationSpan:
    reservation_id: str
    start: datetime
    duration: int
    status: ReservationStatus

    @property
    def interval(self) -> Interval:
        return Interval(self.start, self.start + timedelta(minutes=self.duration))


@dataclass(frozen=True)
class ShiftWindow:
    start: time
    end: time


def is_within_business_hours(hours: BusinessHours, day: date, start: time, duration: int) -> bool:
    if hours.is_closed_on(day):
        return False
    begin = datetime.combine(day, start)
    if begin < hours.opening(day):
        return False
    return begin + timedelta(minutes=duration) <= hours.closing(day)


def occupied_intervals(
    day: date,
    *,
    hours: BusinessHours,
    reservations: Iterable[ReservationSpan] = (),
    blocked: Iterable[Interval] = (),
    shift: Optional[ShiftWindow] = None,
    shift_required: bool = False,
    on_vacation: bool = False,
    exclude_reservation_id: Optional[str] = None,
) -> list[Interval]:
    """
    Everything on `day` that a new booking may not overlap, sorted by start.

    `shift_required` means shift management is enabled: time outside `shift`
    counts as occupied, and a missing shift occupies the whole business day.
    """
    opening = hours.opening(day)
    closing = hours.closing(day)
    day_start = datetime.combine(day, time.min)
    day_end = day_start + timedelta(days=1)

    if on_vacation:
        return [Interval(day_start, day_end)]

    occupied: list[Interval] = []
    for span in reservations:
        if span.status not in BLOCKING_STATUSES:
            continue
        if exclude_reservation_id is not None and span.reservation_id == exclude_reservation_id:
            continue
        occupied.append(span.interval)

    for interval in blocked:
        start = max(interval.start, day_start)
        end = min(interval.end, day_end)
        if start < end:
            occupied.append(Interval(start, end))

    lunch = hours.break_interval(day)
    if lunch is not None:
        occupied.append(lunch)

    if shift_required:
        if shift is None:
            occupied.append(Interval(day_start, day_end))
        else:
            shift_start = datetime.combine(day, shift.start)
            shift_end = datetime.combine(day, shift.end)
            if opening < shift_start:
                occupied.append(Interval(opening, shift_start))
            if shift_end < closing:
                occupied.append(Interval(shift_end, closing))

    return sorted(occupied)


def spans_from(reservations: Sequence) -> list[ReservationSpan]:
    return [
        ReservationSpan(
            reservation_id=r.id,
            start=datetime.combine(r.reserved_date, r.reserved_time),
            duration=r.duration,
            status=r.status,
        )
        for r in reservations
    ]

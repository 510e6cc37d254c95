from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import StrEnum
from typing import Iterable, Optional, Sequence

from .errors import ValidationError
from .slots import Interval


class Availability(StrEnum):
    AVAILABLE = "available"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class StaffCalendar:
    """A staff member's occupied intervals for one day, shift and vacation included."""

    staff_id: Optional[str]
    occupied: tuple[Interval, ...]
    is_active: bool = True


def overlaps(a: Interval, b: Interval) -> bool:
    return a.start < b.end and b.start < a.end


def candidate_interval(day: date, start: time, duration: int) -> Interval:
    if duration <= 0:
        raise ValidationError("所要時間は1分以上で指定してください")
    begin = datetime.combine(day, start)
    return Interval(begin, begin + timedelta(minutes=duration))


def find_conflict(candidate: Interval, occupied: Iterable[Interval]) -> Optional[Interval]:
    for existing in occupied:
        if overlaps(candidate, existing):
            return existing
    return None


def check_availability(candidate: Interval, occupied: Iterable[Interval]) -> Availability:
    if find_conflict(candidate, occupied) is not None:
        return Availability.CONFLICT
    return Availability.AVAILABLE


def assign_staff(calendars: Sequence[StaffCalendar], candidate: Interval) -> Optional[str]:
    """Return the first eligible staff id in list order, or None when nobody is free."""
    for calendar in calendars:
        if not calendar.is_active:
            continue
        if check_availability(candidate, calendar.occupied) is Availability.AVAILABLE:
            return calendar.staff_id
    return None

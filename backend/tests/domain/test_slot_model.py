from datetime import date, datetime, time

import pytest
from salon_reserve.domain.slots import (
    BusinessHours,
    Interval,
    ReservationSpan,
    ShiftWindow,
    is_within_business_hours,
    occupied_intervals,
)
from salon_reserve.models import ReservationStatus

DAY = date(2026, 3, 3)  # Tuesday
SUNDAY = date(2026, 3, 8)
HOURS = BusinessHours(open_time=time(9, 0), close_time=time(20, 0), closed_weekdays=frozenset({6}))


def at(hour: int, minute: int = 0, day: date = DAY) -> datetime:
    return datetime.combine(day, time(hour, minute))


def span(rid: str, hour: int, duration: int = 60, status: ReservationStatus = ReservationStatus.CONFIRMED):
    return ReservationSpan(reservation_id=rid, start=at(hour), duration=duration, status=status)


def test_interval_rejects_empty_or_inverted_range() -> None:
    with pytest.raises(ValueError):
        Interval(at(10), at(10))
    with pytest.raises(ValueError):
        Interval(at(11), at(10))


def test_business_hours_allows_ending_exactly_at_close() -> None:
    assert is_within_business_hours(HOURS, DAY, time(19, 0), 60) is True


def test_business_hours_rejects_overrun_and_early_start() -> None:
    assert is_within_business_hours(HOURS, DAY, time(19, 30), 60) is False
    assert is_within_business_hours(HOURS, DAY, time(8, 30), 30) is False


def test_business_hours_rejects_closed_weekday() -> None:
    assert is_within_business_hours(HOURS, SUNDAY, time(10, 0), 60) is False


def test_slot_starts_stop_at_close_minus_duration() -> None:
    starts = HOURS.slot_starts(DAY, 60)
    assert starts[0] == at(9)
    assert starts[-1] == at(19)
    assert len(starts) == 21


def test_alignment_follows_opening_time() -> None:
    hours = BusinessHours(open_time=time(9, 15), close_time=time(18, 0), slot_minutes=30)
    assert hours.is_aligned(time(9, 45)) is True
    assert hours.is_aligned(time(10, 0)) is False
    assert hours.is_aligned(time(9, 0)) is False


def test_occupied_ignores_inactive_statuses_and_excluded_reservation() -> None:
    occupied = occupied_intervals(
        DAY,
        hours=HOURS,
        reservations=[
            span("a", 10),
            span("b", 12, status=ReservationStatus.CANCELLED),
            span("c", 14, status=ReservationStatus.COMPLETED),
            span("d", 16, status=ReservationStatus.PENDING),
        ],
        exclude_reservation_id="d",
    )
    assert occupied == [Interval(at(10), at(11))]


def test_occupied_clips_blocked_time_to_the_day_and_sorts() -> None:
    overnight = Interval(datetime(2026, 3, 2, 22, 0), at(10))
    occupied = occupied_intervals(
        DAY,
        hours=HOURS,
        reservations=[span("a", 15)],
        blocked=[Interval(at(13), at(14)), overnight],
    )
    assert occupied == [
        Interval(at(0), at(10)),
        Interval(at(13), at(14)),
        Interval(at(15), at(16)),
    ]


def test_occupied_includes_break_time() -> None:
    hours = BusinessHours(open_time=time(9), close_time=time(20), break_start=time(12), break_end=time(13))
    assert occupied_intervals(DAY, hours=hours) == [Interval(at(12), at(13))]


def test_shift_management_blocks_time_outside_shift() -> None:
    occupied = occupied_intervals(
        DAY,
        hours=HOURS,
        shift=ShiftWindow(time(11), time(17)),
        shift_required=True,
    )
    assert occupied == [Interval(at(9), at(11)), Interval(at(17), at(20))]


def test_missing_shift_blocks_whole_day_only_when_required() -> None:
    assert occupied_intervals(DAY, hours=HOURS, shift_required=True) == [
        Interval(at(0), datetime(2026, 3, 4, 0, 0))
    ]
    assert occupied_intervals(DAY, hours=HOURS, shift_required=False) == []


def test_vacation_occupies_whole_day() -> None:
    occupied = occupied_intervals(DAY, hours=HOURS, reservations=[span("a", 10)], on_vacation=True)
    assert occupied == [Interval(at(0), datetime(2026, 3, 4, 0, 0))]

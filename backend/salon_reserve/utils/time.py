from datetime import datetime, timezone
from zoneinfo import ZoneInfo

JST = ZoneInfo("Asia/Tokyo")


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def now_jst_naive() -> datetime:
    """Store-local wall clock, comparable with reserved_date/reserved_time."""
    return datetime.now(JST).replace(tzinfo=None)


def to_jst_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        raise ValueError("datetime must be timezone-aware")
    return dt.astimezone(JST).replace(tzinfo=None)


def jst_naive_to_aware(dt: datetime) -> datetime:
    return dt.replace(tzinfo=JST)

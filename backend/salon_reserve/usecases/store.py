from typing import Any, Dict

from ..domain.errors import NotFoundError, ValidationError
from ..domain.flags import FLAG_NAMES, FeatureFlags
from ..domain.repositories import Repositories
from ..domain.slots import WEEKDAY_NAMES
from ..models import StoreSettings
from ..utils.time import utc_now_naive

_NULLABLE = frozenset({"break_time_start", "break_time_end"})


async def get_settings(repos: Repositories, *, tenant_id: str) -> StoreSettings:
    settings = await repos.settings.get(tenant_id)
    if settings is None:
        raise NotFoundError("店舗設定が見つかりません")
    return settings


def _check_settings(values: Dict[str, Any]) -> None:
    if values["open_time"] >= values["close_time"]:
        raise ValidationError("閉店時刻は開店時刻より後に設定してください")
    if values["slot_duration"] < 1:
        raise ValidationError("予約枠は1分以上で設定してください")
    start, end = values.get("break_time_start"), values.get("break_time_end")
    if (start is None) != (end is None):
        raise ValidationError("休憩時間は開始と終了の両方を設定してください")
    if start is not None and end is not None and start >= end:
        raise ValidationError("休憩の終了時刻は開始時刻より後に設定してください")
    min_days = values["min_advance_booking_days"]
    max_days = values["max_advance_booking_days"]
    if min_days < 0 or max_days < 0:
        raise ValidationError("予約受付期間に負の値は設定できません")
    if min_days > max_days:
        raise ValidationError("最短予約日数は最長予約日数以下に設定してください")
    if values["cancellation_deadline_hours"] < 0:
        raise ValidationError("キャンセル期限に負の値は設定できません")
    unknown = [day for day in values["closed_days"] if day not in WEEKDAY_NAMES]
    if unknown:
        raise ValidationError(f"定休日の指定が不正です: {', '.join(unknown)}")


async def update_settings(repos: Repositories, *, tenant_id: str, values: Dict[str, Any]) -> StoreSettings:
    """Partial update; the merged result is validated as a whole before anything is written."""
    cleared = sorted(name for name, value in values.items() if value is None and name not in _NULLABLE)
    if cleared:
        raise ValidationError(f"必須項目は空にできません: {', '.join(cleared)}")
    settings = await repos.settings.get_for_update(tenant_id)
    if settings is None:
        raise NotFoundError("店舗設定が見つかりません")
    merged = {
        name: values.get(name, getattr(settings, name))
        for name in (
            "open_time",
            "close_time",
            "slot_duration",
            "closed_days",
            "break_time_start",
            "break_time_end",
            "min_advance_booking_days",
            "max_advance_booking_days",
            "cancellation_deadline_hours",
        )
    }
    _check_settings(merged)
    for name, value in values.items():
        setattr(settings, name, value)
    settings.updated_at = utc_now_naive()
    return await repos.settings.save(settings)


async def get_feature_flags(repos: Repositories, *, tenant_id: str) -> FeatureFlags:
    return FeatureFlags.from_mapping(await repos.settings.get_flags(tenant_id))


async def update_feature_flags(repos: Repositories, *, tenant_id: str, values: Dict[str, bool]) -> FeatureFlags:
    unknown = sorted(name for name in values if name not in FLAG_NAMES)
    if unknown:
        raise ValidationError(f"未知の機能フラグです: {', '.join(unknown)}")
    await repos.settings.set_flags(tenant_id, values)
    return await get_feature_flags(repos, tenant_id=tenant_id)

from datetime import date, time
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..domain.errors import MenuInUseError, MenuNotFoundError, StaffNotFoundError, ValidationError
from ..domain.repositories import Repositories
from ..models import Menu, Staff, StaffShift, StaffVacation
from ..utils.time import utc_now_naive

MENU_PRICE_MAX = 9_999_999
MENU_DURATION_MAX = 480

_MENU_NULLABLE = frozenset({"description", "category"})
_STAFF_NULLABLE = frozenset({"email", "phone", "role"})


def _reject_nulls(values: Dict[str, Any], nullable: frozenset) -> None:
    cleared = sorted(name for name, value in values.items() if value is None and name not in nullable)
    if cleared:
        raise ValidationError(f"必須項目は空にできません: {', '.join(cleared)}")


def _check_menu_values(values: Dict[str, Any]) -> None:
    price = values.get("price")
    if price is not None and not 0 <= price <= MENU_PRICE_MAX:
        raise ValidationError(f"料金は0〜{MENU_PRICE_MAX:,}円で入力してください")
    duration = values.get("duration")
    if duration is not None and not 1 <= duration <= MENU_DURATION_MAX:
        raise ValidationError(f"所要時間は1〜{MENU_DURATION_MAX}分で入力してください")


async def _get_menu(repos: Repositories, tenant_id: str, menu_id: str) -> Menu:
    menu = await repos.menus.get(menu_id)
    if menu is None or menu.tenant_id != tenant_id:
        raise MenuNotFoundError("メニューが見つかりません")
    return menu


async def _get_staff(repos: Repositories, tenant_id: str, staff_id: str) -> Staff:
    staff = await repos.staff.get(staff_id)
    if staff is None or staff.tenant_id != tenant_id:
        raise StaffNotFoundError("スタッフが見つかりません")
    return staff


async def list_menus(repos: Repositories, *, tenant_id: str, include_inactive: bool = False) -> List[Menu]:
    return await repos.menus.list_all(tenant_id, include_inactive=include_inactive)


async def create_menu(repos: Repositories, *, tenant_id: str, values: Dict[str, Any]) -> Menu:
    _check_menu_values(values)
    return await repos.menus.create(tenant_id=tenant_id, values=values)


async def update_menu(repos: Repositories, *, tenant_id: str, menu_id: str, values: Dict[str, Any]) -> Menu:
    _reject_nulls(values, _MENU_NULLABLE)
    _check_menu_values(values)
    menu = await _get_menu(repos, tenant_id, menu_id)
    for name, value in values.items():
        setattr(menu, name, value)
    menu.updated_at = utc_now_naive()
    return await repos.menus.save(menu)


async def delete_menu(repos: Repositories, *, tenant_id: str, menu_id: str) -> None:
    """Menus referenced by reservations are kept; deactivate them instead."""
    menu = await _get_menu(repos, tenant_id, menu_id)
    if await repos.menus.has_reservations(menu.id):
        raise MenuInUseError("予約が存在するメニューは削除できません。非公開に変更してください")
    await repos.menus.delete(menu)


async def list_staff(repos: Repositories, *, tenant_id: str, include_inactive: bool = False) -> List[Staff]:
    if include_inactive:
        return await repos.staff.list_all(tenant_id)
    return await repos.staff.list_active(tenant_id)


async def create_staff(repos: Repositories, *, tenant_id: str, values: Dict[str, Any]) -> Staff:
    return await repos.staff.create(tenant_id=tenant_id, values=values)


async def update_staff(repos: Repositories, *, tenant_id: str, staff_id: str, values: Dict[str, Any]) -> Staff:
    _reject_nulls(values, _STAFF_NULLABLE)
    staff = await _get_staff(repos, tenant_id, staff_id)
    for name, value in values.items():
        setattr(staff, name, value)
    staff.updated_at = utc_now_naive()
    return await repos.staff.save(staff)


async def replace_shifts(
    repos: Repositories,
    *,
    tenant_id: str,
    staff_id: str,
    shifts: Sequence[Tuple[int, time, time]],
) -> Staff:
    """Replace the weekly shift table; one window per weekday (Monday == 0)."""
    seen: set[int] = set()
    for day_of_week, start, end in shifts:
        if not 0 <= day_of_week <= 6:
            raise ValidationError("曜日の指定が不正です")
        if day_of_week in seen:
            raise ValidationError("同じ曜日のシフトが重複しています")
        if end <= start:
            raise ValidationError("シフトの終了時刻は開始時刻より後に設定してください")
        seen.add(day_of_week)

    locked = await repos.staff.lock([staff_id])
    if not locked or locked[0].tenant_id != tenant_id:
        raise StaffNotFoundError("スタッフが見つかりません")
    staff = locked[0]
    staff.shifts.clear()
    for day_of_week, start, end in shifts:
        staff.shifts.append(StaffShift(day_of_week=day_of_week, start_time=start, end_time=end))
    staff.updated_at = utc_now_naive()
    return await repos.staff.save(staff)


async def add_vacation(
    repos: Repositories,
    *,
    tenant_id: str,
    staff_id: str,
    start_date: date,
    end_date: date,
    reason: Optional[str] = None,
) -> Staff:
    if end_date < start_date:
        raise ValidationError("休暇の終了日は開始日以降に設定してください")
    locked = await repos.staff.lock([staff_id])
    if not locked or locked[0].tenant_id != tenant_id:
        raise StaffNotFoundError("スタッフが見つかりません")
    staff = locked[0]
    staff.vacations.append(StaffVacation(start_date=start_date, end_date=end_date, reason=reason))
    staff.updated_at = utc_now_naive()
    return await repos.staff.save(staff)

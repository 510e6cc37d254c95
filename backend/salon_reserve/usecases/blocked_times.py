from datetime import datetime
from typing import List, Optional

from ..domain.errors import NotFoundError, StaffNotFoundError, ValidationError
from ..domain.repositories import Repositories
from ..models import BlockedTime, BlockedTimeReason
from ..utils.time import utc_now_naive

END_BEFORE_START = "終了日時は開始日時より後に設定してください"


def _check_range(start: datetime, end: datetime) -> None:
    if end <= start:
        raise ValidationError(END_BEFORE_START)


async def _check_staff(repos: Repositories, tenant_id: str, staff_id: Optional[str]) -> None:
    if staff_id is None:
        return
    staff = await repos.staff.get(staff_id)
    if staff is None or staff.tenant_id != tenant_id:
        raise StaffNotFoundError("スタッフが見つかりません")


async def _get(repos: Repositories, tenant_id: str, blocked_time_id: str) -> BlockedTime:
    blocked = await repos.blocked_times.get(blocked_time_id)
    if blocked is None or blocked.tenant_id != tenant_id:
        raise NotFoundError("ブロックが見つかりません")
    return blocked


async def list_blocked_times(
    repos: Repositories,
    *,
    tenant_id: str,
    start: datetime,
    end: datetime,
    staff_id: Optional[str] = None,
) -> List[BlockedTime]:
    _check_range(start, end)
    return await repos.blocked_times.list_between(tenant_id, start, end, staff_id)


async def create_blocked_time(
    repos: Repositories,
    *,
    tenant_id: str,
    start_datetime: datetime,
    end_datetime: datetime,
    reason: BlockedTimeReason,
    description: Optional[str] = None,
    staff_id: Optional[str] = None,
) -> BlockedTime:
    _check_range(start_datetime, end_datetime)
    await _check_staff(repos, tenant_id, staff_id)
    return await repos.blocked_times.create(
        tenant_id=tenant_id,
        staff_id=staff_id,
        start_datetime=start_datetime,
        end_datetime=end_datetime,
        reason=reason,
        description=description,
    )


async def update_blocked_time(
    repos: Repositories,
    *,
    tenant_id: str,
    blocked_time_id: str,
    start_datetime: Optional[datetime] = None,
    end_datetime: Optional[datetime] = None,
    reason: Optional[BlockedTimeReason] = None,
    description: Optional[str] = None,
) -> BlockedTime:
    blocked = await _get(repos, tenant_id, blocked_time_id)
    start = start_datetime or blocked.start_datetime
    end = end_datetime or blocked.end_datetime
    _check_range(start, end)

    blocked.start_datetime = start
    blocked.end_datetime = end
    if reason is not None:
        blocked.reason = reason
    if description is not None:
        blocked.description = description
    blocked.updated_at = utc_now_naive()
    return await repos.blocked_times.save(blocked)


async def delete_blocked_time(repos: Repositories, *, tenant_id: str, blocked_time_id: str) -> None:
    blocked = await _get(repos, tenant_id, blocked_time_id)
    await repos.blocked_times.delete(blocked)

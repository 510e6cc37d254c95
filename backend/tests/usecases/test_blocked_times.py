from datetime import datetime

import pytest
from fakes import FakeStore, make_staff
from salon_reserve.domain.errors import NotFoundError, StaffNotFoundError, ValidationError
from salon_reserve.models import BlockedTimeReason
from salon_reserve.usecases import blocked_times as uc

START = datetime(2026, 3, 3, 12, 0)
END = datetime(2026, 3, 3, 14, 0)


@pytest.mark.asyncio
async def test_create_list_update_delete(store: FakeStore) -> None:
    repos = store.repos()
    blocked = await uc.create_blocked_time(
        repos,
        tenant_id="demo-salon",
        start_datetime=START,
        end_datetime=END,
        reason=BlockedTimeReason.HOTPEPPER,
        description="ホットペッパー予約",
    )
    rows = await uc.list_blocked_times(
        repos, tenant_id="demo-salon", start=datetime(2026, 3, 3), end=datetime(2026, 3, 4)
    )
    assert [row.id for row in rows] == [blocked.id]

    updated = await uc.update_blocked_time(
        repos, tenant_id="demo-salon", blocked_time_id=blocked.id, end_datetime=datetime(2026, 3, 3, 15, 0)
    )
    assert updated.start_datetime == START
    assert updated.end_datetime == datetime(2026, 3, 3, 15, 0)

    await uc.delete_blocked_time(repos, tenant_id="demo-salon", blocked_time_id=blocked.id)
    assert store.blocked == {}


@pytest.mark.asyncio
async def test_end_must_be_after_start(store: FakeStore) -> None:
    with pytest.raises(ValidationError) as excinfo:
        await uc.create_blocked_time(
            store.repos(),
            tenant_id="demo-salon",
            start_datetime=END,
            end_datetime=START,
            reason=BlockedTimeReason.OTHER,
        )
    assert excinfo.value.message == "終了日時は開始日時より後に設定してください"


@pytest.mark.asyncio
async def test_update_keeps_range_valid(store: FakeStore) -> None:
    repos = store.repos()
    blocked = await uc.create_blocked_time(
        repos, tenant_id="demo-salon", start_datetime=START, end_datetime=END, reason=BlockedTimeReason.MAINTENANCE
    )
    with pytest.raises(ValidationError):
        await uc.update_blocked_time(
            repos, tenant_id="demo-salon", blocked_time_id=blocked.id, start_datetime=datetime(2026, 3, 3, 14, 0)
        )
    assert store.blocked[blocked.id].start_datetime == START


@pytest.mark.asyncio
async def test_staff_scope_must_exist(store: FakeStore) -> None:
    stylist = make_staff("佐藤")
    store.add(stylist)
    repos = store.repos()
    scoped = await uc.create_blocked_time(
        repos,
        tenant_id="demo-salon",
        start_datetime=START,
        end_datetime=END,
        reason=BlockedTimeReason.OTHER,
        staff_id=stylist.id,
    )
    assert scoped.staff_id == stylist.id
    with pytest.raises(StaffNotFoundError):
        await uc.create_blocked_time(
            repos,
            tenant_id="demo-salon",
            start_datetime=START,
            end_datetime=END,
            reason=BlockedTimeReason.OTHER,
            staff_id="missing",
        )


@pytest.mark.asyncio
async def test_unknown_blocked_time(store: FakeStore) -> None:
    with pytest.raises(NotFoundError):
        await uc.delete_blocked_time(store.repos(), tenant_id="demo-salon", blocked_time_id="missing")

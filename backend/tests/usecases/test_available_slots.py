from datetime import datetime, time, timedelta

import pytest
from fakes import NOW, SUNDAY, TUESDAY, FakeStore, make_blocked, make_menu, make_reservation, make_settings, make_staff
from salon_reserve.domain.errors import MenuNotFoundError, StaffNotFoundError
from salon_reserve.usecases.slots import list_available_slots


def by_time(items: list) -> dict:
    return {item["time"]: item for item in items}


@pytest.mark.asyncio
async def test_slots_cover_business_hours_minus_duration(store: FakeStore) -> None:
    menu = make_menu(duration=90)
    store.add(menu)
    items = await list_available_slots(store.repos(), tenant_id="demo-salon", day=TUESDAY, menu_id=menu.id, now=NOW)
    assert items[0]["time"] == "09:00"
    assert items[-1]["time"] == "18:30"
    assert all(item["available"] for item in items)


@pytest.mark.asyncio
async def test_booked_and_blocked_times_are_unavailable(store: FakeStore) -> None:
    menu = make_menu(duration=60)
    stylist = make_staff("佐藤")
    store.add(menu, stylist)
    store.add(make_reservation(user_id="user-1", menu=menu, staff_id=stylist.id, start=time(10, 0)))
    store.add(make_blocked(datetime(2026, 3, 3, 15, 0), datetime(2026, 3, 3, 16, 0)))

    slots = by_time(
        await list_available_slots(store.repos(), tenant_id="demo-salon", day=TUESDAY, menu_id=menu.id, now=NOW)
    )
    assert slots["09:00"]["available"] is True
    assert slots["09:30"]["available"] is False
    assert slots["10:30"]["available"] is False
    assert slots["11:00"]["available"] is True
    assert slots["11:00"]["staff_ids"] == [stylist.id]
    assert slots["14:30"]["available"] is False
    assert slots["16:00"]["available"] is True


@pytest.mark.asyncio
async def test_any_free_staff_makes_slot_available(store: FakeStore) -> None:
    menu = make_menu(duration=60)
    busy, free = make_staff("A", order=0), make_staff("B", order=1)
    store.add(menu, busy, free)
    store.add(make_reservation(user_id="user-1", menu=menu, staff_id=busy.id, start=time(10, 0)))

    slots = by_time(
        await list_available_slots(store.repos(), tenant_id="demo-salon", day=TUESDAY, menu_id=menu.id, now=NOW)
    )
    assert slots["10:00"]["available"] is True
    assert slots["10:00"]["staff_ids"] == [free.id]

    only_busy = by_time(
        await list_available_slots(
            store.repos(), tenant_id="demo-salon", day=TUESDAY, menu_id=menu.id, staff_id=busy.id, now=NOW
        )
    )
    assert only_busy["10:00"]["available"] is False


@pytest.mark.asyncio
async def test_break_time_is_never_offered() -> None:
    store = FakeStore(make_settings(break_time_start=time(12, 0), break_time_end=time(13, 0)))
    menu = make_menu(duration=30)
    store.add(menu)
    slots = by_time(
        await list_available_slots(store.repos(), tenant_id="demo-salon", day=TUESDAY, menu_id=menu.id, now=NOW)
    )
    assert slots["11:30"]["available"] is True
    assert slots["12:00"]["available"] is False
    assert slots["12:30"]["available"] is False
    assert slots["13:00"]["available"] is True


@pytest.mark.asyncio
async def test_closed_past_and_out_of_window_days_have_no_slots(store: FakeStore) -> None:
    menu = make_menu()
    store.add(menu)
    for day in (SUNDAY, NOW.date() - timedelta(days=1), NOW.date() + timedelta(days=120)):
        assert await list_available_slots(store.repos(), tenant_id="demo-salon", day=day, menu_id=menu.id, now=NOW) == []


@pytest.mark.asyncio
async def test_today_slots_before_now_are_unavailable(store: FakeStore) -> None:
    menu = make_menu(duration=60)
    store.add(menu)
    now = datetime.combine(NOW.date(), time(11, 10))
    slots = by_time(
        await list_available_slots(store.repos(), tenant_id="demo-salon", day=NOW.date(), menu_id=menu.id, now=now)
    )
    assert slots["11:00"]["available"] is False
    assert slots["11:30"]["available"] is True


@pytest.mark.asyncio
async def test_unknown_menu_or_staff(store: FakeStore) -> None:
    menu = make_menu()
    store.add(menu)
    with pytest.raises(MenuNotFoundError):
        await list_available_slots(store.repos(), tenant_id="demo-salon", day=TUESDAY, menu_id="missing", now=NOW)
    with pytest.raises(StaffNotFoundError):
        await list_available_slots(
            store.repos(), tenant_id="demo-salon", day=TUESDAY, menu_id=menu.id, staff_id="missing", now=NOW
        )

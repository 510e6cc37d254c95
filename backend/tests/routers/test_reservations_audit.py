import uuid
from datetime import time
from typing import Any, cast

import pytest
from fakes import TUESDAY, make_menu, make_reservation
from fastapi import HTTPException
from salon_reserve.domain.actors import Actor
from salon_reserve.domain.errors import IllegalTransitionError, SlotConflictError
from salon_reserve.models import Reservation, ReservationStatus, UserRole
from salon_reserve.routers import reservations as router
from salon_reserve.schemas import Envelope, ReservationCreate, ReservationUpdate
from sqlalchemy.ext.asyncio import AsyncSession

CUSTOMER = Actor(user_id="user-1", role=UserRole.CUSTOMER)
ADMIN = Actor(user_id="admin-1", role=UserRole.ADMIN)


class DummySession:
    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        return self


def _reservation(status: ReservationStatus = ReservationStatus.PENDING) -> Reservation:
    return make_reservation(user_id=CUSTOMER.user_id, menu=make_menu(), start=time(14, 0), status=status)


def _create_payload() -> ReservationCreate:
    return ReservationCreate(reserved_date=TUESDAY, reserved_time=time(14, 0), menu_id=uuid.uuid4())


@pytest.fixture(autouse=True)
def _no_repositories(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(router, "build_repositories", lambda s: s)


@pytest.mark.asyncio
async def test_create_reservation_emits_audit(monkeypatch: pytest.MonkeyPatch) -> None:
    reservation = _reservation()

    async def fake_create(*args: object, **kwargs: object) -> Reservation:
        return reservation

    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(router.reservation_usecase, "create_reservation", fake_create)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    result: Envelope = await router.create_reservation(
        payload=_create_payload(),
        session=cast(AsyncSession, DummySession()),
        actor=CUSTOMER,
        tenant_id="demo-salon",
    )

    assert result.success is True
    assert result.data.id == reservation.id
    assert len(calls) == 1
    assert calls[0]["action"] == "reservation.created"
    assert calls[0]["initiator"] == "customer"
    assert calls[0]["reservation"] is reservation
    assert calls[0]["actor_id"] == CUSTOMER.user_id


@pytest.mark.asyncio
async def test_create_conflict_maps_to_409(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_create(*args: object, **kwargs: object) -> Reservation:
        raise SlotConflictError("この時間は既に予約済みです")

    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(router.reservation_usecase, "create_reservation", fake_create)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(
            payload=_create_payload(),
            session=cast(AsyncSession, DummySession()),
            actor=CUSTOMER,
            tenant_id="demo-salon",
        )
    assert excinfo.value.status_code == 409
    assert excinfo.value.detail == {"error": "この時間は既に予約済みです", "code": "TIME_SLOT_CONFLICT"}
    assert calls == []


@pytest.mark.asyncio
async def test_update_status_change_is_audited_as_status_change(monkeypatch: pytest.MonkeyPatch) -> None:
    reservation = _reservation(ReservationStatus.COMPLETED)
    seen: dict[str, Any] = {}

    async def fake_update(*args: object, **kwargs: Any) -> tuple[Reservation, ReservationStatus]:
        seen.update(kwargs)
        return reservation, ReservationStatus.CONFIRMED

    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(router.reservation_usecase, "update_reservation", fake_update)
    monkeypatch.setattr(router, "emit_audit_log", lambda **kwargs: calls.append(kwargs))

    await router.update_reservation(
        payload=ReservationUpdate(status=ReservationStatus.COMPLETED),
        reservation_id=uuid.UUID(reservation.id),
        if_match='W/"3"',
        session=cast(AsyncSession, DummySession()),
        actor=ADMIN,
        tenant_id="demo-salon",
    )
    assert seen["expected_version"] == 3
    assert seen["changes"].status == ReservationStatus.COMPLETED
    assert calls[0]["action"] == "reservation.status_changed"
    assert calls[0]["initiator"] == "admin"
    assert calls[0]["status_from"] == ReservationStatus.CONFIRMED
    assert list(calls[0]["changed_fields"]) == ["status"]


@pytest.mark.asyncio
async def test_illegal_transition_maps_to_400(monkeypatch: pytest.MonkeyPatch) -> None:
    async def fake_update(*args: object, **kwargs: object) -> tuple[Reservation, ReservationStatus]:
        raise IllegalTransitionError(
            "不正な状態遷移です: 完了済みの予約は保留状態に戻せません",
            current=ReservationStatus.COMPLETED,
            requested=ReservationStatus.PENDING,
        )

    monkeypatch.setattr(router.reservation_usecase, "update_reservation", fake_update)

    with pytest.raises(HTTPException) as excinfo:
        await router.update_reservation(
            payload=ReservationUpdate(status=ReservationStatus.PENDING),
            reservation_id=uuid.uuid4(),
            if_match=None,
            session=cast(AsyncSession, DummySession()),
            actor=ADMIN,
            tenant_id="demo-salon",
        )
    assert excinfo.value.status_code == 400
    assert excinfo.value.detail["code"] == "ILLEGAL_STATUS_TRANSITION"


@pytest.mark.asyncio
async def test_cancel_reservation_log_failure_returns_500(monkeypatch: pytest.MonkeyPatch) -> None:
    reservation = _reservation(ReservationStatus.CANCELLED)

    async def fake_cancel(*args: object, **kwargs: object) -> tuple[Reservation, ReservationStatus]:
        return reservation, ReservationStatus.PENDING

    def fake_emit(**kwargs: Any) -> None:
        raise RuntimeError("fail log")

    monkeypatch.setattr(router.reservation_usecase, "cancel_reservation", fake_cancel)
    monkeypatch.setattr(router, "emit_audit_log", fake_emit)

    with pytest.raises(HTTPException) as excinfo:
        await router.cancel_reservation(
            reservation_id=uuid.UUID(reservation.id),
            session=cast(AsyncSession, DummySession()),
            actor=CUSTOMER,
            tenant_id="demo-salon",
        )
    assert excinfo.value.status_code == 500

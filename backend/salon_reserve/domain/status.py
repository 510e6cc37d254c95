from __future__ import annotations

from typing import Mapping

from ..models import ReservationStatus, UserRole
from .errors import ForbiddenError, IllegalTransitionError, ImmutableReservationError

S = ReservationStatus

LEGAL_TRANSITIONS: Mapping[ReservationStatus, frozenset[ReservationStatus]] = {
    S.PENDING: frozenset({S.CONFIRMED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.COMPLETED, S.CANCELLED, S.NO_SHOW}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
    S.NO_SHOW: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in LEGAL_TRANSITIONS.items() if not targets)
EDITABLE_STATUSES = frozenset({S.PENDING, S.CONFIRMED})

_SOURCE_LABELS = {
    S.PENDING: "保留中",
    S.CONFIRMED: "確定済み",
    S.COMPLETED: "完了済み",
    S.CANCELLED: "キャンセル済み",
    S.NO_SHOW: "無断キャンセル",
}

_TARGET_PHRASES = {
    S.PENDING: "保留状態に戻せません",
    S.CONFIRMED: "確定状態に戻せません",
    S.COMPLETED: "完了状態にできません",
    S.CANCELLED: "キャンセルできません",
    S.NO_SHOW: "無断キャンセルにできません",
}

PERMISSION_DENIED = "この操作を実行する権限がありません"


def is_legal(current: ReservationStatus, requested: ReservationStatus) -> bool:
    return requested in LEGAL_TRANSITIONS[current]


def check_transition(current: ReservationStatus, requested: ReservationStatus) -> None:
    if is_legal(current, requested):
        return
    detail = f"{_SOURCE_LABELS[current]}の予約は{_TARGET_PHRASES[requested]}"
    raise IllegalTransitionError(f"不正な状態遷移です: {detail}", current=current, requested=requested)


def ensure_editable(status: ReservationStatus) -> None:
    if status not in EDITABLE_STATUSES:
        raise ImmutableReservationError(f"{_SOURCE_LABELS[status]}の予約は編集できません")


def ensure_deletable(status: ReservationStatus) -> None:
    if status not in EDITABLE_STATUSES:
        raise ImmutableReservationError(f"{_SOURCE_LABELS[status]}の予約は削除できません")


def is_admin(role: UserRole) -> bool:
    return role in (UserRole.ADMIN, UserRole.SUPER_ADMIN)


def ensure_may_change_status(role: UserRole, *, is_owner: bool, requested: ReservationStatus) -> None:
    """Admins may request any transition; owners may only cancel their own reservation."""
    if is_admin(role):
        return
    if is_owner and requested == S.CANCELLED:
        return
    raise ForbiddenError(PERMISSION_DENIED)

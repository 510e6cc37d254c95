from __future__ import annotations

import json
import logging
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Literal, Optional

from .request_id import get_request_id

if TYPE_CHECKING:
    from ..models import Reservation, ReservationStatus

AuditAction = Literal[
    "reservation.created",
    "reservation.updated",
    "reservation.status_changed",
    "reservation.cancelled",
]
AuditInitiator = Literal["customer", "admin"]


def _audit_handler_logger() -> logging.Logger:
    # One JSON object per line, kept out of the root handlers.
    logger = logging.getLogger("audit")
    logger.setLevel(logging.INFO)
    if not logger.handlers:
        stream = logging.StreamHandler()
        stream.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(stream)
    logger.propagate = False
    return logger


_audit_logger = _audit_handler_logger()


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, time):
        return value.strftime("%H:%M")
    if isinstance(value, date):
        return value.isoformat()
    return value


def build_audit_record(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    reservation: "Reservation",
    status_from: Optional["ReservationStatus"] = None,
    actor_id: Optional[str] = None,
    changed_fields: Iterable[str] = (),
) -> dict[str, Any]:
    """Flatten a reservation mutation into the audit line; keys with no value are left out."""
    record: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "action": action,
        "initiator": initiator,
        "actor_id": actor_id,
        "request_id": get_request_id(),
        "tenant_id": reservation.tenant_id,
        "reservation_id": reservation.id,
        "user_id": reservation.user_id,
        "staff_id": reservation.staff_id,
        "menu_id": reservation.menu_id,
        "reserved_date": reservation.reserved_date,
        "reserved_time": reservation.reserved_time,
        "status_from": status_from,
        "status_to": reservation.status,
        "version": reservation.version,
        "changed_fields": sorted(changed_fields) or None,
    }
    return {key: _plain(value) for key, value in record.items() if value is not None}


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    reservation: "Reservation",
    status_from: Optional["ReservationStatus"] = None,
    actor_id: Optional[str] = None,
    changed_fields: Iterable[str] = (),
) -> None:
    """Write one audit line. Raises RuntimeError when the line cannot be written."""
    record = build_audit_record(
        action=action,
        initiator=initiator,
        reservation=reservation,
        status_from=status_from,
        actor_id=actor_id,
        changed_fields=changed_fields,
    )
    try:
        _audit_logger.info(json.dumps(record, ensure_ascii=False, default=str))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc

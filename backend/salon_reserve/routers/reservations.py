import logging
import re
from typing import Iterable, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Path, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_actor, get_session, get_tenant_id
from ..domain.actors import Actor
from ..domain.errors import DomainError
from ..infrastructure.repositories import build_repositories
from ..models import Reservation, ReservationStatus
from ..schemas import Envelope, ReservationCreate, ReservationRead, ReservationUpdate
from ..usecases import reservations as reservation_usecase
from ..utils.audit_log import AuditAction, emit_audit_log
from .errors import audit_failed, http_error, integrity_conflict, validation_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reservations", tags=["reservations"])

_ETAG = re.compile(r'^(?:W/)?"?(\d+)"?$')


def _extract_version(if_match: Optional[str], payload: Optional[ReservationUpdate]) -> Optional[int]:
    """Expected version from If-Match (preferred) or the body; None skips the check."""
    if if_match is not None:
        match = _ETAG.match(if_match.strip())
        if match is None:
            raise validation_error("If-Match ヘッダーの形式が不正です")
        version = int(match.group(1))
        if version < 1:
            raise validation_error("バージョンは1以上で指定してください")
        return version
    if payload is None or payload.version is None:
        return None
    if payload.version < 1:
        raise validation_error("バージョンは1以上で指定してください")
    return payload.version


def _audit(
    action: AuditAction,
    actor: Actor,
    reservation: Reservation,
    *,
    status_from: Optional[ReservationStatus],
    changed_fields: Iterable[str] = (),
) -> None:
    try:
        emit_audit_log(
            action=action,
            initiator="admin" if actor.is_admin else "customer",
            reservation=reservation,
            status_from=status_from,
            actor_id=actor.user_id,
            changed_fields=changed_fields,
        )
    except RuntimeError as exc:
        logger.error("audit log failed for reservation %s: %s", reservation.id, exc)
        raise audit_failed() from exc


@router.post("", response_model=Envelope[ReservationRead], status_code=status.HTTP_201_CREATED)
async def create_reservation(
    payload: ReservationCreate,
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[ReservationRead]:
    try:
        async with session.begin():
            reservation = await reservation_usecase.create_reservation(
                build_repositories(session),
                actor=actor,
                tenant_id=tenant_id,
                menu_id=str(payload.menu_id),
                reserved_date=payload.reserved_date,
                reserved_time=payload.reserved_time,
                staff_id=str(payload.staff_id) if payload.staff_id else None,
                notes=payload.notes,
                user_id=str(payload.user_id) if payload.user_id else None,
            )
    except DomainError as exc:
        raise http_error(exc) from exc
    except IntegrityError as exc:
        raise integrity_conflict(exc) from exc

    _audit("reservation.created", actor, reservation, status_from=None)
    return Envelope(data=ReservationRead.from_db(reservation))


@router.get("", response_model=Envelope[List[ReservationRead]])
async def list_my_reservations(
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
) -> Envelope[List[ReservationRead]]:
    rows = await reservation_usecase.list_user_reservations(build_repositories(session), user_id=actor.user_id)
    return Envelope(data=[ReservationRead.from_db(row) for row in rows])


@router.get("/{reservation_id}", response_model=Envelope[ReservationRead])
async def get_reservation(
    reservation_id: UUID = Path(...),
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[ReservationRead]:
    try:
        reservation = await reservation_usecase.get_reservation(
            build_repositories(session),
            actor=actor,
            tenant_id=tenant_id,
            reservation_id=str(reservation_id),
        )
    except DomainError as exc:
        raise http_error(exc) from exc
    return Envelope(data=ReservationRead.from_db(reservation))


@router.patch("/{reservation_id}", response_model=Envelope[ReservationRead])
async def update_reservation(
    payload: ReservationUpdate,
    reservation_id: UUID = Path(...),
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[ReservationRead]:
    expected_version = _extract_version(if_match, payload)
    changes = reservation_usecase.ReservationChanges(
        status=payload.status,
        reserved_date=payload.reserved_date,
        reserved_time=payload.reserved_time,
        menu_id=str(payload.menu_id) if payload.menu_id else None,
        staff_id=str(payload.staff_id) if payload.staff_id else None,
        notes=payload.notes,
    )
    try:
        async with session.begin():
            reservation, previous_status = await reservation_usecase.update_reservation(
                build_repositories(session),
                actor=actor,
                tenant_id=tenant_id,
                reservation_id=str(reservation_id),
                changes=changes,
                expected_version=expected_version,
            )
    except DomainError as exc:
        raise http_error(exc) from exc
    except IntegrityError as exc:
        raise integrity_conflict(exc) from exc

    action: AuditAction = (
        "reservation.status_changed" if reservation.status != previous_status else "reservation.updated"
    )
    changed = payload.model_dump(exclude_unset=True, exclude={"version"}).keys()
    _audit(action, actor, reservation, status_from=previous_status, changed_fields=changed)
    return Envelope(data=ReservationRead.from_db(reservation))


@router.delete("/{reservation_id}", response_model=Envelope[ReservationRead])
async def cancel_reservation(
    reservation_id: UUID = Path(...),
    session: AsyncSession = Depends(get_session),
    actor: Actor = Depends(get_current_actor),
    tenant_id: str = Depends(get_tenant_id),
) -> Envelope[ReservationRead]:
    try:
        async with session.begin():
            reservation, previous_status = await reservation_usecase.cancel_reservation(
                build_repositories(session),
                actor=actor,
                tenant_id=tenant_id,
                reservation_id=str(reservation_id),
            )
    except DomainError as exc:
        raise http_error(exc) from exc

    _audit("reservation.cancelled", actor, reservation, status_from=previous_status)
    return Envelope(data=ReservationRead.from_db(reservation))

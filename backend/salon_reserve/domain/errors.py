from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..models import ReservationStatus


class DomainError(Exception):
    """Base class for rule violations. Each subclass carries a stable code and HTTP status."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    code = "VALIDATION_ERROR"
    status_code = 400


class SlotConflictError(DomainError):
    code = "TIME_SLOT_CONFLICT"
    status_code = 409


class StaffUnavailableError(SlotConflictError):
    code = "STAFF_UNAVAILABLE"


class DuplicateReservationError(SlotConflictError):
    code = "DUPLICATE_RESERVATION"


class VersionConflictError(DomainError):
    code = "VERSION_CONFLICT"
    status_code = 409


class IllegalTransitionError(DomainError):
    code = "ILLEGAL_STATUS_TRANSITION"
    status_code = 400

    def __init__(self, message: str, *, current: "ReservationStatus", requested: "ReservationStatus") -> None:
        super().__init__(message)
        self.current = current
        self.requested = requested


class ImmutableReservationError(DomainError):
    code = "IMMUTABLE_RESERVATION"
    status_code = 400


class CancelNotAllowedError(DomainError):
    code = "CANCELLATION_DEADLINE_PASSED"
    status_code = 400


class NotFoundError(DomainError):
    code = "NOT_FOUND"
    status_code = 404


class MenuNotFoundError(NotFoundError):
    code = "MENU_NOT_FOUND"


class StaffNotFoundError(NotFoundError):
    code = "STAFF_NOT_FOUND"


class MenuInUseError(DomainError):
    code = "MENU_IN_USE"
    status_code = 409


class ForbiddenError(DomainError):
    code = "FORBIDDEN"
    status_code = 403


class BookingClosedError(ForbiddenError):
    code = "BOOKING_CLOSED"

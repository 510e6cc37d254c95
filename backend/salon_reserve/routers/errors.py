import logging

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError

from ..domain.errors import DomainError

logger = logging.getLogger(__name__)


def http_error(exc: DomainError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail={"error": exc.message, "code": exc.code})


def integrity_conflict(exc: IntegrityError) -> HTTPException:
    # A unique or FK constraint fired at flush: a concurrent writer got there first.
    logger.warning("integrity error mapped to 409: %s", exc.orig)
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail={"error": "この時間は既に予約済みです", "code": "TIME_SLOT_CONFLICT"},
    )


def validation_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": message, "code": "VALIDATION_ERROR"},
    )


def audit_failed() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": "audit log failed", "code": "INTERNAL_ERROR"},
    )

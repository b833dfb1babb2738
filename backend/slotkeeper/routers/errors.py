from fastapi import HTTPException, status

from ..domain.errors import (
    BookingModeError,
    DomainError,
    InvalidIntervalError,
    NotPendingError,
    ReservationNotFoundError,
    ResourceClosedError,
    ResourceNotFoundError,
    SelectionLimitError,
    SlotTakenError,
    VersionConflictError,
)

# Checked in order; subclasses map through their closest listed base.
_ERROR_TABLE: tuple[tuple[type[DomainError], int, str], ...] = (
    (SlotTakenError, status.HTTP_409_CONFLICT, "slot_taken"),
    (NotPendingError, status.HTTP_409_CONFLICT, "not_pending"),
    (VersionConflictError, status.HTTP_409_CONFLICT, "version_conflict"),
    (ResourceNotFoundError, status.HTTP_404_NOT_FOUND, "resource_not_found"),
    (ReservationNotFoundError, status.HTTP_404_NOT_FOUND, "reservation_not_found"),
    (ResourceClosedError, status.HTTP_422_UNPROCESSABLE_ENTITY, "resource_closed"),
    (InvalidIntervalError, status.HTTP_422_UNPROCESSABLE_ENTITY, "invalid_interval"),
    (SelectionLimitError, status.HTTP_422_UNPROCESSABLE_ENTITY, "selection_limit"),
    (BookingModeError, status.HTTP_422_UNPROCESSABLE_ENTITY, "booking_mode"),
)


def to_http(exc: DomainError) -> HTTPException:
    for error_cls, status_code, code in _ERROR_TABLE:
        if isinstance(exc, error_cls):
            return HTTPException(status_code=status_code, detail={"code": code, "message": str(exc)})
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"code": "domain_error", "message": str(exc)})


def audit_failed() -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="audit log failed")

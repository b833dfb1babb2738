"""
Reservation state machine.

pending(expires_at) -> confirmed | cancelled, confirmed -> cancelled.
A pending reservation whose hold has run out is *expired*; that state is never
stored, every reader derives it from (status, expires_at, now).
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import StrEnum
from typing import Optional

from ..models import Reservation, ReservationStatus
from .conflicts import as_utc, holds_time
from .errors import NotPendingError, VersionConflictError

HOLD_MINUTES = 60


class EffectiveStatus(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


def utc_naive(now: datetime) -> datetime:
    return as_utc(now).replace(tzinfo=None)


def is_expired(reservation: Reservation, now: datetime) -> bool:
    return (
        reservation.status == ReservationStatus.PENDING
        and reservation.expires_at is not None
        and not holds_time(reservation.status, reservation.expires_at, now)
    )


def effective_status(reservation: Reservation, now: datetime) -> EffectiveStatus:
    if is_expired(reservation, now):
        return EffectiveStatus.EXPIRED
    return EffectiveStatus(reservation.status.value)


def hold_expiry(now: datetime, hold_minutes: int = HOLD_MINUTES) -> datetime:
    return utc_naive(now) + timedelta(minutes=hold_minutes)


def initial_state(
    now: datetime, *, auto_confirm: bool, hold_minutes: int = HOLD_MINUTES
) -> tuple[ReservationStatus, Optional[datetime]]:
    if auto_confirm:
        return ReservationStatus.CONFIRMED, None
    return ReservationStatus.PENDING, hold_expiry(now, hold_minutes)


def check_version(reservation: Reservation, version: Optional[int]) -> None:
    if version is not None and reservation.version != version:
        raise VersionConflictError("version mismatch")


def _touch(reservation: Reservation, now: datetime) -> None:
    reservation.version += 1
    reservation.updated_at = utc_naive(now)


def confirm(reservation: Reservation, now: datetime) -> ReservationStatus:
    """Move a live hold to confirmed. Returns the status it came from."""
    if reservation.status != ReservationStatus.PENDING:
        raise NotPendingError(f"reservation is {reservation.status.value}")
    if is_expired(reservation, now):
        raise NotPendingError("reservation hold has expired")
    previous = reservation.status
    reservation.status = ReservationStatus.CONFIRMED
    reservation.expires_at = None
    _touch(reservation, now)
    return previous


def cancel(reservation: Reservation, now: datetime) -> Optional[ReservationStatus]:
    """Cancel from any live state. Returns the previous status, or None if already cancelled."""
    if reservation.status == ReservationStatus.CANCELLED:
        return None
    previous = reservation.status
    reservation.status = ReservationStatus.CANCELLED
    _touch(reservation, now)
    return previous


def needs_expiry_notice(reservation: Reservation, now: datetime) -> bool:
    return is_expired(reservation, now) and not reservation.expiry_notice_sent


def mark_expiry_notice_sent(reservation: Reservation, now: datetime) -> None:
    reservation.expiry_notice_sent = True
    reservation.updated_at = utc_naive(now)

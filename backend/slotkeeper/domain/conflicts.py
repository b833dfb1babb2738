from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

from ..models import Reservation, ReservationStatus
from .errors import InvalidIntervalError
from .intervals import overlaps, to_minutes


def as_utc(dt: datetime) -> datetime:
    """Stored timestamps are naive UTC; compare everything as aware UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def holds_time(status: ReservationStatus, expires_at: Optional[datetime], now: datetime) -> bool:
    """True if a reservation in this state still occupies its slot or day at `now`."""
    if status == ReservationStatus.CANCELLED:
        return False
    if status == ReservationStatus.PENDING and expires_at is not None:
        return as_utc(expires_at) > as_utc(now)
    return True


@dataclass(frozen=True)
class BookedInterval:
    start: int
    end: int
    status: ReservationStatus
    expires_at: Optional[datetime] = None
    reservation_id: Optional[int] = None

    @classmethod
    def from_reservation(cls, reservation: Reservation) -> "BookedInterval":
        if reservation.start_time is None or reservation.end_time is None:
            raise InvalidIntervalError("whole-day reservation has no time interval")
        return cls(
            start=to_minutes(reservation.start_time),
            end=to_minutes(reservation.end_time),
            status=reservation.status,
            expires_at=reservation.expires_at,
            reservation_id=reservation.id,
        )

    def is_active(self, now: datetime) -> bool:
        return holds_time(self.status, self.expires_at, now)


def blocking_window(existing: BookedInterval, min_buffer_minutes: int) -> tuple[int, int]:
    """
    Window a new reservation must stay out of: the existing reservation itself plus
    the lead buffer in front of it. Nothing is added after its end, so back-to-back
    booking right after an existing reservation is allowed.
    """
    return existing.start - min_buffer_minutes, existing.end


def is_slot_free(
    start: str | int,
    requested_duration: int,
    existing: Iterable[BookedInterval],
    min_buffer_minutes: int,
    *,
    now: datetime,
) -> bool:
    """
    `existing` must already be narrowed to the same resource and day.

    Rejects a candidate that overlaps an existing reservation, starts inside the
    buffer before one, or ends inside that buffer; all three reduce to a half-open
    overlap with `blocking_window`.
    """
    if requested_duration <= 0:
        raise InvalidIntervalError("requested duration must be positive")
    if min_buffer_minutes < 0:
        raise InvalidIntervalError("buffer must not be negative")
    new_start = start if isinstance(start, int) else to_minutes(start)
    new_end = new_start + requested_duration
    for booked in existing:
        if not booked.is_active(now):
            continue
        blocked_start, blocked_end = blocking_window(booked, min_buffer_minutes)
        if overlaps(new_start, new_end, blocked_start, blocked_end):
            return False
    return True

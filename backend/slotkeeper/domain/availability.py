from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Sequence

from ..models import Offering
from ..utils.time import local_minute_of_day, local_today
from .conflicts import BookedInterval, is_slot_free
from .errors import InvalidIntervalError
from .intervals import parse_clock
from .schedule import WeeklySchedule, slots_for_day

DEFAULT_MIN_SERVICE_MINUTES = 30


def min_buffer_minutes(offerings: Iterable[Offering], default: int = DEFAULT_MIN_SERVICE_MINUTES) -> int:
    """Shortest active offering; the fallback keeps the lead buffer from collapsing to zero."""
    durations = [o.duration_minutes for o in offerings if o.is_active]
    if not durations:
        return default
    return min(durations)


def requested_duration(offering_ids: Sequence[int], offerings: Iterable[Offering]) -> int:
    """Total duration of the requested offerings, all of which must be active on the resource."""
    if not offering_ids:
        raise InvalidIntervalError("at least one offering is required")
    by_id = {o.id: o for o in offerings if o.is_active}
    missing = [oid for oid in offering_ids if oid not in by_id]
    if missing:
        raise InvalidIntervalError(f"unknown or inactive offerings: {missing}")
    return sum(by_id[oid].duration_minutes for oid in offering_ids)


def drop_past_slots(slots: list[str], day: date, now: datetime) -> list[str]:
    if day != local_today(now):
        return slots
    current = local_minute_of_day(now)
    return [slot for slot in slots if parse_clock(slot) > current]


def available_slots(
    day: date,
    duration: int,
    schedule: WeeklySchedule,
    existing: Iterable[BookedInterval],
    offerings: Iterable[Offering],
    *,
    now: datetime,
    default_buffer: int = DEFAULT_MIN_SERVICE_MINUTES,
    blocked: bool = False,
) -> list[str]:
    if duration <= 0:
        raise InvalidIntervalError("requested duration must be positive")
    if blocked or day < local_today(now):
        return []
    candidates = slots_for_day(schedule, day)
    if not candidates:
        return []
    buffer = min_buffer_minutes(offerings, default_buffer)
    booked = [b for b in existing if b.is_active(now)]
    free = [slot for slot in candidates if is_slot_free(slot, duration, booked, buffer, now=now)]
    return drop_past_slots(free, day, now)

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Collection, Iterable, Sequence

from ..models import Reservation
from ..utils.time import local_today
from .conflicts import holds_time
from .errors import InvalidIntervalError, SelectionLimitError

MAX_SELECTED_DATES = 3
MAX_CALENDAR_SPAN_DAYS = 62


def occupied_days(reservations: Iterable[Reservation], now: datetime) -> set[date]:
    return {r.day for r in reservations if holds_time(r.status, r.expires_at, now)}


def is_date_selectable(
    day: date,
    existing: Iterable[Reservation],
    blocked_days: Collection[date],
    *,
    now: datetime,
) -> bool:
    if day < local_today(now):
        return False
    if day in blocked_days:
        return False
    return day not in occupied_days((r for r in existing if r.day == day), now)


def validate_selection(days: Sequence[date], limit: int = MAX_SELECTED_DATES) -> list[date]:
    """Distinct, ordered days of one whole-day submission."""
    if not days:
        raise SelectionLimitError("select at least one date")
    unique = sorted(set(days))
    if len(unique) != len(days):
        raise SelectionLimitError("dates must not repeat")
    if len(unique) > limit:
        raise SelectionLimitError(f"at most {limit} dates can be reserved at once")
    return unique


def selectable_days(
    start: date,
    end: date,
    existing: Iterable[Reservation],
    blocked_days: Collection[date],
    *,
    now: datetime,
) -> list[date]:
    if end < start:
        raise InvalidIntervalError("end date must not be before start date")
    if (end - start).days > MAX_CALENDAR_SPAN_DAYS:
        raise InvalidIntervalError(f"date range is limited to {MAX_CALENDAR_SPAN_DAYS} days")
    taken = occupied_days(existing, now)
    today = local_today(now)
    days: list[date] = []
    current = start
    while current <= end:
        if current >= today and current not in taken and current not in blocked_days:
            days.append(current)
        current += timedelta(days=1)
    return days

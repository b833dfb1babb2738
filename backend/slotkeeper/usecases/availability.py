from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Sequence

from ..domain import availability, full_day
from ..domain.conflicts import BookedInterval
from ..domain.errors import BookingModeError, InvalidIntervalError
from ..domain.repositories import BlockedDateRepository, ReservationRepository, ResourceRepository
from ..models import ResourceKind
from .resources import load_resource, load_week


async def list_available_slots(
    resource_repo: ResourceRepository,
    res_repo: ReservationRepository,
    blocked_repo: BlockedDateRepository,
    *,
    resource_id: int,
    day: date,
    now: datetime,
    duration: Optional[int] = None,
    offering_ids: Optional[Sequence[int]] = None,
    default_buffer: int = availability.DEFAULT_MIN_SERVICE_MINUTES,
) -> list[str]:
    resource = await load_resource(resource_repo, resource_id)
    if resource.kind != ResourceKind.PROFESSIONAL:
        raise BookingModeError("resource is booked by whole days")
    offerings = await resource_repo.list_offerings(resource.id)
    if offering_ids:
        requested = availability.requested_duration(offering_ids, offerings)
    elif duration is not None:
        requested = duration
    else:
        raise InvalidIntervalError("either a duration or offering ids are required")

    week = await load_week(resource_repo, resource)
    blocked = await blocked_repo.is_blocked(resource.id, day)
    existing = [
        BookedInterval.from_reservation(r) for r in await res_repo.list_for_day(resource.id, day) if not r.whole_day
    ]
    return availability.available_slots(
        day,
        requested,
        week,
        existing,
        offerings,
        now=now,
        default_buffer=default_buffer,
        blocked=blocked,
    )


async def list_selectable_days(
    resource_repo: ResourceRepository,
    res_repo: ReservationRepository,
    blocked_repo: BlockedDateRepository,
    *,
    resource_id: int,
    start: date,
    end: date,
    now: datetime,
) -> list[date]:
    resource = await load_resource(resource_repo, resource_id)
    if resource.kind != ResourceKind.VENUE:
        raise BookingModeError("resource is booked by time slots")
    existing = await res_repo.list_for_range(resource.id, start, end)
    blocked = {b.day for b in await blocked_repo.list_for_resource(resource.id, start, end)}
    return full_day.selectable_days(start, end, existing, blocked, now=now)

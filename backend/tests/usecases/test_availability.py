from datetime import date, datetime, timezone

import pytest
from fakes import FakeBlockedDateRepo, FakeReservationRepo, FakeResourceRepo
from slotkeeper.domain.errors import BookingModeError, InvalidIntervalError, ResourceNotFoundError
from slotkeeper.models import ResourceKind
from slotkeeper.usecases import availability as uc

NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)
TUESDAY = date(2030, 1, 8)


def _repos(kind: ResourceKind = ResourceKind.PROFESSIONAL):
    resources = FakeResourceRepo()
    resource = resources.add(kind, granularity=30, hours={1: ("09:00", "12:00")})
    return resources, FakeReservationRepo(), FakeBlockedDateRepo(), resource


@pytest.mark.asyncio
async def test_slots_for_offerings() -> None:
    resources, reservations, blocked, resource = _repos()
    service = resources.add_offering(resource.id, 30)
    reservations.add(resource.id, TUESDAY, "10:00", "10:30")

    slots = await uc.list_available_slots(
        resources,
        reservations,
        blocked,
        resource_id=resource.id,
        day=TUESDAY,
        now=NOW,
        offering_ids=[service.id],
    )
    assert slots == ["09:00", "10:30", "11:00", "11:30"]


@pytest.mark.asyncio
async def test_slots_for_plain_duration_use_default_buffer() -> None:
    resources, reservations, blocked, resource = _repos()
    reservations.add(resource.id, TUESDAY, "11:00", "11:30")
    slots = await uc.list_available_slots(
        resources, reservations, blocked, resource_id=resource.id, day=TUESDAY, now=NOW, duration=60, default_buffer=30
    )
    # 10:00 would end at 11:00, inside the 30-minute lead buffer of 11:00
    assert slots == ["09:00", "09:30", "11:30"]


@pytest.mark.asyncio
async def test_blocked_day_has_no_slots() -> None:
    resources, reservations, blocked, resource = _repos()
    blocked.add(resource.id, TUESDAY)
    slots = await uc.list_available_slots(
        resources, reservations, blocked, resource_id=resource.id, day=TUESDAY, now=NOW, duration=30
    )
    assert slots == []


@pytest.mark.asyncio
async def test_slot_listing_errors() -> None:
    resources, reservations, blocked, resource = _repos()
    with pytest.raises(InvalidIntervalError):
        await uc.list_available_slots(resources, reservations, blocked, resource_id=resource.id, day=TUESDAY, now=NOW)
    with pytest.raises(ResourceNotFoundError):
        await uc.list_available_slots(resources, reservations, blocked, resource_id=99, day=TUESDAY, now=NOW, duration=30)

    venue_resources, venue_reservations, venue_blocked, venue = _repos(ResourceKind.VENUE)
    with pytest.raises(BookingModeError):
        await uc.list_available_slots(
            venue_resources, venue_reservations, venue_blocked, resource_id=venue.id, day=TUESDAY, now=NOW, duration=30
        )


@pytest.mark.asyncio
async def test_selectable_days_for_venue() -> None:
    resources, reservations, blocked, resource = _repos(ResourceKind.VENUE)
    reservations.add(resource.id, date(2030, 1, 9))
    blocked.add(resource.id, date(2030, 1, 10))
    days = await uc.list_selectable_days(
        resources, reservations, blocked, resource_id=resource.id, start=date(2030, 1, 7), end=date(2030, 1, 11), now=NOW
    )
    assert days == [date(2030, 1, 7), date(2030, 1, 8), date(2030, 1, 11)]

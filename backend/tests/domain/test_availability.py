from datetime import date, datetime, timedelta, timezone

import pytest
from slotkeeper.domain.availability import available_slots, drop_past_slots, min_buffer_minutes, requested_duration
from slotkeeper.domain.conflicts import BookedInterval
from slotkeeper.domain.errors import InvalidIntervalError
from slotkeeper.domain.schedule import DaySchedule, WeeklySchedule
from slotkeeper.models import Offering, ReservationStatus

NOW = datetime(2030, 1, 7, 8, 0, tzinfo=timezone.utc)  # Monday
TUESDAY = date(2030, 1, 8)

MORNING = WeeklySchedule(
    days={1: DaySchedule(is_open=True, opens_at="09:00", closes_at="12:00")},
    granularity=30,
)


def offering(oid: int, duration: int, active: bool = True) -> Offering:
    return Offering(id=oid, resource_id=1, name=f"o{oid}", duration_minutes=duration, is_active=active)


def test_end_to_end_slot_listing() -> None:
    existing = [BookedInterval(start=600, end=630, status=ReservationStatus.CONFIRMED)]
    slots = available_slots(TUESDAY, 30, MORNING, existing, [offering(1, 30)], now=NOW)
    assert slots == ["09:00", "10:30", "11:00", "11:30"]


def test_no_existing_reservations_returns_every_slot() -> None:
    slots = available_slots(TUESDAY, 30, MORNING, [], [offering(1, 30)], now=NOW)
    assert slots == ["09:00", "09:30", "10:00", "10:30", "11:00", "11:30"]


def test_closed_day_and_blocked_day_are_empty() -> None:
    assert available_slots(date(2030, 1, 9), 30, MORNING, [], [], now=NOW) == []
    assert available_slots(TUESDAY, 30, MORNING, [], [], now=NOW, blocked=True) == []


def test_past_day_is_empty() -> None:
    assert available_slots(TUESDAY, 30, MORNING, [], [], now=NOW + timedelta(days=2)) == []


def test_today_drops_started_slots() -> None:
    now = datetime(2030, 1, 8, 14, 5, tzinfo=timezone.utc)
    week = WeeklySchedule(days={1: DaySchedule(is_open=True, opens_at="09:00", closes_at="18:00")}, granularity=10)
    slots = available_slots(TUESDAY, 30, week, [], [], now=now)
    assert "14:00" not in slots
    assert "14:10" in slots
    assert slots[0] == "14:10"


def test_slot_starting_right_now_is_dropped() -> None:
    now = datetime(2030, 1, 8, 14, 10, tzinfo=timezone.utc)
    slots = drop_past_slots(["14:00", "14:10", "14:20"], TUESDAY, now)
    assert slots == ["14:20"]


def test_drop_past_slots_leaves_other_days_alone() -> None:
    assert drop_past_slots(["09:00"], TUESDAY, NOW) == ["09:00"]


def test_expired_hold_frees_its_slot() -> None:
    lapsed = NOW.replace(tzinfo=None) - timedelta(seconds=1)
    existing = [BookedInterval(start=600, end=630, status=ReservationStatus.PENDING, expires_at=lapsed)]
    slots = available_slots(TUESDAY, 30, MORNING, existing, [offering(1, 30)], now=NOW)
    assert "10:00" in slots


def test_buffer_comes_from_shortest_active_offering() -> None:
    assert min_buffer_minutes([offering(1, 45), offering(2, 20), offering(3, 10, active=False)]) == 20
    assert min_buffer_minutes([], default=30) == 30


def test_requested_duration_sums_selected_offerings() -> None:
    offerings = [offering(1, 30), offering(2, 15)]
    assert requested_duration([1, 2], offerings) == 45


def test_requested_duration_rejects_inactive_or_unknown() -> None:
    offerings = [offering(1, 30), offering(2, 15, active=False)]
    with pytest.raises(InvalidIntervalError):
        requested_duration([2], offerings)
    with pytest.raises(InvalidIntervalError):
        requested_duration([9], offerings)
    with pytest.raises(InvalidIntervalError):
        requested_duration([], offerings)

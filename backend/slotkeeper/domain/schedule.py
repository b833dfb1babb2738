from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Mapping

from .errors import InvalidIntervalError, ScheduleError
from .intervals import format_clock, parse_clock

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class DaySchedule:
    is_open: bool
    opens_at: str
    closes_at: str

    def validate(self) -> None:
        opens = parse_clock(self.opens_at)
        closes = parse_clock(self.closes_at)
        if self.is_open and opens >= closes:
            raise ScheduleError(f"opening time {self.opens_at} must be before closing time {self.closes_at}")


CLOSED_DAY = DaySchedule(is_open=False, opens_at="09:00", closes_at="18:00")


@dataclass(frozen=True)
class WeeklySchedule:
    days: Mapping[int, DaySchedule]
    granularity: int
    break_minutes: int = 0

    def validate(self) -> None:
        if self.granularity <= 0:
            raise ScheduleError("slot granularity must be positive")
        if self.break_minutes < 0:
            raise ScheduleError("break between slots must not be negative")
        for weekday, day in self.days.items():
            if weekday not in range(7):
                raise ScheduleError(f"unknown weekday index {weekday}")
            day.validate()

    def for_day(self, day: date) -> DaySchedule:
        return self.days.get(day.weekday(), CLOSED_DAY)


def default_week(granularity: int, break_minutes: int = 0) -> WeeklySchedule:
    weekday_hours = DaySchedule(is_open=True, opens_at="09:00", closes_at="18:00")
    return WeeklySchedule(
        days={
            0: weekday_hours,
            1: weekday_hours,
            2: weekday_hours,
            3: weekday_hours,
            4: weekday_hours,
            5: DaySchedule(is_open=True, opens_at="09:00", closes_at="14:00"),
            6: CLOSED_DAY,
        },
        granularity=granularity,
        break_minutes=break_minutes,
    )


@dataclass
class ScheduleRow:
    """Plain (weekday, is_open, opens_at, closes_at) tuple as read from the store."""

    weekday: int
    is_open: bool
    opens_at: str
    closes_at: str


def build_week(rows: Iterable[ScheduleRow], *, granularity: int, break_minutes: int) -> WeeklySchedule:
    rows = list(rows)
    if not rows:
        return default_week(granularity, break_minutes)
    days = {
        row.weekday: DaySchedule(is_open=row.is_open, opens_at=row.opens_at, closes_at=row.closes_at) for row in rows
    }
    return WeeklySchedule(days=days, granularity=granularity, break_minutes=break_minutes)


def generate_slots(opens_at: str, closes_at: str, granularity: int, break_minutes: int = 0) -> list[str]:
    """
    Candidate start times from opening until (excluding) closing.
    Trailing partial slots are kept: only the start time has to fall before closing.
    """
    if granularity <= 0:
        raise InvalidIntervalError("granularity must be a positive number of minutes")
    if break_minutes < 0:
        raise InvalidIntervalError("break must not be negative")
    current = parse_clock(opens_at)
    end = parse_clock(closes_at)
    step = granularity + break_minutes
    slots: list[str] = []
    while current < end:
        slots.append(format_clock(current))
        current += step
    return slots


def slots_for_day(schedule: WeeklySchedule, day: date) -> list[str]:
    entry = schedule.for_day(day)
    if not entry.is_open:
        return []
    return generate_slots(entry.opens_at, entry.closes_at, schedule.granularity, schedule.break_minutes)

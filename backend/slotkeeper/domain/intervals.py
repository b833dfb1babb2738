from datetime import time

from .errors import InvalidIntervalError

MINUTES_PER_DAY = 24 * 60


def parse_clock(value: str) -> int:
    """Convert a wall-clock "HH:MM" string into minutes since midnight."""
    parts = value.split(":") if isinstance(value, str) else []
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise InvalidIntervalError(f"malformed clock time: {value!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if hours > 23 or minutes > 59:
        raise InvalidIntervalError(f"clock time out of range: {value!r}")
    return hours * 60 + minutes


def format_clock(minutes: int) -> str:
    # End times may run past midnight ("24:30"); they are only ever compared, never parsed back.
    if minutes < 0:
        raise InvalidIntervalError("negative minute offset")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def to_minutes(value: time | str) -> int:
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    return parse_clock(value)


def to_time(minutes: int) -> time:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise InvalidIntervalError("interval must end within the same day")
    return time(minutes // 60, minutes % 60)


def end_clock(start: time | str, duration_minutes: int) -> str:
    if duration_minutes < 0:
        raise InvalidIntervalError("duration must not be negative")
    return format_clock(to_minutes(start) + duration_minutes)


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """Half-open intersection test: [a_start, a_end) and [b_start, b_end)."""
    return a_start < b_end and a_end > b_start

from datetime import date, datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

from ..config import get_settings

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_tz() -> ZoneInfo:
    return ZoneInfo(get_settings().local_timezone)


def utc_naive_to_local(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc).astimezone(local_tz())


def local_today(now: datetime) -> date:
    """Calendar day of `now` on the resources' wall clock."""
    return now.astimezone(local_tz()).date()


def local_minute_of_day(now: datetime) -> int:
    local = now.astimezone(local_tz())
    return local.hour * 60 + local.minute

from __future__ import annotations

from datetime import date, datetime, time
from zoneinfo import ZoneInfo


DEFAULT_TZ = "Europe/Oslo"
OVERDRIVE_EVENING = time(21, 0)


def now_local(tz_name: str = DEFAULT_TZ) -> datetime:
    return datetime.now(tz=ZoneInfo(tz_name))


def at_time_of_day(dt: datetime, tod: time) -> datetime:
    return dt.replace(hour=tod.hour, minute=tod.minute, second=0, microsecond=0)


def is_at_or_after(now: datetime, threshold: time | None) -> bool:
    if threshold is None:
        return False
    return (now.hour, now.minute) >= (threshold.hour, threshold.minute)


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def days_between(earlier: date, later: date) -> int:
    return (later - earlier).days


def in_zone_of(dt: datetime, ref: datetime) -> datetime:
    if dt.tzinfo is None or ref.tzinfo is None:
        return dt
    return dt.astimezone(ref.tzinfo)

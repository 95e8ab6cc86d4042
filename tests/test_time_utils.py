from datetime import date, datetime, time, timezone
from zoneinfo import ZoneInfo

from pulse_behavior.time_utils import days_between, in_zone_of, is_at_or_after, month_key


def test_is_at_or_after_boundaries() -> None:
    tz = ZoneInfo("Europe/Oslo")
    assert is_at_or_after(datetime(2026, 2, 4, 21, 59, tzinfo=tz), time(22, 0)) is False
    assert is_at_or_after(datetime(2026, 2, 4, 22, 0, tzinfo=tz), time(22, 0)) is True
    assert is_at_or_after(datetime(2026, 2, 4, 23, 30, tzinfo=tz), time(22, 0)) is True


def test_absent_threshold_never_triggers() -> None:
    assert is_at_or_after(datetime(2026, 2, 4, 23, 59), None) is False


def test_days_between_crosses_month() -> None:
    assert days_between(date(2026, 1, 30), date(2026, 2, 2)) == 3
    assert days_between(date(2026, 2, 2), date(2026, 2, 2)) == 0


def test_month_key_is_zero_padded() -> None:
    assert month_key(date(2026, 3, 9)) == "2026-03"


def test_in_zone_of_converts_to_reference_zone() -> None:
    ref = datetime(2026, 3, 9, 12, 0, tzinfo=ZoneInfo("Europe/Oslo"))
    utc_late = datetime(2026, 3, 9, 23, 30, tzinfo=timezone.utc)
    assert in_zone_of(utc_late, ref).date() == date(2026, 3, 10)

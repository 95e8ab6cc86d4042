from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

import pytest

from pulse_behavior.behavior_packs import Energy, Mode
from pulse_behavior.config import Settings
from pulse_behavior.db import MemoryStateStore, SqliteStateStore
from pulse_behavior.engine import BehaviorEngine
from pulse_behavior.jobs_runner import run_roll_streaks
from pulse_behavior.messages import status_message, wind_down_message
from pulse_behavior.telegram_bot import CHECK_IN_USAGE, engine_for, parse_check_in_args, parse_minutes_arg


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


def test_status_message_without_check_in() -> None:
    engine = BehaviorEngine(MemoryStateStore(), clock=lambda: _dt(2026, 3, 10))
    text = status_message(engine.status())
    assert "Mixed mode" in text
    assert "Streak: 0 day(s)" in text
    assert "Grace days left this month: 2" in text
    assert "No check-in today" in text
    assert "Task cap: 5" in text


def test_status_message_shows_guards_late_in_bipolar_mode() -> None:
    engine = BehaviorEngine(MemoryStateStore(), clock=lambda: _dt(2026, 3, 10, 22, 15))
    engine.set_mode(Mode.BIPOLAR)
    engine.apply_check_in(-1, Energy.LOW)
    text = status_message(engine.status())
    assert "Bipolar mode" in text
    assert "mood -1" in text
    assert "wind-down time" in text
    assert "visuals dimmed" in text
    assert "confirmation" in text
    assert "Task cap: 2" in text


def test_crisis_line_only_for_bpd() -> None:
    engine = BehaviorEngine(MemoryStateStore(), clock=lambda: _dt(2026, 3, 10))
    assert "Crisis" not in status_message(engine.status())
    engine.set_mode(Mode.BPD)
    assert "Crisis" in status_message(engine.status())


def test_wind_down_message_mentions_confirmation_when_blocked() -> None:
    engine = BehaviorEngine(MemoryStateStore(), clock=lambda: _dt(2026, 3, 10, 22, 30))
    engine.set_mode(Mode.BIPOLAR)
    assert "confirmation" in wind_down_message(engine.compute())


def test_parse_check_in_args() -> None:
    assert parse_check_in_args(["-2", "low"]) == (-2, Energy.LOW)
    assert parse_check_in_args(["1", "Medium"]) == (1, Energy.MED)
    assert parse_check_in_args(["2", "HIGH"]) == (2, Energy.HIGH)


@pytest.mark.parametrize("args", [[], ["1"], ["x", "low"], ["1", "sleepy"], ["1", "low", "extra"]])
def test_parse_check_in_args_usage_errors(args: list[str]) -> None:
    with pytest.raises(ValueError, match="Usage"):
        parse_check_in_args(args)
    assert CHECK_IN_USAGE.startswith("Usage")


def test_parse_check_in_args_range_error() -> None:
    with pytest.raises(ValueError, match="between -2 and 2"):
        parse_check_in_args(["3", "low"])


def test_parse_minutes_arg() -> None:
    assert parse_minutes_arg([]) == 0
    assert parse_minutes_arg(["25"]) == 25
    assert parse_minutes_arg(["25m"]) == 25
    with pytest.raises(ValueError):
        parse_minutes_arg(["soon"])


def _bot_data(tmp_path: Path, now: list[datetime]) -> dict[str, Any]:
    settings = Settings(
        telegram_bot_token="x",
        database_path=tmp_path / "pulse.db",
        tz="Europe/Oslo",
        state_key="pulse.behavior.state",
        api_token=None,
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )
    return {"settings": settings, "store": SqliteStateStore(settings.database_path), "clock": lambda: now[0]}


def test_engine_for_keeps_users_apart(tmp_path: Path) -> None:
    bot_data = _bot_data(tmp_path, [_dt(2026, 3, 10)])
    engine_for(bot_data, 42).set_mode(Mode.ADHD)
    assert engine_for(bot_data, 7).get_mode() is Mode.DEFAULT
    assert engine_for(bot_data, 42).get_mode() is Mode.ADHD
    assert bot_data["store"].keys() == ["pulse.behavior.state:42", "pulse.behavior.state:7"]


def test_later_update_rolls_streak_in_running_bot(tmp_path: Path) -> None:
    now = [_dt(2026, 3, 2)]
    bot_data = _bot_data(tmp_path, now)
    engine_for(bot_data, 42).record_completion()

    now[0] = _dt(2026, 3, 5)
    status = engine_for(bot_data, 42).status()
    assert status.streak_days == 1
    assert status.grace_days_left == 0


def test_bot_update_keeps_grace_spent_by_roll_job(tmp_path: Path) -> None:
    now = [_dt(2026, 3, 2)]
    bot_data = _bot_data(tmp_path, now)
    settings = bot_data["settings"]
    engine_for(bot_data, 42).record_completion()

    assert run_roll_streaks(bot_data["store"], settings, now=_dt(2026, 3, 5, 3)) == 1

    now[0] = _dt(2026, 3, 5, 9)
    engine_for(bot_data, 42).record_completion()

    stored = BehaviorEngine(bot_data["store"], key="pulse.behavior.state:42", clock=lambda: now[0]).get_state()
    assert stored.grace_days_left == 0
    assert stored.streak_days == 2

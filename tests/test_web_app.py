from __future__ import annotations

from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from fastapi.testclient import TestClient

from pulse_behavior.behavior_packs import Mode
from pulse_behavior.config import Settings
from pulse_behavior.db import MemoryStateStore
from pulse_behavior.engine import BehaviorEngine
from pulse_behavior.web_app import build_web_app


def _dt(y: int, m: int, d: int, h: int = 10, minute: int = 0) -> datetime:
    return datetime(y, m, d, h, minute, tzinfo=ZoneInfo("Europe/Oslo"))


def _settings(api_token: str | None = None) -> Settings:
    return Settings(
        telegram_bot_token="",
        database_path=Path("unused.db"),
        tz="Europe/Oslo",
        state_key="pulse.behavior.state",
        api_token=api_token,
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )


def _client(now: datetime, api_token: str | None = None) -> tuple[TestClient, MemoryStateStore]:
    store = MemoryStateStore()
    app = build_web_app(store, _settings(api_token), clock=lambda: now)
    return TestClient(app), store


def test_fresh_user_state_and_policy() -> None:
    client, store = _client(_dt(2026, 3, 10))
    state = client.get("/api/alice/state").json()
    assert state["label"] == "Mixed"
    assert state["state"]["mode"] == "default"
    assert state["state"]["grace_days_left"] == 2

    policy = client.get("/api/alice/policy").json()
    assert policy["task_cap"] == 5
    assert policy["timer_min"] == 15
    assert policy["animations"] == "medium"
    assert "pulse.behavior.state:alice" in store.data


def test_check_in_updates_policy_and_streak() -> None:
    client, _ = _client(_dt(2026, 3, 10))
    body = client.post("/api/alice/checkin", json={"mood": -1, "energy": "low"}).json()
    assert body["streak_days"] == 1
    assert body["policy"]["task_cap"] == 4
    assert body["policy"]["timer_min"] == 13
    assert body["policy"]["animations"] == "low"
    assert body["check_in"] == {"date": "2026-03-10", "mood": -1, "energy": "low"}


def test_invalid_check_in_is_rejected() -> None:
    client, _ = _client(_dt(2026, 3, 10))
    assert client.post("/api/alice/checkin", json={"mood": 3, "energy": "low"}).status_code == 422
    assert client.post("/api/alice/checkin", json={"mood": 0, "energy": "sleepy"}).status_code == 422


def test_mode_switch_by_label() -> None:
    client, _ = _client(_dt(2026, 3, 10, 22, 30))
    body = client.post("/api/bob/mode", json={"mode": "Bipolar"}).json()
    assert body["label"] == "Bipolar"
    assert body["grace_days_left"] == 3
    assert body["policy"]["should_offer_wind_down"] is True
    assert body["policy"]["require_confirm_add_task"] is True
    assert client.post("/api/bob/mode", json={"mode": "Chaos"}).status_code == 422


def test_focus_and_completion_count_once_per_day() -> None:
    client, _ = _client(_dt(2026, 3, 10))
    client.post("/api/carol/focus", json={"minutes": 25})
    client.post("/api/carol/focus", json={})
    body = client.post("/api/carol/completion").json()
    assert body["focus_sessions_today"] == 2
    assert body["streak_days"] == 1


def test_roll_endpoint_is_safe_on_fresh_user() -> None:
    client, _ = _client(_dt(2026, 3, 10))
    body = client.post("/api/dave/roll").json()
    assert body["streak_days"] == 0
    assert body["grace_days_left"] == 2


def test_users_are_isolated() -> None:
    client, _ = _client(_dt(2026, 3, 10))
    client.post("/api/erin/mode", json={"mode": "ADHD"})
    assert client.get("/api/frank/status").json()["label"] == "Mixed"
    assert client.get("/api/erin/status").json()["label"] == "ADHD"


def test_token_required_when_configured() -> None:
    client, _ = _client(_dt(2026, 3, 10), api_token="secret")
    assert client.get("/api/alice/policy").status_code == 401
    assert client.get("/api/alice/policy", headers={"x-api-token": "secret"}).status_code == 200
    assert client.get("/api/alice/policy?token=secret").status_code == 200


def test_requests_read_rows_written_by_jobs_and_roll_streak() -> None:
    now = [_dt(2026, 3, 2)]
    store = MemoryStateStore()
    client = TestClient(build_web_app(store, _settings(), clock=lambda: now[0]))
    client.post("/api/alice/completion")

    now[0] = _dt(2026, 3, 5)
    body = client.get("/api/alice/status").json()
    assert body["grace_days_left"] == 0
    assert body["streak_days"] == 1

    other = BehaviorEngine(store, key="pulse.behavior.state:alice", clock=lambda: now[0])
    other.set_mode(Mode.BPD)
    assert client.get("/api/alice/status").json()["label"] == "BPD"

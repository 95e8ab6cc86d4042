from __future__ import annotations

import json
import logging
from datetime import date, datetime, timezone
from typing import Any

from pulse_behavior.behavior_packs import Energy, Mode
from pulse_behavior.models import MOOD_MAX, MOOD_MIN, CheckIn, EngineState

logger = logging.getLogger(__name__)

STATE_VERSION = 1

# camelCase keys written by the browser build of the app.
_LEGACY_KEYS = {
    "checkIn": "check_in",
    "focusSessionsToday": "focus_sessions_today",
    "lastFocusAt": "last_focus_at",
    "streakDays": "streak_days",
    "lastActivityDate": "last_activity_date",
    "graceDaysLeft": "grace_days_left",
    "graceSnapshotMonth": "grace_snapshot_month",
}

_ENERGY_ALIASES = {"medium": Energy.MED}


class StateDecodeError(ValueError):
    pass


def state_to_dict(state: EngineState) -> dict[str, Any]:
    check_in = None
    if state.check_in is not None:
        check_in = {
            "date": state.check_in.date.isoformat(),
            "mood": state.check_in.mood,
            "energy": state.check_in.energy.value,
        }
    return {
        "version": STATE_VERSION,
        "mode": state.mode.value,
        "check_in": check_in,
        "focus_sessions_today": state.focus_sessions_today,
        "last_focus_at": state.last_focus_at.isoformat() if state.last_focus_at else None,
        "streak_days": state.streak_days,
        "last_activity_date": state.last_activity_date.isoformat() if state.last_activity_date else None,
        "last_rolled_date": state.last_rolled_date.isoformat() if state.last_rolled_date else None,
        "grace_days_left": state.grace_days_left,
        "grace_snapshot_month": state.grace_snapshot_month,
    }


def encode_state(state: EngineState) -> str:
    return json.dumps(state_to_dict(state), ensure_ascii=False, sort_keys=True)


def _migrate_keys(data: dict[str, Any]) -> dict[str, Any]:
    out = dict(data)
    for legacy, current in _LEGACY_KEYS.items():
        if legacy in out and current not in out:
            out[current] = out.pop(legacy)
    return out


def _parse_datetime(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    raw = str(value)
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_date(value: Any) -> date | None:
    if value in (None, ""):
        return None
    return date.fromisoformat(str(value)[:10])


def _parse_month(value: Any) -> str:
    raw = str(value or "")
    year_str, month_str = raw.split("-", maxsplit=1)
    year, month = int(year_str), int(month_str)
    if not 1 <= month <= 12:
        raise StateDecodeError(f"invalid month {raw!r}")
    return f"{year:04d}-{month:02d}"


def _to_count(value: Any) -> int:
    if value is None:
        return 0
    return max(0, int(value))


def _parse_energy(value: Any) -> Energy:
    raw = str(value).strip().lower()
    if raw in _ENERGY_ALIASES:
        return _ENERGY_ALIASES[raw]
    return Energy(raw)


def _parse_check_in(value: Any) -> CheckIn | None:
    if not isinstance(value, dict):
        return None
    try:
        day = _parse_date(value.get("date"))
        mood = int(value.get("mood"))
        energy = _parse_energy(value.get("energy"))
    except (TypeError, ValueError, OverflowError):
        return None
    if day is None or not MOOD_MIN <= mood <= MOOD_MAX:
        return None
    return CheckIn(date=day, mood=mood, energy=energy)


def state_from_dict(data: dict[str, Any]) -> EngineState:
    data = _migrate_keys(data)
    try:
        mode = Mode(str(data.get("mode", Mode.DEFAULT.value)).strip().lower())
        month_raw = data.get("grace_snapshot_month")
        month = _parse_month(month_raw) if month_raw else ""
        return EngineState(
            mode=mode,
            check_in=_parse_check_in(data.get("check_in")),
            focus_sessions_today=_to_count(data.get("focus_sessions_today")),
            last_focus_at=_parse_datetime(data.get("last_focus_at")),
            streak_days=_to_count(data.get("streak_days")),
            last_activity_date=_parse_date(data.get("last_activity_date")),
            last_rolled_date=_parse_date(data.get("last_rolled_date")),
            grace_days_left=_to_count(data.get("grace_days_left")),
            grace_snapshot_month=month,
        )
    except (TypeError, ValueError, OverflowError) as exc:
        raise StateDecodeError(str(exc)) from exc


def decode_state(raw: str | None) -> EngineState | None:
    """Parse a stored payload; None means "no usable prior state".

    A payload without a grace snapshot month decodes with an empty month, so
    the monthly reset fires on the next access.
    """
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except (ValueError, RecursionError):
        logger.warning("stored engine state is not valid JSON; bootstrapping")
        return None
    if not isinstance(data, dict):
        logger.warning("stored engine state is not an object; bootstrapping")
        return None
    try:
        return state_from_dict(data)
    except StateDecodeError as exc:
        logger.warning("stored engine state rejected: %s", exc)
        return None

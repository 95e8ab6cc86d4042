from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from datetime import date, datetime
from typing import Any

from pulse_behavior.behavior_packs import AnimationLevel, Energy, Mode

MOOD_MIN = -2
MOOD_MAX = 2


@dataclass(frozen=True)
class CheckIn:
    date: date
    mood: int
    energy: Energy

    def is_for(self, day: date) -> bool:
        return self.date == day


@dataclass
class EngineState:
    mode: Mode
    focus_sessions_today: int
    streak_days: int
    grace_days_left: int
    grace_snapshot_month: str
    check_in: CheckIn | None = None
    last_focus_at: datetime | None = None
    last_activity_date: date | None = None
    last_rolled_date: date | None = None

    def copy(self) -> EngineState:
        return replace(self)


@dataclass(frozen=True)
class PolicySnapshot:
    mode: Mode
    task_cap: int
    timer_min: int
    animations: AnimationLevel
    sounds: bool
    show_crisis_button: bool
    evening_copy: bool
    should_offer_wind_down: bool
    should_dim_animations: bool
    require_confirm_add_task: bool

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["mode"] = self.mode.value
        data["animations"] = self.animations.value
        return data


@dataclass(frozen=True)
class EngineStatus:
    policy: PolicySnapshot
    label: str
    streak_days: int
    grace_days_left: int
    focus_sessions_today: int
    check_in: CheckIn | None

    def to_dict(self) -> dict[str, Any]:
        check_in = None
        if self.check_in is not None:
            check_in = {
                "date": self.check_in.date.isoformat(),
                "mood": self.check_in.mood,
                "energy": self.check_in.energy.value,
            }
        return {
            "policy": self.policy.to_dict(),
            "label": self.label,
            "streak_days": self.streak_days,
            "grace_days_left": self.grace_days_left,
            "focus_sessions_today": self.focus_sessions_today,
            "check_in": check_in,
        }

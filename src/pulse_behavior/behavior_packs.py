from __future__ import annotations

from dataclasses import dataclass
from datetime import time
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class Mode(str, Enum):
    DEFAULT = "default"
    ADHD = "adhd"
    BPD = "bpd"
    BIPOLAR = "bipolar"


class AnimationLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Energy(str, Enum):
    LOW = "low"
    MED = "med"
    HIGH = "high"


@dataclass(frozen=True)
class OverdriveGuard:
    max_focus_sessions_after_21: int
    dim_animations_after: time | None = None
    soft_block_new_tasks_after: time | None = None


@dataclass(frozen=True)
class ModePolicy:
    task_cap: int
    timer_min: int
    grace_days_per_month: int
    animation_level: AnimationLevel
    sounds_enabled: bool
    show_crisis_button: bool = False
    evening_copy_enabled: bool = False
    night_wind_down_time: time | None = None
    overdrive_guard: OverdriveGuard | None = None


# Mode defaults. Tune numbers here, not in the front ends.
BEHAVIOR_PACKS: Mapping[Mode, ModePolicy] = MappingProxyType(
    {
        Mode.DEFAULT: ModePolicy(
            task_cap=5,
            timer_min=15,
            grace_days_per_month=2,
            animation_level=AnimationLevel.MEDIUM,
            sounds_enabled=False,
        ),
        Mode.ADHD: ModePolicy(
            task_cap=3,
            timer_min=15,
            grace_days_per_month=2,
            animation_level=AnimationLevel.HIGH,
            sounds_enabled=True,
        ),
        Mode.BPD: ModePolicy(
            task_cap=2,
            timer_min=10,
            grace_days_per_month=4,
            animation_level=AnimationLevel.LOW,
            sounds_enabled=False,
            show_crisis_button=True,
            evening_copy_enabled=True,
        ),
        Mode.BIPOLAR: ModePolicy(
            task_cap=3,
            timer_min=12,
            grace_days_per_month=3,
            animation_level=AnimationLevel.LOW,
            sounds_enabled=False,
            evening_copy_enabled=True,
            night_wind_down_time=time(22, 0),
            overdrive_guard=OverdriveGuard(
                max_focus_sessions_after_21=3,
                dim_animations_after=time(21, 0),
                soft_block_new_tasks_after=time(22, 0),
            ),
        ),
    }
)

# User-facing labels from the settings screen. "Mixed" is the neutral profile.
MODE_LABELS: Mapping[Mode, str] = MappingProxyType(
    {
        Mode.DEFAULT: "Mixed",
        Mode.ADHD: "ADHD",
        Mode.BPD: "BPD",
        Mode.BIPOLAR: "Bipolar",
    }
)


def policy_for(mode: Mode, packs: Mapping[Mode, ModePolicy] = BEHAVIOR_PACKS) -> ModePolicy:
    return packs[mode]


def mode_from_label(label: str | None) -> Mode:
    value = (label or "").strip().lower()
    for mode, mode_label in MODE_LABELS.items():
        if value in {mode.value, mode_label.lower()}:
            return mode
    return Mode.DEFAULT


def label_for_mode(mode: Mode) -> str:
    return MODE_LABELS[mode]


def downgrade_animation(level: AnimationLevel) -> AnimationLevel:
    """One step down from high; anything else collapses to low."""
    if level is AnimationLevel.HIGH:
        return AnimationLevel.MEDIUM
    return AnimationLevel.LOW

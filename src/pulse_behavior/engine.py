from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from datetime import date, datetime
from zoneinfo import ZoneInfo

from pulse_behavior.behavior_packs import (
    BEHAVIOR_PACKS,
    Energy,
    Mode,
    ModePolicy,
    OverdriveGuard,
    downgrade_animation,
    label_for_mode,
)
from pulse_behavior.db import FallbackStateStore, StateStore
from pulse_behavior.models import MOOD_MAX, MOOD_MIN, CheckIn, EngineState, EngineStatus, PolicySnapshot
from pulse_behavior.state_codec import decode_state, encode_state
from pulse_behavior.time_utils import (
    DEFAULT_TZ,
    OVERDRIVE_EVENING,
    at_time_of_day,
    days_between,
    in_zone_of,
    is_at_or_after,
    month_key,
    now_local,
)

logger = logging.getLogger(__name__)

DEFAULT_STATE_KEY = "pulse.behavior.state"


class BehaviorEngine:
    """Owns the persisted adaptation state and derives the UI policy from it.

    Mutators are the only way the state changes; each one runs the lazy
    monthly/daily reset checks it depends on, then persists. ``compute`` never
    writes. Every public method holds the engine lock for its whole
    read-modify-write cycle.
    """

    def __init__(
        self,
        store: StateStore | None,
        key: str = DEFAULT_STATE_KEY,
        packs: Mapping[Mode, ModePolicy] = BEHAVIOR_PACKS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store if isinstance(store, FallbackStateStore) else FallbackStateStore(store)
        self.key = key
        self.packs = packs
        self._clock = clock or now_local
        self._lock = threading.RLock()

        now = self._now()
        with self._lock:
            loaded = decode_state(self.store.get(key))
            self._state = loaded if loaded is not None else self._bootstrap(now)
            self._monthly_grace_reset(now)
            self._daily_counters_reset(now)

    # ---------- public API ----------

    def get_mode(self) -> Mode:
        with self._lock:
            return self._state.mode

    def set_mode(self, mode: Mode | str, now: datetime | None = None) -> None:
        new_mode = Mode(mode)
        with self._lock:
            now = self._now(now)
            previous = self._state.mode
            self._state.mode = new_mode
            self._monthly_grace_reset(now, force=True)
            self._persist()
        logger.info("mode changed %s -> %s (%s)", previous.value, new_mode.value, self.key)

    def get_state(self, now: datetime | None = None) -> EngineState:
        with self._lock:
            now = self._now(now)
            self._monthly_grace_reset(now)
            self._daily_counters_reset(now)
            return self._state.copy()

    def apply_check_in(self, mood: int, energy: Energy | str, now: datetime | None = None) -> None:
        if isinstance(mood, bool) or not isinstance(mood, int) or not MOOD_MIN <= mood <= MOOD_MAX:
            raise ValueError(f"mood must be an integer in [{MOOD_MIN}, {MOOD_MAX}], got {mood!r}")
        level = Energy(energy)
        with self._lock:
            now = self._now(now)
            self._state.check_in = CheckIn(date=now.date(), mood=mood, energy=level)
            self._mark_activity(now)
            self._persist()
        logger.debug("check-in mood=%s energy=%s (%s)", mood, level.value, self.key)

    def record_focus_session(self, minutes: int = 0, now: datetime | None = None) -> None:
        with self._lock:
            now = self._now(now)
            self._daily_counters_reset(now)
            self._state.focus_sessions_today += 1
            self._state.last_focus_at = now
            self._mark_activity(now)
            self._persist()
            count = self._state.focus_sessions_today
        logger.debug("focus session %sm recorded, %s today (%s)", minutes, count, self.key)

    def record_completion(self, now: datetime | None = None) -> None:
        with self._lock:
            now = self._now(now)
            self._mark_activity(now)
            self._persist()

    def compute(self, now: datetime | None = None) -> PolicySnapshot:
        with self._lock:
            now = self._now(now)
            return compute_policy(self._state, now, self.packs)

    def roll_streak_if_needed(self, now: datetime | None = None) -> None:
        """Spend grace days for the days since the last qualifying activity.

        The streak itself is never reset here. Days beyond the grace quota
        leave ``streak_days`` frozen until the next qualifying activity.
        """
        with self._lock:
            now = self._now(now)
            self._monthly_grace_reset(now)
            state = self._state
            last = state.last_activity_date
            today = now.date()
            if last is None or last >= today or state.last_rolled_date == today:
                return

            gap = days_between(last, today)
            uncovered = 1 if gap == 1 else gap - 1
            used = min(uncovered, state.grace_days_left)
            state.grace_days_left -= used
            state.last_rolled_date = today
            self._persist()
            streak = state.streak_days
        if used < uncovered:
            logger.info("streak paused at %s day(s): %s day(s) not covered by grace (%s)", streak, uncovered - used, self.key)
        else:
            logger.debug("streak roll gap=%s used %s grace day(s) (%s)", gap, used, self.key)

    def status(self, now: datetime | None = None) -> EngineStatus:
        with self._lock:
            now = self._now(now)
            self._monthly_grace_reset(now)
            self._daily_counters_reset(now)
            state = self._state
            return EngineStatus(
                policy=compute_policy(state, now, self.packs),
                label=label_for_mode(state.mode),
                streak_days=state.streak_days,
                grace_days_left=state.grace_days_left,
                focus_sessions_today=state.focus_sessions_today,
                check_in=_active_check_in(state, now.date()),
            )

    def can_add_task(self, active_count: int, now: datetime | None = None) -> bool:
        return active_count < self.compute(now).task_cap

    # ---------- helpers ----------

    def _now(self, now: datetime | None = None) -> datetime:
        now = now or self._clock()
        if now.tzinfo is None:
            # naive times are wall-clock times in the engine's zone
            now = now.replace(tzinfo=self._clock().tzinfo or ZoneInfo(DEFAULT_TZ))
        return now

    def _bootstrap(self, now: datetime) -> EngineState:
        mode = Mode.DEFAULT
        state = EngineState(
            mode=mode,
            focus_sessions_today=0,
            streak_days=0,
            grace_days_left=self.packs[mode].grace_days_per_month,
            grace_snapshot_month=month_key(now.date()),
        )
        self._state = state
        self._persist()
        logger.info("bootstrapped fresh behavior state (%s)", self.key)
        return state

    def _persist(self) -> None:
        self.store.set(self.key, encode_state(self._state))

    def _mark_activity(self, now: datetime) -> None:
        today = now.date()
        if self._state.last_activity_date != today:
            self._state.streak_days += 1
            self._state.last_activity_date = today

    def _monthly_grace_reset(self, now: datetime, force: bool = False) -> None:
        month = month_key(now.date())
        if not force and self._state.grace_snapshot_month == month:
            return
        self._state.grace_days_left = self.packs[self._state.mode].grace_days_per_month
        self._state.grace_snapshot_month = month
        self._persist()
        logger.info("grace quota reset to %s for %s (%s)", self._state.grace_days_left, month, self.key)

    def _daily_counters_reset(self, now: datetime) -> None:
        last = self._state.last_focus_at
        if last is None or self._state.focus_sessions_today == 0:
            return
        if in_zone_of(last, now).date() != now.date():
            self._state.focus_sessions_today = 0
            self._persist()


def _active_check_in(state: EngineState, today: date) -> CheckIn | None:
    if state.check_in is not None and state.check_in.is_for(today):
        return state.check_in
    return None


def _overdrive_tripped(state: EngineState, guard: OverdriveGuard, now: datetime) -> bool:
    if state.last_focus_at is None:
        return False
    if state.focus_sessions_today < guard.max_focus_sessions_after_21:
        return False
    return in_zone_of(state.last_focus_at, now) >= at_time_of_day(now, OVERDRIVE_EVENING)


def compute_policy(
    state: EngineState,
    now: datetime,
    packs: Mapping[Mode, ModePolicy] = BEHAVIOR_PACKS,
) -> PolicySnapshot:
    """Derive the policy snapshot; deterministic in (state, now, packs)."""
    pack = packs[state.mode]

    task_cap = pack.task_cap
    timer_min = pack.timer_min
    animations = pack.animation_level

    check_in = _active_check_in(state, now.date())
    if check_in is not None:
        if check_in.energy is Energy.LOW:
            task_cap = max(1, task_cap - 1)
            timer_min = max(5, timer_min - 2)
        elif check_in.energy is Energy.HIGH and state.mode is Mode.ADHD:
            # short sessions keep momentum
            timer_min = max(10, min(20, timer_min))
        if check_in.mood <= -1:
            animations = downgrade_animation(animations)

    should_offer_wind_down = is_at_or_after(now, pack.night_wind_down_time)
    should_dim_animations = False
    require_confirm_add_task = False

    guard = pack.overdrive_guard
    if state.mode is Mode.BIPOLAR and guard is not None:
        should_dim_animations = is_at_or_after(now, guard.dim_animations_after)
        require_confirm_add_task = is_at_or_after(now, guard.soft_block_new_tasks_after)
        if _overdrive_tripped(state, guard, now):
            should_dim_animations = True
            require_confirm_add_task = True

    return PolicySnapshot(
        mode=state.mode,
        task_cap=task_cap,
        timer_min=timer_min,
        animations=animations,
        sounds=pack.sounds_enabled,
        show_crisis_button=pack.show_crisis_button,
        evening_copy=pack.evening_copy_enabled,
        should_offer_wind_down=should_offer_wind_down,
        should_dim_animations=should_dim_animations,
        require_confirm_add_task=require_confirm_add_task,
    )

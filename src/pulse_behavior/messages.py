from __future__ import annotations

from pulse_behavior.behavior_packs import MODE_LABELS, AnimationLevel, Energy
from pulse_behavior.models import CheckIn, EngineStatus, PolicySnapshot

MOOD_FACES = {-2: "😞", -1: "🙁", 0: "😐", 1: "🙂", 2: "😄"}

ENERGY_LABELS = {
    Energy.LOW: "🪫 Low",
    Energy.MED: "🔋 Medium",
    Energy.HIGH: "⚡ High",
}

ANIMATION_LABELS = {
    AnimationLevel.LOW: "low",
    AnimationLevel.MEDIUM: "medium",
    AnimationLevel.HIGH: "high",
}


def _yes_no(flag: bool) -> str:
    return "on" if flag else "off"


def check_in_line(check_in: CheckIn | None) -> str:
    if check_in is None:
        return "📝 No check-in today. Use /checkin <mood -2..2> <low|med|high>"
    face = MOOD_FACES.get(check_in.mood, "")
    return f"📝 Check-in: mood {check_in.mood:+d} {face} · energy {ENERGY_LABELS[check_in.energy]}"


def policy_lines(policy: PolicySnapshot) -> list[str]:
    lines = [
        f"🎯 Task cap: {policy.task_cap}",
        f"⏱ Focus timer: {policy.timer_min}m",
        f"✨ Animations: {ANIMATION_LABELS[policy.animations]} · sounds {_yes_no(policy.sounds)}",
    ]
    if policy.show_crisis_button:
        lines.append("🆘 Crisis support is one tap away.")
    if policy.should_offer_wind_down:
        lines.append("🌙 It's wind-down time. Consider wrapping up for today.")
    if policy.should_dim_animations:
        lines.append("🔅 Evening guard: visuals dimmed.")
    if policy.require_confirm_add_task:
        lines.append("✋ New tasks need a confirmation right now.")
    return lines


def status_message(status: EngineStatus) -> str:
    lines = [
        f"📊 Status — {status.label} mode",
        "",
        f"🔥 Streak: {status.streak_days} day(s)",
        f"🛟 Grace days left this month: {status.grace_days_left}",
        f"🧠 Focus sessions today: {status.focus_sessions_today}",
        check_in_line(status.check_in),
        "",
        *policy_lines(status.policy),
    ]
    return "\n".join(lines)


def mode_message(status: EngineStatus) -> str:
    options = ", ".join(MODE_LABELS.values())
    return (
        f"Mode: {status.label}. Grace days reset to {status.grace_days_left}.\n"
        f"Available: {options}. Use /mode <label> to switch."
    )


def wind_down_message(policy: PolicySnapshot) -> str:
    lines = ["🌙 Time to wind down.", "Park anything unfinished for tomorrow."]
    if policy.require_confirm_add_task:
        lines.append("New tasks will ask for confirmation until morning.")
    return "\n".join(lines)


def help_message() -> str:
    return "\n".join(
        [
            "Commands:",
            "/status — current streak and adaptive settings",
            "/checkin <mood -2..2> <low|med|high> — daily check-in",
            "/focus [minutes] — log a finished focus session",
            "/done — log a completed task",
            "/mode [ADHD|BPD|Bipolar|Mixed] — show or switch mode",
        ]
    )

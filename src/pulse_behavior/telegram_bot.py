from __future__ import annotations

import logging
from typing import Any

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import Application, CallbackQueryHandler, CommandHandler, ContextTypes

from pulse_behavior.behavior_packs import MODE_LABELS, Energy, mode_from_label
from pulse_behavior.config import Settings
from pulse_behavior.db import FallbackStateStore, StateStore
from pulse_behavior.engine import BehaviorEngine
from pulse_behavior.messages import help_message, mode_message, status_message
from pulse_behavior.models import MOOD_MAX, MOOD_MIN
from pulse_behavior.time_utils import now_local

logger = logging.getLogger(__name__)

CHECK_IN_USAGE = "Usage: /checkin <mood -2..2> <low|med|high>"

_ENERGY_WORDS = {
    "low": Energy.LOW,
    "med": Energy.MED,
    "medium": Energy.MED,
    "mid": Energy.MED,
    "high": Energy.HIGH,
}


def build_keyboard() -> InlineKeyboardMarkup:
    rows = [
        [
            InlineKeyboardButton("🪫 Low energy", callback_data="checkin:0:low"),
            InlineKeyboardButton("🔋 Okay", callback_data="checkin:0:med"),
            InlineKeyboardButton("⚡ Wired", callback_data="checkin:1:high"),
        ],
        [
            InlineKeyboardButton("✅ Focus done", callback_data="focus"),
            InlineKeyboardButton("☑️ Task done", callback_data="done"),
            InlineKeyboardButton("Status", callback_data="status"),
        ],
    ]
    return InlineKeyboardMarkup(rows)


def parse_check_in_args(args: list[str]) -> tuple[int, Energy]:
    if len(args) != 2:
        raise ValueError(CHECK_IN_USAGE)
    try:
        mood = int(args[0])
    except ValueError:
        raise ValueError(CHECK_IN_USAGE) from None
    if not MOOD_MIN <= mood <= MOOD_MAX:
        raise ValueError(f"Mood must be between {MOOD_MIN} and {MOOD_MAX}.")
    energy = _ENERGY_WORDS.get(args[1].strip().lower())
    if energy is None:
        raise ValueError(CHECK_IN_USAGE)
    return mood, energy


def parse_minutes_arg(args: list[str]) -> int:
    if not args:
        return 0
    try:
        minutes = int(args[0].rstrip("m"))
    except ValueError:
        raise ValueError("Usage: /focus [minutes]") from None
    return max(0, minutes)


def engine_for(bot_data: dict[str, Any], user_id: int) -> BehaviorEngine:
    """Build an engine over the stored state for one update.

    The store is shared with the jobs process, so nothing is cached between
    updates. Only the best-effort wrapper lives in ``bot_data``; its memory
    copy survives a failing disk across updates.
    """
    settings: Settings = bot_data["settings"]
    store = bot_data.get("state_store")
    if store is None:
        store = bot_data["state_store"] = FallbackStateStore(bot_data["store"])
    clock = bot_data.get("clock") or (lambda: now_local(settings.tz))

    engine = BehaviorEngine(store, key=f"{settings.state_key}:{user_id}", clock=clock)
    engine.roll_streak_if_needed()
    return engine


def _engine(update: Update, context: ContextTypes.DEFAULT_TYPE) -> BehaviorEngine:
    assert update.effective_user is not None
    return engine_for(context.application.bot_data, update.effective_user.id)


async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    engine = _engine(update, context)
    await update.effective_message.reply_text(
        f"Hi! I adapt to how today is going.\n\n{help_message()}\n\n{status_message(engine.status())}",
        reply_markup=build_keyboard(),
    )


async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await update.effective_message.reply_text(help_message())


async def cmd_status(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    engine = _engine(update, context)
    await update.effective_message.reply_text(status_message(engine.status()), reply_markup=build_keyboard())


async def cmd_mode(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    engine = _engine(update, context)
    if not context.args:
        await update.effective_message.reply_text(mode_message(engine.status()))
        return

    raw = " ".join(context.args).strip()
    known = {label.lower() for label in MODE_LABELS.values()} | {mode.value for mode in MODE_LABELS}
    if raw.lower() not in known:
        await update.effective_message.reply_text(f"Unknown mode '{raw}'. Use one of: {', '.join(MODE_LABELS.values())}")
        return

    engine.set_mode(mode_from_label(raw))
    await update.effective_message.reply_text(mode_message(engine.status()))


async def cmd_checkin(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    engine = _engine(update, context)
    try:
        mood, energy = parse_check_in_args(list(context.args or []))
    except ValueError as exc:
        await update.effective_message.reply_text(str(exc))
        return

    engine.apply_check_in(mood, energy)
    await update.effective_message.reply_text(
        f"Checked in.\n\n{status_message(engine.status())}",
        reply_markup=build_keyboard(),
    )


async def cmd_focus(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    engine = _engine(update, context)
    try:
        minutes = parse_minutes_arg(list(context.args or []))
    except ValueError as exc:
        await update.effective_message.reply_text(str(exc))
        return

    engine.record_focus_session(minutes)
    await update.effective_message.reply_text(
        f"Focus session logged.\n\n{status_message(engine.status())}",
        reply_markup=build_keyboard(),
    )


async def cmd_done(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    engine = _engine(update, context)
    engine.record_completion()
    await update.effective_message.reply_text(
        f"Nice, task done.\n\n{status_message(engine.status())}",
        reply_markup=build_keyboard(),
    )


async def handle_callback(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    if query is None:
        return
    await query.answer()
    engine = _engine(update, context)
    data = query.data or ""

    if data.startswith("checkin:"):
        _, mood_raw, energy_raw = data.split(":", maxsplit=2)
        mood, energy = parse_check_in_args([mood_raw, energy_raw])
        engine.apply_check_in(mood, energy)
        prefix = "Checked in."
    elif data == "focus":
        engine.record_focus_session()
        prefix = "Focus session logged."
    elif data == "done":
        engine.record_completion()
        prefix = "Nice, task done."
    elif data == "status":
        prefix = ""
    else:
        logger.warning("unknown callback data: %s", data)
        return

    text = status_message(engine.status())
    await query.message.reply_text(f"{prefix}\n\n{text}" if prefix else text, reply_markup=build_keyboard())


def build_application(settings: Settings, store: StateStore) -> Application:
    app = Application.builder().token(settings.telegram_bot_token).build()
    app.bot_data["store"] = store
    app.bot_data["settings"] = settings

    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("status", cmd_status))
    app.add_handler(CommandHandler("mode", cmd_mode))
    app.add_handler(CommandHandler("checkin", cmd_checkin))
    app.add_handler(CommandHandler("focus", cmd_focus))
    app.add_handler(CommandHandler("done", cmd_done))
    app.add_handler(CallbackQueryHandler(handle_callback))

    return app

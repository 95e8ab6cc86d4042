from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

from telegram import Bot

from pulse_behavior.config import Settings
from pulse_behavior.db import SqliteStateStore
from pulse_behavior.engine import BehaviorEngine
from pulse_behavior.messages import wind_down_message
from pulse_behavior.models import PolicySnapshot
from pulse_behavior.time_utils import now_local

logger = logging.getLogger(__name__)

JOB_NAMES = ("roll_streaks", "wind_down")


def wind_down_due(policy: PolicySnapshot) -> bool:
    return policy.should_offer_wind_down


def _engines(store: SqliteStateStore, settings: Settings, now: datetime) -> list[tuple[str, BehaviorEngine]]:
    prefix = f"{settings.state_key}:"
    out: list[tuple[str, BehaviorEngine]] = []
    for key in store.keys(prefix):
        engine = BehaviorEngine(store, key=key, clock=lambda: now)
        out.append((key[len(prefix):], engine))
    return out


def run_roll_streaks(store: SqliteStateStore, settings: Settings, now: datetime | None = None) -> int:
    now = now or now_local(settings.tz)
    rolled = 0
    for user_key, engine in _engines(store, settings, now):
        engine.roll_streak_if_needed(now)
        rolled += 1
        logger.debug("rolled streak for %s", user_key)
    logger.info("roll_streaks: %s engine(s) processed", rolled)
    return rolled


async def run_wind_down(
    store: SqliteStateStore,
    settings: Settings,
    bot: Any | None = None,
    now: datetime | None = None,
) -> int:
    now = now or now_local(settings.tz)
    bot = bot or Bot(token=settings.telegram_bot_token)
    sent = 0

    for user_key, engine in _engines(store, settings, now):
        if not user_key.isdigit():
            # API-only users have no chat to message.
            continue
        policy = engine.compute(now)
        if not wind_down_due(policy):
            continue
        if not store.mark_event_sent(engine.key, f"wind-down:{now.date().isoformat()}", now):
            continue
        try:
            await bot.send_message(chat_id=int(user_key), text=wind_down_message(policy))
        except Exception:
            logger.exception("wind-down message failed for %s", user_key)
            continue
        sent += 1

    logger.info("wind_down: %s message(s) sent", sent)
    return sent


def run_job(job_name: str, store: SqliteStateStore, settings: Settings) -> None:
    if job_name == "roll_streaks":
        run_roll_streaks(store, settings)
    elif job_name == "wind_down":
        asyncio.run(run_wind_down(store, settings))
    else:
        raise SystemExit(f"Unknown job '{job_name}'. Expected one of: {', '.join(JOB_NAMES)}")

from __future__ import annotations

import asyncio

from pulse_behavior.config import load_settings
from pulse_behavior.db import SqliteStateStore
from pulse_behavior.logging_setup import setup_logging
from pulse_behavior.telegram_bot import build_application


def run_bot() -> None:
    settings = load_settings()
    setup_logging(settings.log_level)
    store = SqliteStateStore(settings.database_path)

    # Python 3.14 does not auto-create a default event loop in main thread.
    try:
        asyncio.get_event_loop()
    except RuntimeError:
        asyncio.set_event_loop(asyncio.new_event_loop())

    application = build_application(settings, store)
    application.run_polling()

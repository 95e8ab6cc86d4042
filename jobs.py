from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from pulse_behavior.config import load_settings
from pulse_behavior.db import SqliteStateStore
from pulse_behavior.jobs_runner import run_job
from pulse_behavior.logging_setup import setup_logging


def main() -> None:
    if len(sys.argv) != 2:
        raise SystemExit("Usage: python jobs.py <roll_streaks|wind_down>")

    settings = load_settings(require_telegram_token=sys.argv[1] == "wind_down")
    setup_logging(settings.log_level)
    store = SqliteStateStore(settings.database_path)
    run_job(sys.argv[1], store, settings)


if __name__ == "__main__":
    main()

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from pulse_behavior.engine import DEFAULT_STATE_KEY
from pulse_behavior.time_utils import DEFAULT_TZ


@dataclass(frozen=True)
class Settings:
    telegram_bot_token: str
    database_path: Path
    tz: str
    state_key: str
    api_token: str | None
    api_host: str
    api_port: int
    log_level: str


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text().splitlines():
        raw = line.strip()
        if not raw or raw.startswith("#") or "=" not in raw:
            continue
        key, value = raw.split("=", maxsplit=1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


def _parse_port(value: str | None, default: int) -> int:
    try:
        return int(value) if value else default
    except ValueError:
        return default


def load_settings(require_telegram_token: bool = True, env_file: Path = Path(".env")) -> Settings:
    _load_env_file(env_file)

    token = os.getenv("TELEGRAM_BOT_TOKEN", "")
    if require_telegram_token and not token:
        raise RuntimeError("TELEGRAM_BOT_TOKEN is required")

    return Settings(
        telegram_bot_token=token,
        database_path=Path(os.getenv("DATABASE_PATH", "./data/pulse.db")),
        tz=os.getenv("TZ", DEFAULT_TZ),
        state_key=os.getenv("STATE_KEY", DEFAULT_STATE_KEY),
        api_token=os.getenv("API_TOKEN") or None,
        api_host=os.getenv("API_HOST", "127.0.0.1"),
        api_port=_parse_port(os.getenv("API_PORT"), 8080),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class StateStore(Protocol):
    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...


class MemoryStateStore:
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self.data if k.startswith(prefix))


class FallbackStateStore:
    """Best-effort wrapper: the in-memory shadow always has the latest write.

    Errors from the primary store are logged and swallowed so a broken or
    disabled disk never reaches the engine's callers. Keys whose last write
    missed the primary are read from the shadow until a write succeeds.
    """

    def __init__(self, primary: StateStore | None) -> None:
        self.primary = primary
        self.shadow = MemoryStateStore()
        self.unsynced: set[str] = set()

    def get(self, key: str) -> str | None:
        if self.primary is not None and key not in self.unsynced:
            try:
                value = self.primary.get(key)
            except Exception:
                logger.warning("state store read failed for %s; using memory copy", key, exc_info=True)
            else:
                if value is not None:
                    return value
        return self.shadow.get(key)

    def set(self, key: str, value: str) -> None:
        self.shadow.set(key, value)
        if self.primary is None:
            return
        try:
            self.primary.set(key, value)
        except Exception:
            self.unsynced.add(key)
            logger.warning("state store write failed for %s; kept in memory", key, exc_info=True)
        else:
            self.unsynced.discard(key)


class SqliteStateStore:
    def __init__(self, path: Path) -> None:
        self.path = path
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """
            )
            current = {row["version"] for row in conn.execute("SELECT version FROM schema_migrations")}

            migrations: dict[int, str] = {
                1: """
                    CREATE TABLE engine_state (
                        key TEXT PRIMARY KEY,
                        payload TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    );
                """,
                2: """
                    CREATE TABLE reminder_events (
                        key TEXT NOT NULL,
                        event_key TEXT NOT NULL,
                        sent_at TEXT NOT NULL,
                        PRIMARY KEY(key, event_key)
                    );
                """,
            }

            now = datetime.now().isoformat(timespec="seconds")
            for version in sorted(migrations):
                if version in current:
                    continue
                conn.executescript(migrations[version])
                conn.execute(
                    "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?)",
                    (version, now),
                )

    def get(self, key: str) -> str | None:
        with self._connect() as conn:
            row = conn.execute("SELECT payload FROM engine_state WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        return str(row["payload"])

    def set(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO engine_state(key, payload, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    payload=excluded.payload,
                    updated_at=excluded.updated_at
                """,
                (key, value, datetime.now().isoformat(timespec="seconds")),
            )

    def keys(self, prefix: str = "") -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key FROM engine_state WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        return [row["key"] for row in rows]

    def mark_event_sent(self, key: str, event_key: str, sent_at: datetime) -> bool:
        """Record a one-off event; False when it was already recorded."""
        with self._connect() as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO reminder_events(key, event_key, sent_at) VALUES (?, ?, ?)",
                (key, event_key, sent_at.isoformat()),
            )
            return cur.rowcount == 1

"""
ryoshu.storage.sqlite
~~~~~~~~~~~~~~~~~~~~~
SQLite-backed key-value storage.

Table
-----
kv  — key TEXT PRIMARY KEY, value TEXT, updated_at TEXT

Each ``set_item`` is one committed ``INSERT … ON CONFLICT`` statement, so a
crash leaves either the previous or the new value for a key, never a mix.

Default path: ``~/.ryoshu/default/ryoshu.db``
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from ..exceptions import StorageError
from .project import resolve_project

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

DEFAULT_DB_PATH = resolve_project().db_path   # ~/.ryoshu/default/ryoshu.db
_SCHEMA_VERSION = 1


class SQLiteStorage:
    """Persistent SQLite storage implementing ``KeyValueStorage``."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._conn.execute("PRAGMA journal_mode=WAL")
        except (OSError, sqlite3.Error) as exc:
            raise StorageError(f"Could not open storage at {self.db_path}", cause=exc) from exc
        self._lock = threading.Lock()
        self._init_schema()

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> "SQLiteStorage":
        return self

    def __exit__(self, *_) -> None:
        self.close()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def _init_schema(self) -> None:
        with self._lock:
            version = self._conn.execute("PRAGMA user_version").fetchone()[0]
            if version == 0:
                self._conn.executescript("""
                    CREATE TABLE IF NOT EXISTS kv (
                        key        TEXT PRIMARY KEY,
                        value      TEXT NOT NULL,
                        updated_at TEXT NOT NULL
                    );
                """)
                self._conn.execute(f"PRAGMA user_version = {_SCHEMA_VERSION}")
                self._conn.commit()

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    # ------------------------------------------------------------------
    # KeyValueStorage
    # ------------------------------------------------------------------

    def get_item(self, key: str) -> str | None:
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT value FROM kv WHERE key = ?", (key,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Could not read key {key!r}", cause=exc) from exc
        return row[0] if row else None

    def set_item(self, key: str, value: str) -> None:
        try:
            with self._lock:
                self._conn.execute(
                    """INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
                       ON CONFLICT(key) DO UPDATE
                       SET value = excluded.value, updated_at = excluded.updated_at""",
                    (key, value, self._now()),
                )
                self._conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Could not write key {key!r}", cause=exc) from exc
        logger.debug("Stored %s (%d chars)", key, len(value))

    def remove_item(self, key: str) -> bool:
        try:
            with self._lock:
                cur = self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
                self._conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Could not delete key {key!r}", cause=exc) from exc
        return cur.rowcount > 0

    def keys(self) -> Iterable[str]:
        with self._lock:
            rows = self._conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
        return [r[0] for r in rows]

"""SQLite access — one shared connection, schema provisioning, write lock.

The registry and the result store share a ``Database`` so the foreign key
from ``health_checks`` to ``targets`` (with ON DELETE CASCADE) is enforced
by the engine itself.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS targets (
        id  INTEGER PRIMARY KEY AUTOINCREMENT,
        url TEXT NOT NULL UNIQUE
    );

    CREATE TABLE IF NOT EXISTS health_checks (
        id               INTEGER PRIMARY KEY AUTOINCREMENT,
        target_id        INTEGER NOT NULL REFERENCES targets(id) ON DELETE CASCADE,
        checked_at       TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f000Z', 'now')),
        status_code      INTEGER,
        response_time_ms INTEGER
    );

    CREATE INDEX IF NOT EXISTS idx_health_checks_target_checked_at
        ON health_checks (target_id, checked_at DESC);
"""


def path_from_url(database_url: str) -> str:
    """Resolve ``sqlite:///relative.db`` / ``sqlite:////abs.db`` / plain paths."""
    if database_url in (":memory:", "sqlite://", "sqlite:///:memory:"):
        return ":memory:"
    if database_url.startswith("sqlite:///"):
        return database_url[len("sqlite:///"):]
    if "://" in database_url:
        raise ValueError(f"Unsupported database URL: {database_url}")
    return database_url


class Database:
    """Thread-safe wrapper around a single SQLite connection."""

    def __init__(self, database_url: str = ":memory:") -> None:
        self._path = path_from_url(database_url)
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None
        self._init_db()

    @property
    def path(self) -> str:
        return self._path

    def _get_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(self._path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            if self._path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
            # Idempotent; also re-provisions an in-memory database after close()
            self._conn.executescript(SCHEMA)
        return self._conn

    def _init_db(self) -> None:
        with self._lock:
            self._get_conn()
        logger.debug("Schema ready at %s", self._path)

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Serialize access; commit on success, roll back on error."""
        with self._lock:
            conn = self._get_conn()
            try:
                yield conn
                conn.commit()
            except Exception:
                conn.rollback()
                raise

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

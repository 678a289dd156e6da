"""Result store — append-only health check history in SQLite.

Queries always order by ``checked_at`` (never by insertion id): overlapping
ticks may complete out of order.
"""

from __future__ import annotations

import logging
import sqlite3

from .db import Database
from .models import Outcome, format_ts

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when an append or query against the database fails."""


class ResultStore:
    """Appends outcomes and serves newest-first ranges per target."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def append(self, outcome: Outcome) -> Outcome:
        """Insert one outcome and return it with its assigned id.

        Raises StorageError if the target is gone (foreign key) or the
        database is unavailable. Accepted rows are committed before returning.
        """
        try:
            with self._db.transaction() as conn:
                cursor = conn.execute(
                    "INSERT INTO health_checks "
                    "(target_id, checked_at, status_code, response_time_ms) "
                    "VALUES (?, ?, ?, ?)",
                    (
                        outcome.target_id,
                        format_ts(outcome.observed_at),
                        outcome.status_code,
                        outcome.latency_ms,
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise StorageError(f"Unknown target {outcome.target_id}: {e}") from e
        except sqlite3.Error as e:
            raise StorageError(f"Failed to append outcome: {e}") from e

        return Outcome(
            id=cursor.lastrowid,
            target_id=outcome.target_id,
            observed_at=outcome.observed_at,
            result=outcome.result,
        )

    def recent(self, target_id: int, limit: int) -> list[Outcome]:
        """Most recent ``limit`` outcomes for a target, newest first."""
        if limit <= 0:
            return []
        try:
            with self._db.transaction() as conn:
                rows = conn.execute(
                    "SELECT id, target_id, checked_at, status_code, response_time_ms "
                    "FROM health_checks "
                    "WHERE target_id = ? "
                    "ORDER BY checked_at DESC LIMIT ?",
                    (target_id, limit),
                ).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to query health checks: {e}") from e
        return [Outcome.from_row(dict(r)) for r in rows]

    def count(self, target_id: int | None = None) -> int:
        try:
            with self._db.transaction() as conn:
                if target_id is None:
                    row = conn.execute("SELECT COUNT(*) FROM health_checks").fetchone()
                else:
                    row = conn.execute(
                        "SELECT COUNT(*) FROM health_checks WHERE target_id = ?",
                        (target_id,),
                    ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to count health checks: {e}") from e
        return int(row[0])

"""Target registry — the durable set of monitored endpoints.

The scheduler never iterates the live table: each tick takes a
``snapshot()``, an immutable tuple of ``Target`` values.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from pathlib import Path
from urllib.parse import urlparse

import yaml

from .db import Database
from .models import Target
from .store import StorageError

logger = logging.getLogger(__name__)


def validate_url(url: str) -> str:
    """Normalize whitespace and require an absolute http(s) URL."""
    url = (url or "").strip()
    if not url:
        raise ValueError("Target URL is required")
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"Target URL must be an absolute http(s) URL: {url!r}")
    return url


def load_seed_file(path: Path | str) -> list[str]:
    """Read seed URLs from YAML: ``targets: [url, ...]``, a bare list or one URL.

    Raises ValueError for any other document shape.
    """
    path = Path(path)
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or []
    if isinstance(raw, dict):
        raw = raw.get("targets") or []
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        raise ValueError(f"Seed file {path} must hold a list of URLs, got {type(raw).__name__}")
    urls = []
    for entry in raw:
        # Accept both plain strings and {url: ...} mappings
        if isinstance(entry, dict):
            entry = entry.get("url", "")
        if isinstance(entry, str) and entry.strip():
            urls.append(entry.strip())
    return urls


def parse_seed_urls(raw: str) -> list[str]:
    """Split a comma-separated ``SEED_URLS`` value."""
    return [u.strip() for u in (raw or "").split(",") if u.strip()]


class TargetRegistry:
    """SQLite-backed target set."""

    def __init__(self, db: Database) -> None:
        self._db = db

    def _fetch(self, sql: str, params: tuple = ()) -> list[Target]:
        try:
            with self._db.transaction() as conn:
                rows = conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read targets: {e}") from e
        return [Target(id=r["id"], url=r["url"]) for r in rows]

    def all(self) -> list[Target]:
        return self._fetch("SELECT id, url FROM targets ORDER BY id")

    def snapshot(self) -> tuple[Target, ...]:
        """Point-in-time copy of the target set for one tick."""
        return tuple(self.all())

    def get(self, target_id: int) -> Target | None:
        rows = self._fetch("SELECT id, url FROM targets WHERE id = ?", (target_id,))
        return rows[0] if rows else None

    def count(self) -> int:
        try:
            with self._db.transaction() as conn:
                row = conn.execute("SELECT COUNT(*) FROM targets").fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to count targets: {e}") from e
        return int(row[0])

    def register(self, url: str) -> Target:
        """Add a target; registering an existing URL returns the existing row."""
        url = validate_url(url)
        try:
            with self._db.transaction() as conn:
                conn.execute(
                    "INSERT INTO targets (url) VALUES (?) ON CONFLICT (url) DO NOTHING",
                    (url,),
                )
                row = conn.execute(
                    "SELECT id, url FROM targets WHERE url = ?", (url,),
                ).fetchone()
        except sqlite3.Error as e:
            raise StorageError(f"Failed to register {url}: {e}") from e
        return Target(id=row["id"], url=row["url"])

    def delete(self, target_id: int) -> bool:
        """Remove a target and, via cascade, its whole outcome history."""
        try:
            with self._db.transaction() as conn:
                cursor = conn.execute("DELETE FROM targets WHERE id = ?", (target_id,))
        except sqlite3.Error as e:
            raise StorageError(f"Failed to delete target {target_id}: {e}") from e
        if cursor.rowcount:
            logger.info("Deleted target %d", target_id)
        return cursor.rowcount > 0

    def seed(self, urls: Iterable[str]) -> int:
        """Register each URL, skipping bad entries. Returns the number created."""
        known = {t.url for t in self.all()}
        created = 0
        for url in urls:
            try:
                target = self.register(url)
            except (ValueError, StorageError) as e:
                logger.error("Failed to seed target %s: %s", url, e)
                continue
            if target.url not in known:
                known.add(target.url)
                created += 1
        if created:
            logger.info("Seeded %d new targets", created)
        return created

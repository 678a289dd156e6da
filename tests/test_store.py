"""Tests for the SQLite result store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from healthmon.db import Database
from healthmon.models import Failure, Outcome, Response, format_ts, parse_ts
from healthmon.registry import TargetRegistry
from healthmon.store import ResultStore, StorageError

T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _outcome(target_id: int, minute: int, status: int | None = 200) -> Outcome:
    result = Response(status_code=status, latency_ms=minute * 10) if status else Failure("timeout")
    return Outcome(target_id=target_id, observed_at=T0 + timedelta(minutes=minute), result=result)


class TestAppend:
    def test_assigns_id(self, registry: TargetRegistry, store: ResultStore) -> None:
        target = registry.register("https://ok.example")
        saved = store.append(_outcome(target.id, 0))
        assert saved.id is not None
        assert saved.target_id == target.id
        assert saved.status_code == 200

    def test_failure_stored_as_nulls(self, db: Database, registry: TargetRegistry, store: ResultStore) -> None:
        target = registry.register("https://down.example")
        store.append(_outcome(target.id, 0, status=None))

        with db.transaction() as conn:
            row = conn.execute(
                "SELECT status_code, response_time_ms FROM health_checks",
            ).fetchone()
        assert row["status_code"] is None
        assert row["response_time_ms"] is None

        [outcome] = store.recent(target.id, 10)
        assert isinstance(outcome.result, Failure)
        assert outcome.status_code is None
        assert outcome.latency_ms is None

    def test_error_status_is_a_response(self, registry: TargetRegistry, store: ResultStore) -> None:
        target = registry.register("https://broken.example")
        store.append(_outcome(target.id, 0, status=503))
        [outcome] = store.recent(target.id, 1)
        assert isinstance(outcome.result, Response)
        assert outcome.status_code == 503

    def test_unknown_target_raises(self, store: ResultStore) -> None:
        with pytest.raises(StorageError):
            store.append(_outcome(999, 0))
        assert store.count() == 0


class TestRecent:
    def test_returns_newest_first(self, registry: TargetRegistry, store: ResultStore) -> None:
        target = registry.register("https://ok.example")
        for minute in range(10):
            store.append(_outcome(target.id, minute))

        recent = store.recent(target.id, 10)
        assert len(recent) == 10
        assert [o.observed_at for o in recent] == sorted(
            (o.observed_at for o in recent), reverse=True,
        )
        assert recent[0].latency_ms == 90

    def test_limit(self, registry: TargetRegistry, store: ResultStore) -> None:
        target = registry.register("https://ok.example")
        for minute in range(10):
            store.append(_outcome(target.id, minute))

        recent = store.recent(target.id, 3)
        assert [o.latency_ms for o in recent] == [90, 80, 70]

    def test_orders_by_observed_at_not_append_order(
        self, registry: TargetRegistry, store: ResultStore,
    ) -> None:
        target = registry.register("https://ok.example")
        # Overlapping ticks can complete out of order
        for minute in (3, 1, 4, 0, 2):
            store.append(_outcome(target.id, minute))

        recent = store.recent(target.id, 5)
        assert [o.latency_ms for o in recent] == [40, 30, 20, 10, 0]

    def test_subsecond_ordering(self, registry: TargetRegistry, store: ResultStore) -> None:
        target = registry.register("https://ok.example")
        later = Outcome(
            target_id=target.id, observed_at=T0 + timedelta(microseconds=500),
            result=Response(200, 2),
        )
        earlier = Outcome(target_id=target.id, observed_at=T0, result=Response(200, 1))
        store.append(later)
        store.append(earlier)
        assert [o.latency_ms for o in store.recent(target.id, 2)] == [2, 1]

    def test_isolated_per_target(self, registry: TargetRegistry, store: ResultStore) -> None:
        a = registry.register("https://a.example")
        b = registry.register("https://b.example")
        store.append(_outcome(a.id, 0))
        store.append(_outcome(b.id, 1))
        store.append(_outcome(b.id, 2))

        assert len(store.recent(a.id, 10)) == 1
        assert {o.target_id for o in store.recent(b.id, 10)} == {b.id}

    def test_unknown_target_is_empty(self, store: ResultStore) -> None:
        assert store.recent(12345, 10) == []

    def test_non_positive_limit(self, registry: TargetRegistry, store: ResultStore) -> None:
        target = registry.register("https://ok.example")
        store.append(_outcome(target.id, 0))
        assert store.recent(target.id, 0) == []

    def test_query_uses_ordered_index(self, db: Database) -> None:
        with db.transaction() as conn:
            plan = conn.execute(
                "EXPLAIN QUERY PLAN "
                "SELECT * FROM health_checks WHERE target_id = ? "
                "ORDER BY checked_at DESC LIMIT ?",
                (1, 10),
            ).fetchall()
        details = " ".join(str(row["detail"]) for row in plan)
        assert "idx_health_checks_target_checked_at" in details
        assert "TEMP B-TREE" not in details


class TestCascade:
    def test_delete_target_removes_history(self, registry: TargetRegistry, store: ResultStore) -> None:
        keep = registry.register("https://keep.example")
        gone = registry.register("https://gone.example")
        for minute in range(3):
            store.append(_outcome(keep.id, minute))
            store.append(_outcome(gone.id, minute))

        assert registry.delete(gone.id) is True
        assert store.count(gone.id) == 0
        assert store.recent(gone.id, 10) == []
        assert store.count(keep.id) == 3

    def test_append_after_delete_fails(self, registry: TargetRegistry, store: ResultStore) -> None:
        target = registry.register("https://gone.example")
        registry.delete(target.id)
        with pytest.raises(StorageError):
            store.append(_outcome(target.id, 0))


class TestDatabase:
    def test_close_and_reopen(self, db: Database, registry: TargetRegistry, store: ResultStore) -> None:
        target = registry.register("https://ok.example")
        store.append(_outcome(target.id, 0))
        db.close()

        # Connections are re-opened lazily
        store.append(_outcome(target.id, 1))
        assert store.count(target.id) == 2

    def test_in_memory(self) -> None:
        db = Database(":memory:")
        target = TargetRegistry(db).register("https://ok.example")
        ResultStore(db).append(_outcome(target.id, 0))
        assert ResultStore(db).count() == 1
        db.close()

    def test_sqlite_url(self, tmp_path) -> None:
        db = Database(f"sqlite:///{tmp_path}/nested/health.db")
        assert db.path.endswith("nested/health.db")
        assert (tmp_path / "nested").is_dir()
        db.close()

    def test_default_checked_at_matches_stored_format(
        self, db: Database, registry: TargetRegistry, store: ResultStore,
    ) -> None:
        target = registry.register("https://ok.example")
        with db.transaction() as conn:
            conn.execute(
                "INSERT INTO health_checks (target_id, status_code, response_time_ms) VALUES (?, 200, 1)",
                (target.id,),
            )
            raw = conn.execute("SELECT checked_at FROM health_checks").fetchone()["checked_at"]

        assert len(raw) == len(format_ts(T0))
        defaulted = parse_ts(raw)
        # The default only carries milliseconds, so this stays in the same second
        later = defaulted + timedelta(microseconds=500)
        store.append(Outcome(target_id=target.id, observed_at=later, result=Response(200, 2)))
        assert [o.latency_ms for o in store.recent(target.id, 2)] == [2, 1]

    def test_rejects_other_schemes(self) -> None:
        with pytest.raises(ValueError):
            Database("postgres://localhost/health")

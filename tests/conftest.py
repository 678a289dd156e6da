"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from healthmon.db import Database
from healthmon.query import QueryService
from healthmon.registry import TargetRegistry
from healthmon.store import ResultStore


@pytest.fixture
def db(tmp_path: Path) -> Generator[Database, None, None]:
    database = Database(str(tmp_path / "test_healthmon.db"))
    yield database
    database.close()


@pytest.fixture
def registry(db: Database) -> TargetRegistry:
    return TargetRegistry(db)


@pytest.fixture
def store(db: Database) -> ResultStore:
    return ResultStore(db)


@pytest.fixture
def query(registry: TargetRegistry, store: ResultStore) -> QueryService:
    return QueryService(registry, store)

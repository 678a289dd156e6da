"""Read-only query facade over the registry and the result store."""

from __future__ import annotations

from .models import Outcome, Target
from .registry import TargetRegistry
from .store import ResultStore

DEFAULT_STATUS_LIMIT = 50


class NotFound(Exception):
    """The requested target does not exist."""

    def __init__(self, target_id: int) -> None:
        self.target_id = target_id
        super().__init__(f"Target not found: {target_id}")


class QueryService:
    def __init__(
        self,
        registry: TargetRegistry,
        store: ResultStore,
        default_limit: int = DEFAULT_STATUS_LIMIT,
    ) -> None:
        self.registry = registry
        self.store = store
        self.default_limit = default_limit

    def list_targets(self) -> list[Target]:
        return self.registry.all()

    def status_for(self, target_id: int, limit: int | None = None) -> list[Outcome]:
        """Newest-first history for a live target; NotFound otherwise."""
        if self.registry.get(target_id) is None:
            raise NotFound(target_id)
        return self.store.recent(target_id, self.default_limit if limit is None else limit)

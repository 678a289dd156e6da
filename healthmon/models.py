"""Core data models — targets and probe outcomes.

A probe either produces a ``Response`` (any HTTP status, 4xx/5xx included)
or a ``Failure`` (timeout, connection/DNS error). Failures are stored with
NULL status and latency.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Union

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_ts(ts: datetime) -> str:
    """Fixed-width UTC string — lexical order matches chronological order."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def parse_ts(raw: str) -> datetime:
    return datetime.strptime(raw, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


# ── Targets ──────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Target:
    """A monitored URL endpoint."""

    id: int
    url: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "url": self.url}


# ── Probe results ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Response:
    """The endpoint answered with an HTTP response."""

    status_code: int
    latency_ms: int


@dataclass(frozen=True)
class Failure:
    """The probe did not complete (timeout, connect, DNS, protocol error)."""

    reason: str = ""


ProbeResult = Union[Response, Failure]


@dataclass(frozen=True)
class Outcome:
    """One timestamped probe result for a target."""

    target_id: int
    result: ProbeResult
    observed_at: datetime = field(default_factory=utcnow)
    id: int | None = None

    @property
    def ok(self) -> bool:
        return isinstance(self.result, Response)

    @property
    def status_code(self) -> int | None:
        return self.result.status_code if isinstance(self.result, Response) else None

    @property
    def latency_ms(self) -> int | None:
        return self.result.latency_ms if isinstance(self.result, Response) else None

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the persisted column names."""
        return {
            "id": self.id,
            "target_id": self.target_id,
            "checked_at": format_ts(self.observed_at),
            "status_code": self.status_code,
            "response_time_ms": self.latency_ms,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Outcome":
        status = row.get("status_code")
        latency = row.get("response_time_ms")
        result: ProbeResult
        if status is None:
            result = Failure()
        else:
            result = Response(status_code=int(status), latency_ms=int(latency or 0))
        return cls(
            id=row["id"],
            target_id=row["target_id"],
            observed_at=parse_ts(row["checked_at"]),
            result=result,
        )

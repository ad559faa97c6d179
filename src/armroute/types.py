from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PoolState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    DRAINING = "draining"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class Belief:
    """Beta posterior over an arm's success probability."""
    success_weight: float = 1.0
    failure_weight: float = 1.0

    @property
    def mean(self) -> float:
        return float(self.success_weight / (self.success_weight + self.failure_weight))


@dataclass(frozen=True)
class Request:
    """An incoming inference request handed to the orchestrator."""
    request_id: str
    payload: Any = None


@dataclass(frozen=True)
class WorkItem:
    """One unit of work submitted to a worker pool."""
    item_id: str
    payload: Any = None
    meta: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ItemFailure:
    """A processing error captured for a single item."""
    item_id: str
    worker_id: int | None
    error: BaseException

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "worker_id": self.worker_id,
            "error_type": type(self.error).__name__,
            "error": str(self.error)[:400],
        }


@dataclass(frozen=True)
class ShutdownReport:
    """What a pool did over its lifetime, available once it has terminated."""
    processed: int
    failures: tuple[ItemFailure, ...] = ()
    cancelled: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "processed": int(self.processed),
            "failures": [f.to_dict() for f in self.failures],
            "cancelled": list(self.cancelled),
        }

from __future__ import annotations

import json
import os
import threading
from collections.abc import Mapping, Sequence
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class RoutingTrace:
    request_id: str
    arm: int
    reward: int
    worker_id: int | None
    estimates: list[float]
    ts: float
    error: str | None = None
    meta: Mapping[str, Any] | None = None


class JsonlTraceWriter:
    """Appends one JSON line per routed request. Safe to call from pool workers."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def append(
        self,
        request_id: str,
        arm: int,
        reward: int,
        worker_id: int | None,
        estimates: Sequence[float],
        ts: float,
        error: str | None = None,
        meta: Mapping[str, Any] | None = None,
    ) -> None:
        record = RoutingTrace(
            request_id=str(request_id),
            arm=int(arm),
            reward=int(reward),
            worker_id=None if worker_id is None else int(worker_id),
            estimates=[float(v) for v in estimates],
            ts=float(ts),
            error=error,
            meta=dict(meta) if meta else None,
        )
        line = json.dumps(asdict(record), ensure_ascii=False) + "\n"
        with self._lock, self.path.open("a", encoding="utf-8") as f:
            f.write(line)
            f.flush()
            # Best-effort durability; some filesystems reject fsync.
            try:
                os.fsync(f.fileno())
            except OSError:
                pass

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .dispatch.pool import PoolConfig, WorkerPool, current_worker_id
from .errors import InvalidConfig
from .reward import RewardSource
from .rl.bandit import ThompsonBandit
from .storage.trace import JsonlTraceWriter
from .types import ItemFailure, Request, ShutdownReport, WorkItem

logger = logging.getLogger(__name__)

Handler = Callable[[WorkItem, int], Any]


def noop_handler(item: WorkItem, arm: int) -> None:
    return None


def sleep_handler(delay_s: float) -> Handler:
    """Handler that stands in for inference latency with a fixed sleep."""
    delay_s = max(0.0, float(delay_s))

    def _handle(item: WorkItem, arm: int) -> None:
        time.sleep(delay_s)

    return _handle


@dataclass
class OrchestratorConfig:
    num_arms: int = 5
    # 0 = execute inline on the caller's thread, no pool
    workers: int = 4
    seed: int | None = None
    queue_maxsize: int = 0
    shutdown_timeout_s: float | None = 60.0
    trace_path: str | None = None


@dataclass(frozen=True)
class RunResult:
    routed: int
    pulls: list[int]
    estimates: list[float]
    best_arm: int
    report: ShutdownReport

    def to_dict(self) -> dict[str, Any]:
        return {
            "routed": int(self.routed),
            "pulls": list(self.pulls),
            "estimates": [round(float(v), 6) for v in self.estimates],
            "best_arm": int(self.best_arm),
            **self.report.to_dict(),
        }


class RoutingOrchestrator:
    """Routes requests to arms with Thompson sampling and learns from outcomes.

    Per request: select an arm, run ``handler(item, arm)`` (inline or on a
    worker), ask the reward source for an outcome, feed it back to the bandit.
    A handler exception counts as reward 0 and is reported as an item failure.
    """

    def __init__(
        self,
        cfg: OrchestratorConfig,
        reward_source: RewardSource,
        *,
        handler: Handler | None = None,
        bandit: ThompsonBandit | None = None,
    ) -> None:
        if int(cfg.workers) < 0:
            raise InvalidConfig(f"workers must be >= 0, got {cfg.workers}")
        src_arms = getattr(reward_source, "num_arms", None)
        if src_arms is not None and int(src_arms) != int(cfg.num_arms):
            raise InvalidConfig(f"reward source has {src_arms} arms, config has {cfg.num_arms}")
        self.cfg = cfg
        self.reward_source = reward_source
        self.handler = handler or noop_handler
        self.bandit = bandit if bandit is not None else ThompsonBandit(cfg.num_arms, seed=cfg.seed)
        if self.bandit.num_arms != int(cfg.num_arms):
            raise InvalidConfig(f"bandit has {self.bandit.num_arms} arms, config has {cfg.num_arms}")
        self.trace = JsonlTraceWriter(Path(cfg.trace_path)) if cfg.trace_path else None

    def _execute(self, item: WorkItem) -> None:
        arm = int(item.meta["arm"])
        error: Exception | None = None
        try:
            self.handler(item, arm)
        except Exception as e:
            error = e
        reward = 0 if error is not None else int(self.reward_source.reward(arm))
        self.bandit.update(arm, reward)
        if self.trace is not None:
            self.trace.append(
                request_id=item.item_id,
                arm=arm,
                reward=reward,
                worker_id=current_worker_id(),
                estimates=self.bandit.estimates(),
                ts=time.time(),
                error=None if error is None else f"{type(error).__name__}: {error}",
            )
        if error is not None:
            raise error

    def _make_item(self, req: Request) -> WorkItem:
        arm = self.bandit.select_arm()
        return WorkItem(item_id=str(req.request_id), payload=req.payload, meta={"arm": arm})

    def _run_inline(self, requests: Iterable[Request]) -> tuple[int, ShutdownReport]:
        routed = 0
        failures: list[ItemFailure] = []
        for req in requests:
            item = self._make_item(req)
            routed += 1
            try:
                self._execute(item)
            except Exception as e:
                logger.warning("request %s failed: %s: %s", item.item_id, type(e).__name__, e)
                failures.append(ItemFailure(item.item_id, None, e))
        return routed, ShutdownReport(processed=routed, failures=tuple(failures))

    def _run_pool(self, requests: Iterable[Request]) -> tuple[int, ShutdownReport]:
        pool_cfg = PoolConfig(workers=int(self.cfg.workers), maxsize=int(self.cfg.queue_maxsize), name="router")
        pool = WorkerPool.from_config(pool_cfg, self._execute).start()
        routed = 0
        try:
            for req in requests:
                pool.submit(self._make_item(req))
                routed += 1
        finally:
            pool.close_submission()
            report = pool.await_shutdown(timeout=self.cfg.shutdown_timeout_s)
        return routed, report

    def run(self, requests: Iterable[Request]) -> RunResult:
        if int(self.cfg.workers) == 0:
            routed, report = self._run_inline(requests)
        else:
            routed, report = self._run_pool(requests)
        result = RunResult(
            routed=routed,
            pulls=[self.bandit.pulls(a) for a in range(self.bandit.num_arms)],
            estimates=self.bandit.estimates(),
            best_arm=self.bandit.best_arm(),
            report=report,
        )
        logger.info("routed %d requests; best arm %d", routed, result.best_arm)
        return result

from __future__ import annotations

import threading
import time

import pytest

from armroute.dashboard.report import build_report, load_trace_jsonl
from armroute.errors import InvalidConfig
from armroute.orchestrator import OrchestratorConfig, RoutingOrchestrator, sleep_handler
from armroute.reward import BernoulliRewardSource
from armroute.rl.bandit import ThompsonBandit
from armroute.types import Request, WorkItem


def _requests(n: int) -> list[Request]:
    return [Request(request_id=f"req-{i}", payload="data") for i in range(n)]


def _paced(n: int, gap_s: float = 0.001):
    # Gives workers time to feed rewards back between selections
    for req in _requests(n):
        yield req
        time.sleep(gap_s)


@pytest.mark.parametrize("workers", [0, 4])
def test_routes_toward_the_only_rewarding_arm(workers):
    cfg = OrchestratorConfig(num_arms=3, workers=workers, seed=0, shutdown_timeout_s=10.0)
    orch = RoutingOrchestrator(cfg, BernoulliRewardSource([0.0, 0.0, 1.0], seed=1))
    result = orch.run(_paced(300))

    assert result.routed == 300
    assert sum(result.pulls) == 300
    assert result.best_arm == 2
    assert result.pulls[2] > result.pulls[0]
    assert result.pulls[2] > result.pulls[1]
    assert result.report.processed == 300
    assert result.report.ok


def test_pool_mode_runs_handler_on_workers():
    threads: set[str] = set()
    lock = threading.Lock()

    def handler(item: WorkItem, arm: int) -> None:
        assert item.meta["arm"] == arm
        with lock:
            threads.add(threading.current_thread().name)

    cfg = OrchestratorConfig(num_arms=2, workers=2, seed=3)
    orch = RoutingOrchestrator(cfg, BernoulliRewardSource([0.5, 0.5], seed=3), handler=handler)
    orch.run(_requests(50))
    assert threads
    assert all(name.startswith("router-") for name in threads)


def test_handler_failure_counts_as_failed_reward():
    def handler(item: WorkItem, arm: int) -> None:
        raise RuntimeError("backend down")

    cfg = OrchestratorConfig(num_arms=2, workers=0, seed=4)
    orch = RoutingOrchestrator(cfg, BernoulliRewardSource([1.0, 1.0], seed=4), handler=handler)
    result = orch.run(_requests(10))

    assert result.routed == 10
    assert len(result.report.failures) == 10
    assert all(f.worker_id is None for f in result.report.failures)
    # every outcome was recorded as a failure
    for arm in range(2):
        bel = orch.bandit.belief(arm)
        assert bel.success_weight == 1.0
    assert sum(result.pulls) == 10


def test_handler_failure_in_pool_mode_is_reported():
    def handler(item: WorkItem, arm: int) -> None:
        if item.item_id.endswith("7"):
            raise ValueError("bad payload")

    cfg = OrchestratorConfig(num_arms=2, workers=3, seed=5)
    orch = RoutingOrchestrator(cfg, BernoulliRewardSource([0.5, 0.5], seed=5), handler=handler)
    result = orch.run(_requests(20))
    assert sorted(f.item_id for f in result.report.failures) == ["req-17", "req-7"]
    assert sum(result.pulls) == 20


def test_trace_and_report(tmp_path):
    run_dir = tmp_path / "run"
    cfg = OrchestratorConfig(num_arms=3, workers=2, seed=6, trace_path=str(run_dir / "trace.jsonl"))
    orch = RoutingOrchestrator(cfg, BernoulliRewardSource([0.1, 0.2, 0.9], seed=6), handler=sleep_handler(0.0))
    result = orch.run(_requests(40))

    rows = load_trace_jsonl(run_dir / "trace.jsonl")
    assert len(rows) == 40
    assert {r["request_id"] for r in rows} == {f"req-{i}" for i in range(40)}
    assert all(r["worker_id"] in (0, 1) for r in rows)
    assert all(len(r["estimates"]) == 3 for r in rows)
    assert sum(r["reward"] for r in rows) == sum(
        int(orch.bandit.belief(a).success_weight - 1.0) for a in range(3)
    )

    md = build_report(run_dir)
    text = md.read_text(encoding="utf-8")
    assert "Best arm" in text
    assert "Requests routed: **40**" in text
    assert result.to_dict()["routed"] == 40


def test_mismatched_arm_counts_are_rejected():
    with pytest.raises(InvalidConfig):
        RoutingOrchestrator(OrchestratorConfig(num_arms=3), BernoulliRewardSource([0.5, 0.5]))
    with pytest.raises(InvalidConfig):
        RoutingOrchestrator(
            OrchestratorConfig(num_arms=2),
            BernoulliRewardSource([0.5, 0.5]),
            bandit=ThompsonBandit(4),
        )


def test_negative_workers_rejected():
    with pytest.raises(InvalidConfig):
        RoutingOrchestrator(OrchestratorConfig(num_arms=1, workers=-1), BernoulliRewardSource([0.5]))


class _AlwaysWins:
    def reward(self, arm: int) -> int:
        return 1


def test_zero_arms_rejected():
    with pytest.raises(InvalidConfig):
        RoutingOrchestrator(OrchestratorConfig(num_arms=0), _AlwaysWins())


def test_reward_source_without_arm_count_is_accepted():
    orch = RoutingOrchestrator(OrchestratorConfig(num_arms=2, workers=0, seed=0), _AlwaysWins())
    result = orch.run(_requests(5))
    assert sum(result.pulls) == 5
    assert result.estimates[result.best_arm] > 0.5

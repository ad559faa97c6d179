"""armroute CLI.

Commands (each prints one JSON object on stdout):
  - simulate  : bandit only, Bernoulli arms with hidden rates
  - dispatch  : worker pool only, fixed per-item delay
  - route     : bandit + pool + simulated rewards, optional trace/report
  - report    : rebuild report.md from a run's trace.jsonl

Run:
  python -m armroute.cli --help
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import threading
import time
from pathlib import Path

from armroute.dashboard.report import build_report
from armroute.dispatch.pool import WorkerPool, current_worker_id
from armroute.errors import ArmrouteError
from armroute.orchestrator import OrchestratorConfig, RoutingOrchestrator, sleep_handler
from armroute.reward import BernoulliRewardSource
from armroute.rl.bandit import ThompsonBandit
from armroute.types import Request, WorkItem

logger = logging.getLogger(__name__)

DEFAULT_RATES = "0.05,0.02,0.08,0.03,0.01"


def _p(path: str | Path) -> Path:
    return path if isinstance(path, Path) else Path(path)


def _rates(text: str) -> list[float]:
    try:
        return [float(x) for x in str(text).split(",") if x.strip()]
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid rates {text!r}: {e}") from e


def _emit(obj: dict) -> None:
    sys.stdout.write(json.dumps(obj, ensure_ascii=False) + "\n")


def _cmd_simulate(ns: argparse.Namespace) -> int:
    rates = list(ns.rates)
    seed = ns.seed
    bandit = ThompsonBandit(len(rates), seed=seed)
    source = BernoulliRewardSource(rates, seed=None if seed is None else int(seed) + 1)
    for _ in range(int(ns.rounds)):
        arm = bandit.select_arm()
        bandit.update(arm, source.reward(arm))
    _emit(
        {
            "rounds": int(ns.rounds),
            "estimates": [round(v, 6) for v in bandit.estimates()],
            "pulls": [bandit.pulls(a) for a in range(bandit.num_arms)],
            "best_arm": bandit.best_arm(),
            "true_best_arm": source.best_arm,
        }
    )
    return 0


def _cmd_dispatch(ns: argparse.Namespace) -> int:
    delay = max(0.0, float(ns.delay))
    seen: list[tuple[str, int | None]] = []
    lock = threading.Lock()

    def process(item: WorkItem) -> None:
        time.sleep(delay)
        with lock:
            seen.append((item.item_id, current_worker_id()))
        logger.info("[worker %s] processed request %s", current_worker_id(), item.item_id)

    t0 = time.monotonic()
    pool = WorkerPool(int(ns.workers), process, maxsize=int(ns.queue_size)).start()
    try:
        for i in range(int(ns.items)):
            pool.submit(WorkItem(item_id=str(i), payload="data"))
    finally:
        pool.close_submission()
        report = pool.await_shutdown(timeout=ns.timeout)
    per_worker: dict[str, int] = {}
    for _, wid in seen:
        per_worker[str(wid)] = per_worker.get(str(wid), 0) + 1
    _emit(
        {
            "items": int(ns.items),
            "workers": int(ns.workers),
            "per_worker": per_worker,
            "elapsed_s": round(time.monotonic() - t0, 3),
            **report.to_dict(),
        }
    )
    return 0


def _cmd_route(ns: argparse.Namespace) -> int:
    rates = list(ns.rates)
    run_dir = _p(ns.out).expanduser().resolve() if ns.out else None
    cfg = OrchestratorConfig(
        num_arms=len(rates),
        workers=int(ns.workers),
        seed=ns.seed,
        queue_maxsize=int(ns.queue_size),
        shutdown_timeout_s=ns.timeout,
        trace_path=str(run_dir / "trace.jsonl") if run_dir else None,
    )
    source = BernoulliRewardSource(rates, seed=None if ns.seed is None else int(ns.seed) + 1)
    orch = RoutingOrchestrator(cfg, source, handler=sleep_handler(float(ns.delay)))
    requests = (Request(request_id=f"req-{i}", payload="data") for i in range(int(ns.requests)))
    result = orch.run(requests)
    out = result.to_dict()
    out["true_best_arm"] = source.best_arm
    if run_dir is not None:
        out["report"] = str(build_report(run_dir))
    _emit(out)
    return 0


def _cmd_report(ns: argparse.Namespace) -> int:
    run_dir = _p(ns.run_dir)
    md = build_report(run_dir)
    _emit({"report": str(md)})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="armroute",
        description="armroute: Thompson-sampling request routing over a fixed worker pool",
    )
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    sub = parser.add_subparsers(dest="command")

    p_sim = sub.add_parser("simulate", help="Run the bandit against simulated Bernoulli arms")
    p_sim.add_argument("--rates", type=_rates, default=_rates(DEFAULT_RATES), help="Comma-separated hidden success rates")
    p_sim.add_argument("--rounds", type=int, default=1000)
    p_sim.add_argument("--seed", type=int, default=None)
    p_sim.set_defaults(_handler=_cmd_simulate)

    p_disp = sub.add_parser("dispatch", help="Fan work items out over a worker pool")
    p_disp.add_argument("--items", type=int, default=20)
    p_disp.add_argument("--workers", type=int, default=4)
    p_disp.add_argument("--delay", type=float, default=0.1, help="Per-item processing time (s)")
    p_disp.add_argument("--queue-size", type=int, default=0, help="0 = unbounded")
    p_disp.add_argument("--timeout", type=float, default=None, help="Shutdown timeout (s)")
    p_disp.set_defaults(_handler=_cmd_dispatch)

    p_route = sub.add_parser("route", help="Route requests with the bandit over a worker pool")
    p_route.add_argument("--rates", type=_rates, default=_rates(DEFAULT_RATES))
    p_route.add_argument("--requests", type=int, default=1000)
    p_route.add_argument("--workers", type=int, default=4, help="0 = route inline without a pool")
    p_route.add_argument("--delay", type=float, default=0.0)
    p_route.add_argument("--queue-size", type=int, default=0)
    p_route.add_argument("--timeout", type=float, default=60.0)
    p_route.add_argument("--seed", type=int, default=None)
    p_route.add_argument("--out", default=None, help="Run directory for trace.jsonl and report.md")
    p_route.set_defaults(_handler=_cmd_route)

    p_rep = sub.add_parser("report", help="Build a Markdown report from a run's trace.jsonl")
    p_rep.add_argument("--run-dir", required=True)
    p_rep.set_defaults(_handler=_cmd_report)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    ns = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(ns.log_level)),
        format="%(asctime)s %(levelname)s %(threadName)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    if not getattr(ns, "command", None):
        parser.print_help(sys.stdout)
        return 0
    handler = getattr(ns, "_handler", None)
    if handler is None:
        parser.print_help(sys.stdout)
        return 2
    try:
        return int(handler(ns))
    except ArmrouteError as e:
        sys.stderr.write(f"[armroute] {type(e).__name__}: {e}\n")
        return 2
    except KeyboardInterrupt:
        sys.stderr.write("Interrupted\n")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())

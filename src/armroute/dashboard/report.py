from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class ArmSummary:
    arm: int
    pulls: int = 0
    successes: int = 0
    failures_reported: int = 0

    @property
    def empirical_rate(self) -> float:
        return float(self.successes / self.pulls) if self.pulls else 0.0

    @property
    def posterior_mean(self) -> float:
        # Beta(1, 1) prior plus observed outcomes
        return float((1 + self.successes) / (2 + self.pulls))


@dataclass
class TraceSummary:
    run_dir: Path
    requests: int
    best_arm: int
    arms: list[ArmSummary] = field(default_factory=list)
    workers_seen: int = 0


def load_trace_jsonl(path: Path) -> list[dict]:
    rows = []
    with Path(path).open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            rows.append(json.loads(line))
    return rows


def summarize_trace(rows: list[dict], run_dir: Path) -> TraceSummary:
    if not rows:
        return TraceSummary(run_dir=run_dir, requests=0, best_arm=-1)
    num_arms = max(int(r.get("arm", 0)) for r in rows) + 1
    for r in rows:
        num_arms = max(num_arms, len(r.get("estimates") or []))
    arms = [ArmSummary(arm=i) for i in range(num_arms)]
    workers = set()
    for r in rows:
        s = arms[int(r["arm"])]
        s.pulls += 1
        s.successes += int(r.get("reward", 0))
        if r.get("error"):
            s.failures_reported += 1
        if r.get("worker_id") is not None:
            workers.add(int(r["worker_id"]))
    best = max(arms, key=lambda s: (s.posterior_mean, -s.arm))
    return TraceSummary(run_dir=run_dir, requests=len(rows), best_arm=best.arm, arms=arms, workers_seen=len(workers))


def write_markdown(summary: TraceSummary, out_path: Path) -> None:
    lines = []
    lines.append("# armroute Routing Report\n")
    lines.append(f"- Run dir: `{summary.run_dir}`")
    lines.append(f"- Requests routed: **{summary.requests}**")
    lines.append(f"- Workers seen: **{summary.workers_seen}**")
    lines.append(f"- Best arm (posterior mean): **{summary.best_arm}**\n")

    lines.append("## Per-arm\n")
    lines.append("| arm | pulls | successes | rate | posterior mean | handler errors |")
    lines.append("|---:|---:|---:|---:|---:|---:|")
    for s in summary.arms:
        lines.append(
            f"| {s.arm} | {s.pulls} | {s.successes} | {s.empirical_rate:.4f} | {s.posterior_mean:.4f} | {s.failures_reported} |"
        )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def build_report(run_dir: Path, trace_name: str = "trace.jsonl", out_name: str = "report.md") -> Path:
    run_dir = Path(run_dir)
    trace = run_dir / trace_name
    rows = load_trace_jsonl(trace) if trace.exists() else []
    summary = summarize_trace(rows, run_dir=run_dir)
    out = run_dir / out_name
    write_markdown(summary, out)
    return out

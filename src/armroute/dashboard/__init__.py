from .report import build_report, load_trace_jsonl, summarize_trace

__all__ = ["build_report", "load_trace_jsonl", "summarize_trace"]

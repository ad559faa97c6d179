from .trace import JsonlTraceWriter, RoutingTrace

__all__ = ["JsonlTraceWriter", "RoutingTrace"]

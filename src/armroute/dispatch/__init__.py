from .pool import PoolConfig, WorkerPool, current_worker_id, start_pool

__all__ = ["PoolConfig", "WorkerPool", "current_worker_id", "start_pool"]

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..errors import InvalidConfig, PoolStateError, QueueClosed, ShutdownTimeout
from ..types import ItemFailure, PoolState, ShutdownReport, WorkItem

logger = logging.getLogger(__name__)

# End-of-queue marker; one per worker, enqueued behind every real item.
_STOP = object()

_local = threading.local()


def current_worker_id() -> int | None:
    """Id of the pool worker running the calling thread, or None outside a pool."""
    return getattr(_local, "worker_id", None)


@dataclass(frozen=True)
class PoolConfig:
    workers: int = 4
    # 0 = unbounded; otherwise submit() blocks while the queue is full
    maxsize: int = 0
    name: str = "worker"


class WorkerPool:
    """Fixed-size thread pool draining one shared FIFO queue.

    Lifecycle: CREATED -> RUNNING (start) -> DRAINING (close_submission)
    -> TERMINATED (await_shutdown).

    Every submitted item is claimed by exactly one worker. Exceptions raised
    by ``process`` are caught per item and reported by await_shutdown(); they
    never take a worker down.
    """

    def __init__(
        self,
        worker_count: int,
        process: Callable[[WorkItem], Any],
        *,
        maxsize: int = 0,
        name: str = "worker",
    ):
        if int(worker_count) < 1:
            raise InvalidConfig(f"WorkerPool: worker_count must be >= 1, got {worker_count}")
        if int(maxsize) < 0:
            raise InvalidConfig(f"WorkerPool: maxsize must be >= 0, got {maxsize}")
        self.worker_count = int(worker_count)
        self.name = str(name)
        self._process = process
        self._queue: queue.Queue[Any] = queue.Queue(maxsize=int(maxsize))
        self._state_lock = threading.Lock()
        self._results_lock = threading.Lock()
        self._threads: list[threading.Thread] = []
        self._failures: list[ItemFailure] = []
        self._cancelled: list[str] = []
        self._processed = 0
        self._report: ShutdownReport | None = None
        self.cancel_event = threading.Event()
        self.state = PoolState.CREATED

    @classmethod
    def from_config(cls, cfg: PoolConfig, process: Callable[[WorkItem], Any]) -> WorkerPool:
        return cls(cfg.workers, process, maxsize=cfg.maxsize, name=cfg.name)

    def start(self) -> WorkerPool:
        with self._state_lock:
            if self.state is not PoolState.CREATED:
                raise PoolStateError(f"cannot start pool in state {self.state.value}")
            for worker_id in range(self.worker_count):
                t = threading.Thread(
                    target=self._worker_loop,
                    args=(worker_id,),
                    name=f"{self.name}-{worker_id}",
                    daemon=True,
                )
                self._threads.append(t)
            self.state = PoolState.RUNNING
        for t in self._threads:
            t.start()
        logger.info("started pool %r with %d workers", self.name, self.worker_count)
        return self

    def submit(self, item: WorkItem) -> None:
        # Held across a blocking put so no item can land behind the stop markers.
        with self._state_lock:
            if self.state is not PoolState.RUNNING:
                raise QueueClosed(f"pool {self.name!r} is {self.state.value}; submit requires running")
            self._queue.put(item)

    def close_submission(self) -> None:
        with self._state_lock:
            if self.state is PoolState.CREATED:
                raise PoolStateError("pool was never started")
            if self.state is not PoolState.RUNNING:
                return
            self.state = PoolState.DRAINING
            for _ in self._threads:
                self._queue.put(_STOP)
        logger.debug("pool %r closed for submission", self.name)

    def cancel(self) -> None:
        """Stop processing items not yet claimed; in-flight items run to completion."""
        self.cancel_event.set()
        self.close_submission()

    def await_shutdown(self, timeout: float | None = None) -> ShutdownReport:
        with self._state_lock:
            if self.state is PoolState.TERMINATED:
                assert self._report is not None
                return self._report
            if self.state is not PoolState.DRAINING:
                raise PoolStateError("close_submission() must be called before await_shutdown()")

        deadline = None if timeout is None else time.monotonic() + float(timeout)
        for t in self._threads:
            if deadline is None:
                t.join()
            else:
                t.join(max(0.0, deadline - time.monotonic()))
        alive = [t.name for t in self._threads if t.is_alive()]
        if alive:
            raise ShutdownTimeout(float(timeout or 0.0), alive)

        with self._results_lock:
            report = ShutdownReport(
                processed=self._processed,
                failures=tuple(self._failures),
                cancelled=tuple(self._cancelled),
            )
        with self._state_lock:
            self._report = report
            self.state = PoolState.TERMINATED
        logger.info(
            "pool %r terminated: processed=%d failures=%d cancelled=%d",
            self.name,
            report.processed,
            len(report.failures),
            len(report.cancelled),
        )
        return report

    def pending(self) -> int:
        return self._queue.qsize()

    def _worker_loop(self, worker_id: int) -> None:
        _local.worker_id = worker_id
        logger.debug("worker %s-%d started", self.name, worker_id)
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    break
                if self.cancel_event.is_set():
                    with self._results_lock:
                        self._cancelled.append(item.item_id)
                    continue
                try:
                    self._process(item)
                except BaseException as e:
                    # includes KeyboardInterrupt/SystemExit raised by process()
                    logger.warning("worker %s-%d: item %s failed: %s: %s", self.name, worker_id, item.item_id, type(e).__name__, e)
                    with self._results_lock:
                        self._failures.append(ItemFailure(item.item_id, worker_id, e))
                with self._results_lock:
                    self._processed += 1
            finally:
                self._queue.task_done()
        logger.debug("worker %s-%d exiting", self.name, worker_id)

    def __enter__(self) -> WorkerPool:
        if self.state is PoolState.CREATED:
            self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        if self.state is PoolState.RUNNING:
            self.close_submission()
        self.await_shutdown()


def start_pool(worker_count: int, process: Callable[[WorkItem], Any], **kwargs: Any) -> WorkerPool:
    return WorkerPool(worker_count, process, **kwargs).start()

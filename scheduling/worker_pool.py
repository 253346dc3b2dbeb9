"""
Bounded worker pool for compiler-bound batch tasks.

Each worker runs one task at a time. A submitted task goes straight to the
most recently idled worker, or waits in a FIFO queue; a worker finishing a
task takes the next queued one itself before reporting idle. Exceptions are
delivered on the task's future and never stop a worker.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections import deque
from concurrent.futures import Future
from typing import Any, Callable, Deque, List, Optional, Tuple

from core.startup_config import resolve_pool_size
from core.structured_logging import bind_context

logger = logging.getLogger(__name__)

_WorkItem = Tuple[Future, Callable[[], Any]]
_STOP = None


class _Worker:
    """One pool thread with a single-slot inbox."""

    def __init__(self, pool: "WorkerPool", index: int):
        self.pool = pool
        self.index = index
        self.inbox: "queue.SimpleQueue[Optional[_WorkItem]]" = queue.SimpleQueue()
        self.thread = threading.Thread(
            target=self._loop,
            name=f"{pool.name}-{index}",
            daemon=True,
        )

    def _loop(self) -> None:
        while True:
            item = self.inbox.get()
            if item is _STOP:
                return
            future, fn = item
            try:
                if future.set_running_or_notify_cancel():
                    try:
                        result = fn()
                    except BaseException as e:
                        # Anything escaping the task, including non-Exception
                        # errors, lands on its future.
                        logger.debug("Task raised in %s: %r", self.thread.name, e)
                        future.set_exception(e)
                    else:
                        future.set_result(result)
            finally:
                keep_running = self.pool._task_done(self)
            if not keep_running:
                return


class WorkerPool:
    """Fixed set of threads with last-idle-first dispatch.

    Args:
        size: Worker count; defaults to min(available CPUs, 8).
        name: Thread name prefix.
    """

    def __init__(self, size: Optional[int] = None, name: str = "batch-worker"):
        self.name = name
        self._lock = threading.Lock()
        self._queue: Deque[_WorkItem] = deque()
        self._shutdown = False
        self._workers: List[_Worker] = [_Worker(self, i) for i in range(resolve_pool_size(size))]
        self._idle: List[_Worker] = list(self._workers)
        self._in_flight = 0
        for worker in self._workers:
            worker.thread.start()
        logger.debug("Started %s pool with %d worker(s)", name, len(self._workers))

    @property
    def size(self) -> int:
        return len(self._workers)

    @property
    def queued(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def idle(self) -> int:
        with self._lock:
            return len(self._idle)

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Schedule ``fn(*args, **kwargs)``; returns a future for its result.

        The call runs inside a copy of the submitter's context variables, so
        run and phase log fields follow the task onto the worker thread.

        Raises:
            RuntimeError: If the pool has been shut down.
        """
        future: Future = Future()
        bound = bind_context(fn)
        item: _WorkItem = (future, lambda: bound(*args, **kwargs))
        with self._lock:
            if self._shutdown:
                raise RuntimeError("cannot submit to a pool that has been shut down")
            self._in_flight += 1
            if self._idle:
                worker = self._idle.pop()
                worker.inbox.put(item)
            else:
                self._queue.append(item)
        return future

    def _task_done(self, worker: _Worker) -> bool:
        """Hand the worker its next item; returns False when it should exit."""
        with self._lock:
            self._in_flight -= 1
            if self._queue:
                worker.inbox.put(self._queue.popleft())
                return True
            if self._shutdown:
                return False
            self._idle.append(worker)
            return True

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting tasks, let queued and running ones finish, stop workers."""
        with self._lock:
            if self._shutdown:
                idle: List[_Worker] = []
            else:
                self._shutdown = True
                idle = self._idle
                self._idle = []
        for worker in idle:
            worker.inbox.put(_STOP)
        if wait:
            for worker in self._workers:
                worker.thread.join()
        logger.debug("Pool %s shut down", self.name)

    def __enter__(self) -> "WorkerPool":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown(wait=True)

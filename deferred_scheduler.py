
""" Deferred task queue drained on the host's idle tick. """

import threading
from collections import deque
from typing import Callable, Deque, List, Optional

from backend.texture_classes import DeferredTask

from utils import log, log_exception


class DeferredScheduler:
# FIFO queue of work that must not run inside a host mutation.
# enqueue only appends, so it is safe from an import callback or another thread.
# tick runs the tasks pending when it starts, in enqueue order, and does nothing while the host is busy.
# Tasks enqueued while draining wait for the next tick; a failing task is logged and dropped.

    def __init__(self, is_busy: Optional[Callable[[], bool]] = None):
        self.is_busy: Callable[[], bool] = is_busy or (lambda: False)
        self._queue: Deque[DeferredTask] = deque()
        self._lock = threading.Lock()
        self._next_order: int = 0
        self._draining: bool = False


    def enqueue(self, action: Callable[[], object], label: str = "") -> DeferredTask:
        with self._lock:
            task = DeferredTask(order=self._next_order, action=action, label=label)
            self._next_order += 1
            self._queue.append(task)
        return task


    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._queue)


    def __len__(self) -> int:
        return self.pending


    def tick(self) -> int:
    # Returns the number of tasks executed during this tick.

        if self._draining:
            return 0
        # Re-entrant tick from inside a task.

        if self.is_busy():
            return 0

        with self._lock:
            batch: List[DeferredTask] = list(self._queue)
            self._queue.clear()

        started: int = 0
        self._draining = True
        try:
            for task in batch:
                started += 1
                self._run(task)
        finally:
            self._draining = False
            if started < len(batch):
                with self._lock:
                    self._queue.extendleft(reversed(batch[started:]))
            # Interrupted drain (e.g., KeyboardInterrupt): tasks not started go back to the front, in order.
        return started


    def run_until_idle(self, max_ticks: int = 100) -> int:
    # Ticks until the queue is empty; the limit stops a task that keeps re-enqueueing work.

        executed: int = 0
        for _ in range(max_ticks):
            if not self.pending:
                return executed
            executed += self.tick()
        if self.pending:
            log(f"Deferred queue still has {self.pending} task(s) after {max_ticks} ticks.", "warn")
        return executed


    @staticmethod
    def _run(task: DeferredTask) -> None:
        try:
            task.action()
        except Exception as error:
            log_exception(f"Deferred task #{task.order} failed ({task.label or 'unnamed'})", error)

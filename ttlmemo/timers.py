"""Cancellable one-shot timers, used to evict expired items proactively."""

from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time

from abc import ABC, abstractmethod
from typing import Callable

logger = logging.getLogger(__name__)


class ScheduledTask:
    """A callback that runs at most once, unless cancelled first.

    Both `run()` and `cancel()` are safe to call any number of times, from any thread, in any
    order: whichever happens first wins and the other becomes a no-op.
    """
    def __init__(self, callback: Callable[[], None], on_cancel: Callable[[], None]|None=None):
        self._callback = callback
        self._on_cancel = on_cancel
        self._lock = threading.Lock()
        self.fired = False
        self.cancelled = False

    @property
    def done(self) -> bool:
        """Whether this task has either fired or been cancelled."""
        return self.fired or self.cancelled

    def run(self) -> None:
        """Runs the callback, if we haven't already run or been cancelled."""
        with self._lock:
            if self.done:
                return
            self.fired = True
        try:
            self._callback()
        except Exception:
            # there's no caller to propagate to from a timer thread
            logger.exception(f'Error running scheduled task {self._callback}')

    def cancel(self) -> bool:
        """Cancels this task. Returns True if this call prevented it from running."""
        with self._lock:
            if self.done:
                return False
            self.cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()
        return True


class Scheduler(ABC):
    """Base class for deferred-execution facilities."""
    @abstractmethod
    def schedule(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledTask:
        """Schedules `callback` to run once after `delay_ms` milliseconds."""
        pass


class ThreadingScheduler(Scheduler):
    """Runs all tasks from a single daemon worker thread, in order of their deadlines.

    Pending tasks sit in a heap until due. Cancelling a task wakes the worker, and the heap is
    compacted once cancelled tasks make up more than half of it. The worker is started lazily on
    the first `schedule()` and restarted if it ever died.
    """
    def __init__(self):
        self._queue: list[tuple[float, int, ScheduledTask]] = []
        self._counter = itertools.count()
        self._cancelled = 0
        self._cond = threading.Condition()
        self._worker: threading.Thread|None = None

    def __len__(self) -> int:
        """Number of tasks in the queue (including cancelled ones not yet compacted away)."""
        with self._cond:
            return len(self._queue)

    def schedule(self, delay_ms: float, callback: Callable[[], None]) -> ScheduledTask:
        task = ScheduledTask(callback, on_cancel=self._on_cancel)
        deadline = time.monotonic() + delay_ms / 1000.0
        with self._cond:
            self._ensure_worker()
            heapq.heappush(self._queue, (deadline, next(self._counter), task))
            self._cond.notify()
        return task

    def _ensure_worker(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        worker = threading.Thread(target=self._run, name='ttlmemo-scheduler', daemon=True)
        worker.start()
        self._worker = worker
        logger.debug('Started scheduler worker thread')

    def _on_cancel(self) -> None:
        with self._cond:
            self._cancelled += 1
            if self._cancelled > len(self._queue) // 2:
                self._queue = [entry for entry in self._queue if not entry[2].done]
                heapq.heapify(self._queue)
                self._cancelled = 0
            self._cond.notify()

    def _next_due(self) -> ScheduledTask:
        """Blocks until a live task is due, then pops and returns it."""
        with self._cond:
            while True:
                while self._queue and self._queue[0][2].done:
                    heapq.heappop(self._queue)
                if not self._queue:
                    self._cond.wait()
                    continue
                remaining = self._queue[0][0] - time.monotonic()
                if remaining <= 0:
                    return heapq.heappop(self._queue)[2]
                self._cond.wait(remaining)

    def _run(self) -> None:
        while True:
            self._next_due().run()

"""Shared fixed-rate scheduler: one timer thread dispatching firings onto a worker pool."""

import heapq
import itertools
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Tuple

from brokermetrics.config import DEFAULT_SCHEDULER_WORKERS
from brokermetrics.observability import get_logger


class ScheduledTask:
    """Handle for one repeating job; cancel() stops future firings."""

    def __init__(self, fn: Callable[[], None], interval_s: float, name: str) -> None:
        self._fn = fn
        self._interval_s = interval_s
        self._name = name
        self._cancelled = False
        self._running = False
        self.runs = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def interval_s(self) -> float:
        return self._interval_s

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def __repr__(self) -> str:
        return f"ScheduledTask(name={self._name!r}, interval_s={self._interval_s}, cancelled={self._cancelled})"


class PeriodicScheduler:
    """
    Runs any number of fixed-rate tasks on a shared ThreadPoolExecutor.

    A task is never dispatched while its previous firing is still running, and
    missed slots are skipped rather than replayed. An exception escaping a
    firing is logged and the task keeps its schedule. shutdown() stops future
    dispatching; firings already handed to the pool complete.
    """

    def __init__(
        self,
        workers: int = DEFAULT_SCHEDULER_WORKERS,
        name: str = "brokermetrics-scheduler",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._name = name
        self._workers = workers
        self._clock = clock
        self._heap: List[Tuple[float, int, ScheduledTask]] = []
        self._seq = itertools.count()
        self._cond = threading.Condition()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._thread: Optional[threading.Thread] = None
        self._stopped = False
        self._logger = get_logger("brokermetrics.scheduler")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stopped

    def start(self) -> None:
        """Start the timer thread and worker pool (idempotent)."""
        with self._cond:
            if self._stopped:
                raise RuntimeError(f"scheduler {self._name} is shut down")
            if self._thread is not None:
                return
            self._executor = ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix=self._name)
            self._thread = threading.Thread(target=self._loop, name=f"{self._name}-timer", daemon=True)
            self._thread.start()
        self._logger.info("scheduler_started", extra={"scheduler": self._name, "workers": self._workers})

    def schedule_at_fixed_rate(
        self,
        fn: Callable[[], None],
        initial_delay_ms: int,
        interval_ms: int,
        name: Optional[str] = None,
    ) -> ScheduledTask:
        """Run ``fn`` after ``initial_delay_ms`` and then every ``interval_ms``."""
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        task = ScheduledTask(fn, interval_ms / 1000.0, name or getattr(fn, "__name__", "task"))
        self.start()
        with self._cond:
            first = self._clock() + max(0, initial_delay_ms) / 1000.0
            heapq.heappush(self._heap, (first, next(self._seq), task))
            self._cond.notify()
        return task

    def shutdown(self, wait: bool = True) -> None:
        with self._cond:
            if self._stopped:
                return
            self._stopped = True
            self._cond.notify_all()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
        self._logger.info("scheduler_stopped", extra={"scheduler": self._name})

    def _loop(self) -> None:
        while True:
            with self._cond:
                if self._stopped:
                    return
                if not self._heap:
                    self._cond.wait()
                    continue
                due, _, task = self._heap[0]
                if task.cancelled:
                    heapq.heappop(self._heap)
                    continue
                now = self._clock()
                if due > now:
                    self._cond.wait(timeout=due - now)
                    continue
                heapq.heappop(self._heap)
                following = due + task.interval_s
                if following <= now:
                    missed = int((now - following) // task.interval_s) + 1
                    following += missed * task.interval_s
                heapq.heappush(self._heap, (following, next(self._seq), task))
                if task._running:
                    self._logger.debug("task_still_running", extra={"task": task.name})
                    continue
                task._running = True
                self._executor.submit(self._run, task)

    def _run(self, task: ScheduledTask) -> None:
        try:
            if not task.cancelled:
                task._fn()
                task.runs += 1
        except Exception as e:
            self._logger.exception("task_failed", extra={"task": task.name, "error": str(e)})
        finally:
            task._running = False

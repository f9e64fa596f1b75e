"""Named registry of time-windowed counters ("ticks"), one counter per key."""

import threading
from typing import TYPE_CHECKING, Callable, Dict, List, Optional

from brokermetrics.config import MetricsConfig
from brokermetrics.counter import TimeWindowedCounter
from brokermetrics.observability import get_logger

if TYPE_CHECKING:
    from brokermetrics.scheduler import PeriodicScheduler, ScheduledTask


class Ticks:
    """Lazily creates one TimeWindowedCounter per name; concurrent first access yields a single instance."""

    def __init__(
        self,
        config: Optional[MetricsConfig] = None,
        counter_factory: Optional[Callable[[str], TimeWindowedCounter]] = None,
    ) -> None:
        self._config = config or MetricsConfig()
        self._counter_factory = counter_factory or self._default_counter
        self._counters: Dict[str, TimeWindowedCounter] = {}
        self._lock = threading.Lock()
        self._report_task: Optional["ScheduledTask"] = None
        self._logger = get_logger("brokermetrics.ticks")

    def _default_counter(self, name: str) -> TimeWindowedCounter:
        return TimeWindowedCounter(
            name=name,
            retention_ms=self._config.counter_retention_ms,
            bucket_ms=self._config.counter_bucket_ms,
            max_samples_per_bucket=self._config.counter_max_samples_per_bucket,
        )

    def get_counter(self, name: str) -> TimeWindowedCounter:
        """Return the counter for ``name``, creating it on first access."""
        counter = self._counters.get(name)
        if counter is not None:
            return counter
        with self._lock:
            counter = self._counters.get(name)
            if counter is None:
                counter = self._counter_factory(name)
                self._counters[name] = counter
                self._logger.debug("counter_created", extra={"counter": name})
            return counter

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._counters)

    def start_tick(self, name: str) -> None:
        self.get_counter(name).start_tick()

    def end_tick(self, name: str) -> Optional[int]:
        return self.get_counter(name).end_tick()

    def flow(self, name: str, value: int, num: int = 1) -> None:
        self.get_counter(name).flow(value, num)

    def summaries(self) -> Dict[str, Dict[str, float]]:
        """Return { counter_name: summary } for every registered counter."""
        return {name: self.get_counter(name).summary() for name in self.names()}

    def log_summaries(self) -> None:
        for name in self.names():
            counter = self.get_counter(name)
            if counter.get_total_count() == 0:
                continue
            self._logger.info(counter.format_summary(), extra={"counter": name})

    def start(self, scheduler: "PeriodicScheduler") -> None:
        """Log every counter's summary at the configured ticks interval (idempotent)."""
        if self._report_task is not None and not self._report_task.cancelled:
            return
        interval = self._config.ticks_report_interval_ms
        self._report_task = scheduler.schedule_at_fixed_rate(
            self.log_summaries, interval, interval, name="ticks_report"
        )

    def stop(self) -> None:
        if self._report_task is not None:
            self._report_task.cancel()
            self._report_task = None

    def __len__(self) -> int:
        return len(self._counters)

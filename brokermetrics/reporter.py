"""Scheduled increment reporter: per tracked item, a report task and a 1s sample task."""

import logging
import threading
from typing import Callable, Dict, Optional, Sequence, Tuple

from brokermetrics.config import SAMPLE_INTERVAL_MS, MetricsConfig
from brokermetrics.observability import get_logger
from brokermetrics.sample_brief import StatisticsItemSampleBrief
from brokermetrics.scheduler import PeriodicScheduler, ScheduledTask
from brokermetrics.statistics import SEPARATOR, StatisticsItem, StatisticsSnapshot

ItemKey = Tuple[str, str]


def _key(item: StatisticsItem) -> ItemKey:
    return item.stat_kind, item.stat_object


class StatisticsItemPrinter:
    """Writes one delimited report line per increment to the stats logger."""

    def __init__(self, logger: Optional[logging.Logger] = None, separator: str = SEPARATOR) -> None:
        self._logger = logger or get_logger("brokermetrics.stats")
        self._separator = separator

    def print(self, prefix: str, increment: StatisticsSnapshot, *suffixes: str) -> str:
        line = f"{prefix}{self._separator}{increment.format(self._separator)}{''.join(suffixes)}"
        self._logger.info(
            line,
            extra={"stat_kind": increment.stat_kind, "stat_object": increment.stat_object},
        )
        return line


class ScheduledStatReporter:
    """
    Reports, for every scheduled StatisticsItem, the increment since the last
    report firing, provided the item was invoked and at least one accumulator
    moved. A separate sample task folds per-second deltas of the configured
    item names into a StatisticsItemSampleBrief whose text is appended to the
    report line and reset after each report firing.

    The reporter's baselines (``_last_snapshots``) and the briefs'
    own previous snapshots are kept apart so the two cadences never share state.
    """

    def __init__(
        self,
        name: str,
        printer: StatisticsItemPrinter,
        scheduler: PeriodicScheduler,
        interval_ms: int,
        sample_item_names: Sequence[str] = (),
        initial_delay_ms: int = 0,
        enabled: Optional[Callable[[], bool]] = None,
    ) -> None:
        self._name = name
        self._printer = printer
        self._scheduler = scheduler
        self._interval_ms = interval_ms
        self._initial_delay_ms = initial_delay_ms
        self._sample_item_names = tuple(sample_item_names)
        self._enabled = enabled or (lambda: True)
        self._last_snapshots: Dict[ItemKey, StatisticsSnapshot] = {}
        self._sample_briefs: Dict[ItemKey, StatisticsItemSampleBrief] = {}
        self._tasks: Dict[ItemKey, Tuple[ScheduledTask, ScheduledTask]] = {}
        self._report_locks: Dict[ItemKey, threading.Lock] = {}
        self._lock = threading.Lock()
        self._logger = get_logger("brokermetrics.reporter")

    @classmethod
    def from_config(
        cls,
        name: str,
        printer: StatisticsItemPrinter,
        scheduler: PeriodicScheduler,
        config: MetricsConfig,
    ) -> "ScheduledStatReporter":
        return cls(
            name,
            printer,
            scheduler,
            interval_ms=config.report_interval_ms,
            sample_item_names=config.sample_item_names,
            initial_delay_ms=config.initial_delay_ms,
            enabled=config.is_report_enabled,
        )

    @property
    def name(self) -> str:
        return self._name

    def enabled(self) -> bool:
        return bool(self._enabled())

    def schedule(self, item: StatisticsItem) -> bool:
        """Start the report and sample tasks for ``item``; False if its key is already scheduled."""
        key = _key(item)
        sample_names = [n for n in self._sample_item_names if n in item.item_names]
        with self._lock:
            if key in self._tasks:
                return False
            self._last_snapshots.pop(key, None)
            self._sample_briefs[key] = StatisticsItemSampleBrief(item, sample_names)
            self._report_locks[key] = threading.Lock()
            report_task = self._scheduler.schedule_at_fixed_rate(
                lambda: self.report(item),
                self._initial_delay_ms,
                self._interval_ms,
                name=f"report:{key[0]}:{key[1]}",
            )
            sample_task = self._scheduler.schedule_at_fixed_rate(
                lambda: self.sample(item),
                SAMPLE_INTERVAL_MS,
                SAMPLE_INTERVAL_MS,
                name=f"sample:{key[0]}:{key[1]}",
            )
            self._tasks[key] = (report_task, sample_task)
        self._logger.info(
            "item_scheduled",
            extra={"reporter": self._name, "stat_kind": key[0], "stat_object": key[1]},
        )
        return True

    def remove(self, item: StatisticsItem) -> bool:
        """Cancel both tasks of ``item`` and drop its baseline and brief."""
        key = _key(item)
        with self._lock:
            tasks = self._tasks.pop(key, None)
            self._last_snapshots.pop(key, None)
            self._sample_briefs.pop(key, None)
            self._report_locks.pop(key, None)
        if tasks is None:
            return False
        for task in tasks:
            task.cancel()
        self._logger.info(
            "item_removed",
            extra={"reporter": self._name, "stat_kind": key[0], "stat_object": key[1]},
        )
        return True

    def is_scheduled(self, item: StatisticsItem) -> bool:
        return _key(item) in self._tasks

    def last_snapshot(self, stat_kind: str, stat_object: str) -> Optional[StatisticsSnapshot]:
        return self._last_snapshots.get((stat_kind, stat_object))

    def sample_brief(self, stat_kind: str, stat_object: str) -> Optional[StatisticsItemSampleBrief]:
        return self._sample_briefs.get((stat_kind, stat_object))

    def report(self, item: StatisticsItem) -> Optional[str]:
        """One report firing; returns the printed line, or None when nothing was printed.

        Items that are not scheduled (never scheduled, or removed while a
        firing was pending) are skipped and leave no baseline behind.
        """
        if not self.enabled():
            return None
        key = _key(item)
        with self._lock:
            report_lock = self._report_locks.get(key)
            brief = self._sample_briefs.get(key)
        if report_lock is None:
            return None
        with report_lock:
            snapshot = item.snapshot()
            increment = snapshot.subtract(self._last_snapshots.get(key))

            interceptor = item.interceptor
            interceptor_text = ""
            if interceptor is not None:
                interceptor_text = interceptor.format_brief()
                interceptor.reset()

            line = None
            if increment.has_increased():
                line = self._printer.print(self._name, increment, interceptor_text, brief.format() if brief else "")
            with self._lock:
                # a remove() or reschedule since the lookup owns the key now
                if self._report_locks.get(key) is report_lock:
                    self._last_snapshots[key] = snapshot
            if brief is not None:
                brief.reset()
        return line

    def sample(self, item: StatisticsItem) -> None:
        """One sample firing: fold a fresh snapshot into the item's brief."""
        if not self.enabled():
            return
        brief = self._sample_briefs.get(_key(item))
        if brief is not None:
            brief.sample(item.snapshot())

    def __len__(self) -> int:
        return len(self._tasks)

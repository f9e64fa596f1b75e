"""Per-accumulator rolling briefs (max/min/avg of per-second increments) over one report window."""

import sys
import threading
from typing import List, Optional, Sequence

from brokermetrics.statistics import SEPARATOR, StatisticsItem, StatisticsSnapshot

# min sentinel until the first sample lands
_NO_MIN = sys.maxsize


class ItemSampleBrief:
    """Sample brief of one accumulator for a period of time."""

    def __init__(self) -> None:
        self.reset()

    def sample(self, value: int) -> None:
        self._max = max(self._max, value)
        self._min = min(self._min, value)
        self._total += value
        self._count += 1

    def reset(self) -> None:
        self._max = 0
        self._min = _NO_MIN
        self._total = 0
        self._count = 0

    def get_max(self) -> int:
        return self._max

    def get_min(self) -> int:
        """Smallest sample, or 0 when nothing was sampled since the last reset."""
        return self._min if self._count > 0 else 0

    def get_total(self) -> int:
        return self._total

    def get_count(self) -> int:
        return self._count

    def get_avg(self) -> float:
        return self._total / self._count if self._count else 0.0


class StatisticsItemSampleBrief:
    """
    Folds the per-accumulator delta between consecutive sample() snapshots into
    one ItemSampleBrief per name. The previous snapshot used here is private to
    the brief; it is independent from the reporter's last reported snapshot.

    sample(), reset() and the text rendering hold the same lock, so a reader
    sees the briefs either before or after a fold.
    """

    def __init__(self, item: StatisticsItem, item_names: Sequence[str]) -> None:
        for name in item_names:
            if name not in item.item_names:
                raise ValueError(f"unknown item {name!r} for {item.stat_kind}/{item.stat_object}")
        self._last_snapshot: Optional[StatisticsSnapshot] = item.snapshot()
        self._item_names = tuple(item_names)
        self._briefs: List[ItemSampleBrief] = [ItemSampleBrief() for _ in self._item_names]
        self._lock = threading.Lock()

    @property
    def item_names(self) -> Sequence[str]:
        return self._item_names

    def brief(self, name: str) -> ItemSampleBrief:
        return self._briefs[self._item_names.index(name)]

    def sample(self, snapshot: Optional[StatisticsSnapshot]) -> None:
        if snapshot is None:
            return
        with self._lock:
            for name, brief in zip(self._item_names, self._briefs):
                last_value = self._last_snapshot.get_item_accumulate(name) if self._last_snapshot else 0
                brief.sample(max(0, snapshot.get_item_accumulate(name) - last_value))
            self._last_snapshot = snapshot

    def reset(self) -> None:
        with self._lock:
            for brief in self._briefs:
                brief.reset()

    def format(self, separator: str = SEPARATOR) -> str:
        with self._lock:
            return "".join(
                f"{separator}{brief.get_max()}{separator}{brief.get_avg():.2f}" for brief in self._briefs
            )

    def __str__(self) -> str:
        return self.format()

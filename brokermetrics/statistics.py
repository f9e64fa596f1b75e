"""Statistics items (invoke count + named accumulators), their snapshots, and increment interceptors."""

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

SEPARATOR = "|"

# (upper bound, slot count) rows for StatisticsBrief; values above the last bound share one overflow slot.
DEFAULT_BRIEF_META: Tuple[Tuple[int, int], ...] = ((50, 50), (100, 10), (1000, 20), (10000, 18))


@dataclass(frozen=True)
class StatisticsSnapshot:
    """Immutable point-in-time copy of a StatisticsItem; also used for increments."""

    stat_kind: str
    stat_object: str
    item_names: Tuple[str, ...]
    invoke_times: int
    item_accumulates: Tuple[int, ...]
    last_timestamp: float = 0.0

    @classmethod
    def zero(cls, stat_kind: str, stat_object: str, item_names: Sequence[str]) -> "StatisticsSnapshot":
        names = tuple(item_names)
        return cls(stat_kind, stat_object, names, 0, (0,) * len(names))

    def get_item_accumulate(self, name: str) -> int:
        try:
            return self.item_accumulates[self.item_names.index(name)]
        except ValueError:
            raise ValueError(f"unknown item {name!r} for {self.stat_kind}/{self.stat_object}") from None

    def subtract(self, earlier: Optional["StatisticsSnapshot"]) -> "StatisticsSnapshot":
        """Field-wise ``self - earlier``; a missing baseline counts as zero and decreases clamp to 0."""
        if earlier is None:
            return self
        if earlier.item_names != self.item_names:
            raise ValueError("cannot subtract snapshots with different item names")
        return StatisticsSnapshot(
            stat_kind=self.stat_kind,
            stat_object=self.stat_object,
            item_names=self.item_names,
            invoke_times=max(0, self.invoke_times - earlier.invoke_times),
            item_accumulates=tuple(
                max(0, now - before) for now, before in zip(self.item_accumulates, earlier.item_accumulates)
            ),
            last_timestamp=self.last_timestamp,
        )

    def has_increased(self) -> bool:
        """True when invoked at least once and at least one accumulator moved."""
        if self.invoke_times == 0:
            return False
        return any(value != 0 for value in self.item_accumulates)

    def format(self, separator: str = SEPARATOR) -> str:
        fields = [self.stat_kind, self.stat_object, str(self.invoke_times)]
        fields.extend(str(value) for value in self.item_accumulates)
        return separator.join(fields)


class Interceptor(ABC):
    """Observes every inc_items() call of the item it is attached to."""

    @abstractmethod
    def inc(self, item_incs: Sequence[int]) -> None:
        pass

    @abstractmethod
    def reset(self) -> None:
        pass

    def format_brief(self, separator: str = SEPARATOR) -> str:
        """Text appended to the item's report line; empty when there is nothing to add."""
        return ""


class StatisticsItem:
    """
    A tracked statistic identified by (stat_kind, stat_object): an invoke counter
    plus one accumulator per item name. Call sites increment it; the reporter
    only ever reads snapshot() copies.
    """

    def __init__(
        self,
        stat_kind: str,
        stat_object: str,
        item_names: Sequence[str],
        interceptor: Optional[Interceptor] = None,
    ) -> None:
        if not item_names:
            raise ValueError("a statistics item needs at least one item name")
        self._stat_kind = stat_kind
        self._stat_object = stat_object
        self._item_names: Tuple[str, ...] = tuple(item_names)
        self._accumulates: List[int] = [0] * len(self._item_names)
        self._invoke_times = 0
        self._last_timestamp = time.time()
        self._interceptor = interceptor
        self._lock = threading.Lock()

    @property
    def stat_kind(self) -> str:
        return self._stat_kind

    @property
    def stat_object(self) -> str:
        return self._stat_object

    @property
    def item_names(self) -> Tuple[str, ...]:
        return self._item_names

    @property
    def interceptor(self) -> Optional[Interceptor]:
        return self._interceptor

    def set_interceptor(self, interceptor: Optional[Interceptor]) -> None:
        self._interceptor = interceptor

    def inc_items(self, *item_incs: int) -> None:
        """Add each value to the accumulator at the same position and count one invocation."""
        if len(item_incs) > len(self._item_names):
            raise ValueError(
                f"{len(item_incs)} increments for {len(self._item_names)} items of {self._stat_kind}/{self._stat_object}"
            )
        with self._lock:
            for i, inc in enumerate(item_incs):
                self._accumulates[i] += inc
            self._invoke_times += 1
            self._last_timestamp = time.time()
        interceptor = self._interceptor
        if interceptor is not None:
            interceptor.inc(item_incs)

    def get_item_accumulate(self, name: str) -> int:
        try:
            index = self._item_names.index(name)
        except ValueError:
            raise ValueError(f"unknown item {name!r} for {self._stat_kind}/{self._stat_object}") from None
        with self._lock:
            return self._accumulates[index]

    @property
    def invoke_times(self) -> int:
        return self._invoke_times

    def snapshot(self) -> StatisticsSnapshot:
        with self._lock:
            return StatisticsSnapshot(
                stat_kind=self._stat_kind,
                stat_object=self._stat_object,
                item_names=self._item_names,
                invoke_times=self._invoke_times,
                item_accumulates=tuple(self._accumulates),
                last_timestamp=self._last_timestamp,
            )

    def __repr__(self) -> str:
        return f"StatisticsItem(kind={self._stat_kind!r}, object={self._stat_object!r})"


class StatisticsBrief:
    """Max/min/total/count of sampled values plus a slotted histogram for high percentiles."""

    def __init__(self, top_percentile_meta: Sequence[Tuple[int, int]] = DEFAULT_BRIEF_META) -> None:
        if not top_percentile_meta:
            raise ValueError("top_percentile_meta needs at least one (upper_bound, slots) row")
        self._slot_bounds: List[int] = []
        lower = 0
        for upper, slots in top_percentile_meta:
            if upper <= lower or slots <= 0:
                raise ValueError(f"invalid brief meta row ({upper}, {slots})")
            width = (upper - lower) / slots
            self._slot_bounds.extend(int(round(lower + width * (i + 1))) for i in range(slots))
            lower = upper
        # last slot collects everything above the final bound
        self._counts: List[int] = [0] * (len(self._slot_bounds) + 1)
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self._max = 0
            self._min = 0
            self._total = 0
            self._count = 0
            self._counts = [0] * len(self._counts)

    def sample(self, value: int) -> None:
        with self._lock:
            if self._count == 0:
                self._max = self._min = value
            else:
                self._max = max(self._max, value)
                self._min = min(self._min, value)
            self._total += value
            self._count += 1
            self._counts[self._slot_index(value)] += 1

    def _slot_index(self, value: int) -> int:
        for i, bound in enumerate(self._slot_bounds):
            if value <= bound:
                return i
        return len(self._slot_bounds)

    def get_max(self) -> int:
        with self._lock:
            return self._max

    def get_min(self) -> int:
        with self._lock:
            return self._min

    def get_total(self) -> int:
        with self._lock:
            return self._total

    def get_count(self) -> int:
        with self._lock:
            return self._count

    def get_avg(self) -> float:
        with self._lock:
            return self._avg()

    def get_tp_value(self, ratio: float) -> int:
        """Upper bound of the slot holding the ``ratio`` percentile, capped at the observed max."""
        with self._lock:
            return self._tp_value(ratio)

    def tp999(self) -> int:
        return self.get_tp_value(0.999)

    def format(self, separator: str = SEPARATOR) -> str:
        """``|max|avg|tp999`` read under one lock acquisition."""
        with self._lock:
            highest = self._max
            return f"{separator}{highest}{separator}{self._avg():.2f}{separator}{min(self._tp_value(0.999), highest)}"

    # caller holds self._lock

    def _avg(self) -> float:
        return self._total / self._count if self._count else 0.0

    def _tp_value(self, ratio: float) -> int:
        if not 0 < ratio < 1:
            return 0
        count = self._count
        if count == 0:
            return 0
        excludes = int(count - count * ratio)
        if excludes == 0:
            return self._max
        seen = 0
        for i in range(len(self._counts) - 1, -1, -1):
            seen += self._counts[i]
            if seen > excludes:
                bound = self._slot_bounds[i] if i < len(self._slot_bounds) else self._max
                return min(bound, self._max)
        return 0


class StatisticsBriefInterceptor(Interceptor):
    """Latency-brief capability: keeps a StatisticsBrief for selected accumulators of an item."""

    def __init__(
        self,
        item: StatisticsItem,
        brief_item_names: Sequence[str],
        top_percentile_meta: Sequence[Tuple[int, int]] = DEFAULT_BRIEF_META,
    ) -> None:
        self._indexes: List[int] = []
        for name in brief_item_names:
            if name not in item.item_names:
                raise ValueError(f"unknown item {name!r} for {item.stat_kind}/{item.stat_object}")
            self._indexes.append(item.item_names.index(name))
        self._brief_item_names = tuple(brief_item_names)
        self._briefs = [StatisticsBrief(top_percentile_meta) for _ in brief_item_names]

    @property
    def statistics_briefs(self) -> List[StatisticsBrief]:
        return list(self._briefs)

    def inc(self, item_incs: Sequence[int]) -> None:
        for brief, index in zip(self._briefs, self._indexes):
            if index < len(item_incs):
                brief.sample(item_incs[index])

    def reset(self) -> None:
        for brief in self._briefs:
            brief.reset()

    def format_brief(self, separator: str = SEPARATOR) -> str:
        return "".join(brief.format(separator) for brief in self._briefs)

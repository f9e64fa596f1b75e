"""Time-windowed counter: flow (count) events and ticks with range, rate and percentile queries."""

import math
import random
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Tuple

from brokermetrics.config import (
    DEFAULT_COUNTER_BUCKET_MS,
    DEFAULT_COUNTER_MAX_SAMPLES_PER_BUCKET,
    DEFAULT_COUNTER_RETENTION_MS,
)

SEPARATOR = "|"

# Percentiles included in summary() and format_summary().
SUMMARY_PERCENTILES = (("tp50", 0.5), ("tp99", 0.99), ("tp999", 0.999))


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def _perf_micros() -> int:
    return time.perf_counter_ns() // 1000


class _Bucket:
    """Events recorded in one time slot: exact count/total/min/max plus a bounded value sample."""

    __slots__ = ("slot", "count", "total", "min", "max", "calls", "samples")

    def __init__(self, slot: int) -> None:
        self.slot = slot
        self.count = 0
        self.total = 0
        self.min = 0
        self.max = 0
        self.calls = 0
        # (value, num) pairs; a reservoir over flow() calls once full
        self.samples: List[Tuple[int, int]] = []

    def add(self, value: int, num: int, max_samples: int, rng: random.Random) -> None:
        if self.count == 0:
            self.min = self.max = value
        else:
            self.min = min(self.min, value)
            self.max = max(self.max, value)
        self.count += num
        self.total += value * num
        self.calls += 1
        if len(self.samples) < max_samples:
            self.samples.append((value, num))
        else:
            j = rng.randrange(self.calls)
            if j < max_samples:
                self.samples[j] = (value, num)

    def weighted_samples(self) -> List[Tuple[int, float]]:
        scale = self.calls / len(self.samples) if self.samples else 0.0
        return [(value, num * scale) for value, num in self.samples]


class TimeWindowedCounter:
    """
    Records flow events (a magnitude) and ticks (elapsed microseconds between
    start_tick/end_tick on the same thread) into time buckets of ``bucket_ms``
    width. Buckets older than ``retention_ms`` are evicted under the counter
    lock whenever the counter is written or queried.

    Range queries are expressed as offsets back from now: ``get_count(a, b)``
    counts events whose age in milliseconds is in ``[a, b)``, so an event
    recorded at the current instant has age 0.
    """

    def __init__(
        self,
        name: str = "DEFAULT",
        retention_ms: int = DEFAULT_COUNTER_RETENTION_MS,
        bucket_ms: int = DEFAULT_COUNTER_BUCKET_MS,
        max_samples_per_bucket: int = DEFAULT_COUNTER_MAX_SAMPLES_PER_BUCKET,
        clock: Optional[Callable[[], float]] = None,
        tick_clock: Optional[Callable[[], int]] = None,
    ) -> None:
        if retention_ms <= 0 or bucket_ms <= 0 or max_samples_per_bucket <= 0:
            raise ValueError("retention_ms, bucket_ms and max_samples_per_bucket must be positive")
        self._name = name
        self._retention_ms = retention_ms
        self._bucket_ms = bucket_ms
        self._max_samples = max_samples_per_bucket
        self._clock = clock or _monotonic_ms
        self._tick_clock = tick_clock or _perf_micros
        self._buckets: Deque[_Bucket] = deque()
        self._lock = threading.Lock()
        self._rng = random.Random()
        self._tick_start = threading.local()

    @property
    def name(self) -> str:
        return self._name

    # ---- Writes ----

    def flow(self, value: int, num: int = 1) -> None:
        """Record ``num`` events of magnitude ``value`` at the current time."""
        if value < 0 or num <= 0:
            return
        slot = self._now_slot()
        with self._lock:
            self._evict(slot)
            if self._buckets and self._buckets[-1].slot >= slot:
                bucket = self._buckets[-1]
            else:
                bucket = _Bucket(slot)
                self._buckets.append(bucket)
            bucket.add(int(value), num, self._max_samples, self._rng)

    def record_count(self, magnitude: int) -> None:
        self.flow(magnitude)

    def start_tick(self) -> None:
        """Mark the start of a timed operation on the calling thread."""
        self._tick_start.value = self._tick_clock()

    def end_tick(self) -> Optional[int]:
        """Record the microseconds elapsed since this thread's start_tick; returns it.

        Without a preceding start_tick on the thread nothing is recorded.
        """
        start = getattr(self._tick_start, "value", None)
        if start is None:
            return None
        self._tick_start.value = None
        elapsed = max(0, self._tick_clock() - start)
        self.flow(elapsed)
        return elapsed

    # ---- Queries ----

    def get_max(self) -> int:
        with self._lock:
            return max((b.max for b in self._live()), default=0)

    def get_min(self) -> int:
        with self._lock:
            return min((b.min for b in self._live()), default=0)

    def get_total_count(self) -> int:
        with self._lock:
            return sum(b.count for b in self._live())

    def get_count(self, from_offset_ms: int, to_offset_ms: int) -> int:
        """Number of events whose age (ms back from now) is in [from_offset_ms, to_offset_ms)."""
        if to_offset_ms <= from_offset_ms:
            return 0
        now_slot = self._now_slot()
        total = 0
        with self._lock:
            for bucket in self._live(now_slot):
                age = (now_slot - bucket.slot) * self._bucket_ms
                if from_offset_ms <= age < to_offset_ms:
                    total += bucket.count
        return total

    def get_rate(self, from_offset_ms: int, to_offset_ms: int) -> float:
        """Events per second over the [from_offset_ms, to_offset_ms) age range."""
        if to_offset_ms <= from_offset_ms:
            return 0.0
        return self.get_count(from_offset_ms, to_offset_ms) / ((to_offset_ms - from_offset_ms) / 1000.0)

    def get_tp_value(self, ratio: float) -> int:
        """Smallest retained value v such that at least ``ratio`` of retained events are <= v."""
        if not 0 < ratio <= 1:
            raise ValueError(f"ratio must be in (0, 1], got {ratio!r}")
        samples: List[Tuple[int, float]] = []
        with self._lock:
            for bucket in self._live():
                samples.extend(bucket.weighted_samples())
        if not samples:
            return 0
        samples.sort(key=lambda pair: pair[0])
        total = sum(weight for _, weight in samples)
        threshold = ratio * total - 1e-9
        seen = 0.0
        for value, weight in samples:
            seen += weight
            if seen >= threshold:
                return value
        return samples[-1][0]

    def summary(self) -> Dict[str, float]:
        """Count, min, max, avg and tp50/tp99/tp999 over the retained window."""
        with self._lock:
            buckets = self._live()
            count = sum(b.count for b in buckets)
            total = sum(b.total for b in buckets)
            lowest = min((b.min for b in buckets), default=0)
            highest = max((b.max for b in buckets), default=0)
        out: Dict[str, float] = {
            "count": count,
            "min": lowest,
            "max": highest,
            "avg": total / count if count else 0.0,
        }
        for label, ratio in SUMMARY_PERCENTILES:
            out[label] = self.get_tp_value(ratio)
        return out

    def format_summary(self, prefix: Optional[str] = None) -> str:
        s = self.summary()
        fields = [
            prefix or self._name,
            str(s["count"]),
            str(s["min"]),
            str(s["max"]),
            f"{s['avg']:.2f}",
        ]
        fields.extend(str(s[label]) for label, _ in SUMMARY_PERCENTILES)
        return SEPARATOR.join(fields)

    # ---- Internals ----

    def _now_slot(self) -> int:
        return int(self._clock() // self._bucket_ms)

    def _evict(self, now_slot: int) -> None:
        oldest = now_slot - math.ceil(self._retention_ms / self._bucket_ms)
        while self._buckets and self._buckets[0].slot <= oldest:
            self._buckets.popleft()

    def _live(self, now_slot: Optional[int] = None) -> Deque[_Bucket]:
        # caller holds self._lock
        self._evict(self._now_slot() if now_slot is None else now_slot)
        return self._buckets

    def __repr__(self) -> str:
        return f"TimeWindowedCounter(name={self._name!r}, buckets={len(self._buckets)})"

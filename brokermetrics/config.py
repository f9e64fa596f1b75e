"""Runtime configuration for counters and the scheduled reporter (env driven)."""

import os
from dataclasses import dataclass, field
from typing import List

# Sampling cadence of the per-key sample task; not configurable.
SAMPLE_INTERVAL_MS = 1000

DEFAULT_REPORT_INTERVAL_MS = 60_000
DEFAULT_INITIAL_DELAY_MS = 0
DEFAULT_SCHEDULER_WORKERS = 4
DEFAULT_COUNTER_RETENTION_MS = 5 * 60 * 1000
DEFAULT_COUNTER_BUCKET_MS = 100
DEFAULT_COUNTER_MAX_SAMPLES_PER_BUCKET = 256
DEFAULT_TICKS_REPORT_INTERVAL_MS = 5000

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    try:
        value = int(os.environ.get(name, default))
    except (ValueError, TypeError):
        return default
    return value if value >= minimum else default


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.environ.get(name) or "").strip().lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    return default


def _env_list(name: str) -> List[str]:
    raw = os.environ.get(name) or ""
    return [part.strip() for part in raw.split(",") if part.strip()]


@dataclass
class MetricsConfig:
    """Settings for the reporter, the shared scheduler and the windowed counters.

    ``report_enabled`` is read by the reporter at every firing, so flipping it
    on a live config suspends or resumes reporting without rescheduling.
    """

    report_interval_ms: int = DEFAULT_REPORT_INTERVAL_MS
    initial_delay_ms: int = DEFAULT_INITIAL_DELAY_MS
    report_enabled: bool = True
    sample_item_names: List[str] = field(default_factory=list)
    scheduler_workers: int = DEFAULT_SCHEDULER_WORKERS
    counter_retention_ms: int = DEFAULT_COUNTER_RETENTION_MS
    counter_bucket_ms: int = DEFAULT_COUNTER_BUCKET_MS
    counter_max_samples_per_bucket: int = DEFAULT_COUNTER_MAX_SAMPLES_PER_BUCKET
    ticks_report_interval_ms: int = DEFAULT_TICKS_REPORT_INTERVAL_MS

    @property
    def sample_interval_ms(self) -> int:
        return SAMPLE_INTERVAL_MS

    def is_report_enabled(self) -> bool:
        return self.report_enabled

    @classmethod
    def from_env(cls) -> "MetricsConfig":
        return cls(
            report_interval_ms=_env_int("STATS_REPORT_INTERVAL_MS", DEFAULT_REPORT_INTERVAL_MS, minimum=1),
            initial_delay_ms=_env_int("STATS_INITIAL_DELAY_MS", DEFAULT_INITIAL_DELAY_MS),
            report_enabled=_env_bool("STATS_REPORT_ENABLED", True),
            sample_item_names=_env_list("STATS_SAMPLE_ITEMS"),
            scheduler_workers=_env_int("STATS_SCHEDULER_WORKERS", DEFAULT_SCHEDULER_WORKERS, minimum=1),
            counter_retention_ms=_env_int("COUNTER_RETENTION_MS", DEFAULT_COUNTER_RETENTION_MS, minimum=1),
            counter_bucket_ms=_env_int("COUNTER_BUCKET_MS", DEFAULT_COUNTER_BUCKET_MS, minimum=1),
            counter_max_samples_per_bucket=_env_int(
                "COUNTER_MAX_SAMPLES_PER_BUCKET", DEFAULT_COUNTER_MAX_SAMPLES_PER_BUCKET, minimum=1
            ),
            ticks_report_interval_ms=_env_int(
                "TICKS_REPORT_INTERVAL_MS", DEFAULT_TICKS_REPORT_INTERVAL_MS, minimum=1
            ),
        )

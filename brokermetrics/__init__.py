"""Runtime metrics for a message broker: windowed counters, scheduled increment reports, consumer-lag stats."""

from brokermetrics.config import MetricsConfig
from brokermetrics.counter import TimeWindowedCounter
from brokermetrics.ticks import Ticks
from brokermetrics.statistics import (
    Interceptor,
    StatisticsBrief,
    StatisticsBriefInterceptor,
    StatisticsItem,
    StatisticsSnapshot,
)
from brokermetrics.sample_brief import ItemSampleBrief, StatisticsItemSampleBrief
from brokermetrics.scheduler import PeriodicScheduler, ScheduledTask
from brokermetrics.reporter import ScheduledStatReporter, StatisticsItemPrinter
from brokermetrics.registry import StatisticsRegistry
from brokermetrics.offsets import OffsetRangeAggregator

__all__ = [
    "MetricsConfig",
    "TimeWindowedCounter",
    "Ticks",
    "Interceptor",
    "StatisticsBrief",
    "StatisticsBriefInterceptor",
    "StatisticsItem",
    "StatisticsSnapshot",
    "ItemSampleBrief",
    "StatisticsItemSampleBrief",
    "PeriodicScheduler",
    "ScheduledTask",
    "ScheduledStatReporter",
    "StatisticsItemPrinter",
    "StatisticsRegistry",
    "OffsetRangeAggregator",
]

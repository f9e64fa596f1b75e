"""Example: ticks, a scheduled increment reporter and a consumer-lag query (in-memory, no server)."""

import logging
import time

from brokermetrics import (
    MetricsConfig,
    OffsetRangeAggregator,
    PeriodicScheduler,
    ScheduledStatReporter,
    StatisticsItemPrinter,
    StatisticsRegistry,
    Ticks,
)
from brokermetrics.protocol import StatisticsMessagesRequest
from brokermetrics.store import (
    InMemoryConsumerOffsetStore,
    InMemoryMessageStore,
    InMemoryTopicConfigManager,
)

logging.basicConfig(level=logging.INFO)


def main() -> None:
    config = MetricsConfig(report_interval_ms=2000, sample_item_names=["msgs", "bytes"])
    scheduler = PeriodicScheduler(workers=2)
    reporter = ScheduledStatReporter.from_config("EXAMPLE", StatisticsItemPrinter(), scheduler, config)
    registry = StatisticsRegistry({"TOPIC_PUT_STATS": ["msgs", "bytes"]}, reporter)
    ticks = Ticks(config)

    for i in range(30):
        ticks.start_tick("put")
        registry.inc("TOPIC_PUT_STATS", "events", 1, 128 + i)
        time.sleep(0.1)
        ticks.end_tick("put")
    print(ticks.get_counter("put").format_summary())

    store = InMemoryMessageStore()
    offsets = InMemoryConsumerOffsetStore()
    topics = InMemoryTopicConfigManager()
    topics.create_topic("events", read_queue_nums=2)
    store.set_queue_offsets("events", 0, 0, 100)
    store.set_queue_offsets("events", 1, 10, 50)
    offsets.commit_offset("billing", "events", 0, 40)
    result, err = OffsetRangeAggregator(store, offsets, topics).statistics_messages(
        StatisticsMessagesRequest(topic="events", consumer_group="billing")
    )
    print(err or result.to_dict())

    scheduler.shutdown()


if __name__ == "__main__":
    main()

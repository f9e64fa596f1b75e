"""Tests for consumer-lag statistics over queue and consumer offsets."""

import pytest

from brokermetrics.offsets import OffsetRangeAggregator
from brokermetrics.protocol import ERROR_TOPIC_NOT_FOUND, StatisticsMessagesRequest
from brokermetrics.store import build_retry_topic


@pytest.fixture
def aggregator(message_store, consumer_offsets, topic_configs):
    return OffsetRangeAggregator(message_store, consumer_offsets, topic_configs)


def _request(topic="orders", group="billing", from_time=0, to_time=0):
    return StatisticsMessagesRequest(topic=topic, consumer_group=group, from_time=from_time, to_time=to_time)


def test_two_queues_active_and_total(aggregator, message_store, consumer_offsets, topic_configs):
    topic_configs.create_topic("orders", read_queue_nums=2)
    message_store.set_queue_offsets("orders", 0, 0, 100)
    message_store.set_queue_offsets("orders", 1, 10, 50)
    consumer_offsets.commit_offset("billing", "orders", 0, 40)

    result, err = aggregator.statistics_messages(_request())

    assert err is None
    assert result.active_messages == (100 - 40) + (50 - 10)
    assert result.total_messages == (100 - 0) + (50 - 10)
    assert result.delay_messages == 0


def test_consumer_offset_below_min_is_clamped_up(aggregator, message_store, consumer_offsets, topic_configs):
    topic_configs.create_topic("orders", read_queue_nums=1)
    message_store.set_queue_offsets("orders", 0, 10, 100)
    consumer_offsets.commit_offset("billing", "orders", 0, 5)

    result, _ = aggregator.statistics_messages(_request())

    assert result.active_messages == 90


def test_consumer_offset_above_max_is_clamped_down(aggregator, message_store, consumer_offsets, topic_configs):
    topic_configs.create_topic("orders", read_queue_nums=1)
    message_store.set_queue_offsets("orders", 0, 10, 100)
    consumer_offsets.commit_offset("billing", "orders", 0, 500)

    result, _ = aggregator.statistics_messages(_request())

    assert result.active_messages == 0
    assert result.total_messages == 90


def test_unknown_topic_is_not_found(aggregator):
    result, err = aggregator.statistics_messages(_request(topic="missing"))
    assert result is None
    assert err == ERROR_TOPIC_NOT_FOUND


def test_retry_topic_and_delayed_messages_are_added(aggregator, message_store, consumer_offsets, topic_configs):
    retry = build_retry_topic("orders", "billing")
    topic_configs.create_topic("orders", read_queue_nums=1)
    topic_configs.create_topic(retry, read_queue_nums=1)
    message_store.set_queue_offsets("orders", 0, 0, 10)
    message_store.set_queue_offsets(retry, 0, 0, 4)
    consumer_offsets.commit_offset("billing", retry, 0, 1)
    message_store.add_timing_messages("orders", 7)

    result, _ = aggregator.statistics_messages(_request())

    assert retry == "%RETRY%billing_orders"
    assert result.active_messages == 10 + 3
    assert result.total_messages == 10 + 4
    assert result.delay_messages == 7


def test_time_bounds_resolve_offsets_by_store_time(aggregator, message_store, consumer_offsets, topic_configs):
    topic_configs.create_topic("orders", read_queue_nums=1)
    for store_time in range(1000, 2000, 10):
        message_store.append("orders", 0, store_time)
    consumer_offsets.commit_offset("billing", "orders", 0, 30)

    result, _ = aggregator.statistics_messages(_request(from_time=1200, to_time=1500))

    # offsets 20 .. 50 fall in [1200, 1500)
    assert result.total_messages == 30
    assert result.active_messages == 20


def test_empty_queue_by_time_clamps_to_zero(aggregator, consumer_offsets, topic_configs):
    topic_configs.create_topic("orders", read_queue_nums=3)
    consumer_offsets.commit_offset("billing", "orders", 1, 12)

    result, err = aggregator.statistics_messages(_request(from_time=1, to_time=2))

    assert err is None
    assert result.active_messages == 0
    assert result.total_messages == 0


def test_inverted_time_range_is_never_negative(aggregator, message_store, topic_configs):
    topic_configs.create_topic("orders", read_queue_nums=1)
    for store_time in range(0, 100):
        message_store.append("orders", 0, store_time)

    result, _ = aggregator.statistics_messages(_request(from_time=80, to_time=20))

    assert result.total_messages == 0
    assert result.active_messages == 0

"""Consumer-lag statistics: active/total/delayed message counts from queue and consumer offsets."""

from typing import Optional, Tuple

from brokermetrics.observability import get_logger
from brokermetrics.protocol import (
    ERROR_TOPIC_NOT_FOUND,
    StatisticsMessagesRequest,
    StatisticsMessagesResult,
)
from brokermetrics.store import (
    ConsumerOffsetStore,
    MessageStore,
    TopicConfigManager,
    build_retry_topic,
)


class OffsetRangeAggregator:
    """Sums, over every queue of a topic and its retry topic, the consumer's backlog and the queue span."""

    def __init__(
        self,
        message_store: MessageStore,
        consumer_offsets: ConsumerOffsetStore,
        topic_configs: TopicConfigManager,
    ) -> None:
        self._message_store = message_store
        self._consumer_offsets = consumer_offsets
        self._topic_configs = topic_configs
        self._logger = get_logger("brokermetrics.offsets")

    def statistics_messages(
        self, request: StatisticsMessagesRequest
    ) -> Tuple[Optional[StatisticsMessagesResult], Optional[str]]:
        """
        Returns (result, None) on success, (None, "TOPIC_NOT_FOUND") if the topic
        has no config. No partial result is returned on error.
        """
        topic_config = self._topic_configs.select_topic_config(request.topic)
        if topic_config is None:
            self._logger.warning(
                "topic_not_found",
                extra={"topic": request.topic, "consumer_group": request.consumer_group},
            )
            return None, ERROR_TOPIC_NOT_FOUND

        result = StatisticsMessagesResult()
        result.delay_messages += self._message_store.get_timing_message_count(request.topic)
        self._accumulate(request.topic, request, topic_config.read_queue_nums, result)

        retry_topic = build_retry_topic(request.topic, request.consumer_group)
        retry_config = self._topic_configs.select_topic_config(retry_topic)
        if retry_config is not None:
            self._accumulate(retry_topic, request, retry_config.read_queue_nums, result)

        self._logger.debug(
            "statistics_messages",
            extra={"topic": request.topic, "consumer_group": request.consumer_group, **result.to_dict()},
        )
        return result, None

    def _accumulate(
        self,
        topic: str,
        request: StatisticsMessagesRequest,
        queue_nums: int,
        result: StatisticsMessagesResult,
    ) -> None:
        store = self._message_store
        active = 0
        total = 0
        for queue_id in range(queue_nums):
            if request.to_time <= 0:
                max_offset = store.get_max_offset_in_queue(topic, queue_id)
            else:
                max_offset = store.get_offset_in_queue_by_time(topic, queue_id, request.to_time)
            max_offset = max(0, max_offset)

            if request.from_time <= 0:
                min_offset = store.get_min_offset_in_queue(topic, queue_id)
            else:
                min_offset = store.get_offset_in_queue_by_time(topic, queue_id, request.from_time)
            # an inverted time range yields an empty span, never a negative one
            min_offset = min(max(0, min_offset), max_offset)

            consumer_offset = self._consumer_offsets.query_offset(request.consumer_group, topic, queue_id)
            if consumer_offset < 0:
                consumer_offset = min_offset
            consumer_offset = min(max(consumer_offset, min_offset), max_offset)

            active += max_offset - consumer_offset
            total += max_offset - min_offset
        result.active_messages += active
        result.total_messages += total

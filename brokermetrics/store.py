"""Broker collaborators that supply raw offsets: message store, consumer offsets, topic configs."""

import bisect
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

RETRY_GROUP_TOPIC_PREFIX = "%RETRY%"


def build_retry_topic(topic: str, consumer_group: str) -> str:
    """Retry topic holding a group's redelivered messages for ``topic``."""
    return f"{RETRY_GROUP_TOPIC_PREFIX}{consumer_group}_{topic}"


@dataclass
class TopicConfig:
    """Queue layout of a topic."""
    topic_name: str
    read_queue_nums: int = 4
    write_queue_nums: int = 4

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.topic_name,
            "read_queue_nums": self.read_queue_nums,
            "write_queue_nums": self.write_queue_nums,
        }


class MessageStore(ABC):
    """Offsets per (topic, queue) and delayed-message counts."""

    @abstractmethod
    def get_max_offset_in_queue(self, topic: str, queue_id: int) -> int:
        pass

    @abstractmethod
    def get_min_offset_in_queue(self, topic: str, queue_id: int) -> int:
        pass

    @abstractmethod
    def get_offset_in_queue_by_time(self, topic: str, queue_id: int, timestamp: int) -> int:
        """Offset of the first message stored at or after ``timestamp``; -1 if the queue has none."""
        pass

    @abstractmethod
    def get_timing_message_count(self, topic: str) -> int:
        pass


class ConsumerOffsetStore(ABC):
    """Committed consumer offsets."""

    @abstractmethod
    def query_offset(self, consumer_group: str, topic: str, queue_id: int) -> int:
        """Committed offset, or a negative value when the group never committed."""
        pass


class TopicConfigManager(ABC):
    """Topic configuration lookup."""

    @abstractmethod
    def select_topic_config(self, topic: str) -> Optional[TopicConfig]:
        pass


@dataclass
class _ConsumeQueue:
    min_offset: int = 0
    # store timestamps of offsets min_offset .. max_offset - 1
    store_times: List[int] = field(default_factory=list)

    @property
    def max_offset(self) -> int:
        return self.min_offset + len(self.store_times)


class InMemoryMessageStore(MessageStore):
    """Message store keeping one store timestamp per queue offset (no payloads)."""

    def __init__(self) -> None:
        self._queues: Dict[Tuple[str, int], _ConsumeQueue] = {}
        self._timing_counts: Dict[str, int] = {}
        self._lock = threading.Lock()

    def _queue(self, topic: str, queue_id: int) -> _ConsumeQueue:
        key = (topic, queue_id)
        queue = self._queues.get(key)
        if queue is None:
            queue = self._queues.setdefault(key, _ConsumeQueue())
        return queue

    def append(self, topic: str, queue_id: int, store_time: int) -> int:
        """Append one message stored at ``store_time`` (epoch ms); returns its offset."""
        with self._lock:
            queue = self._queue(topic, queue_id)
            if queue.store_times and store_time < queue.store_times[-1]:
                store_time = queue.store_times[-1]
            queue.store_times.append(store_time)
            return queue.max_offset - 1

    def set_queue_offsets(self, topic: str, queue_id: int, min_offset: int, max_offset: int, store_time: int = 0) -> None:
        """Replace a queue with ``max_offset - min_offset`` messages all stored at ``store_time``."""
        if min_offset < 0 or max_offset < min_offset:
            raise ValueError(f"invalid offsets [{min_offset}, {max_offset}]")
        with self._lock:
            self._queues[(topic, queue_id)] = _ConsumeQueue(min_offset, [store_time] * (max_offset - min_offset))

    def truncate(self, topic: str, queue_id: int, min_offset: int) -> None:
        """Drop messages below ``min_offset`` (retention cleanup)."""
        with self._lock:
            queue = self._queue(topic, queue_id)
            drop = max(0, min(min_offset, queue.max_offset) - queue.min_offset)
            del queue.store_times[:drop]
            queue.min_offset += drop

    def add_timing_messages(self, topic: str, count: int = 1) -> None:
        with self._lock:
            self._timing_counts[topic] = self._timing_counts.get(topic, 0) + count

    def get_max_offset_in_queue(self, topic: str, queue_id: int) -> int:
        with self._lock:
            queue = self._queues.get((topic, queue_id))
            return queue.max_offset if queue else 0

    def get_min_offset_in_queue(self, topic: str, queue_id: int) -> int:
        with self._lock:
            queue = self._queues.get((topic, queue_id))
            return queue.min_offset if queue else 0

    def get_offset_in_queue_by_time(self, topic: str, queue_id: int, timestamp: int) -> int:
        with self._lock:
            queue = self._queues.get((topic, queue_id))
            if queue is None or not queue.store_times:
                return -1
            return queue.min_offset + bisect.bisect_left(queue.store_times, timestamp)

    def get_timing_message_count(self, topic: str) -> int:
        return self._timing_counts.get(topic, 0)


class InMemoryConsumerOffsetStore(ConsumerOffsetStore):
    def __init__(self) -> None:
        self._offsets: Dict[Tuple[str, str, int], int] = {}

    def commit_offset(self, consumer_group: str, topic: str, queue_id: int, offset: int) -> None:
        self._offsets[(consumer_group, topic, queue_id)] = offset

    def query_offset(self, consumer_group: str, topic: str, queue_id: int) -> int:
        return self._offsets.get((consumer_group, topic, queue_id), -1)


class InMemoryTopicConfigManager(TopicConfigManager):
    def __init__(self) -> None:
        self._configs: Dict[str, TopicConfig] = {}
        self._lock = threading.Lock()

    def create_topic(self, name: str, read_queue_nums: int = 4, write_queue_nums: Optional[int] = None) -> Tuple[Optional[TopicConfig], bool]:
        """
        Create a topic config only if it does not exist.
        Returns (config, True) on success, (None, False) if the topic already exists.
        """
        with self._lock:
            if name in self._configs:
                return None, False
            config = TopicConfig(name, read_queue_nums, write_queue_nums if write_queue_nums is not None else read_queue_nums)
            self._configs[name] = config
            return config, True

    def select_topic_config(self, topic: str) -> Optional[TopicConfig]:
        return self._configs.get(topic)

    def list_topics(self) -> List[TopicConfig]:
        with self._lock:
            return list(self._configs.values())

    def topic_count(self) -> int:
        return len(self._configs)

"""Shared fixtures: a manually advanced clock and in-memory broker collaborators."""

import pytest

from brokermetrics.store import (
    InMemoryConsumerOffsetStore,
    InMemoryMessageStore,
    InMemoryTopicConfigManager,
)


class FakeClock:
    """Callable clock returning a value that only moves when advanced."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, delta: float) -> None:
        self.now += delta


class RecordingPrinter:
    """Printer stand-in that keeps the lines instead of logging them."""

    def __init__(self) -> None:
        self.lines = []
        self.increments = []

    def print(self, prefix, increment, *suffixes):
        line = f"{prefix}|{increment.format()}{''.join(suffixes)}"
        self.lines.append(line)
        self.increments.append(increment)
        return line


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def tick_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def printer() -> RecordingPrinter:
    return RecordingPrinter()


@pytest.fixture
def message_store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@pytest.fixture
def consumer_offsets() -> InMemoryConsumerOffsetStore:
    return InMemoryConsumerOffsetStore()


@pytest.fixture
def topic_configs() -> InMemoryTopicConfigManager:
    return InMemoryTopicConfigManager()

"""Tests for the shared fixed-rate scheduler (real threads, short intervals)."""

import threading
import time

import pytest

from brokermetrics.scheduler import PeriodicScheduler


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return predicate()


@pytest.fixture
def scheduler():
    sched = PeriodicScheduler(workers=4, name="test-scheduler")
    yield sched
    sched.shutdown()


def test_task_fires_repeatedly(scheduler):
    fired = []
    scheduler.schedule_at_fixed_rate(lambda: fired.append(1), 0, 10, name="repeat")
    assert _wait_for(lambda: len(fired) >= 3)


def test_initial_delay_is_respected(scheduler):
    fired = threading.Event()
    start = time.monotonic()
    scheduler.schedule_at_fixed_rate(fired.set, 200, 1000, name="delayed")
    assert fired.wait(5)
    assert time.monotonic() - start >= 0.19


def test_failing_firing_keeps_schedule_and_other_tasks(scheduler, caplog):
    calls = []
    healthy = []

    def boom():
        calls.append(1)
        raise RuntimeError("boom")

    scheduler.schedule_at_fixed_rate(boom, 0, 10, name="boom")
    scheduler.schedule_at_fixed_rate(lambda: healthy.append(1), 0, 10, name="healthy")

    assert _wait_for(lambda: len(calls) >= 3 and len(healthy) >= 3)
    assert any(r.getMessage() == "task_failed" for r in caplog.records)


def test_cancel_stops_future_firings(scheduler):
    fired = []
    task = scheduler.schedule_at_fixed_rate(lambda: fired.append(1), 0, 10, name="cancel-me")
    assert _wait_for(lambda: len(fired) >= 1)
    task.cancel()
    time.sleep(0.05)
    count = len(fired)
    time.sleep(0.1)
    assert len(fired) == count


def test_slow_task_never_overlaps_itself(scheduler):
    active = []
    overlaps = []
    lock = threading.Lock()

    def slow():
        with lock:
            active.append(1)
            if len(active) > 1:
                overlaps.append(1)
        time.sleep(0.05)
        with lock:
            active.pop()

    task = scheduler.schedule_at_fixed_rate(slow, 0, 5, name="slow")
    assert _wait_for(lambda: task.runs >= 3)
    assert overlaps == []


def test_shutdown_stops_scheduling():
    sched = PeriodicScheduler(workers=1)
    fired = []
    sched.schedule_at_fixed_rate(lambda: fired.append(1), 0, 10)
    assert _wait_for(lambda: len(fired) >= 1)
    sched.shutdown()
    count = len(fired)
    time.sleep(0.05)
    assert len(fired) == count
    assert not sched.running
    with pytest.raises(RuntimeError):
        sched.schedule_at_fixed_rate(lambda: None, 0, 10)


def test_interval_must_be_positive(scheduler):
    with pytest.raises(ValueError):
        scheduler.schedule_at_fixed_rate(lambda: None, 0, 0)

import threading
from datetime import datetime, timedelta, timezone

import pytest

from contextstream.core.clock import ManualClock, ManualScheduler, ThreadScheduler
from contextstream.core.ids import SequentialIdGenerator, UuidIdGenerator

T0 = datetime(2024, 3, 4, 10, 0, tzinfo=timezone.utc)


def test_manual_scheduler_fires_each_interval():
    clock = ManualClock(T0)
    scheduler = ManualScheduler(clock)
    seen = []
    scheduler.every(60, lambda: seen.append(clock.now()), name="tick")

    scheduler.advance(300)

    assert len(seen) == 5
    assert seen[0] == T0 + timedelta(seconds=60)
    assert clock.now() == T0 + timedelta(seconds=300)


def test_manual_scheduler_orders_tasks_by_due_time():
    clock = ManualClock(T0)
    scheduler = ManualScheduler(clock)
    order = []
    scheduler.every(2, lambda: order.append("fast"), name="fast")
    scheduler.every(3, lambda: order.append("slow"), name="slow")

    scheduler.advance(6)

    assert order == ["fast", "slow", "fast", "fast", "slow"]


def test_cancelled_task_stops_firing():
    clock = ManualClock(T0)
    scheduler = ManualScheduler(clock)
    seen = []
    task = scheduler.every(10, lambda: seen.append(1), name="tick")
    scheduler.advance(25)
    task.cancel()
    scheduler.advance(100)

    assert len(seen) == 2
    assert scheduler.active_tasks == []


def test_failing_task_keeps_schedule():
    clock = ManualClock(T0)
    scheduler = ManualScheduler(clock)
    calls = []

    def boom():
        calls.append(1)
        raise RuntimeError("boom")

    scheduler.every(1, boom, name="boom")
    scheduler.advance(3)
    assert len(calls) == 3


def test_manual_clock_refuses_to_go_back():
    clock = ManualClock(T0)
    with pytest.raises(ValueError):
        clock.set(T0 - timedelta(seconds=1))


def test_thread_scheduler_runs_and_cancels():
    fired = threading.Event()
    task = ThreadScheduler().every(0.01, fired.set, name="tick")
    try:
        assert fired.wait(2.0)
    finally:
        task.cancel()


def test_sequential_ids_count_per_prefix():
    ids = SequentialIdGenerator()
    assert ids("insight") == "insight_1"
    assert ids("insight") == "insight_2"
    assert ids("msg") == "msg_1"


def test_uuid_ids_are_unique():
    ids = UuidIdGenerator()
    assert ids("window") != ids("window")
    assert ids("window").startswith("window_")

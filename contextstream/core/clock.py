"""
Clock & Scheduler - time source and periodic callbacks for the stream.

Two implementations of each:

    SystemClock    + ThreadScheduler   production (wall clock, daemon threads)
    ManualClock    + ManualScheduler   tests (time only moves on advance())

The stream only ever talks to the Clock / Scheduler protocols, so
"5 minutes later" in a test is one advance() call, not a sleep.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Protocol

logger = logging.getLogger(__name__)

Task = Callable[[], None]


# =============================================================================
# CLOCKS
# =============================================================================

class Clock(Protocol):
    """Supplies the current time as an aware UTC datetime."""
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """
    Clock that only moves when told to.

    Args:
        start: Initial time (naive values are taken as UTC)
    """

    def __init__(self, start: Optional[datetime] = None):
        start = start or datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        self._now = start
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, when: datetime) -> None:
        with self._lock:
            if when < self._now:
                raise ValueError("ManualClock cannot move backwards")
            self._now = when

    def advance(self, seconds: float) -> datetime:
        with self._lock:
            self._now = self._now + timedelta(seconds=seconds)
            return self._now


# =============================================================================
# SCHEDULERS
# =============================================================================

class ScheduledTask(Protocol):
    """Handle returned by Scheduler.every()."""
    name: str
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs callbacks every `seconds` until their handle is cancelled."""
    def every(self, seconds: float, fn: Task, name: str = "task") -> ScheduledTask: ...


class _ThreadTask:
    """A repeating task on its own daemon thread."""

    def __init__(self, seconds: float, fn: Task, name: str):
        self.name = name
        self._seconds = seconds
        self._fn = fn
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._loop,
            name=f"ContextStream-{name}",
            daemon=True
        )
        self._thread.start()

    def _loop(self) -> None:
        # wait() returns True once cancelled
        while not self._stopped.wait(self._seconds):
            try:
                self._fn()
            except Exception:
                logger.exception("Scheduled task %s failed", self.name)

    def cancel(self) -> None:
        self._stopped.set()
        if threading.current_thread() is not self._thread:
            self._thread.join(timeout=5.0)


class ThreadScheduler:
    """Production scheduler: one daemon thread per periodic task."""

    def every(self, seconds: float, fn: Task, name: str = "task") -> _ThreadTask:
        if seconds <= 0:
            raise ValueError("interval must be positive")
        return _ThreadTask(seconds, fn, name)


@dataclass
class _ManualTask:
    name: str
    interval: timedelta
    fn: Task
    next_run: datetime
    seq: int
    cancelled: bool = field(default=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """
    Deterministic scheduler driven by a ManualClock.

    Usage:
        clock = ManualClock()
        scheduler = ManualScheduler(clock)
        scheduler.every(60, sweep)
        scheduler.advance(300)   # runs sweep five times, clock ends +300s
    """

    def __init__(self, clock: ManualClock):
        self.clock = clock
        self._tasks: List[_ManualTask] = []
        self._counter = itertools.count()

    def every(self, seconds: float, fn: Task, name: str = "task") -> _ManualTask:
        if seconds <= 0:
            raise ValueError("interval must be positive")
        interval = timedelta(seconds=seconds)
        task = _ManualTask(
            name=name,
            interval=interval,
            fn=fn,
            next_run=self.clock.now() + interval,
            seq=next(self._counter),
        )
        self._tasks.append(task)
        return task

    @property
    def active_tasks(self) -> List[str]:
        return [t.name for t in self._tasks if not t.cancelled]

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing every task that falls due on the way."""
        target = self.clock.now() + timedelta(seconds=seconds)
        while True:
            self._tasks = [t for t in self._tasks if not t.cancelled]
            due = [t for t in self._tasks if t.next_run <= target]
            if not due:
                break
            task = min(due, key=lambda t: (t.next_run, t.seq))
            self.clock.set(task.next_run)
            task.next_run = task.next_run + task.interval
            try:
                task.fn()
            except Exception:
                logger.exception("Scheduled task %s failed", task.name)
        self.clock.set(target)

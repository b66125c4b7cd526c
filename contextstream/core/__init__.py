"""
Core Module.

Time, scheduling and id generation shared by the stream components.
"""

from contextstream.core.clock import (
    Clock,
    ManualClock,
    ManualScheduler,
    ScheduledTask,
    Scheduler,
    SystemClock,
    ThreadScheduler,
)
from contextstream.core.ids import (
    IdGenerator,
    SequentialIdGenerator,
    UuidIdGenerator,
    default_ids,
)

__all__ = [
    "Clock",
    "ManualClock",
    "ManualScheduler",
    "ScheduledTask",
    "Scheduler",
    "SystemClock",
    "ThreadScheduler",
    "IdGenerator",
    "SequentialIdGenerator",
    "UuidIdGenerator",
    "default_ids",
]

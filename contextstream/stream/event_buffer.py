"""
Event Buffer - bounded FIFO between submit() and the periodic flush.

When full, the oldest events are dropped to make room. A failed flush puts
its batch back at the front, and the same bound applies again.

Not thread-safe on its own: the stream holds its lock around every call.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Iterable, List

from contextstream.events.event_models import ActivityEvent

logger = logging.getLogger(__name__)


class EventBuffer:
    """
    Usage:
        buffer = EventBuffer(capacity=100)
        buffer.extend(events)
        batch = buffer.drain()
        ...
        buffer.requeue_front(batch)   # processing failed
    """

    def __init__(self, capacity: int = 100):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._events: Deque[ActivityEvent] = deque()
        self.dropped_count = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def resize(self, capacity: int) -> None:
        """Change the bound; trims from the oldest end if needed."""
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._capacity = capacity
        self._trim()

    def extend(self, events: Iterable[ActivityEvent]) -> None:
        self._events.extend(events)
        self._trim()

    def requeue_front(self, events: List[ActivityEvent]) -> None:
        """Put a drained batch back ahead of anything submitted since."""
        self._events.extendleft(reversed(events))
        self._trim()

    def drain(self) -> List[ActivityEvent]:
        batch = list(self._events)
        self._events.clear()
        return batch

    def clear(self) -> None:
        self._events.clear()

    def _trim(self) -> None:
        overflow = len(self._events) - self._capacity
        if overflow <= 0:
            return
        for _ in range(overflow):
            self._events.popleft()
        self.dropped_count += overflow
        logger.warning("Event buffer full, dropped %d oldest event(s)", overflow)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self):
        return iter(list(self._events))

from datetime import datetime, timedelta, timezone

import pytest

from contextstream.core.clock import ManualClock, ManualScheduler
from contextstream.core.ids import SequentialIdGenerator
from contextstream.events.event_models import ActivityEvent

# Monday 10:00 UTC
T0 = datetime(2024, 3, 4, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return T0


@pytest.fixture
def ids():
    return SequentialIdGenerator()


@pytest.fixture
def clock():
    return ManualClock(T0)


@pytest.fixture
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture
def make_event():
    """Factory: make_event("code", minutes=-5, action="edit", session_id="s1")."""
    counter = {"n": 0}

    def _make(event_type="code", minutes=0.0, session_id="s1", at=None, topics=None, tags=None, **metadata):
        counter["n"] += 1
        return ActivityEvent(
            id=f"evt_{counter['n']}",
            type=event_type,
            timestamp=at or T0 + timedelta(minutes=minutes),
            session_id=session_id,
            metadata=metadata,
            tags=tags or [],
            enrichment={"topics": topics} if topics else None,
        )

    return _make

import pytest

from contextstream.stream.event_buffer import EventBuffer


def test_overflow_drops_oldest(make_event):
    buffer = EventBuffer(capacity=2)
    events = [make_event(minutes=i) for i in range(3)]

    buffer.extend(events)

    assert [e.id for e in buffer] == ["evt_2", "evt_3"]
    assert buffer.dropped_count == 1


def test_drain_empties_buffer(make_event):
    buffer = EventBuffer()
    buffer.extend([make_event(), make_event()])

    batch = buffer.drain()

    assert len(batch) == 2
    assert len(buffer) == 0


def test_requeue_goes_ahead_of_newer_events(make_event):
    buffer = EventBuffer(capacity=3)
    failed = [make_event(), make_event()]
    buffer.extend([make_event()])

    buffer.requeue_front(failed)

    assert [e.id for e in buffer] == ["evt_1", "evt_2", "evt_3"]


def test_requeue_is_still_bounded(make_event):
    buffer = EventBuffer(capacity=2)
    failed = [make_event(), make_event()]
    buffer.extend([make_event()])

    buffer.requeue_front(failed)

    # oldest (front) entries are the ones dropped
    assert [e.id for e in buffer] == ["evt_2", "evt_3"]


def test_resize_trims(make_event):
    buffer = EventBuffer(capacity=5)
    buffer.extend([make_event() for _ in range(5)])

    buffer.resize(2)

    assert len(buffer) == 2
    assert buffer.capacity == 2


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        EventBuffer(capacity=0)

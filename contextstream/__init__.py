"""
Context Stream.

Turns a live feed of user activity events into per-session assistant
context, behavioral insights and patterns, pushed to subscribers.
"""

from contextstream.events.event_models import ActivityEvent, EventType
from contextstream.stream.context_stream import ContextStream, StreamMetrics, get_context_stream

__all__ = [
    "ActivityEvent",
    "EventType",
    "ContextStream",
    "StreamMetrics",
    "get_context_stream",
]

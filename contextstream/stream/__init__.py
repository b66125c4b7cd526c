"""
Stream Module.

Event intake, per-session context windows and message fan-out.
"""

from contextstream.stream.broadcaster import MessageBroadcaster, MessageType, StreamMessage
from contextstream.stream.context_stream import ContextStream, StreamMetrics, get_context_stream
from contextstream.stream.event_buffer import EventBuffer
from contextstream.stream.window_manager import ContextWindow, ContextWindowManager, WindowStore

__all__ = [
    "ContextStream",
    "ContextWindow",
    "ContextWindowManager",
    "EventBuffer",
    "MessageBroadcaster",
    "MessageType",
    "StreamMessage",
    "StreamMetrics",
    "WindowStore",
    "get_context_stream",
]

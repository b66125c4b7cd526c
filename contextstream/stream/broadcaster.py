"""
Message Broadcaster - fan-out of stream messages to subscribers.

Two message builders:
    context_update   one per updated window (realtime mode)
    insight          one per periodic insight, expires after an hour

Subscribers are plain callables. One raising subscriber is logged and
skipped; the others still get the message.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set

from contextstream.config import StreamConfig, thresholds
from contextstream.context.context_builder import AssistantContext
from contextstream.core.ids import IdGenerator
from contextstream.insights.insight_models import Insight

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    CONTEXT_UPDATE = "context_update"
    INSIGHT = "insight"
    SUGGESTION = "suggestion"
    ALERT = "alert"
    SYSTEM = "system"


@dataclass(frozen=True)
class StreamMessage:
    id: str
    type: MessageType
    timestamp: datetime
    context: Optional[AssistantContext]
    payload: Any
    priority: int
    expires_at: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.priority, int) or isinstance(self.priority, bool):
            raise ValueError(f"priority must be an int, got {self.priority!r}")
        if not thresholds.PRIORITY_MIN <= self.priority <= thresholds.PRIORITY_MAX:
            raise ValueError(f"priority {self.priority} outside [1, 10]")


Subscriber = Callable[[StreamMessage], None]


# =============================================================================
# PRIORITY
# =============================================================================

def compute_priority(
    insights,
    relevance_score: float,
    events,
    now: datetime,
) -> int:
    """
    Priority of a context update.

    Args:
        insights: Insights attached to the message
        relevance_score: Window relevance
        events: Window events (checked for a burst in the last minute)
        now: Reference time

    Returns:
        Integer in [PRIORITY_MIN, PRIORITY_MAX]
    """
    priority = thresholds.PRIORITY_DEFAULT

    if any(i.urgency > thresholds.URGENT_INSIGHT_ABOVE for i in insights):
        priority = max(priority, thresholds.PRIORITY_URGENT_INSIGHT)

    if relevance_score > thresholds.HIGH_RELEVANCE_ABOVE:
        priority = max(priority, thresholds.PRIORITY_HIGH_RELEVANCE)

    cutoff = now - timedelta(milliseconds=thresholds.BURST_WINDOW_MS)
    if sum(1 for e in events if e.timestamp > cutoff) > thresholds.BURST_EVENTS_ABOVE:
        priority = max(priority, thresholds.PRIORITY_RECENT_ACTIVITY)

    return _clamp_priority(priority)


def insight_priority(insight: Insight) -> int:
    # round first so 0.7 * 10 does not ceil to 8
    return _clamp_priority(math.ceil(round(insight.urgency * 10, 6)))


def _clamp_priority(value: int) -> int:
    return max(thresholds.PRIORITY_MIN, min(thresholds.PRIORITY_MAX, int(value)))


# =============================================================================
# MESSAGE BUILDERS
# =============================================================================

def context_update_message(window, config: StreamConfig, now: datetime, ids: IdGenerator) -> StreamMessage:
    insights = window.insights[-thresholds.MESSAGE_INSIGHTS:]
    return StreamMessage(
        id=ids("msg"),
        type=MessageType.CONTEXT_UPDATE,
        timestamp=now,
        context=window.context,
        payload={
            "window_id": window.id,
            "activity_summary": window.activity_summary,
            "insights": insights,
            "patterns": window.patterns[-thresholds.MESSAGE_PATTERNS:],
            "relevance_score": window.relevance_score,
            "event_count": len(window.events),
        },
        priority=compute_priority(insights, window.relevance_score, window.events, now),
        metadata={
            "compression": config.compression_enabled,
            "privacy_filtered": config.privacy_filter,
        },
    )


def insight_message(window, insight: Insight, now: datetime, ids: IdGenerator) -> StreamMessage:
    return StreamMessage(
        id=ids("msg"),
        type=MessageType.INSIGHT,
        timestamp=now,
        context=window.context,
        payload=insight,
        priority=insight_priority(insight),
        expires_at=now + timedelta(milliseconds=thresholds.INSIGHT_MESSAGE_TTL_MS),
        metadata={
            "insight_kind": insight.kind.value,
            "confidence": insight.confidence,
            "relevance": insight.relevance,
        },
    )


# =============================================================================
# BROADCASTER
# =============================================================================

class MessageBroadcaster:
    """
    Usage:
        broadcaster = MessageBroadcaster()
        unsubscribe = broadcaster.subscribe(print)
        broadcaster.broadcast(message)
        unsubscribe()
    """

    def __init__(self):
        self._subscribers: Set[Subscriber] = set()
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.add(callback)

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers.discard(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def clear(self) -> None:
        with self._lock:
            self._subscribers.clear()

    def broadcast(self, message: StreamMessage) -> int:
        """
        Deliver to every current subscriber.

        Returns:
            Number of subscribers the message was offered to (0 = nobody listening)
        """
        with self._lock:
            subscribers = list(self._subscribers)

        for subscriber in subscribers:
            try:
                subscriber(message)
            except Exception:
                logger.exception("Subscriber failed on message %s", message.id)
        return len(subscribers)

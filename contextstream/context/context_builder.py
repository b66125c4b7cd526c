"""
Context Builder.

Pure functions that turn a slice of activity events into:

    1. ActivitySummary    - what the user is doing right now (last hour)
    2. AssistantContext   - snapshot handed to the assistant collaborator

Nothing here holds state. Every function takes `now` explicitly so results
only depend on the arguments.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence
from urllib.parse import urlparse

from contextstream.config import thresholds
from contextstream.core.ids import IdGenerator, default_ids
from contextstream.events.event_models import ActivityEvent, EventType

# =============================================================================
# CONSTANTS
# =============================================================================

PRODUCTIVE_TYPES = frozenset({
    EventType.CODE,
    EventType.GITHUB,
    EventType.EMAIL,
    EventType.SLACK,
})

ENERGY_LOW = "low"
ENERGY_MEDIUM = "medium"
ENERGY_HIGH = "high"

# Tool labels per event type; system events report their own app name
_TOOL_BY_TYPE = {
    EventType.BROWSER_TAB: "browser",
    EventType.CODE: "code-editor",
    EventType.EMAIL: "email-client",
    EventType.GITHUB: "github",
    EventType.SLACK: "slack",
    EventType.VS_CODE: "vscode",
}

# Ordered: first match wins
_INTENT_RULES = (
    ("create", {"compose", "write"}),
    ("research", {"search", "find"}),
    ("consume", {"read", "view"}),
)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class ActivitySummary:
    """Derived view of recent activity. Recomputed from scratch on every update."""
    dominant_activity: str = "unknown"
    activity_distribution: Dict[str, int] = field(default_factory=dict)
    time_spent: int = 0  # ms
    focus_score: float = 0.0
    productivity_score: float = 0.0
    energy_level: str = ENERGY_MEDIUM
    current_projects: List[str] = field(default_factory=list)
    recent_topics: List[str] = field(default_factory=list)


@dataclass
class ActivityContext:
    current_url: Optional[str] = None
    current_tool: Optional[str] = None
    current_project: Optional[str] = None
    current_workflow: Optional[str] = None
    time_spent: int = 0  # ms
    recent_events: List[ActivityEvent] = field(default_factory=list)


@dataclass
class MemoryContext:
    session_id: Optional[str]
    tags: List[str] = field(default_factory=list)
    related_events: List[str] = field(default_factory=list)
    user_intent: Optional[str] = None


@dataclass
class AssistantContext:
    """Snapshot consumed by the external assistant."""
    conversation_id: str
    user_id: str
    session_id: Optional[str]
    current_activity: Optional[ActivityContext] = None
    memory_context: Optional[MemoryContext] = None
    previous_messages: List[Dict[str, Any]] = field(default_factory=list)
    user_preferences: Dict[str, Any] = field(default_factory=dict)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def _ms(delta: timedelta) -> int:
    return int(delta.total_seconds() * 1000)


def _within(events: Iterable[ActivityEvent], now: datetime, window_ms: int) -> List[ActivityEvent]:
    """Events strictly younger than `window_ms`."""
    cutoff = now - timedelta(milliseconds=window_ms)
    return [e for e in events if e.timestamp > cutoff]


def _hostname(url: str) -> Optional[str]:
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def consistency(items: Sequence[Any]) -> float:
    """Share of the most frequent item: max_frequency / count (0 for no items)."""
    if not items:
        return 0.0
    return Counter(items).most_common(1)[0][1] / len(items)


# =============================================================================
# ACTIVITY SUMMARY
# =============================================================================

def build_activity_summary(
    events: Sequence[ActivityEvent],
    now: Optional[datetime] = None,
) -> ActivitySummary:
    """
    Summarize the last hour of activity.

    Args:
        events: Window events (any order)
        now: Reference time (defaults to wall clock)

    Returns:
        ActivitySummary; the neutral summary when nothing happened in the last hour
    """
    now = now or datetime.now(timezone.utc)
    recent = _within(events, now, thresholds.SUMMARY_WINDOW_MS)
    if not recent:
        return ActivitySummary()

    distribution = Counter(e.type.value for e in recent)
    dominant = distribution.most_common(1)[0][0]

    oldest = min(e.timestamp for e in recent)
    time_spent = min(thresholds.SUMMARY_WINDOW_MS, max(0, _ms(now - oldest)))

    return ActivitySummary(
        dominant_activity=dominant,
        activity_distribution=dict(distribution),
        time_spent=time_spent,
        focus_score=focus_score(recent),
        productivity_score=productivity_score(recent),
        energy_level=energy_level(recent, now),
        current_projects=extract_projects(recent),
        recent_topics=extract_topics(recent),
    )


def focus_score(events: Sequence[ActivityEvent]) -> float:
    """Mean of type consistency and URL-hostname consistency."""
    if not events:
        return 0.0
    type_consistency = consistency([e.type for e in events])
    hosts = [h for h in (_hostname(e.url) for e in events if e.url) if h]
    domain_consistency = consistency(hosts)
    return (type_consistency + domain_consistency) / 2


def productivity_score(events: Sequence[ActivityEvent]) -> float:
    if not events:
        return 0.0
    productive = sum(1 for e in events if e.type in PRODUCTIVE_TYPES)
    return productive / len(events)


def energy_level(events: Sequence[ActivityEvent], now: datetime) -> str:
    count = len(_within(events, now, thresholds.ENERGY_WINDOW_MS))
    if count < thresholds.ENERGY_LOW_BELOW:
        return ENERGY_LOW
    if count > thresholds.ENERGY_HIGH_ABOVE:
        return ENERGY_HIGH
    return ENERGY_MEDIUM


def extract_projects(events: Iterable[ActivityEvent]) -> List[str]:
    projects: Dict[str, None] = {}
    for event in events:
        for key in ("repository", "project_name"):
            value = event.metadata.get(key)
            if value:
                projects[str(value)] = None
    return list(projects)


def extract_topics(events: Iterable[ActivityEvent]) -> List[str]:
    topics: Dict[str, None] = {}
    for event in events:
        for topic in event.topics:
            topics[topic] = None
    return list(topics)


# =============================================================================
# ASSISTANT CONTEXT
# =============================================================================

def build_assistant_context(
    events: Sequence[ActivityEvent],
    ids: IdGenerator = default_ids,
    session_id: Optional[str] = None,
) -> AssistantContext:
    """
    Assemble a fresh assistant snapshot from the initial events of a session.

    `session_id` overrides the id carried by the events (synthetic sessions).
    """
    recent = list(events)[-thresholds.RECENT_EVENT_WINDOW:]
    if session_id is None and events:
        session_id = events[0].session_id
    return AssistantContext(
        conversation_id=ids("ctx"),
        user_id="user",
        session_id=session_id,
        current_activity=build_activity_context(recent),
        memory_context=build_memory_context(events, session_id),
        previous_messages=[],
        user_preferences=default_user_preferences(),
    )


def update_assistant_context(
    context: AssistantContext,
    new_events: Sequence[ActivityEvent],
) -> AssistantContext:
    """
    Merge new events into an existing snapshot.

    The recent-event window keeps the last RECENT_EVENT_WINDOW events; the
    memory context is rebuilt over that same window.
    """
    previous = context.current_activity.recent_events if context.current_activity else []
    merged = (list(previous) + list(new_events))[-thresholds.RECENT_EVENT_WINDOW:]
    return AssistantContext(
        conversation_id=context.conversation_id,
        user_id=context.user_id,
        session_id=context.session_id,
        current_activity=build_activity_context(merged),
        memory_context=build_memory_context(merged, context.session_id),
        previous_messages=list(context.previous_messages),
        user_preferences=context.user_preferences,
    )


def build_activity_context(events: Sequence[ActivityEvent]) -> Optional[ActivityContext]:
    if not events:
        return None
    latest = events[-1]
    return ActivityContext(
        current_url=latest.url,
        current_tool=tool_for_event(latest),
        current_project=latest.metadata.get("repository") or latest.metadata.get("project_name"),
        current_workflow=latest.metadata.get("workflow_id"),
        time_spent=_span_ms(events),
        recent_events=list(events),
    )


def build_memory_context(
    events: Sequence[ActivityEvent],
    session_id: Optional[str],
) -> Optional[MemoryContext]:
    if not events:
        return None
    return MemoryContext(
        session_id=session_id,
        tags=extract_tags(events),
        related_events=[e.id for e in events],
        user_intent=infer_user_intent(events),
    )


def tool_for_event(event: ActivityEvent) -> Optional[str]:
    if event.type is EventType.SYSTEM_APP:
        return event.metadata.get("app_name")
    return _TOOL_BY_TYPE.get(event.type)


def extract_tags(events: Iterable[ActivityEvent]) -> List[str]:
    tags: Dict[str, None] = {}
    for event in events:
        for tag in event.tags:
            tags[tag] = None
        tags[event.type.value.lower()] = None
    return list(tags)


def infer_user_intent(events: Sequence[ActivityEvent]) -> str:
    """Short-term intent from the most recent actions."""
    actions = {e.action for e in list(events)[-thresholds.INTENT_LOOKBACK:] if e.action}
    for intent, triggers in _INTENT_RULES:
        if actions & triggers:
            return intent
    return "general"


def _span_ms(events: Sequence[ActivityEvent]) -> int:
    if not events:
        return 0
    stamps = [e.timestamp for e in events]
    return _ms(max(stamps) - min(stamps))


def default_user_preferences() -> Dict[str, Any]:
    """Placeholder preferences until the assistant supplies real ones."""
    return {
        "privacy": {
            "local_only": True,
            "data_retention": "90d",
            "anonymize_data": False,
        },
        "notifications": {
            "enabled": True,
            "frequency": "immediate",
            "types": ["insight", "connection", "reminder"],
            "quiet_hours": {"enabled": False, "start": "22:00", "end": "08:00", "timezone": "UTC"},
        },
        "assistant": {
            "proactivity": "moderate",
            "learning_rate": 0.7,
            "voice_enabled": False,
        },
    }

"""
Pattern Detector.

Mines recurring structure from a window's event history:

    TEMPORAL    - hour-of-day and weekday activity clusters
    SEMANTIC    - shared enrichment topics, repeated 3-step action workflows
    BEHAVIORAL  - rapid interaction bursts, follow-through on suggested actions

Stateless: detect_patterns() recomputes everything from its arguments.
"""

from __future__ import annotations

import calendar
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np

from contextstream.config import thresholds
from contextstream.core.ids import IdGenerator, default_ids
from contextstream.events.event_models import ActivityEvent
from contextstream.insights.insight_models import Insight


class PatternKind(str, Enum):
    TEMPORAL = "temporal"
    SEMANTIC = "semantic"
    BEHAVIORAL = "behavioral"


@dataclass(frozen=True)
class Pattern:
    id: str
    kind: PatternKind
    description: str
    frequency: int
    confidence: float
    last_observed: datetime
    evidence: Tuple[ActivityEvent, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)


def _sorted(events: Sequence[ActivityEvent]) -> List[ActivityEvent]:
    return sorted(events, key=lambda e: e.timestamp)


def _span_ms(events: Sequence[ActivityEvent]) -> float:
    stamps = [e.timestamp for e in events]
    return (max(stamps) - min(stamps)).total_seconds() * 1000


def _dominant_type(events: Sequence[ActivityEvent]) -> Tuple[str, int]:
    return Counter(e.type.value for e in events).most_common(1)[0]


# =============================================================================
# ENTRY POINT
# =============================================================================

def detect_patterns(
    events: Sequence[ActivityEvent],
    insights: Sequence[Insight] = (),
    ids: IdGenerator = default_ids,
) -> List[Pattern]:
    """
    Run every detector over the window history.

    Args:
        events: Window events
        insights: Window insights (for follow-through detection)
        ids: Id generator for new patterns

    Returns:
        Temporal, then semantic, then behavioral patterns
    """
    patterns: List[Pattern] = []
    patterns.extend(detect_temporal_patterns(events, ids))
    patterns.extend(detect_semantic_patterns(events, ids))
    patterns.extend(detect_behavioral_patterns(events, insights, ids))
    return patterns


# =============================================================================
# TEMPORAL
# =============================================================================

def detect_temporal_patterns(events: Sequence[ActivityEvent], ids: IdGenerator = default_ids) -> List[Pattern]:
    return hourly_patterns(events, ids) + weekday_patterns(events, ids)


def hourly_patterns(events: Sequence[ActivityEvent], ids: IdGenerator = default_ids) -> List[Pattern]:
    by_hour: Dict[int, List[ActivityEvent]] = defaultdict(list)
    for event in events:
        by_hour[event.timestamp.hour].append(event)

    patterns = []
    for hour, bucket in sorted(by_hour.items()):
        if len(bucket) < thresholds.HOURLY_PATTERN_MIN_EVENTS:
            continue
        dominant, count = _dominant_type(bucket)
        if count < thresholds.HOURLY_PATTERN_MIN_DOMINANT:
            continue
        patterns.append(Pattern(
            id=ids("pattern"),
            kind=PatternKind.TEMPORAL,
            description=f"Consistent {dominant} activity around {hour}:00",
            frequency=count,
            confidence=count / len(bucket),
            last_observed=max(e.timestamp for e in bucket),
            evidence=tuple(bucket),
            metadata={"hour": hour, "type": dominant},
        ))
    return patterns


def weekday_patterns(events: Sequence[ActivityEvent], ids: IdGenerator = default_ids) -> List[Pattern]:
    by_day: Dict[int, List[ActivityEvent]] = defaultdict(list)
    for event in events:
        by_day[event.timestamp.weekday()].append(event)

    patterns = []
    for day, bucket in sorted(by_day.items()):
        if len(bucket) < thresholds.DAILY_PATTERN_MIN_EVENTS:
            continue
        active_ms = _span_ms(bucket)
        if active_ms <= thresholds.DAILY_PATTERN_MIN_SPAN_MS:
            continue
        patterns.append(Pattern(
            id=ids("pattern"),
            kind=PatternKind.TEMPORAL,
            description=f"High activity on {calendar.day_name[day]}",
            frequency=len(bucket),
            confidence=thresholds.DAILY_PATTERN_CONFIDENCE,
            last_observed=max(e.timestamp for e in bucket),
            evidence=tuple(_sorted(bucket)),
            metadata={"day": day, "active_time_ms": int(active_ms)},
        ))
    return patterns


# =============================================================================
# SEMANTIC
# =============================================================================

def detect_semantic_patterns(events: Sequence[ActivityEvent], ids: IdGenerator = default_ids) -> List[Pattern]:
    return topic_patterns(events, ids) + workflow_patterns(events, ids)


def topic_patterns(events: Sequence[ActivityEvent], ids: IdGenerator = default_ids) -> List[Pattern]:
    by_topic: Dict[str, List[ActivityEvent]] = defaultdict(list)
    for event in events:
        for topic in event.topics:
            by_topic[topic].append(event)

    patterns = []
    for topic, group in by_topic.items():
        if len(group) < thresholds.TOPIC_PATTERN_MIN_EVENTS:
            continue
        patterns.append(Pattern(
            id=ids("pattern"),
            kind=PatternKind.SEMANTIC,
            description=f"Frequent engagement with {topic} topic",
            frequency=len(group),
            confidence=min(1.0, len(group) / thresholds.TOPIC_PATTERN_SATURATION),
            last_observed=max(e.timestamp for e in group),
            evidence=tuple(group),
            metadata={"topic": topic, "event_count": len(group)},
        ))
    return patterns


def common_sequences(events: Sequence[ActivityEvent]) -> Dict[Tuple[str, ...], List[List[ActivityEvent]]]:
    """
    Every run of WORKFLOW_SEQUENCE_LENGTH consecutive events that all carry
    an action, keyed by the action tuple. Occurrences may overlap.
    """
    size = thresholds.WORKFLOW_SEQUENCE_LENGTH
    ordered = _sorted(events)
    sequences: Dict[Tuple[str, ...], List[List[ActivityEvent]]] = {}
    for start in range(len(ordered) - size + 1):
        window = ordered[start:start + size]
        actions = tuple(e.action for e in window)
        if not all(actions):
            continue
        sequences.setdefault(actions, []).append(window)
    return sequences


def workflow_patterns(events: Sequence[ActivityEvent], ids: IdGenerator = default_ids) -> List[Pattern]:
    patterns = []
    for actions, occurrences in common_sequences(events).items():
        frequency = len(occurrences)
        if frequency < thresholds.WORKFLOW_MIN_FREQUENCY:
            continue
        evidence = [e for occurrence in occurrences for e in occurrence]
        patterns.append(Pattern(
            id=ids("pattern"),
            kind=PatternKind.SEMANTIC,
            description=f"Common workflow: {' → '.join(actions)}",
            frequency=frequency,
            confidence=min(1.0, frequency / thresholds.WORKFLOW_SATURATION),
            last_observed=max(occurrence[-1].timestamp for occurrence in occurrences),
            evidence=tuple(evidence),
            metadata={"actions": list(actions), "sequence_length": len(actions)},
        ))
    return patterns


# =============================================================================
# BEHAVIORAL
# =============================================================================

def detect_behavioral_patterns(
    events: Sequence[ActivityEvent],
    insights: Sequence[Insight] = (),
    ids: IdGenerator = default_ids,
) -> List[Pattern]:
    return interaction_patterns(events, ids) + response_patterns(events, insights, ids)


def interaction_gaps_ms(events: Sequence[ActivityEvent]) -> np.ndarray:
    """Gaps between consecutive events, in milliseconds, in time order."""
    stamps = np.array([e.timestamp.timestamp() for e in _sorted(events)], dtype=float)
    return np.diff(stamps) * 1000.0


def interaction_patterns(events: Sequence[ActivityEvent], ids: IdGenerator = default_ids) -> List[Pattern]:
    if len(events) < 2:
        return []
    average_gap = float(np.mean(interaction_gaps_ms(events)))
    if average_gap >= thresholds.RAPID_INTERACTION_GAP_MS:
        return []
    return [Pattern(
        id=ids("pattern"),
        kind=PatternKind.BEHAVIORAL,
        description="Rapid interaction pattern detected",
        frequency=len(events),
        confidence=thresholds.RAPID_INTERACTION_CONFIDENCE,
        last_observed=max(e.timestamp for e in events),
        evidence=tuple(events),
        metadata={"average_gap_ms": average_gap, "interaction_count": len(events)},
    )]


def response_patterns(
    events: Sequence[ActivityEvent],
    insights: Sequence[Insight],
    ids: IdGenerator = default_ids,
) -> List[Pattern]:
    window = timedelta(milliseconds=thresholds.INSIGHT_RESPONSE_WINDOW_MS)
    patterns = []
    for insight in insights:
        if not insight.action_suggested:
            continue
        follow_ups = _sorted([
            e for e in events
            if insight.timestamp < e.timestamp < insight.timestamp + window
        ])
        if not follow_ups:
            continue
        response_ms = (follow_ups[0].timestamp - insight.timestamp).total_seconds() * 1000
        patterns.append(Pattern(
            id=ids("pattern"),
            kind=PatternKind.BEHAVIORAL,
            description=f"Responsive to insights: {insight.title}",
            frequency=len(follow_ups),
            confidence=thresholds.INSIGHT_RESPONSE_CONFIDENCE,
            last_observed=follow_ups[-1].timestamp,
            evidence=tuple(follow_ups),
            metadata={"insight_id": insight.id, "response_time_ms": int(response_ms)},
        ))
    return patterns

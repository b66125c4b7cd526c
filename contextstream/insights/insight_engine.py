"""
Insight Engine.

Generates behavioral insights from a session's activity.

Architecture:
    ┌───────────────────────────────────────────────────────────────────┐
    │                          INSIGHT ENGINE                           │
    ├───────────────────────────────────────────────────────────────────┤
    │                                                                   │
    │   EVENT-TRIGGERED (every window update)     PERIODIC (every 60s)  │
    │                                                                   │
    │   ┌───────────┐ ┌─────────────┐             ┌──────────────────┐  │
    │   │ PATTERN   │ │ OPPORTUNITY │             │ Productivity     │  │
    │   │ hour-of-  │ │ repeated    │             │ trend            │  │
    │   │ day habit │ │ type:action │             ├──────────────────┤  │
    │   └─────┬─────┘ └──────┬──────┘             │ Focus /          │  │
    │   ┌─────┴─────┐ ┌──────┴──────┐             │ distraction      │  │
    │   │ WARNING   │ │ ACHIEVEMENT │             ├──────────────────┤  │
    │   │ burnout,  │ │ pushes,     │             │ Work-life        │  │
    │   │ decline   │ │ coding days │             │ balance          │  │
    │   └─────┬─────┘ └──────┬──────┘             └────────┬─────────┘  │
    │         └──────┬───────┘                             │            │
    │                ▼                                     ▼            │
    │        confidence > 0.5                     fixed confidences     │
    │                                                                   │
    └───────────────────────────────────────────────────────────────────┘

All functions are pure: pass `now` and an id generator for repeatable output.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from contextstream.config import thresholds
from contextstream.core.ids import IdGenerator, default_ids
from contextstream.events.event_models import ActivityEvent, EventType
from contextstream.insights.insight_models import Insight, InsightKind

# =============================================================================
# CONSTANTS
# =============================================================================

# Counted as productive when judging the trend (narrower than the summary set)
TREND_PRODUCTIVE_TYPES = frozenset({EventType.CODE, EventType.GITHUB, EventType.EMAIL})

WORK_TYPES = frozenset({EventType.CODE, EventType.GITHUB, EventType.EMAIL, EventType.SLACK})

TREND_DECLINING = "declining"
TREND_STABLE = "stable"
TREND_IMPROVING = "improving"


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class TimePattern:
    activity: str
    hour: int
    confidence: float
    frequency: int
    events: List[ActivityEvent] = field(default_factory=list)


@dataclass
class RepetitiveAction:
    event_type: str
    action: str
    confidence: float
    events: List[ActivityEvent] = field(default_factory=list)

    @property
    def frequency(self) -> int:
        return len(self.events)


@dataclass
class WorkSession:
    events: List[ActivityEvent]

    @property
    def start(self) -> datetime:
        return self.events[0].timestamp

    @property
    def end(self) -> datetime:
        return self.events[-1].timestamp

    @property
    def duration_ms(self) -> float:
        return (self.end - self.start).total_seconds() * 1000


@dataclass
class Signal:
    message: str
    confidence: float
    events: List[ActivityEvent] = field(default_factory=list)


@dataclass
class TrendAnalysis:
    trend: str
    ratio: float
    evidence: List[ActivityEvent] = field(default_factory=list)


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def _trailing(events: Sequence[ActivityEvent], now: datetime, window_ms: int) -> List[ActivityEvent]:
    cutoff = now - timedelta(milliseconds=window_ms)
    return [e for e in events if e.timestamp > cutoff]


# =============================================================================
# EVENT-TRIGGERED INSIGHTS
# =============================================================================

def generate_insights(
    new_events: Sequence[ActivityEvent],
    existing_events: Sequence[ActivityEvent] = (),
    now: Optional[datetime] = None,
    ids: IdGenerator = default_ids,
) -> List[Insight]:
    """
    Generate insights triggered by a batch of new events.

    Args:
        new_events: Events that just arrived for the session
        existing_events: Events the window already held before this batch
        now: Reference time
        ids: Id generator

    Returns:
        Pattern, opportunity, warning and achievement insights with
        confidence above INSIGHT_CONFIDENCE_FLOOR
    """
    now = _now(now)
    candidates: List[Insight] = []
    candidates.extend(pattern_insights(new_events, existing_events, now, ids))
    candidates.extend(opportunity_insights(new_events, now, ids))
    candidates.extend(warning_insights(new_events, existing_events, now, ids))
    candidates.extend(achievement_insights(new_events, now, ids))
    return [i for i in candidates if i.confidence > thresholds.INSIGHT_CONFIDENCE_FLOOR]


def pattern_insights(
    new_events: Sequence[ActivityEvent],
    existing_events: Sequence[ActivityEvent],
    now: datetime,
    ids: IdGenerator = default_ids,
) -> List[Insight]:
    insights = []
    for pattern in detect_time_patterns(list(existing_events) + list(new_events)):
        insights.append(Insight(
            id=ids("insight"),
            kind=InsightKind.PATTERN,
            title="Recurring Activity Pattern",
            description=f"You often use {pattern.activity} around {pattern.hour}:00",
            confidence=pattern.confidence,
            relevance=0.7,
            urgency=0.3,
            category="productivity",
            timestamp=now,
            evidence=tuple(pattern.events),
            metadata={"pattern_type": "temporal", "frequency": pattern.frequency},
        ))
    return insights


def opportunity_insights(
    new_events: Sequence[ActivityEvent],
    now: datetime,
    ids: IdGenerator = default_ids,
) -> List[Insight]:
    insights = []
    for repeated in find_repetitive_actions(new_events):
        insights.append(Insight(
            id=ids("insight"),
            kind=InsightKind.OPPORTUNITY,
            title="Automation Opportunity",
            description=(
                f"You frequently perform {repeated.action} actions in {repeated.event_type}. "
                "Consider automating this task."
            ),
            confidence=repeated.confidence,
            relevance=0.8,
            urgency=0.4,
            category="productivity",
            timestamp=now,
            evidence=tuple(repeated.events),
            action_suggested="Create automation workflow",
            metadata={"action_type": repeated.event_type, "frequency": repeated.frequency},
        ))
    return insights


def warning_insights(
    new_events: Sequence[ActivityEvent],
    existing_events: Sequence[ActivityEvent],
    now: datetime,
    ids: IdGenerator = default_ids,
) -> List[Insight]:
    insights = []
    for signal in detect_burnout_signals(list(existing_events) + list(new_events), now):
        insights.append(Insight(
            id=ids("insight"),
            kind=InsightKind.WARNING,
            title="Potential Burnout Signal",
            description=signal.message,
            confidence=signal.confidence,
            relevance=0.9,
            urgency=0.8,
            category="wellness",
            timestamp=now,
            evidence=tuple(signal.events),
            action_suggested="Take a break or reduce workload",
        ))
    return insights


def achievement_insights(
    new_events: Sequence[ActivityEvent],
    now: datetime,
    ids: IdGenerator = default_ids,
) -> List[Insight]:
    insights = []
    for description, evidence in detect_achievements(new_events, now):
        insights.append(Insight(
            id=ids("insight"),
            kind=InsightKind.ACHIEVEMENT,
            title="Achievement Unlocked",
            description=description,
            confidence=thresholds.ACHIEVEMENT_CONFIDENCE,
            relevance=0.7,
            urgency=0.2,
            category="productivity",
            timestamp=now,
            evidence=tuple(evidence),
        ))
    return insights


# =============================================================================
# PERIODIC INSIGHTS
# =============================================================================

def generate_periodic_insights(
    events: Sequence[ActivityEvent],
    existing_insights: Sequence[Insight] = (),
    now: Optional[datetime] = None,
    ids: IdGenerator = default_ids,
) -> List[Insight]:
    """
    Insights that do not need a new event to fire. Not confidence-filtered:
    each carries a fixed confidence.
    """
    now = _now(now)
    insights: List[Insight] = []

    trend = analyze_productivity_trend(events, now)
    if trend.trend == TREND_DECLINING:
        insights.append(Insight(
            id=ids("insight"),
            kind=InsightKind.WARNING,
            title="Productivity Trend",
            description="Your productivity has been declining over the past day.",
            confidence=0.7,
            relevance=0.8,
            urgency=0.6,
            category="productivity",
            timestamp=now,
            evidence=tuple(trend.evidence),
            action_suggested="Review your workflow and consider taking breaks",
        ))

    distraction, recent = analyze_focus(events, now)
    if distraction > thresholds.DISTRACTION_ALERT_ABOVE:
        insights.append(Insight(
            id=ids("insight"),
            kind=InsightKind.WARNING,
            title="High Distraction Level",
            description="You've been frequently switching between different activities.",
            confidence=0.8,
            relevance=0.9,
            urgency=0.7,
            category="focus",
            timestamp=now,
            evidence=tuple(recent),
            action_suggested="Try time-blocking techniques to improve focus",
            metadata={"distraction_level": distraction},
        ))

    work_ratio, week = analyze_work_life_balance(events, now)
    if work_ratio > thresholds.WORK_RATIO_ALERT_ABOVE:
        insights.append(Insight(
            id=ids("insight"),
            kind=InsightKind.WARNING,
            title="Work-Life Balance Concern",
            description="You've been spending a lot of time on work-related activities.",
            confidence=0.7,
            relevance=0.8,
            urgency=0.6,
            category="wellness",
            timestamp=now,
            evidence=tuple(week),
            action_suggested="Schedule personal time and activities",
            metadata={"work_ratio": work_ratio},
        ))

    return insights


# =============================================================================
# DETECTORS
# =============================================================================

def detect_time_patterns(events: Sequence[ActivityEvent]) -> List[TimePattern]:
    """Hour-of-day buckets where one activity type keeps showing up."""
    by_hour: Dict[int, List[ActivityEvent]] = defaultdict(list)
    for event in events:
        by_hour[event.timestamp.hour].append(event)

    patterns = []
    for hour, bucket in sorted(by_hour.items()):
        if len(bucket) < thresholds.HOURLY_INSIGHT_MIN_EVENTS:
            continue
        activity, count = Counter(e.type.value for e in bucket).most_common(1)[0]
        if count < thresholds.HOURLY_INSIGHT_MIN_DOMINANT:
            continue
        patterns.append(TimePattern(
            activity=activity,
            hour=hour,
            confidence=count / len(bucket),
            frequency=count,
            events=bucket,
        ))
    return patterns


def find_repetitive_actions(events: Sequence[ActivityEvent]) -> List[RepetitiveAction]:
    groups: Dict[Tuple[str, str], List[ActivityEvent]] = defaultdict(list)
    for event in events:
        if event.action:
            groups[(event.type.value, event.action)].append(event)

    repeated = []
    for (event_type, action), group in groups.items():
        if len(group) < thresholds.REPETITIVE_ACTION_MIN:
            continue
        repeated.append(RepetitiveAction(
            event_type=event_type,
            action=action,
            confidence=min(1.0, len(group) / thresholds.REPETITIVE_ACTION_SATURATION),
            events=group,
        ))
    return repeated


def find_long_work_sessions(events: Sequence[ActivityEvent]) -> List[WorkSession]:
    """
    Runs of work events with every gap under WORK_SESSION_GAP_MS that span
    more than WORK_SESSION_MIN_SPAN_MS with at least WORK_SESSION_MIN_EVENTS.
    The run still open at the end of the history counts too.
    """
    work = sorted((e for e in events if e.type in WORK_TYPES), key=lambda e: e.timestamp)
    max_gap = timedelta(milliseconds=thresholds.WORK_SESSION_GAP_MS)

    runs: List[List[ActivityEvent]] = []
    current: List[ActivityEvent] = []
    for event in work:
        if current and event.timestamp - current[-1].timestamp >= max_gap:
            runs.append(current)
            current = []
        current.append(event)
    if current:
        runs.append(current)

    return [
        WorkSession(events=run)
        for run in runs
        if len(run) >= thresholds.WORK_SESSION_MIN_EVENTS
        and WorkSession(events=run).duration_ms > thresholds.WORK_SESSION_MIN_SPAN_MS
    ]


def detect_burnout_signals(events: Sequence[ActivityEvent], now: datetime) -> List[Signal]:
    signals = []

    sessions = find_long_work_sessions(events)
    if sessions:
        signals.append(Signal(
            message="Extended work sessions detected without breaks",
            confidence=thresholds.BURNOUT_CONFIDENCE,
            events=sessions[0].events,
        ))

    trend = analyze_productivity_trend(events, now)
    if trend.trend == TREND_DECLINING:
        signals.append(Signal(
            message="Productivity has been declining over time",
            confidence=thresholds.DECLINING_PRODUCTIVITY_CONFIDENCE,
            events=trend.evidence,
        ))

    return signals


def detect_achievements(
    events: Sequence[ActivityEvent],
    now: datetime,
) -> List[Tuple[str, List[ActivityEvent]]]:
    achievements = []

    pushes = [e for e in events if e.type is EventType.GITHUB and e.action == "push"]
    if len(pushes) >= thresholds.ACHIEVEMENT_PUSH_MIN:
        achievements.append((
            f"Made {thresholds.ACHIEVEMENT_PUSH_MIN}+ GitHub commits recently",
            pushes[-thresholds.ACHIEVEMENT_PUSH_MIN:],
        ))

    coding = [e for e in _trailing(events, now, thresholds.TRAILING_DAY_MS) if e.type is EventType.CODE]
    if len(coding) >= thresholds.ACHIEVEMENT_CODE_MIN:
        achievements.append(("High coding activity in the last 24 hours", coding))

    return achievements


def analyze_productivity_trend(events: Sequence[ActivityEvent], now: datetime) -> TrendAnalysis:
    """Productive-event ratio over the trailing day. No events means stable."""
    recent = _trailing(events, now, thresholds.TRAILING_DAY_MS)
    if not recent:
        return TrendAnalysis(trend=TREND_STABLE, ratio=0.0, evidence=[])

    ratio = sum(1 for e in recent if e.type in TREND_PRODUCTIVE_TYPES) / len(recent)
    if ratio < thresholds.DECLINING_RATIO_BELOW:
        trend = TREND_DECLINING
    elif ratio > thresholds.IMPROVING_RATIO_ABOVE:
        trend = TREND_IMPROVING
    else:
        trend = TREND_STABLE
    return TrendAnalysis(trend=trend, ratio=ratio, evidence=recent)


def count_context_switches(events: Sequence[ActivityEvent]) -> int:
    switches = 0
    last: Optional[str] = None
    for event in sorted(events, key=lambda e: e.timestamp):
        where = event.url or event.metadata.get("app_name") or "unknown"
        key = f"{event.type.value}:{where}"
        if last is not None and key != last:
            switches += 1
        last = key
    return switches


def analyze_focus(events: Sequence[ActivityEvent], now: datetime) -> Tuple[float, List[ActivityEvent]]:
    """Distraction level in [0, 1] from context switches in the last hour."""
    recent = _trailing(events, now, thresholds.TRAILING_HOUR_MS)
    level = min(1.0, count_context_switches(recent) / thresholds.DISTRACTION_MAX_SWITCHES)
    return level, recent


def analyze_work_life_balance(events: Sequence[ActivityEvent], now: datetime) -> Tuple[float, List[ActivityEvent]]:
    week = _trailing(events, now, thresholds.TRAILING_WEEK_MS)
    if not week:
        return 0.0, week
    return sum(1 for e in week if e.type in WORK_TYPES) / len(week), week

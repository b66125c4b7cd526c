"""
Context Window Manager.

Owns one ContextWindow per session and keeps it current.

Update pipeline (per session, per batch):
    ┌──────────────┐
    │ new events   │
    └──────┬───────┘
           ▼
    1. append to window.events      (prior events remembered)
    2. insight engine               (new vs prior, confidence > 0.5)
    3. pattern detector             (all events + insights, no floor)
    4. relevance decay              (age * activity * insights)
    5. trim events                  (max_events_per_context, newest kept)
    6. activity summary             (last hour of trimmed events)
    7. trim insights / patterns     (20 / 50, newest kept)
    8. last_updated = now

A new window is only stored once the pipeline has finished. Windows older
than max_context_age are removed by the eviction sweep.
"""

from __future__ import annotations

import copy
import logging
import math
import threading
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterator, List, Optional, Sequence

from contextstream.config import StreamConfig, thresholds
from contextstream.context.context_builder import (
    ActivitySummary,
    AssistantContext,
    build_activity_summary,
    build_assistant_context,
    update_assistant_context,
)
from contextstream.core.clock import Clock
from contextstream.core.ids import IdGenerator
from contextstream.events.event_models import ActivityEvent
from contextstream.insights.insight_engine import generate_insights, generate_periodic_insights
from contextstream.insights.insight_models import Insight
from contextstream.patterns.pattern_detector import Pattern, detect_patterns

logger = logging.getLogger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class ContextWindow:
    """Rolling per-session state. Mutated only by the manager under the stream lock."""
    id: str
    session_id: str
    events: List[ActivityEvent]
    context: AssistantContext
    last_updated: datetime
    relevance_score: float = 1.0
    activity_summary: ActivitySummary = field(default_factory=ActivitySummary)
    insights: List[Insight] = field(default_factory=list)
    patterns: List[Pattern] = field(default_factory=list)

    def snapshot(self) -> "ContextWindow":
        """Copy safe to hand out: lists are new, records are shared (immutable)."""
        return ContextWindow(
            id=self.id,
            session_id=self.session_id,
            events=list(self.events),
            context=copy.deepcopy(self.context),
            last_updated=self.last_updated,
            relevance_score=self.relevance_score,
            activity_summary=copy.deepcopy(self.activity_summary),
            insights=list(self.insights),
            patterns=list(self.patterns),
        )


@dataclass
class WindowUpdate:
    """What one session update produced."""
    window: ContextWindow
    insights: List[Insight] = field(default_factory=list)
    patterns: List[Pattern] = field(default_factory=list)
    created: bool = False


@dataclass
class PeriodicResult:
    window: ContextWindow
    insights: List[Insight] = field(default_factory=list)


# =============================================================================
# WINDOW STORE
# =============================================================================

class WindowStore:
    """
    Session id -> ContextWindow map, insertion ordered.

    Shares the stream's re-entrant lock so a caller already holding it can
    use the store freely.
    """

    def __init__(self, lock: Optional[threading.RLock] = None):
        self.lock = lock or threading.RLock()
        self._windows: "OrderedDict[str, ContextWindow]" = OrderedDict()

    def get(self, session_id: str) -> Optional[ContextWindow]:
        with self.lock:
            return self._windows.get(session_id)

    def put(self, window: ContextWindow) -> None:
        with self.lock:
            self._windows[window.session_id] = window

    def remove(self, session_id: str) -> Optional[ContextWindow]:
        with self.lock:
            return self._windows.pop(session_id, None)

    def windows(self) -> List[ContextWindow]:
        with self.lock:
            return list(self._windows.values())

    def clear(self) -> None:
        with self.lock:
            self._windows.clear()

    def __contains__(self, session_id: str) -> bool:
        with self.lock:
            return session_id in self._windows

    def __len__(self) -> int:
        with self.lock:
            return len(self._windows)

    def __iter__(self) -> Iterator[ContextWindow]:
        return iter(self.windows())


# =============================================================================
# MANAGER
# =============================================================================

class ContextWindowManager:
    """
    Creates, updates and evicts context windows.

    Args:
        store: Where windows live
        clock: Time source for last_updated, decay and eviction
        ids: Id generator for windows, insights and patterns
        config: Callable returning the current StreamConfig (it can change at runtime)
    """

    def __init__(
        self,
        store: WindowStore,
        clock: Clock,
        ids: IdGenerator,
        config: Callable[[], StreamConfig],
    ):
        self.store = store
        self.clock = clock
        self.ids = ids
        self._config = config

    @property
    def config(self) -> StreamConfig:
        return self._config()

    # -------------------------------------------------------------------------
    # Grouping
    # -------------------------------------------------------------------------

    def group_by_session(self, events: Sequence[ActivityEvent]) -> Dict[str, List[ActivityEvent]]:
        """
        Group a batch by session id, sessions in first-seen order.

        Events without a session id all go to one synthetic session created
        for this call.
        """
        groups: Dict[str, List[ActivityEvent]] = OrderedDict()
        synthetic: Optional[str] = None
        for event in events:
            session_id = event.session_id
            if not session_id:
                if synthetic is None:
                    synthetic = self.ids("session")
                    logger.warning("Events without session id grouped under %s", synthetic)
                session_id = synthetic
            groups.setdefault(session_id, []).append(event)
        return groups

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    def apply_session(self, session_id: str, events: Sequence[ActivityEvent]) -> WindowUpdate:
        """Create or update the session's window with a batch of its events."""
        config = self.config
        now = self.clock.now()

        with self.store.lock:
            window = self.store.get(session_id)
            created = window is None
            if created:
                # stored only once fully built
                window = ContextWindow(
                    id=self.ids("window"),
                    session_id=session_id,
                    events=[],
                    context=build_assistant_context(list(events), self.ids, session_id=session_id),
                    last_updated=now,
                )
                prior_events: List[ActivityEvent] = []
            else:
                prior_events = list(window.events)
                window.context = update_assistant_context(window.context, events)
            previous_update = window.last_updated

            window.events.extend(events)

            new_insights: List[Insight] = []
            if config.enable_contextualization:
                new_insights = generate_insights(events, prior_events, now, self.ids)
                window.insights.extend(new_insights)

            new_patterns = detect_patterns(window.events, window.insights, self.ids)
            window.patterns.extend(new_patterns)

            window.relevance_score = self.relevance_score(window, previous_update, now)

            if len(window.events) > config.max_events_per_context:
                window.events = window.events[-config.max_events_per_context:]
            window.activity_summary = build_activity_summary(window.events, now)

            window.insights = window.insights[-thresholds.MAX_INSIGHTS_PER_CONTEXT:]
            window.patterns = window.patterns[-thresholds.MAX_PATTERNS_PER_CONTEXT:]
            window.last_updated = now

            if created:
                self.store.put(window)

        return WindowUpdate(window=window, insights=new_insights, patterns=new_patterns, created=created)

    def relevance_score(self, window: ContextWindow, last_updated: datetime, now: datetime) -> float:
        """
        Exponential age decay boosted by recent activity and insight count,
        clamped to [relevance_threshold, 1.0].
        """
        config = self.config
        age_ms = max(0.0, (now - last_updated).total_seconds() * 1000)
        age_decay = math.exp(-age_ms / config.max_context_age_ms)

        recent_cutoff = now - timedelta(milliseconds=thresholds.RECENT_ACTIVITY_MS)
        recent = sum(1 for e in window.events if e.timestamp > recent_cutoff)
        activity_boost = min(thresholds.ACTIVITY_BOOST_CAP, 1.0 + recent / thresholds.ACTIVITY_BOOST_DIVISOR)
        insight_boost = min(
            thresholds.INSIGHT_BOOST_CAP,
            1.0 + len(window.insights) / thresholds.INSIGHT_BOOST_DIVISOR,
        )

        score = age_decay * activity_boost * insight_boost
        return max(config.relevance_threshold, min(1.0, score))

    def reclamp_relevance(self) -> int:
        """
        Pull every stored score back into [relevance_threshold, 1.0].

        Returns:
            Number of windows whose score changed
        """
        floor = self.config.relevance_threshold
        changed = 0
        with self.store.lock:
            for window in self.store.windows():
                clamped = max(floor, min(1.0, window.relevance_score))
                if clamped != window.relevance_score:
                    window.relevance_score = clamped
                    changed += 1
        return changed

    # -------------------------------------------------------------------------
    # Background work
    # -------------------------------------------------------------------------

    def evict_expired(self) -> List[str]:
        """Remove windows idle longer than max_context_age. Returns their session ids."""
        now = self.clock.now()
        max_age = timedelta(milliseconds=self.config.max_context_age_ms)
        evicted = []
        with self.store.lock:
            for window in self.store.windows():
                if now - window.last_updated > max_age:
                    self.store.remove(window.session_id)
                    evicted.append(window.session_id)
        if evicted:
            logger.info("Evicted %d idle context window(s)", len(evicted))
        return evicted

    def run_periodic_insights(self) -> List[PeriodicResult]:
        """
        Periodic insights for every window above the relevance threshold.

        Returns only the windows that gained insights.
        """
        config = self.config
        if not config.enable_contextualization:
            return []

        now = self.clock.now()
        results = []
        with self.store.lock:
            for window in self.store.windows():
                if window.relevance_score <= config.relevance_threshold:
                    continue
                insights = generate_periodic_insights(window.events, window.insights, now, self.ids)
                if not insights:
                    continue
                window.insights.extend(insights)
                window.insights = window.insights[-thresholds.MAX_INSIGHTS_PER_CONTEXT:]
                results.append(PeriodicResult(window=window, insights=insights))
        return results

    def active_sessions(self) -> List[str]:
        cutoff = self.clock.now() - timedelta(milliseconds=thresholds.ACTIVE_SESSION_MS)
        return [w.session_id for w in self.store.windows() if w.last_updated > cutoff]

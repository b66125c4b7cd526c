import math

import pytest

from contextstream.config import StreamConfig
from contextstream.insights.insight_models import Insight, InsightKind
from contextstream.patterns.pattern_detector import Pattern, PatternKind
from contextstream.stream.window_manager import ContextWindowManager, WindowStore


@pytest.fixture
def config():
    return {"value": StreamConfig()}


@pytest.fixture
def manager(clock, ids, config):
    return ContextWindowManager(WindowStore(), clock, ids, lambda: config["value"])


def _insight(n, when):
    return Insight(
        id=f"old_{n}",
        kind=InsightKind.SUGGESTION,
        title="t",
        description="d",
        confidence=0.9,
        relevance=0.5,
        urgency=0.1,
        category="productivity",
        timestamp=when,
    )


def test_first_batch_creates_window(manager, make_event, now):
    update = manager.apply_session("s1", [make_event("code", repository="acme/api")])

    window = update.window
    assert update.created
    assert window.id == "window_1"
    assert window.session_id == "s1"
    assert window.relevance_score == 1.0
    assert window.last_updated == now
    assert window.context.session_id == "s1"
    assert window.activity_summary.current_projects == ["acme/api"]
    assert manager.store.get("s1") is window


def test_second_batch_updates_same_window(manager, make_event):
    first = manager.apply_session("s1", [make_event("code", minutes=-2)]).window
    update = manager.apply_session("s1", [make_event("email", minutes=-1)])

    assert not update.created
    assert update.window is first
    assert [e.id for e in first.events] == ["evt_1", "evt_2"]
    assert len(manager.store) == 1


def test_events_truncated_to_newest(manager, config, make_event):
    config["value"] = StreamConfig(max_events_per_context=5)

    window = manager.apply_session("s1", [make_event(minutes=-i) for i in range(8, 0, -1)]).window

    assert len(window.events) == 5
    assert window.events[-1].id == "evt_8"


def test_new_batch_is_not_counted_twice(manager, make_event):
    manager.apply_session("s1", [make_event("code", minutes=m) for m in (-30, -20)])

    update = manager.apply_session("s1", [make_event("code", minutes=-10)])

    # 3 code events in hour 9: one pattern insight, confidence 1.0
    [insight] = update.insights
    assert insight.kind is InsightKind.PATTERN
    assert insight.metadata["frequency"] == 3


def test_contextualization_off_skips_insights(manager, config, make_event):
    config["value"] = StreamConfig(enable_contextualization=False)

    update = manager.apply_session("s1", [make_event("code", minutes=-m) for m in (1, 2, 3)])

    assert update.insights == []
    assert update.window.insights == []


def test_insights_capped_at_twenty(manager, make_event, now):
    window = manager.apply_session("s1", [make_event("code", minutes=-1)]).window
    window.insights = [_insight(n, now) for n in range(25)]

    manager.apply_session("s1", [make_event("code", minutes=0)])

    assert len(window.insights) == 20
    assert window.insights[-1].id == "old_24"


def test_patterns_pruned_to_fifty(manager, make_event, now):
    window = manager.apply_session("s1", [make_event("code", minutes=-1)]).window
    window.patterns = [
        Pattern(
            id=f"p_{n}",
            kind=PatternKind.TEMPORAL,
            description="x",
            frequency=1,
            confidence=0.5,
            last_observed=now,
        )
        for n in range(60)
    ]

    manager.apply_session("s1", [make_event("code", minutes=0)])

    assert len(window.patterns) == 50


def test_relevance_decays_with_age(manager, clock, make_event):
    manager.apply_session("s1", [make_event("code", minutes=-10)])
    clock.advance(30 * 60)

    window = manager.apply_session("s1", [make_event("code", minutes=0)]).window

    assert window.relevance_score == pytest.approx(math.exp(-0.5))


def test_relevance_never_below_threshold(manager, clock, make_event):
    manager.apply_session("s1", [make_event("code", minutes=-10)])
    clock.advance(3 * 60 * 60)

    window = manager.apply_session("s1", [make_event("code", minutes=0)]).window

    assert window.relevance_score == 0.3


def test_sessionless_events_share_synthetic_session(manager, make_event):
    events = [
        make_event(session_id=None),
        make_event(session_id="s2"),
        make_event(session_id=None),
    ]

    groups = manager.group_by_session(events)

    assert list(groups) == ["session_1", "s2"]
    assert [e.id for e in groups["session_1"]] == ["evt_1", "evt_3"]


def test_eviction_after_max_age(manager, clock, make_event):
    manager.apply_session("s1", [make_event()])

    clock.advance(3600)
    assert manager.evict_expired() == []

    clock.advance(1)
    assert manager.evict_expired() == ["s1"]
    assert manager.store.get("s1") is None


def test_periodic_insights_for_relevant_windows(manager, make_event):
    urls = ("https://news.example", "https://video.example")
    manager.apply_session("s1", [make_event("browser", minutes=-30 + i, url=urls[i % 2]) for i in range(22)])

    [result] = manager.run_periodic_insights()

    assert [i.title for i in result.insights] == ["Productivity Trend", "High Distraction Level"]
    assert result.window.insights[-2:] == result.insights


def test_periodic_insights_skip_low_relevance(manager, make_event):
    window = manager.apply_session("s1", [make_event("browser", minutes=-5)]).window
    window.relevance_score = 0.3

    assert manager.run_periodic_insights() == []


def test_active_sessions(manager, clock, make_event):
    manager.apply_session("s1", [make_event()])
    clock.advance(4 * 60)
    manager.apply_session("s2", [make_event(session_id="s2")])
    clock.advance(2 * 60)

    assert manager.active_sessions() == ["s2"]


def test_snapshot_is_independent(manager, make_event):
    window = manager.apply_session("s1", [make_event()]).window

    snapshot = window.snapshot()
    snapshot.events.clear()

    assert len(window.events) == 1
    assert snapshot.id == window.id


def test_patterns_see_whole_batch_before_truncation(manager, config, make_event):
    config["value"] = StreamConfig(max_events_per_context=2)

    update = manager.apply_session("s1", [make_event("code", minutes=m) for m in (1, 10, 20, 30, 40)])

    hourly = [p for p in update.patterns if p.metadata.get("hour") == 10]
    assert len(hourly) == 1
    assert hourly[0].confidence == 1.0
    assert hourly[0].frequency == 5
    assert len(update.window.events) == 2


def test_failed_creation_leaves_no_window(manager, make_event, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr("contextstream.stream.window_manager.detect_patterns", broken)

    with pytest.raises(RuntimeError):
        manager.apply_session("s1", [make_event()])

    assert manager.store.get("s1") is None
    assert len(manager.store) == 0


def test_synthetic_session_id_reaches_assistant_context(manager, make_event):
    groups = manager.group_by_session([make_event(session_id=None), make_event(session_id=None)])
    [(session_id, events)] = groups.items()

    window = manager.apply_session(session_id, events).window

    assert window.session_id == session_id
    assert window.context.session_id == session_id
    assert window.context.memory_context.session_id == session_id


def test_reclamp_relevance_raises_scores_to_new_floor(manager, config, make_event):
    window = manager.apply_session("s1", [make_event()]).window
    window.relevance_score = 0.4

    config["value"] = StreamConfig(relevance_threshold=0.9)

    assert manager.reclamp_relevance() == 1
    assert window.relevance_score == 0.9
    assert manager.reclamp_relevance() == 0

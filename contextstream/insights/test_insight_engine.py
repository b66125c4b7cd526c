from datetime import timedelta

import pytest

from contextstream.insights.insight_engine import (
    TREND_DECLINING,
    TREND_IMPROVING,
    TREND_STABLE,
    analyze_productivity_trend,
    count_context_switches,
    find_long_work_sessions,
    generate_insights,
    generate_periodic_insights,
)
from contextstream.insights.insight_models import InsightKind


def _of_kind(insights, kind):
    return [i for i in insights if i.kind is kind]


def test_recurring_hour_produces_pattern_insight(make_event, now, ids):
    events = [make_event("code", minutes=m) for m in (0, 10, 20)]

    insights = generate_insights(events, [], now + timedelta(minutes=30), ids)

    [insight] = insights
    assert insight.kind is InsightKind.PATTERN
    assert insight.id == "insight_1"
    assert insight.confidence == 1.0
    assert insight.relevance == 0.7
    assert insight.urgency == 0.3
    assert insight.description == "You often use code around 10:00"
    assert insight.metadata == {"pattern_type": "temporal", "frequency": 3}


def test_pattern_insight_uses_existing_events(make_event, now, ids):
    existing = [make_event("code", minutes=m) for m in (0, 10)]
    new = [make_event("code", minutes=20)]

    insights = generate_insights(new, existing, now + timedelta(minutes=30), ids)

    assert len(_of_kind(insights, InsightKind.PATTERN)) == 1


def test_low_confidence_insights_are_dropped(make_event, now, ids):
    events = [make_event("code", minutes=m) for m in (0, 5, 10)]
    events += [make_event("browser", minutes=m) for m in (15, 20, 25)]

    insights = generate_insights(events, [], now + timedelta(minutes=30), ids)

    # 3 of 6 is exactly 0.5, not above it
    assert _of_kind(insights, InsightKind.PATTERN) == []


def test_repeated_action_produces_opportunity(make_event, now, ids):
    events = [make_event("email", minutes=m, action="compose") for m in (0, 1, 2)]

    insights = generate_insights(events, [], now + timedelta(minutes=5), ids)

    [opportunity] = _of_kind(insights, InsightKind.OPPORTUNITY)
    assert opportunity.confidence == pytest.approx(0.6)
    assert opportunity.action_suggested == "Create automation workflow"
    assert "compose" in opportunity.description
    assert opportunity.metadata == {"action_type": "email", "frequency": 3}


def test_opportunity_only_looks_at_new_events(make_event, now, ids):
    existing = [make_event("email", minutes=m, action="compose") for m in (0, 1)]
    new = [make_event("email", minutes=2, action="compose")]

    insights = generate_insights(new, existing, now + timedelta(minutes=5), ids)

    assert _of_kind(insights, InsightKind.OPPORTUNITY) == []


def test_long_work_run_produces_burnout_warning(make_event, now, ids):
    # 11 events, 27 minutes apart: 4.5 hours without a 30 minute break
    events = [make_event("code", minutes=i * 27) for i in range(11)]

    insights = generate_insights(events, [], now + timedelta(minutes=271), ids)

    [warning] = _of_kind(insights, InsightKind.WARNING)
    assert warning.title == "Potential Burnout Signal"
    assert warning.confidence == 0.7
    assert warning.relevance == 0.9
    assert warning.urgency == 0.8
    assert warning.action_suggested == "Take a break or reduce workload"
    assert len(warning.evidence) == 11


def test_ten_work_events_are_enough_for_burnout_warning(make_event, now, ids):
    # 9 gaps of 29 minutes span 261 minutes
    events = [make_event("code", minutes=i * 29) for i in range(10)]

    insights = generate_insights(events, [], now + timedelta(minutes=262), ids)

    [warning] = _of_kind(insights, InsightKind.WARNING)
    assert warning.title == "Potential Burnout Signal"
    assert warning.confidence == 0.7
    assert len(warning.evidence) == 10


def test_short_work_run_is_not_a_work_session(make_event):
    # 10 events 26 minutes apart only span 234 minutes
    events = [make_event("code", minutes=i * 26) for i in range(10)]

    assert find_long_work_sessions(events) == []


def test_break_splits_work_run(make_event):
    first = [make_event("code", minutes=i * 27) for i in range(6)]
    second = [make_event("code", minutes=200 + i * 27) for i in range(6)]

    assert find_long_work_sessions(first + second) == []


def test_declining_productivity_warning(make_event, now, ids):
    events = [make_event("browser", minutes=-m) for m in (40, 30, 20, 10)]

    insights = generate_insights(events, [], now, ids)

    descriptions = [i.description for i in _of_kind(insights, InsightKind.WARNING)]
    assert descriptions == ["Productivity has been declining over time"]


def test_productivity_trend(make_event, now):
    assert analyze_productivity_trend([], now).trend == TREND_STABLE

    coding = [make_event("code", minutes=-m) for m in (1, 2, 3)]
    assert analyze_productivity_trend(coding, now).trend == TREND_IMPROVING

    browsing = [make_event("browser", minutes=-m) for m in (1, 2, 3)]
    assert analyze_productivity_trend(browsing, now).trend == TREND_DECLINING

    stale = [make_event("browser", minutes=-60 * 25)]
    assert analyze_productivity_trend(stale, now).trend == TREND_STABLE


def test_push_streak_is_an_achievement(make_event, now, ids):
    pushes = [make_event("github", minutes=-m, action="push") for m in range(10)]

    insights = generate_insights(pushes, [], now, ids)

    [achievement] = _of_kind(insights, InsightKind.ACHIEVEMENT)
    assert achievement.confidence == 0.9
    assert achievement.description == "Made 10+ GitHub commits recently"
    assert len(achievement.evidence) == 10


def test_context_switch_counting(make_event):
    events = [
        make_event("browser", minutes=0, url="https://a.example"),
        make_event("browser", minutes=1, url="https://a.example"),
        make_event("browser", minutes=2, url="https://b.example"),
        make_event("system", minutes=3, app_name="Terminal"),
        make_event("code", minutes=4),
    ]
    assert count_context_switches(events) == 3


def test_periodic_insights_flag_distraction_and_decline(make_event, now, ids):
    urls = ("https://news.example", "https://video.example")
    events = [make_event("browser", minutes=-30 + i, url=urls[i % 2]) for i in range(22)]

    insights = generate_periodic_insights(events, [], now, ids)

    titles = [i.title for i in insights]
    assert titles == ["Productivity Trend", "High Distraction Level"]
    focus = insights[1]
    assert focus.confidence == 0.8
    assert focus.urgency == 0.7
    assert focus.metadata["distraction_level"] == 1.0


def test_periodic_insights_flag_work_life_balance(make_event, now, ids):
    events = [make_event("code", minutes=-60 * 24 * d) for d in (1, 2, 3, 4)]

    [insight] = generate_periodic_insights(events, [], now, ids)

    assert insight.title == "Work-Life Balance Concern"
    assert insight.confidence == 0.7
    assert insight.metadata["work_ratio"] == 1.0


def test_no_periodic_insights_for_quiet_session(now, ids):
    assert generate_periodic_insights([], [], now, ids) == []

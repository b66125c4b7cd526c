# Central place for tuning thresholds (keep deterministic v1).
# These are heuristics, not business rules: override freely.

# Window bounds
MAX_INSIGHTS_PER_CONTEXT = 20
MAX_PATTERNS_PER_CONTEXT = 50
RECENT_EVENT_WINDOW = 20          # assistant-context recent events
INTENT_LOOKBACK = 5               # actions used to infer intent

# Relevance decay
RECENT_ACTIVITY_MS = 300_000      # "recent" for activity boost
ACTIVITY_BOOST_DIVISOR = 10
ACTIVITY_BOOST_CAP = 2.0
INSIGHT_BOOST_DIVISOR = 10
INSIGHT_BOOST_CAP = 1.5
ACTIVE_SESSION_MS = 300_000

# Background sweeps
EVICTION_SWEEP_SECONDS = 300
PERIODIC_INSIGHT_SECONDS = 60

# Activity summary
SUMMARY_WINDOW_MS = 3_600_000
ENERGY_WINDOW_MS = 1_800_000
ENERGY_LOW_BELOW = 2
ENERGY_HIGH_ABOVE = 10

# Insight engine
INSIGHT_CONFIDENCE_FLOOR = 0.5
HOURLY_INSIGHT_MIN_EVENTS = 3
HOURLY_INSIGHT_MIN_DOMINANT = 3
REPETITIVE_ACTION_MIN = 3
REPETITIVE_ACTION_SATURATION = 5
WORK_SESSION_GAP_MS = 1_800_000
WORK_SESSION_MIN_SPAN_MS = 14_400_000
WORK_SESSION_MIN_EVENTS = 10
BURNOUT_CONFIDENCE = 0.7
DECLINING_PRODUCTIVITY_CONFIDENCE = 0.6
DECLINING_RATIO_BELOW = 0.3
IMPROVING_RATIO_ABOVE = 0.7
ACHIEVEMENT_PUSH_MIN = 10
ACHIEVEMENT_CODE_MIN = 20
ACHIEVEMENT_CONFIDENCE = 0.9
DISTRACTION_MAX_SWITCHES = 20
DISTRACTION_ALERT_ABOVE = 0.7
WORK_RATIO_ALERT_ABOVE = 0.8
TRAILING_DAY_MS = 86_400_000
TRAILING_HOUR_MS = 3_600_000
TRAILING_WEEK_MS = 604_800_000

# Pattern detector
HOURLY_PATTERN_MIN_EVENTS = 5
HOURLY_PATTERN_MIN_DOMINANT = 3
DAILY_PATTERN_MIN_EVENTS = 10
DAILY_PATTERN_MIN_SPAN_MS = 14_400_000
DAILY_PATTERN_CONFIDENCE = 0.7
TOPIC_PATTERN_MIN_EVENTS = 5
TOPIC_PATTERN_SATURATION = 10
WORKFLOW_SEQUENCE_LENGTH = 3
WORKFLOW_MIN_FREQUENCY = 3
WORKFLOW_SATURATION = 5
RAPID_INTERACTION_GAP_MS = 60_000
RAPID_INTERACTION_CONFIDENCE = 0.8
INSIGHT_RESPONSE_WINDOW_MS = 3_600_000
INSIGHT_RESPONSE_CONFIDENCE = 0.7

# Message priority
PRIORITY_DEFAULT = 3
PRIORITY_URGENT_INSIGHT = 8
PRIORITY_HIGH_RELEVANCE = 7
PRIORITY_RECENT_ACTIVITY = 5
PRIORITY_MIN = 1
PRIORITY_MAX = 10
URGENT_INSIGHT_ABOVE = 0.7
HIGH_RELEVANCE_ABOVE = 0.8
BURST_WINDOW_MS = 60_000
BURST_EVENTS_ABOVE = 5
MESSAGE_INSIGHTS = 5
MESSAGE_PATTERNS = 3
INSIGHT_MESSAGE_TTL_MS = 3_600_000

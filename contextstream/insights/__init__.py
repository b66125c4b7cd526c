"""
Insight Module.

Event-triggered and periodic behavioral insights.
"""

from contextstream.insights.insight_models import Insight, InsightKind
from contextstream.insights.insight_engine import (
    generate_insights,
    generate_periodic_insights,
)

__all__ = [
    "Insight",
    "InsightKind",
    "generate_insights",
    "generate_periodic_insights",
]

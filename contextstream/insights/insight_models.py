from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from contextstream.events.event_models import ActivityEvent


class InsightKind(str, Enum):
    PATTERN = "pattern"
    OPPORTUNITY = "opportunity"
    WARNING = "warning"
    ACHIEVEMENT = "achievement"
    SUGGESTION = "suggestion"


@dataclass(frozen=True)
class Insight:
    """A generated observation about user behavior. Never mutated after creation."""
    id: str
    kind: InsightKind
    title: str
    description: str
    confidence: float
    relevance: float
    urgency: float
    category: str  # productivity, wellness, focus
    timestamp: datetime
    evidence: Tuple[ActivityEvent, ...] = ()
    action_suggested: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

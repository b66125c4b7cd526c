from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

class EventType(str, Enum):
    BROWSER_TAB = "browser"
    SYSTEM_APP = "system"
    EMAIL = "email"
    CODE = "code"
    GITHUB = "github"
    YOUTUBE = "youtube"
    SLACK = "slack"
    VS_CODE = "vscode"
    CHAT = "chat"
    FILE = "file"
    CUSTOM = "custom"

class Enrichment(BaseModel):
    model_config = ConfigDict(frozen=True)

    topics: List[str] = []
    keywords: List[str] = []
    category: Optional[str] = None
    sentiment: Optional[float] = None
    urgency: Optional[float] = None
    summary: Optional[str] = None

class ActivityEvent(BaseModel):
    """
    One normalized activity record from a capture collector.

    Metadata keys read by the stream: url, action, app_name, repository,
    project_name, workflow_id. Everything else is carried through untouched.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"evt_{uuid.uuid4().hex[:12]}")
    type: EventType
    timestamp: datetime
    session_id: Optional[str] = None
    source: str = "extension"
    metadata: dict[str, Any] = {}
    tags: List[str] = []
    enrichment: Optional[Enrichment] = None

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def action(self) -> Optional[str]:
        return self.metadata.get("action")

    @property
    def url(self) -> Optional[str]:
        return self.metadata.get("url")

    @property
    def topics(self) -> List[str]:
        return list(self.enrichment.topics) if self.enrichment else []

"""
Runtime configuration for the context stream.

Settings (env / .env) supplies the defaults; StreamConfig is the validated,
immutable copy the stream works from. update_config() builds a new one.
"""

from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field

from contextstream.config.settings import Settings, settings


class StreamConfig(BaseModel):
    """Validated stream options. Durations are milliseconds."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = True
    buffer_size: int = Field(default=100, ge=1)
    flush_interval_ms: int = Field(default=1000, gt=0)
    max_context_age_ms: int = Field(default=3_600_000, gt=0)
    enable_realtime: bool = True
    enable_contextualization: bool = True
    enable_personalization: bool = True
    privacy_filter: bool = True
    compression_enabled: bool = True
    max_events_per_context: int = Field(default=50, ge=1)
    relevance_threshold: float = Field(default=0.3, ge=0.0, le=1.0)

    @classmethod
    def from_settings(cls, source: Settings | None = None, **overrides: Any) -> "StreamConfig":
        """Build a config from environment settings, then apply overrides."""
        source = source or settings
        values = {name: getattr(source, name) for name in cls.model_fields}
        values.update(overrides)
        return cls.model_validate(values)

    def merged(self, partial: Dict[str, Any]) -> "StreamConfig":
        """
        Return a new config with `partial` applied.

        Raises:
            pydantic.ValidationError: unknown option or out-of-range value
        """
        values = self.model_dump()
        values.update(partial)
        return StreamConfig.model_validate(values)

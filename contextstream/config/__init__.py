"""
Configuration Module.

Environment-backed defaults, runtime stream options and tunable thresholds.
"""

from contextstream.config.settings import Settings, settings
from contextstream.config.stream_config import StreamConfig

__all__ = [
    "Settings",
    "settings",
    "StreamConfig",
]

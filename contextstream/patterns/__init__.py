"""
Pattern Detector Module.

Temporal, semantic and behavioral regularities in a session's events.
"""

from contextstream.patterns.pattern_detector import (
    Pattern,
    PatternKind,
    detect_patterns,
)

__all__ = [
    "Pattern",
    "PatternKind",
    "detect_patterns",
]

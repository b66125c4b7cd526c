"""
Context Builder Module.

Activity summaries and assistant-context snapshots built from raw events.
"""

from contextstream.context.context_builder import (
    PRODUCTIVE_TYPES,
    ActivityContext,
    ActivitySummary,
    AssistantContext,
    MemoryContext,
    build_activity_summary,
    build_assistant_context,
    update_assistant_context,
)

__all__ = [
    "PRODUCTIVE_TYPES",
    "ActivityContext",
    "ActivitySummary",
    "AssistantContext",
    "MemoryContext",
    "build_activity_summary",
    "build_assistant_context",
    "update_assistant_context",
]

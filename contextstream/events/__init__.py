from contextstream.events.event_models import ActivityEvent, Enrichment, EventType

__all__ = ["ActivityEvent", "Enrichment", "EventType"]

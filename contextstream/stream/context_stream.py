"""
Context Stream - real-time activity context for the assistant.

Architecture:
    ┌─────────────────────────────────────────────────────────────────────┐
    │                           CONTEXT STREAM                            │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │  submit(events) ──┬──────────────────────────► EventBuffer (FIFO)   │
    │                   │ realtime                        │               │
    │                   ▼                                 │ flush (1s)    │
    │            ┌─────────────────────────────────┐      │               │
    │            │       process_batch             │◄─────┘               │
    │            │  group by session (first-seen)  │                      │
    │            └───────────────┬─────────────────┘                      │
    │                            ▼  per session                           │
    │            ┌─────────────────────────────────┐                      │
    │            │     ContextWindowManager        │                      │
    │            │  builder / insights / patterns  │                      │
    │            └───────────────┬─────────────────┘                      │
    │                            ▼  realtime                              │
    │            ┌─────────────────────────────────┐                      │
    │            │      MessageBroadcaster         │──► subscribers       │
    │            └─────────────────────────────────┘                      │
    │                                                                     │
    │  Background (Scheduler):  flush every flush_interval_ms             │
    │                           eviction sweep every 5 min                │
    │                           periodic insights every 60 s              │
    └─────────────────────────────────────────────────────────────────────┘

One re-entrant lock guards the buffer, the window store and the metrics.
Subscribers are called after the lock is released.

Usage:
    stream = get_context_stream()
    stream.start()
    unsubscribe = stream.subscribe(handle_message)
    stream.submit([event])
    ...
    stream.stop()
"""

from __future__ import annotations

import dataclasses
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from contextstream.config import StreamConfig, thresholds
from contextstream.core.clock import Clock, ScheduledTask, Scheduler, SystemClock, ThreadScheduler
from contextstream.core.ids import IdGenerator, UuidIdGenerator
from contextstream.events.event_models import ActivityEvent
from contextstream.insights.insight_models import Insight
from contextstream.stream.broadcaster import (
    MessageBroadcaster,
    StreamMessage,
    Subscriber,
    context_update_message,
    insight_message,
)
from contextstream.stream.event_buffer import EventBuffer
from contextstream.stream.window_manager import ContextWindow, ContextWindowManager, WindowStore

logger = logging.getLogger(__name__)


@dataclass
class StreamMetrics:
    events_processed: int = 0
    messages_sent: int = 0
    insights_generated: int = 0
    patterns_detected: int = 0
    error_count: int = 0
    average_latency_ms: float = 0.0
    context_updates: int = 0
    active_connections: int = 0
    buffer_size: int = 0


class ContextStream:
    """
    Buffered, session-windowed activity stream.

    Args:
        config: Stream options (defaults from environment settings)
        clock: Time source
        scheduler: Runs the flush, eviction and periodic-insight tasks
        ids: Id generator for windows, insights, patterns and messages
    """

    def __init__(
        self,
        config: Optional[StreamConfig] = None,
        clock: Optional[Clock] = None,
        scheduler: Optional[Scheduler] = None,
        ids: Optional[IdGenerator] = None,
    ):
        self._config = config or StreamConfig.from_settings()
        self.clock = clock or SystemClock()
        self.scheduler = scheduler or ThreadScheduler()
        self.ids = ids or UuidIdGenerator()

        self._lock = threading.RLock()
        self._buffer = EventBuffer(self._config.buffer_size)
        self._store = WindowStore(self._lock)
        self._windows = ContextWindowManager(self._store, self.clock, self.ids, lambda: self._config)
        self._broadcaster = MessageBroadcaster()
        self._metrics = StreamMetrics()
        self._submissions = 0

        self._running = False
        self._tasks: Dict[str, ScheduledTask] = {}

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Schedule background work. No-op when already running or disabled."""
        with self._lock:
            if self._running or not self._config.enabled:
                return
            self._tasks = {
                "flush": self.scheduler.every(self._config.flush_interval_ms / 1000, self.flush, name="flush"),
                "eviction": self.scheduler.every(
                    thresholds.EVICTION_SWEEP_SECONDS, self.run_eviction_sweep, name="eviction"
                ),
                "insights": self.scheduler.every(
                    thresholds.PERIODIC_INSIGHT_SECONDS, self.run_periodic_insights, name="insights"
                ),
            }
            self._running = True
        logger.info("Context stream started (flush every %dms)", self._config.flush_interval_ms)

    def stop(self) -> None:
        """Refuse submissions, cancel background work, then flush and sweep one last time."""
        with self._lock:
            if not self._running:
                return
            tasks, self._tasks = list(self._tasks.values()), {}
            # refuse submissions before the final flush
            self._running = False

        for task in tasks:
            task.cancel()

        self.flush()
        self.run_eviction_sweep()
        logger.info("Context stream stopped")

    def close(self) -> None:
        """Stop and drop all state except metrics."""
        self.stop()
        with self._lock:
            self._store.clear()
            self._buffer.clear()
        self._broadcaster.clear()

    # =========================================================================
    # INTAKE
    # =========================================================================

    def submit(self, events: Iterable[ActivityEvent]) -> int:
        """
        Accept a batch of events.

        Events always go to the buffer. In realtime mode they are also
        processed right away, so the next flush processes them a second time.

        Returns:
            Number of events accepted (0 when stopped or disabled)
        """
        events = list(events)
        with self._lock:
            if not self._running or not self._config.enabled:
                logger.debug("Ignoring %d event(s): stream not running", len(events))
                return 0

            started = time.perf_counter()
            self._buffer.extend(events)
            self._metrics.events_processed += len(events)
            realtime = self._config.enable_realtime and bool(events)

        if realtime:
            try:
                self._process_batch(events)
            except Exception:
                logger.exception("Realtime processing failed")
                with self._lock:
                    self._metrics.error_count += 1

        with self._lock:
            self._submissions += 1
            elapsed_ms = (time.perf_counter() - started) * 1000
            avg = self._metrics.average_latency_ms
            self._metrics.average_latency_ms = avg + (elapsed_ms - avg) / self._submissions
        return len(events)

    def flush(self) -> int:
        """
        Drain the buffer and process it as one batch.

        On failure the batch goes back to the front of the buffer and the
        overflow bound applies again.

        Returns:
            Number of events processed
        """
        with self._lock:
            batch = self._buffer.drain()
        if not batch:
            return 0

        try:
            self._process_batch(batch)
        except Exception:
            logger.exception("Flush of %d event(s) failed, requeueing", len(batch))
            with self._lock:
                self._buffer.requeue_front(batch)
                self._metrics.error_count += 1
            return 0
        return len(batch)

    def _process_batch(self, events: List[ActivityEvent]) -> None:
        messages: List[StreamMessage] = []
        with self._lock:
            config = self._config
            for session_id, session_events in self._windows.group_by_session(events).items():
                try:
                    update = self._windows.apply_session(session_id, session_events)
                except Exception:
                    logger.exception("Processing session %s failed", session_id)
                    self._metrics.error_count += 1
                    continue

                self._metrics.insights_generated += len(update.insights)
                self._metrics.patterns_detected += len(update.patterns)
                if config.enable_realtime:
                    messages.append(context_update_message(update.window, config, self.clock.now(), self.ids))

        for message in messages:
            if self._broadcaster.broadcast(message):
                with self._lock:
                    self._metrics.messages_sent += 1
                    self._metrics.context_updates += 1

    # =========================================================================
    # BACKGROUND WORK
    # =========================================================================

    def run_eviction_sweep(self) -> List[str]:
        return self._windows.evict_expired()

    def run_periodic_insights(self) -> List[Insight]:
        """Periodic insights for relevant windows, each broadcast as an insight message."""
        messages: List[StreamMessage] = []
        generated: List[Insight] = []
        with self._lock:
            now = self.clock.now()
            for result in self._windows.run_periodic_insights():
                generated.extend(result.insights)
                for insight in result.insights:
                    messages.append(insight_message(result.window, insight, now, self.ids))
            self._metrics.insights_generated += len(generated)

        for message in messages:
            if self._broadcaster.broadcast(message):
                with self._lock:
                    self._metrics.messages_sent += 1
        return generated

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for stream messages. Returns an unsubscribe function."""
        return self._broadcaster.subscribe(callback)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_context(self, session_id: str) -> Optional[ContextWindow]:
        with self._lock:
            window = self._store.get(session_id)
            return window.snapshot() if window else None

    def get_all_contexts(self) -> List[ContextWindow]:
        with self._lock:
            return [w.snapshot() for w in self._store.windows()]

    def get_recent_insights(self, session_id: Optional[str] = None, limit: int = 10) -> List[Insight]:
        """Newest first, across all windows unless a session is given."""
        with self._lock:
            if session_id is None:
                windows = self._store.windows()
            else:
                window = self._store.get(session_id)
                windows = [window] if window else []
            insights = [i for w in windows for i in reversed(w.insights)]
        insights.sort(key=lambda i: i.timestamp, reverse=True)
        return insights[:max(0, limit)]

    def get_active_sessions(self) -> List[str]:
        """Sessions updated within the last five minutes."""
        with self._lock:
            return self._windows.active_sessions()

    def get_metrics(self) -> StreamMetrics:
        with self._lock:
            return dataclasses.replace(
                self._metrics,
                buffer_size=len(self._buffer),
                active_connections=self._broadcaster.subscriber_count,
            )

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def get_config(self) -> StreamConfig:
        return self._config

    def update_config(self, **partial: Any) -> StreamConfig:
        """
        Apply new options.

        Raises:
            pydantic.ValidationError: unknown option or invalid value
        """
        with self._lock:
            previous = self._config
            self._config = previous.merged(partial)
            self._buffer.resize(self._config.buffer_size)
            if self._config.relevance_threshold != previous.relevance_threshold:
                self._windows.reclamp_relevance()

            flush_task = self._tasks.get("flush")
            reschedule = (
                self._running
                and flush_task is not None
                and self._config.flush_interval_ms != previous.flush_interval_ms
            )
            if reschedule:
                self._tasks["flush"] = self.scheduler.every(
                    self._config.flush_interval_ms / 1000, self.flush, name="flush"
                )

        if reschedule:
            flush_task.cancel()
            logger.info("Flush interval changed to %dms", self._config.flush_interval_ms)
        return self._config


# Global singleton instance
_global_context_stream: Optional[ContextStream] = None
_singleton_lock = threading.Lock()


def get_context_stream() -> ContextStream:
    """Get or create the process-wide context stream."""
    global _global_context_stream
    with _singleton_lock:
        if _global_context_stream is None:
            _global_context_stream = ContextStream()
        return _global_context_stream

from __future__ import annotations

import itertools
import threading
import uuid
from typing import Dict, Iterator, Protocol


class IdGenerator(Protocol):
    """Callable that returns a fresh id for a given prefix ("insight", "msg", ...)."""
    def __call__(self, prefix: str) -> str: ...


class UuidIdGenerator:
    """Random ids, e.g. insight_3f2a9c1e7b04."""

    def __call__(self, prefix: str) -> str:
        return f"{prefix}_{uuid.uuid4().hex[:12]}"


class SequentialIdGenerator:
    """Deterministic ids counted per prefix, e.g. insight_1, insight_2."""

    def __init__(self) -> None:
        self._counters: Dict[str, Iterator[int]] = {}
        self._lock = threading.Lock()

    def __call__(self, prefix: str) -> str:
        with self._lock:
            counter = self._counters.setdefault(prefix, itertools.count(1))
            return f"{prefix}_{next(counter)}"


default_ids = UuidIdGenerator()

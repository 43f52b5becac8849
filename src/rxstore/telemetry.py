"""Telemetry helpers used for collecting store metrics."""

from __future__ import annotations

import threading
from collections import Counter
from contextlib import contextmanager
from time import perf_counter
from typing import Any, Dict, Generator, Mapping

from .logging import get_logger

LOGGER = get_logger("telemetry")


class MetricsCollector:
    """Collects counters and timing metrics in-memory."""

    def __init__(self) -> None:
        self.counters: Counter[str] = Counter()
        self.timings: Dict[str, float] = {}
        self._lock = threading.Lock()

    def increment(self, name: str, value: int = 1) -> None:
        with self._lock:
            self.counters[name] += value
            current = self.counters[name]
        LOGGER.debug("counter=%s value=%s", name, current)

    @contextmanager
    def time(self, name: str) -> Generator[None, None, None]:
        start = perf_counter()
        try:
            yield
        finally:
            elapsed = perf_counter() - start
            with self._lock:
                self.timings[name] = elapsed
            LOGGER.debug("timing=%s duration=%.6f", name, elapsed)

    def snapshot(self) -> Dict[str, Any]:
        """Return a copy of the collected counters and timings."""

        with self._lock:
            return {"counters": dict(self.counters), "timings": dict(self.timings)}


def emit_event(name: str, payload: Mapping[str, Any] | None = None) -> None:
    """Emit a telemetry event with a structured payload."""

    if not name:
        return
    data: Dict[str, Any] = {}
    if isinstance(payload, Mapping):
        data = dict(payload)
    LOGGER.info("event=%s payload=%s", name, data)

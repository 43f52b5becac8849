"""Built-in middleware for observability, deferred forwarding and filtering.

Features:
- Structured log line per action with the number of transitions it caused and timing
- Counters for handled, dropped and failed actions when a collector is supplied
- Deferred forwarding through a ``concurrent.futures`` executor
- Predicate based short-circuiting of unwanted actions
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Executor, Future, wait
from functools import partial
from logging import Logger
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from .logging import get_logger
from .telemetry import MetricsCollector

if TYPE_CHECKING:
    from .chain import Link
    from .store import Store

LOGGER = get_logger("middleware")


class ObservabilityMiddleware:
    """Pass-through middleware that logs and counts every action it sees.

    ``reduced`` in the log line is the number of transitions the store
    committed while the rest of the chain ran: 0 for an action dropped (or
    deferred) downstream, more than 1 for a fan-out. Under concurrent
    dispatch from several threads it also counts their transitions.
    """

    def __init__(self, metrics: Optional[MetricsCollector] = None, logger: Optional[Logger] = None) -> None:
        self.metrics = metrics
        self.logger = logger or LOGGER

    def __call__(self, store: "Store[Any, Any]", action: Any, next: "Link[Any]") -> None:
        t0 = time.perf_counter()
        before = store.transitions
        try:
            next(action)
        except Exception:
            duration_ms = int((time.perf_counter() - t0) * 1000)
            self.logger.warning(
                "action_failed",
                exc_info=True,
                extra={"store": store.name, "action": str(action), "duration_ms": duration_ms},
            )
            self._count("middleware.failed")
            raise
        reduced = store.transitions - before
        duration_ms = int((time.perf_counter() - t0) * 1000)
        self.logger.info(
            "action",
            extra={
                "store": store.name,
                "action": str(action),
                "reduced": reduced,
                "duration_ms": duration_ms,
            },
        )
        self._count("middleware.actions")
        if reduced == 0:
            self._count("middleware.dropped")

    def _count(self, name: str) -> None:
        if self.metrics is not None:
            self.metrics.increment(name)


class DeferredMiddleware:
    """Forwards every action later, on ``executor``.

    ``dispatch`` returns before the reducer runs. Successful forwards are
    forgotten as soon as they finish; failed ones are logged when they happen
    and kept so :meth:`drain` can re-raise them. A single worker executor
    keeps submission order.
    """

    def __init__(self, executor: Executor, logger: Optional[Logger] = None) -> None:
        self.executor = executor
        self.logger = logger or LOGGER
        self._futures: List[Future] = []
        self._lock = threading.Lock()

    def __call__(self, store: "Store[Any, Any]", action: Any, next: "Link[Any]") -> None:
        future = self.executor.submit(next, action)
        with self._lock:
            self._futures.append(future)
        # Runs at once on this thread if the future already finished
        future.add_done_callback(partial(self._settle, store.name, action))

    def _settle(self, store_name: str, action: Any, future: Future) -> None:
        exc = None if future.cancelled() else future.exception()
        if exc is None:
            with self._lock:
                if future in self._futures:
                    self._futures.remove(future)
            return
        self.logger.error(
            "deferred_forward_failed",
            exc_info=(type(exc), exc, exc.__traceback__),
            extra={"store": store_name, "action": str(action)},
        )

    def pending(self) -> int:
        with self._lock:
            return sum(1 for future in self._futures if not future.done())

    def retained(self) -> int:
        """Number of futures still held: pending ones plus failures not yet drained."""

        with self._lock:
            return len(self._futures)

    def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for forwarded actions; re-raise the first failure among them."""

        with self._lock:
            futures, self._futures = self._futures, []
        done, not_done = wait(futures, timeout=timeout)
        if not_done:
            with self._lock:
                self._futures.extend(not_done)
        for future in futures:
            if future in done and not future.cancelled():
                future.result()


def filter_actions(predicate: Callable[[Any], bool]) -> Callable[["Store[Any, Any]", Any, "Link[Any]"], None]:
    """Middleware forwarding only the actions ``predicate`` accepts."""

    def filtering(store: "Store[Any, Any]", action: Any, next: "Link[Any]") -> None:
        if predicate(action):
            next(action)
        else:
            LOGGER.debug("action dropped", extra={"store": store.name, "action": str(action)})

    return filtering


__all__ = ["DeferredMiddleware", "ObservabilityMiddleware", "filter_actions"]

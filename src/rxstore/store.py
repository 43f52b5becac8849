"""The store: single owner of state, reached through the middleware chain."""

from __future__ import annotations

import logging
import threading
from contextlib import nullcontext
from typing import Any, Callable, Generic, Iterable, Optional, Tuple, TypeVar

from .broadcast import Broadcaster, ErrorHook, Subscription
from .chain import Link, Middleware, Reducer, build_chain
from .config import StoreSettings
from .exceptions import StoreClosedError
from .logging import get_logger, log_event
from .stream import StateStream
from .telemetry import MetricsCollector

LOGGER = get_logger("store")

S = TypeVar("S")
A = TypeVar("A")


class Store(Generic[S, A]):
    """Holds a state and reduces it with every action that reaches the end of the chain.

    Middleware is fixed at construction time; the chain is built once and
    reused for every dispatch.
    """

    def __init__(
        self,
        initial_state: S,
        reducer: Reducer[S, A],
        middleware: Iterable[Middleware[S, A]] = (),
        *,
        settings: Optional[StoreSettings] = None,
        metrics: Optional[MetricsCollector] = None,
        on_subscriber_error: Optional[ErrorHook] = None,
    ) -> None:
        if not callable(reducer):
            raise TypeError("reducer must be callable")
        self._state = initial_state
        self._reducer = reducer
        self._settings = settings or StoreSettings()
        self._metrics = metrics
        self._middleware: Tuple[Middleware[S, A], ...] = tuple(middleware)
        self._lock = threading.RLock()
        self._transitions = 0
        self._broadcaster: Broadcaster[S] = Broadcaster(
            name=self._settings.name,
            policy=self._settings.subscriber_errors,
            on_error=on_subscriber_error,
            metrics=metrics,
        )
        self._states: StateStream[S] = StateStream(self._broadcaster.subscribe)
        self._entry: Link[A] = build_chain(self, self._middleware, self._reduce)

    # ---- properties ----
    @property
    def name(self) -> str:
        return self._settings.name

    @property
    def settings(self) -> StoreSettings:
        return self._settings

    @property
    def metrics(self) -> Optional[MetricsCollector]:
        return self._metrics

    @property
    def middleware(self) -> Tuple[Middleware[S, A], ...]:
        return self._middleware

    @property
    def state(self) -> S:
        return self._state

    @property
    def transitions(self) -> int:
        """Number of states committed so far."""

        return self._transitions

    @property
    def closed(self) -> bool:
        return self._broadcaster.closed

    # ---- public API ----
    def dispatch(self, action: A) -> None:
        """Send ``action`` through the middleware chain.

        With fully synchronous middleware the new state is committed and
        broadcast before this returns. Reducer and middleware errors propagate
        unchanged.
        """

        if self._broadcaster.closed:
            raise StoreClosedError(f"{self.name} is closed")
        if self._metrics is not None:
            self._metrics.increment("dispatch")
        self._entry(action)

    def get_state(self) -> S:
        """Return the most recently committed state."""

        return self._state

    def subscribe(self, callback: Callable[[S], Any]) -> Subscription:
        """Register ``callback`` for every state committed from now on (no replay)."""

        return self._broadcaster.subscribe(callback)

    def unsubscribe(self, subscription: object) -> None:
        """Cancel ``subscription``; unknown handles are ignored."""

        self._broadcaster.unsubscribe(subscription)

    def states(self) -> StateStream[S]:
        """Return the shared stream of future states."""

        return self._states

    def subscriber_count(self) -> int:
        return len(self._broadcaster)

    def close(self) -> None:
        """Release every subscription; further dispatches raise :class:`StoreClosedError`."""

        self._broadcaster.close()
        log_event(LOGGER, "store_closed", {"store": self.name}, level=logging.DEBUG)

    def __enter__(self) -> "Store[S, A]":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<Store {self.name!r} middleware={len(self._middleware)} subscribers={len(self._broadcaster)}>"

    # ---- transition sink ----
    def _reduce(self, action: A) -> None:
        with self._lock:
            if self._settings.log_actions:
                LOGGER.debug("reduce", extra={"store": self.name, "action": str(action)})
            timer = self._metrics.time("reduce") if self._metrics is not None else nullcontext()
            try:
                with timer:
                    new_state = self._reducer(self._state, action)
            except Exception:
                if self._metrics is not None:
                    self._metrics.increment("reduce_error")
                raise
            self._state = new_state
            self._transitions += 1
            if self._metrics is not None:
                self._metrics.increment("reduce")
            self._broadcaster.publish(new_state)


def create_store(
    initial_state: S,
    reducer: Reducer[S, A],
    middleware: Iterable[Middleware[S, A]] = (),
    **options: Any,
) -> Store[S, A]:
    """Create a :class:`Store`; ``options`` are passed to its constructor."""

    return Store(initial_state, reducer, middleware, **options)


__all__ = ["Store", "create_store"]

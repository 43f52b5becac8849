"""Subscription registry and state broadcaster.

Every committed state is published once and pushed to a snapshot of the
subscriptions active when its broadcast starts. Subscriptions are independent
handles: registering the same callback twice yields two subscriptions, each
cancelled on its own.
"""

from __future__ import annotations

import threading
from collections import deque
from itertools import count
from typing import Any, Callable, Deque, Dict, Generic, Optional, TypeVar

from .config import SubscriberErrorPolicy
from .exceptions import StoreClosedError, SubscriberError
from .logging import get_logger
from .telemetry import MetricsCollector, emit_event

LOGGER = get_logger("broadcast")

S = TypeVar("S")

Callback = Callable[[S], Any]
ErrorHook = Callable[[BaseException, Any, "Subscription"], None]

_ids = count(1)


class Subscription:
    """Opaque handle returned by ``subscribe``; use it to cancel the registration."""

    __slots__ = ("id", "_callback", "_owner", "_active")

    def __init__(self, callback: Callback, owner: "Broadcaster[Any]") -> None:
        self.id = next(_ids)
        self._callback = callback
        self._owner = owner
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    @property
    def callback(self) -> Callback:
        return self._callback

    def cancel(self) -> None:
        """Stop receiving states. Safe to call more than once."""

        self._owner.unsubscribe(self)

    dispose = cancel

    def _notify(self, state: Any) -> bool:
        # Cancelled after the snapshot was taken: skip
        if not self._active:
            return False
        self._callback(state)
        return True

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cancel()

    def __repr__(self) -> str:
        status = "active" if self._active else "cancelled"
        return f"<Subscription #{self.id} {status}>"


def log_subscriber_error(exc: BaseException, state: Any, subscription: Subscription) -> None:
    """Default reporting hook: log the failure and keep broadcasting."""

    LOGGER.error(
        "subscriber #%s failed: %s",
        subscription.id,
        exc,
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={"event": "subscriber_error", "payload": {"subscription": subscription.id}},
    )
    emit_event("subscriber:error", {"subscription": subscription.id, "exc": type(exc).__name__})


class Broadcaster(Generic[S]):
    """Holds the active subscriptions and fans committed states out to them."""

    def __init__(
        self,
        *,
        name: str = "store",
        policy: SubscriberErrorPolicy = SubscriberErrorPolicy.ISOLATE,
        on_error: Optional[ErrorHook] = None,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.name = name
        self.policy = SubscriberErrorPolicy(policy)
        self.on_error: ErrorHook = on_error or log_subscriber_error
        self.metrics = metrics
        self._subscriptions: Dict[int, Subscription] = {}
        self._lock = threading.Lock()
        self._publish_lock = threading.RLock()
        self._pending: Deque[S] = deque()
        self._delivering = False
        self._closed = False

    # ---- registry ----
    def subscribe(self, callback: Callback) -> Subscription:
        if not callable(callback):
            raise TypeError("subscriber callback must be callable")
        subscription = Subscription(callback, self)
        with self._lock:
            if self._closed:
                raise StoreClosedError(f"{self.name} is closed")
            self._subscriptions[subscription.id] = subscription
        LOGGER.debug("subscribed #%s", subscription.id, extra={"store": self.name})
        return subscription

    def unsubscribe(self, subscription: object) -> None:
        """Remove ``subscription``; unknown or already removed handles are ignored."""

        if not isinstance(subscription, Subscription) or subscription._owner is not self:
            return
        with self._lock:
            subscription._active = False
            self._subscriptions.pop(subscription.id, None)

    def subscriptions(self) -> tuple[Subscription, ...]:
        with self._lock:
            return tuple(self._subscriptions.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Cancel every subscription and refuse new ones."""

        with self._lock:
            self._closed = True
            for subscription in self._subscriptions.values():
                subscription._active = False
            self._subscriptions.clear()

    # ---- delivery ----
    def publish(self, state: S) -> None:
        """Deliver ``state`` to every current subscriber.

        A state published from inside a subscriber callback is queued and
        delivered once the broadcast in progress has reached everyone. If a
        broadcast aborts, states still queued behind it are discarded.
        """

        with self._publish_lock:
            self._pending.append(state)
            if self._delivering:
                return
            self._delivering = True
            try:
                while self._pending:
                    self._broadcast(self._pending.popleft())
            except BaseException:
                discarded = len(self._pending)
                self._pending.clear()
                if discarded:
                    LOGGER.warning(
                        "broadcast aborted, %s queued state(s) discarded",
                        discarded,
                        extra={"store": self.name},
                    )
                raise
            finally:
                self._delivering = False

    def _broadcast(self, state: S) -> None:
        snapshot = self.subscriptions()
        if self.metrics is not None:
            self.metrics.increment("broadcast")
        for subscription in snapshot:
            try:
                subscription._notify(state)
            except Exception as exc:  # noqa: BLE001 - routed by policy
                if self.metrics is not None:
                    self.metrics.increment("subscriber_error")
                if self.policy is SubscriberErrorPolicy.PROPAGATE:
                    raise SubscriberError(
                        f"subscriber #{subscription.id} failed",
                        state=state,
                        subscription=subscription,
                    ) from exc
                self.on_error(exc, state, subscription)


__all__ = ["Broadcaster", "Subscription", "log_subscriber_error"]

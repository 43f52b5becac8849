"""Hot, non-replaying streams of committed states."""

from __future__ import annotations

from typing import Any, Callable, Generic, TypeVar

from .broadcast import Subscription

T = TypeVar("T")
U = TypeVar("U")

Attach = Callable[[Callable[[Any], Any]], Subscription]


class StateStream(Generic[T]):
    """A push-based view over the states a store commits.

    Derived streams (``map``/``filter``) only transform values that were
    already computed once by the store; subscribing to any number of views
    never runs the reducer again.
    """

    __slots__ = ("_attach",)

    def __init__(self, attach: Attach) -> None:
        self._attach = attach

    def subscribe(self, callback: Callable[[T], Any]) -> Subscription:
        """Receive every state committed from now on."""

        if not callable(callback):
            raise TypeError("stream callback must be callable")
        return self._attach(callback)

    def map(self, fn: Callable[[T], U]) -> "StateStream[U]":
        def attach(callback: Callable[[U], Any]) -> Subscription:
            return self._attach(lambda value: callback(fn(value)))

        return StateStream(attach)

    def filter(self, predicate: Callable[[T], bool]) -> "StateStream[T]":
        def attach(callback: Callable[[T], Any]) -> Subscription:
            def forward(value: T) -> None:
                if predicate(value):
                    callback(value)

            return self._attach(forward)

        return StateStream(attach)

    def distinct(self) -> "StateStream[T]":
        """Skip values equal to the last one delivered to the same subscriber."""

        def attach(callback: Callable[[T], Any]) -> Subscription:
            missing = object()
            last: list[Any] = [missing]

            def forward(value: T) -> None:
                if last[0] is not missing and last[0] == value:
                    return
                last[0] = value
                callback(value)

            return self._attach(forward)

        return StateStream(attach)


__all__ = ["StateStream"]

"""Middleware chain composition.

The chain is built once per store: the middleware sequence is folded right to
left around the terminal sink so that the first middleware supplied is the
outermost link and sees every dispatched action first.
"""

from __future__ import annotations

from functools import reduce
from typing import TYPE_CHECKING, Any, Callable, Generic, Protocol, Sequence, TypeVar

if TYPE_CHECKING:
    from .store import Store

S = TypeVar("S")
A = TypeVar("A")


class Dispatcher(Protocol[A]):
    """Anything accepting an action; ``next`` in a middleware is one of these."""

    def __call__(self, action: A) -> None:  # pragma: no cover - interface only
        ...


class Reducer(Protocol[S, A]):
    """Pure transition function ``(state, action) -> state``.

    A reducer must not produce side effects, must not mutate ``state`` and
    should return ``state`` unchanged for actions it does not recognise.
    """

    def __call__(self, state: S, action: A) -> S:  # pragma: no cover - interface only
        ...


class Middleware(Protocol[S, A]):
    """Signature of a chain link.

    A middleware must call ``next`` (zero, one or many times, now or later)
    for an action to reach the reducer.
    """

    def __call__(self, store: "Store[S, A]", action: A, next: "Link[A]") -> None:  # pragma: no cover - interface only
        ...


class Link(Generic[A]):
    """Forwarding function handed to a middleware as ``next``.

    Callable directly or through :meth:`dispatch`.
    """

    __slots__ = ("_target",)

    def __init__(self, target: Callable[[A], Any]) -> None:
        self._target = target

    def dispatch(self, action: A) -> None:
        self._target(action)

    def __call__(self, action: A) -> None:
        self._target(action)

    def __repr__(self) -> str:
        name = getattr(self._target, "__qualname__", type(self._target).__name__)
        return f"<link {name}>"


class _MiddlewareLink(Link[A]):
    """Dispatcher invoking one middleware with the link that follows it."""

    __slots__ = ("_store", "_middleware", "_next")

    def __init__(self, store: "Store[Any, A]", middleware: Middleware[Any, A], next_link: Link[A]) -> None:
        self._store = store
        self._middleware = middleware
        self._next = next_link

    def dispatch(self, action: A) -> None:
        self._middleware(self._store, action, self._next)

    __call__ = dispatch

    def __repr__(self) -> str:
        name = getattr(self._middleware, "__name__", type(self._middleware).__name__)
        return f"<link {name} -> {self._next!r}>"


def build_chain(
    store: "Store[S, A]",
    middleware: Sequence[Middleware[S, A]],
    sink: Callable[[A], Any],
) -> Link[A]:
    """Compose ``middleware`` around ``sink`` into a single entry point.

    With no middleware the entry point forwards straight to ``sink``.
    """

    terminal: Link[A] = sink if isinstance(sink, Link) else Link(sink)
    return reduce(
        lambda inner, current: _MiddlewareLink(store, current, inner),
        reversed(tuple(middleware)),
        terminal,
    )


__all__ = ["Dispatcher", "Link", "Middleware", "Reducer", "build_chain"]

"""Custom exceptions raised by rxstore."""

from __future__ import annotations

from typing import Any


class StoreError(RuntimeError):
    """Base error for all store related exceptions."""


class ConfigurationError(StoreError):
    """Raised when settings values or entry points are invalid or missing."""


class StoreClosedError(StoreError):
    """Raised when a closed store is asked to dispatch or subscribe."""


class SubscriberError(StoreError):
    """Raised when a subscriber fails and the store propagates subscriber errors."""

    def __init__(self, message: str, *, state: Any = None, subscription: Any = None) -> None:
        super().__init__(message)
        self.state = state
        self.subscription = subscription

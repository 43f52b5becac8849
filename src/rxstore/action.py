"""Optional action envelope.

Any value can be dispatched to a :class:`~rxstore.store.Store`; ``Action`` is a
convenience pairing of a discriminant tag with an optional payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")
P = TypeVar("P")


@dataclass(frozen=True, slots=True)
class Action(Generic[T, P]):
    """A tagged action with an optional payload."""

    type: T
    payload: P | None = None

    @classmethod
    def of(cls, type: T, payload: P | None = None) -> "Action[T, P]":  # noqa: A002
        return cls(type, payload)

    @property
    def tag(self) -> str:
        """Display form of the discriminant (enum members render by name)."""

        if isinstance(self.type, Enum):
            return self.type.name
        return str(self.type)

    def __str__(self) -> str:
        if self.payload is not None:
            return f"{self.tag}: {self.payload}"
        return self.tag


def action_tag(action: Any) -> str:
    """Return the tag of ``action`` whether it is an envelope, enum member or plain value."""

    if isinstance(action, Action):
        return action.tag
    if isinstance(action, Enum):
        return action.name
    return str(action)


__all__ = ["Action", "action_tag"]

"""Builtin reducers."""

from __future__ import annotations

from enum import Enum
from typing import Any

from .action import action_tag


class CounterAction(str, Enum):
    INC = "INC"
    DEC = "DEC"


def counter(state: int, action: Any) -> int:
    """Increment on ``INC``, decrement on ``DEC``, ignore anything else."""

    tag = action_tag(action)
    if tag == CounterAction.INC.value:
        return state + 1
    if tag == CounterAction.DEC.value:
        return state - 1
    return state

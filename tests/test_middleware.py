from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

import pytest

from rxstore import Store
from rxstore.middleware import DeferredMiddleware, ObservabilityMiddleware, filter_actions
from rxstore.telemetry import MetricsCollector
from tests._counter import DEC, INC, ActionType, reducer


def test_observability_logs_and_counts(caplog) -> None:
    metrics = MetricsCollector()
    store = Store(0, reducer, [ObservabilityMiddleware(metrics)])

    with caplog.at_level(logging.INFO, logger="rxstore.middleware"):
        store.dispatch(INC)

    assert store.get_state() == 1
    assert metrics.counters["middleware.actions"] == 1
    assert metrics.counters["middleware.dropped"] == 0
    records = [r for r in caplog.records if r.getMessage() == "action"]
    assert len(records) == 1
    assert records[0].reduced == 1
    assert records[0].action == "INC"
    assert records[0].store == "store"


def test_observability_tells_fan_out_from_drop(caplog) -> None:
    def twice(store, action, next):
        next(action)
        next(action)

    def drop(store, action, next):
        return None

    metrics = MetricsCollector()
    fan_out = Store(0, reducer, [ObservabilityMiddleware(metrics), twice])
    dropping = Store(0, reducer, [ObservabilityMiddleware(metrics), drop])

    with caplog.at_level(logging.INFO, logger="rxstore.middleware"):
        fan_out.dispatch(INC)
        dropping.dispatch(INC)

    records = [r for r in caplog.records if r.getMessage() == "action"]
    assert [r.reduced for r in records] == [2, 0]
    assert fan_out.get_state() == 2
    assert dropping.get_state() == 0
    assert metrics.counters["middleware.actions"] == 2
    assert metrics.counters["middleware.dropped"] == 1


def test_observability_reraises_failures() -> None:
    metrics = MetricsCollector()

    def failing(state, action):
        raise RuntimeError("reducer failed")

    store = Store(0, failing, [ObservabilityMiddleware(metrics)])
    with pytest.raises(RuntimeError, match="reducer failed"):
        store.dispatch(INC)
    assert metrics.counters["middleware.failed"] == 1


def test_deferred_forwarding_returns_before_reduce() -> None:
    gate = threading.Event()
    executor = ThreadPoolExecutor(max_workers=1)

    def blocked(store, action, next):
        gate.wait(timeout=5)
        next(action)

    deferred = DeferredMiddleware(executor)
    store = Store(0, reducer, [deferred, blocked])
    callback = Mock()
    store.subscribe(callback)
    try:
        store.dispatch(INC)
        assert store.get_state() == 0
        callback.assert_not_called()

        gate.set()
        deferred.drain(timeout=5)
    finally:
        executor.shutdown(wait=True)

    assert store.get_state() == 1
    callback.assert_called_once_with(1)
    assert deferred.pending() == 0


def test_deferred_preserves_order_with_single_worker() -> None:
    with ThreadPoolExecutor(max_workers=1) as executor:
        deferred = DeferredMiddleware(executor)
        store = Store(0, reducer, [deferred])
        seen = []
        store.subscribe(seen.append)
        for action in (INC, INC, DEC, INC):
            store.dispatch(action)
        deferred.drain(timeout=5)

    assert seen == [1, 2, 1, 2]


def test_deferred_drain_surfaces_reducer_errors() -> None:
    def failing(state, action):
        raise ValueError("late failure")

    with ThreadPoolExecutor(max_workers=1) as executor:
        deferred = DeferredMiddleware(executor)
        store = Store(0, failing, [deferred])
        store.dispatch(INC)  # returns: failure happens on the worker
        with pytest.raises(ValueError, match="late failure"):
            deferred.drain(timeout=5)
    assert store.get_state() == 0


def test_filter_actions_short_circuits() -> None:
    only_inc = filter_actions(lambda action: action.type is ActionType.INC)
    store = Store(0, reducer, [only_inc])
    callback = Mock()
    store.subscribe(callback)

    store.dispatch(DEC)
    store.dispatch(INC)
    store.dispatch(DEC)

    assert store.get_state() == 1
    callback.assert_called_once_with(1)


def test_deferred_forgets_finished_forwards_without_drain() -> None:
    with ThreadPoolExecutor(max_workers=1) as executor:
        deferred = DeferredMiddleware(executor)
        store = Store(0, reducer, [deferred])
        for _ in range(1000):
            store.dispatch(INC)

    assert store.get_state() == 1000
    assert deferred.pending() == 0
    assert deferred.retained() == 0


def test_deferred_failure_is_logged_when_it_happens(caplog) -> None:
    def failing(state, action):
        raise ValueError("late failure")

    with caplog.at_level(logging.ERROR, logger="rxstore.middleware"):
        with ThreadPoolExecutor(max_workers=1) as executor:
            deferred = DeferredMiddleware(executor)
            store = Store(0, failing, [deferred])
            store.dispatch(INC)

    records = [r for r in caplog.records if r.getMessage() == "deferred_forward_failed"]
    assert len(records) == 1
    assert records[0].action == "INC"
    assert records[0].exc_info[0] is ValueError
    # The failure stays available to drain until someone collects it
    assert deferred.retained() == 1
    with pytest.raises(ValueError, match="late failure"):
        deferred.drain(timeout=5)
    assert deferred.retained() == 0

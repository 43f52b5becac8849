"""Command line interface for replaying actions through a store."""

from __future__ import annotations

import argparse
import json
from importlib import import_module
from pathlib import Path
from typing import Any, Callable, List, Mapping

import yaml
from rich.console import Console
from rich.markup import escape

from .action import Action
from .config import StoreSettings, load_settings
from .exceptions import ConfigurationError
from .middleware import ObservabilityMiddleware
from .store import Store
from .telemetry import MetricsCollector

DEFAULT_REDUCER = "rxstore.reducers:counter"


def load_reducer(entrypoint: str) -> Callable[[Any, Any], Any]:
    """Resolve a ``module:function`` entry point to a reducer."""

    try:
        module_name, function_name = entrypoint.split(":")
    except ValueError as exc:
        raise ConfigurationError("Reducer entrypoint must be in 'module:function' format") from exc

    try:
        module = import_module(module_name)
        function = getattr(module, function_name)
    except (ModuleNotFoundError, AttributeError) as exc:
        raise ConfigurationError(f"Unable to resolve reducer entrypoint {entrypoint}") from exc

    if not callable(function):
        raise ConfigurationError(f"Reducer entrypoint {entrypoint} is not callable")
    return function


def load_actions(path: Path) -> List[Any]:
    """Load a JSON or YAML list of actions from ``path``."""

    if not path.exists():
        raise FileNotFoundError(f"Actions file not found: {path}")

    with path.open("r", encoding="utf-8") as handle:
        if path.suffix.lower() in {".yaml", ".yml"}:
            data = yaml.safe_load(handle)
        else:
            data = json.load(handle)

    if not isinstance(data, list):
        raise ConfigurationError("Actions file must contain a list")
    return [_to_action(item) for item in data]


def _to_action(item: Any) -> Any:
    if isinstance(item, str):
        return Action(item)
    if isinstance(item, Mapping) and "type" in item:
        return Action(item["type"], item.get("payload"))
    return item


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay actions through an rxstore store")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Dispatch every action of a file and print each state")
    run_parser.add_argument(
        "--reducer",
        type=str,
        default=DEFAULT_REDUCER,
        help=f"Reducer entry point in module:function form (default: {DEFAULT_REDUCER})",
    )
    run_parser.add_argument(
        "--initial",
        type=str,
        default="0",
        help="Initial state as a JSON literal (default: 0)",
    )
    run_parser.add_argument("--actions", type=Path, required=True, help="JSON or YAML list of actions")
    run_parser.add_argument("--config", type=Path, default=None, help="Store settings file (JSON or YAML)")
    run_parser.add_argument("--metrics", action="store_true", help="Print collected metrics at the end")
    run_parser.set_defaults(handler=_run_command)

    return parser


def _run_command(arguments: argparse.Namespace, console: Console) -> int:
    try:
        reducer = load_reducer(arguments.reducer)
        settings = load_settings(arguments.config) if arguments.config else StoreSettings.from_env()
        actions = load_actions(arguments.actions)
        initial = json.loads(arguments.initial)
    except (ConfigurationError, FileNotFoundError, ValueError, yaml.YAMLError) as exc:
        console.print(f"[bold red]error:[/] {escape(str(exc))}")
        return 2

    metrics = MetricsCollector()
    store = Store(initial, reducer, [ObservabilityMiddleware(metrics)], settings=settings, metrics=metrics)
    with store:
        store.subscribe(lambda state: console.print(f"[cyan]state:[/] {escape(repr(state))}"))
        for action in actions:
            console.print(f"[bold]dispatch[/] {escape(str(action))}")
            try:
                store.dispatch(action)
            except Exception as exc:  # noqa: BLE001 - reported as exit status
                console.print(f"[bold red]dispatch failed:[/] {escape(type(exc).__name__)}: {escape(str(exc))}")
                console.print(f"[bold yellow]last committed state:[/] {escape(repr(store.get_state()))}")
                return 1
        console.print(f"[bold green]final state:[/] {escape(repr(store.get_state()))}")
    if arguments.metrics:
        console.print(metrics.snapshot())
    return 0


def main(argv: list[str] | None = None, console: Console | None = None) -> int:
    """CLI entry point used by ``python -m rxstore.cli``."""

    parser = _build_parser()
    arguments = parser.parse_args(argv)
    handler = getattr(arguments, "handler", None)
    if handler is None:
        parser.error("No command given")
    return handler(arguments, console or Console())


if __name__ == "__main__":  # pragma: no cover - manual invocation helper
    raise SystemExit(main())

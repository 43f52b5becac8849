"""Settings models for rxstore stores."""

from __future__ import annotations

import json
import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigurationError


class SubscriberErrorPolicy(str, Enum):
    """What the broadcaster does when a subscriber callback raises."""

    ISOLATE = "isolate"
    PROPAGATE = "propagate"


class StoreSettings(BaseModel):
    """Runtime behaviour of a store."""

    name: str = Field(default="store", description="Name used in log records and metrics")
    subscriber_errors: SubscriberErrorPolicy = Field(
        default=SubscriberErrorPolicy.ISOLATE,
        description="Isolate failing subscribers (report and continue) or propagate to the dispatcher.",
    )
    log_actions: bool = Field(
        default=False,
        description="If True every action reaching the reducer is logged at DEBUG level.",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Store name must not be empty")
        return value

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "StoreSettings":
        """Build settings from ``RXSTORE_*`` environment variables."""

        env = os.environ if environ is None else environ
        raw: Dict[str, Any] = {}
        if env.get("RXSTORE_NAME"):
            raw["name"] = env["RXSTORE_NAME"]
        if env.get("RXSTORE_SUBSCRIBER_ERRORS"):
            raw["subscriber_errors"] = env["RXSTORE_SUBSCRIBER_ERRORS"].strip().lower()
        if env.get("RXSTORE_LOG_ACTIONS"):
            raw["log_actions"] = _parse_bool(env["RXSTORE_LOG_ACTIONS"])
        return build_settings_from_dict(raw)


def build_settings_from_dict(raw: Mapping[str, Any]) -> StoreSettings:
    """Utility helper to build :class:`StoreSettings` from a plain dictionary."""

    try:
        return StoreSettings.model_validate(dict(raw))
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid store settings: {exc}") from exc


def load_settings(path: Path) -> StoreSettings:
    """Load settings from a JSON or YAML file at ``path``."""

    if not path.exists():
        raise ConfigurationError(f"Settings file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        if path.suffix.lower() in {".yaml", ".yml"}:
            data = yaml.safe_load(handle)
        else:
            data = json.load(handle)
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise ConfigurationError("Settings file must contain a mapping")
    return build_settings_from_dict(data)


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


__all__ = [
    "StoreSettings",
    "SubscriberErrorPolicy",
    "build_settings_from_dict",
    "load_settings",
]

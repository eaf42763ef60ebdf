"""
Settings Loader (``settlement_config.loader``).

Responsibility
--------------
Load ``defaults.yaml``, merge an optional deployment YAML file over it,
apply environment overrides, and parse the result into the frozen
``settlement_config.schema`` dataclasses.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Unknown keys are rejected with ``ValueError``; a typo in a deployment
  file never silently falls back to a default.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the merged
  settings for change detection.

Failure modes
-------------
* Missing overlay file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key or out-of-range value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
from collections.abc import Mapping
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from settlement_config.schema import (
    DatabaseSettings,
    HistorySettings,
    LoggingSettings,
    RequestNumberSettings,
    SettlementSettings,
)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

# Environment variable -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "SETTLEMENT_DATABASE_URL": ("database", "url"),
    "SETTLEMENT_LOG_LEVEL": ("logging", "level"),
}

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Settings file {path} must contain a mapping")
    return data


def merge(base: dict[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``overlay`` onto a copy of ``base``."""
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def apply_env_overrides(
    data: dict[str, Any],
    env: Mapping[str, str],
) -> dict[str, Any]:
    """Apply ``SETTLEMENT_*`` environment overrides."""
    result = dict(data)
    for var, (section, key) in ENV_OVERRIDES.items():
        value = env.get(var)
        if value:
            result[section] = {**result.get(section, {}), key: value}
    return result


def _build(cls, data: Mapping[str, Any] | None, section: str):
    data = dict(data or {})
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown settings in '{section}': {', '.join(unknown)}")
    return cls(**data)


def parse_settings(data: Mapping[str, Any]) -> SettlementSettings:
    """
    Parse a merged settings dict into ``SettlementSettings``.

    Raises:
        ValueError: on unknown sections/keys or invalid values.
    """
    sections = {"database", "request_numbers", "history", "logging"}
    unknown = sorted(set(data) - sections)
    if unknown:
        raise ValueError(f"Unknown settings sections: {', '.join(unknown)}")

    history_data = dict(data.get("history") or {})
    if "excluded_logistics_companies" in history_data:
        history_data["excluded_logistics_companies"] = tuple(
            history_data["excluded_logistics_companies"] or ()
        )

    settings = SettlementSettings(
        database=_build(DatabaseSettings, data.get("database"), "database"),
        request_numbers=_build(
            RequestNumberSettings, data.get("request_numbers"), "request_numbers",
        ),
        history=_build(HistorySettings, history_data, "history"),
        logging=_build(LoggingSettings, data.get("logging"), "logging"),
        checksum=compute_checksum(dict(data)),
    )
    _validate(settings)
    return settings


def _validate(settings: SettlementSettings) -> None:
    numbers = settings.request_numbers
    if not numbers.prefix:
        raise ValueError("request_numbers.prefix must not be empty")
    if numbers.sequence_width < 1:
        raise ValueError("request_numbers.sequence_width must be >= 1")
    if settings.history.decimal_places < 0:
        raise ValueError("history.decimal_places must be >= 0")
    if settings.logging.level.upper() not in _LOG_LEVELS:
        raise ValueError(f"Unknown logging.level {settings.logging.level!r}")


def load_settings(
    path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> SettlementSettings:
    """
    Load packaged defaults, overlay ``path`` (if given), apply env overrides.

    Args:
        path: Deployment YAML file merged over the defaults.
        env: Environment mapping; defaults to ``os.environ``.
    """
    environ = os.environ if env is None else env
    data = load_yaml_file(DEFAULTS_PATH)
    if path is not None:
        data = merge(data, load_yaml_file(Path(path)))
    data = apply_env_overrides(data, environ)
    return parse_settings(data)


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()

"""
settlement_config -- single public entrypoint for runtime settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  No other component reads settings files or
    ``SETTLEMENT_*`` environment variables directly.

Architecture position:
    Configuration -- sits above ``settlement_kernel`` and below
    ``settlement_services``.  The kernel MUST NEVER import from
    ``settlement_config``; the orchestrator passes values down.

Failure modes:
    - ``FileNotFoundError`` -- the file named by ``SETTLEMENT_CONFIG_FILE``
      (or passed explicitly) does not exist.
    - ``ValueError`` -- unknown keys or invalid values.

Every load emits a ``SETTLEMENT_CONFIG_TRACE`` log entry carrying the
settings checksum.
"""

from __future__ import annotations

import functools
import logging
import os
from pathlib import Path

from settlement_config.loader import load_settings
from settlement_config.schema import (
    DatabaseSettings,
    HistorySettings,
    LoggingSettings,
    RequestNumberSettings,
    SettlementSettings,
)

_logger = logging.getLogger("settlement_kernel.config")

CONFIG_FILE_ENV = "SETTLEMENT_CONFIG_FILE"


@functools.lru_cache(maxsize=8)
def _load_cached(path: str | None) -> SettlementSettings:
    settings = load_settings(path)
    _logger.info(
        "SETTLEMENT_CONFIG_TRACE",
        extra={
            "trace_type": "SETTLEMENT_CONFIG_TRACE",
            "config_file": path,
            "checksum": settings.checksum,
            "request_number_prefix": settings.request_numbers.prefix,
            "excluded_logistics_company_count": len(
                settings.history.excluded_logistics_companies
            ),
        },
    )
    return settings


def get_active_settings(config_file: Path | str | None = None) -> SettlementSettings:
    """The ONLY public settings entrypoint.

    Guarantees:
        - Identical arguments (and environment at first call) return the
          same cached ``SettlementSettings`` instance.

    Args:
        config_file: Deployment YAML merged over the packaged defaults.
            Defaults to ``$SETTLEMENT_CONFIG_FILE`` when set.
    """
    path = config_file if config_file is not None else os.environ.get(CONFIG_FILE_ENV)
    return _load_cached(str(path) if path else None)


def clear_settings_cache() -> None:
    """Forget cached settings. FOR TESTING ONLY."""
    _load_cached.cache_clear()


__all__ = [
    "DatabaseSettings",
    "HistorySettings",
    "LoggingSettings",
    "RequestNumberSettings",
    "SettlementSettings",
    "clear_settings_cache",
    "get_active_settings",
    "load_settings",
]

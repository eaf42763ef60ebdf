"""
Settlement settings schema.

Frozen dataclasses the YAML loader parses into.  Every field has a default
matching ``defaults.yaml`` so a partial overlay file is always valid.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str = "sqlite:///settlement.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


# ---------------------------------------------------------------------------
# Request numbers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RequestNumberSettings:
    """Human-readable request number format: ``<prefix>-<year>-<seq>``."""

    prefix: str = "PR"
    sequence_width: int = 3

    def sequence_name(self, year: int) -> str:
        """Counter name; the sequence restarts every calendar year."""
        return f"payment_request:{year}"

    def format(self, year: int, sequence: int) -> str:
        return f"{self.prefix}-{year}-{sequence:0{self.sequence_width}d}"


# ---------------------------------------------------------------------------
# Payment history
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class HistorySettings:
    """Payment-history view settings."""

    # Packing lists shipped by these companies never appear in the history
    excluded_logistics_companies: tuple[str, ...] = ()
    decimal_places: int = 2  # presentation rounding of derived unit prices


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SettlementSettings:
    """All runtime settings.  Obtained via ``get_active_settings()``."""

    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    request_numbers: RequestNumberSettings = field(default_factory=RequestNumberSettings)
    history: HistorySettings = field(default_factory=HistorySettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    checksum: str = ""

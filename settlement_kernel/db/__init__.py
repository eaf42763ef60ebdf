"""Database layer - engine, base classes, and column types."""

from settlement_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from settlement_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    session_scope,
)
from settlement_kernel.db.types import Money, Rate, round_money, to_decimal

__all__ = [
    "get_engine",
    "get_session",
    "init_engine_from_url",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
    "Money",
    "Rate",
    "round_money",
    "to_decimal",
]

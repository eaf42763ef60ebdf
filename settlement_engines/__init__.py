"""
Module: settlement_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    higher layers (settlement_services, settlement_batch).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import settlement_kernel and the DTO modules of settlement_modules.
    MUST NOT import settlement_services or any ORM / session code.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Dates are passed in by callers.
    - Decimal-only arithmetic: floats are forbidden.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from settlement_engines import SettlementCalculator, ReconciliationAggregator
    from settlement_engines.ledger import LedgerGrouper
"""

from settlement_engines.calculator import (
    COMMISSION_CUTOVER_DATE,
    FormulaVersion,
    SettlementBreakdown,
    SettlementCalculator,
    SettlementInputs,
    formula_version_for,
)
from settlement_engines.ledger import DateGroup, LedgerGrouper
from settlement_engines.reconciliation import (
    AdminCostBreakdown,
    DashboardTotals,
    PaymentBreakdown,
    ReconciliationAggregator,
    ReconciliationSnapshot,
)
from settlement_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "COMMISSION_CUTOVER_DATE",
    "AdminCostBreakdown",
    "DashboardTotals",
    "DateGroup",
    "FormulaVersion",
    "LedgerGrouper",
    "PaymentBreakdown",
    "ReconciliationAggregator",
    "ReconciliationSnapshot",
    "SettlementBreakdown",
    "SettlementCalculator",
    "SettlementInputs",
    "compute_input_fingerprint",
    "formula_version_for",
    "traced_engine",
]

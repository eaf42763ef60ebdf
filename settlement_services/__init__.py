"""
settlement_services -- Stateful orchestration over engines and modules.

``SettlementOrchestrator`` is the composition root; ``ReconciliationService``
reads the consistent snapshot behind dashboard totals.
"""

from settlement_services.orchestrator import SettlementOrchestrator, bootstrap, coerce_enum
from settlement_services.reconciliation_service import ReconciliationService

__all__ = [
    "ReconciliationService",
    "SettlementOrchestrator",
    "bootstrap",
    "coerce_enum",
]

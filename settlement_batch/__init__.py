"""
settlement_batch -- Day-level bulk settlement.

Settles or reverts every payment request raised on one calendar day in a
single transaction, driven by the ledger grouping.

Architecture:
    settlement_batch/ is a top-level package.  Nothing in kernel/,
    engines/ or modules/ imports from settlement_batch; the services
    orchestrator wires it.
"""

from settlement_batch.processor import BatchProcessor

__all__ = ["BatchProcessor"]

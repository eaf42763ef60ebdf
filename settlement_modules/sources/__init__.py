"""
Source Records Module (``settlement_modules.sources``).

Purchase orders and packing-list shipments are owned outside settlement.
This module reads the fields settlement needs and writes back payment
dates and admin-cost flags through ``SourceRecordGateway``.
"""

from settlement_modules.sources.models import (
    CostItem,
    CostItemType,
    PackingListRecord,
    PurchaseOrderRecord,
)

__all__ = [
    "CostItem",
    "CostItemType",
    "PackingListRecord",
    "PurchaseOrderRecord",
]

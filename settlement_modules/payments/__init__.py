"""
Payments Module (``settlement_modules.payments``).

Responsibility
--------------
The payment request lifecycle: request, complete (with write-through of the
source payment date), revert, delete, day-level batches, and the read-only
payment-history view.

Invariants enforced
-------------------
* Transaction boundary owned by ``PaymentRequestService``.
* One Requested request per (source type, source id, payment type).
* Request row and source field change together or not at all.
"""

from settlement_modules.payments.models import (
    BatchResult,
    DateRange,
    HistoryStatus,
    HistoryType,
    PaymentHistoryFilter,
    PaymentKey,
    PaymentRequest,
    PaymentRequestStatus,
    PaymentType,
    RequestFilter,
    SourceType,
)
from settlement_modules.payments.workflows import PAYMENT_REQUEST_WORKFLOW

__all__ = [
    "BatchResult",
    "DateRange",
    "HistoryStatus",
    "HistoryType",
    "PAYMENT_REQUEST_WORKFLOW",
    "PaymentHistoryFilter",
    "PaymentKey",
    "PaymentRequest",
    "PaymentRequestStatus",
    "PaymentType",
    "RequestFilter",
    "SourceType",
]

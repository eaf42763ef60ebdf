"""
settlement_engines.ledger -- Group payment requests into daily ledger batches.

Responsibility:
    Group every payment request by its calendar ``request_date`` into a
    ``DateGroup`` carrying per-payment-type totals and an ``all_completed``
    flag.  Groups drive the printable ledger and day-level batch settlement.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by ``settlement_batch.processor.BatchProcessor``.

Invariants enforced:
    - Recomputed wholesale from the requests passed in; never patched.
    - ``all_completed`` is true iff every item in the group is Completed.
    - Groups are ordered newest date first; items within a group by
      request number.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from settlement_engines.reconciliation import PaymentBreakdown
from settlement_engines.tracer import traced_engine
from settlement_kernel.logging_config import get_logger
from settlement_modules.payments.models import PaymentRequest

logger = get_logger("engines.ledger")


@dataclass(frozen=True)
class DateGroup:
    """All payment requests sharing one request date."""

    date: date
    items: tuple[PaymentRequest, ...]
    totals: PaymentBreakdown
    all_completed: bool

    @property
    def total(self) -> Decimal:
        return self.totals.total

    @property
    def requested_ids(self) -> tuple[UUID, ...]:
        return tuple(item.id for item in self.items if item.is_requested)

    @property
    def completed_ids(self) -> tuple[UUID, ...]:
        return tuple(item.id for item in self.items if item.is_completed)


class LedgerGrouper:
    """Stateless grouper of payment requests by request date."""

    @traced_engine("ledger", "1.0")
    def group_by_date(self, requests: Iterable[PaymentRequest]) -> tuple[DateGroup, ...]:
        by_day: dict[date, list[PaymentRequest]] = defaultdict(list)
        for request in requests:
            by_day[request.request_date].append(request)

        groups = []
        for day in sorted(by_day, reverse=True):
            items = sorted(by_day[day], key=lambda r: r.request_number)
            totals = PaymentBreakdown()
            for item in items:
                totals = totals.add(item.payment_type, item.amount)
            groups.append(DateGroup(
                date=day,
                items=tuple(items),
                totals=totals,
                all_completed=all(item.is_completed for item in items),
            ))

        logger.debug("ledger_grouped", extra={"group_count": len(groups)})
        return tuple(groups)

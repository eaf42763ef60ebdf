"""
BatchProcessor -- Settle or revert a whole ledger day at once.

Contract:
    ``ledger()`` returns the current date groups.  ``complete_day`` and
    ``revert_day`` re-read and regroup every time, then hand the ids of the
    chosen day to ``PaymentRequestService.batch_complete`` /
    ``batch_revert``.  The returned ``BatchResult`` counts rows actually
    changed.

Architecture: settlement_batch (top-level).  Composes the pure
    ``LedgerGrouper`` with the modules-layer ``PaymentRequestService``.

Invariants enforced:
    - Groups are never cached: acting on a stale group could settle a
      request deleted or reverted since it was displayed.
    - Payment dates stamped by ``complete_day`` come from the injected Clock.
    - A day with no group settles nothing and returns ``BatchResult(0)``.
"""

from __future__ import annotations

from datetime import date
from uuid import UUID

from settlement_engines.ledger import DateGroup, LedgerGrouper
from settlement_kernel.domain.clock import Clock, SystemClock
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_modules.payments.models import BatchResult, calendar_date
from settlement_modules.payments.service import PaymentRequestService

logger = get_logger("batch.processor")


class BatchProcessor:
    """Day-level bulk completion and reversion over the ledger."""

    def __init__(
        self,
        payments: PaymentRequestService,
        clock: Clock | None = None,
        grouper: LedgerGrouper | None = None,
    ):
        self._payments = payments
        self._clock = clock or SystemClock()
        self._grouper = grouper or LedgerGrouper()

    def ledger(self) -> tuple[DateGroup, ...]:
        return self._grouper.group_by_date(self._payments.list_all())

    def group_for(self, day: date | str) -> DateGroup | None:
        target = calendar_date(day, "day")
        for group in self.ledger():
            if group.date == target:
                return group
        return None

    def complete_day(self, day: date | str, actor_id: UUID) -> BatchResult:
        """Complete every Requested request of ``day``, paid as of today."""
        group = self.group_for(day)
        with LogContext.bind(actor_id=actor_id):
            if group is None:
                logger.info("batch_day_empty", extra={"day": day, "action": "complete"})
                return BatchResult(affected_rows=0)
            result = self._payments.batch_complete(
                group.requested_ids, self._clock.today(), actor_id,
            )
            logger.info("batch_day_completed", extra={
                "day": group.date,
                "affected_rows": result.affected_rows,
                "group_total": str(group.total),
            })
            return result

    def revert_day(self, day: date | str, actor_id: UUID) -> BatchResult:
        """Revert every Completed request of ``day``."""
        group = self.group_for(day)
        with LogContext.bind(actor_id=actor_id):
            if group is None:
                logger.info("batch_day_empty", extra={"day": day, "action": "revert"})
                return BatchResult(affected_rows=0)
            result = self._payments.batch_revert(group.completed_ids, actor_id)
            logger.info("batch_day_reverted", extra={
                "day": group.date,
                "affected_rows": result.affected_rows,
            })
            return result

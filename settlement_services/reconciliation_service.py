"""
settlement_services.reconciliation_service -- Consistent snapshot for dashboard totals.

Responsibility:
    Read payment requests, purchase orders and packing lists in one
    transaction and hand the snapshot to ``ReconciliationAggregator``.

Architecture position:
    Services -- stateful orchestration over engines + modules.

Invariants enforced:
    - One snapshot per call: on PostgreSQL the reads run under REPEATABLE
      READ so a concurrent completion is seen either entirely (request and
      source date) or not at all.  Request and source writes commit
      together, so READ COMMITTED on SQLite sees the same guarantee for a
      single-writer database.
    - Packing lists from excluded logistics companies are left out, the
      same rows the payment history hides, together with every request
      that targets them, so no excluded amount moves in or out of a total.

Failure modes:
    - SQLAlchemy errors propagate after the read transaction is rolled back.
"""

from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from settlement_config.schema import HistorySettings
from settlement_engines.reconciliation import (
    DashboardTotals,
    ReconciliationAggregator,
    ReconciliationSnapshot,
)
from settlement_kernel.domain.clock import Clock, SystemClock
from settlement_kernel.logging_config import get_logger
from settlement_modules.payments.models import SourceType
from settlement_modules.payments.orm import PaymentRequestModel
from settlement_modules.sources.gateway import SourceRecordGateway, SqlSourceRecordGateway

logger = get_logger("services.reconciliation")


class ReconciliationService:
    """
    Reads one snapshot and aggregates it.

    Contract:
        ``snapshot()`` returns a ``ReconciliationSnapshot``; ``dashboard()``
        aggregates a fresh snapshot as of ``today`` (clock date by default).

    Non-goals:
        - Does NOT cache totals; every call recomputes from storage.
    """

    def __init__(
        self,
        session: Session,
        gateway: SourceRecordGateway | None = None,
        clock: Clock | None = None,
        history_settings: HistorySettings | None = None,
        aggregator: ReconciliationAggregator | None = None,
    ):
        self._session = session
        self._gateway = gateway or SqlSourceRecordGateway(session)
        self._clock = clock or SystemClock()
        self._settings = history_settings or HistorySettings()
        self._aggregator = aggregator or ReconciliationAggregator()

    def snapshot(self) -> ReconciliationSnapshot:
        try:
            self._begin_snapshot()
            requests = tuple(
                row.to_dto()
                for row in self._session.execute(
                    select(PaymentRequestModel).order_by(PaymentRequestModel.request_number)
                ).scalars().all()
            )
            excluded = set(self._settings.excluded_logistics_companies)
            packing_lists = []
            hidden_ids = set()
            for pl in self._gateway.list_packing_lists():
                if pl.logistics_company in excluded:
                    hidden_ids.add(pl.id)
                else:
                    packing_lists.append(pl)
            snapshot = ReconciliationSnapshot(
                purchase_orders=self._gateway.list_purchase_orders(),
                packing_lists=tuple(packing_lists),
                requests=tuple(
                    r for r in requests
                    if not (r.source_type is SourceType.PACKING_LIST and r.source_id in hidden_ids)
                ),
            )
            self._session.commit()
            return snapshot
        except Exception:
            self._session.rollback()
            raise

    def dashboard(self, today: date | None = None) -> DashboardTotals:
        as_of = today or self._clock.today()
        totals = self._aggregator.aggregate(self.snapshot(), as_of)
        logger.info("dashboard_totals_computed", extra={
            "as_of": as_of,
            "paid_total": str(totals.paid.total),
            "pending_total": str(totals.pending.total),
            "requested_to_date_total": str(totals.requested_to_date.total),
            "admin_cost_total": str(totals.admin_cost_total.total),
        })
        return totals

    def _begin_snapshot(self) -> None:
        """Pin REPEATABLE READ on PostgreSQL when no transaction is open yet."""
        if self._session.get_bind().dialect.name != "postgresql":
            return
        if self._session.in_transaction():
            # Caller already started work on this session; keep its isolation.
            return
        self._session.connection(execution_options={"isolation_level": "REPEATABLE READ"})

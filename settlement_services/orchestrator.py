"""
settlement_services.orchestrator -- Composition root for payment settlement.

Responsibility:
    Creates every settlement service exactly once on one session and one
    clock, and exposes the external operations: create / complete / revert
    / delete requests, batch completion and reversion, listings, payment
    history, dashboard totals and the day-grouped ledger.

Architecture position:
    Services -- top of the stack.  The only place where modules, engines,
    batch and configuration are composed.

Invariants enforced:
    - DI transparency: all wiring is visible in ``__init__``.
    - Single-instance lifecycle: one PaymentRequestService, one gateway and
      one clock shared by every operation.
    - Boundary coercion: plain strings for enums and ISO dates are accepted
      here and turned into typed values before any service runs.

Failure modes:
    - ``ValidationError`` for unknown enum values; otherwise whatever the
      underlying service raises.

Usage:
    with session_scope() as session:
        settlement = SettlementOrchestrator(session)
        request = settlement.create_request(
            "purchase_order", po_id, "advance", "4500000", actor_id,
        )
        settlement.complete_request(request.id, "2025-03-05", actor_id)
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from settlement_batch.processor import BatchProcessor
from settlement_config import get_active_settings
from settlement_config.schema import SettlementSettings
from settlement_engines.ledger import DateGroup, LedgerGrouper
from settlement_engines.reconciliation import DashboardTotals
from settlement_kernel.domain.clock import Clock, SystemClock
from settlement_kernel.exceptions import ValidationError
from settlement_kernel.db.engine import init_engine_from_url
from settlement_kernel.logging_config import configure_logging, get_logger
from settlement_modules.payments.history import PaymentHistorySelector
from settlement_modules.payments.models import (
    BatchResult,
    PaymentHistoryFilter,
    PaymentRequest,
    PaymentType,
    RequestFilter,
    SourceFinancialRecordView,
    SourceType,
)
from settlement_modules.payments.service import PaymentRequestService
from settlement_modules.sources.gateway import SourceRecordGateway, SqlSourceRecordGateway
from settlement_services.reconciliation_service import ReconciliationService

logger = get_logger("services.orchestrator")

E = TypeVar("E", bound=Enum)


def coerce_enum(enum_cls: type[E], value: E | str, field_name: str) -> E:
    """Accept an enum member or its string value."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown {field_name}: {value!r}") from exc


class SettlementOrchestrator:
    """
    Central factory and facade for settlement operations.

    Contract:
        Receives a Session and optional Clock, settings and gateway.
        Each operation delegates to exactly one service, which owns its
        transaction.

    Non-goals:
        - Does NOT own the Session lifecycle (no close).
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: SettlementSettings | None = None,
        gateway: SourceRecordGateway | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._settings = settings or get_active_settings()
        self._gateway = gateway or SqlSourceRecordGateway(session)

        self.payments = PaymentRequestService(
            session,
            gateway=self._gateway,
            clock=self._clock,
            request_numbers=self._settings.request_numbers,
        )
        self.history = PaymentHistorySelector(
            session,
            gateway=self._gateway,
            settings=self._settings.history,
        )
        self.reconciliation = ReconciliationService(
            session,
            gateway=self._gateway,
            clock=self._clock,
            history_settings=self._settings.history,
        )
        self.batch = BatchProcessor(
            self.payments,
            clock=self._clock,
            grouper=LedgerGrouper(),
        )

        logger.debug("settlement_orchestrator_initialized", extra={
            "gateway": type(self._gateway).__name__,
            "clock": type(self._clock).__name__,
        })

    # -- Payment requests ------------------------------------------------------

    def create_request(
        self,
        source_type: SourceType | str,
        source_id: UUID,
        payment_type: PaymentType | str,
        amount: Decimal | int | str,
        actor_id: UUID,
        memo: str | None = None,
    ) -> PaymentRequest:
        return self.payments.create(
            coerce_enum(SourceType, source_type, "source_type"),
            source_id,
            coerce_enum(PaymentType, payment_type, "payment_type"),
            amount,
            actor_id,
            memo=memo,
        )

    def complete_request(
        self,
        request_id: UUID,
        payment_date: date | str,
        actor_id: UUID,
    ) -> PaymentRequest:
        return self.payments.complete(request_id, payment_date, actor_id)

    def revert_request(self, request_id: UUID, actor_id: UUID) -> PaymentRequest:
        return self.payments.revert(request_id, actor_id)

    def batch_complete_requests(
        self,
        request_ids: Iterable[UUID],
        payment_date: date | str,
        actor_id: UUID,
    ) -> BatchResult:
        return self.payments.batch_complete(request_ids, payment_date, actor_id)

    def batch_revert_requests(
        self,
        request_ids: Iterable[UUID],
        actor_id: UUID,
    ) -> BatchResult:
        return self.payments.batch_revert(request_ids, actor_id)

    def delete_request(self, request_id: UUID, actor_id: UUID) -> None:
        self.payments.delete(request_id, actor_id)

    def update_memo(
        self,
        request_id: UUID,
        memo: str | None,
        actor_id: UUID,
    ) -> PaymentRequest:
        return self.payments.update_memo(request_id, memo, actor_id)

    def get_request(self, request_id: UUID) -> PaymentRequest:
        return self.payments.get(request_id)

    def list_requests(self, request_filter: RequestFilter | None = None) -> list[PaymentRequest]:
        return self.payments.list_all(request_filter)

    def list_requests_by_source(
        self,
        source_type: SourceType | str,
        source_id: UUID,
        payment_type: PaymentType | str | None = None,
    ) -> list[PaymentRequest]:
        return self.payments.list_by_source(
            coerce_enum(SourceType, source_type, "source_type"),
            source_id,
            coerce_enum(PaymentType, payment_type, "payment_type") if payment_type is not None else None,
        )

    def set_admin_cost_paid(
        self,
        source_type: SourceType | str,
        source_id: UUID,
        paid: bool,
        actor_id: UUID,
    ) -> None:
        self.payments.set_admin_cost_paid(
            coerce_enum(SourceType, source_type, "source_type"), source_id, paid, actor_id,
        )

    # -- Read models -----------------------------------------------------------

    def get_payment_history(
        self,
        history_filter: PaymentHistoryFilter | None = None,
    ) -> list[SourceFinancialRecordView]:
        return self.history.get_payment_history(history_filter)

    def dashboard(self, today: date | None = None) -> DashboardTotals:
        return self.reconciliation.dashboard(today)

    # -- Ledger / day batches --------------------------------------------------

    def ledger(self) -> tuple[DateGroup, ...]:
        return self.batch.ledger()

    def complete_day(self, day: date | str, actor_id: UUID) -> BatchResult:
        return self.batch.complete_day(day, actor_id)

    def revert_day(self, day: date | str, actor_id: UUID) -> BatchResult:
        return self.batch.revert_day(day, actor_id)


def bootstrap(settings: SettlementSettings | None = None):
    """
    Configure logging and the database engine from settings.

    Returns the initialized SQLAlchemy Engine; sessions come from
    ``settlement_kernel.db.engine.session_scope()`` afterwards.
    """
    active = settings or get_active_settings()
    configure_logging(level=active.logging.level.upper())
    db = active.database
    engine = init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )
    logger.info("settlement_bootstrapped", extra={
        "dialect": engine.dialect.name,
        "settings_checksum": active.checksum,
    })
    return engine

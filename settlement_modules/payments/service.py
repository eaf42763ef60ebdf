"""
Payment Request Service (``settlement_modules.payments.service``).

Responsibility
--------------
Owns the ``PaymentRequest`` lifecycle: creation, completion, reversion,
deletion, day-level batch completion / reversion, memo edits and queries.
Completion and reversion write the matching payment-date field through to
the source record via ``SourceRecordGateway``.

Architecture position
---------------------
**Modules layer** -- ``PaymentRequestService`` is the sole public entry
point for request mutations.  It composes the kernel ``SequenceService``
(request numbers) and a ``SourceRecordGateway`` (write-through).

Invariants enforced
-------------------
* Each public mutating method owns the transaction boundary
  (``commit`` on success, ``rollback`` on failure or exception).
* At most one ``requested`` request per (source type, source id, payment
  type); checked before insert and backed by a partial unique index.
* ``payment_date`` is set iff the status is ``completed``.
* The request row and the source payment-date field change in the same
  transaction.  A write-through failure rolls the request back; if the
  gateway keeps its own storage, a successful source write is reverted
  to its previous value when the request commit fails.
* Completion and reversion lock the request row (``SELECT ... FOR
  UPDATE``) and update it as a compare-and-swap on ``version``; a lost
  race surfaces as ``OptimisticLockError``.

Failure modes
-------------
* ``ValidationError`` subclasses and ``NotFoundError`` subclasses are
  raised before any write.
* ``StateConflictError`` subclasses, ``SourceWriteError`` and
  ``OptimisticLockError`` leave storage exactly as it was before the call.
* Batch calls skip ids that are unknown or not in the starting state the
  action needs; skipped ids are not counted in ``affected_rows``.

Usage::

    service = PaymentRequestService(session, clock=clock)
    request = service.create(
        SourceType.PURCHASE_ORDER, po_id, PaymentType.ADVANCE,
        Decimal("360.00"), actor_id=actor_id,
    )
    service.complete(request.id, date(2025, 3, 4), actor_id=actor_id)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from uuid import UUID, uuid4

from sqlalchemy import String, cast, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from settlement_config.schema import RequestNumberSettings
from settlement_kernel.db.types import ZERO, to_decimal
from settlement_kernel.domain.clock import Clock, SystemClock
from settlement_kernel.exceptions import (
    DuplicateActiveRequestError,
    InvalidAmountError,
    InvalidStateTransitionError,
    OptimisticLockError,
    PaymentRequestNotFoundError,
    SettlementError,
    SourceAlreadyPaidError,
    SourceAmountMissingError,
    SourceWriteError,
)
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.services.sequence_service import SequenceService
from settlement_modules.payments.models import (
    BatchResult,
    PaymentKey,
    PaymentRequest,
    PaymentRequestStatus,
    PaymentType,
    RequestFilter,
    SourceType,
    calendar_date,
)
from settlement_modules.payments.orm import PaymentRequestModel
from settlement_modules.payments.workflows import (
    PAYMENT_REQUEST_WORKFLOW,
    Transition,
    find_transition,
)
from settlement_modules.sources.gateway import (
    SourceRecordGateway,
    SqlSourceRecordGateway,
    payment_amount_field,
    payment_date_field,
)

logger = get_logger("modules.payments.service")

_REQUESTED = PaymentRequestStatus.REQUESTED.value

_EVENTS = {
    "complete": "payment_request_completed",
    "revert": "payment_request_reverted",
}


def _require_amount(value) -> Decimal:
    try:
        amount = to_decimal(value)
    except (TypeError, InvalidOperation) as exc:
        raise InvalidAmountError(str(value)) from exc
    if not amount.is_finite() or amount <= ZERO:
        raise InvalidAmountError(str(value))
    return amount


@dataclass(frozen=True)
class _SourceWrite:
    """A write-through already applied, with the value to restore."""
    key: PaymentKey
    previous: date | None


class PaymentRequestService:
    """
    Payment request lifecycle with write-through to source records.

    Contract
    --------
    * Mutations return the updated ``PaymentRequest`` DTO (or a
      ``BatchResult`` for batches); ``delete`` returns nothing.
    * ``actor_id`` is recorded as ``requested_by`` / ``completed_by`` and
      in the audit columns.

    Guarantees
    ----------
    * Session is committed only when every step succeeded; otherwise
      rolled back before the exception propagates.
    * Clock is injectable for deterministic testing.

    Non-goals
    ---------
    * Does NOT create or delete source records.
    * Does NOT clear source fields on ``delete``; completed requests must
      be reverted before they can be deleted.
    """

    def __init__(
        self,
        session: Session,
        gateway: SourceRecordGateway | None = None,
        clock: Clock | None = None,
        request_numbers: RequestNumberSettings | None = None,
    ):
        self._session = session
        self._gateway = gateway or SqlSourceRecordGateway(session)
        self._clock = clock or SystemClock()
        self._numbers = request_numbers or RequestNumberSettings()
        self._sequences = SequenceService(session)

    # =========================================================================
    # Creation
    # =========================================================================

    def create(
        self,
        source_type: SourceType,
        source_id: UUID,
        payment_type: PaymentType,
        amount: Decimal | int | str,
        actor_id: UUID,
        memo: str | None = None,
    ) -> PaymentRequest:
        """
        Create a Requested payment request for one unpaid source amount.

        Raises:
            InvalidPaymentTypeError: payment type does not fit the source type.
            InvalidAmountError: amount is not a positive number.
            DuplicateActiveRequestError: a Requested request exists for the key.
            SourceRecordNotFoundError: unknown source id.
            SourceAlreadyPaidError: the source amount already has a payment date.
            SourceAmountMissingError: the source has no positive amount to pay.
        """
        key = PaymentKey(source_type, source_id, payment_type)
        value = _require_amount(amount)

        with LogContext.bind(actor_id=actor_id, source_id=source_id):
            try:
                logger.info("payment_request_create_started", extra={
                    "source_type": source_type.value,
                    "payment_type": payment_type.value,
                    "amount": str(value),
                })

                existing = self._find_active(key)
                if existing is not None:
                    raise DuplicateActiveRequestError(
                        source_type.value,
                        str(source_id),
                        payment_type.value,
                        existing.request_number,
                    )

                record = self._gateway.get_source(source_type, source_id)
                paid_on = getattr(record, payment_date_field(payment_type))
                if paid_on is not None:
                    raise SourceAlreadyPaidError(
                        source_type.value,
                        str(source_id),
                        payment_type.value,
                        paid_on.isoformat(),
                    )
                target = getattr(record, payment_amount_field(payment_type))
                if target is None or target <= ZERO:
                    raise SourceAmountMissingError(
                        source_type.value,
                        str(source_id),
                        payment_type.value,
                        str(target),
                    )

                today = self._clock.today()
                sequence = self._sequences.next_value(
                    self._numbers.sequence_name(today.year)
                )
                model = PaymentRequestModel(
                    id=uuid4(),
                    request_number=self._numbers.format(today.year, sequence),
                    source_type=source_type.value,
                    source_id=source_id,
                    payment_type=payment_type.value,
                    amount=value,
                    status=_REQUESTED,
                    request_date=today,
                    requested_by=actor_id,
                    memo=memo,
                    created_by_id=actor_id,
                )
                self._session.add(model)
                try:
                    self._session.flush()
                except IntegrityError:
                    # Lost the race against a concurrent create for the same key
                    self._session.rollback()
                    winner = self._find_active(key)
                    raise DuplicateActiveRequestError(
                        source_type.value,
                        str(source_id),
                        payment_type.value,
                        winner.request_number if winner is not None else "",
                    )

                self._session.commit()
                logger.info("payment_request_created", extra={
                    "request_id": str(model.id),
                    "request_number": model.request_number,
                    "source_type": source_type.value,
                    "payment_type": payment_type.value,
                    "amount": str(value),
                })
                return model.to_dto()

            except Exception:
                self._session.rollback()
                raise

    # =========================================================================
    # Completion / reversion
    # =========================================================================

    def complete(
        self,
        request_id: UUID,
        payment_date: date,
        actor_id: UUID,
    ) -> PaymentRequest:
        """
        Mark a Requested request Completed and stamp the source payment date.

        Raises:
            MalformedDateError: payment_date is not a calendar date.
            PaymentRequestNotFoundError: unknown id.
            InvalidStateTransitionError: request is not Requested.
            SourceWriteError: write-through failed; nothing changed.
            OptimisticLockError: a concurrent writer changed the request.
        """
        paid_on = calendar_date(payment_date, "payment_date")
        return self._transition_single(request_id, "complete", paid_on, actor_id)

    def revert(self, request_id: UUID, actor_id: UUID) -> PaymentRequest:
        """
        Return a Completed request to Requested and clear the source payment date.

        Raises:
            PaymentRequestNotFoundError: unknown id.
            InvalidStateTransitionError: request is not Completed.
            SourceWriteError: write-through failed; nothing changed.
            OptimisticLockError: a concurrent writer changed the request.
        """
        return self._transition_single(request_id, "revert", None, actor_id)

    def batch_complete(
        self,
        request_ids: Iterable[UUID],
        payment_date: date,
        actor_id: UUID,
    ) -> BatchResult:
        """
        Complete every Requested request among ``request_ids`` in one transaction.

        Ids that are unknown or already Completed are skipped and not
        counted, so repeating a batch is harmless.  Any write-through
        failure rolls back the whole batch.
        """
        paid_on = calendar_date(payment_date, "payment_date")
        return self._transition_batch(request_ids, "complete", paid_on, actor_id)

    def batch_revert(
        self,
        request_ids: Iterable[UUID],
        actor_id: UUID,
    ) -> BatchResult:
        """Revert every Completed request among ``request_ids``; see ``batch_complete``."""
        return self._transition_batch(request_ids, "revert", None, actor_id)

    def _transition_single(
        self,
        request_id: UUID,
        action: str,
        payment_date: date | None,
        actor_id: UUID,
    ) -> PaymentRequest:
        with LogContext.bind(actor_id=actor_id, request_id=request_id):
            writes: list[_SourceWrite] = []
            try:
                model = self._lock(request_id)
                if model is None:
                    raise PaymentRequestNotFoundError(str(request_id))
                transition = find_transition(PAYMENT_REQUEST_WORKFLOW, model.status, action)
                if transition is None:
                    raise InvalidStateTransitionError(str(request_id), model.status, action)

                writes.append(self._apply(model, transition, payment_date, actor_id))
                self._commit(request_id)

                logger.info(_EVENTS[action], extra={
                    "request_id": str(request_id),
                    "request_number": model.request_number,
                    "action": action,
                    "payment_date": payment_date,
                    "amount": str(model.amount),
                })
                return model.to_dto()

            except Exception:
                self._session.rollback()
                self._compensate(writes)
                raise

    def _transition_batch(
        self,
        request_ids: Iterable[UUID],
        action: str,
        payment_date: date | None,
        actor_id: UUID,
    ) -> BatchResult:
        ids = list(dict.fromkeys(request_ids))
        with LogContext.bind(actor_id=actor_id):
            writes: list[_SourceWrite] = []
            skipped = 0
            try:
                logger.info("payment_request_batch_started", extra={
                    "action": action,
                    "request_count": len(ids),
                    "payment_date": payment_date,
                })
                for request_id in ids:
                    model = self._lock(request_id)
                    transition = (
                        find_transition(PAYMENT_REQUEST_WORKFLOW, model.status, action)
                        if model is not None else None
                    )
                    if transition is None:
                        skipped += 1
                        logger.debug("payment_request_batch_skipped", extra={
                            "request_id": str(request_id),
                            "action": action,
                            "status": model.status if model is not None else None,
                        })
                        continue
                    writes.append(self._apply(model, transition, payment_date, actor_id))

                self._commit(None)
                logger.info("payment_request_batch_committed", extra={
                    "action": action,
                    "affected_rows": len(writes),
                    "skipped": skipped,
                })
                return BatchResult(affected_rows=len(writes))

            except Exception:
                self._session.rollback()
                self._compensate(writes)
                logger.warning("payment_request_batch_rolled_back", extra={
                    "action": action,
                    "request_count": len(ids),
                })
                raise

    def _apply(
        self,
        model: PaymentRequestModel,
        transition: Transition,
        payment_date: date | None,
        actor_id: UUID,
    ) -> _SourceWrite:
        """Change the request row, then write the source field through."""
        model.status = transition.to_state
        model.payment_date = payment_date
        model.completed_by = actor_id if payment_date is not None else None
        model.updated_by_id = actor_id
        try:
            self._session.flush()
        except StaleDataError as exc:
            raise OptimisticLockError("PaymentRequest", str(model.id)) from exc

        key = PaymentKey(
            SourceType(model.source_type), model.source_id, PaymentType(model.payment_type),
        )
        return self._write_through(key, payment_date)

    def _write_through(self, key: PaymentKey, value: date | None) -> _SourceWrite:
        field_name = payment_date_field(key.payment_type)
        previous = None if self._gateway.shares_transaction else self._gateway.payment_date(key)
        try:
            self._gateway.set_payment_date(key, value)
        except SourceWriteError:
            logger.error("payment_request_write_through_failed", extra={
                "source_type": key.source_type.value,
                "source_id": str(key.source_id),
                "field": field_name,
            })
            raise
        except (SettlementError, SQLAlchemyError) as exc:
            logger.error("payment_request_write_through_failed", extra={
                "source_type": key.source_type.value,
                "source_id": str(key.source_id),
                "field": field_name,
            })
            raise SourceWriteError(
                key.source_type.value, str(key.source_id), field_name, str(exc),
            ) from exc
        return _SourceWrite(key=key, previous=previous)

    def _commit(self, request_id: UUID | None) -> None:
        """Commit; the caller rolls back and compensates on failure."""
        try:
            self._session.commit()
        except StaleDataError as exc:
            raise OptimisticLockError("PaymentRequest", str(request_id)) from exc

    def _compensate(self, writes: Sequence[_SourceWrite]) -> None:
        """Restore source fields written outside this session's transaction."""
        if self._gateway.shares_transaction:
            return
        for write in reversed(writes):
            self._gateway.set_payment_date(write.key, write.previous)
            logger.warning("payment_request_write_through_compensated", extra={
                "source_type": write.key.source_type.value,
                "source_id": str(write.key.source_id),
                "restored": write.previous,
            })

    # =========================================================================
    # Deletion / edits
    # =========================================================================

    def delete(self, request_id: UUID, actor_id: UUID) -> None:
        """
        Delete a Requested request.

        Raises:
            PaymentRequestNotFoundError: unknown id.
            InvalidStateTransitionError: request is Completed (revert first).
        """
        with LogContext.bind(actor_id=actor_id, request_id=request_id):
            try:
                model = self._lock(request_id)
                if model is None:
                    raise PaymentRequestNotFoundError(str(request_id))
                if find_transition(PAYMENT_REQUEST_WORKFLOW, model.status, "delete") is None:
                    raise InvalidStateTransitionError(str(request_id), model.status, "delete")

                self._session.delete(model)
                try:
                    self._session.flush()
                except StaleDataError as exc:
                    raise OptimisticLockError("PaymentRequest", str(request_id)) from exc
                self._session.commit()
                logger.info("payment_request_deleted", extra={
                    "request_id": str(request_id),
                    "request_number": model.request_number,
                })
            except Exception:
                self._session.rollback()
                raise

    def update_memo(
        self,
        request_id: UUID,
        memo: str | None,
        actor_id: UUID,
    ) -> PaymentRequest:
        """Replace the memo of a Requested request."""
        with LogContext.bind(actor_id=actor_id, request_id=request_id):
            try:
                model = self._lock(request_id)
                if model is None:
                    raise PaymentRequestNotFoundError(str(request_id))
                if find_transition(PAYMENT_REQUEST_WORKFLOW, model.status, "update_memo") is None:
                    raise InvalidStateTransitionError(str(request_id), model.status, "update_memo")

                model.memo = memo
                model.updated_by_id = actor_id
                try:
                    self._session.flush()
                except StaleDataError as exc:
                    raise OptimisticLockError("PaymentRequest", str(request_id)) from exc
                self._session.commit()
                logger.info("payment_request_memo_updated", extra={
                    "request_id": str(request_id),
                })
                return model.to_dto()
            except Exception:
                self._session.rollback()
                raise

    def set_admin_cost_paid(
        self,
        source_type: SourceType,
        source_id: UUID,
        paid: bool,
        actor_id: UUID,
    ) -> None:
        """Flag a source's admin-billable cost as paid (stamped today) or unpaid."""
        with LogContext.bind(actor_id=actor_id, source_id=source_id):
            try:
                paid_date = self._clock.today() if paid else None
                self._gateway.set_admin_cost_paid(source_type, source_id, paid, paid_date)
                self._session.commit()
                logger.info("admin_cost_paid_updated", extra={
                    "source_type": source_type.value,
                    "paid": paid,
                    "paid_date": paid_date,
                })
            except Exception:
                self._session.rollback()
                raise

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, request_id: UUID) -> PaymentRequest:
        model = self._session.get(PaymentRequestModel, request_id)
        if model is None:
            raise PaymentRequestNotFoundError(str(request_id))
        return model.to_dto()

    def list_by_source(
        self,
        source_type: SourceType,
        source_id: UUID,
        payment_type: PaymentType | None = None,
    ) -> list[PaymentRequest]:
        """Requests for one source record, newest request date first."""
        stmt = select(PaymentRequestModel).where(
            PaymentRequestModel.source_type == source_type.value,
            PaymentRequestModel.source_id == source_id,
        )
        if payment_type is not None:
            stmt = stmt.where(PaymentRequestModel.payment_type == payment_type.value)
        return self._fetch(stmt)

    def list_all(self, request_filter: RequestFilter | None = None) -> list[PaymentRequest]:
        """All requests matching ``request_filter``, newest request date first."""
        f = request_filter or RequestFilter()
        stmt = select(PaymentRequestModel)
        if f.status is not None:
            stmt = stmt.where(PaymentRequestModel.status == f.status.value)
        if f.source_type is not None:
            stmt = stmt.where(PaymentRequestModel.source_type == f.source_type.value)
        if f.payment_type is not None:
            stmt = stmt.where(PaymentRequestModel.payment_type == f.payment_type.value)
        if f.date_range is not None:
            if f.date_range.start is not None:
                stmt = stmt.where(PaymentRequestModel.request_date >= f.date_range.start)
            if f.date_range.end is not None:
                stmt = stmt.where(PaymentRequestModel.request_date <= f.date_range.end)
        if f.search:
            term = f"%{f.search.strip()}%"
            stmt = stmt.where(or_(
                PaymentRequestModel.request_number.ilike(term),
                cast(PaymentRequestModel.source_id, String).ilike(term),
            ))
        return self._fetch(stmt)

    def _fetch(self, stmt) -> list[PaymentRequest]:
        stmt = stmt.order_by(
            PaymentRequestModel.request_date.desc(),
            PaymentRequestModel.created_at.desc(),
            PaymentRequestModel.request_number.desc(),
        )
        return [row.to_dto() for row in self._session.execute(stmt).scalars().all()]

    def _find_active(self, key: PaymentKey) -> PaymentRequestModel | None:
        return self._session.execute(
            select(PaymentRequestModel).where(
                PaymentRequestModel.source_type == key.source_type.value,
                PaymentRequestModel.source_id == key.source_id,
                PaymentRequestModel.payment_type == key.payment_type.value,
                PaymentRequestModel.status == _REQUESTED,
            )
        ).scalar_one_or_none()

    def _lock(self, request_id: UUID) -> PaymentRequestModel | None:
        return self._session.execute(
            select(PaymentRequestModel)
            .where(PaymentRequestModel.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

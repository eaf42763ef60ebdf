"""
Source Record Gateway.

Read/write boundary to the externally owned purchase-order and packing-list
records.  Settlement reads their financial fields and writes back exactly
four things: the advance, balance and shipping payment dates, and the
admin-cost-paid flag.

``SqlSourceRecordGateway`` works on the caller's SQLAlchemy session, so a
source write and the payment-request change that caused it commit or roll
back together.  A gateway backed by separate storage sets
``shares_transaction = False``; the payment service then compensates a
successful source write by restoring the previous value if its own commit
fails.
"""

from abc import ABC, abstractmethod
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from settlement_kernel.exceptions import SourceRecordNotFoundError, SourceWriteError
from settlement_kernel.logging_config import get_logger
from settlement_modules.payments.models import PaymentKey, PaymentType, SourceType
from settlement_modules.sources.models import PackingListRecord, PurchaseOrderRecord
from settlement_modules.sources.orm import PackingListModel, PurchaseOrderModel

logger = get_logger("modules.sources.gateway")


def payment_date_field(payment_type: PaymentType) -> str:
    """Name of the source field that records a payment of this type."""
    match payment_type:
        case PaymentType.ADVANCE:
            return "advance_payment_date"
        case PaymentType.BALANCE:
            return "balance_payment_date"
        case PaymentType.SHIPPING:
            return "wk_payment_date"


def payment_amount_field(payment_type: PaymentType) -> str:
    """Name of the source field holding the amount a payment of this type settles."""
    match payment_type:
        case PaymentType.ADVANCE:
            return "advance_payment_amount"
        case PaymentType.BALANCE:
            return "balance_payment_amount"
        case PaymentType.SHIPPING:
            return "shipping_cost"


class SourceRecordGateway(ABC):
    """
    Collaborator interface to purchase orders and packing lists.

    Contract:
        ``get_*`` raise ``SourceRecordNotFoundError`` for unknown ids.
        ``set_*`` raise ``SourceRecordNotFoundError`` for unknown ids and
        ``SourceWriteError`` when the store rejects the write.
    """

    shares_transaction: bool = False

    @abstractmethod
    def get_purchase_order(self, source_id: UUID) -> PurchaseOrderRecord: ...

    @abstractmethod
    def get_packing_list(self, source_id: UUID) -> PackingListRecord: ...

    @abstractmethod
    def set_advance_payment_date(self, source_id: UUID, value: date | None) -> None: ...

    @abstractmethod
    def set_balance_payment_date(self, source_id: UUID, value: date | None) -> None: ...

    @abstractmethod
    def set_shipping_payment_date(self, source_id: UUID, value: date | None) -> None: ...

    @abstractmethod
    def set_admin_cost_paid(
        self,
        source_type: SourceType,
        source_id: UUID,
        paid: bool,
        paid_date: date | None,
    ) -> None: ...

    @abstractmethod
    def list_purchase_orders(self) -> tuple[PurchaseOrderRecord, ...]: ...

    @abstractmethod
    def list_packing_lists(self) -> tuple[PackingListRecord, ...]: ...

    # Dispatch helpers shared by every implementation

    def get_source(self, source_type: SourceType, source_id: UUID):
        match source_type:
            case SourceType.PURCHASE_ORDER:
                return self.get_purchase_order(source_id)
            case SourceType.PACKING_LIST:
                return self.get_packing_list(source_id)

    def payment_date(self, key: PaymentKey) -> date | None:
        """Current value of the source field that records payment for ``key``."""
        record = self.get_source(key.source_type, key.source_id)
        return getattr(record, payment_date_field(key.payment_type))

    def set_payment_date(self, key: PaymentKey, value: date | None) -> None:
        match key.payment_type:
            case PaymentType.ADVANCE:
                self.set_advance_payment_date(key.source_id, value)
            case PaymentType.BALANCE:
                self.set_balance_payment_date(key.source_id, value)
            case PaymentType.SHIPPING:
                self.set_shipping_payment_date(key.source_id, value)


class SqlSourceRecordGateway(SourceRecordGateway):
    """
    Gateway over the ``purchase_orders`` / ``packing_lists`` tables.

    Non-goals:
        - Does NOT commit.  The payment service owns the transaction.
    """

    shares_transaction = True

    def __init__(self, session: Session):
        self._session = session

    def _load(self, model, source_type: SourceType, source_id: UUID, *, for_update: bool = False):
        stmt = select(model).where(model.id == source_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = self._session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise SourceRecordNotFoundError(source_type.value, str(source_id))
        return row

    def _write(self, model, source_type: SourceType, source_id: UUID, **values) -> None:
        row = self._load(model, source_type, source_id, for_update=True)
        for name, value in values.items():
            setattr(row, name, value)
        try:
            self._session.flush()
        except SQLAlchemyError as exc:
            logger.error("source_write_failed", extra={
                "source_type": source_type.value,
                "source_id": str(source_id),
                "fields": sorted(values),
            })
            raise SourceWriteError(
                source_type.value, str(source_id), ",".join(sorted(values)), str(exc),
            ) from exc
        logger.debug("source_fields_written", extra={
            "source_type": source_type.value,
            "source_id": str(source_id),
            "fields": sorted(values),
        })

    def get_purchase_order(self, source_id: UUID) -> PurchaseOrderRecord:
        return self._load(PurchaseOrderModel, SourceType.PURCHASE_ORDER, source_id).to_dto()

    def get_packing_list(self, source_id: UUID) -> PackingListRecord:
        return self._load(PackingListModel, SourceType.PACKING_LIST, source_id).to_dto()

    def set_advance_payment_date(self, source_id: UUID, value: date | None) -> None:
        self._write(
            PurchaseOrderModel, SourceType.PURCHASE_ORDER, source_id,
            advance_payment_date=value,
        )

    def set_balance_payment_date(self, source_id: UUID, value: date | None) -> None:
        self._write(
            PurchaseOrderModel, SourceType.PURCHASE_ORDER, source_id,
            balance_payment_date=value,
        )

    def set_shipping_payment_date(self, source_id: UUID, value: date | None) -> None:
        self._write(
            PackingListModel, SourceType.PACKING_LIST, source_id,
            wk_payment_date=value,
        )

    def set_admin_cost_paid(
        self,
        source_type: SourceType,
        source_id: UUID,
        paid: bool,
        paid_date: date | None,
    ) -> None:
        match source_type:
            case SourceType.PURCHASE_ORDER:
                model = PurchaseOrderModel
            case SourceType.PACKING_LIST:
                model = PackingListModel
        self._write(
            model, source_type, source_id,
            admin_cost_paid=paid,
            admin_cost_paid_date=paid_date if paid else None,
        )

    def list_purchase_orders(self) -> tuple[PurchaseOrderRecord, ...]:
        rows = self._session.execute(
            select(PurchaseOrderModel).order_by(PurchaseOrderModel.created_at, PurchaseOrderModel.po_number)
        ).scalars().all()
        return tuple(row.to_dto() for row in rows)

    def list_packing_lists(self) -> tuple[PackingListRecord, ...]:
        rows = self._session.execute(
            select(PackingListModel).order_by(PackingListModel.created_at, PackingListModel.code)
        ).scalars().all()
        return tuple(row.to_dto() for row in rows)

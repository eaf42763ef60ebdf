"""
Payment History Selector.

Read-only composite view for the dashboard: every purchase order and
packing list with its payable amounts, whether each is paid, the active
Requested request for each (if any), and the settlement figures derived
by ``SettlementCalculator``.

Paid / pending status comes from the source payment-date fields, never
from request status.
"""

from __future__ import annotations

from datetime import UTC, date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from settlement_config.schema import HistorySettings
from settlement_engines.calculator import SettlementCalculator, SettlementInputs
from settlement_kernel.db.types import ZERO, round_money
from settlement_kernel.logging_config import get_logger
from settlement_modules.payments.models import (
    AmountStatus,
    HistoryStatus,
    HistoryType,
    PackingListPaymentView,
    PaymentHistoryFilter,
    PaymentLine,
    PaymentRequest,
    PaymentRequestStatus,
    PaymentType,
    PurchaseOrderPaymentView,
    SourceFinancialRecordView,
    SourceType,
)
from settlement_modules.payments.orm import PaymentRequestModel
from settlement_modules.sources.gateway import SourceRecordGateway, SqlSourceRecordGateway
from settlement_modules.sources.models import PackingListRecord, PurchaseOrderRecord

logger = get_logger("modules.payments.history")

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

ActiveRequests = dict[tuple[SourceType, object, PaymentType], PaymentRequest]


def _sort_key(view: SourceFinancialRecordView) -> tuple:
    day = view.sort_date
    created = view.record.created_at or _EPOCH
    if created.tzinfo is None:
        created = created.replace(tzinfo=UTC)
    # reverse=True: dated rows first, newest first, then newest created
    return (day is not None, day or date.min, created)


class PaymentHistorySelector:
    """
    Builds ``SourceFinancialRecordView`` rows for the dashboard.

    Only purchase orders with a positive advance or balance amount are
    listed.  Packing lists shipped by an excluded logistics company are
    never listed.
    """

    def __init__(
        self,
        session: Session,
        gateway: SourceRecordGateway | None = None,
        settings: HistorySettings | None = None,
        calculator: SettlementCalculator | None = None,
    ):
        self._session = session
        self._gateway = gateway or SqlSourceRecordGateway(session)
        self._settings = settings or HistorySettings()
        self._calculator = calculator or SettlementCalculator()

    def get_payment_history(
        self,
        history_filter: PaymentHistoryFilter | None = None,
    ) -> list[SourceFinancialRecordView]:
        f = history_filter or PaymentHistoryFilter()
        active = self._active_requests()

        views: list[SourceFinancialRecordView] = []
        if f.type in (None, HistoryType.PURCHASE_ORDERS):
            for record in self._gateway.list_purchase_orders():
                if record.advance_payment_amount <= ZERO and record.balance_payment_amount <= ZERO:
                    continue
                views.append(self.purchase_order_view(record, active))
        if f.type in (None, HistoryType.PACKING_LISTS):
            excluded = set(self._settings.excluded_logistics_companies)
            for record in self._gateway.list_packing_lists():
                if record.logistics_company in excluded:
                    continue
                views.append(self.packing_list_view(record, active))

        matched = [v for v in views if self._matches(v, f)]
        matched.sort(key=_sort_key, reverse=True)

        logger.debug("payment_history_built", extra={
            "type": f.type.value if f.type else "both",
            "status": f.status.value,
            "candidate_count": len(views),
            "result_count": len(matched),
        })
        return matched

    def purchase_order_view(
        self,
        record: PurchaseOrderRecord,
        active: ActiveRequests,
    ) -> PurchaseOrderPaymentView:
        breakdown = self._calculator.settle(SettlementInputs.from_purchase_order(record))
        return PurchaseOrderPaymentView(
            record=record,
            advance=PaymentLine(
                payment_type=PaymentType.ADVANCE,
                amount=record.advance_payment_amount,
                payment_date=record.advance_payment_date,
                active_request=active.get(
                    (SourceType.PURCHASE_ORDER, record.id, PaymentType.ADVANCE)
                ),
            ),
            balance=PaymentLine(
                payment_type=PaymentType.BALANCE,
                amount=record.balance_payment_amount,
                payment_date=record.balance_payment_date,
                active_request=active.get(
                    (SourceType.PURCHASE_ORDER, record.id, PaymentType.BALANCE)
                ),
            ),
            final_payment_amount=breakdown.final_payment_amount,
            expected_final_unit_price=round_money(
                breakdown.expected_final_unit_price, self._settings.decimal_places,
            ),
            admin_cost_amount=record.admin_billable_amount,
        )

    def packing_list_view(
        self,
        record: PackingListRecord,
        active: ActiveRequests,
    ) -> PackingListPaymentView:
        return PackingListPaymentView(
            record=record,
            shipping=PaymentLine(
                payment_type=PaymentType.SHIPPING,
                amount=record.shipping_cost,
                payment_date=record.wk_payment_date,
                active_request=active.get(
                    (SourceType.PACKING_LIST, record.id, PaymentType.SHIPPING)
                ),
            ),
            shipping_cost_difference=self._calculator.shipping_cost_difference(
                record.shipping_cost, record.calculated_weight, record.actual_weight,
            ),
        )

    def _active_requests(self) -> ActiveRequests:
        rows = self._session.execute(
            select(PaymentRequestModel).where(
                PaymentRequestModel.status == PaymentRequestStatus.REQUESTED.value
            )
        ).scalars().all()
        active: ActiveRequests = {}
        for row in rows:
            request = row.to_dto()
            active[(request.source_type, request.source_id, request.payment_type)] = request
        return active

    def _matches(self, view: SourceFinancialRecordView, f: PaymentHistoryFilter) -> bool:
        statuses = {line.status for line in view.lines if line.amount > ZERO}
        match f.status:
            case HistoryStatus.PAID:
                if AmountStatus.PAID not in statuses:
                    return False
            case HistoryStatus.PENDING:
                if AmountStatus.PENDING not in statuses:
                    return False
            case HistoryStatus.ALL:
                pass

        if f.date_range is not None:
            paid_dates = [line.payment_date for line in view.lines if line.payment_date]
            if paid_dates:
                if not any(f.date_range.contains(d) for d in paid_dates):
                    return False
            elif not f.date_range.contains(view.sort_date):
                return False

        if f.search:
            term = f.search.strip().lower()
            match view:
                case PurchaseOrderPaymentView(record=record):
                    haystack = (record.po_number, record.product_name)
                case PackingListPaymentView(record=record):
                    haystack = (record.code,)
            if not any(term in (text or "").lower() for text in haystack):
                return False

        return True

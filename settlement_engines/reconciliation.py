"""
settlement_engines.reconciliation -- Dashboard totals from one consistent snapshot.

Responsibility:
    Combine payment requests with purchase-order and packing-list
    snapshots into the dashboard totals: paid, pending, requested-to-date,
    and admin-cost pending / paid.  Every total is a breakdown whose
    ``.total`` is the sum of its parts.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Fed by ``settlement_services.reconciliation_service``, which reads the
    snapshot inside a single transaction.

Invariants enforced:
    - Paid amounts come only from source payment-date fields, never from
      request status, so a key with several historical requests is never
      counted twice.
    - Pending = Requested request amounts + unpaid source amounts that have
      no Requested request yet.
    - Totals are properties of their breakdowns; they cannot drift.
    - Stateless: recomputed wholesale on every call, no running totals.
    - Purity: ``today`` is passed in; no clock access.

Failure modes:
    - None for well-formed snapshots; amounts are Decimal throughout.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from settlement_engines.calculator import SettlementCalculator
from settlement_engines.tracer import traced_engine
from settlement_kernel.db.types import ZERO
from settlement_kernel.logging_config import get_logger
from settlement_modules.payments.models import (
    PaymentRequest,
    PaymentRequestStatus,
    PaymentType,
    SourceType,
)
from settlement_modules.sources.models import PackingListRecord, PurchaseOrderRecord

logger = get_logger("engines.reconciliation")


@dataclass(frozen=True)
class PaymentBreakdown:
    """Amounts split by payment type."""

    advance: Decimal = ZERO
    balance: Decimal = ZERO
    shipping: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.advance + self.balance + self.shipping

    def add(self, payment_type: PaymentType, amount: Decimal) -> PaymentBreakdown:
        match payment_type:
            case PaymentType.ADVANCE:
                return PaymentBreakdown(self.advance + amount, self.balance, self.shipping)
            case PaymentType.BALANCE:
                return PaymentBreakdown(self.advance, self.balance + amount, self.shipping)
            case PaymentType.SHIPPING:
                return PaymentBreakdown(self.advance, self.balance, self.shipping + amount)


@dataclass(frozen=True)
class AdminCostBreakdown:
    """
    Admin-billable amounts split by origin.

    ``manual_adjustment`` is the gap between an explicitly stored
    ``admin_total_cost`` and the computed back margin plus admin items,
    so the parts always sum to what the order actually bills.
    """

    back_margin: Decimal = ZERO
    admin_items: Decimal = ZERO
    manual_adjustment: Decimal = ZERO
    shipping_difference: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.back_margin + self.admin_items + self.manual_adjustment + self.shipping_difference

    def __add__(self, other: AdminCostBreakdown) -> AdminCostBreakdown:
        return AdminCostBreakdown(
            back_margin=self.back_margin + other.back_margin,
            admin_items=self.admin_items + other.admin_items,
            manual_adjustment=self.manual_adjustment + other.manual_adjustment,
            shipping_difference=self.shipping_difference + other.shipping_difference,
        )


@dataclass(frozen=True)
class ReconciliationSnapshot:
    """Everything the aggregator reads, captured at one point in time."""

    purchase_orders: tuple[PurchaseOrderRecord, ...] = ()
    packing_lists: tuple[PackingListRecord, ...] = ()
    requests: tuple[PaymentRequest, ...] = ()


@dataclass(frozen=True)
class DashboardTotals:
    """The dashboard's money figures."""

    paid: PaymentBreakdown = field(default_factory=PaymentBreakdown)
    pending: PaymentBreakdown = field(default_factory=PaymentBreakdown)
    requested_to_date: PaymentBreakdown = field(default_factory=PaymentBreakdown)
    admin_cost_pending: AdminCostBreakdown = field(default_factory=AdminCostBreakdown)
    admin_cost_paid: AdminCostBreakdown = field(default_factory=AdminCostBreakdown)

    @property
    def admin_cost_total(self) -> AdminCostBreakdown:
        return self.admin_cost_pending + self.admin_cost_paid


class ReconciliationAggregator:
    """
    Pure aggregator for dashboard totals.

    Contract:
        ``aggregate(snapshot, today)`` returns ``DashboardTotals``; identical
        inputs give identical outputs.
    Guarantees:
        - ``paid``: PO advance / balance amount when its payment date is
          set; PL shipping cost when ``wk_payment_date`` is set.
        - ``pending``: every Requested request amount, plus every unpaid
          positive source amount with no Requested request for its key.
        - ``requested_to_date``: Requested request amounts with
          ``request_date <= today``.
        - admin cost: PO ``admin_billable_amount`` and PL shipping-cost
          difference, bucketed by ``admin_cost_paid``.
    """

    def __init__(self, calculator: SettlementCalculator | None = None):
        self._calculator = calculator or SettlementCalculator()

    @traced_engine("reconciliation", "1.0", fingerprint_fields=("today",))
    def aggregate(self, snapshot: ReconciliationSnapshot, today: date) -> DashboardTotals:
        paid = PaymentBreakdown()
        pending = PaymentBreakdown()
        requested_to_date = PaymentBreakdown()
        admin_pending = AdminCostBreakdown()
        admin_paid = AdminCostBreakdown()

        active_keys: set[tuple[SourceType, object, PaymentType]] = set()
        for request in snapshot.requests:
            if request.status is not PaymentRequestStatus.REQUESTED:
                continue
            active_keys.add((request.source_type, request.source_id, request.payment_type))
            pending = pending.add(request.payment_type, request.amount)
            if request.request_date <= today:
                requested_to_date = requested_to_date.add(request.payment_type, request.amount)

        for po in snapshot.purchase_orders:
            for payment_type, amount, paid_on in (
                (PaymentType.ADVANCE, po.advance_payment_amount, po.advance_payment_date),
                (PaymentType.BALANCE, po.balance_payment_amount, po.balance_payment_date),
            ):
                if paid_on is not None:
                    paid = paid.add(payment_type, amount)
                elif amount > ZERO and (SourceType.PURCHASE_ORDER, po.id, payment_type) not in active_keys:
                    pending = pending.add(payment_type, amount)

            admin = self._purchase_order_admin_cost(po)
            if po.admin_cost_paid:
                admin_paid = admin_paid + admin
            else:
                admin_pending = admin_pending + admin

        for pl in snapshot.packing_lists:
            if pl.wk_payment_date is not None:
                paid = paid.add(PaymentType.SHIPPING, pl.shipping_cost)
            elif pl.shipping_cost > ZERO and (
                SourceType.PACKING_LIST, pl.id, PaymentType.SHIPPING
            ) not in active_keys:
                pending = pending.add(PaymentType.SHIPPING, pl.shipping_cost)

            admin = AdminCostBreakdown(
                shipping_difference=self._calculator.shipping_cost_difference(
                    pl.shipping_cost, pl.calculated_weight, pl.actual_weight,
                ),
            )
            if pl.admin_cost_paid:
                admin_paid = admin_paid + admin
            else:
                admin_pending = admin_pending + admin

        totals = DashboardTotals(
            paid=paid,
            pending=pending,
            requested_to_date=requested_to_date,
            admin_cost_pending=admin_pending,
            admin_cost_paid=admin_paid,
        )
        logger.debug("dashboard_totals_aggregated", extra={
            "purchase_order_count": len(snapshot.purchase_orders),
            "packing_list_count": len(snapshot.packing_lists),
            "request_count": len(snapshot.requests),
            "paid_total": str(paid.total),
            "pending_total": str(pending.total),
        })
        return totals

    @staticmethod
    def _purchase_order_admin_cost(po: PurchaseOrderRecord) -> AdminCostBreakdown:
        back_margin = po.back_margin_total
        items = po.admin_items_cost
        adjustment = ZERO
        if po.admin_total_cost is not None:
            adjustment = po.admin_total_cost - (back_margin + items)
        return AdminCostBreakdown(
            back_margin=back_margin,
            admin_items=items,
            manual_adjustment=adjustment,
        )

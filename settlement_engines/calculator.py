"""
settlement_engines.calculator -- Date-versioned settlement amount calculations.

Responsibility:
    Map a purchase order's pricing fields to the amounts that are settled
    against it: order unit price, basic cost, commission, shipping, final
    payment, expected final unit price, advance and balance installments.
    Also derives the admin-billable shipping difference of a packing list.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by the payment-history selector and the reconciliation engine.

Invariants enforced:
    - Two formula versions, selected by order date against a fixed cutover
      (2025-01-06).  Orders dated before the cutover bundle commission into
      the basic cost; orders on or after it charge commission separately on
      a base that also includes the non-admin option and labor costs.
      Records on either side keep their formula forever.
    - Admin-only cost items never enter the commission base.
    - Packing-list shipping is excluded from the final payment amount but
      included in the expected final unit price.
    - Decimal-only arithmetic; ``rate / 100`` is exact.
    - Purity: no clock access, no I/O.

Failure modes:
    - TypeError if a float reaches any function (via to_decimal in
      SettlementInputs.of).
    - Division-by-zero safe: expected_final_unit_price returns 0 when the
      quantity is 0; shipping_cost_difference returns 0 unless every input
      is positive.

Usage:
    from settlement_engines.calculator import SettlementCalculator, SettlementInputs

    calculator = SettlementCalculator()
    breakdown = calculator.settle(SettlementInputs.from_purchase_order(record))
    print(breakdown.final_payment_amount)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from settlement_engines.tracer import traced_engine
from settlement_kernel.db.types import ZERO, percent_of, to_decimal
from settlement_kernel.logging_config import get_logger
from settlement_modules.sources.models import PurchaseOrderRecord

logger = get_logger("engines.calculator")

COMMISSION_CUTOVER_DATE = date(2025, 1, 6)

_ONE = Decimal("1")


class FormulaVersion(str, Enum):
    """Which commission rule set applies to an order."""

    LEGACY = "legacy"  # commission bundled into basic cost
    CURRENT = "current"  # commission charged separately


def formula_version_for(order_date: date | None) -> FormulaVersion:
    """
    Select the formula version for an order date.

    The cutover date itself uses the current formula.  An order without a
    date has not been priced under the old rules, so it is current too.
    """
    if order_date is not None and order_date < COMMISSION_CUTOVER_DATE:
        return FormulaVersion.LEGACY
    return FormulaVersion.CURRENT


@dataclass(frozen=True)
class SettlementInputs:
    """Everything the calculator reads from one purchase order."""

    unit_price: Decimal
    back_margin: Decimal
    quantity: Decimal
    commission_rate: Decimal
    order_date: date | None
    advance_payment_rate: Decimal = Decimal("0")
    shipping_cost: Decimal = Decimal("0")
    warehouse_shipping_cost: Decimal = Decimal("0")
    option_cost: Decimal = Decimal("0")
    labor_cost: Decimal = Decimal("0")
    non_admin_option_cost: Decimal = Decimal("0")
    non_admin_labor_cost: Decimal = Decimal("0")
    packing_list_shipping_cost: Decimal = Decimal("0")

    @classmethod
    def of(cls, order_date: date | None = None, **amounts) -> SettlementInputs:
        """Build inputs from loosely typed amounts (str/int/Decimal/None)."""
        defaults = {
            "unit_price": None,
            "back_margin": None,
            "quantity": None,
            "commission_rate": None,
        }
        defaults.update(amounts)
        return cls(
            order_date=order_date,
            **{name: to_decimal(value) for name, value in defaults.items()},
        )

    @classmethod
    def from_purchase_order(cls, record: PurchaseOrderRecord) -> SettlementInputs:
        return cls(
            unit_price=record.unit_price,
            back_margin=record.back_margin,
            quantity=record.quantity,
            commission_rate=record.commission_rate,
            order_date=record.order_date,
            advance_payment_rate=record.advance_payment_rate,
            shipping_cost=record.shipping_cost,
            warehouse_shipping_cost=record.warehouse_shipping_cost,
            option_cost=record.option_cost,
            labor_cost=record.labor_cost,
            non_admin_option_cost=record.non_admin_option_cost,
            non_admin_labor_cost=record.non_admin_labor_cost,
            packing_list_shipping_cost=record.packing_list_shipping_cost,
        )


@dataclass(frozen=True)
class SettlementBreakdown:
    """All settlement amounts for one purchase order."""

    formula_version: FormulaVersion
    order_unit_price: Decimal
    basic_cost_total: Decimal
    commission_amount: Decimal
    shipping_cost_total: Decimal
    option_cost: Decimal
    labor_cost: Decimal
    final_payment_amount: Decimal
    expected_final_unit_price: Decimal
    advance_payment_amount: Decimal
    balance_payment_amount: Decimal


class SettlementCalculator:
    """
    Pure function calculator for settlement amounts.

    Contract:
        No I/O, no database access, fully deterministic.
        Every method takes the order date explicitly where the formula
        depends on it.
    Guarantees:
        - ``order_unit_price`` = unit price + back margin.
        - ``basic_cost_total``: legacy = oup * qty * (1 + rate/100);
          current = oup * qty.
        - ``commission_amount``: legacy = oup * qty * rate/100;
          current = (oup * qty + non-admin option + non-admin labor) * rate/100.
        - ``final_payment_amount``: legacy = basic + shipping + option + labor;
          current adds the commission on top.
        - ``balance_payment_amount`` = final - advance.
    Non-goals:
        - Does not round.  Presentation rounding belongs to callers.
    """

    def order_unit_price(self, unit_price: Decimal, back_margin: Decimal) -> Decimal:
        return unit_price + back_margin

    def basic_cost_total(
        self,
        unit_price: Decimal,
        quantity: Decimal,
        commission_rate: Decimal,
        back_margin: Decimal,
        order_date: date | None,
    ) -> Decimal:
        base = self.order_unit_price(unit_price, back_margin) * quantity
        match formula_version_for(order_date):
            case FormulaVersion.LEGACY:
                return base * (_ONE + commission_rate / Decimal("100"))
            case FormulaVersion.CURRENT:
                return base

    def commission_amount(
        self,
        unit_price: Decimal,
        quantity: Decimal,
        commission_rate: Decimal,
        back_margin: Decimal,
        order_date: date | None,
        non_admin_option_cost: Decimal = ZERO,
        non_admin_labor_cost: Decimal = ZERO,
    ) -> Decimal:
        base = self.order_unit_price(unit_price, back_margin) * quantity
        match formula_version_for(order_date):
            case FormulaVersion.LEGACY:
                return percent_of(base, commission_rate)
            case FormulaVersion.CURRENT:
                return percent_of(
                    base + non_admin_option_cost + non_admin_labor_cost,
                    commission_rate,
                )

    def shipping_cost_total(
        self,
        shipping_cost: Decimal,
        warehouse_shipping_cost: Decimal,
    ) -> Decimal:
        """Factory plus warehouse shipping; packing-list shipping is settled on its own."""
        return shipping_cost + warehouse_shipping_cost

    def final_payment_amount(
        self,
        basic_cost_total: Decimal,
        shipping_cost_total: Decimal,
        option_cost: Decimal,
        labor_cost: Decimal,
        commission_amount: Decimal,
        order_date: date | None,
    ) -> Decimal:
        subtotal = basic_cost_total + shipping_cost_total + option_cost + labor_cost
        match formula_version_for(order_date):
            case FormulaVersion.LEGACY:
                # commission is already inside basic_cost_total
                return subtotal
            case FormulaVersion.CURRENT:
                return subtotal + commission_amount

    def expected_final_unit_price(
        self,
        final_payment_amount: Decimal,
        packing_list_shipping_cost: Decimal,
        quantity: Decimal,
    ) -> Decimal:
        if quantity == ZERO:
            return ZERO
        return (final_payment_amount + packing_list_shipping_cost) / quantity

    def advance_payment_amount(
        self,
        unit_price: Decimal,
        quantity: Decimal,
        advance_payment_rate: Decimal,
        back_margin: Decimal,
    ) -> Decimal:
        return percent_of(
            self.order_unit_price(unit_price, back_margin) * quantity,
            advance_payment_rate,
        )

    def balance_payment_amount(
        self,
        final_payment_amount: Decimal,
        advance_payment_amount: Decimal,
    ) -> Decimal:
        return final_payment_amount - advance_payment_amount

    def shipping_cost_difference(
        self,
        shipping_cost: Decimal,
        calculated_weight: Decimal,
        actual_weight: Decimal,
    ) -> Decimal:
        """
        Admin-billable delta between the billed and the weight-prorated shipping.

        ``shipping_cost - actual_weight * (shipping_cost / calculated_weight)``
        when all three inputs are positive, otherwise 0.
        """
        if shipping_cost <= ZERO or calculated_weight <= ZERO or actual_weight <= ZERO:
            return ZERO
        return shipping_cost - actual_weight * (shipping_cost / calculated_weight)

    @traced_engine("calculator", "1.0", fingerprint_fields=("inputs",))
    def settle(self, inputs: SettlementInputs) -> SettlementBreakdown:
        """
        Compute every settlement amount for one purchase order.

        Postconditions:
            balance_payment_amount + advance_payment_amount ==
            final_payment_amount exactly.
        """
        version = formula_version_for(inputs.order_date)
        order_unit_price = self.order_unit_price(inputs.unit_price, inputs.back_margin)
        basic = self.basic_cost_total(
            inputs.unit_price,
            inputs.quantity,
            inputs.commission_rate,
            inputs.back_margin,
            inputs.order_date,
        )
        commission = self.commission_amount(
            inputs.unit_price,
            inputs.quantity,
            inputs.commission_rate,
            inputs.back_margin,
            inputs.order_date,
            inputs.non_admin_option_cost,
            inputs.non_admin_labor_cost,
        )
        shipping = self.shipping_cost_total(
            inputs.shipping_cost, inputs.warehouse_shipping_cost,
        )
        final = self.final_payment_amount(
            basic,
            shipping,
            inputs.option_cost,
            inputs.labor_cost,
            commission,
            inputs.order_date,
        )
        advance = self.advance_payment_amount(
            inputs.unit_price,
            inputs.quantity,
            inputs.advance_payment_rate,
            inputs.back_margin,
        )

        logger.debug("settlement_calculated", extra={
            "formula_version": version.value,
            "final_payment_amount": str(final),
            "advance_payment_amount": str(advance),
        })

        return SettlementBreakdown(
            formula_version=version,
            order_unit_price=order_unit_price,
            basic_cost_total=basic,
            commission_amount=commission,
            shipping_cost_total=shipping,
            option_cost=inputs.option_cost,
            labor_cost=inputs.labor_cost,
            final_payment_amount=final,
            expected_final_unit_price=self.expected_final_unit_price(
                final, inputs.packing_list_shipping_cost, inputs.quantity,
            ),
            advance_payment_amount=advance,
            balance_payment_amount=self.balance_payment_amount(final, advance),
        )

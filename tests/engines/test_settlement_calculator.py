"""
Tests for SettlementCalculator.

Covers both formula versions, the cutover boundary, the installment split,
the unit-price projection and the packing-list shipping difference.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from settlement_engines.calculator import (
    COMMISSION_CUTOVER_DATE,
    FormulaVersion,
    SettlementCalculator,
    SettlementInputs,
    formula_version_for,
)
from settlement_modules.sources.models import CostItem, CostItemType, PurchaseOrderRecord


def _order(order_date: date | None, **overrides) -> SettlementInputs:
    values = {
        "unit_price": "10",
        "back_margin": "2",
        "quantity": "100",
        "commission_rate": "5",
        "advance_payment_rate": "30",
        "option_cost": "50",
        "labor_cost": "30",
        "non_admin_option_cost": "50",
        "non_admin_labor_cost": "30",
    }
    values.update(overrides)
    return SettlementInputs.of(order_date=order_date, **values)


class TestFormulaVersion:

    def test_day_before_cutover_is_legacy(self):
        assert formula_version_for(date(2025, 1, 5)) is FormulaVersion.LEGACY

    def test_cutover_day_is_current(self):
        assert formula_version_for(COMMISSION_CUTOVER_DATE) is FormulaVersion.CURRENT
        assert formula_version_for(date(2025, 1, 6)) is FormulaVersion.CURRENT

    def test_undated_order_is_current(self):
        assert formula_version_for(None) is FormulaVersion.CURRENT


class TestCurrentFormula:
    """Orders dated on or after 2025-01-06."""

    def setup_method(self):
        self.calculator = SettlementCalculator()
        self.breakdown = self.calculator.settle(_order(date(2025, 2, 1)))

    def test_order_unit_price(self):
        assert self.breakdown.order_unit_price == Decimal("12")

    def test_basic_cost_excludes_commission(self):
        assert self.breakdown.basic_cost_total == Decimal("1200")

    def test_commission_base_includes_non_admin_costs(self):
        # (1200 + 80) * 5%
        assert self.breakdown.commission_amount == Decimal("64")

    def test_final_payment_adds_commission(self):
        assert self.breakdown.final_payment_amount == Decimal("1344")
        assert self.breakdown.formula_version is FormulaVersion.CURRENT

    def test_advance_and_balance(self):
        assert self.breakdown.advance_payment_amount == Decimal("360")
        assert self.breakdown.balance_payment_amount == Decimal("984")

    def test_admin_only_items_stay_out_of_commission_base(self):
        breakdown = self.calculator.settle(_order(
            date(2025, 2, 1),
            option_cost="150",
            non_admin_option_cost="50",
        ))
        assert breakdown.commission_amount == Decimal("64")
        assert breakdown.final_payment_amount == Decimal("1444")


class TestLegacyFormula:
    """Orders dated before 2025-01-06 bundle commission into basic cost."""

    def setup_method(self):
        self.calculator = SettlementCalculator()
        self.breakdown = self.calculator.settle(_order(date(2024, 12, 1)))

    def test_basic_cost_bundles_commission(self):
        assert self.breakdown.basic_cost_total == Decimal("1260")

    def test_commission_is_reported_but_not_re_added(self):
        assert self.breakdown.commission_amount == Decimal("60")
        assert self.breakdown.final_payment_amount == Decimal("1340")
        assert self.breakdown.formula_version is FormulaVersion.LEGACY

    def test_advance_uses_order_unit_price(self):
        assert self.breakdown.advance_payment_amount == Decimal("360")
        assert self.breakdown.balance_payment_amount == Decimal("980")


class TestCutoverBoundary:

    def test_final_payment_changes_across_boundary(self):
        calculator = SettlementCalculator()
        before = calculator.settle(_order(date(2025, 1, 5)))
        on = calculator.settle(_order(date(2025, 1, 6)))
        assert before.final_payment_amount == Decimal("1340")
        assert on.final_payment_amount == Decimal("1344")


class TestShippingAndUnitPrice:

    def setup_method(self):
        self.calculator = SettlementCalculator()

    def test_shipping_total_is_factory_plus_warehouse(self):
        breakdown = self.calculator.settle(_order(
            date(2025, 2, 1), shipping_cost="40", warehouse_shipping_cost="16",
        ))
        assert breakdown.shipping_cost_total == Decimal("56")
        assert breakdown.final_payment_amount == Decimal("1400")

    def test_packing_list_shipping_only_in_unit_price(self):
        breakdown = self.calculator.settle(_order(
            date(2025, 2, 1), packing_list_shipping_cost="56",
        ))
        assert breakdown.final_payment_amount == Decimal("1344")
        assert breakdown.expected_final_unit_price == Decimal("14")

    def test_zero_quantity_unit_price_is_zero(self):
        assert self.calculator.expected_final_unit_price(
            Decimal("100"), Decimal("10"), Decimal("0"),
        ) == Decimal("0")

    def test_shipping_cost_difference(self):
        assert self.calculator.shipping_cost_difference(
            Decimal("500"), Decimal("100"), Decimal("80"),
        ) == Decimal("100")

    def test_shipping_cost_difference_can_be_negative(self):
        assert self.calculator.shipping_cost_difference(
            Decimal("500"), Decimal("100"), Decimal("120"),
        ) == Decimal("-100")

    @pytest.mark.parametrize("shipping,calculated,actual", [
        ("0", "100", "80"),
        ("500", "0", "80"),
        ("500", "100", "0"),
    ])
    def test_shipping_cost_difference_needs_positive_inputs(self, shipping, calculated, actual):
        assert self.calculator.shipping_cost_difference(
            Decimal(shipping), Decimal(calculated), Decimal(actual),
        ) == Decimal("0")


class TestInputs:

    def test_floats_are_refused(self):
        with pytest.raises(TypeError):
            SettlementInputs.of(unit_price=10.5)

    def test_from_purchase_order_splits_admin_items(self):
        record = PurchaseOrderRecord(
            id=uuid4(),
            po_number="PO-1",
            order_date=date(2025, 2, 1),
            unit_price=Decimal("10"),
            back_margin=Decimal("2"),
            quantity=Decimal("100"),
            commission_rate=Decimal("5"),
            cost_items=(
                CostItem(uuid4(), CostItemType.OPTION, "Embroidery", cost=Decimal("50")),
                CostItem(uuid4(), CostItemType.LABOR, "Pressing", cost=Decimal("30")),
                CostItem(
                    uuid4(), CostItemType.OPTION, "Gift box",
                    cost=Decimal("100"), is_admin_only=True,
                ),
            ),
        )
        inputs = SettlementInputs.from_purchase_order(record)
        assert inputs.option_cost == Decimal("150")
        assert inputs.non_admin_option_cost == Decimal("50")
        assert inputs.labor_cost == Decimal("30")
        assert inputs.non_admin_labor_cost == Decimal("30")


class TestTrace:

    def test_settle_emits_engine_trace(self, captured_logs):
        SettlementCalculator().settle(_order(date(2025, 2, 1)))
        traces = [r for r in captured_logs() if r["message"] == "SETTLEMENT_ENGINE_TRACE"]
        assert len(traces) == 1
        assert traces[0]["engine_name"] == "calculator"
        assert len(traces[0]["input_fingerprint"]) == 16

    def test_equal_inputs_share_a_fingerprint(self, captured_logs):
        calculator = SettlementCalculator()
        calculator.settle(_order(date(2025, 2, 1)))
        calculator.settle(inputs=_order(date(2025, 2, 1), unit_price="10.00"))
        fingerprints = {
            r["input_fingerprint"] for r in captured_logs()
            if r["message"] == "SETTLEMENT_ENGINE_TRACE"
        }
        assert len(fingerprints) == 1


money = st.decimals(min_value=0, max_value=1_000_000, places=2, allow_nan=False, allow_infinity=False)
rates = st.decimals(min_value=0, max_value=100, places=2, allow_nan=False, allow_infinity=False)
quantities = st.integers(min_value=0, max_value=10_000).map(Decimal)
order_dates = st.one_of(
    st.none(),
    st.dates(min_value=date(2023, 1, 1), max_value=date(2026, 12, 31)),
)


class TestSettlementProperties:

    @settings(max_examples=200, deadline=None)
    @given(
        unit_price=money, back_margin=money, quantity=quantities,
        commission_rate=rates, advance_rate=rates, extras=money, order_date=order_dates,
    )
    def test_installments_sum_to_final_payment(
        self, unit_price, back_margin, quantity, commission_rate, advance_rate, extras, order_date,
    ):
        breakdown = SettlementCalculator().settle(SettlementInputs(
            unit_price=unit_price,
            back_margin=back_margin,
            quantity=quantity,
            commission_rate=commission_rate,
            order_date=order_date,
            advance_payment_rate=advance_rate,
            option_cost=extras,
            non_admin_option_cost=extras,
        ))
        assert (
            breakdown.advance_payment_amount + breakdown.balance_payment_amount
            == breakdown.final_payment_amount
        )

    @settings(max_examples=100, deadline=None)
    @given(unit_price=money, quantity=quantities, commission_rate=rates, order_date=order_dates)
    def test_legacy_basic_cost_is_base_plus_commission(
        self, unit_price, quantity, commission_rate, order_date,
    ):
        calculator = SettlementCalculator()
        breakdown = calculator.settle(SettlementInputs(
            unit_price=unit_price,
            back_margin=Decimal("0"),
            quantity=quantity,
            commission_rate=commission_rate,
            order_date=order_date,
        ))
        base = unit_price * quantity
        if breakdown.formula_version is FormulaVersion.LEGACY:
            assert breakdown.basic_cost_total == base + breakdown.commission_amount
        else:
            assert breakdown.basic_cost_total == base

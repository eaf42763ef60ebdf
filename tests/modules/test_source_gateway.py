"""Tests for SqlSourceRecordGateway and the payment-request workflow table."""

from datetime import date
from uuid import uuid4

import pytest

from settlement_kernel.exceptions import InvalidPaymentTypeError, SourceRecordNotFoundError
from settlement_modules.payments.models import PaymentKey, PaymentType, SourceType
from settlement_modules.payments.workflows import PAYMENT_REQUEST_WORKFLOW, find_transition
from settlement_modules.sources.gateway import payment_amount_field, payment_date_field


class TestSqlSourceRecordGateway:

    def test_unknown_records(self, gateway):
        with pytest.raises(SourceRecordNotFoundError):
            gateway.get_purchase_order(uuid4())
        with pytest.raises(SourceRecordNotFoundError):
            gateway.get_packing_list(uuid4())
        with pytest.raises(SourceRecordNotFoundError):
            gateway.set_shipping_payment_date(uuid4(), date(2025, 3, 5))

    def test_set_payment_date_by_key(self, gateway, create_purchase_order):
        po = create_purchase_order()
        key = PaymentKey(SourceType.PURCHASE_ORDER, po.id, PaymentType.BALANCE)

        gateway.set_payment_date(key, date(2025, 3, 5))

        assert gateway.payment_date(key) == date(2025, 3, 5)
        assert gateway.get_purchase_order(po.id).advance_payment_date is None

    def test_get_source_dispatches_on_type(self, gateway, create_purchase_order, create_packing_list):
        po = create_purchase_order()
        pl = create_packing_list()
        assert gateway.get_source(SourceType.PURCHASE_ORDER, po.id).po_number == po.po_number
        assert gateway.get_source(SourceType.PACKING_LIST, pl.id).code == pl.code

    def test_lists_return_snapshots(self, gateway, create_purchase_order, create_packing_list):
        create_purchase_order(po_number="PO-B")
        create_purchase_order(po_number="PO-A")
        create_packing_list()
        assert {r.po_number for r in gateway.list_purchase_orders()} == {"PO-A", "PO-B"}
        assert len(gateway.list_packing_lists()) == 1


class TestPaymentKey:

    @pytest.mark.parametrize("source_type,payment_type", [
        (SourceType.PURCHASE_ORDER, PaymentType.SHIPPING),
        (SourceType.PACKING_LIST, PaymentType.ADVANCE),
        (SourceType.PACKING_LIST, PaymentType.BALANCE),
    ])
    def test_mismatched_types_rejected(self, source_type, payment_type):
        with pytest.raises(InvalidPaymentTypeError):
            PaymentKey(source_type, uuid4(), payment_type)

    def test_payment_date_fields(self):
        assert payment_date_field(PaymentType.ADVANCE) == "advance_payment_date"
        assert payment_date_field(PaymentType.BALANCE) == "balance_payment_date"
        assert payment_date_field(PaymentType.SHIPPING) == "wk_payment_date"

    def test_payment_amount_fields(self):
        assert payment_amount_field(PaymentType.ADVANCE) == "advance_payment_amount"
        assert payment_amount_field(PaymentType.BALANCE) == "balance_payment_amount"
        assert payment_amount_field(PaymentType.SHIPPING) == "shipping_cost"


class TestPaymentRequestWorkflow:

    @pytest.mark.parametrize("state,action,target", [
        ("requested", "complete", "completed"),
        ("completed", "revert", "requested"),
        ("requested", "update_memo", "requested"),
        ("requested", "delete", "deleted"),
    ])
    def test_allowed_transitions(self, state, action, target):
        assert find_transition(PAYMENT_REQUEST_WORKFLOW, state, action).to_state == target

    @pytest.mark.parametrize("state,action", [
        ("completed", "complete"),
        ("requested", "revert"),
        ("completed", "delete"),
        ("completed", "update_memo"),
    ])
    def test_forbidden_transitions(self, state, action):
        assert find_transition(PAYMENT_REQUEST_WORKFLOW, state, action) is None

    def test_status_changes_write_through(self):
        complete = find_transition(PAYMENT_REQUEST_WORKFLOW, "requested", "complete")
        delete = find_transition(PAYMENT_REQUEST_WORKFLOW, "requested", "delete")
        assert complete.writes_through is True
        assert delete.writes_through is False

"""
End-to-end tests through SettlementOrchestrator.

Every external operation, string coercion at the boundary, and dashboard
totals recomputed after each mutation.
"""

from datetime import date
from decimal import Decimal

import pytest

from settlement_config.schema import HistorySettings, RequestNumberSettings, SettlementSettings
from settlement_engines.reconciliation import PaymentBreakdown
from settlement_kernel.exceptions import ValidationError
from settlement_modules.payments.models import (
    HistoryStatus,
    PaymentHistoryFilter,
    PaymentRequestStatus,
    RequestFilter,
    SourceType,
)
from settlement_services.orchestrator import SettlementOrchestrator, coerce_enum


@pytest.fixture
def settlement(session, deterministic_clock):
    settings = SettlementSettings(
        request_numbers=RequestNumberSettings(prefix="PAY", sequence_width=4),
        history=HistorySettings(excluded_logistics_companies=("Courier Direct",)),
    )
    return SettlementOrchestrator(session, clock=deterministic_clock, settings=settings)


class TestRequestOperations:

    def test_create_accepts_string_enums(self, settlement, create_purchase_order, test_actor_id):
        po = create_purchase_order()
        request = settlement.create_request("purchase_order", po.id, "advance", "360", test_actor_id)
        assert request.request_number == "PAY-2025-0001"
        assert request.source_type is SourceType.PURCHASE_ORDER

    def test_unknown_enum_value_is_a_validation_error(
        self, settlement, create_purchase_order, test_actor_id,
    ):
        po = create_purchase_order()
        with pytest.raises(ValidationError):
            settlement.create_request("invoice", po.id, "advance", "360", test_actor_id)

    def test_full_lifecycle(self, settlement, create_purchase_order, test_actor_id):
        po = create_purchase_order()
        request = settlement.create_request("purchase_order", po.id, "balance", "904", test_actor_id)

        completed = settlement.complete_request(request.id, "2025-03-05", test_actor_id)
        assert completed.status is PaymentRequestStatus.COMPLETED

        reverted = settlement.revert_request(request.id, test_actor_id)
        assert reverted.status is PaymentRequestStatus.REQUESTED

        settlement.update_memo(request.id, "hold until QC", test_actor_id)
        assert settlement.get_request(request.id).memo == "hold until QC"

        settlement.delete_request(request.id, test_actor_id)
        assert settlement.list_requests() == []

    def test_batch_operations(self, settlement, create_purchase_order, create_packing_list, test_actor_id):
        po = create_purchase_order()
        pl = create_packing_list()
        ids = [
            settlement.create_request("purchase_order", po.id, "advance", "360", test_actor_id).id,
            settlement.create_request("packing_list", pl.id, "shipping", "500", test_actor_id).id,
        ]
        assert settlement.batch_complete_requests(ids, date(2025, 3, 5), test_actor_id).affected_rows == 2
        assert settlement.batch_revert_requests(ids, test_actor_id).affected_rows == 2

    def test_listing_and_history(self, settlement, create_purchase_order, test_actor_id):
        po = create_purchase_order()
        settlement.create_request("purchase_order", po.id, "advance", "360", test_actor_id)

        assert len(settlement.list_requests(RequestFilter(status=PaymentRequestStatus.REQUESTED))) == 1
        assert len(settlement.list_requests_by_source("purchase_order", po.id)) == 1
        history = settlement.get_payment_history(PaymentHistoryFilter(status=HistoryStatus.PENDING))
        assert [v.record.id for v in history] == [po.id]
        assert history[0].advance.active_request is not None

    def test_list_by_source_narrows_to_payment_type(
        self, settlement, create_purchase_order, test_actor_id,
    ):
        po = create_purchase_order()
        settlement.create_request("purchase_order", po.id, "advance", "360", test_actor_id)
        balance = settlement.create_request("purchase_order", po.id, "balance", "904", test_actor_id)

        assert len(settlement.list_requests_by_source("purchase_order", po.id)) == 2
        narrowed = settlement.list_requests_by_source("purchase_order", po.id, "balance")
        assert [r.id for r in narrowed] == [balance.id]
        with pytest.raises(ValidationError):
            settlement.list_requests_by_source("purchase_order", po.id, "deposit")

    def test_admin_cost_paid(self, settlement, create_purchase_order, test_actor_id):
        po = create_purchase_order()
        settlement.set_admin_cost_paid("purchase_order", po.id, True, test_actor_id)
        assert settlement.dashboard().admin_cost_paid.back_margin == Decimal("200")


class TestDashboard:

    def test_totals_follow_every_mutation(
        self, settlement, create_purchase_order, create_packing_list, test_actor_id,
    ):
        po = create_purchase_order()
        create_packing_list(logistics_company="Courier Direct")

        before = settlement.dashboard()
        assert before.paid.total == Decimal("0")
        assert before.pending == PaymentBreakdown(
            advance=Decimal("360"), balance=Decimal("904"), shipping=Decimal("0"),
        )

        request = settlement.create_request("purchase_order", po.id, "advance", "360", test_actor_id)
        requested = settlement.dashboard()
        assert requested.pending.total == Decimal("1264")
        assert requested.requested_to_date.advance == Decimal("360")

        settlement.complete_request(request.id, date(2025, 3, 5), test_actor_id)
        completed = settlement.dashboard()
        assert completed.paid.advance == Decimal("360")
        assert completed.pending.total == Decimal("904")
        assert completed.requested_to_date.total == Decimal("0")

        settlement.revert_request(request.id, test_actor_id)
        assert settlement.dashboard() == requested

    def test_excluded_packing_list_requests_stay_out_of_totals(
        self, settlement, create_packing_list, test_actor_id,
    ):
        courier = create_packing_list(logistics_company="Courier Direct")
        request = settlement.create_request("packing_list", courier.id, "shipping", "500", test_actor_id)

        requested = settlement.dashboard()
        assert requested.pending.total == Decimal("0")
        assert requested.requested_to_date.total == Decimal("0")

        settlement.complete_request(request.id, "2025-03-05", test_actor_id)
        completed = settlement.dashboard()
        assert completed.paid.total == Decimal("0")
        assert completed.pending.total == Decimal("0")

    def test_included_packing_list_moves_from_pending_to_paid(
        self, settlement, create_packing_list, test_actor_id,
    ):
        sea = create_packing_list()
        request = settlement.create_request("packing_list", sea.id, "shipping", "500", test_actor_id)
        assert settlement.dashboard().pending.shipping == Decimal("500")

        settlement.complete_request(request.id, "2025-03-05", test_actor_id)
        totals = settlement.dashboard()
        assert totals.paid.shipping == Decimal("500")
        assert totals.pending.shipping == Decimal("0")

    def test_dashboard_as_of_an_earlier_day(self, settlement, create_purchase_order, test_actor_id):
        po = create_purchase_order()
        settlement.create_request("purchase_order", po.id, "advance", "360", test_actor_id)
        assert settlement.dashboard(today=date(2025, 3, 2)).requested_to_date.total == Decimal("0")

    def test_dashboard_is_logged(self, settlement, captured_logs):
        settlement.dashboard()
        logged = [r for r in captured_logs() if r["message"] == "dashboard_totals_computed"]
        assert logged[0]["paid_total"] == "0"


class TestCoerceEnum:

    def test_member_passes_through(self):
        assert coerce_enum(SourceType, SourceType.PACKING_LIST, "source_type") is SourceType.PACKING_LIST

    def test_value_is_converted(self):
        assert coerce_enum(SourceType, "packing_list", "source_type") is SourceType.PACKING_LIST

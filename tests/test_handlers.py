"""
Unit tests for the domain action handlers.

Handlers are called directly with snapshots; no orchestrator involved.
"""

import pytest

from domain.enums import OriginChannel, Priority
from domain.results import HandlerFailure, HandlerSuccess
from orchestration.context import PipelineContext, freeze_payload
from orchestration.handlers.commercial import (
    BuildQuoteHandler,
    QualifyLeadHandler,
    RecordCustomerResponseHandler,
    RecordRfqLinesHandler,
    ReviseQuoteHandler,
    normalize_lines,
)
from orchestration.handlers.common import CancelHandler, SetPriorityHandler
from orchestration.handlers.fulfillment import (
    BookShipmentHandler,
    ConfirmDeliveryHandler,
    RecordPaymentHandler,
)
from orchestration.handlers.operations import AllocateInventoryHandler, RejectQcHandler
from orchestration.stages import Stage


def snapshot_at(stage, payload=None, priority=Priority.STANDARD):
    return PipelineContext(
        id="abcdef12-3456",
        origin_channel=OriginChannel.WEB,
        current_stage=stage,
        priority=priority,
        payload=freeze_payload(payload),
    )


class TestBaseHandler:
    """Tests for behaviour shared through ActionHandler."""

    def test_missing_required_fields(self):
        """Test that missing fields fail before handle() runs."""
        result = RecordRfqLinesHandler()(snapshot_at(Stage.RFQ), freeze_payload({}))
        assert isinstance(result, HandlerFailure)
        assert "lines" in result.reason

    def test_empty_values_count_as_missing(self):
        """Test that empty lists and strings are treated as missing."""
        result = BookShipmentHandler()(snapshot_at(Stage.PACK), {"carrier": ""})
        assert isinstance(result, HandlerFailure)


class TestCommercialHandlers:
    """Tests for lead, RFQ and quote handlers."""

    def test_qualify_uses_intake_contact(self):
        """Test qualification with the contact captured at intake."""
        snapshot = snapshot_at(Stage.LEAD, {"contact": {"company_name": "Acme"}})
        result = QualifyLeadHandler()(snapshot, {})
        assert isinstance(result, HandlerSuccess)
        assert result.payload_delta["lead"]["qualified"] is True
        assert result.payload_delta["lead"]["source"] == "WEB"

    def test_qualify_without_contact_fails(self):
        """Test that a lead with no contact cannot be qualified."""
        result = QualifyLeadHandler()(snapshot_at(Stage.LEAD), {})
        assert isinstance(result, HandlerFailure)

    def test_qualify_records_rfq_lines(self):
        """Test that RFQ lines submitted with qualification are normalized."""
        result = QualifyLeadHandler()(
            snapshot_at(Stage.LEAD, {"contact": {"email": "a@b.com"}}),
            {"rfq": {"lines": [{"item": "X", "quantity": "4"}]}},
        )
        assert result.payload_delta["rfq"]["lines"] == [{"item": "X", "quantity": 4.0, "line": 1}]

    def test_normalize_lines_rejects_bad_quantity(self):
        """Test line validation."""
        with pytest.raises(ValueError, match="positive quantity"):
            normalize_lines([{"item": "X", "quantity": 0}])
        with pytest.raises(ValueError, match="invalid quantity"):
            normalize_lines([{"item": "X", "quantity": "lots"}])

    def test_build_quote(self):
        """Test quote creation from RFQ lines."""
        snapshot = snapshot_at(Stage.RFQ, {"rfq": {"lines": [{"quantity": 1}, {"quantity": 2}]}})
        result = BuildQuoteHandler()(snapshot, {"margin_percent": "18.5", "total_price": 900})
        quote = result.payload_delta["quote"]
        assert quote["number"] == "Q-ABCDEF12"
        assert quote["status"] == "DRAFT"
        assert quote["line_count"] == 2
        assert quote["margin_percent"] == 18.5

    def test_customer_response_accepts(self):
        """Test recording an accepted quote."""
        snapshot = snapshot_at(Stage.QUOTE, {"quote": {"status": "DRAFT"}})
        result = RecordCustomerResponseHandler()(snapshot, {"response": "accepted"})
        assert result.payload_delta["quote"]["status"] == "ACCEPTED"

    def test_customer_response_unknown_fails(self):
        """Test that only known responses are accepted."""
        result = RecordCustomerResponseHandler()(snapshot_at(Stage.QUOTE), {"response": "maybe"})
        assert isinstance(result, HandlerFailure)

    def test_revise_increments_revision(self):
        """Test quote revision numbering."""
        snapshot = snapshot_at(Stage.QUOTE, {"quote": {"status": "COUNTER", "revision": 2}})
        result = ReviseQuoteHandler()(snapshot, {"margin_percent": 20})
        assert result.payload_delta["quote"]["revision"] == 3

    def test_revise_accepted_quote_fails(self):
        """Test that accepted quotes are locked."""
        snapshot = snapshot_at(Stage.QUOTE, {"quote": {"status": "ACCEPTED"}})
        assert isinstance(ReviseQuoteHandler()(snapshot, {}), HandlerFailure)


class TestOperationsHandlers:
    """Tests for planning and production handlers."""

    def test_full_allocation_is_complete(self):
        """Test that a fully covered allocation is complete."""
        result = AllocateInventoryHandler()(
            snapshot_at(Stage.PLANNING),
            {"allocations": [{"line": 1, "requested": 5, "allocated": 5}]},
        )
        assert result.payload_delta["allocation"]["complete"] is True
        assert result.payload_delta["allocation"]["shortages"] == []

    def test_partial_allocation_records_shortage(self):
        """Test that shortages keep the allocation incomplete."""
        result = AllocateInventoryHandler()(
            snapshot_at(Stage.PLANNING),
            {"allocations": [{"line": 1, "requested": 5, "allocated": 2}]},
        )
        allocation = result.payload_delta["allocation"]
        assert allocation["complete"] is False
        assert allocation["shortages"][0]["short"] == 3.0

    def test_invalid_allocation_fails(self):
        """Test that malformed entries are rejected."""
        result = AllocateInventoryHandler()(snapshot_at(Stage.PLANNING), {"allocations": [{"line": 1}]})
        assert isinstance(result, HandlerFailure)

    def test_reject_qc_counts_rework(self):
        """Test that each QC rejection increments the rework counter."""
        snapshot = snapshot_at(Stage.QC, {"job": {"rework_count": 1}})
        result = RejectQcHandler()(snapshot, {"reason": "burrs"})
        assert result.payload_delta["job"]["rework_count"] == 2
        assert result.payload_delta["qc"]["result"] == "REJECT"


class TestFulfillmentHandlers:
    """Tests for shipping and invoicing handlers."""

    def test_book_shipment(self):
        """Test carrier booking."""
        result = BookShipmentHandler()(
            snapshot_at(Stage.PACK), {"carrier": "UPS", "estimated_cost": "42.5"}
        )
        assert result.payload_delta["shipment"]["carrier"] == "UPS"
        assert result.payload_delta["shipment"]["estimated_cost"] == 42.5
        assert result.payload_delta["packaging"]["package_count"] == 1

    def test_confirm_delivery_issues_invoice(self):
        """Test that delivery confirmation issues the invoice."""
        snapshot = snapshot_at(Stage.SHIP, {"quote": {"total_price": 1200.0}})
        result = ConfirmDeliveryHandler()(snapshot, {})
        invoice = result.payload_delta["invoice"]
        assert invoice["number"] == "INV-ABCDEF12"
        assert invoice["amount"] == 1200.0

    def test_record_payment(self):
        """Test payment against the invoice."""
        snapshot = snapshot_at(Stage.INVOICE, {"invoice": {"amount": 1200.0}})
        result = RecordPaymentHandler()(snapshot, {"amount": 1000})
        assert result.payload_delta["invoice"]["status"] == "PAID"
        assert result.payload_delta["analytics"]["balance"] == 200.0

    def test_non_positive_payment_fails(self):
        """Test payment validation."""
        result = RecordPaymentHandler()(snapshot_at(Stage.INVOICE), {"amount": -5})
        assert isinstance(result, HandlerFailure)


class TestCommonHandlers:
    """Tests for cancellation and priority handlers."""

    def test_set_priority(self):
        """Test that the handler returns the new priority."""
        result = SetPriorityHandler()(snapshot_at(Stage.ORDER), {"priority": "vip", "reason": "key account"})
        assert result.priority == Priority.VIP
        assert result.payload_delta["priority_change"]["reason"] == "key account"

    def test_set_same_priority_fails(self):
        """Test that a no-op priority change is refused."""
        result = SetPriorityHandler()(snapshot_at(Stage.ORDER), {"priority": "STANDARD"})
        assert isinstance(result, HandlerFailure)

    def test_set_unknown_priority_fails(self):
        """Test that unknown priorities are refused."""
        result = SetPriorityHandler()(snapshot_at(Stage.ORDER), {"priority": "asap"})
        assert isinstance(result, HandlerFailure)

    def test_cancel_records_reason(self):
        """Test that cancellation records where it happened."""
        result = CancelHandler()(snapshot_at(Stage.JOB), {})
        cancellation = result.payload_delta["cancellation"]
        assert cancellation["from_stage"] == "JOB"
        assert cancellation["reason"] == "unspecified"

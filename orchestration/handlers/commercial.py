"""
Commercial domain handlers.

Lead qualification, RFQ lines, quoting and quote-to-order conversion.
Pricing itself happens outside the orchestrator; these handlers only record
what was submitted.
"""

from datetime import datetime
from typing import Any, Mapping

from ..stages import Action, Stage
from .base import ActionHandler
from .common import CancelHandler, SetPriorityHandler, register_handlers


QUOTE_RESPONSES = ("ACCEPTED", "REJECTED", "COUNTER")


def normalize_lines(lines) -> list:
    """
    Validate RFQ lines.

    Raises:
        ValueError: If a line is not a mapping or has a non-positive quantity
    """
    normalized = []
    for index, line in enumerate(lines or []):
        if not isinstance(line, Mapping):
            raise ValueError(f"line {index + 1} must be a mapping")
        try:
            quantity = float(line.get("quantity", 0))
        except (TypeError, ValueError):
            raise ValueError(f"line {index + 1} has an invalid quantity") from None
        if quantity <= 0:
            raise ValueError(f"line {index + 1} must have a positive quantity")
        normalized.append({**dict(line), "line": index + 1, "quantity": quantity})
    return normalized


class QualifyLeadHandler(ActionHandler):
    """Handler for LEAD --QUALIFY--> RFQ."""

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        contact = dict(action_payload.get("contact") or self.section(snapshot, "contact"))
        if not (contact.get("company_name") or contact.get("email")):
            return self.fail("Contact requires a company_name or email")

        delta = {
            "contact": contact,
            "lead": {
                "qualified": True,
                "source": str(snapshot.origin_channel),
                "qualified_at": datetime.now().isoformat(),
            },
        }

        rfq = action_payload.get("rfq")
        if isinstance(rfq, Mapping):
            try:
                lines = normalize_lines(rfq.get("lines"))
            except ValueError as e:
                return self.fail(str(e))
            delta["rfq"] = {**dict(rfq), "lines": lines}

        return self.ok(delta)


class RecordRfqLinesHandler(ActionHandler):
    """Handler for RFQ --RECORD_RFQ_LINES--> RFQ."""

    required_fields = ("lines",)

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        try:
            lines = normalize_lines(action_payload["lines"])
        except ValueError as e:
            return self.fail(str(e))

        rfq = {"lines": lines}
        if action_payload.get("requested_due_date"):
            rfq["requested_due_date"] = action_payload["requested_due_date"]
        return self.ok({"rfq": rfq})


def _quote_figures(action_payload: Mapping[str, Any]) -> dict:
    figures = {}
    for key in ("margin_percent", "total_price"):
        if action_payload.get(key) is not None:
            figures[key] = float(action_payload[key])
    return figures


class BuildQuoteHandler(ActionHandler):
    """Handler for RFQ --BUILD_QUOTE--> QUOTE."""

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        try:
            figures = _quote_figures(action_payload)
        except (TypeError, ValueError):
            return self.fail("margin_percent and total_price must be numbers")

        lines = self.section(snapshot, "rfq").get("lines") or []
        return self.ok({
            "quote": {
                "number": f"Q-{snapshot.id[:8].upper()}",
                "status": "DRAFT",
                "revision": 1,
                "line_count": len(lines),
                **figures,
            }
        })


class ReviseQuoteHandler(ActionHandler):
    """Handler for QUOTE --REVISE_QUOTE--> QUOTE."""

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        quote = self.section(snapshot, "quote")
        if quote.get("status") == "ACCEPTED":
            return self.fail("Accepted quotes cannot be revised")
        try:
            figures = _quote_figures(action_payload)
        except (TypeError, ValueError):
            return self.fail("margin_percent and total_price must be numbers")

        return self.ok({
            "quote": {
                "status": "DRAFT",
                "revision": int(quote.get("revision", 0)) + 1,
                **figures,
            }
        })


class RecordCustomerResponseHandler(ActionHandler):
    """Handler for QUOTE --RECORD_CUSTOMER_RESPONSE--> QUOTE."""

    required_fields = ("response",)

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        response = str(action_payload["response"]).strip().upper()
        if response not in QUOTE_RESPONSES:
            return self.fail(f"response must be one of {', '.join(QUOTE_RESPONSES)}")

        quote = self.section(snapshot, "quote")
        if quote.get("status") == "ACCEPTED":
            return self.fail("Quote has already been accepted")

        return self.ok({
            "quote": {
                "status": response,
                "responded_at": datetime.now().isoformat(),
                "customer_note": action_payload.get("note", ""),
            }
        })


class ConvertToOrderHandler(ActionHandler):
    """Handler for QUOTE --CONVERT_TO_ORDER--> ORDER."""

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        quote = self.section(snapshot, "quote")
        return self.ok({
            "order": {
                "number": f"SO-{snapshot.id[:8].upper()}",
                "status": "CREATED",
                "quote_number": quote.get("number"),
                "customer_po": action_payload.get("customer_po"),
            }
        })


def register(registry, graph):
    """Register commercial handlers for LEAD, RFQ and QUOTE."""
    cancel = CancelHandler()
    set_priority = SetPriorityHandler()
    handlers = {
        (Stage.LEAD, Action.QUALIFY): QualifyLeadHandler(),
        (Stage.LEAD, Action.DISQUALIFY): cancel,
        (Stage.LEAD, Action.SET_PRIORITY): set_priority,
        (Stage.RFQ, Action.BUILD_QUOTE): BuildQuoteHandler(),
        (Stage.RFQ, Action.RECORD_RFQ_LINES): RecordRfqLinesHandler(),
        (Stage.RFQ, Action.CANCEL): cancel,
        (Stage.RFQ, Action.SET_PRIORITY): set_priority,
        (Stage.QUOTE, Action.CONVERT_TO_ORDER): ConvertToOrderHandler(),
        (Stage.QUOTE, Action.RECORD_CUSTOMER_RESPONSE): RecordCustomerResponseHandler(),
        (Stage.QUOTE, Action.REVISE_QUOTE): ReviseQuoteHandler(),
        (Stage.QUOTE, Action.REJECT_QUOTE): cancel,
        (Stage.QUOTE, Action.SET_PRIORITY): set_priority,
    }
    register_handlers(registry, graph, handlers, owner="commercial")

"""
Fulfillment domain handlers: packing, shipping, invoicing and payment.
"""

from datetime import datetime
from typing import Any, Mapping

from ..stages import Action, Stage
from .base import ActionHandler
from .common import SetPriorityHandler, register_handlers


class BookShipmentHandler(ActionHandler):
    """Handler for PACK --BOOK_SHIPMENT--> SHIP."""

    required_fields = ("carrier",)

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        try:
            package_count = int(action_payload.get("package_count", 1))
            estimated_cost = float(action_payload.get("estimated_cost", 0.0))
        except (TypeError, ValueError):
            return self.fail("package_count and estimated_cost must be numbers")
        if package_count < 1:
            return self.fail("package_count must be at least 1")

        return self.ok({
            "packaging": {"package_count": package_count},
            "shipment": {
                "carrier": action_payload["carrier"],
                "service_level": action_payload.get("service_level", "GROUND"),
                "estimated_cost": estimated_cost,
                "booked_at": datetime.now().isoformat(),
            },
        })


class ConfirmDeliveryHandler(ActionHandler):
    """
    Handler for SHIP --CONFIRM_DELIVERY--> INVOICE.

    Issues the invoice for the accepted quote total.
    """

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        quote = self.section(snapshot, "quote")
        return self.ok({
            "shipment": {
                "tracking_number": action_payload.get("tracking_number"),
                "delivered_at": datetime.now().isoformat(),
            },
            "invoice": {
                "number": f"INV-{snapshot.id[:8].upper()}",
                "status": "SENT",
                "amount": quote.get("total_price"),
            },
        })


class RecordPaymentHandler(ActionHandler):
    """Handler for INVOICE --RECORD_PAYMENT--> ANALYTICS."""

    required_fields = ("amount",)

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        try:
            amount = float(action_payload["amount"])
        except (TypeError, ValueError):
            return self.fail("amount must be a number")
        if amount <= 0:
            return self.fail("amount must be positive")

        invoice = self.section(snapshot, "invoice")
        invoiced = invoice.get("amount")
        return self.ok({
            "invoice": {
                "status": "PAID",
                "paid_amount": amount,
                "paid_at": datetime.now().isoformat(),
            },
            "analytics": {
                "cycle_time_sec": snapshot.elapsed_time,
                "transitions": snapshot.committed_count,
                "balance": (float(invoiced) - amount) if invoiced is not None else None,
            },
        })


def register(registry, graph):
    """Register fulfillment handlers for PACK, SHIP and INVOICE."""
    set_priority = SetPriorityHandler()
    handlers = {
        (Stage.PACK, Action.BOOK_SHIPMENT): BookShipmentHandler(),
        (Stage.PACK, Action.SET_PRIORITY): set_priority,
        (Stage.SHIP, Action.CONFIRM_DELIVERY): ConfirmDeliveryHandler(),
        (Stage.SHIP, Action.SET_PRIORITY): set_priority,
        (Stage.INVOICE, Action.RECORD_PAYMENT): RecordPaymentHandler(),
        (Stage.INVOICE, Action.SET_PRIORITY): set_priority,
    }
    register_handlers(registry, graph, handlers, owner="fulfillment")

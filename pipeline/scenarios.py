"""
Scripted action sequences used to drive instances without a user.

A scenario maps a stage to the steps submitted while the instance sits at
that stage. Stages without steps fall back to the stage's primary action.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Hashable, Mapping, Optional

from domain.enums import Role
from orchestration.stages import Action, Stage


@dataclass(frozen=True)
class ScenarioStep:
    """One action submitted on behalf of a role."""

    action: str
    role: Hashable
    payload: dict = field(default_factory=dict)


def intake_payload(company_name: str = "Simulated Customer") -> dict:
    """Initial payload attached to a simulated instance at creation."""
    return {
        "contact": {
            "company_name": company_name,
            "email": "buyer@example.com",
        }
    }


def happy_path_scenario(today: Optional[date] = None, quote_total: float = 4800.0) -> Mapping:
    """
    Scenario that carries an instance from LEAD to ANALYTICS.

    Satisfies every guard on the way: RFQ lines are recorded at
    qualification, the quote is accepted before conversion, inventory is
    fully allocated before job release and a carrier is booked before
    delivery is confirmed.
    """
    today = today or date.today()
    due_date = (today + timedelta(days=21)).isoformat()

    S = ScenarioStep
    return {
        Stage.LEAD: [
            S(Action.QUALIFY, Role.SALES, {
                "rfq": {
                    "requested_due_date": due_date,
                    "lines": [
                        {"item": "PLATE-A36-0.25", "quantity": 10},
                        {"item": "BAR-1018-1.00", "quantity": 25},
                    ],
                }
            }),
        ],
        Stage.RFQ: [
            S(Action.BUILD_QUOTE, Role.CSR, {"margin_percent": 22.0, "total_price": quote_total}),
        ],
        Stage.QUOTE: [
            S(Action.RECORD_CUSTOMER_RESPONSE, Role.SALES, {"response": "ACCEPTED"}),
            S(Action.CONVERT_TO_ORDER, Role.CSR, {"customer_po": "PO-SIM"}),
        ],
        Stage.ORDER: [
            S(Action.PLAN, Role.OPS_MANAGER, {"planned_ship_date": due_date}),
        ],
        Stage.PLANNING: [
            S(Action.ALLOCATE_INVENTORY, Role.INVENTORY, {
                "allocations": [
                    {"line": 1, "requested": 10, "allocated": 10},
                    {"line": 2, "requested": 25, "allocated": 25},
                ]
            }),
            S(Action.RELEASE_JOB, Role.OPS_MANAGER),
        ],
        Stage.JOB: [
            S(Action.DISPATCH, Role.OPS_MANAGER, {"work_center": "SAW-01"}),
        ],
        Stage.SHOP_FLOOR: [
            S(Action.COMPLETE_WORK, Role.OPERATOR, {"operator": "simulation"}),
        ],
        Stage.QC: [
            S(Action.PASS_QC, Role.QC, {"inspector": "simulation"}),
        ],
        Stage.PACK: [
            S(Action.BOOK_SHIPMENT, Role.PACKAGING, {
                "carrier": "LTL Freight",
                "package_count": 2,
                "estimated_cost": 180.0,
            }),
        ],
        Stage.SHIP: [
            S(Action.CONFIRM_DELIVERY, Role.PACKAGING, {"tracking_number": "SIM-TRACK"}),
        ],
        Stage.INVOICE: [
            S(Action.RECORD_PAYMENT, Role.FINANCE, {"amount": quote_total}),
        ],
    }

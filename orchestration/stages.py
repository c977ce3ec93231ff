"""
Pipeline stages and the service-center workflow graph.

Lead -> RFQ -> Quote -> Order -> Planning -> Job -> Shop Floor -> QC ->
Pack -> Ship -> Invoice -> Analytics, with cancellation exits and the QC
rework loop.
"""

from enum import Enum
from typing import Any, Mapping

from domain.enums import Role
from .stage_graph import StageGraph, TransitionRule


class Stage(str, Enum):
    """
    All stages a pipeline instance can occupy.

    Stages represent positions in the workflow graph; legal moves between
    them are declared by ``build_service_center_graph``.
    """

    # Commercial
    LEAD = "LEAD"
    RFQ = "RFQ"
    QUOTE = "QUOTE"

    # Order execution
    ORDER = "ORDER"
    PLANNING = "PLANNING"

    # Production
    JOB = "JOB"
    SHOP_FLOOR = "SHOP_FLOOR"
    QC = "QC"

    # Fulfillment
    PACK = "PACK"
    SHIP = "SHIP"
    INVOICE = "INVOICE"

    # Terminal states
    ANALYTICS = "ANALYTICS"
    CANCELLED = "CANCELLED"

    def is_terminal(self) -> bool:
        """Check if this is a terminal stage."""
        return self in TERMINAL_STAGES

    def __str__(self) -> str:
        return self.value


TERMINAL_STAGES = frozenset({Stage.ANALYTICS, Stage.CANCELLED})

ENTRY_STAGE = Stage.LEAD


class Action(str, Enum):
    """Named actions that trigger transitions."""

    QUALIFY = "QUALIFY"
    DISQUALIFY = "DISQUALIFY"
    RECORD_RFQ_LINES = "RECORD_RFQ_LINES"
    BUILD_QUOTE = "BUILD_QUOTE"
    REVISE_QUOTE = "REVISE_QUOTE"
    RECORD_CUSTOMER_RESPONSE = "RECORD_CUSTOMER_RESPONSE"
    CONVERT_TO_ORDER = "CONVERT_TO_ORDER"
    REJECT_QUOTE = "REJECT_QUOTE"
    PLAN = "PLAN"
    ALLOCATE_INVENTORY = "ALLOCATE_INVENTORY"
    RELEASE_JOB = "RELEASE_JOB"
    DISPATCH = "DISPATCH"
    COMPLETE_WORK = "COMPLETE_WORK"
    PASS_QC = "PASS_QC"
    REJECT_QC = "REJECT_QC"
    BOOK_SHIPMENT = "BOOK_SHIPMENT"
    CONFIRM_DELIVERY = "CONFIRM_DELIVERY"
    RECORD_PAYMENT = "RECORD_PAYMENT"
    SET_PRIORITY = "SET_PRIORITY"
    CANCEL = "CANCEL"

    def __str__(self) -> str:
        return self.value


# ----------------------------------------------------------------------
# Guards (pure predicates over the accumulated payload)
# ----------------------------------------------------------------------

def _section(payload: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, Mapping) else {}


def rfq_has_lines(payload: Mapping[str, Any]) -> bool:
    return bool(_section(payload, "rfq").get("lines"))


def quote_accepted(payload: Mapping[str, Any]) -> bool:
    return _section(payload, "quote").get("status") == "ACCEPTED"


def inventory_allocated(payload: Mapping[str, Any]) -> bool:
    return _section(payload, "allocation").get("complete") is True


def carrier_booked(payload: Mapping[str, Any]) -> bool:
    return bool(_section(payload, "shipment").get("carrier"))


def invoice_issued(payload: Mapping[str, Any]) -> bool:
    return bool(_section(payload, "invoice").get("number"))


# ----------------------------------------------------------------------
# Role impacts (which roles care about an instance sitting at a stage)
# ----------------------------------------------------------------------

ROLE_IMPACTS = {
    Stage.LEAD: (Role.SALES, Role.CSR),
    Stage.RFQ: (Role.CSR, Role.SALES),
    Stage.QUOTE: (Role.SALES, Role.EXECUTIVE),
    Stage.ORDER: (Role.CSR,),
    Stage.PLANNING: (Role.OPS_MANAGER, Role.INVENTORY),
    Stage.JOB: (Role.OPS_MANAGER,),
    Stage.SHOP_FLOOR: (Role.OPS_MANAGER, Role.OPERATOR),
    Stage.QC: (Role.QC,),
    Stage.PACK: (Role.PACKAGING,),
    Stage.SHIP: (Role.PACKAGING,),
    Stage.INVOICE: (Role.FINANCE,),
    Stage.ANALYTICS: (Role.EXECUTIVE,),
}


def roles_impacted(stage: Stage) -> tuple:
    """Roles whose work queues are affected by an instance at ``stage``."""
    return ROLE_IMPACTS.get(stage, ())


# ----------------------------------------------------------------------
# Graph declaration
# ----------------------------------------------------------------------

# Role allowed to change priority, by stage
PRIORITY_OWNERS = {
    Stage.LEAD: Role.SALES,
    Stage.RFQ: Role.SALES,
    Stage.QUOTE: Role.SALES,
    Stage.ORDER: Role.OPS_MANAGER,
    Stage.PLANNING: Role.OPS_MANAGER,
    Stage.JOB: Role.OPS_MANAGER,
    Stage.SHOP_FLOOR: Role.OPS_MANAGER,
    Stage.QC: Role.OPS_MANAGER,
    Stage.PACK: Role.OPS_MANAGER,
    Stage.SHIP: Role.OPS_MANAGER,
    Stage.INVOICE: Role.FINANCE,
}


def service_center_rules() -> list[TransitionRule]:
    """
    Transition rules of the service-center workflow.

    The first rule per stage is the happy-path (primary) action.
    """
    R = TransitionRule
    rules = [
        # Commercial
        R(Stage.LEAD, Action.QUALIFY, Stage.RFQ, Role.SALES),
        R(Stage.LEAD, Action.DISQUALIFY, Stage.CANCELLED, Role.SALES),

        R(Stage.RFQ, Action.BUILD_QUOTE, Stage.QUOTE, Role.CSR,
          guard=rfq_has_lines, guard_description="RFQ must have at least one line"),
        R(Stage.RFQ, Action.RECORD_RFQ_LINES, Stage.RFQ, Role.CSR),
        R(Stage.RFQ, Action.CANCEL, Stage.CANCELLED, Role.CSR),

        R(Stage.QUOTE, Action.CONVERT_TO_ORDER, Stage.ORDER, Role.CSR,
          guard=quote_accepted, guard_description="Quote must be accepted by the customer"),
        R(Stage.QUOTE, Action.RECORD_CUSTOMER_RESPONSE, Stage.QUOTE, Role.SALES),
        R(Stage.QUOTE, Action.REVISE_QUOTE, Stage.QUOTE, Role.SALES),
        R(Stage.QUOTE, Action.REJECT_QUOTE, Stage.CANCELLED, Role.SALES),

        # Order execution
        R(Stage.ORDER, Action.PLAN, Stage.PLANNING, Role.OPS_MANAGER),
        R(Stage.ORDER, Action.CANCEL, Stage.CANCELLED, Role.CSR),

        R(Stage.PLANNING, Action.RELEASE_JOB, Stage.JOB, Role.OPS_MANAGER,
          guard=inventory_allocated, guard_description="All lines must be allocated"),
        R(Stage.PLANNING, Action.ALLOCATE_INVENTORY, Stage.PLANNING, Role.INVENTORY),
        R(Stage.PLANNING, Action.CANCEL, Stage.CANCELLED, Role.OPS_MANAGER),

        # Production
        R(Stage.JOB, Action.DISPATCH, Stage.SHOP_FLOOR, Role.OPS_MANAGER),
        R(Stage.JOB, Action.CANCEL, Stage.CANCELLED, Role.OPS_MANAGER),

        R(Stage.SHOP_FLOOR, Action.COMPLETE_WORK, Stage.QC, Role.OPERATOR),

        R(Stage.QC, Action.PASS_QC, Stage.PACK, Role.QC),
        R(Stage.QC, Action.REJECT_QC, Stage.SHOP_FLOOR, Role.QC),

        # Fulfillment
        R(Stage.PACK, Action.BOOK_SHIPMENT, Stage.SHIP, Role.PACKAGING),

        R(Stage.SHIP, Action.CONFIRM_DELIVERY, Stage.INVOICE, Role.PACKAGING,
          guard=carrier_booked, guard_description="A carrier must be booked"),

        R(Stage.INVOICE, Action.RECORD_PAYMENT, Stage.ANALYTICS, Role.FINANCE,
          guard=invoice_issued, guard_description="An invoice number must be issued"),
    ]

    for stage, role in PRIORITY_OWNERS.items():
        rules.append(R(stage, Action.SET_PRIORITY, stage, role))

    return rules


def build_service_center_graph() -> StageGraph:
    """Build and validate the service-center workflow graph."""
    return StageGraph(
        rules=service_center_rules(),
        entry_stage=ENTRY_STAGE,
        terminal_stages=TERMINAL_STAGES,
    )

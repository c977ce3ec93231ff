"""
Operations domain handlers.

Planning, inventory allocation, job release, shop floor execution and QC.
"""

from datetime import datetime
from typing import Any, Mapping

from ..stages import Action, Stage
from .base import ActionHandler
from .common import CancelHandler, SetPriorityHandler, register_handlers


class PlanOrderHandler(ActionHandler):
    """Handler for ORDER --PLAN--> PLANNING."""

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        lines = self.section(snapshot, "rfq").get("lines") or []
        return self.ok({
            "planning": {
                "line_count": len(lines),
                "planned_ship_date": action_payload.get("planned_ship_date"),
                "planned_at": datetime.now().isoformat(),
            },
            "order": {"status": "PLANNED"},
        })


class AllocateInventoryHandler(ActionHandler):
    """
    Handler for PLANNING --ALLOCATE_INVENTORY--> PLANNING.

    Each allocation entry is ``{"line": n, "requested": q, "allocated": q}``.
    The allocation is complete only when every line is fully covered.
    """

    required_fields = ("allocations",)

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        allocations = action_payload["allocations"]
        if not isinstance(allocations, (list, tuple)) or not allocations:
            return self.fail("allocations must be a non-empty list")

        lines = []
        shortages = []
        for entry in allocations:
            try:
                requested = float(entry["requested"])
                allocated = float(entry.get("allocated", 0))
            except (KeyError, TypeError, ValueError):
                return self.fail(f"Invalid allocation entry: {entry!r}")

            line = {"line": entry.get("line"), "requested": requested, "allocated": allocated}
            lines.append(line)
            if allocated < requested:
                shortages.append({**line, "short": requested - allocated})

        return self.ok({
            "allocation": {
                "lines": lines,
                "shortages": shortages,
                "complete": not shortages,
            }
        })


class ReleaseJobHandler(ActionHandler):
    """Handler for PLANNING --RELEASE_JOB--> JOB."""

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        return self.ok({
            "job": {
                "number": f"JOB-{snapshot.id[:8].upper()}",
                "status": "RELEASED",
                "rework_count": 0,
                "released_at": datetime.now().isoformat(),
            }
        })


class DispatchJobHandler(ActionHandler):
    """Handler for JOB --DISPATCH--> SHOP_FLOOR."""

    required_fields = ("work_center",)

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        return self.ok({
            "job": {
                "status": "DISPATCHED",
                "work_center": action_payload["work_center"],
                "dispatched_at": datetime.now().isoformat(),
            }
        })


class CompleteWorkHandler(ActionHandler):
    """Handler for SHOP_FLOOR --COMPLETE_WORK--> QC."""

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        job = {"status": "WORK_COMPLETE", "completed_at": datetime.now().isoformat()}
        if action_payload.get("operator"):
            job["operator"] = action_payload["operator"]
        return self.ok({"job": job})


class PassQcHandler(ActionHandler):
    """Handler for QC --PASS_QC--> PACK."""

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        return self.ok({
            "qc": {
                "result": "PASS",
                "inspector": action_payload.get("inspector"),
                "inspected_at": datetime.now().isoformat(),
            },
            "job": {"status": "COMPLETED"},
        })


class RejectQcHandler(ActionHandler):
    """Handler for QC --REJECT_QC--> SHOP_FLOOR, sending the job back for rework."""

    required_fields = ("reason",)

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        rework_count = int(self.section(snapshot, "job").get("rework_count", 0)) + 1
        return self.ok({
            "qc": {
                "result": "REJECT",
                "reason": action_payload["reason"],
                "inspector": action_payload.get("inspector"),
                "inspected_at": datetime.now().isoformat(),
            },
            "job": {"status": "REWORK", "rework_count": rework_count},
        })


def register(registry, graph):
    """Register operations handlers for ORDER through QC."""
    cancel = CancelHandler()
    set_priority = SetPriorityHandler()
    handlers = {
        (Stage.ORDER, Action.PLAN): PlanOrderHandler(),
        (Stage.ORDER, Action.CANCEL): cancel,
        (Stage.ORDER, Action.SET_PRIORITY): set_priority,
        (Stage.PLANNING, Action.RELEASE_JOB): ReleaseJobHandler(),
        (Stage.PLANNING, Action.ALLOCATE_INVENTORY): AllocateInventoryHandler(),
        (Stage.PLANNING, Action.CANCEL): cancel,
        (Stage.PLANNING, Action.SET_PRIORITY): set_priority,
        (Stage.JOB, Action.DISPATCH): DispatchJobHandler(),
        (Stage.JOB, Action.CANCEL): cancel,
        (Stage.JOB, Action.SET_PRIORITY): set_priority,
        (Stage.SHOP_FLOOR, Action.COMPLETE_WORK): CompleteWorkHandler(),
        (Stage.SHOP_FLOOR, Action.SET_PRIORITY): set_priority,
        (Stage.QC, Action.PASS_QC): PassQcHandler(),
        (Stage.QC, Action.REJECT_QC): RejectQcHandler(),
        (Stage.QC, Action.SET_PRIORITY): set_priority,
    }
    register_handlers(registry, graph, handlers, owner="operations")

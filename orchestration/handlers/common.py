"""
Handlers shared by every domain: priority changes and cancellation.
"""

from datetime import datetime
from typing import Any, Mapping

from domain.enums import Priority
from .base import ActionHandler


class SetPriorityHandler(ActionHandler):
    """
    Handler for SET_PRIORITY.

    Priority only ever changes through this explicit, audited action,
    including when the advisory engine suggested the change.
    """

    required_fields = ("priority",)

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        try:
            priority = Priority.parse(action_payload["priority"])
        except ValueError as e:
            return self.fail(str(e))

        if priority == snapshot.priority:
            return self.fail(f"Priority is already {priority}")

        return self.ok(
            {
                "priority_change": {
                    "from": str(snapshot.priority),
                    "to": str(priority),
                    "reason": action_payload.get("reason", ""),
                    "changed_at": datetime.now().isoformat(),
                }
            },
            priority=priority,
        )


class CancelHandler(ActionHandler):
    """Handler for actions that end in the cancellation stage."""

    def handle(self, snapshot, action_payload: Mapping[str, Any]):
        return self.ok({
            "cancellation": {
                "from_stage": str(snapshot.current_stage),
                "reason": action_payload.get("reason") or "unspecified",
                "cancelled_at": datetime.now().isoformat(),
            }
        })


def register_handlers(registry, graph, handlers: dict, owner: str):
    """
    Register a module's handlers, taking each required role from the graph.

    Args:
        registry: HandlerRegistry to populate
        graph: StageGraph providing required roles
        handlers: Mapping of (stage, action) -> handler
        owner: Domain module name, for duplicate diagnostics
    """
    for (stage, action), handler in handlers.items():
        registry.register(
            stage,
            action,
            handler,
            graph.required_role(stage, action),
            owner=owner,
        )

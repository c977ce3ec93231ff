"""
Stub graph and handlers shared by the orchestrator tests.
"""

from domain.results import HandlerSuccess
from orchestration import HandlerRegistry, StageGraph, TransitionRule


def ready(payload):
    return payload.get("ready") is True


def toy_rules():
    """
    DRAFT --SUBMIT--> REVIEW --APPROVE--> DONE (guarded by payload 'ready')
    DRAFT --EDIT--> DRAFT
    DRAFT --DISCARD--> DISCARDED
    REVIEW --RETURN--> DRAFT
    """
    return [
        TransitionRule("DRAFT", "SUBMIT", "REVIEW", "WRITER"),
        TransitionRule("DRAFT", "EDIT", "DRAFT", "WRITER"),
        TransitionRule("DRAFT", "DISCARD", "DISCARDED", "EDITOR"),
        TransitionRule("REVIEW", "APPROVE", "DONE", "EDITOR",
                       guard=ready, guard_description="document must be ready"),
        TransitionRule("REVIEW", "RETURN", "DRAFT", "EDITOR"),
    ]


def build_toy_graph():
    return StageGraph(toy_rules(), entry_stage="DRAFT", terminal_stages={"DONE", "DISCARDED"})


def stub_handler(action):
    """Handler that records the action it ran and echoes the submitted payload."""
    def handler(snapshot, payload):
        return HandlerSuccess(payload_delta={"visited": {action: True}, **dict(payload)})
    return handler


def build_toy_registry(graph, overrides=None, skip=()):
    overrides = overrides or {}
    registry = HandlerRegistry()
    for rule in graph.rules():
        if rule.key in skip:
            continue
        handler = overrides.get(rule.key, stub_handler(rule.action))
        registry.register(rule.from_stage, rule.action, handler, rule.required_role, owner="tests")
    return registry

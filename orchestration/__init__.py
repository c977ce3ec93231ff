"""
Orchestration layer for the service-center pipeline.

Declarative stage graph, per-instance serialized transitions, and a handler
registry keyed by (stage, action).
"""

from .stage_graph import StageGraph, TransitionRule
from .stages import Action, Stage, build_service_center_graph, roles_impacted
from .context import PipelineContext
from .store import InstanceStore
from .registry import HandlerRegistry
from .orchestrator import PipelineOrchestrator

__all__ = [
    "Action",
    "HandlerRegistry",
    "InstanceStore",
    "PipelineContext",
    "PipelineOrchestrator",
    "Stage",
    "StageGraph",
    "TransitionRule",
    "build_service_center_graph",
    "roles_impacted",
]

"""
Domain models for the pipeline orchestrator.

Pure data structures with validation, no orchestration logic.
"""

from .enums import Role, OriginChannel, Priority
from .records import TransitionRecord, Outcome, CREATED_ACTION
from .recommendations import Recommendation, Severity, SuggestedAction
from .results import HandlerSuccess, HandlerFailure, HandlerResult, TransitionResult
from .config import (
    PipelineConfig,
    ExecutionConfig,
    AdvisoryConfig,
    SimulationConfig,
)

__all__ = [
    "Role",
    "OriginChannel",
    "Priority",
    "TransitionRecord",
    "Outcome",
    "CREATED_ACTION",
    "Recommendation",
    "Severity",
    "SuggestedAction",
    "HandlerSuccess",
    "HandlerFailure",
    "HandlerResult",
    "TransitionResult",
    "PipelineConfig",
    "ExecutionConfig",
    "AdvisoryConfig",
    "SimulationConfig",
]

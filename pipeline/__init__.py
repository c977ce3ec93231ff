"""
Pipeline execution layer.

High-level pipeline executor that wires together all components.
"""

from .executor import AdvanceReport, PipelineExecutor
from .scenarios import ScenarioStep, happy_path_scenario

__all__ = ["AdvanceReport", "PipelineExecutor", "ScenarioStep", "happy_path_scenario"]

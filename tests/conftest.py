"""
Shared fixtures: orchestrators over a small stub graph, and a fully wired
service-center executor.
"""

import pytest

from domain.config import AdvisoryConfig, ExecutionConfig, PipelineConfig, SimulationConfig
from orchestration import PipelineOrchestrator
from pipeline.executor import PipelineExecutor
from helpers import build_toy_graph, build_toy_registry


@pytest.fixture
def toy_graph():
    return build_toy_graph()


@pytest.fixture
def make_orchestrator():
    """
    Factory for orchestrators over the toy graph.

    Usage: make_orchestrator(overrides={("DRAFT", "SUBMIT"): fn}, advisory=..., handler_timeout_sec=...)
    """
    created = []

    def factory(overrides=None, advisory=None, skip=(), **execution):
        graph = build_toy_graph()
        registry = build_toy_registry(graph, overrides, skip)
        orchestrator = PipelineOrchestrator(
            graph, registry, advisory=advisory, config=ExecutionConfig(**execution)
        )
        created.append(orchestrator)
        return orchestrator

    yield factory

    for orchestrator in created:
        orchestrator.shutdown(wait=False)


@pytest.fixture
def pipeline_config():
    return PipelineConfig(
        execution=ExecutionConfig(handler_timeout_sec=5.0),
        advisory=AdvisoryConfig(enabled=True),
        simulation=SimulationConfig(instances=4, threads=2, show_progress_bar=False),
        run_name="tests",
    )


@pytest.fixture
def executor(pipeline_config):
    executor = PipelineExecutor(pipeline_config)
    yield executor
    executor.shutdown()

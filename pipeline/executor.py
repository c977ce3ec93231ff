"""
PipelineExecutor - High-level entry point for the service-center pipeline.

Wires together the stage graph, the domain handler modules, the advisory
side channel and the orchestrator from a PipelineConfig, and drives
instances through scripted or primary-action sequences.
"""

import logging
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from tqdm import tqdm

from domain.config import PipelineConfig
from domain.results import TransitionResult
from orchestration import (
    HandlerRegistry,
    PipelineContext,
    PipelineOrchestrator,
    build_service_center_graph,
    roles_impacted,
)
from orchestration.handlers import register_all
from services.advisory import AdvisoryEngine, RuleBasedAdvisoryEngine, build_adapter
from .scenarios import ScenarioStep, happy_path_scenario, intake_payload


# Reasons an advance loop stops
STOP_TERMINAL = "terminal"
STOP_FAILED = "failed"
STOP_APPROVAL = "approval_required"
STOP_MAX_STEPS = "max_steps"


@dataclass
class AdvanceReport:
    """Outcome of driving one instance through a sequence of actions."""

    instance_id: str
    final_stage: object = None
    stop_reason: Optional[str] = None
    results: List[TransitionResult] = field(default_factory=list)

    @property
    def steps(self) -> int:
        return len(self.results)

    @property
    def last_error(self) -> Optional[str]:
        failed = [r for r in self.results if not r.ok]
        return failed[-1].reason if failed else None

    def to_dict(self) -> dict:
        return {
            "instance_id": self.instance_id,
            "final_stage": getattr(self.final_stage, "value", self.final_stage),
            "stop_reason": self.stop_reason,
            "steps": self.steps,
            "last_error": self.last_error,
        }


class PipelineExecutor:
    """
    High-level pipeline executor.

    Responsible for:
    1. Building the graph and registry with dependency injection
    2. Starting the advisory adapter when enabled
    3. Driving instances (auto-advance, scenarios, simulation)
    4. Summarizing instances for output
    """

    def __init__(self, config: PipelineConfig, advisory_engine: Optional[AdvisoryEngine] = None):
        """
        Initialize executor.

        Args:
            config: Validated pipeline configuration
            advisory_engine: Engine to use instead of the rule-based default

        Raises:
            ConfigurationError: If the graph or handler wiring is invalid
        """
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)

        self.graph = build_service_center_graph()
        self.registry = self._build_registry()
        self.advisory = self._build_advisory(advisory_engine)
        self.orchestrator = PipelineOrchestrator(
            self.graph,
            self.registry,
            advisory=self.advisory,
            config=config.execution,
        )
        self.logger.info(
            f"Pipeline ready: {len(self.graph)} transitions, {len(self.registry)} handlers, "
            f"advisory {'enabled' if self.advisory else 'disabled'}"
        )

    # ------------------------------------------------------------------
    # Driving instances
    # ------------------------------------------------------------------

    def auto_advance(
        self,
        instance_id: str,
        scenario: Optional[Mapping] = None,
        max_steps: Optional[int] = None,
    ) -> AdvanceReport:
        """
        Drive an instance forward until it cannot or should not move.

        At each stage the scenario's steps are submitted in order; stages the
        scenario does not cover use the primary action, acting as the rule's
        required role with an empty payload.

        Stops on a terminal stage, the first failed action, a
        ``requires_approval`` flag in the payload, or after ``max_steps``
        submitted actions.

        Args:
            instance_id: Instance to drive
            scenario: Optional mapping of stage -> list of ScenarioStep
            max_steps: Action budget (default: simulation.max_steps)

        Returns:
            AdvanceReport with every submitted action's result
        """
        scenario = scenario or {}
        max_steps = max_steps or self.config.simulation.max_steps
        report = AdvanceReport(instance_id=instance_id)

        while True:
            snapshot = self.orchestrator.get_instance(instance_id)
            report.final_stage = snapshot.current_stage

            if self.graph.is_terminal(snapshot.current_stage):
                report.stop_reason = STOP_TERMINAL
                break
            if snapshot.payload.get("requires_approval"):
                report.stop_reason = STOP_APPROVAL
                break

            steps = scenario.get(snapshot.current_stage) or self._primary_steps(snapshot)
            for step in steps:
                if report.steps >= max_steps:
                    report.stop_reason = STOP_MAX_STEPS
                    break
                result = self.orchestrator.submit_action(
                    instance_id, step.action, step.role, step.payload
                )
                report.results.append(result)
                if not result.ok:
                    report.stop_reason = STOP_FAILED
                    break

            if report.stop_reason is not None:
                report.final_stage = self.orchestrator.get_instance(instance_id).current_stage
                break

        self.logger.debug(f"Instance {instance_id} stopped at {report.final_stage}: {report.stop_reason}")
        return report

    def run_instance(
        self,
        channel=None,
        priority=None,
        scenario: Optional[Mapping] = None,
        initial_payload: Optional[Mapping] = None,
    ) -> AdvanceReport:
        """Create an instance and drive it through ``scenario`` (happy path by default)."""
        sim = self.config.simulation
        instance_id = self.orchestrator.create_instance(
            channel or sim.channel,
            initial_payload if initial_payload is not None else intake_payload(),
            priority=priority or sim.priority,
        )
        return self.auto_advance(instance_id, scenario or happy_path_scenario())

    def simulate(self, instances: Optional[int] = None, channel=None, priority=None) -> dict:
        """
        Run many instances concurrently through the happy path.

        Args:
            instances: Number of instances (default: simulation.instances)
            channel: Origin channel (default: simulation.channel)
            priority: Priority (default: simulation.priority)

        Returns:
            JSON-friendly summary of the run
        """
        sim = self.config.simulation
        total = instances or sim.instances
        start_time = time.time()
        self.logger.info(f"Simulating {total} instance(s) with {sim.threads} thread(s)")

        reports: List[AdvanceReport] = []
        errors = 0
        scenario = happy_path_scenario()

        with ThreadPoolExecutor(max_workers=sim.threads) as executor:
            futures = [
                executor.submit(self.run_instance, channel, priority, scenario)
                for _ in range(total)
            ]

            with self._create_progress_bar(total) as pbar:
                for future in as_completed(futures):
                    try:
                        reports.append(future.result())
                    except Exception as e:
                        errors += 1
                        self.logger.warning(f"Simulated instance failed: {e}", exc_info=True)
                    finally:
                        pbar.update(1)

        if self.advisory is not None:
            self.advisory.drain()

        summary = {
            "run_name": self.config.run_name,
            "instances": total,
            "errors": errors,
            "elapsed_sec": round(time.time() - start_time, 3),
            "final_stages": dict(Counter(
                getattr(r.final_stage, "value", str(r.final_stage)) for r in reports
            )),
            "stop_reasons": dict(Counter(r.stop_reason for r in reports)),
            "actions_submitted": sum(r.steps for r in reports),
            "rejected_actions": sum(1 for r in reports for res in r.results if not res.ok),
            "recommendations": sum(
                len(self.orchestrator.get_recommendations(r.instance_id)) for r in reports
            ),
        }
        if self.advisory is not None:
            summary["advisory"] = self.advisory.get_stats()

        self._log_results(summary)
        return summary

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def summarize(self, snapshot: PipelineContext, last_n: int = 5) -> dict:
        """
        JSON-friendly summary of an instance snapshot.

        Args:
            snapshot: Snapshot returned by the orchestrator
            last_n: Number of trailing transitions to include

        Returns:
            Dict with status, last transitions, role impacts, rejections
            and recommendations
        """
        summary = snapshot.get_summary()
        summary.update({
            "terminal": self.graph.is_terminal(snapshot.current_stage),
            "next_actions": self.graph.actions_from(snapshot.current_stage),
            "roles_impacted": [str(role) for role in roles_impacted(snapshot.current_stage)],
            "last_transitions": [r.to_dict() for r in snapshot.history[-last_n:]],
            "rejections": [r.to_dict() for r in snapshot.history if not r.committed],
            "recommendations": [
                rec.to_dict() for rec in self.orchestrator.get_recommendations(snapshot.id)
            ],
        })
        return summary

    def describe_graph(self) -> dict:
        return self.graph.describe()

    def shutdown(self):
        self.orchestrator.shutdown()

    # ------------------------------------------------------------------
    # Wiring internals
    # ------------------------------------------------------------------

    def _build_registry(self) -> HandlerRegistry:
        self.logger.info("Registering domain handlers")
        registry = HandlerRegistry()
        register_all(registry, self.graph)
        return registry

    def _build_advisory(self, engine: Optional[AdvisoryEngine]):
        advisory_config = self.config.advisory
        if not advisory_config.enabled:
            return None
        return build_adapter(
            engine or RuleBasedAdvisoryEngine(),
            queue_size=advisory_config.queue_size,
            workers=advisory_config.workers,
        )

    def _primary_steps(self, snapshot: PipelineContext) -> List[ScenarioStep]:
        rule = self.graph.primary_action(snapshot.current_stage)
        return [ScenarioStep(rule.action, rule.required_role)]

    def _create_progress_bar(self, total: int):
        return tqdm(
            total=total,
            desc="Simulating instances",
            unit="instance",
            dynamic_ncols=True,
            mininterval=1,
            disable=not self.config.simulation.show_progress_bar,
        )

    def _log_results(self, summary: dict):
        self.logger.info("=" * 60)
        self.logger.info("Simulation Summary")
        self.logger.info("=" * 60)

        for key, value in summary.items():
            self.logger.info(f"{key:30s}: {value}")

        self.logger.info("=" * 60)

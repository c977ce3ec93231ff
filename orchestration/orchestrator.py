"""
Pipeline orchestrator.

The only component allowed to change a pipeline instance. Validates each
action against the stage graph, checks the caller's role, runs the guard and
the registered handler, then commits or rejects and records the outcome.
"""

import logging
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Any, Hashable, List, Mapping, Optional, Tuple

from domain.config import ExecutionConfig
from domain.enums import OriginChannel, Priority, Role
from domain.errors import (
    ActionCancelledError,
    GuardNotSatisfiedError,
    HandlerExecutionError,
    HandlerNotRegisteredError,
    InstanceNotFoundError,
    InstanceTerminalError,
    InvalidPayloadError,
    InvalidTransitionError,
    RoleNotAuthorizedError,
    TransitionError,
)
from domain.recommendations import Recommendation
from domain.records import CREATED_ACTION, Outcome, TransitionRecord
from domain.results import HandlerFailure, HandlerSuccess, TransitionResult
from services.advisory.adapter import AdvisoryAdapter
from .context import PipelineContext, freeze_payload
from .registry import HandlerRegistry, Registration
from .stage_graph import StageGraph, TransitionRule, action_name
from .store import InstanceLock, InstanceStore


def coerce_role(role) -> Hashable:
    """Map role names onto Role members; leave other role types as given."""
    if isinstance(role, Role):
        return role
    if isinstance(role, str):
        try:
            return Role(role.strip().upper())
        except ValueError:
            return role.strip().upper()
    return role


def coerce_channel(channel) -> OriginChannel:
    if isinstance(channel, OriginChannel):
        return channel
    try:
        return OriginChannel(str(channel).strip().upper())
    except ValueError:
        raise ValueError(f"Unknown origin channel: {channel!r}") from None


class PipelineOrchestrator:
    """
    State machine driver for pipeline instances.

    Instances are independent. Actions on the same instance are serialized
    by a per-instance lock held for the whole commit sequence; reads take
    the current immutable context version without locking.
    """

    def __init__(
        self,
        graph: StageGraph,
        registry: HandlerRegistry,
        advisory: Optional[AdvisoryAdapter] = None,
        config: Optional[ExecutionConfig] = None,
    ):
        """
        Initialize orchestrator.

        Validates the registry against the graph and freezes it, so a
        miswired process fails here instead of while serving actions.

        Args:
            graph: Validated stage graph
            registry: Handler registry populated by the domain modules
            advisory: Optional advisory adapter (fire-and-forget)
            config: Execution settings

        Raises:
            ConfigurationError: If registry and graph disagree
        """
        self.graph = graph
        self.registry = registry
        self.advisory = advisory
        self.config = config or ExecutionConfig()
        self.store = InstanceStore()
        self.logger = logging.getLogger(self.__class__.__name__)

        if self.config.strict_registry:
            self.registry.validate_against(self.graph)
        else:
            self.logger.warning("Registry validation disabled; missing handlers surface at runtime")
        self.registry.freeze()

        # Timed-out handlers cannot be stopped; futures still running after
        # their caller gave up are tracked so the pool can be replaced before
        # they occupy every worker.
        self._pool_lock = threading.Lock()
        self._abandoned = set()
        self._handler_pool = self._new_handler_pool()

    def _new_handler_pool(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(
            max_workers=self.config.handler_workers,
            thread_name_prefix="pipeline-handler",
        )

    # ------------------------------------------------------------------
    # Instance creation
    # ------------------------------------------------------------------

    def create_instance(
        self,
        origin_channel,
        initial_payload: Optional[Mapping[str, Any]] = None,
        priority=Priority.STANDARD,
    ) -> str:
        """
        Create an instance at the graph's entry stage.

        Args:
            origin_channel: OriginChannel or its name
            initial_payload: Intake data
            priority: Priority or its name

        Returns:
            New instance id
        """
        channel = coerce_channel(origin_channel)
        instance_id = str(uuid.uuid4())

        record = TransitionRecord(
            sequence=0,
            from_stage=None,
            to_stage=self.graph.entry_stage,
            action=CREATED_ACTION,
            actor_role=Role.SYSTEM,
            outcome=Outcome.COMMITTED,
        )
        context = PipelineContext(
            id=instance_id,
            origin_channel=channel,
            current_stage=self.graph.entry_stage,
            priority=Priority.parse(priority),
            payload=freeze_payload(initial_payload),
            created_at=record.timestamp,
            updated_at=record.timestamp,
        ).with_record(record)

        self.store.add(context)
        self.logger.info(f"Created instance {instance_id} at {self.graph.entry_stage} via {channel}")
        self._notify_advisory(context, record)
        return instance_id

    # ------------------------------------------------------------------
    # Action submission
    # ------------------------------------------------------------------

    def submit_action(
        self,
        instance_id: str,
        action,
        actor_role,
        payload: Optional[Mapping[str, Any]] = None,
        cancel_token: Optional[threading.Event] = None,
    ) -> TransitionResult:
        """
        Apply an action to an instance.

        Args:
            instance_id: Target instance
            action: Action name
            actor_role: Role of the caller
            payload: Data submitted with the action
            cancel_token: Event the caller may set to abandon the action
                while it waits for the instance lock

        Returns:
            TransitionResult; failures carry a typed error and, except for
            unknown instances and cancellation, a rejected audit record
        """
        name = action_name(action)
        role = coerce_role(actor_role)

        context = self.store.get(instance_id)
        if context is None:
            error = InstanceNotFoundError(f"Instance {instance_id} not found", instance_id)
            self.logger.warning(f"{name} rejected: {error.reason}")
            return TransitionResult.failure(instance_id, name, error)

        lock = self.store.lock_for(instance_id)
        try:
            with InstanceLock(lock, instance_id, cancel_token, self.config.lock_poll_interval_sec):
                result, committed = self._commit_sequence(instance_id, name, role, payload)
        except ActionCancelledError as error:
            self.logger.info(f"{name} on {instance_id} abandoned: {error.reason}")
            return TransitionResult.failure(instance_id, name, error, stage=context.current_stage)

        if committed is not None:
            self._notify_advisory(committed, result.record)
        return result

    def _commit_sequence(
        self,
        instance_id: str,
        name: str,
        role: Hashable,
        payload: Optional[Mapping[str, Any]],
    ) -> Tuple[TransitionResult, Optional[PipelineContext]]:
        """Steps run under the instance lock. Returns (result, committed context or None)."""
        context = self.store.get(instance_id)
        stage = context.current_stage

        if self.graph.is_terminal(stage):
            return self._reject(context, name, role, InstanceTerminalError(
                f"Instance is in terminal stage {stage}", instance_id
            )), None

        rule = self.graph.is_valid_transition(stage, name)
        if rule is None:
            return self._reject(context, name, role, InvalidTransitionError(
                f"No transition for action {name} from stage {stage}", instance_id
            )), None

        if rule.required_role != role:
            return self._reject(context, name, role, RoleNotAuthorizedError(
                f"Role {role} may not perform {name} at {stage}; requires {rule.required_role}",
                instance_id,
            )), None

        if not self._guard_allows(rule, context):
            detail = rule.guard_description or "precondition not met"
            return self._reject(context, name, role, GuardNotSatisfiedError(
                f"Cannot {name} at {stage}: {detail}", instance_id
            )), None

        if payload is not None and not isinstance(payload, Mapping):
            return self._reject(context, name, role, InvalidPayloadError(
                f"Payload for {name} must be a mapping, got {type(payload).__name__}", instance_id
            )), None

        registration = self.registry.resolve(stage, name)
        if registration is None:
            self.logger.error(f"No handler registered for ({stage}, {name})")
            return self._reject(context, name, role, HandlerNotRegisteredError(
                f"No handler registered for {name} at {stage}", instance_id
            )), None

        try:
            success = self._run_handler(registration, rule, context, freeze_payload(payload))
            to_stage = success.to_stage if success.to_stage is not None else rule.to_stage
            new_priority = Priority.parse(success.priority) if success.priority is not None else None
            record = TransitionRecord(
                sequence=context.next_sequence,
                from_stage=stage,
                to_stage=to_stage,
                action=name,
                actor_role=role,
                outcome=Outcome.COMMITTED,
            )
            updated = context.with_commit(to_stage, success.payload_delta, record, new_priority)
        except HandlerExecutionError as error:
            return self._reject(context, name, role, error), None
        except (TypeError, ValueError) as e:
            self.logger.error(f"Handler result for ({stage}, {name}) could not be applied: {e}", exc_info=True)
            return self._reject(context, name, role, HandlerExecutionError(
                f"Handler for {name} returned an invalid result", instance_id
            )), None

        self.store.put(updated)
        self.logger.info(f"Transition {instance_id}: {stage} --{name}--> {to_stage} [{role}]")

        result = TransitionResult.success(
            instance_id=instance_id,
            action=name,
            from_stage=stage,
            to_stage=to_stage,
            payload=updated.snapshot().payload,
            record=record,
        )
        return result, updated

    def _guard_allows(self, rule: TransitionRule, context: PipelineContext) -> bool:
        try:
            return rule.guard_allows(context.snapshot().payload)
        except Exception as e:
            self.logger.warning(f"Guard for ({rule.from_stage}, {rule.action}) raised: {e}", exc_info=True)
            return False

    def _run_handler(
        self,
        registration: Registration,
        rule: TransitionRule,
        context: PipelineContext,
        payload: Mapping[str, Any],
    ) -> HandlerSuccess:
        """
        Invoke the handler with a bounded wait.

        Raises:
            HandlerExecutionError: On failure result, exception, timeout,
                or a target stage that disagrees with the rule
        """
        name = rule.action
        timeout = self.config.handler_timeout_sec
        with self._pool_lock:
            future = self._handler_pool.submit(registration.invoke, context.snapshot(), payload)

        try:
            outcome = future.result(timeout=timeout)
        except FuturesTimeoutError:
            if not future.cancel():
                self._abandon(future)
            self.logger.error(f"Handler for ({rule.from_stage}, {name}) timed out after {timeout}s")
            raise HandlerExecutionError(
                f"Handler for {name} timed out after {timeout}s", context.id, timed_out=True
            )
        except Exception as e:
            self.logger.error(f"Handler for ({rule.from_stage}, {name}) raised: {e}", exc_info=True)
            raise HandlerExecutionError(f"Handler for {name} raised an error", context.id) from e

        if isinstance(outcome, HandlerFailure):
            raise HandlerExecutionError(outcome.reason, context.id)

        if not isinstance(outcome, HandlerSuccess):
            self.logger.error(
                f"Handler for ({rule.from_stage}, {name}) returned {type(outcome).__name__}"
            )
            raise HandlerExecutionError(f"Handler for {name} returned an invalid result", context.id)

        if outcome.to_stage is not None and outcome.to_stage != rule.to_stage:
            raise HandlerExecutionError(
                f"Handler for {name} proposed stage {outcome.to_stage}, rule allows {rule.to_stage}",
                context.id,
            )

        if not isinstance(outcome.payload_delta, Mapping):
            raise HandlerExecutionError(f"Handler for {name} returned an invalid payload", context.id)

        return outcome

    def _abandon(self, future):
        """
        Track a timed-out handler that is still running.

        Once abandoned handlers could hold every worker, later actions on
        other instances go to a fresh pool; the old one is left to finish
        its stuck handlers without accepting new work.
        """
        with self._pool_lock:
            self._abandoned = {f for f in self._abandoned if not f.done()}
            self._abandoned.add(future)
            if len(self._abandoned) < self.config.handler_workers:
                return
            self.logger.warning(
                f"{len(self._abandoned)} timed-out handler(s) still running; replacing handler pool"
            )
            stale = self._handler_pool
            self._handler_pool = self._new_handler_pool()
            self._abandoned = set()
        stale.shutdown(wait=False)

    def _reject(
        self,
        context: PipelineContext,
        name: str,
        role: Hashable,
        error: TransitionError,
    ) -> TransitionResult:
        """Append a rejected record and build the failure result."""
        record = TransitionRecord(
            sequence=context.next_sequence,
            from_stage=context.current_stage,
            to_stage=context.current_stage,
            action=name,
            actor_role=role,
            outcome=Outcome.REJECTED,
            rejection_reason=error.reason,
            error_kind=error.kind,
        )
        self.store.put(context.with_record(record))
        self.logger.warning(f"Rejected {name} on {context.id} [{error.kind}]: {error.reason}")
        return TransitionResult.failure(
            context.id, name, error, stage=context.current_stage, record=record
        )

    def _notify_advisory(self, context: PipelineContext, record: TransitionRecord):
        if self.advisory is None:
            return
        try:
            self.advisory.notify(context.snapshot(), record)
        except Exception as e:
            self.logger.warning(f"Advisory notification failed for {context.id}: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Read interfaces (lock-free)
    # ------------------------------------------------------------------

    def _require(self, instance_id: str) -> PipelineContext:
        context = self.store.get(instance_id)
        if context is None:
            raise InstanceNotFoundError(f"Instance {instance_id} not found", instance_id)
        return context

    def get_instance(self, instance_id: str) -> PipelineContext:
        """
        Return a read-only snapshot of an instance.

        Raises:
            InstanceNotFoundError: If the instance does not exist
        """
        return self._require(instance_id).snapshot()

    def get_history(self, instance_id: str) -> List[TransitionRecord]:
        """Audit trail of an instance, oldest first."""
        return list(self._require(instance_id).history)

    def get_recommendations(self, instance_id: str) -> List[Recommendation]:
        """Advisory recommendations for an instance (empty without advisory)."""
        self._require(instance_id)
        if self.advisory is None:
            return []
        return self.advisory.get_recommendations(instance_id)

    def next_actions(self, instance_id: str) -> List[str]:
        """Actions declared from the instance's current stage."""
        return self.graph.actions_from(self._require(instance_id).current_stage)

    def list_instances(self, stage=None, channel=None) -> List[PipelineContext]:
        """
        List instance snapshots, optionally filtered.

        Args:
            stage: Only instances currently at this stage
            channel: Only instances from this origin channel
        """
        wanted_channel = coerce_channel(channel) if channel is not None else None
        return [
            context.snapshot() for context in self.store
            if (stage is None or context.current_stage == stage)
            and (wanted_channel is None or context.origin_channel == wanted_channel)
        ]

    def get_status(self, instance_id: str) -> dict:
        """
        Status summary of an instance.

        Returns:
            Dict with summary fields, next actions and terminal flag
        """
        context = self._require(instance_id)
        status = context.get_summary()
        status.update({
            "terminal": self.graph.is_terminal(context.current_stage),
            "next_actions": self.graph.actions_from(context.current_stage),
            "recommendations": len(self.get_recommendations(instance_id)),
        })
        return status

    def shutdown(self, wait: bool = True):
        """Stop handler workers and the advisory adapter."""
        self._handler_pool.shutdown(wait=wait)
        if self.advisory is not None:
            self.advisory.stop()
        self.logger.info(f"Orchestrator shut down with {len(self.store)} instance(s)")

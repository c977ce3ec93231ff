"""
Pipeline context.

Immutable record of one in-flight unit of work. The orchestrator produces a
new version on every commit or rejection and swaps it into the store.
"""

import copy
from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, Hashable, Mapping, Optional

from domain.enums import OriginChannel, Priority
from domain.records import Outcome, TransitionRecord


def freeze_payload(payload: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    """Deep-copy a payload behind a read-only mapping."""
    return MappingProxyType(_thaw(payload or {}))


def thaw_payload(payload: Mapping[str, Any]) -> dict:
    """Deep-copy a (possibly read-only) payload into a plain dict."""
    return _thaw(payload)


def _thaw(value):
    if isinstance(value, Mapping):
        return {k: _thaw(v) for k, v in value.items()}
    return copy.deepcopy(value)


def merge_payload(base: Mapping[str, Any], delta: Mapping[str, Any]) -> dict:
    """
    Merge ``delta`` into ``base`` without mutating either.

    Nested mappings are merged key by key; any other value in ``delta``
    replaces the one in ``base``.
    """
    merged = thaw_payload(base)
    for key, value in (delta or {}).items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_payload(merged[key], value)
        else:
            merged[key] = _thaw(value)
    return merged


@dataclass(frozen=True)
class PipelineContext:
    """
    Immutable context of a pipeline instance.

    ``history`` is append-only: every new version extends the previous
    version's tuple and never rewrites earlier entries.
    """

    # Identity
    id: str
    origin_channel: OriginChannel

    # Current state
    current_stage: Hashable
    priority: Priority = Priority.STANDARD

    # Data accumulated across transitions
    payload: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))

    # Audit trail
    history: tuple[TransitionRecord, ...] = field(default_factory=tuple)

    # Timestamps
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def with_record(self, record: TransitionRecord) -> 'PipelineContext':
        """
        Return new context with a record appended to the history.

        Args:
            record: Record whose sequence must equal the current history length

        Returns:
            New PipelineContext with the extended history
        """
        if record.sequence != len(self.history):
            raise ValueError(
                f"record sequence {record.sequence} does not follow history length {len(self.history)}"
            )
        return replace(self, history=self.history + (record,), updated_at=record.timestamp)

    def with_commit(
        self,
        to_stage: Hashable,
        payload_delta: Mapping[str, Any],
        record: TransitionRecord,
        priority: Optional[Priority] = None,
    ) -> 'PipelineContext':
        """
        Return new context with a committed transition applied.

        Args:
            to_stage: Stage to move to
            payload_delta: Data merged into the payload
            record: Committed transition record
            priority: Optional new priority

        Returns:
            New PipelineContext with stage, payload, priority and history updated
        """
        merged = merge_payload(self.payload, payload_delta)
        updated = replace(
            self,
            current_stage=to_stage,
            payload=MappingProxyType(merged),
            priority=priority if priority is not None else self.priority,
        )
        return updated.with_record(record)

    def snapshot(self) -> 'PipelineContext':
        """
        Return a copy safe to hand to handlers.

        The payload is deep-copied so nested values cannot leak mutations
        back into the stored version.
        """
        return replace(self, payload=freeze_payload(self.payload))

    @property
    def next_sequence(self) -> int:
        return len(self.history)

    @property
    def committed_count(self) -> int:
        return sum(1 for r in self.history if r.outcome == Outcome.COMMITTED)

    @property
    def rejected_count(self) -> int:
        return sum(1 for r in self.history if r.outcome == Outcome.REJECTED)

    @property
    def elapsed_time(self) -> float:
        """Seconds between creation and the last update."""
        return (self.updated_at - self.created_at).total_seconds()

    def get_summary(self) -> dict:
        """
        Get summary of the instance.

        Returns:
            Dict with identity, stage and audit counters
        """
        return {
            "id": self.id,
            "stage": getattr(self.current_stage, "value", str(self.current_stage)),
            "origin_channel": str(self.origin_channel),
            "priority": str(self.priority),
            "transitions": len(self.history),
            "committed": self.committed_count,
            "rejected": self.rejected_count,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

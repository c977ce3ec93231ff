"""
Result types exchanged between handlers, the orchestrator and callers.
"""

from dataclasses import dataclass, field
from typing import Any, Hashable, Mapping, Optional, Union

from .enums import Priority
from .errors import TransitionError
from .records import TransitionRecord


@dataclass(frozen=True)
class HandlerSuccess:
    """
    Successful handler outcome.

    ``to_stage`` may be left as None, in which case the rule's target stage
    is used. If given it must equal the rule's target.
    """

    payload_delta: Mapping[str, Any] = field(default_factory=dict)
    to_stage: Optional[Hashable] = None
    priority: Optional[Priority] = None


@dataclass(frozen=True)
class HandlerFailure:
    """Explicit handler failure with a caller-safe reason."""

    reason: str

    def __post_init__(self):
        if not self.reason:
            raise ValueError("reason cannot be empty")


HandlerResult = Union[HandlerSuccess, HandlerFailure]


@dataclass(frozen=True)
class TransitionResult:
    """
    Discriminated outcome of ``submit_action``.

    Either ``ok`` with the new stage and merged payload, or a failure with a
    stable ``error_kind`` and ``reason``.
    """

    ok: bool
    instance_id: str
    action: str
    from_stage: Optional[Hashable] = None
    to_stage: Optional[Hashable] = None
    payload: Mapping[str, Any] = field(default_factory=dict)
    record: Optional[TransitionRecord] = None
    error: Optional[TransitionError] = None

    @classmethod
    def success(cls, instance_id: str, action: str, from_stage, to_stage,
                payload: Mapping[str, Any], record: TransitionRecord) -> "TransitionResult":
        return cls(
            ok=True,
            instance_id=instance_id,
            action=action,
            from_stage=from_stage,
            to_stage=to_stage,
            payload=payload,
            record=record,
        )

    @classmethod
    def failure(cls, instance_id: str, action: str, error: TransitionError,
                stage=None, record: Optional[TransitionRecord] = None) -> "TransitionResult":
        return cls(
            ok=False,
            instance_id=instance_id,
            action=action,
            from_stage=stage,
            to_stage=stage,
            record=record,
            error=error,
        )

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error else None

    @property
    def reason(self) -> Optional[str]:
        return self.error.reason if self.error else None

    def raise_for_error(self) -> "TransitionResult":
        """Re-raise the typed error for failed results, return self otherwise."""
        if self.error is not None:
            raise self.error
        return self

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "ok": self.ok,
            "instance_id": self.instance_id,
            "action": self.action,
            "from_stage": _value(self.from_stage),
            "to_stage": _value(self.to_stage),
            "error_kind": self.error_kind,
            "reason": self.reason,
        }


def _value(stage):
    return getattr(stage, "value", stage)

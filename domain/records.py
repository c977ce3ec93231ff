"""
Audit trail domain models.

Immutable records appended to a pipeline instance's history.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Hashable, Optional


CREATED_ACTION = "CREATE"


class Outcome(str, Enum):
    """Result of a transition attempt."""

    COMMITTED = "COMMITTED"
    REJECTED = "REJECTED"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TransitionRecord:
    """
    One entry in an instance's audit trail.

    ``sequence`` is the zero-based position in the history and is strictly
    increasing per instance. Rejected records keep ``to_stage`` equal to
    ``from_stage`` since no movement happened.
    """

    sequence: int
    from_stage: Optional[Hashable]
    to_stage: Hashable
    action: str
    actor_role: Hashable
    outcome: Outcome
    rejection_reason: Optional[str] = None
    error_kind: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        """Validate record consistency."""
        if self.sequence < 0:
            raise ValueError(f"sequence must be non-negative, got {self.sequence}")
        if not self.action:
            raise ValueError("action cannot be empty")
        if self.outcome == Outcome.REJECTED and not self.rejection_reason:
            raise ValueError("rejected records require a rejection_reason")
        if self.outcome == Outcome.COMMITTED and self.rejection_reason is not None:
            raise ValueError("committed records cannot carry a rejection_reason")

    @property
    def committed(self) -> bool:
        return self.outcome == Outcome.COMMITTED

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "sequence": self.sequence,
            "timestamp": self.timestamp.isoformat(),
            "from_stage": _name(self.from_stage),
            "to_stage": _name(self.to_stage),
            "action": self.action,
            "actor_role": _name(self.actor_role),
            "outcome": self.outcome.value,
            "rejection_reason": self.rejection_reason,
            "error_kind": self.error_kind,
        }


def _name(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, Enum):
        return str(value.value) if isinstance(value.value, str) else value.name
    return str(value)

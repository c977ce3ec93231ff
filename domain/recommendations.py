"""
Advisory recommendation models.

Recommendations are produced by the advisory engine and are never applied
to an instance automatically.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class Severity(Enum):
    """Risk severity, ordered by ``level``."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3
    CRITICAL = 4

    @property
    def level(self) -> int:
        return self.value

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class SuggestedAction:
    """An action the advisory engine proposes a human submit."""

    action: str
    payload: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"action": self.action, "payload": dict(self.payload)}


@dataclass(frozen=True)
class Recommendation:
    """Advisory output attached to a pipeline instance."""

    kind: str
    severity: Severity
    message: str
    suggested_action: Optional[SuggestedAction] = None
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not self.kind:
            raise ValueError("kind cannot be empty")
        if not self.message:
            raise ValueError("message cannot be empty")

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "label": "recommendation",
            "kind": self.kind,
            "severity": str(self.severity),
            "message": self.message,
            "suggested_action": self.suggested_action.to_dict() if self.suggested_action else None,
            "created_at": self.created_at.isoformat(),
        }


def highest_severity(recommendations) -> Severity:
    """Return the most severe level among recommendations (LOW if none)."""
    levels = [r.severity.level for r in recommendations]
    if not levels:
        return Severity.LOW
    return Severity(max(levels))

"""
Advisory engine contract.

The orchestrator depends only on this interface; the concrete engine is
injected at startup.
"""

from abc import ABC, abstractmethod
from typing import List

from domain.recommendations import Recommendation
from domain.records import TransitionRecord


class AdvisoryEngine(ABC):
    """
    Non-authoritative consumer of committed transitions.

    Implementations may be slow or fail; the adapter isolates the
    orchestrator from both.
    """

    @abstractmethod
    def notify_transition(self, snapshot, record: TransitionRecord) -> None:
        """
        Observe a committed transition.

        Args:
            snapshot: Read-only PipelineContext after the commit
            record: The committed TransitionRecord
        """

    @abstractmethod
    def get_recommendations(self, instance_id: str) -> List[Recommendation]:
        """Return current recommendations for an instance."""


class NullAdvisoryEngine(AdvisoryEngine):
    """Engine used when advisory is disabled. Produces nothing."""

    def notify_transition(self, snapshot, record: TransitionRecord) -> None:
        return None

    def get_recommendations(self, instance_id: str) -> List[Recommendation]:
        return []

"""
Base action handler.

Abstract base class for domain handlers.
"""

from abc import ABC, abstractmethod
import logging
from typing import Any, Mapping

from domain.results import HandlerFailure, HandlerResult, HandlerSuccess


class ActionHandler(ABC):
    """
    Base class for action handlers.

    A handler performs the domain work behind one (stage, action) pair. It
    receives a read-only snapshot of the instance plus the action payload,
    and returns data for the orchestrator to apply. It never mutates the
    snapshot.
    """

    #: Action payload keys that must be present and non-empty
    required_fields: tuple = ()

    def __init__(self):
        """Initialize action handler."""
        self.logger = logging.getLogger(self.__class__.__name__)

    def __call__(self, snapshot, action_payload: Mapping[str, Any]) -> HandlerResult:
        missing = self._missing_fields(action_payload)
        if missing:
            return self.fail(f"Missing required field(s): {', '.join(missing)}")
        return self.handle(snapshot, action_payload)

    @abstractmethod
    def handle(self, snapshot, action_payload: Mapping[str, Any]) -> HandlerResult:
        """
        Perform the action.

        Args:
            snapshot: Read-only PipelineContext snapshot
            action_payload: Data submitted with the action

        Returns:
            HandlerSuccess with a payload delta, or HandlerFailure
        """

    def _missing_fields(self, action_payload: Mapping[str, Any]) -> list[str]:
        return [
            name for name in self.required_fields
            if action_payload.get(name) in (None, "", [], {})
        ]

    def ok(self, payload_delta: Mapping[str, Any] = None, **kwargs) -> HandlerSuccess:
        return HandlerSuccess(payload_delta=dict(payload_delta or {}), **kwargs)

    def fail(self, reason: str) -> HandlerFailure:
        self.logger.info(f"{self.__class__.__name__} rejected action: {reason}")
        return HandlerFailure(reason=reason)

    @staticmethod
    def section(snapshot, key: str) -> Mapping[str, Any]:
        """Return a nested section of the snapshot payload, or an empty dict."""
        value = snapshot.payload.get(key)
        return value if isinstance(value, Mapping) else {}

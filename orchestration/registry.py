"""
Handler registry.

Maps (stage, action) pairs to domain handlers. Populated once at startup by
the domain modules, then frozen.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Iterator, Mapping, Optional, Tuple, Union

from domain.errors import (
    DuplicateRegistrationError,
    GraphConfigurationError,
    HandlerNotRegisteredError,
    RegistryFrozenError,
)
from domain.results import HandlerResult
from .context import PipelineContext
from .handlers.base import ActionHandler
from .stage_graph import StageGraph, action_name


HandlerFn = Callable[[PipelineContext, Mapping], HandlerResult]


@dataclass(frozen=True)
class Registration:
    """A handler bound to (stage, action) with the role it expects."""

    stage: Hashable
    action: str
    handler: HandlerFn
    required_role: Hashable
    owner: str = ""

    @property
    def key(self) -> Tuple[Hashable, str]:
        return (self.stage, self.action)

    def invoke(self, snapshot: PipelineContext, action_payload: Mapping) -> HandlerResult:
        return self.handler(snapshot, action_payload)


class HandlerRegistry:
    """
    Lookup table from (stage, action) to handler.

    Writes are only allowed before ``freeze``; lookups afterwards need no
    synchronization.
    """

    def __init__(self):
        """Initialize an empty, writable registry."""
        self.logger = logging.getLogger(self.__class__.__name__)
        self._registrations: Dict[Tuple[Hashable, str], Registration] = {}
        self._frozen = False
        self._write_lock = threading.Lock()

    def register(
        self,
        stage: Hashable,
        action,
        handler: Union[ActionHandler, HandlerFn],
        required_role: Hashable,
        owner: str = "",
    ) -> Registration:
        """
        Register a handler for (stage, action).

        Args:
            stage: Stage the action is triggered from
            action: Action name
            handler: ActionHandler instance or callable(snapshot, payload)
            required_role: Role the graph requires for this action
            owner: Name of the registering domain module

        Returns:
            The stored Registration

        Raises:
            RegistryFrozenError: If called after freeze()
            DuplicateRegistrationError: If (stage, action) is already registered
        """
        if not callable(handler):
            raise TypeError(f"handler for ({stage}, {action}) must be callable")

        name = action_name(action)
        key = (stage, name)

        with self._write_lock:
            if self._frozen:
                raise RegistryFrozenError(
                    f"Cannot register ({stage}, {name}): registry is frozen"
                )
            if key in self._registrations:
                existing = self._registrations[key]
                raise DuplicateRegistrationError(
                    f"Handler for ({stage}, {name}) already registered by '{existing.owner or 'unknown'}'"
                )
            registration = Registration(
                stage=stage,
                action=name,
                handler=handler,
                required_role=required_role,
                owner=owner,
            )
            self._registrations[key] = registration

        self.logger.debug(f"Registered handler for ({stage}, {name}) [{owner or 'anonymous'}]")
        return registration

    def resolve(self, stage: Hashable, action) -> Optional[Registration]:
        """Return the registration for (stage, action), or None."""
        return self._registrations.get((stage, action_name(action)))

    def freeze(self):
        """Make the registry read-only."""
        with self._write_lock:
            self._frozen = True
        self.logger.info(f"Handler registry frozen with {len(self._registrations)} handler(s)")

    @property
    def frozen(self) -> bool:
        return self._frozen

    def validate_against(self, graph: StageGraph):
        """
        Cross-check registrations against the graph.

        Raises:
            HandlerNotRegisteredError: If a graph rule has no handler
            GraphConfigurationError: If a handler has no rule, or its role
                disagrees with the rule's required role
        """
        missing = [
            rule.key for rule in graph.rules()
            if rule.key not in self._registrations
        ]
        if missing:
            raise HandlerNotRegisteredError(
                f"No handler registered for: {[f'{s}:{a}' for s, a in missing]}"
            )

        for key, registration in self._registrations.items():
            rule = graph.is_valid_transition(*key)
            if rule is None:
                raise GraphConfigurationError(
                    f"Handler registered for ({key[0]}, {key[1]}) which is not a graph rule"
                )
            if rule.required_role != registration.required_role:
                raise GraphConfigurationError(
                    f"Handler for ({key[0]}, {key[1]}) declares role {registration.required_role}, "
                    f"graph requires {rule.required_role}"
                )

    def __len__(self) -> int:
        return len(self._registrations)

    def __iter__(self) -> Iterator[Registration]:
        return iter(list(self._registrations.values()))

    def __contains__(self, key) -> bool:
        stage, action = key
        return (stage, action_name(action)) in self._registrations

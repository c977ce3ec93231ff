"""
Error taxonomy for the pipeline orchestrator.

Transition errors reject a single action and leave the instance untouched.
Configuration errors are raised while wiring the orchestrator at startup
and must stop the process from serving actions.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all orchestrator errors."""

    kind = "PIPELINE_ERROR"


# ----------------------------------------------------------------------
# Transition-path errors (recoverable at the call site)
# ----------------------------------------------------------------------

class TransitionError(PipelineError):
    """
    An action was rejected.

    Carries a stable ``kind`` string and a human-readable reason that can be
    shown to the caller without exposing handler internals.
    """

    kind = "TRANSITION_ERROR"

    def __init__(self, reason: str, instance_id: Optional[str] = None):
        super().__init__(reason)
        self.reason = reason
        self.instance_id = instance_id


class InstanceNotFoundError(TransitionError):
    kind = "INSTANCE_NOT_FOUND"


class InstanceTerminalError(TransitionError):
    kind = "INSTANCE_TERMINAL"


class InvalidTransitionError(TransitionError):
    kind = "INVALID_TRANSITION"


class RoleNotAuthorizedError(TransitionError):
    kind = "ROLE_NOT_AUTHORIZED"


class GuardNotSatisfiedError(TransitionError):
    kind = "GUARD_NOT_SATISFIED"


class InvalidPayloadError(TransitionError):
    """Action payload submitted by the caller is not a mapping."""

    kind = "INVALID_PAYLOAD"


class HandlerExecutionError(TransitionError):
    """Handler returned a failure, raised, or exceeded its timeout."""

    kind = "HANDLER_EXECUTION"

    def __init__(self, reason: str, instance_id: Optional[str] = None, timed_out: bool = False):
        super().__init__(reason, instance_id)
        self.timed_out = timed_out


class ActionCancelledError(TransitionError):
    """Caller cancelled the action before the instance lock was acquired."""

    kind = "ACTION_CANCELLED"


# ----------------------------------------------------------------------
# Startup-time configuration errors (fatal)
# ----------------------------------------------------------------------

class ConfigurationError(PipelineError):
    kind = "CONFIGURATION_ERROR"


class DuplicateRegistrationError(ConfigurationError):
    kind = "DUPLICATE_REGISTRATION"


class HandlerNotRegisteredError(ConfigurationError, TransitionError):
    """
    A graph rule has no handler.

    Raised at startup by registry validation. If validation was disabled
    and the gap is hit at runtime, the action is rejected with this error.
    """

    kind = "HANDLER_NOT_REGISTERED"


class GraphConfigurationError(ConfigurationError):
    kind = "GRAPH_CONFIGURATION"


class RegistryFrozenError(ConfigurationError):
    kind = "REGISTRY_FROZEN"

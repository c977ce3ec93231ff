"""
Action handlers for the service-center pipeline.

Handlers are grouped by owning domain. Each domain module exposes a
``register(registry, graph)`` function.
"""

from .base import ActionHandler
from .common import CancelHandler, SetPriorityHandler
from . import commercial, fulfillment, operations

DOMAIN_MODULES = (commercial, operations, fulfillment)


def register_all(registry, graph):
    """Register every domain's handlers into ``registry``."""
    for module in DOMAIN_MODULES:
        module.register(registry, graph)


__all__ = [
    "ActionHandler",
    "CancelHandler",
    "SetPriorityHandler",
    "register_all",
]

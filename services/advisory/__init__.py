"""
Advisory services.

Non-authoritative recommendation engine and the adapter that isolates it
from the commit path.
"""

from .engine import AdvisoryEngine, NullAdvisoryEngine
from .adapter import AdvisoryAdapter, build_adapter
from .rules import RuleBasedAdvisoryEngine

__all__ = [
    "AdvisoryEngine",
    "NullAdvisoryEngine",
    "AdvisoryAdapter",
    "build_adapter",
    "RuleBasedAdvisoryEngine",
]

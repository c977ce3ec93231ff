"""
Stage graph.

Declarative table of legal transitions keyed by (stage, action), with the
role required to trigger each one and an optional guard on the payload.
"""

import logging
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Iterable, List, Mapping, Optional, Tuple

from domain.errors import GraphConfigurationError, InvalidTransitionError


Guard = Callable[[Mapping[str, Any]], bool]


def action_name(action) -> str:
    """Normalize an action given as a string or string-valued Enum."""
    value = getattr(action, "value", action)
    return str(value).strip().upper()


@dataclass(frozen=True)
class TransitionRule:
    """A single edge of the graph: (from_stage, action) -> to_stage."""

    from_stage: Hashable
    action: str
    to_stage: Hashable
    required_role: Hashable
    guard: Optional[Guard] = None
    guard_description: str = ""

    def __post_init__(self):
        """Validate rule."""
        object.__setattr__(self, "action", action_name(self.action) if self.action else "")
        if not self.action:
            raise GraphConfigurationError("action cannot be empty")
        if self.guard is not None and not callable(self.guard):
            raise GraphConfigurationError(f"guard for {self.key} must be callable")

    @property
    def key(self) -> Tuple[Hashable, str]:
        return (self.from_stage, self.action)

    @property
    def is_self_loop(self) -> bool:
        return self.from_stage == self.to_stage

    def guard_allows(self, payload: Mapping[str, Any]) -> bool:
        """Evaluate the guard. A rule without a guard always allows."""
        if self.guard is None:
            return True
        return bool(self.guard(payload))


class StageGraph:
    """
    Immutable, validated transition graph.

    The first rule declared for a stage is its primary action, which
    auto-advance follows.
    """

    def __init__(
        self,
        rules: Iterable[TransitionRule],
        entry_stage: Hashable,
        terminal_stages: Iterable[Hashable],
    ):
        """
        Build and validate the graph.

        Args:
            rules: Transition rules in declaration order
            entry_stage: Stage new instances start in
            terminal_stages: Stages that accept no further actions

        Raises:
            GraphConfigurationError: If the graph is inconsistent
        """
        self.logger = logging.getLogger(self.__class__.__name__)
        self.entry_stage = entry_stage
        self.terminal_stages = frozenset(terminal_stages)

        self._rules: Dict[Tuple[Hashable, str], TransitionRule] = OrderedDict()
        self._by_stage: Dict[Hashable, List[TransitionRule]] = OrderedDict()

        for rule in rules:
            if rule.key in self._rules:
                raise GraphConfigurationError(
                    f"Duplicate rule for ({rule.from_stage}, {rule.action})"
                )
            self._rules[rule.key] = rule
            self._by_stage.setdefault(rule.from_stage, []).append(rule)

        self._validate()

    def _validate(self):
        """Check construction-time invariants."""
        if self.entry_stage is None:
            raise GraphConfigurationError("entry_stage must be declared")

        if self.entry_stage in self.terminal_stages:
            raise GraphConfigurationError(
                f"entry stage {self.entry_stage} cannot be terminal"
            )

        for stage in self.terminal_stages:
            if self._by_stage.get(stage):
                actions = [r.action for r in self._by_stage[stage]]
                raise GraphConfigurationError(
                    f"Terminal stage {stage} has outgoing rules: {actions}"
                )

        dead_ends = [
            stage for stage in self.reachable_stages()
            if stage not in self.terminal_stages and not self._by_stage.get(stage)
        ]
        if dead_ends:
            raise GraphConfigurationError(
                f"Stages reachable from {self.entry_stage} with no outgoing rule "
                f"and not terminal: {[str(s) for s in dead_ends]}"
            )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def is_valid_transition(self, from_stage: Hashable, action: str) -> Optional[TransitionRule]:
        """Return the rule for (from_stage, action), or None if there is none."""
        return self._rules.get((from_stage, action_name(action)))

    def required_role(self, from_stage: Hashable, action: str) -> Hashable:
        """
        Role required to trigger (from_stage, action).

        Raises:
            InvalidTransitionError: If no rule exists
        """
        rule = self.is_valid_transition(from_stage, action)
        if rule is None:
            raise InvalidTransitionError(f"No transition for action {action} from stage {from_stage}")
        return rule.required_role

    def is_terminal(self, stage: Hashable) -> bool:
        return stage in self.terminal_stages

    def actions_from(self, stage: Hashable) -> List[str]:
        """Actions available from a stage, in declaration order."""
        return [rule.action for rule in self._by_stage.get(stage, [])]

    def primary_action(self, stage: Hashable) -> Optional[TransitionRule]:
        """First declared rule from a stage, or None for terminal stages."""
        rules = self._by_stage.get(stage)
        return rules[0] if rules else None

    def rules(self) -> List[TransitionRule]:
        return list(self._rules.values())

    def reachable_stages(self) -> List[Hashable]:
        """Stages reachable from the entry stage, in breadth-first order."""
        seen = [self.entry_stage]
        queue = deque([self.entry_stage])
        while queue:
            stage = queue.popleft()
            for rule in self._by_stage.get(stage, []):
                if rule.to_stage not in seen:
                    seen.append(rule.to_stage)
                    queue.append(rule.to_stage)
        return seen

    def describe(self) -> dict:
        """
        JSON-friendly description of the graph.

        Returns:
            Dict with entry, terminal stages and transitions per stage
        """
        def name(stage):
            return getattr(stage, "value", stage)

        return {
            "entry_stage": name(self.entry_stage),
            "terminal_stages": sorted(name(s) for s in self.terminal_stages),
            "transitions": {
                name(stage): [
                    {
                        "action": rule.action,
                        "to_stage": name(rule.to_stage),
                        "required_role": name(rule.required_role),
                        "guard": rule.guard_description or None,
                    }
                    for rule in rules
                ]
                for stage, rules in self._by_stage.items()
            },
        }

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, key) -> bool:
        stage, action = key
        return (stage, action_name(action)) in self._rules

"""Transition rules, the action -> state -> rule table, and merge policies."""

from __future__ import annotations

from dataclasses import dataclass, replace as _replace
from typing import Any, Callable, Dict, Hashable, Iterator, List, Optional, Tuple, Union

from .callbacks import call_with_target
from .errors import guard_without_rule, unknown_merge_policy
from .guards import Guard, conjoin
from .states import UNSPECIFIED, canonical, is_computed


@dataclass(frozen=True)
class Transition:
    """What happens for one (action, source state) pair.

    ``to`` is a state or a callable computing one; it is UNSPECIFIED only
    for extension declarations meant to inherit an earlier destination.
    """

    to: Any = UNSPECIFIED
    guard: Optional[Guard] = None
    effect: Optional[Callable[..., Any]] = None

    @property
    def computed(self) -> bool:
        return is_computed(self.to)

    @property
    def has_destination(self) -> bool:
        return self.to is not UNSPECIFIED

    def with_guard(self, guard: Optional[Guard]) -> "Transition":
        return _replace(self, guard=guard)


class EffectChain:
    """Run several effects in order on the same target and arguments."""

    def __init__(self, *effects: Callable[..., Any]) -> None:
        self.effects: Tuple[Callable[..., Any], ...] = effects

    def __call__(self, target: Any, *args: Any, **kwargs: Any) -> None:
        for effect in self.effects:
            call_with_target(effect, target, args, kwargs)

    def __repr__(self) -> str:
        return f"EffectChain({', '.join(repr(e) for e in self.effects)})"


MergePolicy = Callable[[Transition, Transition], Transition]


def replace(existing: Transition, incoming: Transition) -> Transition:
    """Last declaration wins outright."""
    return incoming


def blend(existing: Transition, incoming: Transition) -> Transition:
    """Run both effects, require both guards, keep ``to`` unless overridden."""
    if existing.effect is None:
        effect = incoming.effect
    elif incoming.effect is None:
        effect = existing.effect
    else:
        effect = EffectChain(existing.effect, incoming.effect)

    return Transition(
        to=incoming.to if incoming.has_destination else existing.to,
        guard=conjoin(existing.guard, incoming.guard),
        effect=effect,
    )


MERGE_POLICIES: Dict[str, MergePolicy] = {
    "replace": replace,
    "blend": blend,
}


def resolve_merge_policy(policy: Union[str, MergePolicy]) -> MergePolicy:
    if isinstance(policy, str):
        try:
            return MERGE_POLICIES[policy]
        except KeyError:
            raise unknown_merge_policy(policy, sorted(MERGE_POLICIES)) from None
    if callable(policy):
        return policy
    raise unknown_merge_policy(policy, sorted(MERGE_POLICIES))


class TransitionTable:
    """Mapping action -> canonical source state -> Transition.

    One action from one source state maps to exactly one rule; declaring it
    again overwrites.
    """

    def __init__(self) -> None:
        self._rules: Dict[Hashable, Dict[Hashable, Transition]] = {}

    def declare(self, action: Hashable, sources: List[Any], transition: Transition) -> None:
        by_state = self._rules.setdefault(action, {})
        for source in sources:
            by_state[canonical(source)] = transition

    def attach_guard(self, action: Hashable, sources: List[Any], guard: Guard) -> None:
        for source in sources:
            state = canonical(source)
            existing = self._rules.get(action, {}).get(state)
            if existing is None:
                raise guard_without_rule(action, source)
            self._rules[action][state] = existing.with_guard(guard)

    def get(self, action: Hashable, state: Any) -> Optional[Transition]:
        return self._rules.get(action, {}).get(canonical(state))

    def actions(self) -> List[Hashable]:
        return list(self._rules)

    def items(self) -> Iterator[Tuple[Hashable, Hashable, Transition]]:
        for action, by_state in self._rules.items():
            for state, transition in by_state.items():
                yield action, state, transition

    def fold(self, other: "TransitionTable", policy: MergePolicy) -> None:
        """Merge ``other`` into this table, resolving clashes with ``policy``."""
        for action, state, incoming in other.items():
            by_state = self._rules.setdefault(action, {})
            existing = by_state.get(state)
            by_state[state] = incoming if existing is None else policy(existing, incoming)

    def copy(self) -> "TransitionTable":
        clone = TransitionTable()
        clone._rules = {action: dict(by_state) for action, by_state in self._rules.items()}
        return clone

    def as_dict(self) -> Dict[Hashable, Dict[Hashable, Transition]]:
        return {action: dict(by_state) for action, by_state in self._rules.items()}

    def __contains__(self, action: object) -> bool:
        return action in self._rules

    def __len__(self) -> int:
        return sum(len(by_state) for by_state in self._rules.values())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TransitionTable):
            return NotImplemented
        return self._rules == other._rules

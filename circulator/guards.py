"""Guards: the four shapes an ``allow_if`` can take, and their evaluation.

    Always(predicate)            callable run with the target and the arguments
    Named(name)                  method or attribute looked up on the target
    CrossAttribute(attr, states) another attribute's state must be in ``states``
    All(guards)                  every inner guard must pass

``build_guard`` turns user input into one of these and validates it at
declaration time. ``evaluate`` never mutates anything, so it is safe for
both invocation and availability queries.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    FrozenSet,
    Hashable,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from .callbacks import call_leniently, call_with_target
from .errors import (
    empty_guard_list,
    invalid_dependency_shape,
    invalid_guard,
    invalid_guard_element,
    unknown_dependency_attribute,
    unknown_dependency_states,
    unknown_guard_method,
)
from .states import as_state_list, canonical, canonical_set


@dataclass(frozen=True)
class Always:
    predicate: Callable[..., Any]


@dataclass(frozen=True)
class Named:
    name: str


@dataclass(frozen=True)
class CrossAttribute:
    attribute: str
    states: FrozenSet[Hashable]


@dataclass(frozen=True)
class All:
    guards: Tuple["Guard", ...]


Guard = Union[Always, Named, CrossAttribute, All]
GUARD_TYPES = (Always, Named, CrossAttribute, All)

# attribute name -> canonical states of that attribute's flow, or None if no flow
StatesLookup = Callable[[str], Optional[FrozenSet[Hashable]]]


def build_guard(
    allow_if: Any,
    *,
    subject: Optional[type],
    subject_name: str,
    states_of: StatesLookup,
    available_flows: Callable[[], List[str]],
) -> Guard:
    """Validate ``allow_if`` and return the matching guard.

    Named guards are checked against ``subject`` when the flow is bound to a
    class; a flow keyed only by type name cannot check them up front.
    """
    if isinstance(allow_if, GUARD_TYPES):
        return allow_if

    if isinstance(allow_if, str):
        return _named(allow_if, subject, subject_name)

    if isinstance(allow_if, dict):
        return _cross_attribute(allow_if, subject_name, states_of, available_flows)

    if isinstance(allow_if, (list, tuple)):
        if not allow_if:
            raise empty_guard_list()
        elements: List[Guard] = []
        for element in allow_if:
            if isinstance(element, str):
                elements.append(_named(element, subject, subject_name))
            elif callable(element):
                elements.append(Always(element))
            else:
                raise invalid_guard_element(element)
        return All(tuple(elements))

    if callable(allow_if):
        return Always(allow_if)

    raise invalid_guard(allow_if)


def _named(name: str, subject: Optional[type], subject_name: str) -> Named:
    if subject is not None and not hasattr(subject, name):
        raise unknown_guard_method(name, subject_name)
    return Named(name)


def _cross_attribute(
    allow_if: Dict[Any, Any],
    subject_name: str,
    states_of: StatesLookup,
    available_flows: Callable[[], List[str]],
) -> CrossAttribute:
    if len(allow_if) != 1:
        raise invalid_dependency_shape(allow_if)

    attribute, valid_states = next(iter(allow_if.items()))
    attribute = str(attribute)

    known = states_of(attribute)
    if known is None:
        raise unknown_dependency_attribute(attribute, subject_name, available_flows())

    wanted = canonical_set(as_state_list(valid_states))
    invalid = [s for s in wanted if s not in known]
    if invalid:
        raise unknown_dependency_states(attribute, sorted(invalid, key=repr), sorted(known, key=repr))

    return CrossAttribute(attribute, wanted)


def evaluate(
    guard: Guard,
    target: Any,
    args: Sequence[Any] = (),
    kwargs: Optional[Dict[str, Any]] = None,
) -> bool:
    """Return True if ``guard`` passes for ``target`` with these arguments."""
    kwargs = kwargs or {}

    if isinstance(guard, Always):
        return bool(call_with_target(guard.predicate, target, args, kwargs))

    if isinstance(guard, Named):
        member = getattr(target, guard.name)
        if not callable(member):
            return bool(member)
        return bool(call_leniently(member, (args, kwargs), ((), {})))

    if isinstance(guard, CrossAttribute):
        current = canonical(getattr(target, guard.attribute, None))
        return current in guard.states

    if isinstance(guard, All):
        # left to right, stopping at the first failure
        return all(evaluate(inner, target, args, kwargs) for inner in guard.guards)

    raise TypeError(f"Unknown guard type: {type(guard).__name__}")


def named_guards(guard: Optional[Guard]) -> Optional[List[str]]:
    """Method names in a conjunction guard, or None for any other guard."""
    if not isinstance(guard, All):
        return None
    return [g.name for g in guard.guards if isinstance(g, Named)]


def conjoin(first: Optional[Guard], second: Optional[Guard]) -> Optional[Guard]:
    """Both guards must pass. Either may be missing."""
    if first is None:
        return second
    if second is None:
        return first
    parts = []
    for guard in (first, second):
        parts.extend(guard.guards if isinstance(guard, All) else (guard,))
    return All(tuple(parts))

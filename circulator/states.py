"""State values and their canonical form.

States are open-ended: any hashable works. ``None`` is the absent state.
Enum members compare by value, so ``Status.PENDING`` and ``"pending"``
name the same state when ``Status.PENDING.value == "pending"``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, FrozenSet, Hashable, Iterable, List

ABSENT = None


class _Unspecified:
    """Marker for an omitted keyword where ``None`` is a meaningful value."""

    _instance = None

    def __new__(cls) -> "_Unspecified":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSPECIFIED"

    def __bool__(self) -> bool:
        return False


UNSPECIFIED = _Unspecified()


def canonical(value: Any) -> Hashable:
    """Return the comparison key for a state value."""
    if isinstance(value, Enum):
        return value.value
    return value


def canonical_set(values: Iterable[Any]) -> FrozenSet[Hashable]:
    return frozenset(canonical(v) for v in values)


def as_state_list(value: Any) -> List[Any]:
    """Normalize a from_ option into a list of source states.

    ``None`` is a single (absent) state, not an empty list.
    """
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def is_computed(destination: Any) -> bool:
    return callable(destination)

"""Calling user callbacks with whatever arguments they can take.

Every callback runs "on" a target object, which is passed first. A
callback that cannot accept that is retried with the invocation arguments
alone, then with the target alone, and then with nothing. So
``lambda doc: doc.ready`` and ``lambda: True`` both work as guards for an
action invoked with extra arguments, and ``lambda transition: transition()``
works as a wrapper.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

Call = Tuple[Sequence[Any], Dict[str, Any]]


def _binds(fn: Callable[..., Any], args: Sequence[Any], kwargs: Dict[str, Any]) -> bool:
    try:
        sig = inspect.signature(fn)
    except (TypeError, ValueError):
        # no introspectable signature (some builtins); assume it fits
        return True
    try:
        sig.bind(*args, **kwargs)
    except TypeError:
        return False
    return True


def call_leniently(fn: Callable[..., Any], *candidates: Call) -> Any:
    """Call ``fn`` with the first (args, kwargs) candidate its signature accepts.

    If none fit, the first candidate is used so Python reports the real
    TypeError.
    """
    for args, kwargs in candidates:
        if _binds(fn, args, kwargs):
            return fn(*args, **kwargs)
    args, kwargs = candidates[0]
    return fn(*args, **kwargs)


def call_with_target(
    fn: Callable[..., Any],
    target: Any,
    args: Sequence[Any] = (),
    kwargs: Optional[Dict[str, Any]] = None,
) -> Any:
    kwargs = kwargs or {}
    return call_leniently(
        fn,
        ((target, *args), kwargs),
        (tuple(args), kwargs),
        ((target,), {}),
        ((), {}),
    )

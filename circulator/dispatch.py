"""Running actions against objects.

    invoke(flow, subject, action, *args, target=None, mode="soft", callback=None, **kwargs)
    query(flow, subject, action, *args, **kwargs)
    available(flow, subject, *args, **kwargs)

``subject`` is the object asking; ``target`` (default: the subject) is the
object whose attribute changes. Strict-mode errors are scoped to the
subject's type.

The sequence for one invocation is: read the current state, look up the
rule, check the guard, run the effect, compute and assign the destination,
run the trailing callback. If the flow has a wrapper, that whole sequence
is handed to it as a zero-argument callable.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Hashable, List, Optional, Sequence, Type

from .callbacks import call_with_target
from .errors import InvalidTransition, guard_rejected, no_transition, transition_error_for
from .flow import Flow
from .guards import evaluate

MODES = ("soft", "strict")


def current_state(flow: Flow, target: Any) -> Any:
    """The target's raw attribute value; unset reads as the absent state."""
    return getattr(target, flow.attribute, None)


def invoke(
    flow: Flow,
    subject: Any,
    action: Hashable,
    *args: Any,
    target: Any = None,
    mode: str = "soft",
    callback: Optional[Callable[..., Any]] = None,
    error_class: Optional[Type[InvalidTransition]] = None,
    **kwargs: Any,
) -> Any:
    """Run ``action`` and return the new state, or None if nothing happened.

    In soft mode a failing guard is a quiet no-op and a missing rule goes to
    the flow's no_action handler (which raises by default). In strict mode
    both raise the subject type's InvalidTransition.
    """
    if mode not in MODES:
        raise ValueError(f"mode must be 'soft' or 'strict', got {mode!r}")

    target = subject if target is None else target
    if error_class is None:
        error_class = transition_error_for(type(subject))

    results: List[Any] = []

    def transition() -> None:
        results.append(
            _perform(flow, target, action, args, kwargs, mode, callback, error_class)
        )

    wrapper = flow.wrapper
    if wrapper is None:
        transition()
    else:
        call_with_target(wrapper, target, (transition,))

    return results[-1] if results else None


def _perform(
    flow: Flow,
    target: Any,
    action: Hashable,
    args: Sequence[Any],
    kwargs: Dict[str, Any],
    mode: str,
    callback: Optional[Callable[..., Any]],
    error_class: Type[InvalidTransition],
) -> Any:
    state = current_state(flow, target)
    rule = flow.transition(action, state)

    if rule is None:
        if mode == "strict":
            raise no_transition(error_class, flow.attribute, action, state)
        flow.run_missing_handler(target, action)
        return None

    if rule.guard is not None and not evaluate(rule.guard, target, args, kwargs):
        if mode == "strict":
            raise guard_rejected(error_class, flow.attribute, action, state)
        flow.logger.debug("Guard blocked %s on %s from %r", action, flow.key, state)
        return None

    if rule.effect is not None:
        call_with_target(rule.effect, target, args, kwargs)

    if rule.computed:
        destination = call_with_target(rule.to, target, args, kwargs)
    else:
        destination = rule.to

    setattr(target, flow.attribute, destination)
    flow.logger.debug("%s: %s %r -> %r", flow.key, action, state, destination)

    if callback is not None:
        call_with_target(callback, target, args, kwargs)

    return destination


def query(
    flow: Flow,
    subject: Any,
    action: Hashable,
    *args: Any,
    target: Any = None,
    **kwargs: Any,
) -> bool:
    """True if ``action`` would succeed right now. Runs no effects."""
    target = subject if target is None else target
    rule = flow.transition(action, current_state(flow, target))
    if rule is None:
        return False
    if rule.guard is None:
        return True
    return evaluate(rule.guard, target, args, kwargs)


def available(
    flow: Flow,
    subject: Any,
    *args: Any,
    target: Any = None,
    **kwargs: Any,
) -> List[Hashable]:
    """Every action that would succeed right now, in declaration order."""
    return [
        action
        for action in flow.actions()
        if query(flow, subject, action, *args, target=target, **kwargs)
    ]

"""Attach flows to a class and generate named methods for them.

Example:
    def review_flow(flow):
        with flow.state("pending"):
            flow.action("approve", to="approved")

    class Review(Circulator, flows={"review_status": review_flow}):
        def __init__(self):
            self.review_status = "pending"

    r = Review()
    r.review_status_approve()        # -> "approved"
    r.review_status_is_approved()    # -> True

Generated action methods take ``target=``, ``mode=`` and ``callback=``
keywords; every other argument is passed to the flow's callbacks. Methods
the class already defines are never overwritten.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Hashable, List, Mapping, Optional

from .dispatch import available, invoke, query
from .errors import duplicate_member, transition_error_for, unknown_flow
from .extensions import DeclarationBlock
from .flow import Flow
from .states import canonical

FLOWS_ATTR = "_circulator_flows"
MEMBERS_ATTR = "_circulator_members"


def flows_of(cls: type) -> Dict[str, Flow]:
    return getattr(cls, FLOWS_ATTR, {})


def define_flow(cls: type, attribute: str, block: DeclarationBlock, **options: Any) -> Flow:
    """Declare a flow for ``cls.<attribute>`` and generate its methods."""
    if FLOWS_ATTR not in cls.__dict__:
        setattr(cls, FLOWS_ATTR, dict(flows_of(cls)))
    if MEMBERS_ATTR not in cls.__dict__:
        setattr(cls, MEMBERS_ATTR, dict(getattr(cls, MEMBERS_ATTR, {})))

    flows = cls.__dict__[FLOWS_ATTR]
    options.setdefault("siblings", flows)
    flow = Flow(cls, attribute, block, **options)

    try:
        _generate_members(cls, flow)
    except Exception:
        flow.registry.untrack(flow)
        raise

    flows[attribute] = flow
    flow.on_change(lambda changed: _generate_members(cls, changed))
    transition_error_for(cls)
    return flow


def _generate_members(cls: type, flow: Flow) -> None:
    members: Dict[str, str] = cls.__dict__[MEMBERS_ATTR]
    attribute = flow.attribute

    planned: Dict[str, Callable[..., Any]] = {}
    for action in flow.actions():
        name = f"{attribute}_{action}"
        if name.isidentifier():
            planned[name] = _action_member(attribute, action, name)
    for state in flow.states:
        if state is None:
            continue
        name = f"{attribute}_is_{state}"
        if name.isidentifier():
            planned[name] = _state_member(attribute, state, name)

    for name in planned:
        owner = members.get(name)
        if owner is not None and owner != attribute:
            raise duplicate_member(name, cls.__name__, owner)

    for name, member in planned.items():
        if name in members or hasattr(cls, name):
            continue
        setattr(cls, name, member)
        members[name] = attribute


def _action_member(attribute: str, action: Hashable, name: str) -> Callable[..., Any]:
    def member(self, *args: Any, target: Any = None, mode: str = "soft",
               callback: Optional[Callable[..., Any]] = None, **kwargs: Any) -> Any:
        return run_action(self, attribute, action, *args, target=target, mode=mode,
                          callback=callback, **kwargs)

    member.__name__ = name
    member.__qualname__ = name
    member.__doc__ = f"Run the '{action}' action on '{attribute}'."
    return member


def _state_member(attribute: str, state: Hashable, name: str) -> Callable[..., bool]:
    def member(self) -> bool:
        return canonical(getattr(self, attribute, None)) == state

    member.__name__ = name
    member.__qualname__ = name
    member.__doc__ = f"True if '{attribute}' is {state!r}."
    return member


def _flow_for(owner: Any, attribute: str) -> Flow:
    cls = type(owner)
    flow = flows_of(cls).get(attribute)
    if flow is None:
        raise unknown_flow(attribute, cls.__name__, sorted(flows_of(cls)))
    return flow


def run_action(owner: Any, attribute: str, action: Hashable, *args: Any, target: Any = None,
               mode: str = "soft", callback: Optional[Callable[..., Any]] = None,
               **kwargs: Any) -> Any:
    flow = _flow_for(owner, attribute)
    return invoke(
        flow, owner, action, *args,
        target=target, mode=mode, callback=callback,
        error_class=transition_error_for(type(owner)),
        **kwargs,
    )


class Circulator:
    """Mixin giving a class flows, generated methods, and flow helpers.

    Flows can be declared in the class statement:

        class Document(Circulator, flows={"status": status_flow}):
            ...

    or afterwards with ``Document.define_flow("status", status_flow)``.
    """

    def __init_subclass__(cls, flows: Optional[Mapping[str, DeclarationBlock]] = None,
                          **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        for attribute, block in (flows or {}).items():
            define_flow(cls, attribute, block)

    @classmethod
    def define_flow(cls, attribute: str, block: Optional[DeclarationBlock] = None, **options: Any):
        """Declare a flow; with no block, return a decorator taking one."""
        if block is None:

            def decorator(fn: DeclarationBlock) -> Flow:
                return define_flow(cls, attribute, fn, **options)

            return decorator
        return define_flow(cls, attribute, block, **options)

    @classmethod
    def flows(cls) -> Dict[str, Flow]:
        return dict(flows_of(cls))

    def flow(self, action: Hashable, attribute: str, *args: Any, target: Any = None,
             mode: str = "soft", callback: Optional[Callable[..., Any]] = None,
             **kwargs: Any) -> Any:
        """Run ``action`` on ``attribute``; same as the generated method."""
        return run_action(self, attribute, action, *args, target=target, mode=mode,
                          callback=callback, **kwargs)

    def available_flows(self, attribute: str, *args: Any, **kwargs: Any) -> List[Hashable]:
        flow = flows_of(type(self)).get(attribute)
        if flow is None:
            return []
        return available(flow, self, *args, **kwargs)

    def available_flow(self, attribute: str, action: Hashable, *args: Any, **kwargs: Any) -> bool:
        flow = flows_of(type(self)).get(attribute)
        if flow is None:
            return False
        return query(flow, self, action, *args, **kwargs)

    def guards_for(self, attribute: str, action: Hashable) -> Optional[List[str]]:
        """Method names guarding ``action`` from the current state, when the
        guard is a list; None otherwise."""
        flow = flows_of(type(self)).get(attribute)
        if flow is None:
            return None
        return flow.guards_for(action, getattr(self, attribute, None))

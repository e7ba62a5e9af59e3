"""The flow definition: one attribute's transition table plus its policies.

Example:
    def status_flow(flow):
        with flow.state("pending"):
            flow.action("approve", to="approved")
            flow.action("reject", to="rejected", effect=lambda doc, why: doc.notes.append(why))

        with flow.state("approved"):
            flow.action("publish", to="published", allow_if="is_final")

        flow.state("published")

    status = Flow(Document, "status", status_flow)

``Flow`` only declares. Running an action against an object is
circulator.dispatch's job.
"""

from __future__ import annotations

from typing import (
    Any,
    Callable,
    FrozenSet,
    Hashable,
    List,
    Mapping,
    Optional,
    Set,
    Union,
)

from .callbacks import call_with_target
from .errors import (
    declaration_outside_state,
    missing_destination,
    no_action_found,
    not_callable,
)
from .extensions import DEFAULT_EXTENSIONS, DeclarationBlock, ExtensionRegistry, type_name
from .guards import Guard, build_guard, named_guards
from .logger import get_logger
from .states import UNSPECIFIED, as_state_list, canonical
from .table import MergePolicy, Transition, TransitionTable, resolve_merge_policy

MissingHandler = Callable[[Any, str, Hashable], Any]
Wrapper = Callable[[Any, Callable[[], None]], Any]

_NO_STATE = object()


def default_no_action(target: Any, attribute: str, action: Hashable) -> None:
    raise no_action_found(attribute, action, getattr(target, attribute, None))


class _StateScope:
    """Returned by Flow.state(). The state is recorded on creation; using it
    as a context manager makes it the source for actions declared inside."""

    def __init__(self, flow: "Flow", name: Any) -> None:
        self._flow = flow
        self.name = name
        self._previous: Any = _NO_STATE
        flow._states.add(canonical(name))

    def __enter__(self) -> "_StateScope":
        self._previous = self._flow._current_state
        self._flow._current_state = self.name
        return self

    def __exit__(self, *exc: Any) -> None:
        self._flow._current_state = self._previous


class Flow:
    def __init__(
        self,
        subject_type: Union[type, str],
        attribute: str,
        block: Optional[DeclarationBlock] = None,
        *,
        registry: Optional[ExtensionRegistry] = None,
        merge_policy: Union[str, MergePolicy] = "replace",
        apply_extensions: bool = True,
        siblings: Optional[Mapping[str, "Flow"]] = None,
        logger: Any = None,
    ) -> None:
        self.subject_type = subject_type
        self.type_name = type_name(subject_type)
        self.attribute = attribute
        self.registry = registry if registry is not None else DEFAULT_EXTENSIONS
        self.merge_policy = resolve_merge_policy(merge_policy)
        self.logger = logger or get_logger("circulator")
        self.table = TransitionTable()

        self._policy_spec = merge_policy
        self._siblings = siblings
        self._states: Set[Hashable] = set()
        self._current_state: Any = _NO_STATE
        self._no_action: MissingHandler = default_no_action
        self._around: Optional[Wrapper] = None
        self._listeners: List[Callable[["Flow"], Any]] = []

        if block is not None:
            block(self)

        if apply_extensions:
            for ext in self.registry.all(self.type_name, attribute):
                self._fold(ext)
            self._check_destinations(self.table)
            self.registry.track(self)
            self.logger.debug("Declared flow %s with %d rule(s)", self.key, len(self.table))

    @property
    def key(self) -> str:
        return ExtensionRegistry.key(self.subject_type, self.attribute)

    @property
    def states(self) -> FrozenSet[Hashable]:
        return frozenset(self._states)

    @property
    def wrapper(self) -> Optional[Wrapper]:
        return self._around

    @property
    def missing_handler(self) -> MissingHandler:
        return self._no_action

    @property
    def transition_map(self):
        return self.table.as_dict()

    # --- declaration ---

    def state(self, name: Any) -> _StateScope:
        return _StateScope(self, name)

    def action(
        self,
        name: Hashable,
        to: Any = UNSPECIFIED,
        *,
        from_: Any = UNSPECIFIED,
        allow_if: Any = None,
        effect: Optional[Callable[..., Any]] = None,
    ) -> None:
        sources = self._sources(name, from_)

        guard = self._guard(allow_if) if allow_if is not None else None
        if effect is not None and not callable(effect):
            raise not_callable("effect", effect)

        for source in sources:
            self._states.add(canonical(source))
        if to is not UNSPECIFIED and not callable(to):
            self._states.add(canonical(to))

        self.table.declare(name, sources, Transition(to=to, guard=guard, effect=effect))

    def action_allowed(self, name: Hashable, guard: Any = None, *, from_: Any = UNSPECIFIED):
        """Set the guard of an already declared action.

        Works as a decorator when ``guard`` is omitted:

            @flow.action_allowed("approve", from_="pending")
            def only_admins(doc):
                return doc.role == "admin"
        """
        if guard is None:

            def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
                self.action_allowed(name, fn, from_=from_)
                return fn

            return decorator

        sources = self._sources(name, from_)
        for source in sources:
            self._states.add(canonical(source))
        self.table.attach_guard(name, sources, self._guard(guard))
        return guard

    def no_action(self, handler: MissingHandler) -> MissingHandler:
        """Replace the missing-transition handler. Usable as a decorator."""
        if not callable(handler):
            raise not_callable("no_action handler", handler)
        self._no_action = handler
        return handler

    def around(self, wrapper: Wrapper) -> Wrapper:
        """Wrap every transition. ``wrapper(target, transition)`` must call
        ``transition()`` for anything to happen. Usable as a decorator."""
        if not callable(wrapper):
            raise not_callable("around wrapper", wrapper)
        self._around = wrapper
        return wrapper

    def on_change(self, listener: Callable[["Flow"], Any]) -> None:
        """Call ``listener(flow)`` after every merge."""
        self._listeners.append(listener)

    # --- merging ---

    def merge(self, block: DeclarationBlock) -> "Flow":
        """Fold the declarations in ``block`` into this flow.

        Nothing changes if the block is invalid.
        """
        self._fold(block)
        for listener in self._listeners:
            listener(self)
        return self

    def _fold(self, block: DeclarationBlock) -> None:
        incoming = Flow(
            self.subject_type,
            self.attribute,
            block,
            registry=self.registry,
            merge_policy=self._policy_spec,
            apply_extensions=False,
            siblings=self._siblings,
            logger=self.logger,
        )

        merged = self.table.copy()
        merged.fold(incoming.table, self.merge_policy)
        self._check_destinations(merged)

        self.table = merged
        self._states |= incoming._states
        if incoming._around is not None:
            self._around = incoming._around
        if incoming._no_action is not default_no_action:
            self._no_action = incoming._no_action

        self.logger.debug(
            "Merged %d rule(s) into %s", len(incoming.table), self.key
        )

    # --- lookup ---

    def transition(self, action: Hashable, state: Any) -> Optional[Transition]:
        return self.table.get(action, state)

    def actions(self) -> List[Hashable]:
        return self.table.actions()

    def guards_for(self, action: Hashable, state: Any) -> Optional[List[str]]:
        rule = self.table.get(action, state)
        if rule is None:
            return None
        return named_guards(rule.guard)

    def run_missing_handler(self, target: Any, action: Hashable) -> Any:
        return call_with_target(self._no_action, target, (self.attribute, action))

    # --- helpers ---

    def _sources(self, name: Hashable, from_: Any) -> List[Any]:
        if from_ is UNSPECIFIED:
            if self._current_state is _NO_STATE:
                raise declaration_outside_state(name)
            return [self._current_state]
        return as_state_list(from_)

    def _guard(self, allow_if: Any) -> Guard:
        return build_guard(
            allow_if,
            subject=self.subject_type if isinstance(self.subject_type, type) else None,
            subject_name=self.type_name,
            states_of=self._states_of,
            available_flows=self._available_flows,
        )

    def _sibling(self, attribute: str) -> Optional["Flow"]:
        if self._siblings is not None:
            return self._siblings.get(attribute)
        return self.registry.flow(self.subject_type, attribute)

    def _states_of(self, attribute: str) -> Optional[FrozenSet[Hashable]]:
        sibling = self._sibling(attribute)
        return sibling.states if sibling is not None else None

    def _available_flows(self) -> List[str]:
        if self._siblings is not None:
            return sorted(self._siblings)
        return self.registry.flows_for(self.subject_type)

    @staticmethod
    def _check_destinations(table: TransitionTable) -> None:
        for action, state, transition in table.items():
            if not transition.has_destination:
                raise missing_destination(action, state)

    def __repr__(self) -> str:
        return f"<Flow {self.key} actions={self.actions()!r}>"

"""Circulator error types with structured, actionable messages.

Error Contract:
Every user-facing error includes:
- What happened (one sentence, plain English)
- Why (root cause, not stack trace)
- Fix (specific, actionable)
- Context (relevant keys/paths, trimmed)

Declaration errors are raised while a flow is being built and are always
fatal to that flow. Transition errors are raised at invocation time, only
in strict mode, and are scoped to the invoking type so that unrelated
hosts can tell their rejections apart.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Optional, Type, Union


@dataclass
class ErrorContext:
    """Structured context for error messages."""

    items: Dict[str, Any] = field(default_factory=dict)

    def add(self, key: str, value: Any) -> "ErrorContext":
        """Add a context item, returning self for chaining."""
        self.items[key] = value
        return self

    def format(self) -> str:
        """Format context as indented key=value lines."""
        if not self.items:
            return ""
        lines = [f"  {k}={v!r}" for k, v in self.items.items()]
        return "\n".join(lines)


class CirculatorError(Exception):
    """Base exception for Circulator with structured error messages.

    Attributes:
        what: One-sentence description of what happened
        why: Root cause explanation
        fix: Actionable fix suggestion
        context: Relevant debugging context
    """

    def __init__(
        self,
        what: str,
        *,
        why: Optional[str] = None,
        fix: Optional[str] = None,
        context: Optional[ErrorContext] = None,
    ):
        self.what = what
        self.why = why
        self.fix = fix
        self.context = context or ErrorContext()

        message = self._format_message()
        super().__init__(message)

    def _format_message(self) -> str:
        """Format the full error message."""
        lines = [self.what]

        if self.why:
            lines.append(f"\nWhy: {self.why}")

        if self.fix:
            lines.append(f"\nFix: {self.fix}")

        ctx = self.context.format()
        if ctx:
            lines.append(f"\nContext:\n{ctx}")

        return "".join(lines)


class DeclarationError(CirculatorError):
    """A flow declaration is malformed."""

    pass


class NoTransitionError(CirculatorError):
    """No transition exists for the current state (default missing handler)."""

    pass


class UnknownFlowError(CirculatorError):
    """No flow is declared for the requested attribute."""

    pass


class ConfigError(CirculatorError):
    """Error loading or validating a flow definition file."""

    pass


class ImportError_(CirculatorError):
    """Error importing a dotted path symbol."""

    pass


class InvalidTransition(CirculatorError):
    """A strict-mode invocation could not transition.

    ``reason`` is ``"no_transition"`` when nothing is declared for the
    current state and ``"guard_rejected"`` when a guard said no.
    """

    def __init__(
        self,
        what: str,
        *,
        attribute: Optional[str] = None,
        action: Optional[Hashable] = None,
        state: Any = None,
        reason: Optional[str] = None,
        why: Optional[str] = None,
        fix: Optional[str] = None,
        context: Optional[ErrorContext] = None,
    ):
        self.attribute = attribute
        self.action = action
        self.state = state
        self.reason = reason
        super().__init__(what, why=why, fix=fix, context=context)


_SCOPED_ERRORS: Dict[Union[type, str], Type[InvalidTransition]] = {}


def _inherited_error(owner: Union[type, str]) -> Type[InvalidTransition]:
    # a host subclass's error derives from its nearest host ancestor's
    if isinstance(owner, type):
        for base in owner.__mro__[1:]:
            existing = base.__dict__.get("InvalidTransition")
            if isinstance(existing, type) and issubclass(existing, InvalidTransition):
                return existing
    return InvalidTransition


def transition_error_for(owner: Union[type, str]) -> Type[InvalidTransition]:
    """Return the InvalidTransition subclass scoped to ``owner``.

    Classes get it as an ``InvalidTransition`` class attribute, created once.
    Types that refuse new attributes (builtins) and plain type names are
    served from a module-level cache instead.
    """
    if isinstance(owner, type):
        existing = owner.__dict__.get("InvalidTransition")
        if isinstance(existing, type) and issubclass(existing, InvalidTransition):
            return existing

    cached = _SCOPED_ERRORS.get(owner)
    if cached is not None:
        return cached

    name = owner if isinstance(owner, str) else owner.__name__
    scoped = type(
        "InvalidTransition",
        (_inherited_error(owner),),
        {
            "__qualname__": f"{name}.InvalidTransition",
            "__module__": getattr(owner, "__module__", __name__),
            "__doc__": f"Transition rejected for {name}.",
        },
    )

    if isinstance(owner, type):
        try:
            setattr(owner, "InvalidTransition", scoped)
            return scoped
        except TypeError:
            # builtin and extension types reject new attributes
            pass

    _SCOPED_ERRORS[owner] = scoped
    return scoped


# --- Helper constructors for declaration errors ---


def declaration_outside_state(action: Hashable) -> DeclarationError:
    """An action was declared with no source state to attach it to."""
    ctx = ErrorContext().add("action", action)

    return DeclarationError(
        f"Cannot declare '{action}' without a source state",
        why="The action is neither inside a state block nor given an explicit from_ option.",
        fix="Wrap it in `with flow.state(...)` or pass from_=<state or list of states>.",
        context=ctx,
    )


def invalid_guard(guard: Any) -> DeclarationError:
    """allow_if has an unsupported shape."""
    ctx = ErrorContext().add("guard", guard).add("got_type", type(guard).__name__)

    return DeclarationError(
        f"allow_if must be a callable, str, dict, or list, got: {type(guard).__name__}",
        why="Guards are callables, method names, attribute dependencies, or lists of those.",
        fix="Use allow_if=lambda obj: ..., allow_if='method_name', "
        "allow_if={'other_attribute': ['state']} or allow_if=['a', 'b'].",
        context=ctx,
    )


def empty_guard_list() -> DeclarationError:
    """allow_if is an empty list."""
    return DeclarationError(
        "allow_if list must not be empty",
        why="An empty conjunction would always pass, which is almost certainly a mistake.",
        fix="Drop allow_if entirely, or list at least one method name or callable.",
    )


def invalid_guard_element(element: Any) -> DeclarationError:
    """A conjunction element is neither a method name nor a callable."""
    ctx = ErrorContext().add("element", element).add("got_type", type(element).__name__)

    return DeclarationError(
        "allow_if list elements must be method names (str) or callables",
        why=f"Got an element of type {type(element).__name__}.",
        fix="Replace it with the name of a predicate method or a callable.",
        context=ctx,
    )


def unknown_guard_method(name: str, subject: str) -> DeclarationError:
    """A named predicate does not exist on the subject type."""
    ctx = ErrorContext().add("method", name).add("subject", subject)

    return DeclarationError(
        f"allow_if references undefined method '{name}' on {subject}",
        why="Named guards are resolved on the subject and must exist when the flow is declared.",
        fix=f"Define '{name}' on {subject} before declaring the flow, or fix the spelling.",
        context=ctx,
    )


def invalid_dependency_shape(guard: Dict[Any, Any]) -> DeclarationError:
    """A cross-attribute guard mapping has the wrong number of keys."""
    ctx = ErrorContext().add("keys", list(guard.keys()))

    return DeclarationError(
        f"allow_if dict must contain exactly one attribute, got: {list(guard.keys())!r}",
        why="A dependency guard checks the state of one other attribute.",
        fix="Use allow_if={'other_attribute': [...]} or combine checks in a callable.",
        context=ctx,
    )


def unknown_dependency_attribute(attribute: str, subject: str, available: list) -> DeclarationError:
    """A cross-attribute guard references an attribute without a flow."""
    ctx = ErrorContext().add("attribute", attribute).add("subject", subject)
    ctx.add("available_flows", available)

    return DeclarationError(
        f"allow_if references undefined flow attribute '{attribute}'",
        why=f"{subject} has no flow declared for '{attribute}'. Available flows: {available!r}",
        fix=f"Declare the '{attribute}' flow before the flow that depends on it.",
        context=ctx,
    )


def unknown_dependency_states(attribute: str, invalid: list, valid: list) -> DeclarationError:
    """A cross-attribute guard references states the other flow never reaches."""
    ctx = ErrorContext().add("attribute", attribute).add("invalid_states", invalid)
    ctx.add("valid_states", valid)

    return DeclarationError(
        f"allow_if references invalid states {invalid!r} for '{attribute}'",
        why=f"The '{attribute}' flow only declares: {valid!r}",
        fix="Use states declared by the referenced flow.",
        context=ctx,
    )


def guard_without_rule(action: Hashable, state: Any) -> DeclarationError:
    """action_allowed was used before the action was declared for that state."""
    ctx = ErrorContext().add("action", action).add("state", state)

    return DeclarationError(
        f"Cannot attach a guard to '{action}' from state {state!r}",
        why="No transition has been declared for that action and state yet.",
        fix="Declare the action with flow.action(...) before calling action_allowed.",
        context=ctx,
    )


def missing_destination(action: Hashable, state: Any) -> DeclarationError:
    """A rule ended up without a destination."""
    ctx = ErrorContext().add("action", action).add("state", state)

    return DeclarationError(
        f"Transition '{action}' from state {state!r} has no destination",
        why="The declaration omitted `to` and there was no earlier rule to inherit it from.",
        fix="Pass to=<state> or to=<callable> for this action.",
        context=ctx,
    )


def not_callable(role: str, value: Any) -> DeclarationError:
    """A callback slot was given something that cannot be called."""
    ctx = ErrorContext().add(role, value).add("got_type", type(value).__name__)

    return DeclarationError(
        f"{role} must be callable, got: {type(value).__name__}",
        why=f"The {role} is invoked with the subject at transition time.",
        fix=f"Pass a function or lambda as the {role}.",
        context=ctx,
    )


def unknown_merge_policy(policy: Any, valid: list) -> DeclarationError:
    """merge_policy is neither a known name nor a callable."""
    ctx = ErrorContext().add("merge_policy", policy).add("valid_policies", valid)

    return DeclarationError(
        f"Unknown merge policy: {policy!r}",
        why="Merge policies are named strategies or callables(existing, incoming).",
        fix=f"Use one of: {', '.join(valid)}, or pass a callable.",
        context=ctx,
    )


def duplicate_member(name: str, subject: str, owner_attribute: str) -> DeclarationError:
    """A generated member name is already taken by another flow."""
    ctx = ErrorContext().add("member", name).add("subject", subject)
    ctx.add("defined_by", owner_attribute)

    return DeclarationError(
        f"Method already defined: {name}",
        why=f"The '{owner_attribute}' flow on {subject} already generated '{name}'.",
        fix="Rename the action or attribute so generated method names do not collide.",
        context=ctx,
    )


# --- Helper constructors for invocation errors ---


def no_transition(
    error_class: Type[InvalidTransition], attribute: str, action: Hashable, state: Any
) -> InvalidTransition:
    """Strict mode: nothing is declared for (action, current state)."""
    ctx = ErrorContext().add("attribute", attribute).add("action", action).add("state", state)

    return error_class(
        f"No transition for '{action}' from {attribute}={state!r}",
        attribute=attribute,
        action=action,
        state=state,
        reason="no_transition",
        why=f"The flow declares no '{action}' rule for the {state!r} state.",
        fix="Check the current state before invoking, or declare the transition.",
        context=ctx,
    )


def guard_rejected(
    error_class: Type[InvalidTransition], attribute: str, action: Hashable, state: Any
) -> InvalidTransition:
    """Strict mode: the rule exists but its guard failed."""
    ctx = ErrorContext().add("attribute", attribute).add("action", action).add("state", state)

    return error_class(
        f"Guard prevented '{action}' from {attribute}={state!r}",
        attribute=attribute,
        action=action,
        state=state,
        reason="guard_rejected",
        why="The transition is declared, but its allow_if guard did not pass.",
        fix="Satisfy the guard first, or use available_flows() to check beforehand.",
        context=ctx,
    )


def no_action_found(attribute: str, action: Hashable, state: Any) -> NoTransitionError:
    """Default missing-transition handler error."""
    ctx = ErrorContext().add("attribute", attribute).add("action", action).add("state", state)

    return NoTransitionError(
        f"No action found for the current state of {attribute} ({state!r}): {action}",
        why="No transition is declared for this action from the current state.",
        fix="Declare the transition, or install a handler with flow.no_action(...).",
        context=ctx,
    )


def unknown_flow(attribute: str, subject: str, available: list) -> UnknownFlowError:
    """A host was asked to drive an attribute it has no flow for."""
    ctx = ErrorContext().add("attribute", attribute).add("subject", subject)
    ctx.add("available_flows", available)

    return UnknownFlowError(
        f"No flow declared for '{attribute}' on {subject}",
        why=f"Available flows: {available!r}",
        fix=f"Declare a flow for '{attribute}' or use one of the available attributes.",
        context=ctx,
    )


# --- Helper constructors for config and import errors ---


def config_missing_field(field: str, path: Optional[str] = None) -> ConfigError:
    """Config is missing a required field."""
    ctx = ErrorContext()
    if path:
        ctx.add("config_path", path)
    ctx.add("field", field)

    return ConfigError(
        f"Config missing required field: '{field}'",
        why=f"The '{field}' field is required but was not found in the config.",
        fix=f"Add '{field}' to your config file.",
        context=ctx,
    )


def config_wrong_type(
    field: str, expected: str, got: str, path: Optional[str] = None
) -> ConfigError:
    """Config field has wrong type."""
    ctx = ErrorContext()
    if path:
        ctx.add("config_path", path)
    ctx.add("field", field)
    ctx.add("expected", expected)
    ctx.add("got", got)

    return ConfigError(
        f"Config field '{field}' has wrong type",
        why=f"Expected {expected}, but got {got}.",
        fix=f"Change '{field}' to be a {expected}.",
        context=ctx,
    )


def import_invalid_format(dotted_path: str) -> ImportError_:
    """Dotted path has invalid format."""
    ctx = ErrorContext()
    ctx.add("dotted_path", dotted_path)

    return ImportError_(
        f"Invalid dotted path format: '{dotted_path}'",
        why="Dotted paths must be in 'module:name' format.",
        fix="Use the format 'mypackage.module:my_function' (colon separates module from name).",
        context=ctx,
    )


def import_module_not_found(module: str, dotted_path: str) -> ImportError_:
    """Module in dotted path not found."""
    ctx = ErrorContext()
    ctx.add("module", module)
    ctx.add("dotted_path", dotted_path)

    return ImportError_(
        f"Module not found: '{module}'",
        why="The module specified in the dotted path could not be imported.",
        fix="Check that the module exists and is on your Python path.\n"
        "You may need to install the package or add its directory to sys.path.",
        context=ctx,
    )


def import_symbol_not_found(module: str, symbol: str, dotted_path: str) -> ImportError_:
    """Symbol not found in module."""
    ctx = ErrorContext()
    ctx.add("module", module)
    ctx.add("symbol", symbol)
    ctx.add("dotted_path", dotted_path)

    return ImportError_(
        f"Symbol '{symbol}' not found in module '{module}'",
        why="The module was imported successfully, but doesn't contain that symbol.",
        fix="Check the spelling of the function name.\n"
        "Make sure it's defined at the top level of the module.",
        context=ctx,
    )


def import_not_callable(dotted_path: str, got_type: str) -> ImportError_:
    """Imported symbol cannot be used as a callback."""
    ctx = ErrorContext()
    ctx.add("dotted_path", dotted_path)
    ctx.add("got_type", got_type)

    return ImportError_(
        f"Not callable: '{dotted_path}'",
        why=f"Expected a function or other callable, but got {got_type}.",
        fix="Point the dotted path at a function, e.g. 'mypackage.callbacks:notify'.",
        context=ctx,
    )

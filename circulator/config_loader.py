"""Declarative flow definitions in YAML.

    subject: Document
    attribute: status
    merge_policy: replace
    around: "myapp.flows:with_lock"
    no_action: "myapp.flows:ignore"
    states:
      pending:
        approve: approved
        publish:
          to: published
          allow_if: {review_status: [approved, final]}
          effect: "myapp.flows:notify"
      published: {}
    transitions:
      - action: archive
        from: [approved, published]
        to: archived

Guard strings that look like 'module:name' are imported callables; any
other string is a method name on the subject. ``compute: 'module:fn'``
gives a computed destination.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml

from .errors import ConfigError, ErrorContext, config_missing_field, config_wrong_type
from .extensions import DEFAULT_EXTENSIONS, ExtensionRegistry
from .flow import Flow
from .imports import is_dotted_path, load_callable
from .states import UNSPECIFIED
from .table import MERGE_POLICIES


@dataclass(frozen=True)
class ActionSpec:
    action: str
    sources: Tuple[Any, ...]
    to: Any = UNSPECIFIED
    allow_if: Any = None
    effect: Optional[Callable[..., Any]] = None


@dataclass(frozen=True)
class FlowConfig:
    subject: str
    attribute: str
    states: Tuple[Any, ...] = ()
    actions: Tuple[ActionSpec, ...] = ()
    merge_policy: str = "replace"
    around: Optional[Callable[..., Any]] = None
    no_action: Optional[Callable[..., Any]] = None
    path: Optional[str] = field(default=None, compare=False)

    def declare(self, flow: Flow) -> None:
        """Declaration block replaying this config onto ``flow``."""
        for state in self.states:
            flow.state(state)
        for spec in self.actions:
            flow.action(
                spec.action,
                spec.to,
                from_=list(spec.sources),
                allow_if=spec.allow_if,
                effect=spec.effect,
            )
        if self.around is not None:
            flow.around(self.around)
        if self.no_action is not None:
            flow.no_action(self.no_action)

    def build(self, registry: Optional[ExtensionRegistry] = None, **options: Any) -> Flow:
        return Flow(
            self.subject,
            self.attribute,
            self.declare,
            registry=registry,
            merge_policy=self.merge_policy,
            **options,
        )

    def register(self, registry: Optional[ExtensionRegistry] = None) -> None:
        """Register this config as an extension of subject:attribute."""
        (registry or DEFAULT_EXTENSIONS).register(self.subject, self.attribute, self.declare)


class ConfigLoader:
    @staticmethod
    def load_yaml(path: str | Path) -> Dict[str, Any]:
        p = Path(path)
        with p.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise config_wrong_type(
                field="(root)",
                expected="mapping/object",
                got=type(data).__name__,
                path=str(p),
            )
        return data

    @staticmethod
    def load_flow_config(path: str | Path) -> FlowConfig:
        path_str = str(path)
        data = ConfigLoader.load_yaml(path)
        return ConfigLoader.parse(data, path_str)

    @staticmethod
    def parse(data: Dict[str, Any], path_str: Optional[str] = None) -> FlowConfig:
        for required in ("subject", "attribute"):
            value = data.get(required)
            if value is None or value == "":
                raise config_missing_field(required, path_str)
            if not isinstance(value, str):
                raise config_wrong_type(required, "string", type(value).__name__, path_str)

        merge_policy = data.get("merge_policy", "replace")
        if not isinstance(merge_policy, str) or merge_policy not in MERGE_POLICIES:
            ctx = ErrorContext()
            if path_str:
                ctx.add("config_path", path_str)
            ctx.add("merge_policy", merge_policy)
            raise ConfigError(
                f"Unknown merge_policy: {merge_policy!r}",
                why=f"Config files support the named policies: {', '.join(sorted(MERGE_POLICIES))}.",
                fix="Use 'replace' or 'blend', or build the flow in Python to pass a callable.",
                context=ctx,
            )

        states: List[Any] = []
        actions: List[ActionSpec] = []

        states_mapping = data.get("states") or {}
        if not isinstance(states_mapping, dict):
            raise config_wrong_type("states", "mapping", type(states_mapping).__name__, path_str)

        for state, state_actions in states_mapping.items():
            states.append(state)
            if state_actions is None:
                continue
            if not isinstance(state_actions, dict):
                raise config_wrong_type(
                    f"states.{state}", "mapping", type(state_actions).__name__, path_str
                )
            for action, spec in state_actions.items():
                where = f"states.{state}.{action}"
                actions.append(_action_spec(str(action), (state,), spec, where, path_str))

        transitions = data.get("transitions") or []
        if not isinstance(transitions, list):
            raise config_wrong_type("transitions", "list", type(transitions).__name__, path_str)

        for i, entry in enumerate(transitions):
            where = f"transitions[{i}]"
            if not isinstance(entry, dict):
                raise config_wrong_type(where, "mapping", type(entry).__name__, path_str)
            if "action" not in entry:
                raise config_missing_field(f"{where}.action", path_str)
            if "from" not in entry:
                raise config_missing_field(f"{where}.from", path_str)
            sources = entry["from"]
            sources = tuple(sources) if isinstance(sources, list) else (sources,)
            actions.append(_action_spec(str(entry["action"]), sources, entry, where, path_str))

        return FlowConfig(
            subject=data["subject"],
            attribute=data["attribute"],
            states=tuple(states),
            actions=tuple(actions),
            merge_policy=merge_policy,
            around=_optional_callable(data.get("around"), "around", path_str),
            no_action=_optional_callable(data.get("no_action"), "no_action", path_str),
            path=path_str,
        )


def _action_spec(
    action: str, sources: Tuple[Any, ...], spec: Any, where: str, path_str: Optional[str]
) -> ActionSpec:
    # shorthand: "approve: approved"
    if not isinstance(spec, dict):
        return ActionSpec(action=action, sources=sources, to=spec)

    if "to" in spec and "compute" in spec:
        ctx = ErrorContext()
        if path_str:
            ctx.add("config_path", path_str)
        ctx.add("field", where)
        raise ConfigError(
            f"Both 'to' and 'compute' given for {where}",
            why="A transition has one destination: a state or a computed one.",
            fix="Keep 'to' for a fixed state, or 'compute' for a dotted-path callable.",
            context=ctx,
        )

    if "to" in spec:
        to = spec["to"]
    elif "compute" in spec:
        to = _required_callable(spec["compute"], f"{where}.compute", path_str)
    else:
        to = UNSPECIFIED

    return ActionSpec(
        action=action,
        sources=sources,
        to=to,
        allow_if=_guard(spec.get("allow_if"), f"{where}.allow_if", path_str),
        effect=_optional_callable(spec.get("effect"), f"{where}.effect", path_str),
    )


def _guard(value: Any, where: str, path_str: Optional[str]) -> Any:
    if value is None or isinstance(value, dict):
        return value
    if isinstance(value, str):
        return load_callable(value) if is_dotted_path(value) else value
    if isinstance(value, list):
        return [_guard_element(v, where, path_str) for v in value]
    raise config_wrong_type(where, "string, list, or mapping", type(value).__name__, path_str)


def _guard_element(value: Any, where: str, path_str: Optional[str]) -> Any:
    if not isinstance(value, str):
        raise config_wrong_type(f"{where}[]", "string", type(value).__name__, path_str)
    return load_callable(value) if is_dotted_path(value) else value


def _required_callable(value: Any, where: str, path_str: Optional[str]) -> Callable[..., Any]:
    if not isinstance(value, str):
        raise config_wrong_type(where, "'module:name' string", type(value).__name__, path_str)
    return load_callable(value)


def _optional_callable(value: Any, where: str, path_str: Optional[str]) -> Optional[Callable[..., Any]]:
    if value is None:
        return None
    return _required_callable(value, where, path_str)

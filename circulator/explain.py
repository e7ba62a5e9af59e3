"""Flow explanation without side effects.

explain(flow) answers: "What does this flow allow, from where, under which
guards?" explain_config(path) does the same for a YAML definition, turning
load and declaration failures into diagnostics instead of exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .config_loader import ConfigLoader
from .errors import CirculatorError
from .extensions import ExtensionRegistry
from .flow import Flow, default_no_action
from .guards import All, Always, CrossAttribute, Guard, Named


@dataclass
class Diagnostic:
    """A single warning or error from flow explanation."""

    level: str  # "warning" or "error"
    what: str
    why: Optional[str] = None
    fix: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    def format(self) -> str:
        """Format as structured message (matches CirculatorError format)."""
        lines = [f"[{self.level.upper()}] {self.what}"]
        if self.why:
            lines.append(f"Why: {self.why}")
        if self.fix:
            lines.append(f"Fix: {self.fix}")
        if self.context:
            ctx_lines = [f"  {k}={v!r}" for k, v in self.context.items()]
            lines.append("Context:\n" + "\n".join(ctx_lines))
        return "\n".join(lines)


@dataclass
class TransitionRow:
    action: str
    source: str
    destination: str
    guard: Optional[str] = None
    has_effect: bool = False


@dataclass
class FlowExplanation:
    """Structured explanation of one flow."""

    key: str
    config_path: Optional[str] = None
    states: List[str] = field(default_factory=list)
    transitions: List[TransitionRow] = field(default_factory=list)
    extensions: int = 0
    wrapped: bool = False
    custom_no_action: bool = False

    warnings: List[Diagnostic] = field(default_factory=list)
    errors: List[Diagnostic] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        """True if the flow has no errors (warnings are ok)."""
        return len(self.errors) == 0

    def format(self) -> str:
        """Format as human-readable explanation."""
        lines = [
            "Circulator Flow Explanation",
            "=" * 40,
            f"Flow: {self.key}",
        ]
        if self.config_path:
            lines.append(f"Source: {self.config_path}")
        lines.append("")

        lines.append(f"States: {', '.join(self.states) if self.states else '(none)'}")
        lines.append(f"Extensions applied: {self.extensions}")
        lines.append(f"Around wrapper: {'yes' if self.wrapped else 'no'}")
        lines.append(f"Missing transitions: {'custom handler' if self.custom_no_action else 'raise'}")
        lines.append("")

        lines.append("Transitions:")
        if self.transitions:
            for row in self.transitions:
                line = f"  {row.action}: {row.source} -> {row.destination}"
                if row.guard:
                    line += f"  [if {row.guard}]"
                if row.has_effect:
                    line += "  (+effect)"
                lines.append(line)
        else:
            lines.append("  (none)")
        lines.append("")

        if self.warnings:
            lines.append("Warnings:")
            for w in self.warnings:
                lines.append(f"  ⚠ {w.what}")
                if w.fix:
                    lines.append(f"    Fix: {w.fix}")
            lines.append("")

        if self.errors:
            lines.append("Errors:")
            for e in self.errors:
                lines.append(f"  ✗ {e.what}")
                if e.why:
                    lines.append(f"    Why: {e.why}")
                if e.fix:
                    lines.append(f"    Fix: {e.fix}")
            lines.append("")

        if self.is_valid:
            lines.append("Status: ✓ Valid")
        else:
            lines.append(f"Status: ✗ Invalid - {len(self.errors)} error(s) found")

        return "\n".join(lines)


def describe_guard(guard: Optional[Guard]) -> Optional[str]:
    if guard is None:
        return None
    if isinstance(guard, Always):
        return getattr(guard.predicate, "__name__", "callable")
    if isinstance(guard, Named):
        return guard.name
    if isinstance(guard, CrossAttribute):
        states = ", ".join(sorted(repr(s) for s in guard.states))
        return f"{guard.attribute} in [{states}]"
    if isinstance(guard, All):
        return " and ".join(describe_guard(g) or "" for g in guard.guards)
    return repr(guard)


def _describe_destination(to: Any) -> str:
    if callable(to):
        return f"<{getattr(to, '__name__', 'computed')}()>"
    return repr(to)


def explain(flow: Flow, config_path: Optional[str] = None) -> FlowExplanation:
    exp = FlowExplanation(
        key=flow.key,
        config_path=config_path,
        states=sorted(repr(s) for s in flow.states),
        extensions=len(flow.registry.all(flow.type_name, flow.attribute)),
        wrapped=flow.wrapper is not None,
        custom_no_action=flow.missing_handler is not default_no_action,
    )

    touched = set()
    for action, source, rule in flow.table.items():
        touched.add(source)
        if not rule.computed:
            touched.add(rule.to)
        exp.transitions.append(
            TransitionRow(
                action=str(action),
                source=repr(source),
                destination=_describe_destination(rule.to),
                guard=describe_guard(rule.guard),
                has_effect=rule.effect is not None,
            )
        )

    for state in sorted(flow.states - touched, key=repr):
        exp.warnings.append(
            Diagnostic(
                level="warning",
                what=f"State {state!r} has no transitions in or out",
                why="It is declared but no action starts from it or leads to it.",
                fix="Add a transition to or from it, or drop the declaration.",
                context={"state": state},
            )
        )

    return exp


def explain_config(
    config_path: Union[str, Path], registry: Optional[ExtensionRegistry] = None
) -> FlowExplanation:
    """Load and build a YAML flow in isolation and explain it.

    A fresh registry is used unless one is given, so nothing leaks into
    DEFAULT_EXTENSIONS.
    """
    path_str = str(config_path)
    try:
        config = ConfigLoader.load_flow_config(config_path)
        flow = config.build(registry=registry or ExtensionRegistry())
    except CirculatorError as e:
        exp = FlowExplanation(key="(unknown)", config_path=path_str)
        exp.errors.append(
            Diagnostic(level="error", what=e.what, why=e.why, fix=e.fix, context=dict(e.context.items))
        )
        return exp
    except yaml.YAMLError as e:
        exp = FlowExplanation(key="(unknown)", config_path=path_str)
        exp.errors.append(
            Diagnostic(
                level="error",
                what=f"Invalid YAML in config file: {path_str}",
                why=str(e),
                fix="Check the file for syntax errors.",
                context={"config_path": path_str},
            )
        )
        return exp
    except OSError as e:
        exp = FlowExplanation(key="(unknown)", config_path=path_str)
        exp.errors.append(
            Diagnostic(
                level="error",
                what=f"Cannot read config file: {path_str}",
                why=str(e),
                fix="Check the path and file permissions.",
                context={"config_path": path_str},
            )
        )
        return exp

    return explain(flow, config_path=path_str)

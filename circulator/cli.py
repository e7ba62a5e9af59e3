from __future__ import annotations

import argparse
import os
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

from .config_loader import ConfigLoader
from .dispatch import available, invoke
from .errors import CirculatorError
from .explain import explain
from .extensions import ExtensionRegistry
from .flow import Flow
from .logger import get_logger, set_correlation_id

CONFIG_ENV = "CIRCULATOR_CONFIG"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Circulator CLI")
    sub = p.add_subparsers(dest="command", required=True)

    def add_common(cmd: argparse.ArgumentParser) -> None:
        cmd.add_argument("--config", type=str, default=None,
                         help=f"Path to flow YAML (or use {CONFIG_ENV}).")
        cmd.add_argument("--extension", action="append", default=[],
                         help="Extension flow YAML to merge in (repeatable, applied in order).")

    def add_subject(cmd: argparse.ArgumentParser) -> None:
        cmd.add_argument("--state", type=str, default=None,
                         help="Current state of the subject (omit for the absent state).")
        cmd.add_argument("--set", dest="attributes", action="append", default=[],
                         metavar="NAME=VALUE", help="Extra subject attribute, e.g. review_status=approved.")

    exp = sub.add_parser("explain", help="Print the flow's states and transitions.")
    add_common(exp)

    acts = sub.add_parser("actions", help="List actions available from a state.")
    add_common(acts)
    add_subject(acts)

    inv = sub.add_parser("invoke", help="Run one action and print the resulting state.")
    add_common(inv)
    add_subject(inv)
    inv.add_argument("action", type=str, help="Action name")
    inv.add_argument("args", nargs="*", help="Positional arguments passed to the callbacks")
    inv.add_argument("--strict", action="store_true", help="Fail instead of doing nothing.")

    return p


def _resolve_config_path(cli_value: Optional[str]) -> str:
    path = cli_value or os.getenv(CONFIG_ENV)
    if not path:
        raise SystemExit(f"No config provided. Use --config or set {CONFIG_ENV}.")
    return path


def _load_flow(args) -> Flow:
    registry = ExtensionRegistry()
    config = ConfigLoader.load_flow_config(_resolve_config_path(args.config))
    for ext_path in args.extension:
        ext = ConfigLoader.load_flow_config(ext_path)
        if (ext.subject, ext.attribute) != (config.subject, config.attribute):
            raise SystemExit(
                f"Extension {ext_path} targets {ext.subject}:{ext.attribute}, "
                f"not {config.subject}:{config.attribute}."
            )
        ext.register(registry)
    return config.build(registry=registry)


def _subject(flow: Flow, args) -> SimpleNamespace:
    attributes: Dict[str, Any] = {}
    for item in args.attributes:
        name, sep, value = item.partition("=")
        if not sep or not name:
            raise SystemExit(f"Invalid --set value {item!r}; expected NAME=VALUE.")
        attributes[name] = value
    attributes[flow.attribute] = args.state
    return SimpleNamespace(**attributes)


def cmd_explain(args) -> None:
    flow = _load_flow(args)
    print(explain(flow, config_path=args.config or os.getenv(CONFIG_ENV)).format())


def cmd_actions(args) -> None:
    flow = _load_flow(args)
    subject = _subject(flow, args)
    actions: List[Any] = available(flow, subject)
    for action in actions:
        print(action)


def cmd_invoke(args) -> None:
    logger = get_logger("circulator")
    set_correlation_id()

    flow = _load_flow(args)
    subject = _subject(flow, args)
    mode = "strict" if args.strict else "soft"

    result = invoke(flow, subject, args.action, *args.args, mode=mode)
    logger.info("%s %s -> %r", flow.key, args.action, result)
    print(getattr(subject, flow.attribute))


def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    commands = {
        "explain": cmd_explain,
        "actions": cmd_actions,
        "invoke": cmd_invoke,
    }
    try:
        commands[args.command](args)
    except CirculatorError as e:
        raise SystemExit(str(e)) from None


if __name__ == "__main__":
    main()

#!/usr/bin/env python
"""
Document Review Example

Demonstrates:
- Loading a flow from YAML with guards, effects and a locking wrapper
- Driving a plain object through it with invoke()
- Registering an extension after the flow exists
- Computed destinations and strict mode

Run: python app.py
"""

from __future__ import annotations

import sys
from pathlib import Path

# Add the example directory to path so the YAML can find callbacks
sys.path.insert(0, str(Path(__file__).parent))

from circulator import ExtensionRegistry, InvalidTransition, available, explain, invoke
from circulator.config_loader import ConfigLoader

HERE = Path(__file__).parent


class Document:
    def __init__(self, title: str):
        self.title = title
        self.status = "draft"
        self.signed_off = False
        self.history = []

    def is_signed_off(self):
        return self.signed_off


def build(registry: ExtensionRegistry):
    return ConfigLoader.load_flow_config(HERE / "flow.yaml").build(registry=registry)


def main():
    registry = ExtensionRegistry()
    flow = build(registry)
    doc = Document("Quarterly report")

    print(explain(flow, config_path=str(HERE / "flow.yaml")).format())

    print("\n--- Running review demo ---\n")

    print("Available:", available(flow, doc))
    print("submit ->", invoke(flow, doc, "submit"))

    # Guard blocks until sign-off; soft mode returns None
    print("publish (unsigned) ->", invoke(flow, doc, "publish"))

    # Late extension: merged into the live flow straight away
    ConfigLoader.load_flow_config(HERE / "legal.yaml").register(registry)
    print("Available after legal extension:", available(flow, doc))

    print("send_to_legal ->", invoke(flow, doc, "send_to_legal"))
    print("clear ->", invoke(flow, doc, "clear", verdict="ok"))

    doc.signed_off = True
    print("publish (signed) ->", invoke(flow, doc, "publish"))

    # Missing transition goes to the quiet handler in soft mode
    print("submit (published) ->", invoke(flow, doc, "submit"))

    try:
        invoke(flow, doc, "submit", mode="strict")
    except InvalidTransition as e:
        print(f"strict submit failed: {e.what}")

    print(f"\nFinal state: {doc.status}")
    print(f"History: {doc.history}")


if __name__ == "__main__":
    main()

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from circulator import DEFAULT_EXTENSIONS, ExtensionRegistry


@pytest.fixture(autouse=True)
def clean_default_extensions():
    """Extensions and tracked flows are process-wide; reset them per test."""
    DEFAULT_EXTENSIONS.clear()
    yield
    DEFAULT_EXTENSIONS.clear()


@pytest.fixture
def registry() -> ExtensionRegistry:
    return ExtensionRegistry()


@pytest.fixture
def document_flow_yaml(tmp_path: Path) -> Path:
    p = tmp_path / "document.yaml"
    p.write_text(
        textwrap.dedent(
            """\
            subject: Document
            attribute: status
            states:
              pending:
                approve: approved
                reject:
                  to: rejected
                  effect: "fixture_callbacks:record_effect"
              approved:
                publish:
                  to: published
                  allow_if: "fixture_callbacks:always_true"
              published: {}
            """
        ),
        encoding="utf-8",
    )
    return p


@pytest.fixture
def legal_extension_yaml(tmp_path: Path) -> Path:
    p = tmp_path / "legal.yaml"
    p.write_text(
        textwrap.dedent(
            """\
            subject: Document
            attribute: status
            states:
              pending:
                send_to_legal: legal_review
              legal_review:
                approve: approved
            """
        ),
        encoding="utf-8",
    )
    return p

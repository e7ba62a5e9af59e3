"""Circulator - declarative state transitions for plain Python objects.

Quick Start:
    from circulator import Circulator

    def status_flow(flow):
        with flow.state("pending"):
            flow.action("approve", to="approved")
            flow.action("reject", to="rejected", allow_if="can_reject")

        with flow.state("approved"):
            flow.action("publish", to="published")

    class Document(Circulator, flows={"status": status_flow}):
        def __init__(self):
            self.status = "pending"

        def can_reject(self):
            return True

    doc = Document()
    doc.status_approve()                # "approved"
    doc.available_flows("status")       # ["publish"]
    doc.status_approve(mode="strict")   # raises Document.InvalidTransition

Without a host class:
    from circulator import Flow, invoke

    flow = Flow("Document", "status", status_flow)
    invoke(flow, some_object, "approve")

Extensions add declarations to a flow, before or after it exists:
    from circulator import extension

    @extension("Document", "status")
    def legal_review(flow):
        with flow.state("pending"):
            flow.action("send_to_legal", to="legal_review")
"""

from .config_loader import ConfigLoader, FlowConfig
from .dispatch import available, invoke, query
from .errors import (
    CirculatorError,
    ConfigError,
    DeclarationError,
    ImportError_,
    InvalidTransition,
    NoTransitionError,
    UnknownFlowError,
    transition_error_for,
)
from .explain import Diagnostic, FlowExplanation, explain, explain_config
from .extensions import DEFAULT_EXTENSIONS, ExtensionRegistry, extension
from .flow import Flow
from .guards import All, Always, CrossAttribute, Named
from .host import Circulator, define_flow
from .states import ABSENT, UNSPECIFIED
from .table import MERGE_POLICIES, Transition, TransitionTable, blend, replace

__all__ = [
    # Core
    "Flow",
    "Transition",
    "TransitionTable",
    "invoke",
    "query",
    "available",
    # Host classes
    "Circulator",
    "define_flow",
    # Guards
    "Always",
    "Named",
    "CrossAttribute",
    "All",
    # Merging
    "MERGE_POLICIES",
    "replace",
    "blend",
    # Extensions
    "ExtensionRegistry",
    "DEFAULT_EXTENSIONS",
    "extension",
    # States
    "ABSENT",
    "UNSPECIFIED",
    # Config
    "ConfigLoader",
    "FlowConfig",
    # Errors
    "CirculatorError",
    "DeclarationError",
    "InvalidTransition",
    "NoTransitionError",
    "UnknownFlowError",
    "ConfigError",
    "ImportError_",
    "transition_error_for",
    # Introspection
    "explain",
    "explain_config",
    "FlowExplanation",
    "Diagnostic",
]

__version__ = "0.1.0"

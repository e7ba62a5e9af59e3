"""Registry of deferred flow declarations (extensions).

Extensions are declaration blocks keyed by ``"<TypeName>:<attribute>"``.
A flow built for that key merges them in registration order. Registering
after the flow exists merges into it straight away.

The registry also remembers the most recent flow built for each key, which
is how late extensions find their flow and how cross-attribute guards find
the flows they depend on.

Registration is meant to happen at import time, before any concurrent use.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Any, Callable, DefaultDict, Dict, List, Optional, Union

from .errors import ErrorContext, DeclarationError
from .logger import get_logger

if TYPE_CHECKING:
    from .flow import Flow

DeclarationBlock = Callable[["Flow"], Any]


def type_name(subject_type: Union[type, str]) -> str:
    if isinstance(subject_type, type):
        return subject_type.__name__
    return str(subject_type)


class ExtensionRegistry:
    def __init__(self, logger: Any = None) -> None:
        self._extensions: DefaultDict[str, List[DeclarationBlock]] = defaultdict(list)
        self._flows: Dict[str, "Flow"] = {}
        self._logger = logger or get_logger("circulator")

    @staticmethod
    def key(subject_type: Union[type, str], attribute: str) -> str:
        return f"{type_name(subject_type)}:{attribute}"

    def register(
        self, subject_type: Union[type, str], attribute: str, block: DeclarationBlock
    ) -> DeclarationBlock:
        """Add an extension, applying it at once if the flow already exists."""
        if not callable(block):
            ctx = ErrorContext().add("subject", type_name(subject_type)).add("attribute", attribute)
            raise DeclarationError(
                "An extension requires a declaration block",
                why=f"Got {type(block).__name__} instead of a callable taking the flow.",
                fix="Pass a function: registry.register('Document', 'status', my_block)",
                context=ctx,
            )

        key = self.key(subject_type, attribute)
        flow = self._flows.get(key)
        if flow is not None:
            self._logger.info("Applying late extension to existing flow %s", key)
            # a block that fails to merge is not kept
            flow.merge(block)
        self._extensions[key].append(block)
        return block

    def extension(
        self, subject_type: Union[type, str], attribute: str
    ) -> Callable[[DeclarationBlock], DeclarationBlock]:
        """Decorator form of register()."""

        def decorator(block: DeclarationBlock) -> DeclarationBlock:
            return self.register(subject_type, attribute, block)

        return decorator

    def all(self, subject_type: Union[type, str], attribute: str) -> List[DeclarationBlock]:
        return list(self._extensions.get(self.key(subject_type, attribute), []))

    def keys(self) -> List[str]:
        return sorted(k for k, v in self._extensions.items() if v)

    def track(self, flow: "Flow") -> None:
        self._flows[flow.key] = flow

    def untrack(self, flow: "Flow") -> None:
        if self._flows.get(flow.key) is flow:
            del self._flows[flow.key]

    def flow(self, subject_type: Union[type, str], attribute: str) -> Optional["Flow"]:
        return self._flows.get(self.key(subject_type, attribute))

    def flows_for(self, subject_type: Union[type, str]) -> List[str]:
        prefix = f"{type_name(subject_type)}:"
        return sorted(k[len(prefix):] for k in self._flows if k.startswith(prefix))

    def clear(self) -> None:
        """Forget every extension and tracked flow (tests)."""
        self._extensions.clear()
        self._flows.clear()


DEFAULT_EXTENSIONS = ExtensionRegistry()


def extension(
    subject_type: Union[type, str], attribute: str
) -> Callable[[DeclarationBlock], DeclarationBlock]:
    """Register a block with DEFAULT_EXTENSIONS.

    Example:
        @extension("Document", "status")
        def legal_review(flow):
            with flow.state("pending"):
                flow.action("send_to_legal", to="legal_review")
    """
    return DEFAULT_EXTENSIONS.extension(subject_type, attribute)

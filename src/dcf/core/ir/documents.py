"""
Document types for DCF IR.

A Document is one decoded input tree split into its header (version, kind,
profile, name, capabilities) and its kind-specific body.
"""

from __future__ import annotations

import re
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DocumentKind(StrEnum):
    """Kinds of DCF documents."""

    TOKENS = "tokens"
    THEME = "theme"
    THEMING = "theming"
    COMPONENT = "component"
    LAYOUT = "layout"
    SCREEN = "screen"
    NAVIGATION = "navigation"
    FLOW = "flow"
    RULES = "rules"
    I18N = "i18n"


# Kinds whose documents must carry a PascalCase name
NAMED_KINDS: frozenset[DocumentKind] = frozenset(
    {
        DocumentKind.COMPONENT,
        DocumentKind.LAYOUT,
        DocumentKind.SCREEN,
        DocumentKind.NAVIGATION,
        DocumentKind.FLOW,
    }
)

NAME_PATTERN = re.compile(r"^[A-Z][a-zA-Z0-9]*$")

HEADER_KEYS: frozenset[str] = frozenset({"dcf_version", "kind", "profile", "name", "capabilities"})


def is_valid_name(name: str) -> bool:
    """Check a document name against the PascalCase naming pattern."""
    return bool(NAME_PATTERN.match(name))


class RawDocument(BaseModel):
    """
    An input tree as handed to the engine.

    Attributes:
        source: File path or caller-supplied label used in diagnostic paths
        tree: Decoded key/value tree
        index: Position inside a multi-document file, if any
    """

    model_config = ConfigDict(frozen=True)

    source: str
    tree: dict[str, Any]
    index: int | None = None

    @property
    def label(self) -> str:
        if self.index is None:
            return self.source
        return f"{self.source}[{self.index}]"


class Document(BaseModel):
    """
    A document whose header has been read.

    The body holds every top-level key that is not a header key.
    """

    model_config = ConfigDict(frozen=True)

    source: str
    dcf_version: str
    kind: DocumentKind
    profile: str | None = None
    name: str | None = None
    capabilities: dict[str, bool] | None = None
    body: dict[str, Any] = Field(default_factory=dict)

    @property
    def requires_name(self) -> bool:
        return self.kind in NAMED_KINDS

    @property
    def label(self) -> str:
        """Short label such as 'component:Button' for messages."""
        if self.name:
            return f"{self.kind.value}:{self.name}"
        return self.kind.value

    def locate(self, *parts: str | int) -> str:
        """
        Build a diagnostic path inside this document.

        Example:
            doc.locate("tokens", "primary") -> "button.yaml#tokens.primary"
        """
        if not parts:
            return self.source
        return f"{self.source}#" + ".".join(str(p) for p in parts)

"""
Error types for DCF loading, configuration, caching and run control.

Content problems found while validating documents are never raised: they are
reported as diagnostics (see ``dcf.core.ir.diagnostics``). The exceptions
below cover I/O, manifest problems, API misuse and cancellation.
"""

from dataclasses import dataclass
from typing import Optional


class DCFError(Exception):
    """Base exception for all DCF errors."""

    def __init__(self, message: str, context: Optional["ErrorContext"] = None):
        self.message = message
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format error message with context if available."""
        if self.context:
            return f"{self.context.format()}\n{self.message}"
        return self.message


class LoadError(DCFError):
    """
    Raised when a document file cannot be read or decoded.

    Examples:
    - Invalid YAML or JSON syntax
    - Unreadable file
    - Top-level value is not a mapping
    """

    pass


class ManifestError(DCFError):
    """
    Raised when dcf.toml is missing or invalid.

    Examples:
    - TOML syntax errors
    - Unknown profile name in [validation]
    - Non-boolean values in [capabilities]
    """

    pass


class CacheError(DCFError):
    """Raised when a token cache entry cannot be written."""

    pass


class InvalidDataTransition(DCFError):
    """Raised when a data source state machine receives an illegal event."""

    pass


class RunCancelled(DCFError):
    """Raised when a validation run is abandoned before completion."""

    pass


@dataclass
class ErrorContext:
    """
    Location of an error inside a document set.

    Attributes:
        source: Document source (file path or caller-supplied label)
        pointer: Optional dotted location inside the document
        index: Optional position of the document inside a multi-document file
    """

    source: str
    pointer: str | None = None
    index: int | None = None

    def format(self) -> str:
        """
        Format error context as a human-readable string.

        Returns:
            Formatted string like: "tokens.yaml[1]#color.accent"
        """
        location = self.source
        if self.index is not None:
            location += f"[{self.index}]"
        if self.pointer:
            location += f"#{self.pointer}"
        return location


def make_load_error(
    message: str,
    source: str,
    index: int | None = None,
) -> LoadError:
    """
    Helper to create a LoadError with context.

    Args:
        message: Error description
        source: File path or label of the document
        index: Optional position inside a multi-document file

    Returns:
        LoadError with context attached
    """
    return LoadError(message, ErrorContext(source=source, index=index))

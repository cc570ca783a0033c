"""
DCF - semantic validation and resolution engine for the Design Concept Format.

Turns a set of decoded, cross-referencing design-system documents (tokens,
themes, components, layouts, screens, navigation, flows, rules, i18n) into a
validated, resolved design model plus a diagnostic report.
"""

from __future__ import annotations

from ._version import __version__
from .core import ir
from .core.errors import DCFError, LoadError, ManifestError, RunCancelled
from .core.orchestrator import (
    CancellationToken,
    LiveValidator,
    ResolutionConfig,
    validate_documents,
)
from .core.report import ResolvedModel, ValidationReport

__all__ = [
    "__version__",
    "ir",
    # Running
    "CancellationToken",
    "LiveValidator",
    "ResolutionConfig",
    "validate_documents",
    # Results
    "ResolvedModel",
    "ValidationReport",
    # Errors
    "DCFError",
    "LoadError",
    "ManifestError",
    "RunCancelled",
]

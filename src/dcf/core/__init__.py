"""Core DCF functionality: IR, intake, token graph, validators, linker, rules, orchestration."""

from . import ir
from .errors import (
    CacheError,
    DCFError,
    ErrorContext,
    InvalidDataTransition,
    LoadError,
    ManifestError,
    RunCancelled,
)
from .orchestrator import CancellationToken, LiveValidator, ResolutionConfig, validate_documents
from .project import load_project, validate_project
from .report import ResolvedModel, ValidationReport

__all__ = [
    "ir",
    # Errors
    "CacheError",
    "DCFError",
    "ErrorContext",
    "InvalidDataTransition",
    "LoadError",
    "ManifestError",
    "RunCancelled",
    # Orchestration
    "CancellationToken",
    "LiveValidator",
    "ResolutionConfig",
    "validate_documents",
    "load_project",
    "validate_project",
    # Results
    "ResolvedModel",
    "ValidationReport",
]

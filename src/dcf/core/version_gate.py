"""
Document version gating.

Compares a document's ``dcf_version`` with the version the engine supports:
a malformed string or a different MAJOR excludes the document, a newer MINOR
is accepted with a warning, PATCH differences are ignored.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from .ir import Diagnostic, DiagnosticCode, DiagnosticSink

SUPPORTED_VERSION = "1.2.0"

VERSION_PATTERN = re.compile(r"^([0-9]+)\.([0-9]+)\.([0-9]+)$")


def parse_version(version: str) -> tuple[int, int, int] | None:
    """Parse 'MAJOR.MINOR.PATCH' into a tuple, or None if malformed."""
    match = VERSION_PATTERN.match(version)
    if not match:
        return None
    major, minor, patch = match.groups()
    return int(major), int(minor), int(patch)


@dataclass(frozen=True)
class VersionVerdict:
    """
    Outcome of gating one document.

    Attributes:
        accepted: False when the document must be excluded
        newer_minor: True when the document may carry fields this engine
            does not know
        diagnostics: Findings produced by the gate
    """

    accepted: bool
    newer_minor: bool = False
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)


def check_version(
    declared: object,
    path: str,
    supported: str = SUPPORTED_VERSION,
) -> VersionVerdict:
    """
    Gate a document on its declared version.

    Args:
        declared: The raw ``dcf_version`` value (may be missing or not a string)
        path: Diagnostic path of the document
        supported: Version implemented by the engine

    Returns:
        VersionVerdict
    """
    sink = DiagnosticSink()
    engine = parse_version(supported)
    if engine is None:
        raise ValueError(f"Engine version '{supported}' is not MAJOR.MINOR.PATCH")

    if not isinstance(declared, str) or (version := parse_version(declared)) is None:
        sink.emit(
            DiagnosticCode.MALFORMED_VERSION,
            path,
            f"dcf_version {declared!r} does not match MAJOR.MINOR.PATCH",
        )
        return VersionVerdict(accepted=False, diagnostics=sink.diagnostics)

    if version[0] != engine[0]:
        sink.emit(
            DiagnosticCode.INCOMPATIBLE_MAJOR,
            path,
            f"dcf_version {declared} is incompatible with supported version {supported}",
        )
        return VersionVerdict(accepted=False, diagnostics=sink.diagnostics)

    newer_minor = version[1] > engine[1]
    if newer_minor:
        sink.emit(
            DiagnosticCode.UNKNOWN_MINOR_FIELDS,
            path,
            f"dcf_version {declared} is newer than supported {supported}; "
            "unrecognized fields are ignored",
        )
    return VersionVerdict(accepted=True, newer_minor=newer_minor, diagnostics=sink.diagnostics)

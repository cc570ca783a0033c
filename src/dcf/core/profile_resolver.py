"""
Profile resolution.

A document's ``profile`` field selects one row of the profile table; the row
applies to the whole document. Documents without the field use the default
from the ResolutionConfig.
"""

from __future__ import annotations

from .ir import (
    PROFILE_TABLE,
    CheckCategory,
    DiagnosticCode,
    DiagnosticSink,
    Profile,
    ProfileRow,
    profile_row,
)


def resolve_profile(
    declared: object,
    default: Profile | str,
    path: str,
    sink: DiagnosticSink,
) -> ProfileRow:
    """
    Resolve the strictness row for a document.

    Unknown profile names are reported and fall back to the default.
    """
    if declared is None:
        return profile_row(default)
    try:
        return profile_row(str(declared))
    except ValueError:
        valid = ", ".join(p.value for p in Profile)
        sink.emit(
            DiagnosticCode.UNKNOWN_PROFILE,
            path,
            f"Unknown profile {declared!r} (expected one of: {valid}); using '{Profile(default)}'",
        )
        return profile_row(default)


def is_monotonic() -> bool:
    """Check that every stricter profile is at least as strict per category."""
    ordered = sorted(PROFILE_TABLE.values(), key=lambda row: row.profile.rank)
    for lower, higher in zip(ordered, ordered[1:], strict=False):
        for category in CheckCategory:
            if lower.verdict(category).rank > higher.verdict(category).rank:
                return False
    return True

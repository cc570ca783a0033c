"""
Validation profile types for DCF IR.

A profile is a strictness tier applied uniformly to one document. The
profile table maps each tier to a verdict per check category and is built
once at import time.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict


class Profile(StrEnum):
    """Validation strictness tiers, ordered lite < standard < strict."""

    LITE = "lite"
    STANDARD = "standard"
    STRICT = "strict"

    @property
    def rank(self) -> int:
        return _PROFILE_ORDER.index(self)


_PROFILE_ORDER: tuple[Profile, ...] = (Profile.LITE, Profile.STANDARD, Profile.STRICT)


class Strictness(StrEnum):
    """Verdict for one check category under a profile."""

    SKIP = "skip"
    WARN = "warn"
    ERROR = "error"

    @property
    def rank(self) -> int:
        return _STRICTNESS_ORDER.index(self)


_STRICTNESS_ORDER: tuple[Strictness, ...] = (Strictness.SKIP, Strictness.WARN, Strictness.ERROR)


class CheckCategory(StrEnum):
    """Content-quality check categories routed through the active profile."""

    MISSING_REQUIRED = "missing_required"
    UNDEFINED_TOKENS = "undefined_tokens"
    INCOMPLETE_VARIANTS = "incomplete_variants"
    ACCESSIBILITY = "accessibility"


class ProfileRow(BaseModel):
    """The strictness verdicts of a single profile."""

    model_config = ConfigDict(frozen=True)

    profile: Profile
    missing_required: Strictness
    undefined_tokens: Strictness
    incomplete_variants: Strictness
    accessibility: Strictness

    def verdict(self, category: CheckCategory) -> Strictness:
        """Get the verdict for a check category."""
        return getattr(self, category.value)


PROFILE_TABLE: Mapping[Profile, ProfileRow] = MappingProxyType(
    {
        Profile.LITE: ProfileRow(
            profile=Profile.LITE,
            missing_required=Strictness.WARN,
            undefined_tokens=Strictness.SKIP,
            incomplete_variants=Strictness.SKIP,
            accessibility=Strictness.SKIP,
        ),
        Profile.STANDARD: ProfileRow(
            profile=Profile.STANDARD,
            missing_required=Strictness.ERROR,
            undefined_tokens=Strictness.WARN,
            incomplete_variants=Strictness.WARN,
            accessibility=Strictness.WARN,
        ),
        Profile.STRICT: ProfileRow(
            profile=Profile.STRICT,
            missing_required=Strictness.ERROR,
            undefined_tokens=Strictness.ERROR,
            incomplete_variants=Strictness.ERROR,
            accessibility=Strictness.ERROR,
        ),
    }
)


def profile_row(profile: Profile | str) -> ProfileRow:
    """Look up the strictness row for a profile name."""
    return PROFILE_TABLE[Profile(profile)]

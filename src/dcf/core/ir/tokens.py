"""
Token and theme types for DCF IR.

Example theme document:
    dcf_version: "1.2.0"
    kind: theme
    layer: mode
    variant: dark
    tokens:
      color:
        surface: "#121212"
        accent: lighten(10%)
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_MERGE_ORDER: tuple[str, ...] = ("base", "brand", "mode", "density", "shape")

# Layer name under which plain tokens documents contribute
BASE_TOKENS_LAYER = "tokens"


class _UnresolvedType:
    """Sentinel for token values that cannot be resolved (cycles, bad transforms)."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNRESOLVED"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "UNRESOLVED"


UNRESOLVED = _UnresolvedType()


class ThemeBody(BaseModel):
    """A theme layer contribution."""

    model_config = ConfigDict(frozen=True, extra="allow")

    layer: str = ""
    variant: str | None = None
    default: bool = False
    tokens: dict[str, Any] = Field(default_factory=dict)


class ThemingBody(BaseModel):
    """Theme composition: layer order and the active variant per layer."""

    model_config = ConfigDict(frozen=True, extra="allow")

    merge_order: list[str] = Field(default_factory=lambda: list(DEFAULT_MERGE_ORDER))
    active: dict[str, str] = Field(default_factory=dict)


class TokenSnapshot(BaseModel):
    """
    Serializable result of token resolution.

    Unresolved paths are listed separately; their entry in ``values`` is None.
    """

    model_config = ConfigDict(frozen=True)

    values: dict[str, Any] = Field(default_factory=dict)
    unresolved: list[str] = Field(default_factory=list)
    layers: dict[str, str] = Field(default_factory=dict)
    merge_order: list[str] = Field(default_factory=list)

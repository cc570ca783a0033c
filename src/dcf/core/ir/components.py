"""
Component types for DCF IR.

Example component document:
    dcf_version: "1.2.0"
    kind: component
    name: Button
    category: control
    props:
      label: {type: string, required: true}
      iconOnly: {type: boolean}
    variants:
      intent: [primary, secondary, danger]
      size: [sm, md, lg]
    states:
      default: {}
      hover: {background: darken(10%)}
      disabled: {opacity: 0.4}
    state_precedence: [disabled, hover, default]
    tokens:
      base: {background: "{color.surface}", min_height: "{size.touch}"}
      primary: {background: "{color.accent}"}
    variant_matrix:
      mode: blocklist
      deny:
        - {intent: danger, size: sm}
      fallback: {size: md}
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# States that block every state ordered after them in the precedence list
BLOCKING_STATES: tuple[str, ...] = ("disabled", "loading")

DEFAULT_STATE = "default"

# Categories whose components receive user input
INTERACTIVE_CATEGORIES: frozenset[str] = frozenset({"control", "input", "action", "navigation"})

ICON_ONLY = "iconOnly"


def variant_value(value: Any) -> Any:
    """Spell a scalar variant value as a string; YAML booleans keep their YAML spelling."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    return value


def _rule_values(rule: Any) -> Any:
    if not isinstance(rule, dict):
        return rule
    return {
        axis: [variant_value(v) for v in expected]
        if isinstance(expected, list)
        else variant_value(expected)
        for axis, expected in rule.items()
    }


class MatrixMode(StrEnum):
    """How a variant matrix decides validity."""

    ALL = "all"
    ALLOWLIST = "allowlist"
    BLOCKLIST = "blocklist"


class VariantMatrixSpec(BaseModel):
    """
    Rules restricting variant combinations.

    A rule maps axis names to a value or a list of values; it matches a
    combination when every axis it names holds one of those values.
    """

    model_config = ConfigDict(frozen=True)

    mode: MatrixMode = MatrixMode.ALL
    allow: list[dict[str, Any]] = Field(default_factory=list)
    deny: list[dict[str, Any]] = Field(default_factory=list)
    fallback: dict[str, str] | None = None

    @model_validator(mode="before")
    @classmethod
    def _stringify_values(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("allow", "deny"):
            if isinstance(data.get(key), list):
                data[key] = [_rule_values(rule) for rule in data[key]]
        if isinstance(data.get("fallback"), dict):
            data["fallback"] = _rule_values(data["fallback"])
        return data


class PropSpec(BaseModel):
    """A component property declaration."""

    model_config = ConfigDict(frozen=True)

    type: str = "string"
    required: bool = False
    default: Any = None


class AccessibilitySpec(BaseModel):
    """Accessibility metadata of a component."""

    model_config = ConfigDict(frozen=True, extra="allow")

    role: str | None = None
    label: str | None = None
    label_required: bool = False


class ComponentSpec(BaseModel):
    """
    A reusable component with variant axes and interaction states.

    ``states`` accepts an ordered list of names or an ordered mapping of
    state name to token overrides; both normalise to ``states`` and
    ``state_tokens``.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str
    category: str = "display"
    props: dict[str, PropSpec] = Field(default_factory=dict)
    variants: dict[str, list[str]] = Field(default_factory=dict)
    states: list[str] = Field(default_factory=lambda: [DEFAULT_STATE])
    state_tokens: dict[str, dict[str, Any]] = Field(default_factory=dict)
    state_precedence: list[str] | None = None
    tokens: dict[str, dict[str, Any]] = Field(default_factory=dict)
    variant_matrix: VariantMatrixSpec = Field(default_factory=VariantMatrixSpec)
    accessibility: AccessibilitySpec = Field(default_factory=AccessibilitySpec)

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        states = data.get("states")
        if isinstance(states, dict):
            data["states"] = list(states)
            # Non-mapping overrides are left for field validation to reject
            data["state_tokens"] = {
                name: {} if overrides is None else overrides
                for name, overrides in states.items()
            }
        variants = data.get("variants")
        if isinstance(variants, dict):
            data["variants"] = {
                axis: [variant_value(v) for v in values] if isinstance(values, list) else values
                for axis, values in variants.items()
            }
        tokens = data.get("tokens")
        if isinstance(tokens, dict):
            data["tokens"] = {variant_value(key): block for key, block in tokens.items()}
        return data

    @property
    def is_interactive(self) -> bool:
        return self.category in INTERACTIVE_CATEGORIES

    @property
    def has_icon_only(self) -> bool:
        """Check if the component can render without visible text."""
        return ICON_ONLY in self.props or ICON_ONLY in self.variants

    @property
    def effective_precedence(self) -> list[str]:
        """
        The state walk order.

        Declared precedence when present; otherwise blocking states first,
        the rest in declaration order and ``default`` last.
        """
        if self.state_precedence is not None:
            return list(self.state_precedence)
        blocking = [s for s in self.states if s in BLOCKING_STATES]
        rest = [s for s in self.states if s not in BLOCKING_STATES and s != DEFAULT_STATE]
        tail = [DEFAULT_STATE] if DEFAULT_STATE in self.states else []
        return blocking + rest + tail


class CoverageReport(BaseModel):
    """Variant coverage of one component."""

    model_config = ConfigDict(frozen=True)

    component: str
    total_combinations: int
    valid_combinations: int
    invalid_combinations: int
    invalid: list[dict[str, str]] = Field(default_factory=list)

    @property
    def coverage(self) -> float:
        if self.total_combinations == 0:
            return 1.0
        return self.valid_combinations / self.total_combinations

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_combinations": self.total_combinations,
            "valid_combinations": self.valid_combinations,
            "invalid_combinations": self.invalid_combinations,
            "coverage": round(self.coverage, 4),
            "invalid": [dict(c) for c in self.invalid],
        }

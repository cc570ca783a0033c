"""
Global rule and i18n types for DCF IR.

Rules are data: a closed set of kinds with typed parameters. Both forms are
accepted:

    rules:
      navigation.max_depth: 4
      layout.one_primary_action_per_screen: true

    rules:
      - id: shallow-nav
        kind: navigation.max_depth
        params: {max: 3}
        severity: warning
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .diagnostics import Severity


class RuleKind(StrEnum):
    """Closed set of global rule kinds."""

    NAVIGATION_MAX_DEPTH = "navigation.max_depth"
    NAVIGATION_NO_ORPHAN_SCREENS = "navigation.no_orphan_screens"
    ONE_PRIMARY_ACTION_PER_SCREEN = "layout.one_primary_action_per_screen"
    MIN_TOUCH_TARGET = "accessibility.min_touch_target"
    I18N_COMPLETE_LOCALES = "i18n.complete_locales"


# Parameter that receives a scalar value in the mapping form
SCALAR_PARAMS: dict[str, str] = {
    RuleKind.NAVIGATION_MAX_DEPTH: "max",
    RuleKind.MIN_TOUCH_TARGET: "min",
    RuleKind.I18N_COMPLETE_LOCALES: "locales",
}


class RuleSpec(BaseModel):
    """A configured global rule."""

    model_config = ConfigDict(frozen=True)

    id: str
    kind: str
    params: dict[str, Any] = Field(default_factory=dict)
    severity: Severity = Severity.ERROR
    enabled: bool = True

    @property
    def rule_kind(self) -> RuleKind | None:
        try:
            return RuleKind(self.kind)
        except ValueError:
            return None


def _rule_from_entry(kind: str, value: Any) -> dict[str, Any]:
    if isinstance(value, bool):
        return {"id": kind, "kind": kind, "enabled": value}
    if isinstance(value, dict):
        params = {k: v for k, v in value.items() if k not in ("severity", "enabled", "id")}
        rule: dict[str, Any] = {"id": value.get("id", kind), "kind": kind, "params": params}
        for key in ("severity", "enabled"):
            if key in value:
                rule[key] = value[key]
        return rule
    return {"id": kind, "kind": kind, "params": {SCALAR_PARAMS.get(kind, "value"): value}}


class RulesBody(BaseModel):
    """The body of a rules document."""

    model_config = ConfigDict(frozen=True, extra="allow")

    rules: list[RuleSpec] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        rules = data.get("rules")
        if isinstance(rules, dict):
            data = dict(data)
            data["rules"] = [_rule_from_entry(kind, value) for kind, value in rules.items()]
        elif isinstance(rules, list):
            data = dict(data)
            data["rules"] = [
                {"id": r.get("id", r.get("kind")), **r} if isinstance(r, dict) else r
                for r in rules
            ]
        return data


class I18nBody(BaseModel):
    """Messages for one locale; nested message groups flatten to dotted keys."""

    model_config = ConfigDict(frozen=True, extra="allow")

    locale: str = ""
    messages: dict[str, Any] = Field(default_factory=dict)

    @property
    def keys(self) -> set[str]:
        found: set[str] = set()

        def walk(prefix: str, node: Any) -> None:
            if isinstance(node, dict):
                for k, v in node.items():
                    walk(f"{prefix}.{k}" if prefix else str(k), v)
            else:
                found.add(prefix)

        walk("", self.messages)
        return found

"""
Composition types for DCF IR: layouts, screens, navigation and flows.

Screens reference layouts, components and data sources by name; navigation
routes reference screens and each other. Route graphs may contain cycles
(back-navigation).

Example navigation document:
    kind: navigation
    name: Main
    root: home
    routes:
      home: {screen: Home, transitions: [{to: detail}]}
      detail: {screen: Detail, transitions: [{to: home, trigger: back}]}
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .data import DataSourceSpec


def _keyed_list(value: Any, key: str) -> Any:
    """
    Turn ``{id: {...}}`` into ``[{key: id, ...}]``; lists pass through.

    Entries that are not mappings are kept as they are, so field validation
    reports them.
    """
    if isinstance(value, dict):
        return [
            {key: k, **(v or {})} if v is None or isinstance(v, dict) else v
            for k, v in value.items()
        ]
    return value


def _source_entries(data: dict[str, Any]) -> dict[str, Any]:
    """Inject source ids; a bare value becomes a static source's ``params.value``."""
    return {
        sid: {"id": sid, **(spec if isinstance(spec, dict) else {"params": {"value": spec}})}
        for sid, spec in data.items()
    }


def _as_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return value


class LayoutSpec(BaseModel):
    """A page layout declaring named regions."""

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str
    regions: list[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("regions"), dict):
            data = dict(data)
            data["regions"] = list(data["regions"])
        return data


class ScreenSpec(BaseModel):
    """
    A screen: a layout filled with component nodes bound to data.

    ``content`` is either a list of nodes or a mapping of layout region to
    a list of nodes. A node is a mapping with ``component``, ``props`` and
    ``children``.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str
    layout: str | None = None
    data: dict[str, DataSourceSpec] = Field(default_factory=dict)
    content: Any = None
    states: dict[str, Any] | None = None

    @model_validator(mode="before")
    @classmethod
    def _inject_source_ids(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            data = dict(data)
            data["data"] = _source_entries(data["data"])
        return data


class TransitionSpec(BaseModel):
    """A navigation edge."""

    model_config = ConfigDict(frozen=True)

    to: str
    trigger: str = "navigate"


class RouteSpec(BaseModel):
    """A navigation route."""

    model_config = ConfigDict(frozen=True)

    id: str
    screen: str | None = None
    root: bool = False
    transitions: list[TransitionSpec] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            transitions = _as_list(data.get("transitions"))
            if isinstance(transitions, list):
                transitions = [{"to": t} if isinstance(t, str) else t for t in transitions]
            data["transitions"] = transitions
        return data


class NavigationSpec(BaseModel):
    """A directed route graph."""

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str
    root: list[str] = Field(default_factory=list)
    routes: list[RouteSpec] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            data["routes"] = _keyed_list(data.get("routes") or [], "id")
            data["root"] = _as_list(data.get("root"))
        return data

    @property
    def root_routes(self) -> list[str]:
        """Declared roots, then routes flagged root, else the first route."""
        roots = list(self.root) + [r.id for r in self.routes if r.root and r.id not in self.root]
        if not roots and self.routes:
            roots = [self.routes[0].id]
        return roots


class FlowStepSpec(BaseModel):
    """One step of a flow."""

    model_config = ConfigDict(frozen=True)

    id: str
    screen: str | None = None
    next: list[str] = Field(default_factory=list)
    on: dict[str, str] = Field(default_factory=dict)
    content: Any = None

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            data["next"] = _as_list(data.get("next"))
        return data

    @property
    def targets(self) -> list[str]:
        return list(self.next) + list(self.on.values())


class FlowSpec(BaseModel):
    """A multi-step user flow."""

    model_config = ConfigDict(frozen=True, extra="allow")

    name: str
    start: str | None = None
    steps: list[FlowStepSpec] = Field(default_factory=list)
    data: dict[str, DataSourceSpec] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data["steps"] = _keyed_list(data.get("steps") or [], "id")
        if isinstance(data.get("data"), dict):
            data["data"] = _source_entries(data["data"])
        return data

    @property
    def start_step(self) -> str | None:
        if self.start:
            return self.start
        return self.steps[0].id if self.steps else None

"""
Data source types for DCF IR.

Example screen data block:
    data:
      tasks:
        kind: api
        params: {endpoint: /tasks}
        cache: {ttl: 60, stale_while_revalidate: true}
      open_tasks:
        kind: derived
        from: tasks
        transform: [{filter: {done: false}}, sort]
      open_count:
        kind: derived
        from: open_tasks
        transform: count
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Closed vocabulary of derive transforms
TRANSFORM_VOCABULARY: frozenset[str] = frozenset(
    {"filter", "map", "sort", "count", "group_by", "first", "last", "sum", "distinct", "slice"}
)


class DataSourceKind(StrEnum):
    """Where a data source gets its value."""

    API = "api"
    CONTEXT = "context"
    LOCAL = "local"
    DERIVED = "derived"
    STATIC = "static"


class DataState(StrEnum):
    """Lifecycle state of a bound data source."""

    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"
    STALE = "stale"


class DataEvent(StrEnum):
    """Events driving the data state machine."""

    FETCH = "fetch"
    RESOLVE = "resolve"
    FAIL = "fail"
    EXPIRE = "expire"
    REFRESH = "refresh"


# States a screen may need to present while data is not plainly available
PRESENTABLE_STATES: tuple[DataState, ...] = (DataState.LOADING, DataState.ERROR, DataState.STALE)


class CacheSpec(BaseModel):
    """Client-side cache policy of a source."""

    model_config = ConfigDict(frozen=True)

    ttl: float | None = None
    stale_while_revalidate: bool = False


class TransformStep(BaseModel):
    """One step of a derive chain, e.g. ``{filter: {done: false}}``."""

    model_config = ConfigDict(frozen=True)

    name: str
    params: dict[str, Any] = Field(default_factory=dict)


class DataSourceSpec(BaseModel):
    """A declared data source."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    kind: str = DataSourceKind.STATIC.value
    params: dict[str, Any] = Field(default_factory=dict)
    sources: list[str] = Field(default_factory=list, alias="from")
    transform: list[TransformStep] = Field(default_factory=list)
    cache: CacheSpec = Field(default_factory=CacheSpec)

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        origin = data.get("from")
        if isinstance(origin, str):
            data["from"] = [origin]
        transform = data.get("transform")
        if transform is not None:
            data["transform"] = [_parse_step(step) for step in _as_list(transform)]
        return data

    @property
    def is_derived(self) -> bool:
        return self.kind == DataSourceKind.DERIVED


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    return [value]


def _parse_step(step: Any) -> Any:
    if isinstance(step, str):
        return {"name": step}
    if isinstance(step, dict) and len(step) == 1 and "name" not in step:
        ((name, params),) = step.items()
        return {"name": name, "params": params if isinstance(params, dict) else {"value": params}}
    return step


class DataSourcePlan(BaseModel):
    """Computed data state information for one source."""

    model_config = ConfigDict(frozen=True)

    id: str
    kind: str
    initial_state: DataState
    reachable_states: list[DataState]
    depends_on: list[str] = Field(default_factory=list)

"""
Data binding resolution.

Screens and flows declare data sources and bind them in their content with
``$source.field`` strings. This module:

- finds bindings in content trees and checks their sources exist
- checks derived sources: their upstreams exist, their transforms are in the
  closed vocabulary, and the derive graph is acyclic
- plans each source's data states (initial and reachable)
- checks that a screen declaring a ``states`` map presents every state its
  bound sources can reach

Derived sources are indexed by integer handles; cycle detection is an
iterative depth-first walk, so a malformed graph never hangs resolution.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from .errors import InvalidDataTransition
from .ir import (
    PRESENTABLE_STATES,
    TRANSFORM_VOCABULARY,
    DataEvent,
    DataSourceKind,
    DataSourcePlan,
    DataSourceSpec,
    DataState,
    DiagnosticCode,
    DiagnosticSink,
    Document,
    ProfileRow,
)

logger = logging.getLogger(__name__)

BINDING_PATTERN = re.compile(r"^\$([A-Za-z_][A-Za-z0-9_]*)((?:\.[A-Za-z0-9_]+)*)$")


# =============================================================================
# State machine
# =============================================================================

TRANSITIONS: Mapping[tuple[DataState, DataEvent], DataState] = {
    (DataState.IDLE, DataEvent.FETCH): DataState.LOADING,
    (DataState.LOADING, DataEvent.RESOLVE): DataState.SUCCESS,
    (DataState.LOADING, DataEvent.FAIL): DataState.ERROR,
    (DataState.SUCCESS, DataEvent.EXPIRE): DataState.STALE,
    (DataState.SUCCESS, DataEvent.REFRESH): DataState.LOADING,
    (DataState.ERROR, DataEvent.REFRESH): DataState.LOADING,
    (DataState.STALE, DataEvent.REFRESH): DataState.LOADING,
}

# Lower is less ready; a derived source is as ready as its least-ready upstream
READINESS: Mapping[DataState, int] = {
    DataState.IDLE: 0,
    DataState.LOADING: 1,
    DataState.ERROR: 2,
    DataState.STALE: 3,
    DataState.SUCCESS: 4,
}

_IMMEDIATE_KINDS = frozenset({DataSourceKind.STATIC, DataSourceKind.LOCAL, DataSourceKind.CONTEXT})


class DataStateMachine:
    """
    Lifecycle of one data source.

    ``expire`` is only legal for sources with a TTL and
    ``stale_while_revalidate``; without revalidation an expired source
    refetches, so ``expire`` leads straight back to loading.

    Usage:
        machine = DataStateMachine(source)
        machine.send(DataEvent.FETCH)
        machine.send(DataEvent.RESOLVE)
    """

    def __init__(self, source: DataSourceSpec, state: DataState | None = None):
        self.source = source
        self.state = state or initial_state(source)
        self.history: list[DataState] = [self.state]

    def _target(self, event: DataEvent) -> DataState | None:
        if event == DataEvent.EXPIRE:
            if self.state != DataState.SUCCESS or self.source.cache.ttl is None:
                return None
            if self.source.cache.stale_while_revalidate:
                return DataState.STALE
            return DataState.LOADING
        return TRANSITIONS.get((self.state, event))

    def can(self, event: DataEvent | str) -> bool:
        return self._target(DataEvent(event)) is not None

    def send(self, event: DataEvent | str) -> DataState:
        """
        Apply an event.

        Raises:
            InvalidDataTransition: If the event is illegal in the current state
        """
        event = DataEvent(event)
        target = self._target(event)
        if target is None:
            raise InvalidDataTransition(
                f"Data source '{self.source.id}' cannot handle '{event}' while {self.state}"
            )
        logger.debug("%s: %s --%s--> %s", self.source.id, self.state, event, target)
        self.state = target
        self.history.append(target)
        return target

    def is_expired(self, age: float) -> bool:
        """Check whether a value of the given age (seconds) has outlived its TTL."""
        ttl = self.source.cache.ttl
        return ttl is not None and age >= ttl


def initial_state(source: DataSourceSpec) -> DataState:
    if source.kind in _IMMEDIATE_KINDS:
        return DataState.SUCCESS
    return DataState.IDLE


def _own_reachable(source: DataSourceSpec) -> list[DataState]:
    if source.kind in _IMMEDIATE_KINDS:
        return [DataState.SUCCESS]
    states = [DataState.IDLE, DataState.LOADING, DataState.SUCCESS, DataState.ERROR]
    if source.cache.ttl is not None and source.cache.stale_while_revalidate:
        states.append(DataState.STALE)
    return states


# =============================================================================
# Bindings
# =============================================================================


@dataclass(frozen=True)
class Binding:
    """A ``$source.field`` reference found in content."""

    source: str
    fields: tuple[str, ...]
    pointer: tuple[str | int, ...]

    @property
    def expression(self) -> str:
        return "$" + ".".join((self.source, *self.fields))


def parse_binding(value: Any) -> tuple[str, tuple[str, ...]] | None:
    """Split ``$source.a.b`` into ("source", ("a", "b")); None if not a binding."""
    if not isinstance(value, str):
        return None
    match = BINDING_PATTERN.match(value)
    if match is None:
        return None
    fields = tuple(f for f in match.group(2).split(".") if f)
    return match.group(1), fields


def find_bindings(node: Any, pointer: tuple[str | int, ...] = ()) -> Iterator[Binding]:
    """Yield every binding in a content tree, depth first in document order."""
    if isinstance(node, Mapping):
        for key, value in node.items():
            yield from find_bindings(value, (*pointer, str(key)))
    elif isinstance(node, list):
        for index, value in enumerate(node):
            yield from find_bindings(value, (*pointer, index))
    else:
        parsed = parse_binding(node)
        if parsed is not None:
            yield Binding(parsed[0], parsed[1], pointer)


# =============================================================================
# Resolution
# =============================================================================


@dataclass(frozen=True)
class BindingScope:
    """
    The data sources and content of one screen or flow.

    Attributes:
        document: Owning document
        row: Strictness row of the document
        sources: Declared sources by id
        content: (pointer prefix, tree) pairs to scan for bindings
        states: Screen ``states`` map, if declared
    """

    document: Document
    row: ProfileRow
    sources: Mapping[str, DataSourceSpec]
    content: tuple[tuple[tuple[str | int, ...], Any], ...]
    states: Mapping[str, Any] | None = None


class DataBindingResolver:
    """
    Resolves the bindings and derive graph of one scope.

    Usage:
        resolver = DataBindingResolver(scope, sink)
        plans = resolver.resolve()
    """

    def __init__(self, scope: BindingScope, sink: DiagnosticSink):
        self.scope = scope
        self.sink = sink
        self._ids: list[str] = list(scope.sources)
        self._handles: dict[str, int] = {sid: i for i, sid in enumerate(self._ids)}
        self._edges: list[list[int]] = [[] for _ in self._ids]
        self._cyclic: set[int] = set()

    def _locate(self, *parts: str | int) -> str:
        return self.scope.document.locate(*parts)

    def resolve(self) -> dict[str, DataSourcePlan]:
        """Check the scope and return a plan per valid source."""
        valid = self._check_sources()
        self._check_derived(valid)
        self._find_cycles()
        plans = self._plan(valid)
        used = self._check_bindings()
        self._check_states(plans, used)
        return plans

    def _check_sources(self) -> set[str]:
        known_kinds = {k.value for k in DataSourceKind}
        valid: set[str] = set()
        for sid, source in self.scope.sources.items():
            if source.kind not in known_kinds:
                self.sink.emit(
                    DiagnosticCode.INVALID_DATA_SOURCE,
                    self._locate("data", sid, "kind"),
                    f"Data source '{sid}' has unknown kind '{source.kind}' "
                    f"(expected one of: {', '.join(sorted(known_kinds))})",
                )
                continue
            if source.is_derived and not source.sources:
                self.sink.emit(
                    DiagnosticCode.INVALID_DATA_SOURCE,
                    self._locate("data", sid, "from"),
                    f"Derived source '{sid}' declares no 'from' source",
                )
                continue
            if not source.is_derived and (source.sources or source.transform):
                self.sink.emit(
                    DiagnosticCode.INVALID_DATA_SOURCE,
                    self._locate("data", sid),
                    f"Only derived sources may declare 'from' or 'transform' ('{sid}' is "
                    f"{source.kind})",
                )
                continue
            valid.add(sid)
        return valid

    def _check_derived(self, valid: set[str]) -> None:
        for sid in self._ids:
            source = self.scope.sources[sid]
            if sid not in valid or not source.is_derived:
                continue
            for upstream in source.sources:
                if upstream not in self._handles:
                    self.sink.emit(
                        DiagnosticCode.UNRESOLVED_BINDING,
                        self._locate("data", sid, "from"),
                        f"Derived source '{sid}' reads from unknown source '{upstream}'",
                    )
                    continue
                self._edges[self._handles[sid]].append(self._handles[upstream])
            for index, step in enumerate(source.transform):
                if step.name not in TRANSFORM_VOCABULARY:
                    self.sink.emit(
                        DiagnosticCode.UNKNOWN_TRANSFORM,
                        self._locate("data", sid, "transform", index),
                        f"Unknown transform '{step.name}' in '{sid}' (expected one of: "
                        f"{', '.join(sorted(TRANSFORM_VOCABULARY))})",
                    )

    def _find_cycles(self) -> None:
        white, grey, black = 0, 1, 2
        color = [white] * len(self._ids)
        for start in range(len(self._ids)):
            if color[start] != white:
                continue
            stack: list[tuple[int, int]] = [(start, 0)]
            path: list[int] = [start]
            color[start] = grey
            while stack:
                node, edge = stack[-1]
                if edge < len(self._edges[node]):
                    stack[-1] = (node, edge + 1)
                    nxt = self._edges[node][edge]
                    if color[nxt] == white:
                        color[nxt] = grey
                        stack.append((nxt, 0))
                        path.append(nxt)
                    elif color[nxt] == grey:
                        self._report_cycle(path[path.index(nxt) :])
                else:
                    color[node] = black
                    stack.pop()
                    path.pop()

    def _report_cycle(self, members: list[int]) -> None:
        self._cyclic.update(members)
        names = [self._ids[m] for m in members]
        chain = " -> ".join([*names, names[0]])
        self.sink.emit(
            DiagnosticCode.DERIVED_SOURCE_CYCLE,
            self._locate("data", names[0], "from"),
            f"Derived sources form a cycle: {chain}",
        )

    def _plan(self, valid: set[str]) -> dict[str, DataSourcePlan]:
        plans: dict[str, DataSourcePlan] = {}

        def plan(handle: int) -> DataSourcePlan | None:
            sid = self._ids[handle]
            if sid in plans:
                return plans[sid]
            if sid not in valid or handle in self._cyclic:
                return None
            source = self.scope.sources[sid]
            if not source.is_derived:
                result = DataSourcePlan(
                    id=sid,
                    kind=source.kind,
                    initial_state=initial_state(source),
                    reachable_states=_own_reachable(source),
                )
            else:
                upstream = [p for p in (plan(u) for u in self._edges[handle]) if p is not None]
                if not upstream:
                    return None
                initial = min((p.initial_state for p in upstream), key=READINESS.__getitem__)
                reachable = {s for p in upstream for s in p.reachable_states}
                result = DataSourcePlan(
                    id=sid,
                    kind=source.kind,
                    initial_state=initial,
                    reachable_states=sorted(reachable, key=READINESS.__getitem__),
                    depends_on=[self._ids[u] for u in self._edges[handle]],
                )
            plans[sid] = result
            return result

        for handle in range(len(self._ids)):
            plan(handle)
        return plans

    def _check_bindings(self) -> list[str]:
        used: list[str] = []
        for prefix, tree in self.scope.content:
            for binding in find_bindings(tree, prefix):
                if binding.source not in self.scope.sources:
                    self.sink.emit(
                        DiagnosticCode.UNRESOLVED_BINDING,
                        self._locate(*binding.pointer),
                        f"Binding {binding.expression} refers to unknown data source "
                        f"'{binding.source}'",
                    )
                elif binding.source not in used:
                    used.append(binding.source)
        return used

    def _check_states(self, plans: Mapping[str, DataSourcePlan], used: list[str]) -> None:
        if self.scope.states is None:
            return
        needed: list[DataState] = []
        for sid in used:
            plan = plans.get(sid)
            if plan is None:
                continue
            for state in plan.reachable_states:
                if state in PRESENTABLE_STATES and state not in needed:
                    needed.append(state)
        missing = [
            s.value for s in PRESENTABLE_STATES if s in needed and s not in self.scope.states
        ]
        if missing:
            self.sink.emit(
                DiagnosticCode.MISSING_DATA_STATE,
                self._locate("states"),
                f"{self.scope.document.label} binds data that can be "
                f"{', '.join(missing)} but its states map does not present "
                f"{'it' if len(missing) == 1 else 'them'}",
                row=self.scope.row,
            )


def resolve_bindings(scope: BindingScope, sink: DiagnosticSink) -> dict[str, DataSourcePlan]:
    """Resolve one scope; see DataBindingResolver."""
    plans = DataBindingResolver(scope, sink).resolve()
    logger.debug("%s: planned %d data sources", scope.document.label, len(plans))
    return plans

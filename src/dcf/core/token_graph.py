"""
Token graph: theme layering, reference resolution and cycle detection.

Every leaf contributed by a tokens document or theme layer becomes a node in
an arena (integer handles). A node points at the node it overlays for the
same path, so relative transforms such as ``darken(10%)`` can read the value
one layer down. References (``{color.accent}``) always resolve against the
topmost node of the referenced path.

Resolution is a depth-first walk over an explicit frame stack, so alias
chains of any length resolve; re-entering a node that is still being
resolved is a reference cycle. Every node on the cycle, and everything that
depends on it, resolves to UNRESOLVED.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from .color import (
    TRANSFORM_BOUNDS,
    apply_transform,
    format_color,
    in_bounds,
    parse_argument,
    parse_color,
)
from .ir import (
    BASE_TOKENS_LAYER,
    DEFAULT_MERGE_ORDER,
    UNRESOLVED,
    DiagnosticCode,
    DiagnosticSink,
    ProfileRow,
    ThemeBody,
    ThemingBody,
    TokenSnapshot,
)

if TYPE_CHECKING:
    from .intake import AcceptedDocument

logger = logging.getLogger(__name__)

_PATH = r"[A-Za-z0-9_\-]+(?:\.[A-Za-z0-9_\-]+)*"
REFERENCE_PATTERN = re.compile(r"\{(?:theme\.)?(" + _PATH + r")\}")
_WHOLE_REFERENCE = re.compile(r"^\{(?:theme\.)?(" + _PATH + r")\}$")
_TRANSFORM = re.compile(
    r"^(darken|lighten|saturate|alpha)\(\s*"
    r"(?:\{(?:theme\.)?(" + _PATH + r")\}\s*,\s*)?"
    r"([^(),{}]+?)\s*\)$"
)


# =============================================================================
# Expressions
# =============================================================================


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Reference:
    path: str


@dataclass(frozen=True)
class Interpolation:
    template: str
    paths: tuple[str, ...]


@dataclass(frozen=True)
class Transform:
    """A colour transform; ``source`` is None for the relative form."""

    name: str
    argument: str
    source: str | None = None


Expression = Literal | Reference | Interpolation | Transform


def parse_expression(raw: Any) -> Expression:
    """Classify a raw token value."""
    if not isinstance(raw, str):
        return Literal(raw)
    text = raw.strip()
    if match := _WHOLE_REFERENCE.match(text):
        return Reference(match.group(1))
    if match := _TRANSFORM.match(text):
        return Transform(match.group(1), match.group(3), match.group(2))
    paths = tuple(REFERENCE_PATTERN.findall(raw))
    if paths:
        return Interpolation(raw, paths)
    return Literal(raw)


def referenced_paths(raw: Any) -> list[str]:
    """All token paths a raw value refers to."""
    return _expression_paths(parse_expression(raw))


def _expression_paths(expr: Expression) -> list[str]:
    if isinstance(expr, Reference):
        return [expr.path]
    if isinstance(expr, Interpolation):
        return list(expr.paths)
    if isinstance(expr, Transform) and expr.source:
        return [expr.source]
    return []


@dataclass(frozen=True)
class Evaluation:
    """Result of evaluating one expression."""

    value: Any
    code: DiagnosticCode | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.value is not UNRESOLVED


class _Missing(LookupError):
    pass


def evaluate_expression(
    raw: Any,
    lookup: Callable[[str], Any],
    base: Callable[[], Any] | None = None,
) -> Evaluation:
    """
    Evaluate a raw token value.

    Args:
        raw: Literal, ``{path}`` reference, interpolated string or transform
        lookup: path -> resolved value; raises LookupError for undefined paths
        base: Returns the value a relative transform applies to; raises
            LookupError when there is none

    Returns:
        Evaluation; ``code`` is set when this expression itself is at fault.
        An UNRESOLVED dependency yields UNRESOLVED without a code.
    """
    expr = parse_expression(raw)

    if isinstance(expr, Literal):
        return Evaluation(expr.value)

    if isinstance(expr, Reference):
        try:
            return Evaluation(lookup(expr.path))
        except LookupError:
            return _undefined(expr.path)

    if isinstance(expr, Interpolation):
        text = expr.template
        for path in expr.paths:
            try:
                value = lookup(path)
            except LookupError:
                return _undefined(path)
            if value is UNRESOLVED:
                return Evaluation(UNRESOLVED)
            text = re.sub(
                r"\{(?:theme\.)?" + re.escape(path) + r"\}", lambda _m: str(value), text
            )
        return Evaluation(text)

    argument = parse_argument(expr.argument)
    bound = TRANSFORM_BOUNDS[expr.name]
    if argument is None or not in_bounds(expr.name, argument):
        return Evaluation(
            UNRESOLVED,
            DiagnosticCode.TRANSFORM_BOUNDS,
            f"{expr.name}({expr.argument}) argument must be within {bound.describe()}",
        )

    try:
        if expr.source is not None:
            target = lookup(expr.source)
        elif base is not None:
            target = base()
        else:
            raise _Missing()
    except _Missing:
        return Evaluation(
            UNRESOLVED,
            DiagnosticCode.INVALID_TRANSFORM_TARGET,
            f"{expr.name}({expr.argument}) has no underlying value to transform",
        )
    except LookupError:
        return _undefined(expr.source or "")

    if target is UNRESOLVED:
        return Evaluation(UNRESOLVED)
    color = parse_color(target)
    if color is None:
        return Evaluation(
            UNRESOLVED,
            DiagnosticCode.INVALID_TRANSFORM_TARGET,
            f"{expr.name}() applies to colours, got {target!r}",
        )
    return Evaluation(format_color(apply_transform(expr.name, argument, color)))


def _undefined(path: str) -> Evaluation:
    return Evaluation(
        UNRESOLVED,
        DiagnosticCode.UNDEFINED_TOKEN_REFERENCE,
        f"Reference to undefined token '{path}'",
    )


# =============================================================================
# Merging
# =============================================================================


def deep_merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """
    Overlay ``overlay`` on ``base`` at leaf level.

    Nested mappings merge recursively; any other value replaces what is below.
    """
    merged: dict[str, Any] = dict(base)
    for key, value in overlay.items():
        below = merged.get(key)
        if isinstance(value, Mapping) and isinstance(below, Mapping):
            merged[key] = deep_merge(below, value)
        elif isinstance(value, Mapping):
            merged[key] = deep_merge({}, value)
        else:
            merged[key] = value
    return merged


def merge_layers(layers: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    """Deep-merge layers in order; later layers win on overlapping leaves."""
    merged: dict[str, Any] = {}
    for layer in layers:
        merged = deep_merge(merged, layer)
    return merged


def flatten(tree: Mapping[str, Any], prefix: str = "") -> Iterator[tuple[str, Any]]:
    """Yield (dotted path, leaf) pairs of a token tree."""
    for key, value in tree.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            yield from flatten(value, path)
        else:
            yield path, value


# =============================================================================
# Resolved tokens
# =============================================================================


class ResolvedTokens:
    """
    Frozen path -> value mapping produced by a TokenGraph.

    Unresolved paths map to UNRESOLVED.
    """

    def __init__(
        self,
        values: Mapping[str, Any],
        layers: Mapping[str, str] | None = None,
        merge_order: Sequence[str] = DEFAULT_MERGE_ORDER,
    ) -> None:
        self._values = MappingProxyType(dict(values))
        self._layers = MappingProxyType(dict(layers or {}))
        self.merge_order: tuple[str, ...] = tuple(merge_order)

    @property
    def values(self) -> Mapping[str, Any]:
        return self._values

    @property
    def layers(self) -> Mapping[str, str]:
        """path -> layer that supplied the winning contribution."""
        return self._layers

    @property
    def unresolved(self) -> list[str]:
        return sorted(p for p, v in self._values.items() if v is UNRESOLVED)

    def __contains__(self, path: object) -> bool:
        return path in self._values

    def __len__(self) -> int:
        return len(self._values)

    def get(self, path: str, default: Any = None) -> Any:
        return self._values.get(path, default)

    def _lookup(self, path: str) -> Any:
        if path not in self._values:
            raise LookupError(path)
        return self._values[path]

    def evaluate(self, raw: Any, base: Any = UNRESOLVED, *, has_base: bool = False) -> Evaluation:
        """
        Evaluate a raw value (e.g. a component token override).

        Args:
            raw: The value to evaluate
            base: Value that a relative transform applies to
            has_base: Whether ``base`` is meaningful
        """

        def base_getter() -> Any:
            if not has_base:
                raise _Missing()
            return base

        return evaluate_expression(raw, self._lookup, base_getter)

    def to_snapshot(self) -> TokenSnapshot:
        values = {p: (None if v is UNRESOLVED else v) for p, v in self._values.items()}
        return TokenSnapshot(
            values=values,
            unresolved=self.unresolved,
            layers=dict(self._layers),
            merge_order=list(self.merge_order),
        )

    @classmethod
    def from_snapshot(cls, snapshot: TokenSnapshot) -> ResolvedTokens:
        unresolved = set(snapshot.unresolved)
        values = {p: (UNRESOLVED if p in unresolved else v) for p, v in snapshot.values.items()}
        return cls(values, snapshot.layers, snapshot.merge_order)


# =============================================================================
# Graph
# =============================================================================


@dataclass(frozen=True)
class _Node:
    path: str
    layer: str
    source: str
    raw: Any
    below: int | None
    row: ProfileRow | None


@dataclass(frozen=True)
class TokenContribution:
    """One tree of token values contributed by a document."""

    layer: str
    tree: Mapping[str, Any]
    source: str
    row: ProfileRow | None = None


_IN_PROGRESS = 1
_DONE = 2


@dataclass
class TokenGraph:
    """
    Builds and resolves the token graph of one validation run.

    Usage:
        graph = TokenGraph()
        graph.add(TokenContribution("tokens", base_tree, "tokens.yaml"))
        graph.add(TokenContribution("mode", dark_tree, "dark.yaml"))
        resolved = graph.resolve(sink)
    """

    merge_order: Sequence[str] = DEFAULT_MERGE_ORDER
    _nodes: list[_Node] = field(default_factory=list, init=False)
    _top: dict[str, int] = field(default_factory=dict, init=False)
    _state: dict[int, int] = field(default_factory=dict, init=False)
    _values: dict[int, Any] = field(default_factory=dict, init=False)
    _stack: list[int] = field(default_factory=list, init=False)
    _cyclic: set[int] = field(default_factory=set, init=False)
    _reported_cycles: set[frozenset[int]] = field(default_factory=set, init=False)
    _sink: DiagnosticSink | None = field(default=None, init=False)
    _resolved: ResolvedTokens | None = field(default=None, init=False)

    def add(self, contribution: TokenContribution) -> None:
        """Overlay a contribution on top of everything added so far."""
        if self._resolved is not None:
            raise RuntimeError("TokenGraph is frozen after resolve()")
        for path, raw in flatten(contribution.tree):
            self._drop_shadowed(path)
            node = _Node(
                path=path,
                layer=contribution.layer,
                source=contribution.source,
                raw=raw,
                below=self._top.get(path),
                row=contribution.row,
            )
            self._nodes.append(node)
            self._top[path] = len(self._nodes) - 1

    def _drop_shadowed(self, path: str) -> None:
        # A leaf replaces a group at the same path, and vice versa.
        prefix = path + "."
        for existing in [p for p in self._top if p.startswith(prefix)]:
            del self._top[existing]
        parts = path.split(".")
        for i in range(1, len(parts)):
            self._top.pop(".".join(parts[:i]), None)

    @property
    def paths(self) -> list[str]:
        return list(self._top)

    def resolve(self, sink: DiagnosticSink) -> ResolvedTokens:
        """Resolve every path; the graph is frozen afterwards."""
        if self._resolved is not None:
            return self._resolved
        self._sink = sink
        values: dict[str, Any] = {}
        layers: dict[str, str] = {}
        for path, nid in self._top.items():
            values[path] = self._resolve_node(nid)
            layers[path] = self._nodes[nid].layer
        self._sink = None
        self._resolved = ResolvedTokens(values, layers, self.merge_order)
        logger.debug(
            "Resolved %d token paths (%d unresolved) from %d nodes",
            len(values),
            len(self._resolved.unresolved),
            len(self._nodes),
        )
        return self._resolved

    def _resolve_node(self, root: int) -> Any:
        """Resolve a node and everything it depends on, using an explicit frame stack."""
        if self._state.get(root) != _DONE:
            self._enter(root)
            frames = [(root, iter(self._dependencies(root)))]
            while frames:
                nid, pending = frames[-1]
                for dep in pending:
                    state = self._state.get(dep)
                    if state == _IN_PROGRESS:
                        self._report_cycle(dep)
                    elif state is None:
                        self._enter(dep)
                        frames.append((dep, iter(self._dependencies(dep))))
                        break
                else:
                    frames.pop()
                    self._finish(nid)
        return self._values[root]

    def _dependencies(self, nid: int) -> list[int]:
        """Nodes whose values evaluating ``nid`` reads."""
        node = self._nodes[nid]
        expr = parse_expression(node.raw)
        if isinstance(expr, Transform):
            argument = parse_argument(expr.argument)
            if argument is None or not in_bounds(expr.name, argument):
                return []
            if expr.source is None:
                return [] if node.below is None else [node.below]
        return [self._top[p] for p in _expression_paths(expr) if p in self._top]

    def _enter(self, nid: int) -> None:
        self._state[nid] = _IN_PROGRESS
        self._stack.append(nid)

    def _finish(self, nid: int) -> None:
        node = self._nodes[nid]

        # Dependencies are done; a node still in progress is on a cycle
        def lookup(path: str) -> Any:
            if path not in self._top:
                raise LookupError(path)
            return self._values.get(self._top[path], UNRESOLVED)

        def base() -> Any:
            if node.below is None:
                raise _Missing()
            return self._values.get(node.below, UNRESOLVED)

        result = evaluate_expression(node.raw, lookup, base)
        self._stack.pop()

        value = UNRESOLVED if nid in self._cyclic else result.value
        if result.code is not None and self._sink is not None:
            self._sink.emit(
                result.code,
                f"{node.source}#{node.path}",
                result.message,
                row=node.row,
            )
        self._values[nid] = value
        self._state[nid] = _DONE

    def _report_cycle(self, nid: int) -> None:
        members = self._stack[self._stack.index(nid) :]
        self._cyclic.update(members)
        key = frozenset(members)
        if key in self._reported_cycles or self._sink is None:
            return
        self._reported_cycles.add(key)
        chain = " -> ".join(self._nodes[m].path for m in members + [nid])
        node = self._nodes[nid]
        self._sink.emit(
            DiagnosticCode.TOKEN_CYCLE,
            f"{node.source}#{node.path}",
            f"Token reference cycle: {chain}",
            row=node.row,
        )


# =============================================================================
# Building from documents
# =============================================================================


def plan_contributions(
    tokens: Sequence[AcceptedDocument],
    themes: Sequence[AcceptedDocument],
    theming: ThemingBody | None,
    sink: DiagnosticSink,
) -> tuple[list[str], list[TokenContribution]]:
    """
    Order token and theme documents into contributions.

    Tokens documents come first in document order, then theme layers in
    ``merge_order``. Within a layer, documents whose variant is active (or
    variant-less documents, or ``default: true`` when no variant is active)
    contribute in document order.

    Returns:
        Tuple of (merge order, ordered contributions)
    """
    composition = theming or ThemingBody()
    merge_order = list(composition.merge_order)
    contributions = [
        TokenContribution(BASE_TOKENS_LAYER, doc.spec, doc.document.source, doc.row)
        for doc in tokens
    ]

    by_layer: dict[str, list[AcceptedDocument]] = {}
    for doc in themes:
        body: ThemeBody = doc.spec
        if body.layer not in merge_order:
            sink.emit(
                DiagnosticCode.UNKNOWN_THEME_LAYER,
                doc.document.locate("layer"),
                f"Theme layer '{body.layer}' is not in merge_order {merge_order}; ignored",
            )
            continue
        by_layer.setdefault(body.layer, []).append(doc)

    for layer in merge_order:
        active = composition.active.get(layer)
        for doc in by_layer.get(layer, []):
            body = doc.spec
            if body.variant is None:
                selected = True
            elif active is not None:
                selected = body.variant == active
            else:
                selected = body.default
            if selected:
                contributions.append(
                    TokenContribution(layer, body.tokens, doc.document.source, doc.row)
                )
    return merge_order, contributions


def build_tokens(
    tokens: Sequence[AcceptedDocument],
    themes: Sequence[AcceptedDocument],
    theming: ThemingBody | None,
    sink: DiagnosticSink,
) -> ResolvedTokens:
    """Build and resolve the token graph for a document set."""
    merge_order, contributions = plan_contributions(tokens, themes, theming, sink)
    graph = TokenGraph(merge_order=merge_order)
    for contribution in contributions:
        graph.add(contribution)
    return graph.resolve(sink)

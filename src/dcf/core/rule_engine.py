"""
Global rule evaluation.

Rules come from ``rules`` documents and belong to a closed set of kinds
(see ``RuleKind``). Each kind has one checker; violations are reported as
RuleViolation diagnostics carrying the rule's id and severity. Unknown kinds
are reported and skipped.
"""

from __future__ import annotations

import logging
import re
from collections import deque
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .component_validator import resolve_style
from .intake import AcceptedDocument
from .ir import (
    DiagnosticCode,
    DiagnosticSink,
    I18nBody,
    NavigationSpec,
    RuleKind,
    RulesBody,
    RuleSpec,
)
from .linker import SymbolTable, flow_nodes, screen_nodes
from .token_graph import ResolvedTokens
from .variant_matrix import VariantMatrix, format_combination

logger = logging.getLogger(__name__)

# Resolved style properties measured by the touch target rule
TOUCH_DIMENSIONS: tuple[str, ...] = ("min_height", "min_width", "height", "width")

# Props whose value "primary" marks a primary action
PRIMARY_PROPS: tuple[str, ...] = ("intent", "variant", "emphasis")

_DIMENSION = re.compile(r"^\s*(-?[0-9]+(?:\.[0-9]+)?)\s*(px|pt|dp)?\s*$")


def parse_dimension(value: Any) -> float | None:
    """Read a numeric size such as 44, 44.0 or "44px"; None if not numeric."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str) and (match := _DIMENSION.match(value)):
        return float(match.group(1))
    return None


@dataclass
class RuleContext:
    """
    Everything a rule may inspect.

    Attributes:
        table: Named documents of the run
        tokens: Resolved token graph
        i18n: Accepted i18n documents
    """

    table: SymbolTable
    tokens: ResolvedTokens
    i18n: list[AcceptedDocument] = field(default_factory=list)


@dataclass(frozen=True)
class ConfiguredRule:
    """A rule together with the document that declared it."""

    rule: RuleSpec
    document: AcceptedDocument
    index: int

    @property
    def location(self) -> str:
        return self.document.document.locate("rules", self.index)


def collect_rules(docs: Iterable[AcceptedDocument]) -> list[ConfiguredRule]:
    """Enabled rules of all rules documents in document order."""
    configured: list[ConfiguredRule] = []
    for doc in docs:
        body: RulesBody = doc.spec
        for index, rule in enumerate(body.rules):
            if rule.enabled:
                configured.append(ConfiguredRule(rule, doc, index))
    return configured


def route_depths(navigation: NavigationSpec) -> dict[str, int]:
    """
    Breadth-first depth of every route reachable from the roots.

    Root routes have depth 1. Cycles are legal; each route is visited once
    at its shortest depth.
    """
    edges = {route.id: [t.to for t in route.transitions] for route in navigation.routes}
    depths: dict[str, int] = {}
    queue: deque[str] = deque()
    for root in navigation.root_routes:
        if root in edges and root not in depths:
            depths[root] = 1
            queue.append(root)
    while queue:
        current = queue.popleft()
        for target in edges.get(current, []):
            if target in edges and target not in depths:
                depths[target] = depths[current] + 1
                queue.append(target)
    return depths


class RuleEngine:
    """
    Evaluates configured rules against a resolved model.

    Usage:
        engine = RuleEngine(context, sink)
        engine.run(collect_rules(rules_docs))
    """

    def __init__(self, context: RuleContext, sink: DiagnosticSink):
        self.context = context
        self.sink = sink
        self._checkers: Mapping[RuleKind, Callable[[ConfiguredRule], None]] = {
            RuleKind.NAVIGATION_MAX_DEPTH: self.check_max_depth,
            RuleKind.NAVIGATION_NO_ORPHAN_SCREENS: self.check_no_orphan_screens,
            RuleKind.ONE_PRIMARY_ACTION_PER_SCREEN: self.check_one_primary_action,
            RuleKind.MIN_TOUCH_TARGET: self.check_min_touch_target,
            RuleKind.I18N_COMPLETE_LOCALES: self.check_complete_locales,
        }

    def run(self, rules: Iterable[ConfiguredRule]) -> None:
        for configured in rules:
            kind = configured.rule.rule_kind
            if kind is None:
                valid = ", ".join(k.value for k in RuleKind)
                self.sink.emit(
                    DiagnosticCode.UNKNOWN_RULE,
                    configured.location,
                    f"Unknown rule kind '{configured.rule.kind}' (expected one of: {valid})",
                )
                continue
            logger.debug("Evaluating rule %s (%s)", configured.rule.id, kind)
            self._checkers[kind](configured)

    def _violation(self, configured: ConfiguredRule, path: str, message: str) -> None:
        self.sink.emit(
            DiagnosticCode.RULE_VIOLATION,
            path,
            message,
            rule_id=configured.rule.id,
            severity=configured.rule.severity,
        )

    def _bad_param(self, configured: ConfiguredRule, message: str) -> None:
        self.sink.emit(
            DiagnosticCode.SCHEMA_VIOLATION,
            f"{configured.location}.params",
            f"Rule '{configured.rule.id}': {message}",
        )

    # -------------------------------------------------------------------------
    # navigation.max_depth
    # -------------------------------------------------------------------------

    def check_max_depth(self, configured: ConfiguredRule) -> None:
        limit = configured.rule.params.get("max")
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            self._bad_param(configured, f"'max' must be a positive integer, got {limit!r}")
            return
        for name, doc in self.context.table.navigations.items():
            navigation: NavigationSpec = doc.spec
            for route_id, depth in route_depths(navigation).items():
                if depth > limit:
                    self._violation(
                        configured,
                        doc.document.locate("routes", route_id),
                        f"Route '{route_id}' of {name} is {depth} levels deep (max {limit})",
                    )

    # -------------------------------------------------------------------------
    # navigation.no_orphan_screens
    # -------------------------------------------------------------------------

    def check_no_orphan_screens(self, configured: ConfiguredRule) -> None:
        reachable: set[str] = set()
        for doc in self.context.table.navigations.values():
            navigation: NavigationSpec = doc.spec
            depths = route_depths(navigation)
            reachable.update(
                route.screen for route in navigation.routes if route.id in depths and route.screen
            )
        for doc in self.context.table.flows.values():
            reachable.update(step.screen for step in doc.spec.steps if step.screen)

        for name, doc in self.context.table.screens.items():
            if name not in reachable:
                self._violation(
                    configured,
                    doc.document.locate("name"),
                    f"Screen {name} is not reachable from any navigation root or flow",
                )

    # -------------------------------------------------------------------------
    # layout.one_primary_action_per_screen
    # -------------------------------------------------------------------------

    def _is_primary(self, component_name: str, props: Mapping[str, Any], raw: Mapping) -> bool:
        component = self.context.table.component(component_name)
        if component is None or not component.is_interactive:
            return False
        if raw.get("primary") is True or props.get("primary") is True:
            return True
        keys = set(PRIMARY_PROPS) | set(component.variants)
        return any(props.get(key) == "primary" for key in keys)

    def check_one_primary_action(self, configured: ConfiguredRule) -> None:
        for name, doc in self.context.table.screens.items():
            primaries = [
                node
                for node in screen_nodes(doc.spec)
                if self._is_primary(node.component, node.props, node.raw)
            ]
            if len(primaries) > 1:
                where = ", ".join(
                    ".".join(str(p) for p in node.pointer) for node in primaries
                )
                self._violation(
                    configured,
                    doc.document.locate("content"),
                    f"Screen {name} has {len(primaries)} primary actions ({where}); at most "
                    "one is allowed",
                )
        for name, doc in self.context.table.flows.items():
            by_step: dict[int, int] = {}
            for node in flow_nodes(doc.spec):
                if self._is_primary(node.component, node.props, node.raw):
                    step_index = int(node.pointer[1])
                    by_step[step_index] = by_step.get(step_index, 0) + 1
            for step_index, count in sorted(by_step.items()):
                if count > 1:
                    step = doc.spec.steps[step_index]
                    self._violation(
                        configured,
                        doc.document.locate("steps", step_index, "content"),
                        f"Step '{step.id}' of flow {name} has {count} primary actions; at most "
                        "one is allowed",
                    )

    # -------------------------------------------------------------------------
    # accessibility.min_touch_target
    # -------------------------------------------------------------------------

    def _touch_minimum(self, configured: ConfiguredRule) -> float | None:
        raw = configured.rule.params.get("min")
        value = parse_dimension(raw)
        if value is None and isinstance(raw, str):
            evaluation = self.context.tokens.evaluate(raw)
            value = parse_dimension(evaluation.value) if evaluation.ok else None
        if value is None:
            self._bad_param(
                configured, f"'min' must be a number or a numeric token reference, got {raw!r}"
            )
        return value

    def check_min_touch_target(self, configured: ConfiguredRule) -> None:
        minimum = self._touch_minimum(configured)
        if minimum is None:
            return
        for name, doc in self.context.table.components.items():
            component = doc.spec
            if not component.is_interactive:
                continue
            matrix = VariantMatrix(component.variants, component.variant_matrix)
            undersized: dict[str, list[tuple[dict[str, str], float]]] = {}
            for combination in matrix.combinations():
                if not matrix.is_valid(combination):
                    continue
                style = resolve_style(component, self.context.tokens, combination)
                for prop in TOUCH_DIMENSIONS:
                    size = parse_dimension(style.values.get(prop))
                    if size is not None and size < minimum:
                        undersized.setdefault(prop, []).append((combination, size))
            for prop, hits in undersized.items():
                combination, size = hits[0]
                more = f" and {len(hits) - 1} more combinations" if len(hits) > 1 else ""
                self._violation(
                    configured,
                    doc.document.locate("tokens"),
                    f"{name} {prop} is {size:g} at ({format_combination(combination)}){more}; "
                    f"touch targets need at least {minimum:g}",
                )

    # -------------------------------------------------------------------------
    # i18n.complete_locales
    # -------------------------------------------------------------------------

    def check_complete_locales(self, configured: ConfiguredRule) -> None:
        required = configured.rule.params.get("locales")
        if required is not None and (
            not isinstance(required, list) or not all(isinstance(x, str) for x in required)
        ):
            self._bad_param(
                configured, f"'locales' must be a list of locale names, got {required!r}"
            )
            return

        keys_by_locale: dict[str, set[str]] = {}
        first_doc: dict[str, AcceptedDocument] = {}
        for doc in self.context.i18n:
            body: I18nBody = doc.spec
            keys_by_locale.setdefault(body.locale, set()).update(body.keys)
            first_doc.setdefault(body.locale, doc)

        for locale in required or []:
            if locale not in keys_by_locale:
                self._violation(
                    configured,
                    configured.location,
                    f"Locale '{locale}' has no i18n document",
                )

        all_keys: set[str] = set().union(*keys_by_locale.values()) if keys_by_locale else set()
        for locale in sorted(keys_by_locale):
            missing = sorted(all_keys - keys_by_locale[locale])
            if missing:
                shown = ", ".join(missing[:5]) + (" ..." if len(missing) > 5 else "")
                self._violation(
                    configured,
                    first_doc[locale].document.locate("messages"),
                    f"Locale '{locale}' is missing {len(missing)} message keys: {shown}",
                )


def evaluate_rules(
    rules_docs: Iterable[AcceptedDocument],
    context: RuleContext,
    sink: DiagnosticSink,
) -> None:
    """Run every enabled rule of the given rules documents."""
    RuleEngine(context, sink).run(collect_rules(rules_docs))

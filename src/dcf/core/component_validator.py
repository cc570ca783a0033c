"""
Component validation and style resolution.

Checks a component's naming, token references, state precedence,
variant token coverage and accessibility metadata, and resolves the
effective style of a rendered instance:

    style = tokens.base
          + overrides of each variant axis value (axis order)
          + overrides of the first active state in state_precedence

State overrides layer on top of the variant style; relative transforms
such as ``darken(10%)`` apply to the value underneath.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .ir import (
    BLOCKING_STATES,
    DEFAULT_STATE,
    ComponentSpec,
    DiagnosticCode,
    DiagnosticSink,
    Document,
    ProfileRow,
    is_valid_name,
    variant_value,
)
from .token_graph import ResolvedTokens, referenced_paths
from .variant_matrix import VariantMatrix

logger = logging.getLogger(__name__)

BASE_TOKENS_KEY = "base"

# Props that give an icon-only control its accessible name
LABEL_PROPS: tuple[str, ...] = ("accessibilityLabel", "accessibility_label", "ariaLabel")


@dataclass(frozen=True)
class StyleProblem:
    """A property whose value could not be resolved."""

    layer: str
    prop: str
    code: DiagnosticCode
    message: str


@dataclass
class StyleResolution:
    """
    Effective style of one component instance.

    Attributes:
        combination: The combination that renders (after fallback)
        state: The state whose overrides applied, if any
        values: property -> resolved value
        problems: Properties that failed to resolve
    """

    combination: dict[str, str]
    state: str | None
    values: dict[str, Any] = field(default_factory=dict)
    problems: list[StyleProblem] = field(default_factory=list)


def _active_set(active_states: Iterable[str] | Mapping[str, bool]) -> set[str]:
    if isinstance(active_states, Mapping):
        return {name for name, on in active_states.items() if on}
    return set(active_states)


def variant_overrides(component: ComponentSpec, axis: str, value: str) -> dict[str, Any]:
    """Token overrides for one axis value; ``axis.value`` keys win over bare values."""
    qualified = component.tokens.get(f"{axis}.{value}")
    if qualified is not None:
        return qualified
    return component.tokens.get(value, {})


def select_state(component: ComponentSpec, active: set[str]) -> str | None:
    """First state in precedence whose predicate holds; ``default`` always holds."""
    for state in component.effective_precedence:
        if state == DEFAULT_STATE or state in active:
            return state
    return None


def resolve_style(
    component: ComponentSpec,
    tokens: ResolvedTokens,
    combination: Mapping[str, str] | None = None,
    active_states: Iterable[str] | Mapping[str, bool] = (),
) -> StyleResolution:
    """
    Resolve the effective style of a component instance.

    Args:
        component: The component
        tokens: Resolved token graph
        combination: Requested variant values; missing axes use the fallback
        active_states: Active state names, or a mapping of state -> flag

    Returns:
        StyleResolution
    """
    matrix = VariantMatrix(component.variants, component.variant_matrix)
    requested = {axis: variant_value(value) for axis, value in (combination or {}).items()}
    effective = matrix.resolve(requested) or matrix.complete(requested)
    active = _active_set(active_states)
    state = select_state(component, active)

    layers: list[tuple[str, Mapping[str, Any]]] = [
        (BASE_TOKENS_KEY, component.tokens.get(BASE_TOKENS_KEY, {}))
    ]
    for axis in component.variants:
        if axis in effective:
            value = effective[axis]
            layers.append((f"{axis}.{value}", variant_overrides(component, axis, value)))
    if state is not None:
        layers.append((f"states.{state}", component.state_tokens.get(state, {})))

    resolution = StyleResolution(combination=effective, state=state)
    for layer, overrides in layers:
        for prop, raw in overrides.items():
            has_base = prop in resolution.values
            evaluation = tokens.evaluate(raw, resolution.values.get(prop), has_base=has_base)
            resolution.values[prop] = evaluation.value
            if evaluation.code is not None:
                resolution.problems.append(
                    StyleProblem(layer, prop, evaluation.code, evaluation.message)
                )
    return resolution


# =============================================================================
# Validation
# =============================================================================


def _check_token_references(
    component: ComponentSpec,
    document: Document,
    row: ProfileRow,
    tokens: ResolvedTokens,
    sink: DiagnosticSink,
) -> None:
    sections: list[tuple[tuple[str, ...], Mapping[str, Any]]] = [
        (("tokens", key), overrides) for key, overrides in component.tokens.items()
    ]
    sections += [
        (("states", name), overrides) for name, overrides in component.state_tokens.items()
    ]
    for location, overrides in sections:
        for prop, raw in overrides.items():
            for path in referenced_paths(raw):
                if path not in tokens:
                    sink.emit(
                        DiagnosticCode.UNDEFINED_TOKEN_REFERENCE,
                        document.locate(*location, prop),
                        f"{component.name} references undefined token '{path}'",
                        row=row,
                    )


def _check_token_keys(
    component: ComponentSpec,
    document: Document,
    row: ProfileRow,
    sink: DiagnosticSink,
) -> None:
    known = {BASE_TOKENS_KEY}
    for axis, values in component.variants.items():
        known.update(values)
        known.update(f"{axis}.{value}" for value in values)
    for key in component.tokens:
        if key not in known:
            sink.emit(
                DiagnosticCode.UNKNOWN_FIELD,
                document.locate("tokens", key),
                f"Token override key '{key}' is not 'base' or a variant value of "
                f"{component.name}",
            )

    for axis, values in component.variants.items():
        styled = [v for v in values if variant_overrides(component, axis, v)]
        if styled and len(styled) < len(values):
            missing = [v for v in values if v not in styled]
            sink.emit(
                DiagnosticCode.INCOMPLETE_VARIANT,
                document.locate("tokens"),
                f"{component.name} styles {axis}={', '.join(styled)} but not "
                f"{', '.join(missing)}",
                row=row,
            )


def _check_precedence(
    component: ComponentSpec,
    document: Document,
    row: ProfileRow,
    sink: DiagnosticSink,
) -> None:
    precedence = component.effective_precedence
    location = document.locate("state_precedence")

    if component.state_precedence is not None:
        declared = set(component.states)
        listed = list(component.state_precedence)
        missing = [s for s in component.states if s not in listed]
        extra = [s for s in listed if s not in declared]
        duplicates = sorted({s for s in listed if listed.count(s) > 1})
        problems = []
        if missing:
            problems.append(f"missing {', '.join(missing)}")
        if extra:
            problems.append(f"undeclared {', '.join(extra)}")
        if duplicates:
            problems.append(f"duplicated {', '.join(duplicates)}")
        if problems:
            sink.emit(
                DiagnosticCode.PRECEDENCE_MISMATCH,
                location,
                f"{component.name} state_precedence is not a permutation of its states: "
                + "; ".join(problems),
                row=row,
            )

    seen_plain: list[str] = []
    for state in precedence:
        if state in BLOCKING_STATES:
            if seen_plain:
                sink.emit(
                    DiagnosticCode.BLOCKING_STATE_ORDER,
                    location,
                    f"{component.name}: blocking state '{state}' comes after "
                    f"{', '.join(seen_plain)}, which will win while '{state}' is active",
                )
        elif state != DEFAULT_STATE:
            seen_plain.append(state)


def _check_accessibility(
    component: ComponentSpec,
    document: Document,
    row: ProfileRow,
    sink: DiagnosticSink,
) -> None:
    a11y = component.accessibility
    if component.is_interactive:
        if not a11y.role:
            sink.emit(
                DiagnosticCode.MISSING_ACCESSIBILITY,
                document.locate("accessibility", "role"),
                f"Interactive component {component.name} declares no accessibility role",
                row=row,
            )
        if not a11y.label and "label" not in component.props and not any(
            p in component.props for p in LABEL_PROPS
        ):
            sink.emit(
                DiagnosticCode.MISSING_ACCESSIBILITY,
                document.locate("accessibility", "label"),
                f"Interactive component {component.name} has no accessible label",
                row=row,
            )

    if component.has_icon_only:
        label_prop = next((component.props[p] for p in LABEL_PROPS if p in component.props), None)
        if not a11y.label_required and not (label_prop and label_prop.required):
            sink.emit(
                DiagnosticCode.MISSING_ACCESSIBLE_LABEL,
                document.locate("accessibility", "label_required"),
                f"{component.name} supports iconOnly and must require an accessible label "
                f"(accessibility.label_required or a required {LABEL_PROPS[0]} prop)",
                row=row,
            )


def _check_styles(
    component: ComponentSpec,
    document: Document,
    row: ProfileRow,
    tokens: ResolvedTokens,
    sink: DiagnosticSink,
) -> None:
    # Undefined references are reported by _check_token_references
    reported: set[tuple[str, str, DiagnosticCode]] = set()
    states = [s for s in component.effective_precedence if s != DEFAULT_STATE] or [DEFAULT_STATE]
    matrix = VariantMatrix(component.variants, component.variant_matrix)
    combinations = [c for c in matrix.combinations() if matrix.is_valid(c)] or [{}]
    for combination in combinations:
        for state in states:
            resolution = resolve_style(component, tokens, combination, {state})
            for problem in resolution.problems:
                if problem.code == DiagnosticCode.UNDEFINED_TOKEN_REFERENCE:
                    continue
                key = (problem.layer, problem.prop, problem.code)
                if key in reported:
                    continue
                reported.add(key)
                sink.emit(
                    problem.code,
                    document.locate(*problem.layer.split(".", 1), problem.prop)
                    if problem.layer.startswith("states.")
                    else document.locate("tokens", problem.layer, problem.prop),
                    f"{component.name}: {problem.message}",
                    row=row,
                )


def validate_component(
    component: ComponentSpec,
    document: Document,
    row: ProfileRow,
    tokens: ResolvedTokens,
    sink: DiagnosticSink,
) -> None:
    """
    Validate one component against the resolved token graph.

    Args:
        component: Typed component body
        document: Source document (for diagnostic paths)
        row: Strictness row of the component's profile
        tokens: Resolved tokens
        sink: Receives diagnostics
    """
    if component.name and not is_valid_name(component.name):
        sink.emit(
            DiagnosticCode.INVALID_NAME,
            document.locate("name"),
            f"Component name '{component.name}' must match ^[A-Z][a-zA-Z0-9]*$",
        )

    _check_token_references(component, document, row, tokens, sink)
    _check_token_keys(component, document, row, sink)
    _check_precedence(component, document, row, sink)
    _check_accessibility(component, document, row, sink)
    _check_styles(component, document, row, tokens, sink)
    logger.debug("Validated component %s", component.name)

"""
Variant matrix evaluation and coverage reporting.

A component's variant axes span a cartesian product of combinations. The
matrix mode decides which are valid:

- ``all``: every combination
- ``allowlist``: combinations matching at least one ``allow`` rule
- ``blocklist``: combinations matching no ``deny`` rule

``deny`` always wins over ``allow``. Invalid combinations are not errors at
render time: they resolve to the declared fallback.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterator, Mapping, Sequence
from math import prod
from typing import Any

from .ir import (
    ComponentSpec,
    CoverageReport,
    DiagnosticCode,
    DiagnosticSink,
    Document,
    MatrixMode,
    ProfileRow,
    VariantMatrixSpec,
)

logger = logging.getLogger(__name__)

Combination = dict[str, str]


def format_combination(combination: Mapping[str, str]) -> str:
    return ", ".join(f"{axis}={value}" for axis, value in combination.items()) or "(none)"


class VariantMatrix:
    """
    Validity oracle for one component's variant combinations.

    Args:
        axes: axis -> ordered values
        spec: Matrix rules
    """

    def __init__(self, axes: Mapping[str, Sequence[str]], spec: VariantMatrixSpec | None = None):
        self.axes: dict[str, list[str]] = {axis: list(values) for axis, values in axes.items()}
        self.spec = spec or VariantMatrixSpec()

    @property
    def total(self) -> int:
        return prod(len(values) for values in self.axes.values())

    def combinations(self) -> Iterator[Combination]:
        """All combinations in axis declaration order."""
        names = list(self.axes)
        for values in itertools.product(*(self.axes[name] for name in names)):
            yield dict(zip(names, values, strict=True))

    @staticmethod
    def rule_matches(rule: Mapping[str, Any], combination: Mapping[str, str]) -> bool:
        """
        Check whether a rule matches a combination.

        Every axis the rule names must hold the rule's value, or one of its
        values when the rule gives a list.
        """
        for axis, expected in rule.items():
            if axis not in combination:
                return False
            actual = combination[axis]
            if isinstance(expected, list | tuple | set | frozenset):
                if actual not in expected:
                    return False
            elif actual != expected:
                return False
        return True

    def is_denied(self, combination: Mapping[str, str]) -> bool:
        return any(self.rule_matches(rule, combination) for rule in self.spec.deny)

    def is_allowed(self, combination: Mapping[str, str]) -> bool:
        # Overlapping allow rules combine with logical OR
        return any(self.rule_matches(rule, combination) for rule in self.spec.allow)

    def is_valid(self, combination: Mapping[str, str]) -> bool:
        if self.spec.mode == MatrixMode.ALL:
            return True
        if self.is_denied(combination):
            return False
        if self.spec.mode == MatrixMode.ALLOWLIST:
            return self.is_allowed(combination)
        return True

    def _fallback_entries(self) -> dict[str, str]:
        fallback = self.spec.fallback or {}
        return {
            axis: value
            for axis, value in fallback.items()
            if axis in self.axes and value in self.axes[axis]
        }

    def complete(self, partial: Mapping[str, str]) -> Combination:
        """Fill unspecified axes with the fallback value, else the first value."""
        fallback = self._fallback_entries()
        combination: Combination = {}
        for axis, values in self.axes.items():
            if axis in partial:
                combination[axis] = partial[axis]
            elif axis in fallback:
                combination[axis] = fallback[axis]
            elif values:
                combination[axis] = values[0]
        return combination

    def resolve(self, combination: Mapping[str, str]) -> Combination | None:
        """
        Map a combination to the one that will actually render.

        Valid combinations map to themselves. Otherwise fallback values are
        substituted for the smallest set of fallback axes (axis order breaks
        ties) that makes the combination valid; failing that, the first valid
        combination is used. Returns None when no combination is valid.
        """
        current = self.complete(combination)
        if self.is_valid(current):
            return current

        fallback = self._fallback_entries()
        fallback_axes = [axis for axis in self.axes if axis in fallback]
        for size in range(1, len(fallback_axes) + 1):
            for subset in itertools.combinations(fallback_axes, size):
                candidate = dict(current)
                for axis in subset:
                    candidate[axis] = fallback[axis]
                if self.is_valid(candidate):
                    return candidate

        for candidate in self.combinations():
            if self.is_valid(candidate):
                return candidate
        return None

    def coverage(self, component: str) -> CoverageReport:
        invalid = [c for c in self.combinations() if not self.is_valid(c)]
        total = self.total
        return CoverageReport(
            component=component,
            total_combinations=total,
            valid_combinations=total - len(invalid),
            invalid_combinations=len(invalid),
            invalid=invalid,
        )


def _check_rules(
    matrix: VariantMatrix,
    document: Document,
    row: ProfileRow,
    sink: DiagnosticSink,
) -> None:
    spec = matrix.spec
    if spec.mode == MatrixMode.ALL and (spec.allow or spec.deny):
        sink.emit(
            DiagnosticCode.IGNORED_MATRIX_RULES,
            document.locate("variant_matrix", "mode"),
            "variant_matrix mode 'all' ignores allow/deny rules",
        )
        return

    for list_name, rules in (("allow", spec.allow), ("deny", spec.deny)):
        for index, rule in enumerate(rules):
            for axis, expected in rule.items():
                location = document.locate("variant_matrix", list_name, index, axis)
                if axis not in matrix.axes:
                    sink.emit(
                        DiagnosticCode.INVALID_MATRIX_RULE,
                        location,
                        f"Rule names unknown variant axis '{axis}'",
                        row=row,
                    )
                    continue
                values = expected if isinstance(expected, list) else [expected]
                for value in values:
                    if value not in matrix.axes[axis]:
                        sink.emit(
                            DiagnosticCode.INVALID_MATRIX_RULE,
                            location,
                            f"Rule value '{value}' is not a value of axis '{axis}'",
                            row=row,
                        )


def _check_fallback(
    matrix: VariantMatrix,
    report: CoverageReport,
    document: Document,
    row: ProfileRow,
    sink: DiagnosticSink,
) -> None:
    fallback = matrix.spec.fallback
    location = document.locate("variant_matrix", "fallback")
    if fallback is None:
        if report.invalid_combinations:
            sink.emit(
                DiagnosticCode.INCOMPLETE_VARIANT,
                location,
                f"{report.invalid_combinations} combinations are invalid but no fallback "
                "is declared",
                row=row,
            )
        return

    for axis, value in fallback.items():
        if axis not in matrix.axes or value not in matrix.axes[axis]:
            sink.emit(
                DiagnosticCode.INCOMPLETE_VARIANT,
                f"{location}.{axis}",
                f"Fallback {axis}={value} is not a declared variant value",
                row=row,
            )

    completed = matrix.complete(fallback)
    if matrix.axes and not matrix.is_valid(completed):
        sink.emit(
            DiagnosticCode.INCOMPLETE_VARIANT,
            location,
            f"Fallback combination ({format_combination(completed)}) is itself invalid",
            row=row,
        )


def validate_matrix(
    component: ComponentSpec,
    document: Document,
    row: ProfileRow,
    sink: DiagnosticSink,
) -> CoverageReport:
    """
    Validate a component's variant matrix and compute its coverage.

    Every invalid combination is reported with the combination it falls
    back to.
    """
    matrix = VariantMatrix(component.variants, component.variant_matrix)

    for axis, values in matrix.axes.items():
        if not values:
            sink.emit(
                DiagnosticCode.INCOMPLETE_VARIANT,
                document.locate("variants", axis),
                f"Variant axis '{axis}' declares no values",
                row=row,
            )

    _check_rules(matrix, document, row, sink)
    report = matrix.coverage(component.name)

    if report.total_combinations and not report.valid_combinations:
        sink.emit(
            DiagnosticCode.INCOMPLETE_VARIANT,
            document.locate("variant_matrix"),
            f"No variant combination of {component.name} is valid",
            row=row,
        )
    else:
        for combination in report.invalid:
            target = matrix.resolve(combination)
            sink.emit(
                DiagnosticCode.EXCLUDED_COMBINATION,
                document.locate("variant_matrix"),
                f"{component.name} ({format_combination(combination)}) is not a valid "
                f"combination; falls back to ({format_combination(target or {})})",
            )

    _check_fallback(matrix, report, document, row, sink)
    logger.debug(
        "%s: %d/%d valid combinations",
        component.name,
        report.valid_combinations,
        report.total_combinations,
    )
    return report

"""
Products of a validation run: the resolved design model and the report.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .ir import (
    UNRESOLVED,
    CapabilitySet,
    ComponentSpec,
    CoverageReport,
    DataSourcePlan,
    Diagnostic,
    FlowSpec,
    LayoutSpec,
    NavigationSpec,
    RuleSpec,
    ScreenSpec,
    Severity,
)
from .token_graph import ResolvedTokens


@dataclass(frozen=True)
class ResolvedModel:
    """
    The validated design model.

    Attributes:
        tokens: Resolved token graph
        components: Components by name
        layouts: Layouts by name
        screens: Screens by name
        navigations: Navigation graphs by name
        flows: Flows by name
        data_plans: Scope label ("screen:Home") -> source id -> plan
        rules: Enabled rules
    """

    tokens: ResolvedTokens
    components: Mapping[str, ComponentSpec] = field(default_factory=dict)
    layouts: Mapping[str, LayoutSpec] = field(default_factory=dict)
    screens: Mapping[str, ScreenSpec] = field(default_factory=dict)
    navigations: Mapping[str, NavigationSpec] = field(default_factory=dict)
    flows: Mapping[str, FlowSpec] = field(default_factory=dict)
    data_plans: Mapping[str, Mapping[str, DataSourcePlan]] = field(default_factory=dict)
    rules: tuple[RuleSpec, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "tokens": {
                path: (None if value is UNRESOLVED else value)
                for path, value in self.tokens.values.items()
            },
            "unresolved_tokens": self.tokens.unresolved,
            "components": sorted(self.components),
            "layouts": sorted(self.layouts),
            "screens": sorted(self.screens),
            "navigations": sorted(self.navigations),
            "flows": sorted(self.flows),
            "data_plans": {
                scope: {sid: plan.model_dump(mode="json") for sid, plan in plans.items()}
                for scope, plans in self.data_plans.items()
            },
            "rules": [rule.model_dump(mode="json") for rule in self.rules],
        }


@dataclass(frozen=True)
class ValidationReport:
    """
    Result of one validation run.

    Attributes:
        diagnostics: All findings, in deterministic order
        coverage: Variant coverage per component
        capabilities: Run-level enabled layers
        model: The resolved model
        documents: Number of documents given to the run
        excluded: Labels of documents excluded at intake
        cache_hit: Whether resolved tokens came from the cache
    """

    diagnostics: tuple[Diagnostic, ...]
    coverage: Mapping[str, CoverageReport]
    capabilities: CapabilitySet
    model: ResolvedModel
    documents: int = 0
    excluded: tuple[str, ...] = ()
    cache_hit: bool = False

    def by_severity(self, severity: Severity) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == severity]

    @property
    def errors(self) -> list[Diagnostic]:
        return self.by_severity(Severity.ERROR)

    @property
    def warnings(self) -> list[Diagnostic]:
        return self.by_severity(Severity.WARNING)

    @property
    def has_errors(self) -> bool:
        return any(d.is_error for d in self.diagnostics)

    @property
    def exit_code(self) -> int:
        """Process exit status: 0 iff there are no error diagnostics."""
        return 1 if self.has_errors else 0

    def summary(self) -> dict[str, int]:
        return {severity.value: len(self.by_severity(severity)) for severity in Severity}

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": not self.has_errors,
            "summary": self.summary(),
            "documents": self.documents,
            "excluded": list(self.excluded),
            "cache_hit": self.cache_hit,
            "capabilities": self.capabilities.to_dict(),
            "coverage": {name: report.to_dict() for name, report in self.coverage.items()},
            "diagnostics": [d.model_dump(mode="json") for d in self.diagnostics],
            "model": self.model.to_dict(),
        }

"""
Diagnostic types for DCF IR.

Every finding of a validation run is a frozen Diagnostic. A code either has
a fixed severity or belongs to a check category whose severity comes from
the profile of the document being checked.
"""

from __future__ import annotations

import logging
from enum import StrEnum

from pydantic import BaseModel, ConfigDict

from .profiles import CheckCategory, ProfileRow, Strictness

logger = logging.getLogger(__name__)


class Severity(StrEnum):
    """Diagnostic severity."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class DiagnosticCode(StrEnum):
    """Closed taxonomy of diagnostic codes."""

    # Document gating
    MALFORMED_VERSION = "MalformedVersion"
    INCOMPATIBLE_MAJOR = "IncompatibleMajor"
    UNKNOWN_MINOR_FIELDS = "UnknownMinorFields"
    UNKNOWN_KIND = "UnknownKind"
    UNKNOWN_PROFILE = "UnknownProfile"
    SCHEMA_VIOLATION = "SchemaViolation"
    UNKNOWN_FIELD = "UnknownField"
    MISSING_REQUIRED = "MissingRequired"
    INVALID_NAME = "InvalidName"
    DUPLICATE_NAME = "DuplicateName"

    # Capabilities
    MISSING_LAYER_ARTIFACTS = "MissingLayerArtifacts"
    SOFT_DEPENDENCY_WARNING = "SoftDependencyWarning"

    # Tokens
    UNKNOWN_THEME_LAYER = "UnknownThemeLayer"
    TOKEN_CYCLE = "TokenCycleError"
    TRANSFORM_BOUNDS = "TransformBoundsError"
    INVALID_TRANSFORM_TARGET = "InvalidTransformTarget"
    UNDEFINED_TOKEN_REFERENCE = "UndefinedTokenReference"

    # Components
    PRECEDENCE_MISMATCH = "PrecedenceMismatch"
    BLOCKING_STATE_ORDER = "BlockingStateOrder"
    MISSING_ACCESSIBILITY = "MissingAccessibility"
    MISSING_ACCESSIBLE_LABEL = "MissingAccessibleLabel"

    # Variant matrix
    INVALID_MATRIX_RULE = "InvalidMatrixRule"
    IGNORED_MATRIX_RULES = "IgnoredMatrixRules"
    INCOMPLETE_VARIANT = "IncompleteVariant"
    EXCLUDED_COMBINATION = "ExcludedCombination"

    # Composition and data
    UNRESOLVED_REFERENCE = "UnresolvedReference"
    UNRESOLVED_BINDING = "UnresolvedBindingError"
    DERIVED_SOURCE_CYCLE = "DerivedSourceCycleError"
    UNKNOWN_TRANSFORM = "UnknownTransformError"
    INVALID_DATA_SOURCE = "InvalidDataSource"
    MISSING_DATA_STATE = "MissingDataState"

    # Rules
    RULE_VIOLATION = "RuleViolation"
    UNKNOWN_RULE = "UnknownRule"


# Fixed severity, or the category whose profile verdict decides it.
CODE_POLICY: dict[DiagnosticCode, Severity | CheckCategory] = {
    DiagnosticCode.MALFORMED_VERSION: Severity.ERROR,
    DiagnosticCode.INCOMPATIBLE_MAJOR: Severity.ERROR,
    DiagnosticCode.UNKNOWN_MINOR_FIELDS: Severity.WARNING,
    DiagnosticCode.UNKNOWN_KIND: Severity.ERROR,
    DiagnosticCode.UNKNOWN_PROFILE: Severity.ERROR,
    DiagnosticCode.SCHEMA_VIOLATION: Severity.ERROR,
    DiagnosticCode.UNKNOWN_FIELD: Severity.WARNING,
    DiagnosticCode.MISSING_REQUIRED: CheckCategory.MISSING_REQUIRED,
    DiagnosticCode.INVALID_NAME: Severity.ERROR,
    DiagnosticCode.DUPLICATE_NAME: Severity.ERROR,
    DiagnosticCode.MISSING_LAYER_ARTIFACTS: CheckCategory.MISSING_REQUIRED,
    DiagnosticCode.SOFT_DEPENDENCY_WARNING: Severity.WARNING,
    DiagnosticCode.UNKNOWN_THEME_LAYER: Severity.WARNING,
    DiagnosticCode.TOKEN_CYCLE: Severity.ERROR,
    DiagnosticCode.TRANSFORM_BOUNDS: Severity.ERROR,
    DiagnosticCode.INVALID_TRANSFORM_TARGET: Severity.ERROR,
    DiagnosticCode.UNDEFINED_TOKEN_REFERENCE: CheckCategory.UNDEFINED_TOKENS,
    DiagnosticCode.PRECEDENCE_MISMATCH: CheckCategory.MISSING_REQUIRED,
    DiagnosticCode.BLOCKING_STATE_ORDER: Severity.WARNING,
    DiagnosticCode.MISSING_ACCESSIBILITY: CheckCategory.ACCESSIBILITY,
    DiagnosticCode.MISSING_ACCESSIBLE_LABEL: CheckCategory.ACCESSIBILITY,
    DiagnosticCode.INVALID_MATRIX_RULE: CheckCategory.INCOMPLETE_VARIANTS,
    DiagnosticCode.IGNORED_MATRIX_RULES: Severity.WARNING,
    DiagnosticCode.INCOMPLETE_VARIANT: CheckCategory.INCOMPLETE_VARIANTS,
    DiagnosticCode.EXCLUDED_COMBINATION: Severity.INFO,
    DiagnosticCode.UNRESOLVED_REFERENCE: CheckCategory.MISSING_REQUIRED,
    DiagnosticCode.UNRESOLVED_BINDING: Severity.ERROR,
    DiagnosticCode.DERIVED_SOURCE_CYCLE: Severity.ERROR,
    DiagnosticCode.UNKNOWN_TRANSFORM: Severity.ERROR,
    DiagnosticCode.INVALID_DATA_SOURCE: Severity.ERROR,
    DiagnosticCode.MISSING_DATA_STATE: CheckCategory.MISSING_REQUIRED,
    DiagnosticCode.RULE_VIOLATION: Severity.ERROR,
    DiagnosticCode.UNKNOWN_RULE: Severity.WARNING,
}

_STRICTNESS_SEVERITY: dict[Strictness, Severity | None] = {
    Strictness.SKIP: None,
    Strictness.WARN: Severity.WARNING,
    Strictness.ERROR: Severity.ERROR,
}


class Diagnostic(BaseModel):
    """
    A single validation finding.

    Attributes:
        severity: error, warning or info
        path: Location, e.g. "components/button.yaml#state_precedence"
        rule_id: Code name, or the originating rule id for rule violations
        message: Human-readable description
        code: Taxonomy code
    """

    model_config = ConfigDict(frozen=True)

    severity: Severity
    path: str
    rule_id: str
    message: str
    code: DiagnosticCode

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def format(self) -> str:
        """Format as 'path: severity[rule_id]: message'."""
        return f"{self.path}: {self.severity.value}[{self.rule_id}]: {self.message}"


def severity_for(code: DiagnosticCode, row: ProfileRow | None) -> Severity | None:
    """
    Compute the severity of a code under a profile row.

    Returns:
        The severity, or None when the profile skips the check.
    """
    policy = CODE_POLICY[code]
    if isinstance(policy, Severity):
        return policy
    if row is None:
        return Severity.ERROR
    return _STRICTNESS_SEVERITY[row.verdict(policy)]


class DiagnosticSink:
    """
    Accumulates diagnostics for one stage of a run.

    Sinks are not shared between threads: parallel stages each own a sink and
    the orchestrator merges them in input order.
    """

    def __init__(self) -> None:
        self._items: list[Diagnostic] = []

    def emit(
        self,
        code: DiagnosticCode,
        path: str,
        message: str,
        *,
        row: ProfileRow | None = None,
        rule_id: str | None = None,
        severity: Severity | None = None,
    ) -> Diagnostic | None:
        """
        Record a diagnostic, routing its severity through the profile row.

        Args:
            code: Taxonomy code
            path: Location of the finding
            message: Description
            row: Profile row of the document being checked
            rule_id: Override for rule violations (defaults to the code name)
            severity: Explicit severity, bypassing the code policy

        Returns:
            The recorded diagnostic, or None if the profile skips it.
        """
        resolved = severity or severity_for(code, row)
        if resolved is None:
            logger.debug("Skipped %s at %s under profile %s", code, path, row and row.profile)
            return None
        diagnostic = Diagnostic(
            severity=resolved,
            path=path,
            rule_id=rule_id or code.value,
            message=message,
            code=code,
        )
        self._items.append(diagnostic)
        return diagnostic

    def extend(self, diagnostics: list[Diagnostic] | tuple[Diagnostic, ...]) -> None:
        self._items.extend(diagnostics)

    @property
    def diagnostics(self) -> tuple[Diagnostic, ...]:
        return tuple(self._items)

    @property
    def has_errors(self) -> bool:
        return any(d.is_error for d in self._items)

    def __len__(self) -> int:
        return len(self._items)

"""
DCF Intermediate Representation (IR) types.

Frozen pydantic models for the decoded documents, their kind-specific bodies
and the products of a validation run. All types are re-exported here.
"""

# Capabilities
from .capabilities import (
    LAYER_DEPENDENCIES,
    LAYER_KINDS,
    CapabilitySet,
    Layer,
)

# Components
from .components import (
    BLOCKING_STATES,
    DEFAULT_STATE,
    INTERACTIVE_CATEGORIES,
    AccessibilitySpec,
    ComponentSpec,
    CoverageReport,
    MatrixMode,
    PropSpec,
    VariantMatrixSpec,
    variant_value,
)

# Composition
from .composition import (
    FlowSpec,
    FlowStepSpec,
    LayoutSpec,
    NavigationSpec,
    RouteSpec,
    ScreenSpec,
    TransitionSpec,
)

# Data
from .data import (
    PRESENTABLE_STATES,
    TRANSFORM_VOCABULARY,
    CacheSpec,
    DataEvent,
    DataSourceKind,
    DataSourcePlan,
    DataSourceSpec,
    DataState,
    TransformStep,
)

# Diagnostics
from .diagnostics import (
    CODE_POLICY,
    Diagnostic,
    DiagnosticCode,
    DiagnosticSink,
    Severity,
    severity_for,
)

# Documents
from .documents import (
    HEADER_KEYS,
    NAME_PATTERN,
    NAMED_KINDS,
    Document,
    DocumentKind,
    RawDocument,
    is_valid_name,
)

# Profiles
from .profiles import (
    PROFILE_TABLE,
    CheckCategory,
    Profile,
    ProfileRow,
    Strictness,
    profile_row,
)

# Rules and i18n
from .rules import I18nBody, RuleKind, RulesBody, RuleSpec

# Tokens
from .tokens import (
    BASE_TOKENS_LAYER,
    DEFAULT_MERGE_ORDER,
    UNRESOLVED,
    ThemeBody,
    ThemingBody,
    TokenSnapshot,
)

__all__ = [
    # Capabilities
    "LAYER_DEPENDENCIES",
    "LAYER_KINDS",
    "CapabilitySet",
    "Layer",
    # Components
    "BLOCKING_STATES",
    "DEFAULT_STATE",
    "INTERACTIVE_CATEGORIES",
    "AccessibilitySpec",
    "ComponentSpec",
    "CoverageReport",
    "MatrixMode",
    "PropSpec",
    "VariantMatrixSpec",
    "variant_value",
    # Composition
    "FlowSpec",
    "FlowStepSpec",
    "LayoutSpec",
    "NavigationSpec",
    "RouteSpec",
    "ScreenSpec",
    "TransitionSpec",
    # Data
    "PRESENTABLE_STATES",
    "TRANSFORM_VOCABULARY",
    "CacheSpec",
    "DataEvent",
    "DataSourceKind",
    "DataSourcePlan",
    "DataSourceSpec",
    "DataState",
    "TransformStep",
    # Diagnostics
    "CODE_POLICY",
    "Diagnostic",
    "DiagnosticCode",
    "DiagnosticSink",
    "Severity",
    "severity_for",
    # Documents
    "HEADER_KEYS",
    "NAME_PATTERN",
    "NAMED_KINDS",
    "Document",
    "DocumentKind",
    "RawDocument",
    "is_valid_name",
    # Profiles
    "PROFILE_TABLE",
    "CheckCategory",
    "Profile",
    "ProfileRow",
    "Strictness",
    "profile_row",
    # Rules and i18n
    "I18nBody",
    "RuleKind",
    "RuleSpec",
    "RulesBody",
    # Tokens
    "BASE_TOKENS_LAYER",
    "DEFAULT_MERGE_ORDER",
    "UNRESOLVED",
    "ThemeBody",
    "ThemingBody",
    "TokenSnapshot",
]

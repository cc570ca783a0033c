"""
Document intake: header checks, version and profile gating, typed bodies.

Each raw tree is handled independently, so intake can run in parallel across
documents. A document is excluded when its kind is unknown, its version is
malformed or incompatible, or its body does not fit the schema of its kind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ValidationError

from .ir import (
    HEADER_KEYS,
    ComponentSpec,
    Diagnostic,
    DiagnosticCode,
    DiagnosticSink,
    Document,
    DocumentKind,
    FlowSpec,
    I18nBody,
    LayoutSpec,
    NavigationSpec,
    ProfileRow,
    RawDocument,
    RulesBody,
    ScreenSpec,
    Severity,
    ThemeBody,
    ThemingBody,
    is_valid_name,
)
from .profile_resolver import resolve_profile
from .version_gate import check_version

logger = logging.getLogger(__name__)

# Typed body model per kind; tokens documents keep their raw tree
BODY_MODELS: dict[DocumentKind, type[BaseModel]] = {
    DocumentKind.THEME: ThemeBody,
    DocumentKind.THEMING: ThemingBody,
    DocumentKind.COMPONENT: ComponentSpec,
    DocumentKind.LAYOUT: LayoutSpec,
    DocumentKind.SCREEN: ScreenSpec,
    DocumentKind.NAVIGATION: NavigationSpec,
    DocumentKind.FLOW: FlowSpec,
    DocumentKind.RULES: RulesBody,
    DocumentKind.I18N: I18nBody,
}

# Body fields whose absence is reported through the missing_required check
REQUIRED_FIELDS: dict[DocumentKind, tuple[str, ...]] = {
    DocumentKind.THEME: ("layer", "tokens"),
    DocumentKind.COMPONENT: ("category",),
    DocumentKind.LAYOUT: ("regions",),
    DocumentKind.SCREEN: ("content",),
    DocumentKind.NAVIGATION: ("routes",),
    DocumentKind.FLOW: ("steps",),
    DocumentKind.RULES: ("rules",),
    DocumentKind.I18N: ("locale", "messages"),
}


@dataclass(frozen=True)
class AcceptedDocument:
    """
    A document admitted to the run.

    Attributes:
        document: Header and raw body
        row: Strictness row of the document's profile
        spec: Typed body (a dict tree for tokens documents)
        newer_minor: The document declares a newer minor version
    """

    document: Document
    row: ProfileRow
    spec: Any
    newer_minor: bool = False

    @property
    def kind(self) -> DocumentKind:
        return self.document.kind

    @property
    def name(self) -> str:
        return self.document.name or ""


@dataclass(frozen=True)
class IntakeResult:
    accepted: AcceptedDocument | None
    diagnostics: tuple[Diagnostic, ...] = field(default_factory=tuple)


def intake_document(
    raw: RawDocument,
    default_profile: str,
    supported_version: str,
) -> IntakeResult:
    """
    Admit one raw document.

    Args:
        raw: Decoded tree with its source label
        default_profile: Profile for documents that omit one
        supported_version: Version implemented by the engine

    Returns:
        IntakeResult; ``accepted`` is None when the document is excluded
    """
    sink = DiagnosticSink()
    source = raw.label
    tree = raw.tree

    kind_value = tree.get("kind")
    try:
        kind = DocumentKind(kind_value)
    except ValueError:
        valid = ", ".join(k.value for k in DocumentKind)
        sink.emit(
            DiagnosticCode.UNKNOWN_KIND,
            f"{source}#kind",
            f"Unknown document kind {kind_value!r} (expected one of: {valid})",
        )
        return IntakeResult(None, sink.diagnostics)

    verdict = check_version(tree.get("dcf_version"), f"{source}#dcf_version", supported_version)
    sink.extend(verdict.diagnostics)
    if not verdict.accepted:
        return IntakeResult(None, sink.diagnostics)

    row = resolve_profile(tree.get("profile"), default_profile, f"{source}#profile", sink)

    capabilities = tree.get("capabilities")
    if capabilities is not None and not _is_flag_map(capabilities):
        sink.emit(
            DiagnosticCode.SCHEMA_VIOLATION,
            f"{source}#capabilities",
            "capabilities must map layer names to true/false; declaration ignored",
        )
        capabilities = None

    name = tree.get("name")
    if name is not None and not isinstance(name, str):
        name = str(name)

    document = Document(
        source=source,
        dcf_version=tree["dcf_version"],
        kind=kind,
        profile=row.profile.value,
        name=name,
        capabilities=capabilities,
        body={k: v for k, v in tree.items() if k not in HEADER_KEYS},
    )

    _check_name(document, row, sink)
    for required in REQUIRED_FIELDS.get(kind, ()):
        if required not in document.body:
            sink.emit(
                DiagnosticCode.MISSING_REQUIRED,
                document.locate(required),
                f"{document.label} is missing required field '{required}'",
                row=row,
            )

    spec = _typed_body(document, sink)
    if spec is None:
        return IntakeResult(None, sink.diagnostics)

    extra_severity = Severity.INFO if verdict.newer_minor else None
    for extra in sorted(getattr(spec, "model_extra", None) or {}):
        sink.emit(
            DiagnosticCode.UNKNOWN_FIELD,
            document.locate(extra),
            f"Unrecognized field '{extra}' in {document.label} is ignored",
            severity=extra_severity,
        )

    logger.debug("Accepted %s from %s (profile %s)", document.label, source, row.profile)
    return IntakeResult(
        AcceptedDocument(document, row, spec, verdict.newer_minor),
        sink.diagnostics,
    )


def _is_flag_map(value: Any) -> bool:
    return isinstance(value, dict) and all(
        isinstance(k, str) and isinstance(v, bool) for k, v in value.items()
    )


def _check_name(document: Document, row: ProfileRow, sink: DiagnosticSink) -> None:
    if not document.requires_name:
        return
    if not document.name:
        sink.emit(
            DiagnosticCode.MISSING_REQUIRED,
            document.locate("name"),
            f"{document.kind.value} documents require a name",
            row=row,
        )
    elif document.kind != DocumentKind.COMPONENT and not is_valid_name(document.name):
        # Component names are checked by the component validator
        sink.emit(
            DiagnosticCode.INVALID_NAME,
            document.locate("name"),
            f"Name '{document.name}' must match ^[A-Z][a-zA-Z0-9]*$",
        )


def _typed_body(document: Document, sink: DiagnosticSink) -> Any:
    if document.kind == DocumentKind.TOKENS:
        return dict(document.body)

    model = BODY_MODELS[document.kind]
    data = dict(document.body)
    if "name" in model.model_fields:
        data["name"] = document.name or ""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"])
            sink.emit(
                DiagnosticCode.SCHEMA_VIOLATION,
                document.locate(location) if location else document.source,
                f"{document.label}: {error['msg']}",
            )
        return None

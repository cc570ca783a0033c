"""
Validation run orchestration.

Sequences the stages of a run over a document set:

1. Intake (per document, parallel): header, version gate, profile, typed body
2. Capability closure (run level)
3. Token graph (once, optionally from cache)
4. Components (per component, parallel): validator and variant matrix
5. Composition (per screen, navigation and flow, parallel): references and
   data bindings
6. Global rules
7. Report

Nothing aborts a run: structural failures exclude single documents. A
CancellationToken is checked between stages.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, TypeVar

from .._version import __version__
from .cache import CacheEntry, TokenCache, compute_cache_key
from .capabilities import check_layer_artifacts, merge_declarations, resolve_capabilities
from .component_validator import validate_component
from .data_binding import resolve_bindings
from .errors import CacheError, RunCancelled
from .intake import AcceptedDocument, IntakeResult, intake_document
from .ir import (
    CoverageReport,
    DataSourcePlan,
    Diagnostic,
    DiagnosticCode,
    DiagnosticSink,
    DocumentKind,
    Profile,
    RawDocument,
    profile_row,
)
from .linker import Linker, SymbolTable, binding_scope, build_symbol_table
from .report import ResolvedModel, ValidationReport
from .rule_engine import RuleContext, collect_rules, evaluate_rules
from .token_graph import ResolvedTokens, build_tokens
from .variant_matrix import validate_matrix
from .version_gate import SUPPORTED_VERSION, parse_version

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

TOKEN_KINDS = frozenset({DocumentKind.TOKENS, DocumentKind.THEME, DocumentKind.THEMING})
COMPOSITION_KINDS = frozenset({DocumentKind.SCREEN, DocumentKind.NAVIGATION, DocumentKind.FLOW})


@dataclass(frozen=True)
class ResolutionConfig:
    """
    Settings of a validation run.

    Attributes:
        default_profile: Profile of documents that declare none
        default_capabilities: Layer flags used when no document declares any;
            None enables every layer
        supported_version: DCF version implemented by the engine
        max_workers: Worker threads for per-unit stages; 1 runs inline
    """

    default_profile: str = Profile.STANDARD.value
    default_capabilities: Mapping[str, bool] | None = None
    supported_version: str = SUPPORTED_VERSION
    max_workers: int = 1

    def __post_init__(self) -> None:
        profile_row(self.default_profile)
        if parse_version(self.supported_version) is None:
            raise ValueError(
                f"supported_version '{self.supported_version}' is not MAJOR.MINOR.PATCH"
            )
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")


class CancellationToken:
    """
    Cooperative cancellation flag for a run.

    The orchestrator checks the token between stages; a cancelled run raises
    RunCancelled and produces no report.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def check(self, stage: str) -> None:
        if self._event.is_set():
            raise RunCancelled(f"Validation run cancelled before {stage}")


def _document_order(raw: RawDocument) -> tuple[str, int]:
    return raw.source, -1 if raw.index is None else raw.index


class Orchestrator:
    """
    Runs the validation stages for one document set.

    Usage:
        report = Orchestrator(config).run(raw_documents)
    """

    def __init__(
        self,
        config: ResolutionConfig | None = None,
        *,
        cache: TokenCache | None = None,
        cancel: CancellationToken | None = None,
    ):
        self.config = config or ResolutionConfig()
        self.cache = cache
        self.cancel = cancel or CancellationToken()
        self._timings: dict[str, float] = {}

    def _map(self, fn: Callable[[T], R], items: Sequence[T]) -> list[R]:
        """Apply ``fn`` to every item; results keep input order."""
        if self.config.max_workers > 1 and len(items) > 1:
            with ThreadPoolExecutor(max_workers=self.config.max_workers) as pool:
                return list(pool.map(fn, items))
        return [fn(item) for item in items]

    def _stage(self, name: str, started: float) -> None:
        self._timings[name] = time.perf_counter() - started
        logger.debug("Stage %s took %.1f ms", name, self._timings[name] * 1000)

    def run(self, raws: Iterable[RawDocument]) -> ValidationReport:
        """
        Validate a document set.

        Raises:
            RunCancelled: If the cancellation token fires
        """
        ordered = sorted(raws, key=_document_order)
        diagnostics: list[Diagnostic] = []

        # 1. Intake
        self.cancel.check("intake")
        started = time.perf_counter()
        results: list[IntakeResult] = self._map(self._intake, ordered)
        accepted: list[AcceptedDocument] = []
        contributing: list[RawDocument] = []
        excluded: list[str] = []
        for raw, result in zip(ordered, results, strict=True):
            diagnostics.extend(result.diagnostics)
            if result.accepted is None:
                excluded.append(raw.label)
                continue
            accepted.append(result.accepted)
            if result.accepted.kind in TOKEN_KINDS:
                contributing.append(raw)
        self._stage("intake", started)

        # 2. Capabilities
        self.cancel.check("capabilities")
        sink = DiagnosticSink()
        declared = merge_declarations(
            doc.document.capabilities for doc in accepted if doc.document.capabilities is not None
        )
        if declared is None:
            declared = self.config.default_capabilities
        capabilities = resolve_capabilities(declared, "capabilities", sink)
        check_layer_artifacts(
            capabilities,
            (doc.kind for doc in accepted),
            profile_row(self.config.default_profile),
            sink,
        )
        diagnostics.extend(sink.diagnostics)

        # 3. Tokens
        self.cancel.check("tokens")
        started = time.perf_counter()
        tokens, token_diagnostics, cache_hit = self._resolve_tokens(accepted, contributing)
        diagnostics.extend(token_diagnostics)
        self._stage("tokens", started)

        # 4. Components
        self.cancel.check("components")
        started = time.perf_counter()
        sink = DiagnosticSink()
        table = build_symbol_table(accepted, sink)
        diagnostics.extend(sink.diagnostics)
        component_docs = list(table.components.values())
        coverage: dict[str, CoverageReport] = {}
        for doc, (found, report) in zip(
            component_docs,
            self._map(lambda d: self._check_component(d, tokens), component_docs),
            strict=True,
        ):
            diagnostics.extend(found)
            coverage[doc.name] = report
        self._stage("components", started)

        # 5. Composition
        self.cancel.check("composition")
        started = time.perf_counter()
        composed = [
            doc for doc in accepted if doc.kind in COMPOSITION_KINDS and self._owns_name(table, doc)
        ]
        data_plans: dict[str, dict[str, DataSourcePlan]] = {}
        for doc, (found, plans) in zip(
            composed,
            self._map(lambda d: self._check_composition(d, table), composed),
            strict=True,
        ):
            diagnostics.extend(found)
            if plans is not None:
                data_plans[doc.document.label] = plans
        self._stage("composition", started)

        # 6. Rules
        self.cancel.check("rules")
        sink = DiagnosticSink()
        rules_docs = [doc for doc in accepted if doc.kind == DocumentKind.RULES]
        context = RuleContext(
            table=table,
            tokens=tokens,
            i18n=[doc for doc in accepted if doc.kind == DocumentKind.I18N],
        )
        evaluate_rules(rules_docs, context, sink)
        diagnostics.extend(sink.diagnostics)

        self.cancel.check("report")
        model = ResolvedModel(
            tokens=tokens,
            components={name: doc.spec for name, doc in table.components.items()},
            layouts={name: doc.spec for name, doc in table.layouts.items()},
            screens={name: doc.spec for name, doc in table.screens.items()},
            navigations={name: doc.spec for name, doc in table.navigations.items()},
            flows={name: doc.spec for name, doc in table.flows.items()},
            data_plans=data_plans,
            rules=tuple(c.rule for c in collect_rules(rules_docs)),
        )
        report = ValidationReport(
            diagnostics=tuple(diagnostics),
            coverage=coverage,
            capabilities=capabilities,
            model=model,
            documents=len(ordered),
            excluded=tuple(excluded),
            cache_hit=cache_hit,
        )
        logger.debug(
            "Validated %d documents (%d excluded): %s",
            len(ordered),
            len(excluded),
            report.summary(),
        )
        return report

    # -------------------------------------------------------------------------
    # Stage helpers
    # -------------------------------------------------------------------------

    def _intake(self, raw: RawDocument) -> IntakeResult:
        return intake_document(raw, self.config.default_profile, self.config.supported_version)

    def _resolve_tokens(
        self,
        accepted: list[AcceptedDocument],
        contributing: list[RawDocument],
    ) -> tuple[ResolvedTokens, tuple[Diagnostic, ...], bool]:
        key = None
        if self.cache is not None:
            key = compute_cache_key(
                contributing,
                self.config.default_profile,
                __version__,
                self.config.supported_version,
            )
            entry = self.cache.get(key)
            if entry is not None:
                logger.debug("Resolved tokens from cache %s", key[:12])
                return ResolvedTokens.from_snapshot(entry.snapshot), tuple(entry.diagnostics), True

        sink = DiagnosticSink()
        tokens_docs = [doc for doc in accepted if doc.kind == DocumentKind.TOKENS]
        themes = [doc for doc in accepted if doc.kind == DocumentKind.THEME]
        theming_docs = [doc for doc in accepted if doc.kind == DocumentKind.THEMING]
        for extra in theming_docs[1:]:
            sink.emit(
                DiagnosticCode.DUPLICATE_NAME,
                extra.document.source,
                f"Only one theming document is used; ignoring this one in favour of "
                f"{theming_docs[0].document.source}",
            )
        theming = theming_docs[0].spec if theming_docs else None
        tokens = build_tokens(tokens_docs, themes, theming, sink)

        if self.cache is not None and key is not None:
            entry = CacheEntry(
                key=key,
                snapshot=tokens.to_snapshot(),
                diagnostics=list(sink.diagnostics),
            )
            try:
                self.cache.put(entry)
            except CacheError as e:
                logger.warning("Token cache not updated: %s", e)
        return tokens, sink.diagnostics, False

    @staticmethod
    def _check_component(
        doc: AcceptedDocument, tokens: ResolvedTokens
    ) -> tuple[tuple[Diagnostic, ...], CoverageReport]:
        sink = DiagnosticSink()
        validate_component(doc.spec, doc.document, doc.row, tokens, sink)
        report = validate_matrix(doc.spec, doc.document, doc.row, sink)
        return sink.diagnostics, report

    @staticmethod
    def _check_composition(
        doc: AcceptedDocument, table: SymbolTable
    ) -> tuple[tuple[Diagnostic, ...], dict[str, DataSourcePlan] | None]:
        sink = DiagnosticSink()
        Linker(table, sink).check(doc)
        scope = binding_scope(doc)
        plans = resolve_bindings(scope, sink) if scope is not None else None
        return sink.diagnostics, plans

    @staticmethod
    def _owns_name(table: SymbolTable, doc: AcceptedDocument) -> bool:
        """Whether ``doc`` is the definition the symbol table kept for its name."""
        tables: dict[DocumentKind, Mapping[str, Any]] = {
            DocumentKind.SCREEN: table.screens,
            DocumentKind.NAVIGATION: table.navigations,
            DocumentKind.FLOW: table.flows,
        }
        return tables[doc.kind].get(doc.name) is doc


def validate_documents(
    raws: Iterable[RawDocument],
    config: ResolutionConfig | None = None,
    *,
    cache: TokenCache | None = None,
    cancel: CancellationToken | None = None,
) -> ValidationReport:
    """
    Validate a set of decoded documents.

    Args:
        raws: Decoded documents
        config: Run settings (defaults: standard profile, every layer enabled)
        cache: Optional token cache
        cancel: Optional cancellation token

    Returns:
        ValidationReport

    Raises:
        RunCancelled: If ``cancel`` fires before the run completes
    """
    return Orchestrator(config, cache=cache, cancel=cancel).run(raws)


class LiveValidator:
    """
    Re-validates a changing document set, publishing only the newest result.

    Every call to ``validate`` starts a new generation and cancels the one
    before it. A run that finishes after a newer generation has started is
    discarded.

    Usage:
        live = LiveValidator(config, on_report=show)
        live.validate(documents)      # from any thread
    """

    def __init__(
        self,
        config: ResolutionConfig | None = None,
        *,
        cache: TokenCache | None = None,
        on_report: Callable[[int, ValidationReport], None] | None = None,
    ):
        self.config = config or ResolutionConfig()
        self.cache = cache
        self.on_report = on_report
        self._lock = threading.Lock()
        self._generation = 0
        self._token: CancellationToken | None = None
        self._latest: tuple[int, ValidationReport] | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def latest(self) -> ValidationReport | None:
        latest = self._latest
        return latest[1] if latest else None

    @property
    def latest_generation(self) -> int | None:
        latest = self._latest
        return latest[0] if latest else None

    def _begin(self) -> tuple[int, CancellationToken]:
        with self._lock:
            if self._token is not None:
                self._token.cancel()
            self._generation += 1
            self._token = CancellationToken()
            return self._generation, self._token

    def validate(self, raws: Iterable[RawDocument]) -> ValidationReport | None:
        """
        Validate a new generation of the document set.

        Returns:
            The report, or None when the run was cancelled or superseded
        """
        generation, token = self._begin()
        try:
            report = validate_documents(raws, self.config, cache=self.cache, cancel=token)
        except RunCancelled:
            logger.debug("Generation %d cancelled", generation)
            return None

        with self._lock:
            if generation != self._generation:
                logger.debug("Generation %d superseded by %d", generation, self._generation)
                return None
            self._latest = (generation, report)
            if self.on_report is not None:
                self.on_report(generation, report)
        return report

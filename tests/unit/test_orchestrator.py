"""
End-to-end tests for validation runs.

Tests the orchestrator including:
- A clean design system and its resolved model
- Exclusion of broken documents
- Determinism across input order and worker counts
- Profile routing, capabilities, cancellation and live re-validation
"""

import pytest

from dcf.core.cache import MemoryTokenCache
from dcf.core.errors import RunCancelled
from dcf.core.ir import DataState, DiagnosticCode, Layer, Severity
from dcf.core.orchestrator import (
    CancellationToken,
    LiveValidator,
    ResolutionConfig,
    validate_documents,
)


class TestCleanRun:
    """A valid design system."""

    def test_no_diagnostics(self, design_system):
        report = validate_documents(design_system)
        assert report.diagnostics == ()
        assert report.exit_code == 0
        assert report.documents == len(design_system)
        assert report.excluded == ()

    def test_resolved_model(self, design_system):
        model = validate_documents(design_system).model
        assert model.tokens.get("color.accent") == "#3366ff"
        assert set(model.components) == {"Button"}
        assert set(model.screens) == {"Home"}
        assert set(model.navigations) == {"AppNav"}
        assert len(model.rules) == 4
        plan = model.data_plans["screen:Home"]["tasks"]
        assert plan.initial_state == DataState.IDLE

    def test_coverage_and_capabilities(self, design_system):
        report = validate_documents(design_system)
        coverage = report.coverage["Button"]
        assert coverage.total_combinations == 2
        assert coverage.coverage == 1.0
        assert report.capabilities.enabled_layers == frozenset(Layer)

    def test_report_dict(self, design_system):
        data = validate_documents(design_system).to_dict()
        assert data["valid"] is True
        assert data["summary"] == {"error": 0, "warning": 0, "info": 0}
        assert data["model"]["components"] == ["Button"]
        assert data["coverage"]["Button"]["valid_combinations"] == 2


class TestBrokenDocuments:
    """Failures stay local to their documents."""

    def test_excluded_document_does_not_stop_the_run(self, design_system, make_doc):
        broken = make_doc("layout", "Side", version="2.0.0", regions=["body"])
        report = validate_documents([*design_system, broken])
        assert report.excluded == ("layout-side.yaml",)
        assert [d.code for d in report.errors] == [DiagnosticCode.INCOMPATIBLE_MAJOR]
        assert "Button" in report.model.components
        assert report.exit_code == 1

    def test_malformed_route_does_not_stop_the_run(self, design_system, make_doc):
        broken = make_doc("navigation", "Side", routes={"home": "Home"})
        report = validate_documents([*design_system, broken])
        assert report.excluded == ("navigation-side.yaml",)
        assert [d.code for d in report.errors] == [DiagnosticCode.SCHEMA_VIOLATION]
        assert "Side" not in report.model.navigations

    def test_token_cycle_resolves_to_unresolved(self, design_system, make_doc):
        cyclic = make_doc("tokens", source="cycle.yaml", loop={"a": "{loop.b}", "b": "{loop.a}"})
        report = validate_documents([*design_system, cyclic])
        assert [d.code for d in report.errors] == [DiagnosticCode.TOKEN_CYCLE]
        assert report.model.tokens.unresolved == ["loop.a", "loop.b"]

    def test_duplicate_theming_documents(self, design_system, make_doc):
        first = make_doc("theming", source="a-theming.yaml")
        second = make_doc("theming", source="b-theming.yaml")
        report = validate_documents([*design_system, second, first])
        (diagnostic,) = report.diagnostics
        assert diagnostic.code == DiagnosticCode.DUPLICATE_NAME
        assert diagnostic.path == "b-theming.yaml"

    def test_duplicate_screen_is_checked_once(self, design_system, make_doc):
        copy = make_doc("screen", "Home", source="zz-home.yaml", content=[{"component": "Nope"}])
        report = validate_documents([*design_system, copy])
        assert [d.code for d in report.diagnostics] == [DiagnosticCode.DUPLICATE_NAME]


class TestDeterminism:
    @pytest.fixture
    def noisy(self, design_system, make_doc):
        return [
            *design_system,
            make_doc("screen", "Extra", content=[{"component": "Missing"}]),
            make_doc("tokens", source="more.yaml", color={"muted": "{color.nope}"}),
            make_doc("component", "card", category="display"),
        ]

    def test_input_order_does_not_matter(self, noisy):
        forward = validate_documents(noisy)
        backward = validate_documents(list(reversed(noisy)))
        assert forward.diagnostics == backward.diagnostics
        assert len(forward.diagnostics) >= 3

    def test_parallel_run_matches_serial(self, noisy):
        serial = validate_documents(noisy, ResolutionConfig(max_workers=1))
        parallel = validate_documents(noisy, ResolutionConfig(max_workers=4))
        assert parallel.diagnostics == serial.diagnostics


class TestConfig:
    """ResolutionConfig and profile routing."""

    @pytest.mark.parametrize(
        ("profile", "expected"),
        [("lite", []), ("standard", [Severity.WARNING]), ("strict", [Severity.ERROR])],
    )
    def test_default_profile_routes_severity(self, design_system, make_doc, profile, expected):
        doc = make_doc(
            "component",
            "Badge",
            category="display",
            tokens={"base": {"background": "{color.nope}"}},
        )
        report = validate_documents([*design_system, doc], ResolutionConfig(profile))
        assert [d.severity for d in report.diagnostics] == expected

    def test_document_profile_beats_default(self, design_system, make_doc):
        doc = make_doc(
            "component",
            "Badge",
            profile="strict",
            category="display",
            tokens={"base": {"background": "{color.nope}"}},
        )
        report = validate_documents([*design_system, doc], ResolutionConfig("lite"))
        assert [d.severity for d in report.diagnostics] == [Severity.ERROR]

    def test_declared_capabilities(self, design_system, make_doc):
        doc = make_doc("tokens", source="caps.yaml", capabilities={"flows": True})
        report = validate_documents([*design_system, doc])
        assert report.capabilities.is_enabled("flows")
        assert not report.capabilities.is_enabled("navigation")
        (diagnostic,) = report.diagnostics
        assert diagnostic.code == DiagnosticCode.MISSING_LAYER_ARTIFACTS
        assert diagnostic.path == "capabilities.flows"

    def test_default_capabilities_from_config(self, design_system):
        config = ResolutionConfig(default_capabilities={"tokens": True, "layouts": False})
        report = validate_documents(design_system, config)
        assert report.capabilities.is_enabled("tokens")
        assert not report.capabilities.is_enabled("layouts")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"default_profile": "extreme"},
            {"supported_version": "1.2"},
            {"max_workers": 0},
        ],
    )
    def test_invalid_config(self, kwargs):
        with pytest.raises(ValueError):
            ResolutionConfig(**kwargs)


class TestCancellation:
    def test_cancelled_run_raises(self, design_system):
        token = CancellationToken()
        token.cancel()
        assert token.cancelled
        with pytest.raises(RunCancelled):
            validate_documents(design_system, cancel=token)


class TestLiveValidator:
    """Generations of a live validation session."""

    def test_publishes_each_generation(self, design_system):
        published = []
        live = LiveValidator(on_report=lambda gen, report: published.append(gen))
        assert live.validate(design_system) is not None
        assert live.validate(design_system) is not None
        assert published == [1, 2]
        assert live.generation == 2
        assert live.latest_generation == 2
        assert live.latest is not None

    def test_superseded_run_is_discarded(self, design_system):
        published = []

        class SupersedingCache:
            """Starts a newer generation the first time tokens are looked up."""

            def __init__(self):
                self.live = None
                self.started = False
                self.inner = None

            def get(self, key):
                if not self.started:
                    self.started = True
                    self.inner = self.live.validate(design_system)
                return None

            def put(self, entry):
                pass

        cache = SupersedingCache()
        live = LiveValidator(cache=cache, on_report=lambda gen, report: published.append(gen))
        cache.live = live

        assert live.validate(design_system) is None
        assert cache.inner is not None
        assert published == [2]
        assert live.latest_generation == 2

    def test_shared_cache_between_generations(self, design_system):
        cache = MemoryTokenCache()
        live = LiveValidator(cache=cache)
        first = live.validate(design_system)
        second = live.validate(design_system)
        assert not first.cache_hit
        assert second.cache_hit
        assert len(cache) == 1
        assert second.diagnostics == first.diagnostics

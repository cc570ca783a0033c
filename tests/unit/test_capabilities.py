"""Tests for capability closure and layer artifact checks."""

import pytest

from dcf.core.capabilities import (
    check_layer_artifacts,
    close_layers,
    merge_declarations,
    resolve_capabilities,
)
from dcf.core.ir import DiagnosticCode, DiagnosticSink, DocumentKind, Layer, Severity, profile_row


class TestCloseLayers:
    """Tests for the transitive closure over the dependency table."""

    @pytest.mark.parametrize("layer", list(Layer))
    def test_closure_is_idempotent(self, layer):
        closed, _ = close_layers([layer])
        again, _ = close_layers(closed)
        assert again == closed

    def test_screens_imply_components_and_tokens(self):
        closed, overridden = close_layers([Layer.SCREENS])
        assert closed == {Layer.SCREENS, Layer.COMPONENTS, Layer.TOKENS}
        assert overridden == []

    def test_navigation_closure(self):
        closed, _ = close_layers([Layer.NAVIGATION])
        assert closed == {
            Layer.NAVIGATION,
            Layer.LAYOUTS,
            Layer.SCREENS,
            Layer.COMPONENTS,
            Layer.TOKENS,
        }

    def test_disabled_dependency_is_enabled_anyway(self):
        closed, overridden = close_layers([Layer.SCREENS], disabled=[Layer.COMPONENTS])
        assert closed == {Layer.SCREENS, Layer.COMPONENTS, Layer.TOKENS}
        assert overridden == [(Layer.SCREENS, Layer.COMPONENTS)]

    def test_disabled_layer_without_dependents_stays_off(self):
        closed, overridden = close_layers([Layer.COMPONENTS], disabled=[Layer.FLOWS])
        assert closed == {Layer.COMPONENTS, Layer.TOKENS}
        assert overridden == []


class TestResolveCapabilities:
    """Tests for resolve_capabilities."""

    def test_absent_declaration_enables_everything(self):
        sink = DiagnosticSink()
        capabilities = resolve_capabilities(None, "capabilities", sink)
        assert capabilities.enabled_layers == frozenset(Layer)
        assert capabilities.explicit == frozenset()
        assert len(sink) == 0

    def test_declared_layer_enables_dependencies(self):
        sink = DiagnosticSink()
        capabilities = resolve_capabilities({"flows": True}, "capabilities", sink)
        assert capabilities.is_enabled("flows")
        assert capabilities.is_enabled("screens")
        assert capabilities.is_enabled("tokens")
        assert not capabilities.is_enabled("navigation")
        assert not capabilities.is_enabled(Layer.LAYOUTS)

    def test_explicitly_disabled_dependency_is_a_soft_warning(self):
        sink = DiagnosticSink()
        capabilities = resolve_capabilities(
            {"screens": True, "components": False}, "capabilities", sink
        )
        assert capabilities.is_enabled("screens")
        assert capabilities.is_enabled("components")
        assert capabilities.is_enabled("tokens")
        assert capabilities.declared[Layer.COMPONENTS] is False
        (diagnostic,) = sink.diagnostics
        assert diagnostic.code == DiagnosticCode.SOFT_DEPENDENCY_WARNING
        assert diagnostic.severity == Severity.WARNING
        assert diagnostic.path == "capabilities.screens"
        assert "components" in diagnostic.message

    def test_unknown_layer_is_reported(self):
        sink = DiagnosticSink()
        resolve_capabilities({"widgets": True}, "capabilities", sink)
        (diagnostic,) = sink.diagnostics
        assert diagnostic.code == DiagnosticCode.UNKNOWN_FIELD
        assert diagnostic.path == "capabilities.widgets"

    def test_to_dict_lists_every_layer(self):
        capabilities = resolve_capabilities({"tokens": True}, "capabilities", DiagnosticSink())
        data = capabilities.to_dict()
        assert set(data) == {layer.value for layer in Layer}
        assert data["tokens"] is True
        assert data["screens"] is False


class TestMergeDeclarations:
    def test_true_wins(self):
        merged = merge_declarations([{"flows": False}, {"flows": True, "tokens": False}])
        assert merged == {"flows": True, "tokens": False}

    def test_nothing_declared(self):
        assert merge_declarations([]) is None


class TestLayerArtifacts:
    """Tests for MissingLayerArtifacts."""

    def test_explicit_layer_without_documents(self):
        sink = DiagnosticSink()
        capabilities = resolve_capabilities({"tokens": True}, "capabilities", DiagnosticSink())
        check_layer_artifacts(capabilities, [], profile_row("standard"), sink)
        (diagnostic,) = sink.diagnostics
        assert diagnostic.code == DiagnosticCode.MISSING_LAYER_ARTIFACTS
        assert diagnostic.path == "capabilities.tokens"
        assert diagnostic.severity == Severity.ERROR

    def test_severity_follows_profile(self):
        sink = DiagnosticSink()
        capabilities = resolve_capabilities({"tokens": True}, "capabilities", DiagnosticSink())
        check_layer_artifacts(capabilities, [], profile_row("lite"), sink)
        assert sink.diagnostics[0].severity == Severity.WARNING

    def test_present_documents_satisfy_the_layer(self):
        sink = DiagnosticSink()
        capabilities = resolve_capabilities({"themes": True}, "capabilities", DiagnosticSink())
        check_layer_artifacts(
            capabilities,
            [DocumentKind.THEMING, DocumentKind.TOKENS],
            profile_row("strict"),
            sink,
        )
        assert len(sink) == 0

    def test_default_enabled_layers_are_never_reported(self):
        sink = DiagnosticSink()
        capabilities = resolve_capabilities(None, "capabilities", DiagnosticSink())
        check_layer_artifacts(capabilities, [], profile_row("strict"), sink)
        assert len(sink) == 0

    def test_disabled_layers_are_never_reported(self):
        sink = DiagnosticSink()
        capabilities = resolve_capabilities(
            {"tokens": True, "flows": False}, "capabilities", DiagnosticSink()
        )
        check_layer_artifacts(capabilities, [DocumentKind.TOKENS], profile_row("strict"), sink)
        assert len(sink) == 0

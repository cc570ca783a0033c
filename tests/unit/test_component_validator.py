"""Tests for component validation and style resolution."""

import pytest

from dcf.core.component_validator import resolve_style, select_state, validate_component
from dcf.core.ir import ComponentSpec, DiagnosticCode, DiagnosticSink, Severity
from dcf.core.token_graph import ResolvedTokens

TOKENS = ResolvedTokens(
    {"color.surface": "#ffffff", "color.accent": "#3366ff", "size.touch": 44}
)


@pytest.fixture
def toggle() -> ComponentSpec:
    """A component with blocking and plain states."""
    return ComponentSpec.model_validate(
        {
            "name": "Toggle",
            "category": "control",
            "variants": {"intent": ["primary", "secondary"]},
            "states": {
                "default": {},
                "hover": {"background": "#eeeeee"},
                "disabled": {"background": "#cccccc", "opacity": 0.4},
            },
            "state_precedence": ["disabled", "hover", "default"],
            "tokens": {
                "base": {"background": "#ffffff", "opacity": 1},
                "primary": {"background": "{color.accent}"},
                "intent.secondary": {"background": "#f0f0f0"},
            },
        }
    )


class TestResolveStyle:
    """Effective style of a rendered instance."""

    def test_disabled_beats_hover(self, toggle):
        style = resolve_style(toggle, TOKENS, {"intent": "primary"}, {"disabled", "hover"})
        assert style.state == "disabled"
        assert style.values["background"] == "#cccccc"
        assert style.values["opacity"] == 0.4

    def test_state_flags_mapping(self, toggle):
        style = resolve_style(toggle, TOKENS, {}, {"disabled": False, "hover": True})
        assert style.state == "hover"
        assert style.values["background"] == "#eeeeee"

    def test_states_override_rather_than_replace(self, toggle):
        style = resolve_style(toggle, TOKENS, {"intent": "primary"}, {"hover"})
        assert style.values["opacity"] == 1

    def test_default_state_keeps_variant_style(self, toggle):
        style = resolve_style(toggle, TOKENS, {"intent": "primary"})
        assert style.state == "default"
        assert style.values["background"] == "#3366ff"

    def test_qualified_variant_key(self, toggle):
        style = resolve_style(toggle, TOKENS, {"intent": "secondary"})
        assert style.values["background"] == "#f0f0f0"

    def test_missing_axis_uses_first_value(self, toggle):
        style = resolve_style(toggle, TOKENS)
        assert style.combination == {"intent": "primary"}

    def test_relative_state_transform(self):
        component = ComponentSpec.model_validate(
            {
                "name": "Chip",
                "states": {"default": {}, "hover": {"background": "darken(100%)"}},
                "tokens": {"base": {"background": "{color.surface}"}},
            }
        )
        style = resolve_style(component, TOKENS, active_states={"hover"})
        assert style.values["background"] == "#000000"
        assert style.problems == []

    def test_boolean_and_numeric_variant_values(self):
        component = ComponentSpec.model_validate(
            {
                "name": "IconButton",
                "variants": {"iconOnly": [True, False], "size": [1, 2]},
                "tokens": {True: {"padding": 0}, "false": {"padding": 8}},
                "variant_matrix": {
                    "mode": "blocklist",
                    "deny": [{"iconOnly": True, "size": [2]}],
                    "fallback": {"size": 1},
                },
            }
        )
        assert component.variants == {"iconOnly": ["true", "false"], "size": ["1", "2"]}
        assert component.variant_matrix.deny == [{"iconOnly": "true", "size": ["2"]}]
        assert component.variant_matrix.fallback == {"size": "1"}
        style = resolve_style(component, TOKENS, {"iconOnly": True, "size": 2})
        assert style.combination == {"iconOnly": "true", "size": "1"}
        assert style.values["padding"] == 0

    def test_implicit_precedence_puts_blocking_states_first(self):
        component = ComponentSpec(name="Field", states=["default", "focus", "loading"])
        assert component.effective_precedence == ["loading", "focus", "default"]
        assert select_state(component, {"focus", "loading"}) == "loading"


class TestValidateComponent:
    """Diagnostics produced by validate_component."""

    def _validate(self, make_doc, accept, profile="standard", **body):
        body.setdefault("category", "display")
        doc = accept(make_doc("component", body.pop("name", "Card"), **body), profile)
        sink = DiagnosticSink()
        validate_component(doc.spec, doc.document, doc.row, TOKENS, sink)
        return sink

    def test_clean_component(self, make_doc, accept):
        sink = self._validate(
            make_doc,
            accept,
            tokens={"base": {"background": "{color.surface}"}},
        )
        assert sink.diagnostics == ()

    def test_invalid_name(self, make_doc, accept, codes):
        sink = self._validate(make_doc, accept, name="card")
        assert codes(sink) == [DiagnosticCode.INVALID_NAME]

    @pytest.mark.parametrize(
        ("profile", "expected"),
        [("lite", []), ("standard", [Severity.WARNING]), ("strict", [Severity.ERROR])],
    )
    def test_undefined_token_follows_profile(self, make_doc, accept, profile, expected):
        sink = self._validate(
            make_doc, accept, profile, tokens={"base": {"background": "{color.nope}"}}
        )
        assert [d.severity for d in sink.diagnostics] == expected
        for diagnostic in sink.diagnostics:
            assert diagnostic.code == DiagnosticCode.UNDEFINED_TOKEN_REFERENCE
            assert diagnostic.path == "component-card.yaml#tokens.base.background"

    def test_precedence_mismatch(self, make_doc, accept, codes):
        sink = self._validate(
            make_doc,
            accept,
            states=["default", "hover", "disabled"],
            state_precedence=["hover", "default", "pressed"],
        )
        assert DiagnosticCode.PRECEDENCE_MISMATCH in codes(sink)
        mismatch = next(d for d in sink.diagnostics if d.code == DiagnosticCode.PRECEDENCE_MISMATCH)
        assert "missing disabled" in mismatch.message
        assert "undeclared pressed" in mismatch.message
        assert mismatch.severity == Severity.ERROR
        assert mismatch.path == "component-card.yaml#state_precedence"

    def test_blocking_state_after_plain_state(self, make_doc, accept, codes):
        sink = self._validate(
            make_doc,
            accept,
            states=["default", "hover", "disabled"],
            state_precedence=["hover", "disabled", "default"],
        )
        assert codes(sink) == [DiagnosticCode.BLOCKING_STATE_ORDER]
        assert sink.diagnostics[0].severity == Severity.WARNING

    def test_interactive_component_needs_accessibility(self, make_doc, accept, codes):
        sink = self._validate(make_doc, accept, category="control")
        assert codes(sink) == [
            DiagnosticCode.MISSING_ACCESSIBILITY,
            DiagnosticCode.MISSING_ACCESSIBILITY,
        ]

    def test_accessible_interactive_component(self, make_doc, accept):
        sink = self._validate(
            make_doc,
            accept,
            category="control",
            props={"label": {"type": "string", "required": True}},
            accessibility={"role": "button"},
        )
        assert sink.diagnostics == ()

    def test_icon_only_requires_accessible_label(self, make_doc, accept, codes):
        sink = self._validate(make_doc, accept, props={"iconOnly": {"type": "boolean"}})
        assert codes(sink) == [DiagnosticCode.MISSING_ACCESSIBLE_LABEL]

        sink = self._validate(
            make_doc,
            accept,
            props={
                "iconOnly": {"type": "boolean"},
                "accessibilityLabel": {"type": "string", "required": True},
            },
        )
        assert sink.diagnostics == ()

    def test_unknown_token_key(self, make_doc, accept, codes):
        sink = self._validate(make_doc, accept, tokens={"huge": {"padding": 40}})
        assert codes(sink) == [DiagnosticCode.UNKNOWN_FIELD]

    def test_boolean_variant_axis(self, make_doc, accept):
        sink = self._validate(
            make_doc,
            accept,
            variants={"iconOnly": [True, False]},
            tokens={True: {"padding": 0}, "false": {"padding": 8}},
            accessibility={"label_required": True},
        )
        assert sink.diagnostics == ()

    def test_partially_styled_axis(self, make_doc, accept, codes):
        sink = self._validate(
            make_doc,
            accept,
            variants={"intent": ["primary", "secondary"]},
            tokens={"primary": {"background": "{color.accent}"}},
        )
        assert codes(sink) == [DiagnosticCode.INCOMPLETE_VARIANT]
        assert "not secondary" in sink.diagnostics[0].message

    def test_transform_bounds_reported_once(self, make_doc, accept, codes):
        sink = self._validate(
            make_doc,
            accept,
            variants={"size": ["sm", "md", "lg"]},
            states={"default": {}, "hover": {}, "focus": {}},
            tokens={"base": {"background": "darken(200%)"}},
        )
        assert codes(sink) == [DiagnosticCode.TRANSFORM_BOUNDS]
        assert sink.diagnostics[0].path == "component-card.yaml#tokens.base.background"

"""
Unit tests for the token graph.

Tests token resolution including:
- Layer merging and overlay order
- References, interpolation and transforms
- Cycle detection
- Theme variant selection
"""

import pytest

from dcf.core.ir import UNRESOLVED, DiagnosticCode, DiagnosticSink, Severity, profile_row
from dcf.core.token_graph import (
    Interpolation,
    Literal,
    Reference,
    ResolvedTokens,
    TokenContribution,
    TokenGraph,
    Transform,
    build_tokens,
    flatten,
    merge_layers,
    parse_expression,
    referenced_paths,
)


def resolve(*layers, sink=None):
    """Resolve token trees given as (layer, tree) pairs, bottom first."""
    graph = TokenGraph()
    for layer, tree in layers:
        graph.add(TokenContribution(layer, tree, f"{layer}.yaml"))
    return graph.resolve(sink if sink is not None else DiagnosticSink())


# =============================================================================
# Expressions
# =============================================================================


class TestParseExpression:
    def test_literal(self):
        assert parse_expression(44) == Literal(44)
        assert parse_expression("#fff") == Literal("#fff")

    def test_reference(self):
        assert parse_expression("{color.accent}") == Reference("color.accent")
        assert parse_expression("{theme.color.accent}") == Reference("color.accent")

    def test_interpolation(self):
        expr = parse_expression("{space.md}px {space.lg}px")
        assert isinstance(expr, Interpolation)
        assert expr.paths == ("space.md", "space.lg")

    def test_transforms(self):
        assert parse_expression("darken(10%)") == Transform("darken", "10%")
        assert parse_expression("alpha({color.accent}, 0.5)") == Transform(
            "alpha", "0.5", "color.accent"
        )

    def test_referenced_paths(self):
        assert referenced_paths("lighten({color.bg}, 5%)") == ["color.bg"]
        assert referenced_paths("plain") == []


# =============================================================================
# Merging
# =============================================================================


class TestMerging:
    """Theme merge properties."""

    base = {"color": {"bg": "#ffffff", "fg": "#000000"}}
    mode = {"color": {"surface": "#121212"}}
    density = {"space": {"md": 12}}

    def test_merge_is_associative_for_disjoint_keys(self):
        stepwise = merge_layers([merge_layers([self.base, self.mode]), self.density])
        direct = merge_layers([self.base, self.mode, self.density])
        assert stepwise == direct

    def test_later_layer_wins_on_overlap(self):
        merged = merge_layers([self.base, {"color": {"bg": "#111111"}}])
        assert merged["color"] == {"bg": "#111111", "fg": "#000000"}

    def test_flatten(self):
        assert dict(flatten(self.base)) == {"color.bg": "#ffffff", "color.fg": "#000000"}


# =============================================================================
# Resolution
# =============================================================================


class TestResolution:
    """Tests for TokenGraph.resolve."""

    def test_round_trip_without_overrides(self):
        tree = {"color": {"accent": "#3366ff"}, "size": {"touch": 44}, "font": {"family": "Inter"}}
        resolved = resolve(("tokens", tree))
        assert dict(resolved.values) == dict(flatten(tree))

    def test_theme_layer_overrides_base(self):
        resolved = resolve(
            ("tokens", {"color": {"bg": "#ffffff", "fg": "#000000"}}),
            ("mode", {"color": {"bg": "#121212"}}),
        )
        assert resolved.get("color.bg") == "#121212"
        assert resolved.get("color.fg") == "#000000"
        assert resolved.layers["color.bg"] == "mode"
        assert resolved.layers["color.fg"] == "tokens"

    def test_references_follow_the_topmost_value(self):
        resolved = resolve(
            ("tokens", {"color": {"accent": "#3366ff", "link": "{color.accent}"}}),
            ("brand", {"color": {"accent": "#ff6600"}}),
        )
        assert resolved.get("color.link") == "#ff6600"

    def test_interpolation(self):
        resolved = resolve(("tokens", {"space": {"md": 16, "pad": "{space.md}px"}}))
        assert resolved.get("space.pad") == "16px"

    def test_relative_transform_applies_to_the_layer_below(self):
        resolved = resolve(
            ("tokens", {"color": {"bg": "#ffffff"}}),
            ("mode", {"color": {"bg": "darken(100%)"}}),
        )
        assert resolved.get("color.bg") == "#000000"

    def test_sourced_transform(self):
        resolved = resolve(
            ("tokens", {"color": {"ink": "#000000", "veil": "alpha({color.ink}, 0.5)"}})
        )
        assert resolved.get("color.veil") == "rgba(0, 0, 0, 0.5)"

    def test_leaf_replaces_group(self):
        resolved = resolve(("tokens", {"radius": {"sm": 2}}), ("shape", {"radius": 0}))
        assert "radius" in resolved
        assert "radius.sm" not in resolved

    def test_long_alias_chain(self):
        links = 400
        tree = {f"a{i}": f"{{t.a{i + 1}}}" for i in range(links)}
        tree[f"a{links}"] = "#3366ff"
        sink = DiagnosticSink()
        resolved = resolve(("tokens", {"t": tree}), sink=sink)
        assert resolved.get("t.a0") == "#3366ff"
        assert resolved.unresolved == []
        assert len(sink) == 0

    def test_graph_is_frozen_after_resolve(self):
        graph = TokenGraph()
        graph.add(TokenContribution("tokens", {"a": 1}, "t.yaml"))
        graph.resolve(DiagnosticSink())
        with pytest.raises(RuntimeError):
            graph.add(TokenContribution("tokens", {"b": 2}, "t.yaml"))


class TestResolutionErrors:
    """Cycles and invalid expressions resolve to UNRESOLVED."""

    def test_two_node_cycle(self):
        sink = DiagnosticSink()
        resolved = resolve(("tokens", {"a": "{b}", "b": "{a}", "c": "{a}", "d": 1}), sink=sink)
        assert resolved.get("a") is UNRESOLVED
        assert resolved.get("b") is UNRESOLVED
        assert resolved.get("c") is UNRESOLVED
        assert resolved.get("d") == 1
        assert resolved.unresolved == ["a", "b", "c"]
        (diagnostic,) = sink.diagnostics
        assert diagnostic.code == DiagnosticCode.TOKEN_CYCLE
        assert "a -> b -> a" in diagnostic.message

    def test_self_reference(self):
        sink = DiagnosticSink()
        resolved = resolve(("tokens", {"loop": "{loop}"}), sink=sink)
        assert resolved.get("loop") is UNRESOLVED
        assert "loop -> loop" in sink.diagnostics[0].message

    def test_long_cycle(self):
        links = 400
        tree = {f"a{i}": f"{{a{(i + 1) % links}}}" for i in range(links)}
        sink = DiagnosticSink()
        resolved = resolve(("tokens", tree), sink=sink)
        assert len(resolved.unresolved) == links
        (diagnostic,) = sink.diagnostics
        assert diagnostic.code == DiagnosticCode.TOKEN_CYCLE
        assert "a398 -> a399 -> a0" in diagnostic.message

    @pytest.mark.parametrize("raw", ["darken(150%)", "lighten(-5%)", "alpha(2)", "saturate(x)"])
    def test_transform_bounds(self, raw):
        sink = DiagnosticSink()
        resolved = resolve(
            ("tokens", {"color": {"bg": "#ffffff"}}),
            ("mode", {"color": {"bg": raw}}),
            sink=sink,
        )
        assert resolved.get("color.bg") is UNRESOLVED
        assert sink.diagnostics[0].code == DiagnosticCode.TRANSFORM_BOUNDS

    def test_relative_transform_without_base(self):
        sink = DiagnosticSink()
        resolve(("tokens", {"color": {"bg": "darken(10%)"}}), sink=sink)
        assert sink.diagnostics[0].code == DiagnosticCode.INVALID_TRANSFORM_TARGET

    def test_transform_of_non_colour(self):
        sink = DiagnosticSink()
        resolve(("tokens", {"size": {"touch": 44, "big": "lighten({size.touch}, 10%)"}}), sink=sink)
        assert sink.diagnostics[0].code == DiagnosticCode.INVALID_TRANSFORM_TARGET

    def test_undefined_reference_severity_follows_profile(self):
        for profile, expected in (("lite", None), ("standard", Severity.WARNING)):
            sink = DiagnosticSink()
            graph = TokenGraph()
            graph.add(
                TokenContribution("tokens", {"a": "{missing}"}, "t.yaml", profile_row(profile))
            )
            resolved = graph.resolve(sink)
            assert resolved.get("a") is UNRESOLVED
            severities = [d.severity for d in sink.diagnostics]
            assert severities == ([expected] if expected else [])


class TestSnapshots:
    def test_snapshot_round_trip(self):
        resolved = resolve(("tokens", {"a": "{b}", "b": "{a}", "c": "#fff"}))
        snapshot = resolved.to_snapshot()
        assert snapshot.values["a"] is None
        assert snapshot.unresolved == ["a", "b"]
        restored = ResolvedTokens.from_snapshot(snapshot)
        assert restored.get("a") is UNRESOLVED
        assert restored.get("c") == "#fff"
        assert dict(restored.layers) == dict(resolved.layers)

    def test_evaluate_against_resolved_tokens(self):
        resolved = resolve(("tokens", {"color": {"accent": "#000000"}}))
        assert resolved.evaluate("{color.accent}").value == "#000000"
        assert resolved.evaluate("lighten(100%)", "#000000", has_base=True).value == "#ffffff"
        missing = resolved.evaluate("{color.nope}")
        assert not missing.ok
        assert missing.code == DiagnosticCode.UNDEFINED_TOKEN_REFERENCE


# =============================================================================
# Theme selection
# =============================================================================


class TestThemeSelection:
    """Tests for build_tokens with theme and theming documents."""

    @pytest.fixture
    def theme_docs(self, make_doc, accept):
        tokens = accept(make_doc("tokens", color={"surface": "#ffffff"}))
        light = accept(
            make_doc(
                "theme",
                source="light.yaml",
                layer="mode",
                variant="light",
                default=True,
                tokens={"color": {"surface": "#fafafa"}},
            )
        )
        dark = accept(
            make_doc(
                "theme",
                source="dark.yaml",
                layer="mode",
                variant="dark",
                tokens={"color": {"surface": "#121212"}},
            )
        )
        return tokens, light, dark

    def test_default_variant_without_theming(self, theme_docs):
        tokens, light, dark = theme_docs
        resolved = build_tokens([tokens], [light, dark], None, DiagnosticSink())
        assert resolved.get("color.surface") == "#fafafa"

    def test_active_variant(self, theme_docs, make_doc, accept):
        tokens, light, dark = theme_docs
        theming = accept(make_doc("theming", active={"mode": "dark"})).spec
        resolved = build_tokens([tokens], [light, dark], theming, DiagnosticSink())
        assert resolved.get("color.surface") == "#121212"
        assert resolved.layers["color.surface"] == "mode"

    def test_unknown_layer_is_ignored(self, make_doc, accept):
        tokens = accept(make_doc("tokens", color={"surface": "#ffffff"}))
        odd = accept(make_doc("theme", layer="seasonal", tokens={"color": {"surface": "#f00"}}))
        sink = DiagnosticSink()
        resolved = build_tokens([tokens], [odd], None, sink)
        assert resolved.get("color.surface") == "#ffffff"
        assert sink.diagnostics[0].code == DiagnosticCode.UNKNOWN_THEME_LAYER

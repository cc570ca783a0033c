"""Shared pytest fixtures for DCF tests."""

from pathlib import Path

import pytest

from dcf.core.intake import AcceptedDocument, intake_document
from dcf.core.ir import DiagnosticCode, RawDocument
from dcf.core.loader import parse_text

DCF_VERSION = "1.2.0"

# A small design system that validates without diagnostics
DESIGN_SYSTEM_FILES: dict[str, str] = {
    "tokens/base.yaml": """
dcf_version: "1.2.0"
kind: tokens
color:
  surface: "#ffffff"
  accent: "#3366ff"
  text: "#111111"
size:
  touch: 44
space:
  md: 16
""",
    "components/button.yaml": """
dcf_version: "1.2.0"
kind: component
name: Button
category: control
props:
  label: {type: string, required: true}
variants:
  intent: [primary, secondary]
states:
  default: {}
  hover: {background: darken(10%)}
  disabled: {opacity: 0.4}
state_precedence: [disabled, hover, default]
tokens:
  base: {background: "{color.surface}", min_height: "{size.touch}", color: "{color.text}"}
  primary: {background: "{color.accent}"}
  secondary: {background: "{color.surface}"}
accessibility:
  role: button
""",
    "layouts/main.yaml": """
dcf_version: "1.2.0"
kind: layout
name: Main
regions: [header, body]
""",
    "screens/home.yaml": """
dcf_version: "1.2.0"
kind: screen
name: Home
layout: Main
data:
  tasks:
    kind: api
    params: {endpoint: /tasks}
content:
  body:
    - component: Button
      props: {label: $tasks.title, intent: primary}
states:
  loading: {}
  error: {}
""",
    "navigation.yaml": """
dcf_version: "1.2.0"
kind: navigation
name: AppNav
root: home
routes:
  home: {screen: Home}
""",
    "rules.yaml": """
dcf_version: "1.2.0"
kind: rules
rules:
  navigation.max_depth: 3
  navigation.no_orphan_screens: true
  layout.one_primary_action_per_screen: true
  accessibility.min_touch_target: 44
""",
}


@pytest.fixture
def make_doc():
    """
    Return a factory for raw documents.

    Usage:
        make_doc("component", "Button", category="control")
    """

    def _make(
        kind: str,
        name: str | None = None,
        *,
        source: str | None = None,
        version: str = DCF_VERSION,
        **body,
    ) -> RawDocument:
        tree = {"dcf_version": version, "kind": kind}
        if name is not None:
            tree["name"] = name
        tree.update(body)
        label = source or f"{kind}-{(name or 'doc').lower()}.yaml"
        return RawDocument(source=label, tree=tree)

    return _make


@pytest.fixture
def accept():
    """Return a helper admitting a raw document under the standard profile."""

    def _accept(raw: RawDocument, profile: str = "standard") -> AcceptedDocument:
        result = intake_document(raw, profile, DCF_VERSION)
        assert result.accepted is not None, [d.format() for d in result.diagnostics]
        return result.accepted

    return _accept


@pytest.fixture
def codes():
    """Return a helper listing the diagnostic codes of a sink or report."""

    def _codes(source) -> list[DiagnosticCode]:
        return [d.code for d in source.diagnostics]

    return _codes


@pytest.fixture
def design_system() -> list[RawDocument]:
    """Return the documents of a valid design system."""
    documents: list[RawDocument] = []
    for source, text in DESIGN_SYSTEM_FILES.items():
        documents.extend(parse_text(text, source))
    return documents


@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """Create a project directory holding the design system and a dcf.toml."""
    for relative, text in DESIGN_SYSTEM_FILES.items():
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text.lstrip(), encoding="utf-8")
    (tmp_path / "dcf.toml").write_text(
        '[project]\nname = "acme"\n\n[validation]\nprofile = "standard"\n',
        encoding="utf-8",
    )
    return tmp_path

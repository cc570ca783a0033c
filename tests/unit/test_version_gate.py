"""Tests for document version gating."""

import pytest

from dcf.core.ir import DiagnosticCode, Severity
from dcf.core.version_gate import SUPPORTED_VERSION, check_version, parse_version


class TestParseVersion:
    def test_valid(self):
        assert parse_version("1.2.0") == (1, 2, 0)
        assert parse_version("10.0.31") == (10, 0, 31)

    @pytest.mark.parametrize("value", ["1.2", "1.2.0-beta", "v1.2.0", "1..0", ""])
    def test_malformed(self, value):
        assert parse_version(value) is None


class TestCheckVersion:
    """Tests for check_version."""

    @pytest.mark.parametrize("declared", ["1.2", None, 12, "one.two.three"])
    def test_malformed_version_excludes_document(self, declared):
        verdict = check_version(declared, "doc.yaml#dcf_version")
        assert not verdict.accepted
        (diagnostic,) = verdict.diagnostics
        assert diagnostic.code == DiagnosticCode.MALFORMED_VERSION
        assert diagnostic.severity == Severity.ERROR

    def test_major_mismatch_excludes_document(self):
        verdict = check_version("2.0.0", "doc.yaml#dcf_version")
        assert not verdict.accepted
        assert verdict.diagnostics[0].code == DiagnosticCode.INCOMPATIBLE_MAJOR

    def test_newer_minor_is_accepted_with_warning(self):
        verdict = check_version("1.5.0", "doc.yaml#dcf_version")
        assert verdict.accepted
        assert verdict.newer_minor
        (diagnostic,) = verdict.diagnostics
        assert diagnostic.code == DiagnosticCode.UNKNOWN_MINOR_FIELDS
        assert diagnostic.severity == Severity.WARNING

    @pytest.mark.parametrize("declared", ["1.0.0", "1.2.7", SUPPORTED_VERSION])
    def test_older_minor_and_patch_differences_are_silent(self, declared):
        verdict = check_version(declared, "doc.yaml#dcf_version")
        assert verdict.accepted
        assert not verdict.newer_minor
        assert verdict.diagnostics == ()

    def test_engine_version_must_be_valid(self):
        with pytest.raises(ValueError):
            check_version("1.2.0", "doc.yaml", supported="1.2")

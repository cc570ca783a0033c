"""Tests for the resolved-token cache."""

import pytest

from dcf.core.cache import CacheEntry, FileTokenCache, MemoryTokenCache, compute_cache_key
from dcf.core.errors import CacheError
from dcf.core.ir import DiagnosticCode, RawDocument, TokenSnapshot
from dcf.core.orchestrator import validate_documents


def _tokens_doc(**tree) -> RawDocument:
    tree = {"dcf_version": "1.2.0", "kind": "tokens", **tree}
    return RawDocument(source="tokens.yaml", tree=tree)


def _entry(key: str = "abc") -> CacheEntry:
    return CacheEntry(
        key=key,
        snapshot=TokenSnapshot(values={"color.accent": "#3366ff"}, merge_order=["base"]),
    )


class TestCacheKey:
    def test_stable_for_equal_content(self):
        first = compute_cache_key([_tokens_doc(color={"a": "#fff", "b": "#000"})], "standard", "1")
        second = compute_cache_key([_tokens_doc(color={"b": "#000", "a": "#fff"})], "standard", "1")
        assert first == second
        assert len(first) == 64

    def test_changes_with_content_profile_and_engine(self):
        docs = [_tokens_doc(color={"a": "#fff"})]
        key = compute_cache_key(docs, "standard", "1")
        assert compute_cache_key([_tokens_doc(color={"a": "#eee"})], "standard", "1") != key
        assert compute_cache_key(docs, "strict", "1") != key
        assert compute_cache_key(docs, "standard", "2") != key


class TestMemoryTokenCache:
    def test_put_and_get(self):
        cache = MemoryTokenCache()
        assert cache.get("abc") is None
        cache.put(_entry())
        assert cache.get("abc") == _entry()
        assert len(cache) == 1


class TestFileTokenCache:
    """Tests for entries stored on disk."""

    def test_round_trip(self, tmp_path):
        cache = FileTokenCache(tmp_path / "cache")
        cache.put(_entry())
        assert cache.path_for("abc").exists()
        loaded = cache.get("abc")
        assert loaded is not None
        assert loaded.snapshot.values == {"color.accent": "#3366ff"}

    def test_missing_entry(self, tmp_path):
        assert FileTokenCache(tmp_path).get("nothing") is None

    def test_corrupt_entry_is_ignored(self, tmp_path):
        cache = FileTokenCache(tmp_path)
        cache.path_for("abc").write_text("{not json", encoding="utf-8")
        assert cache.get("abc") is None

    def test_mismatched_key_is_ignored(self, tmp_path):
        cache = FileTokenCache(tmp_path)
        cache.put(_entry("abc"))
        cache.path_for("abc").rename(cache.path_for("def"))
        assert cache.get("def") is None

    def test_clear(self, tmp_path):
        cache = FileTokenCache(tmp_path / "cache")
        assert cache.clear() == 0
        cache.put(_entry("abc"))
        cache.put(_entry("def"))
        assert cache.clear() == 2
        assert cache.get("abc") is None

    def test_unwritable_directory(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("", encoding="utf-8")
        with pytest.raises(CacheError):
            FileTokenCache(blocker / "cache").put(_entry())


class TestCachedRuns:
    """Cached runs report what uncached runs report."""

    def test_file_cache_hit(self, tmp_path, design_system, make_doc):
        documents = [
            *design_system,
            make_doc("tokens", source="more.yaml", color={"muted": "{color.nope}"}),
        ]
        cache = FileTokenCache(tmp_path / "cache")
        first = validate_documents(documents, cache=cache)
        second = validate_documents(documents, cache=cache)
        assert not first.cache_hit
        assert second.cache_hit
        assert second.diagnostics == first.diagnostics
        assert DiagnosticCode.UNDEFINED_TOKEN_REFERENCE in [d.code for d in second.diagnostics]
        assert second.model.tokens.values == first.model.tokens.values

    def test_content_change_misses(self, design_system, make_doc):
        cache = MemoryTokenCache()
        validate_documents(design_system, cache=cache)
        changed = [*design_system, make_doc("tokens", source="more.yaml", space={"lg": 24})]
        report = validate_documents(changed, cache=cache)
        assert not report.cache_hit
        assert report.model.tokens.get("space.lg") == 24
        assert len(cache) == 2

    def test_unrelated_change_hits(self, design_system, make_doc):
        cache = MemoryTokenCache()
        validate_documents(design_system, cache=cache)
        report = validate_documents(
            [*design_system, make_doc("layout", "Side", regions=["body"])], cache=cache
        )
        assert report.cache_hit

"""
Content-addressed cache of resolved tokens.

The key is a SHA-256 over the canonical JSON of every document that
contributes to the token graph (tokens, theme and theming documents), the
default profile and the engine version. A hit yields the token snapshot and
the diagnostics token resolution produced, so a cached run reports exactly
what an uncached one would.

Tracks:
- Token snapshot (path -> value, unresolved paths, winning layers)
- Token-stage diagnostics
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import CacheError
from .ir import Diagnostic, RawDocument, TokenSnapshot

logger = logging.getLogger(__name__)

CACHE_FORMAT = 1


class CacheEntry(BaseModel):
    """One cached token resolution."""

    model_config = ConfigDict(frozen=True)

    key: str
    format: int = CACHE_FORMAT
    snapshot: TokenSnapshot
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class TokenCache(Protocol):
    """Storage for token resolutions keyed by content hash."""

    def get(self, key: str) -> CacheEntry | None: ...

    def put(self, entry: CacheEntry) -> None: ...


def _canonical(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(k): _canonical(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_canonical(v) for v in value]
    if isinstance(value, str | int | float | bool) or value is None:
        return value
    return str(value)


def compute_cache_key(
    documents: Iterable[RawDocument],
    default_profile: str,
    engine_version: str,
    supported_version: str = "",
) -> str:
    """
    Compute the cache key of a token resolution.

    Args:
        documents: Raw documents contributing to the token graph, in run order
        default_profile: Profile applied to documents without one
        engine_version: Version of the engine doing the resolution
        supported_version: DCF version the engine gates against

    Returns:
        Hex-encoded SHA-256 digest
    """
    payload = {
        "format": CACHE_FORMAT,
        "engine": engine_version,
        "supported": supported_version,
        "profile": default_profile,
        "documents": [
            {"source": doc.label, "tree": _canonical(doc.tree)} for doc in documents
        ],
    }
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


class MemoryTokenCache:
    """
    In-process cache shared between runs.

    Readers never lock: writers copy the table and swap the reference.
    """

    def __init__(self) -> None:
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> CacheEntry | None:
        return self._entries.get(key)

    def put(self, entry: CacheEntry) -> None:
        with self._lock:
            entries = dict(self._entries)
            entries[entry.key] = entry
            self._entries = entries

    def __len__(self) -> int:
        return len(self._entries)


class FileTokenCache:
    """
    Cache stored as ``<dir>/<key>.json`` files.

    Entries are written to a temporary file in the same directory and moved
    into place, so readers never observe a partial entry.
    """

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> CacheEntry | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            entry = CacheEntry.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("Ignoring unreadable token cache entry %s: %s", path, e)
            return None
        if entry.key != key or entry.format != CACHE_FORMAT:
            logger.warning("Ignoring mismatched token cache entry %s", path)
            return None
        logger.debug("Token cache hit %s", key[:12])
        return entry

    def put(self, entry: CacheEntry) -> None:
        """
        Store an entry atomically.

        Raises:
            CacheError: If the entry cannot be written
        """
        target = self.path_for(entry.key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(entry.model_dump_json(indent=2))
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise CacheError(f"Failed to write token cache entry {target}: {e}") from e
        logger.debug("Token cache stored %s", entry.key[:12])

    def clear(self) -> int:
        """Delete every entry; returns the number removed."""
        if not self.directory.exists():
            return 0
        removed = 0
        for path in self.directory.glob("*.json"):
            path.unlink()
            removed += 1
        return removed

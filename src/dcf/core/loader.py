"""
Document loading and discovery.

Reads YAML (``.yaml``/``.yml``, several documents per file allowed) and JSON
files into RawDocuments. Decoding problems raise LoadError; everything about
the content itself is left to validation.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

import yaml

from .errors import make_load_error
from .ir import RawDocument

logger = logging.getLogger(__name__)

YAML_SUFFIXES = frozenset({".yaml", ".yml"})
JSON_SUFFIXES = frozenset({".json"})


def _source_label(path: Path, root: Path | None) -> str:
    if root is not None:
        try:
            return path.resolve().relative_to(root.resolve()).as_posix()
        except ValueError:
            pass
    return path.as_posix()


def _as_documents(trees: Sequence[Any], source: str) -> list[RawDocument]:
    present = [(i, tree) for i, tree in enumerate(trees) if tree is not None]
    indexed = len(trees) > 1
    documents = []
    for index, tree in present:
        if not isinstance(tree, dict):
            raise make_load_error(
                f"Top-level value must be a mapping, got {type(tree).__name__}",
                source,
                index if indexed else None,
            )
        documents.append(RawDocument(source=source, tree=tree, index=index if indexed else None))
    return documents


def parse_text(text: str, source: str, suffix: str = ".yaml") -> list[RawDocument]:
    """
    Decode document text.

    Args:
        text: File content
        source: Label used in diagnostic paths
        suffix: ``.json`` for JSON, anything else is read as YAML

    Returns:
        Decoded documents in file order; empty YAML documents are skipped

    Raises:
        LoadError: If the text cannot be decoded
    """
    if suffix in JSON_SUFFIXES:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise make_load_error(f"Invalid JSON: {e}", source) from e
        trees = data if isinstance(data, list) else [data]
        return _as_documents(trees, source)

    try:
        trees = list(yaml.safe_load_all(text))
    except yaml.YAMLError as e:
        raise make_load_error(f"Invalid YAML: {e}", source) from e
    return _as_documents(trees, source)


def load_file(path: Path, root: Path | None = None) -> list[RawDocument]:
    """
    Load every document of one file.

    Raises:
        LoadError: If the file cannot be read or decoded
    """
    source = _source_label(path, root)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise make_load_error(f"Cannot read file: {e}", source) from e
    documents = parse_text(text, source, path.suffix.lower())
    logger.debug("Loaded %d documents from %s", len(documents), source)
    return documents


def discover_files(
    root: Path,
    patterns: Iterable[str],
    exclude: Iterable[Path] = (),
) -> list[Path]:
    """
    Find document files under ``root``.

    Hidden directories and the ``exclude`` directories are skipped. Results
    are unique and sorted.
    """
    root = root.resolve()
    excluded = [p.resolve() for p in exclude]
    suffixes = YAML_SUFFIXES | JSON_SUFFIXES
    found: set[Path] = set()
    for pattern in patterns:
        for path in root.glob(pattern):
            if not path.is_file() or path.suffix.lower() not in suffixes:
                continue
            relative = path.relative_to(root)
            if any(part.startswith(".") for part in relative.parts[:-1]):
                continue
            if any(path.is_relative_to(ex) for ex in excluded):
                continue
            found.add(path)
    return sorted(found)


def load_documents(paths: Iterable[Path], root: Path | None = None) -> list[RawDocument]:
    """Load the documents of several files, in path order."""
    documents: list[RawDocument] = []
    for path in paths:
        documents.extend(load_file(path, root))
    return documents

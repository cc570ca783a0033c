"""
Project-level entry points: locate the manifest, load documents, run.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path

from .cache import FileTokenCache, TokenCache
from .errors import ErrorContext, LoadError
from .ir import RawDocument
from .loader import discover_files, load_documents, load_file
from .manifest import ProjectManifest, default_manifest, find_manifest, load_manifest
from .orchestrator import CancellationToken, validate_documents
from .report import ValidationReport

logger = logging.getLogger(__name__)


@dataclass
class Project:
    """A manifest together with the documents it selects."""

    manifest: ProjectManifest
    root: Path
    documents: list[RawDocument]


def load_project(path: Path) -> Project:
    """
    Load a project from a directory, a dcf.toml file or a single document.

    A directory without dcf.toml (and without one in its parents) uses the
    default manifest.

    Raises:
        LoadError: If the path does not exist or a document cannot be decoded
        ManifestError: If dcf.toml is invalid
    """
    if not path.exists():
        raise LoadError(f"No such file or directory: {path}", ErrorContext(str(path)))

    if path.is_file() and path.name != "dcf.toml":
        manifest_path = find_manifest(path.parent)
        manifest = load_manifest(manifest_path) if manifest_path else default_manifest(path.parent)
        root = Path(manifest.project_root)
        return Project(manifest, root, load_file(path, root))

    manifest_path = path if path.is_file() else find_manifest(path)
    if manifest_path is not None:
        manifest = load_manifest(manifest_path)
    else:
        manifest = default_manifest(path)
    root = Path(manifest.project_root)
    files = discover_files(root, manifest.documents, exclude=[manifest.cache_dir])
    logger.debug("Discovered %d document files under %s", len(files), root)
    return Project(manifest, root, load_documents(files, root))


def project_cache(project: Project, enabled: bool = True) -> TokenCache | None:
    if not enabled or not project.manifest.cache.enabled:
        return None
    return FileTokenCache(project.manifest.cache_dir)


def validate_project(
    path: Path,
    *,
    profile: str | None = None,
    use_cache: bool = True,
    max_workers: int | None = None,
    cancel: CancellationToken | None = None,
) -> tuple[Project, ValidationReport]:
    """Load and validate a project in one call."""
    project = load_project(path)
    config = project.manifest.resolution_config(profile)
    if max_workers is not None:
        config = replace(config, max_workers=max_workers)
    report = validate_documents(
        project.documents,
        config,
        cache=project_cache(project, use_cache),
        cancel=cancel,
    )
    return project, report

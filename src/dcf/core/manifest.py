"""
Project manifest (dcf.toml).

Example:
    [project]
    name = "acme-design-system"
    documents = ["tokens/**/*.yaml", "components/**/*.yaml"]

    [validation]
    profile = "strict"
    supported_version = "1.2.0"
    max_workers = 4

    [capabilities]
    tokens = true
    components = true

    [cache]
    enabled = true
    dir = ".dcf/cache"
"""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import ErrorContext, ManifestError
from .ir import Layer, Profile
from .orchestrator import ResolutionConfig
from .version_gate import SUPPORTED_VERSION, parse_version

MANIFEST_NAME = "dcf.toml"

DEFAULT_DOCUMENT_GLOBS: tuple[str, ...] = ("**/*.yaml", "**/*.yml", "**/*.json")

DEFAULT_CACHE_DIR = ".dcf/cache"


@dataclass
class ValidationConfig:
    """Validation settings."""

    profile: str = Profile.STANDARD.value
    supported_version: str = SUPPORTED_VERSION
    max_workers: int = 1


@dataclass
class CacheConfig:
    """Token cache settings."""

    enabled: bool = True
    dir: str = DEFAULT_CACHE_DIR


@dataclass
class ProjectManifest:
    """
    Project manifest loaded from dcf.toml.

    Contains project metadata, document globs, validation defaults, the
    default capability declaration and cache settings.
    """

    name: str
    project_root: str
    documents: list[str] = field(default_factory=lambda: list(DEFAULT_DOCUMENT_GLOBS))
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    capabilities: dict[str, bool] | None = None
    cache: CacheConfig = field(default_factory=CacheConfig)

    @property
    def cache_dir(self) -> Path:
        return Path(self.project_root) / self.cache.dir

    def resolution_config(self, profile: str | None = None) -> ResolutionConfig:
        """Build the run settings, optionally overriding the profile."""
        return ResolutionConfig(
            default_profile=profile or self.validation.profile,
            default_capabilities=self.capabilities,
            supported_version=self.validation.supported_version,
            max_workers=self.validation.max_workers,
        )


def _section(data: dict[str, Any], name: str, source: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ManifestError(f"[{name}] must be a table", ErrorContext(source, pointer=name))
    return section


def _parse_validation(data: dict[str, Any], source: str) -> ValidationConfig:
    validation_data = _section(data, "validation", source)
    config = ValidationConfig(
        profile=validation_data.get("profile", Profile.STANDARD.value),
        supported_version=validation_data.get("supported_version", SUPPORTED_VERSION),
        max_workers=validation_data.get("max_workers", 1),
    )

    valid_profiles = [p.value for p in Profile]
    if config.profile not in valid_profiles:
        raise ManifestError(
            f"Unknown profile '{config.profile}'. Valid options: {', '.join(valid_profiles)}",
            ErrorContext(source, pointer="validation.profile"),
        )
    if not isinstance(config.supported_version, str) or parse_version(
        config.supported_version
    ) is None:
        raise ManifestError(
            f"supported_version {config.supported_version!r} is not MAJOR.MINOR.PATCH",
            ErrorContext(source, pointer="validation.supported_version"),
        )
    if (
        isinstance(config.max_workers, bool)
        or not isinstance(config.max_workers, int)
        or config.max_workers < 1
    ):
        raise ManifestError(
            f"max_workers must be a positive integer, got {config.max_workers!r}",
            ErrorContext(source, pointer="validation.max_workers"),
        )
    return config


def _parse_capabilities(data: dict[str, Any], source: str) -> dict[str, bool] | None:
    if "capabilities" not in data:
        return None
    capabilities = _section(data, "capabilities", source)
    valid_layers = {layer.value for layer in Layer}
    for name, value in capabilities.items():
        if name not in valid_layers:
            raise ManifestError(
                f"Unknown capability layer '{name}'. Valid options: "
                f"{', '.join(sorted(valid_layers))}",
                ErrorContext(source, pointer=f"capabilities.{name}"),
            )
        if not isinstance(value, bool):
            raise ManifestError(
                f"Capability '{name}' must be true or false, got {value!r}",
                ErrorContext(source, pointer=f"capabilities.{name}"),
            )
    return dict(capabilities)


def load_manifest(path: Path) -> ProjectManifest:
    """
    Load dcf.toml.

    Args:
        path: Path to the manifest file

    Returns:
        ProjectManifest

    Raises:
        ManifestError: If the file is unreadable or invalid
    """
    source = str(path)
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ManifestError(f"Cannot read manifest: {e}", ErrorContext(source)) from e
    except tomllib.TOMLDecodeError as e:
        raise ManifestError(f"Invalid TOML: {e}", ErrorContext(source)) from e

    project = _section(data, "project", source)
    cache_data = _section(data, "cache", source)

    documents = project.get("documents", list(DEFAULT_DOCUMENT_GLOBS))
    if isinstance(documents, str):
        documents = [documents]
    if not isinstance(documents, list) or not all(isinstance(d, str) for d in documents):
        raise ManifestError(
            "project.documents must be a list of glob patterns",
            ErrorContext(source, pointer="project.documents"),
        )

    return ProjectManifest(
        name=project.get("name", path.parent.name or "unnamed"),
        project_root=str(path.parent),
        documents=documents,
        validation=_parse_validation(data, source),
        capabilities=_parse_capabilities(data, source),
        cache=CacheConfig(
            enabled=cache_data.get("enabled", True),
            dir=cache_data.get("dir", DEFAULT_CACHE_DIR),
        ),
    )


def find_manifest(start: Path) -> Path | None:
    """Find dcf.toml in ``start`` or its parents."""
    current = start.resolve()
    if current.is_file():
        current = current.parent
    for directory in (current, *current.parents):
        candidate = directory / MANIFEST_NAME
        if candidate.exists():
            return candidate
    return None


def default_manifest(root: Path) -> ProjectManifest:
    """Manifest used for directories without dcf.toml."""
    return ProjectManifest(name=root.name or "unnamed", project_root=str(root))

"""
Capability closure.

Seeds the enabled set with the layers declared ``true`` and adds every
required layer until a fixed point is reached. A required layer declared
``false`` is enabled anyway and produces a warning.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterable, Mapping

from .ir import (
    LAYER_DEPENDENCIES,
    LAYER_KINDS,
    CapabilitySet,
    DiagnosticCode,
    DiagnosticSink,
    DocumentKind,
    Layer,
    ProfileRow,
)

logger = logging.getLogger(__name__)


def close_layers(
    seed: Iterable[Layer],
    disabled: Iterable[Layer] = (),
) -> tuple[frozenset[Layer], list[tuple[Layer, Layer]]]:
    """
    Transitive closure of ``seed`` over the dependency table.

    A layer in ``disabled`` stays off unless an enabled layer requires it;
    required layers are enabled regardless and the override is reported.

    Args:
        seed: Layers enabled explicitly
        disabled: Layers declared off

    Returns:
        Tuple of (closed layer set, [(layer, overridden dependency), ...])
    """
    disabled_set = frozenset(disabled)
    enabled: set[Layer] = set()
    overridden: list[tuple[Layer, Layer]] = []
    queue = deque(seed)

    while queue:
        layer = queue.popleft()
        if layer in enabled:
            continue
        enabled.add(layer)
        for dependency in sorted(LAYER_DEPENDENCIES[layer]):
            if dependency in disabled_set:
                overridden.append((layer, dependency))
            if dependency not in enabled:
                queue.append(dependency)

    return frozenset(enabled), overridden


def resolve_capabilities(
    declared: Mapping[str, bool] | None,
    path: str,
    sink: DiagnosticSink,
) -> CapabilitySet:
    """
    Resolve a capabilities declaration into a closed CapabilitySet.

    Args:
        declared: layer name -> enabled; None enables every layer
        path: Diagnostic path of the declaration
        sink: Receives SoftDependencyWarning and UnknownField diagnostics

    Returns:
        CapabilitySet
    """
    if declared is None:
        return CapabilitySet(enabled={layer: True for layer in Layer})

    explicit: dict[Layer, bool] = {}
    for name, value in declared.items():
        try:
            layer = Layer(name)
        except ValueError:
            sink.emit(
                DiagnosticCode.UNKNOWN_FIELD,
                f"{path}.{name}",
                f"Unknown capability layer '{name}'",
            )
            continue
        explicit[layer] = bool(value)

    seed = [layer for layer, on in explicit.items() if on]
    disabled = [layer for layer, on in explicit.items() if not on]
    closed, overridden = close_layers(seed, disabled)

    for layer, dependency in overridden:
        sink.emit(
            DiagnosticCode.SOFT_DEPENDENCY_WARNING,
            f"{path}.{layer.value}",
            f"Layer '{layer.value}' depends on '{dependency.value}', "
            "which is declared false; enabling it",
        )

    logger.debug("Capability closure of %s: %s", sorted(seed), sorted(closed))
    return CapabilitySet(
        enabled={layer: layer in closed for layer in Layer},
        declared=explicit,
        explicit=closed,
    )


def merge_declarations(declarations: Iterable[Mapping[str, bool]]) -> dict[str, bool] | None:
    """
    Merge per-document declarations; ``true`` wins over ``false``.

    Returns:
        The merged mapping, or None when nothing was declared.
    """
    merged: dict[str, bool] = {}
    seen = False
    for declaration in declarations:
        seen = True
        for name, value in declaration.items():
            merged[name] = merged.get(name, False) or bool(value)
    return merged if seen else None


def check_layer_artifacts(
    capabilities: CapabilitySet,
    present_kinds: Iterable[DocumentKind],
    row: ProfileRow,
    sink: DiagnosticSink,
) -> None:
    """
    Report explicitly enabled layers that have no documents.

    Layers enabled only by default, and disabled layers, are never reported.
    """
    kinds = set(present_kinds)
    for layer in Layer:
        if layer not in capabilities.explicit:
            continue
        if not kinds & LAYER_KINDS[layer]:
            expected = ", ".join(sorted(k.value for k in LAYER_KINDS[layer]))
            sink.emit(
                DiagnosticCode.MISSING_LAYER_ARTIFACTS,
                f"capabilities.{layer.value}",
                f"Layer '{layer.value}' is enabled but no {expected} documents were found",
                row=row,
            )

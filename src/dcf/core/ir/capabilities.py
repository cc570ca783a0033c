"""
Capability types for DCF IR.

A capability is an independently adoptable layer of the format. The static
dependency table is a small DAG; enabling a layer implies its dependencies.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from types import MappingProxyType

from pydantic import BaseModel, ConfigDict, Field

from .documents import DocumentKind


class Layer(StrEnum):
    """Format layers that can be enabled independently."""

    TOKENS = "tokens"
    THEMES = "themes"
    COMPONENTS = "components"
    LAYOUTS = "layouts"
    SCREENS = "screens"
    NAVIGATION = "navigation"
    FLOWS = "flows"


LAYER_DEPENDENCIES: Mapping[Layer, frozenset[Layer]] = MappingProxyType(
    {
        Layer.TOKENS: frozenset(),
        Layer.THEMES: frozenset({Layer.TOKENS}),
        Layer.COMPONENTS: frozenset({Layer.TOKENS}),
        Layer.LAYOUTS: frozenset(),
        Layer.SCREENS: frozenset({Layer.COMPONENTS}),
        Layer.NAVIGATION: frozenset({Layer.LAYOUTS, Layer.SCREENS}),
        Layer.FLOWS: frozenset({Layer.SCREENS}),
    }
)

# Document kinds that count as artifacts of each layer
LAYER_KINDS: Mapping[Layer, frozenset[DocumentKind]] = MappingProxyType(
    {
        Layer.TOKENS: frozenset({DocumentKind.TOKENS}),
        Layer.THEMES: frozenset({DocumentKind.THEME, DocumentKind.THEMING}),
        Layer.COMPONENTS: frozenset({DocumentKind.COMPONENT}),
        Layer.LAYOUTS: frozenset({DocumentKind.LAYOUT}),
        Layer.SCREENS: frozenset({DocumentKind.SCREEN}),
        Layer.NAVIGATION: frozenset({DocumentKind.NAVIGATION}),
        Layer.FLOWS: frozenset({DocumentKind.FLOW}),
    }
)


class CapabilitySet(BaseModel):
    """
    Enabled layers after closure.

    Attributes:
        enabled: Layer -> enabled flag, for every layer
        declared: Layers with an explicit declaration (true or false)
        explicit: Layers enabled because of an explicit declaration,
            directly or through the dependency closure
    """

    model_config = ConfigDict(frozen=True)

    enabled: dict[Layer, bool] = Field(default_factory=dict)
    declared: dict[Layer, bool] = Field(default_factory=dict)
    explicit: frozenset[Layer] = Field(default_factory=frozenset)

    def is_enabled(self, layer: Layer | str) -> bool:
        return self.enabled.get(Layer(layer), False)

    @property
    def enabled_layers(self) -> frozenset[Layer]:
        return frozenset(layer for layer, on in self.enabled.items() if on)

    def to_dict(self) -> dict[str, bool]:
        return {layer.value: self.enabled.get(layer, False) for layer in Layer}

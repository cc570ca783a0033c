"""
Composition linker for DCF.

Builds the symbol table of named documents and validates the references
between them: screens to layouts and components, navigation routes to
screens and routes, flow steps to screens and steps. Unknown references are
reported, never raised.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from .data_binding import BindingScope
from .intake import AcceptedDocument
from .ir import (
    ComponentSpec,
    DiagnosticCode,
    DiagnosticSink,
    DocumentKind,
    FlowSpec,
    LayoutSpec,
    NavigationSpec,
    ScreenSpec,
)

logger = logging.getLogger(__name__)

ICON_ONLY_LABEL_PROPS: tuple[str, ...] = ("label", "accessibility_label", "accessibilityLabel")


@dataclass
class SymbolTable:
    """
    Named documents of a run, by kind.

    The first document to claim a name keeps it; later ones are reported
    as duplicates.
    """

    components: dict[str, AcceptedDocument] = field(default_factory=dict)
    layouts: dict[str, AcceptedDocument] = field(default_factory=dict)
    screens: dict[str, AcceptedDocument] = field(default_factory=dict)
    navigations: dict[str, AcceptedDocument] = field(default_factory=dict)
    flows: dict[str, AcceptedDocument] = field(default_factory=dict)

    def _table(self, kind: DocumentKind) -> dict[str, AcceptedDocument] | None:
        return {
            DocumentKind.COMPONENT: self.components,
            DocumentKind.LAYOUT: self.layouts,
            DocumentKind.SCREEN: self.screens,
            DocumentKind.NAVIGATION: self.navigations,
            DocumentKind.FLOW: self.flows,
        }.get(kind)

    def add(self, doc: AcceptedDocument, sink: DiagnosticSink) -> bool:
        """Register a named document; returns False for duplicates."""
        table = self._table(doc.kind)
        if table is None or not doc.name:
            return False
        if doc.name in table:
            existing = table[doc.name].document.source
            sink.emit(
                DiagnosticCode.DUPLICATE_NAME,
                doc.document.locate("name"),
                f"Duplicate {doc.kind.value} '{doc.name}' (already defined in {existing})",
            )
            return False
        table[doc.name] = doc
        return True

    def component(self, name: str) -> ComponentSpec | None:
        doc = self.components.get(name)
        return doc.spec if doc else None


def build_symbol_table(docs: Iterable[AcceptedDocument], sink: DiagnosticSink) -> SymbolTable:
    table = SymbolTable()
    for doc in docs:
        table.add(doc, sink)
    return table


# =============================================================================
# Content trees
# =============================================================================


@dataclass(frozen=True)
class ContentNode:
    """A component instance inside screen or step content."""

    pointer: tuple[str | int, ...]
    component: str
    props: Mapping[str, Any]
    raw: Mapping[str, Any]


def content_regions(content: Any) -> list[tuple[str | None, Any]]:
    """Split content into (region, nodes); list content has no region."""
    if isinstance(content, Mapping):
        return [(str(region), nodes) for region, nodes in content.items()]
    if content is None:
        return []
    return [(None, content)]


def iter_nodes(tree: Any, pointer: tuple[str | int, ...] = ()) -> Iterator[ContentNode]:
    """Yield component nodes depth first; nodes nest under ``children``."""
    if isinstance(tree, list):
        for index, item in enumerate(tree):
            yield from iter_nodes(item, (*pointer, index))
        return
    if not isinstance(tree, Mapping):
        return
    if isinstance(tree.get("component"), str):
        props = tree.get("props")
        yield ContentNode(
            pointer=pointer,
            component=tree["component"],
            props=props if isinstance(props, Mapping) else {},
            raw=tree,
        )
        children = tree.get("children")
        if children is not None:
            yield from iter_nodes(children, (*pointer, "children"))
    else:
        for key, value in tree.items():
            if isinstance(value, list | Mapping):
                yield from iter_nodes(value, (*pointer, str(key)))


def screen_nodes(screen: ScreenSpec) -> Iterator[ContentNode]:
    for region, nodes in content_regions(screen.content):
        prefix: tuple[str | int, ...] = ("content",) if region is None else ("content", region)
        yield from iter_nodes(nodes, prefix)


def flow_nodes(flow: FlowSpec) -> Iterator[ContentNode]:
    for index, step in enumerate(flow.steps):
        yield from iter_nodes(step.content, ("steps", index, "content"))


# =============================================================================
# Reference checks
# =============================================================================


class Linker:
    """
    Validates cross-document references of one run.

    Usage:
        linker = Linker(table, sink)
        linker.check_screen(doc)
    """

    def __init__(self, table: SymbolTable, sink: DiagnosticSink):
        self.table = table
        self.sink = sink

    def _unresolved(
        self, doc: AcceptedDocument, pointer: Iterable[str | int], message: str
    ) -> None:
        self.sink.emit(
            DiagnosticCode.UNRESOLVED_REFERENCE,
            doc.document.locate(*pointer),
            message,
            row=doc.row,
        )

    def check_nodes(self, doc: AcceptedDocument, nodes: Iterable[ContentNode]) -> None:
        for node in nodes:
            component = self.table.component(node.component)
            if component is None:
                self._unresolved(
                    doc,
                    (*node.pointer, "component"),
                    f"{doc.document.label} uses unknown component '{node.component}'",
                )
            if node.props.get("iconOnly") is True and not any(
                node.props.get(p) for p in ICON_ONLY_LABEL_PROPS
            ):
                self.sink.emit(
                    DiagnosticCode.MISSING_ACCESSIBLE_LABEL,
                    doc.document.locate(*node.pointer, "props"),
                    f"Icon-only {node.component} in {doc.document.label} needs a label or "
                    "accessibility_label prop",
                    row=doc.row,
                )

    def check_screen(self, doc: AcceptedDocument) -> None:
        screen: ScreenSpec = doc.spec
        layout_doc = self.table.layouts.get(screen.layout) if screen.layout else None
        if screen.layout and layout_doc is None:
            self._unresolved(
                doc, ("layout",), f"Screen {screen.name} uses unknown layout '{screen.layout}'"
            )

        if layout_doc is not None:
            layout: LayoutSpec = layout_doc.spec
            for region, _nodes in content_regions(screen.content):
                if region is not None and region not in layout.regions:
                    self._unresolved(
                        doc,
                        ("content", region),
                        f"Layout {layout.name} declares no region '{region}' "
                        f"(regions: {', '.join(layout.regions) or 'none'})",
                    )

        self.check_nodes(doc, screen_nodes(screen))

    def check_navigation(self, doc: AcceptedDocument) -> None:
        navigation: NavigationSpec = doc.spec
        route_ids = {route.id for route in navigation.routes}
        for root in navigation.root:
            if root not in route_ids:
                self._unresolved(
                    doc, ("root",), f"Navigation {navigation.name} has unknown root route '{root}'"
                )
        for route in navigation.routes:
            if route.screen is None:
                self.sink.emit(
                    DiagnosticCode.MISSING_REQUIRED,
                    doc.document.locate("routes", route.id, "screen"),
                    f"Route '{route.id}' of {navigation.name} declares no screen",
                    row=doc.row,
                )
            elif route.screen not in self.table.screens:
                self._unresolved(
                    doc,
                    ("routes", route.id, "screen"),
                    f"Route '{route.id}' targets unknown screen '{route.screen}'",
                )
            for index, transition in enumerate(route.transitions):
                if transition.to not in route_ids:
                    self._unresolved(
                        doc,
                        ("routes", route.id, "transitions", index, "to"),
                        f"Route '{route.id}' transitions to unknown route '{transition.to}'",
                    )

    def check_flow(self, doc: AcceptedDocument) -> None:
        flow: FlowSpec = doc.spec
        step_ids = {step.id for step in flow.steps}
        if flow.start is not None and flow.start not in step_ids:
            self._unresolved(
                doc, ("start",), f"Flow {flow.name} starts at unknown step '{flow.start}'"
            )
        for index, step in enumerate(flow.steps):
            if step.screen is not None and step.screen not in self.table.screens:
                self._unresolved(
                    doc,
                    ("steps", index, "screen"),
                    f"Step '{step.id}' shows unknown screen '{step.screen}'",
                )
            for target in step.targets:
                if target not in step_ids:
                    self._unresolved(
                        doc,
                        ("steps", index),
                        f"Step '{step.id}' leads to unknown step '{target}'",
                    )
        self.check_nodes(doc, flow_nodes(flow))

    def check(self, doc: AcceptedDocument) -> None:
        if doc.kind == DocumentKind.SCREEN:
            self.check_screen(doc)
        elif doc.kind == DocumentKind.NAVIGATION:
            self.check_navigation(doc)
        elif doc.kind == DocumentKind.FLOW:
            self.check_flow(doc)


def binding_scope(doc: AcceptedDocument) -> BindingScope | None:
    """The data-binding scope of a screen or flow document."""
    if doc.kind == DocumentKind.SCREEN:
        screen: ScreenSpec = doc.spec
        return BindingScope(
            document=doc.document,
            row=doc.row,
            sources=screen.data,
            content=((("content",), screen.content),),
            states=screen.states,
        )
    if doc.kind == DocumentKind.FLOW:
        flow: FlowSpec = doc.spec
        return BindingScope(
            document=doc.document,
            row=doc.row,
            sources=flow.data,
            content=tuple(
                (("steps", index, "content"), step.content) for index, step in enumerate(flow.steps)
            ),
        )
    return None

"""
UI schema generation.

Produces the companion UI document for a compiled schema: nested by
property key, with ``ui:widget``/``ui:options`` per field and
``ui:order`` per object.

Invariants:
    - ui:order lists exactly the properties the compiler emits for the
      object, in the same order, followed by "*"
    - Fields inside conditional branches get UI entries at the level of
      the object they apply to, but never appear in its ui:order
    - Options set on a node override the widget's default options
"""

from __future__ import annotations

import logging
from typing import Any

from ..graph.model import Graph, is_addressable_branch
from ..graph.types import EdgeKind, Node, NodeKind
from ..widgets.registry import WidgetRegistry, create_default_registry

logger = logging.getLogger(__name__)

WILDCARD = "*"

ARRAY_OPTIONS = {"addable": True, "orderable": True, "removable": True}


def with_wildcard(order: list[str]) -> list[str]:
    """Drop blanks and repeats, then make sure "*" closes the list."""
    result: list[str] = []
    for key in order:
        key = key.strip()
        if key and key not in result:
            result.append(key)
    if WILDCARD not in result:
        result.append(WILDCARD)
    return result


class UiSchemaGenerator:
    """Walks a graph and builds its UI schema."""

    def __init__(self, graph: Graph, registry: WidgetRegistry) -> None:
        self.graph = graph
        self.registry = registry

    def generate(self) -> dict[str, Any]:
        ui: dict[str, Any] = {}
        self._object_entries(self.graph.root, ui)
        return ui

    def _field(self, node: Node) -> dict[str, Any]:
        entry: dict[str, Any] = {}
        widget = (
            self.registry.get_widget(node.widget)
            if node.widget
            else self.registry.get_widget_for_field(node)
        )
        if widget is not None:
            entry["ui:widget"] = widget.id
            options = {**widget.default_config, **node.widget_options}
            if options:
                entry["ui:options"] = options
        elif node.widget:
            logger.debug(f"Widget '{node.widget}' on '{node.key}' is not registered; kept as is")
            entry["ui:widget"] = node.widget
            if node.widget_options:
                entry["ui:options"] = dict(node.widget_options)

        if node.kind is NodeKind.OBJECT:
            entry["ui:collapsible"] = True
            entry["ui:collapsed"] = False
            self._object_entries(node, entry)
        elif node.kind is NodeKind.ARRAY:
            entry["ui:options"] = {**entry.get("ui:options", {}), **ARRAY_OPTIONS}
            items = self.graph.children(node.id)
            if items:
                entry["ui:itemTitle"] = items[0].title or "Item"
                item_entry = self._field(items[0])
                if item_entry:
                    entry["items"] = item_entry
        return entry

    def _object_entries(self, node: Node, target: dict[str, Any]) -> None:
        order: list[str] = []
        for child in self.graph.children(node.id):
            if child.kind.is_conditional:
                self._branch_entries(child, target)
                continue
            order.append(child.key)
            target[child.key] = self._field(child)
        if order:
            target["ui:order"] = with_wildcard(order)

    def _branch_entries(self, group: Node, target: dict[str, Any]) -> None:
        for edge in self.graph.edges_from(group.id):
            if edge.kind is EdgeKind.CHILD:
                continue
            branch = self.graph.nodes[edge.target]
            if branch.kind.is_conditional:
                self._branch_entries(branch, target)
            elif is_addressable_branch(branch):
                target.setdefault(branch.key, self._field(branch))
            elif branch.kind is NodeKind.OBJECT:
                for child in self.graph.children(branch.id):
                    if child.kind.is_conditional:
                        self._branch_entries(child, target)
                    else:
                        target.setdefault(child.key, self._field(child))


def generate_ui_schema(graph: Graph, registry: WidgetRegistry | None = None) -> dict[str, Any]:
    """Build the UI schema of ``graph``.

    Args:
        graph: Graph to describe
        registry: Widget registry; the default registry when omitted

    Returns:
        Nested UI schema dictionary
    """
    return UiSchemaGenerator(graph, registry or create_default_registry()).generate()

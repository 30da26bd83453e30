"""
Graph to document compiler.

Walks the graph from the root and emits a JSON Schema document:
- Field nodes emit their type and the keywords of their attribute variant
- Objects emit ``properties`` in child order and ``required`` (omitted if empty)
- Arrays emit ``items`` from their single child (omitted if childless)
- References emit ``$ref`` pointers; every definition is emitted once
  under ``definitions``
- Conditional children of an object are collected into the object's
  ``allOf`` list, one entry per conditional node, followed by any
  ``allOf`` entries the object keeps as extras

Invariants:
    - Output contains only JSON-native values (dict, list, str, number, bool, None)
    - Pass-through extras never override keywords the compiler emits
    - Compilation never mutates the graph

How to change safely:
    - Any new emitted shape needs a matching rule in decompiler.py, and
      signature() in graph/model.py must still describe what is emitted
"""

from __future__ import annotations

import logging
from typing import Any

from ..config import CompilerConfig
from ..graph.model import Graph, is_addressable_branch
from ..graph.types import Clause, EdgeKind, Node, NodeKind
from .conditions import compile_condition

logger = logging.getLogger(__name__)

DEFINITIONS_KEYWORD = "definitions"
DEFINITIONS_POINTER = "#/definitions/"

# Kinds whose node kind name is also their document type
_TYPED_KINDS = frozenset(
    {NodeKind.STRING, NodeKind.NUMBER, NodeKind.BOOLEAN, NodeKind.OBJECT, NodeKind.ARRAY}
)

# Failing branch for anyOf/oneOf clauses that have no else
FAILING_BRANCH: dict[str, Any] = {"not": {}}


def ref_pointer(name: str) -> str:
    return f"{DEFINITIONS_POINTER}{name}"


class SchemaCompiler:
    """Compiles one graph into a document.

    Attributes:
        graph: Graph being compiled
        config: Compiler settings
        warnings: Problems found while compiling (dangling references,
            unused branches)
    """

    def __init__(self, graph: Graph, config: CompilerConfig | None = None) -> None:
        self.graph = graph
        self.config = config or CompilerConfig()
        self.warnings: list[str] = []
        self._referenced: set[str] = set()

    def compile(self) -> dict[str, Any]:
        """Compile the whole graph.

        Returns:
            Document dictionary
        """
        document = self._node(self.graph.root)

        names = [
            name
            for name in self.graph.definitions
            if self.config.emit_unreferenced_definitions or name in self._referenced
        ]
        # Definitions reached only through other definitions
        pending = list(names)
        emitted: dict[str, Any] = {}
        while pending:
            name = pending.pop(0)
            if name in emitted:
                continue
            content = self.graph.definition_content(name)
            before = set(self._referenced)
            emitted[name] = self._node(content) if content is not None else {}
            pending.extend(sorted(self._referenced - before - set(emitted)))

        if emitted:
            ordered = [n for n in self.graph.definitions if n in emitted]
            document[DEFINITIONS_KEYWORD] = {name: emitted[name] for name in ordered}
        for name in sorted(self._referenced - set(self.graph.definitions)):
            self.warnings.append(f"Reference to unknown definition '{name}'")
        for warning in self.warnings:
            logger.warning(warning)
        return document

    def _node(self, node: Node) -> dict[str, Any]:
        if node.kind.is_conditional:
            return self._conditional(node)

        fragment: dict[str, Any] = {}
        if node.kind is NodeKind.REFERENCE:
            fragment["$ref"] = ref_pointer(node.attrs.target)
            self._referenced.add(node.attrs.target)
        elif node.kind in _TYPED_KINDS:
            fragment["type"] = node.kind.value
        self._annotations(node, fragment)
        if node.kind is not NodeKind.REFERENCE:
            fragment.update(node.attrs.to_keywords())

        if node.kind is NodeKind.OBJECT:
            self._object_body(node, fragment)
        elif node.kind is NodeKind.ARRAY:
            item_ids = self.graph.child_ids(node.id)
            if item_ids:
                fragment["items"] = self._node(self.graph.nodes[item_ids[0]])

        self._extras(node, fragment)
        return fragment

    def _annotations(self, node: Node, fragment: dict[str, Any]) -> None:
        if node.title is not None:
            fragment["title"] = node.title
        if node.description is not None:
            fragment["description"] = node.description
        if node.has_default:
            fragment["default"] = node.default

    def _extras(self, node: Node, fragment: dict[str, Any]) -> None:
        for keyword, value in node.extras.items():
            fragment.setdefault(keyword, value)

    def _object_body(self, node: Node, fragment: dict[str, Any]) -> None:
        properties: dict[str, Any] = {}
        required: list[str] = []
        conditionals: list[dict[str, Any]] = []
        for child in self.graph.children(node.id):
            if child.kind.is_conditional:
                conditionals.append(self._conditional(child))
                continue
            properties[child.key] = self._node(child)
            if child.required:
                required.append(child.key)
        if properties:
            fragment["properties"] = properties
        if required:
            fragment["required"] = required
        if conditionals:
            # Entries kept verbatim on import follow the compiled conditionals
            kept = node.extras.get("allOf", [])
            if isinstance(kept, list):
                conditionals.extend(kept)
            else:
                self.warnings.append(
                    f"Object '{node.key}': allOf extra is not a list and is dropped"
                )
            fragment["allOf"] = conditionals

    def _conditional(self, node: Node) -> dict[str, Any]:
        fragment: dict[str, Any] = {}
        self._annotations(node, fragment)
        self._report_unused_branches(node)

        if node.kind is NodeKind.IF:
            fragment.update(self._if_block(node))
        else:
            fragment[node.kind.value] = [self._clause(node, c) for c in node.clauses]
        self._extras(node, fragment)
        return fragment

    def _if_block(self, node: Node) -> dict[str, Any]:
        clauses = node.clauses
        if not clauses:
            return {"if": {}}
        conditions = [compile_condition(c.condition) for c in clauses]
        block: dict[str, Any] = {
            "if": conditions[0] if len(conditions) == 1 else {"allOf": conditions}
        }
        first = clauses[0]
        if first.then is not None:
            block["then"] = self._branch(first.then)
        if first.else_ is not None:
            block["else"] = self._branch(first.else_)
        return block

    def _clause(self, group: Node, clause: Clause) -> dict[str, Any]:
        fragment: dict[str, Any] = {"if": compile_condition(clause.condition)}
        if clause.then is not None:
            fragment["then"] = self._branch(clause.then)
        if clause.else_ is not None:
            fragment["else"] = self._branch(clause.else_)
        elif self.config.strict_match_else and group.kind in (NodeKind.ANY_OF, NodeKind.ONE_OF):
            fragment["else"] = dict(FAILING_BRANCH)
        return fragment

    def _branch(self, node_id: str) -> dict[str, Any]:
        node = self.graph.nodes.get(node_id)
        if node is None:
            self.warnings.append(f"Clause branch points at missing node '{node_id}'")
            return {}
        if not is_addressable_branch(node):
            return self._node(node)
        wrapper: dict[str, Any] = {"properties": {node.key: self._node(node)}}
        if node.required:
            wrapper["required"] = [node.key]
        return wrapper

    def _report_unused_branches(self, node: Node) -> None:
        used = {c.then for c in node.clauses} | {c.else_ for c in node.clauses}
        if node.kind is NodeKind.IF and node.clauses:
            used = {node.clauses[0].then, node.clauses[0].else_}
        for edge in self.graph.edges_from(node.id):
            if edge.kind in (EdgeKind.THEN, EdgeKind.ELSE) and edge.target not in used:
                branch = self.graph.nodes[edge.target]
                self.warnings.append(
                    f"Branch '{branch.key}' of '{node.key}' is not used by any clause "
                    "and is left out of the document"
                )


def compile_graph(graph: Graph, config: CompilerConfig | None = None) -> dict[str, Any]:
    """Compile a graph into a document.

    Example:
        >>> graph = create_empty_graph()
        >>> graph, _ = add_node(graph, draft("number", "Age", minimum=0), graph.root_id)
        >>> compile_graph(graph)
        {'type': 'object', 'properties': {'age': {'type': 'number', 'title': 'Age', 'minimum': 0}}}
    """
    return SchemaCompiler(graph, config).compile()

"""
Immutable graph value.

A Graph holds nodes keyed by id, typed edges indexed both by source
(ordered) and by target (the owning edge), and the table of named
definitions. Graph values are never mutated; operations copy the index
maps through a GraphBuilder and freeze a new Graph with the next
version. Node objects are shared between versions.

Invariants:
    - The root has id ROOT_ID, kind object, and no owning edge
    - Definition nodes have no owning edge and are listed in definitions
    - Every other node has exactly one owning edge
    - outgoing[source] preserves child order

How to change safely:
    - Only GraphBuilder writes the index maps
    - Keep signature() in step with the compiler: it describes what a
      compiled document can carry, nothing more

Example:
    >>> graph = create_empty_graph(title="Customer")
    >>> graph.root.kind
    <NodeKind.OBJECT: 'object'>
"""

from __future__ import annotations

import hashlib
import json
import uuid
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from ..errors import NodeNotFoundError
from .types import EdgeKind, Node, NodeKind

ROOT_ID = "root"


def new_node_id() -> str:
    """Fresh opaque node id."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Edge:
    """Directed typed relation between two node ids."""

    source: str
    target: str
    kind: EdgeKind

    def to_dict(self) -> dict[str, str]:
        return {"source": self.source, "target": self.target, "kind": self.kind.value}


@dataclass(frozen=True)
class Graph:
    """Nodes plus typed edges, rooted at a single object node.

    Attributes:
        nodes: Node id to node
        outgoing: Source id to its outgoing edges (child edges in order)
        owners: Target id to the edge that owns it
        definitions: Definition name to definition node id
        root_id: Id of the root node
        version: Incremented by every committed change
    """

    nodes: Mapping[str, Node]
    outgoing: Mapping[str, tuple[Edge, ...]]
    owners: Mapping[str, Edge]
    definitions: Mapping[str, str]
    root_id: str = ROOT_ID
    version: int = 0

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    @property
    def root(self) -> Node:
        return self.nodes[self.root_id]

    def get(self, node_id: str) -> Node:
        """Look up a node.

        Raises:
            NodeNotFoundError: If the id is unknown
        """
        node = self.nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def owning_edge(self, node_id: str) -> Edge | None:
        return self.owners.get(node_id)

    def parent_id(self, node_id: str) -> str | None:
        edge = self.owners.get(node_id)
        return edge.source if edge else None

    def edges_from(self, node_id: str, kind: EdgeKind | None = None) -> tuple[Edge, ...]:
        edges = self.outgoing.get(node_id, ())
        if kind is None:
            return edges
        return tuple(e for e in edges if e.kind is kind)

    def child_ids(self, node_id: str) -> list[str]:
        """Ordered ids connected by child edges."""
        return [e.target for e in self.edges_from(node_id, EdgeKind.CHILD)]

    def children(self, node_id: str) -> list[Node]:
        return [self.nodes[i] for i in self.child_ids(node_id)]

    def branch_ids(self, node_id: str, kind: EdgeKind) -> list[str]:
        return [e.target for e in self.edges_from(node_id, kind)]

    def edges(self) -> Iterator[Edge]:
        for edges in self.outgoing.values():
            yield from edges

    def ancestors(self, node_id: str) -> Iterator[str]:
        """Ids on the owning-edge chain above ``node_id``, nearest first."""
        seen: set[str] = set()
        current = self.parent_id(node_id)
        while current is not None and current not in seen:
            yield current
            seen.add(current)
            current = self.parent_id(current)

    def subtree_ids(self, node_id: str) -> list[str]:
        """``node_id`` and everything below it, in pre-order."""
        result: list[str] = []
        stack = [node_id]
        seen: set[str] = set()
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            result.append(current)
            stack.extend(reversed([e.target for e in self.outgoing.get(current, ())]))
        return result

    def is_definition(self, node_id: str) -> bool:
        node = self.nodes.get(node_id)
        return node is not None and node.kind is NodeKind.DEFINITION

    def definition_content(self, name: str) -> Node | None:
        """Content node of a definition, or None when empty or unknown."""
        def_id = self.definitions.get(name)
        if def_id is None:
            return None
        child_ids = self.child_ids(def_id)
        return self.nodes[child_ids[0]] if child_ids else None

    def references_to(self, name: str) -> list[Node]:
        return [
            n
            for n in self.nodes.values()
            if n.kind is NodeKind.REFERENCE and n.attrs.target == name
        ]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation (ids included)."""
        return {
            "root_id": self.root_id,
            "version": self.version,
            "nodes": [n.to_dict() for n in self.nodes.values()],
            "edges": [e.to_dict() for e in self.edges()],
            "definitions": dict(self.definitions),
        }


class GraphBuilder:
    """Mutable working copy of a Graph.

    Operations copy the index maps once, edit them, and call freeze().
    The input Graph is never touched.
    """

    def __init__(self, graph: Graph) -> None:
        self.nodes: dict[str, Node] = dict(graph.nodes)
        self.outgoing: dict[str, tuple[Edge, ...]] = dict(graph.outgoing)
        self.owners: dict[str, Edge] = dict(graph.owners)
        self.definitions: dict[str, str] = dict(graph.definitions)
        self.root_id = graph.root_id
        self.version = graph.version

    def put(self, node: Node) -> None:
        self.nodes[node.id] = node

    def attach(self, source: str, target: str, kind: EdgeKind, index: int | None = None) -> Edge:
        """Create the owning edge of ``target``.

        ``index`` positions a child edge among the source's child edges;
        None appends.
        """
        edge = Edge(source=source, target=target, kind=kind)
        edges = list(self.outgoing.get(source, ()))
        if index is None or kind is not EdgeKind.CHILD:
            edges.append(edge)
        else:
            child_positions = [i for i, e in enumerate(edges) if e.kind is EdgeKind.CHILD]
            if index >= len(child_positions):
                edges.append(edge)
            else:
                edges.insert(child_positions[max(index, 0)], edge)
        self.outgoing[source] = tuple(edges)
        self.owners[target] = edge
        return edge

    def detach(self, target: str) -> Edge | None:
        """Remove the owning edge of ``target``."""
        edge = self.owners.pop(target, None)
        if edge is not None:
            self.outgoing[edge.source] = tuple(
                e for e in self.outgoing.get(edge.source, ()) if e is not edge
            )
        return edge

    def drop(self, node_id: str) -> None:
        """Remove a node and its outgoing edge list (not its subtree)."""
        self.nodes.pop(node_id, None)
        self.outgoing.pop(node_id, None)

    def freeze(self) -> Graph:
        self.version += 1
        return Graph(
            nodes=MappingProxyType(self.nodes),
            outgoing=MappingProxyType(self.outgoing),
            owners=MappingProxyType(self.owners),
            definitions=MappingProxyType(self.definitions),
            root_id=self.root_id,
            version=self.version,
        )


def create_empty_graph(title: str | None = None, description: str | None = None) -> Graph:
    """Graph holding only the root object node."""
    root = Node(
        id=ROOT_ID,
        key=ROOT_ID,
        kind=NodeKind.OBJECT,
        title=title,
        description=description,
    )
    return Graph(
        nodes=MappingProxyType({ROOT_ID: root}),
        outgoing=MappingProxyType({}),
        owners=MappingProxyType({}),
        definitions=MappingProxyType({}),
    )


# =============================================================================
# Canonical signatures
# =============================================================================

_WRAPPED_BRANCH_EXCLUDED = frozenset(
    {
        NodeKind.OBJECT,
        NodeKind.REFERENCE,
        NodeKind.IF,
        NodeKind.ALL_OF,
        NodeKind.ANY_OF,
        NodeKind.ONE_OF,
        NodeKind.DEFINITION,
    }
)


def is_addressable_branch(node: Node) -> bool:
    """Whether a branch node is emitted under its own property name."""
    return node.kind not in _WRAPPED_BRANCH_EXCLUDED


def signature(graph: Graph, include_ui: bool = False) -> dict[str, Any]:
    """Id-free canonical description of a graph.

    Two graphs with equal signatures compile to the same document. Keys
    and required flags are only part of the signature where the
    document carries them: object properties and wrapped branch fields.
    Widget selection lives in the UI schema and is included only on
    request.
    """
    return {
        "root": _node_signature(graph, graph.root_id, addressable=False, include_ui=include_ui),
        "definitions": {
            name: _definition_signature(graph, def_id, include_ui)
            for name, def_id in sorted(graph.definitions.items())
        },
    }


def fingerprint(graph: Graph) -> str:
    """SHA-256 fingerprint of the graph signature.

    Returns:
        Fingerprint string in format 'sha256:<hash>'
    """
    canonical = json.dumps(signature(graph), sort_keys=True, separators=(",", ":"), default=str)
    hash_bytes = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return f"sha256:{hash_bytes}"


def _definition_signature(graph: Graph, def_id: str, include_ui: bool) -> dict[str, Any] | None:
    content = graph.child_ids(def_id)
    if not content:
        return None
    return _node_signature(graph, content[0], addressable=False, include_ui=include_ui)


def _node_signature(
    graph: Graph, node_id: str, addressable: bool, include_ui: bool
) -> dict[str, Any] | None:
    node = graph.nodes.get(node_id)
    if node is None:
        return None
    sig: dict[str, Any] = {
        "kind": node.kind.value,
        "title": node.title,
        "description": node.description,
        "extras": dict(node.extras),
    }
    if node.has_default:
        sig["default"] = node.default
    if addressable:
        sig["key"] = node.key
        sig["required"] = node.required
    if include_ui:
        sig["widget"] = node.widget
        sig["widget_options"] = dict(node.widget_options)

    if node.kind.is_conditional:
        sig["clauses"] = [
            {
                "condition": clause.condition.to_dict(),
                "then": _branch_signature(graph, clause.then, include_ui),
                "else": _branch_signature(graph, clause.else_, include_ui),
            }
            for clause in node.clauses
        ]
    else:
        sig["attrs"] = node.attrs.to_dict()

    if node.kind is NodeKind.OBJECT:
        # Properties and the allOf list are emitted separately, so their
        # relative order is not carried
        children = graph.children(node_id)
        sig["children"] = [
            _node_signature(graph, child.id, addressable=True, include_ui=include_ui)
            for child in children
            if not child.kind.is_conditional
        ]
        sig["conditionals"] = [
            _node_signature(graph, child.id, addressable=False, include_ui=include_ui)
            for child in children
            if child.kind.is_conditional
        ]
    elif node.kind is NodeKind.ARRAY:
        sig["children"] = [
            _node_signature(graph, child_id, addressable=False, include_ui=include_ui)
            for child_id in graph.child_ids(node_id)
        ]
    return sig


def _branch_signature(graph: Graph, node_id: str | None, include_ui: bool) -> dict[str, Any] | None:
    if node_id is None or node_id not in graph.nodes:
        return None
    node = graph.nodes[node_id]
    return _node_signature(
        graph, node_id, addressable=is_addressable_branch(node), include_ui=include_ui
    )

"""
Graph store operations.

Every operation takes a Graph and returns a new Graph; the input is never
mutated and a failed operation leaves nothing behind. Each structural
edit consults the validator before touching the copy.

Invariants:
    - The root is never removed or moved
    - Every non-root, non-definition node keeps exactly one owning edge
    - Child-edge siblings have distinct keys after every operation
    - Clause branch targets never point at removed or detached nodes

How to change safely:
    - Validate first, then copy through GraphBuilder and freeze once
    - New operations that detach a branch node must clear clause targets
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from typing import Any

from ..errors import (
    CycleDetectedError,
    DuplicateKeyError,
    IncompatibleParentError,
    InvalidKeyError,
    InvalidOperationError,
    InvalidParentError,
    NodeNotFoundError,
)
from .keys import DEFAULT_KEY, generate_unique_key, is_valid_key, unique_key
from .model import Graph, GraphBuilder, new_node_id
from .types import (
    NODE_FIXED_FIELDS,
    NODE_VALUE_FIELDS,
    ConditionalAttrs,
    EdgeKind,
    Node,
    NodeDraft,
    NodeKind,
)
from .validator import can_accept, would_cycle

logger = logging.getLogger(__name__)

# Key fallback tokens for nodes created without a title
_FALLBACK_KEYS = {
    NodeKind.IF: "condition",
    NodeKind.ALL_OF: "all_of",
    NodeKind.ANY_OF: "any_of",
    NodeKind.ONE_OF: "one_of",
    NodeKind.REFERENCE: "reference",
}


def fallback_key(kind: NodeKind) -> str:
    return _FALLBACK_KEYS.get(kind, DEFAULT_KEY)


def sibling_keys(
    graph: Graph, parent_id: str, edge: EdgeKind, exclude: str | None = None
) -> set[str]:
    """Keys of the nodes hanging off ``parent_id`` via ``edge``."""
    return {
        graph.nodes[e.target].key
        for e in graph.edges_from(parent_id, edge)
        if e.target != exclude
    }


def add_node(
    graph: Graph,
    node_draft: NodeDraft,
    parent_id: str,
    edge: EdgeKind = EdgeKind.CHILD,
    index: int | None = None,
) -> tuple[Graph, str]:
    """Create a node and its owning edge.

    Args:
        graph: Input graph
        node_draft: Contents of the new node
        parent_id: Id of the parent
        edge: Kind of the owning edge
        index: Position among the parent's children (None appends)

    Returns:
        Tuple of (new graph, new node id)

    Raises:
        InvalidParentError: Parent is unknown or is a leaf
        IncompatibleParentError: Parent rejects a child of this kind
        InvalidKeyError: Explicit key is not an identifier
        DuplicateKeyError: Explicit key collides with a sibling
    """
    parent = graph.nodes.get(parent_id)
    if parent is None:
        raise InvalidParentError(f"Parent '{parent_id}' does not exist", parent_id=parent_id)
    _check_parent(graph, parent, node_draft.kind, edge)

    taken = sibling_keys(graph, parent_id, edge)
    if node_draft.key is not None:
        if not is_valid_key(node_draft.key):
            raise InvalidKeyError(node_draft.key)
        if edge is EdgeKind.CHILD and node_draft.key in taken:
            raise DuplicateKeyError(node_draft.key, parent_id)
        key = node_draft.key
    else:
        key = generate_unique_key(node_draft.title, taken, fallback_key(node_draft.kind))

    node_id = new_node_id()
    builder = GraphBuilder(graph)
    builder.put(node_draft.build(node_id, key))
    builder.attach(parent_id, node_id, edge, index)
    logger.debug(f"Added {node_draft.kind.value} node '{key}' ({node_id}) under {parent_id}")
    return builder.freeze(), node_id


def _check_parent(
    graph: Graph, parent: Node, child_kind: NodeKind, edge: EdgeKind, moving_id: str | None = None
) -> None:
    if parent.kind.is_leaf or child_kind is NodeKind.DEFINITION:
        raise InvalidParentError(
            f"'{parent.key}' ({parent.kind.value}) cannot hold a {child_kind.value} node",
            parent_id=parent.id,
        )
    existing = [n.kind for n in graph.children(parent.id) if n.id != moving_id]
    if not can_accept(parent.kind, child_kind, existing, edge):
        raise IncompatibleParentError(
            f"'{parent.key}' ({parent.kind.value}) does not accept a {child_kind.value} "
            f"node via a {edge.value} edge",
            parent_id=parent.id,
            child_kind=child_kind.value,
        )


def update_node(graph: Graph, node_id: str, patch: Mapping[str, Any]) -> Graph:
    """Merge ``patch`` into a node.

    Patch keys are node value fields (key, title, description, required,
    default, widget, widget_options, extras), ``attrs`` (a mapping merged
    into the attribute variant), or attribute names of the node's kind.

    Raises:
        NodeNotFoundError: Unknown node
        InvalidOperationError: Patch touches id, kind, parentage, clauses
            or a definition name
        InvalidKeyError: New key is not an identifier
        DuplicateKeyError: New key collides with a child-edge sibling
    """
    node = graph.get(node_id)
    fixed = sorted(set(patch) & (NODE_FIXED_FIELDS | {"parent_id", "edge"}))
    if fixed:
        raise InvalidOperationError(
            f"Cannot change {fixed} of node '{node_id}'", node_id=node_id, fields=fixed
        )

    changes: dict[str, Any] = {}
    attr_changes: dict[str, Any] = dict(patch.get("attrs") or {})
    for name, value in patch.items():
        if name == "attrs":
            continue
        if name in NODE_VALUE_FIELDS:
            changes[name] = value
        else:
            attr_changes[name] = value

    if "clauses" in attr_changes:
        raise InvalidOperationError(
            "Clauses are changed through the conditional operations", node_id=node_id
        )
    if node.kind is NodeKind.DEFINITION and "name" in attr_changes:
        raise InvalidOperationError(
            "Definitions are renamed with rename_definition", node_id=node_id
        )
    if node.kind is NodeKind.REFERENCE and "target" in attr_changes:
        target = attr_changes["target"]
        if target not in graph.definitions:
            raise InvalidOperationError(
                f"Definition '{target}' does not exist", node_id=node_id, target=target
            )
    if attr_changes:
        changes["attrs"] = node.attrs.merge(attr_changes)

    if "key" in changes and changes["key"] != node.key:
        new_key = changes["key"]
        if not isinstance(new_key, str) or not is_valid_key(new_key):
            raise InvalidKeyError(str(new_key))
        edge = graph.owning_edge(node_id)
        if edge is not None and edge.kind is EdgeKind.CHILD:
            if new_key in sibling_keys(graph, edge.source, EdgeKind.CHILD, exclude=node_id):
                raise DuplicateKeyError(new_key, edge.source)
    if "required" in changes:
        changes["required"] = bool(changes["required"])

    builder = GraphBuilder(graph)
    builder.put(dataclasses.replace(node, **changes))
    return builder.freeze()


def remove_node(graph: Graph, node_id: str, policy: Any = None) -> Graph:
    """Delete a node and its whole subtree.

    Removing a definition node follows the definition removal ``policy``
    (see definitions.remove_definition); its warnings are logged.

    Raises:
        NodeNotFoundError: Node is the root or unknown
    """
    if node_id == graph.root_id:
        raise NodeNotFoundError(node_id, "The root node cannot be removed")
    node = graph.get(node_id)
    if node.kind is NodeKind.DEFINITION:
        from .definitions import remove_definition

        new_graph, warnings = remove_definition(graph, node.attrs.name, policy)
        for warning in warnings:
            logger.warning(warning)
        return new_graph

    builder = GraphBuilder(graph)
    removed = delete_subtree(builder, graph, node_id)
    logger.debug(f"Removed node '{node.key}' ({node_id}) and {removed - 1} descendant(s)")
    return builder.freeze()


def delete_subtree(builder: GraphBuilder, graph: Graph, node_id: str) -> int:
    """Remove ``node_id`` and its descendants from ``builder``.

    Returns:
        Number of nodes removed
    """
    edge = builder.detach(node_id)
    if edge is not None and edge.kind.is_branch:
        rewrite_clause_targets(builder, edge.source, {node_id: None})
    ids = graph.subtree_ids(node_id)
    for sub_id in ids:
        builder.owners.pop(sub_id, None)
        builder.drop(sub_id)
    return len(ids)


def rewrite_clause_targets(
    builder: GraphBuilder, group_id: str, mapping: Mapping[str, str | None]
) -> None:
    """Point clause branches of ``group_id`` away from old targets."""
    group = builder.nodes.get(group_id)
    if group is None or not group.kind.is_conditional:
        return
    clauses = tuple(
        dataclasses.replace(
            clause,
            then=mapping[clause.then] if clause.then in mapping else clause.then,
            else_=mapping[clause.else_] if clause.else_ in mapping else clause.else_,
        )
        for clause in group.clauses
    )
    if clauses != group.clauses:
        builder.put(dataclasses.replace(group, attrs=ConditionalAttrs(clauses=clauses)))


def move_node(
    graph: Graph,
    node_id: str,
    new_parent_id: str,
    edge: EdgeKind = EdgeKind.CHILD,
    index: int | None = None,
) -> Graph:
    """Detach a node from its owner and attach it elsewhere.

    A key already used at the destination is replaced by a fresh unique
    key derived from the old one.

    Raises:
        NodeNotFoundError: Node is the root or unknown
        InvalidOperationError: Node is a definition root
        InvalidParentError: Destination is unknown
        CycleDetectedError: Destination is the node or one of its descendants
        IncompatibleParentError: Destination rejects the node
    """
    if node_id == graph.root_id:
        raise NodeNotFoundError(node_id, "The root node cannot be moved")
    node = graph.get(node_id)
    if node.kind is NodeKind.DEFINITION:
        raise InvalidOperationError("Definitions cannot be moved", node_id=node_id)
    parent = graph.nodes.get(new_parent_id)
    if parent is None:
        raise InvalidParentError(f"Parent '{new_parent_id}' does not exist", parent_id=new_parent_id)
    if would_cycle(graph, node_id, new_parent_id):
        raise CycleDetectedError(node_id, new_parent_id)
    if parent.kind.is_leaf:
        raise IncompatibleParentError(
            f"'{parent.key}' ({parent.kind.value}) cannot hold children",
            parent_id=new_parent_id,
            child_kind=node.kind.value,
        )
    _check_parent(graph, parent, node.kind, edge, moving_id=node_id)

    builder = GraphBuilder(graph)
    old_edge = builder.detach(node_id)
    if old_edge is not None and old_edge.kind.is_branch:
        rewrite_clause_targets(builder, old_edge.source, {node_id: None})

    taken = sibling_keys(graph, new_parent_id, edge, exclude=node_id)
    if node.key in taken:
        new_key = unique_key(node.key, taken)
        logger.info(f"Renamed moved node '{node.key}' to '{new_key}' to keep sibling keys unique")
        builder.put(dataclasses.replace(node, key=new_key))
    builder.attach(new_parent_id, node_id, edge, index)
    return builder.freeze()


def reorder_node(graph: Graph, node_id: str, new_index: int) -> Graph:
    """Move a node to ``new_index`` among its parent's child edges.

    Out-of-range indexes clamp to the first or last position. Nodes owned
    by a branch edge have no order; the graph is returned unchanged.

    Raises:
        NodeNotFoundError: Node is the root or unknown
    """
    if node_id == graph.root_id:
        raise NodeNotFoundError(node_id, "The root node has no position")
    graph.get(node_id)
    edge = graph.owning_edge(node_id)
    if edge is None or edge.kind is not EdgeKind.CHILD:
        return graph

    siblings = graph.child_ids(edge.source)
    target = min(max(new_index, 0), len(siblings) - 1)
    if siblings.index(node_id) == target:
        return graph
    siblings.remove(node_id)
    siblings.insert(target, node_id)

    builder = GraphBuilder(graph)
    by_target = {e.target: e for e in graph.edges_from(edge.source)}
    others = [e for e in graph.edges_from(edge.source) if e.kind is not EdgeKind.CHILD]
    builder.outgoing[edge.source] = tuple([by_target[i] for i in siblings] + others)
    return builder.freeze()

"""
Definitions and references.

A definition is a named root holding one reusable content subgraph.
Reference nodes point at definitions by name and compile to document
pointers. Definitions never appear in normal child iteration; they are
reachable only through Graph.definitions.

Invariants:
    - Definition names are unique
    - A definition node has no owning edge and at most one child
    - A reference target names an existing definition, unless a removal
      under the ALLOW policy left it dangling (reported as a warning)

How to change safely:
    - New removal policies go in DefinitionRemovalPolicy and
      remove_definition; keep ALLOW as the default
"""

from __future__ import annotations

import dataclasses
import logging
from enum import Enum

from ..errors import (
    DefinitionInUseError,
    DuplicateNameError,
    InvalidOperationError,
    NodeNotFoundError,
)
from .model import Graph, GraphBuilder, new_node_id
from .operations import add_node, delete_subtree, rewrite_clause_targets
from .types import (
    ConditionalAttrs,
    DefinitionAttrs,
    EdgeKind,
    Node,
    NodeDraft,
    NodeKind,
    ReferenceAttrs,
)

logger = logging.getLogger(__name__)


class DefinitionRemovalPolicy(Enum):
    """What happens to references when their definition is removed."""

    ALLOW = "allow"  # References dangle; a warning is returned
    REFUSE = "refuse"  # DefinitionInUseError while references exist
    CASCADE = "cascade"  # References are deleted
    INLINE = "inline"  # References are replaced by a copy of the content

    @classmethod
    def from_str(cls, value: str) -> DefinitionRemovalPolicy:
        for policy in cls:
            if policy.value == value.lower():
                return policy
        valid = [p.value for p in cls]
        raise ValueError(f"Invalid definition removal policy '{value}'. Valid policies: {valid}")


def list_definitions(graph: Graph) -> dict[str, Node]:
    """Definition name to definition node."""
    return {name: graph.nodes[def_id] for name, def_id in graph.definitions.items()}


def count_references(graph: Graph, name: str) -> int:
    """Number of reference nodes anywhere in the graph targeting ``name``."""
    return len(graph.references_to(name))


def create_definition(
    graph: Graph, name: str, node_draft: NodeDraft | None = None
) -> tuple[Graph, str]:
    """Create a named definition, optionally with its content node.

    Returns:
        Tuple of (new graph, definition node id)

    Raises:
        DuplicateNameError: ``name`` is taken
        InvalidOperationError: ``name`` is empty
    """
    if not name:
        raise InvalidOperationError("Definition name must not be empty")
    if name in graph.definitions:
        raise DuplicateNameError(name)

    def_id = new_node_id()
    builder = GraphBuilder(graph)
    builder.put(
        Node(id=def_id, key=name, kind=NodeKind.DEFINITION, attrs=DefinitionAttrs(name=name))
    )
    builder.definitions[name] = def_id
    graph = builder.freeze()
    if node_draft is not None:
        graph, _ = add_node(graph, node_draft, def_id)
    logger.debug(f"Created definition '{name}' ({def_id})")
    return graph, def_id


def promote_to_definition(graph: Graph, node_id: str, name: str) -> tuple[Graph, str]:
    """Turn a subtree into a definition and leave a reference in its place.

    The reference keeps the promoted node's position, edge kind, key,
    title and required flag, and takes over any clause slots that
    pointed at the node.

    Returns:
        Tuple of (new graph, reference node id)

    Raises:
        NodeNotFoundError: Unknown node
        InvalidOperationError: Node is the root, a reference, a
            definition, definition content, or a conditional
        DuplicateNameError: ``name`` is taken
    """
    node = graph.get(node_id)
    edge = graph.owning_edge(node_id)
    if node_id == graph.root_id or edge is None:
        raise InvalidOperationError("The root node cannot be promoted", node_id=node_id)
    if node.kind in (NodeKind.REFERENCE, NodeKind.DEFINITION) or graph.is_definition(edge.source):
        raise InvalidOperationError(
            f"Node '{node.key}' is already a reference or definition", node_id=node_id
        )
    if node.kind.is_conditional:
        raise InvalidOperationError(
            f"Conditional node '{node.key}' cannot become a definition", node_id=node_id
        )
    if not name:
        raise InvalidOperationError("Definition name must not be empty")
    if name in graph.definitions:
        raise DuplicateNameError(name)

    index = graph.child_ids(edge.source).index(node_id) if edge.kind is EdgeKind.CHILD else None
    def_id = new_node_id()
    ref_id = new_node_id()

    builder = GraphBuilder(graph)
    builder.detach(node_id)
    builder.put(
        Node(id=def_id, key=name, kind=NodeKind.DEFINITION, attrs=DefinitionAttrs(name=name))
    )
    builder.definitions[name] = def_id
    builder.put(dataclasses.replace(node, required=False))
    builder.attach(def_id, node_id, EdgeKind.CHILD)
    builder.put(
        Node(
            id=ref_id,
            key=node.key,
            kind=NodeKind.REFERENCE,
            title=node.title,
            required=node.required,
            attrs=ReferenceAttrs(target=name),
        )
    )
    builder.attach(edge.source, ref_id, edge.kind, index)
    if edge.kind.is_branch:
        rewrite_clause_targets(builder, edge.source, {node_id: ref_id})
    logger.info(f"Promoted '{node.key}' to definition '{name}'")
    return builder.freeze(), ref_id


def rename_definition(graph: Graph, old_name: str, new_name: str) -> Graph:
    """Rename a definition and retarget every reference to it.

    Raises:
        NodeNotFoundError: ``old_name`` is unknown
        DuplicateNameError: ``new_name`` is taken
    """
    def_id = graph.definitions.get(old_name)
    if def_id is None:
        raise NodeNotFoundError(old_name, f"Definition '{old_name}' not found")
    if new_name == old_name:
        return graph
    if not new_name:
        raise InvalidOperationError("Definition name must not be empty")
    if new_name in graph.definitions:
        raise DuplicateNameError(new_name)

    builder = GraphBuilder(graph)
    node = graph.nodes[def_id]
    builder.put(dataclasses.replace(node, key=new_name, attrs=DefinitionAttrs(name=new_name)))
    del builder.definitions[old_name]
    builder.definitions[new_name] = def_id
    for ref in graph.references_to(old_name):
        builder.put(dataclasses.replace(ref, attrs=ReferenceAttrs(target=new_name)))
    return builder.freeze()


def remove_definition(
    graph: Graph,
    name: str,
    policy: DefinitionRemovalPolicy | str | None = None,
) -> tuple[Graph, list[str]]:
    """Remove a definition and its content.

    Args:
        graph: Input graph
        name: Definition name
        policy: What to do with references (default ALLOW)

    Returns:
        Tuple of (new graph, warnings for the caller)

    Raises:
        NodeNotFoundError: ``name`` is unknown
        DefinitionInUseError: References exist and the policy is REFUSE
    """
    def_id = graph.definitions.get(name)
    if def_id is None:
        raise NodeNotFoundError(name, f"Definition '{name}' not found")
    if policy is None:
        policy = DefinitionRemovalPolicy.ALLOW
    elif isinstance(policy, str):
        policy = DefinitionRemovalPolicy.from_str(policy)

    references = graph.references_to(name)
    warnings: list[str] = []
    if references and policy is DefinitionRemovalPolicy.REFUSE:
        raise DefinitionInUseError(name, len(references))

    builder = GraphBuilder(graph)
    if references:
        if policy is DefinitionRemovalPolicy.ALLOW:
            warnings.append(
                f"Definition '{name}' removed while {len(references)} reference(s) "
                "still point at it; they are now dangling"
            )
        elif policy is DefinitionRemovalPolicy.CASCADE:
            for ref in references:
                delete_subtree(builder, graph, ref.id)
            warnings.append(f"Removed {len(references)} reference(s) to definition '{name}'")
        elif policy is DefinitionRemovalPolicy.INLINE:
            content_ids = graph.child_ids(def_id)
            for ref in references:
                if ref.id in graph.subtree_ids(def_id):
                    continue
                _inline_reference(builder, graph, ref, content_ids[0] if content_ids else None)
            warnings.append(f"Inlined definition '{name}' at {len(references)} reference site(s)")

    for sub_id in graph.subtree_ids(def_id):
        builder.owners.pop(sub_id, None)
        builder.drop(sub_id)
    del builder.definitions[name]
    for warning in warnings:
        logger.info(warning)
    return builder.freeze(), warnings


def _inline_reference(
    builder: GraphBuilder, graph: Graph, ref: Node, content_id: str | None
) -> None:
    """Replace ``ref`` by a fresh copy of the definition content."""
    edge = builder.owners.get(ref.id)
    if content_id is None or edge is None:
        delete_subtree(builder, graph, ref.id)
        return
    index = None
    if edge.kind is EdgeKind.CHILD:
        siblings = [
            e.target for e in builder.outgoing.get(edge.source, ()) if e.kind is EdgeKind.CHILD
        ]
        index = siblings.index(ref.id)
    builder.detach(ref.id)
    builder.drop(ref.id)

    copy_id = copy_subtree(builder, graph, content_id)
    copied = builder.nodes[copy_id]
    builder.put(
        dataclasses.replace(
            copied,
            key=ref.key,
            required=ref.required,
            title=ref.title if ref.title is not None else copied.title,
        )
    )
    builder.attach(edge.source, copy_id, edge.kind, index)
    if edge.kind.is_branch:
        rewrite_clause_targets(builder, edge.source, {ref.id: copy_id})


def copy_subtree(builder: GraphBuilder, graph: Graph, source_id: str) -> str:
    """Copy ``source_id`` and its descendants with fresh ids.

    Edges inside the subtree and clause branch targets are remapped. The
    copy's root is left without an owning edge.

    Returns:
        Id of the copied root
    """
    ids = graph.subtree_ids(source_id)
    mapping = {old: new_node_id() for old in ids}
    for old in ids:
        node = graph.nodes[old]
        if node.kind.is_conditional:
            clauses = tuple(
                dataclasses.replace(
                    c,
                    then=mapping.get(c.then) if c.then else None,
                    else_=mapping.get(c.else_) if c.else_ else None,
                )
                for c in node.clauses
            )
            node = dataclasses.replace(node, attrs=ConditionalAttrs(clauses=clauses))
        builder.put(dataclasses.replace(node, id=mapping[old]))
    for old in ids:
        for edge in graph.edges_from(old):
            builder.attach(mapping[old], mapping[edge.target], edge.kind)
    return mapping[source_id]

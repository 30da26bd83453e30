"""
Conditional group management.

Conditional nodes (if, allOf, anyOf, oneOf) hold an ordered list of
clauses. Each clause tests one sibling field and may point at a then
and an else branch node; those branch nodes hang off the group through
then/else edges.

Invariants:
    - A clause branch target is always owned by the group via the edge
      kind matching the slot (then target via a then edge)
    - A node is never the then target of one clause and the else target
      of another clause in the same group
    - If blocks share a single branch pair across all their clauses

How to change safely:
    - Attach branch nodes with _ensure_branch before writing clauses
    - Keep append_clause idempotent on edges: never create an edge that
      already exists
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from typing import Any

from ..errors import (
    IncompatibleParentError,
    IndexOutOfRangeError,
    InvalidOperationError,
)
from .model import Graph, GraphBuilder
from .operations import add_node, delete_subtree, move_node
from .types import (
    Clause,
    Condition,
    ConditionalAttrs,
    EdgeKind,
    Node,
    NodeDraft,
    NodeKind,
)

logger = logging.getLogger(__name__)

_FIRST: Any = object()


def create_group(
    graph: Graph,
    kind: NodeKind,
    parent_id: str,
    title: str | None = None,
    description: str | None = None,
    index: int | None = None,
) -> tuple[Graph, str]:
    """Add an empty conditional node under ``parent_id``."""
    if not kind.is_conditional:
        raise InvalidOperationError(f"{kind.value} is not a conditional kind", kind=kind.value)
    return add_node(
        graph,
        NodeDraft(kind=kind, title=title, description=description),
        parent_id,
        index=index,
    )


def get_group(graph: Graph, group_id: str) -> Node:
    """Look up a conditional node.

    Raises:
        NodeNotFoundError: Unknown id
        InvalidOperationError: Node is not conditional
    """
    node = graph.get(group_id)
    if not node.kind.is_conditional:
        raise InvalidOperationError(
            f"Node '{group_id}' ({node.kind.value}) is not a conditional group",
            node_id=group_id,
        )
    return node


def get_clauses(graph: Graph, group_id: str) -> tuple[Clause, ...]:
    return get_group(graph, group_id).clauses


def _coerce_clause(clause: Clause | Mapping[str, Any]) -> Clause:
    if isinstance(clause, Clause):
        return clause
    return Clause.from_dict(clause)


def _ensure_branch(
    graph: Graph, group: Node, target_id: str | None, kind: EdgeKind, skip: int | None = None
) -> Graph:
    """Make ``target_id`` a ``kind`` branch of ``group``.

    Nothing happens when the edge already exists. A node owned elsewhere
    is moved under the group.
    """
    if target_id is None:
        return graph
    graph.get(target_id)
    edge = graph.owning_edge(target_id)
    if edge is not None and edge.source == group.id and edge.kind is kind:
        return graph
    if edge is not None and edge.source == group.id:
        other_slot = "else_" if kind is EdgeKind.THEN else "then"
        clauses = get_clauses(graph, group.id)
        if any(
            getattr(c, other_slot) == target_id for i, c in enumerate(clauses) if i != skip
        ):
            raise IncompatibleParentError(
                f"Node '{target_id}' is already a {edge.kind.value} branch of '{group.key}'",
                parent_id=group.id,
            )
    logger.debug(f"Attaching '{target_id}' as {kind.value} branch of '{group.key}'")
    return move_node(graph, target_id, group.id, kind)


def _write_clauses(graph: Graph, group_id: str, clauses: tuple[Clause, ...]) -> Graph:
    group = graph.get(group_id)
    builder = GraphBuilder(graph)
    builder.put(dataclasses.replace(group, attrs=ConditionalAttrs(clauses=clauses)))
    return builder.freeze()


def append_clause(graph: Graph, group_id: str, clause: Clause | Mapping[str, Any]) -> Graph:
    """Append a clause to a group.

    Branch targets not yet owned by the group are attached lazily. For
    an if block, a clause without branches inherits the branch pair of
    the first clause.

    Raises:
        InvalidOperationError: An if block clause names other branches
            than the ones the block already uses
    """
    group = get_group(graph, group_id)
    clause = _coerce_clause(clause)
    if group.kind is NodeKind.IF and group.clauses:
        first = group.clauses[0]
        clause = dataclasses.replace(
            clause,
            then=clause.then if clause.then is not None else first.then,
            else_=clause.else_ if clause.else_ is not None else first.else_,
        )
        if (clause.then, clause.else_) != (first.then, first.else_):
            raise InvalidOperationError(
                f"Clauses of if block '{group.key}' share one then and one else branch; "
                "change them with update_clause or synchronize_branches",
                node_id=group_id,
            )

    graph = _ensure_branch(graph, group, clause.then, EdgeKind.THEN)
    graph = _ensure_branch(graph, group, clause.else_, EdgeKind.ELSE)
    return _write_clauses(graph, group_id, get_clauses(graph, group_id) + (clause,))


def update_clause(
    graph: Graph, group_id: str, index: int, patch: Mapping[str, Any]
) -> Graph:
    """Merge ``patch`` into the clause at ``index``.

    ``condition`` merges shallowly into the existing condition; ``then``
    and ``else`` replace the branch targets. In an if block the branch
    pair is shared, so new targets apply to every clause.

    Raises:
        IndexOutOfRangeError: No clause at ``index``
        InvalidOperationError: Patch names an unknown clause field
    """
    group = get_group(graph, group_id)
    clause = _clause_at(group, index)
    unknown = sorted(set(patch) - {"condition", "then", "else", "else_"})
    if unknown:
        raise InvalidOperationError(f"Unknown clause field(s): {unknown}", fields=unknown)

    changes: dict[str, Any] = {}
    if "condition" in patch:
        condition = patch["condition"]
        if isinstance(condition, Condition):
            condition = condition.to_dict()
        changes["condition"] = Condition.from_dict({**clause.condition.to_dict(), **condition})
    if "then" in patch:
        changes["then"] = patch["then"]
    for name in ("else", "else_"):
        if name in patch:
            changes["else_"] = patch[name]
    updated = dataclasses.replace(clause, **changes)

    graph = _ensure_branch(graph, group, updated.then, EdgeKind.THEN, skip=index)
    graph = _ensure_branch(graph, group, updated.else_, EdgeKind.ELSE, skip=index)
    clauses = list(get_clauses(graph, group_id))
    clauses[index] = updated
    if group.kind is NodeKind.IF:
        clauses = [
            dataclasses.replace(c, then=updated.then, else_=updated.else_) for c in clauses
        ]
    return _write_clauses(graph, group_id, tuple(clauses))


def remove_clause(graph: Graph, group_id: str, index: int, prune: bool = False) -> Graph:
    """Remove the clause at ``index``.

    Branch nodes stay attached to the group unless ``prune`` is set, in
    which case branches no longer used by any clause are deleted.

    Raises:
        IndexOutOfRangeError: No clause at ``index``
    """
    group = get_group(graph, group_id)
    _clause_at(group, index)
    clauses = group.clauses[:index] + group.clauses[index + 1:]
    graph = _write_clauses(graph, group_id, clauses)
    if prune:
        graph = prune_unreferenced_branches(graph, group_id)
    return graph


def _clause_at(group: Node, index: int) -> Clause:
    if not 0 <= index < len(group.clauses):
        raise IndexOutOfRangeError(index, len(group.clauses), group.id)
    return group.clauses[index]


def synchronize_branches(
    graph: Graph,
    group_id: str,
    then_id: str | None = _FIRST,
    else_id: str | None = _FIRST,
) -> Graph:
    """Make every clause share one then target and one else target.

    Targets default to the first clause's. Returns the input graph
    unchanged when all clauses already agree.
    """
    group = get_group(graph, group_id)
    if not group.clauses:
        return graph
    first = group.clauses[0]
    then_id = first.then if then_id is _FIRST else then_id
    else_id = first.else_ if else_id is _FIRST else else_id
    if all(c.then == then_id and c.else_ == else_id for c in group.clauses):
        return graph

    graph = _ensure_branch(graph, group, then_id, EdgeKind.THEN)
    graph = _ensure_branch(graph, group, else_id, EdgeKind.ELSE)
    clauses = tuple(
        dataclasses.replace(c, then=then_id, else_=else_id) for c in get_clauses(graph, group_id)
    )
    logger.debug(f"Synchronized {len(clauses)} clause(s) of '{group.key}'")
    return _write_clauses(graph, group_id, clauses)


def prune_unreferenced_branches(graph: Graph, group_id: str) -> Graph:
    """Delete branch nodes of a group that no clause points at."""
    group = get_group(graph, group_id)
    used = {c.then for c in group.clauses} | {c.else_ for c in group.clauses}
    stale = [e.target for e in graph.edges_from(group_id) if e.kind.is_branch and e.target not in used]
    if not stale:
        return graph
    builder = GraphBuilder(graph)
    for target in stale:
        delete_subtree(builder, graph, target)
    return builder.freeze()

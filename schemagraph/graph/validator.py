"""
Structural validation for the schema graph.

Pure predicates consulted before every structural edit, plus whole-graph
and per-field checks used by tools and the import path.

Invariants:
    - can_accept depends only on its arguments
    - would_cycle follows owning edges only
    - check_graph and validate_node report, they never raise
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from .keys import is_valid_key
from .model import Graph
from .types import EdgeKind, Node, NodeKind


def can_accept(
    parent_kind: NodeKind,
    child_kind: NodeKind,
    existing_child_kinds: Sequence[NodeKind] = (),
    edge: EdgeKind = EdgeKind.CHILD,
) -> bool:
    """Check whether a parent of ``parent_kind`` can take a new child.

    Args:
        parent_kind: Kind of the prospective parent
        child_kind: Kind of the node being attached
        existing_child_kinds: Kinds of the parent's current child-edge children
        edge: Edge kind of the prospective owning edge

    Returns:
        True if the pairing is structurally allowed
    """
    if child_kind is NodeKind.DEFINITION:
        return False
    if edge.is_branch:
        return parent_kind.is_conditional
    if parent_kind is NodeKind.OBJECT:
        return True
    if parent_kind is NodeKind.ARRAY:
        return not existing_child_kinds or existing_child_kinds[0] is child_kind
    if parent_kind is NodeKind.DEFINITION:
        return not existing_child_kinds
    return False


def is_container(kind: NodeKind, edge: EdgeKind = EdgeKind.CHILD) -> bool:
    """Whether nodes of ``kind`` can ever hold children over ``edge``."""
    if edge.is_branch:
        return kind.is_conditional
    return kind in (NodeKind.OBJECT, NodeKind.ARRAY, NodeKind.DEFINITION)


def would_cycle(graph: Graph, moving_id: str, target_parent_id: str) -> bool:
    """Check whether attaching ``moving_id`` under ``target_parent_id`` forms a cycle.

    True iff the target is the moving node itself or has it on its
    owning-edge ancestor chain.
    """
    if target_parent_id == moving_id:
        return True
    return any(ancestor == moving_id for ancestor in graph.ancestors(target_parent_id))


# =============================================================================
# Field validation
# =============================================================================


_NUMBER_FIELDS = {
    NodeKind.NUMBER: ("minimum", "maximum", "multiple_of", "exclusive_minimum", "exclusive_maximum"),
}

_COUNT_FIELDS = {
    NodeKind.STRING: ("min_length", "max_length"),
    NodeKind.ARRAY: ("min_items", "max_items"),
    NodeKind.OBJECT: ("min_properties", "max_properties"),
}


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def check_attribute_types(kind: NodeKind, attrs: object) -> list[str]:
    """Type problems in a node's attributes.

    Bounds must be numbers and counts non-negative integers, so range
    checks and compilation can compare them.

    Returns:
        List of messages naming the attribute (empty if every value has the right type)
    """
    problems: list[str] = []
    for name in _NUMBER_FIELDS.get(kind, ()):
        value = getattr(attrs, name)
        if value is not None and not _is_number(value):
            problems.append(f"{name} must be a number, got {value!r}")
    for name in _COUNT_FIELDS.get(kind, ()):
        value = getattr(attrs, name)
        if value is not None and not (isinstance(value, int) and not isinstance(value, bool) and value >= 0):
            problems.append(f"{name} must be a non-negative integer, got {value!r}")
    if kind is NodeKind.STRING:
        for name in ("pattern", "format"):
            value = getattr(attrs, name)
            if value is not None and not isinstance(value, str):
                problems.append(f"{name} must be a string, got {value!r}")
    elif kind is NodeKind.ARRAY:
        if attrs.unique_items is not None and not isinstance(attrs.unique_items, bool):
            problems.append(f"unique_items must be a boolean, got {attrs.unique_items!r}")
    elif kind is NodeKind.ENUM:
        if not isinstance(attrs.values, tuple):
            problems.append(f"values must be a list, got {attrs.values!r}")
        if attrs.names is not None and not (
            isinstance(attrs.names, tuple) and all(isinstance(n, str) for n in attrs.names)
        ):
            problems.append(f"names must be a list of strings, got {attrs.names!r}")
        value_type = attrs.value_type
        if value_type is not None and not (
            isinstance(value_type, str)
            or (isinstance(value_type, tuple) and all(isinstance(t, str) for t in value_type))
        ):
            problems.append(f"value_type must be a type name, got {value_type!r}")
    return problems


def validate_node(node: Node) -> list[str]:
    """Validate a single node's own fields.

    Returns:
        List of error messages (empty if valid)
    """
    errors: list[str] = []
    label = node.title if isinstance(node.title, str) and node.title else node.key

    if node.title is not None and not isinstance(node.title, str):
        errors.append(f"{label}: title must be a string, got {node.title!r}")
    elif node.kind is not NodeKind.DEFINITION and node.title is not None and not node.title.strip():
        errors.append(f"{label}: title must not be blank")
    if node.description is not None and not isinstance(node.description, str):
        errors.append(f"{label}: description must be a string, got {node.description!r}")
    if not node.key:
        errors.append(f"Node '{node.id}': key is required")
    elif not is_valid_key(node.key):
        errors.append(f"{label}: key '{node.key}' is not a valid identifier")

    attrs = node.attrs
    mistyped = check_attribute_types(node.kind, attrs)
    errors.extend(f"{label}: {problem}" for problem in mistyped)
    if mistyped:
        # Comparisons below assume well-typed values
        return errors

    if node.kind is NodeKind.STRING:
        _check_range(errors, label, "min_length", attrs.min_length, "max_length", attrs.max_length)
        if attrs.pattern is not None:
            try:
                re.compile(attrs.pattern)
            except re.error as e:
                errors.append(f"{label}: invalid pattern '{attrs.pattern}': {e}")
    elif node.kind is NodeKind.NUMBER:
        _check_range(errors, label, "minimum", attrs.minimum, "maximum", attrs.maximum)
        if attrs.multiple_of is not None and attrs.multiple_of <= 0:
            errors.append(f"{label}: multiple_of must be positive")
    elif node.kind is NodeKind.ENUM:
        if not attrs.values:
            errors.append(f"{label}: enum needs at least one value")
        elif len(set(map(repr, attrs.values))) != len(attrs.values):
            errors.append(f"{label}: enum values must be unique")
        if attrs.names is not None and len(attrs.names) != len(attrs.values):
            errors.append(f"{label}: enum names must match the number of values")
    elif node.kind is NodeKind.ARRAY:
        _check_range(errors, label, "min_items", attrs.min_items, "max_items", attrs.max_items)
    elif node.kind is NodeKind.OBJECT:
        _check_range(
            errors, label, "min_properties", attrs.min_properties,
            "max_properties", attrs.max_properties,
        )
    elif node.kind is NodeKind.REFERENCE and not attrs.target:
        errors.append(f"{label}: reference needs a target definition")
    elif node.kind.is_conditional:
        for index, clause in enumerate(node.clauses):
            if not clause.condition.field:
                errors.append(f"{label}: clause {index} has no condition field")

    return errors


def _check_range(
    errors: list[str], label: str, low_name: str, low: object, high_name: str, high: object
) -> None:
    if low is not None and high is not None and low > high:  # type: ignore[operator]
        errors.append(f"{label}: {low_name} ({low}) is greater than {high_name} ({high})")


# =============================================================================
# Whole-graph checks
# =============================================================================


def check_graph(graph: Graph) -> list[str]:
    """Validate every graph invariant.

    Returns:
        List of violations (empty if the graph is consistent)
    """
    errors: list[str] = []
    root = graph.nodes.get(graph.root_id)
    if root is None:
        return [f"Root node '{graph.root_id}' is missing"]
    if root.kind is not NodeKind.OBJECT:
        errors.append(f"Root node must be an object, got {root.kind.value}")

    definition_ids = set(graph.definitions.values())
    for name, def_id in graph.definitions.items():
        node = graph.nodes.get(def_id)
        if node is None or node.kind is not NodeKind.DEFINITION:
            errors.append(f"Definition '{name}' points at a missing node '{def_id}'")
        elif node.attrs.name != name:
            errors.append(f"Definition '{name}' node is named '{node.attrs.name}'")

    for node_id, node in graph.nodes.items():
        edge = graph.owners.get(node_id)
        if node_id == graph.root_id or node_id in definition_ids:
            if edge is not None:
                errors.append(f"Node '{node_id}' is a root but has an owning edge")
            continue
        if edge is None:
            errors.append(f"Orphaned node '{node_id}' ({node.key}) has no owning edge")
            continue
        if edge.source not in graph.nodes:
            errors.append(f"Node '{node_id}' is owned by a missing node '{edge.source}'")
        if any(a == node_id for a in graph.ancestors(node_id)):
            errors.append(f"Cycle detected through node '{node_id}'")

    for node_id, node in graph.nodes.items():
        errors.extend(validate_node(node))
        child_nodes = graph.children(node_id)
        keys = [c.key for c in child_nodes]
        for key in sorted({k for k in keys if keys.count(k) > 1}):
            errors.append(f"Duplicate key '{key}' under '{node_id}'")
        if node.kind is NodeKind.ARRAY and len(child_nodes) > 1:
            errors.append(f"Array '{node.key}' has {len(child_nodes)} item schemas")
        if child_nodes and node.kind.is_leaf:
            errors.append(f"Leaf '{node.key}' ({node.kind.value}) has children")
        if node.kind is NodeKind.REFERENCE and node.attrs.target not in graph.definitions:
            errors.append(f"Reference '{node.key}' points at unknown definition '{node.attrs.target}'")
        if node.kind.is_conditional:
            errors.extend(_check_clauses(graph, node))

    return errors


def _check_clauses(graph: Graph, node: Node) -> list[str]:
    errors: list[str] = []
    then_ids = set(graph.branch_ids(node.id, EdgeKind.THEN))
    else_ids = set(graph.branch_ids(node.id, EdgeKind.ELSE))
    for index, clause in enumerate(node.clauses):
        if clause.then is not None and clause.then not in then_ids:
            errors.append(f"Clause {index} of '{node.key}' has then target without a then edge")
        if clause.else_ is not None and clause.else_ not in else_ids:
            errors.append(f"Clause {index} of '{node.key}' has else target without an else edge")
    if node.kind is NodeKind.IF and len({(c.then, c.else_) for c in node.clauses}) > 1:
        errors.append(f"If block '{node.key}' has clauses with different branches")
    return errors


def check_unreferenced_branches(graph: Graph) -> list[str]:
    """Warnings for branch nodes that no clause points at.

    Such nodes are dropped by the compiler.
    """
    warnings: list[str] = []
    for node in graph.nodes.values():
        if not node.kind.is_conditional:
            continue
        used = {c.then for c in node.clauses} | {c.else_ for c in node.clauses}
        for edge in graph.edges_from(node.id):
            if edge.kind.is_branch and edge.target not in used:
                target = graph.nodes[edge.target]
                warnings.append(
                    f"Branch '{target.key}' of '{node.key}' is not used by any clause"
                )
    return warnings

"""
Schema graph model and operations.

This package provides:
- Value types: Node, Edge, Graph and the kind-specific attribute variants
- Store operations: add, update, remove, move, reorder
- Structural validation: can_accept, would_cycle, check_graph
- Conditional groups: clause append/update/remove and branch synchronization
- Definitions: create, promote, rename, remove, reference counting
"""

from .conditional import (
    append_clause,
    create_group,
    get_clauses,
    prune_unreferenced_branches,
    remove_clause,
    synchronize_branches,
    update_clause,
)
from .definitions import (
    DefinitionRemovalPolicy,
    count_references,
    create_definition,
    list_definitions,
    promote_to_definition,
    remove_definition,
    rename_definition,
)
from .keys import DEFAULT_KEY, derive_key, generate_unique_key, is_valid_key
from .model import ROOT_ID, Edge, Graph, create_empty_graph, fingerprint, signature
from .operations import add_node, move_node, remove_node, reorder_node, update_node
from .store import GraphStore
from .types import (
    UNSET,
    ArrayAttrs,
    BooleanAttrs,
    Clause,
    Condition,
    ConditionalAttrs,
    ConditionOperator,
    DefinitionAttrs,
    EdgeKind,
    EnumAttrs,
    Node,
    NodeDraft,
    NodeKind,
    NumberAttrs,
    ObjectAttrs,
    ReferenceAttrs,
    StringAttrs,
    draft,
)
from .validator import can_accept, check_graph, validate_node, would_cycle

__all__ = [
    # Types
    "UNSET",
    "NodeKind",
    "EdgeKind",
    "ConditionOperator",
    "StringAttrs",
    "NumberAttrs",
    "BooleanAttrs",
    "EnumAttrs",
    "ObjectAttrs",
    "ArrayAttrs",
    "ConditionalAttrs",
    "DefinitionAttrs",
    "ReferenceAttrs",
    "Condition",
    "Clause",
    "Node",
    "NodeDraft",
    "draft",
    # Graph
    "ROOT_ID",
    "Edge",
    "Graph",
    "GraphStore",
    "create_empty_graph",
    "signature",
    "fingerprint",
    # Keys
    "DEFAULT_KEY",
    "derive_key",
    "generate_unique_key",
    "is_valid_key",
    # Operations
    "add_node",
    "update_node",
    "remove_node",
    "move_node",
    "reorder_node",
    # Validation
    "can_accept",
    "would_cycle",
    "check_graph",
    "validate_node",
    # Conditionals
    "create_group",
    "get_clauses",
    "append_clause",
    "update_clause",
    "remove_clause",
    "synchronize_branches",
    "prune_unreferenced_branches",
    # Definitions
    "DefinitionRemovalPolicy",
    "list_definitions",
    "count_references",
    "create_definition",
    "promote_to_definition",
    "rename_definition",
    "remove_definition",
]

"""
Graph store.

The GraphStore holds the single current graph value. Operations are the
pure functions of the graph package; the store runs them against the
current value and commits the result, last writer wins.

Invariants:
    - The current graph only changes through commit()
    - A failed operation leaves the current graph untouched
    - The store does no locking; callers serialize access when shared

Example:
    >>> store = GraphStore()
    >>> name_id = store.add_node(draft("string", "Name"), store.graph.root_id)
    >>> store.graph.get(name_id).key
    'name'
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from .definitions import DefinitionRemovalPolicy, remove_definition
from .model import Graph, create_empty_graph
from .operations import add_node, move_node, remove_node, reorder_node, update_node
from .types import EdgeKind, NodeDraft

logger = logging.getLogger(__name__)


class GraphStore:
    """Owner of the current graph value.

    Attributes:
        graph: Current graph
        removal_policy: Policy used when a definition is removed
    """

    def __init__(
        self,
        graph: Graph | None = None,
        removal_policy: DefinitionRemovalPolicy = DefinitionRemovalPolicy.ALLOW,
    ) -> None:
        self._graph = graph if graph is not None else create_empty_graph()
        self.removal_policy = removal_policy
        self.warnings: list[str] = []

    @property
    def graph(self) -> Graph:
        return self._graph

    @property
    def version(self) -> int:
        return self._graph.version

    def commit(self, graph: Graph) -> Graph:
        """Make ``graph`` current."""
        self._graph = graph
        return graph

    def replace(self, graph: Graph) -> None:
        """Swap in an unrelated graph (for example a fresh import)."""
        logger.info(f"Replacing current graph ({len(self._graph)} nodes) with {len(graph)} nodes")
        self.warnings = []
        self.commit(graph)

    def reset(self, title: str | None = None) -> None:
        self.replace(create_empty_graph(title=title))

    def apply(self, operation: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a graph operation against the current graph and commit it.

        Operations return either a Graph or a tuple whose first item is
        the Graph; the remaining item is returned to the caller.
        """
        result = operation(self._graph, *args, **kwargs)
        if isinstance(result, Graph):
            self.commit(result)
            return None
        graph, extra = result
        self.commit(graph)
        return extra

    def add_node(
        self,
        node_draft: NodeDraft,
        parent_id: str,
        edge: EdgeKind = EdgeKind.CHILD,
        index: int | None = None,
    ) -> str:
        """Add a node and return its id."""
        return self.apply(add_node, node_draft, parent_id, edge, index)

    def update_node(self, node_id: str, patch: Mapping[str, Any]) -> None:
        self.apply(update_node, node_id, patch)

    def remove_node(self, node_id: str) -> None:
        self.apply(remove_node, node_id, self.removal_policy)

    def move_node(
        self,
        node_id: str,
        new_parent_id: str,
        edge: EdgeKind = EdgeKind.CHILD,
        index: int | None = None,
    ) -> None:
        self.apply(move_node, node_id, new_parent_id, edge, index)

    def reorder_node(self, node_id: str, new_index: int) -> None:
        self.apply(reorder_node, node_id, new_index)

    def remove_definition(self, name: str) -> list[str]:
        """Remove a definition under the store's policy and return the warnings."""
        warnings = self.apply(remove_definition, name, self.removal_policy)
        self.warnings.extend(warnings)
        return warnings

"""
Editing session shared by the HTTP routes.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from fastapi import Request

from ..config import AppConfig
from ..graph.store import GraphStore
from ..widgets.registry import WidgetRegistry, create_default_registry


class EditorSession:
    """The graph being edited plus what it needs, shared by all requests.

    Requests run in the server's thread pool; the lock serializes them
    so the store sees one operation at a time.

    Attributes:
        config: Application configuration
        store: Current graph
        registry: Widget registry (frozen)
    """

    def __init__(self, config: AppConfig, registry: WidgetRegistry | None = None) -> None:
        self.config = config
        self.store = GraphStore(removal_policy=config.graph.definition_removal_policy)
        self.registry = registry or create_default_registry(freeze=True)
        self._lock = threading.Lock()

    @contextmanager
    def locked(self) -> Iterator[GraphStore]:
        with self._lock:
            yield self.store

    def apply(self, operation: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a graph operation against the store under the lock."""
        with self.locked() as store:
            return store.apply(operation, *args, **kwargs)


def get_session(request: Request) -> EditorSession:
    """Get the editing session from app state."""
    return request.app.state.session

"""
Error types for the schema graph engine.

This module defines all exception types raised by graph operations,
the compiler and the widget registry:
- SchemaGraphError: Base exception
- InvalidParentError / IncompatibleParentError: Parent cannot take the child
- CycleDetectedError: Move would create a cycle
- DuplicateKeyError / DuplicateNameError: Sibling key or definition name taken
- NodeNotFoundError: Unknown node id, or the root where it is not allowed
- IndexOutOfRangeError: Clause index outside the clause list
- ImportMalformedError: Document rejected on import (all issues at once)
- InvalidOperationError: Operation not meaningful for the target node
- UnknownWidgetError / RegistryFrozenError: Widget registry lookups and late registration

Invariants:
    - All errors inherit from SchemaGraphError
    - Every error carries a stable code for programmatic handling
    - Errors are local validation failures, never transient; do not retry
"""

from __future__ import annotations

from typing import Any


class SchemaGraphError(Exception):
    """Base exception for all schema graph errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "SCHEMA_GRAPH_ERROR"
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class InvalidParentError(SchemaGraphError):
    """Parent does not exist or cannot hold children.

    Raised when:
    - The parent id is unknown
    - The parent is a leaf (string, number, boolean, enum, reference)
    - A definition node is added below another node
    """

    def __init__(
        self,
        message: str,
        parent_id: str | None = None,
        code: str = "INVALID_PARENT",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code=code, details={"parent_id": parent_id, **(details or {})})
        self.parent_id = parent_id


class IncompatibleParentError(InvalidParentError):
    """Parent exists but rejects this child.

    Raised when:
    - An array already holds an item of a different kind
    - A definition already holds its content node
    - The edge kind does not fit the parent (then/else on a non-conditional)
    """

    def __init__(
        self,
        message: str,
        parent_id: str | None = None,
        child_kind: str | None = None,
    ) -> None:
        super().__init__(
            message,
            parent_id=parent_id,
            code="INCOMPATIBLE_PARENT",
            details={"child_kind": child_kind},
        )
        self.child_kind = child_kind


class CycleDetectedError(SchemaGraphError):
    """Moving a node under itself or one of its descendants."""

    def __init__(self, node_id: str, target_parent_id: str) -> None:
        super().__init__(
            f"Moving '{node_id}' under '{target_parent_id}' would create a cycle",
            code="CYCLE_DETECTED",
            details={"node_id": node_id, "target_parent_id": target_parent_id},
        )
        self.node_id = node_id
        self.target_parent_id = target_parent_id


class DuplicateKeyError(SchemaGraphError):
    """A sibling connected by a child edge already uses this key."""

    def __init__(self, key: str, parent_id: str | None = None) -> None:
        super().__init__(
            f"Key '{key}' is already used by a sibling under '{parent_id}'",
            code="DUPLICATE_KEY",
            details={"key": key, "parent_id": parent_id},
        )
        self.key = key
        self.parent_id = parent_id


class DuplicateNameError(SchemaGraphError):
    """A definition with this name already exists."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Definition '{name}' already exists",
            code="DUPLICATE_NAME",
            details={"name": name},
        )
        self.name = name


class NodeNotFoundError(SchemaGraphError):
    """Node id is unknown, or refers to the root where the root is not allowed."""

    def __init__(self, node_id: str, message: str | None = None) -> None:
        super().__init__(
            message or f"Node '{node_id}' not found",
            code="NOT_FOUND",
            details={"node_id": node_id},
        )
        self.node_id = node_id


class IndexOutOfRangeError(SchemaGraphError):
    """Clause index outside the group's clause list."""

    def __init__(self, index: int, size: int, group_id: str | None = None) -> None:
        super().__init__(
            f"Clause index {index} out of range for group '{group_id}' with {size} clause(s)",
            code="INDEX_OUT_OF_RANGE",
            details={"index": index, "size": size, "group_id": group_id},
        )
        self.index = index
        self.size = size


class ImportMalformedError(SchemaGraphError):
    """Document cannot be imported.

    Carries every distinct issue found, not just the first, plus any
    warnings collected before the import was abandoned.
    """

    def __init__(self, issues: list[str], warnings: list[str] | None = None) -> None:
        distinct = list(dict.fromkeys(issues))
        summary = distinct[0] if len(distinct) == 1 else f"{len(distinct)} issues"
        super().__init__(
            f"Malformed document: {summary}",
            code="IMPORT_MALFORMED",
            details={"issues": distinct, "warnings": list(warnings or [])},
        )
        self.issues = distinct
        self.warnings = list(warnings or [])


class InvalidOperationError(SchemaGraphError):
    """Operation is not meaningful for the target node.

    Raised when:
    - A patch tries to change id, kind or parentage
    - A clause operation targets a non-conditional node
    - A reference, definition or the root is promoted to a definition
    """

    def __init__(self, message: str, code: str = "INVALID_OPERATION", **details: Any) -> None:
        super().__init__(message, code=code, details=details)


class InvalidKeyError(InvalidOperationError):
    """Key does not match the identifier pattern."""

    def __init__(self, key: str) -> None:
        super().__init__(
            f"Invalid key '{key}': must start with a letter or underscore "
            "and contain only letters, digits and underscores",
            code="INVALID_KEY",
            key=key,
        )
        self.key = key


class DefinitionInUseError(InvalidOperationError):
    """Definition still has references and the removal policy refuses."""

    def __init__(self, name: str, reference_count: int) -> None:
        super().__init__(
            f"Definition '{name}' is still referenced by {reference_count} node(s)",
            code="DEFINITION_IN_USE",
            name=name,
            reference_count=reference_count,
        )
        self.name = name
        self.reference_count = reference_count


class UnknownWidgetError(SchemaGraphError):
    """Widget id is not registered."""

    def __init__(self, widget_id: str) -> None:
        super().__init__(
            f"Unknown widget '{widget_id}'",
            code="UNKNOWN_WIDGET",
            details={"widget_id": widget_id},
        )
        self.widget_id = widget_id


class RegistryFrozenError(SchemaGraphError):
    """Registration attempted after the registry was frozen."""

    def __init__(self, what: str) -> None:
        super().__init__(
            f"Cannot register {what}: widget registry is frozen",
            code="REGISTRY_FROZEN",
        )

"""
Import and export surfaces.

Export bundles the compiled schema, the UI schema, a summary and every
warning produced on the way. Import runs the pre-import checks, then the
decompiler, and for combined bundles applies the ``ui:widget``
selections back onto the graph.

Invariants:
    - Import either returns a graph or raises ImportMalformedError;
      it never returns a partial graph
    - Export never raises for a graph that passes check_graph
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ..config import CompilerConfig
from ..errors import ImportMalformedError
from ..graph.model import Graph
from ..graph.operations import update_node
from ..graph.types import NodeKind
from ..graph.validator import check_graph
from ..widgets.registry import WidgetRegistry, create_default_registry
from .compiler import SchemaCompiler
from .decompiler import decompile_document
from .import_validator import validate_combined, validate_document
from .ui_schema import generate_ui_schema

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchemaSummary:
    """Counts shown before an import is confirmed."""

    field_count: int = 0
    definition_count: int = 0
    conditional_count: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "field_count": self.field_count,
            "definition_count": self.definition_count,
            "conditional_count": self.conditional_count,
        }


def summarize_document(document: Any) -> SchemaSummary:
    """Count root properties, definitions and root-level conditionals.

    Conditionals count one per entry of a root ``allOf``/``anyOf``/
    ``oneOf`` list plus one for a root ``if``.
    """
    if not isinstance(document, Mapping):
        return SchemaSummary()

    properties = document.get("properties")
    definitions = document.get("definitions")
    conditionals = sum(
        len(document[keyword])
        for keyword in ("allOf", "anyOf", "oneOf")
        if isinstance(document.get(keyword), list)
    )
    if document.get("if"):
        conditionals += 1
    return SchemaSummary(
        field_count=len(properties) if isinstance(properties, Mapping) else 0,
        definition_count=len(definitions) if isinstance(definitions, Mapping) else 0,
        conditional_count=conditionals,
    )


@dataclass
class ExportBundle:
    """Everything an export produces.

    Attributes:
        schema: Compiled document
        ui_schema: Companion UI schema
        summary: Counts over the compiled document
        warnings: Compiler warnings plus graph check findings
    """

    schema: dict[str, Any]
    ui_schema: dict[str, Any]
    summary: SchemaSummary
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Combined format, readable back by import_combined."""
        return {
            "schema": self.schema,
            "uiSchema": self.ui_schema,
            "summary": self.summary.to_dict(),
            "warnings": list(self.warnings),
        }


def export_graph(
    graph: Graph,
    config: CompilerConfig | None = None,
    registry: WidgetRegistry | None = None,
) -> ExportBundle:
    """Compile ``graph`` with its UI schema and summary.

    Example:
        >>> bundle = export_graph(create_empty_graph(title="Empty"))
        >>> bundle.schema
        {'type': 'object', 'title': 'Empty'}
    """
    compiler = SchemaCompiler(graph, config)
    schema = compiler.compile()
    warnings = check_graph(graph) + compiler.warnings
    return ExportBundle(
        schema=schema,
        ui_schema=generate_ui_schema(graph, registry),
        summary=summarize_document(schema),
        warnings=warnings,
    )


def import_document(
    document: Any, config: CompilerConfig | None = None
) -> tuple[Graph, list[str]]:
    """Check and decompile a schema document.

    Returns:
        Tuple of (graph, warnings)

    Raises:
        ImportMalformedError: If the document fails the checks or cannot
            be decompiled
    """
    checked = validate_document(document)
    if not checked.valid:
        raise ImportMalformedError(checked.errors, checked.warnings)
    graph, warnings = decompile_document(document, config)
    return graph, checked.warnings + warnings


@dataclass
class ImportResult:
    """Outcome of a combined import.

    Attributes:
        graph: Decompiled graph with widget selections applied
        warnings: Check, decompiler and widget warnings
        form_data: Sample form data carried by the bundle, if any
    """

    graph: Graph
    warnings: list[str] = field(default_factory=list)
    form_data: dict[str, Any] | None = None


def import_combined(
    payload: Any,
    config: CompilerConfig | None = None,
    registry: WidgetRegistry | None = None,
) -> ImportResult:
    """Import a ``{schema, uiSchema?, formData?}`` bundle.

    Raises:
        ImportMalformedError: If the bundle or its schema is rejected
    """
    checked = validate_combined(payload)
    if not checked.valid:
        raise ImportMalformedError(checked.errors, checked.warnings)

    graph, warnings = decompile_document(payload["schema"], config)
    warnings = checked.warnings + warnings

    ui_schema = payload.get("uiSchema")
    if isinstance(ui_schema, Mapping):
        graph = _apply_widgets(
            graph, graph.root_id, ui_schema, registry or create_default_registry(), warnings
        )

    form_data = payload.get("formData")
    return ImportResult(
        graph=graph,
        warnings=warnings,
        form_data=dict(form_data) if isinstance(form_data, Mapping) else None,
    )


def _apply_widgets(
    graph: Graph,
    object_id: str,
    ui_schema: Mapping[str, Any],
    registry: WidgetRegistry,
    warnings: list[str],
) -> Graph:
    for child in graph.children(object_id):
        if child.kind.is_conditional:
            continue
        entry = ui_schema.get(child.key)
        if not isinstance(entry, Mapping):
            continue

        widget_id = entry.get("ui:widget")
        if isinstance(widget_id, str):
            if registry.get_widget(widget_id) is None:
                warnings.append(f"uiSchema: widget '{widget_id}' on '{child.key}' is not registered")
            patch: dict[str, Any] = {"widget": widget_id}
            options = entry.get("ui:options")
            if isinstance(options, Mapping):
                patch["widget_options"] = dict(options)
            graph = update_node(graph, child.id, patch)

        if child.kind is NodeKind.OBJECT:
            graph = _apply_widgets(graph, child.id, entry, registry, warnings)
    return graph

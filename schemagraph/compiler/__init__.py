"""
Schema compiler: graph to document and back.

This package provides:
- compile_graph / decompile_document: the two directions of the mapping
- validate_document / validate_combined: shallow pre-import checks
- import_document / import_combined / export_graph: the file surfaces
- generate_ui_schema: companion UI document
"""

from .compiler import SchemaCompiler, compile_graph
from .conditions import compile_condition, parse_condition
from .decompiler import SchemaDecompiler, decompile_document
from .exporter import (
    ExportBundle,
    ImportResult,
    SchemaSummary,
    export_graph,
    import_combined,
    import_document,
    summarize_document,
)
from .import_validator import ValidationResult, validate_combined, validate_document
from .ui_schema import generate_ui_schema

__all__ = [
    # Compile
    "SchemaCompiler",
    "compile_graph",
    "compile_condition",
    # Decompile
    "SchemaDecompiler",
    "decompile_document",
    "parse_condition",
    # Import / export
    "ValidationResult",
    "validate_document",
    "validate_combined",
    "SchemaSummary",
    "summarize_document",
    "ExportBundle",
    "ImportResult",
    "export_graph",
    "import_document",
    "import_combined",
    # UI
    "generate_ui_schema",
]

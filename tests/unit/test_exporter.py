"""
Unit tests for the import and export surfaces.

Tests cover:
- Document summaries
- Export bundles (schema, uiSchema, summary, warnings)
- Plain document import
- Combined import with widget selections and form data
"""

import pytest

from schemagraph.compiler.exporter import (
    SchemaSummary,
    export_graph,
    import_combined,
    import_document,
    summarize_document,
)
from schemagraph.errors import ImportMalformedError
from schemagraph.graph.definitions import create_definition, remove_definition
from schemagraph.graph.model import ROOT_ID, create_empty_graph
from schemagraph.graph.operations import add_node
from schemagraph.graph.types import draft
from schemagraph.widgets.registry import create_default_registry


class TestSummarizeDocument:
    """Tests for summarize_document."""

    def test_counts(self):
        """Fields, definitions and conditionals are counted at the top level."""
        document = {
            "type": "object",
            "properties": {"a": {}, "b": {}, "c": {}},
            "definitions": {"x": {}},
            "allOf": [{"if": {}}, {"if": {}}],
            "anyOf": [{"if": {}}],
            "if": {"properties": {"a": {"const": 1}}},
        }
        summary = summarize_document(document)
        assert summary == SchemaSummary(field_count=3, definition_count=1, conditional_count=4)

    def test_nested_fields_not_counted(self):
        """Only top-level properties count as fields."""
        document = {"properties": {"outer": {"type": "object", "properties": {"inner": {}}}}}
        assert summarize_document(document).field_count == 1

    def test_not_a_document(self):
        """Anything else summarizes to zeros."""
        assert summarize_document(None).to_dict() == {
            "field_count": 0,
            "definition_count": 0,
            "conditional_count": 0,
        }


class TestExportGraph:
    """Tests for export_graph."""

    def test_bundle(self):
        """The bundle carries schema, UI schema, summary and warnings."""
        graph, _ = add_node(create_empty_graph(title="Signup"), draft("string", "Email"), ROOT_ID)
        bundle = export_graph(graph)
        assert bundle.schema == {
            "type": "object",
            "title": "Signup",
            "properties": {"email": {"type": "string", "title": "Email"}},
        }
        assert bundle.ui_schema["email"]["ui:widget"] == "text"
        assert bundle.summary.field_count == 1
        assert bundle.warnings == []

    def test_to_dict(self):
        """to_dict uses the combined import format."""
        d = export_graph(create_empty_graph()).to_dict()
        assert set(d) == {"schema", "uiSchema", "summary", "warnings"}

    def test_warnings_include_graph_problems(self):
        """Dangling references show up as export warnings."""
        graph, _ = create_definition(create_empty_graph(), "address", draft("object", "Address"))
        graph, _ = add_node(graph, draft("reference", "Home", target="address"), ROOT_ID)
        graph, _ = remove_definition(graph, "address")
        bundle = export_graph(graph)
        assert any("unknown definition 'address'" in w for w in bundle.warnings)


class TestImportDocument:
    """Tests for import_document."""

    def test_import(self):
        """A valid document imports into a graph."""
        graph, warnings = import_document(
            {"type": "object", "properties": {"name": {"type": "string"}}}
        )
        assert [c.key for c in graph.children(ROOT_ID)] == ["name"]
        assert warnings == []

    def test_check_warnings_are_kept(self):
        """Pre-import warnings are returned with decompiler warnings."""
        _, warnings = import_document({"type": "object", "oneOf": []})
        assert "oneOf is empty" in warnings

    def test_rejected_document(self):
        """Failing pre-import checks raise ImportMalformedError with every error."""
        with pytest.raises(ImportMalformedError) as exc_info:
            import_document({"properties": [], "definitions": 3})
        assert exc_info.value.issues == [
            "properties must be an object",
            "definitions must be an object",
        ]


UNUSUAL_DOCUMENTS = [
    {"type": "object", "properties": {"n": {"type": "number", "minimum": "a", "maximum": 1}}},
    {"type": "object", "properties": {"s": {"type": "string", "pattern": 3}}},
    {"type": "object", "properties": {"s": {"type": {"enum": ["x"]}}}},
    {"type": "object", "properties": {"s": {"type": ["null", {"x": 1}]}}},
    {"type": "object", "properties": {"s": {"type": "string", "title": 9}}},
    {"type": "object", "properties": {"a": {"type": "array", "items": {"title": 2}}}},
    {"type": "object", "properties": {"e": {"enum": "abc"}}},
    {"type": "object", "properties": {"c": {"type": "string", "minLength": True}}},
    {
        "type": "object",
        "properties": {"kind": {"type": "string"}},
        "allOf": [
            {"if": {"properties": {"kind": {"const": "a"}}, "required": ["kind"]}},
            {"required": ["kind"]},
        ],
    },
    {
        "type": "object",
        "properties": {"n": {"type": "integer", "minimum": 5, "maximum": 1}},
        "x-extra": {"keep": True},
    },
]


class TestImportedGraphsExport:
    """A document that imports always exports."""

    @pytest.mark.parametrize("document", UNUSUAL_DOCUMENTS)
    def test_import_then_export(self, document):
        try:
            graph, _ = import_document(document)
        except ImportMalformedError as e:
            assert e.issues
            return
        bundle = export_graph(graph)
        reimported, _ = import_document(bundle.schema)
        assert export_graph(reimported).schema == bundle.schema

    def test_inverted_bounds_become_warnings(self):
        """Well-typed but inconsistent bounds import and export with a warning."""
        graph, _ = import_document(UNUSUAL_DOCUMENTS[-1])
        bundle = export_graph(graph)
        assert any("minimum (5) is greater than maximum (1)" in w for w in bundle.warnings)


class TestImportCombined:
    """Tests for import_combined."""

    def test_widgets_applied(self):
        """ui:widget and ui:options are set on the matching nodes."""
        payload = {
            "schema": {
                "type": "object",
                "properties": {
                    "bio": {"type": "string"},
                    "address": {
                        "type": "object",
                        "properties": {"notes": {"type": "string"}},
                    },
                },
            },
            "uiSchema": {
                "bio": {"ui:widget": "textarea", "ui:options": {"rows": 4}},
                "address": {"notes": {"ui:widget": "textarea"}},
            },
            "formData": {"bio": "Hello"},
        }
        result = import_combined(payload, registry=create_default_registry())
        bio, address = result.graph.children(ROOT_ID)
        assert bio.widget == "textarea"
        assert bio.widget_options == {"rows": 4}
        assert result.graph.children(address.id)[0].widget == "textarea"
        assert result.form_data == {"bio": "Hello"}
        assert result.warnings == []

    def test_unregistered_widget_warns(self):
        """Unknown widgets are kept with a warning."""
        payload = {
            "schema": {"type": "object", "properties": {"bio": {"type": "string"}}},
            "uiSchema": {"bio": {"ui:widget": "rich-editor"}},
        }
        result = import_combined(payload)
        assert result.graph.children(ROOT_ID)[0].widget == "rich-editor"
        assert any("'rich-editor'" in w for w in result.warnings)

    def test_missing_schema(self):
        """Bundles without a schema are rejected."""
        with pytest.raises(ImportMalformedError, match="Missing required field: schema"):
            import_combined({"uiSchema": {}})

    def test_malformed_optional_parts_dropped(self):
        """A non-object formData is dropped with a warning."""
        result = import_combined({"schema": {"type": "object"}, "formData": [1, 2]})
        assert result.form_data is None
        assert "formData must be an object" in result.warnings

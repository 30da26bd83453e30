"""
Unit tests for pre-import checks.

Tests cover:
- Required content keywords
- Container type checks for properties, definitions and schema lists
- Unknown types as warnings
- Combined bundles with uiSchema and formData
"""

import pytest

from schemagraph.compiler.import_validator import (
    ValidationResult,
    validate_combined,
    validate_document,
)


class TestValidateDocument:
    """Tests for validate_document."""

    def test_minimal_document(self):
        """A bare object type is valid."""
        result = validate_document({"type": "object"})
        assert result.valid
        assert result.errors == []
        assert result.warnings == []

    @pytest.mark.parametrize(
        "keyword,value",
        [
            ("properties", {}),
            ("definitions", {}),
            ("allOf", [{}]),
            ("anyOf", [{}]),
            ("oneOf", [{}]),
            ("if", {}),
        ],
    )
    def test_any_content_keyword_suffices(self, keyword, value):
        """Any one content keyword makes the document importable."""
        assert validate_document({keyword: value}).valid

    def test_not_an_object(self):
        """Non-objects are rejected."""
        result = validate_document(["type", "object"])
        assert result.errors == ["Schema must be an object"]

    def test_no_content(self):
        """A document with no content keyword is rejected."""
        result = validate_document({"title": "Nothing"})
        assert not result.valid
        assert result.errors == [
            "Schema must have at least one of: type, properties, definitions, allOf, anyOf, oneOf, if"
        ]

    def test_properties_must_be_object(self):
        """properties must be a mapping."""
        result = validate_document({"type": "object", "properties": ["a"]})
        assert "properties must be an object" in result.errors

    def test_definitions_must_be_object(self):
        """definitions must be a mapping."""
        result = validate_document({"definitions": "x"})
        assert "definitions must be an object" in result.errors

    def test_schema_list_checks(self):
        """allOf/anyOf/oneOf must be arrays of objects."""
        result = validate_document({"allOf": {"a": 1}, "anyOf": [1, {}]})
        assert "allOf must be an array" in result.errors
        assert "anyOf[0] must be an object" in result.errors

    def test_empty_schema_list_warns(self):
        """An empty schema list is a warning, not an error."""
        result = validate_document({"oneOf": []})
        assert result.valid
        assert result.warnings == ["oneOf is empty"]

    def test_if_branches_must_be_objects(self):
        """if/then/else must be schema objects."""
        result = validate_document({"if": {}, "then": True})
        assert "then must be an object" in result.errors

    def test_unknown_type_warns(self):
        """Unknown types warn but do not block."""
        result = validate_document({"type": "uuid"})
        assert result.valid
        assert result.warnings == ["Unknown type: uuid"]

    def test_unknown_types_in_list(self):
        """Unknown entries of a type list are reported together."""
        result = validate_document({"type": ["string", "date", "uuid"]})
        assert result.warnings == ["Unknown types: date, uuid"]

    def test_errors_accumulate(self):
        """Every problem is reported."""
        result = validate_document({"properties": 1, "definitions": 2, "oneOf": 3})
        assert len(result.errors) == 3


class TestValidateCombined:
    """Tests for validate_combined."""

    def test_valid_bundle(self):
        """A bundle with all three parts is valid."""
        result = validate_combined(
            {"schema": {"type": "object"}, "uiSchema": {}, "formData": {"a": 1}}
        )
        assert result.valid
        assert result.warnings == []

    def test_not_an_object(self):
        """Non-object payloads are rejected."""
        assert validate_combined("schema").errors == ["Import data must be an object"]

    def test_schema_required(self):
        """The schema part is required."""
        result = validate_combined({"uiSchema": {}})
        assert result.errors == ["Missing required field: schema"]

    def test_schema_errors_propagate(self):
        """Schema problems are reported for the bundle."""
        result = validate_combined({"schema": {"title": "x"}})
        assert not result.valid

    def test_bad_optional_parts_warn(self):
        """Malformed uiSchema and formData only warn."""
        result = validate_combined({"schema": {"type": "object"}, "uiSchema": [], "formData": 3})
        assert result.valid
        assert result.warnings == ["uiSchema must be an object", "formData must be an object"]


class TestValidationResult:
    """Tests for ValidationResult."""

    def test_extend_and_to_dict(self):
        """Results merge and serialize."""
        result = ValidationResult(errors=["a"])
        result.extend(ValidationResult(warnings=["w"]))
        assert result.to_dict() == {"valid": False, "errors": ["a"], "warnings": ["w"]}

"""
Pre-import checks for documents and combined bundles.

These checks are shallow: they look at the top level of a document and
report what would make an import pointless (no schema content at all,
wrong container types). Deep problems surface from the decompiler.

Invariants:
    - Validation never raises for bad input; problems are returned
    - valid is True exactly when errors is empty
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

KNOWN_TYPES = frozenset({"string", "number", "integer", "boolean", "object", "array", "null"})

_CONTENT_KEYWORDS = ("type", "properties", "definitions", "allOf", "anyOf", "oneOf", "if")


@dataclass
class ValidationResult:
    """Outcome of a pre-import check.

    Attributes:
        errors: Problems that block the import
        warnings: Problems worth showing but not blocking
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def extend(self, other: ValidationResult) -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors), "warnings": list(self.warnings)}


def validate_document(document: Any) -> ValidationResult:
    """Check that ``document`` is worth handing to the decompiler.

    Example:
        >>> validate_document({"title": "x"}).errors
        ['Schema must have at least one of: type, properties, definitions, allOf, anyOf, oneOf, if']
    """
    result = ValidationResult()
    if not isinstance(document, Mapping):
        result.errors.append("Schema must be an object")
        return result

    if not any(keyword in document for keyword in _CONTENT_KEYWORDS):
        result.errors.append(
            "Schema must have at least one of: " + ", ".join(_CONTENT_KEYWORDS)
        )

    if "type" in document:
        _check_type(document["type"], result)

    for keyword in ("properties", "definitions"):
        if keyword in document and not isinstance(document[keyword], Mapping):
            result.errors.append(f"{keyword} must be an object")

    for keyword in ("allOf", "anyOf", "oneOf"):
        if keyword in document:
            _check_schema_list(keyword, document[keyword], result)

    if "if" in document:
        for keyword in ("if", "then", "else"):
            if keyword in document and not isinstance(document[keyword], Mapping):
                result.errors.append(f"{keyword} must be an object")

    return result


def _check_type(declared: Any, result: ValidationResult) -> None:
    if isinstance(declared, str):
        if declared not in KNOWN_TYPES:
            result.warnings.append(f"Unknown type: {declared}")
    elif isinstance(declared, list):
        unknown = [t for t in declared if isinstance(t, str) and t not in KNOWN_TYPES]
        if unknown:
            result.warnings.append(f"Unknown types: {', '.join(unknown)}")


def _check_schema_list(keyword: str, value: Any, result: ValidationResult) -> None:
    if not isinstance(value, list):
        result.errors.append(f"{keyword} must be an array")
        return
    if not value:
        result.warnings.append(f"{keyword} is empty")
    for index, item in enumerate(value):
        if not isinstance(item, Mapping):
            result.errors.append(f"{keyword}[{index}] must be an object")


def validate_combined(payload: Any) -> ValidationResult:
    """Check a ``{schema, uiSchema?, formData?}`` bundle.

    The schema is checked with validate_document. A malformed uiSchema
    or formData only warns; they are dropped on import.
    """
    result = ValidationResult()
    if not isinstance(payload, Mapping):
        result.errors.append("Import data must be an object")
        return result

    if "schema" not in payload:
        result.errors.append("Missing required field: schema")
    else:
        result.extend(validate_document(payload["schema"]))

    for keyword in ("uiSchema", "formData"):
        if keyword in payload and not isinstance(payload[keyword], Mapping):
            result.warnings.append(f"{keyword} must be an object")
    return result

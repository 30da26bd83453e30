"""
Condition fragments.

A clause condition compiles to a fragment that tests one property:

    {"properties": {<field>: <comparison>}, "required": [<field>]}

The comparison depends on the operator (const, not/const, exclusive
bounds, inclusive bounds, a pattern, or the empty/not-empty shapes).
parse_condition reverses the mapping.

Invariants:
    - parse_condition(compile_condition(c)) == c for every operator
    - Pattern operators embed the value verbatim (it is a regex fragment)
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from ..graph.types import Condition, ConditionOperator

EMPTY_COMPARISON: dict[str, Any] = {
    "oneOf": [{"type": "string", "maxLength": 0}, {"type": "null"}]
}
NOT_EMPTY_COMPARISON: dict[str, Any] = {"allOf": [{"type": "string"}, {"minLength": 1}]}

_BOUND_KEYWORDS = {
    ConditionOperator.GREATER_THAN: "exclusiveMinimum",
    ConditionOperator.LESS_THAN: "exclusiveMaximum",
    ConditionOperator.GREATER_EQUAL: "minimum",
    ConditionOperator.LESS_EQUAL: "maximum",
}


def compile_comparison(condition: Condition) -> dict[str, Any]:
    """Comparison fragment applied to the tested property."""
    op = condition.operator
    value = condition.value
    if op is ConditionOperator.EQUALS:
        return {"const": value}
    if op is ConditionOperator.NOT_EQUALS:
        return {"not": {"const": value}}
    if op in _BOUND_KEYWORDS:
        return {_BOUND_KEYWORDS[op]: value}
    if op is ConditionOperator.CONTAINS:
        return {"pattern": f".*{value}.*"}
    if op is ConditionOperator.STARTS_WITH:
        return {"pattern": f"^{value}.*"}
    if op is ConditionOperator.ENDS_WITH:
        return {"pattern": f".*{value}$"}
    if op is ConditionOperator.EMPTY:
        return dict(EMPTY_COMPARISON)
    return dict(NOT_EMPTY_COMPARISON)


def compile_condition(condition: Condition) -> dict[str, Any]:
    """Full ``if`` fragment for a single condition."""
    return {
        "properties": {condition.field: compile_comparison(condition)},
        "required": [condition.field],
    }


def is_condition_fragment(fragment: Any) -> bool:
    """Whether ``fragment`` looks like a compiled condition."""
    return (
        isinstance(fragment, Mapping)
        and isinstance(fragment.get("properties"), Mapping)
        and len(fragment["properties"]) > 0
    )


def parse_condition(fragment: Any, path: str) -> tuple[Condition | None, list[str]]:
    """Read a condition back from an ``if`` fragment.

    Args:
        fragment: The ``if`` fragment
        path: Document path used in messages

    Returns:
        Tuple of (condition or None when the fragment has no property
        test, warnings)
    """
    warnings: list[str] = []
    if not is_condition_fragment(fragment):
        return None, warnings

    entries = list(fragment["properties"].items())
    field, comparison = entries[0]
    if len(entries) > 1:
        ignored = [name for name, _ in entries[1:]]
        warnings.append(
            f"{path}: condition tests several properties; only '{field}' is kept, "
            f"ignoring {ignored}"
        )

    parsed = _parse_comparison(comparison)
    if parsed is None:
        warnings.append(f"{path}: unrecognized comparison for '{field}', treated as equals ''")
        return Condition(field=field, operator=ConditionOperator.EQUALS, value=""), warnings
    operator, value = parsed
    return Condition(field=field, operator=operator, value=value), warnings


def _parse_comparison(comparison: Any) -> tuple[ConditionOperator, Any] | None:
    if not isinstance(comparison, Mapping):
        return None
    if "const" in comparison:
        return ConditionOperator.EQUALS, comparison["const"]
    negated = comparison.get("not")
    if isinstance(negated, Mapping) and "const" in negated:
        return ConditionOperator.NOT_EQUALS, negated["const"]
    for op, keyword in _BOUND_KEYWORDS.items():
        if keyword in comparison:
            return op, comparison[keyword]
    if dict(comparison) == EMPTY_COMPARISON:
        return ConditionOperator.EMPTY, None
    if dict(comparison) == NOT_EMPTY_COMPARISON:
        return ConditionOperator.NOT_EMPTY, None

    pattern = comparison.get("pattern")
    if not isinstance(pattern, str):
        return None
    if pattern.startswith("^") and pattern.endswith(".*"):
        return ConditionOperator.STARTS_WITH, pattern[1:-2]
    if pattern.startswith(".*") and pattern.endswith("$"):
        return ConditionOperator.ENDS_WITH, pattern[2:-1]
    if pattern.startswith(".*") and pattern.endswith(".*") and len(pattern) >= 4:
        return ConditionOperator.CONTAINS, pattern[2:-2]
    return ConditionOperator.EQUALS, pattern

"""
Core type definitions for the schema graph.

This module defines the value types the graph is built from:
- NodeKind / EdgeKind: what a node is and how it hangs off its parent
- StringAttrs, NumberAttrs, ...: kind-specific validation attributes
- Condition / Clause: the logic held by conditional nodes
- Node: a single vertex of the graph
- NodeDraft: the caller-supplied shape of a node before it gets an id

Invariants:
    - Every Node carries exactly the attribute variant of its kind
    - Nodes are immutable; operations build new nodes with replace()
    - Attribute field names map one-to-one onto document keywords
    - UNSET means "no default", distinct from an explicit None default

How to change safely:
    - New validation attributes go on the variant of their kind, with
      their document keyword in KEYWORDS
    - Never reuse a NodeKind value for a different meaning; values are
      the kind names used in serialized graphs

Example:
    >>> from schemagraph.graph.types import draft
    >>> age = draft("number", "Age", required=True, minimum=0)
    >>> age.attrs
    NumberAttrs(minimum=0, maximum=None, multiple_of=None, ...)
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Union

from ..errors import InvalidOperationError


class _Unset:
    """Marker for an absent default value."""

    _instance: ClassVar[_Unset | None] = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Any = _Unset()


class NodeKind(Enum):
    """Node types in the schema graph.

    Values are the names used in serialized graphs and in the HTTP API.
    """

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ENUM = "enum"
    OBJECT = "object"
    ARRAY = "array"
    IF = "if"
    ALL_OF = "allOf"
    ANY_OF = "anyOf"
    ONE_OF = "oneOf"
    DEFINITION = "definition"
    REFERENCE = "reference"

    @classmethod
    def from_str(cls, value: str) -> NodeKind:
        """Convert string representation to NodeKind.

        Raises:
            ValueError: If value is not a valid node kind
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid node kind '{value}'. Valid kinds: {valid}")

    @property
    def is_conditional(self) -> bool:
        return self in CONDITIONAL_KINDS

    @property
    def is_leaf(self) -> bool:
        return self in LEAF_KINDS


CONDITIONAL_KINDS = frozenset({NodeKind.IF, NodeKind.ALL_OF, NodeKind.ANY_OF, NodeKind.ONE_OF})

LEAF_KINDS = frozenset(
    {NodeKind.STRING, NodeKind.NUMBER, NodeKind.BOOLEAN, NodeKind.ENUM, NodeKind.REFERENCE}
)


class EdgeKind(Enum):
    """Edge types: structural containment or a conditional branch."""

    CHILD = "child"
    THEN = "then"
    ELSE = "else"

    @classmethod
    def from_str(cls, value: str) -> EdgeKind:
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid edge kind '{value}'. Valid kinds: {valid}")

    @property
    def is_branch(self) -> bool:
        return self is not EdgeKind.CHILD


class ConditionOperator(Enum):
    """Comparison operators a condition can apply to its field."""

    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_EQUAL = "greater_equal"
    LESS_EQUAL = "less_equal"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    EMPTY = "empty"
    NOT_EMPTY = "not_empty"

    @classmethod
    def from_str(cls, value: str) -> ConditionOperator:
        for op in cls:
            if op.value == value:
                return op
        valid = [o.value for o in cls]
        raise ValueError(f"Invalid condition operator '{value}'. Valid operators: {valid}")


# =============================================================================
# Attribute variants
# =============================================================================


class _Attrs:
    """Shared behaviour of the attribute variants.

    KEYWORDS maps each dataclass field onto its document keyword.
    """

    KEYWORDS: ClassVar[dict[str, str]] = {}

    def to_keywords(self) -> dict[str, Any]:
        """Document keywords for the attributes that are set."""
        out: dict[str, Any] = {}
        for name, keyword in self.KEYWORDS.items():
            value = getattr(self, name)
            if value is None:
                continue
            out[keyword] = list(value) if isinstance(value, tuple) else value
        return out

    @classmethod
    def from_keywords(cls, fragment: Mapping[str, Any]) -> tuple[Any, set[str]]:
        """Build attributes from a document fragment.

        Returns:
            Tuple of (attributes, keywords consumed from the fragment)
        """
        values: dict[str, Any] = {}
        consumed: set[str] = set()
        for name, keyword in cls.KEYWORDS.items():
            if keyword in fragment:
                value = fragment[keyword]
                values[name] = tuple(value) if isinstance(value, list) else value
                consumed.add(keyword)
        return cls(**values), consumed

    def merge(self, changes: Mapping[str, Any]) -> Any:
        """Return a copy with ``changes`` applied.

        Raises:
            InvalidOperationError: If a change names an unknown attribute
        """
        names = {f.name for f in dataclasses.fields(self)}  # type: ignore[arg-type]
        unknown = sorted(set(changes) - names)
        if unknown:
            raise InvalidOperationError(
                f"Unknown attribute(s) for {type(self).__name__}: {unknown}",
                attributes=unknown,
            )
        normalized = {k: tuple(v) if isinstance(v, list) else v for k, v in changes.items()}
        return dataclasses.replace(self, **normalized)  # type: ignore[type-var]

    def to_dict(self) -> dict[str, Any]:
        return {
            f.name: list(getattr(self, f.name))
            if isinstance(getattr(self, f.name), tuple)
            else getattr(self, f.name)
            for f in dataclasses.fields(self)  # type: ignore[arg-type]
            if getattr(self, f.name) is not None
        }


@dataclass(frozen=True)
class StringAttrs(_Attrs):
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    format: str | None = None

    KEYWORDS: ClassVar[dict[str, str]] = {
        "min_length": "minLength",
        "max_length": "maxLength",
        "pattern": "pattern",
        "format": "format",
    }


@dataclass(frozen=True)
class NumberAttrs(_Attrs):
    minimum: float | None = None
    maximum: float | None = None
    multiple_of: float | None = None
    exclusive_minimum: float | None = None
    exclusive_maximum: float | None = None

    KEYWORDS: ClassVar[dict[str, str]] = {
        "minimum": "minimum",
        "maximum": "maximum",
        "multiple_of": "multipleOf",
        "exclusive_minimum": "exclusiveMinimum",
        "exclusive_maximum": "exclusiveMaximum",
    }


@dataclass(frozen=True)
class BooleanAttrs(_Attrs):
    pass


@dataclass(frozen=True)
class EnumAttrs(_Attrs):
    """Enumeration values.

    Attributes:
        values: Allowed values, in display order
        names: Optional display names, parallel to values
        value_type: Declared primitive type of the values ("string" unless imported otherwise)
    """

    values: tuple[Any, ...] = ()
    names: tuple[str, ...] | None = None
    value_type: str | None = "string"

    KEYWORDS: ClassVar[dict[str, str]] = {
        "value_type": "type",
        "values": "enum",
        "names": "enumNames",
    }

    @classmethod
    def from_keywords(cls, fragment: Mapping[str, Any]) -> tuple[Any, set[str]]:
        attrs, consumed = super().from_keywords(fragment)
        if "type" not in fragment:
            attrs = dataclasses.replace(attrs, value_type=None)
        return attrs, consumed


@dataclass(frozen=True)
class ObjectAttrs(_Attrs):
    min_properties: int | None = None
    max_properties: int | None = None
    additional_properties: Any = None

    KEYWORDS: ClassVar[dict[str, str]] = {
        "min_properties": "minProperties",
        "max_properties": "maxProperties",
        "additional_properties": "additionalProperties",
    }


@dataclass(frozen=True)
class ArrayAttrs(_Attrs):
    min_items: int | None = None
    max_items: int | None = None
    unique_items: bool | None = None
    additional_items: Any = None

    KEYWORDS: ClassVar[dict[str, str]] = {
        "min_items": "minItems",
        "max_items": "maxItems",
        "unique_items": "uniqueItems",
        "additional_items": "additionalItems",
    }


@dataclass(frozen=True)
class Condition:
    """Predicate on a sibling field.

    Attributes:
        field: Key of the field being tested
        operator: Comparison to apply
        value: Operand; ignored by EMPTY and NOT_EMPTY
    """

    field: str = ""
    operator: ConditionOperator = ConditionOperator.EQUALS
    value: Any = None

    def __post_init__(self) -> None:
        if isinstance(self.operator, str):
            object.__setattr__(self, "operator", ConditionOperator.from_str(self.operator))
        if self.operator in (ConditionOperator.EMPTY, ConditionOperator.NOT_EMPTY):
            object.__setattr__(self, "value", None)

    def to_dict(self) -> dict[str, Any]:
        return {"field": self.field, "operator": self.operator.value, "value": self.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Condition:
        operator = data.get("operator", ConditionOperator.EQUALS)
        if not isinstance(operator, ConditionOperator):
            operator = ConditionOperator.from_str(operator)
        return cls(field=data.get("field", ""), operator=operator, value=data.get("value"))


@dataclass(frozen=True)
class Clause:
    """One condition with its optional branch targets (node ids)."""

    condition: Condition = field(default_factory=Condition)
    then: str | None = None
    else_: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"condition": self.condition.to_dict(), "then": self.then, "else": self.else_}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Clause:
        condition = data.get("condition") or {}
        if not isinstance(condition, Condition):
            condition = Condition.from_dict(condition)
        return cls(
            condition=condition,
            then=data.get("then"),
            else_=data.get("else", data.get("else_")),
        )


@dataclass(frozen=True)
class ConditionalAttrs(_Attrs):
    clauses: tuple[Clause, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"clauses": [c.to_dict() for c in self.clauses]}


@dataclass(frozen=True)
class DefinitionAttrs(_Attrs):
    name: str = ""


@dataclass(frozen=True)
class ReferenceAttrs(_Attrs):
    target: str = ""


NodeAttrs = Union[
    StringAttrs,
    NumberAttrs,
    BooleanAttrs,
    EnumAttrs,
    ObjectAttrs,
    ArrayAttrs,
    ConditionalAttrs,
    DefinitionAttrs,
    ReferenceAttrs,
]

ATTRS_BY_KIND: dict[NodeKind, type] = {
    NodeKind.STRING: StringAttrs,
    NodeKind.NUMBER: NumberAttrs,
    NodeKind.BOOLEAN: BooleanAttrs,
    NodeKind.ENUM: EnumAttrs,
    NodeKind.OBJECT: ObjectAttrs,
    NodeKind.ARRAY: ArrayAttrs,
    NodeKind.IF: ConditionalAttrs,
    NodeKind.ALL_OF: ConditionalAttrs,
    NodeKind.ANY_OF: ConditionalAttrs,
    NodeKind.ONE_OF: ConditionalAttrs,
    NodeKind.DEFINITION: DefinitionAttrs,
    NodeKind.REFERENCE: ReferenceAttrs,
}


def attrs_for(kind: NodeKind, values: Mapping[str, Any] | None = None) -> NodeAttrs:
    """Build the attribute variant of ``kind`` from plain values."""
    attrs = ATTRS_BY_KIND[kind]()
    if values:
        attrs = attrs.merge(values)
    return attrs


# =============================================================================
# Nodes
# =============================================================================


def _freeze_mapping(value: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(value or {}))


@dataclass(frozen=True)
class Node:
    """A vertex of the schema graph.

    Attributes:
        id: Opaque unique identifier
        key: Property name in the compiled document (sibling-unique)
        kind: Node type
        title: Human-readable title
        description: Human-readable description
        required: Whether the parent lists this key as required
        default: Default value, or UNSET
        attrs: Attribute variant matching ``kind``
        widget: Selected widget id, if any
        widget_options: Options passed to the widget
        extras: Unknown document keywords kept for pass-through

    Invariants:
        - type(attrs) is ATTRS_BY_KIND[kind]
    """

    id: str
    key: str
    kind: NodeKind
    title: str | None = None
    description: str | None = None
    required: bool = False
    default: Any = UNSET
    attrs: Any = None
    widget: str | None = None
    widget_options: Mapping[str, Any] = field(default_factory=dict)
    extras: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        expected = ATTRS_BY_KIND[self.kind]
        if self.attrs is None:
            object.__setattr__(self, "attrs", expected())
        elif type(self.attrs) is not expected:
            raise ValueError(
                f"Node '{self.id}' of kind {self.kind.value} needs {expected.__name__}, "
                f"got {type(self.attrs).__name__}"
            )
        object.__setattr__(self, "widget_options", _freeze_mapping(self.widget_options))
        object.__setattr__(self, "extras", _freeze_mapping(self.extras))

    @property
    def has_default(self) -> bool:
        return self.default is not UNSET

    @property
    def clauses(self) -> tuple[Clause, ...]:
        """Clauses of a conditional node; empty for every other kind."""
        if isinstance(self.attrs, ConditionalAttrs):
            return self.attrs.clauses
        return ()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        result: dict[str, Any] = {
            "id": self.id,
            "key": self.key,
            "kind": self.kind.value,
            "required": self.required,
            "attrs": self.attrs.to_dict(),
        }
        if self.title is not None:
            result["title"] = self.title
        if self.description is not None:
            result["description"] = self.description
        if self.has_default:
            result["default"] = self.default
        if self.widget is not None:
            result["widget"] = self.widget
        if self.widget_options:
            result["widget_options"] = dict(self.widget_options)
        if self.extras:
            result["extras"] = dict(self.extras)
        return result


# Fields a patch may change directly on a Node
NODE_VALUE_FIELDS = frozenset(
    {"key", "title", "description", "required", "default", "widget", "widget_options", "extras"}
)

# Fields a patch may never change
NODE_FIXED_FIELDS = frozenset({"id", "kind"})


@dataclass(frozen=True)
class NodeDraft:
    """Node contents before the store assigns an id and an owning edge."""

    kind: NodeKind
    title: str | None = None
    key: str | None = None
    description: str | None = None
    required: bool = False
    default: Any = UNSET
    attrs: Any = None
    widget: str | None = None
    widget_options: Mapping[str, Any] = field(default_factory=dict)
    extras: Mapping[str, Any] = field(default_factory=dict)

    def build(self, node_id: str, key: str) -> Node:
        return Node(
            id=node_id,
            key=key,
            kind=self.kind,
            title=self.title,
            description=self.description,
            required=self.required,
            default=self.default,
            attrs=self.attrs,
            widget=self.widget,
            widget_options=self.widget_options,
            extras=self.extras,
        )


def draft(
    kind: NodeKind | str,
    title: str | None = None,
    *,
    key: str | None = None,
    description: str | None = None,
    required: bool = False,
    default: Any = UNSET,
    widget: str | None = None,
    widget_options: Mapping[str, Any] | None = None,
    extras: Mapping[str, Any] | None = None,
    **attributes: Any,
) -> NodeDraft:
    """Convenience function to create a NodeDraft.

    Keyword arguments that are not node fields become attributes of the
    kind's variant.

    Example:
        >>> draft("string", "Email", required=True, format="email")
        >>> draft("enum", "Color", values=("red", "green"))
    """
    if isinstance(kind, str):
        kind = NodeKind.from_str(kind)
    return NodeDraft(
        kind=kind,
        title=title,
        key=key,
        description=description,
        required=required,
        default=default,
        attrs=attrs_for(kind, attributes),
        widget=widget,
        widget_options=widget_options or {},
        extras=extras or {},
    )

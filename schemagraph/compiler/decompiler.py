"""
Document to graph decompiler.

Seeds a fresh graph from a JSON Schema document. The decoding rules
mirror compiler.py:
- ``enum`` wins over the declared type; ``integer`` narrows to number
- ``properties`` become object children in document order
- Single-schema ``items`` becomes the one array child
- ``$ref`` to ``#/definitions/<name>`` becomes a reference node
- Object-level ``if``/``allOf``/``anyOf``/``oneOf`` become conditional
  children when they have the shapes the compiler emits; other
  ``allOf`` entries stay in the object's extras
- Anything else lands in the node's extras, with a warning
- Values of the wrong JSON type (a numeric title, string bounds) are issues

Invariants:
    - decompile_document(compile_graph(g)) has the same signature as g
    - Every problem is reported at once in a single ImportMalformedError
    - The input document is never mutated

How to change safely:
    - A new decoding rule must not claim a shape the compiler emits for
      something else; extend the round-trip tests first
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from ..config import CompilerConfig, TupleItemsPolicy
from ..errors import ImportMalformedError
from ..graph.keys import derive_key, is_valid_key, unique_key
from ..graph.model import ROOT_ID, Graph, GraphBuilder, create_empty_graph, new_node_id
from ..graph.types import (
    ATTRS_BY_KIND,
    UNSET,
    Clause,
    ConditionalAttrs,
    DefinitionAttrs,
    EdgeKind,
    Node,
    NodeKind,
    ObjectAttrs,
    ReferenceAttrs,
)
from ..graph.validator import check_attribute_types
from .compiler import DEFINITIONS_KEYWORD, DEFINITIONS_POINTER, FAILING_BRANCH
from .conditions import is_condition_fragment, parse_condition

logger = logging.getLogger(__name__)

# Keywords every node reads itself
_ANNOTATIONS = frozenset({"title", "description", "default"})

# Keywords kept as extras without a warning
SILENT_KEYWORDS = frozenset(
    {"$schema", "$id", "$comment", "examples", "readOnly", "writeOnly", "deprecated"}
)

_GROUP_KEYWORDS = ("allOf", "anyOf", "oneOf")

# Kinds a single-property branch wrapper may hold as a field
_WRAPPABLE_KINDS = frozenset(
    {NodeKind.STRING, NodeKind.NUMBER, NodeKind.BOOLEAN, NodeKind.ENUM, NodeKind.ARRAY}
)

_TYPE_NAMES = {
    "string": NodeKind.STRING,
    "number": NodeKind.NUMBER,
    "integer": NodeKind.NUMBER,
    "boolean": NodeKind.BOOLEAN,
    "object": NodeKind.OBJECT,
    "array": NodeKind.ARRAY,
}

_KIND_FALLBACK_KEYS = {
    NodeKind.IF: "condition",
    NodeKind.ALL_OF: "all_of",
    NodeKind.ANY_OF: "any_of",
    NodeKind.ONE_OF: "one_of",
}


def _canonical(fragment: Any) -> str:
    return json.dumps(fragment, sort_keys=True, separators=(",", ":"), default=str)


def _title(fragment: Mapping[str, Any]) -> str | None:
    """Title usable for key derivation (non-string titles are reported by _node)."""
    title = fragment.get("title")
    return title if isinstance(title, str) else None


class SchemaDecompiler:
    """Builds one graph from one document.

    Attributes:
        config: Compiler settings (tuple items policy)
        issues: Errors found so far; any issue fails the import
        warnings: Lossy or unusual constructs that were accepted
    """

    def __init__(self, config: CompilerConfig | None = None) -> None:
        self.config = config or CompilerConfig()
        self.issues: list[str] = []
        self.warnings: list[str] = []
        self._definition_names: set[str] = set()
        # Extras decided while decoding children, keyed by node id
        self._kept_extras: dict[str, dict[str, Any]] = {}
        self._builder = GraphBuilder(create_empty_graph())

    def decompile(self, document: Any) -> tuple[Graph, list[str]]:
        """Decode ``document`` into a graph.

        Returns:
            Tuple of (graph, warnings)

        Raises:
            ImportMalformedError: With every issue found
        """
        if not isinstance(document, Mapping):
            raise ImportMalformedError(
                [f"#: document must be an object, got {type(document).__name__}"]
            )

        declared = document.get("type")
        if declared is not None and declared != "object":
            self.issues.append(f"#: root type must be 'object', got {declared!r}")

        consumed = {"type"}
        if DEFINITIONS_KEYWORD in document:
            consumed.add(DEFINITIONS_KEYWORD)
            self._definitions(document[DEFINITIONS_KEYWORD])

        attrs, attr_keywords = ObjectAttrs.from_keywords(document)
        consumed |= attr_keywords
        consumed |= self._object_children(ROOT_ID, document, "#")
        root = self._node(
            ROOT_ID, ROOT_ID, NodeKind.OBJECT, document, consumed, attrs, False, "#"
        )
        self._builder.put(root)

        if self.issues:
            raise ImportMalformedError(self.issues, self.warnings)
        for warning in self.warnings:
            logger.warning(warning)
        graph = self._builder.freeze()
        logger.info(
            f"Decompiled document into {len(graph)} nodes, "
            f"{len(graph.definitions)} definitions, {len(self.warnings)} warnings"
        )
        return graph, list(self.warnings)

    # =========================================================================
    # Nodes
    # =========================================================================

    def _node(
        self,
        node_id: str,
        key: str,
        kind: NodeKind,
        fragment: Mapping[str, Any],
        consumed: set[str],
        attrs: Any,
        required: bool,
        path: str,
    ) -> Node:
        extras = self._leftovers(kind, fragment, consumed, path)
        extras.update(self._kept_extras.pop(node_id, {}))
        return Node(
            id=node_id,
            key=key,
            kind=kind,
            title=self._text(fragment, "title", path),
            description=self._text(fragment, "description", path),
            required=required,
            default=fragment.get("default", UNSET),
            attrs=attrs,
            extras=extras,
        )

    def _text(self, fragment: Mapping[str, Any], keyword: str, path: str) -> str | None:
        value = fragment.get(keyword)
        if value is not None and not isinstance(value, str):
            self.issues.append(f"{path}/{keyword}: must be a string, got {value!r}")
            return None
        return value

    def _leftovers(
        self, kind: NodeKind, fragment: Mapping[str, Any], consumed: set[str], path: str
    ) -> dict[str, Any]:
        extras: dict[str, Any] = {}
        for keyword, value in fragment.items():
            if keyword in consumed or keyword in _ANNOTATIONS:
                continue
            extras[keyword] = value
            if keyword not in SILENT_KEYWORDS:
                self.warnings.append(
                    f"{path}: keyword '{keyword}' is not modelled for {kind.value} "
                    "and is passed through"
                )
        return extras

    def _infer_kind(self, fragment: Mapping[str, Any], path: str) -> NodeKind:
        if "enum" in fragment:
            return NodeKind.ENUM

        declared = fragment.get("type")
        if isinstance(declared, list):
            candidates = [t for t in declared if t != "null"]
            narrowed = candidates[0] if candidates else "string"
            self.warnings.append(f"{path}: type list {declared} narrowed to '{narrowed}'")
            declared = narrowed
        if declared is None:
            return NodeKind.ARRAY if "items" in fragment else NodeKind.OBJECT
        if not isinstance(declared, str):
            self.issues.append(
                f"{path}/type: must be a string or a list of strings, got {declared!r}"
            )
            return NodeKind.STRING
        if declared in _TYPE_NAMES:
            if declared == "integer":
                logger.debug(f"{path}: integer imported as number")
            return _TYPE_NAMES[declared]
        self.warnings.append(f"{path}: unsupported type {declared!r} imported as string")
        return NodeKind.STRING

    def _fragment(
        self,
        fragment: Any,
        parent_id: str,
        edge: EdgeKind,
        key: str,
        required: bool,
        path: str,
    ) -> str | None:
        """Decode a field-like fragment (anything but a bare conditional)."""
        if not isinstance(fragment, Mapping):
            self.issues.append(f"{path}: schema must be an object, got {type(fragment).__name__}")
            return None

        node_id = new_node_id()
        self._builder.attach(parent_id, node_id, edge)

        consumed: set[str]
        if "$ref" in fragment:
            kind = NodeKind.REFERENCE
            attrs: Any = ReferenceAttrs(target=self._ref_target(fragment["$ref"], path))
            consumed = {"$ref"}
        else:
            kind = self._infer_kind(fragment, path)
            attrs, consumed = ATTRS_BY_KIND[kind].from_keywords(fragment)
            for problem in check_attribute_types(kind, attrs):
                self.issues.append(f"{path}: {problem}")
            consumed.add("type")
            if kind is NodeKind.OBJECT:
                consumed |= self._object_children(node_id, fragment, path)
            elif kind is NodeKind.ARRAY:
                consumed |= self._array_items(node_id, fragment, path)

        self._builder.put(
            self._node(node_id, key, kind, fragment, consumed, attrs, required, path)
        )
        return node_id

    def _content(
        self, fragment: Any, parent_id: str, edge: EdgeKind, key: str, path: str
    ) -> str | None:
        """Decode a fragment that may also be a bare conditional construct."""
        kind = self._bare_conditional_kind(fragment)
        if kind is not None:
            return self._conditional(fragment, kind, parent_id, edge, path)
        return self._fragment(fragment, parent_id, edge, key, False, path)

    def _ref_target(self, pointer: Any, path: str) -> str:
        if not isinstance(pointer, str) or not pointer.startswith(DEFINITIONS_POINTER):
            self.issues.append(f"{path}: unsupported $ref {pointer!r}")
            return str(pointer)
        name = pointer[len(DEFINITIONS_POINTER):]
        if name not in self._definition_names:
            self.issues.append(f"{path}: $ref points at unknown definition '{name}'")
        return name

    # =========================================================================
    # Definitions
    # =========================================================================

    def _definitions(self, table: Any) -> None:
        if not isinstance(table, Mapping):
            self.issues.append("#/definitions: must be an object")
            return

        # Register every name first so references between definitions resolve
        def_ids: dict[str, str] = {}
        for name in table:
            def_id = new_node_id()
            self._builder.put(
                Node(
                    id=def_id,
                    key=name,
                    kind=NodeKind.DEFINITION,
                    attrs=DefinitionAttrs(name=name),
                )
            )
            self._builder.definitions[name] = def_id
            self._definition_names.add(name)
            def_ids[name] = def_id

        for name, fragment in table.items():
            if isinstance(fragment, Mapping) and not fragment:
                continue
            key = name if is_valid_key(name) else derive_key(name)
            self._content(
                fragment, def_ids[name], EdgeKind.CHILD, key, f"#/definitions/{name}"
            )

    # =========================================================================
    # Objects and arrays
    # =========================================================================

    def _object_children(self, node_id: str, fragment: Mapping[str, Any], path: str) -> set[str]:
        consumed: set[str] = set()

        required = fragment.get("required", [])
        if "required" in fragment:
            if isinstance(required, list) and all(isinstance(r, str) for r in required):
                consumed.add("required")
            else:
                self.issues.append(f"{path}/required: must be a list of property names")
                required = []

        properties = fragment.get("properties")
        if properties is not None:
            if not isinstance(properties, Mapping):
                self.issues.append(f"{path}/properties: must be an object")
                properties = {}
            else:
                consumed.add("properties")
            for key, sub in properties.items():
                if not is_valid_key(key):
                    self.warnings.append(
                        f"{path}/properties: property name '{key}' is not an identifier; "
                        "kept verbatim"
                    )
                self._fragment(
                    sub, node_id, EdgeKind.CHILD, key, key in required,
                    f"{path}/properties/{key}",
                )
        unknown = [r for r in required if r not in (properties or {})]
        if unknown:
            self.warnings.append(f"{path}/required: names unknown properties {unknown}; dropped")

        consumed |= self._object_conditionals(node_id, fragment, path)
        return consumed

    def _array_items(self, node_id: str, fragment: Mapping[str, Any], path: str) -> set[str]:
        if "items" not in fragment:
            return set()
        items = fragment["items"]
        item_path = f"{path}/items"
        if isinstance(items, list):
            if self.config.tuple_items is TupleItemsPolicy.REJECT:
                self.issues.append(f"{item_path}: tuple-form items are not supported")
                return {"items"}
            self.warnings.append(
                f"{item_path}: tuple-form items reduced to the first schema "
                f"({len(items)} given)"
            )
            if not items:
                return {"items"}
            items = items[0]
        if not isinstance(items, Mapping):
            self.issues.append(f"{item_path}: must be a schema object")
            return {"items"}
        self._content(
            items, node_id, EdgeKind.CHILD, derive_key(_title(items), "item"), item_path
        )
        return {"items"}

    # =========================================================================
    # Conditionals
    # =========================================================================

    def _object_conditionals(
        self, parent_id: str, fragment: Mapping[str, Any], path: str
    ) -> set[str]:
        consumed: set[str] = set()

        if "if" in fragment:
            block = {k: fragment[k] for k in ("if", "then", "else") if k in fragment}
            if self._conditional_kind(block) is NodeKind.IF:
                self._conditional(block, NodeKind.IF, parent_id, EdgeKind.CHILD, path)
                consumed |= set(block)
            else:
                self.warnings.append(f"{path}: unsupported 'if' condition is passed through")

        items = fragment.get("allOf")
        if isinstance(items, list):
            consumed.add("allOf")
            kept = []
            for index, item in enumerate(items):
                kind = self._conditional_kind(item)
                if kind is None:
                    kept.append(item)
                    continue
                self._conditional(item, kind, parent_id, EdgeKind.CHILD, f"{path}/allOf/{index}")
            if kept:
                self._kept_extras[parent_id] = {"allOf": kept}
                self.warnings.append(
                    f"{path}/allOf: {len(kept)} entries without a supported condition; "
                    "passed through after the conditionals"
                )
        elif items is not None:
            self.warnings.append(f"{path}/allOf: not a list; passed through")

        for keyword in ("anyOf", "oneOf"):
            if keyword not in fragment:
                continue
            group = {keyword: fragment[keyword]}
            kind = self._conditional_kind(group)
            if kind is not None:
                self._conditional(group, kind, parent_id, EdgeKind.CHILD, path)
                consumed.add(keyword)
            else:
                self.warnings.append(
                    f"{path}/{keyword}: entries without a supported condition; passed through"
                )
        return consumed

    def _conditional_kind(self, item: Any) -> NodeKind | None:
        """Conditional kind ``item`` decodes to, or None when unsupported."""
        if not isinstance(item, Mapping):
            return None
        if "if" in item:
            return NodeKind.IF if self._is_if_condition(item["if"]) else None
        present = [k for k in _GROUP_KEYWORDS if k in item]
        if len(present) != 1 or {"properties", "type", "$ref"} & set(item):
            return None
        clauses = item[present[0]]
        if not isinstance(clauses, list):
            return None
        for clause in clauses:
            if not (isinstance(clause, Mapping) and "if" in clause):
                return None
            if not is_condition_fragment(clause["if"]):
                return None
        return NodeKind.from_str(present[0])

    @staticmethod
    def _is_if_condition(fragment: Any) -> bool:
        if not isinstance(fragment, Mapping):
            return False
        if not fragment or is_condition_fragment(fragment):
            return True
        conditions = fragment.get("allOf")
        return (
            set(fragment) == {"allOf"}
            and isinstance(conditions, list)
            and len(conditions) > 0
            and all(is_condition_fragment(c) for c in conditions)
        )

    def _bare_conditional_kind(self, fragment: Any) -> NodeKind | None:
        """Conditional kind of a fragment that is nothing but a conditional."""
        if not isinstance(fragment, Mapping):
            return None
        if {"type", "$ref", "enum", "properties", "items"} & set(fragment):
            return None
        return self._conditional_kind(fragment)

    def _conditional(
        self,
        item: Mapping[str, Any],
        kind: NodeKind,
        parent_id: str,
        edge: EdgeKind,
        path: str,
    ) -> str:
        node_id = new_node_id()
        self._builder.attach(parent_id, node_id, edge)

        if kind is NodeKind.IF:
            clauses = self._if_clauses(node_id, item, path)
            consumed = {"if", "then", "else"}
        else:
            clauses = self._group_clauses(node_id, kind, item[kind.value], f"{path}/{kind.value}")
            consumed = {kind.value}

        taken = set()
        if edge is EdgeKind.CHILD:
            taken = {
                self._builder.nodes[e.target].key
                for e in self._builder.outgoing.get(parent_id, ())
                if e.kind is EdgeKind.CHILD and e.target in self._builder.nodes
            }
        key = unique_key(derive_key(_title(item), _KIND_FALLBACK_KEYS[kind]), taken)
        self._builder.put(
            self._node(
                node_id, key, kind, item, consumed, ConditionalAttrs(clauses=clauses), False, path
            )
        )
        return node_id

    def _if_clauses(self, node_id: str, item: Mapping[str, Any], path: str) -> tuple[Clause, ...]:
        test = item["if"]
        fragments = test["allOf"] if "allOf" in test else ([test] if test else [])
        conditions = []
        for index, fragment in enumerate(fragments):
            condition, warnings = parse_condition(fragment, f"{path}/if")
            self.warnings.extend(warnings)
            if condition is not None:
                conditions.append(condition)
            else:
                logger.debug(f"{path}/if: entry {index} has no property test")

        then_id = self._branch_at(item, "then", node_id, EdgeKind.THEN, path)
        else_id = self._branch_at(item, "else", node_id, EdgeKind.ELSE, path)
        return tuple(Clause(condition=c, then=then_id, else_=else_id) for c in conditions)

    def _branch_at(
        self, item: Mapping[str, Any], keyword: str, group_id: str, edge: EdgeKind, path: str
    ) -> str | None:
        if keyword not in item:
            return None
        return self._branch(item[keyword], group_id, edge, f"{path}/{keyword}")

    def _group_clauses(
        self, group_id: str, kind: NodeKind, entries: list[Any], path: str
    ) -> tuple[Clause, ...]:
        # Identical branch fragments share one node
        seen: dict[tuple[EdgeKind, str], str | None] = {}

        def shared(fragment: Any, edge: EdgeKind, branch_path: str) -> str | None:
            marker = (edge, _canonical(fragment))
            if marker not in seen:
                seen[marker] = self._branch(fragment, group_id, edge, branch_path)
            return seen[marker]

        clauses = []
        for index, entry in enumerate(entries):
            clause_path = f"{path}/{index}"
            condition, warnings = parse_condition(entry["if"], f"{clause_path}/if")
            self.warnings.extend(warnings)
            ignored = sorted(set(entry) - {"if", "then", "else"})
            if ignored:
                self.warnings.append(f"{clause_path}: clause keywords {ignored} are dropped")

            then_id = None
            if "then" in entry:
                then_id = shared(entry["then"], EdgeKind.THEN, f"{clause_path}/then")
            else_id = None
            if "else" in entry:
                failing = entry["else"] == FAILING_BRANCH and kind is not NodeKind.ALL_OF
                if not failing:
                    else_id = shared(entry["else"], EdgeKind.ELSE, f"{clause_path}/else")
            if condition is None:
                continue
            clauses.append(Clause(condition=condition, then=then_id, else_=else_id))
        return tuple(clauses)

    def _branch(self, fragment: Any, group_id: str, edge: EdgeKind, path: str) -> str | None:
        if not isinstance(fragment, Mapping):
            self.issues.append(f"{path}: branch must be a schema object")
            return None

        properties = fragment.get("properties")
        if (
            isinstance(properties, Mapping)
            and len(properties) == 1
            and set(fragment) <= {"properties", "required"}
        ):
            key, sub = next(iter(properties.items()))
            if self._wrappable(sub):
                required = fragment.get("required")
                return self._fragment(
                    sub, group_id, edge, key,
                    isinstance(required, list) and key in required,
                    f"{path}/properties/{key}",
                )

        key = derive_key(_title(fragment), edge.value)
        return self._content(fragment, group_id, edge, key, path)

    def _wrappable(self, sub: Any) -> bool:
        if not isinstance(sub, Mapping) or "$ref" in sub:
            return False
        if "enum" in sub:
            return True
        declared = sub.get("type")
        if declared is None:
            return "items" in sub
        if isinstance(declared, list):
            declared = next((t for t in declared if t != "null"), "string")
        if not isinstance(declared, str):
            return False
        return _TYPE_NAMES.get(declared, NodeKind.STRING) in _WRAPPABLE_KINDS


def decompile_document(
    document: Any, config: CompilerConfig | None = None
) -> tuple[Graph, list[str]]:
    """Decode a document into a fresh graph.

    Args:
        document: Parsed JSON Schema document
        config: Compiler settings (tuple items policy)

    Returns:
        Tuple of (graph, warnings)

    Raises:
        ImportMalformedError: If the document cannot be represented

    Example:
        >>> graph, warnings = decompile_document(
        ...     {"type": "object", "properties": {"age": {"type": "integer"}}}
        ... )
        >>> graph.children(graph.root_id)[0].kind
        <NodeKind.NUMBER: 'number'>
    """
    return SchemaDecompiler(config).decompile(document)

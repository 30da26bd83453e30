"""
API routes for the schemagraph HTTP surface.

Every mutating route runs one graph operation against the session store
and returns the new graph version. Domain errors propagate to the
handlers installed by create_app().
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field

from ..compiler import (
    SchemaCompiler,
    export_graph,
    generate_ui_schema,
    import_combined,
    summarize_document,
    validate_combined,
)
from ..graph.conditional import (
    append_clause,
    create_group,
    remove_clause,
    synchronize_branches,
    update_clause,
)
from ..graph.definitions import (
    DefinitionRemovalPolicy,
    count_references,
    create_definition,
    list_definitions,
    promote_to_definition,
    remove_definition,
    rename_definition,
)
from ..graph.model import fingerprint
from ..graph.operations import add_node, move_node, remove_node, reorder_node, update_node
from ..graph.types import UNSET, EdgeKind, NodeDraft, NodeKind, attrs_for
from ..graph.validator import check_graph
from .session import EditorSession, get_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["schemagraph"])


# =============================================================================
# Request/Response Models
# =============================================================================


class NodeDraftModel(BaseModel):
    """Contents of a node to create."""

    model_config = ConfigDict(populate_by_name=True)

    kind: str = Field(..., description="Node kind (string, number, object, ...)")
    title: str | None = Field(None, description="Human-readable title")
    key: str | None = Field(None, description="Property name (derived from title if omitted)")
    description: str | None = None
    required: bool = False
    default_value: Any = Field(None, alias="default", description="Default value")
    widget: str | None = None
    widget_options: dict[str, Any] = Field(default_factory=dict)
    extras: dict[str, Any] = Field(default_factory=dict)
    attrs: dict[str, Any] = Field(default_factory=dict, description="Kind-specific attributes")

    def to_draft(self) -> NodeDraft:
        kind = NodeKind.from_str(self.kind)
        return NodeDraft(
            kind=kind,
            title=self.title,
            key=self.key,
            description=self.description,
            required=self.required,
            default=self.default_value if "default_value" in self.model_fields_set else UNSET,
            attrs=attrs_for(kind, self.attrs),
            widget=self.widget,
            widget_options=self.widget_options,
            extras=self.extras,
        )


class NodeCreateRequest(NodeDraftModel):
    """Request to create a node."""

    parent_id: str = Field(..., description="Parent node ID")
    edge: str = Field("child", description="Owning edge kind: child, then or else")
    index: int | None = Field(None, description="Position among the parent's children")


class NodeUpdateRequest(BaseModel):
    """Request to update a node."""

    patch: dict[str, Any] = Field(..., description="Fields and attributes to change")


class NodeMoveRequest(BaseModel):
    """Request to move a node under a new parent."""

    parent_id: str
    edge: str = "child"
    index: int | None = None


class NodeReorderRequest(BaseModel):
    """Request to move a node among its siblings."""

    index: int


class GroupCreateRequest(BaseModel):
    """Request to create a conditional group."""

    kind: str = Field(..., description="if, allOf, anyOf or oneOf")
    parent_id: str
    title: str | None = None
    description: str | None = None
    index: int | None = None


class ClauseRequest(BaseModel):
    """A clause, or a partial clause for updates."""

    model_config = ConfigDict(populate_by_name=True)

    condition: dict[str, Any] | None = Field(None, description="{field, operator, value}")
    then: str | None = Field(None, description="Then branch node ID")
    else_: str | None = Field(None, alias="else", description="Else branch node ID")

    def to_patch(self) -> dict[str, Any]:
        patch: dict[str, Any] = {}
        if "condition" in self.model_fields_set:
            patch["condition"] = self.condition or {}
        if "then" in self.model_fields_set:
            patch["then"] = self.then
        if "else_" in self.model_fields_set:
            patch["else"] = self.else_
        return patch


class SynchronizeRequest(BaseModel):
    """Branch targets every clause should share (defaults: the first clause's)."""

    model_config = ConfigDict(populate_by_name=True)

    then: str | None = None
    else_: str | None = Field(None, alias="else")


class DefinitionCreateRequest(BaseModel):
    """Request to create a definition."""

    name: str
    content: NodeDraftModel | None = None


class PromoteRequest(BaseModel):
    """Request to turn a node into a definition."""

    node_id: str
    name: str


class RenameRequest(BaseModel):
    """Request to rename a definition."""

    new_name: str


class ResetRequest(BaseModel):
    """Request to start over with an empty graph."""

    title: str | None = None


class ImportRequest(BaseModel):
    """Combined import bundle."""

    model_config = ConfigDict(populate_by_name=True)

    schema_: dict[str, Any] = Field(..., alias="schema", description="JSON Schema document")
    ui_schema: dict[str, Any] | None = Field(None, alias="uiSchema")
    form_data: dict[str, Any] | None = Field(None, alias="formData")

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"schema": self.schema_}
        if self.ui_schema is not None:
            payload["uiSchema"] = self.ui_schema
        if self.form_data is not None:
            payload["formData"] = self.form_data
        return payload


class MutationResponse(BaseModel):
    """Result of a graph operation."""

    version: int
    id: str | None = None
    warnings: list[str] = Field(default_factory=list)


class ImportResponse(BaseModel):
    """Result of an import."""

    version: int
    warnings: list[str]
    summary: dict[str, int]
    form_data: dict[str, Any] | None = None


# =============================================================================
# Graph Routes
# =============================================================================


@router.get("/graph")
def get_graph(session: EditorSession = Depends(get_session)):
    """Current graph with node ids, edges and definitions."""
    with session.locked() as store:
        graph = store.graph
    return {**graph.to_dict(), "fingerprint": fingerprint(graph)}


@router.post("/graph/reset", response_model=MutationResponse)
def reset_graph(request: ResetRequest, session: EditorSession = Depends(get_session)):
    """Replace the current graph with an empty one."""
    with session.locked() as store:
        store.reset(title=request.title)
        return MutationResponse(version=store.version)


@router.get("/graph/check")
def check(session: EditorSession = Depends(get_session)):
    """Invariant violations and field problems of the current graph."""
    with session.locked() as store:
        problems = check_graph(store.graph)
    return {"valid": not problems, "problems": problems}


# =============================================================================
# Node Routes
# =============================================================================


@router.get("/nodes/{node_id}")
def get_node(node_id: str, session: EditorSession = Depends(get_session)):
    with session.locked() as store:
        graph = store.graph
        node = graph.get(node_id)
        return {
            **node.to_dict(),
            "parent_id": graph.parent_id(node_id),
            "children": graph.child_ids(node_id),
        }


@router.post("/nodes", response_model=MutationResponse, status_code=201)
def create_node(request: NodeCreateRequest, session: EditorSession = Depends(get_session)):
    """Add a node under a parent."""
    node_id = session.apply(
        add_node,
        request.to_draft(),
        request.parent_id,
        EdgeKind.from_str(request.edge),
        request.index,
    )
    return MutationResponse(version=session.store.version, id=node_id)


@router.patch("/nodes/{node_id}", response_model=MutationResponse)
def patch_node(
    node_id: str, request: NodeUpdateRequest, session: EditorSession = Depends(get_session)
):
    """Merge value fields and attributes into a node."""
    session.apply(update_node, node_id, request.patch)
    return MutationResponse(version=session.store.version, id=node_id)


@router.delete("/nodes/{node_id}", response_model=MutationResponse)
def delete_node(node_id: str, session: EditorSession = Depends(get_session)):
    """Remove a node and its subtree."""
    session.apply(remove_node, node_id, session.store.removal_policy)
    return MutationResponse(version=session.store.version, id=node_id)


@router.post("/nodes/{node_id}/move", response_model=MutationResponse)
def move(node_id: str, request: NodeMoveRequest, session: EditorSession = Depends(get_session)):
    """Move a node under a new parent."""
    session.apply(
        move_node, node_id, request.parent_id, EdgeKind.from_str(request.edge), request.index
    )
    return MutationResponse(version=session.store.version, id=node_id)


@router.post("/nodes/{node_id}/reorder", response_model=MutationResponse)
def reorder(
    node_id: str, request: NodeReorderRequest, session: EditorSession = Depends(get_session)
):
    """Move a node among its siblings (index is clamped)."""
    session.apply(reorder_node, node_id, request.index)
    return MutationResponse(version=session.store.version, id=node_id)


# =============================================================================
# Conditional Routes
# =============================================================================


@router.post("/groups", response_model=MutationResponse, status_code=201)
def create_conditional(request: GroupCreateRequest, session: EditorSession = Depends(get_session)):
    """Add an empty conditional node."""
    group_id = session.apply(
        create_group,
        NodeKind.from_str(request.kind),
        request.parent_id,
        request.title,
        request.description,
        request.index,
    )
    return MutationResponse(version=session.store.version, id=group_id)


@router.post("/groups/{group_id}/clauses", response_model=MutationResponse, status_code=201)
def add_clause(group_id: str, request: ClauseRequest, session: EditorSession = Depends(get_session)):
    """Append a clause; branch targets are attached to the group."""
    clause = {"condition": request.condition or {}, "then": request.then, "else": request.else_}
    session.apply(append_clause, group_id, clause)
    return MutationResponse(version=session.store.version, id=group_id)


@router.patch("/groups/{group_id}/clauses/{index}", response_model=MutationResponse)
def patch_clause(
    group_id: str,
    index: int,
    request: ClauseRequest,
    session: EditorSession = Depends(get_session),
):
    """Merge a partial clause into the clause at ``index``."""
    session.apply(update_clause, group_id, index, request.to_patch())
    return MutationResponse(version=session.store.version, id=group_id)


@router.delete("/groups/{group_id}/clauses/{index}", response_model=MutationResponse)
def delete_clause(
    group_id: str,
    index: int,
    prune: bool = Query(False, description="Delete branches no clause uses any more"),
    session: EditorSession = Depends(get_session),
):
    session.apply(remove_clause, group_id, index, prune)
    return MutationResponse(version=session.store.version, id=group_id)


@router.post("/groups/{group_id}/synchronize", response_model=MutationResponse)
def synchronize(
    group_id: str, request: SynchronizeRequest, session: EditorSession = Depends(get_session)
):
    """Make every clause share one then and one else target."""
    targets: dict[str, Any] = {}
    if "then" in request.model_fields_set:
        targets["then_id"] = request.then
    if "else_" in request.model_fields_set:
        targets["else_id"] = request.else_
    session.apply(synchronize_branches, group_id, **targets)
    return MutationResponse(version=session.store.version, id=group_id)


# =============================================================================
# Definition Routes
# =============================================================================


@router.get("/definitions")
def get_definitions(session: EditorSession = Depends(get_session)):
    """Definitions with their reference counts."""
    with session.locked() as store:
        graph = store.graph
        return {
            "definitions": [
                {
                    "name": name,
                    "id": node.id,
                    "references": count_references(graph, name),
                    "content": graph.child_ids(node.id),
                }
                for name, node in list_definitions(graph).items()
            ]
        }


@router.post("/definitions", response_model=MutationResponse, status_code=201)
def add_definition(
    request: DefinitionCreateRequest, session: EditorSession = Depends(get_session)
):
    content = request.content.to_draft() if request.content is not None else None
    def_id = session.apply(create_definition, request.name, content)
    return MutationResponse(version=session.store.version, id=def_id)


@router.post("/definitions/promote", response_model=MutationResponse, status_code=201)
def promote(request: PromoteRequest, session: EditorSession = Depends(get_session)):
    """Turn a subtree into a definition; returns the id of the new reference."""
    ref_id = session.apply(promote_to_definition, request.node_id, request.name)
    return MutationResponse(version=session.store.version, id=ref_id)


@router.post("/definitions/{name}/rename", response_model=MutationResponse)
def rename(name: str, request: RenameRequest, session: EditorSession = Depends(get_session)):
    session.apply(rename_definition, name, request.new_name)
    return MutationResponse(version=session.store.version)


@router.delete("/definitions/{name}", response_model=MutationResponse)
def delete_definition(
    name: str,
    policy: str | None = Query(None, description="allow, refuse, cascade or inline"),
    session: EditorSession = Depends(get_session),
):
    """Remove a definition; references are handled by the removal policy."""
    chosen = DefinitionRemovalPolicy.from_str(policy) if policy else session.store.removal_policy
    warnings = session.apply(remove_definition, name, chosen)
    return MutationResponse(version=session.store.version, warnings=warnings)


# =============================================================================
# Compile / Import / Export Routes
# =============================================================================


@router.get("/schema")
def get_schema(session: EditorSession = Depends(get_session)):
    """Compiled JSON Schema document of the current graph."""
    with session.locked() as store:
        compiler = SchemaCompiler(store.graph, session.config.compiler)
        document = compiler.compile()
    return {"schema": document, "warnings": compiler.warnings}


@router.get("/ui-schema")
def get_ui_schema(session: EditorSession = Depends(get_session)):
    with session.locked() as store:
        return {"uiSchema": generate_ui_schema(store.graph, session.registry)}


@router.get("/export")
def export(session: EditorSession = Depends(get_session)):
    """Schema, UI schema, summary and warnings in the combined format."""
    with session.locked() as store:
        bundle = export_graph(store.graph, session.config.compiler, session.registry)
    return bundle.to_dict()


@router.post("/import/validate")
def validate_import(request: dict[str, Any]):
    """Pre-import checks for a combined bundle, with a summary."""
    result = validate_combined(request)
    schema = request.get("schema")
    return {**result.to_dict(), "summary": summarize_document(schema).to_dict()}


@router.post("/import", response_model=ImportResponse)
def import_bundle(request: ImportRequest, session: EditorSession = Depends(get_session)):
    """Replace the current graph with an imported document."""
    result = import_combined(request.to_payload(), session.config.compiler, session.registry)
    with session.locked() as store:
        store.replace(result.graph)
        store.warnings.extend(result.warnings)
        version = store.version
    return ImportResponse(
        version=version,
        warnings=result.warnings,
        summary=summarize_document(request.schema_).to_dict(),
        form_data=result.form_data,
    )


# =============================================================================
# Widget Routes
# =============================================================================


@router.get("/widgets")
def get_widgets(
    kind: str | None = Query(None, description="Only widgets compatible with this node kind"),
    session: EditorSession = Depends(get_session),
):
    registry = session.registry
    widgets = (
        registry.compatible_widgets(NodeKind.from_str(kind)) if kind else list(registry.widgets())
    )
    return {"widgets": [w.to_dict() for w in widgets]}


@router.get("/widgets/for/{node_id}")
def widget_for_node(node_id: str, session: EditorSession = Depends(get_session)):
    """Widget the registry selects for a node (rules first, then kind)."""
    with session.locked() as store:
        node = store.graph.get(node_id)
    widget = session.registry.get_widget_for_field(node)
    return {"node_id": node_id, "widget": widget.to_dict() if widget else None}

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .types import (
    AttributeKind,
    AttributeNode,
    Cardinality,
    DiagramEdge,
    DiagramGraph,
    DiagramNode,
    DiagramNodeType,
    EdgeKind,
    EntityKind,
    EntityNode,
    ErAst,
    ForeignKeyRef,
    KeyRole,
    Participation,
    RelationshipKind,
    RelationshipNode,
    RelationshipSide,
)

# ============================================================================
# JSON shapes exchanged with the renderer and persistence layers
#
#   AST:    {"entities": [...], "relationships": [...]}
#   graph:  {"nodes": [...], "edges": [...]}
#   bundle: {"ast": AST, "diagram": graph}
#
# Keys are camelCase; optional fields are omitted when unset and tolerated
# when missing on load. Documents are validated by the pydantic schemas
# below before they reach the core dataclasses, so a bad document fails
# with a ValidationError (a ValueError) instead of deep inside the printer.
# ============================================================================

# Renderers that speak the DSL write cardinality as it appears in the text
_CARDINALITY_ALIASES: dict[str, Cardinality] = {"1": "one", "M": "many"}


def _normalize_cardinality(value: Any) -> Any:
    if isinstance(value, str):
        return _CARDINALITY_ALIASES.get(value, value)
    return value


class _Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ForeignKeyRefSchema(_Schema):
    entity: str
    attribute: str


class AttributeSchema(_Schema):
    name: str
    kind: AttributeKind = "simple"
    key: KeyRole = Field("none", alias="keyRole")
    data_type: str | None = Field(None, alias="dataType")
    fk_target: ForeignKeyRefSchema | None = Field(None, alias="fkTarget")
    children: list[AttributeSchema] | None = None


class EntitySchema(_Schema):
    name: str
    kind: EntityKind = "strong"
    attributes: list[AttributeSchema] = Field(default_factory=list)
    identified_by: list[ForeignKeyRefSchema] | None = Field(None, alias="identifiedBy")


class RelationshipSideSchema(_Schema):
    entity: str = ""
    cardinality: Cardinality = "one"
    participation: Participation = "partial"

    @field_validator("cardinality", mode="before")
    @classmethod
    def read_dsl_cardinality(cls, value: Any) -> Any:
        return _normalize_cardinality(value)


class RelationshipSchema(_Schema):
    name: str
    kind: RelationshipKind = "normal"
    left: RelationshipSideSchema = Field(default_factory=RelationshipSideSchema)
    right: RelationshipSideSchema = Field(default_factory=RelationshipSideSchema)
    attributes: list[AttributeSchema] = Field(default_factory=list)


class AstSchema(_Schema):
    entities: list[EntitySchema] = Field(default_factory=list)
    relationships: list[RelationshipSchema] = Field(default_factory=list)


class NodeSchema(_Schema):
    # Renderers may hand back numeric ids
    id: str | int
    type: DiagramNodeType
    label: str = ""
    parent_id: str | int | None = Field(None, alias="parentId")
    is_primary_key: bool | None = Field(None, alias="isPrimaryKey")
    is_foreign_key: bool | None = Field(None, alias="isForeignKey")
    fk_target: ForeignKeyRefSchema | None = Field(None, alias="fkTarget")
    data_type: str | None = Field(None, alias="dataType")
    identified_by: list[ForeignKeyRefSchema] | None = Field(None, alias="identifiedBy")
    x: float | None = None
    y: float | None = None
    width: float | None = None
    height: float | None = None


class EdgeSchema(_Schema):
    id: str | int
    source_id: str | int = Field(alias="sourceId")
    target_id: str | int = Field(alias="targetId")
    kind: EdgeKind | None = None
    source_cardinality: Cardinality | None = Field(None, alias="sourceCardinality")
    target_cardinality: Cardinality | None = Field(None, alias="targetCardinality")
    source_participation: Participation | None = Field(None, alias="sourceParticipation")
    target_participation: Participation | None = Field(None, alias="targetParticipation")

    @field_validator("source_cardinality", "target_cardinality", mode="before")
    @classmethod
    def read_dsl_cardinality(cls, value: Any) -> Any:
        return _normalize_cardinality(value)


class DiagramSchema(_Schema):
    nodes: list[NodeSchema] = Field(default_factory=list)
    edges: list[EdgeSchema] = Field(default_factory=list)


def _dump(schema: BaseModel) -> dict[str, Any]:
    return schema.model_dump(by_alias=True, exclude_none=True)


# ============================================================================
# Dataclass <-> schema
# ============================================================================


def _ref_schema(ref: ForeignKeyRef | None) -> ForeignKeyRefSchema | None:
    if ref is None:
        return None
    return ForeignKeyRefSchema(entity=ref.entity, attribute=ref.attribute)


def _ref_node(schema: ForeignKeyRefSchema | None) -> ForeignKeyRef | None:
    if schema is None:
        return None
    return ForeignKeyRef(entity=schema.entity, attribute=schema.attribute)


def _refs_schema(refs: list[ForeignKeyRef] | None) -> list[ForeignKeyRefSchema] | None:
    if refs is None:
        return None
    return [_ref_schema(r) for r in refs]


def _refs_node(schemas: list[ForeignKeyRefSchema] | None) -> list[ForeignKeyRef] | None:
    if schemas is None:
        return None
    return [_ref_node(s) for s in schemas]


def _attribute_schema(attr: AttributeNode) -> AttributeSchema:
    return AttributeSchema(
        name=attr.name,
        kind=attr.kind,
        key=attr.key,
        data_type=attr.data_type,
        fk_target=_ref_schema(attr.fk_target),
        children=(
            [_attribute_schema(c) for c in attr.children]
            if attr.children is not None
            else None
        ),
    )


def _attribute_node(schema: AttributeSchema) -> AttributeNode:
    return AttributeNode(
        name=schema.name,
        kind=schema.kind,
        key=schema.key,
        data_type=schema.data_type,
        fk_target=_ref_node(schema.fk_target),
        children=(
            [_attribute_node(c) for c in schema.children]
            if schema.children is not None
            else None
        ),
    )


def _side_schema(side: RelationshipSide) -> RelationshipSideSchema:
    return RelationshipSideSchema(
        entity=side.entity,
        cardinality=side.cardinality,
        participation=side.participation,
    )


def _side_node(schema: RelationshipSideSchema) -> RelationshipSide:
    return RelationshipSide(
        entity=schema.entity,
        cardinality=schema.cardinality,
        participation=schema.participation,
    )


def _ast_schema(ast: ErAst) -> AstSchema:
    return AstSchema(
        entities=[
            EntitySchema(
                name=e.name,
                kind=e.kind,
                attributes=[_attribute_schema(a) for a in e.attributes],
                identified_by=_refs_schema(e.identified_by),
            )
            for e in ast.entities
        ],
        relationships=[
            RelationshipSchema(
                name=r.name,
                kind=r.kind,
                left=_side_schema(r.left),
                right=_side_schema(r.right),
                attributes=[_attribute_schema(a) for a in r.attributes],
            )
            for r in ast.relationships
        ],
    )


def _ast_node(schema: AstSchema) -> ErAst:
    return ErAst(
        entities=[
            EntityNode(
                name=e.name,
                kind=e.kind,
                attributes=[_attribute_node(a) for a in e.attributes],
                identified_by=_refs_node(e.identified_by),
            )
            for e in schema.entities
        ],
        relationships=[
            RelationshipNode(
                name=r.name,
                kind=r.kind,
                left=_side_node(r.left),
                right=_side_node(r.right),
                attributes=[_attribute_node(a) for a in r.attributes],
            )
            for r in schema.relationships
        ],
    )


def _node_schema(node: DiagramNode) -> NodeSchema:
    return NodeSchema(
        id=node.id,
        type=node.type,
        label=node.label,
        parent_id=node.parent_id,
        # False flags are left out of the document
        is_primary_key=node.is_primary_key or None,
        is_foreign_key=node.is_foreign_key or None,
        fk_target=_ref_schema(node.fk_target),
        data_type=node.data_type,
        identified_by=_refs_schema(node.identified_by),
        x=node.x,
        y=node.y,
        width=node.width,
        height=node.height,
    )


def _diagram_node(schema: NodeSchema) -> DiagramNode:
    return DiagramNode(
        id=str(schema.id),
        type=schema.type,
        label=schema.label,
        parent_id=str(schema.parent_id) if schema.parent_id is not None else None,
        is_primary_key=bool(schema.is_primary_key),
        is_foreign_key=bool(schema.is_foreign_key),
        fk_target=_ref_node(schema.fk_target),
        data_type=schema.data_type,
        identified_by=_refs_node(schema.identified_by),
        x=schema.x,
        y=schema.y,
        width=schema.width,
        height=schema.height,
    )


def _edge_schema(edge: DiagramEdge) -> EdgeSchema:
    return EdgeSchema(
        id=edge.id,
        source_id=edge.source_id,
        target_id=edge.target_id,
        kind=edge.kind,
        source_cardinality=edge.source_cardinality,
        target_cardinality=edge.target_cardinality,
        source_participation=edge.source_participation,
        target_participation=edge.target_participation,
    )


def _diagram_edge(schema: EdgeSchema) -> DiagramEdge:
    return DiagramEdge(
        id=str(schema.id),
        source_id=str(schema.source_id),
        target_id=str(schema.target_id),
        kind=schema.kind,
        source_cardinality=schema.source_cardinality,
        target_cardinality=schema.target_cardinality,
        source_participation=schema.source_participation,
        target_participation=schema.target_participation,
    )


def _diagram_schema(graph: DiagramGraph) -> DiagramSchema:
    return DiagramSchema(
        nodes=[_node_schema(n) for n in graph.nodes],
        edges=[_edge_schema(e) for e in graph.edges],
    )


def _diagram_graph(schema: DiagramSchema) -> DiagramGraph:
    return DiagramGraph(
        nodes=[_diagram_node(n) for n in schema.nodes],
        edges=[_diagram_edge(e) for e in schema.edges],
    )


# ============================================================================
# AST
# ============================================================================


def attribute_to_dict(attr: AttributeNode) -> dict[str, Any]:
    return _dump(_attribute_schema(attr))


def attribute_from_dict(data: dict[str, Any]) -> AttributeNode:
    return _attribute_node(AttributeSchema.model_validate(data))


def ast_to_dict(ast: ErAst) -> dict[str, Any]:
    return _dump(_ast_schema(ast))


def ast_from_dict(data: dict[str, Any]) -> ErAst:
    return _ast_node(AstSchema.model_validate(data))


# ============================================================================
# Diagram graph
# ============================================================================


def node_to_dict(node: DiagramNode) -> dict[str, Any]:
    return _dump(_node_schema(node))


def node_from_dict(data: dict[str, Any]) -> DiagramNode:
    return _diagram_node(NodeSchema.model_validate(data))


def edge_to_dict(edge: DiagramEdge) -> dict[str, Any]:
    return _dump(_edge_schema(edge))


def edge_from_dict(data: dict[str, Any]) -> DiagramEdge:
    return _diagram_edge(EdgeSchema.model_validate(data))


def diagram_to_dict(graph: DiagramGraph) -> dict[str, Any]:
    return _dump(_diagram_schema(graph))


def diagram_from_dict(data: dict[str, Any]) -> DiagramGraph:
    return _diagram_graph(DiagramSchema.model_validate(data))


# ============================================================================
# Documents
# ============================================================================


def export_bundle(ast: ErAst, graph: DiagramGraph) -> dict[str, Any]:
    """Combined document holding both the AST and the (positioned) graph."""
    return {"ast": ast_to_dict(ast), "diagram": diagram_to_dict(graph)}


def load_document(data: dict[str, Any]) -> ErAst | DiagramGraph:
    """Read a bundle, a bare AST or a bare graph.

    A bundle yields its graph, since the graph carries the user's edits.
    Raises ValueError (pydantic's ValidationError included) for anything else.
    """
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object")
    if "diagram" in data:
        return diagram_from_dict(data["diagram"])
    if "nodes" in data:
        return diagram_from_dict(data)
    if "entities" in data or "relationships" in data:
        return ast_from_dict(data)
    if "ast" in data:
        return ast_from_dict(data["ast"])
    raise ValueError("Unrecognized document: expected an AST, a diagram graph or an export bundle")


def dumps(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

# ============================================================================
# ER DSL types
#
# Models the parsed representation of an ER document (the AST) and the
# node/edge graph derived from it for an external canvas renderer.
# ============================================================================

EntityKind = Literal["strong", "weak"]

AttributeKind = Literal["simple", "composite", "multivalued", "derived", "typed"]

KeyRole = Literal["primary", "foreign", "none"]

RelationshipKind = Literal["normal", "identifying"]

# Cardinality of one relationship side, written `1` / `M` in the DSL
Cardinality = Literal["one", "many"]

Participation = Literal["total", "partial"]


@dataclass(slots=True)
class ForeignKeyRef:
    """Reference to an attribute of another entity: `Entity.attribute`."""

    entity: str
    attribute: str


@dataclass(slots=True)
class AttributeNode:
    """A single attribute of an entity or relationship."""

    name: str
    kind: AttributeKind = "simple"
    key: KeyRole = "none"
    # Explicit scalar type, set for `name: Type` attributes
    data_type: str | None = None
    # Set for foreign keys declared with `FK -> Entity.attribute`
    fk_target: ForeignKeyRef | None = None
    # Nested attributes, set for composites only
    children: list[AttributeNode] | None = None


@dataclass(slots=True)
class EntityNode:
    """An entity declaration."""

    name: str
    kind: EntityKind = "strong"
    attributes: list[AttributeNode] = field(default_factory=list)
    # Weak entities only; None when no `Identified By` clause was given
    identified_by: list[ForeignKeyRef] | None = None


@dataclass(slots=True)
class RelationshipSide:
    entity: str
    cardinality: Cardinality = "one"
    participation: Participation = "partial"


@dataclass(slots=True)
class RelationshipNode:
    """A relationship between two entities."""

    # Relationship verb (e.g., "sells", "contains")
    name: str
    kind: RelationshipKind
    left: RelationshipSide
    right: RelationshipSide
    attributes: list[AttributeNode] = field(default_factory=list)


@dataclass(slots=True)
class ErAst:
    """Parsed ER document -- logical structure from DSL text."""

    entities: list[EntityNode] = field(default_factory=list)
    relationships: list[RelationshipNode] = field(default_factory=list)


# ============================================================================
# Diagram graph -- vertices and edges handed to the canvas renderer
# ============================================================================

DiagramNodeType = Literal[
    "entity",
    "weak_entity",
    "relationship",
    "identifying_relationship",
    "simple_attribute",
    "composite_attribute",
    "multivalued_attribute",
    "derived_attribute",
]

ENTITY_NODE_TYPES: frozenset[str] = frozenset({"entity", "weak_entity"})

RELATIONSHIP_NODE_TYPES: frozenset[str] = frozenset(
    {"relationship", "identifying_relationship"}
)

ATTRIBUTE_NODE_TYPES: frozenset[str] = frozenset(
    {
        "simple_attribute",
        "composite_attribute",
        "multivalued_attribute",
        "derived_attribute",
    }
)

# containment: target is an attribute of source
# relational:  an entity participates in a relationship
EdgeKind = Literal["containment", "relational"]


@dataclass(slots=True)
class DiagramNode:
    """A vertex of the diagram graph.

    Every entity, relationship and attribute (nested ones included) gets one.
    The rectangle is None until filled in by layout or by the renderer.
    """

    id: str
    type: DiagramNodeType
    label: str
    # Owning node (for attributes) -- ownership, not rendering nesting
    parent_id: str | None = None
    is_primary_key: bool = False
    is_foreign_key: bool = False
    fk_target: ForeignKeyRef | None = None
    data_type: str | None = None
    identified_by: list[ForeignKeyRef] | None = None
    x: float | None = None
    y: float | None = None
    width: float | None = None
    height: float | None = None


@dataclass(slots=True)
class DiagramEdge:
    """A directed link between two diagram nodes.

    Edges created by the renderer may carry no `kind`; see
    `er_dsl.diagram.classify_edge` for how those are read.
    """

    id: str
    source_id: str
    target_id: str
    kind: EdgeKind | None = None
    source_cardinality: Cardinality | None = None
    target_cardinality: Cardinality | None = None
    source_participation: Participation | None = None
    target_participation: Participation | None = None


@dataclass(slots=True)
class DiagramGraph:
    """Node/edge graph ready for (or returned from) the canvas renderer."""

    nodes: list[DiagramNode] = field(default_factory=list)
    edges: list[DiagramEdge] = field(default_factory=list)

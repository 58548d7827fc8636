from __future__ import annotations

import itertools
import logging

from .types import (
    ATTRIBUTE_NODE_TYPES,
    ENTITY_NODE_TYPES,
    RELATIONSHIP_NODE_TYPES,
    AttributeKind,
    AttributeNode,
    DiagramEdge,
    DiagramGraph,
    DiagramNode,
    DiagramNodeType,
    EdgeKind,
    EntityNode,
    ErAst,
    KeyRole,
    RelationshipNode,
    RelationshipSide,
)

# ============================================================================
# AST <-> diagram graph transformer
#
# Forward: every entity, relationship and attribute becomes a DiagramNode.
# Attributes hang off their owner through containment edges; each
# relationship side becomes a relational edge carrying its cardinality and
# participation:
#
#   left entity  --(source_cardinality)-->  relationship
#   relationship --(target_cardinality)-->  right entity
#
# Reverse: rebuilds an AST from a graph the renderer may have edited. Missing
# pieces get defaults instead of errors so any edited graph stays printable;
# every default applied is logged as a warning.
# ============================================================================

logger = logging.getLogger(__name__)

_ATTRIBUTE_NODE_TYPE: dict[AttributeKind, DiagramNodeType] = {
    "simple": "simple_attribute",
    "typed": "simple_attribute",
    "composite": "composite_attribute",
    "multivalued": "multivalued_attribute",
    "derived": "derived_attribute",
}

_ATTRIBUTE_KIND: dict[str, AttributeKind] = {
    "simple_attribute": "simple",
    "composite_attribute": "composite",
    "multivalued_attribute": "multivalued",
    "derived_attribute": "derived",
}


class IdGenerator:
    """Monotonic node/edge id source, owned by a single transform call."""

    def __init__(self) -> None:
        self._nodes = itertools.count(1)
        self._edges = itertools.count(1)

    def next_node_id(self) -> str:
        return f"node_{next(self._nodes)}"

    def next_edge_id(self) -> str:
        return f"edge_{next(self._edges)}"


def classify_edge(edge: DiagramEdge) -> EdgeKind:
    """Return the edge's kind.

    Edges created outside this module may carry no explicit kind; those are
    relational when any cardinality or participation field is set.
    """
    if edge.kind is not None:
        return edge.kind
    if (
        edge.source_cardinality is not None
        or edge.target_cardinality is not None
        or edge.source_participation is not None
        or edge.target_participation is not None
    ):
        return "relational"
    return "containment"


# ============================================================================
# Forward: AST -> graph
# ============================================================================


def ast_to_diagram(ast: ErAst, ids: IdGenerator | None = None) -> DiagramGraph:
    """Expand an AST into a diagram graph, in document order.

    Ids are stable for a given AST: the same input yields the same ids.
    """
    if ids is None:
        ids = IdGenerator()

    graph = DiagramGraph()
    entity_ids: dict[str, str] = {}

    for entity in ast.entities:
        node_id = ids.next_node_id()
        entity_ids[entity.name] = node_id
        graph.nodes.append(
            DiagramNode(
                id=node_id,
                type="weak_entity" if entity.kind == "weak" else "entity",
                label=entity.name,
                identified_by=list(entity.identified_by) if entity.identified_by is not None else None,
            )
        )
        for attr in entity.attributes:
            _add_attribute(graph, attr, node_id, ids)

    for rel in ast.relationships:
        rel_id = ids.next_node_id()
        graph.nodes.append(
            DiagramNode(
                id=rel_id,
                type="identifying_relationship" if rel.kind == "identifying" else "relationship",
                label=rel.name,
            )
        )

        left_id = _side_entity_id(graph, rel, rel.left.entity, entity_ids, ids)
        if left_id is not None:
            graph.edges.append(
                DiagramEdge(
                    id=ids.next_edge_id(),
                    source_id=left_id,
                    target_id=rel_id,
                    kind="relational",
                    source_cardinality=rel.left.cardinality,
                    source_participation=rel.left.participation,
                )
            )

        right_id = _side_entity_id(graph, rel, rel.right.entity, entity_ids, ids)
        if right_id is not None:
            graph.edges.append(
                DiagramEdge(
                    id=ids.next_edge_id(),
                    source_id=rel_id,
                    target_id=right_id,
                    kind="relational",
                    target_cardinality=rel.right.cardinality,
                    target_participation=rel.right.participation,
                )
            )

        for attr in rel.attributes:
            _add_attribute(graph, attr, rel_id, ids)

    return graph


def _side_entity_id(
    graph: DiagramGraph,
    rel: RelationshipNode,
    name: str,
    entity_ids: dict[str, str],
    ids: IdGenerator,
) -> str | None:
    """Node id of the entity a relationship side names.

    An undeclared entity gets a bare placeholder entity node, shared by every
    later side naming it, so the side keeps its edge and its name.
    """
    node_id = entity_ids.get(name)
    if node_id is not None:
        return node_id
    if not name:
        logger.warning("Relationship '%s' has a side with no entity; side not connected", rel.name)
        return None

    logger.warning(
        "Relationship '%s' refers to undeclared entity '%s'; adding a placeholder entity",
        rel.name,
        name,
    )
    node_id = ids.next_node_id()
    entity_ids[name] = node_id
    graph.nodes.append(DiagramNode(id=node_id, type="entity", label=name))
    return node_id


def _add_attribute(
    graph: DiagramGraph,
    attr: AttributeNode,
    parent_id: str,
    ids: IdGenerator,
) -> None:
    node_id = ids.next_node_id()
    graph.nodes.append(
        DiagramNode(
            id=node_id,
            type=_ATTRIBUTE_NODE_TYPE[attr.kind],
            label=attr.name,
            parent_id=parent_id,
            is_primary_key=attr.key == "primary",
            is_foreign_key=attr.key == "foreign",
            fk_target=attr.fk_target,
            data_type=attr.data_type,
        )
    )
    graph.edges.append(
        DiagramEdge(
            id=ids.next_edge_id(),
            source_id=parent_id,
            target_id=node_id,
            kind="containment",
        )
    )

    if attr.kind == "composite":
        for child in attr.children or []:
            _add_attribute(graph, child, node_id, ids)


# ============================================================================
# Reverse: graph -> AST
# ============================================================================


def diagram_to_ast(graph: DiagramGraph) -> ErAst:
    """Rebuild an AST snapshot from the graph's current state.

    Nodes and edges may have been added, moved, relabeled or deleted by the
    renderer. Entities and relationships keep graph node order.
    """
    node_map: dict[str, DiagramNode] = {node.id: node for node in graph.nodes}

    # owner id -> attribute nodes, in edge order
    children_map: dict[str, list[DiagramNode]] = {}
    owner_of: dict[str, str] = {}
    relational_edges: list[DiagramEdge] = []

    for edge in graph.edges:
        if edge.source_id not in node_map or edge.target_id not in node_map:
            logger.warning("Ignoring edge '%s' with a dangling endpoint", edge.id)
            continue

        if classify_edge(edge) == "relational":
            relational_edges.append(edge)
            continue

        child = node_map[edge.target_id]
        if child.type not in ATTRIBUTE_NODE_TYPES:
            continue
        if child.id in owner_of:
            logger.warning(
                "Attribute '%s' already owned by '%s'; ignoring containment edge '%s'",
                child.label,
                owner_of[child.id],
                edge.id,
            )
            continue
        owner_of[child.id] = edge.source_id
        children_map.setdefault(edge.source_id, []).append(child)

    ast = ErAst()

    for node in graph.nodes:
        if node.type not in ENTITY_NODE_TYPES:
            continue
        weak = node.type == "weak_entity"
        ast.entities.append(
            EntityNode(
                name=node.label,
                kind="weak" if weak else "strong",
                attributes=_collect_attributes(node.id, children_map, set()),
                identified_by=list(node.identified_by) if weak and node.identified_by is not None else None,
            )
        )

    for node in graph.nodes:
        if node.type not in RELATIONSHIP_NODE_TYPES:
            continue
        ast.relationships.append(_rebuild_relationship(node, relational_edges, node_map, children_map))

    return ast


def _rebuild_relationship(
    node: DiagramNode,
    relational_edges: list[DiagramEdge],
    node_map: dict[str, DiagramNode],
    children_map: dict[str, list[DiagramNode]],
) -> RelationshipNode:
    identifying = node.type == "identifying_relationship"
    left: RelationshipSide | None = None
    right: RelationshipSide | None = None

    for edge in relational_edges:
        if edge.target_id == node.id and edge.source_id != node.id:
            if left is not None:
                logger.warning("Relationship '%s' has several left-side connections; using the last", node.label)
            left = RelationshipSide(
                entity=node_map[edge.source_id].label,
                cardinality=edge.source_cardinality or "one",
                participation=edge.source_participation or "partial",
            )
        elif edge.source_id == node.id and edge.target_id != node.id:
            if right is not None:
                logger.warning("Relationship '%s' has several right-side connections; using the last", node.label)
            right = RelationshipSide(
                entity=node_map[edge.target_id].label,
                cardinality=edge.target_cardinality or "one",
                participation=edge.target_participation or "partial",
            )

    if left is None:
        logger.warning("Relationship '%s' has no left-side connection; using defaults", node.label)
        left = RelationshipSide(entity="")
    if right is None:
        logger.warning("Relationship '%s' has no right-side connection; using defaults", node.label)
        right = RelationshipSide(entity="")

    # Identifying relationships bind two totals
    if identifying:
        left.participation = "total"
        right.participation = "total"

    return RelationshipNode(
        name=node.label,
        kind="identifying" if identifying else "normal",
        left=left,
        right=right,
        attributes=_collect_attributes(node.id, children_map, set()),
    )


def _collect_attributes(
    owner_id: str,
    children_map: dict[str, list[DiagramNode]],
    visiting: set[str],
) -> list[AttributeNode]:
    visiting.add(owner_id)
    attributes: list[AttributeNode] = []

    for child in children_map.get(owner_id, []):
        if child.id in visiting:
            logger.warning("Containment cycle through attribute '%s'; cut", child.label)
            continue

        kind = _ATTRIBUTE_KIND[child.type]
        if kind == "simple" and child.data_type:
            kind = "typed"

        key: KeyRole = "none"
        if child.is_primary_key:
            key = "primary"
        elif child.is_foreign_key:
            key = "foreign"

        attr = AttributeNode(
            name=child.label,
            kind=kind,
            key=key,
            data_type=child.data_type,
            fk_target=child.fk_target if key == "foreign" else None,
        )
        if kind == "composite":
            attr.children = _collect_attributes(child.id, children_map, visiting)
        attributes.append(attr)

    visiting.discard(owner_id)
    return attributes

from __future__ import annotations

from dataclasses import dataclass, fields, replace

from grandalf.graphs import Vertex, Edge, Graph

from .diagram import classify_edge
from .types import (
    ATTRIBUTE_NODE_TYPES,
    ENTITY_NODE_TYPES,
    RELATIONSHIP_NODE_TYPES,
    DiagramGraph,
    DiagramNode,
)

# ============================================================================
# Diagram layout engine
#
# Seeds node rectangles for the canvas renderer. A pure function of the
# graph topology: no randomness, same input -> same coordinates.
#
#   attributes of entities       o   o   o          (one band above)
#   entities                  [Store]     [Product]  (single row)
#   relationships                   <sells>          (mean x of its entities)
#   attributes of relationships     o   o            (one band below)
#
# Nested (composite) attributes repeat the centering one band further away
# from their owner. Coordinates are the top-left corner of each rectangle.
# ============================================================================

# Layout constants for ER diagrams
ER = {
    # Row shared by all entities
    "entity_row_y": 250,
    # x of the first entity
    "entity_start_x": 100,
    # Step between consecutive entities
    "entity_spacing": 200,
    # Relationships sit this far below the entity row
    "relationship_offset_y": 150,
    # x for relationships with no positioned entity
    "relationship_default_x": 400,
    # Distance between an owner and its attribute band
    "attribute_offset_y": 100,
    # Step between sibling attributes
    "attribute_spacing": 50,
    # Distance between an attribute band and its nested band
    "sub_attribute_offset_y": 60,
    # Step between sibling nested attributes
    "sub_attribute_spacing": 40,
    # Position of attributes with no positioned owner
    "orphan_x": 300,
    "orphan_y": 300,
    "entity_width": 140,
    "entity_height": 40,
    "relationship_width": 100,
    "relationship_height": 60,
    "attribute_width": 100,
    "attribute_height": 30,
}


@dataclass(slots=True)
class LayoutOptions:
    """Overrides for the ER layout constants; None keeps the default."""

    entity_row_y: float | None = None
    entity_start_x: float | None = None
    entity_spacing: float | None = None
    relationship_offset_y: float | None = None
    relationship_default_x: float | None = None
    attribute_offset_y: float | None = None
    attribute_spacing: float | None = None
    sub_attribute_offset_y: float | None = None
    sub_attribute_spacing: float | None = None
    entity_width: float | None = None
    entity_height: float | None = None
    relationship_width: float | None = None
    relationship_height: float | None = None
    attribute_width: float | None = None
    attribute_height: float | None = None


def _resolve(options: LayoutOptions | None) -> dict[str, float]:
    config: dict[str, float] = dict(ER)
    if options is not None:
        for f in fields(options):
            value = getattr(options, f.name)
            if value is not None:
                config[f.name] = value
    return config


# ============================================================================
# Topology index (grandalf)
# ============================================================================


class _Topology:
    """Adjacency of the diagram graph split by edge kind.

    Vertices carry node ids; edges carry their EdgeKind. Edges pointing at
    unknown node ids (left behind by renderer edits) are dropped.
    """

    def __init__(self, graph: DiagramGraph) -> None:
        self.nodes: dict[str, DiagramNode] = {}
        self.vertices: dict[str, Vertex] = {}
        for node in graph.nodes:
            self.nodes[node.id] = node
            self.vertices[node.id] = Vertex(node.id)

        edges: list[Edge] = []
        for diagram_edge in graph.edges:
            src = self.vertices.get(diagram_edge.source_id)
            tgt = self.vertices.get(diagram_edge.target_id)
            if src is None or tgt is None or src is tgt:
                continue
            edges.append(Edge(src, tgt, data=classify_edge(diagram_edge)))

        self.graph = Graph(list(self.vertices.values()), edges)

    def relational_neighbors(self, node_id: str) -> list[DiagramNode]:
        v = self.vertices[node_id]
        result: list[DiagramNode] = []
        for e in v.e:
            if e.data != "relational":
                continue
            other = e.v[1] if e.v[0] is v else e.v[0]
            result.append(self.nodes[other.data])
        return result

    def owner_id(self, node_id: str) -> str | None:
        """First node holding `node_id` through a containment edge."""
        for e in self.vertices[node_id].e_in():
            if e.data == "containment":
                return e.v[0].data
        return None

    def attribute_children(self, node_id: str) -> list[DiagramNode]:
        children: list[DiagramNode] = []
        for e in self.vertices[node_id].e_out():
            child = self.nodes[e.v[1].data]
            if (
                e.data == "containment"
                and child.type in ATTRIBUTE_NODE_TYPES
                and self.owner_id(child.id) == node_id
            ):
                children.append(child)
        return children


# ============================================================================
# Main layout function
# ============================================================================


def layout_diagram(
    graph: DiagramGraph,
    options: LayoutOptions | None = None,
) -> DiagramGraph:
    """Return a copy of the graph with every node's rectangle filled in.

    The input graph is not modified.
    """
    cfg = _resolve(options)
    topology = _Topology(graph)
    positions: dict[str, tuple[float, float]] = {}

    entities = [n for n in graph.nodes if n.type in ENTITY_NODE_TYPES]
    relationships = [n for n in graph.nodes if n.type in RELATIONSHIP_NODE_TYPES]

    # 1. Entities on a single row at a fixed step
    for i, node in enumerate(entities):
        positions[node.id] = (cfg["entity_start_x"] + i * cfg["entity_spacing"], cfg["entity_row_y"])

    # 2. Relationships at the mean x of their entities
    rel_y = cfg["entity_row_y"] + cfg["relationship_offset_y"]
    for node in relationships:
        xs = [
            positions[other.id][0]
            for other in topology.relational_neighbors(node.id)
            if other.type in ENTITY_NODE_TYPES
        ]
        x = sum(xs) / len(xs) if xs else cfg["relationship_default_x"]
        positions[node.id] = (x, rel_y)

    # 3. Attribute bands, recursively for nested attributes
    for owner in entities + relationships:
        direction = -1 if owner.type in ENTITY_NODE_TYPES else 1
        owner_x, owner_y = positions[owner.id]
        _place_attribute_band(
            topology,
            owner.id,
            owner_x,
            owner_y + direction * cfg["attribute_offset_y"],
            cfg["attribute_spacing"],
            direction * cfg["sub_attribute_offset_y"],
            cfg,
            positions,
        )

    # 4. Rectangles
    positioned: list[DiagramNode] = []
    for node in graph.nodes:
        if node.type in ENTITY_NODE_TYPES:
            width, height = cfg["entity_width"], cfg["entity_height"]
        elif node.type in RELATIONSHIP_NODE_TYPES:
            width, height = cfg["relationship_width"], cfg["relationship_height"]
        else:
            width, height = cfg["attribute_width"], cfg["attribute_height"]
        x, y = positions.get(node.id, (cfg["orphan_x"], cfg["orphan_y"]))
        positioned.append(replace(node, x=x, y=y, width=width, height=height))

    return DiagramGraph(nodes=positioned, edges=[replace(e) for e in graph.edges])


def _place_attribute_band(
    topology: _Topology,
    owner_id: str,
    center_x: float,
    band_y: float,
    spacing: float,
    step_y: float,
    cfg: dict[str, float],
    positions: dict[str, tuple[float, float]],
) -> None:
    """Center the owner's attributes around `center_x` on row `band_y`."""
    children = [c for c in topology.attribute_children(owner_id) if c.id not in positions]
    if not children:
        return

    start_x = center_x - (len(children) - 1) * spacing / 2
    for index, child in enumerate(children):
        x = start_x + index * spacing
        positions[child.id] = (x, band_y)
        _place_attribute_band(
            topology,
            child.id,
            x,
            band_y + step_y,
            cfg["sub_attribute_spacing"],
            step_y,
            cfg,
            positions,
        )

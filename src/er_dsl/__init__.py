"""er-dsl — Parse ER diagram text into a positioned node/edge graph, and back."""

from __future__ import annotations

import logging

from .types import (
    ErAst,
    EntityNode,
    AttributeNode,
    RelationshipNode,
    RelationshipSide,
    ForeignKeyRef,
    DiagramGraph,
    DiagramNode,
    DiagramEdge,
)
from .errors import DslSyntaxError
from .lexer import Token, tokenize
from .parser import parse_dsl
from .printer import generate_dsl
from .diagram import ast_to_diagram, diagram_to_ast, classify_edge
from .layout import LayoutOptions, layout_diagram

__all__ = [
    "render_diagram",
    "diagram_to_dsl",
    "parse_dsl",
    "generate_dsl",
    "tokenize",
    "ast_to_diagram",
    "diagram_to_ast",
    "classify_edge",
    "layout_diagram",
    "LayoutOptions",
    "DslSyntaxError",
    "Token",
    "ErAst",
    "EntityNode",
    "AttributeNode",
    "RelationshipNode",
    "RelationshipSide",
    "ForeignKeyRef",
    "DiagramGraph",
    "DiagramNode",
    "DiagramEdge",
]

logger = logging.getLogger(__name__)


def render_diagram(
    text: str,
    options: LayoutOptions | None = None,
) -> DiagramGraph:
    """Parse DSL text and return the positioned diagram graph.

    Raises DslSyntaxError when the text does not parse.
    """
    ast = parse_dsl(text)
    graph = layout_diagram(ast_to_diagram(ast), options)
    logger.info(
        "Parsed %d entities and %d relationships",
        len(ast.entities),
        len(ast.relationships),
    )
    return graph


def diagram_to_dsl(graph: DiagramGraph) -> str:
    """Regenerate DSL text from a (possibly edited) diagram graph."""
    return generate_dsl(diagram_to_ast(graph))

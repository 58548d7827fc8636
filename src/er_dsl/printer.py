from __future__ import annotations

import logging
import re

from .lexer import EM_DASH, KEYWORDS
from .types import (
    AttributeNode,
    Cardinality,
    EntityNode,
    ErAst,
    ForeignKeyRef,
    RelationshipNode,
    RelationshipSide,
)

# ============================================================================
# ER DSL printer
#
# Inverse of the parser: renders an AST back to canonical DSL text. Output is
# not byte-identical to the text the AST came from, but parses back to an
# equal AST.
#
# Names coming from an edited graph may not be valid DSL identifiers
# (`first name`, `M`, an empty side). Those are rewritten into identifiers
# with a warning so the output always parses.
# ============================================================================

logger = logging.getLogger(__name__)

INDENT = "  "

# Written for a name that is empty or has no identifier characters at all
PLACEHOLDER_NAME = "Unnamed"

_CARDINALITY_TOKENS: dict[Cardinality, str] = {"one": "1", "many": "M"}

_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NON_IDENTIFIER_CHARS_RE = re.compile(r"[^A-Za-z0-9_]+")


def generate_dsl(ast: ErAst) -> str:
    """Render an AST as DSL text, one block per entity/relationship."""
    blocks: list[str] = []

    for entity in ast.entities:
        blocks.append(_entity_block(entity))
    for rel in ast.relationships:
        blocks.append(_relationship_block(rel))

    return "\n\n".join(blocks)


def _identifier(name: str) -> str:
    """`name` if it reads back as one identifier token, else a rewritten one."""
    if _IDENTIFIER_RE.fullmatch(name) and name not in KEYWORDS:
        return name

    fixed = _NON_IDENTIFIER_CHARS_RE.sub("_", name.strip()).strip("_")
    if not fixed:
        fixed = PLACEHOLDER_NAME
    elif fixed[0].isdigit():
        fixed = "_" + fixed
    if fixed in KEYWORDS:
        fixed += "_"

    logger.warning("Name %r is not a DSL identifier; written as '%s'", name, fixed)
    return fixed


def _entity_block(entity: EntityNode) -> str:
    header = "Weak Entity" if entity.kind == "weak" else "Entity"
    lines = [f"{header} {_identifier(entity.name)}:"]

    for attr in entity.attributes:
        lines.extend(_attribute_lines(attr, INDENT))

    if entity.kind == "weak" and entity.identified_by:
        refs = " + ".join(_fk_ref(ref) for ref in entity.identified_by)
        lines.append(f"{INDENT}Identified By {refs}")

    return "\n".join(lines)


def _relationship_block(rel: RelationshipNode) -> str:
    identifying = rel.kind == "identifying"
    keyword = "Identifying Relation" if identifying else "Relation"
    left = _side_clause(rel.left, identifying)
    right = _side_clause(rel.right, identifying)
    lines = [
        f"{keyword} {_identifier(rel.left.entity)} {left} {EM_DASH} "
        f"{right} {_identifier(rel.right.entity)}: {_identifier(rel.name)}"
    ]

    # Relationship attributes are plain names in the grammar
    for attr in rel.attributes:
        lines.append(f"{INDENT}{_identifier(attr.name)}")

    return "\n".join(lines)


def _side_clause(side: RelationshipSide, identifying: bool) -> str:
    card = _CARDINALITY_TOKENS[side.cardinality]
    # Identifying sides are implicitly total
    if identifying:
        return f"({card})"
    return f"({card}, {side.participation})"


def _attribute_lines(attr: AttributeNode, indent: str) -> list[str]:
    line = indent + _identifier(attr.name)

    if attr.kind == "composite":
        lines = [line + " Composite:"]
        for child in attr.children or []:
            lines.extend(_attribute_lines(child, indent + INDENT))
        return lines

    if attr.key == "primary":
        line += " PK"
    elif attr.key == "foreign":
        line += " FK"
        if attr.fk_target is not None:
            line += f" -> {_fk_ref(attr.fk_target)}"
    elif attr.kind == "multivalued":
        line += " Multivalued"
    elif attr.kind == "derived":
        line += " Derived"
    elif attr.kind == "typed" and attr.data_type:
        line += f": {_identifier(attr.data_type)}"

    return [line]


def _fk_ref(ref: ForeignKeyRef) -> str:
    return f"{_identifier(ref.entity)}.{_identifier(ref.attribute)}"

from __future__ import annotations

import logging

from .errors import DslSyntaxError
from .lexer import Token, TokenType, tokenize
from .types import (
    AttributeKind,
    AttributeNode,
    Cardinality,
    EntityNode,
    ErAst,
    ForeignKeyRef,
    KeyRole,
    Participation,
    RelationshipNode,
    RelationshipSide,
)

# ============================================================================
# ER DSL parser
#
# Recursive descent over the token list produced by the lexer.
#
# Supported syntax:
#   Entity Store:
#     store_id PK
#     owner_id FK -> Person.person_id
#     address Composite:
#       street
#       city
#     phones Multivalued
#     age Derived
#     opened: date
#
#   Weak Entity OrderItem:
#     quantity
#     Identified By Order.order_id + Product.product_id
#
#   Relation Store (1, total) — (M) Product: sells
#     since
#   Identifying Relation Order (1) — (M) OrderItem: contains
#
# `--` may be used in place of the em dash. Participation defaults to
# partial; identifying relationships are always total on both sides.
# ============================================================================

logger = logging.getLogger(__name__)

_DECLARATION_STARTS: frozenset[TokenType] = frozenset(
    {"ENTITY", "WEAK", "RELATION", "IDENTIFYING"}
)

# A sub-attribute list stops before an identifier followed by one of these:
# that identifier starts the next attribute of the owner instead.
_ATTRIBUTE_MODIFIERS: frozenset[TokenType] = frozenset(
    {"PK", "FK", "COMPOSITE", "MULTIVALUED", "DERIVED", "COLON"}
)


def parse_dsl(text: str) -> ErAst:
    """Parse ER DSL text into an AST.

    Raises DslSyntaxError on the first mismatch; no partial result is returned.
    """
    ast = _Parser(tokenize(text)).parse()
    logger.debug(
        "Parsed %d entities and %d relationships",
        len(ast.entities),
        len(ast.relationships),
    )
    return ast


class _Parser:
    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    # ------------------------------------------------------------------
    # Declarations
    # ------------------------------------------------------------------

    def parse(self) -> ErAst:
        ast = ErAst()

        while not self._at_end():
            if self._check("ENTITY"):
                ast.entities.append(self._parse_entity())
            elif self._check("WEAK"):
                ast.entities.append(self._parse_weak_entity())
            elif self._check("RELATION"):
                ast.relationships.append(self._parse_relation())
            elif self._check("IDENTIFYING"):
                ast.relationships.append(self._parse_identifying_relation())
            else:
                # Unknown top-level tokens are skipped
                self._advance()

        return ast

    def _parse_entity(self) -> EntityNode:
        self._expect("ENTITY")
        name = self._expect("IDENTIFIER").value
        self._expect("COLON")
        return EntityNode(name=name, kind="strong", attributes=self._parse_attribute_list())

    def _parse_weak_entity(self) -> EntityNode:
        self._expect("WEAK")
        self._expect("ENTITY")
        name = self._expect("IDENTIFIER").value
        self._expect("COLON")
        attributes = self._parse_attribute_list()

        identified_by: list[ForeignKeyRef] | None = None
        if self._check("IDENTIFIED"):
            self._advance()
            self._expect("BY")
            identified_by = [self._parse_fk_target()]
            while self._check("PLUS"):
                self._advance()
                identified_by.append(self._parse_fk_target())

        return EntityNode(
            name=name,
            kind="weak",
            attributes=attributes,
            identified_by=identified_by,
        )

    def _parse_relation(self) -> RelationshipNode:
        self._expect("RELATION")
        left_entity = self._expect("IDENTIFIER").value
        left_cardinality, left_participation = self._parse_side_clause(allow_participation=True)
        self._expect("DASH")
        right_cardinality, right_participation = self._parse_side_clause(allow_participation=True)
        right_entity = self._expect("IDENTIFIER").value
        self._expect("COLON")
        verb = self._expect("IDENTIFIER").value

        return RelationshipNode(
            name=verb,
            kind="normal",
            left=RelationshipSide(left_entity, left_cardinality, left_participation),
            right=RelationshipSide(right_entity, right_cardinality, right_participation),
            attributes=self._parse_relation_attribute_list(),
        )

    def _parse_identifying_relation(self) -> RelationshipNode:
        self._expect("IDENTIFYING")
        self._expect("RELATION")
        left_entity = self._expect("IDENTIFIER").value
        left_cardinality, _ = self._parse_side_clause(allow_participation=False)
        self._expect("DASH")
        right_cardinality, _ = self._parse_side_clause(allow_participation=False)
        right_entity = self._expect("IDENTIFIER").value
        self._expect("COLON")
        verb = self._expect("IDENTIFIER").value

        return RelationshipNode(
            name=verb,
            kind="identifying",
            left=RelationshipSide(left_entity, left_cardinality, "total"),
            right=RelationshipSide(right_entity, right_cardinality, "total"),
            attributes=self._parse_relation_attribute_list(),
        )

    def _parse_side_clause(self, allow_participation: bool) -> tuple[Cardinality, Participation]:
        """Parse `(card)` or, when allowed, `(card, part)`."""
        self._expect("LPAREN")
        cardinality = self._parse_cardinality()
        participation: Participation = "partial"
        if allow_participation and self._check("COMMA"):
            self._advance()
            participation = self._parse_participation()
        self._expect("RPAREN")
        return cardinality, participation

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------

    def _parse_attribute_list(self) -> list[AttributeNode]:
        attributes: list[AttributeNode] = []

        while not self._at_end() and not self._at_declaration_start():
            if self._check("IDENTIFIER"):
                attributes.append(self._parse_attribute())
            elif self._check("IDENTIFIED"):
                break
            else:
                self._advance()

        return attributes

    def _parse_attribute(self) -> AttributeNode:
        name = self._expect("IDENTIFIER").value
        kind: AttributeKind = "simple"
        key: KeyRole = "none"
        fk_target: ForeignKeyRef | None = None
        data_type: str | None = None
        children: list[AttributeNode] | None = None

        if self._check("PK"):
            self._advance()
            key = "primary"
        elif self._check("FK"):
            self._advance()
            key = "foreign"
            if self._check("ARROW"):
                self._advance()
                fk_target = self._parse_fk_target()
        elif self._check("COMPOSITE"):
            self._advance()
            kind = "composite"
            self._expect("COLON")
            children = self._parse_sub_attribute_list()
        elif self._check("MULTIVALUED"):
            self._advance()
            kind = "multivalued"
        elif self._check("DERIVED"):
            self._advance()
            kind = "derived"
        elif self._check("COLON"):
            self._advance()
            kind = "typed"
            data_type = self._expect("IDENTIFIER").value

        return AttributeNode(
            name=name,
            kind=kind,
            key=key,
            data_type=data_type,
            fk_target=fk_target,
            children=children,
        )

    def _parse_sub_attribute_list(self) -> list[AttributeNode]:
        children: list[AttributeNode] = []

        # Stops at anything that is not an identifier: a declaration
        # keyword, `Identified`, or EOF
        while self._check("IDENTIFIER"):
            following = self._peek(1)
            if following is not None and following.type in _ATTRIBUTE_MODIFIERS:
                break
            children.append(AttributeNode(name=self._advance().value))

        return children

    def _parse_relation_attribute_list(self) -> list[AttributeNode]:
        attributes: list[AttributeNode] = []
        while self._check("IDENTIFIER"):
            attributes.append(AttributeNode(name=self._advance().value))
        return attributes

    def _parse_fk_target(self) -> ForeignKeyRef:
        entity = self._expect("IDENTIFIER").value
        self._expect("DOT")
        attribute = self._expect("IDENTIFIER").value
        return ForeignKeyRef(entity=entity, attribute=attribute)

    def _parse_cardinality(self) -> Cardinality:
        if self._check("ONE"):
            self._advance()
            return "one"
        if self._check("M"):
            self._advance()
            return "many"
        raise self._error("Expected cardinality (1 or M)", "cardinality")

    def _parse_participation(self) -> Participation:
        if self._check("TOTAL"):
            self._advance()
            return "total"
        if self._check("PARTIAL"):
            self._advance()
            return "partial"
        raise self._error("Expected participation (total or partial)", "participation")

    # ------------------------------------------------------------------
    # Token helpers
    # ------------------------------------------------------------------

    def _current(self) -> Token:
        return self.tokens[self.pos]

    def _peek(self, offset: int) -> Token | None:
        index = self.pos + offset
        if index >= len(self.tokens):
            return None
        return self.tokens[index]

    def _at_end(self) -> bool:
        return self._current().type == "EOF"

    def _at_declaration_start(self) -> bool:
        return self._current().type in _DECLARATION_STARTS

    def _check(self, token_type: TokenType) -> bool:
        return not self._at_end() and self._current().type == token_type

    def _advance(self) -> Token:
        token = self._current()
        if not self._at_end():
            self.pos += 1
        return token

    def _expect(self, token_type: TokenType) -> Token:
        if self._check(token_type):
            return self._advance()
        raise self._error(f"Expected {token_type}", token_type)

    def _error(self, message: str, expected: str) -> DslSyntaxError:
        token = self._current()
        actual = token.type if token.type == "EOF" else f"{token.type} '{token.value}'"
        return DslSyntaxError(
            f"{message} but got {actual}",
            line=token.line,
            column=token.column,
            expected=expected,
            actual=token.type,
        )

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

# ============================================================================
# ER DSL lexer
#
# Turns DSL text into a flat token list terminated by an EOF token.
#
#   Entity Store:              ENTITY IDENTIFIER COLON
#     store_id PK              IDENTIFIER PK
#     owner FK -> Person.id    IDENTIFIER FK ARROW IDENTIFIER DOT IDENTIFIER
#   Relation Store (1, total) — (M) Product: sells
#
# Whitespace and `#` comments are dropped; newlines only move the line
# counter. Characters that start no token are skipped without error.
# ============================================================================

TokenType = Literal[
    "IDENTIFIER",
    "NUMBER",
    "ONE",
    "ENTITY",
    "WEAK",
    "RELATION",
    "IDENTIFYING",
    "COMPOSITE",
    "MULTIVALUED",
    "DERIVED",
    "PK",
    "FK",
    "IDENTIFIED",
    "BY",
    "TOTAL",
    "PARTIAL",
    "M",
    "COLON",
    "LPAREN",
    "RPAREN",
    "COMMA",
    "DOT",
    "PLUS",
    "ARROW",
    "DASH",
    "EOF",
]

KEYWORDS: dict[str, TokenType] = {
    "Entity": "ENTITY",
    "Weak": "WEAK",
    "Relation": "RELATION",
    "Identifying": "IDENTIFYING",
    "Composite": "COMPOSITE",
    "Multivalued": "MULTIVALUED",
    "Derived": "DERIVED",
    "PK": "PK",
    "FK": "FK",
    "Identified": "IDENTIFIED",
    "By": "BY",
    "total": "TOTAL",
    "partial": "PARTIAL",
    "M": "M",
}

PUNCTUATION: dict[str, TokenType] = {
    ":": "COLON",
    "(": "LPAREN",
    ")": "RPAREN",
    ",": "COMMA",
    ".": "DOT",
    "+": "PLUS",
}

EM_DASH = "—"

_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMBER_RE = re.compile(r"[0-9]+")


@dataclass(slots=True)
class Token:
    type: TokenType
    value: str
    # 1-based source position of the first character
    line: int
    column: int


def tokenize(text: str) -> list[Token]:
    """Split DSL text into tokens, ending with an EOF token."""
    tokens: list[Token] = []
    pos = 0
    line = 1
    column = 1
    length = len(text)

    while pos < length:
        ch = text[pos]

        if ch == "\n":
            pos += 1
            line += 1
            column = 1
            continue

        if ch in " \t\r":
            pos += 1
            column += 1
            continue

        # Line comment runs up to (not including) the newline
        if ch == "#":
            end = text.find("\n", pos)
            if end == -1:
                end = length
            column += end - pos
            pos = end
            continue

        ident_match = _IDENTIFIER_RE.match(text, pos)
        if ident_match:
            value = ident_match.group(0)
            tokens.append(Token(KEYWORDS.get(value, "IDENTIFIER"), value, line, column))
            pos += len(value)
            column += len(value)
            continue

        number_match = _NUMBER_RE.match(text, pos)
        if number_match:
            value = number_match.group(0)
            # `1` is a cardinality; any other digit run is a plain number
            token_type: TokenType = "ONE" if value == "1" else "NUMBER"
            tokens.append(Token(token_type, value, line, column))
            pos += len(value)
            column += len(value)
            continue

        punct = PUNCTUATION.get(ch)
        if punct is not None:
            tokens.append(Token(punct, ch, line, column))
            pos += 1
            column += 1
            continue

        two = text[pos:pos + 2]
        if two == "->":
            tokens.append(Token("ARROW", two, line, column))
            pos += 2
            column += 2
            continue
        if two == "--":
            tokens.append(Token("DASH", two, line, column))
            pos += 2
            column += 2
            continue
        if ch == EM_DASH:
            tokens.append(Token("DASH", ch, line, column))
            pos += 1
            column += 1
            continue

        # Unrecognized (including a lone `-`): skip
        pos += 1
        column += 1

    tokens.append(Token("EOF", "", line, column))
    return tokens

from __future__ import annotations


class DslSyntaxError(ValueError):
    """Raised when DSL text cannot be parsed.

    Parsing is all-or-nothing: when this is raised no AST is produced.
    """

    def __init__(
        self,
        message: str,
        line: int,
        column: int,
        expected: str | None = None,
        actual: str | None = None,
    ) -> None:
        super().__init__(f"{message} at line {line}, column {column}")
        self.line = line
        self.column = column
        self.expected = expected
        self.actual = actual

"""Token types and token representation for Stak source code."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class StakTokenType(Enum):
    """Token types for Stak source code."""
    IDENTIFIER = "IDENTIFIER"
    INTEGER = "INTEGER"

    # Keywords
    THIS = "this"
    FN = "fn"
    RETURN = "return"
    IF = "if"
    ELSE = "else"
    PRINT = "print"

    # Operators
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    ASSIGN = "="
    EQUAL = "=="
    NOT_EQUAL = "!="
    AND = "&&"
    OR = "||"
    ARROW = "->"

    # Punctuation
    LPAREN = "("
    RPAREN = ")"
    LBRACE = "{"
    RBRACE = "}"
    COMMA = ","
    COLON = ":"
    SEMICOLON = ";"


KEYWORDS = {
    "this": StakTokenType.THIS,
    "fn": StakTokenType.FN,
    "return": StakTokenType.RETURN,
    "if": StakTokenType.IF,
    "else": StakTokenType.ELSE,
    "print": StakTokenType.PRINT,
}


@dataclass
class StakToken:
    """Represents a single token in Stak source code."""
    type: StakTokenType
    value: Any
    line: int
    column: int
    length: int = 1

    def __repr__(self) -> str:
        return f"StakToken({self.type.name}, {self.value!r}, {self.line}:{self.column})"

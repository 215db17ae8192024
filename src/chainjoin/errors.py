from __future__ import annotations

from typing import Optional

from .token_types import Tok


class ChainJoinError(Exception):
    pass


class LexError(ChainJoinError):
    """Lexical analysis error"""

    def __init__(self, message: str, line: int = 0, column: int = 0):
        self.message = message
        self.line = line
        self.column = column
        super().__init__(f"{message} at line {line}, col {column}")


class ParseError(ChainJoinError):
    """Parse error with position info"""

    def __init__(self, message: str, token: Optional[Tok] = None):
        self.message = message
        self.token = token
        super().__init__(
            f"{message} at line {token.line}, col {token.column}" if token else message
        )

    @property
    def line(self) -> Optional[int]:
        return self.token.line if self.token else None

    @property
    def column(self) -> Optional[int]:
        return self.token.column if self.token else None


class ClassificationError(ParseError):
    """No grammar rule matches where an action or terminator was expected."""


class MalformedLeafError(ParseError):
    """A leaf region does not parse as a Python expression."""


class UnboundedNestingError(ParseError):
    """A bracketed region never finds its closing bracket."""

"""
Token Types for the chain lexer

Shared between lexer, classifier and builder to avoid circular dependencies.
"""

from typing import Any
from dataclasses import dataclass
from enum import Enum, auto


class TT(Enum):
    """Token Types"""

    # Atoms
    NAME = auto()
    NUMBER = auto()
    STRING = auto()
    ELLIPSIS = auto()  # ...

    # Single punctuation character; markers are runs of joint PUNCT tokens
    PUNCT = auto()

    # Grouping
    LPAR = auto()
    RPAR = auto()
    LSQB = auto()
    RSQB = auto()
    LBRACE = auto()
    RBRACE = auto()

    # Special
    EOF = auto()


OPEN_BRACKETS = {TT.LPAR: TT.RPAR, TT.LSQB: TT.RSQB, TT.LBRACE: TT.RBRACE}
CLOSE_BRACKETS = {close: open_ for open_, close in OPEN_BRACKETS.items()}


@dataclass
class Tok:
    """Token with position info.

    `start`/`end` are offsets into the lexed source so leaf expressions can
    be sliced back out verbatim. `joint` is set when the next character is
    punctuation with no whitespace in between.
    """

    type: TT
    value: Any
    line: int = 0
    column: int = 0
    start: int = 0
    end: int = 0
    joint: bool = False

    def __repr__(self):
        return f"Tok({self.type.name}, {self.value!r}, {self.line}:{self.column})"

    def describe(self) -> str:
        if self.type == TT.EOF:
            return "end of input"
        return repr(self.value)

"""
Expression nodes held by a chain.

A leaf is an opaque Python expression captured from the chain source. Nodes
only ever hold, extract or substitute whole leaves; they never look inside.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Sequence, Tuple, TypeVar
from typing_extensions import Protocol

from .errors import LexError, MalformedLeafError
from .lexer import tokenize
from .token_types import CLOSE_BRACKETS, OPEN_BRACKETS, TT, Tok

N = TypeVar("N", covariant=True)


@dataclass(frozen=True)
class LeafExpr:
    """Verbatim source of a Python expression plus where it came from."""

    source: str
    line: int = field(default=0, compare=False)
    column: int = field(default=0, compare=False)

    @classmethod
    def parse(cls, source: str, token: Optional[Tok] = None) -> LeafExpr:
        """Validate `source` as a Python expression.

        Chain source is free of layout, so a leaf that only parses inside
        brackets (spans lines, bare generator, walrus) is stored wrapped in
        parentheses.
        """
        text = source.strip()
        line, column = (token.line, token.column) if token else (0, 0)
        if not text:
            raise MalformedLeafError("Expected expression, got nothing", token)
        try:
            _check_suspension_free(ast.parse(text, mode="eval"), text, token)
            return cls(text, line, column)
        except SyntaxError as exc:
            error = exc

        if _brackets_balanced(text):
            wrapped = f"({text})"
            try:
                tree = ast.parse(wrapped, mode="eval")
            except SyntaxError:
                pass
            else:
                _check_suspension_free(tree, text, token)
                return cls(wrapped, line, column)

        raise MalformedLeafError(
            f"Invalid expression {text!r}: {error.msg}", token
        ) from error

    def dump(self) -> str:
        return ast.dump(ast.parse(self.source, mode="eval"))

    def __str__(self) -> str:
        return self.source


_SUSPENDING = {ast.Yield: "yield", ast.YieldFrom: "yield from", ast.Await: "await"}


def _check_suspension_free(tree: ast.AST, text: str, token: Optional[Tok]) -> None:
    """Generated steps are lambdas, so a leaf cannot yield or await."""
    for node in ast.walk(tree):
        keyword = _SUSPENDING.get(type(node))
        if keyword is not None:
            raise MalformedLeafError(
                f"Invalid expression {text!r}: '{keyword}' is not allowed in a chain", token
            )


def _brackets_balanced(text: str) -> bool:
    try:
        tokens = tokenize(text)
    except LexError:
        return False

    stack: List[TT] = []
    for tok in tokens:
        if tok.type in OPEN_BRACKETS:
            stack.append(tok.type)
        elif tok.type in CLOSE_BRACKETS:
            if not stack or OPEN_BRACKETS[stack.pop()] != tok.type:
                return False
    return not stack


def structurally_equal(a: LeafExpr | str, b: LeafExpr | str) -> bool:
    """Compare two expressions by syntax tree, ignoring layout."""
    lhs = a.source if isinstance(a, LeafExpr) else a
    rhs = b.source if isinstance(b, LeafExpr) else b
    return ast.dump(ast.parse(lhs, mode="eval")) == ast.dump(ast.parse(rhs, mode="eval"))


class ExtractExpr(Protocol[N]):
    def extract_expr(self) -> LeafExpr: ...

    def extract_inner_expr(self) -> N: ...


class InnerExpr(Protocol):
    def extract_inner_exprs(self) -> Tuple[LeafExpr, ...]: ...

    def replace_inner_exprs(self, exprs: Sequence[LeafExpr]) -> Optional[InnerExpr]: ...


@dataclass(frozen=True)
class InitialExpr:
    """Start value of a chain. Emitted verbatim, it is not a combinator call."""

    exprs: Tuple[LeafExpr]

    @classmethod
    def new(cls, expr: LeafExpr) -> InitialExpr:
        return cls((expr,))

    def extract_expr(self) -> LeafExpr:
        return self.exprs[0]

    def extract_inner_exprs(self) -> Tuple[LeafExpr, ...]:
        return self.exprs

    def replace_inner_exprs(self, exprs: Sequence[LeafExpr]) -> Optional[InitialExpr]:
        # Any earlier entries are dropped
        if not exprs:
            return None
        return InitialExpr((exprs[-1],))

    def to_source(self) -> str:
        return self.exprs[0].source


class ProcessKind(Enum):
    """Transform-style actions. Values are the surface markers."""

    MAP = "|>"
    THEN = "->"
    AND_THEN = "=>"
    DOT = ".."
    FILTER = "?>"
    INSPECT = "??"
    ZIP = ">>>"


class DefaultKind(Enum):
    """Fallback-style actions, applied only to failures."""

    OR = "<|"
    OR_ELSE = "<|>"
    MAP_ERR = "!>"


class _SingleLeafAction:
    """Shared capabilities of actions that own exactly one leaf."""

    expr: LeafExpr

    def extract_expr(self) -> LeafExpr:
        return self.expr

    def extract_inner_exprs(self) -> Tuple[LeafExpr, ...]:
        return (self.expr,)

    def replace_inner_exprs(self, exprs: Sequence[LeafExpr]):
        if not exprs:
            return None
        return replace(self, expr=exprs[-1])


@dataclass(frozen=True)
class ProcessExpr(_SingleLeafAction):
    kind: ProcessKind
    expr: LeafExpr

    @property
    def marker(self) -> str:
        return self.kind.value


@dataclass(frozen=True)
class DefaultExpr(_SingleLeafAction):
    kind: DefaultKind
    expr: LeafExpr

    @property
    def marker(self) -> str:
        return self.kind.value


def process(kind: ProcessKind, expr: LeafExpr) -> ProcessExpr:
    return ProcessExpr(kind, expr)


def default(kind: DefaultKind, expr: LeafExpr) -> DefaultExpr:
    return DefaultExpr(kind, expr)


def leaf(source: str) -> LeafExpr:
    """Shorthand for building a validated leaf outside the parser."""
    return LeafExpr.parse(source)

"""Expansion engine for chained combinator expressions."""

from .action_expr import ActionExpr, Default, Deferred, Initial, Instant, Process
from .builder import ActionExprChain, ActionExprChainBuilder, JoinExpr, build_chains
from .codegen import CodeGenerator, generate
from .config import ExpansionConfig
from .errors import (
    ChainJoinError,
    ClassificationError,
    LexError,
    MalformedLeafError,
    ParseError,
    UnboundedNestingError,
)
from .expr import DefaultExpr, DefaultKind, InitialExpr, LeafExpr, ProcessExpr, ProcessKind
from .group import GroupDeterminer
from .macro import evaluate, expand, parse_join

__all__ = [
    "ActionExpr",
    "ActionExprChain",
    "ActionExprChainBuilder",
    "ChainJoinError",
    "ClassificationError",
    "CodeGenerator",
    "Default",
    "DefaultExpr",
    "DefaultKind",
    "Deferred",
    "ExpansionConfig",
    "GroupDeterminer",
    "Initial",
    "InitialExpr",
    "Instant",
    "JoinExpr",
    "LeafExpr",
    "LexError",
    "MalformedLeafError",
    "ParseError",
    "Process",
    "ProcessExpr",
    "ProcessKind",
    "UnboundedNestingError",
    "build_chains",
    "evaluate",
    "expand",
    "generate",
    "parse_join",
]

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import pytest

from chainjoin.action_expr import Default, Deferred, Initial, Instant, Process
from chainjoin.builder import (
    ActionExprChain,
    ActionExprChainBuilder,
    BuilderState,
    JoinedChain,
    build_chains,
    split_arguments,
)
from chainjoin.errors import (
    ClassificationError,
    MalformedLeafError,
    ParseError,
    UnboundedNestingError,
)
from chainjoin.expr import (
    DefaultExpr,
    DefaultKind,
    InitialExpr,
    LeafExpr,
    ProcessExpr,
    ProcessKind,
)
from chainjoin.lexer import tokenize
from tests.support.harness import build_chain, leaf


def _initial(source: str) -> Initial:
    return Initial(InitialExpr.new(leaf(source)))


def _process(kind: ProcessKind, source: str, deferred: bool = False) -> Process:
    action = ProcessExpr(kind, leaf(source))
    return Process(Deferred(action) if deferred else Instant(action))


def _default(kind: DefaultKind, source: str, deferred: bool = False) -> Default:
    action = DefaultExpr(kind, leaf(source))
    return Default(Deferred(action) if deferred else Instant(action))


def _leaves(chain: ActionExprChain) -> List[str]:
    return [action.extract_expr().source for action in chain]


# ============================================================================
# Building
# ============================================================================

@dataclass(frozen=True)
class BuildCase:
    name: str
    source: str
    expected: List[object]


BUILD_CASES: List[BuildCase] = [
    BuildCase("initial-only", "x", [_initial("x")]),
    BuildCase(
        "simple-sequential",
        "a -> f |> g",
        [
            _initial("a"),
            _process(ProcessKind.THEN, "f"),
            _process(ProcessKind.MAP, "g"),
        ],
    ),
    BuildCase(
        "deferred-barrier",
        "a -> f ~<|> g",
        [
            _initial("a"),
            _process(ProcessKind.THEN, "f"),
            _default(DefaultKind.OR_ELSE, "g", deferred=True),
        ],
    ),
    BuildCase(
        "every-marker",
        "a |> b -> c => d ..e() ?> f ?? g >>> h <| i <|> j !> k",
        [
            _initial("a"),
            _process(ProcessKind.MAP, "b"),
            _process(ProcessKind.THEN, "c"),
            _process(ProcessKind.AND_THEN, "d"),
            _process(ProcessKind.DOT, "e()"),
            _process(ProcessKind.FILTER, "f"),
            _process(ProcessKind.INSPECT, "g"),
            _process(ProcessKind.ZIP, "h"),
            _default(DefaultKind.OR, "i"),
            _default(DefaultKind.OR_ELSE, "j"),
            _default(DefaultKind.MAP_ERR, "k"),
        ],
    ),
    BuildCase(
        "lambda-leaf-ends-at-marker",
        "x |> lambda v: v + 1 <| 0",
        [
            _initial("x"),
            _process(ProcessKind.MAP, "lambda v: v + 1"),
            _default(DefaultKind.OR, "0"),
        ],
    ),
    BuildCase(
        "bracketed-leaves",
        "[i for i in range(3)] |> {'k': (1, 2)}.get",
        [
            _initial("[i for i in range(3)]"),
            _process(ProcessKind.MAP, "{'k': (1, 2)}.get"),
        ],
    ),
    BuildCase(
        "python-operators-stay-in-leaf",
        "a < b | c >> 1 |> ~mask",
        [
            _initial("a < b | c >> 1"),
            _process(ProcessKind.MAP, "~mask"),
        ],
    ),
    BuildCase(
        "multiline",
        "load(path)\n    |> parse\n    ~=> save",
        [
            _initial("load(path)"),
            _process(ProcessKind.MAP, "parse"),
            _process(ProcessKind.AND_THEN, "save", deferred=True),
        ],
    ),
]


@pytest.mark.parametrize("case", BUILD_CASES, ids=lambda case: case.name)
def test_build(case: BuildCase) -> None:
    chain = build_chain(case.source)
    assert chain.actions == case.expected


@pytest.mark.parametrize("case", BUILD_CASES, ids=lambda case: case.name)
def test_chain_well_formed(case: BuildCase) -> None:
    chain = build_chain(case.source)
    assert isinstance(chain.actions[0], Initial)
    assert not any(isinstance(action, Initial) for action in chain.actions[1:])


def test_builder_reaches_done() -> None:
    builder = ActionExprChainBuilder(tokenize("a |> f"), "a |> f")
    builder.build()
    assert builder.state == BuilderState.DONE


def test_leaf_positions() -> None:
    chain = build_chain("a\n  |> f")
    expr = chain.actions[1].extract_expr()
    assert (expr.line, expr.column) == (2, 6)


# ============================================================================
# Errors
# ============================================================================

@dataclass(frozen=True)
class ErrorCase:
    name: str
    source: str
    exc: type[ParseError]
    msg: str
    err_line: Optional[int] = None
    err_col: Optional[int] = None


ERROR_CASES: List[ErrorCase] = [
    ErrorCase(
        "dangling-deferred",
        "x |> f ~",
        ClassificationError,
        "Expected an action marker after '~'",
        1,
        8,
    ),
    ErrorCase(
        "dangling-deferred-after-initial",
        "a ~",
        ClassificationError,
        "Expected an action marker after '~'",
    ),
    ErrorCase(
        "dangling-deferred-before-join",
        "a ~&& (b)",
        ClassificationError,
        "Expected an action marker after '~'",
    ),
    ErrorCase(
        "missing-leaf",
        "a |> ",
        MalformedLeafError,
        "Expected expression, got end of input",
    ),
    ErrorCase(
        "empty-source",
        "",
        MalformedLeafError,
        "Expected expression",
    ),
    ErrorCase(
        "marker-first",
        "|> f",
        MalformedLeafError,
        "Expected expression, got '|'",
    ),
    ErrorCase(
        "two-markers",
        "a |> <| b",
        MalformedLeafError,
        "Expected expression, got '<'",
    ),
    ErrorCase(
        "unclosed-paren",
        "a |> f(",
        UnboundedNestingError,
        "Unclosed '('",
        1,
        7,
    ),
    ErrorCase(
        "unmatched-close",
        "a |> f)",
        MalformedLeafError,
        "Unmatched ')'",
    ),
    ErrorCase(
        "mismatched-brackets",
        "a |> (b]",
        MalformedLeafError,
        "Mismatched ']' for '('",
    ),
    ErrorCase(
        "invalid-leaf",
        "a |> b c",
        MalformedLeafError,
        "Invalid expression 'b c'",
        1,
        6,
    ),
    ErrorCase(
        "bad-attribute-tail",
        "a ..0",
        MalformedLeafError,
        "Expected attribute or method call after '..'",
    ),
    ErrorCase(
        "text-after-join",
        "a && (b) c",
        ClassificationError,
        "Expected action marker, got 'c'",
    ),
    ErrorCase(
        "join-without-paren",
        "a && b",
        ClassificationError,
        "Expected '(' after '&&', got 'b'",
    ),
    ErrorCase(
        "empty-join",
        "a && ()",
        ClassificationError,
        "Empty join group",
    ),
    ErrorCase(
        "unclosed-join",
        "a && (b |> f",
        UnboundedNestingError,
        "Unclosed '('",
    ),
    ErrorCase(
        "handler-in-join",
        "a && (b, c, map => f)",
        ClassificationError,
        "A handler is only allowed at the top level",
        1,
        13,
    ),
    ErrorCase(
        "dot-tail-with-operator",
        "x ..a + b",
        MalformedLeafError,
        "Expected attribute or method call after '..', got 'a + b'",
    ),
    ErrorCase(
        "await-in-deferred-step",
        "a ~|> await g()",
        MalformedLeafError,
        "'await' is not allowed in a chain",
    ),
    ErrorCase(
        "error-inside-join",
        "a && (b ~)",
        ClassificationError,
        "Expected an action marker after '~'",
    ),
]


@pytest.mark.parametrize("case", ERROR_CASES, ids=lambda case: case.name)
def test_build_errors(case: ErrorCase) -> None:
    builder = ActionExprChainBuilder(tokenize(case.source), case.source)
    with pytest.raises(case.exc) as exc_info:
        builder.build()

    err = exc_info.value
    assert case.msg in str(err)
    assert builder.state == BuilderState.FAILED
    if case.err_line is not None:
        assert err.line == case.err_line
    if case.err_col is not None:
        assert err.column == case.err_col


# ============================================================================
# Joins and steps
# ============================================================================

def test_join_after_barrier_starts_in_that_step() -> None:
    chain = build_chain("a ~|> f && (b |> g)")

    assert _leaves(chain) == ["a", "f"]
    assert chain.joined == [JoinedChain(build_chain("b |> g"), 1)]


def test_join_several_siblings() -> None:
    chain = build_chain("a && (b, c <| d)")

    assert [item.start_step for item in chain.joined] == [0, 0]
    assert [_leaves(item.chain) for item in chain.joined] == [["b"], ["c", "d"]]


def test_nested_join() -> None:
    chain = build_chain("a ~|> f && (b ~|> g && (c))")

    inner = chain.joined[0].chain
    assert _leaves(inner.joined[0].chain) == ["c"]
    assert [p.offset for p in chain.pipelines()] == [0, 1, 2]


def test_actions_continue_after_join() -> None:
    chain = build_chain("a && (b) |> f")
    assert _leaves(chain) == ["a", "f"]
    assert len(chain.joined) == 1


def test_steps_split_at_deferred() -> None:
    chain = build_chain("a |> f ~|> g |> h ~<| i")

    steps = chain.steps()
    assert [len(step) for step in steps] == [2, 2, 1]
    assert chain.deferred_count == 2
    assert steps[2] == [_default(DefaultKind.OR, "i", deferred=True)]


def test_pipeline_step_lookup() -> None:
    pipelines = build_chain("a ~|> f && (b)").pipelines()
    sibling = pipelines[1]

    assert sibling.offset == 1
    assert sibling.last_step == 1
    assert sibling.step_at(0) is None
    assert sibling.step_at(1) == [_initial("b")]
    assert sibling.step_at(2) is None


# ============================================================================
# Chain object
# ============================================================================

def test_push_requires_initial_first() -> None:
    with pytest.raises(ValueError):
        ActionExprChain([_process(ProcessKind.MAP, "f")])


def test_push_rejects_second_initial() -> None:
    chain = ActionExprChain([_initial("a")])
    with pytest.raises(ValueError):
        chain.push(_initial("b"))


def test_replace_leaves() -> None:
    chain = build_chain("a |> f ~<| g && (b)")
    rewritten = chain.replace_leaves(lambda expr: LeafExpr.parse(f"w({expr.source})"))

    assert _leaves(rewritten) == ["w(a)", "w(f)", "w(g)"]
    assert isinstance(rewritten.actions[2].action, Deferred)
    assert _leaves(rewritten.joined[0].chain) == ["w(b)"]
    assert rewritten.joined[0].start_step == 1
    assert _leaves(chain) == ["a", "f", "g"]


def test_replace_leaves_none_keeps_leaf() -> None:
    chain = build_chain("a |> f && (b)")
    assert chain.replace_leaves(lambda expr: None) == chain


# ============================================================================
# Arguments
# ============================================================================

@pytest.mark.parametrize(
    "source, count",
    [
        ("a", 1),
        ("a, b", 2),
        ("a, b,", 2),
        ("f(a, b), c", 2),
        ("a, lambda x, y: x + y, b", 3),
        ("a |> (lambda x, y=1: x), b", 2),
        ("{'a': 1, 'b': 2}, [1, 2]", 2),
        ("x, map => lambda a, b: a + b", 2),
    ],
)
def test_split_arguments(source: str, count: int) -> None:
    assert len(split_arguments(tokenize(source))) == count


@pytest.mark.parametrize("source", [",a", "a,,b"])
def test_split_arguments_rejects_empty(source: str) -> None:
    with pytest.raises(MalformedLeafError, match="Expected expression before ','"):
        split_arguments(tokenize(source))


def test_build_chains() -> None:
    source = "a |> f, lambda x, y: x"
    chains = build_chains(tokenize(source), source)

    assert [_leaves(chain) for chain in chains] == [["a", "f"], ["lambda x, y: x"]]


@pytest.mark.parametrize("tail", ["upper()", "real", "a.b[0]", "items()[0].key", "get(1)(2)"])
def test_attribute_tails(tail: str) -> None:
    chain = build_chain(f"x ..{tail}")
    assert chain.actions[1] == _process(ProcessKind.DOT, tail)

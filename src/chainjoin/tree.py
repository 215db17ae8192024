"""lark Tree views of built chains, for printing and structural assertions."""

from __future__ import annotations

from typing import TYPE_CHECKING, List, Union

from lark import Token, Tree

from .action_expr import ActionExpr, Default, Deferred, Initial, Instant, Process

if TYPE_CHECKING:
    from .builder import ActionExprChain, JoinExpr

Node = Union[Tree, Token]


def _leaf(action: ActionExpr) -> Token:
    expr = action.extract_expr()
    return Token("LEAF", expr.source, line=expr.line or None, column=expr.column or None)


def action_to_tree(action: ActionExpr) -> Tree:
    match action:
        case Initial():
            return Tree("initial", [_leaf(action)])
        case Process(Instant(inner)) | Default(Instant(inner)):
            label = "process" if isinstance(action, Process) else "default"
            return Tree(label, [Token("INSTANT", ""), Token(inner.kind.name, inner.marker), _leaf(action)])
        case Process(Deferred(inner)) | Default(Deferred(inner)):
            label = "process" if isinstance(action, Process) else "default"
            return Tree(label, [Token("DEFERRED", "~"), Token(inner.kind.name, inner.marker), _leaf(action)])
        case _:
            raise AssertionError(f"unknown action {action!r}")


def chain_to_tree(chain: ActionExprChain) -> Tree:
    children: List[Node] = [action_to_tree(action) for action in chain.actions]
    for joined in chain.joined:
        children.append(
            Tree("join", [Token("STEP", str(joined.start_step)), chain_to_tree(joined.chain)])
        )
    return Tree("chain", children)


def join_to_tree(join: JoinExpr) -> Tree:
    children: List[Node] = [chain_to_tree(chain) for chain in join.chains]
    if join.handler is not None:
        children.append(
            Tree("handler", [Token(join.handler.group.name, join.handler.group.value),
                             Token("LEAF", join.handler.expr.source)])
        )
    return Tree("join_expr", children)

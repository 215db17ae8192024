from __future__ import annotations

from lark import Token, Tree

from chainjoin.macro import parse_join
from tests.support.harness import build_chain


def _data(nodes):
    return [node.data for node in nodes if isinstance(node, Tree)]


def test_chain_tree_shape() -> None:
    tree = build_chain("a |> f ~<| g && (b)").to_tree()

    assert tree.data == "chain"
    assert _data(tree.children) == ["initial", "process", "default", "join"]


def test_action_tokens() -> None:
    tree = build_chain("a |> f ~<| g").to_tree()
    process, default = tree.children[1], tree.children[2]

    assert [tok.type for tok in process.children] == ["INSTANT", "MAP", "LEAF"]
    assert [str(tok) for tok in process.children] == ["", "|>", "f"]
    assert [tok.type for tok in default.children] == ["DEFERRED", "OR", "LEAF"]
    assert str(default.children[0]) == "~"


def test_leaf_token_position() -> None:
    tree = build_chain("a\n  |> f").to_tree()
    leaf = tree.children[1].children[2]

    assert isinstance(leaf, Token)
    assert (leaf.line, leaf.column) == (2, 6)


def test_join_records_start_step() -> None:
    tree = build_chain("a ~|> f && (b)").to_tree()
    join = tree.children[-1]

    assert join.children[0].type == "STEP"
    assert join.children[0] == "1"
    assert join.children[1].data == "chain"


def test_join_expr_tree_with_handler() -> None:
    tree = parse_join("a, b, map => f").to_tree()

    assert tree.data == "join_expr"
    assert _data(tree.children) == ["chain", "chain", "handler"]
    handler = tree.children[-1]
    assert handler.children[0].type == "MAP"
    assert handler.children[1] == "f"


def test_pretty_prints() -> None:
    text = build_chain("a |> f").to_tree().pretty()
    assert "initial" in text
    assert "process" in text

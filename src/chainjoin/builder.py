"""
Chain builder

Consumes a token list left to right, asks the group determiner what comes
next, and assembles the ordered chain of action expressions.

Grammar (markers are listed in `group.MARKER_RULES`):

    chain     := leaf (action | join_cmd)*
    action    := ["~"] marker leaf
    join_cmd  := "&&" "(" chain ("," chain)* ")"

A leaf is every token up to the next marker at bracket depth zero. Bracketed
groups are skipped whole, so a marker inside parentheses belongs to the leaf.
"""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Callable, Iterator, List, NoReturn, Optional, Sequence

from .action_expr import ActionExpr, Default, Initial, Process, is_initial, schedule
from .errors import ClassificationError, MalformedLeafError, ParseError, UnboundedNestingError
from .expr import DefaultExpr, InitialExpr, LeafExpr, ProcessExpr, ProcessKind
from .group import (
    DEFAULT_DETERMINER,
    ActionGroup,
    CommandGroup,
    GroupDeterminer,
    GroupMatch,
    HandlerGroup,
)
from .token_types import CLOSE_BRACKETS, OPEN_BRACKETS, TT, Tok

logger = logging.getLogger("chainjoin.builder")


# ============================================================================
# Chain
# ============================================================================

@dataclass(frozen=True)
class JoinedChain:
    """A sibling chain that starts alongside its parent at `start_step`."""

    chain: ActionExprChain
    start_step: int


@dataclass(frozen=True)
class Pipeline:
    """One chain placed on the global step timeline."""

    chain: ActionExprChain
    offset: int
    steps: List[List[ActionExpr]] = field(compare=False)

    @property
    def last_step(self) -> int:
        return self.offset + len(self.steps) - 1

    def step_at(self, step: int) -> Optional[List[ActionExpr]]:
        idx = step - self.offset
        if 0 <= idx < len(self.steps):
            return self.steps[idx]
        return None


class ActionExprChain:
    """
    Ordered actions of one pipeline, rooted at exactly one `Initial`.

    Chains joined with `&&` are kept on `joined`; they do not run after this
    chain but next to it.
    """

    def __init__(
        self,
        actions: Optional[Sequence[ActionExpr]] = None,
        joined: Optional[Sequence[JoinedChain]] = None,
    ):
        self.actions: List[ActionExpr] = []
        self.joined: List[JoinedChain] = list(joined or [])
        for action in actions or ():
            self.push(action)

    def push(self, action: ActionExpr) -> None:
        if not self.actions and not is_initial(action):
            raise ValueError("chain must start with an Initial action")
        if self.actions and is_initial(action):
            raise ValueError("chain already has an Initial action")
        self.actions.append(action)

    def join(self, chains: Sequence[ActionExprChain], start_step: int) -> None:
        for chain in chains:
            self.joined.append(JoinedChain(chain, start_step))

    @property
    def initial(self) -> Initial:
        head = self.actions[0]
        assert isinstance(head, Initial)
        return head

    @property
    def deferred_count(self) -> int:
        return sum(1 for action in self.actions if action.is_deferred)

    def steps(self) -> List[List[ActionExpr]]:
        """Split actions at each deferred action; instants stay in the current step."""
        steps: List[List[ActionExpr]] = []
        for action in self.actions:
            if not steps or action.is_deferred:
                steps.append([])
            steps[-1].append(action)
        return steps

    def pipelines(self, offset: int = 0) -> List[Pipeline]:
        """This chain and every joined chain, depth first, with step offsets."""
        result = [Pipeline(self, offset, self.steps())]
        for joined in self.joined:
            result.extend(joined.chain.pipelines(offset + joined.start_step))
        return result

    def replace_leaves(
        self, rewrite: Callable[[LeafExpr], Optional[LeafExpr]]
    ) -> ActionExprChain:
        """Rebuild the chain with every leaf passed through `rewrite`.

        A `None` from `rewrite` keeps the original leaf.
        """
        actions: List[ActionExpr] = []
        for action in self.actions:
            new_exprs = [
                rewrite(expr) or expr for expr in action.extract_inner_exprs()
            ]
            actions.append(action.replace_inner_exprs(new_exprs) or action)
        joined = [
            JoinedChain(item.chain.replace_leaves(rewrite), item.start_step)
            for item in self.joined
        ]
        return ActionExprChain(actions, joined)

    def to_tree(self):
        from .tree import chain_to_tree

        return chain_to_tree(self)

    def __iter__(self) -> Iterator[ActionExpr]:
        return iter(self.actions)

    def __len__(self) -> int:
        return len(self.actions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ActionExprChain):
            return NotImplemented
        return self.actions == other.actions and self.joined == other.joined

    def __repr__(self) -> str:
        return f"ActionExprChain({self.actions!r}, joined={self.joined!r})"


# ============================================================================
# Builder
# ============================================================================

class BuilderState(Enum):
    EXPECT_INITIAL = auto()
    EXPECT_ACTION = auto()
    DONE = auto()
    FAILED = auto()


class ActionExprChainBuilder:
    """
    Recursive descent over one argument's tokens.

    The builder owns its cursor; nested `&&` regions are handed to a fresh
    builder over their own token slice.
    """

    def __init__(
        self,
        tokens: Sequence[Tok],
        source: str,
        determiner: GroupDeterminer = DEFAULT_DETERMINER,
    ):
        self.tokens = _with_eof(tokens)
        self.source = source
        self.determiner = determiner
        self.pos = 0
        self.state = BuilderState.EXPECT_INITIAL

    # ========================================================================
    # Token Navigation
    # ========================================================================

    @property
    def current(self) -> Tok:
        return self.tokens[min(self.pos, len(self.tokens) - 1)]

    def check(self, *types: TT) -> bool:
        """Check if current token matches any of the given types"""
        return self.current.type in types

    def advance(self, n: int = 1) -> Tok:
        prev = self.current
        self.pos = min(self.pos + n, len(self.tokens) - 1)
        return prev

    def fail(self, error: ParseError) -> NoReturn:
        self.state = BuilderState.FAILED
        raise error

    # ========================================================================
    # Chain
    # ========================================================================

    def build(self) -> ActionExprChain:
        chain = ActionExprChain()

        while True:
            match self.state:
                case BuilderState.EXPECT_INITIAL:
                    expr = self.parse_leaf()
                    chain.push(Initial(InitialExpr.new(expr)))
                    self.state = BuilderState.EXPECT_ACTION

                case BuilderState.EXPECT_ACTION:
                    if self.check(TT.EOF):
                        self.state = BuilderState.DONE
                        continue

                    found = self.determiner.determine(self.tokens, self.pos)
                    if found is None:
                        if self.determiner.is_dangling_deferred(self.tokens, self.pos):
                            self.fail(ClassificationError(
                                "Expected an action marker after '~'", self.current
                            ))
                        self.fail(ClassificationError(
                            f"Expected action marker, got {self.current.describe()}",
                            self.current,
                        ))

                    self.commit(chain, found)

                case BuilderState.DONE:
                    return chain

                case _:
                    raise AssertionError(f"builder cannot continue from {self.state}")

    def commit(self, chain: ActionExprChain, found: GroupMatch) -> None:
        marker_tok = self.advance(found.width)

        match found.group:
            case ActionGroup():
                expr = self.parse_leaf()
                action = self.make_action(found, expr, marker_tok)
                logger.debug(
                    "line %d col %d: %s%s %s",
                    marker_tok.line, marker_tok.column,
                    "~" if found.deferred else "", found.group.kind.name, expr.source,
                )
                chain.push(action)

            case CommandGroup.JOIN:
                siblings = self.parse_join_region()
                logger.debug(
                    "line %d col %d: join %d chain(s) at step %d",
                    marker_tok.line, marker_tok.column, len(siblings), chain.deferred_count,
                )
                chain.join(siblings, chain.deferred_count)

            case _:
                raise AssertionError(f"unhandled group {found.group!r}")

    def make_action(self, found: GroupMatch, expr: LeafExpr, marker_tok: Tok) -> ActionExpr:
        assert isinstance(found.group, ActionGroup)
        kind = found.group.kind

        if isinstance(kind, ProcessKind):
            if kind == ProcessKind.DOT:
                self.check_attribute_tail(expr, marker_tok)
            return Process(schedule(ProcessExpr(kind, expr), found.deferred))
        return Default(schedule(DefaultExpr(kind, expr), found.deferred))

    def check_attribute_tail(self, expr: LeafExpr, tok: Tok) -> None:
        try:
            node = ast.parse(f"_.{expr.source}", mode="eval").body
        except SyntaxError:
            node = None

        # Walk attribute, call and subscript heads down to the placeholder
        root = node
        while isinstance(root, (ast.Attribute, ast.Call, ast.Subscript)):
            root = root.func if isinstance(root, ast.Call) else root.value

        if node is root or not (isinstance(root, ast.Name) and root.id == "_"):
            self.fail(MalformedLeafError(
                f"Expected attribute or method call after '..', got {expr.source!r}", tok
            ))

    # ========================================================================
    # Leaves and groups
    # ========================================================================

    def parse_leaf(self) -> LeafExpr:
        first = self.pos
        first_tok = self.current

        while not self.check(TT.EOF):
            if self.determiner.is_dangling_deferred(self.tokens, self.pos):
                self.fail(ClassificationError(
                    "Expected an action marker after '~'", self.current
                ))
            if self.determiner.determine(self.tokens, self.pos) is not None:
                break
            if self.current.type in OPEN_BRACKETS:
                self.pos = self.find_group_end(self.pos) + 1
                continue
            if self.current.type in CLOSE_BRACKETS:
                self.fail(MalformedLeafError(
                    f"Unmatched {self.current.value!r}", self.current
                ))
            self.advance()

        if self.pos == first:
            self.fail(MalformedLeafError(
                f"Expected expression, got {self.current.describe()}", self.current
            ))

        last_tok = self.tokens[self.pos - 1]
        text = self.source[first_tok.start:last_tok.end]
        try:
            return LeafExpr.parse(text, first_tok)
        except MalformedLeafError:
            self.state = BuilderState.FAILED
            raise

    def find_group_end(self, pos: int) -> int:
        """Index of the bracket closing the one at `pos`."""
        stack = [self.tokens[pos]]
        idx = pos + 1

        while stack:
            if idx >= len(self.tokens) or self.tokens[idx].type == TT.EOF:
                self.fail(UnboundedNestingError(
                    f"Unclosed {stack[-1].value!r}", stack[-1]
                ))
            tok = self.tokens[idx]
            if tok.type in OPEN_BRACKETS:
                stack.append(tok)
            elif tok.type in CLOSE_BRACKETS:
                if OPEN_BRACKETS[stack[-1].type] != tok.type:
                    self.fail(MalformedLeafError(
                        f"Mismatched {tok.value!r} for {stack[-1].value!r}", tok
                    ))
                stack.pop()
            idx += 1

        return idx - 1

    def parse_join_region(self) -> List[ActionExprChain]:
        open_tok = self.current
        if not self.check(TT.LPAR):
            self.fail(ClassificationError(
                f"Expected '(' after '&&', got {open_tok.describe()}", open_tok
            ))

        close = self.find_group_end(self.pos)
        inner = list(self.tokens[self.pos + 1:close])
        close_tok = self.tokens[close]
        inner.append(Tok(TT.EOF, None, close_tok.line, close_tok.column,
                         close_tok.start, close_tok.start))
        self.pos = close + 1

        if len(inner) == 1:
            self.fail(ClassificationError("Empty join group", open_tok))

        try:
            return build_chains(inner, self.source, self.determiner)
        except ParseError:
            self.state = BuilderState.FAILED
            raise


# ============================================================================
# Arguments
# ============================================================================

def _with_eof(tokens: Sequence[Tok]) -> List[Tok]:
    result = list(tokens)
    if not result or result[-1].type != TT.EOF:
        end = result[-1].end if result else 0
        line = result[-1].line if result else 1
        result.append(Tok(TT.EOF, None, line, 0, end, end))
    return result


def split_arguments(tokens: Sequence[Tok]) -> List[List[Tok]]:
    """
    Split at depth-zero commas. Commas in a `lambda` parameter list do not
    split. A trailing comma is allowed. Each argument ends with an EOF token.
    """
    tokens = _with_eof(tokens)
    args: List[List[Tok]] = []
    current: List[Tok] = []
    depth = 0
    in_lambda_params = 0

    for tok in tokens:
        if tok.type == TT.EOF:
            if current or not args:
                current.append(Tok(TT.EOF, None, tok.line, tok.column, tok.start, tok.start))
                args.append(current)
            break

        if tok.type in OPEN_BRACKETS:
            depth += 1
        elif tok.type in CLOSE_BRACKETS:
            depth = max(depth - 1, 0)
        elif depth == 0 and tok.type == TT.NAME and tok.value == "lambda":
            in_lambda_params += 1
        elif depth == 0 and tok.type == TT.PUNCT and tok.value == ":" and in_lambda_params:
            in_lambda_params -= 1
        elif depth == 0 and tok.type == TT.PUNCT and tok.value == "," and not in_lambda_params:
            if not current:
                raise MalformedLeafError("Expected expression before ','", tok)
            current.append(Tok(TT.EOF, None, tok.line, tok.column, tok.start, tok.start))
            args.append(current)
            current = []
            continue

        current.append(tok)

    return args


def build_chains(
    tokens: Sequence[Tok],
    source: str,
    determiner: GroupDeterminer = DEFAULT_DETERMINER,
) -> List[ActionExprChain]:
    """Build one chain per comma-separated argument.

    Handlers belong to the whole expansion, so none is accepted here.
    """
    chains = []
    for arg in split_arguments(tokens):
        if determiner.determine_handler(arg, 0) is not None:
            raise ClassificationError("A handler is only allowed at the top level", arg[0])
        chains.append(ActionExprChainBuilder(arg, source, determiner).build())
    return chains


# ============================================================================
# Join
# ============================================================================

@dataclass(frozen=True)
class Handler:
    """`map => f`, `then => f` or `and_then => f` over the joined results."""

    group: HandlerGroup
    expr: LeafExpr


@dataclass
class JoinExpr:
    """Everything one expansion produces code for."""

    chains: List[ActionExprChain]
    handler: Optional[Handler] = None

    def pipelines(self) -> List[Pipeline]:
        return [pipeline for chain in self.chains for pipeline in chain.pipelines()]

    def to_tree(self):
        from .tree import join_to_tree

        return join_to_tree(self)

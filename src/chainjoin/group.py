"""
Group determiner: bounded lookahead deciding what the builder commits to next.

Markers are runs of joint punctuation tokens. Each rule is a short token
prefix plus the group it denotes; rules are checked longest first so a
marker is never misread as a shorter marker that happens to prefix it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Tuple, Union

from .expr import DefaultKind, ProcessKind
from .token_types import TT, Tok


@dataclass(frozen=True)
class ActionGroup:
    """A process or default action kind."""

    kind: Union[ProcessKind, DefaultKind]

    @property
    def is_process(self) -> bool:
        return isinstance(self.kind, ProcessKind)


class CommandGroup(Enum):
    JOIN = "&&"


class HandlerGroup(Enum):
    """Applied to the joined results of all chains."""

    MAP = "map"
    THEN = "then"
    AND_THEN = "and_then"


Group = Union[ActionGroup, CommandGroup]


@dataclass(frozen=True)
class MarkerRule:
    chars: Tuple[str, ...]
    group: Group

    def matches(self, tokens: Sequence[Tok], pos: int) -> bool:
        last = len(self.chars) - 1
        for offset, ch in enumerate(self.chars):
            idx = pos + offset
            if idx >= len(tokens):
                return False
            tok = tokens[idx]
            if tok.type != TT.PUNCT or tok.value != ch:
                return False
            if offset < last and not tok.joint:
                return False
        return True


@dataclass(frozen=True)
class GroupMatch:
    group: Group
    width: int
    deferred: bool = False


def _rule(marker: str, group: Group) -> MarkerRule:
    return MarkerRule(tuple(marker), group)


# Longest markers first to handle prefixes correctly
MARKER_RULES: Tuple[MarkerRule, ...] = (
    # Three-character markers
    _rule("<|>", ActionGroup(DefaultKind.OR_ELSE)),
    _rule(">>>", ActionGroup(ProcessKind.ZIP)),

    # Two-character markers
    _rule("|>", ActionGroup(ProcessKind.MAP)),
    _rule("->", ActionGroup(ProcessKind.THEN)),
    _rule("=>", ActionGroup(ProcessKind.AND_THEN)),
    _rule("..", ActionGroup(ProcessKind.DOT)),
    _rule("?>", ActionGroup(ProcessKind.FILTER)),
    _rule("??", ActionGroup(ProcessKind.INSPECT)),
    _rule("<|", ActionGroup(DefaultKind.OR)),
    _rule("!>", ActionGroup(DefaultKind.MAP_ERR)),
    _rule("&&", CommandGroup.JOIN),
)

DEFERRED_MARKER = "~"
HANDLER_ARROW = _rule("=>", ActionGroup(ProcessKind.AND_THEN))


class GroupDeterminer:
    """
    Classifies the tokens at a position without consuming them.

    `determine` returns None when no marker starts at `pos`; whether that is
    an error depends on what the builder expected there.
    """

    def __init__(self, rules: Sequence[MarkerRule] = MARKER_RULES):
        self.rules = tuple(sorted(rules, key=lambda rule: len(rule.chars), reverse=True))

    def match_marker(self, tokens: Sequence[Tok], pos: int) -> Optional[GroupMatch]:
        for rule in self.rules:
            if rule.matches(tokens, pos):
                return GroupMatch(rule.group, len(rule.chars))
        return None

    def determine(self, tokens: Sequence[Tok], pos: int) -> Optional[GroupMatch]:
        if self._is_deferred_marker(tokens, pos):
            inner = self.match_marker(tokens, pos + 1)
            if inner is not None and isinstance(inner.group, ActionGroup):
                return GroupMatch(inner.group, inner.width + 1, deferred=True)
            return None
        return self.match_marker(tokens, pos)

    def is_dangling_deferred(self, tokens: Sequence[Tok], pos: int) -> bool:
        """A `~` with nothing it could schedule after it."""
        if not self._is_deferred_marker(tokens, pos):
            return False
        nxt = tokens[pos + 1] if pos + 1 < len(tokens) else None
        if nxt is None or nxt.type == TT.EOF:
            return True
        if nxt.type == TT.PUNCT and nxt.value == ",":
            return True
        inner = self.match_marker(tokens, pos + 1)
        return inner is not None and isinstance(inner.group, CommandGroup)

    def determine_handler(self, tokens: Sequence[Tok], pos: int) -> Optional[HandlerGroup]:
        """`map =>`, `then =>` or `and_then =>` at the start of an argument."""
        if pos >= len(tokens) or tokens[pos].type != TT.NAME:
            return None
        try:
            handler = HandlerGroup(tokens[pos].value)
        except ValueError:
            return None
        if HANDLER_ARROW.matches(tokens, pos + 1):
            return handler
        return None

    @staticmethod
    def _is_deferred_marker(tokens: Sequence[Tok], pos: int) -> bool:
        if pos >= len(tokens):
            return False
        tok = tokens[pos]
        return tok.type == TT.PUNCT and tok.value == DEFERRED_MARKER


DEFAULT_DETERMINER = GroupDeterminer()

"""
Definition of `ActionExpr`, `ProcessActionExpr`, `DefaultActionExpr`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Optional, Sequence, Tuple, TypeVar, Union
from typing_extensions import TypeAlias, TypeGuard

from .expr import DefaultExpr, InitialExpr, LeafExpr, ProcessExpr

A = TypeVar("A", ProcessExpr, DefaultExpr)


class _Scheduled(Generic[A]):
    action: A

    def extract_expr(self) -> LeafExpr:
        return self.extract_inner_expr().extract_expr()

    def extract_inner_expr(self) -> A:
        return self.action

    def extract_inner_exprs(self) -> Tuple[LeafExpr, ...]:
        return self.action.extract_inner_exprs()

    def replace_inner_exprs(self, exprs: Sequence[LeafExpr]):
        action = self.action.replace_inner_exprs(exprs)
        if action is None:
            return None
        return type(self)(action)


@dataclass(frozen=True)
class Instant(_Scheduled[A]):
    """Action applied to the value in its textual position."""

    action: A


@dataclass(frozen=True)
class Deferred(_Scheduled[A]):
    """Action applied after every sibling chain has finished its current step."""

    action: A


InstantOrDeferredExpr: TypeAlias = Union[Instant[A], Deferred[A]]
ProcessActionExpr: TypeAlias = Union[Instant[ProcessExpr], Deferred[ProcessExpr]]
DefaultActionExpr: TypeAlias = Union[Instant[DefaultExpr], Deferred[DefaultExpr]]


@dataclass(frozen=True)
class Initial:
    expr: InitialExpr

    @property
    def is_deferred(self) -> bool:
        return False

    def extract_expr(self) -> LeafExpr:
        return self.expr.extract_expr()

    def extract_inner_expr(self) -> InitialExpr:
        return self.expr

    def extract_inner_exprs(self) -> Tuple[LeafExpr, ...]:
        return self.expr.extract_inner_exprs()

    def replace_inner_exprs(self, exprs: Sequence[LeafExpr]) -> Optional[Initial]:
        expr = self.expr.replace_inner_exprs(exprs)
        return None if expr is None else Initial(expr)


@dataclass(frozen=True)
class Process:
    action: ProcessActionExpr

    @property
    def is_deferred(self) -> bool:
        return isinstance(self.action, Deferred)

    def extract_expr(self) -> LeafExpr:
        return self.action.extract_expr()

    def extract_inner_expr(self) -> ProcessActionExpr:
        return self.action

    def extract_inner_exprs(self) -> Tuple[LeafExpr, ...]:
        return self.action.extract_inner_exprs()

    def replace_inner_exprs(self, exprs: Sequence[LeafExpr]) -> Optional[Process]:
        action = self.action.replace_inner_exprs(exprs)
        return None if action is None else Process(action)


@dataclass(frozen=True)
class Default:
    action: DefaultActionExpr

    @property
    def is_deferred(self) -> bool:
        return isinstance(self.action, Deferred)

    def extract_expr(self) -> LeafExpr:
        return self.action.extract_expr()

    def extract_inner_expr(self) -> DefaultActionExpr:
        return self.action

    def extract_inner_exprs(self) -> Tuple[LeafExpr, ...]:
        return self.action.extract_inner_exprs()

    def replace_inner_exprs(self, exprs: Sequence[LeafExpr]) -> Optional[Default]:
        action = self.action.replace_inner_exprs(exprs)
        return None if action is None else Default(action)


ActionExpr: TypeAlias = Union[Initial, Process, Default]


def is_initial(action: ActionExpr) -> TypeGuard[Initial]:
    return isinstance(action, Initial)


def schedule(action: A, deferred: bool) -> InstantOrDeferredExpr[A]:
    return Deferred(action) if deferred else Instant(action)

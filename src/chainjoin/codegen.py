"""
Code generator: turns built chains back into one Python expression.

Every pipeline is cut into steps at its deferred actions. Step k of every
pipeline runs, left to right, before step k+1 of any pipeline. Each barrier
between two steps is a lambda call binding one variable per started
pipeline, so the whole expansion stays a single expression with no names
leaking into the caller's scope.
"""

from __future__ import annotations

import ast
import logging
from typing import List, Optional

from .action_expr import ActionExpr, Default, Deferred, Initial, Instant, Process
from .builder import Handler, JoinExpr, Pipeline
from .config import ExpansionConfig
from .errors import ChainJoinError
from .expr import DefaultExpr, DefaultKind, ProcessExpr, ProcessKind
from .group import HandlerGroup

logger = logging.getLogger("chainjoin.codegen")


class CodeGenerator:
    def __init__(self, config: Optional[ExpansionConfig] = None):
        self.config = config or ExpansionConfig()

    @property
    def rt(self) -> str:
        return self.config.runtime_alias

    def generate(self, join: JoinExpr) -> str:
        pipelines = join.pipelines()
        if not pipelines:
            raise ChainJoinError("nothing to generate: no chains")

        last = max(pipeline.last_step for pipeline in pipelines)
        logger.debug("%d pipeline(s), %d step(s)", len(pipelines), last + 1)

        body = ""
        for step in range(last, -1, -1):
            started = [
                (idx, pipeline) for idx, pipeline in enumerate(pipelines)
                if pipeline.offset <= step
            ]
            exprs = [self.render_step(idx, pipeline, step) for idx, pipeline in started]

            if step == last:
                body = self.render_result(exprs, join.handler)
                continue

            params = ", ".join(self.config.var(idx) for idx, _ in started)
            body = f"(lambda {params}: {body})({', '.join(exprs)})"

        try:
            ast.parse(body, mode="eval")
        except SyntaxError as exc:
            raise ChainJoinError(f"generated code does not parse: {exc.msg}") from exc
        return body

    # ========================================================================
    # Steps
    # ========================================================================

    def render_step(self, idx: int, pipeline: Pipeline, step: int) -> str:
        actions = pipeline.step_at(step)
        var = self.config.var(idx)
        if actions is None:
            # Finished earlier; carry the value to the end
            return var

        acc = var
        for action in actions:
            acc = self.render_action(action, acc)
        return acc

    def render_action(self, action: ActionExpr, acc: str) -> str:
        match action:
            case Initial(expr):
                return expr.to_source()
            case Process(Instant(expr) | Deferred(expr)):
                return self.render_process(expr, acc)
            case Default(Instant(expr) | Deferred(expr)):
                return self.render_default(expr, acc)
            case _:
                raise AssertionError(f"unknown action {action!r}")

    def render_process(self, expr: ProcessExpr, acc: str) -> str:
        src = expr.expr.source
        match expr.kind:
            case ProcessKind.MAP:
                return f"{self.rt}.map_({acc}, {src})"
            case ProcessKind.THEN:
                return f"({src})({acc})"
            case ProcessKind.AND_THEN:
                return f"{self.rt}.and_then({acc}, {src})"
            case ProcessKind.DOT:
                return f"({acc}).{src}"
            case ProcessKind.FILTER:
                return f"{self.rt}.filter_({acc}, {src})"
            case ProcessKind.INSPECT:
                return f"{self.rt}.inspect({acc}, {src})"
            case ProcessKind.ZIP:
                return f"{self.rt}.zip_({acc}, {src})"
            case _:
                raise AssertionError(f"unknown process kind {expr.kind!r}")

    def render_default(self, expr: DefaultExpr, acc: str) -> str:
        src = expr.expr.source
        match expr.kind:
            case DefaultKind.OR:
                return f"{self.rt}.or_({acc}, {src})"
            case DefaultKind.OR_ELSE:
                return f"{self.rt}.or_else({acc}, {src})"
            case DefaultKind.MAP_ERR:
                return f"{self.rt}.map_err({acc}, {src})"
            case _:
                raise AssertionError(f"unknown default kind {expr.kind!r}")

    # ========================================================================
    # Result
    # ========================================================================

    def render_result(self, exprs: List[str], handler: Optional[Handler]) -> str:
        if handler is None:
            if len(exprs) == 1:
                return exprs[0]
            return f"({', '.join(exprs)})"

        values = f"({exprs[0]},)" if len(exprs) == 1 else f"({', '.join(exprs)})"
        src = handler.expr.source
        match handler.group:
            case HandlerGroup.MAP:
                return f"{self.rt}.map_all({values}, {src})"
            case HandlerGroup.THEN:
                return f"({src})({', '.join(exprs)})"
            case HandlerGroup.AND_THEN:
                return f"{self.rt}.and_then_all({values}, {src})"
            case _:
                raise AssertionError(f"unknown handler {handler.group!r}")


def generate(join: JoinExpr, config: Optional[ExpansionConfig] = None) -> str:
    return CodeGenerator(config).generate(join)

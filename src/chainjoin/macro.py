"""
Macro boundary: source text in, one Python expression out.

    expand("load(path) |> parse ~=> save, fetch() <| default")

Arguments are chains joined side by side; an optional last argument
`map => f`, `then => f` or `and_then => f` receives all their results.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from . import combinators
from .builder import ActionExprChainBuilder, Handler, JoinExpr, split_arguments
from .codegen import CodeGenerator
from .config import ExpansionConfig
from .errors import ClassificationError, MalformedLeafError
from .expr import LeafExpr
from .group import DEFAULT_DETERMINER, GroupDeterminer
from .lexer import tokenize
from .token_types import TT

logger = logging.getLogger("chainjoin.macro")


def parse_join(source: str, determiner: GroupDeterminer = DEFAULT_DETERMINER) -> JoinExpr:
    tokens = tokenize(source)
    args = split_arguments(tokens)

    chains = []
    handler: Optional[Handler] = None

    for idx, arg in enumerate(args):
        group = determiner.determine_handler(arg, 0)
        if group is None:
            if handler is not None:
                raise ClassificationError(
                    "A handler must be the last argument", arg[0]
                )
            chains.append(ActionExprChainBuilder(arg, source, determiner).build())
            continue

        if not chains:
            raise ClassificationError(
                f"Handler '{group.value} =>' needs at least one chain before it", arg[0]
            )
        if handler is not None:
            raise ClassificationError("Only one handler is allowed", arg[0])

        # name, '=', '>' then the handler expression
        body = arg[3:]
        if not body or body[0].type == TT.EOF:
            raise MalformedLeafError(
                f"Expected expression after '{group.value} =>'", arg[-1]
            )
        text = source[body[0].start:body[-2].end]
        handler = Handler(group, LeafExpr.parse(text, body[0]))

    logger.debug("parsed %d chain(s), handler=%s", len(chains), handler and handler.group.name)
    return JoinExpr(chains, handler)


def expand(source: str, config: Optional[ExpansionConfig] = None) -> str:
    """Expand chain source into a Python expression."""
    return CodeGenerator(config).generate(parse_join(source))


def runtime_namespace(config: Optional[ExpansionConfig] = None) -> Dict[str, Any]:
    config = config or ExpansionConfig()
    return {config.runtime_alias: combinators}


def evaluate(
    source: str,
    globals: Optional[Dict[str, Any]] = None,
    locals: Optional[Mapping[str, Any]] = None,
    config: Optional[ExpansionConfig] = None,
) -> Any:
    """Expand and evaluate with the combinator runtime bound.

    `locals` are merged into the globals: barrier lambdas only see the
    globals of the evaluated code, not a separate locals mapping.
    """
    config = config or ExpansionConfig()
    code = expand(source, config)
    namespace: Dict[str, Any] = dict(globals or {})
    namespace.update(locals or {})
    namespace.update(runtime_namespace(config))
    return eval(code, namespace)

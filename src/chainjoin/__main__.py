from __future__ import annotations

import argparse
import logging
import sys
import traceback
from typing import List, Optional

from .config import ExpansionConfig, debug_py_trace_enabled
from .errors import ChainJoinError
from .macro import evaluate, expand, parse_join


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(prog="chainjoin", description="Expand chain expressions to Python")
    ap.add_argument("source", nargs="?", default="-", help="chain source, or - for stdin")
    ap.add_argument("--tree", action="store_true", help="print the parsed chains instead of code")
    ap.add_argument("--eval", action="store_true", help="evaluate the expansion and print the result")
    ap.add_argument("--repl", action="store_true", help="start the interactive expander")
    ap.add_argument("--runtime-alias", default=None, help="name bound to the combinator runtime")
    ap.add_argument("-v", "--verbose", action="store_true", help="log builder and generator decisions")
    args = ap.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    config = ExpansionConfig.from_env()
    if args.runtime_alias:
        config = ExpansionConfig(args.runtime_alias, config.var_prefix)

    if args.repl:
        from .repl import repl

        repl(config)
        return 0

    source = sys.stdin.read() if args.source == "-" else args.source

    try:
        if args.tree:
            print(parse_join(source).to_tree().pretty())
        elif args.eval:
            print(repr(evaluate(source, config=config)))
        else:
            print(expand(source, config))
    except ChainJoinError as e:
        print(f"Error: {e}", file=sys.stderr)
        if debug_py_trace_enabled():
            traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Interactive expander, powered by prompt_toolkit."""

from __future__ import annotations

import sys
import traceback
from typing import Any, Callable, Dict, List, Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.document import Document
from prompt_toolkit.formatted_text import StyleAndTextTuples
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.lexers import Lexer
from prompt_toolkit.shortcuts import clear

from .config import ExpansionConfig, debug_py_trace_enabled
from .errors import ChainJoinError, LexError
from .group import DEFAULT_DETERMINER, ActionGroup, CommandGroup
from .lexer import tokenize
from .macro import expand, parse_join, runtime_namespace
from .token_types import TT, Tok

# Highlight group -> prompt_toolkit style string.
GROUP_STYLE = {
    "process": "bold ansicyan",
    "default": "bold ansiyellow",
    "deferred": "bold ansimagenta",
    "command": "bold ansiblue",
    "string": "ansigreen",
    "number": "ansimagenta",
    "error": "bold ansired",
}

_SLASH_CMDS = {
    "/clear": "Clear the terminal screen",
    "/code": "Toggle printing the generated code",
    "/tree": "Toggle printing the parsed chain tree",
    "/reset": "Forget names bound with 'name = chain'",
}


def highlight_groups(tokens: List[Tok]) -> Dict[int, str]:
    """Token index -> highlight group for every marker and literal."""
    groups: Dict[int, str] = {}
    pos = 0
    while pos < len(tokens):
        tok = tokens[pos]
        found = DEFAULT_DETERMINER.determine(tokens, pos)
        if found is not None:
            if isinstance(found.group, CommandGroup):
                name = "command"
            elif isinstance(found.group, ActionGroup) and found.group.is_process:
                name = "process"
            else:
                name = "default"
            start = pos
            if found.deferred:
                groups[pos] = "deferred"
                start += 1
            for idx in range(start, pos + found.width):
                groups[idx] = name
            pos += found.width
            continue
        if tok.type == TT.STRING:
            groups[pos] = "string"
        elif tok.type == TT.NUMBER:
            groups[pos] = "number"
        pos += 1
    return groups


class ChainLexer(Lexer):
    """prompt_toolkit Lexer that highlights chain markers."""

    def lex_document(self, document: Document) -> Callable[[int], StyleAndTextTuples]:
        lines = document.lines

        def get_line(lineno: int) -> StyleAndTextTuples:
            line = lines[lineno]
            try:
                tokens = tokenize(line)
            except LexError:
                return [(GROUP_STYLE["error"], line)]

            groups = highlight_groups(tokens)
            fragments: StyleAndTextTuples = []
            cursor = 0
            for idx, tok in enumerate(tokens):
                if tok.type == TT.EOF:
                    break
                if tok.start > cursor:
                    fragments.append(("", line[cursor:tok.start]))
                style = GROUP_STYLE.get(groups.get(idx, ""), "")
                fragments.append((style, line[tok.start:tok.end]))
                cursor = tok.end
            if cursor < len(line):
                fragments.append(("", line[cursor:]))
            return fragments

        return get_line


class _SlashCompleter(Completer):
    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        if not text.startswith("/") or " " in text:
            return
        for name, descr in _SLASH_CMDS.items():
            if name.startswith(text):
                yield Completion(name, start_position=-len(text), display_meta=descr)


def split_binding(text: str) -> tuple[Optional[str], str]:
    """`name = chain` binds the result; `==` and `=>` do not count."""
    head, sep, rest = text.partition("=")
    name = head.strip()
    if sep and name.isidentifier() and not rest.startswith(("=", ">")):
        return name, rest
    return None, text


class ReplState:
    def __init__(self, config: ExpansionConfig):
        self.config = config
        self.show_code = True
        self.show_tree = False
        self.namespace: Dict[str, Any] = {}
        self.reset()

    def reset(self) -> None:
        self.namespace = {"__builtins__": __builtins__}
        self.namespace.update(runtime_namespace(self.config))

    def handle_slash(self, text: str) -> bool:
        cmd = text.strip().split()[0] if text.strip() else ""
        if cmd not in _SLASH_CMDS:
            return False
        if cmd == "/clear":
            clear()
        elif cmd == "/code":
            self.show_code = not self.show_code
            print(f"code {'on' if self.show_code else 'off'}")
        elif cmd == "/tree":
            self.show_tree = not self.show_tree
            print(f"tree {'on' if self.show_tree else 'off'}")
        elif cmd == "/reset":
            self.reset()
        return True

    def run(self, text: str) -> Any:
        name, source = split_binding(text)
        if self.show_tree:
            print(parse_join(source).to_tree().pretty(), end="")
        code = expand(source, self.config)
        if self.show_code:
            print(code)
        result = eval(code, self.namespace)
        if name is not None:
            self.namespace[name] = result
        return result


def repl(config: Optional[ExpansionConfig] = None) -> None:
    """Read a chain, print its expansion and its value."""
    state = ReplState(config or ExpansionConfig.from_env())

    session: PromptSession[str] = PromptSession(
        history=InMemoryHistory(),
        lexer=ChainLexer(),
        completer=_SlashCompleter(),
        complete_while_typing=True,
    )

    print("chainjoin repl (Ctrl-D to exit, / for commands)")

    while True:
        try:
            text = session.prompt(">>> ")
        except EOFError:
            print()
            break
        except KeyboardInterrupt:
            print("KeyboardInterrupt")
            continue

        if not text.strip():
            continue
        if text.startswith("/") and state.handle_slash(text):
            continue

        try:
            result = state.run(text)
        except ChainJoinError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            continue
        except Exception as exc:
            print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
            if debug_py_trace_enabled():
                print("".join(traceback.format_tb(exc.__traceback__)), file=sys.stderr, end="")
            continue

        print(repr(result))

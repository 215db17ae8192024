"""
Lexer for chain expressions

Tokenizes Python-flavoured chain source into a stream of tokens.

Features:
- Single-pass tokenization
- Position tracking (line, column, source offsets)
- Python string literals with prefixes and triple quotes
- Punctuation emitted one character at a time with a jointness flag, so
  multi-character markers are recognised by the classifier, not here
"""

from typing import List

from .errors import LexError
from .token_types import TT, Tok

# ============================================================================
# Lexer Implementation
# ============================================================================

class Lexer:
    """
    Chain source lexer.

    Whitespace, newlines and comments are insignificant: a chain is a single
    expression context, like the inside of a bracket in Python.
    """

    BRACKETS = {
        '(': TT.LPAR,
        ')': TT.RPAR,
        '[': TT.LSQB,
        ']': TT.RSQB,
        '{': TT.LBRACE,
        '}': TT.RBRACE,
    }

    PUNCT_CHARS = frozenset('+-*/%@&|^~<>=!.,:;?$`')

    # Valid string prefixes, compared lowercased
    STRING_PREFIXES = frozenset(
        ['r', 'u', 'b', 'f', 'br', 'rb', 'fr', 'rf']
    )

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.column = 1
        self.tokens: List[Tok] = []

    # ========================================================================
    # Main Tokenization
    # ========================================================================

    def tokenize(self) -> List[Tok]:
        """Tokenize entire source, return token list"""
        while self.pos < len(self.source):
            self.scan_token()

        self.tokens.append(
            Tok(TT.EOF, None, self.line, self.column, self.pos, self.pos)
        )
        return self.tokens

    def scan_token(self):
        """Scan next token"""
        if self.skip_whitespace():
            return

        ch = self.peek()

        if ch == '#':
            self.skip_comment()
            return

        # Explicit line continuation is just whitespace here
        if ch == '\\' and self.peek(1) in ('\n', '\r'):
            self.advance()
            return

        if ch in ('"', "'"):
            self.scan_string(self.mark())
            return

        if ch.isdigit() or (ch == '.' and self.peek(1).isdigit() and self.peek(-1) != '.'):
            self.scan_number()
            return

        if ch.isalpha() or ch == '_':
            self.scan_name()
            return

        if self.source.startswith('...', self.pos):
            start = self.mark()
            self.advance(3)
            self.emit(TT.ELLIPSIS, '...', start)
            return

        if ch in self.BRACKETS:
            start = self.mark()
            self.advance()
            self.emit(self.BRACKETS[ch], ch, start)
            return

        if ch in self.PUNCT_CHARS:
            start = self.mark()
            self.advance()
            tok = self.emit(TT.PUNCT, ch, start)
            tok.joint = self.peek() in self.PUNCT_CHARS
            return

        raise LexError(f"Unexpected character '{ch}'", self.line, self.column)

    # ========================================================================
    # Token Scanners
    # ========================================================================

    def scan_string(self, start):
        """Scan string literal, `start` already points at any prefix"""
        quote = self.peek()
        if self.peek(1) == quote and self.peek(2) == quote:
            delim = quote * 3
        else:
            delim = quote
        self.advance(len(delim))

        while True:
            if self.pos >= len(self.source):
                raise LexError("Unterminated string", start[1], start[2])
            if self.peek() == '\\':
                self.advance(2)
                continue
            if self.source.startswith(delim, self.pos):
                self.advance(len(delim))
                break
            if len(delim) == 1 and self.peek() in ('\n', '\r'):
                raise LexError("Unterminated string", start[1], start[2])
            self.advance()

        self.emit(TT.STRING, self.source[start[0]:self.pos], start)

    def scan_number(self):
        """Scan number literal; validity is left to the host parser"""
        start = self.mark()

        while True:
            ch = self.peek()
            if ch.isalnum() or ch == '_':
                prev = ch
                self.advance()
                # Signed exponent, but not inside hex literals
                if prev in ('e', 'E') and self.peek() in ('+', '-') \
                        and not self.source[start[0]:self.pos].lower().startswith('0x'):
                    self.advance()
                continue
            if ch == '.' and self.peek(1) != '.':
                self.advance()
                continue
            break

        self.emit(TT.NUMBER, self.source[start[0]:self.pos], start)

    def scan_name(self):
        """Scan identifier, or a prefixed string literal"""
        start = self.mark()

        while self.peek().isalnum() or self.peek() == '_':
            self.advance()

        value = self.source[start[0]:self.pos]
        if self.peek() in ('"', "'") and value.lower() in self.STRING_PREFIXES:
            self.scan_string(start)
            return

        self.emit(TT.NAME, value, start)

    # ========================================================================
    # Utilities
    # ========================================================================

    def peek(self, offset: int = 0) -> str:
        """Look ahead at character"""
        idx = self.pos + offset
        if 0 <= idx < len(self.source):
            return self.source[idx]
        return '\0'

    def advance(self, n: int = 1) -> str:
        """Consume n characters and return them as a string"""
        if n < 0:
            raise ValueError(f"advance() requires n >= 0, got {n}")
        result = ''
        for _ in range(n):
            if self.pos >= len(self.source):
                break
            ch = self.source[self.pos]
            result += ch
            self.pos += 1
            if ch == '\n':
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        return result

    def mark(self):
        return (self.pos, self.line, self.column)

    def skip_whitespace(self) -> bool:
        """Skip whitespace including newlines, return True if any skipped"""
        skipped = False
        while self.peek() in (' ', '\t', '\n', '\r', '\f'):
            self.advance()
            skipped = True
        return skipped

    def skip_comment(self):
        """Skip comment until end of line"""
        while self.peek() not in ('\n', '\r', '\0'):
            self.advance()

    def emit(self, token_type: TT, value, start) -> Tok:
        """Emit a token spanning from `start` to the current position"""
        tok = Tok(
            type=token_type,
            value=value,
            line=start[1],
            column=start[2],
            start=start[0],
            end=self.pos,
        )
        self.tokens.append(tok)
        return tok


def tokenize(source: str) -> List[Tok]:
    """Convenience function to tokenize source"""
    lexer = Lexer(source)
    return lexer.tokenize()

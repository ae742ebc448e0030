"""Tokenizer for the Quill language.

The lexer makes a single pass over the source text and produces a flat list
of tokens terminated by an ``EOF`` token. String literals are not returned as
one token: they are broken into ``STRING_START``, ``STRING_SEGMENT``,
``INTERP_OPEN`` ... ``INTERP_CLOSE`` and ``STRING_END`` tokens so that the
expressions embedded with ``\\( ... )`` are tokenized like any other code.

Nesting is handled with an explicit mode stack. The bottom of the stack is
always a ``code`` frame; an opening quote pushes a ``string`` frame, an
interpolation marker pushes an ``interp`` frame which counts its own
parentheses, and the matching ``)`` pops back to the enclosing string.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .errors import LexError, Position


KEYWORDS = {
    'module', 'import', 'as', 'func', 'let', 'struct', 'extend', 'pub',
    'priv', 'protected', 'return', 'while', 'if', 'else', 'true', 'false',
}

TWO_CHAR_OPS = {
    '->', '+=', '-=', '*=', '/=', '%=', '::', '==', '!=', '<=', '>=', '&&', '||',
}

SINGLE_OPS = set('+-*/%<>=!(){},;:.|')

DIGITS = set('0123456789')

ESCAPES = {
    'n': '\n',
    't': '\t',
    'r': '\r',
    '0': '\0',
    '\\': '\\',
    '"': '"',
}


@dataclass
class Token:
    type: str
    value: str
    pos: Position

    @property
    def line(self) -> int:
        return self.pos.line

    @property
    def column(self) -> int:
        return self.pos.column

    def describe(self) -> str:
        if self.type == 'EOF':
            return 'end of input'
        if self.type in ('IDENT', 'INT', 'FLOAT'):
            return f"{self.type} {self.value!r}"
        if self.type == 'STRING_SEGMENT':
            return 'string text'
        if self.type in ('STRING_START', 'STRING_END'):
            return "'\"'"
        if self.type == 'INTERP_OPEN':
            return "'\\('"
        if self.type == 'INTERP_CLOSE':
            return "')'"
        return repr(self.value)


@dataclass
class LexMode:
    kind: str  # 'code', 'string' or 'interp'
    start: Optional[Position] = None
    depth: int = 0  # open parentheses inside an interpolation


class Lexer:
    def __init__(self, source: str):
        self.source = source
        self.length = len(source)
        self.i = 0
        self.line = 1
        self.col = 1
        self.offset = 0  # byte offset of self.i in the UTF-8 encoding
        self.tokens: List[Token] = []
        self.modes: List[LexMode] = [LexMode('code')]

    def pos(self) -> Position:
        return Position(self.line, self.col, self.offset)

    def peek(self, ahead: int = 0) -> str:
        j = self.i + ahead
        return self.source[j] if j < self.length else ''

    def advance(self, n: int = 1) -> None:
        for _ in range(n):
            if self.i >= self.length:
                return
            c = self.source[self.i]
            if c == '\n':
                self.line += 1
                self.col = 1
            else:
                self.col += 1
            self.offset += len(c.encode('utf-8'))
            self.i += 1

    def emit(self, type_: str, value: str, pos: Position) -> None:
        self.tokens.append(Token(type_, value, pos))

    def tokenize(self) -> List[Token]:
        while True:
            mode = self.modes[-1]
            if mode.kind == 'string':
                self.scan_string_chunk(mode)
                continue
            self.skip_trivia()
            if self.i >= self.length:
                if mode.kind == 'interp':
                    raise LexError('unterminated interpolation', mode.start)
                break
            self.scan_code_token(mode)
        self.emit('EOF', '', self.pos())
        return self.tokens

    def skip_trivia(self) -> None:
        while self.i < self.length:
            c = self.source[self.i]
            if c.isspace():
                self.advance()
            elif c == '/' and self.peek(1) == '/':
                # line comment runs to end of line
                while self.i < self.length and self.source[self.i] != '\n':
                    self.advance()
            else:
                break

    def scan_code_token(self, mode: LexMode) -> None:
        c = self.source[self.i]
        start = self.pos()
        if c == '"':
            self.advance()
            self.emit('STRING_START', '"', start)
            self.modes.append(LexMode('string', start))
            return
        if c.isalpha() or c == '_':
            j = self.i
            while j < self.length and (self.source[j].isalnum() or self.source[j] == '_'):
                j += 1
            value = self.source[self.i:j]
            self.advance(j - self.i)
            self.emit(value if value in KEYWORDS else 'IDENT', value, start)
            return
        if c in DIGITS:
            self.scan_number(start)
            return
        pair = self.source[self.i:self.i + 2]
        if pair in TWO_CHAR_OPS:
            self.advance(2)
            self.emit(pair, pair, start)
            return
        if c in SINGLE_OPS:
            self.advance()
            if mode.kind == 'interp' and c == '(':
                mode.depth += 1
            elif mode.kind == 'interp' and c == ')':
                if mode.depth == 0:
                    self.modes.pop()
                    self.emit('INTERP_CLOSE', ')', start)
                    return
                mode.depth -= 1
            self.emit(c, c, start)
            return
        raise LexError(f"illegal character {c!r}", start)

    def scan_number(self, start: Position) -> None:
        j = self.i
        while j < self.length and self.source[j] in DIGITS:
            j += 1
        is_float = False
        if j + 1 < self.length and self.source[j] == '.' and self.source[j + 1] in DIGITS:
            is_float = True
            j += 1
            while j < self.length and self.source[j] in DIGITS:
                j += 1
        value = self.source[self.i:j]
        self.advance(j - self.i)
        self.emit('FLOAT' if is_float else 'INT', value, start)

    def scan_string_chunk(self, mode: LexMode) -> None:
        """Consume literal text up to the closing quote or the next ``\\(``."""
        seg_start = self.pos()
        chars: List[str] = []
        while True:
            if self.i >= self.length:
                raise LexError('unterminated string literal', mode.start)
            c = self.source[self.i]
            if c == '"':
                if chars:
                    self.emit('STRING_SEGMENT', ''.join(chars), seg_start)
                end = self.pos()
                self.advance()
                self.emit('STRING_END', '"', end)
                self.modes.pop()
                return
            if c == '\\':
                nxt = self.peek(1)
                if nxt == '(':
                    if chars:
                        self.emit('STRING_SEGMENT', ''.join(chars), seg_start)
                    marker = self.pos()
                    self.advance(2)
                    self.emit('INTERP_OPEN', '\\(', marker)
                    self.modes.append(LexMode('interp', marker))
                    return
                if nxt == '':
                    raise LexError('unterminated string literal', mode.start)
                if nxt not in ESCAPES:
                    raise LexError(f"illegal escape sequence '\\{nxt}'", self.pos())
                chars.append(ESCAPES[nxt])
                self.advance(2)
                continue
            chars.append(c)
            self.advance()


def tokenize(source: str) -> List[Token]:
    """Convert source code into a list of tokens ending with ``EOF``."""
    return Lexer(source).tokenize()

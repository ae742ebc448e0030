from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class Position:
    """Location of a token or node in the source text (1-based line/column)."""
    line: int
    column: int
    offset: int = 0

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


class QuillError(Exception):
    """Base class for every diagnostic raised by the Quill toolchain."""
    kind = 'Error'

    def __init__(self, message: str, pos: Optional[Position] = None):
        self.message = message
        self.pos = pos
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.pos is None:
            return f"{self.kind}: {self.message}"
        return f"{self.kind} at {self.pos}: {self.message}"


class LexError(QuillError):
    kind = 'LexError'


class ParseError(QuillError):
    kind = 'ParseError'


class TypeCheckError(QuillError):
    kind = 'TypeError'


class QuillRuntimeError(QuillError):
    kind = 'RuntimeError'


class ReturnSignal(Exception):
    """Internal exception to handle return statements in functions."""
    def __init__(self, value: Any):
        super().__init__('return')
        self.value = value
        self.value = value

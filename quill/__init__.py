# Quill language package
# This package provides a checker and interpreter for the Quill language.
from .errors import QuillError, LexError, ParseError, TypeCheckError, QuillRuntimeError
from .interpreter import run_program, check_program, compile_module, Interpreter
from .parser import parse_program
from .printer import format_module

__all__ = [
    'run_program',
    'check_program',
    'compile_module',
    'parse_program',
    'format_module',
    'Interpreter',
    'QuillError',
    'LexError',
    'ParseError',
    'TypeCheckError',
    'QuillRuntimeError',
]

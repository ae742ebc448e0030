"""Intrinsic modules known to the compiler.

Quill has no general module system: an ``import "<path>" as <alias>;`` must
name one of the modules registered here. The signature tables are what the
type checker reads; `load_intrinsics` builds the callables the interpreter
invokes, bound to the configured console streams.
"""

from typing import Dict, Optional, TextIO

from quill.builtin_function import BuiltinFunction
from quill.types import TypeSpec
from .io import BasicIO, IO_SIGNATURES, populate_io_module
from .math import MATH_SIGNATURES, populate_math_module

INTRINSIC_SIGNATURES: Dict[str, Dict[str, TypeSpec]] = {
    'io': IO_SIGNATURES,
    'math': MATH_SIGNATURES,
}


def load_intrinsics(stdin: Optional[TextIO] = None,
                    stdout: Optional[TextIO] = None) -> Dict[str, Dict[str, BuiltinFunction]]:
    return {
        'io': populate_io_module(BasicIO(stdin, stdout)),
        'math': populate_math_module(),
    }

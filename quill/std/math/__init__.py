import math
from quill.builtin_function import BuiltinFunction
from quill.types import TypeSpec
from typing import Any, Dict, List

MATH_SIGNATURES: Dict[str, TypeSpec] = {
    'sqrt': TypeSpec.function((TypeSpec.double(),), TypeSpec.double()),
}


def populate_math_module() -> Dict[str, BuiltinFunction]:
    def std_sqrt(args: List[Any]) -> Any:
        x = args[0]
        if x < 0:
            # the call site turns this into a runtime error at the call position
            raise ValueError('math domain error')
        return math.sqrt(x)

    return {'sqrt': BuiltinFunction('math', 'sqrt', MATH_SIGNATURES['sqrt'], std_sqrt)}

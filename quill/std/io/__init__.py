from .basic_io import BasicIO
from quill.builtin_function import BuiltinFunction
from quill.types import TypeSpec, UNIT
from typing import Any, Dict, List

IO_SIGNATURES: Dict[str, TypeSpec] = {
    'print': TypeSpec.function((TypeSpec.string(),), TypeSpec.unit()),
    'println': TypeSpec.function((TypeSpec.string(),), TypeSpec.unit()),
    'input': TypeSpec.function((TypeSpec.string(),), TypeSpec.string()),
}


def populate_io_module(basic_io: BasicIO) -> Dict[str, BuiltinFunction]:
        def std_print(args: List[Any]) -> Any:
            basic_io.write(args[0])
            return UNIT

        def std_println(args: List[Any]) -> Any:
            basic_io.write(args[0] + '\n')
            return UNIT

        def std_input(args: List[Any]) -> Any:
            return basic_io.read_line(args[0])

        impls = {
            'print': std_print,
            'println': std_println,
            'input': std_input,
        }
        return {name: BuiltinFunction('io', name, IO_SIGNATURES[name], impls[name])
                for name in IO_SIGNATURES}

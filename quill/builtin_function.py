from dataclasses import dataclass
from typing import Any, Callable, List
from quill.types import TypeSpec


@dataclass
class BuiltinFunction:
    module: str
    name: str
    signature: TypeSpec
    fn: Callable[[List[Any]], Any]

    @property
    def arity(self) -> int:
        return len(self.signature.args)

    @property
    def qualified_name(self) -> str:
        return f"{self.module}.{self.name}"

    def __repr__(self) -> str:
        return f"<builtin {self.qualified_name}>"

"""Type definitions and helpers for Quill.

This module defines both halves of the Quill type system: the static
`TypeSpec` used by the parser and the type checker, and the tagged runtime
values manipulated by the interpreter. It also holds the per-type display
rule used by string interpolation and the runtime cast conversions.

Runtime values map onto host values where the host already has the right
shape: ``int`` is a Python ``int``, ``float`` a Python ``float``, ``bool`` a
Python ``bool`` and ``string`` a Python ``str``. Struct instances, callables
and the unit value have their own classes below.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
import math


PRIMITIVES = ('int', 'float', 'bool', 'string', 'unit')

# Spellings accepted in source for each primitive kind.
PRIMITIVE_NAMES = {
    'int': 'int',
    'float': 'float',
    'bool': 'bool',
    'string': 'string',
    'unit': 'unit',
    'void': 'unit',
}


@dataclass(frozen=True)
class TypeSpec:
    """Represents a Quill type.

    `kind` is one of the primitive kinds ('int', 'float', 'bool', 'string',
    'unit'), 'func' for function types or 'struct' for a named struct type.
    Types compare structurally: ``(int) -> int`` equals any other
    ``(int) -> int``.
    """
    kind: str
    args: Tuple['TypeSpec', ...] = ()
    result: Optional['TypeSpec'] = None
    name: str = ''

    def __repr__(self) -> str:
        if self.kind == 'func':
            params = ", ".join(repr(a) for a in self.args)
            return f"({params}) -> {self.result!r}"
        if self.kind == 'struct':
            return self.name
        return self.kind

    __str__ = __repr__

    @property
    def is_numeric(self) -> bool:
        return self.kind in ('int', 'float')

    # Convenience constructors
    @staticmethod
    def integer() -> 'TypeSpec':
        return TypeSpec('int')

    @staticmethod
    def double() -> 'TypeSpec':
        return TypeSpec('float')

    @staticmethod
    def boolean() -> 'TypeSpec':
        return TypeSpec('bool')

    @staticmethod
    def string() -> 'TypeSpec':
        return TypeSpec('string')

    @staticmethod
    def unit() -> 'TypeSpec':
        return TypeSpec('unit')

    @staticmethod
    def function(params: Tuple['TypeSpec', ...], result: 'TypeSpec') -> 'TypeSpec':
        return TypeSpec('func', tuple(params), result)

    @staticmethod
    def struct(name: str) -> 'TypeSpec':
        return TypeSpec('struct', name=name)


class UnitVal:
    """Marker object for the Quill unit value."""
    _instance: Optional['UnitVal'] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return '()'


UNIT = UnitVal()


@dataclass(eq=False)
class StructInstance:
    """A runtime struct value.

    Instances are reference values: every binding holding one sees the same
    `fields` mapping. Field order follows the struct declaration.
    """
    type_name: str
    fields: Dict[str, Any]

    def __repr__(self) -> str:
        inner = ', '.join(f"{k}: {to_string(v)}" for k, v in self.fields.items())
        return f"{self.type_name} {{ {inner} }}"


@dataclass(eq=False)
class FunctionValue:
    """A callable Quill value: a declared function, a method or a closure.

    `env` is the defining environment. It is held by reference, so a closure
    observes later writes to the bindings it captured.
    """
    name: str
    params: List[Any]
    return_type: TypeSpec
    body: Any
    env: Any
    owner: Optional[str] = None  # struct name for methods

    def __repr__(self) -> str:
        return f"<func {self.name}>"


def format_float(x: float) -> str:
    """Shortest round-tripping text for a float, always marked as a float."""
    if math.isnan(x):
        return 'nan'
    if math.isinf(x):
        return 'inf' if x > 0 else '-inf'
    text = repr(x)
    if 'e' in text or '.' in text:
        return text
    return text + '.0'


def to_string(value: Any) -> str:
    """Convert a Quill value to the text used by interpolation and printing."""
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return format_float(value)
    if isinstance(value, str):
        return value
    if isinstance(value, UnitVal):
        return '()'
    if isinstance(value, StructInstance):
        return repr(value)
    if isinstance(value, FunctionValue):
        return repr(value)
    return str(value)


def type_name(value: Any) -> str:
    """Return the Quill type name of a runtime value."""
    if isinstance(value, bool):
        return 'bool'
    if isinstance(value, int):
        return 'int'
    if isinstance(value, float):
        return 'float'
    if isinstance(value, str):
        return 'string'
    if isinstance(value, UnitVal):
        return 'unit'
    if isinstance(value, StructInstance):
        return value.type_name
    if isinstance(value, FunctionValue):
        return 'func'
    return type(value).__name__


# (source kind, target kind) pairs accepted by `expr as Type`.
CASTS = {
    ('int', 'float'),
    ('float', 'int'),
    ('string', 'int'),
    ('string', 'float'),
    ('int', 'string'),
    ('float', 'string'),
    ('bool', 'string'),
}


def cast_allowed(source: TypeSpec, target: TypeSpec) -> bool:
    if source == target:
        return True
    return (source.kind, target.kind) in CASTS


def convert_value(target: TypeSpec, value: Any) -> Any:
    """Convert a runtime value for a cast expression.

    Raises ValueError when a string does not hold a number of the requested
    kind and TypeError for a pair of types with no conversion. The caller
    turns either into a Quill runtime error.
    """
    kind = target.kind
    if kind == 'int':
        if isinstance(value, bool):
            raise TypeError(f"cannot convert {type_name(value)} to int")
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            if math.isnan(value) or math.isinf(value):
                raise ValueError(f"cannot convert {format_float(value)} to int")
            return int(value)
        if isinstance(value, str):
            text = value.strip()
            digits = text[1:] if text[:1] in ('+', '-') else text
            if not digits or not digits.isascii() or not digits.isdigit():
                raise ValueError(f"cannot parse int from {value!r}")
            return int(text)
    elif kind == 'float':
        if isinstance(value, bool):
            raise TypeError(f"cannot convert {type_name(value)} to float")
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                raise ValueError(f"cannot parse float from {value!r}")
    elif kind == 'string':
        if isinstance(value, (bool, int, float, str)):
            return to_string(value)
    elif kind == 'bool':
        if isinstance(value, bool):
            return value
    if type_name(value) == repr(target):
        return value
    raise TypeError(f"cannot convert {type_name(value)} to {target!r}")

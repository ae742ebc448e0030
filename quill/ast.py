"""Abstract Syntax Tree (AST) definitions for the Quill language.

The AST classes defined in this module represent the syntactic structure
of parsed Quill modules. They are produced once by the parser, read by the
type checker, the interpreter and the pretty printer, and never mutated
afterwards.

Every node carries the source position of its first token in `pos`. The
position is excluded from equality so that two parses of equivalent text
compare equal even when their layout differs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Any, Union

from .errors import Position
from .types import TypeSpec


def _pos() -> Any:
    return field(default=None, compare=False, repr=False)


@dataclass
class Node:
    """Base class for all AST nodes."""
    pass


@dataclass
class Module(Node):
    name: str
    imports: List['Import']
    decls: List[Node]
    pos: Optional[Position] = _pos()


@dataclass
class Import(Node):
    path: str
    alias: str
    pos: Optional[Position] = _pos()


@dataclass
class Param:
    name: str
    type_spec: TypeSpec
    pos: Optional[Position] = _pos()


@dataclass
class Block(Node):
    statements: List[Node]
    pos: Optional[Position] = _pos()


@dataclass
class FuncDecl(Node):
    name: str
    params: List[Param]
    return_type: TypeSpec
    body: Block
    access: str = ''
    pos: Optional[Position] = _pos()


@dataclass
class StructField:
    name: str
    type_spec: TypeSpec
    access: str = ''
    pos: Optional[Position] = _pos()


@dataclass
class StructDecl(Node):
    name: str
    fields: List[StructField]
    access: str = ''
    pos: Optional[Position] = _pos()


@dataclass
class ExtendBlock(Node):
    name: str  # the struct being extended
    methods: List[FuncDecl]
    pos: Optional[Position] = _pos()


# Statements

@dataclass
class LetStmt(Node):
    name: str
    type_spec: Optional[TypeSpec]
    value: Node
    pos: Optional[Position] = _pos()


@dataclass
class Assign(Node):
    target: Node  # Ident or Member
    value: Node
    pos: Optional[Position] = _pos()


@dataclass
class CompoundAssign(Node):
    op: str  # the arithmetic operator, e.g. '-' for '-='
    target: Node
    value: Node
    pos: Optional[Position] = _pos()


@dataclass
class WhileStmt(Node):
    condition: Node
    body: Node
    pos: Optional[Position] = _pos()


@dataclass
class IfStmt(Node):
    condition: Node
    then_branch: Node
    else_branch: Optional[Node]
    pos: Optional[Position] = _pos()


@dataclass
class ReturnStmt(Node):
    value: Optional[Node]
    pos: Optional[Position] = _pos()


@dataclass
class ExprStmt(Node):
    expr: Node
    pos: Optional[Position] = _pos()


# Expressions

@dataclass
class Literal(Node):
    value: Any
    literal_type: str  # 'int', 'float', 'bool', 'string'
    pos: Optional[Position] = _pos()


@dataclass
class Ident(Node):
    name: str
    pos: Optional[Position] = _pos()


@dataclass
class BinaryOp(Node):
    op: str
    left: Node
    right: Node
    pos: Optional[Position] = _pos()


@dataclass
class UnaryOp(Node):
    op: str
    operand: Node
    pos: Optional[Position] = _pos()


@dataclass
class Call(Node):
    func: Node
    args: List[Node]
    pos: Optional[Position] = _pos()


@dataclass
class Member(Node):
    target: Node
    name: str
    static: bool = False  # written with '::' rather than '.'
    pos: Optional[Position] = _pos()


@dataclass
class FieldInit:
    name: str
    value: Node
    pos: Optional[Position] = _pos()


@dataclass
class StructInit(Node):
    name: str
    fields: List[FieldInit]
    pos: Optional[Position] = _pos()


@dataclass
class Cast(Node):
    expr: Node
    type_spec: TypeSpec
    pos: Optional[Position] = _pos()


@dataclass
class Closure(Node):
    params: List[Param]
    return_type: TypeSpec
    body: Node
    pos: Optional[Position] = _pos()


@dataclass
class InterpolatedString(Node):
    parts: List[Union[str, Node]]  # literal text and embedded expressions, in order
    pos: Optional[Position] = _pos()

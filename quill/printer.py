"""Render a Quill AST back to source text.

The output is canonical rather than faithful: layout, comments and redundant
parentheses from the original text are not preserved, and parentheses are
added wherever they are needed for the text to parse back into the same tree.
`parse_program(format_module(m)) == m` holds for every module the parser can
produce.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List

from .ast import (
    Module, Import, Param, Block, FuncDecl, StructDecl, ExtendBlock,
    LetStmt, Assign, CompoundAssign, WhileStmt, IfStmt, ReturnStmt, ExprStmt,
    Literal, Ident, BinaryOp, UnaryOp, Call, Member, StructInit, Cast,
    Closure, InterpolatedString, Node,
)
from .lexer import ESCAPES
from .types import TypeSpec

INDENT = '    '

_REVERSE_ESCAPES = {v: k for k, v in ESCAPES.items()}


def escape_text(text: str) -> str:
    out: List[str] = []
    for ch in text:
        if ch in _REVERSE_ESCAPES:
            out.append('\\' + _REVERSE_ESCAPES[ch])
        else:
            out.append(ch)
    return ''.join(out)


def format_float_literal(value: float) -> str:
    # the lexer has no exponent syntax, so spell the shortest repr out in full
    text = format(Decimal(repr(value)), 'f')
    if '.' not in text:
        text += '.0'
    return text


def format_type(t: TypeSpec) -> str:
    return repr(t)


def format_params(params: List[Param]) -> str:
    return ', '.join(f"{p.name}: {format_type(p.type_spec)}" for p in params)


class Printer:
    def __init__(self):
        self.lines: List[str] = []
        self.depth = 0

    def line(self, text: str) -> None:
        self.lines.append(INDENT * self.depth + text if text else '')

    def module(self, module: Module) -> str:
        self.line(f"module {module.name};")
        if module.imports:
            self.line('')
            for imp in module.imports:
                self.line(f'import "{escape_text(imp.path)}" as {imp.alias};')
        for decl in module.decls:
            self.line('')
            self.decl(decl)
        return '\n'.join(self.lines) + '\n'

    def decl(self, node: Node) -> None:
        if isinstance(node, FuncDecl):
            self.func(node)
        elif isinstance(node, StructDecl):
            prefix = f"{node.access} " if node.access else ''
            self.line(f"{prefix}struct {node.name} {{")
            self.depth += 1
            for f in node.fields:
                access = f"{f.access} " if f.access else ''
                self.line(f"{access}{f.name}: {format_type(f.type_spec)},")
            self.depth -= 1
            self.line('}')
        elif isinstance(node, ExtendBlock):
            self.line(f"extend {node.name} {{")
            self.depth += 1
            for i, method in enumerate(node.methods):
                if i:
                    self.line('')
                self.func(method)
            self.depth -= 1
            self.line('}')
        else:
            raise TypeError(f"cannot print declaration {type(node).__name__}")

    def func(self, node: FuncDecl) -> None:
        prefix = f"{node.access} " if node.access else ''
        ret = '' if node.return_type == TypeSpec.unit() else f" -> {format_type(node.return_type)}"
        self.line(f"{prefix}func {node.name}({format_params(node.params)}){ret} {{")
        self.block_body(node.body)
        self.line('}')

    def block_body(self, block: Block) -> None:
        self.depth += 1
        for stmt in block.statements:
            self.stmt(stmt)
        self.depth -= 1

    def stmt(self, node: Node) -> None:
        self.line(self.stmt_text(node))

    def stmt_text(self, node: Node) -> str:
        """Text of a statement; nested blocks are written through `self.lines`."""
        if isinstance(node, Block):
            return self.inline_block(node)
        if isinstance(node, LetStmt):
            annotation = f": {format_type(node.type_spec)}" if node.type_spec is not None else ''
            return f"let {node.name}{annotation} = {self.expr(node.value)};"
        if isinstance(node, Assign):
            return f"{self.expr(node.target)} = {self.expr(node.value)};"
        if isinstance(node, CompoundAssign):
            return f"{self.expr(node.target)} {node.op}= {self.expr(node.value)};"
        if isinstance(node, WhileStmt):
            return f"while ({self.expr(node.condition)}) {self.stmt_text(node.body)}"
        if isinstance(node, IfStmt):
            text = f"if ({self.expr(node.condition)}) {self.stmt_text(node.then_branch)}"
            if node.else_branch is not None:
                text += f" else {self.stmt_text(node.else_branch)}"
            return text
        if isinstance(node, ReturnStmt):
            if node.value is None:
                return 'return;'
            return f"return {self.expr(node.value)};"
        if isinstance(node, ExprStmt):
            return f"{self.expr(node.expr)};"
        raise TypeError(f"cannot print statement {type(node).__name__}")

    def inline_block(self, block: Block) -> str:
        if not block.statements:
            return '{}'
        inner = Printer()
        inner.depth = self.depth + 1
        for stmt in block.statements:
            inner.stmt(stmt)
        return '{\n' + '\n'.join(inner.lines) + '\n' + INDENT * self.depth + '}'

    def expr(self, node: Node) -> str:
        if isinstance(node, Literal):
            if node.literal_type == 'string':
                return f'"{escape_text(node.value)}"'
            if node.literal_type == 'bool':
                return 'true' if node.value else 'false'
            if node.literal_type == 'float':
                return format_float_literal(node.value)
            return str(node.value)
        if isinstance(node, Ident):
            return node.name
        if isinstance(node, InterpolatedString):
            out = []
            for part in node.parts:
                if isinstance(part, str):
                    out.append(escape_text(part))
                else:
                    out.append(f"\\({self.expr(part)})")
            return '"' + ''.join(out) + '"'
        if isinstance(node, BinaryOp):
            return f"{self.operand(node.left)} {node.op} {self.operand(node.right)}"
        if isinstance(node, UnaryOp):
            operand = self.expr(node.operand)
            if isinstance(node.operand, (BinaryOp, Closure)):
                operand = f"({operand})"
            return f"{node.op}{operand}"
        if isinstance(node, Call):
            args = ', '.join(self.expr(a) for a in node.args)
            return f"{self.postfix_target(node.func)}({args})"
        if isinstance(node, Member):
            sep = '::' if node.static else '.'
            return f"{self.postfix_target(node.target)}{sep}{node.name}"
        if isinstance(node, Cast):
            return f"{self.postfix_target(node.expr)} as {format_type(node.type_spec)}"
        if isinstance(node, StructInit):
            if not node.fields:
                return f"{node.name} {{}}"
            fields = ', '.join(f"{f.name}: {self.expr(f.value)}" for f in node.fields)
            return f"{node.name} {{ {fields} }}"
        if isinstance(node, Closure):
            return f"|{format_params(node.params)}| {format_type(node.return_type)} {self.stmt_text(node.body)}"
        raise TypeError(f"cannot print expression {type(node).__name__}")

    def operand(self, node: Node) -> str:
        text = self.expr(node)
        if isinstance(node, (BinaryOp, Closure)):
            return f"({text})"
        return text

    def postfix_target(self, node: Node) -> str:
        text = self.expr(node)
        if isinstance(node, (BinaryOp, UnaryOp, Closure)):
            return f"({text})"
        return text


def format_module(module: Module) -> str:
    """Render `module` as canonical Quill source text."""
    return Printer().module(module)


def format_expression(node: Node) -> str:
    return Printer().expr(node)

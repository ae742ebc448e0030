"""Parser for the Quill language.

A hand written recursive-descent parser over the token list produced by
`quill.lexer`. Expressions are parsed by precedence climbing, one method per
band, from `parse_expression` (lowest) down to `parse_primary`:

    logic_or  ->  logic_and  ->  equality  ->  comparison  ->  term
    ->  factor  ->  unary  ->  postfix (call, member, cast)  ->  primary

Assignment and compound assignment form the lowest band; they are only
accepted at statement level. Parsing is strict and aborts with a
`ParseError` on the first unexpected token.

The `parse_program` function is the public entry point and returns a
`Module` AST node representing the entire source file.
"""

from __future__ import annotations

from typing import List, Optional, Union

from .ast import (
    Module, Import, Param, Block, FuncDecl, StructField, StructDecl,
    ExtendBlock, LetStmt, Assign, CompoundAssign, WhileStmt, IfStmt,
    ReturnStmt, ExprStmt, Literal, Ident, BinaryOp, UnaryOp, Call, Member,
    FieldInit, StructInit, Cast, Closure, InterpolatedString, Node,
)
from .errors import ParseError
from .lexer import Token, tokenize
from .types import TypeSpec, PRIMITIVE_NAMES


ASSIGN_OPS = {'=': None, '+=': '+', '-=': '-', '*=': '*', '/=': '/', '%=': '%'}
ACCESS_MODIFIERS = ('pub', 'priv', 'protected')


class Parser:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    def peek(self, ahead: int = 0) -> Token:
        i = min(self.pos + ahead, len(self.tokens) - 1)
        return self.tokens[i]

    def advance(self) -> Token:
        token = self.peek()
        if token.type != 'EOF':
            self.pos += 1
        return token

    def match(self, expected: Union[str, List[str]]) -> bool:
        token = self.peek()
        if isinstance(expected, list):
            return token.type in expected
        return token.type == expected

    def consume(self, expected: Union[str, List[str]], what: Optional[str] = None) -> Token:
        token = self.peek()
        if self.match(expected):
            return self.advance()
        if what is None:
            if isinstance(expected, list):
                what = 'one of ' + ', '.join(repr(e) for e in expected)
            elif expected == 'IDENT':
                what = 'identifier'
            else:
                what = repr(expected)
        raise ParseError(f"expected {what}, got {token.describe()}", token.pos)

    def error(self, what: str) -> ParseError:
        token = self.peek()
        return ParseError(f"expected {what}, got {token.describe()}", token.pos)

    # Module level

    def parse_module(self) -> Module:
        start = self.consume('module', "'module' declaration").pos
        name = self.consume('IDENT', 'module name').value
        self.consume(';', "';' after module declaration")
        imports: List[Import] = []
        decls: List[Node] = []
        while self.match('import'):
            imports.append(self.parse_import())
        while not self.match('EOF'):
            if self.match('import'):
                raise ParseError("imports must come before declarations", self.peek().pos)
            decls.append(self.parse_declaration())
        return Module(name, imports, decls, pos=start)

    def parse_import(self) -> Import:
        start = self.consume('import').pos
        path = self.parse_plain_string('import path')
        self.consume('as', "'as' after import path")
        alias = self.consume('IDENT', 'import alias').value
        self.consume(';', "';' after import declaration")
        return Import(path, alias, pos=start)

    def parse_plain_string(self, what: str) -> str:
        """A string literal without interpolation, as used by `import`."""
        self.consume('STRING_START', what)
        text = ''
        if self.match('STRING_SEGMENT'):
            text = self.advance().value
        self.consume('STRING_END', f"end of {what}")
        return text

    def parse_access(self) -> str:
        if self.match(list(ACCESS_MODIFIERS)):
            return self.advance().value
        return ''

    def parse_declaration(self) -> Node:
        access = self.parse_access()
        if self.match('func'):
            return self.parse_func_decl(access)
        if self.match('struct'):
            return self.parse_struct_decl(access)
        if self.match('extend') and not access:
            return self.parse_extend()
        raise self.error("'func', 'struct' or 'extend' declaration")

    def parse_func_decl(self, access: str = '') -> FuncDecl:
        start = self.consume('func').pos
        name = self.consume('IDENT', 'function name').value
        self.consume('(', "'(' after function name")
        params = self.parse_params(')')
        self.consume(')', "')' after function parameters")
        return_type = TypeSpec.unit()
        if self.match('->'):
            self.advance()
            return_type = self.parse_type_spec()
        body = self.parse_block()
        return FuncDecl(name, params, return_type, body, access, pos=start)

    def parse_params(self, closing: str) -> List[Param]:
        params: List[Param] = []
        while not self.match(closing):
            name_token = self.consume('IDENT', 'parameter name')
            self.consume(':', "':' after parameter name")
            type_spec = self.parse_type_spec()
            params.append(Param(name_token.value, type_spec, pos=name_token.pos))
            if not self.match(closing):
                self.consume(',', f"',' or {closing!r} after parameter")
        return params

    def parse_struct_decl(self, access: str = '') -> StructDecl:
        start = self.consume('struct').pos
        name = self.consume('IDENT', 'struct name').value
        self.consume('{', "'{' after struct name")
        fields: List[StructField] = []
        while not self.match('}'):
            field_access = self.parse_access()
            name_token = self.consume('IDENT', 'field name')
            self.consume(':', "':' after field name")
            type_spec = self.parse_type_spec()
            fields.append(StructField(name_token.value, type_spec, field_access, pos=name_token.pos))
            if not self.match('}'):
                self.consume(',', "',' or '}' after struct field")
        self.consume('}', "'}' after struct fields")
        return StructDecl(name, fields, access, pos=start)

    def parse_extend(self) -> ExtendBlock:
        start = self.consume('extend').pos
        name = self.consume('IDENT', 'struct name after extend').value
        self.consume('{', "'{' after extend target")
        methods: List[FuncDecl] = []
        while not self.match('}'):
            access = self.parse_access()
            if not self.match('func'):
                raise self.error("'func' in extend block")
            methods.append(self.parse_func_decl(access))
        self.consume('}', "'}' after extend block")
        return ExtendBlock(name, methods, pos=start)

    def parse_type_spec(self) -> TypeSpec:
        token = self.peek()
        if token.type == 'IDENT':
            self.advance()
            if token.value in PRIMITIVE_NAMES:
                return TypeSpec(PRIMITIVE_NAMES[token.value])
            return TypeSpec.struct(token.value)
        if token.type == '(':
            self.advance()
            params: List[TypeSpec] = []
            while not self.match(')'):
                params.append(self.parse_type_spec())
                if not self.match(')'):
                    self.consume(',', "',' or ')' in function type")
            self.consume(')', "')' in function type")
            self.consume('->', "'->' in function type")
            result = self.parse_type_spec()
            return TypeSpec.function(tuple(params), result)
        raise self.error('type')

    # Statements

    def parse_block(self) -> Block:
        start = self.consume('{', "'{'").pos
        statements: List[Node] = []
        while not self.match('}'):
            if self.match('EOF'):
                raise self.error("'}' to close block")
            statements.append(self.parse_statement())
        self.consume('}')
        return Block(statements, pos=start)

    def parse_statement(self) -> Node:
        token = self.peek()
        if token.type == 'let':
            return self.parse_let_stmt()
        if token.type == 'while':
            return self.parse_while_stmt()
        if token.type == 'if':
            return self.parse_if_stmt()
        if token.type == 'return':
            return self.parse_return_stmt()
        if token.type == '{':
            return self.parse_block()
        expr = self.parse_expression()
        if self.match(list(ASSIGN_OPS)):
            op_token = self.advance()
            if not isinstance(expr, (Ident, Member)) or (isinstance(expr, Member) and expr.static):
                raise ParseError(f"invalid assignment target before {op_token.value!r}", op_token.pos)
            value = self.parse_expression()
            self.consume(';', "';' after assignment")
            op = ASSIGN_OPS[op_token.value]
            if op is None:
                return Assign(expr, value, pos=token.pos)
            return CompoundAssign(op, expr, value, pos=token.pos)
        self.consume(';', "';' after expression")
        return ExprStmt(expr, pos=token.pos)

    def parse_let_stmt(self) -> LetStmt:
        start = self.consume('let').pos
        name = self.consume('IDENT', 'variable name').value
        type_spec: Optional[TypeSpec] = None
        if self.match(':'):
            self.advance()
            type_spec = self.parse_type_spec()
        self.consume('=', "'=' in let statement")
        value = self.parse_expression()
        self.consume(';', "';' after let statement")
        return LetStmt(name, type_spec, value, pos=start)

    def parse_while_stmt(self) -> WhileStmt:
        start = self.consume('while').pos
        self.consume('(', "'(' after 'while'")
        condition = self.parse_expression()
        self.consume(')', "')' after while condition")
        body = self.parse_statement()
        return WhileStmt(condition, body, pos=start)

    def parse_if_stmt(self) -> IfStmt:
        start = self.consume('if').pos
        self.consume('(', "'(' after 'if'")
        condition = self.parse_expression()
        self.consume(')', "')' after if condition")
        then_branch = self.parse_statement()
        else_branch = None
        if self.match('else'):
            self.advance()
            else_branch = self.parse_statement()
        return IfStmt(condition, then_branch, else_branch, pos=start)

    def parse_return_stmt(self) -> ReturnStmt:
        start = self.consume('return').pos
        if self.match(';'):
            self.advance()
            return ReturnStmt(None, pos=start)
        value = self.parse_expression()
        self.consume(';', "';' after return value")
        return ReturnStmt(value, pos=start)

    # Expressions

    def parse_expression(self) -> Node:
        return self.parse_logic_or()

    def parse_binary(self, ops: List[str], operand) -> Node:
        node = operand()
        while self.match(ops):
            op_token = self.advance()
            right = operand()
            node = BinaryOp(op_token.value, node, right, pos=op_token.pos)
        return node

    def parse_logic_or(self) -> Node:
        return self.parse_binary(['||'], self.parse_logic_and)

    def parse_logic_and(self) -> Node:
        return self.parse_binary(['&&'], self.parse_equality)

    def parse_equality(self) -> Node:
        return self.parse_binary(['==', '!='], self.parse_comparison)

    def parse_comparison(self) -> Node:
        return self.parse_binary(['<', '>', '<=', '>='], self.parse_term)

    def parse_term(self) -> Node:
        return self.parse_binary(['+', '-'], self.parse_factor)

    def parse_factor(self) -> Node:
        return self.parse_binary(['*', '/', '%'], self.parse_unary)

    def parse_unary(self) -> Node:
        if self.match(['!', '-']):
            op_token = self.advance()
            operand = self.parse_unary()
            return UnaryOp(op_token.value, operand, pos=op_token.pos)
        return self.parse_postfix()

    def parse_postfix(self) -> Node:
        node = self.parse_primary()
        while True:
            token = self.peek()
            if token.type == '(':
                self.advance()
                args: List[Node] = []
                while not self.match(')'):
                    args.append(self.parse_expression())
                    if not self.match(')'):
                        self.consume(',', "',' or ')' in argument list")
                self.consume(')')
                node = Call(node, args, pos=token.pos)
                continue
            if token.type in ('.', '::'):
                self.advance()
                name = self.consume('IDENT', f"member name after {token.value!r}").value
                node = Member(node, name, token.type == '::', pos=token.pos)
                continue
            if token.type == 'as':
                self.advance()
                node = Cast(node, self.parse_type_spec(), pos=token.pos)
                continue
            break
        return node

    def parse_primary(self) -> Node:
        token = self.peek()
        if token.type == 'INT':
            self.advance()
            try:
                value = int(token.value)
            except ValueError:
                # the host caps int/str conversion length; see host_limits
                raise ParseError(f"integer literal of {len(token.value)} digits is too long", token.pos) from None
            return Literal(value, 'int', pos=token.pos)
        if token.type == 'FLOAT':
            self.advance()
            return Literal(float(token.value), 'float', pos=token.pos)
        if token.type in ('true', 'false'):
            self.advance()
            return Literal(token.type == 'true', 'bool', pos=token.pos)
        if token.type == 'STRING_START':
            return self.parse_string()
        if token.type == 'IDENT':
            if self.at_struct_init():
                return self.parse_struct_init()
            self.advance()
            return Ident(token.value, pos=token.pos)
        if token.type == '(':
            self.advance()
            expr = self.parse_expression()
            self.consume(')', "')' after expression")
            return expr
        if token.type in ('|', '||'):
            return self.parse_closure()
        raise self.error('expression')

    def at_struct_init(self) -> bool:
        """`Name {` starts a struct literal only if the brace looks like one."""
        if self.peek(1).type != '{':
            return False
        after = self.peek(2)
        if after.type == '}':
            return True
        return after.type == 'IDENT' and self.peek(3).type in (':', ',', '}')

    def parse_struct_init(self) -> StructInit:
        name_token = self.consume('IDENT')
        self.consume('{')
        fields: List[FieldInit] = []
        while not self.match('}'):
            field_token = self.consume('IDENT', 'field name')
            if self.match(':'):
                self.advance()
                value = self.parse_expression()
            else:
                # shorthand `Name { x }` means `Name { x: x }`
                value = Ident(field_token.value, pos=field_token.pos)
            fields.append(FieldInit(field_token.value, value, pos=field_token.pos))
            if not self.match('}'):
                self.consume(',', "',' or '}' in struct literal")
        self.consume('}')
        return StructInit(name_token.value, fields, pos=name_token.pos)

    def parse_closure(self) -> Closure:
        start = self.peek().pos
        if self.match('||'):
            self.advance()
            params: List[Param] = []
        else:
            self.consume('|')
            params = self.parse_params('|')
            self.consume('|', "'|' after closure parameters")
        return_type = self.parse_type_spec()
        body = self.parse_statement()
        return Closure(params, return_type, body, pos=start)

    def parse_string(self) -> Node:
        start = self.consume('STRING_START').pos
        parts: List[Union[str, Node]] = []
        while not self.match('STRING_END'):
            token = self.peek()
            if token.type == 'STRING_SEGMENT':
                self.advance()
                parts.append(token.value)
            elif token.type == 'INTERP_OPEN':
                self.advance()
                parts.append(self.parse_expression())
                self.consume('INTERP_CLOSE', "')' to close interpolation")
            else:
                raise self.error('string text or interpolation')
        self.consume('STRING_END')
        if all(isinstance(p, str) for p in parts):
            return Literal(''.join(parts), 'string', pos=start)
        return InterpolatedString(parts, pos=start)


def parse_tokens(tokens: List[Token]) -> Module:
    parser = Parser(tokens)
    module = parser.parse_module()
    return module


def parse_program(source: str) -> Module:
    """Parse Quill source code into a Module AST."""
    return parse_tokens(tokenize(source))

import sys

import pytest

from quill.ast import (
    Module, Import, Param, Block, FuncDecl, StructDecl, ExtendBlock,
    LetStmt, Assign, CompoundAssign, WhileStmt, IfStmt, ReturnStmt, ExprStmt,
    Literal, Ident, BinaryOp, UnaryOp, Call, Member, FieldInit, StructInit,
    Cast, Closure, InterpolatedString,
)
from quill.errors import ParseError
from quill.parser import parse_program
from quill.types import TypeSpec

INT = TypeSpec.integer()


def statements(body):
    module = parse_program(f"module m;\nfunc main() {{\n{body}\n}}\n")
    return module.decls[0].body.statements


def expr(text):
    (stmt,) = statements(f"{text};")
    assert isinstance(stmt, ExprStmt)
    return stmt.expr


def lit(v):
    kind = {int: 'int', float: 'float', bool: 'bool', str: 'string'}[type(v)]
    return Literal(v, kind)


def test_module_header_imports_and_declarations():
    module = parse_program(
        'module demo;\n'
        'import "io" as io;\n'
        'import "math" as m;\n'
        'func helper() {}\n'
        'struct S { a: int }\n'
    )
    assert module.name == 'demo'
    assert module.imports == [Import('io', 'io'), Import('math', 'm')]
    assert [type(d) for d in module.decls] == [FuncDecl, StructDecl]


def test_imports_precede_declarations():
    with pytest.raises(ParseError) as exc:
        parse_program('module demo;\nimport "io" as io;\nfunc helper() {}\nimport "math" as m;\n')
    assert exc.value.message == 'imports must come before declarations'
    assert exc.value.pos.line == 4


@pytest.mark.skipif(not hasattr(sys, 'get_int_max_str_digits'), reason='no int/str conversion cap')
def test_integer_literal_beyond_host_cap():
    with pytest.raises(ParseError) as exc:
        parse_program('module t;\nfunc main() { let n = ' + '1' * 50000 + '; }\n')
    assert 'too long' in exc.value.message


def test_missing_module_header():
    with pytest.raises(ParseError) as exc:
        parse_program('func main() {}')
    assert "'module'" in exc.value.message


def test_function_declaration():
    (func,) = parse_program('module m; func add(a: int, b: int) -> int { return a + b; }').decls
    assert func == FuncDecl(
        'add', [Param('a', INT), Param('b', INT)], INT,
        Block([ReturnStmt(BinaryOp('+', Ident('a'), Ident('b')))]),
    )


def test_omitted_and_void_return_types_are_unit():
    module = parse_program('module m; func a() {} func b() -> void {}')
    assert [f.return_type for f in module.decls] == [TypeSpec.unit(), TypeSpec.unit()]


def test_struct_and_extend_with_access_modifiers():
    module = parse_program(
        'module m;\n'
        'pub struct Point { priv x: float, y: float, }\n'
        'extend Point { pub func norm() -> float { return x; } func zero() {} }\n'
    )
    struct, extend = module.decls
    assert struct.access == 'pub'
    assert [(f.name, f.access) for f in struct.fields] == [('x', 'priv'), ('y', '')]
    assert isinstance(extend, ExtendBlock)
    assert [(m.name, m.access) for m in extend.methods] == [('norm', 'pub'), ('zero', '')]


def test_function_type_annotation():
    (stmt,) = statements('let f: (int, int) -> int = add;')
    assert stmt == LetStmt('f', TypeSpec.function((INT, INT), INT), Ident('add'))


def test_precedence_bands():
    assert expr('1 + 2 * 3') == BinaryOp('+', lit(1), BinaryOp('*', lit(2), lit(3)))
    assert expr('a || b && c') == BinaryOp('||', Ident('a'), BinaryOp('&&', Ident('b'), Ident('c')))
    assert expr('a == b < c') == BinaryOp('==', Ident('a'), BinaryOp('<', Ident('b'), Ident('c')))
    assert expr('1 - 2 - 3') == BinaryOp('-', BinaryOp('-', lit(1), lit(2)), lit(3))
    assert expr('(1 + 2) * 3') == BinaryOp('*', BinaryOp('+', lit(1), lit(2)), lit(3))


def test_unary_binds_looser_than_postfix():
    assert expr('-a as float') == UnaryOp('-', Cast(Ident('a'), TypeSpec.double()))
    assert expr('!f(x)') == UnaryOp('!', Call(Ident('f'), [Ident('x')]))


def test_postfix_chain():
    assert expr('p.x.y(1)') == Call(Member(Member(Ident('p'), 'x'), 'y'), [lit(1)])
    assert expr('Point::new()') == Call(Member(Ident('Point'), 'new', static=True), [])
    assert expr('s as int as float') == Cast(Cast(Ident('s'), INT), TypeSpec.double())


def test_struct_literal_and_shorthand():
    assert expr('Point { x: 1.0, y }') == StructInit('Point', [
        FieldInit('x', lit(1.0)),
        FieldInit('y', Ident('y')),
    ])
    assert expr('Empty {}') == StructInit('Empty', [])


def test_brace_after_condition_is_a_block():
    (stmt,) = statements('while (n > x) { n -= 1; }')
    assert stmt == WhileStmt(
        BinaryOp('>', Ident('n'), Ident('x')),
        Block([CompoundAssign('-', Ident('n'), lit(1))]),
    )


def test_closures():
    assert expr('|a: int| int { return a; }') == Closure(
        [Param('a', INT)], INT, Block([ReturnStmt(Ident('a'))]))
    assert expr('|| unit {}') == Closure([], TypeSpec.unit(), Block([]))


def test_assignment_statements():
    assign, compound, field = statements('x = 1; x *= 2; p.x = 3;')
    assert assign == Assign(Ident('x'), lit(1))
    assert compound == CompoundAssign('*', Ident('x'), lit(2))
    assert field == Assign(Member(Ident('p'), 'x'), lit(3))


def test_chained_assignment_is_rejected():
    with pytest.raises(ParseError) as exc:
        statements('a = b = c;')
    assert "';'" in exc.value.message


def test_invalid_assignment_target():
    with pytest.raises(ParseError) as exc:
        statements('1 = 2;')
    assert 'invalid assignment target' in exc.value.message


def test_if_else_chains():
    (stmt,) = statements('if (a) { return; } else if (b) x = 1; else {}')
    assert stmt == IfStmt(
        Ident('a'),
        Block([ReturnStmt(None)]),
        IfStmt(Ident('b'), Assign(Ident('x'), lit(1)), Block([])),
    )


def test_interpolated_and_plain_strings():
    assert expr(r'"n = \(n)!"') == InterpolatedString(['n = ', Ident('n'), '!'])
    assert expr('"plain"') == lit('plain')
    assert expr(r'"\(a)\(b)"') == InterpolatedString([Ident('a'), Ident('b')])


def test_missing_semicolon_reports_position():
    with pytest.raises(ParseError) as exc:
        parse_program('module m;\nfunc main() {\n    let x = 1\n}\n')
    assert "expected ';' after let statement" in exc.value.message
    assert (exc.value.pos.line, exc.value.pos.column) == (4, 1)


def test_unclosed_block():
    with pytest.raises(ParseError) as exc:
        parse_program('module m; func main() { let x = 1;')
    assert "'}'" in exc.value.message


def test_positions_do_not_affect_equality():
    compact = parse_program('module m;func main(){let x=1;}')
    spaced = parse_program('module m;\n\nfunc main() {\n    let x = 1;\n}\n')
    assert compact == spaced
    assert compact.decls[0].pos != spaced.decls[0].pos


def test_let_requires_initializer():
    with pytest.raises(ParseError):
        statements('let x;')


def test_type_spec_display():
    assert str(TypeSpec.struct('Point')) == 'Point'
    assert str(TypeSpec.function((TypeSpec.integer(), TypeSpec.struct('P')), TypeSpec.unit())) == '(int, P) -> unit'
    assert str(TypeSpec.string()) == 'string'

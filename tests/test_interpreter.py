from io import StringIO

import pytest

from quill.errors import QuillRuntimeError
from quill.interpreter import Interpreter, check_program, run_program
from quill.types import FunctionValue, TypeSpec


def program(body, decls=''):
    return (
        'module t;\n'
        'import "io" as io;\n'
        'import "math" as math;\n'
        f'{decls}\n'
        'func main() {\n'
        f'{body}\n'
        '}\n'
    )


def run(body, decls='', stdin=None):
    out = StringIO()
    run_program(program(body, decls), stdin=StringIO(stdin) if stdin is not None else None, stdout=out)
    return out.getvalue()


def test_integer_arithmetic_truncates_toward_zero():
    assert run(r'io.println("\(7 / 2) \(-7 / 2) \(7 % 3) \(-7 % 3) \(7 % -3)");') == '3 -3 1 -1 1\n'


def test_float_arithmetic_and_display():
    assert run(r'io.println("\(7.0 / 2.0) \(0.1 + 0.2) \(2.0 * 3.0) \(-7.5 % 2.0)");') == \
        '3.5 0.30000000000000004 6.0 -1.5\n'


def test_big_integers_do_not_overflow():
    assert run(r'let n = 1; let i = 0; while (i < 70) { n *= 2; i += 1; } io.println("\(n)");') == \
        f'{2 ** 70}\n'


def test_division_by_zero():
    with pytest.raises(QuillRuntimeError) as exc:
        run('let z = 0;\nlet n = 1 / z;')
    assert exc.value.message == 'division by zero'
    assert exc.value.pos.line == 7
    with pytest.raises(QuillRuntimeError):
        run('let z = 0;\nlet n = 1 % z;')
    with pytest.raises(QuillRuntimeError):
        run('let n = 1.0 / 0.0;')


def test_display_rules():
    decls = 'struct P { v: int, s: string }'
    assert run(r'io.println("\(true) \(false) \(1.5) \(10)");') == 'true false 1.5 10\n'
    assert run(r'let big = 100000000000000000000.0; io.println("\(big)");') == '1e+20\n'
    assert run(r'io.println("\(P { v: 1, s: "x" })");', decls) == 'P { v: 1, s: x }\n'


def test_print_and_println():
    assert run('io.print("a");\nio.print("b");\nio.println("c");') == 'abc\n'


def test_input_strips_newline_and_handles_eof():
    assert run('let s = io.input("? ");\nio.println("[\\(s)]");', stdin='hello\n') == '? [hello]\n'
    assert run('let s = io.input("? ");\nio.println("[\\(s)]");', stdin='') == '? []\n'


def test_math_sqrt():
    assert run(r'io.println("\(math.sqrt(16.0))");') == '4.0\n'
    with pytest.raises(QuillRuntimeError) as exc:
        run('let r = math.sqrt(-1.0);')
    assert exc.value.message == 'math domain error'
    assert exc.value.pos.line == 6


def test_casts():
    assert run(r'io.println("\("42" as int + 1) \(3.9 as int) \(-3.9 as int) \(2 as float) \(" 2.5 " as float)");') == \
        '43 3 -3 2.0 2.5\n'
    assert run(r'io.println((1.5 as string) + (true as string) + (7 as string));') == '1.5true7\n'


def test_invalid_cast_is_a_runtime_error():
    with pytest.raises(QuillRuntimeError) as exc:
        run('let n = "abc" as int;')
    assert exc.value.message.startswith('invalid cast')
    with pytest.raises(QuillRuntimeError):
        run('let n = "1.5" as int;')
    with pytest.raises(QuillRuntimeError):
        run('let n = "x" as float;')


def test_closure_captures_by_reference():
    body = '\n'.join([
        'let x = 1;',
        'let get = || int { return x; };',
        'x = 5;',
        r'io.println("\(get())");',
    ])
    assert run(body) == '5\n'


def test_closure_mutates_captured_binding():
    body = '\n'.join([
        'let count = 0;',
        'let inc = || unit { count += 1; };',
        'inc();',
        'inc();',
        'inc();',
        r'io.println("\(count)");',
    ])
    assert run(body) == '3\n'


def test_loop_iterations_get_fresh_environments():
    body = '\n'.join([
        'let i = 0;',
        'let last = || int { return 0; };',
        'let first = last;',
        'while (i < 3) {',
        '    let j = i;',
        '    last = || int { return j; };',
        '    if (i == 0) { first = last; }',
        '    i += 1;',
        '}',
        r'io.println("\(first()) \(last())");',
    ])
    assert run(body) == '0 2\n'


def test_functions_are_values():
    decls = 'func twice(f: (int) -> int, x: int) -> int { return f(f(x)); }\nfunc inc(n: int) -> int { return n + 1; }'
    assert run(r'io.println("\(twice(inc, 1)) \(twice(|n: int| int { return n * 3; }, 2))");', decls) == '3 18\n'


def test_recursion():
    decls = 'func fib(n: int) -> int { if (n < 2) { return n; } return fib(n - 1) + fib(n - 2); }'
    assert run(r'io.println("\(fib(15))");', decls) == '610\n'


def test_stack_overflow():
    decls = 'func down(n: int) -> int { return down(n + 1); }'
    with pytest.raises(QuillRuntimeError) as exc:
        run('let n = down(0);', decls)
    assert exc.value.message == 'stack overflow'


def test_struct_values_are_shared():
    decls = 'struct P { v: int }'
    assert run('let a = P { v: 1 };\nlet b = a;\nb.v = 2;\nb.v += 3;\nio.println("\\(a.v)");', decls) == '5\n'


def test_struct_equality_is_identity():
    decls = 'struct P { v: int }'
    assert run(r'let a = P { v: 1 }; let b = a; let c = P { v: 1 }; io.println("\(a == b) \(a == c) \(a != c)");',
               decls) == 'true false true\n'


def test_methods_write_back_to_the_receiver():
    decls = '\n'.join([
        'struct Acc { total: int }',
        'extend Acc {',
        '    func add(n: int) { total += n; }',
        '    func add_twice(n: int) { add(n); add(n); }',
        '    func get() -> int { return total; }',
        '}',
    ])
    body = 'let a = Acc { total: 1 };\na.add(2);\na.add_twice(3);\nio.println("\\(a.get()) \\(a.total)");'
    assert run(body, decls) == '9 9\n'


def test_method_closure_keeps_receiver():
    decls = '\n'.join([
        'struct Acc { total: int }',
        'extend Acc {',
        '    func adder() -> (int) -> unit { return |n: int| unit { total += n; }; }',
        '}',
    ])
    body = 'let a = Acc { total: 0 };\nlet f = a.adder();\nf(4);\nf(5);\nio.println("\\(a.total)");'
    assert run(body, decls) == '9\n'


def test_static_method_call():
    decls = '\n'.join([
        'struct V { x: int }',
        'extend V {',
        '    func make(x: int) -> V { return V { x }; }',
        '    func show() -> string { return "V(\\(x))"; }',
        '}',
    ])
    assert run(r'io.println(V.make(7).show());', decls) == 'V(7)\n'
    assert run(r'io.println(V::make(8).show());', decls) == 'V(8)\n'


def test_short_circuit_logic():
    assert run(r'let z = 0; io.println("\(false && 1 / z == 0) \(true || 1 / z == 0)");') == 'false true\n'


def test_if_else_and_shadowing():
    body = '\n'.join([
        'let x = 1;',
        'if (x > 0) { let x = "inner"; io.println(x); } else { io.println("no"); }',
        r'io.println("\(x)");',
    ])
    assert run(body) == 'inner\n1\n'


def test_main_status():
    # a completed run always reports 0, whatever main returns
    assert run_program('module t;\nfunc main() -> int { return 3; }\n') == 0
    assert run_program('module t;\nfunc main() {}\n') == 0


def test_integers_are_unbounded():
    literal = '9' * 5000
    body = '\n'.join([
        f'let n = {literal};',
        'let sq = n * n;',
        'let text = sq as string;',
        r'io.println("\(sq % 100)");',
        'let back = text as int;',
        r'io.println("\(back == sq)");',
    ])
    assert run(body) == '1\ntrue\n'


def test_runs_are_deterministic():
    decls = 'func step(n: int) -> int { if (n % 2 == 0) { return n / 2; } return 3 * n + 1; }'
    body = r'let n = io.input("") as int; while (n != 1) { io.print("\(n) "); n = step(n); } io.println("1");'
    first = run(body, decls, stdin='27\n')
    assert first == run(body, decls, stdin='27\n')
    assert first.startswith('27 82 41 ')


def test_debug_trace(tmp_path):
    debug_file = tmp_path / 'debug.txt'
    checked = check_program(program('let x = 1;\nx = 2;\nwhile (x > 3) {}'))
    Interpreter(debug_level=3, debug_file=str(debug_file)).run(checked)
    lines = debug_file.read_text(encoding='utf-8').splitlines()
    assert lines[0] == 'phase: run module t'
    assert 'call main()' in lines
    assert 'declare x: int = 1' in lines
    assert 'assign x = 2' in lines
    assert any(line.startswith('while condition at 8:1 -> false') for line in lines)


def test_debug_level_zero_writes_nothing(tmp_path):
    debug_file = tmp_path / 'debug.txt'
    checked = check_program(program('let x = 1;'))
    Interpreter(debug_file=str(debug_file)).run(checked)
    assert not debug_file.exists()


def test_call_function_checks_callee_and_arity():
    interp = Interpreter()
    with pytest.raises(QuillRuntimeError) as exc:
        interp.call_function(1, [])
    assert 'not callable' in exc.value.message
    func = FunctionValue('f', [], TypeSpec.unit(), None, interp.global_env)
    with pytest.raises(QuillRuntimeError) as exc:
        interp.call_function(func, [1])
    assert 'expects 0 arguments' in exc.value.message

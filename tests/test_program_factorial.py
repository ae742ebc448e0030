import builtins
import math
import sys
from pathlib import Path

import pytest

from quill.errors import QuillRuntimeError
from quill.interpreter import parse_program, check_module, Interpreter

EXAMPLES = Path(__file__).parent.parent / 'examples'


def run_factorial(monkeypatch, text):
    monkeypatch.setattr(builtins, 'input', lambda prompt='': text)
    with open(EXAMPLES / 'factorial.ql', 'r', encoding='utf-8') as f:
        source = f.read()
    ast = parse_program(source)
    interp = Interpreter()
    return interp.run(check_module(ast))


@pytest.mark.parametrize('given, expected', [
    ('5', '5! = 120'),
    ('1', '1! = 1'),
    # the accumulator starts at n, so 0 stays 0
    ('0', '0! = 0'),
    ('10', '10! = 3628800'),
])
def test_program_factorial(monkeypatch, capsys, given, expected):
    status = run_factorial(monkeypatch, given)
    out = capsys.readouterr().out.strip()
    assert out == expected
    assert status == 0


def test_program_factorial_rejects_non_numeric_input(monkeypatch):
    with pytest.raises(QuillRuntimeError) as exc:
        run_factorial(monkeypatch, 'abc')
    assert 'invalid cast' in exc.value.message
    assert exc.value.pos.line == 18


@pytest.mark.skipif(not hasattr(sys, 'get_int_max_str_digits'), reason='no int/str conversion cap')
def test_program_factorial_large_result(monkeypatch, capsys):
    limit = sys.get_int_max_str_digits()
    status = run_factorial(monkeypatch, '2000')
    assert status == 0
    assert sys.get_int_max_str_digits() == limit
    out = capsys.readouterr().out.strip()
    prefix, digits = out.split(' = ')
    assert prefix == '2000!'
    # 2000! has 5736 digits
    assert len(digits) == 5736
    sys.set_int_max_str_digits(0)
    try:
        assert int(digits) == math.factorial(2000)
    finally:
        sys.set_int_max_str_digits(limit)

import pytest

from quill.errors import LexError
from quill.lexer import tokenize


def types(source):
    return [t.type for t in tokenize(source)]


def test_keywords_identifiers_and_literals():
    assert types('let x = 1;') == ['let', 'IDENT', '=', 'INT', ';', 'EOF']
    tokens = tokenize('func f2(_a: float) -> bool { return 1.5; }')
    assert [t.type for t in tokens] == [
        'func', 'IDENT', '(', 'IDENT', ':', 'IDENT', ')', '->', 'IDENT', '{',
        'return', 'FLOAT', ';', '}', 'EOF',
    ]
    assert tokens[1].value == 'f2'
    assert tokens[11].value == '1.5'


def test_longest_match_operators():
    assert types('-> += -= *= /= %= :: == != <= >= && ||') == [
        '->', '+=', '-=', '*=', '/=', '%=', '::', '==', '!=', '<=', '>=', '&&', '||', 'EOF',
    ]
    assert types('a-b') == ['IDENT', '-', 'IDENT', 'EOF']
    assert types('a->b') == ['IDENT', '->', 'IDENT', 'EOF']


def test_dot_after_integer_is_member_access():
    assert types('1.x') == ['INT', '.', 'IDENT', 'EOF']
    assert types('1.25') == ['FLOAT', 'EOF']


def test_line_comments_are_discarded():
    source = 'let a = 1; // trailing comment\n// whole line\nlet b = 2;'
    assert types(source) == ['let', 'IDENT', '=', 'INT', ';', 'let', 'IDENT', '=', 'INT', ';', 'EOF']


def test_plain_string_with_escapes():
    tokens = tokenize(r'"a\n\t\"b\\"')
    assert [t.type for t in tokens] == ['STRING_START', 'STRING_SEGMENT', 'STRING_END', 'EOF']
    assert tokens[1].value == 'a\n\t"b\\'


def test_empty_string_has_no_segment():
    assert types('""') == ['STRING_START', 'STRING_END', 'EOF']


def test_interpolation_is_tokenized_as_code():
    tokens = tokenize(r'"a\(f(1))b"')
    assert [t.type for t in tokens] == [
        'STRING_START', 'STRING_SEGMENT', 'INTERP_OPEN', 'IDENT', '(', 'INT', ')',
        'INTERP_CLOSE', 'STRING_SEGMENT', 'STRING_END', 'EOF',
    ]
    assert tokens[1].value == 'a'
    assert tokens[8].value == 'b'


def test_nested_interpolation():
    assert types(r'"x\("y\(1)")"') == [
        'STRING_START', 'STRING_SEGMENT', 'INTERP_OPEN',
        'STRING_START', 'STRING_SEGMENT', 'INTERP_OPEN', 'INT', 'INTERP_CLOSE', 'STRING_END',
        'INTERP_CLOSE', 'STRING_END', 'EOF',
    ]


def test_positions_track_line_column_and_byte_offset():
    tokens = tokenize('"é" x\n  y')
    end, x, y = tokens[2], tokens[3], tokens[4]
    assert (end.line, end.column, end.pos.offset) == (1, 3, 3)
    assert (x.line, x.column, x.pos.offset) == (1, 5, 5)
    assert (y.line, y.column) == (2, 3)


def test_illegal_character():
    with pytest.raises(LexError) as exc:
        tokenize('let x = #;')
    assert 'illegal character' in exc.value.message
    assert (exc.value.pos.line, exc.value.pos.column) == (1, 9)


def test_unicode_digit_is_illegal():
    with pytest.raises(LexError):
        tokenize('let x = ²;')


def test_unterminated_string():
    with pytest.raises(LexError) as exc:
        tokenize('let s = "abc')
    assert 'unterminated string' in exc.value.message
    assert exc.value.pos.column == 9


def test_unterminated_interpolation():
    with pytest.raises(LexError) as exc:
        tokenize(r'"\(1 + 2')
    assert 'unterminated interpolation' in exc.value.message
    assert str(exc.value).startswith('LexError at 1:2:')


def test_illegal_escape():
    with pytest.raises(LexError) as exc:
        tokenize(r'"\q"')
    assert 'illegal escape' in exc.value.message

import json
from io import StringIO
from pathlib import Path

import pytest

from quill.ast_json import ast_to_obj, ast_from_obj
from quill.checker import check_module
from quill.interpreter import Interpreter
from quill.parser import parse_program

EXAMPLES = Path(__file__).parent.parent / 'examples'


@pytest.mark.parametrize('name', ['factorial.ql', 'closure.ql', 'point.ql', 'counter.ql'])
def test_round_trip_through_json(name):
    module = parse_program((EXAMPLES / name).read_text(encoding='utf-8'))
    loaded = ast_from_obj(json.loads(json.dumps(ast_to_obj(module))))
    assert loaded == module
    assert loaded.decls[-1].pos == module.decls[-1].pos


def test_loaded_tree_runs_like_the_source():
    module = parse_program((EXAMPLES / 'factorial.ql').read_text(encoding='utf-8'))
    loaded = ast_from_obj(json.loads(json.dumps(ast_to_obj(module))))
    outputs = []
    for tree in (module, loaded):
        out = StringIO()
        Interpreter(stdin=StringIO('6\n'), stdout=out).run(check_module(tree))
        outputs.append(out.getvalue())
    assert outputs[0] == outputs[1] == 'Enter a number: 6! = 720\n'


def test_type_annotations_survive():
    module = parse_program('module m;\nfunc main() { let f: (int, Point) -> float = g; }\n')
    obj = ast_to_obj(module)
    let = obj['decls'][0]['body']['statements'][0]
    assert let['type_spec'] == {
        '__type__': 'TypeSpec',
        'value': {
            'kind': 'func',
            'args': [{'kind': 'int'}, {'kind': 'struct', 'name': 'Point'}],
            'result': {'kind': 'float'},
        },
    }
    assert ast_from_obj(obj) == module


def test_unknown_node_type():
    with pytest.raises(ValueError):
        ast_from_obj({'type': 'Bogus'})

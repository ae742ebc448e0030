"""CLI entry point for the Quill interpreter.

Usage:
    python -m quill [-v|-vv|-vvv] <program_file>
    python -m quill [-v...] --emit-ast <program_file>
    python -m quill [-v...] --ast <ast_json_file>
    python -m quill --check <program_file>

Options:
  -v            Increase debug verbosity (can be repeated)
  --emit-ast    Parse the given .ql file and emit an AST JSON file
  --ast         Execute a previously emitted AST JSON file
  --check       Type-check the given .ql file without running it

Debug information is written to `debug.txt` in the current directory when
verbosity is greater than zero. Any Quill error is reported on stderr and
the process exits with status 1; a run that completes exits with status 0,
whatever `main` returns.
"""

import argparse
import json
import sys
from pathlib import Path
from .interpreter import parse_program, Interpreter, host_limits
from .checker import check_module
from .ast_json import ast_to_obj, ast_from_obj
from .errors import QuillError


def read_source(path_text: str) -> str:
    program_file = Path(path_text)
    if not program_file.exists():
        print(f"Error: file {program_file} not found", file=sys.stderr)
        sys.exit(1)
    with open(program_file, 'r', encoding='utf-8') as f:
        return f.read()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Quill language interpreter")
    parser.add_argument('-v', action='count', default=0, help='increase debug verbosity (can be repeated)')
    group = parser.add_mutually_exclusive_group()
    group.add_argument('--emit-ast', metavar='QL_FILE', help='emit AST JSON for the given .ql file')
    group.add_argument('--ast', metavar='AST_JSON_FILE', help='execute AST from a JSON file')
    group.add_argument('--check', metavar='QL_FILE', help='type-check the given .ql file without running it')
    parser.add_argument('program', nargs='?', help='Quill program file (.ql) to execute')
    args = parser.parse_args(argv)

    with host_limits():
        try:
            # Emit AST mode
            if args.emit_ast:
                program_file = Path(args.emit_ast)
                module = parse_program(read_source(args.emit_ast))
                obj = ast_to_obj(module)
                out_path = program_file.with_name(program_file.name + '.ast.json')
                with open(out_path, 'w', encoding='utf-8') as out:
                    json.dump(obj, out, ensure_ascii=False, indent=2)
                print(str(out_path))
                return

            if args.check:
                check_module(parse_program(read_source(args.check)))
                print(f"{args.check}: ok")
                return

            # Execute from AST JSON
            if args.ast:
                ast_path = Path(args.ast)
                if not ast_path.exists():
                    print(f"Error: file {ast_path} not found", file=sys.stderr)
                    sys.exit(1)
                with open(ast_path, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                module = ast_from_obj(data)
            else:
                # Default: execute source file
                if not args.program:
                    parser.error('missing program file; or use --emit-ast/--ast/--check')
                module = parse_program(read_source(args.program))

            interpreter = Interpreter(debug_level=args.v)
            try:
                interpreter.debug('phase: check')
                checked = check_module(module)
            except QuillError:
                interpreter.close()
                raise
            interpreter.run(checked)
        except QuillError as e:
            print(str(e), file=sys.stderr)
            sys.exit(1)
    sys.exit(0)

if __name__ == '__main__':
    main()

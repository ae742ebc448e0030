"""Tree-walking interpreter for the Quill language.

The interpreter executes a `CheckedModule` produced by `quill.checker`. It
trusts the checker: the static type of every expression is never re-validated,
and names, members and calls are dispatched through the checker's resolution
table. Only casts, arithmetic faults, intrinsic failures and call-target
legality are checked while running.

Scoping follows the lexical nesting of the program. Every function call gets
an environment whose parent is the function's defining environment, and
blocks, loop iterations and branches get child environments. Environments are
shared by reference, so closures observe later writes to captured bindings.
Inside a method the receiver's field dict is itself an environment layer, and
field writes land on the instance.

`run_program`, `check_program` and `compile_module` wrap the whole pipeline
(lex, parse, check, run).
"""

from __future__ import annotations

import math
import sys
from contextlib import contextmanager
from typing import Any, List, Optional, TextIO

from .ast import (
    Block, FuncDecl, LetStmt, Assign, CompoundAssign, WhileStmt, IfStmt,
    ReturnStmt, ExprStmt, Literal, Ident, BinaryOp, UnaryOp, Call, Member,
    StructInit, Cast, Closure, InterpolatedString, Node,
)
from .builtin_function import BuiltinFunction
from .checker import CheckedModule, check_module
from .environment import Environment
from .errors import QuillRuntimeError, ReturnSignal, Position
from .parser import parse_program
from .std import load_intrinsics
from .types import (
    UNIT, StructInstance, FunctionValue, convert_value, to_string, type_name,
)

# Each Quill call costs a dozen or so Python frames.
RECURSION_LIMIT = 10000


@contextmanager
def host_limits():
    """Raise the host limits a Quill program can run into, then restore them.

    Quill ints are unbounded, so the host's cap on int/str conversion length
    is lifted as well as the recursion limit.
    """
    old_limit = sys.getrecursionlimit()
    old_digits = sys.get_int_max_str_digits() if hasattr(sys, 'get_int_max_str_digits') else None
    sys.setrecursionlimit(max(old_limit, RECURSION_LIMIT))
    if old_digits is not None:
        sys.set_int_max_str_digits(0)
    try:
        yield
    finally:
        sys.setrecursionlimit(old_limit)
        if old_digits is not None:
            sys.set_int_max_str_digits(old_digits)


def truncating_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b >= 0) else -q


class Interpreter:
    """Core interpreter that executes a checked Quill module."""
    def __init__(self, debug_level: int = 0, debug_file: str = 'debug.txt',
                 stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None):
        self.global_env = Environment()
        self.intrinsics = load_intrinsics(stdin, stdout)
        self.checked: Optional[CheckedModule] = None
        self.debug_level = debug_level
        self.debug_fp = open(debug_file, 'w', encoding='utf-8') if debug_level > 0 else None

    def debug(self, msg: str):
        if self.debug_level > 0:
            if self.debug_fp:
                self.debug_fp.write(msg + '\n')
                self.debug_fp.flush()
            else:
                print(msg)

    def close(self) -> None:
        if self.debug_fp:
            self.debug_fp.close()
            self.debug_fp = None

    # Public API
    def run(self, checked: CheckedModule) -> int:
        """Execute `main`; a run that completes always has status 0."""
        self.checked = checked
        self.debug(f"phase: run module {checked.module.name}")
        for name, decl in checked.functions.items():
            self.global_env.declare(name, FunctionValue(name, decl.params, decl.return_type,
                                                        decl.body, self.global_env))
        main = self.global_env.get('main')
        try:
            with host_limits():
                self.call_function(main, [], checked.main.pos)
        except RecursionError:
            raise QuillRuntimeError('stack overflow', checked.main.pos) from None
        except ValueError as e:
            # host conversion failures that no call site turned into a Quill error
            raise QuillRuntimeError(str(e), checked.main.pos) from None
        finally:
            self.close()
        return 0

    def execute_block(self, statements: List[Node], env: Environment) -> Any:
        for stmt in statements:
            result = self.execute(stmt, env)
            # propagate return signals
            if isinstance(result, ReturnSignal):
                return result
        return None

    def execute(self, node: Node, env: Environment) -> Any:
        if isinstance(node, LetStmt):
            value = self.evaluate(node.value, env)
            env.declare(node.name, value)
            if self.debug_level >= 2:
                self.debug(f"declare {node.name}: {type_name(value)} = {to_string(value)}")
            return None
        if isinstance(node, Assign):
            value = self.evaluate(node.value, env)
            self.assign_lvalue(node.target, value, env)
            return None
        if isinstance(node, CompoundAssign):
            target = node.target
            if isinstance(target, Member):
                # evaluate the receiver expression once
                instance = self.evaluate(target.target, env)
                operand = self.evaluate(node.value, env)
                value = self.apply_binary_op(node.op, instance.fields[target.name], operand, node.pos)
                instance.fields[target.name] = value
                if self.debug_level >= 2:
                    self.debug(f"assign {instance.type_name}.{target.name} = {to_string(value)}")
                return None
            current = self.evaluate(target, env)
            operand = self.evaluate(node.value, env)
            value = self.apply_binary_op(node.op, current, operand, node.pos)
            self.assign_lvalue(target, value, env)
            return None
        if isinstance(node, Block):
            return self.execute_block(node.statements, env.child())
        if isinstance(node, IfStmt):
            cond = self.evaluate(node.condition, env)
            if self.debug_level >= 3:
                self.debug(f"if condition at {node.pos} -> {to_string(cond)}")
            if cond:
                return self.execute(node.then_branch, env.child())
            if node.else_branch is not None:
                return self.execute(node.else_branch, env.child())
            return None
        if isinstance(node, WhileStmt):
            while True:
                cond = self.evaluate(node.condition, env)
                if self.debug_level >= 3:
                    self.debug(f"while condition at {node.pos} -> {to_string(cond)}")
                if not cond:
                    break
                res = self.execute(node.body, env.child())
                if isinstance(res, ReturnSignal):
                    return res
            return None
        if isinstance(node, ReturnStmt):
            value = self.evaluate(node.value, env) if node.value is not None else UNIT
            return ReturnSignal(value)
        if isinstance(node, ExprStmt):
            self.evaluate(node.expr, env)
            return None
        raise NotImplementedError(f"execute: unexpected node type {type(node)}")

    def evaluate(self, node: Node, env: Environment) -> Any:
        if isinstance(node, Literal):
            return node.value
        if isinstance(node, Ident):
            return self.lookup(node, env)
        if isinstance(node, InterpolatedString):
            out = []
            for part in node.parts:
                if isinstance(part, str):
                    out.append(part)
                else:
                    out.append(to_string(self.evaluate(part, env)))
            return ''.join(out)
        if isinstance(node, UnaryOp):
            operand = self.evaluate(node.operand, env)
            if node.op == '!':
                return not operand
            return -operand
        if isinstance(node, BinaryOp):
            left = self.evaluate(node.left, env)
            # Short-circuit for && and ||
            if node.op == '&&':
                return left and self.evaluate(node.right, env)
            if node.op == '||':
                return left or self.evaluate(node.right, env)
            right = self.evaluate(node.right, env)
            return self.apply_binary_op(node.op, left, right, node.pos)
        if isinstance(node, Member):
            return self.evaluate_member(node, env)
        if isinstance(node, Call):
            return self.evaluate_call(node, env)
        if isinstance(node, StructInit):
            info = self.checked.structs[node.name]
            given = {f.name: self.evaluate(f.value, env) for f in node.fields}
            return StructInstance(node.name, {name: given[name] for name in info.fields})
        if isinstance(node, Cast):
            value = self.evaluate(node.expr, env)
            if self.checked.type_of(node.expr) == node.type_spec:
                return value
            try:
                return convert_value(node.type_spec, value)
            except (ValueError, TypeError, OverflowError) as e:
                raise QuillRuntimeError(f"invalid cast: {e}", node.pos)
        if isinstance(node, Closure):
            return FunctionValue('<closure>', node.params, node.return_type, node.body, env)
        raise NotImplementedError(f"evaluate: unexpected node type {type(node)}")

    def lookup(self, node: Ident, env: Environment) -> Any:
        resolution = self.checked.resolution(node)
        if resolution[0] == 'function':
            return self.global_env.get(node.name, node.pos)
        if resolution[0] == 'method':
            return self.method_value(resolution[1], resolution[2], env.find_receiver())
        return env.get(node.name, node.pos)

    def method_value(self, struct: str, name: str, receiver: Optional[StructInstance]) -> FunctionValue:
        """A method as a callable, closed over its receiver's fields."""
        decl: FuncDecl = self.checked.structs[struct].methods[name]
        if receiver is None:
            env = Environment(parent=self.global_env)
        else:
            env = Environment(parent=self.global_env, values=receiver.fields, receiver=receiver)
        return FunctionValue(f"{struct}.{name}", decl.params, decl.return_type, decl.body, env, owner=struct)

    def evaluate_member(self, node: Member, env: Environment) -> Any:
        resolution = self.checked.resolution(node)
        kind = resolution[0]
        if kind == 'static_method':
            return self.method_value(resolution[1], resolution[2], None)
        target = self.evaluate(node.target, env)
        if not isinstance(target, StructInstance):
            raise QuillRuntimeError(f"cannot access {node.name} on {type_name(target)}", node.pos)
        if kind == 'bound_method':
            return self.method_value(resolution[1], resolution[2], target)
        return target.fields[node.name]

    def evaluate_call(self, node: Call, env: Environment) -> Any:
        resolution = self.checked.resolutions.get(id(node))
        if resolution is not None and resolution[0] == 'intrinsic':
            func: Any = self.intrinsics[resolution[1]][resolution[2]]
        else:
            func = self.evaluate(node.func, env)
        args = [self.evaluate(arg, env) for arg in node.args]
        return self.call_function(func, args, node.pos)

    def assign_lvalue(self, target: Node, value: Any, env: Environment) -> None:
        if isinstance(target, Ident):
            env.set(target.name, value, target.pos)
            if self.debug_level >= 2:
                self.debug(f"assign {target.name} = {to_string(value)}")
            return
        if isinstance(target, Member):
            instance = self.evaluate(target.target, env)
            if not isinstance(instance, StructInstance):
                raise QuillRuntimeError(f"cannot assign to {target.name} on {type_name(instance)}", target.pos)
            instance.fields[target.name] = value
            if self.debug_level >= 2:
                self.debug(f"assign {instance.type_name}.{target.name} = {to_string(value)}")
            return
        raise QuillRuntimeError('invalid assignment target', target.pos)

    def call_function(self, func: Any, args: List[Any], pos: Optional[Position] = None) -> Any:
        if isinstance(func, BuiltinFunction):
            if len(args) != func.arity:
                raise QuillRuntimeError(f"{func.qualified_name} expects {func.arity} arguments", pos)
            try:
                return func.fn(args)
            except ValueError as e:
                raise QuillRuntimeError(str(e), pos)
        if isinstance(func, FunctionValue):
            # Check argument count
            if len(args) != len(func.params):
                raise QuillRuntimeError(f"{func.name} expects {len(func.params)} arguments", pos)
            if self.debug_level >= 1:
                self.debug(f"call {func.name}({', '.join(to_string(a) for a in args)})")
            # the callee's scope hangs off its defining environment, not the caller's
            call_env = Environment(parent=func.env)
            for param, arg in zip(func.params, args):
                call_env.declare(param.name, arg)
            res = self.execute(func.body, call_env)
            if isinstance(res, ReturnSignal):
                return res.value
            return UNIT
        raise QuillRuntimeError(f"value of type {type_name(func)} is not callable", pos)

    def apply_binary_op(self, op: str, a: Any, b: Any, pos: Optional[Position] = None) -> Any:
        if op == '+':
            return a + b
        if op == '-':
            return a - b
        if op == '*':
            return a * b
        if op == '/':
            if b == 0:
                raise QuillRuntimeError('division by zero', pos)
            if isinstance(a, int):
                return truncating_div(a, b)
            return a / b
        if op == '%':
            if b == 0:
                raise QuillRuntimeError('division by zero', pos)
            if isinstance(a, int):
                # sign follows the dividend
                return a - b * truncating_div(a, b)
            return math.fmod(a, b)
        if op == '==':
            return self.equal_values(a, b)
        if op == '!=':
            return not self.equal_values(a, b)
        if op == '<':
            return a < b
        if op == '>':
            return a > b
        if op == '<=':
            return a <= b
        if op == '>=':
            return a >= b
        raise QuillRuntimeError(f'unknown operator {op}', pos)

    def equal_values(self, a: Any, b: Any) -> bool:
        # structs and functions compare by identity
        if isinstance(a, (StructInstance, FunctionValue, BuiltinFunction)):
            return a is b
        return a == b


def check_program(source: str) -> CheckedModule:
    """Parse and type-check a Quill source string."""
    return check_module(parse_program(source))


def run_program(source: str, debug_level: int = 0,
                stdin: Optional[TextIO] = None, stdout: Optional[TextIO] = None) -> int:
    """Convenience function to check and run a Quill program from source string."""
    interpreter = Interpreter(debug_level=debug_level, stdin=stdin, stdout=stdout)
    try:
        # integer literals longer than the host's str -> int cap must parse
        with host_limits():
            interpreter.debug('phase: parse')
            module = parse_program(source)
            interpreter.debug('phase: check')
            checked = check_module(module)
            return interpreter.run(checked)
    finally:
        interpreter.close()


def compile_module(file_path: str) -> CheckedModule:
    """Read, parse and type-check a Quill file, returning the checked module."""
    with open(file_path, 'r', encoding='utf-8') as f:
        source = f.read()
    return check_program(source)

"""Static type checker for Quill modules.

The checker runs between the parser and the interpreter. It registers every
top-level declaration first, so declaration order does not matter, then
checks each function and method body in a fresh scope, and finally validates
calls made through a struct name against the set of methods that need a
receiver. The first error aborts checking with a `TypeCheckError`.

The result is a `CheckedModule`: the original AST plus side tables keyed by
node identity. `types` holds the static type of every expression and
`resolutions` records what a name, member access or call refers to, so the
interpreter never has to repeat a lookup decision:

    ('local',)                      an Ident bound in the scope chain
    ('function', name)              an Ident naming a top-level function
    ('method', struct, name)        an Ident naming a sibling method
    ('field',)                      `value.field`
    ('bound_method', struct, name)  `value.method`
    ('static_method', struct, name) `Struct.method`
    ('intrinsic', module, name)     a Call of `alias.member`
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from .ast import (
    Module, Block, FuncDecl, StructDecl, ExtendBlock,
    LetStmt, Assign, CompoundAssign, WhileStmt, IfStmt, ReturnStmt, ExprStmt,
    Literal, Ident, BinaryOp, UnaryOp, Call, Member, StructInit, Cast,
    Closure, InterpolatedString, Node,
)
from .errors import TypeCheckError, Position
from .std import INTRINSIC_SIGNATURES
from .types import TypeSpec, cast_allowed

ARITHMETIC_OPS = ('+', '-', '*', '/', '%')
EQUALITY_OPS = ('==', '!=')
ORDERING_OPS = ('<', '>', '<=', '>=')
LOGICAL_OPS = ('&&', '||')

MethodKey = Tuple[str, str]


@dataclass
class StructInfo:
    name: str
    fields: Dict[str, TypeSpec]  # declaration order
    methods: Dict[str, FuncDecl] = field(default_factory=dict)
    decl: Optional[StructDecl] = None


@dataclass
class CheckedModule:
    """A module that passed type checking, with its side tables."""
    module: Module
    structs: Dict[str, StructInfo]
    functions: Dict[str, FuncDecl]
    imports: Dict[str, str]  # alias -> intrinsic module
    receiver_methods: Set[MethodKey]
    resolutions: Dict[int, Tuple[Any, ...]]
    types: Dict[int, TypeSpec]

    def resolution(self, node: Node) -> Tuple[Any, ...]:
        return self.resolutions.get(id(node), ('local',))

    def type_of(self, node: Node) -> Optional[TypeSpec]:
        return self.types.get(id(node))

    @property
    def main(self) -> FuncDecl:
        return self.functions['main']


class Scope:
    """Static counterpart of `Environment`: name -> declared type."""
    def __init__(self, parent: Optional['Scope'] = None, kind: str = 'block'):
        self.parent = parent
        self.kind = kind  # 'block', 'params' or 'fields'
        self.names: Dict[str, TypeSpec] = {}
        # names resolved through this scope to an enclosing binding, and the
        # subset of those resolved from inside a closure body
        self.used: Set[str] = set()
        self.captured: Set[str] = set()

    def lookup(self, name: str) -> Optional[Tuple[TypeSpec, 'Scope']]:
        scope: Optional[Scope] = self
        while scope is not None:
            if name in scope.names:
                return scope.names[name], scope
            scope = scope.parent
        return None

    def resolve(self, name: str) -> Optional[Tuple[TypeSpec, 'Scope']]:
        """Like `lookup`, and pins the binding for every scope passed on the way.

        Environments are searched by name at run time, so a later `let` of the
        same name in one of those scopes would capture closures created before it.
        """
        found = self.lookup(name)
        if found is not None:
            scope: Optional[Scope] = self
            in_closure = False
            while scope is not found[1]:
                scope.used.add(name)
                if in_closure:
                    scope.captured.add(name)
                in_closure = in_closure or scope.kind == 'params'
                scope = scope.parent
        return found

    def child(self, kind: str = 'block') -> 'Scope':
        return Scope(self, kind)


def signature_of(func: Any) -> TypeSpec:
    return TypeSpec.function(tuple(p.type_spec for p in func.params), func.return_type)


def always_returns(node: Node) -> bool:
    """True when every path through `node` ends in a return statement."""
    if isinstance(node, ReturnStmt):
        return True
    if isinstance(node, Block):
        return any(always_returns(s) for s in node.statements)
    if isinstance(node, IfStmt):
        return (node.else_branch is not None
                and always_returns(node.then_branch)
                and always_returns(node.else_branch))
    return False


class TypeChecker:
    def __init__(self):
        self.structs: Dict[str, StructInfo] = {}
        self.functions: Dict[str, FuncDecl] = {}
        self.imports: Dict[str, str] = {}
        self.resolutions: Dict[int, Tuple[Any, ...]] = {}
        self.types: Dict[int, TypeSpec] = {}
        # receiver analysis
        self.touches_fields: Set[MethodKey] = set()
        self.implicit_calls: Dict[MethodKey, Set[MethodKey]] = {}
        self.static_refs: List[Tuple[MethodKey, Optional[Position]]] = []
        # per-body context
        self.current_struct: Optional[StructInfo] = None
        self.current_method: Optional[MethodKey] = None
        self.return_types: List[TypeSpec] = []

    def error(self, message: str, pos: Optional[Position]) -> TypeCheckError:
        return TypeCheckError(message, pos)

    # Declarations

    def check(self, module: Module) -> CheckedModule:
        self.register(module)
        for decl in module.decls:
            if isinstance(decl, FuncDecl):
                self.check_function(decl)
            elif isinstance(decl, ExtendBlock):
                info = self.structs[decl.name]
                for method in decl.methods:
                    self.check_function(method, info)
        receivers = self.receiver_closure()
        for key, pos in self.static_refs:
            if key in receivers:
                raise self.error(f"method {key[0]}.{key[1]} requires a receiver", pos)
        self.check_entry_point(module)
        return CheckedModule(module, self.structs, self.functions, self.imports,
                             receivers, self.resolutions, self.types)

    def register(self, module: Module) -> None:
        for decl in module.decls:
            if isinstance(decl, StructDecl):
                self.claim_name(decl.name, decl.pos)
                self.structs[decl.name] = StructInfo(decl.name, {}, decl=decl)
            elif isinstance(decl, FuncDecl):
                self.claim_name(decl.name, decl.pos)
                self.functions[decl.name] = decl
        for imp in module.imports:
            if imp.path not in INTRINSIC_SIGNATURES:
                raise self.error(f"unresolved import {imp.path!r}", imp.pos)
            if imp.alias in self.imports:
                raise self.error(f"duplicate import alias {imp.alias}", imp.pos)
            if imp.alias in self.structs or imp.alias in self.functions:
                raise self.error(f"import alias {imp.alias} collides with a declaration", imp.pos)
            self.imports[imp.alias] = imp.path
        # field and signature types may name any struct, so resolve them last
        for decl in module.decls:
            if isinstance(decl, StructDecl):
                info = self.structs[decl.name]
                for f in decl.fields:
                    if f.name in info.fields:
                        raise self.error(f"duplicate field {f.name} in struct {decl.name}", f.pos)
                    info.fields[f.name] = self.resolve_type(f.type_spec, f.pos)
            elif isinstance(decl, FuncDecl):
                self.check_signature(decl)
        for decl in module.decls:
            if isinstance(decl, ExtendBlock):
                if decl.name not in self.structs:
                    raise self.error(f"extend of undeclared struct {decl.name}", decl.pos)
                info = self.structs[decl.name]
                for method in decl.methods:
                    if method.name in info.methods:
                        raise self.error(f"duplicate method {decl.name}.{method.name}", method.pos)
                    if method.name in info.fields:
                        raise self.error(f"method {method.name} collides with a field of {decl.name}", method.pos)
                    self.check_signature(method)
                    info.methods[method.name] = method

    def claim_name(self, name: str, pos: Optional[Position]) -> None:
        if name in self.structs or name in self.functions:
            raise self.error(f"duplicate declaration of {name}", pos)

    def check_signature(self, func: FuncDecl) -> None:
        seen = set()
        for p in func.params:
            if p.name in seen:
                raise self.error(f"duplicate parameter {p.name} in {func.name}", p.pos)
            seen.add(p.name)
            self.resolve_type(p.type_spec, p.pos)
        self.resolve_type(func.return_type, func.pos)

    def resolve_type(self, t: TypeSpec, pos: Optional[Position]) -> TypeSpec:
        if t.kind == 'struct' and t.name not in self.structs:
            raise self.error(f"unknown type {t.name}", pos)
        if t.kind == 'func':
            for a in t.args:
                self.resolve_type(a, pos)
            self.resolve_type(t.result, pos)
        return t

    def check_entry_point(self, module: Module) -> None:
        main = self.functions.get('main')
        if main is None:
            raise self.error("missing entry point: func main()", module.pos)
        if main.params:
            raise self.error("main must not take parameters", main.pos)
        if main.return_type.kind not in ('unit', 'int'):
            raise self.error(f"main must return unit or int, not {main.return_type}", main.pos)

    def check_function(self, func: FuncDecl, owner: Optional[StructInfo] = None) -> None:
        self.current_struct = owner
        self.current_method = (owner.name, func.name) if owner is not None else None
        if owner is not None:
            receiver = Scope(kind='fields')
            receiver.names.update(owner.fields)
            scope = receiver.child('params')
        else:
            scope = Scope(kind='params')
        for p in func.params:
            scope.names[p.name] = p.type_spec
        self.return_types.append(func.return_type)
        try:
            self.check_block(func.body, scope)
        finally:
            self.return_types.pop()
        if func.return_type.kind != 'unit' and not always_returns(func.body):
            raise self.error(f"missing return in function {func.name}", func.pos)
        self.current_struct = None
        self.current_method = None

    def receiver_closure(self) -> Set[MethodKey]:
        """Methods that touch fields directly or through sibling calls."""
        receivers = set(self.touches_fields)
        changed = True
        while changed:
            changed = False
            for caller, callees in self.implicit_calls.items():
                if caller not in receivers and callees & receivers:
                    receivers.add(caller)
                    changed = True
        return receivers

    # Statements

    def check_block(self, block: Block, scope: Scope) -> None:
        inner = scope.child()
        for stmt in block.statements:
            self.check_stmt(stmt, inner)

    def check_stmt(self, node: Node, scope: Scope) -> None:
        if isinstance(node, Block):
            self.check_block(node, scope)
        elif isinstance(node, LetStmt):
            if node.name in scope.names:
                raise self.error(f"{node.name} already declared in this scope", node.pos)
            if node.name in scope.used:
                raise self.error(f"{node.name} is used earlier in this scope and cannot be redeclared here",
                                 node.pos)
            value_type = self.check_expr(node.value, scope)
            if node.name in scope.captured:
                raise self.error(f"closure in the initializer of {node.name} captures the name it declares",
                                 node.pos)
            if node.type_spec is not None:
                declared = self.resolve_type(node.type_spec, node.pos)
                if value_type != declared:
                    raise self.error(
                        f"cannot initialize {node.name}: expected {declared}, got {value_type}", node.pos)
            scope.names[node.name] = value_type if node.type_spec is None else node.type_spec
        elif isinstance(node, Assign):
            target_type = self.check_target(node.target, scope)
            value_type = self.check_expr(node.value, scope)
            if value_type != target_type:
                raise self.error(f"cannot assign {value_type} to {target_type}", node.pos)
        elif isinstance(node, CompoundAssign):
            target_type = self.check_target(node.target, scope)
            value_type = self.check_expr(node.value, scope)
            result = self.arithmetic_result(node.op, target_type, value_type, node.pos)
            if result != target_type:
                raise self.error(f"cannot assign {result} to {target_type}", node.pos)
        elif isinstance(node, WhileStmt):
            self.expect_condition(node.condition, scope, 'while')
            self.check_stmt(node.body, scope.child())
        elif isinstance(node, IfStmt):
            self.expect_condition(node.condition, scope, 'if')
            self.check_stmt(node.then_branch, scope.child())
            if node.else_branch is not None:
                self.check_stmt(node.else_branch, scope.child())
        elif isinstance(node, ReturnStmt):
            expected = self.return_types[-1]
            if node.value is None:
                if expected.kind != 'unit':
                    raise self.error(f"return without value in function returning {expected}", node.pos)
                return
            actual = self.check_expr(node.value, scope)
            if actual != expected:
                raise self.error(f"return type mismatch: expected {expected}, got {actual}", node.pos)
        elif isinstance(node, ExprStmt):
            self.check_expr(node.expr, scope)
        else:
            raise self.error(f"unexpected statement {type(node).__name__}", getattr(node, 'pos', None))

    def expect_condition(self, cond: Node, scope: Scope, what: str) -> None:
        t = self.check_expr(cond, scope)
        if t.kind != 'bool':
            raise self.error(f"{what} condition must be bool, got {t}", cond.pos)

    def check_target(self, target: Node, scope: Scope) -> TypeSpec:
        if isinstance(target, Ident):
            found = scope.resolve(target.name)
            if found is None:
                if self.lookup_global(target.name) is not None:
                    raise self.error(f"cannot assign to {target.name}", target.pos)
                raise self.error(f"undefined variable {target.name}", target.pos)
            t, owner = found
            self.note_field_use(owner)
            self.resolutions[id(target)] = ('local',)
            self.types[id(target)] = t
            return t
        if isinstance(target, Member):
            t = self.check_expr(target, scope)
            if self.resolutions.get(id(target), ('',))[0] != 'field':
                raise self.error(f"cannot assign to {target.name}", target.pos)
            return t
        raise self.error("invalid assignment target", target.pos)

    # Expressions

    def check_expr(self, node: Node, scope: Scope) -> TypeSpec:
        t = self.infer(node, scope)
        self.types[id(node)] = t
        return t

    def infer(self, node: Node, scope: Scope) -> TypeSpec:
        if isinstance(node, Literal):
            return TypeSpec(node.literal_type)
        if isinstance(node, Ident):
            return self.check_ident(node, scope)
        if isinstance(node, InterpolatedString):
            for part in node.parts:
                if not isinstance(part, str):
                    self.check_expr(part, scope)
            return TypeSpec.string()
        if isinstance(node, BinaryOp):
            left = self.check_expr(node.left, scope)
            right = self.check_expr(node.right, scope)
            return self.binary_result(node.op, left, right, node.pos)
        if isinstance(node, UnaryOp):
            operand = self.check_expr(node.operand, scope)
            if node.op == '-' and operand.is_numeric:
                return operand
            if node.op == '!' and operand.kind == 'bool':
                return operand
            raise self.error(f"operator '{node.op}' cannot be applied to {operand}", node.pos)
        if isinstance(node, Call):
            return self.check_call(node, scope)
        if isinstance(node, Member):
            return self.check_member(node, scope)
        if isinstance(node, StructInit):
            return self.check_struct_init(node, scope)
        if isinstance(node, Cast):
            source = self.check_expr(node.expr, scope)
            target = self.resolve_type(node.type_spec, node.pos)
            if not cast_allowed(source, target):
                raise self.error(f"invalid cast from {source} to {target}", node.pos)
            return target
        if isinstance(node, Closure):
            return self.check_closure(node, scope)
        raise self.error(f"unexpected expression {type(node).__name__}", getattr(node, 'pos', None))

    def lookup_global(self, name: str) -> Optional[Tuple[Any, ...]]:
        if self.current_struct is not None and name in self.current_struct.methods:
            return ('method', self.current_struct.name, name)
        if name in self.functions:
            return ('function', name)
        if name in self.structs:
            return ('struct', name)
        if name in self.imports:
            return ('module', self.imports[name])
        return None

    def note_field_use(self, owner: Scope) -> None:
        if owner.kind == 'fields' and self.current_method is not None:
            self.touches_fields.add(self.current_method)

    def check_ident(self, node: Ident, scope: Scope) -> TypeSpec:
        found = scope.resolve(node.name)
        if found is not None:
            t, owner = found
            self.note_field_use(owner)
            self.resolutions[id(node)] = ('local',)
            return t
        resolved = self.lookup_global(node.name)
        if resolved is None:
            raise self.error(f"undefined variable {node.name}", node.pos)
        if resolved[0] == 'method':
            self.implicit_calls.setdefault(self.current_method, set()).add(resolved[1:])
            self.resolutions[id(node)] = resolved
            return signature_of(self.current_struct.methods[node.name])
        if resolved[0] == 'function':
            self.resolutions[id(node)] = resolved
            return signature_of(self.functions[node.name])
        if resolved[0] == 'struct':
            raise self.error(f"struct {node.name} is not a value", node.pos)
        raise self.error(f"module {node.name} is not a value", node.pos)

    def static_target(self, node: Member, scope: Scope) -> Optional[Tuple[Any, ...]]:
        """Resolve `X.m` where X names a struct or an import alias, not a value."""
        target = node.target
        if not isinstance(target, Ident) or scope.lookup(target.name) is not None:
            return None
        resolved = self.lookup_global(target.name)
        if resolved is None or resolved[0] not in ('struct', 'module'):
            return None
        return resolved

    def check_member(self, node: Member, scope: Scope) -> TypeSpec:
        static = self.static_target(node, scope)
        if static is not None and static[0] == 'module':
            module = static[1]
            if node.name not in INTRINSIC_SIGNATURES[module]:
                raise self.error(f"module {module} has no member {node.name}", node.pos)
            raise self.error(f"intrinsic {module}.{node.name} can only be called", node.pos)
        if static is not None:
            info = self.structs[static[1]]
            method = info.methods.get(node.name)
            if method is None:
                raise self.error(f"struct {info.name} has no method {node.name}", node.pos)
            key = (info.name, node.name)
            self.static_refs.append((key, node.pos))
            self.resolutions[id(node)] = ('static_method',) + key
            return signature_of(method)
        if node.static:
            raise self.error("'::' requires a struct or module name", node.pos)
        target = self.check_expr(node.target, scope)
        if target.kind != 'struct':
            raise self.error(f"type {target} has no member {node.name}", node.pos)
        info = self.structs[target.name]
        if node.name in info.fields:
            self.resolutions[id(node)] = ('field',)
            return info.fields[node.name]
        if node.name in info.methods:
            self.resolutions[id(node)] = ('bound_method', info.name, node.name)
            return signature_of(info.methods[node.name])
        raise self.error(f"struct {info.name} has no field or method {node.name}", node.pos)

    def check_call(self, node: Call, scope: Scope) -> TypeSpec:
        func = node.func
        if isinstance(func, Member):
            static = self.static_target(func, scope)
            if static is not None and static[0] == 'module':
                module = static[1]
                sig = INTRINSIC_SIGNATURES[module].get(func.name)
                if sig is None:
                    raise self.error(f"module {module} has no member {func.name}", func.pos)
                self.resolutions[id(node)] = ('intrinsic', module, func.name)
                self.types[id(func)] = sig
                callee = sig
            else:
                callee = self.check_expr(func, scope)
        else:
            callee = self.check_expr(func, scope)
        if callee.kind != 'func':
            raise self.error(f"value of type {callee} is not callable", node.pos)
        if len(node.args) != len(callee.args):
            raise self.error(f"expected {len(callee.args)} arguments, got {len(node.args)}", node.pos)
        for i, (arg, expected) in enumerate(zip(node.args, callee.args), 1):
            actual = self.check_expr(arg, scope)
            if actual != expected:
                raise self.error(f"argument {i}: expected {expected}, got {actual}", arg.pos)
        return callee.result

    def check_struct_init(self, node: StructInit, scope: Scope) -> TypeSpec:
        info = self.structs.get(node.name)
        if info is None:
            raise self.error(f"unknown struct {node.name}", node.pos)
        seen = set()
        for f in node.fields:
            if f.name in seen:
                raise self.error(f"duplicate field {f.name} in {node.name} literal", f.pos)
            seen.add(f.name)
            if f.name not in info.fields:
                raise self.error(f"unknown field {f.name} for struct {node.name}", f.pos)
            actual = self.check_expr(f.value, scope)
            if actual != info.fields[f.name]:
                raise self.error(
                    f"field {f.name}: expected {info.fields[f.name]}, got {actual}", f.pos)
        missing = [name for name in info.fields if name not in seen]
        if missing:
            raise self.error(f"missing field(s) {', '.join(missing)} in {node.name} literal", node.pos)
        return TypeSpec.struct(node.name)

    def check_closure(self, node: Closure, scope: Scope) -> TypeSpec:
        params = scope.child('params')
        for p in node.params:
            if p.name in params.names:
                raise self.error(f"duplicate parameter {p.name} in closure", p.pos)
            params.names[p.name] = self.resolve_type(p.type_spec, p.pos)
        self.resolve_type(node.return_type, node.pos)
        self.return_types.append(node.return_type)
        try:
            self.check_stmt(node.body, params.child())
        finally:
            self.return_types.pop()
        if node.return_type.kind != 'unit' and not always_returns(node.body):
            raise self.error("missing return in closure", node.pos)
        return signature_of(node)

    # Operators

    def binary_result(self, op: str, left: TypeSpec, right: TypeSpec, pos: Optional[Position]) -> TypeSpec:
        if op in ARITHMETIC_OPS:
            return self.arithmetic_result(op, left, right, pos)
        if op in EQUALITY_OPS:
            if left == right:
                return TypeSpec.boolean()
        elif op in ORDERING_OPS:
            if left == right and left.kind in ('int', 'float', 'string'):
                return TypeSpec.boolean()
        elif op in LOGICAL_OPS:
            if left.kind == 'bool' and right.kind == 'bool':
                return TypeSpec.boolean()
        raise self.error(f"operator '{op}' cannot be applied to {left} and {right}", pos)

    def arithmetic_result(self, op: str, left: TypeSpec, right: TypeSpec, pos: Optional[Position]) -> TypeSpec:
        if left == right and (left.is_numeric or (op == '+' and left.kind == 'string')):
            return left
        raise self.error(f"operator '{op}' cannot be applied to {left} and {right}", pos)


def check_module(module: Module) -> CheckedModule:
    """Type-check a parsed module, raising TypeCheckError on the first problem."""
    return TypeChecker().check(module)

"""JSON serialization/deserialization for Quill AST.

This module converts between Quill AST dataclasses and plain Python
dict/list structures suitable for JSON encoding. It supports a full
round-trip for all node types, the `TypeSpec` annotations written in the
source, and source positions.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from .ast import (
    Module,
    Import,
    Param,
    Block,
    FuncDecl,
    StructField,
    StructDecl,
    ExtendBlock,
    LetStmt,
    Assign,
    CompoundAssign,
    WhileStmt,
    IfStmt,
    ReturnStmt,
    ExprStmt,
    Literal,
    Ident,
    BinaryOp,
    UnaryOp,
    Call,
    Member,
    FieldInit,
    StructInit,
    Cast,
    Closure,
    InterpolatedString,
)
from .errors import Position
from .types import TypeSpec


def typespec_to_obj(t: TypeSpec) -> Dict[str, Any]:
    obj: Dict[str, Any] = {"kind": t.kind}
    if t.args:
        obj["args"] = [typespec_to_obj(a) for a in t.args]
    if t.result is not None:
        obj["result"] = typespec_to_obj(t.result)
    if t.name:
        obj["name"] = t.name
    return obj


def typespec_from_obj(o: Dict[str, Any]) -> TypeSpec:
    result = o.get("result")
    return TypeSpec(
        o["kind"],
        tuple(typespec_from_obj(x) for x in o.get("args", [])),
        typespec_from_obj(result) if result is not None else None,
        o.get("name", ""),
    )


def pos_to_obj(pos: Optional[Position]) -> Any:
    if pos is None:
        return None
    return [pos.line, pos.column, pos.offset]


def pos_from_obj(o: Any) -> Optional[Position]:
    if o is None:
        return None
    return Position(*o)


def ast_to_obj(node: Any) -> Any:
    # Primitives
    if node is None:
        return None
    if isinstance(node, (int, float, str, bool)):
        return node

    # TypeSpec
    if isinstance(node, TypeSpec):
        return {"__type__": "TypeSpec", "value": typespec_to_obj(node)}

    obj = node_to_obj(node)
    obj["pos"] = pos_to_obj(node.pos)
    return obj


def node_to_obj(node: Any) -> Dict[str, Any]:
    if isinstance(node, Module):
        return {
            "type": "Module",
            "name": node.name,
            "imports": [ast_to_obj(i) for i in node.imports],
            "decls": [ast_to_obj(d) for d in node.decls],
        }
    if isinstance(node, Import):
        return {"type": "Import", "path": node.path, "alias": node.alias}
    if isinstance(node, Param):
        return {"type": "Param", "name": node.name, "type_spec": ast_to_obj(node.type_spec)}
    if isinstance(node, FuncDecl):
        return {
            "type": "FuncDecl",
            "name": node.name,
            "params": [ast_to_obj(p) for p in node.params],
            "return_type": ast_to_obj(node.return_type),
            "body": ast_to_obj(node.body),
            "access": node.access,
        }
    if isinstance(node, StructField):
        return {"type": "StructField", "name": node.name, "type_spec": ast_to_obj(node.type_spec),
                "access": node.access}
    if isinstance(node, StructDecl):
        return {
            "type": "StructDecl",
            "name": node.name,
            "fields": [ast_to_obj(f) for f in node.fields],
            "access": node.access,
        }
    if isinstance(node, ExtendBlock):
        return {"type": "ExtendBlock", "name": node.name, "methods": [ast_to_obj(m) for m in node.methods]}
    if isinstance(node, Block):
        return {"type": "Block", "statements": [ast_to_obj(s) for s in node.statements]}
    if isinstance(node, LetStmt):
        return {
            "type": "LetStmt",
            "name": node.name,
            "type_spec": ast_to_obj(node.type_spec),
            "value": ast_to_obj(node.value),
        }
    if isinstance(node, Assign):
        return {"type": "Assign", "target": ast_to_obj(node.target), "value": ast_to_obj(node.value)}
    if isinstance(node, CompoundAssign):
        return {"type": "CompoundAssign", "op": node.op, "target": ast_to_obj(node.target),
                "value": ast_to_obj(node.value)}
    if isinstance(node, WhileStmt):
        return {"type": "WhileStmt", "condition": ast_to_obj(node.condition), "body": ast_to_obj(node.body)}
    if isinstance(node, IfStmt):
        return {
            "type": "IfStmt",
            "condition": ast_to_obj(node.condition),
            "then_branch": ast_to_obj(node.then_branch),
            "else_branch": ast_to_obj(node.else_branch),
        }
    if isinstance(node, ReturnStmt):
        return {"type": "ReturnStmt", "value": ast_to_obj(node.value)}
    if isinstance(node, ExprStmt):
        return {"type": "ExprStmt", "expr": ast_to_obj(node.expr)}
    if isinstance(node, Literal):
        return {"type": "Literal", "value": ast_to_obj(node.value), "literal_type": node.literal_type}
    if isinstance(node, Ident):
        return {"type": "Ident", "name": node.name}
    if isinstance(node, BinaryOp):
        return {"type": "BinaryOp", "op": node.op, "left": ast_to_obj(node.left), "right": ast_to_obj(node.right)}
    if isinstance(node, UnaryOp):
        return {"type": "UnaryOp", "op": node.op, "operand": ast_to_obj(node.operand)}
    if isinstance(node, Call):
        return {"type": "Call", "func": ast_to_obj(node.func), "args": [ast_to_obj(a) for a in node.args]}
    if isinstance(node, Member):
        return {"type": "Member", "target": ast_to_obj(node.target), "name": node.name, "static": node.static}
    if isinstance(node, FieldInit):
        return {"type": "FieldInit", "name": node.name, "value": ast_to_obj(node.value)}
    if isinstance(node, StructInit):
        return {"type": "StructInit", "name": node.name, "fields": [ast_to_obj(f) for f in node.fields]}
    if isinstance(node, Cast):
        return {"type": "Cast", "expr": ast_to_obj(node.expr), "type_spec": ast_to_obj(node.type_spec)}
    if isinstance(node, Closure):
        return {
            "type": "Closure",
            "params": [ast_to_obj(p) for p in node.params],
            "return_type": ast_to_obj(node.return_type),
            "body": ast_to_obj(node.body),
        }
    if isinstance(node, InterpolatedString):
        # text parts stay plain strings, expressions become node dicts
        return {"type": "InterpolatedString", "parts": [ast_to_obj(p) for p in node.parts]}

    raise TypeError(f"Unsupported node for serialization: {type(node).__name__}")


def ast_from_obj(obj: Any) -> Any:
    if obj is None or isinstance(obj, (int, float, str, bool)):
        return obj
    if isinstance(obj, dict) and obj.get("__type__") == "TypeSpec":
        return typespec_from_obj(obj["value"])
    if not isinstance(obj, dict):
        raise TypeError("Invalid AST object")
    pos = pos_from_obj(obj.get("pos"))
    t = obj.get("type")
    if t == "Module":
        return Module(
            name=obj["name"],
            imports=[ast_from_obj(i) for i in obj["imports"]],
            decls=[ast_from_obj(d) for d in obj["decls"]],
            pos=pos,
        )
    if t == "Import":
        return Import(path=obj["path"], alias=obj["alias"], pos=pos)
    if t == "Param":
        return Param(name=obj["name"], type_spec=ast_from_obj(obj["type_spec"]), pos=pos)
    if t == "FuncDecl":
        return FuncDecl(
            name=obj["name"],
            params=[ast_from_obj(p) for p in obj["params"]],
            return_type=ast_from_obj(obj["return_type"]),
            body=ast_from_obj(obj["body"]),
            access=obj.get("access", ""),
            pos=pos,
        )
    if t == "StructField":
        return StructField(name=obj["name"], type_spec=ast_from_obj(obj["type_spec"]),
                           access=obj.get("access", ""), pos=pos)
    if t == "StructDecl":
        return StructDecl(
            name=obj["name"],
            fields=[ast_from_obj(f) for f in obj["fields"]],
            access=obj.get("access", ""),
            pos=pos,
        )
    if t == "ExtendBlock":
        return ExtendBlock(name=obj["name"], methods=[ast_from_obj(m) for m in obj["methods"]], pos=pos)
    if t == "Block":
        return Block(statements=[ast_from_obj(s) for s in obj["statements"]], pos=pos)
    if t == "LetStmt":
        return LetStmt(
            name=obj["name"],
            type_spec=ast_from_obj(obj.get("type_spec")),
            value=ast_from_obj(obj["value"]),
            pos=pos,
        )
    if t == "Assign":
        return Assign(target=ast_from_obj(obj["target"]), value=ast_from_obj(obj["value"]), pos=pos)
    if t == "CompoundAssign":
        return CompoundAssign(op=obj["op"], target=ast_from_obj(obj["target"]),
                              value=ast_from_obj(obj["value"]), pos=pos)
    if t == "WhileStmt":
        return WhileStmt(condition=ast_from_obj(obj["condition"]), body=ast_from_obj(obj["body"]), pos=pos)
    if t == "IfStmt":
        return IfStmt(
            condition=ast_from_obj(obj["condition"]),
            then_branch=ast_from_obj(obj["then_branch"]),
            else_branch=ast_from_obj(obj.get("else_branch")),
            pos=pos,
        )
    if t == "ReturnStmt":
        return ReturnStmt(value=ast_from_obj(obj.get("value")), pos=pos)
    if t == "ExprStmt":
        return ExprStmt(expr=ast_from_obj(obj["expr"]), pos=pos)
    if t == "Literal":
        value = ast_from_obj(obj["value"])
        if obj["literal_type"] == "float":
            # JSON writes 2.0 back as 2.0 but some encoders drop the fraction
            value = float(value)
        return Literal(value=value, literal_type=obj["literal_type"], pos=pos)
    if t == "Ident":
        return Ident(name=obj["name"], pos=pos)
    if t == "BinaryOp":
        return BinaryOp(op=obj["op"], left=ast_from_obj(obj["left"]), right=ast_from_obj(obj["right"]), pos=pos)
    if t == "UnaryOp":
        return UnaryOp(op=obj["op"], operand=ast_from_obj(obj["operand"]), pos=pos)
    if t == "Call":
        return Call(func=ast_from_obj(obj["func"]), args=[ast_from_obj(a) for a in obj["args"]], pos=pos)
    if t == "Member":
        return Member(target=ast_from_obj(obj["target"]), name=obj["name"],
                      static=bool(obj.get("static", False)), pos=pos)
    if t == "FieldInit":
        return FieldInit(name=obj["name"], value=ast_from_obj(obj["value"]), pos=pos)
    if t == "StructInit":
        return StructInit(name=obj["name"], fields=[ast_from_obj(f) for f in obj["fields"]], pos=pos)
    if t == "Cast":
        return Cast(expr=ast_from_obj(obj["expr"]), type_spec=ast_from_obj(obj["type_spec"]), pos=pos)
    if t == "Closure":
        return Closure(
            params=[ast_from_obj(p) for p in obj["params"]],
            return_type=ast_from_obj(obj["return_type"]),
            body=ast_from_obj(obj["body"]),
            pos=pos,
        )
    if t == "InterpolatedString":
        return InterpolatedString(parts=[ast_from_obj(p) for p in obj["parts"]], pos=pos)

    raise ValueError(f"Unknown AST node type: {t}")

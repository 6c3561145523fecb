"""ScriptRust AST: parse-time node definitions."""

from __future__ import annotations

from dataclasses import dataclass, field


# ============================================================
# POSITION
# ============================================================


@dataclass(frozen=True)
class Pos:
    """Source position, 1-indexed."""

    line: int
    col: int


# ============================================================
# DECLARATIONS
# ============================================================


@dataclass
class Node:
    """Base for all nodes."""

    pos: Pos


@dataclass
class Param:
    """Function parameter: name: Type."""

    pos: Pos
    name: str
    typ: str


@dataclass
class FieldDecl:
    """Struct field: name: Type."""

    pos: Pos
    name: str
    typ: str


@dataclass
class StructDecl(Node):
    """struct Name { fields }."""

    name: str
    fields: list[FieldDecl]


@dataclass
class FnDecl(Node):
    """fn name(params) -> Ret { body }.

    receiver is None for free/associated functions, otherwise the written
    receiver form ("self", "&self" or "&mut self").
    """

    name: str
    params: list[Param]
    ret: str
    body: list[Node]
    receiver: str | None = None


@dataclass
class ImplBlock(Node):
    """impl Name { methods }."""

    type_name: str
    methods: list[FnDecl]


@dataclass
class Program:
    """Ordered top-level items."""

    items: list[Node]
    strict_moves: bool = False


# ============================================================
# STATEMENTS
# ============================================================


@dataclass
class LetStmt(Node):
    """let [mut] name[: Type] = expr."""

    name: str
    typ: str | None
    value: Node


@dataclass
class AssignStmt(Node):
    """target = value."""

    target: Node
    value: Node


@dataclass
class ExprStmt(Node):
    """Bare expression as statement. A terminated statement yields unit."""

    expr: Node
    terminated: bool = False


@dataclass
class IfStmt(Node):
    """if cond { ... } else { ... }, as a statement or an expression."""

    cond: Node
    then_body: list[Node]
    else_body: list[Node] | None


@dataclass
class WhileStmt(Node):
    """while cond { ... }."""

    cond: Node
    body: list[Node]


@dataclass
class BlockStmt(Node):
    """Bare { ... } block with its own scope."""

    body: list[Node]


@dataclass
class ReturnStmt(Node):
    """return expr?."""

    value: Node | None


# ============================================================
# EXPRESSIONS
# ============================================================


@dataclass
class NumberLit(Node):
    """Numeric literal, always a float at runtime."""

    value: float


@dataclass
class StringLit(Node):
    """String literal with escapes resolved."""

    value: str


@dataclass
class BoolLit(Node):
    """true or false."""

    value: bool


@dataclass
class Identifier(Node):
    """Variable reference (self included)."""

    name: str


@dataclass
class BinaryOp(Node):
    """left op right."""

    op: str
    left: Node
    right: Node


@dataclass
class UnaryOp(Node):
    """op operand."""

    op: str
    operand: Node


@dataclass
class FieldAccess(Node):
    """obj.field."""

    obj: Node
    field: str


@dataclass
class Call(Node):
    """func(args)."""

    func: Node
    args: list[Node]


@dataclass
class PathCall(Node):
    """Type::name(args)."""

    type_name: str
    name: str
    args: list[Node]


@dataclass
class MethodCall(Node):
    """obj.method(args)."""

    receiver: Node
    method: str
    args: list[Node]


@dataclass
class FieldInit:
    """name: value inside a struct literal."""

    pos: Pos
    name: str
    value: Node


@dataclass
class StructLiteral(Node):
    """Name { field: expr, ... } or Self { ... }."""

    type_name: str
    fields: list[FieldInit] = field(default_factory=list)


@dataclass
class MacroCall(Node):
    """name!(args)."""

    name: str
    args: list[Node]

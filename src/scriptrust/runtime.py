"""ScriptRust runtime: register declarations and evaluate a program.

Struct instances are shared references: `let y = x;` aliases the same
instance instead of moving it. The binding being copied from is flagged as
moved, and reading a moved binding is only an error in strict-moves mode.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import math
from functools import partial
from typing import Callable

from .ast import (
    AssignStmt,
    BinaryOp,
    BlockStmt,
    BoolLit,
    Call,
    ExprStmt,
    FieldAccess,
    FnDecl,
    Identifier,
    IfStmt,
    ImplBlock,
    LetStmt,
    MacroCall,
    MethodCall,
    Node,
    NumberLit,
    PathCall,
    Pos,
    Program,
    ReturnStmt,
    StringLit,
    StructDecl,
    StructLiteral,
    UnaryOp,
    WhileStmt,
)
from .env import Environment
from .errors import ScriptRustError, ScriptRuntimeError
from .fmt import debug, display, expand_format, unescape_braces
from .values import (
    UNIT,
    MethodDef,
    StructDef,
    TypeRegistry,
    VBool,
    VFunc,
    VNumber,
    VStruct,
    VText,
    VUnit,
    Value,
)

logger = logging.getLogger(__name__)


# ============================================================
# Control flow signals (internal)
# ============================================================


class _Signal(Exception):
    pass


@dataclass
class _Return(_Signal):
    value: Value


# ============================================================
# Results
# ============================================================


@dataclass
class RunResult:
    stdout: str
    errors: list[ScriptRustError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def lines(self) -> list[str]:
        return self.stdout.splitlines()


def run(
    program: Program,
    *,
    strict_moves: bool | None = None,
    continue_on_error: bool = True,
) -> RunResult:
    """Register declarations and evaluate a parsed program.

    strict_moves defaults to the program's `// pragma strict-moves` setting.
    """
    if strict_moves is None:
        strict_moves = program.strict_moves
    interp = Interpreter(
        strict_moves=strict_moves, continue_on_error=continue_on_error
    )
    return interp.run_program(program)


# ============================================================
# Interpreter
# ============================================================


class Interpreter:
    def __init__(
        self, *, strict_moves: bool = False, continue_on_error: bool = True
    ):
        self.strict_moves = strict_moves
        self.continue_on_error = continue_on_error
        self.registry = TypeRegistry()
        self.globals = Environment()
        self.stdout: list[str] = []
        self.field_order: dict[str, list[str]] = {}
        self._self_types: list[str | None] = []
        self._call_depth = 0

    # ---- Registration ------------------------------------------------------

    def register_declarations(self, stmts: list[Node]) -> None:
        """Register every struct and impl, nested ones included."""
        for st in stmts:
            if isinstance(st, StructDecl):
                fields = [(f.name, f.typ) for f in st.fields]
                self.registry.register_struct(StructDef(st.name, fields, st.pos))
            elif isinstance(st, ImplBlock):
                for m in st.methods:
                    self.registry.register_method(
                        MethodDef(
                            st.type_name,
                            m.name,
                            m.params,
                            m.body,
                            m.receiver is not None,
                            m.ret,
                            m,
                        )
                    )
                    self.register_declarations(m.body)
            elif isinstance(st, FnDecl):
                self.register_declarations(st.body)
            elif isinstance(st, IfStmt):
                self.register_declarations(st.then_body)
                if st.else_body is not None:
                    self.register_declarations(st.else_body)
            elif isinstance(st, (WhileStmt, BlockStmt)):
                self.register_declarations(st.body)

    # ---- Running -----------------------------------------------------------

    def run_program(self, program: Program) -> RunResult:
        self.register_declarations(program.items)
        self.registry.freeze()
        self.field_order = {
            name: sdef.field_names() for name, sdef in self.registry.structs.items()
        }
        self._hoist_fns(program.items, self.globals)

        errors: list[ScriptRustError] = []
        for item in program.items:
            run_item = partial(self.eval_item, item, self.globals)
            self._run_item(run_item, item.pos, errors)

        main = self._top_level_main(program)
        if main is not None:
            call_main = partial(self._call_fn, main, self.globals, [], main.pos)
            self._run_item(call_main, main.pos, errors)
        return RunResult("".join(self.stdout), errors)

    def _run_item(
        self, thunk: Callable[[], Value], pos: Pos, errors: list[ScriptRustError]
    ) -> None:
        """Evaluate one top-level item; errors stop the item, not the program."""
        try:
            try:
                thunk()
            except RecursionError:
                raise ScriptRuntimeError("recursion limit exceeded", pos) from None
            except _Return:
                raise ScriptRuntimeError("return outside of function", pos) from None
        except ScriptRuntimeError as e:
            if not self.continue_on_error:
                raise
            logger.error("top-level item aborted: %s", e)
            errors.append(e)

    def _top_level_main(self, program: Program) -> FnDecl | None:
        for item in program.items:
            if isinstance(item, FnDecl) and item.name == "main" and not item.params:
                return item
        return None

    def eval_item(self, item: Node, env: Environment) -> Value:
        """Evaluate one top-level item or statement against env."""
        return self._exec_stmt(item, env)

    # ---- Functions ---------------------------------------------------------

    def _hoist_fns(self, stmts: list[Node], env: Environment) -> None:
        for st in stmts:
            if isinstance(st, FnDecl):
                env.define(st.name, self._make_fn(st, env))

    def _make_fn(self, decl: FnDecl, env: Environment) -> VFunc:
        return VFunc(
            decl.name,
            lambda args, pos: self._call_fn(decl, env, args, pos),
        )

    def _call_fn(
        self,
        decl: FnDecl,
        closure: Environment,
        args: list[Value],
        pos: Pos,
        *,
        receiver: VStruct | None = None,
        struct_name: str | None = None,
        implicit_self: bool = False,
    ) -> Value:
        label = decl.name if struct_name is None else f"{struct_name}::{decl.name}"
        if len(args) != len(decl.params):
            raise ScriptRuntimeError(
                f"'{label}' expects {len(decl.params)} argument(s), got {len(args)}",
                pos,
            )
        env = closure.child()
        implicit: VStruct | None = None
        if receiver is not None:
            env.define("self", receiver)
        elif implicit_self and struct_name is not None:
            implicit = self.registry.struct(struct_name, pos).new_instance()
            env.define("self", implicit)
        for param, arg in zip(decl.params, args):
            env.define(param.name, arg)

        logger.debug("call %s", label)
        # None for free fns so `Self` does not leak in from the caller.
        self._self_types.append(struct_name)
        self._call_depth += 1
        try:
            result = self._exec_body(decl.body, env)
        except _Return as r:
            result = r.value
        finally:
            self._call_depth -= 1
            self._self_types.pop()

        if implicit is not None and isinstance(result, VUnit):
            return implicit
        return result

    def _call_method(
        self,
        mdef: MethodDef,
        receiver: VStruct | None,
        args: list[Value],
        pos: Pos,
    ) -> Value:
        return self._call_fn(
            mdef.decl,
            self.globals,
            args,
            pos,
            receiver=receiver,
            struct_name=mdef.struct_name,
            implicit_self=receiver is None and mdef.returns_self(),
        )

    # ---- Statements --------------------------------------------------------

    def _exec_body(self, stmts: list[Node], env: Environment) -> Value:
        """Run stmts in env; the last statement's value is the result."""
        self._hoist_fns(stmts, env)
        result: Value = UNIT
        for st in stmts:
            result = self._exec_stmt(st, env)
        return result

    def _exec_stmt(self, st: Node, env: Environment) -> Value:
        if isinstance(st, LetStmt):
            val = self._eval_expr(st.value, env)
            if isinstance(st.value, Identifier) and isinstance(val, VStruct):
                env.mark_moved(st.value.name)
                logger.debug("'%s' moved into '%s'", st.value.name, st.name)
            env.define(st.name, val)
            return UNIT

        if isinstance(st, AssignStmt):
            val = self._eval_expr(st.value, env)
            target = st.target
            if isinstance(target, Identifier):
                env.assign(target.name, val, target.pos)
                return UNIT
            assert isinstance(target, FieldAccess)
            obj = self._eval_struct(target.obj, env)
            sdef = self.registry.struct(obj.struct_name, target.pos)
            if not sdef.has_field(target.field) and target.field not in obj.fields:
                raise ScriptRuntimeError(
                    f"unknown field '{target.field}' on '{obj.struct_name}'", target.pos
                )
            obj.fields[target.field] = val
            return UNIT

        if isinstance(st, ExprStmt):
            val = self._eval_expr(st.expr, env)
            return UNIT if st.terminated else val

        if isinstance(st, IfStmt):
            cond = self._eval_expr(st.cond, env)
            if not isinstance(cond, VBool):
                raise ScriptRuntimeError(
                    f"if condition must be bool, got {cond.type_name()}", st.cond.pos
                )
            if cond.value:
                return self._exec_body(st.then_body, env.child())
            if st.else_body is not None:
                return self._exec_body(st.else_body, env.child())
            return UNIT

        if isinstance(st, WhileStmt):
            while True:
                cond = self._eval_expr(st.cond, env)
                if not isinstance(cond, VBool):
                    raise ScriptRuntimeError(
                        f"while condition must be bool, got {cond.type_name()}",
                        st.cond.pos,
                    )
                if not cond.value:
                    return UNIT
                self._exec_body(st.body, env.child())

        if isinstance(st, BlockStmt):
            return self._exec_body(st.body, env.child())

        if isinstance(st, ReturnStmt):
            if self._call_depth == 0:
                raise ScriptRuntimeError("return outside of function", st.pos)
            val = UNIT if st.value is None else self._eval_expr(st.value, env)
            raise _Return(val)

        if isinstance(st, (StructDecl, ImplBlock, FnDecl)):
            return UNIT

        raise ScriptRuntimeError(f"cannot execute {type(st).__name__}", st.pos)

    # ---- Expressions -------------------------------------------------------

    def _eval_struct(self, expr: Node, env: Environment) -> VStruct:
        obj = self._eval_expr(expr, env)
        if not isinstance(obj, VStruct):
            raise ScriptRuntimeError(
                f"expected a struct instance, got {obj.type_name()}", expr.pos
            )
        return obj

    def _resolve_type_name(self, name: str, pos: Pos) -> str:
        if name != "Self":
            return name
        current = self._self_types[-1] if self._self_types else None
        if current is None:
            raise ScriptRuntimeError("'Self' used outside of an impl", pos)
        return current

    def _eval_expr(self, expr: Node, env: Environment) -> Value:
        if isinstance(expr, NumberLit):
            return VNumber(expr.value)
        if isinstance(expr, StringLit):
            return VText(expr.value)
        if isinstance(expr, BoolLit):
            return VBool(expr.value)

        if isinstance(expr, Identifier):
            binding = env.lookup(expr.name, expr.pos)
            if binding.moved:
                if self.strict_moves:
                    raise ScriptRuntimeError(
                        f"use of moved value '{expr.name}'", expr.pos
                    )
                logger.debug("use of moved binding '%s'", expr.name)
            return binding.value

        if isinstance(expr, BinaryOp):
            if expr.op in ("&&", "||"):
                return self._eval_logical(expr, env)
            left = self._eval_expr(expr.left, env)
            right = self._eval_expr(expr.right, env)
            return self._eval_binary(expr.op, left, right, pos=expr.pos)

        if isinstance(expr, UnaryOp):
            operand = self._eval_expr(expr.operand, env)
            if expr.op == "-" and isinstance(operand, VNumber):
                return VNumber(-operand.value)
            if expr.op == "!" and isinstance(operand, VBool):
                return VBool(not operand.value)
            raise ScriptRuntimeError(
                f"cannot apply unary '{expr.op}' to {operand.type_name()}", expr.pos
            )

        if isinstance(expr, FieldAccess):
            obj = self._eval_struct(expr.obj, env)
            if expr.field not in obj.fields:
                raise ScriptRuntimeError(
                    f"unknown field '{expr.field}' on '{obj.struct_name}'", expr.pos
                )
            return obj.fields[expr.field]

        if isinstance(expr, MethodCall):
            recv = self._eval_struct(expr.receiver, env)
            mdef = self.registry.method(recv.struct_name, expr.method, expr.pos)
            if not mdef.has_receiver:
                raise ScriptRuntimeError(
                    f"'{mdef.struct_name}::{mdef.name}' has no receiver; "
                    f"call it as {mdef.struct_name}::{mdef.name}(...)",
                    expr.pos,
                )
            args = [self._eval_expr(a, env) for a in expr.args]
            return self._call_method(mdef, recv, args, expr.pos)

        if isinstance(expr, PathCall):
            type_name = self._resolve_type_name(expr.type_name, expr.pos)
            self.registry.struct(type_name, expr.pos)
            mdef = self.registry.method(type_name, expr.name, expr.pos)
            args = [self._eval_expr(a, env) for a in expr.args]
            if not mdef.has_receiver:
                return self._call_method(mdef, None, args, expr.pos)
            if not args:
                raise ScriptRuntimeError(
                    f"'{type_name}::{expr.name}' expects a receiver argument", expr.pos
                )
            recv = args[0]
            if not isinstance(recv, VStruct) or recv.struct_name != type_name:
                raise ScriptRuntimeError(
                    f"receiver of '{type_name}::{expr.name}' must be a {type_name}",
                    expr.pos,
                )
            return self._call_method(mdef, recv, args[1:], expr.pos)

        if isinstance(expr, Call):
            fnv = self._eval_expr(expr.func, env)
            if not isinstance(fnv, VFunc):
                raise ScriptRuntimeError(
                    f"call target is not a function ({fnv.type_name()})", expr.pos
                )
            args = [self._eval_expr(a, env) for a in expr.args]
            return fnv.call(args, expr.pos)

        if isinstance(expr, StructLiteral):
            return self._eval_struct_literal(expr, env)

        if isinstance(expr, MacroCall):
            return self._eval_macro(expr, env)

        if isinstance(expr, IfStmt):
            return self._exec_stmt(expr, env)

        raise ScriptRuntimeError(f"cannot evaluate {type(expr).__name__}", expr.pos)

    def _eval_struct_literal(self, lit: StructLiteral, env: Environment) -> VStruct:
        type_name = self._resolve_type_name(lit.type_name, lit.pos)
        sdef = self.registry.struct(type_name, lit.pos)
        inst = sdef.new_instance()
        seen: set[str] = set()
        for init in lit.fields:
            if not sdef.has_field(init.name):
                raise ScriptRuntimeError(
                    f"unknown field '{init.name}' on '{type_name}'", init.pos
                )
            if init.name in seen:
                raise ScriptRuntimeError(
                    f"field '{init.name}' specified more than once", init.pos
                )
            seen.add(init.name)
            inst.fields[init.name] = self._eval_expr(init.value, env)
        return inst

    def _eval_macro(self, call: MacroCall, env: Environment) -> Value:
        if call.name not in ("println", "print", "format", "panic"):
            raise ScriptRuntimeError(f"unknown macro '{call.name}!'", call.pos)
        if call.name == "panic":
            raise ScriptRuntimeError(
                "panicked: " + self._panic_message(call, env), call.pos
            )
        fmt = ""
        if call.args:
            first = call.args[0]
            if not isinstance(first, StringLit):
                raise ScriptRuntimeError(
                    f"'{call.name}!' needs a string literal format argument",
                    call.pos,
                )
            fmt = first.value
        args = [self._eval_expr(a, env) for a in call.args[1:]]
        if call.name == "format":
            return VText(expand_format(fmt, args, call.pos, self.field_order))
        if args:
            text = " ".join(debug(a, self.field_order) for a in args)
        else:
            text = unescape_braces(fmt)
        self.stdout.append(text + "\n" if call.name == "println" else text)
        return UNIT

    def _panic_message(self, call: MacroCall, env: Environment) -> str:
        if not call.args:
            return "explicit panic"
        first = call.args[0]
        if isinstance(first, StringLit):
            args = [self._eval_expr(a, env) for a in call.args[1:]]
            return expand_format(first.value, args, call.pos, self.field_order)
        # panic!(value) carries an arbitrary expression
        values = [self._eval_expr(a, env) for a in call.args]
        return " ".join(display(v, self.field_order) for v in values)

    def _eval_logical(self, expr: BinaryOp, env: Environment) -> Value:
        left = self._eval_expr(expr.left, env)
        if not isinstance(left, VBool):
            raise ScriptRuntimeError(
                f"'{expr.op}' needs bool operands, got {left.type_name()}", expr.pos
            )
        if expr.op == "&&" and not left.value:
            return left
        if expr.op == "||" and left.value:
            return left
        right = self._eval_expr(expr.right, env)
        if not isinstance(right, VBool):
            raise ScriptRuntimeError(
                f"'{expr.op}' needs bool operands, got {right.type_name()}", expr.pos
            )
        return right

    def _eval_binary(self, op: str, left: Value, right: Value, *, pos: Pos) -> Value:
        if op == "==":
            return VBool(_value_eq(left, right, pos))
        if op == "!=":
            return VBool(not _value_eq(left, right, pos))

        if op in ("<", "<=", ">", ">="):
            if isinstance(left, VNumber) and isinstance(right, VNumber):
                return VBool(_cmp(op, left.value, right.value))
            if isinstance(left, VText) and isinstance(right, VText):
                return VBool(_cmp(op, left.value, right.value))
            raise ScriptRuntimeError(
                f"cannot compare {left.type_name()} with {right.type_name()}", pos
            )

        if isinstance(left, VNumber) and isinstance(right, VNumber):
            a = left.value
            b = right.value
            if op == "+":
                return VNumber(a + b)
            if op == "-":
                return VNumber(a - b)
            if op == "*":
                return VNumber(a * b)
            if op == "/":
                return VNumber(_float_div(a, b))
            if op == "%":
                return VNumber(_float_rem(a, b))
        if op == "+" and isinstance(left, VText) and isinstance(right, VText):
            return VText(left.value + right.value)

        raise ScriptRuntimeError(
            f"cannot apply '{op}' to {left.type_name()} and {right.type_name()}", pos
        )


def _value_eq(a: Value, b: Value, pos: Pos) -> bool:
    if isinstance(a, VStruct) and isinstance(b, VStruct):
        return a is b
    if isinstance(a, VUnit) and isinstance(b, VUnit):
        return True
    if type(a) is not type(b) or not isinstance(a, (VNumber, VText, VBool)):
        raise ScriptRuntimeError(
            f"cannot compare {a.type_name()} with {b.type_name()}", pos
        )
    assert isinstance(b, (VNumber, VText, VBool))
    return a.value == b.value


def _cmp(op: str, a: float | str, b: float | str) -> bool:
    if op == "<":
        return a < b
    if op == "<=":
        return a <= b
    if op == ">":
        return a > b
    return a >= b


def _float_div(a: float, b: float) -> float:
    if b != 0:
        return a / b
    if a == 0 or math.isnan(a):
        return math.nan
    return math.copysign(math.inf, a) * math.copysign(1.0, b)


def _float_rem(a: float, b: float) -> float:
    try:
        return math.fmod(a, b)
    except ValueError:
        return math.nan

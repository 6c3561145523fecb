"""ScriptRust values: runtime value model and the struct/method registry."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Callable

from .ast import FnDecl, Node, Param, Pos
from .errors import ScriptRuntimeError

logger = logging.getLogger(__name__)


# ============================================================
# Values
# ============================================================


class Value:
    """A runtime value."""

    def type_name(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class VNumber(Value):
    value: float

    def type_name(self) -> str:
        return "f64"


@dataclass(frozen=True)
class VText(Value):
    value: str

    def type_name(self) -> str:
        return "String"


@dataclass(frozen=True)
class VBool(Value):
    value: bool

    def type_name(self) -> str:
        return "bool"


@dataclass(frozen=True)
class VUnit(Value):
    def type_name(self) -> str:
        return "()"


UNIT = VUnit()


@dataclass(eq=False)
class VStruct(Value):
    """Struct instance. Compared and shared by identity; fields mutate in place."""

    struct_name: str
    fields: dict[str, Value]

    def type_name(self) -> str:
        return self.struct_name


@dataclass(eq=False)
class VFunc(Value):
    """Free function closed over its defining scope."""

    name: str
    call: Callable[[list[Value], Pos], Value]

    def type_name(self) -> str:
        return "fn"


# ============================================================
# Zero values
# ============================================================


NUMERIC_TAGS: set[str] = {
    "f32",
    "f64",
    "i8",
    "i16",
    "i32",
    "i64",
    "isize",
    "u8",
    "u16",
    "u32",
    "u64",
    "usize",
}

TEXT_TAGS: set[str] = {"String", "str"}


def zero_value(tag: str) -> Value:
    """Value a declared-but-unset field starts with."""
    base = tag.removeprefix("&mut ").removeprefix("&")
    if base in NUMERIC_TAGS:
        return VNumber(0.0)
    if base in TEXT_TAGS:
        return VText("")
    if base == "bool":
        return VBool(False)
    return UNIT


# ============================================================
# Registry
# ============================================================


@dataclass
class StructDef:
    name: str
    fields: list[tuple[str, str]]
    pos: Pos

    def field_names(self) -> list[str]:
        return [name for name, _ in self.fields]

    def has_field(self, name: str) -> bool:
        return any(fname == name for fname, _ in self.fields)

    def new_instance(self) -> VStruct:
        fields = {fname: zero_value(tag) for fname, tag in self.fields}
        return VStruct(self.name, fields)


@dataclass
class MethodDef:
    struct_name: str
    name: str
    params: list[Param]
    body: list[Node]
    has_receiver: bool
    ret: str
    decl: FnDecl

    def returns_self(self) -> bool:
        return self.ret == "Self" or self.ret == self.struct_name


@dataclass
class TypeRegistry:
    """struct name -> StructDef, and struct name -> method name -> MethodDef."""

    structs: dict[str, StructDef] = field(default_factory=dict)
    methods: dict[str, dict[str, MethodDef]] = field(default_factory=dict)
    frozen: bool = False

    def _check_open(self) -> None:
        if self.frozen:
            raise ScriptRuntimeError("type registry is frozen")

    def register_struct(self, sdef: StructDef) -> None:
        self._check_open()
        if sdef.name in self.structs:
            raise ScriptRuntimeError(f"duplicate struct '{sdef.name}'", sdef.pos)
        logger.debug("registered struct %s", sdef.name)
        self.structs[sdef.name] = sdef

    def register_method(self, mdef: MethodDef) -> None:
        self._check_open()
        table = self.methods.setdefault(mdef.struct_name, {})
        if mdef.name in table:
            raise ScriptRuntimeError(
                f"duplicate method '{mdef.struct_name}::{mdef.name}'", mdef.decl.pos
            )
        logger.debug("registered method %s::%s", mdef.struct_name, mdef.name)
        table[mdef.name] = mdef

    def freeze(self) -> None:
        for struct_name, table in self.methods.items():
            if struct_name not in self.structs:
                first = next(iter(table.values()))
                raise ScriptRuntimeError(
                    f"impl for unknown struct '{struct_name}'", first.decl.pos
                )
        self.frozen = True

    def struct(self, name: str, pos: Pos | None = None) -> StructDef:
        sdef = self.structs.get(name)
        if sdef is None:
            raise ScriptRuntimeError(f"unknown struct '{name}'", pos)
        return sdef

    def method(self, struct_name: str, name: str, pos: Pos | None = None) -> MethodDef:
        mdef = self.methods.get(struct_name, {}).get(name)
        if mdef is None:
            raise ScriptRuntimeError(f"unknown method '{struct_name}::{name}'", pos)
        return mdef

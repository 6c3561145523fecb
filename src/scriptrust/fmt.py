"""ScriptRust formatting: debug/display rendering and format-string expansion."""

from __future__ import annotations

import math

from .ast import Pos
from .errors import ScriptRuntimeError
from .values import VBool, VFunc, VNumber, VStruct, VText, VUnit, Value

# Beyond this magnitude integral floats switch to exponent notation.
_PLAIN_INT_LIMIT = 1e21


def format_number(n: float) -> str:
    """Shortest text that reparses to the same float."""
    if math.isnan(n):
        return "NaN"
    if math.isinf(n):
        return "inf" if n > 0 else "-inf"
    if n == int(n) and abs(n) < _PLAIN_INT_LIMIT:
        if n == 0 and math.copysign(1.0, n) < 0:
            return "-0"
        return str(int(n))
    return repr(n)


def escape_text(s: str) -> str:
    return '"' + s.replace("\\", "\\\\").replace('"', '\\"') + '"'


def debug(v: Value, field_order: dict[str, list[str]] | None = None) -> str:
    """Render v the way `{:?}` does.

    field_order maps struct names to their declared field order; fields of
    instances whose struct is not listed render in insertion order.
    """
    if isinstance(v, VNumber):
        return format_number(v.value)
    if isinstance(v, VText):
        return escape_text(v.value)
    if isinstance(v, VBool):
        return "true" if v.value else "false"
    if isinstance(v, VUnit):
        return ""
    if isinstance(v, VStruct):
        return _debug_struct(v, field_order or {}, set())
    if isinstance(v, VFunc):
        return f"<fn {v.name}>"
    raise TypeError(f"cannot format {type(v).__name__}")


def _debug_struct(
    v: VStruct, field_order: dict[str, list[str]], active: set[int]
) -> str:
    if id(v) in active:
        return v.struct_name + " { .. }"
    active.add(id(v))
    names = list(field_order.get(v.struct_name, []))
    names = [n for n in names if n in v.fields]
    names += [n for n in v.fields if n not in names]
    parts: list[str] = []
    for name in names:
        fv = v.fields[name]
        if isinstance(fv, VStruct):
            rendered = _debug_struct(fv, field_order, active)
        else:
            rendered = debug(fv, field_order)
        parts.append(f"{name}: {rendered}")
    active.discard(id(v))
    if not parts:
        return v.struct_name
    return v.struct_name + " { " + ", ".join(parts) + " }"


def display(v: Value, field_order: dict[str, list[str]] | None = None) -> str:
    """Render v the way `{}` does: text unquoted, everything else as debug."""
    if isinstance(v, VText):
        return v.value
    return debug(v, field_order)


def expand_format(
    fmt: str,
    args: list[Value],
    pos: Pos,
    field_order: dict[str, list[str]] | None = None,
) -> str:
    """Substitute `{}` / `{:?}` placeholders in order; `{{` and `}}` escape."""
    out: list[str] = []
    i = 0
    next_arg = 0
    length = len(fmt)
    while i < length:
        c = fmt[i]
        if c == "{" and fmt.startswith("{{", i):
            out.append("{")
            i += 2
            continue
        if c == "}" and fmt.startswith("}}", i):
            out.append("}")
            i += 2
            continue
        if c == "{":
            end = fmt.find("}", i)
            if end == -1:
                raise ScriptRuntimeError(
                    "unterminated placeholder in format string", pos
                )
            placeholder = fmt[i + 1 : end]
            if placeholder not in ("", ":?"):
                raise ScriptRuntimeError(
                    f"unsupported placeholder '{{{placeholder}}}'", pos
                )
            if next_arg >= len(args):
                raise ScriptRuntimeError("more placeholders than arguments", pos)
            arg = args[next_arg]
            next_arg += 1
            if placeholder:
                out.append(debug(arg, field_order))
            else:
                out.append(display(arg, field_order))
            i = end + 1
            continue
        if c == "}":
            raise ScriptRuntimeError("unmatched '}' in format string", pos)
        out.append(c)
        i += 1
    if next_arg != len(args):
        raise ScriptRuntimeError("more arguments than placeholders", pos)
    return "".join(out)


def unescape_braces(fmt: str) -> str:
    return fmt.replace("{{", "{").replace("}}", "}")

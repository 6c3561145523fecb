"""ScriptRust diagnostics: lex, parse, and runtime errors."""

from __future__ import annotations

from .ast import Pos


class ScriptRustError(Exception):
    """Base error for ScriptRust lexing/parsing/evaluation."""

    def __init__(self, msg: str, pos: Pos | None = None):
        if pos is None:
            super().__init__(msg)
        else:
            super().__init__(f"{msg} at line {pos.line} col {pos.col}")
        self.msg = msg
        self.pos = pos


class LexError(ScriptRustError):
    """Malformed token stream."""


class ParseError(ScriptRustError):
    """Token stream does not match the grammar."""

    def __init__(self, expected: str, found: str, pos: Pos):
        super().__init__(f"expected {expected}, got '{found}'", pos)
        self.expected = expected
        self.found = found


class ScriptRuntimeError(ScriptRustError):
    """Evaluation fault (unknown name, arity mismatch, bad operands, ...)."""

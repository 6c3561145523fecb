"""ScriptRust parser and interpreter: public API."""

from __future__ import annotations

import logging

from .ast import Program
from .errors import (
    LexError as LexError,
    ParseError as ParseError,
    ScriptRuntimeError as ScriptRuntimeError,
    ScriptRustError as ScriptRustError,
)
from .parse import Parser
from .runtime import Interpreter as Interpreter, RunResult as RunResult, run
from .tokens import iter_tokens as iter_tokens, tokenize

logging.getLogger(__name__).addHandler(logging.NullHandler())


def _extract_pragmas(source: str) -> bool:
    """Scan leading comment lines for pragmas. Returns strict_moves."""
    strict_moves = False
    for line in source.split("\n"):
        stripped = line.strip()
        if stripped == "":
            continue
        if not stripped.startswith("//"):
            break
        body = stripped[2:].strip()
        if body == "pragma strict-moves":
            strict_moves = True
    return strict_moves


def parse(source: str) -> Program:
    """Parse ScriptRust source code into a Program AST."""
    strict_moves = _extract_pragmas(source)
    tokens = tokenize(source)
    parser = Parser(tokens)
    try:
        program = parser.parse_program()
    except RecursionError:
        raise parser.error("shallower nesting (input is nested too deeply)") from None
    program.strict_moves = strict_moves
    return program


def run_source(
    source: str,
    *,
    strict_moves: bool | None = None,
    continue_on_error: bool = True,
) -> RunResult:
    """Parse and run ScriptRust source. Lex/parse errors propagate."""
    return run(
        parse(source),
        strict_moves=strict_moves,
        continue_on_error=continue_on_error,
    )


__all__ = [
    "Interpreter",
    "LexError",
    "ParseError",
    "RunResult",
    "ScriptRuntimeError",
    "ScriptRustError",
    "iter_tokens",
    "parse",
    "run",
    "run_source",
    "tokenize",
]

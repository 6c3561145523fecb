"""ScriptRust tokenizer: lexes source into a lazy token stream."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

from .ast import Pos
from .errors import LexError


# Token type constants
TK_IDENT = "IDENT"
TK_NUMBER = "NUMBER"
TK_STRING = "STRING"
TK_KEYWORD = "KEYWORD"
TK_SYMBOL = "SYMBOL"
TK_EOF = "EOF"

KEYWORDS: set[str] = {
    "else",
    "false",
    "fn",
    "if",
    "impl",
    "let",
    "mut",
    "pub",
    "return",
    "self",
    "Self",
    "struct",
    "true",
    "while",
}

# Multi-character operators, sorted by length descending for greedy matching
MULTI_OPS: list[str] = [
    "::",
    "->",
    "==",
    "!=",
    "<=",
    ">=",
    "&&",
    "||",
]

SINGLE_OPS: set[str] = {
    "+",
    "-",
    "*",
    "/",
    "%",
    "=",
    "<",
    ">",
    "!",
    "&",
    "{",
    "}",
    "(",
    ")",
    "[",
    "]",
    ":",
    ",",
    ";",
    ".",
}

ESCAPE_MAP: dict[str, str] = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "\\": "\\",
    '"': '"',
}


@dataclass(frozen=True)
class Token:
    """A token with type, value, and position."""

    type: str
    value: str
    pos: Pos

    @property
    def line(self) -> int:
        return self.pos.line

    @property
    def col(self) -> int:
        return self.pos.col


def _is_digit(c: str) -> bool:
    return c >= "0" and c <= "9"


def _is_alpha(c: str) -> bool:
    return (c >= "a" and c <= "z") or (c >= "A" and c <= "Z") or c == "_"


def _is_alnum(c: str) -> bool:
    return _is_alpha(c) or _is_digit(c)


def iter_tokens(source: str) -> Iterator[Token]:
    """Yield tokens from source, ending with TK_EOF."""
    pos = 0
    line = 1
    col = 1
    length = len(source)

    while pos < length:
        c = source[pos]

        # Newlines
        if c == "\n":
            pos += 1
            line += 1
            col = 1
            continue

        # Whitespace
        if c == " " or c == "\t" or c == "\r":
            pos += 1
            col += 1
            continue

        # Line comment: //
        if c == "/" and pos + 1 < length and source[pos + 1] == "/":
            while pos < length and source[pos] != "\n":
                pos += 1
            continue

        # Block comment: /* ... */
        if c == "/" and pos + 1 < length and source[pos + 1] == "*":
            start = Pos(line, col)
            pos += 2
            col += 2
            while pos < length and not (
                source[pos] == "*" and pos + 1 < length and source[pos + 1] == "/"
            ):
                if source[pos] == "\n":
                    line += 1
                    col = 1
                else:
                    col += 1
                pos += 1
            if pos >= length:
                raise LexError("unterminated block comment", start)
            pos += 2
            col += 2
            continue

        start_pos = pos
        start = Pos(line, col)

        # Number: digits, optional fraction, optional exponent
        if _is_digit(c):
            while pos < length and _is_digit(source[pos]):
                pos += 1
                col += 1
            if (
                pos + 1 < length
                and source[pos] == "."
                and _is_digit(source[pos + 1])
            ):
                pos += 1
                col += 1
                while pos < length and _is_digit(source[pos]):
                    pos += 1
                    col += 1
            if pos < length and (source[pos] == "e" or source[pos] == "E"):
                pos += 1
                col += 1
                if pos < length and (source[pos] == "+" or source[pos] == "-"):
                    pos += 1
                    col += 1
                if pos >= length or not _is_digit(source[pos]):
                    raise LexError("invalid number exponent", start)
                while pos < length and _is_digit(source[pos]):
                    pos += 1
                    col += 1
            yield Token(TK_NUMBER, source[start_pos:pos], start)
            continue

        # String literal: "..."
        if c == '"':
            pos += 1
            col += 1
            chars: list[str] = []
            while pos < length and source[pos] != '"':
                ch = source[pos]
                if ch == "\\":
                    if pos + 1 >= length:
                        raise LexError("unterminated string literal", start)
                    nxt = source[pos + 1]
                    chars.append(ESCAPE_MAP.get(nxt, nxt))
                    pos += 2
                    col += 2
                    continue
                if ch == "\n":
                    line += 1
                    col = 1
                else:
                    col += 1
                chars.append(ch)
                pos += 1
            if pos >= length:
                raise LexError("unterminated string literal", start)
            pos += 1  # skip closing "
            col += 1
            yield Token(TK_STRING, "".join(chars), start)
            continue

        # Identifier or keyword
        if _is_alpha(c):
            while pos < length and _is_alnum(source[pos]):
                pos += 1
                col += 1
            word = source[start_pos:pos]
            if word in KEYWORDS:
                yield Token(TK_KEYWORD, word, start)
            else:
                yield Token(TK_IDENT, word, start)
            continue

        # Multi-character operators
        matched = False
        for op in MULTI_OPS:
            op_len = len(op)
            if source[pos : pos + op_len] == op:
                yield Token(TK_SYMBOL, op, start)
                pos += op_len
                col += op_len
                matched = True
                break
        if matched:
            continue

        # Single-character operators
        if c in SINGLE_OPS:
            yield Token(TK_SYMBOL, c, start)
            pos += 1
            col += 1
            continue

        raise LexError("unexpected character: " + repr(c), start)

    yield Token(TK_EOF, "", Pos(line, col))


def tokenize(source: str) -> list[Token]:
    """Tokenize ScriptRust source into a flat list ending with TK_EOF."""
    return list(iter_tokens(source))

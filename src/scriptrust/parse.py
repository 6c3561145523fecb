"""ScriptRust parser: recursive descent, one method per grammar production."""

from __future__ import annotations

from .ast import (
    AssignStmt,
    BinaryOp,
    BlockStmt,
    BoolLit,
    Call,
    ExprStmt,
    FieldAccess,
    FieldDecl,
    FieldInit,
    FnDecl,
    Identifier,
    IfStmt,
    ImplBlock,
    LetStmt,
    MacroCall,
    MethodCall,
    Node,
    NumberLit,
    Param,
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
from .errors import ParseError
from .tokens import TK_EOF, TK_IDENT, TK_NUMBER, TK_STRING, Token

COMPARE_OPS: set[str] = {"==", "!=", "<", "<=", ">", ">="}


class Parser:
    """Recursive descent parser for ScriptRust."""

    def __init__(self, tokens: list[Token]):
        self.tokens: list[Token] = tokens
        self.pos: int = 0
        # Cleared while parsing an `if` condition so `x == y { .. }` is a body.
        self.allow_struct_lit: bool = True

    # ── Helpers ──────────────────────────────────────────────

    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int) -> Token:
        idx = self.pos + offset
        if idx >= len(self.tokens):
            return self.tokens[len(self.tokens) - 1]
        return self.tokens[idx]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.type != TK_EOF:
            self.pos += 1
        return tok

    def at(self, value: str) -> bool:
        tok = self.current()
        return tok.value == value and tok.type != TK_STRING

    def at_type(self, type_: str) -> bool:
        return self.current().type == type_

    def at_ident(self) -> bool:
        return self.current().type == TK_IDENT

    def expect(self, value: str) -> Token:
        if not self.at(value):
            raise self.error("'" + value + "'")
        return self.advance()

    def expect_ident(self) -> Token:
        if not self.at_ident():
            raise self.error("identifier")
        return self.advance()

    def error(self, expected: str) -> ParseError:
        tok = self.current()
        found = tok.value if tok.type != TK_EOF else "end of input"
        return ParseError(expected, found, tok.pos)

    def _pos(self) -> Pos:
        return self.current().pos

    def _skip_pub(self) -> None:
        if self.at("pub"):
            self.advance()

    def _end_stmt(self) -> bool:
        """Statements end in ';' unless they close the enclosing block.

        Returns whether a ';' was consumed.
        """
        if self.at(";"):
            self.advance()
            return True
        if self.at("}") or self.at_type(TK_EOF):
            return False
        raise self.error("';'")

    # ── Top Level ────────────────────────────────────────────

    def parse_program(self) -> Program:
        items: list[Node] = []
        while not self.at_type(TK_EOF):
            if self.at(";"):
                self.advance()
                continue
            items.append(self.parse_stmt())
        return Program(items)

    def parse_decl(self) -> Node:
        self._skip_pub()
        if self.at("struct"):
            return self.parse_struct_decl()
        if self.at("impl"):
            return self.parse_impl_block()
        if self.at("fn"):
            return self.parse_fn_decl()
        raise self.error("declaration (struct, impl, fn)")

    def parse_struct_decl(self) -> StructDecl:
        pos = self._pos()
        self.expect("struct")
        name_tok = self.expect_ident()
        fields: list[FieldDecl] = []
        if self.at(";"):
            self.advance()
            return StructDecl(pos, name_tok.value, fields)
        self.expect("{")
        while not self.at("}"):
            self._skip_pub()
            fpos = self._pos()
            fname = self.expect_ident()
            self.expect(":")
            fields.append(FieldDecl(fpos, fname.value, self.parse_type()))
            if not self.at("}"):
                self.expect(",")
        self.expect("}")
        return StructDecl(pos, name_tok.value, fields)

    def parse_impl_block(self) -> ImplBlock:
        pos = self._pos()
        self.expect("impl")
        name_tok = self.expect_ident()
        self.expect("{")
        methods: list[FnDecl] = []
        while not self.at("}"):
            self._skip_pub()
            methods.append(self.parse_fn_decl())
        self.expect("}")
        return ImplBlock(pos, name_tok.value, methods)

    def parse_fn_decl(self) -> FnDecl:
        pos = self._pos()
        self.expect("fn")
        name_tok = self.expect_ident()
        self.expect("(")
        receiver = self.parse_receiver()
        params: list[Param] = []
        if receiver is not None and not self.at(")"):
            self.expect(",")
        while not self.at(")"):
            params.append(self.parse_param())
            if not self.at(")"):
                self.expect(",")
        self.expect(")")
        ret = "()"
        if self.at("->"):
            self.advance()
            ret = self.parse_type()
        body = self.parse_block()
        return FnDecl(pos, name_tok.value, params, ret, body, receiver)

    def parse_receiver(self) -> str | None:
        """Receiver = 'self' | '&' 'self' | '&' 'mut' 'self'"""
        if self.at("self"):
            self.advance()
            return "self"
        if self.at("&") and self.peek(1).value == "self":
            self.advance()
            self.advance()
            return "&self"
        if (
            self.at("&")
            and self.peek(1).value == "mut"
            and self.peek(2).value == "self"
        ):
            self.advance()
            self.advance()
            self.advance()
            return "&mut self"
        return None

    def parse_param(self) -> Param:
        pos = self._pos()
        if self.at("mut"):
            self.advance()
        name_tok = self.expect_ident()
        self.expect(":")
        return Param(pos, name_tok.value, self.parse_type())

    # ── Types ────────────────────────────────────────────────

    def parse_type(self) -> str:
        """Type = '&' 'mut'? Type | '(' ')' | 'Self' | IDENT"""
        if self.at("&"):
            self.advance()
            if self.at("mut"):
                self.advance()
                return "&mut " + self.parse_type()
            return "&" + self.parse_type()
        if self.at("("):
            self.advance()
            self.expect(")")
            return "()"
        if self.at("Self"):
            self.advance()
            return "Self"
        return self.expect_ident().value

    # ── Statements ───────────────────────────────────────────

    def parse_block(self) -> list[Node]:
        self.expect("{")
        saved = self.allow_struct_lit
        self.allow_struct_lit = True
        try:
            stmts: list[Node] = []
            while not self.at("}"):
                if self.at_type(TK_EOF):
                    raise self.error("'}'")
                if self.at(";"):
                    self.advance()
                    continue
                stmts.append(self.parse_stmt())
        finally:
            self.allow_struct_lit = saved
        self.expect("}")
        return stmts

    def parse_stmt(self) -> Node:
        tok = self.current()
        if tok.type != TK_STRING and tok.value in ("pub", "struct", "impl", "fn"):
            return self.parse_decl()
        if self.at("let"):
            return self.parse_let_stmt()
        if self.at("if"):
            return self.parse_if_stmt()
        if self.at("while"):
            return self.parse_while_stmt()
        if self.at("return"):
            return self.parse_return_stmt()
        if self.at("{"):
            return BlockStmt(self._pos(), self.parse_block())
        return self.parse_expr_stmt()

    def parse_let_stmt(self) -> LetStmt:
        pos = self._pos()
        self.expect("let")
        if self.at("mut"):
            self.advance()
        name_tok = self.expect_ident()
        typ: str | None = None
        if self.at(":"):
            self.advance()
            typ = self.parse_type()
        self.expect("=")
        value = self.parse_expr()
        self.expect(";")
        return LetStmt(pos, name_tok.value, typ, value)

    def parse_if_stmt(self) -> IfStmt:
        pos = self._pos()
        self.expect("if")
        saved = self.allow_struct_lit
        self.allow_struct_lit = False
        try:
            cond = self.parse_expr()
        finally:
            self.allow_struct_lit = saved
        then_body = self.parse_block()
        else_body: list[Node] | None = None
        if self.at("else"):
            self.advance()
            if self.at("if"):
                else_body = [self.parse_if_stmt()]
            else:
                else_body = self.parse_block()
        return IfStmt(pos, cond, then_body, else_body)

    def parse_while_stmt(self) -> WhileStmt:
        """While = 'while' Expr Block"""
        pos = self._pos()
        self.expect("while")
        saved = self.allow_struct_lit
        self.allow_struct_lit = False
        try:
            cond = self.parse_expr()
        finally:
            self.allow_struct_lit = saved
        return WhileStmt(pos, cond, self.parse_block())

    def parse_return_stmt(self) -> ReturnStmt:
        pos = self._pos()
        self.expect("return")
        value: Node | None = None
        if not self.at(";") and not self.at("}"):
            value = self.parse_expr()
        self._end_stmt()
        return ReturnStmt(pos, value)

    def parse_expr_stmt(self) -> Node:
        """ExprStmt = Expr ( '=' Expr )? ';'?"""
        pos = self._pos()
        expr = self.parse_expr()
        if self.at("="):
            if not isinstance(expr, (Identifier, FieldAccess)):
                raise ParseError(
                    "assignable expression", "expression", expr.pos
                )
            self.advance()
            value = self.parse_expr()
            self._end_stmt()
            return AssignStmt(pos, expr, value)
        terminated = self._end_stmt()
        return ExprStmt(pos, expr, terminated)

    # ── Expressions ──────────────────────────────────────────

    def parse_expr(self) -> Node:
        return self.parse_or()

    def parse_or(self) -> Node:
        """Or = And ( '||' And )*"""
        left = self.parse_and()
        while self.at("||"):
            self.advance()
            right = self.parse_and()
            left = BinaryOp(left.pos, "||", left, right)
        return left

    def parse_and(self) -> Node:
        """And = Compare ( '&&' Compare )*"""
        left = self.parse_compare()
        while self.at("&&"):
            self.advance()
            right = self.parse_compare()
            left = BinaryOp(left.pos, "&&", left, right)
        return left

    def parse_compare(self) -> Node:
        """Compare = Sum ( CompOp Sum )?"""
        left = self.parse_sum()
        tok = self.current()
        if tok.type != TK_STRING and tok.value in COMPARE_OPS:
            op = self.advance().value
            right = self.parse_sum()
            if self.current().value in COMPARE_OPS and not self.at_type(TK_STRING):
                raise self.error("end of comparison (comparisons cannot be chained)")
            return BinaryOp(left.pos, op, left, right)
        return left

    def parse_sum(self) -> Node:
        """Sum = Product ( ( '+' | '-' ) Product )*"""
        left = self.parse_product()
        while self.at("+") or self.at("-"):
            op = self.advance().value
            right = self.parse_product()
            left = BinaryOp(left.pos, op, left, right)
        return left

    def parse_product(self) -> Node:
        """Product = Unary ( ( '*' | '/' | '%' ) Unary )*"""
        left = self.parse_unary()
        while self.at("*") or self.at("/") or self.at("%"):
            op = self.advance().value
            right = self.parse_unary()
            left = BinaryOp(left.pos, op, left, right)
        return left

    def parse_unary(self) -> Node:
        """Unary = ( '-' | '!' ) Unary | Postfix"""
        if self.at("-") or self.at("!"):
            pos = self._pos()
            op = self.advance().value
            operand = self.parse_unary()
            return UnaryOp(pos, op, operand)
        return self.parse_postfix()

    def parse_postfix(self) -> Node:
        """Postfix = Primary ( '.' IDENT ( '(' Args ')' )? | '(' Args ')' )*"""
        expr = self.parse_primary()
        while True:
            if self.at("."):
                self.advance()
                name_tok = self.expect_ident()
                if self.at("("):
                    args = self.parse_args()
                    expr = MethodCall(name_tok.pos, expr, name_tok.value, args)
                else:
                    expr = FieldAccess(name_tok.pos, expr, name_tok.value)
            elif self.at("("):
                pos = self._pos()
                expr = Call(pos, expr, self.parse_args())
            else:
                break
        return expr

    def parse_args(self) -> list[Node]:
        """Args = '(' ( Expr ( ',' Expr )* ','? )? ')'"""
        self.expect("(")
        saved = self.allow_struct_lit
        self.allow_struct_lit = True
        try:
            args: list[Node] = []
            while not self.at(")"):
                args.append(self.parse_expr())
                if not self.at(")"):
                    self.expect(",")
        finally:
            self.allow_struct_lit = saved
        self.expect(")")
        return args

    def parse_primary(self) -> Node:
        """Parse a primary expression."""
        tok = self.current()
        pos = tok.pos

        if tok.type == TK_NUMBER:
            self.advance()
            return NumberLit(pos, float(tok.value))
        if tok.type == TK_STRING:
            self.advance()
            return StringLit(pos, tok.value)
        if self.at("true") or self.at("false"):
            self.advance()
            return BoolLit(pos, tok.value == "true")

        if self.at("if"):
            return self.parse_if_stmt()

        if self.at("self"):
            self.advance()
            return Identifier(pos, "self")

        if tok.type == TK_IDENT or self.at("Self"):
            # Macro: name!(...)
            if (
                tok.type == TK_IDENT
                and self.peek(1).value == "!"
                and self.peek(2).value == "("
            ):
                self.advance()
                self.advance()
                return MacroCall(pos, tok.value, self.parse_args())
            # Path call: Type::name(...)
            if self.peek(1).value == "::":
                self.advance()
                self.advance()
                name_tok = self.expect_ident()
                if not self.at("("):
                    path = tok.value + "::" + name_tok.value
                    raise self.error("'(' after path '" + path + "'")
                return PathCall(pos, tok.value, name_tok.value, self.parse_args())
            if self.allow_struct_lit and (
                self._is_struct_literal()
                or (self.at("Self") and self.peek(1).value == "{")
            ):
                return self.parse_struct_literal()
            if self.at("Self"):
                raise self.error("'{' or '::' after 'Self'")
            self.advance()
            return Identifier(pos, tok.value)

        if self.at("("):
            self.advance()
            saved = self.allow_struct_lit
            self.allow_struct_lit = True
            try:
                expr = self.parse_expr()
            finally:
                self.allow_struct_lit = saved
            self.expect(")")
            return expr

        raise self.error("expression")

    def _is_struct_literal(self) -> bool:
        """Name '{' followed by '}' or IDENT."""
        if self.peek(1).value != "{":
            return False
        after = self.peek(2)
        if after.value == "}" and after.type != TK_STRING:
            return True
        return after.type == TK_IDENT

    def parse_struct_literal(self) -> StructLiteral:
        """StructLit = Name '{' ( IDENT ( ':' Expr )? ',' )* '}'"""
        name_tok = self.advance()
        self.expect("{")
        fields: list[FieldInit] = []
        while not self.at("}"):
            fpos = self._pos()
            fname = self.expect_ident()
            if self.at(":"):
                self.advance()
                value = self.parse_expr()
            elif self.at(",") or self.at("}"):
                # Shorthand: `name` means `name: name`
                value = Identifier(fpos, fname.value)
            else:
                raise self.error("':' after field '" + fname.value + "'")
            fields.append(FieldInit(fpos, fname.value, value))
            if not self.at("}"):
                self.expect(",")
        self.expect("}")
        return StructLiteral(name_tok.pos, name_tok.value, fields)

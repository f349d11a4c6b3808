"""Recursive-descent parser for implicit relations in `x` and `y`.

Grammar, loosest binding first::

    relation   := and ('||' and)*
    and        := primary_rel ('&&' primary_rel)*
    primary_rel:= '(' relation ')' | atomic
    atomic     := expr ('==' | '>=' | '>' | '<=' | '<') expr
    expr       := term (('+' | '-') term)*
    term       := unary (('*' | '/') unary | power)*      # juxtaposition multiplies
    unary      := '-' unary | power
    power      := postfix ('^' unary)?
    postfix    := NAME '(' args ')' | primary
    primary    := NUMBER | pi | π | e | x | y | '(' expr ')' | '|' expr '|'
                | '⌈' expr '⌉' | '⌊' expr '⌋'

The lexer emits every `|` as a bar; `||` means "or" only where a relation
may continue. Alternatives are tried with backtracking; when every alternative fails the
error is reported at the furthest offset any of them reached.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Callable, NoReturn, TypeVar

from . import interval as iv
from .ast import (
    And,
    Atomic,
    Binary,
    BinaryOp,
    Expr,
    List,
    Or,
    Pown,
    Rel,
    RelOp,
    Rootn,
    Unary,
    UnaryOp,
    ValueType,
    VarSet,
    binary,
    constant,
    list_expr,
    unary,
    var,
)
from .errors import ParseError
from .evaluator import evaluate
from .lexer import Token, tokenize

logger = logging.getLogger(__name__)

_MAX_NESTING_DEPTH = max(1, int(os.environ.get("RIGORPLOT_MAX_NESTING_DEPTH", "48")))
_MAX_EXPR_HEIGHT = max(1, int(os.environ.get("RIGORPLOT_MAX_EXPR_HEIGHT", "200")))

_CONSTANTS = {"pi": iv.PI, "π": iv.PI, "e": iv.E}
_VARIABLES = frozenset({"x", "y"})

_FUNCTIONS_1 = {
    "abs": UnaryOp.ABS,
    "acos": UnaryOp.ACOS,
    "acosh": UnaryOp.ACOSH,
    "asin": UnaryOp.ASIN,
    "asinh": UnaryOp.ASINH,
    "atan": UnaryOp.ATAN,
    "atanh": UnaryOp.ATANH,
    "ceil": UnaryOp.CEIL,
    "floor": UnaryOp.FLOOR,
    "cos": UnaryOp.COS,
    "cosh": UnaryOp.COSH,
    "sin": UnaryOp.SIN,
    "sinh": UnaryOp.SINH,
    "tan": UnaryOp.TAN,
    "tanh": UnaryOp.TANH,
    "exp": UnaryOp.EXP,
    "log": UnaryOp.LN,
    "ln": UnaryOp.LN,
    "log10": UnaryOp.LOG10,
    "sqrt": UnaryOp.SQRT,
    "sinc": UnaryOp.SINC,
    "gamma": UnaryOp.GAMMA,
    "Gamma": UnaryOp.GAMMA,
    "psi": UnaryOp.DIGAMMA,
    "erf": UnaryOp.ERF,
    "erfc": UnaryOp.ERFC,
    "erfi": UnaryOp.ERFI,
    "Ei": UnaryOp.EI,
    "li": UnaryOp.LI,
    "Si": UnaryOp.SI,
    "Ci": UnaryOp.CI,
    "Shi": UnaryOp.SHI,
    "Chi": UnaryOp.CHI,
    "S": UnaryOp.FRESNEL_S,
    "C": UnaryOp.FRESNEL_C,
    "Ai": UnaryOp.AIRY_AI,
    "Bi": UnaryOp.AIRY_BI,
    "Ai'": UnaryOp.AIRY_AI_PRIME,
    "Bi'": UnaryOp.AIRY_BI_PRIME,
}

_FUNCTIONS_2 = {
    "atan2": BinaryOp.ATAN2,
    "max": BinaryOp.MAX,
    "min": BinaryOp.MIN,
    "mod": BinaryOp.MOD,
    "gcd": BinaryOp.GCD,
    "lcm": BinaryOp.LCM,
    "log": BinaryOp.LOG,
    "gamma": BinaryOp.GAMMA_INC,
    "Gamma": BinaryOp.GAMMA_INC,
    "I": BinaryOp.BESSEL_I,
    "J": BinaryOp.BESSEL_J,
    "K": BinaryOp.BESSEL_K,
    "Y": BinaryOp.BESSEL_Y,
}

_RANKED_FUNCTIONS = {
    "ranked_max": BinaryOp.RANKED_MAX,
    "ranked_min": BinaryOp.RANKED_MIN,
}

_COMPARISONS = {
    "EQ": RelOp.EQ,
    "GE": RelOp.GE,
    "GT": RelOp.GT,
    "LE": RelOp.LE,
    "LT": RelOp.LT,
}

_BRACKETS = {
    "BAR": ("BAR", "'|'", UnaryOp.ABS),
    "LCEIL": ("RCEIL", "'⌉'", UnaryOp.CEIL),
    "LFLOOR": ("RFLOOR", "'⌋'", UnaryOp.FLOOR),
}

_POWER_START = frozenset({"NUMBER", "NAME", "LPAREN", "BAR", "LCEIL", "LFLOOR"})

_T = TypeVar("_T")


class _Backtrack(Exception):
    pass


def _describe(tok: Token) -> str:
    return "end of input" if tok.kind == "EOF" else repr(tok.text)


def _children(node: Expr | Rel) -> tuple:
    if isinstance(node, (Atomic, And, Or)):
        return (node.x, node.y)
    kind = node.kind
    if isinstance(kind, Binary):
        return (kind.x, kind.y)
    if isinstance(kind, (Unary, Pown, Rootn)):
        return (kind.x,)
    if isinstance(kind, List):
        return kind.items
    return ()


def tree_height(root: Expr | Rel) -> int:
    """Height of an expression or relation tree, computed without recursion."""
    height = 0
    stack = [(root, 1)]
    while stack:
        node, depth = stack.pop()
        height = max(height, depth)
        stack.extend((child, depth + 1) for child in _children(node))
    return height


@dataclass
class _Parser:
    source: str
    tokens: list[Token]
    fold_constants: bool = True
    index: int = 0
    depth: int = 0
    furthest_pos: int = -1
    furthest_message: str = ""
    non_groups: set[int] = field(default_factory=set)

    def run(self, entry: Callable[[], _T]) -> _T:
        try:
            result = entry()
        except _Backtrack:
            logger.debug("parse failed at offset %d: %s", self.furthest_pos, self.furthest_message)
            raise ParseError(self.furthest_message, self.source, self.furthest_pos) from None
        height = tree_height(result)
        if height > _MAX_EXPR_HEIGHT:
            raise ParseError(
                f"expression tree is too tall ({height} levels, limit {_MAX_EXPR_HEIGHT})",
                self.source,
                0,
            )
        return result

    def parse_relation(self) -> Rel:
        rel = self._parse_or()
        self._expect_end()
        return rel

    def parse_expression_only(self) -> Expr:
        expr = self._parse_expr()
        self._expect_end()
        return expr

    def _peek(self, offset: int = 0) -> Token:
        return self.tokens[min(self.index + offset, len(self.tokens) - 1)]

    def _advance(self) -> Token:
        tok = self.tokens[self.index]
        if tok.kind != "EOF":
            self.index += 1
        return tok

    def _fail(self, tok: Token, message: str) -> NoReturn:
        if tok.pos > self.furthest_pos:
            self.furthest_pos = tok.pos
            self.furthest_message = message
        raise _Backtrack(message)

    def _expect(self, kind: str, what: str) -> Token:
        tok = self._peek()
        if tok.kind != kind:
            self._fail(tok, f"expected {what}, found {_describe(tok)}")
        return self._advance()

    def _expect_end(self) -> None:
        tok = self._peek()
        if tok.kind != "EOF":
            self._fail(tok, f"unexpected {_describe(tok)}")

    def _match(self, kind: str) -> bool:
        if self._peek().kind == kind:
            self._advance()
            return True
        return False

    def _match_or(self) -> bool:
        # `||` is two adjacent bars; inside an expression they close nested `|...|`.
        first, second = self._peek(), self._peek(1)
        if first.kind == "BAR" and second.kind == "BAR" and second.pos == first.end:
            self._advance()
            self._advance()
            return True
        return False

    @contextmanager
    def _nested(self):
        self.depth += 1
        try:
            if self.depth > _MAX_NESTING_DEPTH:
                raise ParseError(
                    f"expression is nested too deeply (limit {_MAX_NESTING_DEPTH})",
                    self.source,
                    self._peek().pos,
                )
            yield
        finally:
            self.depth -= 1

    def _build(self, expr: Expr) -> Expr:
        if not self.fold_constants or expr.vars != VarSet.EMPTY or expr.ty is not ValueType.SCALAR:
            return expr
        value = evaluate(expr)
        if value is None:
            return expr
        logger.debug("folded %s to %s", expr.dump_structure(), value[0])
        return constant(*value)

    def _parse_or(self) -> Rel:
        with self._nested():
            left = self._parse_and()
            while self._match_or():
                left = Or(left, self._parse_and())
            return left

    def _parse_and(self) -> Rel:
        left = self._parse_primary_rel()
        while self._match("AND"):
            left = And(left, self._parse_primary_rel())
        return left

    def _parse_primary_rel(self) -> Rel:
        save = self.index
        if self._peek().kind == "LPAREN" and save not in self.non_groups:
            try:
                self._advance()
                rel = self._parse_or()
                self._expect("RPAREN", "')'")
                return rel
            except _Backtrack:
                # A parenthesized expression, not a relation; never retry from here.
                self.non_groups.add(save)
                self.index = save
        return self._parse_atomic()

    def _parse_atomic(self) -> Atomic:
        left = self._parse_expr()
        tok = self._peek()
        op = _COMPARISONS.get(tok.kind)
        if op is None:
            self._fail(tok, f"expected a comparison operator, found {_describe(tok)}")
        self._advance()
        return Atomic(op, left, self._parse_expr())

    def _parse_expr(self) -> Expr:
        left = self._parse_term()
        while True:
            kind = self._peek().kind
            if kind == "PLUS":
                op = BinaryOp.ADD
            elif kind == "MINUS":
                op = BinaryOp.SUB
            else:
                return left
            self._advance()
            left = self._build(binary(op, left, self._parse_term()))

    def _parse_term(self) -> Expr:
        left = self._parse_unary()
        while True:
            kind = self._peek().kind
            if kind in ("STAR", "SLASH"):
                self._advance()
                op = BinaryOp.MUL if kind == "STAR" else BinaryOp.DIV
                left = self._build(binary(op, left, self._parse_unary()))
                continue
            if kind not in _POWER_START:
                return left
            save = self.index
            try:
                right = self._parse_power()
            except _Backtrack:
                self.index = save
                return left
            left = self._build(binary(BinaryOp.MUL, left, right))

    def _parse_unary(self) -> Expr:
        with self._nested():
            if self._match("MINUS"):
                return self._build(unary(UnaryOp.NEG, self._parse_unary()))
            return self._parse_power()

    def _parse_power(self) -> Expr:
        base = self._parse_postfix()
        if self._match("CARET"):
            return self._build(binary(BinaryOp.POW, base, self._parse_unary()))
        return base

    def _parse_postfix(self) -> Expr:
        tok = self._peek()
        if tok.kind == "NAME" and self._peek(1).kind == "LPAREN":
            name = tok.text
            if name in _RANKED_FUNCTIONS:
                return self._parse_ranked_call()
            if name in _FUNCTIONS_1 or name in _FUNCTIONS_2:
                return self._parse_call()
        return self._parse_primary()

    def _parse_call(self) -> Expr:
        name_tok = self._advance()
        self._advance()
        args = [self._parse_expr()]
        while self._match("COMMA"):
            args.append(self._parse_expr())
        close = self._expect("RPAREN", "')'")
        name = name_tok.text
        if len(args) == 1 and name in _FUNCTIONS_1:
            return self._build(unary(_FUNCTIONS_1[name], args[0]))
        if len(args) == 2 and name in _FUNCTIONS_2:
            return self._build(binary(_FUNCTIONS_2[name], args[0], args[1]))
        self._fail(close, f"wrong number of arguments to {name!r}: {len(args)}")

    def _parse_ranked_call(self) -> Expr:
        op = _RANKED_FUNCTIONS[self._advance().text]
        self._advance()
        self._expect("LBRACK", "'['")
        items = [self._parse_expr()]
        while self._match("COMMA"):
            items.append(self._parse_expr())
        self._expect("RBRACK", "']'")
        self._expect("COMMA", "','")
        rank = self._parse_expr()
        self._expect("RPAREN", "')'")
        return self._build(binary(op, list_expr(items), rank))

    def _parse_primary(self) -> Expr:
        tok = self._peek()

        if tok.kind == "NUMBER":
            self._advance()
            q = Fraction(tok.text)
            return constant(iv.from_rational(q), q)

        if tok.kind == "NAME":
            name = tok.text
            if name in _CONSTANTS:
                self._advance()
                return constant(_CONSTANTS[name])
            if name in _VARIABLES:
                self._advance()
                return var(name)
            if name in _FUNCTIONS_1 or name in _FUNCTIONS_2 or name in _RANKED_FUNCTIONS:
                self._fail(self._peek(1), f"expected '(' after {name!r}, found {_describe(self._peek(1))}")
            self._fail(tok, f"unknown identifier {name!r}")

        if tok.kind == "LPAREN":
            self._advance()
            expr = self._parse_expr()
            self._expect("RPAREN", "')'")
            return expr

        if tok.kind in _BRACKETS:
            closing, what, op = _BRACKETS[tok.kind]
            self._advance()
            expr = self._parse_expr()
            self._expect(closing, what)
            return self._build(unary(op, expr))

        if tok.kind == "EOF":
            self._fail(tok, "unexpected end of input")
        self._fail(tok, f"expected an expression, found {_describe(tok)}")


def parse(source: str, *, fold_constants: bool = True) -> Rel:
    """Parse a whole relation such as `sin(x) >= 0 && x < 1`."""
    parser = _Parser(source, tokenize(source), fold_constants=fold_constants)
    return parser.run(parser.parse_relation)


def parse_expr(source: str, *, fold_constants: bool = True) -> Expr:
    """Parse a whole expression such as `2x^2 + y`."""
    parser = _Parser(source, tokenize(source), fold_constants=fold_constants)
    return parser.run(parser.parse_expression_only)

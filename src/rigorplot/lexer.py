"""Tokenization of relation source text."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import ParseError


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    pos: int
    end: int


_SINGLE_TOKENS = {
    "(": "LPAREN",
    ")": "RPAREN",
    "[": "LBRACK",
    "]": "RBRACK",
    ",": "COMMA",
    "⌈": "LCEIL",
    "⌉": "RCEIL",
    "⌊": "LFLOOR",
    "⌋": "RFLOOR",
    "+": "PLUS",
    "-": "MINUS",
    "*": "STAR",
    "/": "SLASH",
    "^": "CARET",
    ">": "GT",
    "<": "LT",
}

_DOUBLE_TOKENS = {
    "==": "EQ",
    ">=": "GE",
    "<=": "LE",
    "&&": "AND",
}

_WHITESPACE = {" ", "\t", "\n", "\r"}
_DIGITS = frozenset("0123456789")


def _is_ident_start(ch: str) -> bool:
    return ch == "_" or ch.isalpha()


def _is_ident_continue(ch: str) -> bool:
    return ch == "_" or ch.isalnum()


def _scan_digits(source: str, start: int) -> int:
    i = start
    while i < len(source) and source[i] in _DIGITS:
        i += 1
    return i


def _scan_number(source: str, start: int) -> int:
    """End of a decimal literal `digits ('.' digits?)?` or `'.' digits`."""
    i = _scan_digits(source, start)
    if i < len(source) and source[i] == ".":
        i = _scan_digits(source, i + 1)
    return i


def tokenize(source: str) -> list[Token]:
    """Split `source` into tokens, ending with an EOF token at `len(source)`.

    Identifiers are scanned maximally (letters, digits, `_`, and one optional
    trailing `'`), so a keyword never matches inside a longer name.
    """
    tokens: list[Token] = []
    i = 0

    while i < len(source):
        ch = source[i]

        if ch in _WHITESPACE:
            i += 1
            continue

        pair = source[i : i + 2]
        if pair in _DOUBLE_TOKENS:
            tokens.append(Token(_DOUBLE_TOKENS[pair], pair, i, i + 2))
            i += 2
            continue

        if ch == "|":
            tokens.append(Token("BAR", ch, i, i + 1))
            i += 1
            continue

        if ch in _DIGITS or (ch == "." and i + 1 < len(source) and source[i + 1] in _DIGITS):
            end = _scan_number(source, i)
            tokens.append(Token("NUMBER", source[i:end], i, end))
            i = end
            continue

        if ch in _SINGLE_TOKENS:
            tokens.append(Token(_SINGLE_TOKENS[ch], ch, i, i + 1))
            i += 1
            continue

        if _is_ident_start(ch):
            start = i
            i += 1
            while i < len(source) and _is_ident_continue(source[i]):
                i += 1
            if i < len(source) and source[i] == "'":
                i += 1
            tokens.append(Token("NAME", source[start:i], start, i))
            continue

        raise ParseError(f"unexpected character {ch!r}", source, i)

    tokens.append(Token("EOF", "", len(source), len(source)))
    return tokens

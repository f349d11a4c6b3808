from __future__ import annotations

import unittest

from rigorplot.errors import ParseError
from rigorplot.lexer import tokenize


class LexerTokenTests(unittest.TestCase):
    def _tokens(self, source: str, *, with_spans: bool = False):
        if with_spans:
            return [(tok.kind, tok.text, tok.pos, tok.end) for tok in tokenize(source) if tok.kind != "EOF"]
        return [(tok.kind, tok.text) for tok in tokenize(source) if tok.kind != "EOF"]

    def test_token_golden_delimiters_and_operators(self) -> None:
        tokens = self._tokens("()[],|⌈⌉⌊⌋+-*/^", with_spans=True)
        self.assertEqual(
            tokens,
            [
                ("LPAREN", "(", 0, 1),
                ("RPAREN", ")", 1, 2),
                ("LBRACK", "[", 2, 3),
                ("RBRACK", "]", 3, 4),
                ("COMMA", ",", 4, 5),
                ("BAR", "|", 5, 6),
                ("LCEIL", "⌈", 6, 7),
                ("RCEIL", "⌉", 7, 8),
                ("LFLOOR", "⌊", 8, 9),
                ("RFLOOR", "⌋", 9, 10),
                ("PLUS", "+", 10, 11),
                ("MINUS", "-", 11, 12),
                ("STAR", "*", 12, 13),
                ("SLASH", "/", 13, 14),
                ("CARET", "^", 14, 15),
            ],
        )

    def test_comparison_and_logical_tokens(self) -> None:
        self.assertEqual(
            self._tokens("== >= > <= < && ||"),
            [
                ("EQ", "=="),
                ("GE", ">="),
                ("GT", ">"),
                ("LE", "<="),
                ("LT", "<"),
                ("AND", "&&"),
                ("BAR", "|"),
                ("BAR", "|"),
            ],
        )

    def test_numbers(self) -> None:
        self.assertEqual(
            self._tokens("12 3.5 7. .25"),
            [("NUMBER", "12"), ("NUMBER", "3.5"), ("NUMBER", "7."), ("NUMBER", ".25")],
        )

    def test_identifiers_are_maximal(self) -> None:
        self.assertEqual(self._tokens("e2"), [("NAME", "e2")])
        self.assertEqual(self._tokens("sinx"), [("NAME", "sinx")])
        self.assertEqual(self._tokens("x_1 π"), [("NAME", "x_1"), ("NAME", "π")])
        self.assertEqual(self._tokens("Ai'(x)")[0], ("NAME", "Ai'"))

    def test_implicit_multiplication_splits_at_digits(self) -> None:
        self.assertEqual(self._tokens("2x"), [("NUMBER", "2"), ("NAME", "x")])

    def test_eof_span(self) -> None:
        tokens = tokenize("x\t+ 1")
        self.assertEqual(tokens[-1].kind, "EOF")
        self.assertEqual((tokens[-1].pos, tokens[-1].end), (5, 5))

    def test_line_breaks_are_whitespace(self) -> None:
        tokens = tokenize("x\n<\r\n1")
        self.assertEqual(
            [(tok.kind, tok.pos, tok.end) for tok in tokens],
            [("NAME", 0, 1), ("LT", 2, 3), ("NUMBER", 5, 6), ("EOF", 6, 6)],
        )

    def test_unexpected_character(self) -> None:
        with self.assertRaises(ParseError) as ctx:
            tokenize("x # 1")
        self.assertEqual(ctx.exception.offset, 2)
        self.assertEqual((ctx.exception.line, ctx.exception.column), (1, 3))

    def test_unicode_digits_are_not_numbers(self) -> None:
        with self.assertRaises(ParseError):
            tokenize("٣")


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

import math
import unittest
from fractions import Fraction

from rigorplot import interval as iv
from rigorplot.ast import BinaryOp, UnaryOp, binary, constant, list_expr, pown, rootn, unary, uninit, var
from rigorplot.errors import InternalContractError
from rigorplot.evaluator import evaluate
from rigorplot.interval import Decoration, Interval


def _q(num: int, den: int = 1):
    q = Fraction(num, den)
    return constant(iv.from_rational(q), q)


class ExactTrackTests(unittest.TestCase):
    def test_thirds_add_exactly(self) -> None:
        third = binary(BinaryOp.DIV, _q(1), _q(3))
        value, exact = evaluate(binary(BinaryOp.ADD, third, third))
        self.assertEqual(exact, Fraction(2, 3))
        self.assertEqual(value, iv.from_rational(Fraction(2, 3)))
        self.assertEqual(math.nextafter(value.lo, math.inf), value.hi)

    def test_exact_result_lies_inside_the_enclosure_sum(self) -> None:
        third = iv.from_rational(Fraction(1, 3))
        loose = iv.add(third, third)
        value, _ = evaluate(binary(BinaryOp.ADD, _q(1, 3), _q(1, 3)))
        self.assertTrue(value.subset(loose))

    def test_exact_aware_operators(self) -> None:
        cases = (
            ("neg", unary(UnaryOp.NEG, _q(2, 7)), Fraction(-2, 7)),
            ("abs", unary(UnaryOp.ABS, _q(-5, 2)), Fraction(5, 2)),
            ("sqr", unary(UnaryOp.SQR, _q(1, 3)), Fraction(1, 9)),
            ("floor", unary(UnaryOp.FLOOR, _q(-5, 2)), Fraction(-3)),
            ("ceil", unary(UnaryOp.CEIL, _q(5, 2)), Fraction(3)),
            ("sub", binary(BinaryOp.SUB, _q(1, 2), _q(1, 3)), Fraction(1, 6)),
            ("mul", binary(BinaryOp.MUL, _q(2, 3), _q(3, 5)), Fraction(2, 5)),
            ("max", binary(BinaryOp.MAX, _q(1, 3), _q(1, 4)), Fraction(1, 3)),
            ("min", binary(BinaryOp.MIN, _q(1, 3), _q(1, 4)), Fraction(1, 4)),
            ("mod", binary(BinaryOp.MOD, _q(-7, 3), _q(2)), Fraction(5, 3)),
            ("gcd", binary(BinaryOp.GCD, _q(1, 2), _q(1, 3)), Fraction(1, 6)),
            ("lcm", binary(BinaryOp.LCM, _q(1, 2), _q(1, 3)), Fraction(1)),
            ("pow", binary(BinaryOp.POW, _q(2, 3), _q(-2)), Fraction(9, 4)),
        )
        for label, expr, expected in cases:
            with self.subTest(label):
                value, exact = evaluate(expr)
                self.assertEqual(exact, expected)
                self.assertEqual(value, iv.from_rational(expected))

    def test_undefined_exact_result_falls_back(self) -> None:
        value, exact = evaluate(binary(BinaryOp.DIV, _q(1), _q(0)))
        self.assertIsNone(exact)
        self.assertTrue(value.is_empty())

        value, exact = evaluate(binary(BinaryOp.POW, _q(2), _q(1, 2)))
        self.assertIsNone(exact)
        self.assertAlmostEqual(value.mid(), math.sqrt(2.0), places=12)

        value, exact = evaluate(binary(BinaryOp.POW, _q(3), _q(10**6)))
        self.assertIsNone(exact)
        self.assertEqual(value.hi, math.inf)

    def test_decoration_follows_operands(self) -> None:
        weak = constant(Interval(2.0, 2.0, Decoration.DEF), Fraction(2))
        value, exact = evaluate(binary(BinaryOp.ADD, weak, _q(1)))
        self.assertEqual(exact, Fraction(3))
        self.assertEqual(value.decoration, Decoration.DEF)

    def test_operand_without_rational_uses_enclosures(self) -> None:
        pi = constant(iv.PI)
        value, exact = evaluate(binary(BinaryOp.MUL, pi, _q(2)))
        self.assertIsNone(exact)
        self.assertTrue(value.contains(2 * 3.141592653589793))


class EnclosureTrackTests(unittest.TestCase):
    def test_transcendental_operators(self) -> None:
        value, exact = evaluate(unary(UnaryOp.SIN, constant(iv.PI)))
        self.assertIsNone(exact)
        self.assertTrue(value.contains(0.0))
        self.assertLess(value.hi - value.lo, 1e-15)

    def test_exact_recovery_from_singleton(self) -> None:
        value, exact = evaluate(unary(UnaryOp.SQRT, _q(0)))
        self.assertEqual(value, iv.ZERO)
        self.assertEqual(exact, Fraction(0))

    def test_binary_special_operators(self) -> None:
        value, _ = evaluate(binary(BinaryOp.LOG, _q(2), _q(8)))
        self.assertTrue(value.contains(3.0))
        value, _ = evaluate(binary(BinaryOp.ATAN2, _q(1), _q(1)))
        self.assertAlmostEqual(value.mid(), math.pi / 4, places=12)

    def test_rootn(self) -> None:
        value, _ = evaluate(rootn(_q(-27), 3))
        self.assertTrue(value.contains(-3.0))

    def test_ranked_statistics(self) -> None:
        xs = list_expr([_q(5), _q(1, 2), _q(3)])
        value, exact = evaluate(binary(BinaryOp.RANKED_MIN, xs, _q(2)))
        self.assertEqual(value, iv.from_rational(Fraction(3)))
        self.assertIsNone(exact)
        value, _ = evaluate(binary(BinaryOp.RANKED_MAX, xs, _q(1)))
        self.assertEqual(value, iv.from_rational(Fraction(5)))


class NonConstantTests(unittest.TestCase):
    def test_free_variables_are_not_constant(self) -> None:
        x = var("x")
        cases = (
            ("var", x),
            ("x + 1", binary(BinaryOp.ADD, x, _q(1))),
            ("sin x", unary(UnaryOp.SIN, x)),
            ("ranked over x", binary(BinaryOp.RANKED_MIN, list_expr([x, _q(1)]), _q(1))),
            ("ranked by x", binary(BinaryOp.RANKED_MIN, list_expr([_q(1)]), x)),
            ("bare list", list_expr([_q(1), _q(2)])),
            ("comparison", binary(BinaryOp.LT, _q(1), _q(2))),
            ("rootn of x", rootn(x, 3)),
        )
        for label, expr in cases:
            with self.subTest(label):
                self.assertIsNone(evaluate(expr))

    def test_eval_method_delegates(self) -> None:
        self.assertIsNone(var("y").eval())
        self.assertEqual(_q(1, 2).eval()[1], Fraction(1, 2))


class ContractViolationTests(unittest.TestCase):
    def test_unrewritten_shapes_raise(self) -> None:
        cases = (
            ("uninit", uninit()),
            ("pown", pown(_q(2), 3)),
            ("exp2", unary(UnaryOp.EXP2, _q(1))),
            ("exp10", unary(UnaryOp.EXP10, _q(1))),
            ("recip", unary(UnaryOp.RECIP, _q(2))),
            ("ranked over scalar", binary(BinaryOp.RANKED_MIN, _q(1), _q(1))),
        )
        for label, expr in cases:
            with self.subTest(label):
                with self.assertRaises(InternalContractError):
                    evaluate(expr)


if __name__ == "__main__":
    unittest.main()

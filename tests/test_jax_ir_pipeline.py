from __future__ import annotations

import importlib.util
import math
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for jax-ir pipeline tests")
class JaxIrLoweringTests(unittest.TestCase):
    def test_lower_relation_basic(self) -> None:
        from rigorplot import lower_to_ir

        ir = lower_to_ir("x^2 + y < 1")
        self.assertEqual(ir.arg_names, ("x", "y"))
        self.assertEqual(ir.nodes[ir.output].op, "rel:Lt")
        ops = [node.op for node in ir.nodes]
        self.assertIn("binary:Pow", ops)
        self.assertIn("binary:Add", ops)
        self.assertEqual(sorted(node.name for node in ir.nodes if node.op == "arg"), ["x", "y"])

    def test_repeated_subexpressions_share_one_node(self) -> None:
        from rigorplot import lower_to_ir, parse

        rel = parse("sin(x) + sin(x) > 0")
        ir = lower_to_ir(rel)
        sin_nodes = [node for node in ir.nodes if node.op == "unary:Sin"]
        self.assertEqual(len(sin_nodes), 1)
        add = rel.x.kind
        self.assertEqual(ir.nodes[add.x.id].op, "unary:Sin")
        self.assertEqual(add.x.id, add.y.id)
        self.assertEqual(ir.nodes[rel.x.id].inputs, (sin_nodes[0].id, sin_nodes[0].id))
        self.assertEqual(len(ir.nodes), 5)

    def test_boolean_structure(self) -> None:
        from rigorplot import lower_to_ir

        ir = lower_to_ir("x < 1 && (y > 0 || x == y)")
        out = ir.nodes[ir.output]
        self.assertEqual(out.op, "and")
        self.assertEqual(ir.nodes[out.inputs[1]].op, "or")

    def test_constants_lower_to_midpoints(self) -> None:
        from rigorplot import lower_to_ir, parse_expr
        from rigorplot import interval as iv
        from rigorplot.ast import constant

        ir = lower_to_ir(parse_expr("pi"))
        self.assertEqual(ir.nodes[ir.output].value, iv.PI.mid())
        unbounded = lower_to_ir(constant(iv.ENTIRE))
        self.assertTrue(math.isnan(unbounded.nodes[unbounded.output].value))

    def test_source_lowering_is_cached(self) -> None:
        from rigorplot import lower_to_ir

        self.assertIs(lower_to_ir("x < y"), lower_to_ir("x < y"))
        self.assertIsNot(lower_to_ir("x < y"), lower_to_ir("x <= y"))

    def test_unsupported_operations(self) -> None:
        from rigorplot import UnsupportedError, lower_to_ir

        for source in ("Ai(x) > 0", "J(1, x) > y", "gcd(x, 2) == 1", "erfi(x) < y"):
            with self.subTest(source=source):
                with self.assertRaises(UnsupportedError) as ctx:
                    lower_to_ir(source)
                self.assertIn("No point evaluation available", str(ctx.exception))

    def test_contract_violations(self) -> None:
        from rigorplot import InternalContractError, lower_to_ir
        from rigorplot import interval as iv
        from rigorplot.ast import BinaryOp, binary, constant, uninit, var

        with self.assertRaises(InternalContractError):
            lower_to_ir(uninit())
        with self.assertRaises(InternalContractError):
            lower_to_ir(binary(BinaryOp.RANKED_MIN, var("x"), constant(iv.ONE)))


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for jax-ir pipeline tests")
class JaxIrEvaluationTests(unittest.TestCase):
    def _eval_expr(self, source: str, x, y=0.0):
        from rigorplot import evaluate_ir, lower_to_ir, parse_expr

        return evaluate_ir(lower_to_ir(parse_expr(source)), x, y)

    def test_scalar_expressions(self) -> None:
        cases = (
            ("x*y + 1", 2.0, 3.0, 7.0),
            ("mod(x, 3)", -1.0, 0.0, 2.0),
            ("log(2, x)", 8.0, 0.0, 3.0),
            ("Gamma(2, x)", 1.0, 0.0, 2.0 * math.exp(-1.0)),
            ("atan2(y, x)", -1.0, 1.0, 3.0 * math.pi / 4.0),
            ("sinc(x)", 0.0, 0.0, 1.0),
            ("max(x, y) - min(x, y)", 1.5, -2.0, 3.5),
            ("|x| + ⌊y⌋", -2.0, 0.5, 2.0),
        )
        for source, x, y, expected in cases:
            with self.subTest(source=source):
                self.assertAlmostEqual(float(self._eval_expr(source, x, y)), expected, places=5)

    def test_pown_and_rootn(self) -> None:
        from rigorplot import evaluate_ir, lower_to_ir
        from rigorplot.ast import pown, rootn, var

        self.assertAlmostEqual(float(evaluate_ir(lower_to_ir(pown(var("x"), 3)), 2.0, 0.0)), 8.0, places=5)
        self.assertAlmostEqual(float(evaluate_ir(lower_to_ir(rootn(var("x"), 3)), -8.0, 0.0)), -2.0, places=5)
        self.assertTrue(math.isnan(float(evaluate_ir(lower_to_ir(rootn(var("x"), 2)), -4.0, 0.0))))

    def test_ranked_statistics(self) -> None:
        import jax.numpy as jnp

        out = self._eval_expr("ranked_min([x, y, 1], 2)", jnp.array([3.0, 0.0]), jnp.array([2.0, 5.0]))
        self.assertEqual(out.tolist(), [2.0, 1.0])
        out = self._eval_expr("ranked_max([x, y, 1], y)", jnp.array([3.0, 3.0, 3.0]), jnp.array([1.0, 2.0, 4.0]))
        self.assertEqual(out[:2].tolist(), [3.0, 2.0])
        self.assertTrue(math.isnan(float(out[2])))

    def test_relations_give_booleans(self) -> None:
        import jax.numpy as jnp

        from rigorplot import evaluate_ir, lower_to_ir

        ir = lower_to_ir("x^2 + y^2 < 1")
        out = evaluate_ir(ir, jnp.array([0.0, 1.0]), jnp.array([0.0, 1.0]))
        self.assertEqual(out.dtype, jnp.bool_)
        self.assertEqual(out.tolist(), [True, False])

    def test_points_outside_the_domain_are_false(self) -> None:
        import jax.numpy as jnp

        from rigorplot import evaluate_ir, lower_to_ir

        xs = jnp.array([-1.0, 4.0])
        self.assertEqual(evaluate_ir(lower_to_ir("sqrt(x) >= 0"), xs, 0.0).tolist(), [False, True])
        self.assertEqual(evaluate_ir(lower_to_ir("ln(x) < 10"), xs, 0.0).tolist(), [False, True])

    def test_output_broadcasts_over_both_arguments(self) -> None:
        import jax.numpy as jnp

        from rigorplot import evaluate_ir, lower_to_ir

        out = evaluate_ir(lower_to_ir("x < 1"), jnp.array([0.0, 2.0]), jnp.zeros((3, 1)))
        self.assertEqual(out.shape, (3, 2))
        self.assertEqual(out[2].tolist(), [True, False])
        const = evaluate_ir(lower_to_ir("1 < 2"), jnp.zeros((2,)), jnp.zeros((2,)))
        self.assertEqual(const.tolist(), [True, True])


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for jax-ir pipeline tests")
class CompiledRelationTests(unittest.TestCase):
    def test_jit_matches_eager(self) -> None:
        import jax.numpy as jnp

        from rigorplot import compile_relation

        compiled = compile_relation("sin(x) > y && x^2 <= 4")
        self.assertEqual(compiled.source, "sin(x) > y && x^2 <= 4")
        xs = jnp.linspace(-3.0, 3.0, 13)
        ys = jnp.zeros_like(xs)
        eager = compiled(xs, ys)
        jitted = compiled.jit()(xs, ys)
        self.assertEqual(eager.tolist(), jitted.tolist())
        self.assertIs(compiled.jit(), compiled.jit())

    def test_trace_emits_jaxpr(self) -> None:
        import jax.numpy as jnp

        from rigorplot import compile_relation, parse

        compiled = compile_relation(parse("sin(x) > y"))
        self.assertIsNone(compiled.source)
        jaxpr = compiled.trace(jnp.zeros((4,)), jnp.zeros((4,)))
        self.assertIn("sin", str(jaxpr))

    def test_package_exports_the_jax_backend(self) -> None:
        import rigorplot
        from rigorplot import ir

        self.assertIs(rigorplot.lower_to_ir, ir.lower_to_ir)
        self.assertIs(rigorplot.CompiledRelation, ir.CompiledRelation)


if __name__ == "__main__":
    unittest.main()

"""JAX lowering of relations for fast, non-rigorous point sampling."""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from functools import lru_cache

import jax
import jax.numpy as jnp
import jax.scipy.special as jsp

from .ast import (
    And,
    Atomic,
    Binary,
    BinaryOp,
    Constant,
    Expr,
    List,
    Or,
    Pown,
    Rel,
    Rootn,
    Unary,
    UnaryOp,
    Uninit,
    Var,
)
from .errors import InternalContractError, RigorPlotError, UnsupportedError
from .parser import parse

logger = logging.getLogger(__name__)

_LOWER_CACHE_MAX = max(1, int(os.environ.get("RIGORPLOT_LOWER_CACHE_MAX", "256")))
_ARG_NAMES = ("x", "y")
_FLOAT = jnp.result_type(float)


def _euclid_mod(x, y):
    m = jnp.abs(y)
    return x - m * jnp.floor(x / m)


def _gamma_upper(a, x):
    return jsp.gammaincc(a, x) * jnp.exp(jsp.gammaln(a))


_UNARY_FNS = {
    UnaryOp.ABS: jnp.abs,
    UnaryOp.ACOS: jnp.arccos,
    UnaryOp.ACOSH: jnp.arccosh,
    UnaryOp.ASIN: jnp.arcsin,
    UnaryOp.ASINH: jnp.arcsinh,
    UnaryOp.ATAN: jnp.arctan,
    UnaryOp.ATANH: jnp.arctanh,
    UnaryOp.CEIL: jnp.ceil,
    UnaryOp.COS: jnp.cos,
    UnaryOp.COSH: jnp.cosh,
    UnaryOp.DIGAMMA: jsp.digamma,
    UnaryOp.EI: jsp.expi,
    UnaryOp.ERF: jsp.erf,
    UnaryOp.ERFC: jsp.erfc,
    UnaryOp.EXP: jnp.exp,
    UnaryOp.EXP10: lambda x: jnp.power(10.0, x),
    UnaryOp.EXP2: jnp.exp2,
    UnaryOp.FLOOR: jnp.floor,
    UnaryOp.GAMMA: jsp.gamma,
    UnaryOp.LN: jnp.log,
    UnaryOp.LOG10: jnp.log10,
    UnaryOp.NEG: jnp.negative,
    UnaryOp.NOT: jnp.logical_not,
    UnaryOp.ONE: jnp.ones_like,
    UnaryOp.RECIP: jnp.reciprocal,
    UnaryOp.SIN: jnp.sin,
    UnaryOp.SINC: lambda x: jnp.sinc(x / jnp.pi),
    UnaryOp.SINH: jnp.sinh,
    UnaryOp.SQR: jnp.square,
    UnaryOp.SQRT: jnp.sqrt,
    UnaryOp.TAN: jnp.tan,
    UnaryOp.TANH: jnp.tanh,
    UnaryOp.UNDEF_AT_0: lambda x: jnp.where(x == 0, jnp.nan, x),
}

# Operand order follows the node: Atan2(y, x), GammaInc(a, x), Log(b, x).
_BINARY_FNS = {
    BinaryOp.ADD: jnp.add,
    BinaryOp.AND: jnp.logical_and,
    BinaryOp.ATAN2: jnp.arctan2,
    BinaryOp.DIV: jnp.divide,
    BinaryOp.EQ: jnp.equal,
    BinaryOp.GAMMA_INC: _gamma_upper,
    BinaryOp.GE: jnp.greater_equal,
    BinaryOp.GT: jnp.greater,
    BinaryOp.LE: jnp.less_equal,
    BinaryOp.LOG: lambda b, x: jnp.log(x) / jnp.log(b),
    BinaryOp.LT: jnp.less,
    BinaryOp.MAX: jnp.maximum,
    BinaryOp.MIN: jnp.minimum,
    BinaryOp.MOD: _euclid_mod,
    BinaryOp.MUL: jnp.multiply,
    BinaryOp.NEQ: jnp.not_equal,
    BinaryOp.NGE: lambda x, y: jnp.logical_not(x >= y),
    BinaryOp.NGT: lambda x, y: jnp.logical_not(x > y),
    BinaryOp.NLE: lambda x, y: jnp.logical_not(x <= y),
    BinaryOp.NLT: lambda x, y: jnp.logical_not(x < y),
    BinaryOp.OR: jnp.logical_or,
    BinaryOp.POW: jnp.power,
    BinaryOp.SUB: jnp.subtract,
}

_RANKED_OPS = frozenset({BinaryOp.RANKED_MAX, BinaryOp.RANKED_MIN})

_REL_FNS = {
    "Eq": jnp.equal,
    "Ge": jnp.greater_equal,
    "Gt": jnp.greater,
    "Le": jnp.less_equal,
    "Lt": jnp.less,
}


def _unsupported_backend(feature: str) -> UnsupportedError:
    return UnsupportedError(f"No point evaluation available for {feature}")


@dataclass(frozen=True)
class IRNode:
    """Single SSA-like IR node."""

    id: int
    op: str
    inputs: tuple[int, ...] = ()
    value: object | None = None
    name: str | None = None


@dataclass(frozen=True)
class JaxIR:
    """Lowered IR container."""

    nodes: tuple[IRNode, ...]
    output: int
    arg_names: tuple[str, ...] = _ARG_NAMES


class _Lowerer:
    def __init__(self) -> None:
        self.nodes: list[IRNode] = []
        self.shared = 0
        self._arg_nodes: dict[str, int] = {}
        self._expr_cache: dict[Expr, int] = {}

    def _add(self, op: str, *, inputs: tuple[int, ...] = (), value: object | None = None, name: str | None = None) -> int:
        node_id = len(self.nodes)
        self.nodes.append(IRNode(id=node_id, op=op, inputs=inputs, value=value, name=name))
        return node_id

    def _arg(self, name: str) -> int:
        if name in self._arg_nodes:
            return self._arg_nodes[name]
        idx = self._add("arg", name=name)
        self._arg_nodes[name] = idx
        return idx

    def _cache_expr(self, expr: Expr, node_id: int) -> int:
        self._expr_cache[expr] = node_id
        expr.id = node_id
        return node_id

    def lower_rel(self, rel: Rel) -> int:
        if isinstance(rel, Atomic):
            inputs = (self.lower_expr(rel.x), self.lower_expr(rel.y))
            return self._add(f"rel:{rel.op.value}", inputs=inputs)
        if isinstance(rel, And):
            return self._add("and", inputs=(self.lower_rel(rel.x), self.lower_rel(rel.y)))
        if isinstance(rel, Or):
            return self._add("or", inputs=(self.lower_rel(rel.x), self.lower_rel(rel.y)))
        raise InternalContractError(f"not a relation: {type(rel).__name__}")

    def lower_expr(self, expr: Expr) -> int:
        cached = self._expr_cache.get(expr)
        if cached is not None:
            self.shared += 1
            expr.id = cached
            return cached

        kind = expr.kind

        if isinstance(kind, Constant):
            value = kind.value.mid() if kind.value.is_common() else math.nan
            return self._cache_expr(expr, self._add("const", value=value))

        if isinstance(kind, Var):
            if kind.name not in _ARG_NAMES:
                raise _unsupported_backend(f"variable {kind.name!r}")
            return self._cache_expr(expr, self._arg(kind.name))

        if isinstance(kind, Unary):
            if kind.op not in _UNARY_FNS:
                raise _unsupported_backend(kind.op.value)
            x = self.lower_expr(kind.x)
            return self._cache_expr(expr, self._add(f"unary:{kind.op.value}", inputs=(x,)))

        if isinstance(kind, Binary):
            if kind.op in _RANKED_OPS:
                if not isinstance(kind.x.kind, List):
                    raise InternalContractError(f"{kind.op.value} expects a literal list as its left operand")
            elif kind.op not in _BINARY_FNS:
                raise _unsupported_backend(kind.op.value)
            inputs = (self.lower_expr(kind.x), self.lower_expr(kind.y))
            return self._cache_expr(expr, self._add(f"binary:{kind.op.value}", inputs=inputs))

        if isinstance(kind, Pown):
            x = self.lower_expr(kind.x)
            return self._cache_expr(expr, self._add(f"pown:{kind.n}", inputs=(x,)))

        if isinstance(kind, Rootn):
            x = self.lower_expr(kind.x)
            return self._cache_expr(expr, self._add(f"rootn:{kind.n}", inputs=(x,)))

        if isinstance(kind, List):
            items = tuple(self.lower_expr(item) for item in kind.items)
            return self._cache_expr(expr, self._add("list", inputs=items))

        if isinstance(kind, Uninit):
            raise InternalContractError("uninitialized expression reached lowering")

        raise _unsupported_backend(f"node type {type(kind).__name__}")


def _rootn(x, n: int):
    if n % 2:
        return jnp.sign(x) * jnp.power(jnp.abs(x), 1.0 / n)
    return jnp.where(x >= 0, jnp.power(jnp.abs(x), 1.0 / n), jnp.nan)


def _ranked(items, n, *, largest: bool):
    count = items.shape[0]
    shape = jnp.broadcast_shapes(items.shape[1:], jnp.shape(n))
    ordered = jnp.broadcast_to(jnp.sort(items, axis=0), (count, *shape))
    if largest:
        ordered = ordered[::-1]
    n = jnp.broadcast_to(n, shape)
    valid = (n == jnp.floor(n)) & (n >= 1) & (n <= count)
    idx = jnp.clip(jnp.nan_to_num(n, nan=1.0), 1, count).astype(jnp.int32) - 1
    picked = jnp.take_along_axis(ordered, idx[None, ...], axis=0)[0]
    return jnp.where(valid, picked, jnp.nan)


@lru_cache(maxsize=1024)
def _decode_node_op(op: str) -> tuple[str, str]:
    head, sep, tail = op.partition(":")
    if sep:
        return head, tail
    return op, ""


def evaluate_ir(ir: JaxIR, x, y) -> jnp.ndarray:
    """Execute lowered IR at the points `(x, y)`, broadcasting both.

    Relations give boolean arrays. Points outside a function's domain give
    NaN, so every comparison involving them is false.
    """
    args = {"x": jnp.asarray(x, dtype=_FLOAT), "y": jnp.asarray(y, dtype=_FLOAT)}
    values: list[object] = [None] * len(ir.nodes)

    for node in ir.nodes:
        kind, payload = _decode_node_op(node.op)
        inputs = [values[idx] for idx in node.inputs]

        if kind == "arg":
            values[node.id] = args[node.name]
        elif kind == "const":
            values[node.id] = jnp.asarray(node.value, dtype=_FLOAT)
        elif kind == "unary":
            values[node.id] = _UNARY_FNS[UnaryOp(payload)](*inputs)
        elif kind == "binary":
            op = BinaryOp(payload)
            if op in _RANKED_OPS:
                values[node.id] = _ranked(*inputs, largest=op is BinaryOp.RANKED_MAX)
            else:
                values[node.id] = _BINARY_FNS[op](*inputs)
        elif kind == "pown":
            values[node.id] = inputs[0] ** int(payload)
        elif kind == "rootn":
            values[node.id] = _rootn(inputs[0], int(payload))
        elif kind == "list":
            values[node.id] = jnp.stack(jnp.broadcast_arrays(*inputs))
        elif kind == "rel":
            values[node.id] = _REL_FNS[payload](*inputs)
        elif kind == "and":
            values[node.id] = jnp.logical_and(*inputs)
        elif kind == "or":
            values[node.id] = jnp.logical_or(*inputs)
        else:
            raise RigorPlotError(f"Unknown IR op {node.op!r}")

    out = values[ir.output]
    shape = jnp.broadcast_shapes(args["x"].shape, args["y"].shape)
    return jnp.broadcast_to(out, shape)


def _lower_tree(tree: Expr | Rel) -> JaxIR:
    lowerer = _Lowerer()
    if isinstance(tree, Expr):
        out = lowerer.lower_expr(tree)
    else:
        out = lowerer.lower_rel(tree)
    logger.debug("lowered to %d IR nodes, %d shared sub-expressions", len(lowerer.nodes), lowerer.shared)
    return JaxIR(nodes=tuple(lowerer.nodes), output=out)


@lru_cache(maxsize=_LOWER_CACHE_MAX)
def _lower_source_cached(source: str) -> JaxIR:
    return _lower_tree(parse(source))


def lower_to_ir(tree_or_source: Expr | Rel | str) -> JaxIR:
    """Lower a relation (source text or tree) or an expression tree to IR.

    Structurally equal sub-expressions become one node, and every lowered
    `Expr` has its `id` set to that node's index.
    """
    if isinstance(tree_or_source, str):
        return _lower_source_cached(tree_or_source)
    return _lower_tree(tree_or_source)


@dataclass
class CompiledRelation:
    """Callable wrapper around lowered IR with a cached JIT variant."""

    ir: JaxIR
    source: str | None = None
    _jit_fn: object | None = field(default=None, init=False, repr=False)

    def _call_ir(self, x, y):
        return evaluate_ir(self.ir, x, y)

    def __call__(self, x, y):
        return self._call_ir(x, y)

    def trace(self, x, y):
        """Emit the jaxpr for this relation under sample inputs."""
        return jax.make_jaxpr(self._call_ir)(x, y)

    def jit(self):
        if self._jit_fn is None:
            self._jit_fn = jax.jit(self._call_ir)
        return self._jit_fn


def compile_relation(tree_or_source: Expr | Rel | str) -> CompiledRelation:
    source = tree_or_source if isinstance(tree_or_source, str) else None
    return CompiledRelation(ir=lower_to_ir(tree_or_source), source=source)

"""Constant folding of expression trees on two tracks.

Every constant sub-expression folds to an enclosure. Operators with an exact
rational definition also carry an exact rational along whenever all of their
operands have one, and rebuild their enclosure from it instead of going
through floating-point interval arithmetic.
"""

from __future__ import annotations

import logging
from fractions import Fraction
from typing import Callable, Optional, Tuple

from . import interval as iv
from . import rational as rq
from . import special
from .ast import Binary, BinaryOp, Constant, Expr, List, Pown, Rootn, Unary, UnaryOp, Uninit
from .errors import InternalContractError
from .interval import Interval

logger = logging.getLogger(__name__)

Evaluated = Tuple[Interval, Optional[Fraction]]

_EXACT_UNARY: dict[UnaryOp, tuple[Callable[[Interval], Interval], Callable[[Fraction], Optional[Fraction]]]] = {
    UnaryOp.ABS: (iv.abs_, abs),
    UnaryOp.CEIL: (iv.ceil, rq.ceil),
    UnaryOp.FLOOR: (iv.floor, rq.floor),
    UnaryOp.NEG: (iv.neg, lambda q: -q),
    UnaryOp.SQR: (iv.sqr, lambda q: q * q),
}

_UNARY: dict[UnaryOp, Callable[[Interval], Interval]] = {
    UnaryOp.ACOS: special.acos,
    UnaryOp.ACOSH: special.acosh,
    UnaryOp.AIRY_AI: special.airy_ai,
    UnaryOp.AIRY_AI_PRIME: special.airy_ai_prime,
    UnaryOp.AIRY_BI: special.airy_bi,
    UnaryOp.AIRY_BI_PRIME: special.airy_bi_prime,
    UnaryOp.ASIN: special.asin,
    UnaryOp.ASINH: special.asinh,
    UnaryOp.ATAN: special.atan,
    UnaryOp.ATANH: special.atanh,
    UnaryOp.CHI: special.chi,
    UnaryOp.CI: special.ci,
    UnaryOp.COS: special.cos,
    UnaryOp.COSH: special.cosh,
    UnaryOp.DIGAMMA: special.digamma,
    UnaryOp.EI: special.ei,
    UnaryOp.ERF: special.erf,
    UnaryOp.ERFC: special.erfc,
    UnaryOp.ERFI: special.erfi,
    UnaryOp.EXP: special.exp,
    UnaryOp.FRESNEL_C: special.fresnel_c,
    UnaryOp.FRESNEL_S: special.fresnel_s,
    UnaryOp.GAMMA: special.gamma,
    UnaryOp.LI: special.li,
    UnaryOp.LN: special.ln,
    UnaryOp.LOG10: special.log10,
    UnaryOp.ONE: special.one,
    UnaryOp.SHI: special.shi,
    UnaryOp.SI: special.si,
    UnaryOp.SIN: special.sin,
    UnaryOp.SINC: special.sinc,
    UnaryOp.SINH: special.sinh,
    UnaryOp.SQRT: special.sqrt,
    UnaryOp.TAN: special.tan,
    UnaryOp.TANH: special.tanh,
    UnaryOp.UNDEF_AT_0: special.undef_at_0,
}

_EXACT_BINARY: dict[
    BinaryOp,
    tuple[Callable[[Interval, Interval], Interval], Callable[[Fraction, Fraction], Optional[Fraction]]],
] = {
    BinaryOp.ADD: (iv.add, lambda a, b: a + b),
    BinaryOp.DIV: (iv.div, rq.div),
    BinaryOp.GCD: (iv.gcd, rq.gcd),
    BinaryOp.LCM: (iv.lcm, rq.lcm),
    BinaryOp.MAX: (iv.max_, max),
    BinaryOp.MIN: (iv.min_, min),
    BinaryOp.MOD: (iv.rem_euclid, rq.rem_euclid),
    BinaryOp.MUL: (iv.mul, lambda a, b: a * b),
    BinaryOp.POW: (special.pow_, rq.pow_),
    BinaryOp.SUB: (iv.sub, lambda a, b: a - b),
}

# Operand order follows the node: Atan2(y, x), Bessel(n, x), GammaInc(a, x), Log(b, x).
_BINARY: dict[BinaryOp, Callable[[Interval, Interval], Interval]] = {
    BinaryOp.ATAN2: special.atan2,
    BinaryOp.BESSEL_I: special.bessel_i,
    BinaryOp.BESSEL_J: special.bessel_j,
    BinaryOp.BESSEL_K: special.bessel_k,
    BinaryOp.BESSEL_Y: special.bessel_y,
    BinaryOp.GAMMA_INC: special.gamma_inc,
    BinaryOp.LOG: special.log,
}

_RANKED: dict[BinaryOp, Callable] = {
    BinaryOp.RANKED_MAX: iv.ranked_max,
    BinaryOp.RANKED_MIN: iv.ranked_min,
}

_REWRITTEN_UNARY = frozenset({UnaryOp.EXP10, UnaryOp.EXP2, UnaryOp.RECIP})


def _recover_rational(y: Interval) -> Evaluated:
    point = y.to_float()
    return y, (rq.from_float(point) if point is not None else None)


def _exact_result(r: Fraction, *operands: Interval) -> Evaluated:
    decoration = min(x.decoration for x in operands)
    return iv.from_rational(r).with_decoration(decoration), r


def _evaluate_ranked(op: BinaryOp, xs: Expr, n: Expr) -> Evaluated | None:
    if not isinstance(xs.kind, List):
        raise InternalContractError(f"{op.value} expects a literal list as its left operand")
    items = []
    for item in xs.kind.items:
        value = evaluate(item)
        if value is None:
            return None
        items.append(value[0])
    rank = evaluate(n)
    if rank is None:
        return None
    return _RANKED[op](items, rank[0]), None


def evaluate(expr: Expr) -> Evaluated | None:
    """Fold `expr` to `(enclosure, exact rational or None)`.

    Returns None when the expression is not constant (it mentions a variable,
    is a bare list, or is boolean-valued). Raises `InternalContractError` on
    node shapes that must have been rewritten before evaluation.
    """
    kind = expr.kind
    if isinstance(kind, Constant):
        return kind.value, kind.rational

    if isinstance(kind, Unary):
        if kind.op in _REWRITTEN_UNARY:
            raise InternalContractError(f"{kind.op.value} must be rewritten to Pow before evaluation")
        if kind.op in _EXACT_UNARY:
            x = evaluate(kind.x)
            if x is None:
                return None
            f, fq = _EXACT_UNARY[kind.op]
            if x[1] is not None:
                r = fq(x[1])
                if r is not None:
                    return _exact_result(r, x[0])
            return f(x[0]), None
        if kind.op in _UNARY:
            x = evaluate(kind.x)
            if x is None:
                return None
            return _recover_rational(_UNARY[kind.op](x[0]))
        return None

    if isinstance(kind, Binary):
        if kind.op in _RANKED:
            return _evaluate_ranked(kind.op, kind.x, kind.y)
        if kind.op in _EXACT_BINARY:
            x = evaluate(kind.x)
            if x is None:
                return None
            y = evaluate(kind.y)
            if y is None:
                return None
            f, fq = _EXACT_BINARY[kind.op]
            if x[1] is not None and y[1] is not None:
                r = fq(x[1], y[1])
                if r is not None:
                    return _exact_result(r, x[0], y[0])
                logger.debug("exact %s undefined for %s, %s; using enclosures", kind.op.value, x[1], y[1])
            return f(x[0], y[0]), None
        if kind.op in _BINARY:
            x = evaluate(kind.x)
            if x is None:
                return None
            y = evaluate(kind.y)
            if y is None:
                return None
            return _recover_rational(_BINARY[kind.op](x[0], y[0]))
        return None

    if isinstance(kind, Rootn):
        x = evaluate(kind.x)
        if x is None:
            return None
        return _recover_rational(special.rootn(x[0], kind.n))

    if isinstance(kind, Pown):
        raise InternalContractError("Pown must not reach evaluation; Pow is evaluated instead")

    if isinstance(kind, Uninit):
        raise InternalContractError("uninitialized expression reached evaluation")

    return None

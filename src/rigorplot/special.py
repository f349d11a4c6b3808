"""Elementary transcendental and special functions over enclosures.

Values are computed in ball arithmetic and converted back with outward
rounding. Monotone functions are evaluated at the endpoints of the input, which
keeps the result tight; everything else is evaluated over a single ball
covering the input and clipped to the function's known range.
"""

from __future__ import annotations

import math

from . import interval as iv
from .ball import Ball
from .interval import EMPTY, ENTIRE, Decoration, Interval

_INF = math.inf
_REALS = (-_INF, _INF)
_HALF_PI = iv.mul(iv.PI, Interval(0.5, 0.5))
_UNIT = Interval(-1.0, 1.0)
_NONNEGATIVE = Interval(0.0, _INF)


def _at_point(name: str, a: float, *args, **kwargs) -> Interval:
    return Ball.from_point(a).apply(name, *args, **kwargs).to_interval()


def _monotone(
    x: Interval,
    name: str,
    *,
    increasing: bool = True,
    domain: tuple[float, float] = _REALS,
    open_ends: tuple[bool, bool] = (False, False),
    limits: tuple[tuple[float, float], tuple[float, float]] = ((-_INF, -_INF), (_INF, _INF)),
) -> Interval:
    """Image of `x` under a function monotone on `domain`.

    `limits[i]` encloses the function value (or its limit) at `domain[i]` and is
    used whenever that end is infinite or excluded from the domain.
    """
    if x.is_empty():
        return EMPTY
    dom = Interval(*domain)
    y = x.intersection(dom)
    if y.is_empty():
        return EMPTY
    touches_open = (open_ends[0] and y.lo == domain[0]) or (open_ends[1] and y.hi == domain[1])
    if touches_open and y.is_singleton():
        return EMPTY
    op = Decoration.COM if x.subset(dom) and not touches_open else Decoration.TRV

    def value_at(a: float) -> tuple[float, float]:
        for end, is_open, limit in zip(domain, open_ends, limits):
            if a == end and (is_open or math.isinf(a)):
                return limit
        r = _at_point(name, a)
        return r.lo, r.hi

    lo_end, hi_end = value_at(y.lo), value_at(y.hi)
    if increasing:
        lo, hi = lo_end[0], hi_end[1]
    else:
        lo, hi = hi_end[0], lo_end[1]
    return Interval(lo, hi, min(x.decoration, op))


def _over_ball(
    x: Interval,
    name: str,
    *args: Interval,
    domain: Interval = ENTIRE,
    range_: Interval = ENTIRE,
    continuous: bool = True,
    **kwargs,
) -> Interval:
    """Image of `x` computed on one ball covering it, for functions without a monotone shortcut.

    Extra interval arguments are converted to balls and passed after `x`.
    """
    if x.is_empty() or any(arg.is_empty() for arg in args):
        return EMPTY
    y = x.intersection(domain)
    if y.is_empty():
        return EMPTY
    op = Decoration.COM if x.subset(domain) else Decoration.TRV
    decoration = min([x.decoration, *(arg.decoration for arg in args)])
    if not (y.is_common() and all(arg.is_common() for arg in args)):
        op = min(op, Decoration.DAC if continuous else Decoration.TRV)
        return range_.with_decoration(min(decoration, op))
    ball = Ball.from_interval(y).apply(name, *(Ball.from_interval(arg) for arg in args), **kwargs)
    if not ball.is_finite():
        return range_.with_decoration(Decoration.TRV)
    return ball.to_interval().intersection(range_).with_decoration(min(decoration, op))


def exp(x: Interval) -> Interval:
    return _monotone(x, "exp", limits=((0.0, 0.0), (_INF, _INF)))


def ln(x: Interval) -> Interval:
    return _monotone(x, "log", domain=(0.0, _INF), open_ends=(True, False))


def log10(x: Interval) -> Interval:
    return iv.div(ln(x), ln(Interval(10.0, 10.0)))


def log(b: Interval, x: Interval) -> Interval:
    """Logarithm of `x` to base `b`."""
    return iv.div(ln(x), ln(b))


def sqrt(x: Interval) -> Interval:
    return _monotone(x, "sqrt", domain=(0.0, _INF))


def rootn(x: Interval, n: int) -> Interval:
    """Real n-th root: odd `n` on the whole line, even `n` on `[0, inf)`."""
    if x.is_empty() or n <= 0:
        return EMPTY
    if n == 1:
        return x
    if n % 2 == 0:
        return _even_root(x, n)
    lo = _odd_root_point(x.lo, n)[0]
    hi = _odd_root_point(x.hi, n)[1]
    return Interval(lo, hi, x.decoration)


def _root_point(a: float, n: int) -> tuple[float, float]:
    if math.isinf(a):
        return a, a
    r = Ball.from_point(a).apply("root", n).to_interval()
    return r.lo, r.hi


def _odd_root_point(a: float, n: int) -> tuple[float, float]:
    if a < 0:
        lo, hi = _root_point(-a, n)
        return -hi, -lo
    return _root_point(a, n)


def _even_root(x: Interval, n: int) -> Interval:
    y = x.intersection(_NONNEGATIVE)
    if y.is_empty():
        return EMPTY
    op = Decoration.COM if x.lo >= 0 else Decoration.TRV
    return Interval(_root_point(y.lo, n)[0], _root_point(y.hi, n)[1], min(x.decoration, op))


def sin(x: Interval) -> Interval:
    return _over_ball(x, "sin", range_=_UNIT)


def cos(x: Interval) -> Interval:
    return _over_ball(x, "cos", range_=_UNIT)


def tan(x: Interval) -> Interval:
    return _over_ball(x, "tan", continuous=False)


def asin(x: Interval) -> Interval:
    return _monotone(x, "asin", domain=(-1.0, 1.0))


def acos(x: Interval) -> Interval:
    return _monotone(x, "acos", increasing=False, domain=(-1.0, 1.0))


def atan(x: Interval) -> Interval:
    limits = ((-_HALF_PI.hi, -_HALF_PI.lo), (_HALF_PI.lo, _HALF_PI.hi))
    return _monotone(x, "atan", limits=limits)


def atan2(y: Interval, x: Interval) -> Interval:
    """Two-argument arctangent of the point `(x, y)`, in `[-pi, pi]`."""
    range_ = Interval(-iv.PI.hi, iv.PI.hi)
    result = _over_ball(y, "atan2", x, range_=range_, continuous=False)
    if x.contains(0.0) and y.contains(0.0):
        return result.with_decoration(Decoration.TRV)
    if x.lo < 0 and y.contains(0.0):
        # The branch cut on the negative real axis.
        return result.with_decoration(min(result.decoration, Decoration.DEF))
    return result


def sinh(x: Interval) -> Interval:
    return _monotone(x, "sinh")


def cosh(x: Interval) -> Interval:
    return _over_ball(x, "cosh", range_=Interval(1.0, _INF))


def tanh(x: Interval) -> Interval:
    return _monotone(x, "tanh", limits=((-1.0, -1.0), (1.0, 1.0)))


def asinh(x: Interval) -> Interval:
    return _monotone(x, "asinh")


def acosh(x: Interval) -> Interval:
    return _monotone(x, "acosh", domain=(1.0, _INF))


def atanh(x: Interval) -> Interval:
    return _monotone(x, "atanh", domain=(-1.0, 1.0), open_ends=(True, True))


def erf(x: Interval) -> Interval:
    return _monotone(x, "erf", limits=((-1.0, -1.0), (1.0, 1.0)))


def erfc(x: Interval) -> Interval:
    return _monotone(x, "erfc", increasing=False, limits=((2.0, 2.0), (0.0, 0.0)))


def erfi(x: Interval) -> Interval:
    return _monotone(x, "erfi")


def gamma(x: Interval) -> Interval:
    return _over_ball(x, "gamma", continuous=False)


def digamma(x: Interval) -> Interval:
    return _over_ball(x, "digamma", continuous=False)


def sinc(x: Interval) -> Interval:
    """Unnormalized `sin(x) / x`."""
    return _over_ball(x, "sinc", range_=_UNIT)


def si(x: Interval) -> Interval:
    return _over_ball(x, "si", range_=Interval(-2.0, 2.0))


def ci(x: Interval) -> Interval:
    return _over_ball(x, "ci", domain=_NONNEGATIVE, continuous=False)


def shi(x: Interval) -> Interval:
    return _over_ball(x, "shi")


def chi(x: Interval) -> Interval:
    return _over_ball(x, "chi", domain=_NONNEGATIVE, continuous=False)


def ei(x: Interval) -> Interval:
    return _over_ball(x, "ei", continuous=False)


def li(x: Interval) -> Interval:
    return _over_ball(x, "li", domain=_NONNEGATIVE, continuous=False)


def fresnel_s(x: Interval) -> Interval:
    return _over_ball(x, "fresnel_s", range_=_UNIT)


def fresnel_c(x: Interval) -> Interval:
    return _over_ball(x, "fresnel_c", range_=_UNIT)


def airy_ai(x: Interval) -> Interval:
    return _over_ball(x, "airy_ai", range_=_UNIT)


def airy_ai_prime(x: Interval) -> Interval:
    return _over_ball(x, "airy_ai", derivative=1)


def airy_bi(x: Interval) -> Interval:
    return _over_ball(x, "airy_bi")


def airy_bi_prime(x: Interval) -> Interval:
    return _over_ball(x, "airy_bi", derivative=1)


def bessel_j(n: Interval, x: Interval) -> Interval:
    """Bessel function of the first kind `J_n(x)`."""
    return _over_ball(x, "bessel_j", n, continuous=False)


def bessel_y(n: Interval, x: Interval) -> Interval:
    return _over_ball(x, "bessel_y", n, domain=_NONNEGATIVE, continuous=False)


def bessel_i(n: Interval, x: Interval) -> Interval:
    return _over_ball(x, "bessel_i", n, continuous=False)


def bessel_k(n: Interval, x: Interval) -> Interval:
    return _over_ball(x, "bessel_k", n, domain=_NONNEGATIVE, continuous=False)


def gamma_inc(a: Interval, x: Interval) -> Interval:
    """Upper incomplete gamma function `Gamma(a, x)`."""
    return _over_ball(x, "gamma_upper", a, domain=_NONNEGATIVE, continuous=False)


def _pow_corner(a: float, b: float) -> Interval | None:
    if a == 0:
        return iv.ZERO if b > 0 else None
    return Ball.from_point(a).apply("__pow__", Ball.from_point(b)).to_interval()


def pow_(x: Interval, y: Interval) -> Interval:
    """`x ** y`; integer singleton exponents use `pown`, otherwise the base is restricted to `[0, inf)`."""
    if x.is_empty() or y.is_empty():
        return EMPTY
    n = y.to_float()
    if n is not None and n.is_integer() and abs(n) < 2**31:
        result = iv.pown(x, int(n))
        return result.with_decoration(min(result.decoration, y.decoration))
    xr = x.intersection(_NONNEGATIVE)
    if xr.is_empty():
        return EMPTY
    decoration = min(x.decoration, y.decoration)
    if x.lo < 0:
        decoration = Decoration.TRV
    if not (xr.is_common() and y.is_common()) or (xr.lo == 0 and y.lo <= 0):
        return Interval(0.0, _INF, Decoration.TRV)
    corners = [_pow_corner(a, b) for a in (xr.lo, xr.hi) for b in (y.lo, y.hi)]
    lo = min(c.lo for c in corners if c is not None)
    hi = max(c.hi for c in corners if c is not None)
    return Interval(lo, hi, decoration)


def one(x: Interval) -> Interval:
    if x.is_empty():
        return EMPTY
    return Interval(1.0, 1.0, x.decoration)


def undef_at_0(x: Interval) -> Interval:
    """Identity everywhere except at 0, where it is undefined."""
    if x.is_empty() or (x.lo == 0 and x.hi == 0):
        return EMPTY
    if x.contains(0.0):
        return x.with_decoration(Decoration.TRV)
    return x

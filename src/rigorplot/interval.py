"""Decorated enclosures of real sets with outward-rounded binary64 bounds.

Endpoints are computed exactly as rationals and then rounded outward, so every
operation here returns a superset of the true image of its inputs. Decorations
follow the IEEE 1788 lattice and are carried as the minimum of the operand
decorations and the decoration of the operation itself.
"""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass
from enum import IntEnum
from fractions import Fraction
from typing import Sequence

from . import rational

DOWN = "down"
UP = "up"
NEAREST = "nearest"

_MAX_FLOAT = sys.float_info.max


class Decoration(IntEnum):
    ILL = 0
    TRV = 4
    DEF = 8
    DAC = 12
    COM = 16


def round_rational(q: Fraction, rounding: str) -> float:
    """Round an exact rational to binary64 toward -inf (`DOWN`), +inf (`UP`) or to nearest."""
    try:
        f = q.numerator / q.denominator
    except OverflowError:
        if q > 0:
            return _MAX_FLOAT if rounding == DOWN else math.inf
        return -_MAX_FLOAT if rounding == UP else -math.inf

    if rounding == DOWN and Fraction(f) > q:
        f = math.nextafter(f, -math.inf)
    elif rounding == UP and Fraction(f) < q:
        f = math.nextafter(f, math.inf)
    return f + 0.0


@dataclass(frozen=True)
class Interval:
    """Closed interval `[lo, hi]` of extended reals with a decoration.

    Any `lo > hi` (or NaN bound) normalizes to the empty set. Unbounded
    intervals never carry COM.
    """

    lo: float
    hi: float
    decoration: Decoration = Decoration.COM

    def __post_init__(self) -> None:
        lo, hi = self.lo, self.hi
        if math.isnan(lo) or math.isnan(hi) or lo > hi or lo == math.inf or hi == -math.inf:
            object.__setattr__(self, "lo", math.inf)
            object.__setattr__(self, "hi", -math.inf)
            object.__setattr__(self, "decoration", Decoration.TRV)
            return
        object.__setattr__(self, "lo", float(lo) + 0.0)
        object.__setattr__(self, "hi", float(hi) + 0.0)
        decoration = Decoration(self.decoration)
        if math.isinf(lo) or math.isinf(hi):
            decoration = min(decoration, Decoration.DAC)
        object.__setattr__(self, "decoration", decoration)

    def __str__(self) -> str:
        if self.is_empty():
            return f"[empty]_{self.decoration.name.lower()}"
        return f"[{self.lo!r}, {self.hi!r}]_{self.decoration.name.lower()}"

    def is_empty(self) -> bool:
        return self.lo > self.hi

    def is_common(self) -> bool:
        """Non-empty and bounded."""
        return not self.is_empty() and math.isfinite(self.lo) and math.isfinite(self.hi)

    def is_singleton(self) -> bool:
        return self.lo == self.hi

    def contains(self, value: float | Fraction) -> bool:
        if self.is_empty():
            return False
        if isinstance(value, Fraction):
            lo_ok = self.lo == -math.inf or Fraction(self.lo) <= value
            hi_ok = self.hi == math.inf or value <= Fraction(self.hi)
            return lo_ok and hi_ok
        return self.lo <= value <= self.hi

    def subset(self, other: Interval) -> bool:
        if self.is_empty():
            return True
        if other.is_empty():
            return False
        return other.lo <= self.lo and self.hi <= other.hi

    def with_decoration(self, decoration: Decoration) -> Interval:
        return Interval(self.lo, self.hi, decoration)

    def mid(self) -> float:
        """Midpoint rounded to nearest; infinite bounds saturate to the largest finite float."""
        if self.is_empty():
            return math.nan
        if self.lo == -math.inf:
            return 0.0 if self.hi == math.inf else -_MAX_FLOAT
        if self.hi == math.inf:
            return _MAX_FLOAT
        return round_rational((Fraction(self.lo) + Fraction(self.hi)) / 2, NEAREST)

    def rad(self) -> float:
        """Radius rounded up so that `[mid - rad, mid + rad]` covers the interval."""
        if self.is_empty():
            return math.nan
        if not self.is_common():
            return math.inf
        m = Fraction(self.mid())
        return round_rational(max(m - Fraction(self.lo), Fraction(self.hi) - m), UP)

    def to_float(self) -> float | None:
        """The value of a finite singleton, otherwise None."""
        if self.lo == self.hi and math.isfinite(self.lo):
            return self.lo
        return None

    def hull(self, other: Interval) -> Interval:
        if self.is_empty():
            return other
        if other.is_empty():
            return self
        return Interval(
            min(self.lo, other.lo),
            max(self.hi, other.hi),
            min(self.decoration, other.decoration),
        )

    def intersection(self, other: Interval) -> Interval:
        return Interval(
            max(self.lo, other.lo),
            min(self.hi, other.hi),
            min(self.decoration, other.decoration),
        )


EMPTY = Interval(math.inf, -math.inf, Decoration.TRV)
ENTIRE = Interval(-math.inf, math.inf, Decoration.DAC)
ZERO = Interval(0.0, 0.0)
ONE = Interval(1.0, 1.0)
# math.pi and math.e are the nearest doubles below the true constants.
PI = Interval(math.pi, math.nextafter(math.pi, math.inf))
E = Interval(math.e, math.nextafter(math.e, math.inf))


def from_float(value: float) -> Interval:
    return Interval(value, value)


def from_rational(q: Fraction) -> Interval:
    """Tightest binary64 enclosure of an exact rational."""
    return Interval(round_rational(q, DOWN), round_rational(q, UP))


def from_decimal(text: str) -> Interval:
    """Enclosure of the decimal numeral `text`, converted exactly before rounding outward."""
    return from_rational(Fraction(text))


def _dec(*xs: Interval, op: Decoration = Decoration.COM) -> Decoration:
    return min([op, *(x.decoration for x in xs)])


def _add_round(a: float, b: float, rounding: str) -> float:
    if math.isinf(a) or math.isinf(b):
        return a + b
    return round_rational(Fraction(a) + Fraction(b), rounding)


def _mul_round(a: float, b: float, rounding: str) -> float:
    if a == 0 or b == 0:
        return 0.0
    if math.isinf(a) or math.isinf(b):
        return a * b
    return round_rational(Fraction(a) * Fraction(b), rounding)


def _div_round(a: float, b: float, rounding: str) -> float:
    if math.isinf(b):
        return math.nan if math.isinf(a) else 0.0
    if math.isinf(a):
        return a if b > 0 else -a
    return round_rational(Fraction(a) / Fraction(b), rounding)


def _pow_round(a: float, n: int, rounding: str) -> float:
    """`a ** n` for n >= 1, rounded in the given direction by directed square-and-multiply."""
    if a < 0:
        flipped = UP if rounding == DOWN else DOWN
        magnitude = _pow_round(-a, n, flipped if n % 2 else rounding)
        return -magnitude if n % 2 else magnitude
    result = 1.0
    base = a
    while n:
        if n & 1:
            result = _mul_round(result, base, rounding)
        n >>= 1
        if n:
            base = _mul_round(base, base, rounding)
    return result


def neg(x: Interval) -> Interval:
    return Interval(-x.hi, -x.lo, x.decoration)


def abs_(x: Interval) -> Interval:
    if x.is_empty():
        return EMPTY
    if x.lo >= 0:
        return x
    if x.hi <= 0:
        return neg(x)
    return Interval(0.0, max(-x.lo, x.hi), x.decoration)


def add(x: Interval, y: Interval) -> Interval:
    if x.is_empty() or y.is_empty():
        return EMPTY
    return Interval(_add_round(x.lo, y.lo, DOWN), _add_round(x.hi, y.hi, UP), _dec(x, y))


def sub(x: Interval, y: Interval) -> Interval:
    return add(x, neg(y))


def mul(x: Interval, y: Interval) -> Interval:
    if x.is_empty() or y.is_empty():
        return EMPTY
    corners = ((x.lo, y.lo), (x.lo, y.hi), (x.hi, y.lo), (x.hi, y.hi))
    lo = min(_mul_round(a, b, DOWN) for a, b in corners)
    hi = max(_mul_round(a, b, UP) for a, b in corners)
    return Interval(lo, hi, _dec(x, y))


def recip(x: Interval) -> Interval:
    if x.is_empty() or (x.lo == 0 and x.hi == 0):
        return EMPTY
    if x.lo > 0 or x.hi < 0:
        return Interval(_div_round(1.0, x.hi, DOWN), _div_round(1.0, x.lo, UP), x.decoration)
    if x.lo == 0:
        return Interval(_div_round(1.0, x.hi, DOWN), math.inf, Decoration.TRV)
    if x.hi == 0:
        return Interval(-math.inf, _div_round(1.0, x.lo, UP), Decoration.TRV)
    return ENTIRE.with_decoration(Decoration.TRV)


def div(x: Interval, y: Interval) -> Interval:
    if x.is_empty() or y.is_empty() or (y.lo == 0 and y.hi == 0):
        return EMPTY
    if y.contains(0.0):
        return ENTIRE.with_decoration(Decoration.TRV)
    corners = ((x.lo, y.lo), (x.lo, y.hi), (x.hi, y.lo), (x.hi, y.hi))
    lows = [v for v in (_div_round(a, b, DOWN) for a, b in corners) if not math.isnan(v)]
    highs = [v for v in (_div_round(a, b, UP) for a, b in corners) if not math.isnan(v)]
    return Interval(min(lows), max(highs), _dec(x, y))


def pown(x: Interval, n: int) -> Interval:
    """`x ** n` for an integer exponent."""
    if x.is_empty():
        return EMPTY
    if n == 0:
        return Interval(1.0, 1.0, x.decoration)
    if n < 0:
        return recip(pown(x, -n)).with_decoration(
            _dec(x, op=Decoration.TRV if x.contains(0.0) else Decoration.COM)
        )
    if n % 2:
        return Interval(_pow_round(x.lo, n, DOWN), _pow_round(x.hi, n, UP), x.decoration)
    mag = abs_(x)
    return Interval(_pow_round(mag.lo, n, DOWN), _pow_round(mag.hi, n, UP), x.decoration)


def sqr(x: Interval) -> Interval:
    return pown(x, 2)


def _step(x: Interval, fn, edge: float) -> Interval:
    """Step function over `x`; `edge` is the endpoint that may sit on a jump."""
    if x.is_empty():
        return EMPTY
    lo = x.lo if math.isinf(x.lo) else float(fn(x.lo))
    hi = x.hi if math.isinf(x.hi) else float(fn(x.hi))
    if lo != hi:
        return Interval(lo, hi, _dec(x, op=Decoration.DEF))
    # Continuous on `x` but not in any neighborhood of an integer edge.
    if math.isfinite(edge) and edge == math.floor(edge):
        return Interval(lo, hi, _dec(x, op=Decoration.DAC))
    return Interval(lo, hi, x.decoration)


def floor(x: Interval) -> Interval:
    return _step(x, math.floor, x.lo)


def ceil(x: Interval) -> Interval:
    return _step(x, math.ceil, x.hi)


def max_(x: Interval, y: Interval) -> Interval:
    if x.is_empty() or y.is_empty():
        return EMPTY
    return Interval(max(x.lo, y.lo), max(x.hi, y.hi), _dec(x, y))


def min_(x: Interval, y: Interval) -> Interval:
    if x.is_empty() or y.is_empty():
        return EMPTY
    return Interval(min(x.lo, y.lo), min(x.hi, y.hi), _dec(x, y))


def rem_euclid(x: Interval, y: Interval) -> Interval:
    """Euclidean remainder `x - |y| floor(x / |y|)`, which lies in `[0, |y|)`."""
    if x.is_empty() or y.is_empty():
        return EMPTY
    m = abs_(y)
    if m.hi == 0:
        return EMPTY
    if m.lo == 0:
        return Interval(0.0, m.hi, Decoration.TRV)
    wrapped = Interval(0.0, m.hi, _dec(x, y, op=Decoration.DEF))
    if not (m.is_singleton() and x.is_common()):
        return wrapped
    q = Fraction(m.lo)
    k_lo = math.floor(Fraction(x.lo) / q)
    k_hi = math.floor(Fraction(x.hi) / q)
    if k_lo != k_hi:
        return wrapped
    shift = k_lo * q
    return Interval(
        round_rational(Fraction(x.lo) - shift, DOWN),
        round_rational(Fraction(x.hi) - shift, UP),
        _dec(x, y),
    )


def _max_magnitude(x: Interval) -> float:
    return max(abs(x.lo), abs(x.hi))


def gcd(x: Interval, y: Interval) -> Interval:
    if x.is_empty() or y.is_empty():
        return EMPTY
    if x.is_singleton() and y.is_singleton() and x.is_common() and y.is_common():
        return from_rational(rational.gcd(Fraction(x.lo), Fraction(y.lo))).with_decoration(_dec(x, y))
    return Interval(0.0, max(_max_magnitude(x), _max_magnitude(y)), Decoration.TRV)


def lcm(x: Interval, y: Interval) -> Interval:
    if x.is_empty() or y.is_empty():
        return EMPTY
    if x.is_singleton() and y.is_singleton() and x.is_common() and y.is_common():
        return from_rational(rational.lcm(Fraction(x.lo), Fraction(y.lo))).with_decoration(_dec(x, y))
    return Interval(0.0, math.inf, Decoration.TRV)


def _valid_ranks(n: Interval, count: int) -> tuple[list[int], bool]:
    """Integer ranks in `[1, count]` that `n` may take, and whether `n` may take any other value."""
    if n.is_empty() or count == 0:
        return [], True
    first = max(1, math.ceil(n.lo)) if math.isfinite(n.lo) else 1
    last = min(count, math.floor(n.hi)) if math.isfinite(n.hi) else count
    ranks = list(range(first, last + 1))
    exact = n.is_singleton() and len(ranks) == 1
    return ranks, not exact


def _ranked(xs: Sequence[Interval], n: Interval, *, largest: bool) -> Interval:
    if n.is_empty() or any(x.is_empty() for x in xs):
        return EMPTY
    count = len(xs)
    ranks, partial = _valid_ranks(n, count)
    if not ranks:
        return EMPTY
    lows = sorted(x.lo for x in xs)
    highs = sorted(x.hi for x in xs)
    result = EMPTY
    for k in ranks:
        index = count - k if largest else k - 1
        result = result.hull(Interval(lows[index], highs[index]))
    op = Decoration.TRV if partial else Decoration.COM
    return result.with_decoration(_dec(n, *xs, op=op))


def ranked_min(xs: Sequence[Interval], n: Interval) -> Interval:
    """n-th smallest of `xs`, 1-based."""
    return _ranked(xs, n, largest=False)


def ranked_max(xs: Sequence[Interval], n: Interval) -> Interval:
    """n-th largest of `xs`, 1-based."""
    return _ranked(xs, n, largest=True)

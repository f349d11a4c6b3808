"""Ball arithmetic backend built on python-flint's `arb` and `acb`.

A ball is a midpoint with a radius stored as a magnitude of `MAG_BITS`
mantissa bits. Conversions to and from `Interval` always round outward, so
the real set represented on either side of a conversion is contained in the
result. This is the only module that talks to `flint`; it never touches the
global `flint.ctx`.
"""

from __future__ import annotations

import math
import sys
from fractions import Fraction

from flint import acb, arb

from .interval import DOWN, ENTIRE, UP, Interval, round_rational

MAG_BITS = 30

# Binary exponents beyond this are far outside binary64 (2**1024 and 2**-1074).
_EXP_LIMIT = 1100
_MAX_FLOAT = sys.float_info.max
_MIN_SUBNORMAL = math.ldexp(1.0, -1074)


def _saturate(positive: bool, huge: bool, rounding: str) -> float:
    """Outward binary64 bound for a value too large or too small to build exactly."""
    if huge:
        if positive:
            return math.inf if rounding == UP else _MAX_FLOAT
        return -_MAX_FLOAT if rounding == UP else -math.inf
    if positive:
        return _MIN_SUBNORMAL if rounding == UP else 0.0
    return 0.0 if rounding == UP else -_MIN_SUBNORMAL


def _endpoint(terms, rounding: str, prec: int) -> float:
    """Round the exact sum of `(man, exp)` terms outward to `prec` bits, then binary64.

    Terms are rescaled so the largest one has a small exponent; terms that fall
    below `2**-_EXP_LIMIT` after rescaling are replaced by a bound on the
    outward side, so no intermediate rational grows with the arb exponent.
    """
    terms = [(int(man), int(exp)) for man, exp in terms if man != 0]
    if not terms:
        return 0.0
    top = max(abs(man).bit_length() + exp for man, exp in terms)
    shift = 0 if -_EXP_LIMIT <= top <= _EXP_LIMIT else top
    nudge = Fraction(1, 2**_EXP_LIMIT)

    total = Fraction(0)
    for man, exp in terms:
        exp -= shift
        if abs(man).bit_length() + exp < -_EXP_LIMIT:
            if rounding == DOWN and man < 0:
                total -= nudge
            elif rounding == UP and man > 0:
                total += nudge
            continue
        total += man * Fraction(2) ** exp

    if total == 0:
        return 0.0
    magnitude = abs(total.numerator).bit_length() - total.denominator.bit_length() + shift
    if magnitude > _EXP_LIMIT or magnitude < -_EXP_LIMIT:
        return _saturate(total > 0, magnitude > 0, rounding)
    value = total * Fraction(2) ** shift
    if prec < 53:
        value = _round_bits(value, prec, rounding)
    return round_rational(value, rounding)


def _round_bits(q: Fraction, bits: int, rounding: str) -> Fraction:
    """Round `q` to a `bits`-bit binary mantissa in the given direction."""
    if q == 0:
        return q
    e = abs(q.numerator).bit_length() - q.denominator.bit_length()
    if abs(q) < Fraction(2) ** e:
        e -= 1
    scale = Fraction(2) ** (bits - 1 - e)
    scaled = q * scale
    m = math.floor(scaled) if rounding == DOWN else math.ceil(scaled)
    return Fraction(m) / scale


def _mag_upper(rad: float) -> float:
    """Smallest float with a `MAG_BITS`-bit mantissa that is at least `rad`."""
    if rad == 0:
        return 0.0
    m, e = math.frexp(rad)
    man = math.ceil(m * 2**MAG_BITS)
    if man == 2**MAG_BITS:
        man = 2 ** (MAG_BITS - 1)
        e += 1
    try:
        return math.ldexp(man, e - MAG_BITS)
    except OverflowError:
        return math.inf


class Ball:
    """Real ball `[mid +/- rad]` owning one `arb` value."""

    __slots__ = ("_value",)

    def __init__(self, value: arb | None = None) -> None:
        self._value = arb(0) if value is None else value

    def __repr__(self) -> str:
        return f"Ball({self._value.str(radius=True)})"

    def __contains__(self, value: float) -> bool:
        return bool(self._value.contains(arb(value)))

    def __copy__(self) -> Ball:
        return self.clone()

    def __deepcopy__(self, memo) -> Ball:
        return self.clone()

    @classmethod
    def zero(cls) -> Ball:
        return cls(arb(0))

    @classmethod
    def from_point(cls, value: float) -> Ball:
        return cls(arb(value))

    @classmethod
    def from_decimal(cls, text: str) -> Ball:
        return cls(arb(text))

    @classmethod
    def from_interval(cls, x: Interval) -> Ball:
        """Ball containing `x`; empty or unbounded input gives `0 +/- inf`."""
        if not x.is_common():
            return cls(arb(0, math.inf))
        return cls(arb(x.mid(), _mag_upper(x.rad())))

    @property
    def raw(self) -> arb:
        return self._value

    def clone(self) -> Ball:
        return Ball(arb(self._value))

    def is_finite(self) -> bool:
        return bool(self._value.is_finite())

    def apply(self, name: str, *args, **kwargs) -> Ball:
        """Call the `arb` function `name` with this ball as its first argument.

        Ball arguments are unwrapped; anything else is passed through unchanged.
        """
        fn = getattr(arb, name)
        unwrapped = (arg._value if isinstance(arg, Ball) else arg for arg in args)
        return Ball(fn(self._value, *unwrapped, **kwargs))

    def to_interval(self, prec: int = 53) -> Interval:
        """Outward-rounded enclosure of the ball at `prec` bits, then binary64."""
        if not self.is_finite():
            return ENTIRE
        mid = self._value.mid().man_exp()
        man, exp = self._value.rad().man_exp()
        lo = _endpoint((mid, (-int(man), exp)), DOWN, prec)
        hi = _endpoint((mid, (man, exp)), UP, prec)
        result = Interval(lo, hi)
        if result.is_empty():
            return ENTIRE
        return result


class ComplexBall:
    """Complex ball owning one `acb` value."""

    __slots__ = ("_value",)

    def __init__(self, value: acb | None = None) -> None:
        self._value = acb(0) if value is None else value

    def __repr__(self) -> str:
        return f"ComplexBall({self._value.str(radius=True)})"

    @classmethod
    def from_ball(cls, ball: Ball) -> ComplexBall:
        return cls(acb(ball.raw))

    @property
    def raw(self) -> acb:
        return self._value

    def clone(self) -> ComplexBall:
        return ComplexBall(acb(self._value))

    def real(self) -> Ball:
        return Ball(arb(self._value.real))

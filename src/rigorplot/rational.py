"""Exact rational counterparts of the exact-aware operators.

Each helper returns `None` when the exact result is undefined or too large to
be worth computing; callers then fall back to enclosure arithmetic.
"""

from __future__ import annotations

import math
import os
from fractions import Fraction

_MAX_EXACT_POW_BITS = max(1, int(os.environ.get("RIGORPLOT_MAX_EXACT_POW_BITS", "65536")))
_I32_MIN = -(2**31)
_I32_MAX = 2**31 - 1


def from_float(value: float) -> Fraction | None:
    if not math.isfinite(value):
        return None
    return Fraction(value)


def div(x: Fraction, y: Fraction) -> Fraction | None:
    if y == 0:
        return None
    return x / y


def gcd(x: Fraction, y: Fraction) -> Fraction:
    """Largest rational dividing both operands an integral number of times."""
    return Fraction(math.gcd(x.numerator, y.numerator), math.lcm(x.denominator, y.denominator))


def lcm(x: Fraction, y: Fraction) -> Fraction:
    if x == 0 or y == 0:
        return Fraction(0)
    return Fraction(math.lcm(x.numerator, y.numerator), math.gcd(x.denominator, y.denominator))


def rem_euclid(x: Fraction, y: Fraction) -> Fraction | None:
    if y == 0:
        return None
    m = abs(y)
    return x - m * math.floor(x / m)


def pow_(x: Fraction, y: Fraction) -> Fraction | None:
    if y.denominator != 1:
        return None
    n = y.numerator
    if not _I32_MIN <= n <= _I32_MAX:
        return None
    if x == 0 and n < 0:
        return None
    size = abs(n) * max(x.numerator.bit_length(), x.denominator.bit_length())
    if size > _MAX_EXACT_POW_BITS:
        return None
    return x**n


def floor(x: Fraction) -> Fraction:
    return Fraction(math.floor(x))


def ceil(x: Fraction) -> Fraction:
    return Fraction(math.ceil(x))

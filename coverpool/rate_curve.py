"""
rate_curve.py - Fixed-Point Utilization Rate Curve

A rate curve maps pool utilization (utilized / total) to an annualized
premium rate. It is a polynomial in powers-of-two of the utilization ratio:

    rate(u) = (c0 + c1*u + c2*u^2 + c3*u^4 + ... + c7*u^128) / 100  per year

Each coefficient ci is a weight in 0..255 and the weights sum to exactly 100,
so the curve reaches a 100% annual rate at full utilization. Successive
powers are produced by repeated fixed-point squaring, which lets eight small
weights describe concave and convex shapes.

The curve can also be carried as a single packed integer word where
coefficient i occupies bits 8*i .. 8*i+7.

All functions are pure and use integer arithmetic with BASE = 10**18.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple

from .core import (
    BASE, SECONDS_PER_YEAR, MAX_COEFFICIENTS, MAX_COEFFICIENT, COEFFICIENT_SUM,
    InvalidCoefficients,
)


def _trim(weights: Tuple[int, ...]) -> Tuple[int, ...]:
    """Drop trailing zero weights."""
    end = len(weights)
    while end > 0 and weights[end - 1] == 0:
        end -= 1
    return weights[:end]


@dataclass(frozen=True, slots=True)
class RateCurve:
    """
    Immutable, validated set of curve weights.

    Attributes:
        weights: Coefficients c0..cN in increasing power order, trimmed of
                 trailing zeros.

    Example:
        linear = RateCurve((0, 100))
        linear.evaluate(100, 1000)   # 10% utilization -> 10%/year per second
    """
    weights: Tuple[int, ...]

    def __post_init__(self):
        weights = tuple(self.weights)
        if len(weights) > MAX_COEFFICIENTS:
            raise InvalidCoefficients(
                f"at most {MAX_COEFFICIENTS} coefficients allowed, got {len(weights)}"
            )
        for c in weights:
            if isinstance(c, bool) or not isinstance(c, int):
                raise InvalidCoefficients(f"coefficient must be an int, got {c!r}")
            if c < 0 or c > MAX_COEFFICIENT:
                raise InvalidCoefficients(f"coefficient {c} outside 0..{MAX_COEFFICIENT}")
        if sum(weights) != COEFFICIENT_SUM:
            raise InvalidCoefficients(
                f"coefficients must sum to {COEFFICIENT_SUM}, got {sum(weights)}"
            )
        object.__setattr__(self, 'weights', _trim(weights))

    @classmethod
    def from_packed(cls, word: int) -> RateCurve:
        """
        Decode a packed coefficient word.

        Raises:
            InvalidCoefficients: If the word is negative, wider than eight
                bytes, or decodes to weights that do not sum to 100.
        """
        if word < 0 or word >> (8 * MAX_COEFFICIENTS):
            raise InvalidCoefficients(f"packed word {word:#x} outside {MAX_COEFFICIENTS} bytes")
        return cls(tuple((word >> (8 * i)) & 0xFF for i in range(MAX_COEFFICIENTS)))

    @property
    def packed(self) -> int:
        """The weights encoded as one integer word."""
        word = 0
        for i, c in enumerate(self.weights):
            word |= c << (8 * i)
        return word

    def coefficients(self) -> Tuple[int, ...]:
        """Return the stored weights without trailing padding."""
        return self.weights

    def evaluate(self, utilized: int, total: int) -> int:
        """
        Per-second premium rate at the given utilization, scaled by BASE.

        Args:
            utilized: Coverage in use (after the purchase being priced)
            total: Pool reserves backing the coverage

        Returns:
            0 when nothing is utilized, BASE when utilized exceeds total,
            otherwise the curve value divided by (SECONDS_PER_YEAR * 100).
        """
        if utilized == 0:
            return 0
        if utilized > total:
            return BASE

        term = BASE * utilized // total
        result = self.weights[0] * BASE
        for c in self.weights[1:]:
            if c != 0:
                result += c * term
            term = term * term // BASE

        return result // (SECONDS_PER_YEAR * COEFFICIENT_SUM)

    def __repr__(self) -> str:
        return f"RateCurve({list(self.weights)})"

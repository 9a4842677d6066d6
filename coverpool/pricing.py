"""
pricing.py - Premium Pricing

Pure pricing function deriving a premium from coverage amount, duration and
current pool utilization. The rate is read from the pool's RateCurve at the
utilization the pool would have *after* the purchase, so large purchases pay
for the capacity they consume.

    premium = coverage_amount * rate(utilized + coverage_amount, reserves) * duration / BASE
"""

from __future__ import annotations

from .core import (
    BASE, DEFAULT_MAX_COVERAGE_DURATION,
    DurationExceeded, checked_u128,
)
from .rate_curve import RateCurve


def price(
    curve: RateCurve,
    coverage_amount: int,
    duration: int,
    utilized: int,
    reserves: int,
    max_duration: int = DEFAULT_MAX_COVERAGE_DURATION,
) -> int:
    """
    Compute the premium for a prospective protection. No state is touched.

    Args:
        curve: The pool's rate curve
        coverage_amount: Amount of coverage requested
        duration: Coverage length in seconds
        utilized: Coverage currently sold by the pool
        reserves: Capital currently backing the pool
        max_duration: Longest duration the pool sells

    Returns:
        Premium in pay-asset base units, floored.

    Raises:
        DurationExceeded: If duration > max_duration
        CastOverflow: If utilized + coverage_amount leaves the uint128 domain

    Example:
        curve = RateCurve((0, 100))
        price(curve, 100 * 10**18, 86_400, 0, 1000 * 10**18)
    """
    if duration > max_duration:
        raise DurationExceeded(f"duration {duration}s exceeds maximum {max_duration}s")

    new_utilized = checked_u128(utilized + coverage_amount, "utilized")
    rate = curve.evaluate(new_utilized, reserves)
    return coverage_amount * rate * duration // BASE

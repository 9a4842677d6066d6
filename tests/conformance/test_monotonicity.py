"""
Monotonicity Conformance Tests

INVARIANT: Prices and accumulators only move one way.

    u1 <= u2  ⟹  rate(u1) <= rate(u2)
    c1 <= c2  ⟹  premium(c1) <= premium(c2)
    total_protection_seconds and premiums_accum never decrease

The curve check runs on a dense numpy grid as well as on hypothesis samples.
"""

import numpy as np
import pytest
from hypothesis import given, settings, HealthCheck
from hypothesis import strategies as st

from coverpool import BASE, SECONDS_PER_DAY, RateCurve, price

from tests.helpers import make_pool, fund
from tests.conformance.strategies import curve_weights, operation, apply


CURVES = [
    (100,),
    (0, 100),
    (0, 0, 100),
    (0, 0, 0, 0, 0, 0, 0, 100),
    (10, 20, 30, 40),
    (50, 0, 0, 50),
]


class TestCurveGrid:
    """Dense grid checks of well-known curve shapes."""

    @pytest.mark.parametrize("weights", CURVES)
    def test_rate_non_decreasing_on_grid(self, weights):
        curve = RateCurve(weights)
        total = 10 ** 6
        grid = np.linspace(0, total, 501).astype(np.int64)
        rates = np.array([curve.evaluate(int(u), total) for u in grid], dtype=np.int64)

        assert np.all(np.diff(rates) >= 0)
        assert rates[0] == 0

    @pytest.mark.parametrize("weights", CURVES)
    def test_full_utilization_rate_is_shape_independent(self, weights):
        """All weights sum to 100, so every curve hits 100%/year at full use."""
        rate = RateCurve(weights).evaluate(1, 1)
        assert rate == 100 * BASE // (365 * SECONDS_PER_DAY * 100)

    def test_convexity_ordering(self):
        """Higher powers are cheaper at partial utilization."""
        total = 1_000
        grid = np.arange(1, total)
        linear = np.array([RateCurve((0, 100)).evaluate(int(u), total) for u in grid])
        convex = np.array([RateCurve((0, 0, 100)).evaluate(int(u), total) for u in grid])
        assert np.all(convex <= linear)


class TestCurveProperties:
    """Property-based curve and premium tests."""

    @given(curve_weights(), st.integers(1, 10 ** 30),
           st.integers(0, 10 ** 30), st.integers(0, 10 ** 30))
    @settings(max_examples=300)
    def test_rate_monotone(self, weights, total, a, b):
        """
        PROPERTY: evaluate is non-decreasing in utilized.
        """
        curve = RateCurve(weights)
        lo, hi = sorted((a, b))
        assert curve.evaluate(lo, total) <= curve.evaluate(hi, total)

    @given(curve_weights(), st.integers(1, 10 ** 24), st.integers(1, 10 ** 24),
           st.integers(1, 365 * SECONDS_PER_DAY))
    @settings(max_examples=200)
    def test_premium_monotone_in_coverage(self, weights, c1, c2, duration):
        """
        PROPERTY: More coverage never costs less.
        """
        curve = RateCurve(weights)
        lo, hi = sorted((c1, c2))
        reserves = 10 ** 25
        assert price(curve, lo, duration, 0, reserves) <= price(curve, hi, duration, 0, reserves)

    @given(curve_weights())
    def test_packed_round_trip(self, weights):
        curve = RateCurve(weights)
        assert RateCurve.from_packed(curve.packed) == curve


class TestAccumulators:
    """Accumulators never decrease across arbitrary operation sequences."""

    @given(st.lists(operation, min_size=1, max_size=30))
    @settings(max_examples=50, deadline=None,
              suppress_health_check=[HealthCheck.too_slow])
    def test_accumulators_non_decreasing(self, ops):
        """
        PROPERTY: total_protection_seconds and premiums_accum are monotone.
        """
        pool, asset = make_pool()
        fund(asset, "lp1", "lp2", "b1", "b2")

        tps = pool.total_protection_seconds
        accum = pool.premiums_accum
        for op in ops:
            apply(pool, op)
            assert pool.total_protection_seconds >= tps
            assert pool.premiums_accum >= accum
            tps = pool.total_protection_seconds
            accum = pool.premiums_accum

"""
test_lifecycle.py - Unit tests for find_sweepable and SweepEngine
"""

import pytest

from coverpool import (
    PoolPolicy, Protection, ProtectionStatus, RECORD_SWEEP,
    find_sweepable, SweepEngine,
)

from tests.fake_view import FakeView
from tests.helpers import T0, DAY, UNIT, buy


class TestFindSweepable:

    def _view(self, time, settlements=None, cooldown=100):
        protections = [
            Protection(100, 1, "a", 0, 1_000, 0),
            Protection(100, 1, "b", 0, 5_000, 0),
            Protection(100, 1, "c", 0, 1_000, 1),
            Protection(100, 1, "d", 0, 1_000, 0, status=ProtectionStatus.CLAIMED),
        ]
        return FakeView(
            protections=protections,
            settlements=settlements or {},
            time=time,
            policy=PoolPolicy(cooldown_period=cooldown),
        )

    def test_nothing_before_cooldown(self):
        assert find_sweepable(self._view(1_100), 1_100) == []

    def test_after_cooldown(self):
        assert find_sweepable(self._view(1_101), 1_101) == [0, 2]

    def test_settlement_excludes(self):
        view = self._view(1_101, settlements={1: [500]})
        assert find_sweepable(view, 1_101) == [0]

    def test_settlement_outside_window_ignored(self):
        view = self._view(1_101, settlements={0: [1_001]})
        assert find_sweepable(view, 1_101) == [0, 2]

    def test_terminal_protections_skipped(self):
        assert 3 not in find_sweepable(self._view(10_000), 10_000)

    def test_all_expired(self):
        assert find_sweepable(self._view(10_000), 10_000) == [0, 1, 2]


class TestSweepEngine:

    def test_keeper_required(self, funded_pool):
        pool, _ = funded_pool
        with pytest.raises(ValueError):
            SweepEngine(pool, keeper="")

    def test_step_sweeps_eligible(self, funded_pool):
        pool, _ = funded_pool
        short = buy(pool, "buyer", 100 * UNIT, duration=DAY)
        long = buy(pool, "buyer", 100 * UNIT, duration=5 * DAY)

        engine = SweepEngine(pool, keeper="bot")
        assert engine.step(T0 + 3 * DAY) == [short]
        assert pool.current_time == T0 + 3 * DAY
        assert pool.get_protection(long).is_active
        assert pool.records(RECORD_SWEEP)[0]["sweeper"] == "bot"

    def test_step_with_nothing_to_do(self, funded_pool):
        pool, _ = funded_pool
        engine = SweepEngine(pool, keeper="bot")
        assert engine.step(T0 + DAY) == []

    def test_run(self, funded_pool):
        pool, _ = funded_pool
        pids = [buy(pool, "buyer", 10 * UNIT, duration=d * DAY) for d in (1, 2, 3)]
        engine = SweepEngine(pool, keeper="bot")

        swept = engine.run([T0 + 2 * DAY, T0 + 3 * DAY + 1, T0 + 10 * DAY])

        assert swept == pids
        assert pool.utilized == 0
        assert pool.verify_invariants()['valid']

    def test_settled_protection_left_for_claim(self, funded_pool):
        pool, _ = funded_pool
        pid = buy(pool, "buyer", 100 * UNIT)
        pool.advance_time(T0 + 60)
        pool.add_settlement("dao", 0, T0 + 60)

        engine = SweepEngine(pool, keeper="bot")
        assert engine.step(T0 + 5 * DAY) == []
        assert pool.claim("buyer", pid) > 0

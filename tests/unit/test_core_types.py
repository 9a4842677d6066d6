"""
test_core_types.py - Unit tests for core data structures

Tests:
- Checked casts and amount validation
- Zero identity detection
- PoolPolicy: defaults, validation, immutability
- Protection and ProviderAccount defaults
- PoolRecord: field access, rendering, immutability
- PremiumSplit totals
"""

import pytest
from dataclasses import FrozenInstanceError
from typing import Optional, get_type_hints

from coverpool import (
    BASE, SECONDS_PER_DAY, SECONDS_PER_YEAR, MAX_UINT32, MAX_UINT128, ZERO_ADDRESS,
    PoolPolicy, PoolRecord, PoolState, Protection, ProtectionStatus, ProviderAccount,
    PremiumSplit, CastOverflow, checked_u32, checked_u128, is_zero_identity,
    AssetCollaborator, RateCurve, SettlementSchedule,
)
from coverpool.core import require_amount


class TestCheckedCasts:

    def test_u32_bounds(self):
        assert checked_u32(0) == 0
        assert checked_u32(MAX_UINT32) == MAX_UINT32
        with pytest.raises(CastOverflow):
            checked_u32(MAX_UINT32 + 1)
        with pytest.raises(CastOverflow):
            checked_u32(-1)

    def test_u128_bounds(self):
        assert checked_u128(MAX_UINT128) == MAX_UINT128
        with pytest.raises(CastOverflow):
            checked_u128(MAX_UINT128 + 1)

    def test_error_names_value(self):
        with pytest.raises(CastOverflow, match="expiry"):
            checked_u32(MAX_UINT32 + 1, "expiry")


class TestRequireAmount:

    def test_positive_int(self):
        assert require_amount(5) == 5

    @pytest.mark.parametrize("bad", [0, -1])
    def test_non_positive(self, bad):
        with pytest.raises(ValueError):
            require_amount(bad)

    @pytest.mark.parametrize("bad", [1.5, "10", True, None])
    def test_non_int(self, bad):
        with pytest.raises(ValueError):
            require_amount(bad)

    def test_too_large(self):
        with pytest.raises(CastOverflow):
            require_amount(MAX_UINT128 + 1)


class TestZeroIdentity:

    @pytest.mark.parametrize("identity", ["", "   ", None, ZERO_ADDRESS])
    def test_zero(self, identity):
        assert is_zero_identity(identity)

    def test_non_zero(self):
        assert not is_zero_identity("alice")


class TestPoolPolicy:

    def test_defaults(self):
        policy = PoolPolicy()
        assert policy.max_coverage_duration == SECONDS_PER_YEAR
        assert policy.cooldown_period == SECONDS_PER_DAY
        assert policy.withdraw_delay == 7 * SECONDS_PER_DAY
        assert policy.withdraw_window == 2 * SECONDS_PER_DAY
        assert policy.max_utilization == BASE

    def test_immutable(self):
        with pytest.raises(FrozenInstanceError):
            PoolPolicy().cooldown_period = 0

    @pytest.mark.parametrize("kwargs", [
        {"max_coverage_duration": 0},
        {"cooldown_period": -1},
        {"withdraw_delay": -1},
        {"withdraw_window": 0},
        {"max_utilization": 0},
        {"max_utilization": BASE + 1},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            PoolPolicy(**kwargs)

    def test_duration_must_fit_u32(self):
        with pytest.raises(CastOverflow):
            PoolPolicy(max_coverage_duration=MAX_UINT32 + 1)

    def test_zero_cooldown_allowed(self):
        assert PoolPolicy(cooldown_period=0, withdraw_delay=0).cooldown_period == 0


class TestStateTypes:

    def test_protection_starts_active(self):
        p = Protection(100, 1, "alice", 0, 10, 0)
        assert p.status is ProtectionStatus.ACTIVE
        assert p.is_active

    def test_protection_terminal_states(self):
        p = Protection(100, 1, "alice", 0, 10, 0, status=ProtectionStatus.SWEPT)
        assert not p.is_active

    def test_provider_account_defaults(self):
        account = ProviderAccount()
        assert account.shares == 0
        assert account.withdraw_initiated is None

    def test_pool_state_provider_created_once(self):
        state = PoolState()
        first = state.provider("lp")
        first.shares = 5
        assert state.provider("lp") is first
        assert state.providers["lp"].shares == 5

    def test_pool_state_collaborator_annotations(self):
        hints = get_type_hints(PoolState, localns={
            'RateCurve': RateCurve,
            'SettlementSchedule': SettlementSchedule,
        })
        assert hints['curve'] == Optional[RateCurve]
        assert hints['schedule'] == Optional[SettlementSchedule]
        assert hints['asset'] == Optional[AssetCollaborator]


class TestPoolRecord:

    def _record(self):
        return PoolRecord("purchase", 1_000, 3, (("pid", 0), ("holder", "alice")))

    def test_fields_dict(self):
        assert self._record().fields_dict == {"pid": 0, "holder": "alice"}

    def test_item_access(self):
        assert self._record()["holder"] == "alice"
        with pytest.raises(KeyError):
            self._record()["missing"]

    def test_immutable(self):
        with pytest.raises(FrozenInstanceError):
            self._record().kind = "claim"

    def test_repr_box(self):
        text = repr(self._record())
        lines = text.splitlines()
        assert lines[0].startswith("┌") and lines[-1].startswith("└")
        assert "#3 purchase @ 1000" in text
        assert "'alice'" in text
        assert len({len(line) for line in lines}) == 1

    def test_repr_truncates_long_values(self):
        record = PoolRecord("settlement", 0, 0, (("note", "x" * 200),))
        assert "..." in repr(record)


class TestPremiumSplit:

    def test_total(self):
        split = PremiumSplit(arbiter_fees=1, creator_fees=2, rollover=3, to_providers=4)
        assert split.total == 10

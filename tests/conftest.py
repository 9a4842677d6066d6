"""
conftest.py - Shared pytest fixtures for coverage pool tests

Provides common fixtures used across unit, functional and conformance tests:
- Bare and initialized pools
- A funded pool with one provider already deposited
- A pool with fees, rollover and a separate arbiter
- A pool wired to the scriptable FakeAsset
"""

import pytest

from coverpool import BASE, ProtectionRegistry, InMemoryAsset

from tests.helpers import T0, UNIT, POOL, make_pool, fund
from tests.fake_asset import FakeAsset


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def empty_pool():
    """Uninitialized pool at T0."""
    return ProtectionRegistry(POOL, initial_time=T0, verbose=False)


@pytest.fixture
def asset():
    """Fresh in-memory asset bound to the pool account."""
    return InMemoryAsset("USDC", pool_account=POOL)


@pytest.fixture
def pool(asset):
    """Initialized pool with zero fees and funded wallets, but no reserves."""
    pool, _ = make_pool(asset=asset)
    fund(asset, "lp", "lp2", "buyer", "buyer2")
    return pool


@pytest.fixture
def funded_pool(pool, asset):
    """Pool where lp has provided 1000 units at T0."""
    pool.provide("lp", 1_000 * UNIT)
    return pool, asset


# =============================================================================
# FEE FIXTURES
# =============================================================================

@pytest.fixture
def fee_pool():
    """
    Pool with arbiter fee 10%, creator fee 5% and rollover 20%.

    The arbiter "judge" differs from the creator and has accepted the role.
    """
    pool, asset = make_pool(
        creator_fee=BASE // 20,
        arbiter_fee=BASE // 10,
        rollover=BASE // 5,
        creator="dao",
        arbiter="judge",
    )
    pool.accept_arbiter("judge")
    fund(asset, "lp", "lp2", "buyer")
    pool.provide("lp", 1_000 * UNIT)
    return pool, asset


# =============================================================================
# FAKE ASSET FIXTURES
# =============================================================================

@pytest.fixture
def fake_pool():
    """Funded pool whose asset is a FakeAsset."""
    fake = FakeAsset(POOL)
    pool, _ = make_pool(asset=fake)
    fund(fake, "lp", "buyer")
    pool.provide("lp", 1_000 * UNIT)
    return pool, fake

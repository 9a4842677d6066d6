"""
helpers.py - Pool construction helpers shared by the test suites

Every pool built here starts at T0 with verbose output off, the linear curve
(0, 100) and two concepts. Amounts are whole units of BASE so premiums are
large enough to survive integer flooring.
"""

from __future__ import annotations
from dataclasses import astuple
from typing import Optional, Sequence, Tuple

from coverpool import (
    BASE, SECONDS_PER_DAY, PoolPolicy, ProtectionRegistry, InMemoryAsset,
)


T0 = 1_700_000_000
DAY = SECONDS_PER_DAY
UNIT = BASE
POOL = "pool"
WALLET_FUNDS = 1_000_000 * UNIT


def make_pool(
    coefficients=(0, 100),
    creator_fee: int = 0,
    arbiter_fee: int = 0,
    rollover: int = 0,
    min_pay: int = 0,
    concepts: Sequence[str] = ("exploit", "oracle"),
    creator: str = "dao",
    arbiter: str = "dao",
    accepts_native: bool = False,
    policy: Optional[PoolPolicy] = None,
    asset: Optional[InMemoryAsset] = None,
    initial_time: int = T0,
) -> Tuple[ProtectionRegistry, InMemoryAsset]:
    """Create and initialize a pool plus its asset."""
    pool = ProtectionRegistry(POOL, initial_time=initial_time, policy=policy, verbose=False)
    if asset is None:
        asset = InMemoryAsset("USDC", pool_account=POOL)
    pool.initialize(
        asset, coefficients, creator_fee, arbiter_fee, rollover, min_pay,
        list(concepts), "test pool", creator, arbiter, accepts_native=accepts_native,
    )
    return pool, asset


def fund(asset: InMemoryAsset, *wallets: str, amount: int = WALLET_FUNDS) -> None:
    """Mint amount of the asset to each wallet."""
    for wallet in wallets:
        asset.mint(wallet, amount)


def buy(pool: ProtectionRegistry, buyer: str, coverage: int, duration: int = DAY,
        concept_index: int = 0) -> int:
    """Purchase at the quoted price with a deadline of now."""
    premium = pool.quote(concept_index, coverage, duration)
    return pool.purchase(
        buyer, concept_index, coverage, duration,
        max_pay=premium, deadline=pool.current_time,
    )


def fingerprint(pool: ProtectionRegistry) -> tuple:
    """Comparable summary of everything an operation may change, record log included."""
    s = pool.state
    schedule = (
        tuple(s.schedule.times(i) for i in range(len(s.concepts)))
        if s.schedule is not None else ()
    )
    return (
        s.utilized, s.reserves, s.total_shares,
        s.premiums_accum, s.total_protection_seconds, s.last_updated_tps,
        s.arbiter_fees_pending, s.creator_fees_pending,
        tuple(astuple(p) for p in s.protections),
        tuple(sorted((k, astuple(a)) for k, a in s.providers.items())),
        schedule,
        tuple(sorted((k, tuple(sorted(v))) for k, v in s.operator_approvals.items())),
        s.arbiter_accepted, s.arbiter_abdicated,
        len(pool.record_log),
    )

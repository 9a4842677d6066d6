"""
coverpool - Capital-Pooling Coverage Ledger

Providers deposit a pay asset into a pool and receive shares. Buyers purchase
time-bounded protections against named risk concepts, paying a premium priced
from a utilization rate curve. An arbiter records settlements; protections
whose window contains a settlement pay out, the rest are swept after a
cooldown and their premiums flow to providers pro rata to share-seconds.

Usage:
    from coverpool import ProtectionRegistry, InMemoryAsset, BASE

    t0 = 1_700_000_000
    pool = ProtectionRegistry("pool", initial_time=t0, verbose=False)
    asset = InMemoryAsset("USDC", pool_account="pool")
    asset.mint("lp", 1_000 * BASE)
    asset.mint("buyer", 10 * BASE)

    pool.initialize(asset, (0, 100), creator_fee=0, arbiter_fee=0, rollover=0,
                    min_pay=0, concepts=["exploit"], description="demo",
                    creator="dao", arbiter="dao")
    pool.provide("lp", 1_000 * BASE)

    premium = pool.quote(0, 100 * BASE, 86_400)
    pid = pool.purchase("buyer", 0, 100 * BASE, 86_400,
                        max_pay=premium, deadline=t0 + 60)
"""

# Core types
from .core import (
    BASE,
    SECONDS_PER_DAY,
    SECONDS_PER_YEAR,
    MAX_CONCEPTS,
    MAX_UINT32,
    MAX_UINT128,
    ZERO_ADDRESS,
    PoolPolicy,
    PoolState,
    PoolRecord,
    PoolView,
    AssetCollaborator,
    Protection,
    ProtectionStatus,
    ProviderAccount,
    PremiumSplit,
    checked_u32,
    checked_u128,
    is_zero_identity,
    RECORD_INITIALIZE,
    RECORD_PURCHASE,
    RECORD_PROVIDE,
    RECORD_WITHDRAW_INITIATED,
    RECORD_WITHDRAW,
    RECORD_CLAIM,
    RECORD_PREMIUM_CLAIM,
    RECORD_SWEEP,
    RECORD_FEE_WITHDRAWAL,
    RECORD_TRANSFER,
    RECORD_APPROVAL,
    RECORD_SETTLEMENT,
    RECORD_ARBITER_ACCEPTED,
    RECORD_ARBITER_ABDICATED,
)

# Errors
from .core import (
    CoverPoolError,
    Uninitialized,
    AlreadyInitialized,
    InvalidCoefficients,
    TooManyConcepts,
    FeeCapExceeded,
    Unauthorized,
    ArbiterInactive,
    DeadlineExpired,
    InvalidConceptIndex,
    Overutilized,
    PriceOutOfBounds,
    DurationExceeded,
    CastOverflow,
    NotActive,
    NoSettlement,
    SettlementExists,
    OutOfOrderSettlement,
    StillLocked,
    WithdrawWindowExpired,
    InsufficientLiquidity,
    InvalidRecipient,
    AssetTransferFailed,
    ReentrantCall,
)

# Pricing
from .rate_curve import RateCurve
from .pricing import price

# Components
from .settlement_schedule import SettlementSchedule
from .reserve import shares_for, underlying_for
from .accrual import accrue_global, accrue_provider
from .premiums import claimable, settle_sweep_or_claim

# Registry and collaborators
from .registry import ProtectionRegistry
from .assets import InMemoryAsset
from .lifecycle import find_sweepable, SweepEngine

__all__ = [
    # Constants
    'BASE', 'SECONDS_PER_DAY', 'SECONDS_PER_YEAR', 'MAX_CONCEPTS',
    'MAX_UINT32', 'MAX_UINT128', 'ZERO_ADDRESS',
    'RECORD_INITIALIZE', 'RECORD_PURCHASE', 'RECORD_PROVIDE',
    'RECORD_WITHDRAW_INITIATED', 'RECORD_WITHDRAW', 'RECORD_CLAIM',
    'RECORD_PREMIUM_CLAIM', 'RECORD_SWEEP', 'RECORD_FEE_WITHDRAWAL',
    'RECORD_TRANSFER', 'RECORD_APPROVAL', 'RECORD_SETTLEMENT',
    'RECORD_ARBITER_ACCEPTED', 'RECORD_ARBITER_ABDICATED',
    # Types
    'PoolPolicy', 'PoolState', 'PoolRecord', 'PoolView', 'AssetCollaborator',
    'Protection', 'ProtectionStatus', 'ProviderAccount', 'PremiumSplit',
    'checked_u32', 'checked_u128', 'is_zero_identity',
    # Errors
    'CoverPoolError', 'Uninitialized', 'AlreadyInitialized',
    'InvalidCoefficients', 'TooManyConcepts', 'FeeCapExceeded',
    'Unauthorized', 'ArbiterInactive', 'DeadlineExpired',
    'InvalidConceptIndex', 'Overutilized', 'PriceOutOfBounds',
    'DurationExceeded', 'CastOverflow', 'NotActive', 'NoSettlement',
    'SettlementExists', 'OutOfOrderSettlement', 'StillLocked',
    'WithdrawWindowExpired', 'InsufficientLiquidity', 'InvalidRecipient',
    'AssetTransferFailed',
    'ReentrantCall',
    # Components
    'RateCurve', 'price', 'SettlementSchedule',
    'shares_for', 'underlying_for', 'accrue_global', 'accrue_provider',
    'claimable', 'settle_sweep_or_claim',
    # Registry
    'ProtectionRegistry', 'InMemoryAsset', 'find_sweepable', 'SweepEngine',
]

__version__ = '0.1.0'

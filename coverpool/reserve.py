"""
reserve.py - Share-Based Reserve Accounting

Providers own shares; shares are a proportional claim on pool reserves.

    enter: shares_minted = amount * total_shares / reserves   (1:1 when empty)
    exit:  underlying    = shares * reserves / total_shares

Both directions floor, so any rounding dust stays in the pool. A provider
can never get back more than they put in by cycling deposits and withdrawals.

These functions mutate the PoolState they are given and assume the caller
has already run the accrual step for the provider (see accrual.py).
"""

from __future__ import annotations

from .core import PoolState, InsufficientLiquidity, checked_u128


def shares_for(state: PoolState, amount: int) -> int:
    """Shares that a deposit of amount would mint right now."""
    if state.total_shares == 0 or state.reserves == 0:
        return amount
    return amount * state.total_shares // state.reserves


def underlying_for(state: PoolState, shares: int) -> int:
    """Reserves that burning shares would release right now."""
    if state.total_shares == 0:
        return 0
    return shares * state.reserves // state.total_shares


def underlying_of(state: PoolState, provider_id: str) -> int:
    """Current redeemable value of a provider's shares."""
    account = state.providers.get(provider_id)
    if account is None:
        return 0
    return underlying_for(state, account.shares)


def enter(state: PoolState, provider_id: str, amount: int, now: int) -> int:
    """
    Mint shares for a deposit of amount.

    Args:
        state: Pool state (mutated)
        provider_id: Depositing provider
        amount: Underlying deposited
        now: Operation timestamp, recorded as last_provide

    Returns:
        Number of shares minted (may be 0 for dust deposits into a pool
        whose share price has risen above 1).
    """
    minted = shares_for(state, amount)
    account = state.provider(provider_id)

    state.reserves = checked_u128(state.reserves + amount, "reserves")
    state.total_shares = checked_u128(state.total_shares + minted, "total_shares")
    account.shares += minted
    account.last_provide = now
    return minted


def exit(state: PoolState, provider_id: str, shares: int) -> int:
    """
    Burn shares and release the matching reserves.

    Returns:
        Underlying amount released, floored.

    Raises:
        InsufficientLiquidity: If the provider holds fewer than shares
    """
    account = state.providers.get(provider_id)
    held = account.shares if account is not None else 0
    if shares > held:
        raise InsufficientLiquidity(f"{provider_id} holds {held} shares, cannot burn {shares}")

    underlying = underlying_for(state, shares)
    account.shares -= shares
    state.total_shares -= shares
    state.reserves -= underlying
    return underlying

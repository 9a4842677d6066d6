"""
premiums.py - Premium Distribution

Index-based reward accumulator. premiums_accum is the running total of
premium income credited to providers since genesis. Each provider snapshots
it when they claim; what they are owed is their share of the increase since
that snapshot, weighted by token-seconds:

    claimable = (premiums_accum - premium_index)
                * total_token_seconds_provided / total_protection_seconds

Swept premiums are split before they reach the index:

    arbiter fee  -> pending arbiter balance
    creator fee  -> pending creator balance
    rollover     -> reserves (compounds for all shareholders)
    remainder    -> premiums_accum
"""

from __future__ import annotations

from .core import BASE, PoolState, PremiumSplit


def claimable(state: PoolState, provider_id: str) -> int:
    """Premium a provider could claim given the currently accrued integrals."""
    account = state.providers.get(provider_id)
    if account is None or state.total_protection_seconds == 0:
        return 0
    delta = state.premiums_accum - account.premium_index
    return delta * account.total_token_seconds_provided // state.total_protection_seconds


def claim(state: PoolState, provider_id: str) -> int:
    """
    Settle a provider's premium entitlement.

    Requires accrue_provider() to have run at the operation's timestamp.
    The caller is responsible for paying out the returned amount.

    Returns:
        Amount owed to the provider. 0 means nothing to pay; in that case
        the index snapshot only moves when the provider has no token-seconds
        (first deposit), so a dust entitlement keeps growing instead of
        being discarded.
    """
    account = state.provider(provider_id)
    if account.total_token_seconds_provided == 0:
        account.premium_index = state.premiums_accum
        return 0

    amount = claimable(state, provider_id)
    if amount == 0:
        return 0

    account.premium_index = state.premiums_accum
    return amount


def settle_sweep_or_claim(state: PoolState, premiums_paid: int) -> PremiumSplit:
    """
    Distribute a swept protection's premium.

    Fee fractions are validated at initialization to sum to at most BASE,
    so the provider remainder is never negative.
    """
    arb_fees = premiums_paid * state.arbiter_fee // BASE if state.arbiter_fee else 0
    create_fees = premiums_paid * state.creator_fee // BASE if state.creator_fee else 0
    rollover_amt = premiums_paid * state.rollover // BASE if state.rollover else 0

    state.arbiter_fees_pending += arb_fees
    state.creator_fees_pending += create_fees
    state.reserves += rollover_amt

    to_providers = premiums_paid - arb_fees - create_fees - rollover_amt
    state.premiums_accum += to_providers

    return PremiumSplit(
        arbiter_fees=arb_fees,
        creator_fees=create_fees,
        rollover=rollover_amt,
        to_providers=to_providers,
    )

"""
accrual.py - Time-Weighted Accumulators

Premium income is shared by how much capital was at risk and for how long,
not by the balance at distribution time. Two integrals track that:

    pool:     total_protection_seconds += (now - last_updated_tps) * reserves
    provider: total_token_seconds_provided += (now - last_update) * shares

Both are brought up to `now` before any step that changes shares or
reserves. Provider accrual always accrues the pool as well: premium claims
divide one integral by the other, so they must advance together.

Accruing twice at the same timestamp is a no-op.
"""

from __future__ import annotations

from .core import PoolState


def accrue_global(state: PoolState, now: int) -> None:
    """Bring the pool-wide reserve-seconds integral up to now."""
    elapsed = now - state.last_updated_tps
    if elapsed < 0:
        raise ValueError(f"Cannot accrue backwards: {now} < {state.last_updated_tps}")
    if elapsed:
        state.total_protection_seconds += elapsed * state.reserves
    state.last_updated_tps = now


def accrue_provider(state: PoolState, provider_id: str, now: int) -> None:
    """Bring one provider's share-seconds integral, and the pool's, up to now."""
    account = state.provider(provider_id)
    elapsed = now - account.last_update
    if elapsed < 0:
        raise ValueError(f"Cannot accrue backwards: {now} < {account.last_update}")
    if elapsed:
        account.total_token_seconds_provided += elapsed * account.shares
    account.last_update = now
    accrue_global(state, now)

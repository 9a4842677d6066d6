"""
assets.py - In-Memory Pay Asset

A minimal fungible asset implementing the AssetCollaborator protocol for
simulations, demos and tests. It keeps integer balances per wallet plus a
separate native-currency balance that can be wrapped into the asset.

The asset acts for exactly one pool account:
    transfer_from(source, dest, amount)  moves any wallet's balance
    transfer(dest, amount)               pays out of the pool account
    deposit_native_as_asset(payer, amount)  wraps payer's native currency
                                            and credits the pool account

Failures return False; they never partially apply.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict


class InMemoryAsset:
    """
    Integer-balance asset bound to one pool account.

    Example:
        asset = InMemoryAsset("USDC", pool_account="pool")
        asset.mint("alice", 1_000)
        asset.transfer_from("alice", "pool", 250)   # True
        asset.transfer("bob", 100)                  # pool pays bob
    """

    def __init__(self, symbol: str, pool_account: str):
        if not symbol or not symbol.strip():
            raise ValueError("symbol cannot be empty")
        if not pool_account or not pool_account.strip():
            raise ValueError("pool_account cannot be empty")
        self.symbol = symbol
        self.pool_account = pool_account
        self.balances: Dict[str, int] = defaultdict(int)
        self.native_balances: Dict[str, int] = defaultdict(int)

    # ------------------------------------------------------------------
    # Issuance (simulation setup)
    # ------------------------------------------------------------------

    def mint(self, wallet: str, amount: int) -> None:
        """Credit wallet with newly issued asset."""
        if amount <= 0:
            raise ValueError(f"amount must be positive, got {amount}")
        self.balances[wallet] += amount

    def mint_native(self, wallet: str, amount: int) -> None:
        """Credit wallet with native currency."""
        if amount <= 0:
            raise ValueError(f"amount must be positive, got {amount}")
        self.native_balances[wallet] += amount

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def balance_of(self, wallet: str) -> int:
        return self.balances.get(wallet, 0)

    def native_balance_of(self, wallet: str) -> int:
        return self.native_balances.get(wallet, 0)

    def total_supply(self) -> int:
        """Sum of all balances, wallets sorted for deterministic accumulation."""
        return sum(self.balances[w] for w in sorted(self.balances))

    # ------------------------------------------------------------------
    # AssetCollaborator protocol
    # ------------------------------------------------------------------

    def _move(self, source: str, dest: str, amount: int) -> bool:
        if amount < 0 or self.balances.get(source, 0) < amount:
            return False
        self.balances[source] -= amount
        self.balances[dest] += amount
        return True

    def transfer_from(self, source: str, dest: str, amount: int) -> bool:
        return self._move(source, dest, amount)

    def transfer(self, dest: str, amount: int) -> bool:
        return self._move(self.pool_account, dest, amount)

    def deposit_native_as_asset(self, payer: str, amount: int) -> bool:
        if amount < 0 or self.native_balances.get(payer, 0) < amount:
            return False
        self.native_balances[payer] -= amount
        self.balances[self.pool_account] += amount
        return True

    def __repr__(self):
        return f"InMemoryAsset({self.symbol}, pool={self.pool_account}, {len(self.balances)} wallets)"

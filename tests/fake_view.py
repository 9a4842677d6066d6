"""
fake_view.py - Test Helper for PoolView

Provides a minimal PoolView implementation for testing pure functions such as
find_sweepable without requiring a full ProtectionRegistry.
"""

from __future__ import annotations
from dataclasses import replace
from typing import Dict, List, Optional

from coverpool import PoolPolicy, Protection, ProviderAccount


class FakeView:
    """
    Minimal PoolView implementation backed by plain lists.

    Example:
        view = FakeView(
            protections=[Protection(100, 1, "alice", 0, 86_400, 0)],
            settlements={0: [3_600]},
            time=200_000,
        )

        view.has_settlement(0, 0, 86_400)
        # Returns: True
    """

    def __init__(
        self,
        protections: Optional[List[Protection]] = None,
        settlements: Optional[Dict[int, List[int]]] = None,
        providers: Optional[Dict[str, ProviderAccount]] = None,
        time: int = 0,
        policy: Optional[PoolPolicy] = None,
    ):
        self._protections = protections or []
        self._settlements = settlements or {}
        self._providers = providers or {}
        self._time = time
        self._policy = policy or PoolPolicy()

    @property
    def current_time(self) -> int:
        return self._time

    @property
    def policy(self) -> PoolPolicy:
        return self._policy

    def get_protection(self, pid: int) -> Protection:
        return replace(self._protections[pid])

    def protection_count(self) -> int:
        return len(self._protections)

    def get_provider(self, provider_id: str) -> ProviderAccount:
        account = self._providers.get(provider_id)
        return replace(account) if account is not None else ProviderAccount()

    def has_settlement(self, concept_index: int, start: int, expiry: int) -> bool:
        return any(start <= t <= expiry for t in self._settlements.get(concept_index, []))

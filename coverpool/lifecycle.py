"""
lifecycle.py - Sweep Engine

Expired protections do not retire themselves: somebody has to sweep them so
their premium flows to providers and their coverage stops counting against
utilization. The SweepEngine plays that keeper role on a schedule of
timestamps, the way a bot would.
"""

from __future__ import annotations
from typing import Iterable, List

from .core import PoolView
from .registry import ProtectionRegistry


def find_sweepable(view: PoolView, timestamp: int) -> List[int]:
    """
    pids that could be swept at timestamp.

    A protection is sweepable when it is ACTIVE, its cooldown after expiry
    has fully elapsed, and no settlement falls inside its coverage window.

    Args:
        view: Read-only pool access
        timestamp: Time to evaluate at

    Returns:
        Sweepable pids in ascending order.
    """
    cooldown = view.policy.cooldown_period
    sweepable = []
    for pid in range(view.protection_count()):
        protection = view.get_protection(pid)
        if not protection.is_active:
            continue
        if timestamp <= protection.expiry + cooldown:
            continue
        if view.has_settlement(protection.concept_index, protection.start, protection.expiry):
            continue
        sweepable.append(pid)
    return sweepable


class SweepEngine:
    """
    Periodically sweeps every eligible protection of one pool.

    Example:
        engine = SweepEngine(pool, keeper="keeper")
        swept = engine.run([t0 + day, t0 + 2 * day, t0 + 3 * day])
    """

    def __init__(self, registry: ProtectionRegistry, keeper: str):
        if not keeper or not keeper.strip():
            raise ValueError("keeper cannot be empty")
        self.registry = registry
        self.keeper = keeper

    def step(self, timestamp: int) -> List[int]:
        """
        Advance the pool clock and sweep everything eligible in one batch.

        The batch is atomic: if any sweep fails none are applied.

        Returns:
            pids swept at this step.
        """
        self.registry.advance_time(timestamp)
        pids = find_sweepable(self.registry, timestamp)
        if pids:
            self.registry.sweep_many(self.keeper, pids)
        return pids

    def run(self, timestamps: Iterable[int]) -> List[int]:
        """
        Step through timestamps in order.

        Returns:
            All swept pids, in sweep order.
        """
        swept = []
        for timestamp in timestamps:
            swept.extend(self.step(timestamp))
        return swept

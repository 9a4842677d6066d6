"""
settlement_schedule.py - Per-Concept Settlement Times

Stores, for every covered concept, the ascending list of times at which the
arbiter attested that the concept's risk was realized. A protection is
claimable when at least one settlement time falls inside its window
[start, expiry] (both ends inclusive).

Times are appended in strictly increasing order. The arbiter may opt into
out-of-order insertion, in which case the list is re-sorted so the ascending
order holds again once the insertion completes.
"""

from __future__ import annotations
from bisect import bisect_left
from typing import Dict, List, Tuple

from .core import OutOfOrderSettlement, checked_u32


class SettlementSchedule:
    """
    Sorted settlement timestamps keyed by concept index.

    Example:
        schedule = SettlementSchedule(num_concepts=2)
        schedule.add_settlement(0, 1_700_000_000)
        schedule.has_settlement(0, 1_699_000_000, 1_701_000_000)  # True
    """

    def __init__(self, num_concepts: int):
        if num_concepts < 0:
            raise ValueError(f"num_concepts must be non-negative, got {num_concepts}")
        self.num_concepts = num_concepts
        self._times: Dict[int, List[int]] = {i: [] for i in range(num_concepts)}

    def _series(self, concept_index: int) -> List[int]:
        if concept_index not in self._times:
            raise IndexError(f"concept {concept_index} out of range 0..{self.num_concepts - 1}")
        return self._times[concept_index]

    def times(self, concept_index: int) -> Tuple[int, ...]:
        """Return the concept's settlement times, ascending."""
        return tuple(self._series(concept_index))

    def latest(self, concept_index: int) -> int:
        """Most recent settlement time for the concept, 0 if none."""
        series = self._series(concept_index)
        return series[-1] if series else 0

    def has_settlement(self, concept_index: int, start: int, expiry: int) -> bool:
        """
        True iff some settlement t satisfies start <= t <= expiry.

        Uses binary search for the first time >= start; by the ascending
        order no later entry can fall below it, so one comparison decides.
        """
        series = self._series(concept_index)
        if not series:
            return False
        if start > series[-1] or expiry < series[0]:
            return False

        idx = bisect_left(series, start)
        return idx < len(series) and series[idx] <= expiry

    def add_settlement(self, concept_index: int, time: int, allow_resort: bool = False) -> None:
        """
        Record a settlement time.

        Args:
            concept_index: Concept the settlement belongs to
            time: Settlement timestamp (uint32)
            allow_resort: Accept a time that is not after the latest entry
                          and restore ascending order afterwards

        Raises:
            OutOfOrderSettlement: If time <= latest entry and allow_resort is False
            CastOverflow: If time does not fit in uint32
        """
        checked_u32(time, "settlement time")
        series = self._series(concept_index)

        if allow_resort:
            series.append(time)
            series.sort()
            return

        if series and time <= series[-1]:
            raise OutOfOrderSettlement(
                f"settlement {time} for concept {concept_index} is not after {series[-1]}"
            )
        series.append(time)

    def __repr__(self):
        total = sum(len(s) for s in self._times.values())
        return f"SettlementSchedule({self.num_concepts} concepts, {total} settlements)"

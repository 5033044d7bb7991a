"""
erp_engines.divergence -- Expected vs. counted quantity reconciliation.

Responsibility:
    Compare the quantity expected back from an event (allocated - sold -
    already returned) against what the operator physically counted, per
    item and in aggregate.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``divergence = expected - counted``: positive is a shortage
      (pieces missing), negative an overage (extra pieces), zero reconciled.
    - ``total_divergence = sum(|divergence|)`` and
      ``has_divergence == (total_divergence > 0)``.
    - Results are recomputed from scratch on every call; there is no
      incremental state.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from erp_engines.tracer import traced_engine


class DivergenceStatus(str, Enum):
    """Classification badge of one counted item."""

    RECONCILED = "reconciled"
    SHORTAGE = "shortage"
    OVERAGE = "overage"


def classify(divergence: int) -> DivergenceStatus:
    if divergence > 0:
        return DivergenceStatus.SHORTAGE
    if divergence < 0:
        return DivergenceStatus.OVERAGE
    return DivergenceStatus.RECONCILED


@dataclass(frozen=True)
class CountedAllocation:
    """One item of a reconciliation: what was expected and what was counted."""

    id: str
    expected_quantity: int
    counted_quantity: int
    notes: str | None = None

    @property
    def divergence(self) -> int:
        return self.expected_quantity - self.counted_quantity

    @property
    def status(self) -> DivergenceStatus:
        return classify(self.divergence)

    @property
    def is_divergent(self) -> bool:
        return self.divergence != 0


@dataclass(frozen=True)
class DivergenceSummary:
    """Aggregate outcome of a reconciliation."""

    items: tuple[CountedAllocation, ...]
    total_divergence: int
    total_shortage: int
    total_overage: int

    @property
    def has_divergence(self) -> bool:
        return self.total_divergence > 0

    @property
    def divergent_items(self) -> tuple[CountedAllocation, ...]:
        return tuple(i for i in self.items if i.is_divergent)

    @property
    def passed(self) -> bool:
        """True when every item reconciled."""
        return not self.has_divergence


def reconcile_counts(
    expected: dict[str, int],
    counted: dict[str, int],
    notes: dict[str, str] | None = None,
) -> tuple[CountedAllocation, ...]:
    """
    Pair expected and counted quantities by id.

    Only ids present in ``expected`` are reconciled, in its order; an id
    missing from ``counted`` is treated as counted zero.
    """
    notes = notes or {}
    return tuple(
        CountedAllocation(
            id=str(item_id),
            expected_quantity=exp,
            counted_quantity=counted.get(item_id, 0),
            notes=notes.get(item_id),
        )
        for item_id, exp in expected.items()
    )


@traced_engine("divergence", "1.0", fingerprint_fields=("items",))
def summarize_divergences(items: Iterable[CountedAllocation]) -> DivergenceSummary:
    """Aggregate per-item divergences into totals."""
    rows = tuple(items)
    shortage = sum(i.divergence for i in rows if i.divergence > 0)
    overage = sum(-i.divergence for i in rows if i.divergence < 0)
    return DivergenceSummary(
        items=rows,
        total_divergence=shortage + overage,
        total_shortage=shortage,
        total_overage=overage,
    )

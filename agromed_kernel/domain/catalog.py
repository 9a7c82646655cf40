"""
Catalog domain types (``agromed_kernel.domain.catalog``).

Responsibility
--------------
Pure value objects for the medicine catalog as seen by the decision
engine: medicines, their eligible stock lots, and the pest-target matching
predicate shared by the Catalog Reader and the Medicine Scorer.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``selectors/``, ``services/`` or outer layers.

Invariants enforced
-------------------
* A ``Medicine`` carries only *eligible* lots (quantity > 0, expiry not in
  the past), ordered by expiry ascending.  Eligibility filtering is the
  Catalog Reader's job; ``Medicine.available_stock`` trusts it.
* Medicines are immutable snapshots; stock is re-read at decision time.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID


@dataclass(frozen=True)
class StockLot:
    """A batch of one medicine with its own quantity and expiry."""

    lot_id: UUID
    medicine_id: UUID
    quantity: Decimal
    expiry_date: date
    batch_number: str | None = None
    supplier: str | None = None

    def is_eligible(self, as_of: date) -> bool:
        """Visible to the engine: positive quantity and not yet expired."""
        return self.quantity > 0 and self.expiry_date >= as_of


@dataclass(frozen=True)
class Medicine:
    """Catalog entry with its eligible stock lots (expiry ascending)."""

    medicine_id: UUID
    name: str
    category: str
    pest_targets: tuple[str, ...] = ()
    unit_price: Decimal | None = None
    active_ingredient: str | None = None
    unit: str = "liter"
    lots: tuple[StockLot, ...] = ()

    @property
    def available_stock(self) -> Decimal:
        return sum((lot.quantity for lot in self.lots), Decimal("0"))

    @property
    def nearest_lot(self) -> StockLot | None:
        """Eligible lot with the earliest expiry, if any."""
        if not self.lots:
            return None
        return min(self.lots, key=lambda lot: lot.expiry_date)


def normalize_pest(value: str) -> str:
    return value.strip().lower()


def is_direct_match(pest: str, target: str) -> bool:
    """Substring containment in either direction, case-insensitive."""
    p = normalize_pest(pest)
    t = normalize_pest(target)
    if not p or not t:
        return False
    return t in p or p in t


def targets_intersect(
    targets: tuple[str, ...] | list[str],
    pests: tuple[str, ...] | list[str],
) -> bool:
    """True when any requested pest directly matches any declared target."""
    return any(is_direct_match(pest, target) for pest in pests for target in targets)

"""
Submission domain types (``agromed_kernel.domain.submission``).

Responsibility
--------------
Pure value objects for medicine submissions and the submission status
state machine.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``SUBMISSION_TRANSITIONS`` defines the only status moves this kernel may
  write.  ``cancelled`` and ``expired`` are reachable from every
  non-terminal state through administrative action outside this kernel.
* ``APPROVABLE_STATUSES`` gates every approval decision.
* Items are owned by their submission; an item references its medicine by
  id only (no back-pointers).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class SubmissionStatus(str, Enum):
    """Submission lifecycle states."""

    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    PARTIALLY_APPROVED = "partially_approved"
    REJECTED = "rejected"
    DISTRIBUTED = "distributed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class SubmissionPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


TERMINAL_SUBMISSION_STATUSES: frozenset[SubmissionStatus] = frozenset({
    SubmissionStatus.REJECTED,
    SubmissionStatus.COMPLETED,
    SubmissionStatus.CANCELLED,
    SubmissionStatus.EXPIRED,
})

_ADMINISTRATIVE_EXITS: frozenset[SubmissionStatus] = frozenset({
    SubmissionStatus.CANCELLED,
    SubmissionStatus.EXPIRED,
})

SUBMISSION_TRANSITIONS: dict[SubmissionStatus, frozenset[SubmissionStatus]] = {
    SubmissionStatus.PENDING: frozenset({
        SubmissionStatus.UNDER_REVIEW,
        SubmissionStatus.APPROVED,
        SubmissionStatus.PARTIALLY_APPROVED,
        SubmissionStatus.REJECTED,
        SubmissionStatus.PENDING,
    }) | _ADMINISTRATIVE_EXITS,
    SubmissionStatus.UNDER_REVIEW: frozenset({
        SubmissionStatus.APPROVED,
        SubmissionStatus.PARTIALLY_APPROVED,
        SubmissionStatus.REJECTED,
        SubmissionStatus.PENDING,
    }) | _ADMINISTRATIVE_EXITS,
    SubmissionStatus.APPROVED: frozenset({
        SubmissionStatus.DISTRIBUTED,
    }) | _ADMINISTRATIVE_EXITS,
    SubmissionStatus.PARTIALLY_APPROVED: frozenset({
        SubmissionStatus.DISTRIBUTED,
    }) | _ADMINISTRATIVE_EXITS,
    SubmissionStatus.DISTRIBUTED: frozenset({
        SubmissionStatus.COMPLETED,
    }) | _ADMINISTRATIVE_EXITS,
    SubmissionStatus.REJECTED: frozenset(),
    SubmissionStatus.COMPLETED: frozenset(),
    SubmissionStatus.CANCELLED: frozenset(),
    SubmissionStatus.EXPIRED: frozenset(),
}

APPROVABLE_STATUSES: frozenset[SubmissionStatus] = frozenset({
    SubmissionStatus.PENDING,
    SubmissionStatus.UNDER_REVIEW,
})


def is_transition_allowed(
    from_status: SubmissionStatus,
    to_status: SubmissionStatus,
) -> bool:
    return to_status in SUBMISSION_TRANSITIONS.get(from_status, frozenset())


@dataclass(frozen=True)
class SubmissionItem:
    """One requested medicine line.

    ``medicine_name`` and ``medicine_category`` are the catalog values
    joined in by the store when the submission was read; they let the
    engine name the medicine in errors and build a fallback without a
    second catalog round-trip.
    """

    item_id: UUID
    medicine_id: UUID
    requested_quantity: Decimal
    unit: str = "liter"
    approved_quantity: Decimal = Decimal("0")
    notes: str | None = None
    medicine_name: str = ""
    medicine_category: str = ""


@dataclass(frozen=True)
class Submission:
    """A request for medicines tied to an affected area and pest list."""

    submission_id: UUID
    status: SubmissionStatus
    priority: SubmissionPriority
    affected_area: Decimal
    pest_types: tuple[str, ...]
    items: tuple[SubmissionItem, ...] = ()
    submission_number: str | None = None
    district: str | None = None
    reviewer_id: UUID | None = None
    reviewed_at: datetime | None = None
    reviewer_notes: str | None = None
    created_at: datetime | None = None
    version: int = 0

    def item(self, item_id: UUID) -> SubmissionItem | None:
        for candidate in self.items:
            if candidate.item_id == item_id:
                return candidate
        return None

    @property
    def is_approvable(self) -> bool:
        return self.status in APPROVABLE_STATUSES


@dataclass(frozen=True)
class ItemAdjustment:
    """Approved quantity and notes written onto one item by a decision."""

    item_id: UUID
    approved_quantity: Decimal
    notes: str | None = None


@dataclass(frozen=True)
class StatusUpdate:
    """Compare-and-set status write applied by the Submission Store.

    The store only applies the update if the stored status still equals
    ``expected_status`` and, when ``expected_version`` is set, the stored
    version still equals it. Every applied update bumps the version.
    """

    submission_id: UUID
    expected_status: SubmissionStatus
    new_status: SubmissionStatus
    reviewer_id: UUID
    reviewed_at: datetime | None
    reviewer_notes: str | None = None
    item_adjustments: tuple[ItemAdjustment, ...] = field(default_factory=tuple)
    expected_version: int | None = None

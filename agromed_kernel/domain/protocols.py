"""
Collaborator contracts consumed by the decision engine.

Responsibility
--------------
Narrow ``typing.Protocol`` interfaces for everything the engine reads or
writes outside itself.  The SQLAlchemy reference implementations live in
``agromed_kernel.selectors`` (reads) and ``agromed_kernel.services``
(writes); tests may substitute in-memory fakes.

Architecture position
---------------------
**Kernel domain layer** -- interfaces only.  ZERO I/O.
"""

from __future__ import annotations

from collections.abc import Sequence
from contextlib import AbstractContextManager
from decimal import Decimal
from typing import Protocol, runtime_checkable
from uuid import UUID

from agromed_kernel.domain.catalog import Medicine
from agromed_kernel.domain.decision import ApprovalHistoryEntry, AuditEntry
from agromed_kernel.domain.recommendation import DistrictStat, UsageLine
from agromed_kernel.domain.submission import (
    Submission,
    SubmissionPriority,
    StatusUpdate,
)


@runtime_checkable
class CatalogReader(Protocol):
    """Read access to medicines and their eligible stock lots.

    "Eligible" lots have quantity > 0 and expiry on or after today, ordered
    by expiry ascending.  Only active medicines are returned.
    """

    def find_medicine(self, medicine_id: UUID) -> Medicine | None:
        ...

    def find_medicines_by_pest_targets(
        self,
        pests: Sequence[str],
        exclude_id: UUID | None,
        limit: int,
        min_lot_quantity: Decimal | None = None,
    ) -> list[Medicine]:
        """Medicines whose declared targets intersect ``pests``.

        With ``min_lot_quantity`` set, only lots holding at least that
        quantity are attached, and medicines left with no such lot are
        skipped.
        """
        ...


@runtime_checkable
class SubmissionStore(Protocol):
    """Read/write access to submissions and the activity log.

    Writes issued inside ``unit_of_work()`` commit together or not at all.
    """

    def get_submission_with_items(self, submission_id: UUID) -> Submission | None:
        ...

    def update_status_and_items(self, status_update: StatusUpdate) -> Submission:
        """Apply a compare-and-set status write and item adjustments.

        Raises:
            StaleSubmissionStatusError: the stored status no longer equals
                ``status_update.expected_status``.
        """
        ...

    def update_priority(
        self,
        submission_id: UUID,
        priority: SubmissionPriority,
    ) -> Submission:
        ...

    def append_audit_log(self, entry: AuditEntry) -> None:
        ...

    def unit_of_work(self) -> AbstractContextManager[None]:
        ...


@runtime_checkable
class ApprovalReadModel(Protocol):
    """Read-only queries behind approval history and statistics."""

    def list_history(
        self,
        submission_id: UUID | None = None,
        actor_id: UUID | None = None,
        limit: int = 50,
    ) -> list[ApprovalHistoryEntry]:
        ...

    def count_by_status(self, district: str | None = None) -> dict[str, int]:
        ...

    def usage_lines(self, district: str | None = None) -> list[UsageLine]:
        ...

    def open_submissions(self, district: str | None = None) -> list[Submission]:
        ...

    def top_districts(
        self, district: str | None = None, limit: int = 10
    ) -> list[DistrictStat]:
        ...


@runtime_checkable
class ApprovalAuthority(Protocol):
    """Delegated authorization check for approval operations."""

    def has_approval_permission(self, actor_id: UUID) -> bool:
        ...

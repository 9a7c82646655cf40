"""
Approval decision domain types (``agromed_kernel.domain.decision``).

Responsibility
--------------
Value objects flowing through the approval pipeline:

    ApprovalDecision --validate--> ValidatedDecision --execute--> DecisionOutcome

plus the audit record written alongside every committed decision and the
per-id result of a bulk call.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``ACTION_TARGET_STATUS`` is the only source of the status a decision
  writes.
* ``ValidatedDecision.validated_status`` is the status read during
  validation; the executor's conditional update is keyed on it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from agromed_kernel.domain.submission import Submission, SubmissionStatus


class ApprovalAction(str, Enum):
    APPROVE = "approve"
    PARTIAL_APPROVE = "partial_approve"
    REJECT = "reject"
    REQUEST_REVISION = "request_revision"


ACTION_TARGET_STATUS: dict[ApprovalAction, SubmissionStatus] = {
    ApprovalAction.APPROVE: SubmissionStatus.APPROVED,
    ApprovalAction.PARTIAL_APPROVE: SubmissionStatus.PARTIALLY_APPROVED,
    ApprovalAction.REJECT: SubmissionStatus.REJECTED,
    ApprovalAction.REQUEST_REVISION: SubmissionStatus.PENDING,
}

QUANTITY_ACTIONS: frozenset[ApprovalAction] = frozenset({
    ApprovalAction.APPROVE,
    ApprovalAction.PARTIAL_APPROVE,
})

BULK_ACTIONS: frozenset[ApprovalAction] = frozenset({
    ApprovalAction.APPROVE,
    ApprovalAction.REJECT,
})


@dataclass(frozen=True)
class ApprovedItem:
    submission_item_id: UUID
    approved_quantity: Decimal
    notes: str | None = None


@dataclass(frozen=True)
class ApprovalDecision:
    """A reviewer's proposed decision on one submission."""

    submission_id: UUID
    action: ApprovalAction
    approved_items: tuple[ApprovedItem, ...] = ()
    rejection_reason: str | None = None
    revision_requests: tuple[str, ...] = ()
    notes: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """JSON-safe rendering stored verbatim in the audit log."""
        return {
            "submission_id": str(self.submission_id),
            "action": self.action.value,
            "approved_items": [
                {
                    "submission_item_id": str(item.submission_item_id),
                    "approved_quantity": str(item.approved_quantity),
                    "notes": item.notes,
                }
                for item in self.approved_items
            ],
            "rejection_reason": self.rejection_reason,
            "revision_requests": list(self.revision_requests),
            "notes": self.notes,
        }


@dataclass(frozen=True)
class ValidatedDecision:
    """
    A decision that passed every validation rule.

    Carries the submission snapshot it was checked against so the executor
    can key its compare-and-set update on ``validated_status`` and
    ``validated_version``.
    """

    decision: ApprovalDecision
    submission: Submission
    approver_id: UUID
    validated_at: datetime

    @property
    def validated_status(self) -> SubmissionStatus:
        return self.submission.status

    @property
    def validated_version(self) -> int:
        return self.submission.version

    @property
    def target_status(self) -> SubmissionStatus:
        return ACTION_TARGET_STATUS[self.decision.action]


@dataclass(frozen=True)
class DecisionOutcome:
    submission_id: UUID
    previous_status: SubmissionStatus
    new_status: SubmissionStatus
    processed_item_count: int
    reviewer_id: UUID
    reviewed_at: datetime
    audit_entry_id: UUID | None = None


@dataclass(frozen=True)
class BulkItemResult:
    """Outcome of one submission id inside a bulk call."""

    submission_id: UUID
    success: bool
    new_status: SubmissionStatus | None = None
    error_code: str | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class AuditEntry:
    """
    One activity-log record.

    ``payload`` holds the full decision (or assignment / priority change)
    in JSON-safe form; ``payload_hash`` is its canonical SHA-256.
    """

    entry_id: UUID
    action: str
    entity_id: UUID
    actor_id: UUID
    created_at: datetime
    previous_status: SubmissionStatus | None = None
    new_status: SubmissionStatus | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    payload_hash: str | None = None
    entity_type: str = "submission"


@dataclass(frozen=True)
class ApprovalHistoryEntry:
    """Read model of an audit record for the approval history view."""

    entry_id: UUID
    submission_id: UUID
    action: str
    actor_id: UUID
    created_at: datetime
    previous_status: SubmissionStatus | None = None
    new_status: SubmissionStatus | None = None
    notes: str | None = None
    submission_number: str | None = None

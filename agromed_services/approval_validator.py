"""
agromed_services.approval_validator -- Gate for approval decisions.

Responsibility:
    Check a proposed ``ApprovalDecision`` against the caller's authority,
    the current submission state and live stock.  Returns a
    ``ValidatedDecision`` carrying the status observed here; the executor
    keys its conditional update on that status.

Architecture position:
    Services layer.  Reads through the Submission Store and the Catalog
    Reader; never writes.

Invariants enforced (first failure wins, in this order):
    1. The approver holds approval authority.
    2. The submission exists.
    3. Its status is ``pending`` or ``under_review``.
    4. The payload is complete for the action: approve and partial_approve
       need approved items (non-negative, no duplicate item ids), reject
       needs a non-blank reason, request_revision needs revision requests.
    5. For approve and partial_approve, every approved item belongs to the
       submission, does not exceed its requested quantity, and does not
       exceed the medicine's live available stock.  Quantities approved
       for the same medicine across items are summed before the stock
       check.

Failure modes:
    - PermissionDeniedError, SubmissionNotFoundError,
      SubmissionNotApprovableError, DecisionValidationError,
      UnknownSubmissionItemError, QuantityExceededError,
      InsufficientStockError.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from uuid import UUID

from agromed_kernel.domain.clock import Clock, SystemClock
from agromed_kernel.domain.decision import (
    QUANTITY_ACTIONS,
    ApprovalAction,
    ApprovalDecision,
    ValidatedDecision,
)
from agromed_kernel.domain.protocols import (
    ApprovalAuthority,
    CatalogReader,
    SubmissionStore,
)
from agromed_kernel.domain.submission import Submission, SubmissionItem
from agromed_kernel.exceptions import (
    DecisionValidationError,
    InsufficientStockError,
    QuantityExceededError,
    SubmissionNotApprovableError,
    SubmissionNotFoundError,
    UnknownSubmissionItemError,
)
from agromed_kernel.logging_config import get_logger
from agromed_services.authorization import require_approval_permission

logger = get_logger("services.approval_validator")


class ApprovalValidator:
    """Validates decisions against authority, state and live stock."""

    def __init__(
        self,
        store: SubmissionStore,
        catalog: CatalogReader,
        authority: ApprovalAuthority,
        clock: Clock | None = None,
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._authority = authority
        self._clock = clock or SystemClock()

    def validate(self, decision: ApprovalDecision, approver_id: UUID) -> ValidatedDecision:
        require_approval_permission(self._authority, approver_id, "approval_decision")

        submission = self._store.get_submission_with_items(decision.submission_id)
        if submission is None:
            raise SubmissionNotFoundError(str(decision.submission_id))

        if not submission.is_approvable:
            raise SubmissionNotApprovableError(
                str(submission.submission_id), submission.status.value
            )

        self._check_payload(decision)

        if decision.action in QUANTITY_ACTIONS:
            self._check_items(decision, submission)

        logger.info(
            "decision_validated",
            extra={
                "submission_id": str(submission.submission_id),
                "action": decision.action.value,
                "validated_status": submission.status.value,
                "approved_item_count": len(decision.approved_items),
            },
        )
        return ValidatedDecision(
            decision=decision,
            submission=submission,
            approver_id=approver_id,
            validated_at=self._clock.now(),
        )

    # ------------------------------------------------------------------
    # Rule 4: payload completeness
    # ------------------------------------------------------------------

    def _check_payload(self, decision: ApprovalDecision) -> None:
        action = decision.action.value

        if decision.action in QUANTITY_ACTIONS:
            if not decision.approved_items:
                raise DecisionValidationError(
                    action, "approved_items_required", "approved items are required"
                )
            seen: set[UUID] = set()
            for item in decision.approved_items:
                if item.approved_quantity < 0:
                    raise DecisionValidationError(
                        action,
                        "non_negative_quantity",
                        f"approved quantity ({item.approved_quantity}) for item "
                        f"{item.submission_item_id} must not be negative",
                    )
                if item.submission_item_id in seen:
                    raise DecisionValidationError(
                        action,
                        "unique_items",
                        f"item {item.submission_item_id} appears more than once",
                    )
                seen.add(item.submission_item_id)

        elif decision.action is ApprovalAction.REJECT:
            if not (decision.rejection_reason or "").strip():
                raise DecisionValidationError(
                    action, "rejection_reason_required", "rejection reason is required"
                )

        elif decision.action is ApprovalAction.REQUEST_REVISION:
            if not any(request.strip() for request in decision.revision_requests):
                raise DecisionValidationError(
                    action, "revision_requests_required", "revision requests are required"
                )

    # ------------------------------------------------------------------
    # Rule 5: item quantities against request and live stock
    # ------------------------------------------------------------------

    def _check_items(self, decision: ApprovalDecision, submission: Submission) -> None:
        approved_by_medicine: dict[UUID, Decimal] = defaultdict(Decimal)
        lines: dict[UUID, SubmissionItem] = {}

        for approved in decision.approved_items:
            line = submission.item(approved.submission_item_id)
            if line is None:
                raise UnknownSubmissionItemError(
                    str(submission.submission_id), str(approved.submission_item_id)
                )
            if approved.approved_quantity > line.requested_quantity:
                raise QuantityExceededError(
                    self._medicine_label(line),
                    approved.approved_quantity,
                    line.requested_quantity,
                )

            available = self._available_stock(line)
            if approved.approved_quantity > available:
                raise InsufficientStockError(
                    self._medicine_label(line), approved.approved_quantity, available
                )

            approved_by_medicine[line.medicine_id] += approved.approved_quantity
            lines.setdefault(line.medicine_id, line)

        for medicine_id, total in approved_by_medicine.items():
            line = lines[medicine_id]
            available = self._available_stock(line)
            if total > available:
                raise InsufficientStockError(self._medicine_label(line), total, available)

    def _available_stock(self, line: SubmissionItem) -> Decimal:
        medicine = self._catalog.find_medicine(line.medicine_id)
        if medicine is None:
            return Decimal("0")
        return medicine.available_stock

    @staticmethod
    def _medicine_label(line: SubmissionItem) -> str:
        return line.medicine_name or str(line.medicine_id)

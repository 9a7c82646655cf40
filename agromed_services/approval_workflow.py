"""
agromed_services.approval_workflow -- Approval workflow facade.

Responsibility:
    Single entry point for callers (a thin controller, a CLI, a job).
    Constructs the Recommendation Engine, Approval Validator and Approval
    Executor exactly once, wires them to the same collaborators, and
    exposes the approval operations: recommendations, single and bulk
    decisions, reviewer assignment, priority changes, approval history and
    statistics.

Architecture position:
    Services -- top layer.  The only place where the approval pipeline is
    composed.  ``from_session`` builds the SQL reference collaborators and
    loads the engine parameters through ``agromed_config.get_active_config``.

Invariants enforced:
    - Every operation that changes a submission checks approval authority
      first.
    - Bulk calls reject an empty batch or one above the configured cap
      before touching the store, then process each id independently and
      collect one result per id in input order.
    - Assignment and priority changes write their audit entry in the same
      unit of work as the change.

Failure modes:
    - Single-submission operations propagate the first failing rule.
    - Bulk operations never raise per-id errors; ``BulkItemResult`` carries
      the error code and message.  Errors outside the kernel hierarchy
      (database failures) are logged with their traceback and reported as
      ``INTERNAL_ERROR``.

Audit relevance:
    Decisions, assignments and priority changes each leave exactly one
    activity-log entry whose payload hash is logged at commit.

Usage:
    workflow = ApprovalWorkflowService.from_session(
        session, authority=StaticApprovalAuthority([reviewer_id]), clock=clock,
    )
    recommendation = workflow.generate_recommendations(submission_id, actor_id=reviewer_id)
    outcome = workflow.validate_and_approve(decision, reviewer_id)
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from pathlib import Path
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from agromed_config import get_active_config
from agromed_engines.usage_stats import fold_medicine_usage, queue_risk_distribution
from agromed_kernel.domain.clock import Clock, SystemClock
from agromed_kernel.domain.decision import (
    BULK_ACTIONS,
    ApprovalAction,
    ApprovalDecision,
    ApprovalHistoryEntry,
    ApprovedItem,
    AuditEntry,
    BulkItemResult,
    DecisionOutcome,
)
from agromed_kernel.domain.engine_config import EngineConfig
from agromed_kernel.domain.protocols import (
    ApprovalAuthority,
    ApprovalReadModel,
    CatalogReader,
    SubmissionStore,
)
from agromed_kernel.domain.recommendation import (
    ApprovalRecommendation,
    ApprovalStatistics,
    RecommendationOptions,
)
from agromed_kernel.domain.submission import (
    StatusUpdate,
    Submission,
    SubmissionPriority,
    SubmissionStatus,
    is_transition_allowed,
)
from agromed_kernel.exceptions import (
    AgromedKernelError,
    BatchTooLargeError,
    DecisionValidationError,
    InvalidPriorityError,
    InvalidStatusTransitionError,
    SubmissionNotFoundError,
    ValidationError,
)
from agromed_kernel.logging_config import LogContext, get_logger
from agromed_kernel.selectors.catalog_selector import CatalogSelector
from agromed_kernel.selectors.submission_selector import SubmissionSelector
from agromed_kernel.services.submission_store import SqlSubmissionStore
from agromed_kernel.utils.hashing import hash_payload
from agromed_services.approval_executor import ApprovalExecutor, PostCommitHook
from agromed_services.approval_validator import ApprovalValidator
from agromed_services.authorization import (
    AllowAllApprovalAuthority,
    require_approval_permission,
)
from agromed_services.recommendation_engine import RecommendationEngine

logger = get_logger("services.approval_workflow")

# Error code for a per-id failure outside the kernel error hierarchy
BULK_INTERNAL_ERROR = "INTERNAL_ERROR"


class ApprovalWorkflowService:
    """Composes and exposes the approval pipeline.

    Contract:
        Receives the four collaborators plus an optional Clock and
        EngineConfig.  Every component shares the same instances.

    Non-goals:
        - Does NOT own the Session lifecycle; ``SqlSubmissionStore``
          commits inside its unit of work when built with auto_commit.
    """

    def __init__(
        self,
        catalog: CatalogReader,
        store: SubmissionStore,
        read_model: ApprovalReadModel,
        authority: ApprovalAuthority,
        clock: Clock | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._read_model = read_model
        self._authority = authority
        self._clock = clock or SystemClock()
        self._config = config or EngineConfig()
        self._config_checksum = self._config.checksum or None

        self.recommendation_engine = RecommendationEngine(
            catalog, store, self._clock, self._config
        )
        self.validator = ApprovalValidator(store, catalog, authority, self._clock)
        self.executor = ApprovalExecutor(store, self._clock)

    @classmethod
    def from_session(
        cls,
        session: Session,
        authority: ApprovalAuthority | None = None,
        clock: Clock | None = None,
        config: EngineConfig | None = None,
        auto_commit: bool = True,
        config_path: Path | str | None = None,
    ) -> ApprovalWorkflowService:
        """
        Build the workflow over the SQLAlchemy reference collaborators.

        When ``config`` is omitted the parameter set is loaded through
        ``get_active_config(config_path)``, the shipped default set unless
        a path is given.
        """
        clock = clock or SystemClock()
        return cls(
            catalog=CatalogSelector(session, clock),
            store=SqlSubmissionStore(session, auto_commit=auto_commit),
            read_model=SubmissionSelector(session),
            authority=authority or AllowAllApprovalAuthority(),
            clock=clock,
            config=config or get_active_config(config_path),
        )

    def register_hook(self, hook: PostCommitHook) -> None:
        self.executor.register_hook(hook)

    # ------------------------------------------------------------------
    # Recommendations and decisions
    # ------------------------------------------------------------------

    def generate_recommendations(
        self,
        submission_id: UUID,
        options: RecommendationOptions | None = None,
        actor_id: UUID | None = None,
    ) -> ApprovalRecommendation:
        if actor_id is not None:
            require_approval_permission(self._authority, actor_id, "generate_recommendations")
        with LogContext.bind(
            actor_id=str(actor_id) if actor_id else None,
            config_checksum=self._config_checksum,
        ):
            return self.recommendation_engine.generate(submission_id, options)

    def validate_and_approve(
        self,
        decision: ApprovalDecision,
        approver_id: UUID,
    ) -> DecisionOutcome:
        """Validate ``decision`` against live state, then commit it."""
        with LogContext.bind(
            submission_id=str(decision.submission_id),
            actor_id=str(approver_id),
            config_checksum=self._config_checksum,
        ):
            validated = self.validator.validate(decision, approver_id)
            return self.executor.execute(validated, approver_id)

    def bulk_approve(
        self,
        submission_ids: Sequence[UUID],
        action: ApprovalAction | str,
        approver_id: UUID,
        notes: str | None = None,
        rejection_reason: str | None = None,
    ) -> list[BulkItemResult]:
        """
        Approve or reject many submissions, each independently.

        ``approve`` approves every item at its requested quantity and goes
        through full validation, stock checks included.

        Raises:
            ValidationError: empty batch.
            BatchTooLargeError: more ids than the cap.
            DecisionValidationError: action other than approve or reject.
            PermissionDeniedError: approver lacks approval authority.
        """
        maximum = self._config.approval.max_bulk_size
        if not submission_ids:
            raise ValidationError(
                "At least one submission id is required for a bulk operation",
                rule="batch_size",
            )
        if len(submission_ids) > maximum:
            raise BatchTooLargeError(len(submission_ids), maximum)

        bulk_action = _bulk_action(action)
        require_approval_permission(self._authority, approver_id, "bulk_approve")

        t0 = time.monotonic()
        with LogContext.bind(
            actor_id=str(approver_id),
            config_checksum=self._config_checksum,
        ):
            results = [
                self._bulk_one(submission_id, bulk_action, approver_id, notes, rejection_reason)
                for submission_id in submission_ids
            ]
        succeeded = sum(1 for result in results if result.success)

        logger.info(
            "bulk_approval_completed",
            extra={
                "action": bulk_action.value,
                "actor_id": str(approver_id),
                "requested": len(results),
                "succeeded": succeeded,
                "failed": len(results) - succeeded,
                "duration_ms": round((time.monotonic() - t0) * 1000, 2),
            },
        )
        return results

    def _bulk_one(
        self,
        submission_id: UUID,
        action: ApprovalAction,
        approver_id: UUID,
        notes: str | None,
        rejection_reason: str | None,
    ) -> BulkItemResult:
        try:
            with LogContext.bind(submission_id=str(submission_id)):
                decision = self._bulk_decision(
                    submission_id, action, notes, rejection_reason
                )
                validated = self.validator.validate(decision, approver_id)
                outcome = self.executor.execute(
                    validated,
                    approver_id,
                    audit_action=f"bulk_{action.value}",
                    extra_payload={"bulk_operation": True},
                )
        except AgromedKernelError as exc:
            logger.info(
                "bulk_item_failed",
                extra={
                    "submission_id": str(submission_id),
                    "error_code": exc.code,
                    "error_message": str(exc),
                },
            )
            return BulkItemResult(
                submission_id=submission_id,
                success=False,
                error_code=exc.code,
                error_message=str(exc),
            )
        except Exception as exc:
            logger.error(
                "bulk_item_failed",
                extra={
                    "submission_id": str(submission_id),
                    "error_code": BULK_INTERNAL_ERROR,
                    "error_message": str(exc),
                },
                exc_info=True,
            )
            return BulkItemResult(
                submission_id=submission_id,
                success=False,
                error_code=BULK_INTERNAL_ERROR,
                error_message=str(exc),
            )
        return BulkItemResult(
            submission_id=submission_id,
            success=True,
            new_status=outcome.new_status,
        )

    def _bulk_decision(
        self,
        submission_id: UUID,
        action: ApprovalAction,
        notes: str | None,
        rejection_reason: str | None,
    ) -> ApprovalDecision:
        if action is ApprovalAction.REJECT:
            return ApprovalDecision(
                submission_id=submission_id,
                action=action,
                rejection_reason=rejection_reason or notes,
                notes=notes,
            )

        submission = self._store.get_submission_with_items(submission_id)
        if submission is None:
            raise SubmissionNotFoundError(str(submission_id))
        return ApprovalDecision(
            submission_id=submission_id,
            action=action,
            approved_items=tuple(
                ApprovedItem(
                    submission_item_id=item.item_id,
                    approved_quantity=item.requested_quantity,
                )
                for item in submission.items
            ),
            notes=notes,
        )

    # ------------------------------------------------------------------
    # Assignment and priority
    # ------------------------------------------------------------------

    def assign_for_review(
        self,
        submission_id: UUID,
        reviewer_id: UUID,
        assigned_by: UUID,
    ) -> Submission:
        """Move a pending submission to ``under_review`` with a reviewer."""
        require_approval_permission(self._authority, assigned_by, "assign_for_review")

        submission = self._require_submission(submission_id)
        target = SubmissionStatus.UNDER_REVIEW
        if not is_transition_allowed(submission.status, target):
            raise InvalidStatusTransitionError(submission.status.value, target.value)

        now = self._clock.now()
        payload = {
            "submission_id": str(submission_id),
            "reviewer_id": str(reviewer_id),
            "previous_status": submission.status.value,
            "new_status": target.value,
        }
        with self._store.unit_of_work():
            updated = self._store.update_status_and_items(
                StatusUpdate(
                    submission_id=submission_id,
                    expected_status=submission.status,
                    expected_version=submission.version,
                    new_status=target,
                    reviewer_id=reviewer_id,
                    reviewed_at=None,
                )
            )
            self._store.append_audit_log(
                AuditEntry(
                    entry_id=uuid4(),
                    action="assign_review",
                    entity_id=submission_id,
                    actor_id=assigned_by,
                    created_at=now,
                    previous_status=submission.status,
                    new_status=target,
                    payload=payload,
                    payload_hash=hash_payload(payload),
                )
            )

        logger.info(
            "submission_assigned",
            extra={
                "submission_id": str(submission_id),
                "reviewer_id": str(reviewer_id),
                "assigned_by": str(assigned_by),
            },
        )
        return updated

    def update_priority(
        self,
        submission_id: UUID,
        priority: SubmissionPriority | str,
        updated_by: UUID,
        reason: str | None = None,
    ) -> Submission:
        require_approval_permission(self._authority, updated_by, "update_priority")
        try:
            new_priority = SubmissionPriority(priority)
        except ValueError:
            raise InvalidPriorityError(str(priority)) from None

        submission = self._require_submission(submission_id)
        payload = {
            "submission_id": str(submission_id),
            "previous_priority": submission.priority.value,
            "new_priority": new_priority.value,
            "reason": reason,
        }
        with self._store.unit_of_work():
            updated = self._store.update_priority(submission_id, new_priority)
            self._store.append_audit_log(
                AuditEntry(
                    entry_id=uuid4(),
                    action="update_priority",
                    entity_id=submission_id,
                    actor_id=updated_by,
                    created_at=self._clock.now(),
                    previous_status=submission.status,
                    new_status=submission.status,
                    payload=payload,
                    payload_hash=hash_payload(payload),
                )
            )

        logger.info(
            "submission_priority_updated",
            extra={
                "submission_id": str(submission_id),
                "previous_priority": submission.priority.value,
                "new_priority": new_priority.value,
            },
        )
        return updated

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    def get_approval_history(
        self,
        submission_id: UUID | None = None,
        approver_id: UUID | None = None,
        limit: int | None = None,
    ) -> list[ApprovalHistoryEntry]:
        return self._read_model.list_history(
            submission_id=submission_id,
            actor_id=approver_id,
            limit=limit or self._config.approval.history_default_limit,
        )

    def get_approval_statistics(self, district: str | None = None) -> ApprovalStatistics:
        status_counts = self._read_model.count_by_status(district)
        now = self._clock.now()
        return ApprovalStatistics(
            total_submissions=sum(status_counts.values()),
            status_counts=status_counts,
            medicine_usage=fold_medicine_usage(self._read_model.usage_lines(district)),
            risk_distribution=queue_risk_distribution(
                self._read_model.open_submissions(district),
                now,
                self._config.approval,
            ),
            top_districts=tuple(
                self._read_model.top_districts(
                    district, self._config.approval.top_districts_limit
                )
            ),
            district=district,
            generated_at=now,
        )

    def _require_submission(self, submission_id: UUID) -> Submission:
        submission = self._store.get_submission_with_items(submission_id)
        if submission is None:
            raise SubmissionNotFoundError(str(submission_id))
        return submission


def _bulk_action(action: ApprovalAction | str) -> ApprovalAction:
    try:
        resolved = ApprovalAction(action)
    except ValueError:
        resolved = None
    if resolved not in BULK_ACTIONS:
        raise DecisionValidationError(
            str(getattr(action, "value", action)),
            "bulk_action",
            "bulk operations support approve or reject only",
        )
    return resolved

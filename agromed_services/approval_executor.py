"""
agromed_services.approval_executor -- Apply a validated decision.

Responsibility:
    Persist a ``ValidatedDecision``: the new submission status with the
    reviewer fields, the approved quantities and notes on each named item,
    and one audit entry holding the previous status, the new status and the
    full decision payload.  Then notify registered post-commit hooks.

Architecture position:
    Services layer.  Thin orchestration over the Submission Store; all
    writes happen inside one ``store.unit_of_work()``.

Invariants enforced:
    - Atomicity: status, items and audit entry commit together or not at
      all.
    - Compare-and-set: the status write is conditional on the status read
      during validation.  A lost race surfaces as
      ``StaleSubmissionStatusError`` and nothing is written.
    - Hooks run once, only after a successful commit.  A failing hook is
      logged and never affects the committed decision.

Failure modes:
    - InvalidStatusTransitionError -- target status unreachable from the
      validated status.
    - StaleSubmissionStatusError -- another decision committed first.
    - Store errors propagate after the unit of work rolls back.
"""

from __future__ import annotations

from collections.abc import Callable
from uuid import UUID, uuid4

from agromed_kernel.domain.clock import Clock, SystemClock
from agromed_kernel.domain.decision import (
    ApprovalAction,
    ApprovalDecision,
    AuditEntry,
    DecisionOutcome,
    ValidatedDecision,
)
from agromed_kernel.domain.protocols import SubmissionStore
from agromed_kernel.domain.submission import (
    ItemAdjustment,
    StatusUpdate,
    is_transition_allowed,
)
from agromed_kernel.exceptions import InvalidStatusTransitionError
from agromed_kernel.logging_config import LogContext, get_logger
from agromed_kernel.utils.hashing import hash_payload

logger = get_logger("services.approval_executor")

PostCommitHook = Callable[[ApprovalDecision, DecisionOutcome], None]


class ApprovalExecutor:
    """Commits validated decisions through the Submission Store."""

    def __init__(self, store: SubmissionStore, clock: Clock | None = None) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._hooks: list[PostCommitHook] = []

    def register_hook(self, hook: PostCommitHook) -> None:
        """Register a callable invoked as ``hook(decision, outcome)`` after commit."""
        self._hooks.append(hook)

    def execute(
        self,
        validated: ValidatedDecision,
        approver_id: UUID,
        audit_action: str | None = None,
        extra_payload: dict | None = None,
    ) -> DecisionOutcome:
        """
        Persist ``validated`` atomically and return the outcome.

        Args:
            validated: Output of ``ApprovalValidator.validate``.
            approver_id: Reviewer recorded on the submission.
            audit_action: Activity-log action; defaults to the decision's
                action value.
            extra_payload: Additional keys merged into the audit payload.
        """
        decision = validated.decision
        previous = validated.validated_status
        target = validated.target_status

        if not is_transition_allowed(previous, target):
            raise InvalidStatusTransitionError(previous.value, target.value)

        reviewed_at = self._clock.now()
        payload = {
            **decision.to_payload(),
            "previous_status": previous.value,
            "new_status": target.value,
            **(extra_payload or {}),
        }
        entry = AuditEntry(
            entry_id=uuid4(),
            action=audit_action or decision.action.value,
            entity_id=decision.submission_id,
            actor_id=approver_id,
            created_at=reviewed_at,
            previous_status=previous,
            new_status=target,
            payload=payload,
            payload_hash=hash_payload(payload),
        )

        with LogContext.bind(
            submission_id=str(decision.submission_id),
            actor_id=str(approver_id),
        ):
            with self._store.unit_of_work():
                self._store.update_status_and_items(
                    StatusUpdate(
                        submission_id=decision.submission_id,
                        expected_status=previous,
                        expected_version=validated.validated_version,
                        new_status=target,
                        reviewer_id=approver_id,
                        reviewed_at=reviewed_at,
                        reviewer_notes=_reviewer_notes(decision),
                        item_adjustments=tuple(
                            ItemAdjustment(
                                item_id=item.submission_item_id,
                                approved_quantity=item.approved_quantity,
                                notes=item.notes,
                            )
                            for item in decision.approved_items
                        ),
                    )
                )
                self._store.append_audit_log(entry)

            outcome = DecisionOutcome(
                submission_id=decision.submission_id,
                previous_status=previous,
                new_status=target,
                processed_item_count=len(decision.approved_items),
                reviewer_id=approver_id,
                reviewed_at=reviewed_at,
                audit_entry_id=entry.entry_id,
            )

            logger.info(
                "approval_committed",
                extra={
                    "action": entry.action,
                    "previous_status": previous.value,
                    "new_status": target.value,
                    "processed_item_count": outcome.processed_item_count,
                    "audit_entry_id": str(entry.entry_id),
                    "payload_hash": entry.payload_hash,
                },
            )

            self._run_hooks(decision, outcome)
        return outcome

    def _run_hooks(self, decision: ApprovalDecision, outcome: DecisionOutcome) -> None:
        for hook in self._hooks:
            try:
                hook(decision, outcome)
            except Exception:
                logger.warning(
                    "post_commit_hook_failed",
                    extra={
                        "hook": getattr(hook, "__qualname__", repr(hook)),
                        "new_status": outcome.new_status.value,
                    },
                    exc_info=True,
                )


def _reviewer_notes(decision: ApprovalDecision) -> str | None:
    if decision.action is ApprovalAction.REJECT:
        return decision.rejection_reason
    return decision.notes

"""
Tests for the Approval Workflow facade and the Approval Executor.

Tests cover:
- Action -> status mapping and persisted reviewer fields
- One audit entry per committed decision, with its payload hash
- Post-commit hooks (failures logged, never propagated)
- Bulk approve / reject: batch bounds before any store call, per-id results
- Reviewer assignment and priority changes with their audit entries
- Approval history and statistics read models
"""

from contextlib import contextmanager
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from agromed_kernel.domain.decision import (
    ApprovalAction,
    ApprovalDecision,
    ApprovedItem,
)
from agromed_kernel.domain.submission import SubmissionPriority, SubmissionStatus
from agromed_kernel.exceptions import (
    BatchTooLargeError,
    DecisionValidationError,
    InvalidPriorityError,
    InvalidStatusTransitionError,
    PermissionDeniedError,
    SubmissionNotApprovableError,
    ValidationError,
)
from agromed_kernel.models.activity_log import ActivityLogModel
from agromed_kernel.models.submission import SubmissionItemModel, SubmissionModel
from agromed_kernel.utils.hashing import hash_payload
from agromed_services import AllowAllApprovalAuthority, ApprovalWorkflowService


def item_ids(session, submission_id):
    return list(
        session.scalars(
            select(SubmissionItemModel.id)
            .where(SubmissionItemModel.submission_id == submission_id)
            .order_by(SubmissionItemModel.line_number)
        )
    )


def load_submission(session, submission_id) -> SubmissionModel:
    session.expire_all()
    return session.get(SubmissionModel, submission_id)


def audit_rows(session, submission_id=None) -> list[ActivityLogModel]:
    stmt = select(ActivityLogModel)
    if submission_id is not None:
        stmt = stmt.where(ActivityLogModel.entity_id == submission_id)
    return list(session.scalars(stmt))


def make_decision(session, submission_id, action, quantity="10", **kwargs):
    approved = ()
    if action in (ApprovalAction.APPROVE, ApprovalAction.PARTIAL_APPROVE):
        approved = tuple(
            ApprovedItem(submission_item_id=item_id, approved_quantity=Decimal(quantity))
            for item_id in item_ids(session, submission_id)
        )
    return ApprovalDecision(
        submission_id=submission_id,
        action=action,
        approved_items=approved,
        **kwargs,
    )


class _RecordingStore:
    """Submission Store that records every call and holds nothing."""

    def __init__(self):
        self.calls = []

    def get_submission_with_items(self, submission_id):
        self.calls.append(("get_submission_with_items", submission_id))
        return None

    def update_status_and_items(self, status_update):
        self.calls.append(("update_status_and_items", status_update))

    def update_priority(self, submission_id, priority):
        self.calls.append(("update_priority", submission_id))

    def append_audit_log(self, entry):
        self.calls.append(("append_audit_log", entry))

    @contextmanager
    def unit_of_work(self):
        self.calls.append(("unit_of_work",))
        yield


class _EmptyCatalog:

    def find_medicine(self, medicine_id):
        return None

    def find_medicines_by_pest_targets(self, pests, exclude_id, limit, min_lot_quantity=None):
        return []


# =============================================================================
# Single decisions
# =============================================================================


class TestValidateAndApprove:

    @pytest.mark.parametrize(
        ("action", "expected", "extra"),
        [
            (ApprovalAction.APPROVE, SubmissionStatus.APPROVED, {}),
            (ApprovalAction.PARTIAL_APPROVE, SubmissionStatus.PARTIALLY_APPROVED, {}),
            (ApprovalAction.REJECT, SubmissionStatus.REJECTED, {"rejection_reason": "Hama sudah teratasi"}),
            (ApprovalAction.REQUEST_REVISION, SubmissionStatus.PENDING, {"revision_requests": ("Lampirkan foto",)}),
        ],
    )
    def test_status_mapping(
        self, session, workflow, reviewer_id, create_medicine, create_submission,
        action, expected, extra,
    ):
        submission_id = create_submission(items=[(create_medicine(), 10)])
        decision = make_decision(session, submission_id, action, **extra)

        outcome = workflow.validate_and_approve(decision, reviewer_id)

        assert outcome.previous_status is SubmissionStatus.PENDING
        assert outcome.new_status is expected
        assert load_submission(session, submission_id).status == expected.value

    def test_persists_reviewer_and_quantities(
        self, session, workflow, reviewer_id, create_medicine, create_submission, deterministic_clock
    ):
        submission_id = create_submission(items=[(create_medicine(), 10)])
        decision = make_decision(
            session, submission_id, ApprovalAction.PARTIAL_APPROVE, quantity="7.5",
            notes="Sebagian dulu",
        )

        outcome = workflow.validate_and_approve(decision, reviewer_id)

        model = load_submission(session, submission_id)
        assert model.reviewer_id == reviewer_id
        assert model.reviewer_notes == "Sebagian dulu"
        assert model.to_dto().reviewed_at == deterministic_clock.now()
        assert model.items[0].approved_quantity == Decimal("7.5")
        assert outcome.processed_item_count == 1
        assert outcome.reviewed_at == deterministic_clock.now()

    def test_reject_records_reason_as_reviewer_notes(
        self, session, workflow, reviewer_id, create_submission
    ):
        submission_id = create_submission()
        decision = make_decision(
            session, submission_id, ApprovalAction.REJECT,
            rejection_reason="Dosis tidak sesuai", notes="ignored",
        )

        workflow.validate_and_approve(decision, reviewer_id)

        assert load_submission(session, submission_id).reviewer_notes == "Dosis tidak sesuai"

    def test_writes_one_audit_entry(
        self, session, workflow, reviewer_id, create_medicine, create_submission
    ):
        submission_id = create_submission(items=[(create_medicine(), 10)])
        decision = make_decision(session, submission_id, ApprovalAction.APPROVE)

        outcome = workflow.validate_and_approve(decision, reviewer_id)

        (row,) = audit_rows(session, submission_id)
        assert row.id == outcome.audit_entry_id
        assert row.action == "approve"
        assert row.actor_id == reviewer_id
        assert row.previous_status == "pending"
        assert row.new_status == "approved"
        assert row.payload["action"] == "approve"
        assert row.payload["new_status"] == "approved"
        assert row.payload_hash == hash_payload(row.payload)

    def test_second_decision_is_refused(
        self, session, workflow, reviewer_id, create_medicine, create_submission
    ):
        submission_id = create_submission(items=[(create_medicine(), 10)])
        decision = make_decision(session, submission_id, ApprovalAction.APPROVE)
        workflow.validate_and_approve(decision, reviewer_id)

        with pytest.raises(SubmissionNotApprovableError):
            workflow.validate_and_approve(decision, reviewer_id)
        assert len(audit_rows(session, submission_id)) == 1

    def test_logs_commit(
        self, session, workflow, reviewer_id, create_medicine, create_submission, captured_logs
    ):
        submission_id = create_submission(items=[(create_medicine(), 10)])
        workflow.validate_and_approve(
            make_decision(session, submission_id, ApprovalAction.APPROVE), reviewer_id
        )

        (record,) = [r for r in captured_logs() if r["message"] == "approval_committed"]
        assert record["submission_id"] == str(submission_id)
        assert record["actor_id"] == str(reviewer_id)
        assert record["new_status"] == "approved"
        assert len(record["payload_hash"]) == 64
        assert record["config_checksum"] == workflow._config.checksum


class TestExecutorTransitions:

    def test_refuses_unreachable_target(
        self, session, workflow, reviewer_id, create_submission
    ):
        # validation snapshot of a submission that has since become terminal
        submission_id = create_submission()
        decision = make_decision(
            session, submission_id, ApprovalAction.REJECT, rejection_reason="x"
        )
        validated = workflow.validator.validate(decision, reviewer_id)
        stale = replace(
            validated,
            submission=replace(validated.submission, status=SubmissionStatus.REJECTED),
        )

        with pytest.raises(InvalidStatusTransitionError):
            workflow.executor.execute(stale, reviewer_id)
        assert audit_rows(session) == []


class TestPostCommitHooks:

    def test_hook_receives_decision_and_outcome(
        self, session, workflow, reviewer_id, create_medicine, create_submission
    ):
        calls = []
        workflow.register_hook(lambda decision, outcome: calls.append((decision, outcome)))
        submission_id = create_submission(items=[(create_medicine(), 10)])
        decision = make_decision(session, submission_id, ApprovalAction.APPROVE)

        outcome = workflow.validate_and_approve(decision, reviewer_id)

        assert calls == [(decision, outcome)]

    def test_failing_hook_does_not_undo_commit(
        self, session, workflow, reviewer_id, create_medicine, create_submission, captured_logs
    ):
        later = []

        def broken_notifier(decision, outcome):
            raise RuntimeError("notification service down")

        workflow.register_hook(broken_notifier)
        workflow.register_hook(lambda decision, outcome: later.append(outcome.new_status))
        submission_id = create_submission(items=[(create_medicine(), 10)])

        outcome = workflow.validate_and_approve(
            make_decision(session, submission_id, ApprovalAction.APPROVE), reviewer_id
        )

        assert outcome.new_status is SubmissionStatus.APPROVED
        assert load_submission(session, submission_id).status == "approved"
        assert later == [SubmissionStatus.APPROVED]
        failures = [r for r in captured_logs() if r["message"] == "post_commit_hook_failed"]
        assert len(failures) == 1
        assert failures[0]["exc_type"] == "RuntimeError"

    def test_hooks_not_called_when_validation_fails(
        self, session, workflow, reviewer_id, create_submission
    ):
        calls = []
        workflow.register_hook(lambda decision, outcome: calls.append(outcome))
        submission_id = create_submission()

        with pytest.raises(ValidationError):
            workflow.validate_and_approve(
                make_decision(session, submission_id, ApprovalAction.REJECT), reviewer_id
            )
        assert calls == []


# =============================================================================
# Bulk
# =============================================================================


class TestBulkBounds:

    def _workflow(self, store):
        return ApprovalWorkflowService(
            catalog=_EmptyCatalog(),
            store=store,
            read_model=None,
            authority=AllowAllApprovalAuthority(),
        )

    def test_more_than_fifty_ids_rejected_before_store(self):
        store = _RecordingStore()
        ids = [uuid4() for _ in range(51)]

        with pytest.raises(BatchTooLargeError) as exc_info:
            self._workflow(store).bulk_approve(ids, "approve", uuid4())

        assert exc_info.value.size == 51
        assert exc_info.value.maximum == 50
        assert store.calls == []

    def test_empty_batch_rejected(self):
        store = _RecordingStore()
        with pytest.raises(ValidationError) as exc_info:
            self._workflow(store).bulk_approve([], "approve", uuid4())
        assert exc_info.value.rule == "batch_size"
        assert store.calls == []

    def test_fifty_ids_are_processed(self):
        store = _RecordingStore()
        ids = [uuid4() for _ in range(50)]

        results = self._workflow(store).bulk_approve(ids, "approve", uuid4())

        assert [r.submission_id for r in results] == ids
        assert all(r.error_code == "SUBMISSION_NOT_FOUND" for r in results)

    @pytest.mark.parametrize("action", ["partial_approve", "request_revision", "archive"])
    def test_unsupported_action(self, action):
        store = _RecordingStore()
        with pytest.raises(DecisionValidationError) as exc_info:
            self._workflow(store).bulk_approve([uuid4()], action, uuid4())
        assert exc_info.value.rule == "bulk_action"
        assert store.calls == []


class TestBulkApprove:

    def test_results_per_id_in_input_order(
        self, session, workflow, reviewer_id, create_medicine, create_submission
    ):
        regent = create_medicine(lots=((100, 365),))
        scarce = create_medicine(name="Scarce", lots=((1, 365),))
        ok = create_submission(items=[(regent, 10)])
        missing = uuid4()
        done = create_submission(items=[(regent, 10)], status="approved")
        short = create_submission(items=[(scarce, 10)])

        results = workflow.bulk_approve([ok, missing, done, short], "approve", reviewer_id)

        assert [r.submission_id for r in results] == [ok, missing, done, short]
        assert [r.success for r in results] == [True, False, False, False]
        assert results[0].new_status is SubmissionStatus.APPROVED
        assert [r.error_code for r in results[1:]] == [
            "SUBMISSION_NOT_FOUND",
            "SUBMISSION_NOT_APPROVABLE",
            "INSUFFICIENT_STOCK",
        ]
        assert all(r.error_message for r in results[1:])
        assert load_submission(session, short).status == "pending"

    def test_approves_requested_quantities(
        self, session, workflow, reviewer_id, create_medicine, create_submission
    ):
        submission_id = create_submission(items=[(create_medicine(), "12.5")])

        workflow.bulk_approve([submission_id], ApprovalAction.APPROVE, reviewer_id)

        assert load_submission(session, submission_id).items[0].approved_quantity == Decimal("12.5")

    def test_bulk_audit_entries(
        self, session, workflow, reviewer_id, create_medicine, create_submission
    ):
        submission_id = create_submission(items=[(create_medicine(), 10)])

        workflow.bulk_approve([submission_id], "approve", reviewer_id, notes="Rapat mingguan")

        (row,) = audit_rows(session, submission_id)
        assert row.action == "bulk_approve"
        assert row.payload["bulk_operation"] is True
        assert row.payload["notes"] == "Rapat mingguan"

    def test_bulk_reject(self, session, workflow, reviewer_id, create_submission):
        first, second = create_submission(), create_submission()

        results = workflow.bulk_approve(
            [first, second], "reject", reviewer_id, rejection_reason="Anggaran habis"
        )

        assert all(r.new_status is SubmissionStatus.REJECTED for r in results)
        for submission_id in (first, second):
            assert load_submission(session, submission_id).reviewer_notes == "Anggaran habis"
            assert audit_rows(session, submission_id)[0].action == "bulk_reject"

    def test_bulk_reject_without_reason_fails_per_id(
        self, session, workflow, reviewer_id, create_submission
    ):
        submission_id = create_submission()

        (result,) = workflow.bulk_approve([submission_id], "reject", reviewer_id)

        assert result.success is False
        assert result.error_code == "DECISION_VALIDATION_ERROR"

    def test_permission_denied(self, workflow, create_submission):
        with pytest.raises(PermissionDeniedError):
            workflow.bulk_approve([create_submission()], "approve", uuid4())

    def test_logs_summary(
        self, workflow, reviewer_id, create_medicine, create_submission, captured_logs
    ):
        ok = create_submission(items=[(create_medicine(), 10)])

        workflow.bulk_approve([ok, uuid4()], "approve", reviewer_id)

        (summary,) = [r for r in captured_logs() if r["message"] == "bulk_approval_completed"]
        assert summary["succeeded"] == 1
        assert summary["failed"] == 1
        failures = [r for r in captured_logs() if r["message"] == "bulk_item_failed"]
        assert failures[0]["error_code"] == "SUBMISSION_NOT_FOUND"

    def test_database_error_for_one_id_does_not_abort_batch(
        self, session, workflow, reviewer_id, create_medicine, create_submission,
        captured_logs, monkeypatch,
    ):
        regent = create_medicine()
        broken, first, second = (
            create_submission(items=[(regent, 10)]) for _ in range(3)
        )
        load = workflow._store.get_submission_with_items

        def flaky_load(submission_id):
            if submission_id == broken:
                raise OperationalError("SELECT submissions", {}, Exception("database is locked"))
            return load(submission_id)

        monkeypatch.setattr(workflow._store, "get_submission_with_items", flaky_load)

        results = workflow.bulk_approve([broken, first, second], "approve", reviewer_id)

        assert [r.submission_id for r in results] == [broken, first, second]
        assert [r.success for r in results] == [False, True, True]
        assert results[0].error_code == "INTERNAL_ERROR"
        assert "database is locked" in results[0].error_message
        assert load_submission(session, broken).status == "pending"
        assert load_submission(session, second).status == "approved"
        (failure,) = [r for r in captured_logs() if r["message"] == "bulk_item_failed"]
        assert failure["level"] == "ERROR"
        assert "OperationalError" in failure["traceback"]


# =============================================================================
# Assignment and priority
# =============================================================================


class TestAssignForReview:

    def test_moves_to_under_review(self, session, workflow, reviewer_id, create_submission):
        submission_id = create_submission()
        assignee = uuid4()

        updated = workflow.assign_for_review(submission_id, assignee, reviewer_id)

        assert updated.status is SubmissionStatus.UNDER_REVIEW
        assert updated.reviewer_id == assignee
        assert updated.reviewed_at is None
        (row,) = audit_rows(session, submission_id)
        assert row.action == "assign_review"
        assert row.actor_id == reviewer_id
        assert row.payload["reviewer_id"] == str(assignee)

    def test_assigned_submission_stays_approvable(
        self, session, workflow, reviewer_id, create_medicine, create_submission
    ):
        submission_id = create_submission(items=[(create_medicine(), 10)])
        workflow.assign_for_review(submission_id, reviewer_id, reviewer_id)

        outcome = workflow.validate_and_approve(
            make_decision(session, submission_id, ApprovalAction.APPROVE), reviewer_id
        )
        assert outcome.previous_status is SubmissionStatus.UNDER_REVIEW

    @pytest.mark.parametrize("status", ["approved", "under_review", "rejected"])
    def test_only_from_pending(self, session, workflow, reviewer_id, create_submission, status):
        submission_id = create_submission(status=status)

        with pytest.raises(InvalidStatusTransitionError):
            workflow.assign_for_review(submission_id, uuid4(), reviewer_id)
        assert audit_rows(session, submission_id) == []

    def test_requires_authority(self, workflow, create_submission):
        with pytest.raises(PermissionDeniedError):
            workflow.assign_for_review(create_submission(), uuid4(), uuid4())


class TestUpdatePriority:

    def test_changes_priority(self, session, workflow, reviewer_id, create_submission):
        submission_id = create_submission(priority="low")

        updated = workflow.update_priority(
            submission_id, "urgent", reviewer_id, reason="Serangan meluas"
        )

        assert updated.priority is SubmissionPriority.URGENT
        assert load_submission(session, submission_id).priority == "urgent"
        (row,) = audit_rows(session, submission_id)
        assert row.action == "update_priority"
        assert row.payload["previous_priority"] == "low"
        assert row.payload["new_priority"] == "urgent"
        assert row.payload["reason"] == "Serangan meluas"

    def test_invalid_priority(self, session, workflow, reviewer_id, create_submission):
        submission_id = create_submission(priority="low")

        with pytest.raises(InvalidPriorityError):
            workflow.update_priority(submission_id, "critical", reviewer_id)

        assert load_submission(session, submission_id).priority == "low"
        assert audit_rows(session, submission_id) == []

    def test_requires_authority(self, workflow, create_submission):
        with pytest.raises(PermissionDeniedError):
            workflow.update_priority(create_submission(), "high", uuid4())


# =============================================================================
# Read models
# =============================================================================


class TestApprovalHistory:

    def test_filters_by_submission(
        self, session, workflow, reviewer_id, create_medicine, create_submission, deterministic_clock
    ):
        first = create_submission(
            items=[(create_medicine(), 10)], submission_number="SUB-0001"
        )
        second = create_submission(submission_number="SUB-0002")
        workflow.assign_for_review(first, reviewer_id, reviewer_id)
        deterministic_clock.advance(60)
        workflow.validate_and_approve(
            make_decision(session, first, ApprovalAction.APPROVE), reviewer_id
        )
        workflow.update_priority(second, "high", reviewer_id)

        history = workflow.get_approval_history(submission_id=first)

        assert [h.action for h in history] == ["approve", "assign_review"]
        assert all(h.submission_number == "SUB-0001" for h in history)
        assert history[0].new_status is SubmissionStatus.APPROVED

    def test_filters_by_approver_and_limits(
        self, session, workflow, reviewer_id, create_submission, deterministic_clock
    ):
        for _ in range(3):
            workflow.validate_and_approve(
                make_decision(
                    session, create_submission(), ApprovalAction.REJECT,
                    rejection_reason="Tidak sesuai",
                ),
                reviewer_id,
            )
            deterministic_clock.advance(1)

        assert len(workflow.get_approval_history(approver_id=reviewer_id)) == 3
        assert len(workflow.get_approval_history(approver_id=reviewer_id, limit=2)) == 2
        assert workflow.get_approval_history(approver_id=uuid4()) == []
        assert workflow.get_approval_history(approver_id=reviewer_id)[0].notes == "Tidak sesuai"


class TestApprovalStatistics:

    def test_counts_usage_and_queue_risk(
        self, session, workflow, reviewer_id, create_medicine, create_submission, deterministic_clock
    ):
        regent = create_medicine(name="Regent 50 SC")
        score = create_medicine(name="Score 250 EC", category="fungisida")
        approved = create_submission(items=[(regent, 10), (score, 4)])
        create_submission(items=[(regent, 6)])
        create_submission(
            items=[(regent, 2)],
            priority="urgent",
            created_at=deterministic_clock.now() - timedelta(days=20),
        )
        create_submission(items=[(score, 1)], district="Bantul", status="rejected")
        workflow.validate_and_approve(
            make_decision(session, approved, ApprovalAction.APPROVE, quantity="4"),
            reviewer_id,
        )

        stats = workflow.get_approval_statistics(district="Sleman")

        assert stats.total_submissions == 3
        assert stats.total_approved == 1
        assert stats.total_pending == 2
        assert stats.total_rejected == 0
        regent_stat = stats.medicine_usage[0]
        assert regent_stat.medicine_name == "Regent 50 SC"
        assert regent_stat.times_requested == 3
        assert regent_stat.times_approved == 1
        assert regent_stat.total_quantity_requested == Decimal("18")
        assert regent_stat.total_quantity_approved == Decimal("4")
        # medium priority, fresh: low; urgent waiting 20 days: high
        assert stats.risk_distribution == {"low": 1, "medium": 0, "high": 1}
        assert stats.district == "Sleman"

    def test_all_districts(self, workflow, create_submission):
        create_submission(district="Sleman")
        create_submission(district="Bantul", status="rejected")

        stats = workflow.get_approval_statistics()

        assert stats.total_submissions == 2
        assert stats.status_counts == {"pending": 1, "rejected": 1}

    def test_top_districts_by_count_then_name(self, workflow, create_submission):
        for _ in range(3):
            create_submission(district="Sleman", affected_area=Decimal("2.5"))
        create_submission(district="Kulon Progo", affected_area=Decimal("4"))
        create_submission(district="Bantul", affected_area=Decimal("1"), status="rejected")
        create_submission(district=None)

        stats = workflow.get_approval_statistics()

        assert [(d.district, d.submission_count) for d in stats.top_districts] == [
            ("Sleman", 3),
            ("Bantul", 1),
            ("Kulon Progo", 1),
        ]
        assert stats.top_districts[0].total_area == Decimal("7.5")
        assert stats.total_submissions == 6

    def test_top_districts_limit_and_filter(
        self, session, deterministic_clock, create_submission, tmp_path
    ):
        path = tmp_path / "engine.yaml"
        path.write_text("approval:\n  top_districts_limit: 1\n", encoding="utf-8")
        workflow = ApprovalWorkflowService.from_session(
            session, clock=deterministic_clock, config_path=path
        )
        create_submission(district="Sleman")
        create_submission(district="Sleman")
        create_submission(district="Bantul")

        assert [d.district for d in workflow.get_approval_statistics().top_districts] == ["Sleman"]
        (only,) = workflow.get_approval_statistics(district="Bantul").top_districts
        assert only.district == "Bantul"
        assert only.submission_count == 1

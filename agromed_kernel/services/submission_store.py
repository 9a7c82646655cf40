"""
SqlSubmissionStore -- SQL implementation of the Submission Store.

Responsibility:
    Reads submissions with their items and writes the three things an
    approval decision changes: the submission status (compare-and-set),
    item approved quantities/notes, and the activity log.

Architecture position:
    Kernel > Services -- imperative shell.  Writes use ``session.flush()``;
    ``unit_of_work()`` is the single place that commits or rolls back.

Invariants enforced:
    - Compare-and-set: ``update_status_and_items`` issues
      ``UPDATE ... WHERE id = :id AND status = :expected AND version = :seen``,
      bumps ``version`` and raises ``StaleSubmissionStatusError`` when no
      row matched, so two decisions can never both commit against the
      same snapshot, even when the first one keeps the status.
    - Atomicity: every write issued inside one ``unit_of_work()`` commits
      together or is rolled back together.  Nested ``unit_of_work()``
      blocks join the outermost one.

Failure modes:
    - StaleSubmissionStatusError -- status or version changed since validation.
    - SubmissionNotFoundError -- submission vanished before the update.
    - SQLAlchemyError -- propagated after rollback.

Audit relevance:
    Activity-log rows are only ever inserted, in the same transaction as
    the change they describe.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from agromed_kernel.domain.decision import AuditEntry
from agromed_kernel.domain.submission import (
    StatusUpdate,
    Submission,
    SubmissionPriority,
)
from agromed_kernel.exceptions import (
    StaleSubmissionStatusError,
    SubmissionNotFoundError,
)
from agromed_kernel.logging_config import get_logger
from agromed_kernel.models.activity_log import ActivityLogModel
from agromed_kernel.models.submission import SubmissionItemModel, SubmissionModel
from agromed_kernel.services.base import BaseService

logger = get_logger("services.submission_store")


class SqlSubmissionStore(BaseService[SubmissionModel]):
    """
    Submission Store backed by SQLAlchemy.

    Args:
        session: Session whose transaction the store writes into.
        auto_commit: When True (default) the outermost ``unit_of_work()``
            commits on success and rolls back on failure.  When False the
            caller owns the transaction and the store only flushes.
    """

    def __init__(self, session: Session, auto_commit: bool = True):
        super().__init__(session)
        self._auto_commit = auto_commit
        self._depth = 0

    @contextmanager
    def unit_of_work(self) -> Iterator[None]:
        if self._depth > 0:
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            yield
            self.session.flush()
            if self._auto_commit:
                self.session.commit()
                logger.debug("unit_of_work_committed")
        except Exception:
            if self._auto_commit:
                self.session.rollback()
                logger.debug("unit_of_work_rolled_back")
            raise
        finally:
            self._depth = 0

    def get_submission_with_items(self, submission_id: UUID) -> Submission | None:
        model = self.session.get(SubmissionModel, submission_id, populate_existing=True)
        if model is None:
            return None
        return model.to_dto()

    def update_status_and_items(self, status_update: StatusUpdate) -> Submission:
        self.session.flush()
        conditions = [
            SubmissionModel.id == status_update.submission_id,
            SubmissionModel.status == status_update.expected_status.value,
        ]
        if status_update.expected_version is not None:
            conditions.append(SubmissionModel.version == status_update.expected_version)

        result = self.session.execute(
            update(SubmissionModel)
            .where(*conditions)
            .values(
                status=status_update.new_status.value,
                reviewer_id=status_update.reviewer_id,
                reviewed_at=status_update.reviewed_at,
                reviewer_notes=status_update.reviewer_notes,
                version=SubmissionModel.version + 1,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            current = self.session.execute(
                select(SubmissionModel.status, SubmissionModel.version).where(
                    SubmissionModel.id == status_update.submission_id
                )
            ).first()
            if current is None:
                raise SubmissionNotFoundError(str(status_update.submission_id))
            logger.warning(
                "submission_status_conflict",
                extra={
                    "submission_id": str(status_update.submission_id),
                    "expected_status": status_update.expected_status.value,
                    "actual_status": current.status,
                    "expected_version": status_update.expected_version,
                    "actual_version": current.version,
                },
            )
            raise StaleSubmissionStatusError(
                str(status_update.submission_id),
                status_update.expected_status.value,
                current.status,
                expected_version=status_update.expected_version,
                actual_version=current.version,
            )

        for adjustment in status_update.item_adjustments:
            self.session.execute(
                update(SubmissionItemModel)
                .where(
                    SubmissionItemModel.id == adjustment.item_id,
                    SubmissionItemModel.submission_id == status_update.submission_id,
                )
                .values(
                    approved_quantity=adjustment.approved_quantity,
                    notes=adjustment.notes,
                )
                .execution_options(synchronize_session=False)
            )

        self.session.expire_all()
        submission = self.get_submission_with_items(status_update.submission_id)
        if submission is None:
            raise SubmissionNotFoundError(str(status_update.submission_id))

        logger.info(
            "submission_status_updated",
            extra={
                "submission_id": str(status_update.submission_id),
                "from_status": status_update.expected_status.value,
                "to_status": status_update.new_status.value,
                "item_count": len(status_update.item_adjustments),
            },
        )
        return submission

    def update_priority(
        self,
        submission_id: UUID,
        priority: SubmissionPriority,
    ) -> Submission:
        model = self.session.get(SubmissionModel, submission_id)
        if model is None:
            raise SubmissionNotFoundError(str(submission_id))
        model.priority = priority.value
        self.session.flush()
        return model.to_dto()

    def append_audit_log(self, entry: AuditEntry) -> None:
        self.session.add(ActivityLogModel.from_dto(entry))
        self.session.flush()
        logger.debug(
            "activity_logged",
            extra={
                "action": entry.action,
                "entity_id": str(entry.entity_id),
                "payload_hash": entry.payload_hash,
            },
        )

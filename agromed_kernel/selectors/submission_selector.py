"""
Module: agromed_kernel.selectors.submission_selector
Responsibility: Read-only queries behind approval history and approval
    statistics (the ``ApprovalReadModel`` protocol).
Architecture position: Kernel > Selectors.  Read-only.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select

from agromed_kernel.domain.decision import ApprovalHistoryEntry
from agromed_kernel.domain.recommendation import DistrictStat, UsageLine
from agromed_kernel.domain.submission import (
    APPROVABLE_STATUSES,
    Submission,
)
from agromed_kernel.models.activity_log import ActivityLogModel
from agromed_kernel.models.medicine import MedicineModel
from agromed_kernel.models.submission import SubmissionItemModel, SubmissionModel
from agromed_kernel.selectors.base import BaseSelector


class SubmissionSelector(BaseSelector[SubmissionModel]):

    def get_submission(self, submission_id: UUID) -> Submission | None:
        model = self.session.get(SubmissionModel, submission_id)
        return model.to_dto() if model is not None else None

    def list_history(
        self,
        submission_id: UUID | None = None,
        actor_id: UUID | None = None,
        limit: int = 50,
    ) -> list[ApprovalHistoryEntry]:
        stmt = (
            select(ActivityLogModel, SubmissionModel.submission_number)
            .outerjoin(SubmissionModel, SubmissionModel.id == ActivityLogModel.entity_id)
            .where(ActivityLogModel.entity_type == "submission")
        )
        if submission_id is not None:
            stmt = stmt.where(ActivityLogModel.entity_id == submission_id)
        if actor_id is not None:
            stmt = stmt.where(ActivityLogModel.actor_id == actor_id)
        stmt = stmt.order_by(
            ActivityLogModel.created_at.desc(), ActivityLogModel.id
        ).limit(limit)

        return [
            row.to_history_entry(submission_number)
            for row, submission_number in self.session.execute(stmt)
        ]

    def count_by_status(self, district: str | None = None) -> dict[str, int]:
        stmt = select(SubmissionModel.status, func.count(SubmissionModel.id))
        if district is not None:
            stmt = stmt.where(SubmissionModel.district == district)
        stmt = stmt.group_by(SubmissionModel.status)
        return {status: int(count) for status, count in self.session.execute(stmt)}

    def usage_lines(self, district: str | None = None) -> list[UsageLine]:
        stmt = (
            select(
                SubmissionItemModel.submission_id,
                SubmissionItemModel.medicine_id,
                MedicineModel.name,
                SubmissionItemModel.requested_quantity,
                SubmissionItemModel.approved_quantity,
            )
            .join(MedicineModel, MedicineModel.id == SubmissionItemModel.medicine_id)
            .join(SubmissionModel, SubmissionModel.id == SubmissionItemModel.submission_id)
        )
        if district is not None:
            stmt = stmt.where(SubmissionModel.district == district)
        stmt = stmt.order_by(MedicineModel.name, SubmissionItemModel.submission_id)

        return [
            UsageLine(
                submission_id=submission_id,
                medicine_id=medicine_id,
                medicine_name=name,
                requested_quantity=requested,
                approved_quantity=approved,
            )
            for submission_id, medicine_id, name, requested, approved
            in self.session.execute(stmt)
        ]

    def open_submissions(self, district: str | None = None) -> list[Submission]:
        stmt = select(SubmissionModel).where(
            SubmissionModel.status.in_([s.value for s in APPROVABLE_STATUSES])
        )
        if district is not None:
            stmt = stmt.where(SubmissionModel.district == district)
        stmt = stmt.order_by(SubmissionModel.created_at, SubmissionModel.id)
        return [model.to_dto() for model in self.session.scalars(stmt)]

    def top_districts(
        self, district: str | None = None, limit: int = 10
    ) -> list[DistrictStat]:
        """Busiest districts by submission count; ties break on district name.

        Submissions without a district are left out.
        """
        submission_count = func.count(SubmissionModel.id)
        stmt = (
            select(
                SubmissionModel.district,
                submission_count,
                func.sum(SubmissionModel.affected_area),
            )
            .where(SubmissionModel.district.is_not(None))
        )
        if district is not None:
            stmt = stmt.where(SubmissionModel.district == district)
        stmt = (
            stmt.group_by(SubmissionModel.district)
            .order_by(submission_count.desc(), SubmissionModel.district)
            .limit(limit)
        )
        return [
            DistrictStat(
                district=name,
                submission_count=int(count),
                total_area=Decimal(str(area or 0)),
            )
            for name, count, area in self.session.execute(stmt)
        ]

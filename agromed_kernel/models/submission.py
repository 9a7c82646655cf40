"""
Module: agromed_kernel.models.submission
Responsibility: ORM persistence for submissions and their item lines.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ DTOs only.

Invariants enforced:
    - Status values are limited to the submission lifecycle vocabulary
      (check constraint); transition rules live in the domain state machine
      and the Submission Store's conditional update.
    - ``version`` increases by one on every conditional status write, so a
      decision that keeps the status still invalidates older snapshots.
    - 0 <= approved_quantity on every item (check constraint); the upper
      bound (<= requested) is enforced by the Approval Validator.

Failure modes:
    - IntegrityError on an out-of-vocabulary status or negative quantity.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agromed_kernel.db.base import TrackedBase, UUIDString, as_utc
from agromed_kernel.domain.submission import (
    Submission,
    SubmissionItem,
    SubmissionPriority,
    SubmissionStatus,
)
from agromed_kernel.models.medicine import MedicineModel

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in SubmissionStatus)
_PRIORITY_VALUES = ", ".join(f"'{p.value}'" for p in SubmissionPriority)


class SubmissionModel(TrackedBase):
    """Persistent medicine submission."""

    __tablename__ = "submissions"

    __table_args__ = (
        CheckConstraint(
            f"status IN ({_STATUS_VALUES})",
            name="ck_submissions_valid_status",
        ),
        CheckConstraint(
            f"priority IN ({_PRIORITY_VALUES})",
            name="ck_submissions_valid_priority",
        ),
        CheckConstraint("affected_area > 0", name="ck_submissions_positive_area"),
        Index("ix_submissions_status_created", "status", "created_at"),
        Index("ix_submissions_district", "district"),
    )

    submission_number: Mapped[str | None] = mapped_column(
        String(50), nullable=True, unique=True,
    )
    status: Mapped[str] = mapped_column(
        String(30), nullable=False, default=SubmissionStatus.PENDING.value,
    )
    priority: Mapped[str] = mapped_column(
        String(20), nullable=False, default=SubmissionPriority.MEDIUM.value,
    )
    affected_area: Mapped[Decimal] = mapped_column(nullable=False)
    pest_types: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    district: Mapped[str | None] = mapped_column(String(100), nullable=True)
    reviewer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reviewer_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    items: Mapped[list["SubmissionItemModel"]] = relationship(
        "SubmissionItemModel",
        back_populates="submission",
        order_by="SubmissionItemModel.line_number",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Submission {self.submission_number or self.id} status={self.status}>"

    def to_dto(self) -> Submission:
        """Convert ORM model (with items and their medicines) to a domain DTO."""
        return Submission(
            submission_id=self.id,
            status=SubmissionStatus(self.status),
            priority=SubmissionPriority(self.priority),
            affected_area=self.affected_area,
            pest_types=tuple(str(p) for p in (self.pest_types or ())),
            items=tuple(item.to_dto() for item in self.items),
            submission_number=self.submission_number,
            district=self.district,
            reviewer_id=self.reviewer_id,
            reviewed_at=as_utc(self.reviewed_at),
            reviewer_notes=self.reviewer_notes,
            created_at=as_utc(self.created_at),
            version=self.version or 0,
        )


class SubmissionItemModel(TrackedBase):
    """One requested medicine line of a submission."""

    __tablename__ = "submission_items"

    __table_args__ = (
        CheckConstraint(
            "requested_quantity > 0", name="ck_submission_items_requested_positive",
        ),
        CheckConstraint(
            "approved_quantity >= 0", name="ck_submission_items_approved_non_negative",
        ),
        Index("ix_submission_items_submission", "submission_id"),
        Index("ix_submission_items_medicine", "medicine_id"),
    )

    submission_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("submissions.id"),
        nullable=False,
    )
    medicine_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("medicines.id"),
        nullable=False,
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    requested_quantity: Mapped[Decimal] = mapped_column(nullable=False)
    approved_quantity: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0"),
    )
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="liter")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    submission: Mapped[SubmissionModel] = relationship(
        "SubmissionModel",
        back_populates="items",
    )
    medicine: Mapped[MedicineModel] = relationship(
        "MedicineModel",
        lazy="joined",
    )

    def to_dto(self) -> SubmissionItem:
        return SubmissionItem(
            item_id=self.id,
            medicine_id=self.medicine_id,
            requested_quantity=self.requested_quantity,
            unit=self.unit,
            approved_quantity=self.approved_quantity,
            notes=self.notes,
            medicine_name=self.medicine.name if self.medicine is not None else "",
            medicine_category=self.medicine.category if self.medicine is not None else "",
        )

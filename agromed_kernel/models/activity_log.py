"""
Module: agromed_kernel.models.activity_log
Responsibility: ORM persistence for the approval activity log.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ DTOs only.

Invariants enforced:
    - Append-only: the Submission Store only ever INSERTs rows.
    - payload_hash is the canonical SHA-256 of payload.

Audit relevance:
    Every committed decision, reviewer assignment and priority change
    writes exactly one row in the same transaction as the change itself.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from agromed_kernel.db.base import Base, UUIDString, as_utc
from agromed_kernel.domain.decision import ApprovalHistoryEntry, AuditEntry
from agromed_kernel.domain.submission import SubmissionStatus


class ActivityLogModel(Base):
    """Append-only activity record."""

    __tablename__ = "activity_logs"

    __table_args__ = (
        Index("ix_activity_logs_entity", "entity_type", "entity_id"),
        Index("ix_activity_logs_actor", "actor_id"),
        Index("ix_activity_logs_created", "created_at"),
    )

    action: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    actor_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    previous_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    new_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    payload_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<ActivityLog {self.action} {self.entity_type}:{self.entity_id}>"

    @classmethod
    def from_dto(cls, entry: AuditEntry) -> ActivityLogModel:
        return cls(
            id=entry.entry_id,
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            actor_id=entry.actor_id,
            previous_status=entry.previous_status.value if entry.previous_status else None,
            new_status=entry.new_status.value if entry.new_status else None,
            payload=entry.payload,
            payload_hash=entry.payload_hash,
            created_at=entry.created_at,
        )

    def to_dto(self) -> AuditEntry:
        return AuditEntry(
            entry_id=self.id,
            action=self.action,
            entity_id=self.entity_id,
            actor_id=self.actor_id,
            created_at=as_utc(self.created_at),
            previous_status=_status(self.previous_status),
            new_status=_status(self.new_status),
            payload=dict(self.payload or {}),
            payload_hash=self.payload_hash,
            entity_type=self.entity_type,
        )

    def to_history_entry(self, submission_number: str | None = None) -> ApprovalHistoryEntry:
        payload = self.payload or {}
        return ApprovalHistoryEntry(
            entry_id=self.id,
            submission_id=self.entity_id,
            action=self.action,
            actor_id=self.actor_id,
            created_at=as_utc(self.created_at),
            previous_status=_status(self.previous_status),
            new_status=_status(self.new_status),
            notes=payload.get("notes") or payload.get("rejection_reason") or payload.get("reason"),
            submission_number=submission_number,
        )


def _status(value: str | None) -> SubmissionStatus | None:
    return SubmissionStatus(value) if value else None

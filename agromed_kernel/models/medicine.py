"""
Module: agromed_kernel.models.medicine
Responsibility: ORM persistence for the medicine catalog and its stock lots.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/ DTOs only.

Invariants enforced:
    - Lot quantity is never negative (check constraint).
    - Declared pest targets are a JSON list of strings.

Audit relevance:
    The catalog is owned by an external process; the approval engine only
    reads it.  Lot quantities read here are re-checked at decision time.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import JSON, Boolean, CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from agromed_kernel.db.base import TrackedBase, UUIDString
from agromed_kernel.domain.catalog import Medicine, StockLot


class MedicineModel(TrackedBase):
    """Catalog entry."""

    __tablename__ = "medicines"

    __table_args__ = (
        Index("ix_medicines_category", "category"),
        Index("ix_medicines_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    pest_targets: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    unit_price: Mapped[Decimal | None] = mapped_column(nullable=True)
    active_ingredient: Mapped[str | None] = mapped_column(String(200), nullable=True)
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="liter")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    lots: Mapped[list["StockLotModel"]] = relationship(
        "StockLotModel",
        back_populates="medicine",
        order_by="StockLotModel.expiry_date",
    )

    def __repr__(self) -> str:
        return f"<Medicine {self.name} ({self.category})>"

    def to_dto(self, lots: Iterable[StockLotModel] = ()) -> Medicine:
        """Convert to a domain ``Medicine`` carrying the given (eligible) lots."""
        return Medicine(
            medicine_id=self.id,
            name=self.name,
            category=self.category,
            pest_targets=tuple(str(t) for t in (self.pest_targets or ())),
            unit_price=self.unit_price,
            active_ingredient=self.active_ingredient,
            unit=self.unit,
            lots=tuple(lot.to_dto() for lot in lots),
        )


class StockLotModel(TrackedBase):
    """A batch of one medicine with its own quantity and expiry."""

    __tablename__ = "medicine_stocks"

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_medicine_stocks_quantity"),
        Index("ix_medicine_stocks_medicine_expiry", "medicine_id", "expiry_date"),
    )

    medicine_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("medicines.id"),
        nullable=False,
    )
    quantity: Mapped[Decimal] = mapped_column(nullable=False)
    expiry_date: Mapped[date] = mapped_column(nullable=False)
    batch_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    supplier: Mapped[str | None] = mapped_column(String(200), nullable=True)

    medicine: Mapped[MedicineModel] = relationship(
        "MedicineModel",
        back_populates="lots",
    )

    def __repr__(self) -> str:
        return f"<StockLot {self.batch_number} qty={self.quantity} exp={self.expiry_date}>"

    def to_dto(self) -> StockLot:
        return StockLot(
            lot_id=self.id,
            medicine_id=self.medicine_id,
            quantity=self.quantity,
            expiry_date=self.expiry_date,
            batch_number=self.batch_number,
            supplier=self.supplier,
        )

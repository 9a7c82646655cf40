"""
Module: agromed_kernel.selectors.catalog_selector
Responsibility: SQL implementation of the Catalog Reader.  Returns medicines
    with their *eligible* stock lots as frozen domain DTOs.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Eligible lots: quantity > 0 and expiry_date >= clock.today(), ordered
      by expiry ascending (ties by batch number).
    - Pest-target search only returns active medicines and is ordered by
      name so repeated calls see the same candidates in the same order.

Failure modes:
    - SQLAlchemyError propagates; the Recommendation Engine degrades such
      failures to a fallback recommendation.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from agromed_kernel.domain.catalog import Medicine, targets_intersect
from agromed_kernel.domain.clock import Clock, SystemClock
from agromed_kernel.logging_config import get_logger
from agromed_kernel.models.medicine import MedicineModel, StockLotModel
from agromed_kernel.selectors.base import BaseSelector

logger = get_logger("selectors.catalog")


class CatalogSelector(BaseSelector[MedicineModel]):
    """Catalog Reader backed by the ``medicines`` / ``medicine_stocks`` tables."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def find_medicine(self, medicine_id: UUID) -> Medicine | None:
        model = self.session.get(MedicineModel, medicine_id)
        if model is None:
            return None
        return model.to_dto(self._eligible_lots(model.id))

    def find_medicines_by_pest_targets(
        self,
        pests: Sequence[str],
        exclude_id: UUID | None,
        limit: int,
        min_lot_quantity: Decimal | None = None,
    ) -> list[Medicine]:
        if limit <= 0 or not pests:
            return []

        stmt = select(MedicineModel).where(MedicineModel.is_active.is_(True))
        if exclude_id is not None:
            stmt = stmt.where(MedicineModel.id != exclude_id)
        stmt = stmt.order_by(MedicineModel.name, MedicineModel.id)

        found: list[Medicine] = []
        for model in list(self.session.scalars(stmt)):
            if not targets_intersect(tuple(model.pest_targets or ()), tuple(pests)):
                continue
            lots = self._eligible_lots(model.id, min_lot_quantity)
            if min_lot_quantity is not None and not lots:
                continue
            found.append(model.to_dto(lots))
            if len(found) >= limit:
                break

        logger.debug(
            "catalog_pest_search",
            extra={
                "pest_count": len(pests),
                "limit": limit,
                "min_lot_quantity": min_lot_quantity,
                "result_count": len(found),
            },
        )
        return found

    def available_stock(self, medicine_id: UUID) -> Decimal:
        """Live sum of eligible lot quantities for one medicine."""
        return sum(
            (lot.quantity for lot in self._eligible_lots(medicine_id)),
            Decimal("0"),
        )

    def _eligible_lots(
        self,
        medicine_id: UUID,
        min_quantity: Decimal | None = None,
    ) -> list[StockLotModel]:
        stmt = (
            select(StockLotModel)
            .where(
                StockLotModel.medicine_id == medicine_id,
                StockLotModel.quantity > 0,
                StockLotModel.expiry_date >= self._clock.today(),
            )
            .order_by(StockLotModel.expiry_date, StockLotModel.batch_number)
        )
        if min_quantity is not None:
            stmt = stmt.where(StockLotModel.quantity >= min_quantity)
        return list(self.session.scalars(stmt))

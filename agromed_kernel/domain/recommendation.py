"""
Recommendation and statistics domain types.

Responsibility
--------------
Derived, never-persisted results of the decision engine: quantity
calculations, scored candidates, per-line recommendations, the risk
assessment, and the read-only statistics view.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``MedicineRecommendation`` scores are within [0, 100].
* A per-line choice is either a scored ``MedicineRecommendation`` or a
  ``FallbackRecommendation``; ``is_fallback`` tells them apart.  A
  recommendation with zero stock is a confident "no stock" answer, a
  fallback means the catalog could not be read.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Union
from uuid import UUID

from agromed_kernel.exceptions import InvalidOptionError

ZERO = Decimal("0")


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def score(self) -> int:
        return _RISK_SCORES[self]


_RISK_SCORES = {RiskLevel.LOW: 1, RiskLevel.MEDIUM: 2, RiskLevel.HIGH: 3}


class AvailabilityStatus(str, Enum):
    FULL = "full"
    PARTIAL = "partial"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class QuantityCalculation:
    affected_area: Decimal
    base_application_rate: Decimal
    intensity_factor: Decimal
    waste_factor: Decimal
    calculated_quantity: Decimal
    rounded_quantity: Decimal
    unit: str
    explanation: str


@dataclass(frozen=True)
class MedicineRecommendation:
    """A scored catalog candidate for one submission line."""

    medicine_id: UUID
    stock_lot_id: UUID | None
    brand_name: str
    category: str
    active_ingredient: str | None
    available_stock: Decimal
    recommended_quantity: Decimal
    max_recommended_quantity: Decimal
    unit_price: Decimal
    total_cost: Decimal
    effectiveness_score: int
    compatibility_score: Decimal
    expiry_date: date | None
    batch_number: str
    supplier: str
    unit: str
    application_rate: str
    coverage_per_unit: Decimal

    @property
    def is_fallback(self) -> bool:
        return False

    @property
    def has_stock(self) -> bool:
        return self.stock_lot_id is not None


@dataclass(frozen=True)
class FallbackRecommendation:
    """
    Zero-valued placeholder used when no candidate could be scored.

    References the originally requested medicine; ``reason`` says why the
    catalog produced nothing (``medicine_not_found``,
    ``catalog_unavailable``).
    """

    medicine_id: UUID
    brand_name: str
    reason: str
    category: str = ""
    unit: str = "liter"
    stock_lot_id: None = None
    active_ingredient: str | None = None
    available_stock: Decimal = ZERO
    recommended_quantity: Decimal = ZERO
    max_recommended_quantity: Decimal = ZERO
    unit_price: Decimal = ZERO
    total_cost: Decimal = ZERO
    effectiveness_score: int = 0
    compatibility_score: Decimal = ZERO
    expiry_date: date | None = None
    batch_number: str = "N/A"
    supplier: str = "N/A"
    application_rate: str = "Unknown"
    coverage_per_unit: Decimal = ZERO

    @property
    def is_fallback(self) -> bool:
        return True

    @property
    def has_stock(self) -> bool:
        return False


Recommendation = Union[MedicineRecommendation, FallbackRecommendation]


@dataclass(frozen=True)
class AlternativeSuggestion:
    reason: str
    alternatives: tuple[MedicineRecommendation, ...]


@dataclass(frozen=True)
class RecommendedItem:
    submission_item_id: UUID
    medicine_id: UUID
    requested_quantity: Decimal
    quantity_calculation: QuantityCalculation
    optimal_choice: Recommendation
    recommended_options: tuple[MedicineRecommendation, ...] = ()
    alternative_suggestion: AlternativeSuggestion | None = None

    @property
    def is_fully_stocked(self) -> bool:
        return self.optimal_choice.available_stock >= self.requested_quantity


@dataclass(frozen=True)
class RiskAssessment:
    stock_risk: RiskLevel
    expiry_risk: RiskLevel
    effectiveness_risk: RiskLevel
    overall_risk: RiskLevel
    warnings: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()


@dataclass(frozen=True)
class RecommendationOptions:
    """Caller options for ``RecommendationEngine.generate``."""

    include_alternatives: bool = True
    max_alternatives: int = 3
    risk_tolerance: RiskLevel = RiskLevel.MEDIUM

    def __post_init__(self) -> None:
        if isinstance(self.max_alternatives, bool) or not isinstance(
            self.max_alternatives, int
        ) or not 1 <= self.max_alternatives <= 10:
            raise InvalidOptionError(
                "max_alternatives", self.max_alternatives, "integer in 1..10"
            )
        try:
            tolerance = RiskLevel(self.risk_tolerance)
        except ValueError:
            raise InvalidOptionError(
                "risk_tolerance", self.risk_tolerance, "one of low, medium, high"
            ) from None
        object.__setattr__(self, "risk_tolerance", tolerance)


@dataclass(frozen=True)
class ApprovalRecommendation:
    submission_id: UUID
    recommended_items: tuple[RecommendedItem, ...]
    total_estimated_cost: Decimal
    availability_status: AvailabilityStatus
    risk_assessment: RiskAssessment
    risk_tolerance: RiskLevel = RiskLevel.MEDIUM
    generated_at: datetime | None = None

    @property
    def within_risk_tolerance(self) -> bool:
        """True when the overall risk does not exceed the caller's tolerance."""
        return self.risk_assessment.overall_risk.score <= self.risk_tolerance.score

    @property
    def has_fallbacks(self) -> bool:
        return any(item.optimal_choice.is_fallback for item in self.recommended_items)


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UsageLine:
    """One submission item as seen by the medicine-usage fold."""

    submission_id: UUID
    medicine_id: UUID
    medicine_name: str
    requested_quantity: Decimal
    approved_quantity: Decimal


@dataclass(frozen=True)
class MedicineUsageStat:
    """Per-medicine usage summary produced by the usage fold."""

    medicine_id: UUID
    medicine_name: str
    times_requested: int
    times_approved: int
    total_quantity_requested: Decimal
    total_quantity_approved: Decimal

    @property
    def average_approval_rate(self) -> Decimal:
        """Share of request lines that received any approved quantity, in percent."""
        if self.times_requested == 0:
            return ZERO
        return (Decimal(self.times_approved) * 100 / self.times_requested).quantize(
            Decimal("0.01")
        )


@dataclass(frozen=True)
class DistrictStat:
    """Submission count and affected area for one district."""

    district: str
    submission_count: int
    total_area: Decimal


@dataclass(frozen=True)
class ApprovalStatistics:
    total_submissions: int
    status_counts: dict[str, int]
    medicine_usage: tuple[MedicineUsageStat, ...]
    risk_distribution: dict[str, int] = field(default_factory=dict)
    top_districts: tuple[DistrictStat, ...] = ()
    district: str | None = None
    generated_at: datetime | None = None

    @property
    def total_pending(self) -> int:
        return self.status_counts.get("pending", 0)

    @property
    def total_approved(self) -> int:
        return self.status_counts.get("approved", 0)

    @property
    def total_rejected(self) -> int:
        return self.status_counts.get("rejected", 0)

"""
Engine configuration value objects (``agromed_kernel.domain.engine_config``).

Responsibility
--------------
Frozen parameter sets consumed by the pure engines and the services.
Defaults equal the business constants of the approval engine; the YAML
set shipped with ``agromed_config`` restates them and
``agromed_config.get_active_config()`` is the runtime way to obtain an
``EngineConfig``.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  Lives in the kernel so
that engines can receive configuration without importing
``agromed_config``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


def _d(value: str) -> Decimal:
    return Decimal(value)


@dataclass(frozen=True)
class QuantityConfig:
    base_rates: dict[str, Decimal] = field(default_factory=lambda: {
        "insektisida": _d("1.5"),
        "fungisida": _d("2.0"),
        "herbisida": _d("3.0"),
        "bakterisida": _d("1.0"),
        "akarisida": _d("1.5"),
    })
    default_base_rate: Decimal = _d("2.0")
    severe_markers: tuple[str, ...] = ("parah", "berat")
    moderate_markers: tuple[str, ...] = ("sedang",)
    severe_factor: Decimal = _d("1.5")
    moderate_factor: Decimal = _d("1.2")
    neutral_factor: Decimal = _d("1.0")
    waste_factor: Decimal = _d("1.1")
    rounding_increment: Decimal = _d("0.25")
    unit: str = "liter"

    def base_rate_for(self, category: str) -> Decimal:
        return self.base_rates.get(category.strip().lower(), self.default_base_rate)


@dataclass(frozen=True)
class ScoringConfig:
    effectiveness_weight: Decimal = _d("0.6")
    compatibility_weight: Decimal = _d("0.4")
    direct_match_weight: Decimal = _d("1.0")
    category_match_weight: Decimal = _d("0.5")
    no_target_effectiveness: int = 50
    no_target_compatibility: Decimal = _d("30")
    category_keywords: dict[str, tuple[str, ...]] = field(default_factory=lambda: {
        "insektisida": ("ulat", "wereng", "kutu", "trips", "penggerek", "lalat"),
        "fungisida": ("jamur", "blas", "hawar", "busuk", "antraknos", "karat"),
        "herbisida": ("gulma", "rumput", "teki"),
        "bakterisida": ("bakteri", "layu", "busuk bakteri"),
        "akarisida": ("tungau", "kutu merah"),
    })
    application_rates: dict[str, str] = field(default_factory=lambda: {
        "insektisida": "2-3 ml per liter air",
        "fungisida": "2-4 ml per liter air",
        "herbisida": "5-10 ml per liter air",
        "bakterisida": "2-3 ml per liter air",
        "akarisida": "1-2 ml per liter air",
    })
    default_application_rate: str = "2-3 ml per liter air"
    coverage_per_unit: dict[str, Decimal] = field(default_factory=lambda: {
        "insektisida": _d("0.5"),
        "fungisida": _d("0.4"),
        "herbisida": _d("0.3"),
        "bakterisida": _d("0.5"),
        "akarisida": _d("0.6"),
    })
    default_coverage_per_unit: Decimal = _d("0.5")

    def keywords_for(self, category: str) -> tuple[str, ...]:
        return self.category_keywords.get(category.strip().lower(), ())

    def application_rate_for(self, category: str) -> str:
        return self.application_rates.get(
            category.strip().lower(), self.default_application_rate
        )

    def coverage_for(self, category: str) -> Decimal:
        return self.coverage_per_unit.get(
            category.strip().lower(), self.default_coverage_per_unit
        )


@dataclass(frozen=True)
class RecommendationConfig:
    primary_alternative_limit: int = 5
    alternative_min_lot_fraction: Decimal = _d("0.5")
    default_max_alternatives: int = 3
    max_alternatives_limit: int = 10


@dataclass(frozen=True)
class RiskConfig:
    stock_high_fraction: Decimal = _d("0.5")
    expiry_high_fraction: Decimal = _d("0.3")
    effectiveness_high_fraction: Decimal = _d("0.3")
    expiry_window_days: int = 90
    low_effectiveness_threshold: int = 70
    overall_high_threshold: Decimal = _d("2.5")
    overall_medium_threshold: Decimal = _d("1.5")


@dataclass(frozen=True)
class ApprovalConfig:
    max_bulk_size: int = 50
    history_default_limit: int = 50
    top_districts_limit: int = 10
    queue_wait_days_thresholds: tuple[int, int] = (7, 14)
    queue_wait_points: tuple[int, int] = (2, 3)
    queue_priority_points: dict[str, int] = field(default_factory=lambda: {
        "urgent": 3,
        "high": 2,
        "medium": 1,
        "low": 0,
    })
    queue_area_thresholds: tuple[Decimal, Decimal] = (_d("100"), _d("500"))
    queue_area_points: tuple[int, int] = (2, 3)
    queue_high_score: int = 6
    queue_medium_score: int = 3


@dataclass(frozen=True)
class EngineConfig:
    """Complete, validated engine parameter set."""

    quantity: QuantityConfig = field(default_factory=QuantityConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    recommendation: RecommendationConfig = field(default_factory=RecommendationConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    approval: ApprovalConfig = field(default_factory=ApprovalConfig)
    config_id: str = "builtin"
    version: int = 1
    checksum: str = ""

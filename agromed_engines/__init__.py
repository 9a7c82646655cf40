"""
Module: agromed_engines
Responsibility:
    Package entrypoint that re-exports the pure calculation engines used by
    the approval services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import agromed_kernel/domain, agromed_kernel/exceptions and the
    kernel logger factory.  MUST NOT import agromed_services, agromed_config,
    the kernel db/models/selectors/services packages, or SQLAlchemy.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Dates are passed in by services from their injected Clock.
    - Decimal-only arithmetic for quantities, prices and scores.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from agromed_engines.quantity import calculate_quantity
    from agromed_engines.scoring import score_medicine, rank_candidates
    from agromed_engines.risk import assess_risk, determine_availability
    from agromed_engines.usage_stats import fold_medicine_usage, queue_risk_level
"""

from agromed_engines.quantity import calculate_quantity, intensity_factor
from agromed_engines.risk import assess_risk, determine_availability, overall_risk
from agromed_engines.scoring import (
    compatibility_score,
    effectiveness_score,
    rank_by_effectiveness,
    rank_candidates,
    score_medicine,
    weighted_score,
)
from agromed_engines.usage_stats import (
    fold_medicine_usage,
    queue_risk_distribution,
    queue_risk_level,
    queue_risk_score,
)

__all__ = [
    "assess_risk",
    "calculate_quantity",
    "compatibility_score",
    "determine_availability",
    "effectiveness_score",
    "fold_medicine_usage",
    "intensity_factor",
    "overall_risk",
    "queue_risk_distribution",
    "queue_risk_level",
    "queue_risk_score",
    "rank_by_effectiveness",
    "rank_candidates",
    "score_medicine",
    "weighted_score",
]

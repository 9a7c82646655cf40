"""
Module: agromed_engines.risk
Responsibility:
    Aggregate risk and availability over the recommended lines of one
    submission.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  The caller supplies
    ``as_of`` (today's date from its Clock).

Invariants enforced:
    - Each dimension is ``high`` above its threshold share of lines,
      ``medium`` when any line triggers it, else ``low``.
    - Overall risk is the mean of the three dimension scores
      (low=1, medium=2, high=3): >= 2.5 high, >= 1.5 medium, else low.
    - A line with no known expiry (no stock, or a fallback) counts as
      expiring now.
    - Zero lines: availability ``full`` and every risk ``low``.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal

from agromed_engines.tracer import traced_engine
from agromed_kernel.domain.engine_config import RiskConfig
from agromed_kernel.domain.recommendation import (
    AvailabilityStatus,
    RecommendedItem,
    RiskAssessment,
    RiskLevel,
)

_DEFAULT_CONFIG = RiskConfig()


def _dimension(flagged: int, total: int, high_fraction: Decimal) -> RiskLevel:
    if flagged > total * high_fraction:
        return RiskLevel.HIGH
    if flagged > 0:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _expires_soon(item: RecommendedItem, as_of: date, window_days: int) -> bool:
    expiry = item.optimal_choice.expiry_date
    if expiry is None:
        return True
    return (expiry - as_of).days < window_days


def overall_risk(levels: Sequence[RiskLevel], config: RiskConfig = _DEFAULT_CONFIG) -> RiskLevel:
    average = Decimal(sum(level.score for level in levels)) / len(levels)
    if average >= config.overall_high_threshold:
        return RiskLevel.HIGH
    if average >= config.overall_medium_threshold:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


@traced_engine("risk", "1.0")
def assess_risk(
    items: Sequence[RecommendedItem],
    as_of: date,
    config: RiskConfig | None = None,
) -> RiskAssessment:
    """One pass over every line's optimal choice."""
    config = config or _DEFAULT_CONFIG
    total = len(items)
    warnings: list[str] = []
    recommendations: list[str] = []

    under_stocked = sum(1 for item in items if not item.is_fully_stocked)
    stock_risk = _dimension(under_stocked, total, config.stock_high_fraction)
    if stock_risk is not RiskLevel.LOW:
        warnings.append(f"{under_stocked} item(s) have insufficient stock")
        recommendations.append("Consider partial approval or alternative medicines")

    expiring = sum(
        1 for item in items if _expires_soon(item, as_of, config.expiry_window_days)
    )
    expiry_risk = _dimension(expiring, total, config.expiry_high_fraction)
    if expiry_risk is not RiskLevel.LOW:
        warnings.append(f"{expiring} item(s) expire within 3 months")
        recommendations.append("Priority distribution for expiring items")

    weak = sum(
        1
        for item in items
        if item.optimal_choice.effectiveness_score < config.low_effectiveness_threshold
    )
    effectiveness_risk = _dimension(weak, total, config.effectiveness_high_fraction)
    if effectiveness_risk is not RiskLevel.LOW:
        warnings.append(f"{weak} item(s) have low effectiveness scores")
        recommendations.append("Consider alternative medicines with higher effectiveness")

    return RiskAssessment(
        stock_risk=stock_risk,
        expiry_risk=expiry_risk,
        effectiveness_risk=effectiveness_risk,
        overall_risk=overall_risk((stock_risk, expiry_risk, effectiveness_risk), config),
        warnings=tuple(warnings),
        recommendations=tuple(recommendations),
    )


def determine_availability(items: Sequence[RecommendedItem]) -> AvailabilityStatus:
    stocked = sum(1 for item in items if item.is_fully_stocked)
    if stocked == len(items):
        return AvailabilityStatus.FULL
    if stocked == 0:
        return AvailabilityStatus.UNAVAILABLE
    return AvailabilityStatus.PARTIAL

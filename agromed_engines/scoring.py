"""
Module: agromed_engines.scoring
Responsibility:
    Pure Medicine Scorer.  Scores a catalog candidate against the pests a
    submission targets, folds in its eligible stock, and ranks candidates
    for one submission line.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Effectiveness and compatibility are clamped to [0, 100].
    - A medicine declaring no targets scores effectiveness 50 and
      compatibility 30.
    - Ranking is by ``0.6 x effectiveness + 0.4 x compatibility``
      descending; ties keep fetch order (stable sort).
    - recommended quantity = min(required, available); max recommended =
      available.

Matching rules:
    Effectiveness counts a *direct* match (case-insensitive substring in
    either direction between pest and declared target) as 1.0 and a
    *category* match (the pest mentions a keyword of the medicine's
    category) as 0.5.  Compatibility counts pests contained in some
    declared target.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from agromed_kernel.domain.catalog import Medicine, is_direct_match, normalize_pest
from agromed_kernel.domain.engine_config import ScoringConfig
from agromed_kernel.domain.recommendation import MedicineRecommendation, Recommendation

_DEFAULT_CONFIG = ScoringConfig()
_HUNDRED = Decimal("100")
_ZERO = Decimal("0")
_CENT = Decimal("0.01")


def _clamp(value: Decimal) -> Decimal:
    return max(_ZERO, min(_HUNDRED, value))


def _category_match(pest: str, category: str, config: ScoringConfig) -> bool:
    return any(keyword in pest for keyword in config.keywords_for(category))


def effectiveness_score(
    targets: Sequence[str],
    pests: Sequence[str],
    category: str,
    config: ScoringConfig = _DEFAULT_CONFIG,
) -> int:
    if not targets:
        return config.no_target_effectiveness
    if not pests:
        return 0

    matches = _ZERO
    for pest in (normalize_pest(p) for p in pests):
        if any(is_direct_match(pest, target) for target in targets):
            matches += config.direct_match_weight
        elif _category_match(pest, category or "", config):
            matches += config.category_match_weight

    score = (matches * _HUNDRED / len(pests)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(_clamp(score))


def compatibility_score(
    targets: Sequence[str],
    pests: Sequence[str],
    config: ScoringConfig = _DEFAULT_CONFIG,
) -> Decimal:
    if not targets:
        return config.no_target_compatibility
    if not pests:
        return _ZERO

    normalized_targets = [normalize_pest(t) for t in targets]
    exact = sum(
        1
        for pest in (normalize_pest(p) for p in pests)
        if pest and any(pest in target for target in normalized_targets)
    )
    score = (Decimal(exact) * _HUNDRED / len(pests)).quantize(_CENT, rounding=ROUND_HALF_UP)
    return _clamp(score)


def score_medicine(
    medicine: Medicine,
    pests: Sequence[str],
    required_quantity: Decimal,
    unit: str = "liter",
    config: ScoringConfig = _DEFAULT_CONFIG,
) -> MedicineRecommendation:
    """Score one candidate and attach its stock figures.

    A medicine without eligible lots is a valid "no stock" result: the lot
    id is None, the stock figures are zero and batch/supplier read "N/A".
    """
    available = medicine.available_stock
    lot = medicine.nearest_lot
    recommended = min(required_quantity, available)
    unit_price = medicine.unit_price if medicine.unit_price is not None else _ZERO

    return MedicineRecommendation(
        medicine_id=medicine.medicine_id,
        stock_lot_id=lot.lot_id if lot is not None else None,
        brand_name=medicine.name,
        category=medicine.category,
        active_ingredient=medicine.active_ingredient,
        available_stock=available,
        recommended_quantity=recommended,
        max_recommended_quantity=available,
        unit_price=unit_price,
        total_cost=recommended * unit_price,
        effectiveness_score=effectiveness_score(
            medicine.pest_targets, pests, medicine.category, config
        ),
        compatibility_score=compatibility_score(medicine.pest_targets, pests, config),
        expiry_date=lot.expiry_date if lot is not None else None,
        batch_number=(lot.batch_number if lot is not None else None) or "N/A",
        supplier=(lot.supplier if lot is not None else None) or "N/A",
        unit=unit,
        application_rate=config.application_rate_for(medicine.category),
        coverage_per_unit=config.coverage_for(medicine.category),
    )


def weighted_score(
    recommendation: Recommendation,
    config: ScoringConfig = _DEFAULT_CONFIG,
) -> Decimal:
    return (
        config.effectiveness_weight * recommendation.effectiveness_score
        + config.compatibility_weight * recommendation.compatibility_score
    )


def rank_candidates(
    recommendations: Sequence[MedicineRecommendation],
    config: ScoringConfig = _DEFAULT_CONFIG,
) -> list[MedicineRecommendation]:
    """Best first; equal scores keep their input order."""
    return sorted(
        recommendations,
        key=lambda rec: weighted_score(rec, config),
        reverse=True,
    )


def rank_by_effectiveness(
    recommendations: Sequence[MedicineRecommendation],
) -> list[MedicineRecommendation]:
    return sorted(recommendations, key=lambda rec: rec.effectiveness_score, reverse=True)

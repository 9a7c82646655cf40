"""
agromed_services.recommendation_engine -- Approval recommendations.

Responsibility:
    Produce an ``ApprovalRecommendation`` for one submission: per line a
    calculated quantity, ranked medicine options with an optimal choice,
    alternative suggestions when stock is short, and an aggregate risk
    assessment.

Architecture position:
    Services layer.  Orchestrates the Catalog Reader and the Submission
    Store (reads only) with the pure engines in ``agromed_engines``.

Invariants enforced:
    - Read-only: generating recommendations never writes.
    - Every line has an ``optimal_choice``.  When no candidate could be
      scored the line carries a ``FallbackRecommendation`` referencing the
      requested medicine.
    - ``availability_status`` is ``full`` iff every line's optimal choice
      holds at least the requested quantity, ``unavailable`` iff none does.

Failure modes:
    - SubmissionNotFoundError -- unknown submission id.
    - InvalidAreaError -- the submission's affected area is not positive.
    - Catalog failures for one line are logged and degrade that line to a
      fallback; they never abort the call.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from uuid import UUID

from agromed_engines.quantity import calculate_quantity
from agromed_engines.risk import assess_risk, determine_availability
from agromed_engines.scoring import rank_by_effectiveness, rank_candidates, score_medicine
from agromed_kernel.domain.catalog import Medicine
from agromed_kernel.domain.clock import Clock, SystemClock
from agromed_kernel.domain.engine_config import EngineConfig
from agromed_kernel.domain.protocols import CatalogReader, SubmissionStore
from agromed_kernel.domain.recommendation import (
    ZERO,
    AlternativeSuggestion,
    ApprovalRecommendation,
    FallbackRecommendation,
    MedicineRecommendation,
    Recommendation,
    RecommendationOptions,
    RecommendedItem,
)
from agromed_kernel.domain.submission import Submission, SubmissionItem
from agromed_kernel.exceptions import SubmissionNotFoundError
from agromed_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.recommendation_engine")

INSUFFICIENT_QUANTITY = "insufficient_quantity"
MEDICINE_NOT_FOUND = "medicine_not_found"
CATALOG_UNAVAILABLE = "catalog_unavailable"


class RecommendationEngine:
    """Builds approval recommendations from live catalog and stock data."""

    def __init__(
        self,
        catalog: CatalogReader,
        store: SubmissionStore,
        clock: Clock | None = None,
        config: EngineConfig | None = None,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._clock = clock or SystemClock()
        self._config = config or EngineConfig()

    def default_options(self) -> RecommendationOptions:
        return RecommendationOptions(
            max_alternatives=self._config.recommendation.default_max_alternatives,
        )

    def generate(
        self,
        submission_id: UUID,
        options: RecommendationOptions | None = None,
    ) -> ApprovalRecommendation:
        """
        Recommend medicines and quantities for every line of a submission.

        Raises:
            SubmissionNotFoundError: the submission does not exist.
        """
        options = options or self.default_options()
        t0 = time.monotonic()

        with LogContext.bind(submission_id=str(submission_id)):
            submission = self._store.get_submission_with_items(submission_id)
            if submission is None:
                raise SubmissionNotFoundError(str(submission_id))

            items = tuple(
                self._recommend_line(submission, item, options)
                for item in submission.items
            )

            recommendation = ApprovalRecommendation(
                submission_id=submission.submission_id,
                recommended_items=items,
                total_estimated_cost=sum(
                    (item.optimal_choice.total_cost for item in items), ZERO
                ),
                availability_status=determine_availability(items),
                risk_assessment=assess_risk(items, self._clock.today(), self._config.risk),
                risk_tolerance=options.risk_tolerance,
                generated_at=self._clock.now(),
            )

            logger.info(
                "recommendation_generated",
                extra={
                    "item_count": len(items),
                    "availability_status": recommendation.availability_status.value,
                    "overall_risk": recommendation.risk_assessment.overall_risk.value,
                    "fallback_count": sum(
                        1 for item in items if item.optimal_choice.is_fallback
                    ),
                    "total_estimated_cost": recommendation.total_estimated_cost,
                    "within_risk_tolerance": recommendation.within_risk_tolerance,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return recommendation

    # ------------------------------------------------------------------
    # Per line
    # ------------------------------------------------------------------

    def _recommend_line(
        self,
        submission: Submission,
        item: SubmissionItem,
        options: RecommendationOptions,
    ) -> RecommendedItem:
        pests = submission.pest_types
        candidates, primary, failure = self._fetch_candidates(submission, item, options)

        category = primary.category if primary is not None else item.medicine_category
        quantity = calculate_quantity(
            submission.affected_area,
            category,
            pests,
            self._config.quantity,
        )

        ranked = rank_candidates(
            [
                score_medicine(
                    medicine,
                    pests,
                    quantity.calculated_quantity,
                    item.unit,
                    self._config.scoring,
                )
                for medicine in candidates
            ],
            self._config.scoring,
        )

        optimal: Recommendation
        if ranked:
            optimal = ranked[0]
        else:
            optimal = self._fallback(item, primary, failure or MEDICINE_NOT_FOUND)
            logger.warning(
                "recommendation_fallback_used",
                extra={
                    "submission_item_id": str(item.item_id),
                    "medicine_id": str(item.medicine_id),
                    "reason": optimal.reason,
                },
            )

        suggestion = None
        if optimal.available_stock < item.requested_quantity:
            suggestion = self._suggest_alternatives(submission, item, options)

        return RecommendedItem(
            submission_item_id=item.item_id,
            medicine_id=item.medicine_id,
            requested_quantity=item.requested_quantity,
            quantity_calculation=quantity,
            optimal_choice=optimal,
            recommended_options=tuple(ranked[: options.max_alternatives + 1]),
            alternative_suggestion=suggestion,
        )

    def _fetch_candidates(
        self,
        submission: Submission,
        item: SubmissionItem,
        options: RecommendationOptions,
    ) -> tuple[list[Medicine], Medicine | None, str | None]:
        """Primary medicine first, then pest-matching alternatives.

        Returns the candidates, the primary medicine (if found) and, when
        the catalog failed, the failure reason.
        """
        candidates: list[Medicine] = []
        primary: Medicine | None = None
        failure: str | None = None

        try:
            primary = self._catalog.find_medicine(item.medicine_id)
        except Exception:
            logger.warning(
                "catalog_fetch_failed",
                extra={"medicine_id": str(item.medicine_id), "lookup": "primary"},
                exc_info=True,
            )
            failure = CATALOG_UNAVAILABLE
        if primary is not None:
            candidates.append(primary)

        if options.include_alternatives:
            try:
                candidates.extend(
                    self._catalog.find_medicines_by_pest_targets(
                        submission.pest_types,
                        item.medicine_id,
                        self._config.recommendation.primary_alternative_limit,
                    )
                )
            except Exception:
                logger.warning(
                    "catalog_fetch_failed",
                    extra={"medicine_id": str(item.medicine_id), "lookup": "alternatives"},
                    exc_info=True,
                )
                failure = failure or CATALOG_UNAVAILABLE

        return candidates, primary, failure

    def _suggest_alternatives(
        self,
        submission: Submission,
        item: SubmissionItem,
        options: RecommendationOptions,
    ) -> AlternativeSuggestion | None:
        min_lot = item.requested_quantity * self._config.recommendation.alternative_min_lot_fraction
        try:
            medicines = self._catalog.find_medicines_by_pest_targets(
                submission.pest_types,
                item.medicine_id,
                options.max_alternatives,
                min_lot_quantity=min_lot,
            )
        except Exception:
            logger.warning(
                "catalog_fetch_failed",
                extra={"medicine_id": str(item.medicine_id), "lookup": "insufficient_stock"},
                exc_info=True,
            )
            return None

        alternatives = self._score_alternatives(medicines, submission.pest_types, item)
        if not alternatives:
            return None
        return AlternativeSuggestion(
            reason=INSUFFICIENT_QUANTITY,
            alternatives=tuple(alternatives[: options.max_alternatives]),
        )

    def _score_alternatives(
        self,
        medicines: Sequence[Medicine],
        pests: Sequence[str],
        item: SubmissionItem,
    ) -> list[MedicineRecommendation]:
        scored = [
            score_medicine(
                medicine,
                pests,
                item.requested_quantity,
                self._config.quantity.unit,
                self._config.scoring,
            )
            for medicine in medicines
        ]
        return rank_by_effectiveness([rec for rec in scored if rec.available_stock > 0])

    def _fallback(
        self,
        item: SubmissionItem,
        primary: Medicine | None,
        reason: str,
    ) -> FallbackRecommendation:
        return FallbackRecommendation(
            medicine_id=item.medicine_id,
            brand_name=primary.name if primary is not None else item.medicine_name,
            reason=reason,
            category=primary.category if primary is not None else item.medicine_category,
            unit=item.unit,
        )

"""
Tests for the Recommendation Engine.

Tests cover:
- Full-match scenario: effectiveness 100, availability full, overall risk low
- Candidate ranking across the primary medicine and pest-matching alternatives
- max_alternatives / include_alternatives options
- insufficient_quantity suggestions (lots >= half the requested quantity)
- Fallback when the catalog returns nothing or fails
- Expired and empty lots are invisible
- Generation is read-only
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from agromed_kernel.domain.recommendation import (
    AvailabilityStatus,
    RecommendationOptions,
    RiskLevel,
)
from agromed_kernel.domain.submission import SubmissionStatus
from agromed_kernel.exceptions import InvalidOptionError, SubmissionNotFoundError
from agromed_kernel.models.activity_log import ActivityLogModel
from agromed_kernel.models.submission import SubmissionModel
from agromed_kernel.services.submission_store import SqlSubmissionStore
from agromed_services.recommendation_engine import RecommendationEngine


class _FailingCatalog:
    """Catalog Reader whose every call fails."""

    def find_medicine(self, medicine_id):
        raise RuntimeError("catalog offline")

    def find_medicines_by_pest_targets(self, pests, exclude_id, limit, min_lot_quantity=None):
        raise RuntimeError("catalog offline")


class _EmptyCatalog:
    """Catalog Reader that knows no medicines."""

    def find_medicine(self, medicine_id):
        return None

    def find_medicines_by_pest_targets(self, pests, exclude_id, limit, min_lot_quantity=None):
        return []


class TestFullMatchScenario:

    def test_single_line_fully_covered(self, workflow, create_medicine, create_submission):
        regent = create_medicine(name="Regent 50 SC", pest_targets=("wereng",))
        submission_id = create_submission(
            items=[(regent, 10)],
            affected_area=Decimal("5"),
            pest_types=("wereng sedang",),
        )

        rec = workflow.generate_recommendations(submission_id)

        assert len(rec.recommended_items) == 1
        line = rec.recommended_items[0]
        assert line.quantity_calculation.rounded_quantity == Decimal("10")
        assert line.optimal_choice.medicine_id == regent.id
        assert line.optimal_choice.effectiveness_score == 100
        assert line.optimal_choice.recommended_quantity == Decimal("9.9")
        assert line.alternative_suggestion is None
        assert rec.availability_status is AvailabilityStatus.FULL
        assert rec.risk_assessment.overall_risk is RiskLevel.LOW
        assert rec.within_risk_tolerance is True
        assert rec.has_fallbacks is False

    def test_total_cost_sums_optimal_choices(self, workflow, create_medicine, create_submission):
        regent = create_medicine(name="Regent 50 SC", unit_price=Decimal("1000"))
        score = create_medicine(
            name="Score 250 EC",
            category="fungisida",
            pest_targets=("blas",),
            unit_price=Decimal("2000"),
        )
        submission_id = create_submission(
            items=[(regent, 10), (score, 5)],
            affected_area=Decimal("1"),
            pest_types=("wereng", "blas"),
        )

        rec = workflow.generate_recommendations(
            submission_id, RecommendationOptions(include_alternatives=False)
        )

        # insektisida: 1 x 1.5 x 1.0 x 1.1 = 1.65; fungisida: 1 x 2.0 x 1.0 x 1.1 = 2.2
        assert rec.total_estimated_cost == Decimal("1650") + Decimal("4400")


class TestCandidateRanking:

    def test_better_alternative_becomes_optimal(self, workflow, create_medicine, create_submission):
        weak = create_medicine(name="Alpha Weak", pest_targets=("ulat",))
        strong = create_medicine(name="Beta Strong", pest_targets=("wereng",))
        submission_id = create_submission(items=[(weak, 10)], pest_types=("wereng",))

        line = workflow.generate_recommendations(submission_id).recommended_items[0]

        assert line.optimal_choice.medicine_id == strong.id
        assert [o.brand_name for o in line.recommended_options] == ["Beta Strong", "Alpha Weak"]
        # the line still refers to the requested medicine
        assert line.medicine_id == weak.id

    def test_max_alternatives_bounds_options(self, workflow, create_medicine, create_submission):
        primary = create_medicine(name="Primary", pest_targets=("wereng",))
        for n in range(5):
            create_medicine(name=f"Alt {n}", pest_targets=("wereng",))
        submission_id = create_submission(items=[(primary, 10)], pest_types=("wereng",))

        line = workflow.generate_recommendations(
            submission_id, RecommendationOptions(max_alternatives=1)
        ).recommended_items[0]

        assert len(line.recommended_options) == 2
        assert line.recommended_options[0].medicine_id == primary.id

    def test_include_alternatives_false(self, workflow, create_medicine, create_submission):
        primary = create_medicine(name="Primary", pest_targets=("ulat",))
        create_medicine(name="Better", pest_targets=("wereng",))
        submission_id = create_submission(items=[(primary, 10)], pest_types=("wereng",))

        line = workflow.generate_recommendations(
            submission_id, RecommendationOptions(include_alternatives=False)
        ).recommended_items[0]

        assert [o.medicine_id for o in line.recommended_options] == [primary.id]

    def test_inactive_medicines_are_not_alternatives(self, workflow, create_medicine, create_submission):
        primary = create_medicine(name="Primary", pest_targets=("ulat",))
        create_medicine(name="Retired", pest_targets=("wereng",), is_active=False)
        submission_id = create_submission(items=[(primary, 10)], pest_types=("wereng",))

        line = workflow.generate_recommendations(submission_id).recommended_items[0]
        assert [o.brand_name for o in line.recommended_options] == ["Primary"]


class TestInsufficientStock:

    def test_suggests_alternatives_with_large_enough_lots(
        self, workflow, create_medicine, create_submission
    ):
        primary = create_medicine(name="Primary", lots=((4, 365),))
        create_medicine(name="Big Lot", lots=((6, 365),))
        create_medicine(name="Small Lots", lots=((3, 365), (3, 200)))
        submission_id = create_submission(items=[(primary, 10)], pest_types=("wereng",))

        rec = workflow.generate_recommendations(submission_id)
        line = rec.recommended_items[0]

        assert line.optimal_choice.medicine_id == primary.id
        assert line.alternative_suggestion is not None
        assert line.alternative_suggestion.reason == "insufficient_quantity"
        assert [a.brand_name for a in line.alternative_suggestion.alternatives] == ["Big Lot"]
        assert rec.availability_status is AvailabilityStatus.UNAVAILABLE
        assert rec.risk_assessment.stock_risk is RiskLevel.HIGH
        assert "1 item(s) have insufficient stock" in rec.risk_assessment.warnings

    def test_alternatives_sorted_by_effectiveness(self, workflow, create_medicine, create_submission):
        primary = create_medicine(name="Primary", pest_targets=("wereng",), lots=((1, 365),))
        # "tikus ulat" only matches by category keyword: 75
        create_medicine(name="Aa Partial", pest_targets=("wereng",), lots=((10, 365),))
        create_medicine(name="Zz Full", pest_targets=("wereng", "ulat"), lots=((10, 365),))
        submission_id = create_submission(
            items=[(primary, 10)], pest_types=("wereng", "tikus ulat")
        )

        line = workflow.generate_recommendations(submission_id).recommended_items[0]

        names = [a.brand_name for a in line.alternative_suggestion.alternatives]
        assert names == ["Zz Full", "Aa Partial"]

    def test_no_suggestion_when_nothing_qualifies(self, workflow, create_medicine, create_submission):
        primary = create_medicine(name="Primary", lots=((2, 365),))
        submission_id = create_submission(items=[(primary, 10)], pest_types=("wereng",))

        line = workflow.generate_recommendations(submission_id).recommended_items[0]
        assert line.alternative_suggestion is None

    def test_expired_lots_are_invisible(self, workflow, create_medicine, create_submission):
        primary = create_medicine(name="Primary", lots=((100, -1), (0, 365)))
        submission_id = create_submission(items=[(primary, 10)], pest_types=("wereng",))

        line = workflow.generate_recommendations(
            submission_id, RecommendationOptions(include_alternatives=False)
        ).recommended_items[0]

        assert line.optimal_choice.available_stock == Decimal("0")
        assert line.optimal_choice.batch_number == "N/A"
        assert line.optimal_choice.is_fallback is False


class TestFallback:

    def _engine(self, session, catalog, clock):
        return RecommendationEngine(catalog, SqlSubmissionStore(session), clock)

    def test_catalog_failure_degrades_to_fallback(
        self, session, deterministic_clock, create_medicine, create_submission, captured_logs
    ):
        regent = create_medicine(name="Regent 50 SC")
        submission_id = create_submission(items=[(regent, 10)])
        engine = self._engine(session, _FailingCatalog(), deterministic_clock)

        rec = engine.generate(submission_id)
        optimal = rec.recommended_items[0].optimal_choice

        assert optimal.is_fallback is True
        assert optimal.reason == "catalog_unavailable"
        assert optimal.medicine_id == regent.id
        assert optimal.brand_name == "Regent 50 SC"
        assert optimal.total_cost == Decimal("0")
        assert rec.has_fallbacks is True
        assert rec.availability_status is AvailabilityStatus.UNAVAILABLE
        assert rec.risk_assessment.overall_risk is RiskLevel.HIGH

        failures = [r for r in captured_logs() if r["message"] == "catalog_fetch_failed"]
        assert {r["lookup"] for r in failures} >= {"primary", "alternatives"}

    def test_unknown_medicine_fallback(
        self, session, deterministic_clock, create_medicine, create_submission
    ):
        regent = create_medicine(name="Regent 50 SC")
        submission_id = create_submission(items=[(regent, 10)])
        engine = self._engine(session, _EmptyCatalog(), deterministic_clock)

        line = engine.generate(submission_id).recommended_items[0]
        optimal = line.optimal_choice

        assert optimal.is_fallback is True
        assert optimal.reason == "medicine_not_found"
        assert optimal.application_rate == "Unknown"
        # quantity still computed from the item's category
        assert line.quantity_calculation.base_application_rate == Decimal("1.5")


class TestGenerateContract:

    def test_missing_submission(self, workflow):
        with pytest.raises(SubmissionNotFoundError):
            workflow.generate_recommendations(uuid4())

    def test_empty_submission(self, workflow, create_submission):
        rec = workflow.generate_recommendations(create_submission(items=[]))

        assert rec.recommended_items == ()
        assert rec.total_estimated_cost == Decimal("0")
        assert rec.availability_status is AvailabilityStatus.FULL
        assert rec.risk_assessment.overall_risk is RiskLevel.LOW

    def test_is_read_only(self, session, workflow, create_medicine, create_submission):
        regent = create_medicine()
        submission_id = create_submission(items=[(regent, 10)])

        workflow.generate_recommendations(submission_id)

        assert session.scalar(select(func.count(ActivityLogModel.id))) == 0
        status = session.scalar(
            select(SubmissionModel.status).where(SubmissionModel.id == submission_id)
        )
        assert status == SubmissionStatus.PENDING.value

    def test_risk_tolerance(self, workflow, create_medicine, create_submission):
        regent = create_medicine(lots=((4, 365),))
        submission_id = create_submission(items=[(regent, 10)])

        rec = workflow.generate_recommendations(
            submission_id, RecommendationOptions(risk_tolerance="low")
        )

        assert rec.risk_tolerance is RiskLevel.LOW
        assert rec.risk_assessment.overall_risk is not RiskLevel.LOW
        assert rec.within_risk_tolerance is False

    def test_logs_generation(self, workflow, create_medicine, create_submission, captured_logs):
        regent = create_medicine()
        submission_id = create_submission(items=[(regent, 10)])

        workflow.generate_recommendations(submission_id)

        records = [r for r in captured_logs() if r["message"] == "recommendation_generated"]
        assert len(records) == 1
        assert records[0]["submission_id"] == str(submission_id)
        assert records[0]["item_count"] == 1
        assert records[0]["availability_status"] == "full"


class TestRecommendationOptions:

    @pytest.mark.parametrize("value", [0, 11, -1, "3", True])
    def test_max_alternatives_range(self, value):
        with pytest.raises(InvalidOptionError) as exc_info:
            RecommendationOptions(max_alternatives=value)
        assert exc_info.value.option == "max_alternatives"

    def test_unknown_risk_tolerance(self):
        with pytest.raises(InvalidOptionError):
            RecommendationOptions(risk_tolerance="extreme")

    def test_defaults(self):
        options = RecommendationOptions()
        assert options.include_alternatives is True
        assert options.max_alternatives == 3
        assert options.risk_tolerance is RiskLevel.MEDIUM

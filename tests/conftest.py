"""
Pytest fixtures for the approval engine test suite.

Provides:
- SQLite database sessions (in-memory by default, file-backed for
  threaded tests)
- Deterministic clock
- Catalog and submission factories
- A wired ApprovalWorkflowService
- Captured structured logs

Environment Variables:
- DATABASE_URL: SQLAlchemy URL for the session-backed tests.  Defaults to
  in-memory SQLite.
"""

import json
import logging
import os
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from decimal import Decimal
from io import StringIO
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from agromed_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from agromed_kernel.domain.clock import DeterministicClock
from agromed_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from agromed_kernel.models.medicine import MedicineModel, StockLotModel
from agromed_kernel.models.submission import SubmissionItemModel, SubmissionModel
from agromed_services.approval_workflow import ApprovalWorkflowService
from agromed_services.authorization import StaticApprovalAuthority

# Reviewer holding approval authority in every wired workflow
TEST_REVIEWER_ID = uuid4()

DEFAULT_DATABASE_URL = "sqlite://"


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "slow_locks: mark test as potentially waiting for DB locks"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture agromed_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, workflow):
            workflow.validate_and_approve(decision, reviewer_id)
            logs = captured_logs()
            assert any(r["message"] == "approval_committed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("agromed_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    """Clock pinned at 2025-07-01 08:00 UTC."""
    return DeterministicClock()


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    """Fresh schema per test."""
    eng = init_engine_from_url(get_database_url())
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session(engine) -> Session:
    s = get_session()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def file_engine(tmp_path):
    """File-backed SQLite so each thread gets its own connection."""
    eng = init_engine_from_url(f"sqlite:///{tmp_path / 'approvals.db'}", pool_timeout=30)
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(file_engine):
    return get_session_factory()


# =============================================================================
# Factories
# =============================================================================


def _seed_medicine(
    session: Session,
    today,
    name: str = "Regent 50 SC",
    category: str = "insektisida",
    pest_targets: Sequence[str] = ("wereng",),
    unit_price: Decimal | None = Decimal("85000"),
    lots: Sequence[tuple] = ((Decimal("100"), 365),),
    active_ingredient: str | None = "fipronil",
    unit: str = "liter",
    is_active: bool = True,
) -> MedicineModel:
    """
    Create a medicine with stock lots.

    ``lots`` holds ``(quantity, days_until_expiry)`` pairs; negative days
    create already-expired lots.
    """
    medicine = MedicineModel(
        name=name,
        category=category,
        pest_targets=list(pest_targets),
        unit_price=unit_price,
        active_ingredient=active_ingredient,
        unit=unit,
        is_active=is_active,
    )
    session.add(medicine)
    session.flush()
    for n, (quantity, days) in enumerate(lots, start=1):
        session.add(
            StockLotModel(
                medicine_id=medicine.id,
                quantity=Decimal(str(quantity)),
                expiry_date=today + timedelta(days=days),
                batch_number=f"{name[:3].upper()}-{n:03d}",
                supplier="PT Agro Sentosa",
            )
        )
    session.commit()
    return medicine


def _seed_submission(
    session: Session,
    now: datetime,
    items: Sequence[tuple[MedicineModel, object]] = (),
    status: str = "pending",
    priority: str = "medium",
    affected_area: Decimal = Decimal("5"),
    pest_types: Sequence[str] = ("wereng sedang",),
    district: str | None = "Sleman",
    submission_number: str | None = None,
    created_at: datetime | None = None,
) -> UUID:
    """Create a submission; ``items`` holds ``(medicine, requested_quantity)`` pairs."""
    submission = SubmissionModel(
        submission_number=submission_number or f"SUB-{uuid4().hex[:8].upper()}",
        status=status,
        priority=priority,
        affected_area=Decimal(str(affected_area)),
        pest_types=list(pest_types),
        district=district,
        created_at=created_at or now,
    )
    session.add(submission)
    session.flush()
    for n, (medicine, quantity) in enumerate(items, start=1):
        session.add(
            SubmissionItemModel(
                submission_id=submission.id,
                medicine_id=medicine.id,
                line_number=n,
                requested_quantity=Decimal(str(quantity)),
                unit=medicine.unit,
            )
        )
    session.commit()
    return submission.id


@pytest.fixture
def create_medicine(session, deterministic_clock) -> Callable[..., MedicineModel]:
    def _create(**kwargs) -> MedicineModel:
        return _seed_medicine(session, deterministic_clock.today(), **kwargs)

    return _create


@pytest.fixture
def create_submission(session, deterministic_clock) -> Callable[..., UUID]:
    def _create(**kwargs) -> UUID:
        return _seed_submission(session, deterministic_clock.now(), **kwargs)

    return _create


@pytest.fixture
def seed_medicine() -> Callable[..., MedicineModel]:
    """Session-explicit factory for tests that open their own sessions."""
    return _seed_medicine


@pytest.fixture
def seed_submission() -> Callable[..., UUID]:
    return _seed_submission


@pytest.fixture
def reviewer_id() -> UUID:
    return TEST_REVIEWER_ID


@pytest.fixture
def workflow(session, deterministic_clock) -> ApprovalWorkflowService:
    return ApprovalWorkflowService.from_session(
        session,
        authority=StaticApprovalAuthority([TEST_REVIEWER_ID]),
        clock=deterministic_clock,
    )

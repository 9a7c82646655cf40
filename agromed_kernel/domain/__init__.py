"""
Pure domain layer.

This module contains pure data transfer objects, the submission state
machine, and collaborator protocols with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (other than the Clock abstraction itself)
- I/O

All domain objects are immutable and deterministic.
"""

from agromed_kernel.domain.catalog import (
    Medicine,
    StockLot,
    is_direct_match,
    normalize_pest,
    targets_intersect,
)
from agromed_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from agromed_kernel.domain.decision import (
    ACTION_TARGET_STATUS,
    BULK_ACTIONS,
    QUANTITY_ACTIONS,
    ApprovalAction,
    ApprovalDecision,
    ApprovalHistoryEntry,
    ApprovedItem,
    AuditEntry,
    BulkItemResult,
    DecisionOutcome,
    ValidatedDecision,
)
from agromed_kernel.domain.engine_config import (
    ApprovalConfig,
    EngineConfig,
    QuantityConfig,
    RecommendationConfig,
    RiskConfig,
    ScoringConfig,
)
from agromed_kernel.domain.protocols import (
    ApprovalAuthority,
    ApprovalReadModel,
    CatalogReader,
    SubmissionStore,
)
from agromed_kernel.domain.recommendation import (
    AlternativeSuggestion,
    ApprovalRecommendation,
    ApprovalStatistics,
    AvailabilityStatus,
    DistrictStat,
    FallbackRecommendation,
    MedicineRecommendation,
    MedicineUsageStat,
    QuantityCalculation,
    Recommendation,
    RecommendationOptions,
    RecommendedItem,
    RiskAssessment,
    RiskLevel,
    UsageLine,
)
from agromed_kernel.domain.submission import (
    APPROVABLE_STATUSES,
    SUBMISSION_TRANSITIONS,
    TERMINAL_SUBMISSION_STATUSES,
    ItemAdjustment,
    StatusUpdate,
    Submission,
    SubmissionItem,
    SubmissionPriority,
    SubmissionStatus,
    is_transition_allowed,
)

__all__ = [
    # Catalog
    "Medicine",
    "StockLot",
    "is_direct_match",
    "normalize_pest",
    "targets_intersect",
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Decisions
    "ACTION_TARGET_STATUS",
    "BULK_ACTIONS",
    "QUANTITY_ACTIONS",
    "ApprovalAction",
    "ApprovalDecision",
    "ApprovalHistoryEntry",
    "ApprovedItem",
    "AuditEntry",
    "BulkItemResult",
    "DecisionOutcome",
    "ValidatedDecision",
    # Configuration values
    "ApprovalConfig",
    "EngineConfig",
    "QuantityConfig",
    "RecommendationConfig",
    "RiskConfig",
    "ScoringConfig",
    # Protocols
    "ApprovalAuthority",
    "ApprovalReadModel",
    "CatalogReader",
    "SubmissionStore",
    # Recommendations
    "AlternativeSuggestion",
    "ApprovalRecommendation",
    "ApprovalStatistics",
    "AvailabilityStatus",
    "DistrictStat",
    "FallbackRecommendation",
    "MedicineRecommendation",
    "MedicineUsageStat",
    "QuantityCalculation",
    "Recommendation",
    "RecommendationOptions",
    "RecommendedItem",
    "RiskAssessment",
    "RiskLevel",
    "UsageLine",
    # Submissions
    "APPROVABLE_STATUSES",
    "SUBMISSION_TRANSITIONS",
    "TERMINAL_SUBMISSION_STATUSES",
    "ItemAdjustment",
    "StatusUpdate",
    "Submission",
    "SubmissionItem",
    "SubmissionPriority",
    "SubmissionStatus",
    "is_transition_allowed",
]

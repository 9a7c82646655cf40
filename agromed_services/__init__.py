"""
agromed_services -- Approval pipeline services.

Composes the pure engines with the kernel's Catalog Reader and Submission
Store.  Callers normally use ``ApprovalWorkflowService``.
"""

from agromed_services.approval_executor import ApprovalExecutor, PostCommitHook
from agromed_services.approval_validator import ApprovalValidator
from agromed_services.approval_workflow import ApprovalWorkflowService
from agromed_services.authorization import (
    AllowAllApprovalAuthority,
    StaticApprovalAuthority,
    require_approval_permission,
)
from agromed_services.recommendation_engine import RecommendationEngine

__all__ = [
    "AllowAllApprovalAuthority",
    "ApprovalExecutor",
    "ApprovalValidator",
    "ApprovalWorkflowService",
    "PostCommitHook",
    "RecommendationEngine",
    "StaticApprovalAuthority",
    "require_approval_permission",
]

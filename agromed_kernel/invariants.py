"""
Kernel Invariants Contract.

These invariants are structural law for approval decisions. No engine
configuration, authorization policy, or post-commit hook may override
them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across ApprovalValidator, ApprovalExecutor,
SqlSubmissionStore, and the pure engines.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel.

    Each value names one structural guarantee that the kernel provides
    unconditionally. Configuration may influence *how* quantities and
    scores are computed, but never *whether* these rules apply.
    """

    APPROVED_WITHIN_REQUESTED = "approved_within_requested"
    """0 <= approved_quantity <= requested_quantity for every item after
    any approval action. Enforced by ApprovalValidator."""

    APPROVED_WITHIN_STOCK = "approved_within_stock"
    """The sum of approved quantities per medicine in one decision never
    exceeds the live available stock read at decision time. Enforced by
    ApprovalValidator."""

    STATUS_TRANSITIONS = "status_transitions"
    """Submission status only moves along SUBMISSION_TRANSITIONS.
    Enforced by ApprovalExecutor and SqlSubmissionStore."""

    COMPARE_AND_SET = "compare_and_set"
    """A status write only commits if the stored status still equals the
    status read at validation time. Enforced by SqlSubmissionStore."""

    SCORE_BOUNDS = "score_bounds"
    """Effectiveness and compatibility scores lie in [0, 100]. Enforced
    by agromed_engines.scoring."""

    ROUND_UP = "round_up"
    """Rounded quantities are never below the calculated quantity.
    Enforced by agromed_engines.quantity."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "agromed_engines",
    "agromed_services",
    "agromed_config",
)

# Engines are pure: they may import kernel domain types only.
FORBIDDEN_ENGINE_IMPORTS: tuple[str, ...] = (
    "agromed_services",
    "agromed_config",
    "agromed_kernel.db",
    "agromed_kernel.models",
    "agromed_kernel.selectors",
    "agromed_kernel.services",
    "sqlalchemy",
)

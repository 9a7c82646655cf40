"""
agromed_services.authorization -- Approval authority policies.

Responsibility:
    Decide whether an actor may generate recommendations for, or decide
    on, submissions.  The engine never resolves actor identity itself; the
    caller injects an ``ApprovalAuthority`` and the services ask it.

Architecture position:
    Services layer.  Implements ``agromed_kernel.domain.protocols.ApprovalAuthority``.

Invariants:
    - Every approval operation checks authority before touching the store.
    - A denial raises ``PermissionDeniedError`` naming actor and operation.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from agromed_kernel.domain.protocols import ApprovalAuthority
from agromed_kernel.exceptions import PermissionDeniedError
from agromed_kernel.logging_config import get_logger

logger = get_logger("services.authorization")


class AllowAllApprovalAuthority:
    """Grants approval authority to every actor.

    Suitable only where authorization is enforced upstream (e.g. by the
    HTTP layer's role middleware).
    """

    def has_approval_permission(self, actor_id: UUID) -> bool:
        return True


class StaticApprovalAuthority:
    """Grants approval authority to a fixed set of actor ids."""

    def __init__(self, approver_ids: Iterable[UUID]):
        self._approver_ids = frozenset(approver_ids)

    def has_approval_permission(self, actor_id: UUID) -> bool:
        return actor_id in self._approver_ids


def require_approval_permission(
    authority: ApprovalAuthority,
    actor_id: UUID,
    operation: str,
) -> None:
    """Raise ``PermissionDeniedError`` unless ``actor_id`` holds approval authority."""
    if authority.has_approval_permission(actor_id):
        return
    logger.warning(
        "approval_permission_denied",
        extra={"actor_id": str(actor_id), "operation": operation},
    )
    raise PermissionDeniedError(str(actor_id), operation)

"""
Module: agromed_engines.usage_stats
Responsibility:
    Pure statistics helpers for the approval dashboard: a fold of item
    lines into per-medicine usage records, and the queue risk level of an
    open submission.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - The usage fold never mutates an accumulator; each step returns a new
      mapping of immutable records keyed by medicine id.
    - Queue risk: +2 if waiting > 7 days, +3 more if > 14; urgent +3,
      high +2, medium +1; area > 100 ha +2, > 500 ha +3 more;
      score >= 6 high, >= 3 medium, else low.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from functools import reduce
from types import MappingProxyType
from uuid import UUID

from agromed_kernel.domain.engine_config import ApprovalConfig
from agromed_kernel.domain.recommendation import MedicineUsageStat, RiskLevel, UsageLine
from agromed_kernel.domain.submission import Submission

_DEFAULT_CONFIG = ApprovalConfig()
_ZERO = Decimal("0")


def _fold_line(
    acc: Mapping[UUID, MedicineUsageStat],
    line: UsageLine,
) -> Mapping[UUID, MedicineUsageStat]:
    approved = line.approved_quantity > 0
    current = acc.get(line.medicine_id)
    if current is None:
        stat = MedicineUsageStat(
            medicine_id=line.medicine_id,
            medicine_name=line.medicine_name,
            times_requested=1,
            times_approved=1 if approved else 0,
            total_quantity_requested=line.requested_quantity,
            total_quantity_approved=line.approved_quantity if approved else _ZERO,
        )
    else:
        stat = replace(
            current,
            times_requested=current.times_requested + 1,
            times_approved=current.times_approved + (1 if approved else 0),
            total_quantity_requested=current.total_quantity_requested + line.requested_quantity,
            total_quantity_approved=(
                current.total_quantity_approved
                + (line.approved_quantity if approved else _ZERO)
            ),
        )
    return MappingProxyType({**acc, line.medicine_id: stat})


def fold_medicine_usage(lines: Iterable[UsageLine]) -> tuple[MedicineUsageStat, ...]:
    """Per-medicine usage, most requested first (ties by name)."""
    folded = reduce(_fold_line, lines, MappingProxyType({}))
    return tuple(
        sorted(
            folded.values(),
            key=lambda stat: (-stat.times_requested, stat.medicine_name, str(stat.medicine_id)),
        )
    )


def queue_risk_score(
    submission: Submission,
    as_of: datetime,
    config: ApprovalConfig = _DEFAULT_CONFIG,
) -> int:
    days_waiting = (as_of - submission.created_at).days if submission.created_at else 0
    wait_medium, wait_high = config.queue_wait_days_thresholds
    wait_points_medium, wait_points_high = config.queue_wait_points
    area_medium, area_high = config.queue_area_thresholds
    area_points_medium, area_points_high = config.queue_area_points

    score = 0
    if days_waiting > wait_medium:
        score += wait_points_medium
    if days_waiting > wait_high:
        score += wait_points_high

    score += config.queue_priority_points.get(submission.priority.value, 0)

    if submission.affected_area > area_medium:
        score += area_points_medium
    if submission.affected_area > area_high:
        score += area_points_high
    return score


def queue_risk_level(
    submission: Submission,
    as_of: datetime,
    config: ApprovalConfig = _DEFAULT_CONFIG,
) -> RiskLevel:
    score = queue_risk_score(submission, as_of, config)
    if score >= config.queue_high_score:
        return RiskLevel.HIGH
    if score >= config.queue_medium_score:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def queue_risk_distribution(
    submissions: Sequence[Submission],
    as_of: datetime,
    config: ApprovalConfig = _DEFAULT_CONFIG,
) -> dict[str, int]:
    distribution = {level.value: 0 for level in RiskLevel}
    for submission in submissions:
        distribution[queue_risk_level(submission, as_of, config).value] += 1
    return distribution

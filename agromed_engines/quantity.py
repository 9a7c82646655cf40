"""
Module: agromed_engines.quantity
Responsibility:
    Pure Quantity Calculator: maps (affected area, medicine category, pest
    descriptors) to the quantity a submission line needs.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import agromed_kernel/domain and agromed_kernel/exceptions.

Invariants enforced:
    - ``rounded_quantity >= calculated_quantity`` and is a whole multiple of
      the rounding increment (0.25 by default).  Rounding is always UP;
      under-provisioning is the unsafe direction.
    - Monotonic in area: a larger area never yields a smaller quantity.
    - Decimal-only arithmetic.

Failure modes:
    - InvalidAreaError for a non-positive or non-numeric affected area.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_CEILING, Decimal, InvalidOperation

from agromed_engines.tracer import traced_engine
from agromed_kernel.domain.engine_config import QuantityConfig
from agromed_kernel.domain.recommendation import QuantityCalculation
from agromed_kernel.exceptions import InvalidAreaError

_DEFAULT_CONFIG = QuantityConfig()


def intensity_factor(
    pest_descriptors: Sequence[str],
    config: QuantityConfig = _DEFAULT_CONFIG,
) -> Decimal:
    """1.5 for any severe marker, else 1.2 for any moderate marker, else 1.0."""
    lowered = [descriptor.lower() for descriptor in pest_descriptors]
    if any(marker in d for d in lowered for marker in config.severe_markers):
        return config.severe_factor
    if any(marker in d for d in lowered for marker in config.moderate_markers):
        return config.moderate_factor
    return config.neutral_factor


def round_up_to_increment(value: Decimal, increment: Decimal) -> Decimal:
    return (value / increment).to_integral_value(rounding=ROUND_CEILING) * increment


def _to_area(affected_area: Decimal | int | str) -> Decimal:
    try:
        area = affected_area if isinstance(affected_area, Decimal) else Decimal(str(affected_area))
    except InvalidOperation:
        raise InvalidAreaError(affected_area) from None
    if not area.is_finite() or area <= 0:
        raise InvalidAreaError(area)
    return area


@traced_engine(
    "quantity",
    "1.0",
    fingerprint_fields=("affected_area", "medicine_category", "pest_descriptors"),
)
def calculate_quantity(
    affected_area: Decimal,
    medicine_category: str,
    pest_descriptors: Sequence[str],
    config: QuantityConfig | None = None,
) -> QuantityCalculation:
    """
    Required quantity for one line.

    ``calculated = area x base_rate x intensity x waste``; the result is
    rounded up to the configured increment.

    Raises:
        InvalidAreaError: ``affected_area`` is not strictly positive.
    """
    config = config or _DEFAULT_CONFIG
    area = _to_area(affected_area)

    base_rate = config.base_rate_for(medicine_category or "")
    intensity = intensity_factor(pest_descriptors, config)
    waste = config.waste_factor

    calculated = area * base_rate * intensity * waste
    rounded = round_up_to_increment(calculated, config.rounding_increment)

    return QuantityCalculation(
        affected_area=area,
        base_application_rate=base_rate,
        intensity_factor=intensity,
        waste_factor=waste,
        calculated_quantity=calculated,
        rounded_quantity=rounded,
        unit=config.unit,
        explanation=(
            f"Based on {area} ha affected area, {base_rate}L/ha application rate, "
            f"{intensity}x intensity factor, and {waste}x waste factor"
        ),
    )

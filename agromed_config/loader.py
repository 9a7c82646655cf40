"""
Configuration Loader (``agromed_config.loader``).

Responsibility
--------------
Loads a YAML configuration set and parses it into the frozen
``agromed_kernel.domain.engine_config`` dataclasses.  The single public
entry point for runtime config is ``agromed_config.get_active_config()``;
this module is its internal tooling.

Architecture position
---------------------
**Config layer** -- sits above the kernel domain and below the services.
Imports only kernel domain values and kernel exceptions.

Invariants enforced
-------------------
* Strict keys: unknown sections or keys are rejected, never ignored.
* Every numeric value is parsed as ``Decimal`` (or ``int`` for counts).
* ``compute_checksum`` is deterministic for identical content.

Failure modes
-------------
* Missing file, malformed YAML, unknown keys, wrong types and inconsistent
  thresholds all raise ``ConfigurationError`` naming the source and the
  offending key.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from agromed_kernel.domain.engine_config import (
    ApprovalConfig,
    EngineConfig,
    QuantityConfig,
    RecommendationConfig,
    RiskConfig,
    ScoringConfig,
)
from agromed_kernel.exceptions import ConfigurationError

_SECTIONS = ("quantity", "scoring", "recommendation", "risk", "approval")
_TOP_LEVEL_KEYS = frozenset(_SECTIONS) | {"config_id", "version"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        ConfigurationError: missing file, invalid YAML, or a non-mapping
            document.
    """
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigurationError(str(path), "file not found") from None
    except yaml.YAMLError as exc:
        raise ConfigurationError(str(path), f"invalid YAML: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top-level document must be a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


# ---------------------------------------------------------------------------
# Scalar parsers
# ---------------------------------------------------------------------------


class _Parser:
    """Typed accessors bound to one source file for error reporting."""

    def __init__(self, source: str):
        self.source = source

    def fail(self, key: str, reason: str) -> ConfigurationError:
        return ConfigurationError(self.source, f"{key}: {reason}")

    def decimal(self, key: str, value: Any) -> Decimal:
        if isinstance(value, bool):
            raise self.fail(key, f"expected a number, got {value!r}")
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise self.fail(key, f"expected a number, got {value!r}") from None
        if not result.is_finite():
            raise self.fail(key, f"expected a finite number, got {value!r}")
        return result

    def integer(self, key: str, value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise self.fail(key, f"expected an integer, got {value!r}")
        return value

    def text(self, key: str, value: Any) -> str:
        if not isinstance(value, str) or not value.strip():
            raise self.fail(key, f"expected a non-empty string, got {value!r}")
        return value

    def words(self, key: str, value: Any) -> tuple[str, ...]:
        if not isinstance(value, list):
            raise self.fail(key, f"expected a list, got {value!r}")
        return tuple(self.text(key, v).strip().lower() for v in value)

    def mapping(self, key: str, value: Any) -> dict[str, Any]:
        if not isinstance(value, dict):
            raise self.fail(key, f"expected a mapping, got {value!r}")
        return {str(k).strip().lower(): v for k, v in value.items()}

    def pair(self, key: str, value: Any, convert) -> tuple[Any, Any]:
        if not isinstance(value, list) or len(value) != 2:
            raise self.fail(key, f"expected a two-element list, got {value!r}")
        return (convert(key, value[0]), convert(key, value[1]))


def _check_keys(parser: _Parser, section: str, data: dict[str, Any], allowed: type) -> None:
    known = set(allowed.__dataclass_fields__)
    unknown = sorted(set(data) - known)
    if unknown:
        raise parser.fail(section, f"unknown keys {unknown}")


# ---------------------------------------------------------------------------
# Section parsers
# ---------------------------------------------------------------------------


def parse_quantity(data: dict[str, Any], parser: _Parser) -> QuantityConfig:
    _check_keys(parser, "quantity", data, QuantityConfig)
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        name = f"quantity.{key}"
        if key == "base_rates":
            kwargs[key] = {
                k: parser.decimal(f"{name}.{k}", v)
                for k, v in parser.mapping(name, value).items()
            }
        elif key in ("severe_markers", "moderate_markers"):
            kwargs[key] = parser.words(name, value)
        elif key == "unit":
            kwargs[key] = parser.text(name, value)
        else:
            kwargs[key] = parser.decimal(name, value)
    return QuantityConfig(**kwargs)


def parse_scoring(data: dict[str, Any], parser: _Parser) -> ScoringConfig:
    _check_keys(parser, "scoring", data, ScoringConfig)
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        name = f"scoring.{key}"
        if key == "category_keywords":
            kwargs[key] = {
                k: parser.words(f"{name}.{k}", v)
                for k, v in parser.mapping(name, value).items()
            }
        elif key == "application_rates":
            kwargs[key] = {
                k: parser.text(f"{name}.{k}", v)
                for k, v in parser.mapping(name, value).items()
            }
        elif key == "coverage_per_unit":
            kwargs[key] = {
                k: parser.decimal(f"{name}.{k}", v)
                for k, v in parser.mapping(name, value).items()
            }
        elif key == "default_application_rate":
            kwargs[key] = parser.text(name, value)
        elif key == "no_target_effectiveness":
            kwargs[key] = parser.integer(name, value)
        else:
            kwargs[key] = parser.decimal(name, value)
    return ScoringConfig(**kwargs)


def parse_recommendation(data: dict[str, Any], parser: _Parser) -> RecommendationConfig:
    _check_keys(parser, "recommendation", data, RecommendationConfig)
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        name = f"recommendation.{key}"
        if key == "alternative_min_lot_fraction":
            kwargs[key] = parser.decimal(name, value)
        else:
            kwargs[key] = parser.integer(name, value)
    return RecommendationConfig(**kwargs)


def parse_risk(data: dict[str, Any], parser: _Parser) -> RiskConfig:
    _check_keys(parser, "risk", data, RiskConfig)
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        name = f"risk.{key}"
        if key in ("expiry_window_days", "low_effectiveness_threshold"):
            kwargs[key] = parser.integer(name, value)
        else:
            kwargs[key] = parser.decimal(name, value)
    return RiskConfig(**kwargs)


def parse_approval(data: dict[str, Any], parser: _Parser) -> ApprovalConfig:
    _check_keys(parser, "approval", data, ApprovalConfig)
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        name = f"approval.{key}"
        if key == "queue_priority_points":
            kwargs[key] = {
                k: parser.integer(f"{name}.{k}", v)
                for k, v in parser.mapping(name, value).items()
            }
        elif key == "queue_area_thresholds":
            kwargs[key] = parser.pair(name, value, parser.decimal)
        elif key in ("queue_wait_days_thresholds", "queue_wait_points", "queue_area_points"):
            kwargs[key] = parser.pair(name, value, parser.integer)
        else:
            kwargs[key] = parser.integer(name, value)
    return ApprovalConfig(**kwargs)


_SECTION_PARSERS = {
    "quantity": parse_quantity,
    "scoring": parse_scoring,
    "recommendation": parse_recommendation,
    "risk": parse_risk,
    "approval": parse_approval,
}


def parse_engine_config(data: dict[str, Any], source: str) -> EngineConfig:
    """
    Parse a whole configuration document.

    Sections that are absent fall back to the dataclass defaults.
    """
    parser = _Parser(source)
    unknown = sorted(set(data) - _TOP_LEVEL_KEYS)
    if unknown:
        raise parser.fail("document", f"unknown sections {unknown}")

    sections: dict[str, Any] = {}
    for section in _SECTIONS:
        if section in data:
            sections[section] = _SECTION_PARSERS[section](
                parser.mapping(section, data[section]), parser
            )

    return EngineConfig(
        config_id=str(data.get("config_id", "default")),
        version=parser.integer("version", data.get("version", 1)),
        checksum=compute_checksum(data),
        **sections,
    )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_engine_config(config: EngineConfig, source: str) -> None:
    """
    Cross-field consistency checks.

    Raises:
        ConfigurationError: on the first inconsistency found.
    """
    parser = _Parser(source)
    q, s, r, k, a = (
        config.quantity,
        config.scoring,
        config.recommendation,
        config.risk,
        config.approval,
    )

    for category, rate in q.base_rates.items():
        if rate <= 0:
            raise parser.fail(f"quantity.base_rates.{category}", f"must be positive, got {rate}")
    for name in (
        "default_base_rate",
        "severe_factor",
        "moderate_factor",
        "neutral_factor",
        "waste_factor",
        "rounding_increment",
    ):
        value = getattr(q, name)
        if value <= 0:
            raise parser.fail(f"quantity.{name}", f"must be positive, got {value}")

    for name in ("effectiveness_weight", "compatibility_weight",
                 "direct_match_weight", "category_match_weight"):
        value = getattr(s, name)
        if value < 0:
            raise parser.fail(f"scoring.{name}", f"must not be negative, got {value}")
    if not 0 <= s.no_target_effectiveness <= 100:
        raise parser.fail("scoring.no_target_effectiveness", "must be within 0..100")
    if not 0 <= s.no_target_compatibility <= 100:
        raise parser.fail("scoring.no_target_compatibility", "must be within 0..100")

    if not 1 <= r.default_max_alternatives <= r.max_alternatives_limit:
        raise parser.fail(
            "recommendation.default_max_alternatives",
            f"must be within 1..{r.max_alternatives_limit}",
        )
    if r.primary_alternative_limit < 0:
        raise parser.fail("recommendation.primary_alternative_limit", "must not be negative")
    if not 0 < r.alternative_min_lot_fraction <= 1:
        raise parser.fail("recommendation.alternative_min_lot_fraction", "must be within (0, 1]")

    for name in ("stock_high_fraction", "expiry_high_fraction", "effectiveness_high_fraction"):
        value = getattr(k, name)
        if not 0 <= value <= 1:
            raise parser.fail(f"risk.{name}", f"must be within [0, 1], got {value}")
    if k.expiry_window_days <= 0:
        raise parser.fail("risk.expiry_window_days", "must be positive")
    if k.overall_medium_threshold > k.overall_high_threshold:
        raise parser.fail(
            "risk.overall_medium_threshold",
            "must not exceed risk.overall_high_threshold",
        )

    if a.max_bulk_size <= 0:
        raise parser.fail("approval.max_bulk_size", "must be positive")
    if a.history_default_limit <= 0:
        raise parser.fail("approval.history_default_limit", "must be positive")
    if a.top_districts_limit <= 0:
        raise parser.fail("approval.top_districts_limit", "must be positive")
    if a.queue_wait_days_thresholds[0] > a.queue_wait_days_thresholds[1]:
        raise parser.fail("approval.queue_wait_days_thresholds", "must be ascending")
    if a.queue_area_thresholds[0] > a.queue_area_thresholds[1]:
        raise parser.fail("approval.queue_area_thresholds", "must be ascending")
    if a.queue_medium_score > a.queue_high_score:
        raise parser.fail("approval.queue_medium_score", "must not exceed approval.queue_high_score")

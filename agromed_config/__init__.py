"""
agromed_config -- single public entrypoint for approval engine configuration.

Responsibility:
    Provides the ONLY way to obtain engine parameters at runtime through
    ``get_active_config()``.  Returns an ``EngineConfig`` -- a frozen
    parameter set consumed by the engines and services.  YAML loading is
    internal tooling and never exposed to callers.

Architecture position:
    Configuration -- YAML-driven, validated at load time.  Sits above
    ``agromed_kernel`` and below ``agromed_services``.  The kernel and the
    engines MUST NEVER import from ``agromed_config``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Strict parsing and cross-field validation before a config is returned.
    - Deterministic checksum: identical YAML always yields the same checksum.

Failure modes:
    - ``ConfigurationError`` -- missing file, malformed YAML, unknown keys,
      wrong types or inconsistent thresholds.

Audit relevance:
    Every successful call emits an ``engine_config_loaded`` log entry with
    the config id, version and checksum, tying each recommendation and
    decision to the parameter set that governed it.
"""

from __future__ import annotations

from pathlib import Path

from agromed_config.loader import (
    load_yaml_file,
    parse_engine_config,
    validate_engine_config,
)
from agromed_kernel.domain.engine_config import EngineConfig
from agromed_kernel.logging_config import get_logger

logger = get_logger("config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(config_path: Path | str | None = None) -> EngineConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a configuration set file.  Defaults
            to ``agromed_config/sets/default.yaml``.

    Returns:
        A validated, frozen ``EngineConfig``.

    Raises:
        ConfigurationError: If the file cannot be loaded or fails validation.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    source = str(path)

    data = load_yaml_file(path)
    config = parse_engine_config(data, source)
    validate_engine_config(config, source)

    logger.info(
        "engine_config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": source,
        },
    )
    return config


__all__ = ["EngineConfig", "get_active_config"]

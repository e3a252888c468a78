"""
procurement_config -- single public entrypoint for engine settings.

Responsibility:
    Provides the ONLY way to obtain engine settings at runtime through
    ``get_active_policy()``.  No engine reads configuration files or
    environment variables; callers pass the returned ``ReportingPolicy``
    to the engines explicitly.

Architecture position:
    Configuration -- YAML-driven settings, validated on load.
    This package sits above ``procurement_kernel``.  The kernel MUST NEVER
    import from ``procurement_config``; ``bridges`` translates parsed
    settings into kernel-compatible inputs.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``ConfigurationError`` -- schema validation failures, all listed.

Audit relevance:
    Every successful ``get_active_policy()`` call emits an
    ``ENGINE_CONFIG_TRACE`` log entry containing the config_id, version,
    checksum and reporting currency, tying every report built with the
    policy back to the exact settings that governed it.
"""

from __future__ import annotations

from pathlib import Path

from procurement_config.bridges import build_reporting_policy, log_level_for
from procurement_config.loader import (
    compute_checksum,
    load_engine_config,
    load_yaml_file,
    parse_engine_config,
    validate_engine_config,
)
from procurement_config.schema import EngineConfigDef, LoggingSettings, ReportingSettings
from procurement_kernel.domain.policy import ReportingPolicy
from procurement_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | None = None) -> EngineConfigDef:
    """Load and validate the settings file (the shipped defaults when ``path`` is None)."""
    return load_engine_config(Path(path) if path is not None else DEFAULT_CONFIG_PATH)


def get_active_policy(path: Path | None = None) -> ReportingPolicy:
    """The ONLY public runtime entrypoint for engine settings.

    Guarantees:
        - The returned policy was built from settings that passed validation.
        - An ``ENGINE_CONFIG_TRACE`` log entry is emitted on every
          successful call.

    Non-goals:
        - Does NOT cache; callers hold the policy for the duration of a
          report build.

    Args:
        path: Override settings file. Defaults to the shipped defaults.yaml.

    Raises:
        FileNotFoundError: If the settings file does not exist.
        ConfigurationError: If the settings fail validation.
    """
    config = get_active_config(path)
    policy = build_reporting_policy(config)

    _logger.info(
        "ENGINE_CONFIG_TRACE",
        extra={
            "trace_type": "ENGINE_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "currency": policy.currency.code,
            "quantity_unit": policy.quantity_unit,
            "source": config.source,
        },
    )
    return policy


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "EngineConfigDef",
    "LoggingSettings",
    "ReportingSettings",
    "build_reporting_policy",
    "compute_checksum",
    "get_active_config",
    "get_active_policy",
    "load_engine_config",
    "load_yaml_file",
    "log_level_for",
    "parse_engine_config",
    "validate_engine_config",
]

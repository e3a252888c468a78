"""
Configuration Loader (``procurement_config.loader``).

Responsibility
--------------
Loads the engine settings YAML and parses it into the frozen
``procurement_config.schema`` dataclasses.  Runtime callers use
``procurement_config.get_active_policy()`` rather than this module.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends on the kernel only
for ``ConfigurationError`` and the currency registry used in validation.

Invariants enforced
-------------------
* Validation collects every problem before raising, so one run reports
  all of them.
* Unknown keys are rejected; a misspelled setting never falls back to a
  default silently.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  configuration identity and change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid settings  -> ``ConfigurationError`` listing every error.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from procurement_config.schema import EngineConfigDef, LoggingSettings, ReportingSettings
from procurement_kernel.domain.currency import CurrencyRegistry
from procurement_kernel.exceptions import ConfigurationError

_TOP_LEVEL_KEYS = frozenset({"config_id", "version", "description", "reporting", "logging"})
_REPORTING_KEYS = frozenset({
    "currency",
    "quantity_unit",
    "quantity_decimal_places",
    "unknown_name_placeholder",
    "min_dispatch_lot_quantity",
})
_LOGGING_KEYS = frozenset({"level"})
_LOG_LEVELS = frozenset({"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _to_decimal(value: Any) -> Decimal | None:
    if isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def validate_engine_config(data: Any) -> list[str]:
    """Return every problem found in a raw settings document (empty when valid)."""
    if not isinstance(data, dict):
        return [f"settings document must be a mapping, got {type(data).__name__}"]

    errors: list[str] = []
    for key in sorted(set(data) - _TOP_LEVEL_KEYS):
        errors.append(f"unknown key: {key}")
    if not str(data.get("config_id") or "").strip():
        errors.append("config_id is required")
    version = data.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int) or version < 1:
        errors.append(f"version must be a positive integer, got {version!r}")

    reporting = data.get("reporting") or {}
    if not isinstance(reporting, dict):
        errors.append("reporting must be a mapping")
        reporting = {}
    for key in sorted(set(reporting) - _REPORTING_KEYS):
        errors.append(f"unknown key: reporting.{key}")
    if "currency" in reporting and not CurrencyRegistry.is_valid(str(reporting["currency"]).upper()):
        errors.append(f"reporting.currency is not a known ISO 4217 code: {reporting['currency']!r}")
    if "quantity_unit" in reporting and not str(reporting["quantity_unit"]).strip():
        errors.append("reporting.quantity_unit cannot be empty")
    places = reporting.get("quantity_decimal_places", 3)
    if isinstance(places, bool) or not isinstance(places, int) or places < 0:
        errors.append(f"reporting.quantity_decimal_places must be a non-negative integer, got {places!r}")
    if "unknown_name_placeholder" in reporting and not str(reporting["unknown_name_placeholder"]).strip():
        errors.append("reporting.unknown_name_placeholder cannot be empty")
    if "min_dispatch_lot_quantity" in reporting:
        lot = _to_decimal(reporting["min_dispatch_lot_quantity"])
        if lot is None or lot < 0:
            errors.append(
                "reporting.min_dispatch_lot_quantity must be a non-negative number, "
                f"got {reporting['min_dispatch_lot_quantity']!r}"
            )

    logging_section = data.get("logging") or {}
    if not isinstance(logging_section, dict):
        errors.append("logging must be a mapping")
        logging_section = {}
    for key in sorted(set(logging_section) - _LOGGING_KEYS):
        errors.append(f"unknown key: logging.{key}")
    level = str(logging_section.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        errors.append(f"logging.level is not a logging level: {logging_section.get('level')!r}")

    return errors


def parse_reporting_settings(data: dict[str, Any]) -> ReportingSettings:
    """Parse ReportingSettings from an already validated mapping."""
    defaults = ReportingSettings()
    return ReportingSettings(
        currency=str(data.get("currency", defaults.currency)).upper().strip(),
        quantity_unit=str(data.get("quantity_unit", defaults.quantity_unit)).strip(),
        quantity_decimal_places=data.get(
            "quantity_decimal_places", defaults.quantity_decimal_places
        ),
        unknown_name_placeholder=str(
            data.get("unknown_name_placeholder", defaults.unknown_name_placeholder)
        ),
        min_dispatch_lot_quantity=Decimal(
            str(data.get("min_dispatch_lot_quantity", defaults.min_dispatch_lot_quantity))
        ),
    )


def parse_engine_config(data: dict[str, Any], source: str | None = None) -> EngineConfigDef:
    """
    Validate and parse a raw settings document.

    Raises:
        ConfigurationError: listing every validation error.
    """
    errors = validate_engine_config(data)
    if errors:
        raise ConfigurationError(errors, source)
    return EngineConfigDef(
        config_id=str(data["config_id"]).strip(),
        version=data.get("version", 1),
        checksum=compute_checksum(data),
        reporting=parse_reporting_settings(data.get("reporting") or {}),
        logging=LoggingSettings(level=str((data.get("logging") or {}).get("level", "INFO")).upper()),
        description=str(data.get("description", "")),
        source=source,
    )


def load_engine_config(path: Path) -> EngineConfigDef:
    """Load and parse the settings file at ``path``."""
    return parse_engine_config(load_yaml_file(path), source=str(path))

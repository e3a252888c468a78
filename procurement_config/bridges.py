"""
Config -> Kernel Bridges.

Functions that convert parsed settings into kernel inputs. These live in
procurement_config (the producer) because the kernel must NEVER import
procurement_config.

Usage:
    from procurement_config.bridges import build_reporting_policy

    config = load_engine_config(path)
    policy = build_reporting_policy(config)
"""

from __future__ import annotations

import logging

from procurement_config.schema import EngineConfigDef
from procurement_kernel.domain.policy import ReportingPolicy
from procurement_kernel.domain.values import Currency
from procurement_kernel.exceptions import ConfigurationError


def build_reporting_policy(config: EngineConfigDef) -> ReportingPolicy:
    """
    Build the kernel ReportingPolicy from parsed settings.

    Raises:
        ConfigurationError: if the kernel rejects a value the loader let through.
    """
    settings = config.reporting
    try:
        return ReportingPolicy(
            currency=Currency(settings.currency),
            quantity_unit=settings.quantity_unit,
            quantity_decimal_places=settings.quantity_decimal_places,
            unknown_name_placeholder=settings.unknown_name_placeholder,
            min_dispatch_lot_quantity=settings.min_dispatch_lot_quantity,
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError([str(e)], config.source) from e


def log_level_for(config: EngineConfigDef) -> int:
    """Numeric logging level for ``configure_logging``."""
    return logging.getLevelName(config.logging.level)

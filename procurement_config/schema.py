"""
Configuration Schema (``procurement_config.schema``).

Frozen dataclasses describing the engine settings file. Parsing lives in
``procurement_config.loader``; turning settings into kernel inputs lives
in ``procurement_config.bridges``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class ReportingSettings:
    """Reporting currency, quantity unit, and display fallbacks."""

    currency: str = "INR"
    quantity_unit: str = "ton"
    quantity_decimal_places: int = 3
    unknown_name_placeholder: str = "Unknown"
    min_dispatch_lot_quantity: Decimal = Decimal("20")


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class EngineConfigDef:
    """
    One engine settings document.

    ``checksum`` is the SHA-256 of the raw document's canonical JSON form,
    so two loads of the same file always agree.
    """

    config_id: str
    version: int
    checksum: str
    reporting: ReportingSettings = field(default_factory=ReportingSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    description: str = ""
    source: str | None = None

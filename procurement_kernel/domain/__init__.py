"""
Pure domain layer.

This module contains the value types and records the engines consume,
with NO dependencies on:
- Database
- Time/clock
- I/O

All domain objects are immutable and deterministic.
"""

from procurement_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from procurement_kernel.domain.policy import DEFAULT_POLICY, ReportingPolicy
from procurement_kernel.domain.records import (
    Farmer,
    Fpo,
    InventorySnapshot,
    PaymentLine,
    ProcurementLine,
    Product,
    SaleLine,
    SaleStatus,
)
from procurement_kernel.domain.values import (
    TON,
    Currency,
    Money,
    Quantity,
    extended_amount,
)
from procurement_kernel.domain.window import (
    NO_FILTER,
    RecordFilter,
    TimeWindow,
    require_window,
)

__all__ = [
    # Value objects
    "TON",
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "Money",
    "Quantity",
    "extended_amount",
    # Records
    "Farmer",
    "Fpo",
    "InventorySnapshot",
    "PaymentLine",
    "ProcurementLine",
    "Product",
    "SaleLine",
    "SaleStatus",
    # Scoping
    "NO_FILTER",
    "RecordFilter",
    "TimeWindow",
    "require_window",
    # Policy
    "DEFAULT_POLICY",
    "ReportingPolicy",
]

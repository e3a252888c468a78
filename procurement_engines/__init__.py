"""
Module: procurement_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    reconciliation and valuation engines.  This is the canonical import
    surface for report, export and API layers.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import procurement_kernel (and sibling engine modules).
    MUST NOT import procurement_config; callers pass a ReportingPolicy.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      Every aggregation takes an explicit TimeWindow.
    - Decimal-only arithmetic: money and quantities are Decimal; floats
      never participate in totals.
    - Determinism: identical inputs always produce identical outputs, and
      every result's ``fingerprint()`` is byte-stable.

Audit relevance:
    Every engine entry point is traced via ``@traced_engine`` (see
    ``procurement_engines.tracer``), emitting ENGINE_TRACE log records
    with engine name, version, input fingerprint, and duration.

Usage:
    from procurement_engines import build_ledger, build_period_summary
    from procurement_engines import compute_weighted_rate, value_portfolio
"""

from procurement_kernel.logging_config import get_logger

logger = get_logger("engines")

from procurement_engines.analytics import (
    AmountDiscrepancy,
    Dashboard,
    ProductGroup,
    build_dashboard,
    find_amount_discrepancies,
    group_by_product,
)
from procurement_engines.ledger import (
    FarmerLedger,
    LedgerSummary,
    PaymentAssessment,
    assess_payment,
    build_ledger,
)
from procurement_engines.period import (
    FpoPeriodSummary,
    PeriodSummary,
    PeriodTotals,
    ProductPeriodRow,
    build_period_summary,
    combine_period_summaries,
)
from procurement_engines.snapshots import latest_snapshots
from procurement_engines.stock import (
    NetworkInventory,
    NetworkStockLine,
    ReconstructedStock,
    StockReconstruction,
    aggregate_network_inventory,
    reconstruct_stock,
)
from procurement_engines.tracer import compute_input_fingerprint, traced_engine
from procurement_engines.valuation import (
    InventoryValuation,
    PortfolioValuation,
    value_fpo_inventory,
    value_inventory,
    value_portfolio,
)
from procurement_engines.weighted_rate import WeightedRate, compute_weighted_rate

__all__ = [
    # Weighted rate
    "WeightedRate",
    "compute_weighted_rate",
    # Valuation
    "InventoryValuation",
    "PortfolioValuation",
    "value_inventory",
    "value_portfolio",
    "value_fpo_inventory",
    # Farmer ledger
    "FarmerLedger",
    "LedgerSummary",
    "PaymentAssessment",
    "build_ledger",
    "assess_payment",
    # Period aggregation
    "FpoPeriodSummary",
    "PeriodSummary",
    "PeriodTotals",
    "ProductPeriodRow",
    "build_period_summary",
    "combine_period_summaries",
    # Stock
    "NetworkInventory",
    "NetworkStockLine",
    "ReconstructedStock",
    "StockReconstruction",
    "aggregate_network_inventory",
    "reconstruct_stock",
    "latest_snapshots",
    # Analytics
    "AmountDiscrepancy",
    "Dashboard",
    "ProductGroup",
    "build_dashboard",
    "find_amount_discrepancies",
    "group_by_product",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]

logger.debug("procurement_engines_loaded", extra={"export_count": len(__all__)})

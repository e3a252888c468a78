"""
Module: procurement_engines.period
Responsibility:
    Cross-entity period aggregation: for a collection of FPOs, window the
    procurement and sales lines, derive per-FPO totals (quantity, amount,
    count), a product-wise breakdown with weighted rates and stated
    inventory, ``total_business = procurement_amount + sales_amount``, and
    an overall summary across the FPOs.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Feeds the monitoring screens and the monthly FPO report export.

Invariants enforced:
    - Per-product rates are recomputed from the windowed lines for that
      product (via ``weighted_rate``); no externally supplied rate or
      amount is copied into a summary.
    - Product rows are sparse: a product appears under an FPO only when it
      has procurement or sales in the window. Every requested FPO appears,
      with zero totals when it had no activity.
    - Lines for FPOs outside the requested collection are ignored, so the
      summary of a union of disjoint FPO sets equals the field-wise merge
      of the separate summaries (``combine_period_summaries``).
    - The overall summary is a pure reduction of the per-FPO totals; rate
      merges use the exact extended values, so it is associative and
      order-independent.
    - Inventory is the latest stated snapshot per FPO/product; it is never
      reconstructed from procurement minus sales here.
    - Filters narrow the FPO set, the lines, and the window; they never
      change the arithmetic.

Failure modes:
    - InvalidWindowError for a missing window.
    - UnsupportedFilterError for ``farmer_id`` (sales carry no farmer).
    - AmbiguousSnapshotError for tied latest snapshots.
    - CurrencyMismatchError for lines outside the reporting currency.
    - OverlappingSummaryError / InvalidWindowError when combining
      summaries that share FPOs or cover different windows.

Usage:
    from procurement_engines.period import build_period_summary

    summary = build_period_summary(
        fpos=fpos, procurements=lines, sales=sales, inventory=stock,
        window=TimeWindow.for_month(2025, 3),
    )
    summary.fpo("FPO-A").totals.total_business
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from functools import reduce
from typing import Any

from procurement_kernel.domain.policy import DEFAULT_POLICY, ReportingPolicy
from procurement_kernel.domain.records import (
    Fpo,
    InventorySnapshot,
    ProcurementLine,
    Product,
    SaleLine,
)
from procurement_kernel.domain.values import Currency, Money, Quantity
from procurement_kernel.domain.window import NO_FILTER, RecordFilter, TimeWindow, require_window
from procurement_kernel.exceptions import (
    InvalidWindowError,
    OverlappingSummaryError,
    UnsupportedFilterError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.utils.hashing import hash_payload
from procurement_engines import payload
from procurement_engines.snapshots import latest_snapshots
from procurement_engines.tracer import traced_engine
from procurement_engines.weighted_rate import WeightedRate, weighted_rate_of

logger = get_logger("engines.period")

_ENGINE = "period_summary"


def _add_inventory(a: Quantity | None, b: Quantity | None) -> Quantity | None:
    if a is None:
        return b
    if b is None:
        return a
    return a + b


@dataclass(frozen=True, slots=True)
class ProductPeriodRow:
    """
    Product-wise figures for one FPO (or the whole collection) in a window.

    ``procurement_rate`` / ``sales_rate`` are undefined (N/A) when the
    product had no lines of that kind. ``inventory`` is None when no
    snapshot exists.
    """

    product_id: str
    product_name: str
    procurement_quantity: Quantity
    procurement_amount: Money
    procurement_count: int
    procurement_rate: WeightedRate
    sales_quantity: Quantity
    sales_amount: Money
    sales_count: int
    sales_rate: WeightedRate
    inventory: Quantity | None

    def merge(self, other: ProductPeriodRow) -> ProductPeriodRow:
        if other.product_id != self.product_id:
            raise ValueError(f"Cannot merge rows for {self.product_id} and {other.product_id}")
        return ProductPeriodRow(
            product_id=self.product_id,
            product_name=self.product_name,
            procurement_quantity=self.procurement_quantity + other.procurement_quantity,
            procurement_amount=self.procurement_amount + other.procurement_amount,
            procurement_count=self.procurement_count + other.procurement_count,
            procurement_rate=self.procurement_rate.merge(other.procurement_rate),
            sales_quantity=self.sales_quantity + other.sales_quantity,
            sales_amount=self.sales_amount + other.sales_amount,
            sales_count=self.sales_count + other.sales_count,
            sales_rate=self.sales_rate.merge(other.sales_rate),
            inventory=_add_inventory(self.inventory, other.inventory),
        )

    def to_payload(self, places: int = payload.QUANTITY_PLACES) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "procurement_quantity": payload.quantity(self.procurement_quantity, places),
            "procurement_amount": payload.money(self.procurement_amount),
            "procurement_count": self.procurement_count,
            "procurement_rate": payload.money(self.procurement_rate.rate_if_defined),
            "sales_quantity": payload.quantity(self.sales_quantity, places),
            "sales_amount": payload.money(self.sales_amount),
            "sales_count": self.sales_count,
            "sales_rate": payload.money(self.sales_rate.rate_if_defined),
            "inventory": payload.quantity(self.inventory, places),
        }


@dataclass(frozen=True, slots=True)
class PeriodTotals:
    """Summed figures plus the product-wise breakdown, sorted by product name."""

    procurement_quantity: Quantity
    procurement_amount: Money
    procurement_count: int
    sales_quantity: Quantity
    sales_amount: Money
    sales_count: int
    inventory_quantity: Quantity
    products: tuple[ProductPeriodRow, ...]

    @classmethod
    def empty(cls, policy: ReportingPolicy = DEFAULT_POLICY) -> PeriodTotals:
        return cls(
            procurement_quantity=policy.zero_quantity(),
            procurement_amount=policy.zero_money(),
            procurement_count=0,
            sales_quantity=policy.zero_quantity(),
            sales_amount=policy.zero_money(),
            sales_count=0,
            inventory_quantity=policy.zero_quantity(),
            products=(),
        )

    @classmethod
    def from_rows(
        cls, rows: Iterable[ProductPeriodRow], policy: ReportingPolicy = DEFAULT_POLICY
    ) -> PeriodTotals:
        rows = _sorted_rows(rows)
        return cls(
            procurement_quantity=Quantity.total(
                (r.procurement_quantity for r in rows), policy.quantity_unit
            ),
            procurement_amount=Money.total((r.procurement_amount for r in rows), policy.currency),
            procurement_count=sum(r.procurement_count for r in rows),
            sales_quantity=Quantity.total((r.sales_quantity for r in rows), policy.quantity_unit),
            sales_amount=Money.total((r.sales_amount for r in rows), policy.currency),
            sales_count=sum(r.sales_count for r in rows),
            inventory_quantity=Quantity.total(
                (r.inventory for r in rows if r.inventory is not None), policy.quantity_unit
            ),
            products=rows,
        )

    @property
    def total_business(self) -> Money:
        return self.procurement_amount + self.sales_amount

    def product(self, product_id: str) -> ProductPeriodRow | None:
        for row in self.products:
            if row.product_id == product_id:
                return row
        return None

    def merge(self, other: PeriodTotals) -> PeriodTotals:
        """Field-wise sum; product rows with the same id are merged."""
        by_id: dict[str, ProductPeriodRow] = {row.product_id: row for row in self.products}
        for row in other.products:
            existing = by_id.get(row.product_id)
            by_id[row.product_id] = row if existing is None else existing.merge(row)
        return PeriodTotals(
            procurement_quantity=self.procurement_quantity + other.procurement_quantity,
            procurement_amount=self.procurement_amount + other.procurement_amount,
            procurement_count=self.procurement_count + other.procurement_count,
            sales_quantity=self.sales_quantity + other.sales_quantity,
            sales_amount=self.sales_amount + other.sales_amount,
            sales_count=self.sales_count + other.sales_count,
            inventory_quantity=self.inventory_quantity + other.inventory_quantity,
            products=_sorted_rows(by_id.values()),
        )

    def to_payload(self, places: int = payload.QUANTITY_PLACES) -> dict[str, Any]:
        return {
            "procurement_quantity": payload.quantity(self.procurement_quantity, places),
            "procurement_amount": payload.money(self.procurement_amount),
            "procurement_count": self.procurement_count,
            "sales_quantity": payload.quantity(self.sales_quantity, places),
            "sales_amount": payload.money(self.sales_amount),
            "sales_count": self.sales_count,
            "inventory_quantity": payload.quantity(self.inventory_quantity, places),
            "total_business": payload.money(self.total_business),
            "products": [row.to_payload(places) for row in self.products],
        }


@dataclass(frozen=True, slots=True)
class FpoPeriodSummary:
    fpo_id: str
    fpo_name: str
    totals: PeriodTotals

    @property
    def total_business(self) -> Money:
        return self.totals.total_business

    def to_payload(self, places: int = payload.QUANTITY_PLACES) -> dict[str, Any]:
        return {"fpo_id": self.fpo_id, "fpo_name": self.fpo_name, **self.totals.to_payload(places)}


@dataclass(frozen=True, slots=True)
class PeriodSummary:
    """
    Per-FPO summaries (sorted by FPO name, then id) and their overall reduction.

    ``quantity_places`` is the policy's quantity rounding for the payload.
    """

    window: TimeWindow
    currency: Currency
    per_fpo: tuple[FpoPeriodSummary, ...]
    overall: PeriodTotals
    quantity_places: int = payload.QUANTITY_PLACES

    def fpo(self, fpo_id: str) -> FpoPeriodSummary | None:
        for summary in self.per_fpo:
            if summary.fpo_id == fpo_id:
                return summary
        return None

    @property
    def fpo_ids(self) -> tuple[str, ...]:
        return tuple(summary.fpo_id for summary in self.per_fpo)

    def to_payload(self) -> dict[str, Any]:
        return {
            "window": payload.window(self.window),
            "currency": self.currency.code,
            "per_fpo": [summary.to_payload(self.quantity_places) for summary in self.per_fpo],
            "overall": self.overall.to_payload(self.quantity_places),
        }

    def fingerprint(self) -> str:
        return hash_payload(self.to_payload())


def _sorted_rows(rows: Iterable[ProductPeriodRow]) -> tuple[ProductPeriodRow, ...]:
    return tuple(sorted(rows, key=lambda row: (row.product_name, row.product_id)))


def _reduce(per_fpo: Iterable[FpoPeriodSummary], policy: ReportingPolicy) -> PeriodTotals:
    return reduce(lambda acc, s: acc.merge(s.totals), per_fpo, PeriodTotals.empty(policy))


def _row(
    product_id: str,
    product_name: str,
    bought: list[ProcurementLine],
    sold: list[SaleLine],
    inventory: InventorySnapshot | None,
    policy: ReportingPolicy,
) -> ProductPeriodRow:
    procurement_rate = weighted_rate_of(bought, policy)
    sales_rate = weighted_rate_of(sold, policy)
    return ProductPeriodRow(
        product_id=product_id,
        product_name=product_name,
        procurement_quantity=procurement_rate.total_quantity,
        procurement_amount=Money.total((line.amount for line in bought), policy.currency),
        procurement_count=len(bought),
        procurement_rate=procurement_rate,
        sales_quantity=sales_rate.total_quantity,
        sales_amount=Money.total((line.amount for line in sold), policy.currency),
        sales_count=len(sold),
        sales_rate=sales_rate,
        inventory=inventory.quantity if inventory is not None else None,
    )


@traced_engine(
    _ENGINE, "1.0",
    fingerprint_fields=("fpos", "procurements", "sales", "inventory", "window", "filters"),
)
def build_period_summary(
    fpos: Iterable[Fpo],
    procurements: Iterable[ProcurementLine],
    sales: Iterable[SaleLine],
    inventory: Iterable[InventorySnapshot],
    window: TimeWindow,
    filters: RecordFilter | None = None,
    products: Iterable[Product] = (),
    policy: ReportingPolicy = DEFAULT_POLICY,
) -> PeriodSummary:
    """
    Aggregate procurement, sales and stated stock per FPO for ``window``.

    Args:
        fpos: The FPO collection to summarize; duplicates by id are ignored.
        procurements: Procurement lines (any FPO, any date).
        sales: Sale lines (any FPO, any date, any status).
        inventory: Stated stock snapshots; the latest per FPO/product is used.
        window: Inclusive reporting window.
        filters: ``fpo_id``, ``product_id``, ``sale_status`` and
            ``date_from``/``date_to`` are honored.
        products: Product master list, used only for display names.
        policy: Reporting currency, unit and name placeholder.
    """
    window = require_window(window)
    filters = filters or NO_FILTER
    if filters.farmer_id is not None:
        raise UnsupportedFilterError(_ENGINE, "farmer_id", "sale lines carry no farmer")

    selected: dict[str, Fpo] = {}
    for fpo in fpos:
        if filters.fpo_id is not None and fpo.id != filters.fpo_id:
            continue
        selected.setdefault(fpo.id, fpo)

    def _in_scope(fpo_id: str, product_id: str) -> bool:
        if fpo_id not in selected:
            return False
        return filters.product_id is None or product_id == filters.product_id

    effective = filters.narrow_window(window)

    bought: dict[tuple[str, str], list[ProcurementLine]] = defaultdict(list)
    sold: dict[tuple[str, str], list[SaleLine]] = defaultdict(list)
    if effective is not None:
        for line in procurements:
            if effective.contains(line.date) and _in_scope(line.fpo_id, line.product_id):
                bought[(line.fpo_id, line.product_id)].append(line)
        for line in sales:
            if not (effective.contains(line.date) and _in_scope(line.fpo_id, line.product_id)):
                continue
            if filters.sale_status is not None and line.status != filters.sale_status:
                continue
            sold[(line.fpo_id, line.product_id)].append(line)

    stock = latest_snapshots(
        s for s in inventory if _in_scope(s.fpo_id, s.product_id)
    )
    names = {product.id: product.name for product in products}

    touched: dict[str, set[str]] = defaultdict(set)
    for fpo_id, product_id in list(bought) + list(sold):
        touched[fpo_id].add(product_id)

    per_fpo: list[FpoPeriodSummary] = []
    for fpo in selected.values():
        rows = [
            _row(
                product_id,
                names.get(product_id) or policy.unknown_name_placeholder,
                bought.get((fpo.id, product_id), []),
                sold.get((fpo.id, product_id), []),
                stock.get((fpo.id, product_id)),
                policy,
            )
            for product_id in touched.get(fpo.id, ())
        ]
        per_fpo.append(FpoPeriodSummary(
            fpo_id=fpo.id,
            fpo_name=fpo.name,
            totals=PeriodTotals.from_rows(rows, policy),
        ))
    per_fpo.sort(key=lambda s: (s.fpo_name, s.fpo_id))

    summary = PeriodSummary(
        window=window,
        currency=policy.currency,
        per_fpo=tuple(per_fpo),
        overall=_reduce(per_fpo, policy),
        quantity_places=policy.quantity_decimal_places,
    )
    logger.info("period_summary_built", extra={
        "window": window.label(),
        "fpo_count": len(summary.per_fpo),
        "product_count": len(summary.overall.products),
        "procurement_amount": str(summary.overall.procurement_amount.amount),
        "sales_amount": str(summary.overall.sales_amount.amount),
        "total_business": str(summary.overall.total_business.amount),
    })
    return summary


def combine_period_summaries(*summaries: PeriodSummary) -> PeriodSummary:
    """
    Merge summaries built over disjoint FPO sets for the same window.

    The result equals a single ``build_period_summary`` call over the union
    of the FPO sets with the same records.

    Raises:
        ValueError: no summaries given.
        InvalidWindowError: summaries cover different windows.
        OverlappingSummaryError: an FPO appears in more than one summary.
    """
    if not summaries:
        raise ValueError("combine_period_summaries requires at least one summary")
    first = summaries[0]
    for other in summaries[1:]:
        if other.window != first.window:
            raise InvalidWindowError(
                other.window.start, other.window.end,
                f"cannot combine with summary for {first.window.label()}",
            )
        if other.currency != first.currency:
            raise ValueError(
                f"Cannot combine summaries in {first.currency} and {other.currency}"
            )

    seen: set[str] = set()
    shared: set[str] = set()
    for summary in summaries:
        for fpo_id in summary.fpo_ids:
            (shared if fpo_id in seen else seen).add(fpo_id)
    if shared:
        raise OverlappingSummaryError(sorted(shared))

    per_fpo = sorted(
        (s for summary in summaries for s in summary.per_fpo),
        key=lambda s: (s.fpo_name, s.fpo_id),
    )
    overall = reduce(lambda acc, summary: acc.merge(summary.overall), summaries[1:], first.overall)
    logger.debug("period_summaries_combined", extra={
        "summary_count": len(summaries),
        "fpo_count": len(per_fpo),
    })
    return PeriodSummary(
        window=first.window,
        currency=first.currency,
        per_fpo=tuple(per_fpo),
        overall=overall,
        quantity_places=first.quantity_places,
    )

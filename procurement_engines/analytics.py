"""
Module: procurement_engines.analytics
Responsibility:
    Dashboard figures for the monitoring screens: headline totals, record
    counts and sale-status counts (``build_dashboard``), per-product
    grouping with weighted rates (``group_by_product``), and a check of
    stored line amounts against the recomputed ones
    (``find_amount_discrepancies``).

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Amounts are recomputed from quantity x rate; stored amounts only
      appear in the discrepancy report, never in totals.
    - ``window=None`` means all records; there is no implicit "current
      month".
    - Inventory totals use the latest stated snapshot per FPO/product.

Failure modes:
    - UnsupportedFilterError for ``product_id`` and ``farmer_id`` on the
      dashboard (payments have no product; sales have no farmer).
    - CurrencyMismatchError for lines outside the reporting currency.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Union

from procurement_kernel.domain.policy import DEFAULT_POLICY, ReportingPolicy
from procurement_kernel.domain.records import (
    InventorySnapshot,
    PaymentLine,
    ProcurementLine,
    Product,
    SaleLine,
    SaleStatus,
)
from procurement_kernel.domain.values import Money, Quantity
from procurement_kernel.domain.window import NO_FILTER, RecordFilter, TimeWindow
from procurement_kernel.exceptions import UnsupportedFilterError
from procurement_kernel.logging_config import get_logger
from procurement_kernel.utils.hashing import hash_payload
from procurement_engines import payload
from procurement_engines.snapshots import latest_snapshots
from procurement_engines.tracer import traced_engine
from procurement_engines.weighted_rate import WeightedRate, weighted_rate_of

logger = get_logger("engines.analytics")

_DASHBOARD = "dashboard"

PricedRecord = Union[ProcurementLine, SaleLine]


@dataclass(frozen=True, slots=True)
class Dashboard:
    window: TimeWindow | None
    total_procurement_amount: Money
    total_procurement_quantity: Quantity
    total_sales_amount: Money
    total_sales_quantity: Quantity
    total_payments: Money
    total_inventory_quantity: Quantity
    procurement_count: int
    sales_count: int
    payment_count: int
    farmer_count: int
    pending_sales: int
    completed_sales: int
    rejected_sales: int
    quantity_places: int = payload.QUANTITY_PLACES

    @property
    def total_business(self) -> Money:
        return self.total_procurement_amount + self.total_sales_amount

    @property
    def outstanding_to_farmers(self) -> Money:
        return self.total_procurement_amount - self.total_payments

    def to_payload(self) -> dict[str, Any]:
        places = self.quantity_places
        return {
            "window": payload.window(self.window),
            "total_procurement_amount": payload.money(self.total_procurement_amount),
            "total_procurement_quantity": payload.quantity(self.total_procurement_quantity, places),
            "total_sales_amount": payload.money(self.total_sales_amount),
            "total_sales_quantity": payload.quantity(self.total_sales_quantity, places),
            "total_payments": payload.money(self.total_payments),
            "total_inventory_quantity": payload.quantity(self.total_inventory_quantity, places),
            "total_business": payload.money(self.total_business),
            "outstanding_to_farmers": payload.money(self.outstanding_to_farmers),
            "procurement_count": self.procurement_count,
            "sales_count": self.sales_count,
            "payment_count": self.payment_count,
            "farmer_count": self.farmer_count,
            "pending_sales": self.pending_sales,
            "completed_sales": self.completed_sales,
            "rejected_sales": self.rejected_sales,
        }

    def fingerprint(self) -> str:
        return hash_payload(self.to_payload())


@dataclass(frozen=True, slots=True)
class ProductGroup:
    product_id: str
    product_name: str
    total_quantity: Quantity
    total_amount: Money
    count: int
    weighted_rate: WeightedRate

    def to_payload(self, places: int = payload.QUANTITY_PLACES) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "total_quantity": payload.quantity(self.total_quantity, places),
            "total_amount": payload.money(self.total_amount),
            "count": self.count,
            "weighted_rate": payload.money(self.weighted_rate.rate_if_defined),
        }


@dataclass(frozen=True, slots=True)
class AmountDiscrepancy:
    """A stored amount that disagrees with quantity x rate."""

    record_type: str
    record_id: str
    stated_amount: Money
    computed_amount: Money

    @property
    def difference(self) -> Money | None:
        """Stated minus computed; None when the stated figure is in another currency."""
        if self.stated_amount.currency != self.computed_amount.currency:
            return None
        return self.stated_amount - self.computed_amount


def _in_window(line: Any, window: TimeWindow | None) -> bool:
    return window is None or window.contains(line.date)


@traced_engine(
    _DASHBOARD, "1.0",
    fingerprint_fields=("procurements", "sales", "payments", "inventory", "window", "filters"),
)
def build_dashboard(
    procurements: Iterable[ProcurementLine],
    sales: Iterable[SaleLine],
    payments: Iterable[PaymentLine],
    inventory: Iterable[InventorySnapshot],
    window: TimeWindow | None = None,
    filters: RecordFilter | None = None,
    policy: ReportingPolicy = DEFAULT_POLICY,
) -> Dashboard:
    """
    Headline totals and counts.

    Args:
        window: Restrict transactional records to this window; None for all.
        filters: ``fpo_id``, ``sale_status`` and ``date_from``/``date_to``
            are honored. Date filters need a window to narrow.
    """
    filters = filters or NO_FILTER
    if filters.product_id is not None:
        raise UnsupportedFilterError(_DASHBOARD, "product_id", "payments carry no product")
    if filters.farmer_id is not None:
        raise UnsupportedFilterError(_DASHBOARD, "farmer_id", "sale lines carry no farmer")
    if window is None and (filters.date_from is not None or filters.date_to is not None):
        raise UnsupportedFilterError(
            _DASHBOARD, "date_from/date_to", "date filters narrow a window; pass one"
        )

    effective: TimeWindow | None = window
    empty_range = False
    if window is not None:
        effective = filters.narrow_window(window)
        empty_range = effective is None

    def _keep(line: Any) -> bool:
        if empty_range or not _in_window(line, effective):
            return False
        return filters.fpo_id is None or line.fpo_id == filters.fpo_id

    bought = [line for line in procurements if _keep(line)]
    sold = [
        line for line in sales
        if _keep(line) and (filters.sale_status is None or line.status == filters.sale_status)
    ]
    paid = [line for line in payments if _keep(line)]
    for line in bought + sold:
        policy.check_currency(line.rate, line.id)
    for line in paid:
        policy.check_currency(line.amount, line.id)

    stock = latest_snapshots(
        s for s in inventory if filters.fpo_id is None or s.fpo_id == filters.fpo_id
    )
    status_counts: dict[SaleStatus, int] = defaultdict(int)
    for line in sold:
        status_counts[line.status] += 1

    dashboard = Dashboard(
        window=window,
        total_procurement_amount=Money.total((line.amount for line in bought), policy.currency),
        total_procurement_quantity=Quantity.total(
            (line.quantity for line in bought), policy.quantity_unit
        ),
        total_sales_amount=Money.total((line.amount for line in sold), policy.currency),
        total_sales_quantity=Quantity.total((line.quantity for line in sold), policy.quantity_unit),
        total_payments=Money.total((line.amount for line in paid), policy.currency),
        total_inventory_quantity=Quantity.total(
            (s.quantity for s in stock.values()), policy.quantity_unit
        ),
        procurement_count=len(bought),
        sales_count=len(sold),
        payment_count=len(paid),
        farmer_count=len({line.farmer_id for line in bought} | {line.farmer_id for line in paid}),
        pending_sales=status_counts[SaleStatus.PENDING],
        completed_sales=status_counts[SaleStatus.COMPLETED],
        rejected_sales=status_counts[SaleStatus.REJECTED],
        quantity_places=policy.quantity_decimal_places,
    )
    logger.info("dashboard_built", extra={
        "window": window.label() if window is not None else None,
        "procurement_count": dashboard.procurement_count,
        "sales_count": dashboard.sales_count,
        "payment_count": dashboard.payment_count,
        "total_business": str(dashboard.total_business.amount),
    })
    return dashboard


@traced_engine("product_grouping", "1.0", fingerprint_fields=("lines",))
def group_by_product(
    lines: Iterable[PricedRecord],
    products: Iterable[Product] = (),
    policy: ReportingPolicy = DEFAULT_POLICY,
) -> tuple[ProductGroup, ...]:
    """
    Per-product quantity, amount, count and weighted rate, sorted by name.

    ``lines`` should be of one kind (procurement or sales); the caller
    windows them beforehand.
    """
    grouped: dict[str, list[PricedRecord]] = defaultdict(list)
    for line in lines:
        grouped[line.product_id].append(line)
    names = {product.id: product.name for product in products}

    groups = []
    for product_id, members in grouped.items():
        rate = weighted_rate_of(members, policy)
        groups.append(ProductGroup(
            product_id=product_id,
            product_name=names.get(product_id) or policy.unknown_name_placeholder,
            total_quantity=rate.total_quantity,
            total_amount=Money.total((line.amount for line in members), policy.currency),
            count=len(members),
            weighted_rate=rate,
        ))
    groups.sort(key=lambda group: (group.product_name, group.product_id))
    return tuple(groups)


@traced_engine("amount_discrepancies", "1.0", fingerprint_fields=("lines", "tolerance"))
def find_amount_discrepancies(
    lines: Iterable[PricedRecord],
    tolerance: Decimal = Decimal("0"),
) -> tuple[AmountDiscrepancy, ...]:
    """
    Lines whose ``stated_amount`` differs from quantity x rate by more than
    ``tolerance``. Lines without a stated amount are skipped.
    """
    found: list[AmountDiscrepancy] = []
    for line in lines:
        stated = line.stated_amount
        if stated is None:
            continue
        computed = line.amount
        if stated.currency != computed.currency or abs(stated.amount - computed.amount) > tolerance:
            found.append(AmountDiscrepancy(
                record_type=type(line).__name__,
                record_id=line.id,
                stated_amount=stated,
                computed_amount=computed,
            ))
    if found:
        logger.warning("amount_discrepancies_found", extra={
            "count": len(found),
            "record_ids": [d.record_id for d in found],
        })
    return tuple(found)

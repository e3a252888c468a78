"""
Module: procurement_engines.stock
Responsibility:
    Two stock views used by the aggregator screens:

    * ``reconstruct_stock`` -- the caller-side approximation
      ``base + procured - sold`` per FPO/product over a window.
    * ``aggregate_network_inventory`` -- stated stock summed across all
      FPOs per product, with dispatch readiness against the minimum lot.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Separate from ``period``: the period summary only reads stated
    snapshots and never reconstructs stock.

Invariants enforced:
    - Every reconstructed line is flagged ``is_approximate``. It is an
      estimate from transactions, not a stated quantity.
    - Negative reconstructed stock is NEVER clamped to zero. It is kept,
      flagged ``is_negative``, and logged as ``negative_stock_detected``,
      because it points at a data-entry or snapshot error upstream.
    - Only completed sales reduce reconstructed stock unless
      ``include_pending`` is set; rejected sales never do.

Failure modes:
    - InvalidWindowError for a missing window.
    - AmbiguousSnapshotError for tied latest snapshots.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from procurement_kernel.domain.policy import DEFAULT_POLICY, ReportingPolicy
from procurement_kernel.domain.records import (
    InventorySnapshot,
    ProcurementLine,
    Product,
    SaleLine,
    SaleStatus,
)
from procurement_kernel.domain.values import Quantity
from procurement_kernel.domain.window import TimeWindow, require_window
from procurement_kernel.logging_config import get_logger
from procurement_kernel.utils.hashing import hash_payload
from procurement_engines import payload
from procurement_engines.snapshots import latest_snapshots
from procurement_engines.tracer import traced_engine

logger = get_logger("engines.stock")


@dataclass(frozen=True, slots=True)
class ReconstructedStock:
    """Approximate on-hand stock for one FPO/product."""

    fpo_id: str
    product_id: str
    base_quantity: Quantity
    procured_quantity: Quantity
    sold_quantity: Quantity
    quantity: Quantity
    is_approximate: bool = True

    @property
    def is_negative(self) -> bool:
        return self.quantity.is_negative

    def to_payload(self, places: int = payload.QUANTITY_PLACES) -> dict[str, Any]:
        return {
            "fpo_id": self.fpo_id,
            "product_id": self.product_id,
            "base_quantity": payload.quantity(self.base_quantity, places),
            "procured_quantity": payload.quantity(self.procured_quantity, places),
            "sold_quantity": payload.quantity(self.sold_quantity, places),
            "quantity": payload.quantity(self.quantity, places),
            "is_approximate": self.is_approximate,
            "is_negative": self.is_negative,
        }


@dataclass(frozen=True, slots=True)
class StockReconstruction:
    window: TimeWindow
    lines: tuple[ReconstructedStock, ...]
    include_pending: bool
    quantity_places: int = payload.QUANTITY_PLACES

    @property
    def negative_lines(self) -> tuple[ReconstructedStock, ...]:
        return tuple(line for line in self.lines if line.is_negative)

    def line(self, fpo_id: str, product_id: str) -> ReconstructedStock | None:
        for line in self.lines:
            if line.fpo_id == fpo_id and line.product_id == product_id:
                return line
        return None

    def to_payload(self) -> dict[str, Any]:
        return {
            "window": payload.window(self.window),
            "include_pending": self.include_pending,
            "is_approximate": True,
            "lines": [line.to_payload(self.quantity_places) for line in self.lines],
        }

    def fingerprint(self) -> str:
        return hash_payload(self.to_payload())


@dataclass(frozen=True, slots=True)
class NetworkStockLine:
    """Stated stock of one product across the whole FPO network."""

    product_id: str
    product_name: str
    total_quantity: Quantity
    fpo_count: int
    dispatch_ready: bool
    shortfall: Quantity

    def to_payload(self, places: int = payload.QUANTITY_PLACES) -> dict[str, Any]:
        return {
            "product_id": self.product_id,
            "product_name": self.product_name,
            "total_quantity": payload.quantity(self.total_quantity, places),
            "fpo_count": self.fpo_count,
            "dispatch_ready": self.dispatch_ready,
            "shortfall": payload.quantity(self.shortfall, places),
        }


@dataclass(frozen=True, slots=True)
class NetworkInventory:
    lines: tuple[NetworkStockLine, ...]
    min_dispatch_lot: Quantity
    quantity_places: int = payload.QUANTITY_PLACES

    @property
    def ready_product_ids(self) -> tuple[str, ...]:
        return tuple(line.product_id for line in self.lines if line.dispatch_ready)

    @property
    def total_quantity(self) -> Quantity:
        return Quantity.total((line.total_quantity for line in self.lines), self.min_dispatch_lot.unit)

    def to_payload(self) -> dict[str, Any]:
        return {
            "min_dispatch_lot": payload.quantity(self.min_dispatch_lot, self.quantity_places),
            "total_quantity": payload.quantity(self.total_quantity, self.quantity_places),
            "lines": [line.to_payload(self.quantity_places) for line in self.lines],
        }

    def fingerprint(self) -> str:
        return hash_payload(self.to_payload())


@traced_engine(
    "stock_reconstruction", "1.0",
    fingerprint_fields=("base_snapshots", "procurements", "sales", "window", "include_pending"),
)
def reconstruct_stock(
    base_snapshots: Iterable[InventorySnapshot],
    procurements: Iterable[ProcurementLine],
    sales: Iterable[SaleLine],
    window: TimeWindow,
    include_pending: bool = False,
    policy: ReportingPolicy = DEFAULT_POLICY,
) -> StockReconstruction:
    """
    Approximate stock as ``base + procured - sold`` within ``window``.

    The base is the latest stated snapshot per FPO/product (zero when there
    is none). Results are approximations and say so on every line.
    """
    window = require_window(window)
    counted = {SaleStatus.COMPLETED}
    if include_pending:
        counted.add(SaleStatus.PENDING)

    base = latest_snapshots(base_snapshots)
    procured: dict[tuple[str, str], Quantity] = defaultdict(policy.zero_quantity)
    sold: dict[tuple[str, str], Quantity] = defaultdict(policy.zero_quantity)
    for line in procurements:
        if window.contains(line.date):
            key = (line.fpo_id, line.product_id)
            procured[key] = procured[key] + line.quantity
    for line in sales:
        if window.contains(line.date) and line.status in counted:
            key = (line.fpo_id, line.product_id)
            sold[key] = sold[key] + line.quantity

    lines: list[ReconstructedStock] = []
    for key in sorted(set(base) | set(procured) | set(sold)):
        snapshot = base.get(key)
        base_quantity = snapshot.quantity if snapshot is not None else policy.zero_quantity()
        quantity = base_quantity + procured[key] - sold[key]
        line = ReconstructedStock(
            fpo_id=key[0],
            product_id=key[1],
            base_quantity=base_quantity,
            procured_quantity=procured[key],
            sold_quantity=sold[key],
            quantity=quantity,
        )
        if line.is_negative:
            logger.warning("negative_stock_detected", extra={
                "fpo_id": line.fpo_id,
                "product_id": line.product_id,
                "quantity": str(quantity.value),
                "base_quantity": str(base_quantity.value),
                "sold_quantity": str(line.sold_quantity.value),
            })
        lines.append(line)

    result = StockReconstruction(
        window=window,
        lines=tuple(lines),
        include_pending=include_pending,
        quantity_places=policy.quantity_decimal_places,
    )
    logger.info("stock_reconstructed", extra={
        "window": window.label(),
        "line_count": len(result.lines),
        "negative_count": len(result.negative_lines),
        "is_approximate": True,
    })
    return result


@traced_engine("network_inventory", "1.0", fingerprint_fields=("snapshots",))
def aggregate_network_inventory(
    snapshots: Iterable[InventorySnapshot],
    products: Iterable[Product] = (),
    policy: ReportingPolicy = DEFAULT_POLICY,
) -> NetworkInventory:
    """
    Sum the latest stated stock per product across every FPO.

    A product is ``dispatch_ready`` once its network total reaches the
    policy's minimum dispatch lot; ``shortfall`` is what is still missing.
    """
    latest = latest_snapshots(snapshots)
    names = {product.id: product.name for product in products}
    totals: dict[str, Quantity] = defaultdict(policy.zero_quantity)
    holders: dict[str, set[str]] = defaultdict(set)
    for (fpo_id, product_id), snapshot in latest.items():
        totals[product_id] = totals[product_id] + snapshot.quantity
        if snapshot.quantity.is_positive:
            holders[product_id].add(fpo_id)

    lot = policy.min_dispatch_lot
    lines: list[NetworkStockLine] = []
    for product_id, total in totals.items():
        ready = total >= lot
        lines.append(NetworkStockLine(
            product_id=product_id,
            product_name=names.get(product_id) or policy.unknown_name_placeholder,
            total_quantity=total,
            fpo_count=len(holders[product_id]),
            dispatch_ready=ready,
            shortfall=policy.zero_quantity() if ready else lot - total,
        ))
    lines.sort(key=lambda line: (line.product_name, line.product_id))

    result = NetworkInventory(
        lines=tuple(lines),
        min_dispatch_lot=lot,
        quantity_places=policy.quantity_decimal_places,
    )
    logger.info("network_inventory_aggregated", extra={
        "product_count": len(lines),
        "ready_count": len(result.ready_product_ids),
        "min_dispatch_lot": str(lot.value),
    })
    return result

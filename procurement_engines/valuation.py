"""
Module: procurement_engines.valuation
Responsibility:
    Value stated inventory: ``value = quantity x rate`` for one snapshot,
    and a portfolio of snapshots with a total.  The rate is normally the
    product's weighted procurement rate (see ``weighted_rate``).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The valuator only VALUES a given snapshot; it never reconstructs
    stock from procurement and sales deltas (see ``stock`` for the
    explicitly approximate caller-side helper).

Invariants enforced:
    - A product with no procurement history (undefined rate) is valued as
      None ("not applicable"), never as zero, so a zero-cost product
      stays distinguishable from a never-purchased one.
    - ``total_value`` sums only defined values; ``is_complete`` is False
      whenever any line is not applicable.
    - Values are rounded ROUND_HALF_UP to the currency's minor unit from
      the unrounded rate.

Failure modes:
    - AmbiguousSnapshotError when two snapshots tie for latest.
    - CurrencyMismatchError when a supplied rate is in another currency.

Usage:
    from procurement_engines.valuation import value_portfolio

    portfolio = value_portfolio(snapshots=stock, rates_by_product=rates)
    portfolio.total_value, portfolio.unvalued_product_ids
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Union

from procurement_kernel.domain.policy import DEFAULT_POLICY, ReportingPolicy
from procurement_kernel.domain.records import InventorySnapshot, ProcurementLine
from procurement_kernel.domain.values import Money, Quantity
from procurement_kernel.domain.window import TimeWindow
from procurement_kernel.logging_config import get_logger
from procurement_kernel.utils.hashing import hash_payload
from procurement_engines import payload
from procurement_engines.snapshots import latest_snapshots
from procurement_engines.tracer import traced_engine
from procurement_engines.weighted_rate import WeightedRate, weighted_rate_of

logger = get_logger("engines.valuation")

RateInput = Union[WeightedRate, Money, None]


@dataclass(frozen=True, slots=True)
class InventoryValuation:
    """
    One valued inventory line.

    ``rate`` and ``value`` are None together when the rate is not applicable.
    """

    fpo_id: str
    product_id: str
    quantity: Quantity
    rate: Money | None
    value: Money | None

    @property
    def is_applicable(self) -> bool:
        return self.value is not None

    def to_payload(self, places: int = payload.QUANTITY_PLACES) -> dict[str, Any]:
        return {
            "fpo_id": self.fpo_id,
            "product_id": self.product_id,
            "quantity": payload.quantity(self.quantity, places),
            "rate": payload.money(self.rate),
            "value": payload.money(self.value),
        }


@dataclass(frozen=True, slots=True)
class PortfolioValuation:
    """Valued lines in (fpo_id, product_id) order with their total."""

    lines: tuple[InventoryValuation, ...]
    total_value: Money
    unvalued_product_ids: tuple[str, ...]
    quantity_places: int = payload.QUANTITY_PLACES

    @property
    def is_complete(self) -> bool:
        return not self.unvalued_product_ids

    def to_payload(self) -> dict[str, Any]:
        return {
            "currency": self.total_value.currency.code,
            "lines": [line.to_payload(self.quantity_places) for line in self.lines],
            "total_value": payload.money(self.total_value),
            "unvalued_product_ids": list(self.unvalued_product_ids),
            "is_complete": self.is_complete,
        }

    def fingerprint(self) -> str:
        return hash_payload(self.to_payload())


def _resolve_rate(rate: RateInput, policy: ReportingPolicy) -> Money | None:
    if rate is None:
        return None
    if isinstance(rate, WeightedRate):
        resolved = rate.rate_if_defined
    elif isinstance(rate, Money):
        resolved = rate
    else:
        raise TypeError(f"rate must be WeightedRate, Money or None, got {type(rate).__name__}")
    if resolved is None:
        return None
    return policy.check_currency(resolved)


def _value(
    snapshot: InventorySnapshot,
    rate: RateInput,
    policy: ReportingPolicy,
) -> InventoryValuation:
    resolved = _resolve_rate(rate, policy)
    value = None
    if resolved is not None:
        value = (resolved * snapshot.quantity.value).round()
    return InventoryValuation(
        fpo_id=snapshot.fpo_id,
        product_id=snapshot.product_id,
        quantity=snapshot.quantity,
        rate=resolved,
        value=value,
    )


@traced_engine("inventory_valuation", "1.0", fingerprint_fields=("snapshot", "rate"))
def value_inventory(
    snapshot: InventorySnapshot,
    rate: RateInput,
    policy: ReportingPolicy = DEFAULT_POLICY,
) -> InventoryValuation:
    """
    Value one snapshot at ``rate``.

    Args:
        snapshot: Stated on-hand stock.
        rate: A WeightedRate (undefined means not applicable), an explicit
            per-unit Money rate, or None for "no rate".

    Returns:
        InventoryValuation with ``value=None`` when the rate is not applicable.
    """
    return _value(snapshot, rate, policy)


def _portfolio(
    snapshots: Iterable[InventorySnapshot],
    rate_for: Mapping[tuple[str, str], RateInput] | None,
    rates_by_product: Mapping[str, RateInput] | None,
    policy: ReportingPolicy,
) -> PortfolioValuation:
    latest = latest_snapshots(snapshots)
    lines: list[InventoryValuation] = []
    for key in sorted(latest):
        if rate_for is not None:
            rate = rate_for.get(key)
        else:
            rate = (rates_by_product or {}).get(key[1])
        lines.append(_value(latest[key], rate, policy))

    total = Money.total((line.value for line in lines if line.value is not None), policy.currency)
    unvalued = tuple(sorted({line.product_id for line in lines if line.value is None}))
    if unvalued:
        logger.info("inventory_not_fully_valued", extra={
            "unvalued_product_ids": list(unvalued),
            "line_count": len(lines),
        })
    return PortfolioValuation(
        lines=tuple(lines),
        total_value=total,
        unvalued_product_ids=unvalued,
        quantity_places=policy.quantity_decimal_places,
    )


@traced_engine(
    "portfolio_valuation", "1.0", fingerprint_fields=("snapshots", "rates_by_product")
)
def value_portfolio(
    snapshots: Iterable[InventorySnapshot],
    rates_by_product: Mapping[str, RateInput],
    policy: ReportingPolicy = DEFAULT_POLICY,
) -> PortfolioValuation:
    """
    Value the latest snapshot of every (FPO, product) at its product's rate.

    Products missing from ``rates_by_product`` are not applicable, the
    same as an undefined weighted rate.
    """
    result = _portfolio(tuple(snapshots), None, rates_by_product, policy)
    logger.info("portfolio_valued", extra={
        "line_count": len(result.lines),
        "total_value": str(result.total_value.amount),
        "is_complete": result.is_complete,
    })
    return result


@traced_engine(
    "fpo_inventory_valuation", "1.0",
    fingerprint_fields=("snapshots", "procurements", "window"),
)
def value_fpo_inventory(
    snapshots: Iterable[InventorySnapshot],
    procurements: Iterable[ProcurementLine],
    window: TimeWindow | None = None,
    policy: ReportingPolicy = DEFAULT_POLICY,
) -> PortfolioValuation:
    """
    Value each FPO's stock at that FPO's own weighted procurement rate.

    The rate for (FPO, product) comes from that FPO's procurement lines for
    the product, restricted to ``window`` when one is given. A product the
    FPO never procured (in the window) is not applicable.
    """
    grouped: dict[tuple[str, str], list[ProcurementLine]] = defaultdict(list)
    for line in procurements:
        if window is not None and not window.contains(line.date):
            continue
        grouped[(line.fpo_id, line.product_id)].append(line)
    rates = {key: weighted_rate_of(lines, policy) for key, lines in grouped.items()}
    return _portfolio(tuple(snapshots), rates, None, policy)

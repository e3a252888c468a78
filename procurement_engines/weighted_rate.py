"""
Module: procurement_engines.weighted_rate
Responsibility:
    Compute the quantity-weighted average unit rate of a set of priced
    lines: ``rate = sum(quantity_i * rate_i) / sum(quantity_i)``.  This is
    NOT the arithmetic mean of the rates -- two small purchases at a high
    rate must not outweigh one large purchase at a low rate.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed directly by callers and by the valuation, period and
    analytics engines, which need the rate at every granularity.

Invariants enforced:
    - The numerator and denominator are exact Decimal sums, so the rate is
      independent of line order and unchanged when every line is repeated.
    - The numerator uses unrounded ``quantity * rate`` products, never the
      rounded line amounts, and the quotient itself is left unrounded;
      ``display_rate`` rounds to the currency's minor unit for output.
    - Zero total quantity yields ``rate == 0`` with ``is_defined=False``.
      Callers that need "not applicable" read ``rate_if_defined`` (None)
      instead of treating zero as a real rate.

Failure modes:
    - CurrencyMismatchError if a line's rate is not in the policy currency.
    - ValueError if quantity units differ from the policy unit.

Usage:
    from procurement_engines.weighted_rate import compute_weighted_rate

    result = compute_weighted_rate(lines=wheat_lines)
    result.rate_if_defined   # Money or None
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Protocol

from procurement_kernel.domain.policy import DEFAULT_POLICY, ReportingPolicy
from procurement_kernel.domain.values import Currency, Money, Quantity
from procurement_kernel.logging_config import get_logger
from procurement_engines import payload
from procurement_engines.tracer import traced_engine

logger = get_logger("engines.weighted_rate")


class PricedLine(Protocol):
    """Anything carrying a quantity and a per-unit rate (procurement or sale lines)."""

    @property
    def id(self) -> str: ...

    @property
    def quantity(self) -> Quantity: ...

    @property
    def rate(self) -> Money: ...


@dataclass(frozen=True, slots=True)
class WeightedRate:
    """
    Result of a weighted average rate computation.

    Contract:
        ``extended_value`` is the exact sum of ``quantity x rate`` and
        ``total_quantity`` the exact sum of quantities. Two results over
        disjoint line sets merge exactly with ``merge``.
    Guarantees:
        - ``rate`` is zero and ``is_defined`` False when total quantity is zero.
        - ``rate_if_defined`` is None exactly when the rate is undefined.
    """

    rate: Money
    is_defined: bool
    total_quantity: Quantity
    extended_value: Decimal
    line_count: int

    @classmethod
    def from_totals(
        cls,
        extended_value: Decimal,
        total_quantity: Quantity,
        line_count: int,
        currency: Currency,
    ) -> WeightedRate:
        if total_quantity.is_zero:
            return cls(
                rate=Money.zero(currency),
                is_defined=False,
                total_quantity=total_quantity,
                extended_value=extended_value,
                line_count=line_count,
            )
        return cls(
            rate=Money(extended_value / total_quantity.value, currency),
            is_defined=True,
            total_quantity=total_quantity,
            extended_value=extended_value,
            line_count=line_count,
        )

    @classmethod
    def undefined(cls, policy: ReportingPolicy = DEFAULT_POLICY) -> WeightedRate:
        return cls.from_totals(Decimal("0"), policy.zero_quantity(), 0, policy.currency)

    @property
    def rate_if_defined(self) -> Money | None:
        return self.rate if self.is_defined else None

    @property
    def display_rate(self) -> Money | None:
        """Rate rounded to the currency's minor unit, or None when undefined."""
        return self.rate.round() if self.is_defined else None

    def merge(self, other: WeightedRate) -> WeightedRate:
        """Weighted rate over the union of both line sets."""
        return WeightedRate.from_totals(
            self.extended_value + other.extended_value,
            self.total_quantity + other.total_quantity,
            self.line_count + other.line_count,
            self.rate.currency,
        )

    def to_payload(self, places: int = payload.QUANTITY_PLACES) -> dict[str, Any]:
        display = self.display_rate
        return {
            "rate": str(display.amount) if display is not None else None,
            "is_defined": self.is_defined,
            "total_quantity": payload.quantity(self.total_quantity, places),
            "line_count": self.line_count,
        }


def weighted_rate_of(
    lines: Iterable[PricedLine],
    policy: ReportingPolicy = DEFAULT_POLICY,
) -> WeightedRate:
    """
    Untraced computation shared by the other engines.

    Rates are checked against the policy currency; quantities are summed
    in the policy unit.
    """
    extended = Decimal("0")
    total = policy.zero_quantity()
    count = 0
    for line in lines:
        rate = policy.check_currency(line.rate, line.id)
        extended += line.quantity.value * rate.amount
        total = total + line.quantity
        count += 1
    return WeightedRate.from_totals(extended, total, count, policy.currency)


@traced_engine("weighted_rate", "1.0", fingerprint_fields=("lines",))
def compute_weighted_rate(
    lines: Iterable[PricedLine],
    policy: ReportingPolicy = DEFAULT_POLICY,
) -> WeightedRate:
    """
    Quantity-weighted average rate of ``lines``.

    The caller filters ``lines`` to one product (and window) beforehand.

    Args:
        lines: Procurement or sale lines.
        policy: Reporting currency and unit.

    Returns:
        WeightedRate; undefined (zero, flagged) for an empty or zero-quantity set.
    """
    result = weighted_rate_of(tuple(lines), policy)
    if not result.is_defined:
        logger.debug("weighted_rate_undefined", extra={
            "line_count": result.line_count,
        })
    else:
        logger.debug("weighted_rate_computed", extra={
            "line_count": result.line_count,
            "total_quantity": str(result.total_quantity.value),
            "rate": str(result.rate.amount),
        })
    return result

"""
Reporting policy -- the settings an engine call runs under.

The kernel never reads configuration files. ``procurement_config`` turns
the YAML settings into a ``ReportingPolicy`` and callers pass it to the
engines explicitly; ``DEFAULT_POLICY`` matches the shipped defaults.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from procurement_kernel.domain.values import TON, Currency, Money, Quantity
from procurement_kernel.exceptions import CurrencyMismatchError


@dataclass(frozen=True, slots=True)
class ReportingPolicy:
    """
    Reporting currency, quantity unit, and display fallbacks.

    Guarantees:
        - Totals of an empty window are zero in ``currency`` / ``quantity_unit``.
        - ``unknown_name_placeholder`` is a display fallback only; totals
          never depend on whether a name resolved.
    """

    currency: Currency = Currency("INR")
    quantity_unit: str = TON
    quantity_decimal_places: int = 3
    unknown_name_placeholder: str = "Unknown"
    min_dispatch_lot_quantity: Decimal = Decimal("20")

    def __post_init__(self) -> None:
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        if not isinstance(self.min_dispatch_lot_quantity, Decimal):
            object.__setattr__(
                self, "min_dispatch_lot_quantity", Decimal(str(self.min_dispatch_lot_quantity))
            )
        if self.quantity_decimal_places < 0:
            raise ValueError("quantity_decimal_places cannot be negative")

    def zero_money(self) -> Money:
        return Money.zero(self.currency)

    def zero_quantity(self) -> Quantity:
        return Quantity.zero(self.quantity_unit)

    @property
    def min_dispatch_lot(self) -> Quantity:
        return Quantity(self.min_dispatch_lot_quantity, self.quantity_unit)

    def check_currency(self, money: Money, record_id: str | None = None) -> Money:
        """Return ``money`` unchanged, or raise if it is not in the reporting currency."""
        if money.currency != self.currency:
            raise CurrencyMismatchError(self.currency.code, money.currency.code, record_id)
        return money


DEFAULT_POLICY = ReportingPolicy()

"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    Provides the foundational value types for every procurement figure:
    Currency, Money, and Quantity. Produce quantities are tons, prices are
    currency per ton, and both are carried as Decimal so that monthly
    totals never drift the way binary floats do.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module and by all engines.

Invariants enforced:
    - Money pairs a Decimal amount with its Currency; they are never separated.
    - Decimal-only arithmetic: floats are converted through ``str`` at the
      construction boundary and never participate in sums.
    - Same-currency / same-unit arithmetic: mixing raises ValueError.
    - Extended amounts (quantity x rate) are rounded ROUND_HALF_UP to the
      currency's minor unit, never truncated.

Failure modes:
    - ValueError on construction with unparseable amounts or unknown currencies.
    - TypeError when Money/Quantity operations mix incompatible types.
    - ValueError when arithmetic mixes different currencies or units.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from procurement_kernel.domain.currency import CurrencyRegistry

TON = "ton"


@dataclass(frozen=True, slots=True)
class Currency:
    """
    ISO 4217 currency code value object.

    Contract:
        Wraps a three-letter code, validated and normalized (uppercased)
        on construction against CurrencyRegistry.

    Guarantees:
        - Immutable and hashable.
        - ``code`` is uppercase, stripped, and registered.
    """

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if isinstance(self.code, str) else ""
        if not CurrencyRegistry.is_valid(normalized):
            raise ValueError(f"Invalid ISO 4217 currency code: {self.code}")
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def minor_unit(self) -> Decimal:
        """Smallest representable amount in this currency."""
        info = CurrencyRegistry.get_info(self.code)
        return info.minor_unit if info else Decimal("0.01")

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Contract:
        Pairs a Decimal amount with its Currency. Used for line amounts,
        payments, balances, and per-ton rates alike.

    Guarantees:
        - Immutable and hashable.
        - ``amount`` is always a Decimal, never float.
        - Arithmetic enforces the same-currency constraint.

    Non-goals:
        - Does NOT auto-round; callers call ``.round()`` explicitly.
        - Does NOT convert between currencies.
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            if isinstance(self.amount, bool):
                raise TypeError("amount must be numeric, got bool")
            try:
                object.__setattr__(self, "amount", Decimal(str(self.amount)))
            except (InvalidOperation, ValueError) as e:
                raise ValueError(f"Invalid amount: {self.amount}") from e
        if not self.amount.is_finite():
            raise ValueError(f"Amount must be finite: {self.amount}")

        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        """
        Factory method for creating Money.

        Raises:
            ValueError: If amount cannot be converted or currency is invalid.
        """
        if isinstance(amount, (str, int)) and not isinstance(amount, bool):
            amount = Decimal(str(amount))
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(amount=amount, currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        """Create a zero amount in the given currency."""
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(amount=Decimal("0"), currency=currency)

    @classmethod
    def total(cls, amounts: Iterable[Money], currency: str | Currency) -> Money:
        """Sum ``amounts``; an empty iterable totals to zero in ``currency``."""
        result = cls.zero(currency)
        for amount in amounts:
            result = result + amount
        return result

    @property
    def is_zero(self) -> bool:
        return self.amount == Decimal("0")

    @property
    def is_positive(self) -> bool:
        return self.amount > Decimal("0")

    @property
    def is_negative(self) -> bool:
        return self.amount < Decimal("0")

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """Round to the currency's minor unit; returns a new Money."""
        decimal_places = self.currency.decimal_places
        quantize_str = "0." + "0" * decimal_places if decimal_places > 0 else "1"
        rounded = self.amount.quantize(Decimal(quantize_str), rounding=rounding)
        return Money(amount=rounded, currency=self.currency)

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot add Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot subtract Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount, currency=self.currency)

    def __abs__(self) -> Money:
        return Money(amount=abs(self.amount), currency=self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        """Multiply by a scalar."""
        if isinstance(factor, (int, str)) and not isinstance(factor, bool):
            factor = Decimal(str(factor))
        if not isinstance(factor, Decimal):
            return NotImplemented
        return Money(amount=self.amount * factor, currency=self.currency)

    def __rmul__(self, factor: Decimal | int | str) -> Money:
        return self.__mul__(factor)

    def __truediv__(self, divisor: Decimal | int | str) -> Money:
        """Divide by a scalar."""
        if isinstance(divisor, (int, str)) and not isinstance(divisor, bool):
            divisor = Decimal(str(divisor))
        if not isinstance(divisor, Decimal):
            return NotImplemented
        return Money(amount=self.amount / divisor, currency=self.currency)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError("Cannot compare Money with different currencies")
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError("Cannot compare Money with different currencies")
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError("Cannot compare Money with different currencies")
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        if self.currency != other.currency:
            raise ValueError("Cannot compare Money with different currencies")
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"


@dataclass(frozen=True, slots=True)
class Quantity:
    """
    Produce quantity with unit.

    Contract:
        Pairs a Decimal value with its unit of measure. Every quantity in
        the procurement network is stored in tons.

    Guarantees:
        - Immutable and hashable.
        - ``value`` is always Decimal; ``unit`` is a non-empty stripped string.
        - Arithmetic enforces the same-unit constraint.

    Non-goals:
        - Does NOT convert between units.
        - Does NOT reject negatives: reconstructed stock may legitimately
          go below zero and must stay visible.
    """

    value: Decimal
    unit: str = TON

    def __post_init__(self) -> None:
        if not isinstance(self.value, Decimal):
            if isinstance(self.value, bool):
                raise TypeError("quantity must be numeric, got bool")
            try:
                object.__setattr__(self, "value", Decimal(str(self.value)))
            except (InvalidOperation, ValueError) as e:
                raise ValueError(f"Invalid quantity value: {self.value}") from e
        if not self.value.is_finite():
            raise ValueError(f"Quantity must be finite: {self.value}")

        if not isinstance(self.unit, str) or not self.unit.strip():
            raise ValueError("Quantity unit is required")
        object.__setattr__(self, "unit", self.unit.strip())

    @classmethod
    def of(cls, value: Decimal | str | int, unit: str = TON) -> Quantity:
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            value = Decimal(str(value))
        return cls(value=value, unit=unit)

    @classmethod
    def zero(cls, unit: str = TON) -> Quantity:
        return cls(value=Decimal("0"), unit=unit)

    @classmethod
    def total(cls, quantities: Iterable[Quantity], unit: str = TON) -> Quantity:
        """Sum ``quantities``; an empty iterable totals to zero ``unit``."""
        result = cls.zero(unit)
        for quantity in quantities:
            result = result + quantity
        return result

    @property
    def is_zero(self) -> bool:
        return self.value == Decimal("0")

    @property
    def is_positive(self) -> bool:
        return self.value > Decimal("0")

    @property
    def is_negative(self) -> bool:
        return self.value < Decimal("0")

    def round(self, places: int, rounding: str = ROUND_HALF_UP) -> Quantity:
        """Round to ``places`` decimal places; returns a new Quantity."""
        exponent = Decimal(1).scaleb(-places)
        return Quantity(value=self.value.quantize(exponent, rounding=rounding), unit=self.unit)

    def __add__(self, other: Quantity) -> Quantity:
        if not isinstance(other, Quantity):
            return NotImplemented
        if self.unit != other.unit:
            raise ValueError(
                f"Cannot add Quantity with different units: {self.unit} and {other.unit}"
            )
        return Quantity(value=self.value + other.value, unit=self.unit)

    def __sub__(self, other: Quantity) -> Quantity:
        if not isinstance(other, Quantity):
            return NotImplemented
        if self.unit != other.unit:
            raise ValueError(
                f"Cannot subtract Quantity with different units: {self.unit} and {other.unit}"
            )
        return Quantity(value=self.value - other.value, unit=self.unit)

    def __neg__(self) -> Quantity:
        return Quantity(value=-self.value, unit=self.unit)

    def __lt__(self, other: Quantity) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        if self.unit != other.unit:
            raise ValueError("Cannot compare Quantity with different units")
        return self.value < other.value

    def __le__(self, other: Quantity) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        if self.unit != other.unit:
            raise ValueError("Cannot compare Quantity with different units")
        return self.value <= other.value

    def __gt__(self, other: Quantity) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        if self.unit != other.unit:
            raise ValueError("Cannot compare Quantity with different units")
        return self.value > other.value

    def __ge__(self, other: Quantity) -> bool:
        if not isinstance(other, Quantity):
            return NotImplemented
        if self.unit != other.unit:
            raise ValueError("Cannot compare Quantity with different units")
        return self.value >= other.value

    def __str__(self) -> str:
        return f"{self.value} {self.unit}"

    def __repr__(self) -> str:
        return f"Quantity({self.value!r}, {self.unit!r})"


def extended_amount(quantity: Quantity, rate: Money) -> Money:
    """
    Amount of a priced line: ``quantity x rate`` at the currency's minor unit.

    This is the only place a line amount is produced. Stored amounts are
    never summed directly; they are recomputed here from quantity and rate.
    """
    return (rate * quantity.value).round()

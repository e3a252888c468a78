"""
Records -- Immutable snapshots of the transactional and reference data.

Responsibility:
    Define the value records the engines consume: FPOs, farmers, products,
    procurement lines, farmer payments, FPO-to-aggregator sale lines, and
    stated inventory snapshots.

Architecture position:
    Kernel > Domain -- pure, zero I/O. Constructed by the persistence/API
    layer (or by ``procurement_kernel.domain.ingest``) and passed to the
    engines as read-only sequences.

Invariants enforced:
    - Construction is the validation boundary: a procurement or sale line
      with non-positive quantity, a negative rate, a non-positive payment,
      a negative stated stock, or a non-``date`` date is rejected here with
      InvalidRecordError. Engines assume records are valid.
    - Line amounts are never stored as truth: ``amount`` is always
      recomputed from quantity and rate. ``stated_amount`` only carries the
      figure the caller had on file, for discrepancy reporting.
    - Identifiers are normalized to ``str`` so records sort deterministically.
    - A bare number (``int``, ``str`` or ``Decimal``) given for a line or
      snapshot quantity is read as tons. Under a policy whose
      ``quantity_unit`` is not tons, pass ``Quantity`` values in that unit
      (``ingest`` does this from the policy); mixing units fails when the
      engines add quantities.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any

from procurement_kernel.domain.values import Money, Quantity, extended_amount
from procurement_kernel.exceptions import InvalidRecordError
from procurement_kernel.logging_config import get_logger

logger = get_logger("domain.records")


class SaleStatus(str, Enum):
    """Lifecycle of an FPO-to-aggregator sale."""

    PENDING = "pending"
    COMPLETED = "completed"
    REJECTED = "rejected"


def _reject(record_type: str, field: str, value: Any, reason: str) -> InvalidRecordError:
    logger.warning("record_rejected", extra={
        "record_type": record_type,
        "field": field,
        "value": str(value),
        "reason": reason,
    })
    return InvalidRecordError(record_type, field, value, reason)


def _normalize_id(record: Any, record_type: str, field: str) -> None:
    value = getattr(record, field)
    if value is None or isinstance(value, bool) or str(value).strip() == "":
        raise _reject(record_type, field, value, "identifier is required")
    object.__setattr__(record, field, str(value).strip())


def _check_date(record: Any, record_type: str, field: str = "date") -> None:
    value = getattr(record, field)
    # datetime is a date subclass but does not compare with date
    if not isinstance(value, date) or isinstance(value, datetime):
        raise _reject(record_type, field, value, "must be a calendar date")


def _coerce_quantity(record: Any, record_type: str, field: str = "quantity") -> Quantity:
    """Accept a Quantity as given; read a bare number as tons."""
    value = getattr(record, field)
    if not isinstance(value, Quantity):
        try:
            value = Quantity.of(value)
        except (TypeError, ValueError) as e:
            raise _reject(record_type, field, value, "not a numeric quantity") from e
        object.__setattr__(record, field, value)
    return value


def _check_money(record: Any, record_type: str, field: str) -> Money:
    value = getattr(record, field)
    if not isinstance(value, Money):
        raise _reject(record_type, field, value, "must be Money")
    return value


@dataclass(frozen=True, slots=True)
class Fpo:
    """A farmer producer organization."""

    id: str
    name: str

    def __post_init__(self) -> None:
        _normalize_id(self, "Fpo", "id")


@dataclass(frozen=True, slots=True)
class Farmer:
    """A farmer, owned by exactly one FPO."""

    id: str
    name: str
    fpo_id: str
    mobile_number: str = ""
    village_name: str = ""

    def __post_init__(self) -> None:
        _normalize_id(self, "Farmer", "id")
        _normalize_id(self, "Farmer", "fpo_id")


@dataclass(frozen=True, slots=True)
class Product:
    """Shared produce reference data."""

    id: str
    name: str
    category: str = ""

    def __post_init__(self) -> None:
        _normalize_id(self, "Product", "id")


@dataclass(frozen=True, slots=True)
class ProcurementLine:
    """
    A purchase of produce from a farmer by an FPO.

    Contract:
        ``quantity`` in tons (> 0), ``rate`` in currency per ton (>= 0).
    Guarantees:
        - ``amount`` == quantity x rate at the currency's minor unit.
    """

    id: str
    date: date
    farmer_id: str
    fpo_id: str
    product_id: str
    quantity: Quantity
    rate: Money
    stated_amount: Money | None = None

    def __post_init__(self) -> None:
        for field in ("id", "farmer_id", "fpo_id", "product_id"):
            _normalize_id(self, "ProcurementLine", field)
        _check_date(self, "ProcurementLine")
        quantity = _coerce_quantity(self, "ProcurementLine")
        if not quantity.is_positive:
            raise _reject("ProcurementLine", "quantity", quantity.value, "must be positive")
        rate = _check_money(self, "ProcurementLine", "rate")
        if rate.is_negative:
            raise _reject("ProcurementLine", "rate", rate.amount, "cannot be negative")
        if self.stated_amount is not None:
            _check_money(self, "ProcurementLine", "stated_amount")

    @property
    def amount(self) -> Money:
        return extended_amount(self.quantity, self.rate)


@dataclass(frozen=True, slots=True)
class PaymentLine:
    """
    Money disbursed by an FPO to a farmer.

    Payments settle the farmer's aggregate balance; they are not tied to a
    particular procurement line.
    """

    id: str
    date: date
    farmer_id: str
    fpo_id: str
    amount: Money
    description: str = ""

    def __post_init__(self) -> None:
        for field in ("id", "farmer_id", "fpo_id"):
            _normalize_id(self, "PaymentLine", field)
        _check_date(self, "PaymentLine")
        amount = _check_money(self, "PaymentLine", "amount")
        if not amount.is_positive:
            raise _reject("PaymentLine", "amount", amount.amount, "must be positive")


@dataclass(frozen=True, slots=True)
class SaleLine:
    """A transfer of produce from an FPO to the aggregator."""

    id: str
    date: date
    fpo_id: str
    product_id: str
    quantity: Quantity
    rate: Money
    status: SaleStatus = SaleStatus.PENDING
    stated_amount: Money | None = None

    def __post_init__(self) -> None:
        for field in ("id", "fpo_id", "product_id"):
            _normalize_id(self, "SaleLine", field)
        _check_date(self, "SaleLine")
        quantity = _coerce_quantity(self, "SaleLine")
        if not quantity.is_positive:
            raise _reject("SaleLine", "quantity", quantity.value, "must be positive")
        rate = _check_money(self, "SaleLine", "rate")
        if rate.is_negative:
            raise _reject("SaleLine", "rate", rate.amount, "cannot be negative")
        if not isinstance(self.status, SaleStatus):
            try:
                object.__setattr__(self, "status", SaleStatus(self.status))
            except ValueError as e:
                raise _reject("SaleLine", "status", self.status, "unknown sale status") from e
        if self.stated_amount is not None:
            _check_money(self, "SaleLine", "stated_amount")

    @property
    def amount(self) -> Money:
        return extended_amount(self.quantity, self.rate)


@dataclass(frozen=True, slots=True)
class InventorySnapshot:
    """
    Stated on-hand stock for one FPO and product.

    The quantity is what the FPO reports, not something derived from
    transactions. ``as_of`` orders snapshots; an undated snapshot is older
    than any dated one.
    """

    fpo_id: str
    product_id: str
    quantity: Quantity
    as_of: date | None = None

    def __post_init__(self) -> None:
        _normalize_id(self, "InventorySnapshot", "fpo_id")
        _normalize_id(self, "InventorySnapshot", "product_id")
        quantity = _coerce_quantity(self, "InventorySnapshot")
        if quantity.is_negative:
            raise _reject("InventorySnapshot", "quantity", quantity.value, "cannot be negative")
        if self.as_of is not None:
            _check_date(self, "InventorySnapshot", "as_of")

"""
Ingest -- Convert stored rows into validated records.

Responsibility:
    Parse the camelCase row dicts the persistence/API layer returns
    (``farmerId``, ``productId``, ISO ``date`` strings, JSON numbers) into
    the immutable records of ``procurement_kernel.domain.records``.

Architecture position:
    Kernel > Domain -- the input boundary. Everything that reaches an
    engine has passed through here or through record construction.

Failure modes:
    - InvalidRecordError for a missing required key, an unparseable date
      or number, or any record-level validation failure.

Notes:
    JSON floats are converted through ``str`` so ``2.5`` becomes
    ``Decimal("2.5")`` rather than its binary expansion. A stored
    ``amount`` on procurement and sale rows is kept as ``stated_amount``
    only; engines recompute amounts from quantity and rate.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, TypeVar

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
from procurement_kernel.domain.values import Money, Quantity
from procurement_kernel.exceptions import InvalidRecordError
from procurement_kernel.logging_config import get_logger

logger = get_logger("domain.ingest")

T = TypeVar("T")

_MISSING = object()


def _get(row: Mapping[str, Any], key: str, record_type: str, default: Any = _MISSING) -> Any:
    value = row.get(key, _MISSING)
    if value is _MISSING or value is None:
        if default is _MISSING:
            raise InvalidRecordError(record_type, key, None, "required field is missing")
        return default
    return value


def parse_date(value: Any, record_type: str, field: str = "date") -> date:
    """
    Parse a calendar date from a ``date`` or an ISO string.

    Timestamps such as ``2025-03-04T10:00:00Z`` are reduced to their date
    part, which is how the source system compares them against month bounds.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError as e:
            raise InvalidRecordError(record_type, field, value, "not an ISO date") from e
    raise InvalidRecordError(record_type, field, value, "not an ISO date")


def parse_decimal(value: Any, record_type: str, field: str) -> Decimal:
    if isinstance(value, bool):
        raise InvalidRecordError(record_type, field, value, "not a number")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as e:
            raise InvalidRecordError(record_type, field, value, "not a number") from e
    if not result.is_finite():
        raise InvalidRecordError(record_type, field, value, "not a finite number")
    return result


def _money(row: Mapping[str, Any], key: str, record_type: str, policy: ReportingPolicy) -> Money:
    return Money(parse_decimal(_get(row, key, record_type), record_type, key), policy.currency)


def _quantity(row: Mapping[str, Any], key: str, record_type: str, policy: ReportingPolicy) -> Quantity:
    return Quantity(parse_decimal(_get(row, key, record_type), record_type, key), policy.quantity_unit)


def fpo_from_row(row: Mapping[str, Any]) -> Fpo:
    return Fpo(id=_get(row, "id", "Fpo"), name=str(_get(row, "name", "Fpo", "")))


def farmer_from_row(row: Mapping[str, Any]) -> Farmer:
    return Farmer(
        id=_get(row, "id", "Farmer"),
        name=str(_get(row, "name", "Farmer", "")),
        fpo_id=_get(row, "fpoId", "Farmer"),
        mobile_number=str(_get(row, "mobileNumber", "Farmer", "")),
        village_name=str(_get(row, "villageName", "Farmer", "")),
    )


def product_from_row(row: Mapping[str, Any]) -> Product:
    return Product(
        id=_get(row, "id", "Product"),
        name=str(_get(row, "name", "Product", "")),
        category=str(_get(row, "category", "Product", "")),
    )


def procurement_from_row(
    row: Mapping[str, Any],
    policy: ReportingPolicy = DEFAULT_POLICY,
) -> ProcurementLine:
    record_type = "ProcurementLine"
    stated = row.get("amount")
    return ProcurementLine(
        id=_get(row, "id", record_type),
        date=parse_date(_get(row, "date", record_type), record_type),
        farmer_id=_get(row, "farmerId", record_type),
        fpo_id=_get(row, "fpoId", record_type),
        product_id=_get(row, "productId", record_type),
        quantity=_quantity(row, "quantity", record_type, policy),
        rate=_money(row, "rate", record_type, policy),
        stated_amount=_money(row, "amount", record_type, policy) if stated is not None else None,
    )


def payment_from_row(
    row: Mapping[str, Any],
    policy: ReportingPolicy = DEFAULT_POLICY,
) -> PaymentLine:
    record_type = "PaymentLine"
    return PaymentLine(
        id=_get(row, "id", record_type),
        date=parse_date(_get(row, "date", record_type), record_type),
        farmer_id=_get(row, "farmerId", record_type),
        fpo_id=_get(row, "fpoId", record_type),
        amount=_money(row, "amount", record_type, policy),
        description=str(_get(row, "description", record_type, "")),
    )


def sale_from_row(
    row: Mapping[str, Any],
    policy: ReportingPolicy = DEFAULT_POLICY,
) -> SaleLine:
    record_type = "SaleLine"
    stated = row.get("amount")
    return SaleLine(
        id=_get(row, "id", record_type),
        date=parse_date(_get(row, "date", record_type), record_type),
        fpo_id=_get(row, "fpoId", record_type),
        product_id=_get(row, "productId", record_type),
        quantity=_quantity(row, "quantity", record_type, policy),
        rate=_money(row, "rate", record_type, policy),
        status=SaleStatus.PENDING if row.get("status") is None else row["status"],
        stated_amount=_money(row, "amount", record_type, policy) if stated is not None else None,
    )


def snapshot_from_row(
    row: Mapping[str, Any],
    policy: ReportingPolicy = DEFAULT_POLICY,
) -> InventorySnapshot:
    record_type = "InventorySnapshot"
    as_of = row.get("asOf")
    return InventorySnapshot(
        fpo_id=_get(row, "fpoId", record_type),
        product_id=_get(row, "productId", record_type),
        quantity=_quantity(row, "quantity", record_type, policy),
        as_of=parse_date(as_of, record_type, "asOf") if as_of is not None else None,
    )


def ingest_rows(
    rows: Iterable[Mapping[str, Any]],
    parser: Callable[[Mapping[str, Any]], T],
) -> tuple[T, ...]:
    """
    Parse every row with ``parser``; the first invalid row raises.

    Rejected rows are not skipped: dropping a procurement row would
    silently understate a farmer's ledger.
    """
    records: list[T] = []
    for index, row in enumerate(rows):
        try:
            records.append(parser(row))
        except InvalidRecordError as e:
            logger.warning("row_ingest_failed", extra={
                "row_index": index,
                "record_type": e.record_type,
                "field": e.field,
                "reason": e.reason,
            })
            raise
    logger.debug("rows_ingested", extra={
        "parser": getattr(parser, "__name__", str(parser)),
        "row_count": len(records),
    })
    return tuple(records)

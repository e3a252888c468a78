"""
Module: procurement_engines.ledger
Responsibility:
    Build the farmer ledger for a time window: what each farmer sold to
    the FPO, what the FPO paid them, and the outstanding balance
    ``remaining = total_purchase_amount - total_paid``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Output is consumed by ledger screens, PDF export, and the payment
    entry workflow (via ``assess_payment``).

Invariants enforced:
    - Procurements and payments are windowed independently; a payment
      dated outside the window never reduces that window's balance.
    - Purchase totals are the sum of recomputed line amounts
      (quantity x rate), never stored amounts.
    - Sparse: only farmers with at least one procurement or payment in the
      window appear. Callers wanting every farmer enumerate the master list.
    - Lines naming a farmer absent from the master list are still
      aggregated; only the display name falls back to the placeholder.
    - ``remaining`` may be negative (overpayment); that is reported, not
      rejected.
    - Summaries are ordered by farmer name (then id); line items within a
      farmer by date descending (then id).

Failure modes:
    - InvalidWindowError if ``window`` is missing or not a TimeWindow.
    - UnsupportedFilterError for ``product_id`` or ``sale_status``:
      payments settle the aggregate balance, not a product.
    - CurrencyMismatchError for lines outside the reporting currency.

Audit relevance:
    ``FarmerLedger.fingerprint()`` is stable across repeated builds of the
    same inputs, so an exported statement can be checked against a rebuild.

Usage:
    from procurement_engines.ledger import build_ledger
    from procurement_kernel.domain.window import TimeWindow

    ledger = build_ledger(
        procurements=lines,
        payments=paid,
        window=TimeWindow.for_month(2025, 3),
        farmers=farmer_master,
    )
    ledger["F1"].remaining
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from procurement_kernel.domain.policy import DEFAULT_POLICY, ReportingPolicy
from procurement_kernel.domain.records import Farmer, PaymentLine, ProcurementLine
from procurement_kernel.domain.values import Currency, Money, Quantity
from procurement_kernel.domain.window import NO_FILTER, RecordFilter, TimeWindow, require_window
from procurement_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidRecordError,
    UnsupportedFilterError,
)
from procurement_kernel.logging_config import get_logger
from procurement_kernel.utils.hashing import hash_payload
from procurement_engines import payload
from procurement_engines.tracer import traced_engine

logger = get_logger("engines.ledger")

_ENGINE = "farmer_ledger"


@dataclass(frozen=True, slots=True)
class LedgerSummary:
    """
    One farmer's position within a window.

    Guarantees:
        - ``remaining == total_purchase_amount - total_paid`` always.
        - ``procurements`` and ``payments`` are sorted by date descending.
    """

    farmer_id: str
    farmer_name: str
    total_purchase_amount: Money
    total_purchase_quantity: Quantity
    total_paid: Money
    procurements: tuple[ProcurementLine, ...]
    payments: tuple[PaymentLine, ...]

    @property
    def remaining(self) -> Money:
        return self.total_purchase_amount - self.total_paid

    @property
    def is_overpaid(self) -> bool:
        return self.remaining.is_negative

    @property
    def is_settled(self) -> bool:
        return self.remaining.is_zero

    def to_payload(self, places: int = payload.QUANTITY_PLACES) -> dict[str, Any]:
        return {
            "farmer_id": self.farmer_id,
            "farmer_name": self.farmer_name,
            "total_purchase_amount": payload.money(self.total_purchase_amount),
            "total_purchase_quantity": payload.quantity(self.total_purchase_quantity, places),
            "total_paid": payload.money(self.total_paid),
            "remaining": payload.money(self.remaining),
            "procurements": [
                {
                    "id": line.id,
                    "date": line.date.isoformat(),
                    "product_id": line.product_id,
                    "quantity": payload.quantity(line.quantity, places),
                    "rate": payload.money(line.rate),
                    "amount": payload.money(line.amount),
                }
                for line in self.procurements
            ],
            "payments": [
                {
                    "id": line.id,
                    "date": line.date.isoformat(),
                    "amount": payload.money(line.amount),
                    "description": line.description,
                }
                for line in self.payments
            ],
        }


@dataclass(frozen=True, slots=True)
class FarmerLedger(Mapping[str, LedgerSummary]):
    """
    Read-only mapping of farmer_id to LedgerSummary for one window.

    Iteration follows display order (farmer name, then id).
    """

    window: TimeWindow
    currency: Currency
    summaries: tuple[LedgerSummary, ...]
    quantity_places: int = payload.QUANTITY_PLACES
    _index: dict[str, LedgerSummary] = field(
        init=False, repr=False, compare=False, hash=False, default=None
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "_index", {s.farmer_id: s for s in self.summaries})

    def __getitem__(self, farmer_id: str) -> LedgerSummary:
        return self._index[str(farmer_id)]

    def __iter__(self) -> Iterator[str]:
        return (s.farmer_id for s in self.summaries)

    def __len__(self) -> int:
        return len(self.summaries)

    @property
    def total_purchase_amount(self) -> Money:
        return Money.total((s.total_purchase_amount for s in self.summaries), self.currency)

    @property
    def total_paid(self) -> Money:
        return Money.total((s.total_paid for s in self.summaries), self.currency)

    @property
    def total_remaining(self) -> Money:
        return Money.total((s.remaining for s in self.summaries), self.currency)

    def to_payload(self) -> dict[str, Any]:
        return {
            "window": payload.window(self.window),
            "currency": self.currency.code,
            "farmers": [s.to_payload(self.quantity_places) for s in self.summaries],
            "total_purchase_amount": payload.money(self.total_purchase_amount),
            "total_paid": payload.money(self.total_paid),
            "total_remaining": payload.money(self.total_remaining),
        }

    def fingerprint(self) -> str:
        return hash_payload(self.to_payload())


@dataclass(frozen=True, slots=True)
class PaymentAssessment:
    """Advisory check of a proposed payment against a farmer's balance."""

    farmer_id: str
    proposed_amount: Money
    remaining_before: Money
    remaining_after: Money
    exceeds_remaining: bool
    excess: Money


def _check_filters(filters: RecordFilter) -> None:
    if filters.product_id is not None:
        raise UnsupportedFilterError(
            _ENGINE, "product_id", "payments settle the farmer's aggregate balance, not a product"
        )
    if filters.sale_status is not None:
        raise UnsupportedFilterError(_ENGINE, "sale_status", "the farmer ledger has no sale lines")


def _keep(line: ProcurementLine | PaymentLine, window: TimeWindow, filters: RecordFilter) -> bool:
    if not window.contains(line.date):
        return False
    if filters.fpo_id is not None and line.fpo_id != filters.fpo_id:
        return False
    if filters.farmer_id is not None and line.farmer_id != filters.farmer_id:
        return False
    return True


def _newest_first(lines: list) -> tuple:
    return tuple(sorted(lines, key=lambda line: (line.date, line.id), reverse=True))


@traced_engine(
    _ENGINE, "1.0",
    fingerprint_fields=("procurements", "payments", "window", "filters"),
)
def build_ledger(
    procurements: Iterable[ProcurementLine],
    payments: Iterable[PaymentLine],
    window: TimeWindow,
    farmers: Iterable[Farmer] = (),
    filters: RecordFilter | None = None,
    policy: ReportingPolicy = DEFAULT_POLICY,
) -> FarmerLedger:
    """
    Group windowed procurements and payments by farmer.

    Args:
        procurements: Procurement lines (any window; filtered here).
        payments: Payment lines (any window; filtered here).
        window: Inclusive reporting window.
        farmers: Farmer master list, used only to resolve display names.
        filters: ``fpo_id``, ``farmer_id`` and ``date_from``/``date_to``
            are honored.
        policy: Reporting currency, unit and name placeholder.

    Returns:
        FarmerLedger, empty when nothing falls in the window.
    """
    window = require_window(window)
    filters = filters or NO_FILTER
    _check_filters(filters)

    effective = filters.narrow_window(window)
    if effective is None:
        logger.info("ledger_built", extra={
            "window": window.label(),
            "farmer_count": 0,
            "reason": "filter dates outside window",
        })
        return FarmerLedger(
            window=window,
            currency=policy.currency,
            summaries=(),
            quantity_places=policy.quantity_decimal_places,
        )

    bought: dict[str, list[ProcurementLine]] = defaultdict(list)
    for line in procurements:
        if _keep(line, effective, filters):
            policy.check_currency(line.rate, line.id)
            bought[line.farmer_id].append(line)

    paid: dict[str, list[PaymentLine]] = defaultdict(list)
    for line in payments:
        if _keep(line, effective, filters):
            policy.check_currency(line.amount, line.id)
            paid[line.farmer_id].append(line)

    names = {farmer.id: farmer.name for farmer in farmers}
    unresolved = 0

    summaries: list[LedgerSummary] = []
    for farmer_id in set(bought) | set(paid):
        lines = bought.get(farmer_id, [])
        payment_lines = paid.get(farmer_id, [])
        name = names.get(farmer_id) or ""
        if not name:
            unresolved += 1
            name = policy.unknown_name_placeholder
        summaries.append(LedgerSummary(
            farmer_id=farmer_id,
            farmer_name=name,
            total_purchase_amount=Money.total((line.amount for line in lines), policy.currency),
            total_purchase_quantity=Quantity.total(
                (line.quantity for line in lines), policy.quantity_unit
            ),
            total_paid=Money.total((p.amount for p in payment_lines), policy.currency),
            procurements=_newest_first(lines),
            payments=_newest_first(payment_lines),
        ))
    summaries.sort(key=lambda s: (s.farmer_name, s.farmer_id))

    ledger = FarmerLedger(
        window=window,
        currency=policy.currency,
        summaries=tuple(summaries),
        quantity_places=policy.quantity_decimal_places,
    )
    if unresolved:
        logger.debug("farmer_name_unresolved", extra={"count": unresolved})
    logger.info("ledger_built", extra={
        "window": effective.label(),
        "farmer_count": len(ledger),
        "total_purchase_amount": str(ledger.total_purchase_amount.amount),
        "total_paid": str(ledger.total_paid.amount),
        "overpaid_count": sum(1 for s in summaries if s.is_overpaid),
    })
    return ledger


def assess_payment(summary: LedgerSummary, amount: Money) -> PaymentAssessment:
    """
    Report whether ``amount`` would exceed the farmer's window balance.

    Advisory only. Overpayment is a valid state, so nothing is blocked;
    the caller decides whether to warn.

    Raises:
        InvalidRecordError: ``amount`` is not positive Money.
        CurrencyMismatchError: ``amount`` is in another currency.
    """
    if not isinstance(amount, Money) or not amount.is_positive:
        raise InvalidRecordError("PaymentLine", "amount", amount, "must be positive Money")
    remaining = summary.remaining
    if amount.currency != remaining.currency:
        raise CurrencyMismatchError(remaining.currency.code, amount.currency.code, summary.farmer_id)
    after = remaining - amount
    exceeds = after.is_negative
    excess = -after if exceeds else Money.zero(remaining.currency)
    if exceeds:
        logger.info("payment_exceeds_remaining", extra={
            "farmer_id": summary.farmer_id,
            "proposed_amount": str(amount.amount),
            "remaining": str(remaining.amount),
            "excess": str(excess.amount),
        })
    return PaymentAssessment(
        farmer_id=summary.farmer_id,
        proposed_amount=amount,
        remaining_before=remaining,
        remaining_after=after,
        exceeds_remaining=exceeds,
        excess=excess,
    )

"""
Pytest fixtures for the procurement engine test suite.

Provides:
- Structured logging configured for the session, with LogContext cleared
  between tests
- ``captured_logs`` for asserting on emitted JSON log records
- Record factories for procurement, payment, sale and inventory lines
"""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from itertools import count

import pytest

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
from procurement_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

_ids = count(1)


def inr(amount) -> Money:
    return Money.of(str(amount), "INR")


def tons(value) -> Quantity:
    return Quantity.of(str(value))


def make_procurement(
    *,
    farmer_id="F1",
    fpo_id="FPO-A",
    product_id="P-WHEAT",
    quantity="1",
    rate="1000",
    day=date(2025, 3, 10),
    line_id=None,
    stated_amount=None,
) -> ProcurementLine:
    return ProcurementLine(
        id=line_id or f"PR-{next(_ids)}",
        date=day,
        farmer_id=farmer_id,
        fpo_id=fpo_id,
        product_id=product_id,
        quantity=tons(quantity),
        rate=inr(rate),
        stated_amount=inr(stated_amount) if stated_amount is not None else None,
    )


def make_payment(
    *,
    farmer_id="F1",
    fpo_id="FPO-A",
    amount="1000",
    day=date(2025, 3, 15),
    line_id=None,
    description="",
) -> PaymentLine:
    return PaymentLine(
        id=line_id or f"PAY-{next(_ids)}",
        date=day,
        farmer_id=farmer_id,
        fpo_id=fpo_id,
        amount=inr(amount),
        description=description,
    )


def make_sale(
    *,
    fpo_id="FPO-A",
    product_id="P-WHEAT",
    quantity="1",
    rate="1000",
    day=date(2025, 3, 20),
    status=SaleStatus.COMPLETED,
    line_id=None,
    stated_amount=None,
) -> SaleLine:
    return SaleLine(
        id=line_id or f"SL-{next(_ids)}",
        date=day,
        fpo_id=fpo_id,
        product_id=product_id,
        quantity=tons(quantity),
        rate=inr(rate),
        status=status,
        stated_amount=inr(stated_amount) if stated_amount is not None else None,
    )


def make_snapshot(*, fpo_id="FPO-A", product_id="P-WHEAT", quantity="0", as_of=None):
    return InventorySnapshot(
        fpo_id=fpo_id,
        product_id=product_id,
        quantity=tons(quantity),
        as_of=as_of,
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture procurement_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            build_ledger(...)
            logs = captured_logs()
            assert any(r["message"] == "ledger_built" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("procurement_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Reference data
# =============================================================================


@pytest.fixture
def march_2025():
    from procurement_kernel.domain.window import TimeWindow

    return TimeWindow.for_month(2025, 3)


@pytest.fixture
def farmers():
    return (
        Farmer(id="F1", name="Anand Patil", fpo_id="FPO-A", village_name="Khed"),
        Farmer(id="F2", name="Bhavna Shinde", fpo_id="FPO-A", village_name="Junnar"),
        Farmer(id="F3", name="Chetan More", fpo_id="FPO-B", village_name="Baramati"),
    )


@pytest.fixture
def products():
    return (
        Product(id="P-WHEAT", name="Wheat", category="Cereal"),
        Product(id="P-ONION", name="Onion", category="Vegetable"),
        Product(id="P-TUR", name="Tur", category="Pulse"),
    )


@pytest.fixture
def fpos():
    return (
        Fpo(id="FPO-A", name="Sahyadri FPO"),
        Fpo(id="FPO-B", name="Krishna Valley FPO"),
    )


@pytest.fixture
def zero() -> Decimal:
    return Decimal("0")

"""
Tests for the farmer ledger aggregator.

Covers:
- Purchase totals, payments and remaining balance per farmer
- Independent windowing of procurements and payments
- Sparse output, ordering and name resolution
- Filters (honored and unsupported)
- Payment advisory
"""

from datetime import date

import pytest

from procurement_engines.ledger import assess_payment, build_ledger
from procurement_kernel.domain.policy import ReportingPolicy
from procurement_kernel.domain.records import Farmer
from procurement_kernel.domain.window import RecordFilter, TimeWindow
from procurement_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidRecordError,
    InvalidWindowError,
    UnsupportedFilterError,
)
from procurement_kernel.domain.values import Money
from tests.conftest import inr, make_payment, make_procurement


class TestLedgerTotals:
    """Tests for per-farmer totals."""

    def test_remaining_is_purchases_minus_payments(self, march_2025, farmers):
        """180,000 purchased and 50,000 paid leaves 130,000."""
        procurements = [
            make_procurement(farmer_id="F1", quantity="2", rate="30000", day=date(2025, 3, 3)),
            make_procurement(farmer_id="F1", quantity="3", rate="40000", day=date(2025, 3, 12)),
        ]
        payments = [make_payment(farmer_id="F1", amount="50000", day=date(2025, 3, 20))]

        ledger = build_ledger(
            procurements=procurements, payments=payments, window=march_2025, farmers=farmers,
        )

        summary = ledger["F1"]
        assert summary.total_purchase_amount == inr("180000")
        assert summary.total_paid == inr("50000")
        assert summary.remaining == inr("130000")
        assert summary.farmer_name == "Anand Patil"
        assert summary.total_purchase_quantity.value == 5

    def test_payment_outside_window_excluded(self, march_2025):
        """A February payment does not reduce March's remaining balance."""
        procurements = [make_procurement(farmer_id="F1", quantity="6", rate="30000")]
        payments = [
            make_payment(farmer_id="F1", amount="50000", day=date(2025, 3, 20)),
            make_payment(farmer_id="F1", amount="100000", day=date(2025, 2, 28)),
        ]

        ledger = build_ledger(procurements=procurements, payments=payments, window=march_2025)

        assert ledger["F1"].total_paid == inr("50000")
        assert ledger["F1"].remaining == inr("130000")
        assert len(ledger["F1"].payments) == 1

    def test_window_bounds_inclusive(self, march_2025):
        procurements = [
            make_procurement(farmer_id="F1", rate="100", day=date(2025, 3, 1)),
            make_procurement(farmer_id="F1", rate="100", day=date(2025, 3, 31)),
            make_procurement(farmer_id="F1", rate="100", day=date(2025, 4, 1)),
        ]
        ledger = build_ledger(procurements=procurements, payments=[], window=march_2025)
        assert len(ledger["F1"].procurements) == 2

    def test_overpayment_is_reported_not_rejected(self, march_2025):
        procurements = [make_procurement(farmer_id="F1", quantity="1", rate="10000")]
        payments = [make_payment(farmer_id="F1", amount="15000")]

        summary = build_ledger(procurements=procurements, payments=payments, window=march_2025)["F1"]

        assert summary.remaining == inr("-5000")
        assert summary.is_overpaid

    def test_payment_only_farmer_included(self, march_2025):
        ledger = build_ledger(
            procurements=[], payments=[make_payment(farmer_id="F2", amount="500")], window=march_2025,
        )
        assert ledger["F2"].total_purchase_amount.is_zero
        assert ledger["F2"].remaining == inr("-500")

    def test_amounts_recomputed_not_stated(self, march_2025):
        procurements = [
            make_procurement(farmer_id="F1", quantity="10", rate="35000", stated_amount="1"),
        ]
        ledger = build_ledger(procurements=procurements, payments=[], window=march_2025)
        assert ledger["F1"].total_purchase_amount == inr("350000")

    def test_grand_totals(self, march_2025):
        procurements = [
            make_procurement(farmer_id="F1", quantity="1", rate="1000"),
            make_procurement(farmer_id="F2", quantity="2", rate="1000"),
        ]
        payments = [make_payment(farmer_id="F2", amount="500")]
        ledger = build_ledger(procurements=procurements, payments=payments, window=march_2025)

        assert ledger.total_purchase_amount == inr("3000")
        assert ledger.total_paid == inr("500")
        assert ledger.total_remaining == inr("2500")


class TestLedgerShape:
    """Tests for sparseness, ordering and naming."""

    def test_empty_window_is_empty_not_error(self):
        ledger = build_ledger(
            procurements=[make_procurement()],
            payments=[make_payment()],
            window=TimeWindow.for_month(2024, 1),
        )
        assert len(ledger) == 0
        assert list(ledger) == []
        assert ledger.total_remaining.is_zero

    def test_inactive_farmers_omitted(self, march_2025, farmers):
        ledger = build_ledger(
            procurements=[make_procurement(farmer_id="F1")], payments=[],
            window=march_2025, farmers=farmers,
        )
        assert list(ledger) == ["F1"]
        assert "F2" not in ledger

    def test_sorted_by_farmer_name(self, march_2025):
        farmers = [
            Farmer(id="F1", name="Zaheer", fpo_id="FPO-A"),
            Farmer(id="F2", name="Asha", fpo_id="FPO-A"),
            Farmer(id="F3", name="Mohan", fpo_id="FPO-A"),
        ]
        procurements = [make_procurement(farmer_id=f) for f in ("F1", "F2", "F3")]
        ledger = build_ledger(
            procurements=procurements, payments=[], window=march_2025, farmers=farmers,
        )
        assert [s.farmer_name for s in ledger.summaries] == ["Asha", "Mohan", "Zaheer"]
        assert list(ledger) == ["F2", "F3", "F1"]

    def test_lines_sorted_newest_first(self, march_2025):
        procurements = [
            make_procurement(farmer_id="F1", day=date(2025, 3, 5)),
            make_procurement(farmer_id="F1", day=date(2025, 3, 25)),
            make_procurement(farmer_id="F1", day=date(2025, 3, 15)),
        ]
        summary = build_ledger(procurements=procurements, payments=[], window=march_2025)["F1"]
        assert [line.date.day for line in summary.procurements] == [25, 15, 5]

    def test_unknown_farmer_still_aggregated(self, march_2025, farmers):
        """A line for a farmer missing from the master list still counts."""
        procurements = [make_procurement(farmer_id="F-GHOST", quantity="1", rate="7000")]
        ledger = build_ledger(
            procurements=procurements, payments=[], window=march_2025, farmers=farmers,
        )
        assert ledger["F-GHOST"].farmer_name == "Unknown"
        assert ledger.total_purchase_amount == inr("7000")

    def test_placeholder_from_policy(self, march_2025):
        policy = ReportingPolicy(unknown_name_placeholder="(unnamed)")
        ledger = build_ledger(
            procurements=[make_procurement(farmer_id="F9")], payments=[],
            window=march_2025, policy=policy,
        )
        assert ledger["F9"].farmer_name == "(unnamed)"

    def test_idempotent(self, march_2025, farmers):
        procurements = [make_procurement(farmer_id="F1"), make_procurement(farmer_id="F2")]
        payments = [make_payment(farmer_id="F1")]
        first = build_ledger(procurements=procurements, payments=payments,
                             window=march_2025, farmers=farmers)
        second = build_ledger(procurements=procurements, payments=payments,
                              window=march_2025, farmers=farmers)
        assert first == second
        assert first.fingerprint() == second.fingerprint()

    def test_payload_contains_remaining(self, march_2025):
        ledger = build_ledger(
            procurements=[make_procurement(farmer_id="F1", quantity="1", rate="100")],
            payments=[], window=march_2025,
        )
        payload = ledger.to_payload()
        assert payload["farmers"][0]["remaining"] == "100.00"
        assert payload["window"] == {"start": "2025-03-01", "end": "2025-03-31"}

    def test_payload_quantities_use_policy_places(self, march_2025):
        lines = [make_procurement(farmer_id="F1", quantity="0.4567", rate="1000")]
        default = build_ledger(procurements=lines, payments=[], window=march_2025).to_payload()
        two_places = build_ledger(
            procurements=lines, payments=[], window=march_2025,
            policy=ReportingPolicy(quantity_decimal_places=2),
        ).to_payload()

        assert default["farmers"][0]["total_purchase_quantity"] == "0.457"
        assert two_places["farmers"][0]["total_purchase_quantity"] == "0.46"
        assert two_places["farmers"][0]["procurements"][0]["quantity"] == "0.46"
        assert two_places["farmers"][0]["remaining"] == default["farmers"][0]["remaining"] == "456.70"


class TestLedgerFilters:
    """Tests for the filters the ledger honors or rejects."""

    def test_fpo_filter(self, march_2025):
        procurements = [
            make_procurement(farmer_id="F1", fpo_id="FPO-A"),
            make_procurement(farmer_id="F3", fpo_id="FPO-B"),
        ]
        ledger = build_ledger(
            procurements=procurements, payments=[], window=march_2025,
            filters=RecordFilter(fpo_id="FPO-B"),
        )
        assert list(ledger) == ["F3"]

    def test_farmer_filter(self, march_2025):
        procurements = [make_procurement(farmer_id="F1"), make_procurement(farmer_id="F2")]
        payments = [make_payment(farmer_id="F2")]
        ledger = build_ledger(
            procurements=procurements, payments=payments, window=march_2025,
            filters=RecordFilter(farmer_id="F2"),
        )
        assert list(ledger) == ["F2"]

    def test_date_filter_narrows_window(self, march_2025):
        procurements = [
            make_procurement(farmer_id="F1", rate="100", day=date(2025, 3, 5)),
            make_procurement(farmer_id="F1", rate="100", day=date(2025, 3, 25)),
        ]
        ledger = build_ledger(
            procurements=procurements, payments=[], window=march_2025,
            filters=RecordFilter(date_from=date(2025, 3, 20)),
        )
        assert len(ledger["F1"].procurements) == 1

    def test_date_filter_outside_window_is_empty(self, march_2025):
        ledger = build_ledger(
            procurements=[make_procurement()], payments=[], window=march_2025,
            filters=RecordFilter(date_from=date(2025, 5, 1)),
        )
        assert len(ledger) == 0

    def test_product_filter_unsupported(self, march_2025):
        with pytest.raises(UnsupportedFilterError) as exc_info:
            build_ledger(
                procurements=[], payments=[], window=march_2025,
                filters=RecordFilter(product_id="P-WHEAT"),
            )
        assert exc_info.value.filter_name == "product_id"
        assert exc_info.value.code == "UNSUPPORTED_FILTER"

    def test_missing_window(self):
        with pytest.raises(InvalidWindowError):
            build_ledger(procurements=[], payments=[], window=None)

    def test_currency_mismatch(self, march_2025):
        with pytest.raises(CurrencyMismatchError):
            build_ledger(
                procurements=[make_procurement()], payments=[], window=march_2025,
                policy=ReportingPolicy(currency="NPR"),
            )


class TestLedgerLogging:
    def test_ledger_built_logged(self, march_2025, captured_logs):
        build_ledger(procurements=[make_procurement()], payments=[], window=march_2025)
        logs = captured_logs()
        built = [r for r in logs if r["message"] == "ledger_built"]
        assert built[0]["farmer_count"] == 1
        traces = [r for r in logs if r["message"] == "ENGINE_TRACE"]
        assert traces[0]["engine_name"] == "farmer_ledger"


class TestAssessPayment:
    """Tests for the advisory payment check."""

    def _summary(self, march_2025):
        ledger = build_ledger(
            procurements=[make_procurement(farmer_id="F1", quantity="6", rate="30000")],
            payments=[make_payment(farmer_id="F1", amount="50000")],
            window=march_2025,
        )
        return ledger["F1"]

    def test_within_remaining(self, march_2025):
        assessment = assess_payment(self._summary(march_2025), inr("30000"))
        assert not assessment.exceeds_remaining
        assert assessment.remaining_after == inr("100000")
        assert assessment.excess.is_zero

    def test_exceeds_remaining(self, march_2025):
        assessment = assess_payment(self._summary(march_2025), inr("150000"))
        assert assessment.exceeds_remaining
        assert assessment.excess == inr("20000")

    def test_non_positive_rejected(self, march_2025):
        with pytest.raises(InvalidRecordError):
            assess_payment(self._summary(march_2025), inr("0"))

    def test_currency_mismatch(self, march_2025):
        with pytest.raises(CurrencyMismatchError):
            assess_payment(self._summary(march_2025), Money.of("10", "USD"))

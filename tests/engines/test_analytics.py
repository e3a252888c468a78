"""
Tests for dashboard figures, product grouping and amount discrepancies.
"""

from datetime import date
from decimal import Decimal

import pytest

from procurement_engines.analytics import (
    build_dashboard,
    find_amount_discrepancies,
    group_by_product,
)
from procurement_kernel.domain.records import ProcurementLine, SaleStatus
from procurement_kernel.domain.values import Money
from procurement_kernel.domain.window import RecordFilter
from procurement_kernel.exceptions import CurrencyMismatchError, UnsupportedFilterError
from tests.conftest import (
    inr,
    make_payment,
    make_procurement,
    make_sale,
    make_snapshot,
    tons,
)


@pytest.fixture
def activity():
    procurements = [
        make_procurement(farmer_id="F1", quantity="2", rate="30000"),
        make_procurement(farmer_id="F2", fpo_id="FPO-B", quantity="1", rate="20000"),
        make_procurement(farmer_id="F3", quantity="5", rate="1000", day=date(2025, 4, 2)),
    ]
    sales = [
        make_sale(quantity="1", rate="40000", status=SaleStatus.COMPLETED),
        make_sale(quantity="1", rate="41000", status=SaleStatus.PENDING),
        make_sale(fpo_id="FPO-B", quantity="2", rate="1000", status=SaleStatus.REJECTED),
    ]
    payments = [
        make_payment(farmer_id="F1", amount="50000"),
        make_payment(farmer_id="F4", fpo_id="FPO-B", amount="5000"),
    ]
    inventory = [
        make_snapshot(quantity="4", as_of=date(2025, 3, 1)),
        make_snapshot(quantity="6", as_of=date(2025, 3, 30)),
        make_snapshot(fpo_id="FPO-B", quantity="1.5"),
    ]
    return procurements, sales, payments, inventory


class TestDashboard:
    """Tests for build_dashboard."""

    def test_totals_in_window(self, activity, march_2025):
        dashboard = build_dashboard(*activity, window=march_2025)

        assert dashboard.total_procurement_amount == inr("80000")
        assert dashboard.total_procurement_quantity == tons("3")
        assert dashboard.total_sales_amount == inr("83000")
        assert dashboard.total_sales_quantity == tons("4")
        assert dashboard.total_payments == inr("55000")
        assert dashboard.total_business == inr("163000")
        assert dashboard.outstanding_to_farmers == inr("25000")

    def test_counts(self, activity, march_2025):
        dashboard = build_dashboard(*activity, window=march_2025)

        assert dashboard.procurement_count == 2
        assert dashboard.sales_count == 3
        assert dashboard.payment_count == 2
        assert dashboard.farmer_count == 3
        assert (dashboard.pending_sales, dashboard.completed_sales, dashboard.rejected_sales) == (1, 1, 1)

    def test_inventory_uses_latest_snapshot(self, activity, march_2025):
        dashboard = build_dashboard(*activity, window=march_2025)
        assert dashboard.total_inventory_quantity == tons("7.5")

    def test_no_window_means_all_records(self, activity):
        dashboard = build_dashboard(*activity)

        assert dashboard.procurement_count == 3
        assert dashboard.window is None
        assert dashboard.to_payload()["window"] is None

    def test_fpo_filter(self, activity, march_2025):
        dashboard = build_dashboard(*activity, window=march_2025, filters=RecordFilter(fpo_id="FPO-B"))

        assert dashboard.procurement_count == 1
        assert dashboard.sales_count == 1
        assert dashboard.total_payments == inr("5000")
        assert dashboard.total_inventory_quantity == tons("1.5")

    def test_sale_status_filter(self, activity, march_2025):
        dashboard = build_dashboard(
            *activity, window=march_2025,
            filters=RecordFilter(sale_status=SaleStatus.COMPLETED),
        )
        assert dashboard.sales_count == 1
        assert dashboard.total_sales_amount == inr("40000")
        assert dashboard.pending_sales == 0

    def test_date_filter_narrows_window(self, activity, march_2025):
        dashboard = build_dashboard(
            *activity, window=march_2025,
            filters=RecordFilter(date_from=date(2025, 3, 16)),
        )
        assert dashboard.procurement_count == 0
        assert dashboard.payment_count == 0
        assert dashboard.sales_count == 3

    @pytest.mark.parametrize("filters", [
        RecordFilter(product_id="P-WHEAT"),
        RecordFilter(farmer_id="F1"),
    ])
    def test_unsupported_filters(self, activity, march_2025, filters):
        with pytest.raises(UnsupportedFilterError):
            build_dashboard(*activity, window=march_2025, filters=filters)

    def test_date_filter_without_window(self, activity):
        with pytest.raises(UnsupportedFilterError):
            build_dashboard(*activity, filters=RecordFilter(date_to=date(2025, 3, 31)))

    def test_empty_window_is_zero(self, march_2025):
        dashboard = build_dashboard([], [], [], [], window=march_2025)

        assert dashboard.total_business.is_zero
        assert dashboard.farmer_count == 0
        assert dashboard.to_payload()["total_business"] == "0.00"

    def test_foreign_currency_rejected(self, march_2025):
        payment = make_payment()
        foreign = type(payment)(
            id="PAY-USD", date=payment.date, farmer_id="F1", fpo_id="FPO-A",
            amount=Money.of("10", "USD"),
        )
        with pytest.raises(CurrencyMismatchError):
            build_dashboard([], [], [foreign], [], window=march_2025)

    def test_logs_dashboard_built(self, activity, march_2025, captured_logs):
        build_dashboard(*activity, window=march_2025)
        built = [r for r in captured_logs() if r["message"] == "dashboard_built"]
        assert built[0]["total_business"] == "163000.00"


class TestGroupByProduct:
    """Tests for group_by_product."""

    def test_groups_with_weighted_rate(self, products):
        lines = [
            make_procurement(product_id="P-WHEAT", quantity="2", rate="30000"),
            make_procurement(product_id="P-WHEAT", quantity="3", rate="40000"),
            make_procurement(product_id="P-ONION", quantity="1", rate="9000"),
        ]
        groups = group_by_product(lines, products)

        assert [g.product_name for g in groups] == ["Onion", "Wheat"]
        wheat = groups[1]
        assert wheat.count == 2
        assert wheat.total_quantity == tons("5")
        assert wheat.total_amount == inr("180000")
        assert wheat.weighted_rate.rate == inr("36000")
        assert wheat.to_payload()["weighted_rate"] == "36000.00"

    def test_unknown_product(self):
        groups = group_by_product([make_sale(product_id="P-X")])
        assert groups[0].product_name == "Unknown"

    def test_empty(self):
        assert group_by_product([]) == ()


class TestAmountDiscrepancies:
    """Tests for find_amount_discrepancies."""

    def test_matching_amounts_not_reported(self):
        lines = [make_procurement(quantity="2", rate="100", stated_amount="200")]
        assert find_amount_discrepancies(lines) == ()

    def test_lines_without_stated_amount_skipped(self):
        assert find_amount_discrepancies([make_procurement(), make_sale()]) == ()

    def test_mismatch_reported(self, captured_logs):
        line = make_sale(quantity="2", rate="100", stated_amount="210", line_id="SL-9")
        (found,) = find_amount_discrepancies([line])

        assert found.record_type == "SaleLine"
        assert found.record_id == "SL-9"
        assert found.computed_amount == inr("200")
        assert found.difference == inr("10")
        assert any(r["message"] == "amount_discrepancies_found" for r in captured_logs())

    def test_tolerance(self):
        line = make_procurement(quantity="1", rate="100", stated_amount="100.40")

        assert find_amount_discrepancies([line], tolerance=Decimal("0.5")) == ()
        assert len(find_amount_discrepancies([line], tolerance=Decimal("0.1"))) == 1

    def test_other_currency_has_no_difference(self):
        base = make_procurement(quantity="1", rate="100")
        line = ProcurementLine(
            id="PR-USD", date=base.date, farmer_id="F1", fpo_id="FPO-A",
            product_id="P-WHEAT", quantity=base.quantity, rate=base.rate,
            stated_amount=Money.of("100", "USD"),
        )
        (found,) = find_amount_discrepancies([line])
        assert found.difference is None

"""Tests for TimeWindow and RecordFilter."""

from datetime import date, datetime

import pytest

from procurement_kernel.domain.records import SaleStatus
from procurement_kernel.domain.window import NO_FILTER, RecordFilter, TimeWindow, require_window
from procurement_kernel.exceptions import InvalidRecordError, InvalidWindowError


class TestTimeWindow:
    """Tests for inclusive date windows."""

    def test_for_month_covers_first_to_last_day(self):
        window = TimeWindow.for_month(2025, 3)
        assert window.start == date(2025, 3, 1)
        assert window.end == date(2025, 3, 31)
        assert window.days == 31

    def test_for_month_leap_february(self):
        assert TimeWindow.for_month(2024, 2).end == date(2024, 2, 29)

    def test_invalid_month(self):
        with pytest.raises(InvalidWindowError):
            TimeWindow.for_month(2025, 13)

    @pytest.mark.parametrize("year", [0, -1, 10000])
    def test_year_outside_calendar(self, year):
        with pytest.raises(InvalidWindowError) as exc_info:
            TimeWindow.for_month(year, 1)
        assert exc_info.value.code == "INVALID_WINDOW"

    def test_bounds_inclusive(self):
        window = TimeWindow.for_month(2025, 3)
        assert window.contains(date(2025, 3, 1))
        assert window.contains(date(2025, 3, 31))
        assert not window.contains(date(2025, 2, 28))
        assert not window.contains(date(2025, 4, 1))

    def test_reversed_rejected(self):
        with pytest.raises(InvalidWindowError) as exc_info:
            TimeWindow(date(2025, 3, 31), date(2025, 3, 1))
        assert exc_info.value.code == "INVALID_WINDOW"

    def test_datetime_bounds_rejected(self):
        with pytest.raises(InvalidWindowError):
            TimeWindow(datetime(2025, 3, 1), date(2025, 3, 31))

    def test_single_day(self):
        window = TimeWindow.single_day(date(2025, 3, 5))
        assert window.days == 1
        assert window.label() == "2025-03-05"

    def test_intersect(self):
        a = TimeWindow(date(2025, 3, 1), date(2025, 3, 20))
        b = TimeWindow(date(2025, 3, 10), date(2025, 4, 5))
        assert a.intersect(b) == TimeWindow(date(2025, 3, 10), date(2025, 3, 20))

    def test_intersect_disjoint_is_none(self):
        a = TimeWindow.for_month(2025, 3)
        b = TimeWindow.for_month(2025, 5)
        assert a.intersect(b) is None


class TestRecordFilter:
    """Tests for the enumerated filter set."""

    def test_no_filter_is_empty(self):
        assert NO_FILTER.is_empty

    def test_ids_normalized(self):
        filters = RecordFilter(fpo_id=7, product_id=" P1 ")
        assert filters.fpo_id == "7"
        assert filters.product_id == "P1"
        assert not filters.is_empty

    def test_sale_status_coerced(self):
        assert RecordFilter(sale_status="completed").sale_status is SaleStatus.COMPLETED

    def test_unknown_sale_status_rejected(self):
        with pytest.raises(InvalidRecordError) as exc_info:
            RecordFilter(sale_status="bogus")
        assert exc_info.value.field == "sale_status"
        assert exc_info.value.record_type == "RecordFilter"

    def test_narrow_window_without_dates_is_identity(self):
        window = TimeWindow.for_month(2025, 3)
        assert RecordFilter(fpo_id="A").narrow_window(window) is window

    def test_narrow_window_intersects(self):
        window = TimeWindow.for_month(2025, 3)
        narrowed = RecordFilter(date_from=date(2025, 3, 10)).narrow_window(window)
        assert narrowed == TimeWindow(date(2025, 3, 10), date(2025, 3, 31))

    def test_narrow_window_outside_is_none(self):
        """An empty intersection is an empty result, not an error."""
        window = TimeWindow.for_month(2025, 3)
        filters = RecordFilter(date_from=date(2025, 4, 1), date_to=date(2025, 4, 30))
        assert filters.narrow_window(window) is None

    def test_reversed_filter_dates_is_none(self):
        window = TimeWindow.for_month(2025, 3)
        filters = RecordFilter(date_from=date(2025, 3, 20), date_to=date(2025, 3, 10))
        assert filters.narrow_window(window) is None

    def test_datetime_filter_rejected(self):
        with pytest.raises(InvalidWindowError):
            RecordFilter(date_from=datetime(2025, 3, 1))


class TestRequireWindow:
    def test_missing_window(self):
        with pytest.raises(InvalidWindowError):
            require_window(None)

    def test_wrong_type(self):
        with pytest.raises(InvalidWindowError):
            require_window((date(2025, 3, 1), date(2025, 3, 31)))

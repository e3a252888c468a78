"""
Window -- Inclusive reporting periods and enumerated record filters.

Responsibility:
    ``TimeWindow`` scopes every aggregation to an inclusive
    ``[start, end]`` date range, typically one calendar month.
    ``RecordFilter`` is the closed set of narrowing options a caller may
    apply; every field has one documented effect.

Architecture position:
    Kernel > Domain -- pure, zero I/O. There is no "current period": a
    window is always an explicit argument, and constructors that need a
    reference day receive it as a parameter instead of reading a clock.

Invariants enforced:
    - ``start <= end``; both bounds are ``date`` (not ``datetime``).
    - A filter never changes arithmetic, only which records participate.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime

from procurement_kernel.domain.records import SaleStatus
from procurement_kernel.exceptions import InvalidRecordError, InvalidWindowError


def _is_plain_date(value: object) -> bool:
    return isinstance(value, date) and not isinstance(value, datetime)


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Inclusive date range ``[start, end]``."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if not _is_plain_date(self.start) or not _is_plain_date(self.end):
            raise InvalidWindowError(self.start, self.end, "bounds must be calendar dates")
        if self.start > self.end:
            raise InvalidWindowError(self.start, self.end, "start is after end")

    @classmethod
    def for_month(cls, year: int, month: int) -> TimeWindow:
        """The calendar month ``year-month``, first to last day."""
        if not 1 <= month <= 12:
            raise InvalidWindowError(year, month, "month must be between 1 and 12")
        if not date.min.year <= year <= date.max.year:
            raise InvalidWindowError(
                year, month, f"year must be between {date.min.year} and {date.max.year}"
            )
        last_day = calendar.monthrange(year, month)[1]
        return cls(start=date(year, month, 1), end=date(year, month, last_day))

    @classmethod
    def single_day(cls, day: date) -> TimeWindow:
        return cls(start=day, end=day)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def intersect(self, other: TimeWindow) -> TimeWindow | None:
        """Overlap of two windows, or None when they are disjoint."""
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        if start > end:
            return None
        return TimeWindow(start=start, end=end)

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def label(self) -> str:
        if self.start == self.end:
            return self.start.isoformat()
        return f"{self.start.isoformat()} to {self.end.isoformat()}"


@dataclass(frozen=True, slots=True)
class RecordFilter:
    """
    Optional narrowing applied before aggregation.

    Fields:
        fpo_id: keep only records (and FPOs) with this FPO id.
        product_id: keep only procurement/sale lines and snapshots for
            this product.
        farmer_id: keep only procurement and payment lines for this farmer.
        date_from / date_to: intersect the call's window with this range;
            an empty intersection yields an empty result, never an error.
        sale_status: keep only sale lines in this status.

    Engines reject filters they cannot honor with UnsupportedFilterError
    rather than silently ignoring them.
    """

    fpo_id: str | None = None
    product_id: str | None = None
    farmer_id: str | None = None
    date_from: date | None = None
    date_to: date | None = None
    sale_status: SaleStatus | None = None

    def __post_init__(self) -> None:
        for name in ("fpo_id", "product_id", "farmer_id"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, str(value).strip())
        for name in ("date_from", "date_to"):
            value = getattr(self, name)
            if value is not None and not _is_plain_date(value):
                raise InvalidWindowError(self.date_from, self.date_to, f"{name} must be a calendar date")
        if self.sale_status is not None and not isinstance(self.sale_status, SaleStatus):
            try:
                object.__setattr__(self, "sale_status", SaleStatus(self.sale_status))
            except ValueError as e:
                raise InvalidRecordError(
                    "RecordFilter", "sale_status", self.sale_status, "unknown sale status"
                ) from e

    @property
    def is_empty(self) -> bool:
        return all(
            getattr(self, name) is None
            for name in ("fpo_id", "product_id", "farmer_id", "date_from", "date_to", "sale_status")
        )

    def narrow_window(self, window: TimeWindow) -> TimeWindow | None:
        """Apply ``date_from``/``date_to`` to ``window``; None when nothing remains."""
        if self.date_from is None and self.date_to is None:
            return window
        start = self.date_from if self.date_from is not None else window.start
        end = self.date_to if self.date_to is not None else window.end
        if start > end:
            return None
        return window.intersect(TimeWindow(start=start, end=end))


NO_FILTER = RecordFilter()


def require_window(window: object) -> TimeWindow:
    """Return ``window`` if it is a TimeWindow, else raise InvalidWindowError."""
    if window is None:
        raise InvalidWindowError(None, None, "a time window is required")
    if not isinstance(window, TimeWindow):
        raise InvalidWindowError(window, window, f"expected TimeWindow, got {type(window).__name__}")
    return window

"""
Typed Exception Hierarchy for the Procurement Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ProcurementEngineError:

    ProcurementEngineError (base)
    |
    +-- InputError
    |   +-- InvalidRecordError
    |   +-- InvalidWindowError
    |   +-- UnsupportedFilterError
    |   +-- AmbiguousSnapshotError
    |   +-- OverlappingSummaryError
    |
    +-- CurrencyMismatchError
    |
    +-- ConfigurationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                  | When Raised
----------------|-----------------------|-----------------------------------------
Input           | INVALID_RECORD        | Record rejected at the ingestion boundary
                | INVALID_WINDOW        | Window missing, reversed, or not dates
                | UNSUPPORTED_FILTER    | Filter has no meaning for this engine
                | AMBIGUOUS_SNAPSHOT    | Two stock snapshots for one FPO/product/date
                | OVERLAPPING_SUMMARIES | Merged period summaries share an FPO
----------------|-----------------------|-----------------------------------------
Currency        | CURRENCY_MISMATCH     | Record currency differs from reporting currency
----------------|-----------------------|-----------------------------------------
Config          | INVALID_CONFIGURATION | Settings file fails validation

"No data in range" is NOT an error anywhere in the engine: an empty window
yields an empty or sparse summary.

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        ledger = build_ledger(procurements=rows, payments=paid, window=window)
    except InvalidWindowError as e:
        return {"error": e.code, "start": e.start, "end": e.end}
    except InputError as e:
        return {"error": e.code, "message": str(e)}

Codes are class attributes so they can be read without instantiation and
listed in API documentation.
"""

from typing import Any


class ProcurementEngineError(Exception):
    """
    Base exception for all procurement engine errors.

    Every subclass has a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "PROCUREMENT_ENGINE_ERROR"


class InputError(ProcurementEngineError):
    """Base exception for genuinely invalid caller input."""

    code: str = "INPUT_ERROR"


class InvalidRecordError(InputError):
    """A record failed validation at the ingestion boundary."""

    code: str = "INVALID_RECORD"

    def __init__(self, record_type: str, field: str, value: Any, reason: str):
        self.record_type = record_type
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {record_type}.{field}={value!r}: {reason}")


class InvalidWindowError(InputError):
    """The time window is missing, reversed, or not made of dates."""

    code: str = "INVALID_WINDOW"

    def __init__(self, start: Any, end: Any, reason: str):
        self.start = start
        self.end = end
        self.reason = reason
        super().__init__(f"Invalid time window [{start}, {end}]: {reason}")


class UnsupportedFilterError(InputError):
    """A filter was supplied to an engine that cannot honor it."""

    code: str = "UNSUPPORTED_FILTER"

    def __init__(self, engine: str, filter_name: str, reason: str):
        self.engine = engine
        self.filter_name = filter_name
        self.reason = reason
        super().__init__(f"Filter '{filter_name}' is not supported by {engine}: {reason}")


class AmbiguousSnapshotError(InputError):
    """More than one inventory snapshot claims to be the latest."""

    code: str = "AMBIGUOUS_SNAPSHOT"

    def __init__(self, fpo_id: str, product_id: str, as_of: Any):
        self.fpo_id = fpo_id
        self.product_id = product_id
        self.as_of = as_of
        super().__init__(
            f"Multiple inventory snapshots for FPO {fpo_id}, product {product_id} "
            f"as of {as_of}"
        )


class OverlappingSummaryError(InputError):
    """Period summaries being combined cover the same FPO (it would count twice)."""

    code: str = "OVERLAPPING_SUMMARIES"

    def __init__(self, fpo_ids: list[str]):
        self.fpo_ids = fpo_ids
        super().__init__(f"Cannot combine period summaries sharing FPOs: {', '.join(fpo_ids)}")


class CurrencyMismatchError(ProcurementEngineError):
    """A record is denominated in a currency other than the reporting currency."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, expected: str, actual: str, record_id: str | None = None):
        self.expected = expected
        self.actual = actual
        self.record_id = record_id
        super().__init__(
            f"Currency mismatch on record {record_id}: expected {expected}, got {actual}"
        )


class ConfigurationError(ProcurementEngineError):
    """Engine settings failed validation."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, errors: list[str], source: str | None = None):
        self.errors = errors
        self.source = source
        details = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed ({source}):\n{details}")

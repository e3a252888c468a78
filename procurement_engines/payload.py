"""
JSON-ready rendering helpers shared by the engine result types.

Money renders as its amount rounded to the currency's minor unit,
quantities rounded to the policy's ``quantity_decimal_places``, and
"not applicable" as None. Every result's ``fingerprint()`` is the SHA-256
of this rendering, so two results that render alike fingerprint alike.
"""

from __future__ import annotations

from typing import Any

from procurement_kernel.domain.policy import DEFAULT_POLICY
from procurement_kernel.domain.values import Money, Quantity
from procurement_kernel.domain.window import TimeWindow

QUANTITY_PLACES = DEFAULT_POLICY.quantity_decimal_places


def money(value: Money | None) -> str | None:
    if value is None:
        return None
    return str(value.round().amount)


def quantity(value: Quantity | None, places: int = QUANTITY_PLACES) -> str | None:
    if value is None:
        return None
    return str(value.round(places).value)


def window(value: TimeWindow | None) -> dict[str, Any] | None:
    if value is None:
        return None
    return {"start": value.start.isoformat(), "end": value.end.isoformat()}

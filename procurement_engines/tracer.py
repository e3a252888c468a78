"""
procurement_engines.tracer -- Engine invocation tracer emitting ENGINE_TRACE.

Responsibility:
    Provide a lightweight decorator (``@traced_engine``) that wraps pure
    engine invocations with structured trace logging.  The trace captures
    engine_name, engine_version, input_fingerprint (deterministic SHA-256
    hash of selected inputs), record counts, and duration_ms.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Does NOT introduce I/O into engines; emits a log record only.
    Logs under ``procurement_kernel.engines.tracer`` so the kernel's
    structured formatter picks the record up.

Invariants enforced:
    - Fingerprints are deterministic: values are canonicalized (Decimals
      by their string form, records by their fields, mappings by sorted
      key) before hashing; the hash is SHA-256 truncated to 16 hex chars.
    - Engine purity: the decorator only reads arguments and emits a log
      record; it does not mutate inputs or alter the result.

Failure modes:
    - Fingerprint fields absent from the call are recorded as "null".
    - Generators named in fingerprint_fields are consumed once, into tuples.
    - Exceptions raised by the engine propagate unchanged; an
      ``ENGINE_TRACE_FAILED`` record is logged first.

Usage:
    from procurement_engines.tracer import traced_engine

    @traced_engine("weighted_rate", "1.0", fingerprint_fields=("lines",))
    def compute_weighted_rate(lines):
        ...
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import time
from collections.abc import Callable, Iterable, Mapping
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from procurement_kernel.domain.window import TimeWindow
from procurement_kernel.logging_config import LogContext, get_logger

_logger = get_logger("engines.tracer")


def _canonicalize(value: Any) -> str:
    """Produce a stable string representation of a value for fingerprinting."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, Decimal)):
        return str(value)
    if isinstance(value, str):
        return value
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, date):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        fields = dataclasses.fields(value)
        return (
            type(value).__name__
            + "("
            + ",".join(f"{f.name}:{_canonicalize(getattr(value, f.name))}" for f in fields)
            + ")"
        )
    if isinstance(value, Mapping):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: Mapping[str, Any],
) -> str:
    """
    Compute a deterministic SHA-256 fingerprint of selected input fields.

    Only the fields listed in ``fingerprint_fields`` are included, in that
    order. Missing fields are recorded as "null". Returns the first 16 hex
    characters of the digest.
    """
    parts: list[str] = []
    for name in fingerprint_fields:
        parts.append(f"{name}={_canonicalize(arguments.get(name))}")
    canonical = "|".join(parts)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def _record_counts(arguments: Mapping[str, Any], fields: tuple[str, ...]) -> dict[str, int]:
    counts: dict[str, int] = {}
    for name in fields:
        value = arguments.get(name)
        if isinstance(value, (list, tuple)):
            counts[name] = len(value)
    return counts


def _materialize(arguments: dict[str, Any], fields: tuple[str, ...]) -> None:
    """Replace one-shot iterables (generators, map objects) with tuples, in place."""
    for name in fields:
        value = arguments.get(name)
        if isinstance(value, Iterable) and not isinstance(
            value, (str, bytes, Mapping, list, tuple)
        ):
            arguments[name] = tuple(value)


def _report_context(engine_name: str, arguments: Mapping[str, Any]) -> dict[str, str | None]:
    window = arguments.get("window")
    report_id = None
    if isinstance(window, TimeWindow):
        report_id = f"{engine_name}:{window.start.isoformat()}/{window.end.isoformat()}"
    fpo_id = getattr(arguments.get("filters"), "fpo_id", None)
    return {"report_id": report_id, "fpo_id": fpo_id}


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits ENGINE_TRACE for pure engine invocations.

    Args:
        engine_name: Engine identifier (e.g., "farmer_ledger").
        engine_version: Engine version (e.g., "1.0").
        fingerprint_fields: Argument names to include in the input
            fingerprint hash. Positional and keyword calls are both bound
            to parameter names before hashing. Generators passed for these
            fields are collected into tuples first, and the engine
            receives those same tuples.

    Windowed calls run inside ``LogContext.report_scope`` so every record
    the engine logs carries ``report_id`` (and ``fpo_id`` when filtered).

    Returns:
        Decorator function.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            try:
                bound = signature.bind(*args, **kwargs)
            except TypeError:
                # let the engine raise its own signature error
                return func(*args, **kwargs)
            _materialize(bound.arguments, fingerprint_fields)
            arguments: Mapping[str, Any] = bound.arguments

            fp = ""
            if fingerprint_fields:
                fp = compute_input_fingerprint(fingerprint_fields, arguments)

            with LogContext.report_scope(**_report_context(engine_name, arguments)):
                t0 = time.monotonic()
                try:
                    result = func(*bound.args, **bound.kwargs)
                except Exception as exc:
                    _logger.warning(
                        "ENGINE_TRACE_FAILED",
                        extra={
                            "trace_type": "ENGINE_TRACE",
                            "engine_name": engine_name,
                            "engine_version": engine_version,
                            "input_fingerprint": fp,
                            "error_code": getattr(exc, "code", type(exc).__name__),
                            "function": func.__qualname__,
                        },
                    )
                    raise
                duration_ms = round((time.monotonic() - t0) * 1000, 2)

                _logger.info(
                    "ENGINE_TRACE",
                    extra={
                        "trace_type": "ENGINE_TRACE",
                        "engine_name": engine_name,
                        "engine_version": engine_version,
                        "input_fingerprint": fp,
                        "record_counts": _record_counts(arguments, fingerprint_fields),
                        "duration_ms": duration_ms,
                        "function": func.__qualname__,
                    },
                )
            return result

        return wrapper

    return decorator

"""
Structured JSON logging for the procurement kernel.

Every record is one JSON object carrying ``ts``, ``level``, ``logger`` and
``message``, the active report context, and any ``extra`` fields the
emitting code attached.

Report context fields (``LogContext``):

    correlation_id  Caller's request id, set by the API layer.
    actor_id        FPO staff user or service account that asked for the report.
    fpo_id          FPO the report is scoped to.  Traced engines bind it
                    from ``filters.fpo_id`` when the caller has not.
    report_id       ``<engine>:<start>/<end>`` for windowed engine calls.
                    Traced engines bind it unless the caller already set
                    one (e.g. a monthly export run), which then wins.

Loggers live under ``procurement_kernel`` (``get_logger("engines.ledger")``
-> ``procurement_kernel.engines.ledger``).
"""

__all__ = [
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextvars import ContextVar, Token
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Report context
# ---------------------------------------------------------------------------

_CONTEXT_FIELDS = ("correlation_id", "actor_id", "fpo_id", "report_id")

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"procurement_log_{name}", default=None) for name in _CONTEXT_FIELDS
}


def _check_fields(fields: dict[str, Any]) -> None:
    unknown = set(fields) - set(_CONTEXT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown log context fields: {sorted(unknown)}")


class LogContext:
    """Context-local report fields, safe across threads and asyncio tasks."""

    _FIELD_NAMES = _CONTEXT_FIELDS

    @classmethod
    def set(
        cls,
        *,
        correlation_id: str | None = None,
        actor_id: str | None = None,
        fpo_id: str | None = None,
        report_id: str | None = None,
    ) -> None:
        """Set context fields. ``None`` leaves a field as it is."""
        values = {
            "correlation_id": correlation_id,
            "actor_id": actor_id,
            "fpo_id": fpo_id,
            "report_id": report_id,
        }
        for name, value in values.items():
            if value is not None:
                _context_vars[name].set(value)

    @classmethod
    def get_all(cls) -> dict[str, str]:
        """Non-None context fields."""
        return {
            name: var.get() for name, var in _context_vars.items() if var.get() is not None
        }

    @classmethod
    def clear(cls) -> None:
        for var in _context_vars.values():
            var.set(None)

    @classmethod
    def bind(cls, **fields: str | None) -> "_BoundContext":
        """Set fields for a ``with`` block and restore the previous values on exit."""
        _check_fields(fields)
        return _BoundContext(fields)

    @classmethod
    def report_scope(
        cls,
        report_id: str | None = None,
        fpo_id: str | None = None,
    ) -> "_BoundContext":
        """
        Bind ``report_id`` / ``fpo_id`` only where the caller has not.

        Used around engine calls: a report run that set its own id keeps
        it, and nested engine calls do not overwrite the outer report.
        """
        current = cls.get_all()
        fields = {
            name: value
            for name, value in (("report_id", report_id), ("fpo_id", fpo_id))
            if name not in current
        }
        return _BoundContext(fields)


class _BoundContext:
    """Context manager returned by ``LogContext.bind`` and ``report_scope``."""

    def __init__(self, fields: dict[str, str | None]):
        self._fields = {name: value for name, value in fields.items() if value is not None}
        self._tokens: list[tuple[str, Token]] = []

    def __enter__(self) -> type[LogContext]:
        for name, value in self._fields.items():
            self._tokens.append((name, _context_vars[name].set(value)))
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        while self._tokens:
            name, token = self._tokens.pop()
            _context_vars[name].reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}


class _JSONEncoder(json.JSONEncoder):
    """Dates as ISO strings, Decimals and Enums by value, anything else via str()."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, (datetime, date)):
            return obj.isoformat()
        if isinstance(obj, Decimal):
            return str(obj)
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, (set, frozenset)):
            return sorted(obj, key=str)
        return str(obj)


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(LogContext.get_all())

        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = val

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            if hasattr(exc, "code"):
                payload["exc_code"] = exc.code
            # structured fields of ProcurementEngineError subclasses
            for k, v in vars(exc).items():
                if not k.startswith("_") and k not in ("args", "code"):
                    payload[f"exc_{k}"] = v
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, cls=_JSONEncoder)


# ---------------------------------------------------------------------------
# Logger factory and initialization
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "procurement_kernel"

_configured = False
_lock = threading.Lock()


def get_logger(name: str) -> logging.Logger:
    """Logger under the procurement_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the procurement_kernel logger (idempotent)."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)
    root_logger.propagate = False

    h = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    root_logger.addHandler(h)


def reset_logging() -> None:
    """Reset logging configuration. FOR TESTING ONLY."""
    global _configured
    with _lock:
        _configured = False
    logger = logging.getLogger(_LOGGER_PREFIX)
    logger.handlers.clear()
    logger.setLevel(logging.WARNING)
    logger.propagate = True

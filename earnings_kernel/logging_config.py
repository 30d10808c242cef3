"""
Structured JSON logging for the earnings reconciliation engine.

Every record is written as one JSON object per line. Request-scoped
identifiers (the order, campaign or hub being reconciled, plus the
correlation id of a batch run) are held in context variables and merged
into each record, so aggregator code only passes event-specific data
through ``extra=``.

Monetary values travel as ``Decimal`` and are rendered as strings; they
are never converted to float on the way out.
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
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

_NAMESPACE = "earnings"

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "actor_id",
    "order_id",
    "campaign_id",
    "hub_id",
)

_context_vars: dict[str, ContextVar[str | None]] = {
    field: ContextVar(f"earnings_log_{field}", default=None)
    for field in CONTEXT_FIELDS
}


class LogContext:
    """Request-scoped identifiers merged into every log record.

    Backed by ``ContextVar`` so values are isolated per thread and per
    asyncio task. Unknown field names are ignored.
    """

    @staticmethod
    def set(**fields: str | None) -> None:
        """Set the given fields. ``None`` values leave the field untouched."""
        for name, value in fields.items():
            var = _context_vars.get(name)
            if var is not None and value is not None:
                var.set(str(value))

    @staticmethod
    def get_all() -> dict[str, str]:
        return {
            name: value
            for name, var in _context_vars.items()
            if (value := var.get()) is not None
        }

    @staticmethod
    def clear() -> None:
        for var in _context_vars.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """Set fields for the duration of a ``with`` block, then restore them."""
        tokens = [
            (var, var.set(str(value)))
            for name, value in fields.items()
            if value is not None and (var := _context_vars.get(name)) is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# JSON formatter
# ---------------------------------------------------------------------------

_RESERVED_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (UUID, Decimal)):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    return str(obj)


class StructuredFormatter(logging.Formatter):
    """One JSON object per record.

    Precedence: base fields, then LogContext, then ``extra=`` fields that
    do not collide with either.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }

        for key, value in vars(record).items():
            if key not in _RESERVED_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))

        return json.dumps(payload, default=_json_default)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # EarningsError subclasses carry their context as public attributes.
        for name, value in vars(exc).items():
            if not name.startswith("_") and name != "code":
                fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``earnings`` namespace, e.g. ``earnings.services.billing``."""
    return logging.getLogger(f"{_NAMESPACE}.{name}")


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------

_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``earnings`` logger. Later calls are no-ops."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

        root = logging.getLogger(_NAMESPACE)
        root.setLevel(level)
        root.propagate = False
        if handler is None:
            handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())
        root.addHandler(handler)


def reset_logging() -> None:
    """Undo configure_logging(). Intended for tests."""
    global _configured
    with _lock:
        _configured = False
        root = logging.getLogger(_NAMESPACE)
        for handler in list(root.handlers):
            root.removeHandler(handler)
        root.setLevel(logging.WARNING)

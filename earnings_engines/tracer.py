"""
Invocation tracing for the pure calculation layer.

``@traced_engine`` logs one ``EARNINGS_ENGINE_TRACE`` record per successful
call. The record names the engine and its version and carries a short
fingerprint of the selected keyword inputs, so two runs over the same
campaign window can be matched up in the logs. Engines stay free of I/O;
the only side effect is the log record.

    @traced_engine("delivery_goals", "1.0", fingerprint_fields=("start_date", "end_date"))
    def compute_delivery_goals(placements, *, start_date, end_date, channels):
        ...
"""

from __future__ import annotations

import functools
import hashlib
import json
import time
from collections.abc import Callable, Mapping
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from earnings_kernel.logging_config import get_logger

logger = get_logger("engines.tracer")

TRACE_EVENT = "EARNINGS_ENGINE_TRACE"
_FINGERPRINT_LENGTH = 16


def _stable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (Decimal, date)):
        return str(value)
    if isinstance(value, Mapping):
        return {str(k): _stable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_stable(v) for v in value]
    return value


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: Mapping[str, Any],
) -> str:
    """Truncated SHA-256 over the named keyword inputs. Missing ones hash as null."""
    selected = {field: _stable(kwargs.get(field)) for field in fingerprint_fields}
    canonical = json.dumps(selected, sort_keys=True, default=str, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:_FINGERPRINT_LENGTH]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fingerprint = (
                compute_input_fingerprint(fingerprint_fields, kwargs)
                if fingerprint_fields
                else ""
            )
            started = time.perf_counter()
            result = func(*args, **kwargs)
            logger.info(
                TRACE_EVENT,
                extra={
                    "trace_type": TRACE_EVENT,
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fingerprint,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator

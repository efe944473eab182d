"""
resale_engines.tracer -- one RESALE_ENGINE_TRACE record per engine call.

    @traced_engine("invoice_aggregation", "1.0", fingerprint_fields=("tax_rate",))
    def aggregate_invoice(*, orders, tax_rate, other_expenses): ...

The record carries the engine name and version, a fingerprint of the named
keyword arguments and the call duration.  A call that raises is traced with
``failed: true`` and the exception propagates unchanged.
"""

from __future__ import annotations

import functools
import hashlib
import json
import time
from collections.abc import Callable
from dataclasses import asdict, is_dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from resale_kernel.logging_config import get_logger

logger = get_logger("engines.tracer")

TRACE_TYPE = "RESALE_ENGINE_TRACE"


def _plain(value: Any) -> Any:
    """json.dumps fallback: reduce domain values to comparable primitives."""
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(str(v) for v in value)
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    kwargs: dict[str, Any],
) -> str:
    """First 16 hex chars of SHA-256 over the named kwargs; missing means null."""
    selected = {name: kwargs.get(name) for name in fingerprint_fields}
    canonical = json.dumps(selected, sort_keys=True, default=_plain)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            trace = {
                "trace_type": TRACE_TYPE,
                "engine_name": engine_name,
                "engine_version": engine_version,
                "input_fingerprint": (
                    compute_input_fingerprint(fingerprint_fields, kwargs)
                    if fingerprint_fields else ""
                ),
                "function": func.__qualname__,
            }
            started = time.monotonic()
            try:
                result = func(*args, **kwargs)
            except Exception:
                trace["duration_ms"] = round((time.monotonic() - started) * 1000, 2)
                logger.warning(TRACE_TYPE, extra={**trace, "failed": True})
                raise
            trace["duration_ms"] = round((time.monotonic() - started) * 1000, 2)
            logger.info(TRACE_TYPE, extra=trace)
            return result

        return wrapper

    return decorator

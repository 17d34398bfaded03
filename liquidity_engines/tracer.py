"""
liquidity_engines.tracer -- Engine invocation tracer emitting LIQUIDITY_ENGINE_TRACE.

Responsibility:
    Provide a lightweight decorator (``@traced_engine``) that wraps pure
    engine invocations with structured trace logging.  The trace captures
    engine_name, engine_version, input_fingerprint (deterministic SHA-256
    hash of selected inputs) and duration_ms.

Architecture position:
    Engines -- infrastructure support for the pure calculation layer.
    Emits a log record only; never mutates inputs.

Invariants enforced:
    - Fingerprints are deterministic: dict keys are sorted, dataclasses are
      rendered field by field, and the hash is SHA-256 truncated to 16 hex
      chars.

Failure modes:
    - Fingerprint fields that are not parameters of the wrapped function are
      recorded as "null".
"""

from __future__ import annotations

import dataclasses
import functools
import hashlib
import inspect
import time
from collections.abc import Callable
from enum import Enum
from typing import Any

from liquidity_kernel.logging_config import get_logger

_logger = get_logger("engines.tracer")


def _canonicalize(value: Any) -> str:
    """Produce a stable string representation of a value for fingerprinting."""
    if value is None:
        return "null"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (bool, int)):
        return str(value)
    if isinstance(value, str):
        return value
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _canonicalize(
            {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
        )
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        return "{" + ",".join(f"{k}:{_canonicalize(v)}" for k, v in items) + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(_canonicalize(v) for v in value) + "]"
    return str(value)


def compute_input_fingerprint(
    fingerprint_fields: tuple[str, ...],
    arguments: dict[str, Any],
) -> str:
    """Deterministic 16-hex-char fingerprint of the named arguments."""
    parts = [
        f"{name}={_canonicalize(arguments.get(name))}" for name in fingerprint_fields
    ]
    return hashlib.sha256("|".join(parts).encode("utf-8")).hexdigest()[:16]


def traced_engine(
    engine_name: str,
    engine_version: str,
    fingerprint_fields: tuple[str, ...] = (),
) -> Callable:
    """Decorator that emits LIQUIDITY_ENGINE_TRACE for pure engine invocations.

    Args:
        engine_name: Engine identifier (e.g., "tranches_policy.loss").
        engine_version: Engine version (e.g., "1.0").
        fingerprint_fields: Parameter names (positional or keyword) to
            include in the input fingerprint hash.
    """

    def decorator(func: Callable) -> Callable:
        signature = inspect.signature(func)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            fp = ""
            if fingerprint_fields:
                bound = signature.bind_partial(*args, **kwargs)
                fp = compute_input_fingerprint(fingerprint_fields, dict(bound.arguments))

            t0 = time.monotonic()
            result = func(*args, **kwargs)
            duration_ms = round((time.monotonic() - t0) * 1000, 3)

            _logger.debug(
                "LIQUIDITY_ENGINE_TRACE",
                extra={
                    "trace_type": "LIQUIDITY_ENGINE_TRACE",
                    "engine_name": engine_name,
                    "engine_version": engine_version,
                    "input_fingerprint": fp,
                    "duration_ms": duration_ms,
                    "function": func.__qualname__,
                },
            )
            return result

        return wrapper

    return decorator

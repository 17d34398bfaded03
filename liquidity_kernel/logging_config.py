"""Structured JSON logging for the liquidity kernel."""

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
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any
from uuid import UUID

# ---------------------------------------------------------------------------
# Context propagation
# ---------------------------------------------------------------------------

# Fields a caller may bind. Anything else passed to set()/bind() is ignored.
CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "pool_id",
    "actor_id",
    "epoch_id",
    "tranche",
)

_context: ContextVar[MappingProxyType[str, Any]] = ContextVar(
    "liquidity_log_context", default=MappingProxyType({})
)


def _merged(fields: dict[str, Any]) -> MappingProxyType[str, Any]:
    current = dict(_context.get())
    current.update(
        (k, v) for k, v in fields.items() if k in CONTEXT_FIELDS and v is not None
    )
    return MappingProxyType(current)


class LogContext:
    """Thread-safe / async-safe holder for call-scoped log fields.

    The pool facade binds ``correlation_id``, ``pool_id`` and ``actor_id``
    once per public call; services bind ``epoch_id`` and ``tranche`` while
    they work on a specific epoch or tranche. The whole context is one
    immutable mapping, so a bind is undone by a single token reset.
    """

    @staticmethod
    def set(
        *,
        correlation_id: str | None = None,
        pool_id: str | None = None,
        actor_id: str | None = None,
        epoch_id: int | None = None,
        tranche: str | None = None,
    ) -> None:
        """Set context fields. Only non-None values are updated."""
        _context.set(
            _merged(
                {
                    "correlation_id": correlation_id,
                    "pool_id": pool_id,
                    "actor_id": actor_id,
                    "epoch_id": epoch_id,
                    "tranche": tranche,
                }
            )
        )

    @staticmethod
    def get_all() -> dict[str, Any]:
        """Return the bound fields in declaration order."""
        ctx = _context.get()
        return {name: ctx[name] for name in CONTEXT_FIELDS if name in ctx}

    @staticmethod
    def clear() -> None:
        _context.set(MappingProxyType({}))

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> "Iterator[type[LogContext]]":
        """Bind fields for the duration of a ``with`` block, then restore."""
        token = _context.set(_merged(fields))
        try:
            yield LogContext
        finally:
            _context.reset(token)


# ---------------------------------------------------------------------------
# JSON Formatter
# ---------------------------------------------------------------------------

_STDLIB_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "taskName"}

# Integers above this lose precision in JSON consumers that parse to double.
_MAX_SAFE_JSON_INT = 2**53 - 1


class _JSONEncoder(json.JSONEncoder):
    """Handle UUID, datetime, Enum and tuple-like values in log payloads."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, (set, frozenset)):
            return sorted(obj, key=str)
        return super().default(obj)


def _safe_value(val: Any) -> Any:
    """Render 96-bit amounts as strings so no JSON reader truncates them."""
    if isinstance(val, bool):
        return val
    if isinstance(val, int) and abs(val) > _MAX_SAFE_JSON_INT:
        return str(val)
    if isinstance(val, (list, tuple)):
        return [_safe_value(v) for v in val]
    return val


class StructuredFormatter(logging.Formatter):
    """Formats each log record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(
                record.created, tz=UTC
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        payload.update(LogContext.get_all())

        # Structured extra data (skip stdlib internal keys)
        for key, val in vars(record).items():
            if key not in _STDLIB_KEYS and key not in payload:
                payload[key] = _safe_value(val)

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            if hasattr(exc, "code"):
                payload["exc_code"] = exc.code
            # Structured fields carried by LiquidityKernelError subclasses
            for k, v in vars(exc).items():
                if not k.startswith("_") and k not in ("args", "code"):
                    payload[f"exc_{k}"] = _safe_value(v)
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, cls=_JSONEncoder, default=str)


# ---------------------------------------------------------------------------
# Logger factory
# ---------------------------------------------------------------------------

_LOGGER_PREFIX = "liquidity_kernel"


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the liquidity_kernel namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


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
    """Configure the liquidity_kernel logger hierarchy (idempotent)."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root_logger = logging.getLogger(_LOGGER_PREFIX)
    root_logger.setLevel(level)
    root_logger.propagate = False

    h = handler if handler is not None else logging.StreamHandler(
        stream or sys.stderr
    )
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

"""
Structured JSON logging for the ledger.

Every logger hands out from ``get_logger`` lives under the ``ledger_kernel``
namespace and writes one JSON object per line. Request-scoped fields
(correlation id, acting user, the entry/document being worked on, the
fiscal period) ride along in a ``ContextVar`` so services never thread
them through call signatures.
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
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Any
from uuid import UUID

NAMESPACE = "ledger_kernel"
HANDLER_NAME = "ledger_json"

CONTEXT_FIELDS = ("correlation_id", "actor_id", "entry_id", "document_id", "period_code")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("ledger_log_context", default=_EMPTY)


def _merged(current: Mapping[str, str], fields: dict[str, Any]) -> Mapping[str, str]:
    unknown = set(fields) - set(CONTEXT_FIELDS)
    if unknown:
        raise TypeError(f"Unknown log context field(s): {', '.join(sorted(unknown))}")
    updated = dict(current)
    updated.update({name: str(value) for name, value in fields.items() if value is not None})
    return MappingProxyType(updated)


class LogContext:
    """Request-scoped log fields, safe across threads and asyncio tasks."""

    @staticmethod
    def set(**fields: Any) -> None:
        """Overwrite the named fields for the rest of the current context. None is ignored."""
        _context.set(_merged(_context.get(), fields))

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_context.get())

    @staticmethod
    def clear() -> None:
        _context.set(_EMPTY)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Scope fields to a ``with`` block; the previous values come back on exit."""
        token = _context.set(_merged(_context.get(), fields))
        try:
            yield
        finally:
            _context.reset(token)


# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "taskName",
}


def _jsonable(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    """exc_type/exc_message plus exc_<name> for each public attribute of a LedgerError."""
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if name.startswith("_") or name == "code":
            continue
        fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: ts, level, logger, message, context, extras."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context.get())
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        )

        exc = record.exc_info[1] if record.exc_info else None
        if exc is not None:
            payload.update(_exception_fields(exc))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_jsonable)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{NAMESPACE}.{name}")


_setup_lock = threading.Lock()


def _namespace_logger() -> logging.Logger:
    return logging.getLogger(NAMESPACE)


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach the JSON handler to the ledger namespace.

    Safe to call repeatedly: once a ledger handler is attached, later calls
    are no-ops until ``reset_logging``. Records do not propagate to the
    root logger, so host applications keep their own formatting.
    """
    root = _namespace_logger()
    with _setup_lock:
        if any(h.get_name() == HANDLER_NAME for h in root.handlers):
            return
        target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        target.set_name(HANDLER_NAME)
        target.setFormatter(StructuredFormatter())
        root.addHandler(target)
        root.setLevel(level)
        root.propagate = False


def reset_logging() -> None:
    """Detach every handler from the ledger namespace (tests)."""
    root = _namespace_logger()
    with _setup_lock:
        for attached in list(root.handlers):
            root.removeHandler(attached)
        root.setLevel(logging.WARNING)

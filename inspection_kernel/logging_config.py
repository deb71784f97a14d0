"""
Structured logging for the inspection workflow.

Every record under the ``inspection_kernel`` logger is one JSON line.
Request-scoped fields (correlation id, actor, inspection, operation) live
in a ContextVar and are stamped onto each record, so they follow the call
into worker threads that copy the context (see ``bounded_call``).
"""

from __future__ import annotations

__all__ = [
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TextIO
from uuid import UUID

ROOT_LOGGER = "inspection_kernel"

CONTEXT_FIELDS = ("correlation_id", "actor_id", "inspection_id", "operation")

_fields: ContextVar[Mapping[str, str]] = ContextVar("inspection_log_fields", default={})


class LogContext:
    """Request-scoped log fields. Values are stored as strings; None is skipped."""

    @staticmethod
    def _merged(values: Mapping[str, Any]) -> dict[str, str]:
        merged = dict(_fields.get())
        for name, value in values.items():
            if name in CONTEXT_FIELDS and value is not None:
                merged[name] = str(value)
        return merged

    @classmethod
    def set(cls, **values: Any) -> None:
        _fields.set(cls._merged(values))

    @classmethod
    @contextmanager
    def bind(cls, **values: Any) -> Iterator[type[LogContext]]:
        """Set fields for the duration of the block, then restore."""
        token = _fields.set(cls._merged(values))
        try:
            yield cls
        finally:
            _fields.reset(token)

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_fields.get())

    @staticmethod
    def clear() -> None:
        _fields.set({})


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(str(v) for v in value)
    return str(value)


_RESERVED = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: envelope, context fields, then ``extra``."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_fields.get(),
        }
        payload.update(
            (key, value) for key, value in vars(record).items()
            if key not in _RESERVED and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_json_default)

    @staticmethod
    def _exception_fields(exc: BaseException) -> dict[str, Any]:
        # kernel errors expose code plus public attributes (missing, field, ...)
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        for key, value in vars(exc).items():
            if not key.startswith("_") and key != "args":
                fields[f"exc_{key}"] = value
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        return fields


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


_configured = False
_configure_lock = threading.Lock()


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: TextIO | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """Install one JSON handler on the ``inspection_kernel`` logger. Idempotent."""
    global _configured
    with _configure_lock:
        if _configured:
            return
        _configured = True

    target = handler or logging.StreamHandler(stream or sys.stderr)
    target.setFormatter(StructuredFormatter())
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(target)


def reset_logging() -> None:
    """Drop handlers so the next configure_logging call applies. Tests only."""
    global _configured
    with _configure_lock:
        _configured = False
    root = logging.getLogger(ROOT_LOGGER)
    root.handlers.clear()
    root.setLevel(logging.WARNING)

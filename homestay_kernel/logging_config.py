"""
Structured logging for the homestay kernel.

Responsibility:
    Renders every kernel log record as one JSON object per line.  Each line
    carries two layers of bound context: the request layer the portal binds
    for a call (correlation id, actor, operation) and the application layer
    the services bind while they hold an application's row lock
    (application id, number, district).

Architecture position:
    Kernel infrastructure.  Imports nothing from the kernel; every other
    module logs through ``get_logger``.

Invariants enforced:
    - Bound context wins over a record's ``extra`` fields of the same name.
    - Owner mobile numbers never reach a log line unmasked.
    - ``configure_logging`` installs at most one handler.

Audit relevance:
    ``correlation_id`` ties together the lines of one portal call, and
    ``application_number`` ties together the lines of one application
    across calls, so an officer's complaint can be traced from the number
    printed on the applicant's receipt.
"""

from __future__ import annotations

__all__ = [
    "CONTEXT_FIELDS",
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "mask_mobile",
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

CONTEXT_FIELDS = (
    "correlation_id",
    "operation",
    "actor_id",
    "actor_role",
    "application_id",
    "application_number",
    "district",
)

_context: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"homestay_log_{name}", default=None) for name in CONTEXT_FIELDS
}

# Personal data: masked wherever it appears as an extra field.
_MOBILE_FIELDS = frozenset({"owner_mobile", "mobile"})

_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "taskName",
}

_LOGGER_PREFIX = "homestay_kernel"


def mask_mobile(value: Any) -> Any:
    """Keep the last four digits of a mobile number."""
    if not isinstance(value, str) or len(value) <= 4:
        return value
    return "*" * (len(value) - 4) + value[-4:]


class LogContext:
    """
    Context fields attached to every log line.

    Contract:
        Fields are limited to ``CONTEXT_FIELDS``; values are stored as
        strings and ``None`` leaves a field as it was.

    Guarantees:
        - ``bind`` restores the previous values on exit, also on error.
        - Values live in context variables, so threads and tasks never see
          each other's context.
    """

    @staticmethod
    def current() -> dict[str, str]:
        """The bound fields that have a value."""
        values = {name: var.get() for name, var in _context.items()}
        return {name: value for name, value in values.items() if value is not None}

    @staticmethod
    def clear() -> None:
        for var in _context.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """Bind fields for the duration of a ``with`` block.

        Raises:
            ValueError: a field name is not in ``CONTEXT_FIELDS``.
        """
        unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
        if unknown:
            raise ValueError(f"Unknown log context field(s): {', '.join(unknown)}")
        tokens = [
            (_context[name], _context[name].set(str(value)))
            for name, value in fields.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)

    @classmethod
    def bind_application(cls, application: Any):
        """Bind the id, number and district of an application row or view."""
        return cls.bind(
            application_id=application.id,
            application_number=application.application_number,
            district=application.district,
        )


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return str(value)


def _error_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    # Kernel errors carry a stable code and structured attributes.
    if hasattr(exc, "code"):
        fields["exc_code"] = exc.code
        for key, value in vars(exc).items():
            if not key.startswith("_") and key not in ("args", "code"):
                fields[f"exc_{key}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON line: envelope, bound context, extra fields, then the error."""

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.current(),
        }
        for key, value in vars(record).items():
            if key in _RECORD_ATTRS or key in line:
                continue
            line[key] = mask_mobile(value) if key in _MOBILE_FIELDS else value

        if record.exc_info and record.exc_info[1] is not None:
            line.update(_error_fields(record.exc_info[1]))
            line["traceback"] = self.formatException(record.exc_info)

        return json.dumps(line, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``homestay_kernel`` namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Install the JSON handler on the kernel logger.  Later calls are no-ops."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False
    installed = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
    installed.setFormatter(StructuredFormatter())
    root.addHandler(installed)


def reset_logging() -> None:
    """Remove the installed handler so tests can configure again."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)

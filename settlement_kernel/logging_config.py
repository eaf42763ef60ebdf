"""
Settlement event logging.

Every settlement log line is one JSON object: timestamp, level, logger,
the snake_case event name as ``message``, the ids bound for the current
operation, then the ``extra={...}`` fields of the call.  Amounts, dates,
ids and enums in ``extra`` are rendered as strings so log lines can be
compared against stored values.

    with LogContext.bind(actor_id=actor_id, request_id=request.id):
        logger.info("payment_request_completed", extra={"amount": str(amount)})

A ``SettlementError`` logged with ``exc_info`` contributes its ``code`` and
structured attributes as ``exc_*`` fields.
"""

import json
import logging
import sys
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

_LOGGER_PREFIX = "settlement_kernel"

# Ids a service binds around one operation
BOUND_FIELDS = ("actor_id", "request_id", "source_id")

_bound: ContextVar[Mapping[str, str]] = ContextVar("settlement_log_bound", default={})


class LogContext:
    """Operation-scoped ids attached to every log line (contextvar backed)."""

    @staticmethod
    @contextmanager
    def bind(**ids: Any) -> Iterator[None]:
        """Attach ``ids`` for the duration of the block; ``None`` values are skipped."""
        unknown = set(ids) - set(BOUND_FIELDS)
        if unknown:
            raise ValueError(f"Cannot bind log fields: {', '.join(sorted(unknown))}")
        merged = dict(_bound.get())
        merged.update({k: str(v) for k, v in ids.items() if v is not None})
        token = _bound.set(merged)
        try:
            yield
        finally:
            _bound.reset(token)

    @staticmethod
    def get_all() -> dict[str, str]:
        return dict(_bound.get())

    @staticmethod
    def clear() -> None:
        _bound.set({})


def _to_json(value: Any) -> Any:
    match value:
        case Enum():
            return value.value
        case datetime() | date():
            return value.isoformat()
        case Decimal() | UUID():
            return str(value)
    return repr(value)


_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_bound.get(),
        }
        payload.update(
            (key, val) for key, val in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        )

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            code = getattr(exc, "code", None)
            if code is not None:
                payload["exc_code"] = code
                payload.update(
                    (f"exc_{k}", v) for k, v in vars(exc).items() if not k.startswith("_")
                )
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``settlement_kernel`` namespace."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Install the JSON handler on the settlement logger tree once per process."""
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    root = logging.getLogger(_LOGGER_PREFIX)
    root.setLevel(level)
    root.propagate = False
    h = handler or logging.StreamHandler(stream or sys.stderr)
    h.setFormatter(StructuredFormatter())
    root.addHandler(h)


def reset_logging() -> None:
    """Remove the handler and allow reconfiguration. Tests only."""
    global _configured
    with _lock:
        _configured = False
    root = logging.getLogger(_LOGGER_PREFIX)
    root.handlers.clear()
    root.setLevel(logging.WARNING)

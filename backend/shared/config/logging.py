"""
Structured logging for the floor API.

Every call takes keyword context:

    logger.info("Line merged", session_id=12, line_id=40, quantity=3)

In production records are rendered as one JSON object per line. The floor
identifiers (table, session, line) are lifted to top-level keys so log
queries can follow a single table or session across requests. In
development a colored single-line format is used instead.

The request id set by CorrelationIdMiddleware is attached to every record.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings

# Context keys promoted out of "context" in JSON output
FLOOR_KEYS = ("table_id", "session_id", "line_id")

NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    return dict(getattr(record, "context", None) or {})


def _request_id(record: logging.LogRecord) -> str | None:
    request_id = getattr(record, "request_id", None)
    if request_id and request_id != "-":
        return request_id
    return None


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, for the log aggregator."""

    def format(self, record: logging.LogRecord) -> str:
        context = _record_context(record)
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in FLOOR_KEYS:
            if key in context:
                entry[key] = context.pop(key)

        request_id = _request_id(record)
        if request_id:
            entry["request_id"] = request_id
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if settings.debug:
            entry["where"] = f"{record.module}.{record.funcName}:{record.lineno}"

        return json.dumps(entry, default=str, ensure_ascii=False)


class DevelopmentFormatter(logging.Formatter):
    """Colored single-line output: `12:00:01 INFO  [mesa 5 venta 31] floor_api.orders: ...`."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def _floor_tag(self, context: dict[str, Any]) -> str:
        parts = []
        if "table_id" in context:
            parts.append(f"mesa {context.pop('table_id')}")
        if "session_id" in context:
            parts.append(f"venta {context.pop('session_id')}")
        return f"[{' '.join(parts)}] " if parts else ""

    def format(self, record: logging.LogRecord) -> str:
        context = _record_context(record)
        color = self.LEVEL_COLORS.get(record.levelno, self.RESET)
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        request_id = _request_id(record)
        rid = f"{self.DIM}{request_id[:8]}{self.RESET} " if request_id else ""

        line = (
            f"{self.DIM}{clock}{self.RESET} {color}{record.levelname:<5}{self.RESET} "
            f"{rid}{self._floor_tag(context)}{record.name}: {record.getMessage()}"
        )
        if context:
            line += " " + " ".join(f"{k}={v}" for k, v in context.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StructuredLogger(logging.Logger):
    """Logger whose level methods accept arbitrary keyword context."""

    def _log(
        self,
        level: int,
        msg: object,
        args: Any,
        exc_info: Any = None,
        extra: dict[str, Any] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **context: Any,
    ) -> None:
        extra = dict(extra or {})
        if context:
            extra["context"] = context
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """Install the stdout handler on the root logger. Called once by the lifespan."""
    from shared.infrastructure.correlation import CorrelationIdFilter

    level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(
        StructuredFormatter() if settings.environment == "production" else DevelopmentFormatter()
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name, noisy_level in NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)


def get_logger(name: str) -> StructuredLogger:
    """
    Usage:
        logger = get_logger(__name__)
        logger.info("Table released", table_id=5, staff_code="M01")
        logger.error("Dispatch failed", session_id=31, exc_info=True)
    """
    return logging.getLogger(name)  # type: ignore[return-value]


floor_logger = get_logger("floor_api")
orders_logger = get_logger("floor_api.orders")
tables_logger = get_logger("floor_api.tables")
kitchen_logger = get_logger("floor_api.kitchen")
stock_logger = get_logger("floor_api.stock")

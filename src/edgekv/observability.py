"""Structured logging for client requests.

Every request the client sends can be tagged with a request id and the store
it targets; both travel through context variables so paginators and nested
calls pick them up without threading them through every signature.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
store_id_var: ContextVar[str | None] = ContextVar("store_id", default=None)


class LogLevel(str, Enum):
    """Log levels matching Python's logging module."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass
class LogContext:
    """Context attached to every log entry."""

    request_id: str | None = None
    store_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def current(cls) -> "LogContext":
        """Build a context from the context variables."""
        return cls(request_id=request_id_var.get(), store_id=store_id_var.get())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        result: dict[str, Any] = {}
        if self.request_id:
            result["request_id"] = self.request_id
        if self.store_id:
            result["store_id"] = self.store_id
        result.update(self.extra)
        return result


class StructuredFormatter(logging.Formatter):
    """Formats log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        context = LogContext.current().to_dict()
        if hasattr(record, "context") and isinstance(record.context, dict):
            context.update(record.context)

        data: dict[str, Any] = {
            "level": record.levelname,
            "message": record.getMessage(),
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "logger": record.name,
        }
        if context:
            data["context"] = context
        if record.exc_info and record.exc_info[1] is not None:
            data["error"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }
        duration_ms = getattr(record, "duration_ms", None)
        if duration_ms is not None:
            data["duration_ms"] = round(duration_ms, 3)
        return json.dumps(data)


class StructuredLogger:
    """Thin wrapper over a stdlib logger that accepts structured context.

    Example:
        logger = get_logger("edgekv.client")
        logger.debug("GET /resources/stores/kv", context={"status": 200})
    """

    def __init__(self, name: str) -> None:
        self.logger = logging.getLogger(name)

    def _log(
        self,
        level: LogLevel,
        message: str,
        context: dict[str, Any] | None = None,
        error: Exception | None = None,
        duration_ms: float | None = None,
    ) -> None:
        extra: dict[str, Any] = {}
        if context:
            extra["context"] = context
        if duration_ms is not None:
            extra["duration_ms"] = duration_ms

        log_func = getattr(self.logger, level.value.lower())
        if error:
            log_func(message, exc_info=(type(error), error, error.__traceback__), extra=extra)
        else:
            log_func(message, extra=extra)

    def debug(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        duration_ms: float | None = None,
    ) -> None:
        """Log at DEBUG level."""
        self._log(LogLevel.DEBUG, message, context, duration_ms=duration_ms)

    def info(self, message: str, context: dict[str, Any] | None = None) -> None:
        """Log at INFO level."""
        self._log(LogLevel.INFO, message, context)

    def warning(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        error: Exception | None = None,
        duration_ms: float | None = None,
    ) -> None:
        """Log at WARNING level."""
        self._log(LogLevel.WARNING, message, context, error, duration_ms)

    def error(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        """Log at ERROR level."""
        self._log(LogLevel.ERROR, message, context, error)


class RequestContext:
    """Context manager that tags logs with a request id and store id.

    Example:
        with RequestContext(store_id=store.store_id):
            client.delete_kv_store_key(...)
    """

    def __init__(self, request_id: str | None = None, store_id: str | None = None) -> None:
        self.request_id = request_id or str(uuid.uuid4())
        self.store_id = store_id
        self._tokens: list[tuple[ContextVar, Any]] = []

    def __enter__(self) -> "RequestContext":
        self._tokens.append((request_id_var, request_id_var.set(self.request_id)))
        if self.store_id:
            self._tokens.append((store_id_var, store_id_var.set(self.store_id)))
        return self

    def __exit__(self, *args: Any) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()


class Timer:
    """Context manager for timing a request."""

    def __init__(self) -> None:
        self.start_time: float = 0
        self.end_time: float = 0

    @property
    def duration_ms(self) -> float:
        """Get duration in milliseconds."""
        return (self.end_time - self.start_time) * 1000

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, *args: Any) -> None:
        self.end_time = time.perf_counter()


def configure_logging(
    level: LogLevel | str = LogLevel.INFO,
    format: str = "json",
) -> None:
    """Configure the edgekv logger hierarchy.

    Args:
        level: Minimum log level
        format: Output format ("json" or "text")
    """
    level = LogLevel(level.upper()) if isinstance(level, str) else level

    root_logger = logging.getLogger("edgekv")
    root_logger.setLevel(level.value)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if format == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))
    root_logger.addHandler(handler)


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger for a module (typically __name__)."""
    return StructuredLogger(name)

"""
Structured logging for the fan-out service.

Every module gets its logger through ``get_logger(__name__)`` and passes
context as keyword arguments:

    logger.warning("Push failed", connection_id=mask_connection_id(cid), reason=reason)

Production emits one JSON object per line; development emits colored,
single-line records. Both include the invocation id bound by
shared.infrastructure.correlation, so all lines of one trigger group
together.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings

SERVICE_NAME = "ws-fanout"

# Third-party loggers that are too chatty at DEBUG/INFO
_NOISY_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "websockets": logging.INFO,
}


def _invocation_id(record: logging.LogRecord) -> str | None:
    value = getattr(record, "request_id", None)
    return value if value and value != "-" else None


def _context(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "extra_data", None) or {}


class StructuredFormatter(logging.Formatter):
    """JSON lines for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "env": settings.environment,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        invocation_id = _invocation_id(record)
        if invocation_id:
            entry["invocation_id"] = invocation_id

        context = _context(record)
        if context:
            entry["ctx"] = context

        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        if settings.debug:
            entry["at"] = f"{record.module}:{record.funcName}:{record.lineno}"

        return json.dumps(entry, default=str, ensure_ascii=False)


class DevelopmentFormatter(logging.Formatter):
    """Colored single-line records for a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]

        parts = [f"{self.DIM}{clock}{self.RESET}", f"{color}{record.levelname[:4]}{self.RESET}"]

        invocation_id = _invocation_id(record)
        if invocation_id:
            parts.append(f"{self.DIM}{invocation_id[:8]}{self.RESET}")

        parts.append(f"{record.name.removeprefix('ws_fanout.')}: {record.getMessage()}")

        context = _context(record)
        if context:
            parts.append(
                f"{self.DIM}" + " ".join(f"{key}={value}" for key, value in context.items()) + self.RESET
            )

        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class StructuredLogger(logging.Logger):
    """
    Logger whose level methods accept keyword context.

    Keywords other than the stdlib ones (``exc_info``, ``stack_info``,
    ``extra``) end up in ``record.extra_data``.
    """

    _STDLIB_KWARGS = ("exc_info", "stack_info", "extra")

    def _emit(self, level: int, msg: str, args: tuple, kwargs: dict[str, Any]) -> None:
        if not self.isEnabledFor(level):
            return
        stdlib = {key: kwargs.pop(key) for key in self._STDLIB_KWARGS if key in kwargs}
        extra = dict(stdlib.pop("extra", None) or {})
        extra["extra_data"] = kwargs or None
        # stacklevel=3 attributes the record to the caller of debug()/info()/...
        self._log(level, msg, args, extra=extra, stacklevel=3, **stdlib)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit(logging.DEBUG, msg, args, kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit(logging.INFO, msg, args, kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit(logging.WARNING, msg, args, kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit(logging.ERROR, msg, args, kwargs)

    def critical(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._emit(logging.CRITICAL, msg, args, kwargs)


logging.setLoggerClass(StructuredLogger)


def setup_logging(level: int | None = None) -> None:
    """
    Install the root handler. Call once at process start (lifespan or CLI).

    Args:
        level: Override for the root level; defaults to DEBUG when
            ``settings.debug`` is set, INFO otherwise.
    """
    from shared.infrastructure.correlation import CorrelationIdFilter

    if level is None:
        level = logging.DEBUG if settings.debug else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(
        StructuredFormatter() if settings.environment == "production" else DevelopmentFormatter()
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name, noisy_level in _NOISY_LOGGERS.items():
        logging.getLogger(name).setLevel(noisy_level)


def get_logger(name: str) -> StructuredLogger:
    """
    Logger for ``name`` (normally ``__name__``).

    Usage:
        from shared.config.logging import get_logger
        logger = get_logger(__name__)
        logger.info("Connection registered", connection_id="abc123")
    """
    return logging.getLogger(name)  # type: ignore[return-value]


def mask_connection_id(connection_id: str | None) -> str:
    """First 8 characters of a connection id, for per-push log lines."""
    if not connection_id:
        return "<no-connection>"
    if len(connection_id) <= 8:
        return connection_id
    return f"{connection_id[:8]}..."


# Logger for the application entry point
ws_fanout_logger = get_logger("ws_fanout")

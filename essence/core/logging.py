"""
Structured logging.

Features:
- JSON formatted logs for log aggregation
- Request context (correlation id, owner id) on every record
- Structured fields via ``extra=``
- Provider call timing
"""

import asyncio
import json
import logging
import sys
import time
from datetime import datetime, timezone
from contextvars import ContextVar
from functools import wraps

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")
owner_id_var: ContextVar[str] = ContextVar("owner_id", default="")

# Attributes every LogRecord carries; anything else came in through extra=
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime", "correlation_id", "owner_id"}

_DEV_FORMAT = "%(asctime)s %(levelname)-7s [%(correlation_id)s] %(name)s: %(message)s"


class RequestContextFilter(logging.Filter):
    """Copies the request context onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or "-"
        record.owner_id = owner_id_var.get() or None
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def __init__(self, service_name: str = "essence-voice"):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": self.service_name,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
        }
        owner_id = getattr(record, "owner_id", None)
        if owner_id:
            log_data["owner_id"] = owner_id

        log_data.update(
            (key, value)
            for key, value in record.__dict__.items()
            if key not in _RESERVED_ATTRS and not key.startswith("_")
        )

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    service_name: str = "essence-voice",
) -> None:
    """
    Configure the root logger.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: JSON lines for production, a readable line otherwise
        service_name: Service name stamped on JSON records
    """
    log_level = getattr(logging, level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(RequestContextFilter())
    if json_format:
        handler.setFormatter(JSONFormatter(service_name=service_name))
    else:
        handler.setFormatter(logging.Formatter(_DEV_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Chatty libraries
    for name in ("uvicorn.access", "httpx", "httpcore", "sqlalchemy.engine"):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def set_owner_id(owner_id: str) -> None:
    """Attach the authenticated owner to log records of this request."""
    owner_id_var.set(owner_id)


def log_execution_time(logger: logging.Logger):
    """Log how long a coroutine took. Failures are logged at WARNING and re-raised."""

    def decorator(func):
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"{func.__name__} must be a coroutine function")

        @wraps(func)
        async def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                logger.warning(
                    "%s failed after %.1f ms",
                    func.__qualname__,
                    (time.perf_counter() - started) * 1000,
                    extra={"operation": func.__name__, "error": str(e)},
                )
                raise
            logger.debug(
                "%s took %.1f ms",
                func.__qualname__,
                (time.perf_counter() - started) * 1000,
                extra={"operation": func.__name__},
            )
            return result

        return wrapper

    return decorator

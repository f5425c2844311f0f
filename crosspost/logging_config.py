"""
Crosspost Logging Configuration
Structured logging with bound context, so every line about a draft carries its id
"""
import logging
import sys
import json
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from functools import wraps
import time
import os

LOG_LEVEL = os.environ.get("CROSSPOST_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = os.environ.get("CROSSPOST_LOG_FORMAT", "json")  # json or text

# Calls to Upload-Post slower than this are logged at warning level
SLOW_CALL_MS = float(os.environ.get("CROSSPOST_SLOW_CALL_MS", "5000"))


class JsonFormatter(logging.Formatter):
    """One JSON object per line: level, logger, message, then the context fields"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(getattr(record, "context", {}))
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        line = (
            f"{color}[{datetime.now(timezone.utc):%H:%M:%S}] [{record.levelname}]{self.RESET} "
            f"{record.name}: {record.getMessage()}"
        )
        context = getattr(record, "context", {})
        pairs = " ".join(f"{k}={v}" for k, v in context.items() if k != "traceback")
        if pairs:
            line += f" \033[90m({pairs}){self.RESET}"
        return line


def _configure(logger: logging.Logger):
    if logger.handlers:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter() if LOG_FORMAT == "json" else ConsoleFormatter())
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    logger.propagate = False


class StructuredLogger:
    """
    Thin wrapper over a stdlib logger that takes context as keyword arguments.

    ``bind`` returns a child that repeats the given fields on every line:

        log = publish_logger.bind(draft_id=draft.id)
        log.info("Draft submitted", job_ref=job_ref)
    """

    def __init__(self, name: str, context: Optional[Dict[str, Any]] = None):
        self.name = name
        self.logger = logging.getLogger(name)
        self.context = dict(context or {})
        _configure(self.logger)

    def bind(self, **context) -> "StructuredLogger":
        return StructuredLogger(self.name, {**self.context, **context})

    def _log(self, level: int, message: str, context: Dict[str, Any]):
        if self.logger.isEnabledFor(level):
            self.logger.log(level, message, extra={"context": {**self.context, **context}})

    def debug(self, message: str, **context):
        self._log(logging.DEBUG, message, context)

    def info(self, message: str, **context):
        self._log(logging.INFO, message, context)

    def warning(self, message: str, **context):
        self._log(logging.WARNING, message, context)

    def error(self, message: str, error: Optional[Exception] = None, **context):
        if error:
            context["error_type"] = type(error).__name__
            context["error_message"] = str(error)
            context["traceback"] = "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            )
        self._log(logging.ERROR, message, context)


def timed(logger: StructuredLogger):
    """Log how long a call took; warn when it was slow or raised"""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.warning(
                    f"{func.__name__} failed",
                    call=func.__qualname__,
                    error_type=type(e).__name__,
                    duration_ms=round((time.perf_counter() - start) * 1000, 2),
                )
                raise
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            if duration_ms >= SLOW_CALL_MS:
                logger.warning(f"{func.__name__} was slow", call=func.__qualname__, duration_ms=duration_ms)
            else:
                logger.debug(f"{func.__name__} completed", call=func.__qualname__, duration_ms=duration_ms)
            return result
        return wrapper
    return decorator


_loggers: Dict[str, StructuredLogger] = {}


def get_logger(name: str) -> StructuredLogger:
    """Shared logger under the ``crosspost.`` namespace"""
    if name not in _loggers:
        _loggers[name] = StructuredLogger(f"crosspost.{name}")
    return _loggers[name]


api_logger = get_logger("api")
publish_logger = get_logger("publishing")
sync_logger = get_logger("sync")
upstream_logger = get_logger("upstream")

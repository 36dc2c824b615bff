"""
Structured logging for the API, the sync jobs and the scripts.

Every log call takes keyword fields (``logger.info("Movie created", movie_id=3)``).
Fields bound with ``bind_context`` (the request id, the sync run id) are attached
to every record emitted inside that block, including records from threadpool
endpoints, since the context lives in a ContextVar.
"""

import json
import logging
import sys
import time
import traceback
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Dict, Optional

from moviedb.config.settings import Settings, get_settings

_bound_context: ContextVar[Dict[str, Any]] = ContextVar("moviedb_log_context", default={})

# Chatty third-party loggers kept at WARNING unless DEBUG is requested
NOISY_LOGGERS = ("urllib3", "httpx", "multipart", "uvicorn.access")


class StructuredFormatter(logging.Formatter):
    """One JSON object per line"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(getattr(record, "fields", {}))

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human readable lines with the structured fields appended as key=value"""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = getattr(record, "fields", None)
        if fields:
            line += " | " + " ".join(f"{k}={v}" for k, v in fields.items())
        return line


class LoggerService:
    """Configures the root logger once and hands out ContextLoggers"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._loggers: Dict[str, "ContextLogger"] = {}
        self.configure()

    def configure(self):
        level = getattr(logging, self.settings.log_level.upper(), logging.INFO)
        root = logging.getLogger()
        root.setLevel(level)

        for handler in root.handlers[:]:
            root.removeHandler(handler)

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(StructuredFormatter() if self.settings.log_format.lower() == "json" else TextFormatter())
        root.addHandler(handler)

        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(level if level <= logging.DEBUG else max(level, logging.WARNING))
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if self.settings.db_echo else logging.WARNING)

    def get_logger(self, name: str) -> "ContextLogger":
        if name not in self._loggers:
            self._loggers[name] = ContextLogger(logging.getLogger(f"moviedb.{name}"))
        return self._loggers[name]


class ContextLogger:
    """Logger wrapper taking structured fields as keyword arguments"""

    def __init__(self, logger: logging.Logger, fields: Optional[Dict[str, Any]] = None):
        self._logger = logger
        self._fields = fields or {}

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(self, level: int, message: str, exc_info: bool = False, **kwargs):
        if not self._logger.isEnabledFor(level):
            return

        fields = {**_bound_context.get(), **self._fields, **kwargs}
        record = self._logger.makeRecord(
            self._logger.name, level, "", 0, message, (), sys.exc_info() if exc_info else None
        )
        record.fields = fields
        self._logger.handle(record)

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log(logging.ERROR, message, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log at ERROR with the active exception's traceback"""
        self._log(logging.ERROR, message, exc_info=True, **kwargs)

    def bind(self, **fields) -> "ContextLogger":
        """Logger that always adds these fields"""
        return ContextLogger(self._logger, {**self._fields, **fields})


@contextmanager
def bind_context(**fields):
    """Attach fields to every record logged inside the block"""
    token = _bound_context.set({**_bound_context.get(), **fields})
    try:
        yield
    finally:
        _bound_context.reset(token)


def current_context() -> Dict[str, Any]:
    return dict(_bound_context.get())


def log_execution_time(logger_name: str = "performance"):
    """Log how long the wrapped call took, and whether it raised"""

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger(logger_name)
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                logger.warning(
                    f"{func.__name__} failed",
                    duration_ms=round((time.perf_counter() - started) * 1000, 1),
                    error=str(e),
                )
                raise

            logger.info(f"{func.__name__} finished", duration_ms=round((time.perf_counter() - started) * 1000, 1))
            return result

        return wrapper

    return decorator


def handle_exceptions(logger_name: str = "errors", context: Optional[str] = None):
    """Log the traceback of anything escaping the wrapped call, then re-raise"""

    def decorator(func):
        where = context or f"{func.__module__}.{func.__name__}"

        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                get_logger(logger_name).exception(
                    f"Unhandled error in {where}", error_type=type(e).__name__, error=str(e)
                )
                raise

        return wrapper

    return decorator


_logger_service: Optional[LoggerService] = None


def get_logger_service() -> LoggerService:
    global _logger_service
    if _logger_service is None:
        _logger_service = LoggerService()
    return _logger_service


def get_logger(name: str) -> ContextLogger:
    """Convenience function to get a logger"""
    return get_logger_service().get_logger(name)

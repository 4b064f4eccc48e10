"""
Logging for the Book Builder service.

Every module logger hangs off a single ``book_builder`` logger that owns the
handlers: a colored console line for humans and, when LOG_FILE is set, one
JSON object per line for machines. Keyword arguments passed to the log
methods travel as structured fields; the id of the HTTP request being served
is attached automatically.
"""

import os
import sys
import json
import time
import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Dict, Optional

ROOT_LOGGER = "book_builder"

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def bind_request_id(request_id: Optional[str]):
    """Tag log lines emitted while serving a request. Returns a reset token."""
    return _request_id.set(request_id)


def release_request_id(token) -> None:
    _request_id.reset(token)


def _fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields = dict(getattr(record, "fields", None) or {})
    request_id = getattr(record, "request_id", None)
    if request_id and "request_id" not in fields:
        fields["request_id"] = request_id
    return fields


class JsonLineFormatter(logging.Formatter):
    """One JSON document per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "where": f"{record.module}:{record.lineno}",
        }
        fields = _fields(record)
        if fields:
            entry["fields"] = fields
        if record.exc_info and record.exc_info[0] is not None:
            entry["error"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }
        return json.dumps(entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Short colored lines: time, level, logger, message, then key=value fields."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, timezone.utc).strftime("%H:%M:%S")
        level = f"{record.levelname:<8}"
        if self.use_color:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        line = f"{stamp} {level} {record.name}: {record.getMessage()}"
        fields = _fields(record)
        if fields:
            line += " | " + " ".join(f"{key}={value}" for key, value in fields.items())
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if root.handlers:
        return root

    root.setLevel(getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO))

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ConsoleFormatter(use_color=sys.stdout.isatty()))
    root.addHandler(console)

    log_file = os.getenv("LOG_FILE")
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JsonLineFormatter())
        root.addHandler(file_handler)

    root.propagate = False
    return root


class BookLogger:
    """
    Thin wrapper over a ``logging.Logger`` that accepts structured fields
    as keyword arguments and offers helpers for the events this service
    cares about (HTTP requests, store calls, batch commits, structural
    changes and LLM calls).
    """

    def __init__(self, name: str):
        _configure_root()
        self.name = name
        short = name if name.startswith(ROOT_LOGGER) else f"{ROOT_LOGGER}.{name}"
        self.logger = logging.getLogger(short)

    def _emit(self, level: int, message: str, /, exc_info: bool = False, **fields) -> None:
        if not self.logger.isEnabledFor(level):
            return
        self.logger.log(
            level,
            message,
            exc_info=exc_info,
            extra={"fields": fields, "request_id": _request_id.get()},
            stacklevel=3,
        )

    def debug(self, message: str, /, **fields) -> None:
        self._emit(logging.DEBUG, message, **fields)

    def info(self, message: str, /, **fields) -> None:
        self._emit(logging.INFO, message, **fields)

    def warning(self, message: str, /, **fields) -> None:
        self._emit(logging.WARNING, message, **fields)

    def error(self, message: str, /, exc_info: bool = False, **fields) -> None:
        self._emit(logging.ERROR, message, exc_info=exc_info, **fields)

    def critical(self, message: str, /, exc_info: bool = False, **fields) -> None:
        self._emit(logging.CRITICAL, message, exc_info=exc_info, **fields)

    def request(self, method: str, path: str, status: int, duration_ms: float, **fields) -> None:
        level = logging.WARNING if status >= 500 else logging.INFO
        self._emit(level, f"{method} {path} -> {status}", status=status, duration_ms=round(duration_ms, 2), **fields)

    def store_op(self, op: str, path: str, duration_ms: float, **fields) -> None:
        self._emit(logging.DEBUG, f"store.{op} {path}", duration_ms=round(duration_ms, 2), **fields)

    def batch_commit(self, operations: int, duration_ms: float, **fields) -> None:
        self._emit(
            logging.INFO, f"batch committed ({operations} ops)",
            operations=operations, duration_ms=round(duration_ms, 2), **fields
        )

    def structure_change(self, action: str, level: str, entity_id: str, **fields) -> None:
        self._emit(logging.INFO, f"{action} {level} {entity_id}", **fields)

    def llm_call(self, model: str, prompt_tokens: int = None, response_tokens: int = None, **fields) -> None:
        self._emit(
            logging.INFO, f"LLM call to {model}",
            prompt_tokens=prompt_tokens, response_tokens=response_tokens, **fields
        )


_loggers: Dict[str, BookLogger] = {}


def get_logger(name: str) -> BookLogger:
    """Shared BookLogger for a module name."""
    if name not in _loggers:
        _loggers[name] = BookLogger(name)
    return _loggers[name]


def log_function_call(logger: Optional[BookLogger] = None):
    """
    Decorator timing a call at DEBUG level.

    Failures are logged with their traceback and re-raised unchanged.
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            log = logger or get_logger(func.__module__)
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                log.error(f"{func.__qualname__} failed: {e}", exc_info=True, error_type=type(e).__name__)
                raise
            log.debug(f"{func.__qualname__} done", duration_ms=round((time.perf_counter() - start) * 1000, 2))
            return result

        return wrapper
    return decorator

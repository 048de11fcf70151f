"""
Logging utilities for Replication Orchestrator

Provides structured logging configuration and utilities for the replication
orchestrator. Per-job context lives in a ContextVar so that concurrently
running pipelines each log their own database name and job id.
"""

import logging
import sys
import json
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from pathlib import Path

from .urls import redact_url

_log_context: ContextVar[Dict[str, Any]] = ContextVar("replication_log_context", default={})

_RESERVED_RECORD_KEYS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'message', 'exc_info', 'exc_text',
    'stack_info', 'taskName'
}


class StructuredFormatter(logging.Formatter):
    """
    Custom formatter for structured JSON logging.

    Formats log records as one JSON object per line, with any ``extra``
    fields and the current job context attached.
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        if self.include_extra:
            extra_fields = {
                key: value for key, value in record.__dict__.items()
                if key not in _RESERVED_RECORD_KEYS
            }
            if extra_fields:
                log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class JobContextFilter(logging.Filter):
    """
    Filter to add job context to log records.

    Copies database_name, job_id and any other values set through
    set_log_context or LoggerContext onto each record.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        """Add context to log record."""
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


class CredentialRedactionFilter(logging.Filter):
    """Mask passwords embedded in URLs before a record is emitted."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            record.msg = record.getMessage()
            record.args = None
        if isinstance(record.msg, str):
            record.msg = redact_url(record.msg)
        for key, value in list(record.__dict__.items()):
            if key not in _RESERVED_RECORD_KEYS and isinstance(value, str) and "@" in value:
                setattr(record, key, redact_url(value))
        return True


def setup_logger(
    name: str,
    level: str = "INFO",
    structured: bool = True,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Set up a logger with appropriate configuration.

    Progress output owns stdout, so console logs go to stderr.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        structured: Whether to use structured JSON logging
        log_file: Optional log file path

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if any(not isinstance(h, logging.NullHandler) for h in logger.handlers):
        return logger

    log_level = getattr(logging, level.upper())
    logger.setLevel(log_level)

    if structured:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    handlers = [logging.StreamHandler(sys.stderr)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        # Handler filters also see records propagated from child loggers
        handler.addFilter(JobContextFilter())
        handler.addFilter(CredentialRedactionFilter())
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def set_log_context(**kwargs):
    """
    Set context variables for the current task.

    Args:
        **kwargs: Context variables to set
    """
    context = dict(_log_context.get())
    context.update(kwargs)
    _log_context.set(context)


def get_log_context() -> Dict[str, Any]:
    """Return a copy of the current task's log context."""
    return dict(_log_context.get())


def clear_log_context():
    """Clear context variables for the current task."""
    _log_context.set({})


class LoggerContext:
    """
    Context manager for temporary log context.

    Sets context variables on entry and restores the previous ones on exit.
    """

    def __init__(self, **kwargs):
        self.context = kwargs
        self._token = None

    def __enter__(self):
        """Set temporary context."""
        context = dict(_log_context.get())
        context.update(self.context)
        self._token = _log_context.set(context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Restore old context."""
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

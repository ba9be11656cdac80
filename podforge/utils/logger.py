import contextvars
import json
import logging
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

_TRACE_ID: contextvars.ContextVar[str] = contextvars.ContextVar("trace_id", default="-")

# Set by configure_logging(); get_logger() adds no file handler until then.
_LOG_DIR: Optional[Path] = None
_LOG_LEVEL = logging.INFO


def new_trace_id() -> str:
    return uuid.uuid4().hex


def bind_trace_id(trace_id: Optional[str] = None) -> str:
    """Bind a correlation id to the current context, generating one if needed."""
    trace_id = trace_id or new_trace_id()
    _TRACE_ID.set(trace_id)
    return trace_id


def current_trace_id() -> str:
    return _TRACE_ID.get()


class TraceIdFilter(logging.Filter):
    """Stamps every record with the correlation id of the running context."""

    def filter(self, record):
        record.trace_id = _TRACE_ID.get()
        return True


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging."""
    def format(self, record):
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "line": record.lineno,
            "trace_id": getattr(record, "trace_id", "-"),
        }
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj)


def configure_logging(log_dir: Optional[str] = None, level: str = "INFO"):
    """Set the directory for the structured log file and the default level."""
    global _LOG_DIR, _LOG_LEVEL
    _LOG_LEVEL = logging.getLevelName(level.upper()) if isinstance(level, str) else level
    if log_dir:
        _LOG_DIR = Path(log_dir)
        _LOG_DIR.mkdir(parents=True, exist_ok=True)


def get_logger(name: str):
    """
    Get a configured logger instance.
    Writes structured JSON logs to file and text logs to stdout,
    both carrying the current trace id.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_LOG_LEVEL)

    # Avoid adding duplicate handlers if get_logger is called multiple times
    if logger.handlers:
        return logger

    trace_filter = TraceIdFilter()

    # Console Handler (Human readable)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(_LOG_LEVEL)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - [%(trace_id)s] %(message)s',
        datefmt='%H:%M:%S'
    ))
    console_handler.addFilter(trace_filter)
    logger.addHandler(console_handler)

    # File Handler (Structured JSON)
    if _LOG_DIR is not None:
        file_handler = logging.FileHandler(_LOG_DIR / 'podforge.json.log')
        file_handler.setLevel(_LOG_LEVEL)
        file_handler.setFormatter(JsonFormatter())
        file_handler.addFilter(trace_filter)
        logger.addHandler(file_handler)

    return logger

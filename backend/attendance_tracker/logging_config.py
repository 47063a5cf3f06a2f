"""
Structured JSON logging configuration.

Every log line is a single JSON object on stdout, tagged with a channel
(http, db, reconcile, aggregate, directory, report) and the current request ID
so a whole attendance submission can be traced across services.
"""

import logging
import json
import os
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from contextvars import ContextVar

# ──────────────────────────────────────────────────────────────
# Request ID of the HTTP request being served. Set by the
# middleware in main.py, read by the formatter for every entry.
# ──────────────────────────────────────────────────────────────
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

LOGGER_NAMESPACE = "attendance"
CHANNELS = ("http", "db", "reconcile", "aggregate", "directory", "report")


class StructuredJsonFormatter(logging.Formatter):
    """
    Formatter producing one JSON document per log record.

    Keys:
    - timestamp: ISO 8601 UTC with millisecond precision
    - level: INFO, WARNING, ERROR, DEBUG
    - message: human-readable text
    - channel: which part of the service logged it
    - context: business identifiers (request_id, register_number, date)
    - extra: measurements and counters (duration_ms, inserted, ...)
    - error: formatted traceback, only when exc_info was attached
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "message": record.getMessage(),
            "channel": getattr(record, "channel", record.name.split(".")[-1] if "." in record.name else "app"),
            "context": {
                "request_id": request_id_var.get(""),
                **(getattr(record, "context", {}) or {})
            },
            "extra": getattr(record, "extra_data", {}) or {}
        }
        if record.exc_info:
            log_entry["error"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging():
    """
    Install the JSON formatter on the root logger and set channel levels.

    Safe to call more than once; the root handler list is replaced,
    not appended to.
    """
    level = getattr(logging, LOG_LEVEL, logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    for channel in CHANNELS:
        logging.getLogger(f"{LOGGER_NAMESPACE}.{channel}").setLevel(level)

    return root_logger


def get_logger(channel: str) -> logging.Logger:
    """Return the logger for one of the CHANNELS."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{channel}")


def log_with_context(logger: logging.Logger, level: str, message: str,
                     context: dict = None, extra_data: dict = None,
                     exc_info: bool = False):
    """
    Emit a structured log entry with business context and extra metadata.

    This is the logging entry point used throughout the application.

    Args:
        logger: The channel logger to use
        level: Log level string (INFO, WARNING, ERROR, DEBUG)
        message: Human-readable log message
        context: Business identifiers (register_number, student_id, date)
        extra_data: Measurements (duration_ms, counts, mode)
        exc_info: Attach the active exception's traceback
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.log(
        log_level,
        message,
        exc_info=exc_info,
        extra={"context": context or {}, "extra_data": extra_data or {}, "channel": logger.name.split(".")[-1]}
    )


@contextmanager
def timed():
    """
    Measure a block in milliseconds.

    Yields a dict whose "duration_ms" key is filled in when the block exits.
    """
    timing = {"duration_ms": 0.0}
    start_time = time.time()
    try:
        yield timing
    finally:
        timing["duration_ms"] = round((time.time() - start_time) * 1000, 2)


def generate_request_id() -> str:
    """Generate a new UUID for request tracking."""
    return str(uuid.uuid4())

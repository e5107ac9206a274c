"""
GH Archive Importer - Structured Logging
Provides JSON-formatted logging so import runs can be queried by field.
"""

import logging
import sys
from typing import Optional
from pythonjsonlogger import jsonlogger

from .config import LOG_LEVEL, config


def setup_logger(name: str = __name__) -> logging.Logger:
    """
    Configure structured JSON logger.

    Args:
        name: Logger name (typically __name__ from calling module)

    Returns:
        Configured logger instance

    Example:
        >>> logger = setup_logger(__name__)
        >>> logger.info("Batch flushed", extra={
        ...     "events": 100,
        ...     "events_flushed_total": 300
        ... })
    """
    logger = logging.getLogger(name)

    # Prevent duplicate handlers
    if logger.hasHandlers():
        return logger

    level = getattr(logging, LOG_LEVEL.upper(), logging.INFO)
    logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    formatter = jsonlogger.JsonFormatter(
        '%(asctime)s %(name)s %(levelname)s %(message)s',
        datefmt='%Y-%m-%dT%H:%M:%S'
    )
    handler.setFormatter(formatter)

    logger.addHandler(handler)

    # Don't propagate to root logger
    logger.propagate = False

    return logger


# Global logger instance
logger = setup_logger('gharchive_importer')


def log_import_start(day: str, hours: list, batch_size: int):
    """Log the start of an import run."""
    logger.info("Import started", extra={
        "event_type": "import_start",
        "day": day,
        "hours": hours,
        "batch_size": batch_size,
        "environment": config.environment
    })


def log_archive_fetched(url: str, line_count: int):
    """Log a successfully fetched (and decompressed) archive."""
    logger.info("Archive fetched", extra={
        "event_type": "archive_fetched",
        "url": url,
        "line_count": line_count
    })


def log_batch_flushed(events: int, actors: int, repos: int, events_flushed_total: int,
                      events_written: Optional[int] = None):
    """
    Log a flushed batch with the running total.

    events_written is the number of event rows the store reports as
    inserted (or updated); None when the driver does not report it.
    """
    logger.info("Batch flushed", extra={
        "event_type": "batch_flushed",
        "events": events,
        "actors": actors,
        "repos": repos,
        "events_written": events_written,
        "events_flushed_total": events_flushed_total
    })


def log_record_skipped(reason: str, line_number: int, record_id: Optional[str] = None):
    """Log a malformed record that was skipped."""
    logger.warning("Malformed record skipped", extra={
        "event_type": "record_skipped",
        "reason": reason,
        "line_number": line_number,
        "record_id": record_id
    })


def log_fetch_error(error: Exception, day: str, hour: int, policy: str):
    """Log an archive fetch failure with the policy applied."""
    logger.error("Archive fetch failed", extra={
        "event_type": "fetch_error",
        "error_type": type(error).__name__,
        "error_message": str(error),
        "day": day,
        "hour": hour,
        "policy": policy
    })


def log_import_complete(duration_seconds: float, events_seen: int, events_flushed: int,
                        records_skipped: int, flushes: int):
    """Log successful import completion."""
    logger.info("Import completed", extra={
        "event_type": "import_complete",
        "duration_seconds": duration_seconds,
        "events_seen": events_seen,
        "events_flushed": events_flushed,
        "records_skipped": records_skipped,
        "flushes": flushes
    })


def log_import_error(error: Exception, events_seen: int, events_flushed: int):
    """Log a failed import run, with the counts reached before failure."""
    logger.error("Import failed", extra={
        "event_type": "import_error",
        "error_type": type(error).__name__,
        "error_message": str(error),
        "events_seen": events_seen,
        "events_flushed": events_flushed
    })


def log_database_error(error: Exception, query_context: str = None):
    """Log database error with context."""
    logger.error("Database error", extra={
        "event_type": "database_error",
        "error_type": type(error).__name__,
        "error_message": str(error),
        "query_context": query_context
    }, exc_info=True)

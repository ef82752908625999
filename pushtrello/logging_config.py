import logging
import logging.config
import os
import sys
import structlog
from contextlib import contextmanager
from datetime import datetime
from typing import Optional


def configure_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """
    Configure structured logging for the service.

    structlog renders each event as one JSON line (timestamp, level and
    logger name included), so the stdlib handlers only pass the message
    through.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional log file path. If None, logs to stdout only.
    """

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "event",
            "stream": sys.stdout
        }
    }
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "event",
            "filename": log_file,
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5
        }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"event": {"format": "%(message)s"}},
        "handlers": handlers,
        "root": {"level": log_level, "handlers": list(handlers)},
        "loggers": {
            # The drain job fires every few seconds; keep APScheduler's per-run lines out
            "apscheduler": {"level": "WARNING"},
        },
    })

    logger = structlog.get_logger("pushtrello")
    logger.info("Logging configured", level=log_level, file=log_file)

    return logger


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


@contextmanager
def job_context(kind: str, job_id, **fields):
    """Log start, completion and failure of one deferred job run.

    Yields a logger bound with the job identifiers. Exceptions are logged
    and re-raised.
    """
    logger = get_logger("pushtrello.jobs").bind(job_kind=kind, job_id=job_id, **fields)
    start_time = datetime.utcnow()
    logger.info("Job started")
    try:
        yield logger
    except Exception as exc:
        duration = (datetime.utcnow() - start_time).total_seconds()
        logger.error(
            "Job failed",
            duration_seconds=duration,
            error_type=type(exc).__name__,
            error_message=str(exc),
        )
        raise
    duration = (datetime.utcnow() - start_time).total_seconds()
    logger.info("Job completed", duration_seconds=duration)

"""Structured logging configuration using loguru.

Outputs JSON lines compatible with Google Cloud Logging in production and
human-readable colored output in development. Also provides the audit
helpers that report handler outcomes as structured events.
"""

import json
import logging
import sys
import traceback
from typing import Any

from loguru import logger

SEVERITY_MAP = {
    "TRACE": "DEBUG",
    "DEBUG": "DEBUG",
    "INFO": "INFO",
    "SUCCESS": "INFO",
    "WARNING": "WARNING",
    "ERROR": "ERROR",
    "CRITICAL": "CRITICAL",
}


def _cloud_logging_serializer(record: dict[str, Any]) -> str:
    """Serialize log record to Google Cloud Logging JSON format.

    Fields passed as `extra={...}` are included at the top level.
    """
    log_entry: dict[str, Any] = {
        "severity": SEVERITY_MAP.get(record["level"].name, "INFO"),
        "message": record["message"],
        "time": record["time"].isoformat(),
    }

    if record["level"].no >= 40:  # ERROR and above
        log_entry["logging.googleapis.com/sourceLocation"] = {
            "file": record["file"].path,
            "line": str(record["line"]),
            "function": record["function"],
        }

    if record["exception"] is not None:
        exc_info = record["exception"]
        tb_str = None
        if exc_info.traceback:
            tb_str = "".join(
                traceback.format_exception(exc_info.type, exc_info.value, exc_info.traceback)
            )
        log_entry["exception"] = {
            "type": exc_info.type.__name__ if exc_info.type else None,
            "value": str(exc_info.value) if exc_info.value else None,
            "traceback": tb_str,
        }

    for key, value in record.get("extra", {}).items():
        if key == "extra" and isinstance(value, dict):
            log_entry.update(value)
        elif not key.startswith("_"):
            log_entry[key] = value

    return json.dumps(log_entry, default=str)


def _json_sink(message: Any) -> None:
    """Sink that writes serialized JSON to stdout."""
    serialized = _cloud_logging_serializer(message.record)
    sys.stdout.write(serialized + "\n")
    sys.stdout.flush()


def configure_logging(*, is_production: bool, log_level: str = "INFO") -> None:
    """Configure loguru for the application.

    Args:
        is_production: If True, output JSON for Cloud Logging. If False, use
            human-readable colored output for development.
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
    """
    logger.remove()

    if is_production:
        logger.add(
            _json_sink,
            level=log_level,
            format="{message}",
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stderr,
            level=log_level,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "<level>{message}</level>\n"
                "{exception}"
            ),
            colorize=True,
            backtrace=True,
            diagnose=True,
        )

    _intercept_standard_logging(log_level)


def _intercept_standard_logging(log_level: str) -> None:
    """Route standard library logging (uvicorn, httpx) to loguru."""

    class InterceptHandler(logging.Handler):
        def emit(self, record: logging.LogRecord) -> None:
            try:
                level: str | int = logger.level(record.levelname).name
            except ValueError:
                level = record.levelno

            # Find caller from where the logged message originated
            frame, depth = logging.currentframe(), 2
            while frame and frame.f_code.co_filename == logging.__file__:
                frame = frame.f_back
                depth += 1

            logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())

    logging.basicConfig(handlers=[InterceptHandler()], level=log_level, force=True)

    for name in ["uvicorn", "uvicorn.error", "uvicorn.access", "httpx", "httpcore"]:
        logging.getLogger(name).setLevel(log_level)
        logging.getLogger(name).handlers = [InterceptHandler()]


# =============================================================================
# Audit events
# =============================================================================


def audit_entry_recorded(
    document_id: str, action_type: str, sink: str, details: str
) -> None:
    """Log that an entry was appended to a log sheet."""
    logger.info(
        "Audit entry recorded",
        extra={
            "audit_event": "entry_recorded",
            "document_id": document_id,
            "action_type": action_type,
            "sink": sink,
            "details": details,
        },
    )


def audit_entry_suppressed(document_id: str, change_type: str) -> None:
    """Log a change notification that showed no describable delta."""
    logger.debug(
        "Change notification produced no entry",
        extra={
            "audit_event": "entry_suppressed",
            "document_id": document_id,
            "change_type": change_type,
        },
    )


def audit_source_skipped(document_id: str, handler: str) -> None:
    """Log a notification from a document that is not monitored."""
    logger.debug(
        "Notification from unmonitored document skipped",
        extra={
            "audit_event": "source_skipped",
            "document_id": document_id,
            "handler": handler,
        },
    )


def audit_baseline_saved(document_id: str, sheet_count: int) -> None:
    """Log that a structure baseline was captured."""
    logger.info(
        "Structure baseline saved",
        extra={
            "audit_event": "baseline_saved",
            "document_id": document_id,
            "sheet_count": sheet_count,
        },
    )


def audit_handler_failed(document_id: str, handler: str, error: str) -> None:
    """Log a handler failure with the active exception attached."""
    logger.exception(
        "Notification handler failed",
        extra={
            "audit_event": "handler_failed",
            "document_id": document_id,
            "handler": handler,
            "error": error,
        },
    )

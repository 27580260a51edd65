"""
Structured logging setup for the rehearsal sync service.
Provides JSON-formatted logs with consistent fields for sync diagnostics.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_sync_context,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def _add_sync_context(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Attach the sync user to every entry when bound via contextvars."""
    context = structlog.contextvars.get_contextvars()
    if "sync_user_id" in context and "sync_user_id" not in event_dict:
        event_dict["sync_user_id"] = context["sync_user_id"]
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_sync_pass(report) -> None:
    """Log one scheduler pass with consistent fields."""
    logger = get_logger("sync")

    log_data = {
        "trigger": report.trigger.value,
        "status": report.status.value,
        "forced": report.forced,
        "event": "sync_pass",
    }

    if report.export_result is not None:
        log_data["exported"] = report.export_result.success
        log_data["export_failed"] = report.export_result.failed
    if report.import_result is not None:
        log_data["imported_added"] = report.import_result.added
        log_data["imported_updated"] = report.import_result.updated
        log_data["imported_deleted"] = report.import_result.deleted
    if report.import_skipped_reason:
        log_data["import_skipped"] = report.import_skipped_reason
    if report.error:
        log_data["error"] = report.error
        log_data["error_code"] = report.error_code

    if report.failed:
        logger.warning("Sync pass failed", **log_data)
    else:
        logger.info("Sync pass finished", **log_data)

"""
Centralized logging configuration for gapwatch.

This module provides consistent logging setup across all modules,
with support for plain and JSON-formatted output.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

# Module-level logger cache
_loggers_configured: bool = False


def configure_logging(
    level: int = logging.INFO,
    verbose: bool = False,
    json_format: bool = False,
) -> None:
    """Configure logging for the entire application.

    This should be called once at application startup.

    Args:
        level: Base logging level (e.g., logging.INFO, logging.WARNING).
        verbose: If True, sets level to DEBUG.
        json_format: If True, uses JSON-formatted output.
    """
    global _loggers_configured

    if verbose:
        level = logging.DEBUG

    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"

    if json_format:
        log_format = (
            '{"timestamp": "%(asctime)s", "logger": "%(name)s", '
            '"level": "%(levelname)s", "message": "%(message)s"}'
        )

    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt=date_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    _configure_third_party_loggers()

    _loggers_configured = True


def _configure_third_party_loggers() -> None:
    """Configure logging levels for third-party libraries."""
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name.

    Ensures logging is configured before returning the logger.

    Args:
        name: Logger name, typically __name__ of the calling module.

    Returns:
        Configured Logger instance.
    """
    if not _loggers_configured:
        configure_logging()

    return logging.getLogger(name)


def log_event(
    logger: logging.Logger,
    level: int,
    event_type: str,
    component: str,
    message: str,
    **kwargs: Any,
) -> None:
    """Log a structured event with consistent formatting.

    Args:
        logger: Logger instance to use.
        level: Logging level.
        event_type: Type of event (e.g., ALERTS_LOADED, ACTION_FAILED).
        component: Component that produced the event.
        message: Human-readable message.
        **kwargs: Additional key-value pairs to include.
    """
    extra_parts = " ".join(f"{k}={v}" for k, v in kwargs.items())
    full_message = f"{event_type} - {component}: {message}"
    if extra_parts:
        full_message = f"{full_message} [{extra_parts}]"
    logger.log(level, full_message)


class EventType:
    """Standard event types for structured logging."""

    # Alert list events
    ALERTS_LOADED = "ALERTS_LOADED"
    ALERTS_FAILED = "ALERTS_FAILED"
    STATS_LOADED = "STATS_LOADED"
    STATS_FAILED = "STATS_FAILED"
    INTERVAL_LOADED = "INTERVAL_LOADED"
    INTERVAL_FALLBACK = "INTERVAL_FALLBACK"
    PROCESSING_FAILED = "PROCESSING_FAILED"

    # Validation modal events
    ANALYSIS_LOADED = "ANALYSIS_LOADED"
    ANALYSIS_FAILED = "ANALYSIS_FAILED"
    ACTION_STARTED = "ACTION_STARTED"
    ACTION_ACCEPTED = "ACTION_ACCEPTED"
    ACTION_FAILED = "ACTION_FAILED"
    ACTION_REFUSED = "ACTION_REFUSED"
    ACTION_CANCELLED = "ACTION_CANCELLED"
    VALIDATION_COMPLETE = "VALIDATION_COMPLETE"

    # Scheduler events
    SCHEDULER_STARTED = "SCHEDULER_STARTED"
    SCHEDULER_RESCHEDULED = "SCHEDULER_RESCHEDULED"
    SCHEDULER_STOPPED = "SCHEDULER_STOPPED"
    REFRESH_FAILED = "REFRESH_FAILED"

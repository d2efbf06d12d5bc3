"""
TeamPlan Structured Logging

Configures structured JSON logging using structlog. Analyzer loggers carry
the analyzer name, and per-run context such as the cycle id is bound on top.
"""

import logging
import sys
from typing import Any

import structlog

from teamplan.platform.config import settings


def configure_logging() -> None:
    """Configure structured logging for the application."""

    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            # JSON in production, console everywhere else
            structlog.processors.JSONRenderer()
            if settings.APP_ENV == "production"
            else structlog.dev.ConsoleRenderer(colors=True),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )


def get_logger(name: str | None = None, **context: Any) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Keyword arguments are bound to every event, e.g. ``analyzer`` or
    ``cycle_id`` so planning log lines can be filtered per analysis run.
    """
    logger = structlog.get_logger(name)
    if context:
        return logger.bind(**context)
    return logger

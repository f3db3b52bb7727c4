"""
Structured logging configuration using structlog.
"""
import logging
import sys

import structlog

from order_agent.config import settings


def configure_logging():
    """
    Configure structured logging for the agent.
    Sets up JSON formatting for production, console formatting for development.
    Writes to settings.log_file when set (the agent usually runs without a console), stdout otherwise.
    """
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]

    if settings.app_environment == "production":
        # JSON formatting for production
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        # Console formatting for development
        processors.append(structlog.dev.ConsoleRenderer(colors=not settings.log_file))

    if settings.log_file:
        log_file = open(settings.log_file, "a", encoding="utf-8")
        logger_factory = structlog.WriteLoggerFactory(file=log_file)
    else:
        logger_factory = structlog.PrintLoggerFactory(file=sys.stdout)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=False,
    )

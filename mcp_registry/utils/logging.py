"""Logging configuration for the application."""

import logging
import sys
from typing import Any

import structlog

# Applied to both structlog events and records from stdlib loggers
SHARED_PROCESSORS: list[Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure structlog and route every stdlib logger (uvicorn, sqlalchemy,
    httpx) through the same renderer. Call once at process startup.

    DEBUG renders human-readable console lines; any other level renders JSON.
    """
    log_level = log_level.upper()

    renderer = (
        structlog.dev.ConsoleRenderer()
        if log_level == "DEBUG"
        else structlog.processors.JSONRenderer()
    )

    structlog.configure(
        processors=[
            *SHARED_PROCESSORS,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=SHARED_PROCESSORS,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    # httpx logs every request at INFO; the probe loop would flood the output
    logging.getLogger("httpx").setLevel(max(logging.WARNING, root_logger.level))


def get_logger(name: str) -> Any:
    """Get a configured structlog logger."""
    return structlog.get_logger(name)

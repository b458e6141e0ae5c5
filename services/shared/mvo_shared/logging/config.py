"""Structured logging configuration with structlog.

Every event carries the service name and version, and the request's
correlation ID when one is bound.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Any

import structlog
from structlog.types import Processor

DEFAULT_SERVICE_NAME = "mvo-credits"
DEFAULT_SERVICE_VERSION = "0.1.0"

# Third-party loggers that are only interesting when debugging
NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncpg")

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_service_info: dict[str, str] = {
    "service": DEFAULT_SERVICE_NAME,
    "version": DEFAULT_SERVICE_VERSION,
}


def get_correlation_id() -> str | None:
    """Get the current correlation ID."""
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for the current task."""
    _correlation_id_var.set(correlation_id)


def add_correlation_id(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    correlation_id = get_correlation_id()
    if correlation_id:
        event_dict.setdefault("correlation_id", correlation_id)
    return event_dict


def add_service_info(
    logger: logging.Logger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    event_dict.update(_service_info)
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    service_name: str | None = None,
    service_version: str | None = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: If True, output JSON logs. If False, use console format.
        service_name: Name of the service stamped on every event.
        service_version: Version stamped on every event.
    """
    if service_name:
        _service_info["service"] = service_name
    if service_version:
        _service_info["version"] = service_version

    log_level = getattr(logging, level.upper())

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        add_correlation_id,
        add_service_info,
    ]

    if json_format:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
        ]

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (usually __name__).
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind values to the current logging context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Unbind values from the current logging context."""
    structlog.contextvars.unbind_contextvars(*keys)

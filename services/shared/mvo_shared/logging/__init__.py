"""structlog setup and request-scoped context helpers."""

from .config import (
    add_correlation_id,
    add_service_info,
    bind_context,
    configure_logging,
    get_correlation_id,
    get_logger,
    set_correlation_id,
    unbind_context,
)

__all__ = [
    "add_correlation_id",
    "add_service_info",
    "bind_context",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
    "set_correlation_id",
    "unbind_context",
]

"""Shared core utilities: health checks and structured logging."""

from .health import HealthStatus, ServiceHealth
from .logging_config import RequestLoggingMiddleware, get_logger, set_request_context, setup_logging

__all__ = [
    "HealthStatus",
    "ServiceHealth",
    "RequestLoggingMiddleware",
    "get_logger",
    "set_request_context",
    "setup_logging",
]

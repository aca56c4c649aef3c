"""
Structured logging configuration for the showroom admin service.

Every record is emitted as one JSON object carrying the request context
(request id, correlation id and the acting principal) so that a single
order workflow can be followed across log lines.
"""

import logging
import logging.handlers
import os
import re
import sys
import json
import time
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from contextvars import ContextVar
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

# Context variables for request tracking
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)


class StructuredFormatter(logging.Formatter):
    """JSON formatter: one object per record, trace context attached."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "@timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": os.getenv('SERVICE_NAME', 'showroom-admin'),
            "environment": os.getenv('ENVIRONMENT', 'development'),
            "version": os.getenv('SERVICE_VERSION', '1.0.0'),
        }

        trace_context = self._get_trace_context()
        if trace_context:
            log_obj["trace"] = trace_context

        log_obj["location"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        if record.exc_info:
            log_obj["error"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "stacktrace": traceback.format_exception(*record.exc_info)
            }

        if hasattr(record, 'extra_fields'):
            log_obj["custom"] = record.extra_fields

        if hasattr(record, 'duration_ms'):
            log_obj["performance"] = {"duration_ms": record.duration_ms}

        return json.dumps(log_obj, default=str)

    def _get_trace_context(self) -> Optional[Dict[str, Any]]:
        context = {
            "request_id": request_id_var.get(),
            "correlation_id": correlation_id_var.get(),
            "user_id": user_id_var.get(),
        }
        context = {key: value for key, value in context.items() if value}
        return context or None


class SecurityFilter(logging.Filter):
    """Redact credential values that end up in log messages."""

    SENSITIVE_FIELDS = ['password', 'token', 'secret', 'authorization', 'cookie']
    # "password=hunter2", "access_token: abc", "Authorization: Bearer abc"
    PATTERN = re.compile(
        r"(" + "|".join(SENSITIVE_FIELDS) + r")(\s*[=:]\s*)((?:bearer\s+)?[^\s,;&]+)",
        re.IGNORECASE,
    )

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self.PATTERN.sub(r"\1\2***REDACTED***", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(
    service_name: str,
    level: str = "INFO",
    enable_console: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Setup structured logging for the service

    Args:
        service_name: Name reported in every record
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        enable_console: Write records to stdout
        log_file: Optional path for a rotating file handler
    """
    os.environ['SERVICE_NAME'] = service_name

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = []

    formatter = StructuredFormatter()

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler.addFilter(SecurityFilter())
        root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=10485760,  # 10MB
            backupCount=5
        )
        file_handler.setFormatter(formatter)
        file_handler.addFilter(SecurityFilter())
        root_logger.addHandler(file_handler)

    logging.getLogger('uvicorn').setLevel(logging.WARNING)
    logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)

    root_logger.info(
        "Logging initialized",
        extra={'extra_fields': {'service': service_name, 'level': level, 'file': log_file}}
    )


class LoggerAdapter(logging.LoggerAdapter):
    """Injects the current request context into every record."""

    def process(self, msg, kwargs):
        extra = kwargs.get('extra', {})

        request_id = request_id_var.get()
        if request_id:
            extra['request_id'] = request_id

        user_id = user_id_var.get()
        if user_id:
            extra['user_id'] = user_id

        kwargs['extra'] = extra
        return msg, kwargs


def get_logger(name: str) -> LoggerAdapter:
    return LoggerAdapter(logging.getLogger(name), {})


def set_request_context(
    request_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
    user_id: Optional[str] = None
) -> None:
    """Set request context for the current task; unset values are left alone."""
    if request_id:
        request_id_var.set(request_id)
    if correlation_id:
        correlation_id_var.set(correlation_id)
    if user_id:
        user_id_var.set(user_id)


def generate_request_id() -> str:
    return str(uuid.uuid4())


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs every request with its duration and stamps X-Request-ID on the response
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get('X-Request-ID') or generate_request_id()
        set_request_context(
            request_id=request_id,
            correlation_id=request.headers.get('X-Correlation-ID')
        )

        logger = get_logger(__name__)
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            logger.error(
                f"Request failed: {request.method} {request.url.path}",
                exc_info=True,
                extra={'extra_fields': {
                    'method': request.method,
                    'path': request.url.path,
                    'duration_ms': (time.time() - start_time) * 1000
                }}
            )
            raise

        logger.info(
            f"Request completed: {request.method} {request.url.path}",
            extra={'extra_fields': {
                'method': request.method,
                'path': request.url.path,
                'status_code': response.status_code,
                'duration_ms': (time.time() - start_time) * 1000
            }}
        )
        response.headers['X-Request-ID'] = request_id
        return response

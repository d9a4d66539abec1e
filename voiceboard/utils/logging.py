"""Structured logging for the board: correlation IDs, operation timing, PII scrubbing."""

import asyncio
import hashlib
import logging
import re
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, Optional

from voiceboard.utils.logging_config import LoggingConfig, get_logger

# One correlation ID per request; contextvars keep it per asyncio task
_correlation_id_var: ContextVar[Optional[str]] = ContextVar('correlation_id', default=None)

EMAIL_PATTERN = re.compile(r'[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}', re.IGNORECASE)

# Applied in order: JWTs before phone numbers, whose digits runs they contain
_REDACTIONS = (
    (EMAIL_PATTERN, '[REDACTED_EMAIL]'),
    (re.compile(r'eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+'), '[REDACTED_JWT]'),
    (re.compile(r'(?i)(api[_-]?key|token|secret|password|auth)[\s:=]+([A-Za-z0-9_-]{20,})'), r'\1=[REDACTED]'),
    (re.compile(r'\b\+?\d[\d\s().-]{7,}\b'), '[REDACTED_PHONE]'),
)


def generate_correlation_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


def get_correlation_id() -> Optional[str]:
    return _correlation_id_var.get()


def set_correlation_id(correlation_id: Optional[str]) -> None:
    _correlation_id_var.set(correlation_id)


@contextmanager
def correlation_context(correlation_id: Optional[str] = None):
    """
    Scope a correlation ID to one endpoint invocation.

    The caller's header value is reused when present so a client can follow
    its request through the logs; otherwise a fresh ID is generated.
    """
    previous = get_correlation_id()
    correlation_id = correlation_id or generate_correlation_id()
    set_correlation_id(correlation_id)
    try:
        yield correlation_id
    finally:
        set_correlation_id(previous)


def mask_sensitive_data(text: str) -> str:
    """Redact emails, bearer tokens, API keys and phone numbers."""
    if not text or not LoggingConfig.LOG_MASK_SENSITIVE:
        return text

    for pattern, replacement in _REDACTIONS:
        text = pattern.sub(replacement, text)
    return text


def mask_user_id(user_id: str) -> str:
    """Auth user IDs are logged as a prefix plus a short hash."""
    if not LoggingConfig.LOG_MASK_SENSITIVE or not user_id or len(user_id) <= 12:
        return user_id

    digest = hashlib.sha256(user_id.encode()).hexdigest()[:8]
    return f"{user_id[:4]}...{digest}"


def mask_email(email: str) -> str:
    """Keep the domain and first character of the local part."""
    if not LoggingConfig.LOG_MASK_SENSITIVE or not email or "@" not in email:
        return email

    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}"


def sanitize_message_text(text: str, max_length: int = 500) -> Optional[str]:
    """Task titles, AI context and model output as they may appear in logs."""
    if not LoggingConfig.LOG_MESSAGE_CONTENT or not text:
        return None

    if len(text) > max_length:
        text = text[:max_length] + "..."
    return mask_sensitive_data(text)


class StructuredLogger:
    """
    Logger taking structured fields as keyword arguments.

    Fields land in the record's `extra`, so the JSON formatter emits them as
    top-level keys next to the timestamp and correlation ID.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def _get_extra(self, **fields: Any) -> Dict[str, Any]:
        extra = {"timestamp": datetime.now(timezone.utc).isoformat()}

        # Only requests running under correlation_context carry an ID
        correlation_id = get_correlation_id()
        if correlation_id:
            extra["correlation_id"] = correlation_id

        extra.update(fields)
        return extra

    def _log(self, level: int, message: str, exc_info: bool = False, **fields: Any) -> None:
        if self.logger.isEnabledFor(level):
            self.logger.log(level, message, extra=self._get_extra(**fields), exc_info=exc_info)

    def debug(self, message: str, **fields: Any) -> None:
        self._log(logging.DEBUG, message, **fields)

    def info(self, message: str, **fields: Any) -> None:
        self._log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._log(logging.WARNING, message, **fields)

    def error(self, message: str, exc_info: bool = False, **fields: Any) -> None:
        self._log(logging.ERROR, message, exc_info=exc_info, **fields)

    def exception(self, message: str, **fields: Any) -> None:
        self._log(logging.ERROR, message, exc_info=True, **fields)


def get_structured_logger(name: str) -> StructuredLogger:
    return StructuredLogger(get_logger(name))


@contextmanager
def log_timing(operation_name: str, logger: Optional[StructuredLogger] = None, **context: Any):
    """
    Time a block (store round trip, LLM call, board refresh).

    Completion is logged at INFO with the elapsed milliseconds whether or not
    the block raised; `succeeded` tells the two apart. Anything slower than
    LOG_SLOW_OPERATION_THRESHOLD_MS is repeated as a warning.
    """
    logger = logger or get_structured_logger(__name__)
    logger.debug(f"Starting {operation_name}", operation=operation_name, **context)

    start_time = time.time()
    succeeded = False
    try:
        yield
        succeeded = True
    finally:
        elapsed_ms = round((time.time() - start_time) * 1000, 2)
        logger.info(
            f"Completed {operation_name}",
            operation=operation_name,
            processing_time_ms=elapsed_ms,
            succeeded=succeeded,
            **context
        )

        # Slow operations also go out as warnings
        if elapsed_ms > LoggingConfig.LOG_SLOW_OPERATION_THRESHOLD_MS:
            logger.warning(
                f"Slow operation detected: {operation_name}",
                operation=operation_name,
                processing_time_ms=elapsed_ms,
                threshold_ms=LoggingConfig.LOG_SLOW_OPERATION_THRESHOLD_MS,
                **context
            )


def timed(operation_name: Optional[str] = None, logger: Optional[StructuredLogger] = None):
    """Decorator form of log_timing for plain and async functions."""
    def decorator(func: Callable) -> Callable:
        op_name = operation_name or f"{func.__module__}.{func.__name__}"
        log = logger or get_structured_logger(func.__module__)

        if asyncio.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                with log_timing(op_name, logger=log):
                    return await func(*args, **kwargs)
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            with log_timing(op_name, logger=log):
                return func(*args, **kwargs)
        return sync_wrapper

    return decorator

"""Shared plumbing for the Vercel BaseHTTPRequestHandler endpoints."""

import asyncio
import json
from http.server import BaseHTTPRequestHandler
from typing import Any, Optional
from pydantic import ValidationError
from voiceboard.utils.errors import (
    AudioCaptureError,
    AudioEncodingError,
    AuthError,
    ConcurrentEditError,
    ExtractionError,
    StaleResponseError,
    SupabaseError,
    TaskNotFoundError,
    VoiceBoardError,
)
from voiceboard.utils.logging import get_structured_logger
from voiceboard.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()
logger = get_structured_logger(__name__)


class BadRequestError(VoiceBoardError):
    """Request body missing or malformed."""
    pass


ERROR_STATUS = {
    BadRequestError: 400,
    AudioCaptureError: 400,
    AudioEncodingError: 400,
    AuthError: 401,
    TaskNotFoundError: 404,
    ConcurrentEditError: 409,
    StaleResponseError: 409,
    ExtractionError: 502,
    SupabaseError: 503,
}


def status_for_error(error: Exception) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500


def run_async(coro):
    """Run a coroutine from a synchronous handler."""
    try:
        loop = asyncio.get_event_loop()
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    if loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


class JsonRequestHandler(BaseHTTPRequestHandler):
    """Base handler: JSON bodies, bearer tokens, error mapping."""

    def read_json(self) -> dict:
        content_length = int(self.headers.get('Content-Length', 0) or 0)
        raw_body = self.rfile.read(content_length).decode('utf-8') if content_length > 0 else ""
        if not raw_body:
            return {}
        try:
            body = json.loads(raw_body)
        except json.JSONDecodeError:
            raise BadRequestError("Request body is not valid JSON")
        if not isinstance(body, dict):
            raise BadRequestError("Request body must be a JSON object")
        return body

    def bearer_token(self) -> Optional[str]:
        header = self.headers.get("Authorization") or self.headers.get("authorization") or ""
        if header.lower().startswith("bearer "):
            return header[7:].strip() or None
        return None

    def correlation_header(self) -> Optional[str]:
        return self.headers.get(LoggingConfig.LOG_CORRELATION_ID_HEADER)

    def send_json(self, status: int, payload: Any) -> None:
        self.send_response(status)
        self.send_header('Content-Type', 'application/json')
        self.end_headers()
        self.wfile.write(json.dumps(payload).encode('utf-8'))

    def send_error_json(self, error: Exception) -> None:
        if isinstance(error, ValidationError):
            error = BadRequestError(str(error))

        status = status_for_error(error)
        if status >= 500 and not isinstance(error, VoiceBoardError):
            logger.error("Unhandled request error", path=self.path, error=str(error), exc_info=True)
            message = "internal server error"
        else:
            logger.warning("Request failed", path=self.path, status_code=status, error=str(error))
            message = str(error)

        self.send_json(status, {
            "error": message,
            "retryable": bool(getattr(error, "retryable", False)),
        })

    def require_fields(self, body: dict, *names: str) -> None:
        missing = [name for name in names if not body.get(name)]
        if missing:
            raise BadRequestError(f"Missing required fields: {', '.join(missing)}")

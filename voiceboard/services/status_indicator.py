"""Transient processing/success/error indicator that resets itself."""

import os
import asyncio
from enum import Enum
from typing import Awaitable, Optional, TypeVar
from voiceboard.utils.errors import VoiceBoardError
from voiceboard.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

T = TypeVar("T")

DEFAULT_RESET_SECONDS = float(os.environ.get("STATUS_RESET_SECONDS", "3"))


class OperationStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    SUCCESS = "success"
    ERROR = "error"


class StatusIndicator:
    """Status of one user action (record button, save button)."""

    def __init__(self, reset_after_seconds: float = DEFAULT_RESET_SECONDS):
        self.reset_after_seconds = reset_after_seconds
        self.status = OperationStatus.IDLE
        self.message: Optional[str] = None
        self.retryable = False
        self._reset_timer: Optional[asyncio.Task] = None

    def _cancel_reset(self) -> None:
        if self._reset_timer is not None:
            self._reset_timer.cancel()
            self._reset_timer = None

    def _set(self, status: OperationStatus, message: Optional[str] = None, retryable: bool = False) -> None:
        self._cancel_reset()
        self.status = status
        self.message = message
        self.retryable = retryable

        if status in (OperationStatus.SUCCESS, OperationStatus.ERROR):
            self._reset_timer = asyncio.create_task(self._reset_after_delay())

    async def _reset_after_delay(self) -> None:
        await asyncio.sleep(self.reset_after_seconds)
        self.status = OperationStatus.IDLE
        self.message = None
        self.retryable = False
        self._reset_timer = None

    def processing(self, message: Optional[str] = None) -> None:
        self._set(OperationStatus.PROCESSING, message)

    def succeed(self, message: Optional[str] = None) -> None:
        self._set(OperationStatus.SUCCESS, message)

    def fail(self, message: str, retryable: bool = True) -> None:
        self._set(OperationStatus.ERROR, message, retryable)

    async def track(self, action: Awaitable[T], success_message: Optional[str] = None) -> Optional[T]:
        """
        Run an action and report its outcome.

        VoiceBoardError subclasses end in the error state and return None;
        anything else is unexpected and propagates after the indicator flips.
        """
        self.processing()
        try:
            result = await action
        except VoiceBoardError as e:
            logger.warning("Action failed", error=str(e), error_type=type(e).__name__, retryable=e.retryable)
            self.fail(str(e), retryable=e.retryable)
            return None
        except Exception as e:
            self.fail("Unexpected error, please try again")
            logger.error("Unexpected action failure", error=str(e), exc_info=True)
            raise
        self.succeed(success_message)
        return result

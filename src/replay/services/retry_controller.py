"""
Retry controller for step execution.

Wraps one step in bounded retries with exponential backoff and checks that
the page still answers before each retry.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from ..core.config import settings
from ..core.exceptions import (
    PageUnresponsiveError,
    PlaybackError,
    RecordingIntegrityError,
    StepFailedError,
)
from . import page_scripts
from .page_surface import PageSurface


logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryController:
    """
    Runs an operation up to ``max_attempts`` times.

    After failed attempt n the controller sleeps ``base_delay_ms * 2^(n-1)``.
    Integrity errors and an unresponsive page stop the loop immediately.
    """

    def __init__(
        self,
        page: PageSurface,
        max_attempts: int = 3,
        base_delay_ms: int = 2000,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        probe_timeout: Optional[float] = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.page = page
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self.sleep = sleep
        self.probe_timeout = probe_timeout or settings.PROBE_TIMEOUT

    def backoff_delay_ms(self, attempt: int) -> int:
        """Backoff after the given (1-based) failed attempt."""
        return self.base_delay_ms * (2 ** (attempt - 1))

    async def run(self, operation: Callable[[], Awaitable[T]], description: str = "step") -> T:
        last_error: Optional[PlaybackError] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                result = await operation()
                if attempt > 1:
                    logger.info(f"{description} succeeded on attempt {attempt}")
                return result
            except (RecordingIntegrityError, PageUnresponsiveError):
                raise
            except PlaybackError as e:
                last_error = e
                logger.warning(f"{description} attempt {attempt}/{self.max_attempts} failed: {e}")

            delay_ms = self.backoff_delay_ms(attempt)
            logger.info(f"Waiting {delay_ms}ms before next action")
            await self.sleep(delay_ms / 1000)

            if attempt < self.max_attempts and not await self.is_page_responsive():
                raise PageUnresponsiveError("Page became unresponsive", page_url=last_error.page_url)

        logger.error(f"{description} failed after {self.max_attempts} attempts")
        raise StepFailedError(self.max_attempts, last_error)

    async def is_page_responsive(self) -> bool:
        """Evaluate a trivial expression; a destroyed page or a timeout means unresponsive."""
        if self.page.is_destroyed():
            return False
        try:
            result = await self.page.evaluate(page_scripts.RESPONSIVENESS_PROBE, timeout=self.probe_timeout)
            return result == 2
        except Exception as e:
            logger.warning(f"Responsiveness probe failed: {e}")
            return False

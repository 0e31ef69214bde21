"""
Playback service: replays one stored recording from its start URL.

Opens a page through the page provider, then runs every step through the
retry controller and step executor while the page state tracker follows
navigations. The page is always closed, whatever the outcome.
"""

import asyncio
import dataclasses
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from ..core.config_loader import AutomationConfigLoader, config_loader as default_config_loader
from ..core.exceptions import PlaybackError, RecordingIntegrityError, RecordingNotFoundError
from ..core.logging_config import get_playback_logger
from ..core.models import PlaybackRun, Recording, RecordedStep
from .confidence_scorer import ConfidenceScorer
from .page_state_tracker import PageStateTracker
from .page_surface import PageProvider, PageSurface
from .recording_store import RecordingStore
from .retry_controller import RetryController
from .step_executor import StepExecutor


logger = logging.getLogger(__name__)

# Called with (recording, step_index) for steps recorded as "redacted"
SensitiveValueProvider = Callable[[Recording, int], Awaitable[str]]


class PlaybackService:
    """Replays recordings one step at a time."""

    SETTLE_AFTER_OPEN = 2.0
    NAVIGATION_LOAD_TIMEOUT = 15.0
    INTER_STEP_DELAY = 0.5

    def __init__(
        self,
        store: RecordingStore,
        page_provider: PageProvider,
        config_loader: Optional[AutomationConfigLoader] = None,
        scorer: Optional[ConfidenceScorer] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        sensitive_value_provider: Optional[SensitiveValueProvider] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.page_provider = page_provider
        self.config_loader = config_loader or default_config_loader
        self.scorer = scorer
        self.sleep = sleep
        self.sensitive_value_provider = sensitive_value_provider
        self.clock = clock

    async def play_recording(self, recording_id: str) -> None:
        """
        Replay a recording end to end.

        Raises:
            RecordingNotFoundError: No recording with this id
            RecordingIntegrityError: The recording cannot be replayed as stored
            PlaybackError: A step failed for good
        """
        recording = self.store.get_recording(recording_id)
        if recording is None:
            raise RecordingNotFoundError(f"Recording {recording_id} not found")

        playback_logger = get_playback_logger("playback", recording.id, recording.name)
        automation = self.config_loader.load_config()
        steps = await self._resolve_sensitive_values(recording)
        scorer = self.scorer or ConfidenceScorer(threshold=automation.confidence_threshold)

        start_time = time.time()
        playback_logger.log_operation_start(
            "playback", steps=len(steps), start_url=recording.start_url
        )

        page = await self.page_provider.open(recording.start_url)
        try:
            logger.info("Waiting for page to settle...")
            await self.sleep(self.SETTLE_AFTER_OPEN)

            run = PlaybackRun()
            tracker = PageStateTracker(page, run)
            tracker.reset()
            tracker.attach()

            executor = StepExecutor(page, scorer, run, sleep=self.sleep, clock=self.clock)
            retry = RetryController(
                page,
                max_attempts=automation.retry_attempts,
                base_delay_ms=automation.retry_delay_ms,
                sleep=self.sleep,
            )

            for index, step in enumerate(steps):
                await self._play_step(page, tracker, executor, retry, step, index, len(steps))
                if index < len(steps) - 1:
                    await self.sleep(self.INTER_STEP_DELAY)

        except PlaybackError as e:
            playback_logger.log_operation_failure(
                "playback", time.time() - start_time, str(e), error_code=type(e).__name__
            )
            raise
        finally:
            await self.page_provider.close(page)

        self.store.mark_run(recording.id, datetime.now())
        playback_logger.log_operation_success("playback", time.time() - start_time, steps=len(steps))

    async def _play_step(self, page: PageSurface, tracker: PageStateTracker, executor: StepExecutor,
                         retry: RetryController, step: RecordedStep, index: int, total: int) -> None:
        description = f"Step {index + 1}/{total} ({step.step_type.value})"
        logger.info(f"Executing {description}")

        url_before = await tracker.before_step()
        try:
            await retry.run(lambda: executor.execute(step), description)
        except RecordingIntegrityError:
            raise
        except PlaybackError:
            if not await self._url_changed(page, url_before):
                raise
            logger.info(f"{description} reported failure but navigation occurred, treating as success")

        url_after = await page.get_current_url()
        if url_after != url_before:
            logger.info(f"Navigation detected: {url_before} -> {url_after}")
            await executor.wait_for_page_load(self.NAVIGATION_LOAD_TIMEOUT)

        tracker.after_step_success()

    async def _url_changed(self, page: PageSurface, url_before: str) -> bool:
        if page.is_destroyed():
            return False
        try:
            return await page.get_current_url() != url_before
        except Exception as e:
            logger.debug(f"Could not read URL after failed step: {e}")
            return False

    async def _resolve_sensitive_values(self, recording: Recording) -> List[RecordedStep]:
        """Replace redacted input/select values before the page is opened."""
        steps: List[RecordedStep] = []
        for index, step in enumerate(recording.steps):
            if not getattr(step, "is_redacted", False):
                steps.append(step)
                continue
            if self.sensitive_value_provider is None:
                raise RecordingIntegrityError(
                    f"Step {index + 1} of '{recording.name}' has a redacted value and no value provider is configured"
                )
            value = await self.sensitive_value_provider(recording, index)
            steps.append(dataclasses.replace(step, value=value))
        return steps

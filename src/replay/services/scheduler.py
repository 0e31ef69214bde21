"""
Sequential scheduler for unattended playback.

On every cron fire the scheduler replays all stored recordings one after the
other, with a politeness delay between them. A single failing recording never
stops the batch, and a run that is still in progress makes any new trigger a
no-op.
"""

import asyncio
import dataclasses
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional, Set

from croniter import croniter

from ..core.config import settings
from ..core.config_loader import AutomationConfigLoader, config_loader as default_config_loader
from ..core.exceptions import RunInProgressError
from ..core.logging_config import get_playback_logger
from ..core.models import RunSummary, SchedulerState, SchedulerStatus
from .playback_service import PlaybackService
from .recording_store import RecordingStore


logger = logging.getLogger(__name__)


INTERVAL_TO_CRON = {
    "hourly": "0 * * * *",
    "every_4h": "0 */4 * * *",
    "every_6h": "0 */6 * * *",
    "every_12h": "0 */12 * * *",
    "daily": "0 6 * * *",
    "weekly": "0 6 * * 1",
}

CRON_TO_INTERVAL = {cron: interval for interval, cron in INTERVAL_TO_CRON.items()}


def resolve_schedule_expression(expression: Optional[str]) -> Optional[str]:
    """Map an interval preset or a cron expression to a valid 5-field cron, or None."""
    if not expression:
        return None
    expression = expression.strip()
    cron = INTERVAL_TO_CRON.get(expression, expression)
    if len(cron.split()) != 5 or not croniter.is_valid(cron):
        return None
    return cron


class SequentialScheduler:
    """Cron-triggered, strictly sequential runner over every stored recording."""

    def __init__(
        self,
        playback: PlaybackService,
        store: RecordingStore,
        config_loader: Optional[AutomationConfigLoader] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        politeness_delay: Optional[float] = None,
    ):
        self.playback = playback
        self.store = store
        self.config_loader = config_loader or default_config_loader
        self.sleep = sleep
        self.politeness_delay = settings.POLITENESS_DELAY if politeness_delay is None else politeness_delay
        self.state = SchedulerState()
        self._timer_task: Optional[asyncio.Task] = None
        self._run_tasks: Set[asyncio.Task] = set()

    # =================== Trigger ===================

    def init_scheduler(self) -> bool:
        """Arm the trigger from persisted settings when scheduling is enabled."""
        automation = self.config_loader.load_config()
        if automation.schedule_enabled and automation.schedule_cron:
            logger.info(f"Initializing scheduler from settings: {automation.schedule_cron}")
            return self.start(automation.schedule_cron)
        return False

    def start(self, expression: str) -> bool:
        """
        Arm the cron trigger, replacing any active one.

        Args:
            expression: 5-field cron expression or an interval preset name

        Returns:
            False (and the scheduler stays stopped) when the expression is invalid
        """
        self.stop()
        cron = resolve_schedule_expression(expression)
        if cron is None:
            logger.warning(f"Invalid cron expression: {expression}")
            return False

        self.state.active_schedule = cron
        self._timer_task = asyncio.get_running_loop().create_task(self._timer_loop(cron))
        logger.info(f"Scheduler started with cron: {cron}")
        return True

    def stop(self) -> None:
        """Cancel the trigger. An in-flight run is left to finish."""
        if self._timer_task is None:
            return
        self._timer_task.cancel()
        self._timer_task = None
        self.state.active_schedule = None
        logger.info("Scheduler stopped")

    def update_schedule(self, enabled: bool, expression: Optional[str] = None) -> SchedulerStatus:
        """
        Persist the schedule settings, then start or stop the trigger.

        Raises:
            ValueError: The expression is not a valid cron expression or preset
        """
        automation = self.config_loader.load_config()
        cron = automation.schedule_cron
        if expression:
            cron = resolve_schedule_expression(expression)
            if cron is None:
                raise ValueError(f"Invalid cron expression: {expression}")

        self.config_loader.save_config(
            dataclasses.replace(automation, schedule_enabled=enabled, schedule_cron=cron)
        )

        if enabled:
            self.start(cron)
        else:
            self.stop()
        return self.get_status()

    async def _timer_loop(self, cron: str) -> None:
        schedule = croniter(cron, datetime.now())
        while True:
            next_fire = schedule.get_next(datetime)
            delay = max(0.0, (next_fire - datetime.now()).total_seconds())
            logger.debug(f"Next scheduled run at {next_fire.isoformat()}")
            await asyncio.sleep(delay)
            self.trigger_run()

    # =================== Runs ===================

    def trigger_run(self) -> bool:
        """Start a background run unless one is in progress."""
        if self.state.is_running:
            logger.info("Already running, skipping")
            return False

        self.state.is_running = True
        task = asyncio.get_running_loop().create_task(self._run_sequence())
        self._run_tasks.add(task)
        task.add_done_callback(self._on_run_done)
        return True

    async def run_all(self) -> Optional[RunSummary]:
        """Replay every recording in name order; returns None if a run was already in progress."""
        if self.state.is_running:
            logger.info("Already running, skipping")
            return None

        self.state.is_running = True
        return await self._run_sequence()

    async def run_all_now(self) -> Optional[RunSummary]:
        """Manual trigger with the same single-run guard."""
        logger.info("Manual run requested")
        return await self.run_all()

    async def play_one(self, recording_id: str) -> None:
        """
        Replay a single recording under the same single-run guard as batch runs.

        Raises:
            RunInProgressError: A batch or another single playback is running
        """
        if self.state.is_running:
            raise RunInProgressError("A playback run is already in progress")

        self.state.is_running = True
        try:
            recording = self.store.get_recording(recording_id)
            self.state.current_recording_name = recording.name if recording else None
            await self.playback.play_recording(recording_id)
        finally:
            self.state.current_recording_name = None
            self.state.is_running = False

    async def _run_sequence(self) -> RunSummary:
        summary = RunSummary(started_at=datetime.now())
        scheduler_logger = get_playback_logger("scheduler")
        try:
            recordings = self.store.list_recordings()
            scheduler_logger.log_operation_start("run_all", recordings=len(recordings))

            for recording in recordings:
                self.state.current_recording_name = recording.name
                logger.info(f"Running: {recording.name} (id={recording.id})")
                try:
                    await self.playback.play_recording(recording.id)
                    summary.succeeded.append(recording.id)
                except Exception as e:
                    # One broken recording must not stop the rest of the batch
                    logger.exception(f"Recording \"{recording.name}\" failed: {e}")
                    summary.failed[recording.id] = str(e)
                await self.sleep(self.politeness_delay)

            summary.finished_at = datetime.now()
            self.state.last_run_at = summary.finished_at
            scheduler_logger.log_operation_success(
                "run_all",
                (summary.finished_at - summary.started_at).total_seconds(),
                succeeded=len(summary.succeeded),
                failed=len(summary.failed),
            )
            logger.info(f"All recordings complete. Last run: {self.state.last_run_at.isoformat()}")
            return summary
        finally:
            self.state.current_recording_name = None
            self.state.is_running = False

    def _on_run_done(self, task: asyncio.Task) -> None:
        self._run_tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Scheduled run aborted: {error}")

    # =================== Status ===================

    def get_status(self) -> SchedulerStatus:
        automation = self.config_loader.load_config()
        active = self.state.active_schedule
        return SchedulerStatus(
            is_running=self.state.is_running,
            current_recording_name=self.state.current_recording_name,
            last_run_at=self.state.last_run_at,
            schedule_expression=active,
            interval=CRON_TO_INTERVAL.get(active) if active else None,
            enabled=automation.schedule_enabled,
        )

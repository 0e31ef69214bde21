"""
Automation API endpoints for the replay engine.

This module provides REST endpoints to replay a single recording, trigger a
run over all recordings, and manage the cron schedule.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ..core.config import settings
from ..core.exceptions import PlaybackError, RecordingNotFoundError, RunInProgressError
from ..services.page_surface import SeleniumPageProvider
from ..services.playback_service import PlaybackService
from ..services.recording_store import JsonRecordingStore
from ..services.scheduler import SequentialScheduler

logger = logging.getLogger(__name__)

# Global service instances, created on first use or installed at startup
_playback_service: Optional[PlaybackService] = None
_scheduler: Optional[SequentialScheduler] = None

router = APIRouter(prefix="/automation", tags=["automation"])


class ScheduleUpdate(BaseModel):
    """Request body for schedule changes."""
    enabled: bool = Field(..., description="Whether scheduled runs are enabled")
    expression: Optional[str] = Field(None, description="Cron expression or interval preset (hourly, daily, ...)")


def configure_automation(playback_service: PlaybackService, scheduler: SequentialScheduler) -> None:
    """Install the service instances used by the endpoints."""
    global _playback_service, _scheduler
    _playback_service = playback_service
    _scheduler = scheduler


async def get_playback_service() -> PlaybackService:
    """Get or create the global playback service instance."""
    global _playback_service

    if _playback_service is None:
        store = JsonRecordingStore(settings.RECORDINGS_PATH)
        _playback_service = PlaybackService(store, SeleniumPageProvider())
        logger.info("Playback service initialized")

    return _playback_service


async def get_scheduler() -> SequentialScheduler:
    """Get or create the global scheduler instance."""
    global _scheduler

    if _scheduler is None:
        playback_service = await get_playback_service()
        _scheduler = SequentialScheduler(playback_service, playback_service.store)
        logger.info("Scheduler initialized")

    return _scheduler


@router.post("/recordings/{recording_id}/play")
async def play_recording(recording_id: str):
    """Replay one recording and wait for it to finish. Rejected while another run is active."""
    scheduler = await get_scheduler()
    try:
        await scheduler.play_one(recording_id)
    except RunInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RecordingNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except PlaybackError as e:
        logger.error(f"Playback of recording {recording_id} failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    return {"status": "success", "recording_id": recording_id}


@router.post("/run-now")
async def run_now():
    """Start a run over all recordings in the background unless one is in progress."""
    scheduler = await get_scheduler()
    return {"started": scheduler.trigger_run()}


@router.get("/status")
async def get_status():
    """Get scheduler status."""
    scheduler = await get_scheduler()
    return scheduler.get_status().to_dict()


@router.post("/schedule")
async def update_schedule(update: ScheduleUpdate):
    """Persist the schedule and start or stop the trigger."""
    scheduler = await get_scheduler()
    try:
        status = scheduler.update_schedule(update.enabled, update.expression)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Schedule updated: enabled={update.enabled}, expression={status.schedule_expression}")
    return status.to_dict()


@router.post("/schedule/stop")
async def stop_schedule():
    """Stop the cron trigger. A run already in progress finishes normally."""
    scheduler = await get_scheduler()
    scheduler.stop()
    return scheduler.get_status().to_dict()

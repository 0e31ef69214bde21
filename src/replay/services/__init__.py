"""
Services module for recorded-step playback.

Element resolution, step execution with retries, navigation tracking,
recording storage and the sequential scheduler.
"""

from .confidence_scorer import ConfidenceScorer
from .page_surface import PageProvider, PageSurface, SeleniumPageProvider
from .playback_service import PlaybackService
from .recording_store import JsonRecordingStore, RecordingStore
from .retry_controller import RetryController
from .scheduler import SequentialScheduler
from .step_executor import StepExecutor

__all__ = [
    "ConfidenceScorer",
    "PageProvider",
    "PageSurface",
    "SeleniumPageProvider",
    "PlaybackService",
    "JsonRecordingStore",
    "RecordingStore",
    "RetryController",
    "SequentialScheduler",
    "StepExecutor",
]

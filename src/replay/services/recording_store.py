"""Recording storage: one JSON document per recording."""

import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..core.config import settings
from ..core.models import Recording


logger = logging.getLogger(__name__)


class RecordingStore(ABC):
    """Source of recordings for playback and the scheduler."""

    @abstractmethod
    def list_recordings(self) -> List[Recording]:
        """All recordings, ordered by name."""
        pass

    @abstractmethod
    def get_recording(self, recording_id: str) -> Optional[Recording]:
        """Read the recording from disk so edits to the file are always picked up."""
        pass

    @abstractmethod
    def save_recording(self, recording: Recording) -> None:
        pass

    @abstractmethod
    def mark_run(self, recording_id: str, when: datetime) -> None:
        """Stamp the time of the last successful playback."""
        pass


class JsonRecordingStore(RecordingStore):
    """Stores recordings as ``<id>.json`` files under a directory."""

    def __init__(self, storage_path: Optional[str] = None):
        """Initialize the store.

        Args:
            storage_path: Directory holding recording files. If None, uses settings.
        """
        self.storage_path = Path(storage_path or settings.RECORDINGS_PATH)
        self.storage_path.mkdir(parents=True, exist_ok=True)

    def _file_for(self, recording_id: str) -> Path:
        return self.storage_path / f"{recording_id}.json"

    def list_recordings(self) -> List[Recording]:
        recordings = []
        for recording_file in self.storage_path.glob("*.json"):
            try:
                recordings.append(self._read(recording_file))
            except Exception as e:
                logger.warning(f"Failed to load recording {recording_file.name}: {e}")
                continue

        recordings.sort(key=lambda r: r.name.lower())
        return recordings

    def get_recording(self, recording_id: str) -> Optional[Recording]:
        """Read the recording from disk so edits to the file are always picked up."""
        recording_file = self._file_for(recording_id)
        if not recording_file.exists():
            return None
        return self._read(recording_file)

    def save_recording(self, recording: Recording) -> None:
        try:
            with open(self._file_for(recording.id), 'w', encoding='utf-8') as f:
                json.dump(recording.to_dict(), f, indent=2, ensure_ascii=False)
        except Exception as e:
            logger.error(f"Failed to store recording {recording.id}: {e}")
            raise

        logger.debug(f"Stored recording {recording.id} ({recording.name})")

    def mark_run(self, recording_id: str, when: datetime) -> None:
        recording = self.get_recording(recording_id)
        if recording is None:
            logger.warning(f"Cannot mark run for unknown recording {recording_id}")
            return
        recording.last_run_at = when
        self.save_recording(recording)

    def _read(self, recording_file: Path) -> Recording:
        with open(recording_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return Recording.from_dict(data)

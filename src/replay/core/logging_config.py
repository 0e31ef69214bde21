"""
Logging configuration for the playback engine.

This module provides structured logging configuration. Module loggers under
the package and the playback/scheduler operation loggers share the
operations and error log files.
"""

import logging
import logging.handlers
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import asdict, is_dataclass


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    CONTEXT_FIELDS = (
        'recording_id', 'recording_name', 'step_index', 'operation',
        'duration', 'success', 'error_code', 'metadata'
    )

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        for name in self.CONTEXT_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data['exception'] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        return json.dumps(log_data, default=self._json_serializer)

    def _json_serializer(self, obj):
        """Custom JSON serializer for complex objects."""
        if is_dataclass(obj):
            return asdict(obj)
        elif hasattr(obj, 'isoformat'):  # datetime objects
            return obj.isoformat()
        elif hasattr(obj, '__dict__'):
            return obj.__dict__
        else:
            return str(obj)


class PlaybackLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter for playback operations with recording context."""

    def __init__(self, logger: logging.Logger, extra: Dict[str, Any]):
        super().__init__(logger, extra)

    def process(self, msg: str, kwargs: Dict[str, Any]) -> tuple:
        """Process log message and add contextual information."""
        if 'extra' not in kwargs:
            kwargs['extra'] = {}
        kwargs['extra'].update(self.extra)
        return msg, kwargs

    def log_operation_start(self, operation: str, **metadata):
        """Log the start of a playback operation."""
        self.info(f"Starting {operation}", extra={
            'operation': operation,
            'metadata': metadata
        })

    def log_operation_success(self, operation: str, duration: float, **metadata):
        """Log successful completion of a playback operation."""
        self.info(f"Completed {operation} successfully in {duration:.2f}s", extra={
            'operation': operation,
            'success': True,
            'duration': duration,
            'metadata': metadata
        })

    def log_operation_failure(self, operation: str, duration: float, error: str, error_code: Optional[str] = None, **metadata):
        """Log failure of a playback operation."""
        self.error(f"Failed {operation}: {error}", extra={
            'operation': operation,
            'success': False,
            'duration': duration,
            'error_code': error_code,
            'metadata': metadata
        })


PLAYBACK_COMPONENTS = ("playback", "scheduler")

# Parent of every module logger created with getLogger(__name__)
PACKAGE_LOGGER = __name__.rsplit(".core.", 1)[0]


def setup_playback_logging(log_level: str = "INFO", log_dir: str = "logs") -> Dict[str, logging.Logger]:
    """
    Set up structured logging for the playback engine.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_dir: Directory to store log files

    Returns:
        Dictionary of configured loggers
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    structured_formatter = StructuredFormatter()
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(console_formatter)
    console_handler.setLevel(getattr(logging, log_level.upper()))

    all_logs_handler = logging.handlers.RotatingFileHandler(
        log_path / "playback_all.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5
    )
    all_logs_handler.setFormatter(structured_formatter)
    all_logs_handler.setLevel(logging.DEBUG)

    operations_handler = logging.handlers.RotatingFileHandler(
        log_path / "playback_operations.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10
    )
    operations_handler.setFormatter(structured_formatter)
    operations_handler.setLevel(logging.INFO)

    error_handler = logging.handlers.RotatingFileHandler(
        log_path / "playback_errors.log",
        maxBytes=5 * 1024 * 1024,  # 5MB
        backupCount=10
    )
    error_handler.setFormatter(structured_formatter)
    error_handler.setLevel(logging.ERROR)

    root_logger.addHandler(console_handler)
    root_logger.addHandler(all_logs_handler)

    loggers = {}
    for component in PLAYBACK_COMPONENTS:
        component_logger = logging.getLogger(f"playback.{component}")
        _replace_file_handlers(component_logger, operations_handler, error_handler)
        loggers[component] = component_logger

    _replace_file_handlers(logging.getLogger(PACKAGE_LOGGER), operations_handler, error_handler)

    # WebDriver wire traffic is noisy at DEBUG
    for noisy in ("selenium", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return loggers


def _replace_file_handlers(target: logging.Logger, *handlers: logging.Handler) -> None:
    for handler in target.handlers[:]:
        target.removeHandler(handler)
        handler.close()
    for handler in handlers:
        target.addHandler(handler)


def get_playback_logger(component: str, recording_id: Optional[str] = None,
                        recording_name: Optional[str] = None) -> PlaybackLoggerAdapter:
    """
    Get a playback logger adapter with contextual information.

    Args:
        component: Component name (playback, scheduler, ...)
        recording_id: Optional recording id
        recording_name: Optional recording name

    Returns:
        PlaybackLoggerAdapter instance
    """
    logger = logging.getLogger(f"playback.{component}")

    extra = {}
    if recording_id:
        extra['recording_id'] = recording_id
    if recording_name:
        extra['recording_name'] = recording_name

    return PlaybackLoggerAdapter(logger, extra)

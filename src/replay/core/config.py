from pydantic_settings import BaseSettings
from pydantic import Field, validator
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    # Storage
    DATA_DIR: str = Field(default="data", description="Root directory for local playback data")
    RECORDINGS_PATH: str = Field(default="data/recordings", description="Directory holding one JSON file per recording")
    AUTOMATION_CONFIG_PATH: str = Field(default="config/automation.yaml", description="Retry and schedule settings file")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Console log level")
    LOG_DIR: str = Field(default="logs", description="Directory for rotating log files")

    # Element resolution
    # 60 was lowered from 70 while recordings were being improved; treat it as tunable.
    CONFIDENCE_THRESHOLD: int = Field(default=60, description="Minimum confidence (0-100) to act on an element")
    ELEMENT_WAIT_TIMEOUT: float = Field(default=10.0, description="Seconds to wait for input/select targets to appear")
    PAGE_LOAD_TIMEOUT: float = Field(default=5.0, description="Seconds to wait for readyState after a click")
    PROBE_TIMEOUT: float = Field(default=2.0, description="Seconds allowed for the page responsiveness probe")

    # Scheduler
    POLITENESS_DELAY: float = Field(default=2.0, description="Seconds to pause between recordings in a scheduled run")

    # Browser
    BROWSER_HEADLESS: bool = Field(default=False, description="Run the playback browser headless")
    BROWSER_WINDOW_WIDTH: int = Field(default=1400, description="Playback window width")
    BROWSER_WINDOW_HEIGHT: int = Field(default=1000, description="Playback window height")

    # Service Configuration
    APP_PORT: int = Field(default=5000, description="Port for FastAPI service")

    @validator('CONFIDENCE_THRESHOLD')
    def validate_confidence_threshold(cls, v):
        """Validate that CONFIDENCE_THRESHOLD is a percentage."""
        if v < 1 or v > 100:
            raise ValueError(f"CONFIDENCE_THRESHOLD must be between 1 and 100, got {v}")
        return v

    @validator('ELEMENT_WAIT_TIMEOUT', 'PAGE_LOAD_TIMEOUT', 'PROBE_TIMEOUT')
    def validate_timeouts(cls, v):
        """Validate that timeouts are positive."""
        if v <= 0:
            raise ValueError(f"Timeouts must be positive, got {v}")
        return v

    @validator('LOG_LEVEL')
    def validate_log_level(cls, v):
        if v.upper() not in ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']:
            raise ValueError(f"LOG_LEVEL must be a standard logging level, got '{v}'")
        return v.upper()

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = 'allow'  # Allow extra fields from .env file

settings = Settings()

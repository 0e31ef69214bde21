"""Loading and validation of the automation settings file (retries and schedule)."""

import copy
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from .models.playback_models import AutomationSettings
from .config import settings

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""
    pass


class AutomationConfigLoader:
    """Loads, validates and saves automation settings."""

    DEFAULT_CONFIG = {
        "automation": {
            "retry_attempts": 3,
            "retry_delay_ms": 2000,
            "confidence_threshold": settings.CONFIDENCE_THRESHOLD,
            "schedule": {
                "enabled": False,
                "cron": "0 6 * * *"
            }
        }
    }

    def __init__(self, config_path: Optional[str] = None):
        """Initialize config loader with optional custom path."""
        self.config_path = Path(
            config_path or settings.AUTOMATION_CONFIG_PATH)
        self._config_cache: Optional[AutomationSettings] = None
        self._config_file_mtime: Optional[float] = None

    def load_config(self, force_reload: bool = False) -> AutomationSettings:
        """Load and validate automation settings.

        Args:
            force_reload: Force reload even if cached config exists

        Returns:
            AutomationSettings: Validated settings

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not force_reload and self._config_cache and self._is_config_current():
            return self._config_cache

        try:
            config_data = self._load_config_file()
            automation_settings = self._parse_automation_config(config_data)
            self._validate_config(automation_settings)

            self._config_cache = automation_settings
            if self.config_path.exists():
                self._config_file_mtime = self.config_path.stat().st_mtime

            logger.info(
                f"Loaded automation settings from {self.config_path}")
            return automation_settings

        except ConfigurationError:
            raise
        except Exception as e:
            logger.error(f"Failed to load automation settings: {e}")
            raise ConfigurationError(
                f"Configuration loading failed: {e}") from e

    def save_config(self, config: AutomationSettings) -> None:
        """Save settings to file.

        Raises:
            ConfigurationError: If validation or writing fails
        """
        self._validate_config(config)
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

            config_data = {
                "automation": self._config_to_dict(config)
            }

            with open(self.config_path, 'w', encoding='utf-8') as f:
                yaml.dump(config_data, f, default_flow_style=False, indent=2)

            self._config_cache = config
            self._config_file_mtime = self.config_path.stat().st_mtime

            logger.info(
                f"Saved automation settings to {self.config_path}")

        except Exception as e:
            logger.error(f"Failed to save automation settings: {e}")
            raise ConfigurationError(
                f"Configuration saving failed: {e}") from e

    def _load_config_file(self) -> Dict[str, Any]:
        """Load configuration from file or return defaults."""
        if not self.config_path.exists():
            logger.info(
                f"Config file {self.config_path} not found, using defaults")
            return copy.deepcopy(self.DEFAULT_CONFIG)

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read config file: {e}")

        return self._deep_merge(copy.deepcopy(self.DEFAULT_CONFIG), config_data)

    def _parse_automation_config(self, config_data: Dict[str, Any]) -> AutomationSettings:
        """Parse configuration data into an AutomationSettings object."""
        section = config_data.get("automation", {})
        schedule = section.get("schedule", {})

        try:
            return AutomationSettings(
                retry_attempts=int(section.get("retry_attempts", 3)),
                retry_delay_ms=int(section.get("retry_delay_ms", 2000)),
                confidence_threshold=int(section.get(
                    "confidence_threshold", settings.CONFIDENCE_THRESHOLD)),
                schedule_enabled=bool(schedule.get("enabled", False)),
                schedule_cron=str(schedule.get("cron", "0 6 * * *")),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid automation setting: {e}")

    def _config_to_dict(self, config: AutomationSettings) -> Dict[str, Any]:
        """Convert AutomationSettings to the nested file structure."""
        return {
            "retry_attempts": config.retry_attempts,
            "retry_delay_ms": config.retry_delay_ms,
            "confidence_threshold": config.confidence_threshold,
            "schedule": {
                "enabled": config.schedule_enabled,
                "cron": config.schedule_cron
            }
        }

    def _validate_config(self, config: AutomationSettings) -> None:
        """Validate configuration values.

        Raises:
            ConfigurationError: If validation fails
        """
        errors = []

        if config.retry_attempts < 1 or config.retry_attempts > 10:
            errors.append("retry_attempts must be between 1 and 10")

        if config.retry_delay_ms < 0 or config.retry_delay_ms > 60000:
            errors.append("retry_delay_ms must be between 0 and 60000")

        if config.confidence_threshold < 1 or config.confidence_threshold > 100:
            errors.append("confidence_threshold must be between 1 and 100")

        if not config.schedule_cron or not config.schedule_cron.strip():
            errors.append("schedule cron expression must not be empty")

        if errors:
            raise ConfigurationError(
                "Configuration validation failed: " + "; ".join(errors))

    def _is_config_current(self) -> bool:
        """Check if cached config is still current."""
        if not self.config_path.exists():
            return self._config_file_mtime is None

        current_mtime = self.config_path.stat().st_mtime
        return self._config_file_mtime == current_mtime

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result


# Global config loader instance
config_loader = AutomationConfigLoader()


def get_automation_settings(force_reload: bool = False) -> AutomationSettings:
    """Get the current automation settings."""
    return config_loader.load_config(force_reload)


def save_automation_settings(config: AutomationSettings) -> None:
    """Persist automation settings."""
    config_loader.save_config(config)

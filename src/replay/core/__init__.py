"""
Core module for the recorded-step replay engine.

This module contains:
- config.py: Environment settings
- config_loader.py: Automation settings file (retries, schedule)
- logging_config.py: Logging configuration
- exceptions.py: Playback error taxonomy
"""

__all__ = ["config", "config_loader", "logging_config", "exceptions"]

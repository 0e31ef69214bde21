"""
API module for the replay engine.

This module contains:
- automation_endpoints.py: Playback and schedule endpoints
"""

__all__ = ["automation_endpoints"]

"""
Pytest configuration and shared fixtures for the test suite.
"""

import pytest
import sys
from pathlib import Path

# Make the ``src`` package importable without installing the project
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture
def recordings_dir(tmp_path):
    """Create a temporary recordings directory for testing."""
    recordings_dir = tmp_path / "recordings"
    recordings_dir.mkdir()
    return recordings_dir


@pytest.fixture
def automation_config_path(tmp_path):
    """Path for a temporary automation settings file (not created)."""
    return tmp_path / "config" / "automation.yaml"


@pytest.fixture(autouse=True)
def setup_test_logging():
    """Set up logging for tests."""
    import logging
    logging.basicConfig(
        level=logging.DEBUG,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

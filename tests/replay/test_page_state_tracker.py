"""
Tests for navigation tracking during playback.
"""

import pytest

from src.replay.core.models import PlaybackRun
from src.replay.services.page_state_tracker import PageStateTracker
from tests.replay.fakes import FakePage


class TestPageStateTracker:
    """Test cases for PageStateTracker."""

    def setup_method(self):
        self.page = FakePage(url="https://bank.example.com/login")
        self.run = PlaybackRun(page_just_loaded=False, last_page_url="https://stale.example.com")
        self.tracker = PageStateTracker(self.page, self.run)

    def test_reset_marks_fresh_load(self):
        self.tracker.reset()

        assert self.run.page_just_loaded is True
        assert self.run.last_page_url is None

    @pytest.mark.asyncio
    async def test_url_change_marks_fresh_load(self):
        self.tracker.reset()
        await self.tracker.before_step()
        self.tracker.after_step_success()
        assert self.run.page_just_loaded is False

        self.page.url = "https://bank.example.com/accounts"
        current = await self.tracker.before_step()

        assert current == "https://bank.example.com/accounts"
        assert self.run.page_just_loaded is True
        assert self.run.last_page_url == "https://bank.example.com/accounts"

    @pytest.mark.asyncio
    async def test_same_url_keeps_flag_cleared(self):
        self.tracker.reset()
        await self.tracker.before_step()
        self.tracker.after_step_success()

        await self.tracker.before_step()

        assert self.run.page_just_loaded is False

    def test_navigation_event_marks_fresh_load(self):
        self.tracker.attach()
        self.tracker.after_step_success()

        self.page.navigate_to("https://bank.example.com/statements")

        assert self.run.page_just_loaded is True

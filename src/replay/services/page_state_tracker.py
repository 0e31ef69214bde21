"""Tracks navigations during playback so scroll restoration is skipped on fresh pages."""

import logging

from ..core.models import PlaybackRun
from .page_surface import PageSurface


logger = logging.getLogger(__name__)


class PageStateTracker:
    """Keeps the PlaybackRun's ``page_just_loaded`` flag in step with the page."""

    def __init__(self, page: PageSurface, run: PlaybackRun):
        self.page = page
        self.run = run

    def reset(self) -> None:
        """Start of a playback: the first page is always freshly loaded."""
        self.run.reset()

    def attach(self) -> None:
        self.page.on_navigation_finished(self._on_navigation)
        self.page.on_in_page_navigation(self._on_navigation)

    async def before_step(self) -> str:
        current_url = await self.page.get_current_url()
        if current_url != self.run.last_page_url:
            if self.run.last_page_url is not None:
                logger.info(f"Page navigation detected: {self.run.last_page_url} -> {current_url}")
            self.run.page_just_loaded = True
            self.run.last_page_url = current_url
        return current_url

    def after_step_success(self) -> None:
        self.run.page_just_loaded = False

    def _on_navigation(self, url: str) -> None:
        logger.debug(f"Navigation event: {url}")
        self.run.page_just_loaded = True

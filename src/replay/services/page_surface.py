"""
Host page surface used by playback, with a Selenium-backed implementation.

Playback only needs a handful of primitives from the embedded page: run a
script, read the URL, send raw pointer/keyboard input, and hear about
navigations. Everything else about the page lifecycle belongs to the host.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, List, Optional, Sequence

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.common.action_chains import ActionChains
from selenium.webdriver.common.actions.action_builder import ActionBuilder
from selenium.webdriver.common.actions.mouse_button import MouseButton
from selenium.webdriver.common.keys import Keys

from ..core.config import settings


logger = logging.getLogger(__name__)


NavigationCallback = Callable[[str], None]

POINTER_BUTTONS = {
    "left": MouseButton.LEFT,
    "middle": MouseButton.MIDDLE,
    "right": MouseButton.RIGHT,
}

NAMED_KEYS = {
    "Control": Keys.CONTROL,
    "Meta": Keys.COMMAND,
    "Shift": Keys.SHIFT,
    "Alt": Keys.ALT,
    "Delete": Keys.DELETE,
    "Backspace": Keys.BACKSPACE,
    "Enter": Keys.ENTER,
    "Tab": Keys.TAB,
}


class PageSurface(ABC):
    """
    Contract for the embedded page a recording is replayed against.

    Scripts passed to ``evaluate`` follow the WebDriver ``execute_script``
    convention (``arguments[n]`` in, ``return`` out).
    """

    @abstractmethod
    async def evaluate(self, script: str, *args: Any, timeout: Optional[float] = None) -> Any:
        """Run a script in the page context and return its JSON-compatible result."""
        pass

    @abstractmethod
    async def get_current_url(self) -> str:
        pass

    @abstractmethod
    async def dispatch_pointer_event(self, event_type: str, x: int, y: int, button: str = "left") -> None:
        """Send a raw ``down``/``up``/``move`` pointer event at viewport coordinates."""
        pass

    @abstractmethod
    async def dispatch_key_event(self, event_type: str, key: str, modifiers: Sequence[str] = ()) -> None:
        """Send a raw ``down``/``up``/``char`` keyboard event."""
        pass

    @abstractmethod
    def is_destroyed(self) -> bool:
        pass

    @abstractmethod
    def on_navigation_finished(self, callback: NavigationCallback) -> None:
        pass

    @abstractmethod
    def on_in_page_navigation(self, callback: NavigationCallback) -> None:
        pass


class PageProvider(ABC):
    """Creates and disposes of the page surface for one recording."""

    @abstractmethod
    async def open(self, url: str) -> PageSurface:
        pass

    @abstractmethod
    async def close(self, page: PageSurface) -> None:
        pass


class SeleniumPageSurface(PageSurface):
    """PageSurface over a Selenium WebDriver; blocking calls run in a thread pool."""

    def __init__(self, driver: webdriver.Remote, executor: ThreadPoolExecutor):
        self.driver = driver
        self.executor = executor
        self._closed = False
        self._last_seen_url: Optional[str] = None
        self._navigation_finished: List[NavigationCallback] = []
        self._in_page_navigation: List[NavigationCallback] = []

    async def _run(self, func, *args, timeout: Optional[float] = None):
        call = asyncio.get_running_loop().run_in_executor(self.executor, func, *args)
        if timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=timeout)

    async def evaluate(self, script: str, *args: Any, timeout: Optional[float] = None) -> Any:
        return await self._run(self.driver.execute_script, script, *args, timeout=timeout)

    async def navigate(self, url: str) -> None:
        """Load a URL (blocks until the document load finishes) and notify listeners."""
        await self._run(self.driver.get, url)
        current = await self._run(lambda: self.driver.current_url)
        self._last_seen_url = current
        for callback in self._navigation_finished:
            callback(current)

    async def get_current_url(self) -> str:
        current = await self._run(lambda: self.driver.current_url)
        # WebDriver has no navigation events; a URL change seen here is reported as in-page
        if self._last_seen_url is not None and current != self._last_seen_url:
            for callback in self._in_page_navigation:
                callback(current)
        self._last_seen_url = current
        return current

    async def dispatch_pointer_event(self, event_type: str, x: int, y: int, button: str = "left") -> None:
        def perform():
            builder = ActionBuilder(self.driver)
            builder.pointer_action.move_to_location(x, y)
            if event_type == "down":
                builder.pointer_action.pointer_down(POINTER_BUTTONS[button])
            elif event_type == "up":
                builder.pointer_action.pointer_up(POINTER_BUTTONS[button])
            elif event_type != "move":
                raise ValueError(f"Unsupported pointer event: {event_type}")
            builder.perform()

        await self._run(perform)

    async def dispatch_key_event(self, event_type: str, key: str, modifiers: Sequence[str] = ()) -> None:
        def perform():
            chain = ActionChains(self.driver)
            if event_type == "char":
                chain.send_keys(key)
            elif event_type == "down":
                for modifier in modifiers:
                    chain.key_down(NAMED_KEYS[modifier])
                chain.key_down(NAMED_KEYS.get(key, key))
            elif event_type == "up":
                chain.key_up(NAMED_KEYS.get(key, key))
                for modifier in reversed(modifiers):
                    chain.key_up(NAMED_KEYS[modifier])
            else:
                raise ValueError(f"Unsupported key event: {event_type}")
            chain.perform()

        await self._run(perform)

    def is_destroyed(self) -> bool:
        return self._closed or getattr(self.driver, "session_id", None) is None

    def on_navigation_finished(self, callback: NavigationCallback) -> None:
        self._navigation_finished.append(callback)

    def on_in_page_navigation(self, callback: NavigationCallback) -> None:
        self._in_page_navigation.append(callback)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._run(self.driver.quit)
        except WebDriverException as e:
            logger.warning(f"Error closing playback browser: {e}")


class SeleniumPageProvider(PageProvider):
    """Opens one Chrome window per recording."""

    def __init__(self, headless: Optional[bool] = None, max_workers: int = 2):
        self.headless = settings.BROWSER_HEADLESS if headless is None else headless
        self.executor = ThreadPoolExecutor(max_workers=max_workers)
        self.chrome_options = self._create_chrome_options()

    def _create_chrome_options(self) -> Options:
        """Create Chrome options for playback."""
        options = Options()
        if self.headless:
            options.add_argument("--headless=new")
        options.add_argument("--no-sandbox")
        options.add_argument("--disable-dev-shm-usage")
        options.add_argument(f"--window-size={settings.BROWSER_WINDOW_WIDTH},{settings.BROWSER_WINDOW_HEIGHT}")

        # Don't advertise automation to the target site
        options.add_experimental_option("useAutomationExtension", False)
        options.add_experimental_option("excludeSwitches", ["enable-automation"])

        return options

    def _create_driver(self) -> webdriver.Chrome:
        try:
            driver = webdriver.Chrome(options=self.chrome_options)
            logger.info("Created playback Chrome session")
            return driver
        except Exception as e:
            logger.error(f"Failed to create Chrome session: {e}")
            raise

    async def open(self, url: str) -> SeleniumPageSurface:
        driver = await asyncio.get_running_loop().run_in_executor(self.executor, self._create_driver)
        page = SeleniumPageSurface(driver, self.executor)
        try:
            await page.navigate(url)
        except Exception:
            await page.close()
            raise
        logger.info(f"Playback page opened at {url}")
        return page

    async def close(self, page: PageSurface) -> None:
        if isinstance(page, SeleniumPageSurface):
            await page.close()

    def shutdown(self) -> None:
        self.executor.shutdown(wait=True)

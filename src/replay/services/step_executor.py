"""
Step executor: performs one recorded click, input or select.

The target element is resolved through the confidence scorer. When semantic
resolution finds nothing at all (typically because the target lives inside a
cross-origin frame) and the fingerprint recorded coordinates, raw pointer and
keyboard events are replayed at the recorded position instead. Coordinates
are never tried first, and never used when candidates exist but scored too low.
"""

import asyncio
import logging
import sys
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from ..core.config import settings
from ..core.exceptions import (
    ElementResolutionError,
    ElementTypeMismatchError,
    PageUnresponsiveError,
    RecordingIntegrityError,
    StepExecutionError,
)
from ..core.models import (
    CandidateElement,
    ClickStep,
    ElementFingerprint,
    InputStep,
    MatchResult,
    PlaybackRun,
    RecordedStep,
    ResolutionOutcome,
    SelectStep,
    Viewport,
)
from . import page_scripts
from .confidence_scorer import ConfidenceScorer
from .page_surface import PageSurface


logger = logging.getLogger(__name__)


SleepFunc = Callable[[float], Awaitable[None]]
ClockFunc = Callable[[], float]

SELECT_ALL_MODIFIER = "Meta" if sys.platform == "darwin" else "Control"

INPUT_TAGS = ("INPUT", "TEXTAREA")


class StepExecutor:
    """Executes single steps against a page for one playback run."""

    ELEMENT_POLL_INTERVAL = 0.5
    PAGE_LOAD_POLL_INTERVAL = 0.1
    PAGE_LOAD_ERROR_BACKOFF = 0.2
    PAGE_SETTLE_DELAY = 0.5
    SCROLL_TOLERANCE_PX = 100
    SCROLL_SETTLE_DELAY = 0.3
    COORDINATE_SCROLL_SETTLE_DELAY = 0.5
    POINTER_PRESS_DELAY = 0.05
    FOCUS_DELAY = 0.2
    KEYSTROKE_DELAY = 0.05

    def __init__(
        self,
        page: PageSurface,
        scorer: ConfidenceScorer,
        run: PlaybackRun,
        sleep: SleepFunc = asyncio.sleep,
        element_wait_timeout: Optional[float] = None,
        page_load_timeout: Optional[float] = None,
        clock: ClockFunc = time.monotonic,
    ):
        self.page = page
        self.scorer = scorer
        self.run = run
        self.sleep = sleep
        self.clock = clock
        self.element_wait_timeout = element_wait_timeout or settings.ELEMENT_WAIT_TIMEOUT
        self.page_load_timeout = page_load_timeout or settings.PAGE_LOAD_TIMEOUT

    async def execute(self, step: RecordedStep) -> None:
        """Perform one step. Raises a PlaybackError subclass on failure."""
        if self.page.is_destroyed():
            raise PageUnresponsiveError("Page is destroyed")

        if isinstance(step, ClickStep):
            logger.info("Executing click")
            await self.click(step.fingerprint)
            await self.wait_for_page_load(self.page_load_timeout)
        elif isinstance(step, InputStep):
            logger.info("Executing input")
            await self.wait_for_element(step.fingerprint, self.element_wait_timeout)
            await self.input(step.fingerprint, step.value)
        elif isinstance(step, SelectStep):
            logger.info("Executing select")
            await self.wait_for_element(step.fingerprint, self.element_wait_timeout)
            await self.select(step.fingerprint, step.value)
        else:
            raise RecordingIntegrityError(f"Unsupported step type: {getattr(step, 'step_type', type(step).__name__)}")

    # =================== Resolution ===================

    async def resolve(self, fingerprint: ElementFingerprint) -> MatchResult:
        """Collect candidates from the page and score them host-side."""
        if not fingerprint.has_semantic_signals():
            return self.scorer.find_best_match(fingerprint, [])

        selector = self.scorer.candidate_selector(fingerprint)
        try:
            raw_candidates = await self.page.evaluate(page_scripts.COLLECT_CANDIDATES, selector)
        except Exception as e:
            page_url, page_title = await self._page_info()
            raise StepExecutionError(
                f"Element lookup failed in page context: {e}",
                page_url=page_url,
                page_title=page_title,
            ) from e

        candidates = [CandidateElement.from_dict(item) for item in raw_candidates or []]
        return self.scorer.find_best_match(fingerprint, candidates)

    async def wait_for_element(self, fingerprint: ElementFingerprint, timeout: float) -> bool:
        """
        Poll until the fingerprint resolves, for inputs that appear after async loads.

        Returns False on timeout without raising; the step itself reports the failure.
        """
        if not fingerprint.has_semantic_signals():
            return False

        logger.debug("Waiting for element to appear...")
        deadline = self.clock() + timeout
        while True:
            try:
                result = await self.resolve(fingerprint)
                if result.matched:
                    logger.debug("Element found, proceeding")
                    return True
            except StepExecutionError as e:
                logger.debug(f"Element lookup failed while waiting: {e}")
            # Lookups count against the limit, not only the poll sleeps
            if self.clock() + self.ELEMENT_POLL_INTERVAL > deadline:
                break
            await self.sleep(self.ELEMENT_POLL_INTERVAL)

        logger.warning(f"Element wait timeout after {timeout:g}s, attempting anyway")
        return False

    async def wait_for_page_load(self, timeout: float) -> bool:
        """Wait for ``document.readyState`` to become complete, then let the page settle."""
        if self.page.is_destroyed():
            return False

        deadline = self.clock() + timeout
        while self.clock() < deadline:
            try:
                state = await self.page.evaluate(page_scripts.READY_STATE)
            except Exception:
                # The document is being replaced during navigation
                await self.sleep(self.PAGE_LOAD_ERROR_BACKOFF)
                continue

            if state == "complete":
                await self.sleep(self.PAGE_SETTLE_DELAY)
                logger.debug("Page load complete")
                return True
            await self.sleep(self.PAGE_LOAD_POLL_INTERVAL)

        logger.info("Page load timeout, continuing anyway")
        return False

    # =================== Step kinds ===================

    async def click(self, fingerprint: ElementFingerprint) -> None:
        result = await self.resolve(fingerprint)
        if result.not_found and fingerprint.coordinates:
            logger.info("Semantic resolution found nothing, falling back to coordinate click")
            await self.click_at_coordinates(fingerprint)
            return
        if not result.matched:
            raise await self._resolution_error("click", result)

        await self._restore_scroll(fingerprint.viewport)
        outcome = await self._run_action(page_scripts.CLICK_CANDIDATE, result.best.candidate.index)
        logger.info(f"Click succeeded on {outcome.get('element')} (\"{(outcome.get('text') or '').strip()}\")")

    async def input(self, fingerprint: ElementFingerprint, value: str) -> None:
        result = await self.resolve(fingerprint)
        if result.not_found and fingerprint.coordinates:
            logger.info("No input element found, falling back to coordinate-based input")
            await self.input_at_coordinates(fingerprint, value)
            return
        if not result.matched:
            raise await self._resolution_error("input", result)

        candidate = result.best.candidate
        if candidate.tag_name.upper() not in INPUT_TAGS:
            raise ElementTypeMismatchError(f"Element is not an input: {candidate.tag_name.upper()}")
        await self._run_action(page_scripts.SET_INPUT_VALUE, candidate.index, value)
        logger.info("Input succeeded")

    async def select(self, fingerprint: ElementFingerprint, value: str) -> None:
        result = await self.resolve(fingerprint)
        if not result.matched:
            raise await self._resolution_error("select", result)

        candidate = result.best.candidate
        if candidate.tag_name.upper() != "SELECT":
            raise ElementTypeMismatchError(f"Element is not a select: {candidate.tag_name.upper()}")
        await self._run_action(page_scripts.SET_SELECT_VALUE, candidate.index, value)
        logger.info("Select succeeded")

    # =================== Coordinate fallback ===================

    async def click_at_coordinates(self, fingerprint: ElementFingerprint) -> None:
        """Replay a left click at the recorded absolute position."""
        if not fingerprint.coordinates:
            raise ElementResolutionError("No coordinates available for coordinate-based click")

        await self._restore_scroll_exactly(fingerprint.viewport)
        x, y = round(fingerprint.coordinates.x), round(fingerprint.coordinates.y)
        await self._press_pointer(x, y)
        logger.info(f"Coordinate-based click complete at ({x}, {y})")

    async def input_at_coordinates(self, fingerprint: ElementFingerprint, value: str) -> None:
        """Focus by clicking, clear with select-all + delete, then type character by character."""
        if not fingerprint.coordinates:
            raise ElementResolutionError("No coordinates available for coordinate-based input")

        await self._restore_scroll_exactly(fingerprint.viewport)
        x, y = round(fingerprint.coordinates.x), round(fingerprint.coordinates.y)
        await self._press_pointer(x, y)
        await self.sleep(self.FOCUS_DELAY)

        try:
            await self.page.dispatch_key_event("down", "a", [SELECT_ALL_MODIFIER])
            await self.sleep(self.KEYSTROKE_DELAY)
            await self.page.dispatch_key_event("up", "a", [SELECT_ALL_MODIFIER])
            await self.sleep(self.KEYSTROKE_DELAY)
            await self.page.dispatch_key_event("down", "Delete")
            await self.page.dispatch_key_event("up", "Delete")

            for char in value or "":
                await self.page.dispatch_key_event("char", char)
                await self.sleep(self.KEYSTROKE_DELAY)
        except Exception as e:
            raise StepExecutionError(f"Coordinate-based typing failed: {e}") from e

        logger.info(f"Coordinate-based input complete at ({x}, {y})")

    async def _press_pointer(self, x: int, y: int) -> None:
        try:
            await self.page.dispatch_pointer_event("down", x, y, "left")
            await self.sleep(self.POINTER_PRESS_DELAY)
            await self.page.dispatch_pointer_event("up", x, y, "left")
        except Exception as e:
            raise StepExecutionError(f"Coordinate-based click failed: {e}") from e

    # =================== Scroll restoration ===================

    async def _restore_scroll(self, viewport: Optional[Viewport]) -> None:
        """Return to the recorded scroll offset when it drifted, unless the page was just loaded."""
        if not viewport:
            return
        if self.run.page_just_loaded:
            logger.debug("Skipping scroll restoration - page just loaded")
            return

        try:
            position = await self.page.evaluate(page_scripts.SCROLL_POSITION) or {}
            current_y = position.get("y", 0) or 0
            if abs(current_y - viewport.scroll_y) > self.SCROLL_TOLERANCE_PX:
                logger.info(f"Restoring scroll position: {current_y}px -> {viewport.scroll_y}px")
                await self.page.evaluate(page_scripts.SCROLL_TO, viewport.scroll_x, viewport.scroll_y)
                await self.sleep(self.SCROLL_SETTLE_DELAY)
        except Exception as e:
            raise StepExecutionError(f"Scroll restoration failed: {e}") from e

    async def _restore_scroll_exactly(self, viewport: Optional[Viewport]) -> None:
        if not viewport:
            return
        if self.run.page_just_loaded:
            logger.debug("Skipping scroll restoration - page just loaded")
            return

        logger.info(f"Scrolling to recorded position: {viewport.scroll_y}px")
        try:
            await self.page.evaluate(page_scripts.SCROLL_TO, viewport.scroll_x, viewport.scroll_y)
        except Exception as e:
            raise StepExecutionError(f"Scroll restoration failed: {e}") from e
        await self.sleep(self.COORDINATE_SCROLL_SETTLE_DELAY)

    # =================== Helpers ===================

    async def _run_action(self, script: str, *args: Any) -> Dict[str, Any]:
        try:
            outcome = await self.page.evaluate(script, *args) or {}
        except Exception as e:
            page_url, page_title = await self._page_info()
            raise StepExecutionError(
                f"Page script failed: {e}", page_url=page_url, page_title=page_title
            ) from e

        if outcome.get("success"):
            return outcome
        error = outcome.get("error") or "Page script reported failure"
        if outcome.get("type_mismatch"):
            raise ElementTypeMismatchError(error)
        raise StepExecutionError(error)

    async def _resolution_error(self, action: str, result: MatchResult) -> ElementResolutionError:
        diagnostics = await self.collect_diagnostics()
        diagnostics["top_candidates"] = [
            {"element": c.describe(), "confidence": c.confidence, "matches": c.matches}
            for c in result.top_candidates
        ]

        if result.outcome is ResolutionOutcome.BELOW_THRESHOLD:
            message = (f"No high-confidence {action} element match found "
                       f"(best: {result.best_confidence}%, threshold: {result.threshold}%)")
        elif result.outcome is ResolutionOutcome.NO_SIGNALS:
            message = f"Fingerprint has no usable signals for {action} and no coordinates"
        else:
            message = f"No {action} element found on the page"

        if diagnostics.get("cross_origin_iframes"):
            logger.info(f"Page has {diagnostics['cross_origin_iframes']} cross-origin iframe(s); "
                        f"the target may be inside one")

        return ElementResolutionError(
            message,
            page_url=diagnostics.get("url"),
            page_title=diagnostics.get("title"),
            diagnostics=diagnostics,
        )

    async def collect_diagnostics(self) -> Dict[str, Any]:
        """Counts of inputs, buttons and (cross-origin) iframes for failure reports."""
        try:
            return dict(await self.page.evaluate(page_scripts.PAGE_DIAGNOSTICS) or {})
        except Exception as e:
            logger.debug(f"Could not get page diagnostics: {e}")
            return {}

    async def _page_info(self) -> Tuple[Optional[str], Optional[str]]:
        try:
            info = await self.page.evaluate(page_scripts.PAGE_INFO) or {}
            return info.get("url"), info.get("title")
        except Exception as e:
            logger.debug(f"Could not read page info: {e}")
            return None, None

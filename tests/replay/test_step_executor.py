"""
Tests for the step executor against a scripted page.
"""

import pytest

from src.replay.core.exceptions import (
    ElementResolutionError,
    ElementTypeMismatchError,
    PageUnresponsiveError,
    RecordingIntegrityError,
    StepExecutionError,
)
from src.replay.core.models import (
    ClickStep,
    Coordinates,
    ElementFingerprint,
    InputStep,
    PlaybackRun,
    SelectStep,
    Viewport,
)
from src.replay.services import page_scripts
from src.replay.services.confidence_scorer import ConfidenceScorer
from src.replay.services.step_executor import SELECT_ALL_MODIFIER, StepExecutor
from tests.replay.fakes import FakePage, RecordingSleep, candidate


def make_executor(page, run=None, threshold=60):
    sleep = RecordingSleep()
    executor = StepExecutor(
        page,
        ConfidenceScorer(threshold=threshold),
        run or PlaybackRun(),
        sleep=sleep,
        element_wait_timeout=1.0,
        page_load_timeout=0.5,
        clock=sleep.clock,
    )
    return executor, sleep


class TestClickSteps:
    """Test cases for click execution."""

    @pytest.mark.asyncio
    async def test_clicks_visible_of_two_matching_buttons(self):
        page = FakePage([
            candidate("BUTTON", "Sign In", display="none"),
            candidate("BUTTON", "Sign In"),
        ])
        executor, _ = make_executor(page)

        await executor.execute(ClickStep(ElementFingerprint(text="Sign In", role="button")))

        assert page.clicks == [("click", 1)]
        assert page.pointer_events == []

    @pytest.mark.asyncio
    async def test_coordinates_only_fingerprint_clicks_at_recorded_position(self):
        page = FakePage([candidate("BUTTON", "Continue")])
        executor, sleep = make_executor(page)

        await executor.execute(ClickStep(ElementFingerprint(coordinates=Coordinates(x=100, y=200))))

        assert page.pointer_events == [
            ("pointer", "down", 100, 200, "left"),
            ("pointer", "up", 100, 200, "left"),
        ]
        assert page.clicks == []
        assert 0.05 in sleep.calls

    @pytest.mark.asyncio
    async def test_parent_context_only_fingerprint_uses_coordinates(self):
        page = FakePage([candidate("BUTTON", "Delete account", parent_class_name="toolbar")])
        executor, _ = make_executor(page)
        fingerprint = ElementFingerprint(parent_class="toolbar", coordinates=Coordinates(x=100, y=200))

        await executor.execute(ClickStep(fingerprint))

        assert page.clicks == []
        assert page.pointer_events[0] == ("pointer", "down", 100, 200, "left")

    @pytest.mark.asyncio
    async def test_no_candidates_falls_back_to_coordinates(self):
        page = FakePage([])
        executor, _ = make_executor(page)
        fingerprint = ElementFingerprint(text="Download", coordinates=Coordinates(x=640.4, y=310.6))

        await executor.execute(ClickStep(fingerprint))

        assert page.pointer_events[0] == ("pointer", "down", 640, 311, "left")

    @pytest.mark.asyncio
    async def test_below_threshold_never_acts(self):
        page = FakePage([candidate("A", "Register")])
        executor, _ = make_executor(page)
        fingerprint = ElementFingerprint(
            text="Sign In", role="button", coordinates=Coordinates(x=100, y=200)
        )

        with pytest.raises(ElementResolutionError) as exc_info:
            await executor.execute(ClickStep(fingerprint))

        assert "No high-confidence click element match found" in str(exc_info.value)
        assert page.actions == []
        assert exc_info.value.page_url == "https://bank.example.com/login"
        assert exc_info.value.diagnostics["top_candidates"][0]["element"] == 'A "Register"'

    @pytest.mark.asyncio
    async def test_no_candidates_without_coordinates(self):
        page = FakePage([])
        executor, _ = make_executor(page)

        with pytest.raises(ElementResolutionError, match="No click element found"):
            await executor.execute(ClickStep(ElementFingerprint(text="Sign In")))

    @pytest.mark.asyncio
    async def test_waits_for_page_load_after_click(self):
        page = FakePage([candidate("BUTTON", "Next")])
        executor, sleep = make_executor(page)

        await executor.execute(ClickStep(ElementFingerprint(text="Next")))

        assert page.evaluations[-1][0] == page_scripts.READY_STATE
        assert sleep.calls[-1] == StepExecutor.PAGE_SETTLE_DELAY


class TestScrollRestoration:
    """Test cases for restoring the recorded scroll offset."""

    @pytest.mark.asyncio
    async def test_restores_scroll_when_drifted(self):
        page = FakePage([candidate("BUTTON", "Export")])
        executor, sleep = make_executor(page, run=PlaybackRun(page_just_loaded=False))
        fingerprint = ElementFingerprint(text="Export", viewport=Viewport(1400, 1000, 0, 450))

        await executor.click(fingerprint)

        assert page.scrolls == [(0, 450)]
        assert sleep.calls == [StepExecutor.SCROLL_SETTLE_DELAY]

    @pytest.mark.asyncio
    async def test_small_drift_is_ignored(self):
        page = FakePage([candidate("BUTTON", "Export")])
        page.scroll = {"x": 0, "y": 400}
        executor, _ = make_executor(page, run=PlaybackRun(page_just_loaded=False))

        await executor.click(ElementFingerprint(text="Export", viewport=Viewport(1400, 1000, 0, 450)))

        assert page.scrolls == []

    @pytest.mark.asyncio
    async def test_skipped_on_fresh_page(self):
        page = FakePage([candidate("BUTTON", "Export")])
        executor, _ = make_executor(page, run=PlaybackRun(page_just_loaded=True))

        await executor.click(ElementFingerprint(text="Export", viewport=Viewport(1400, 1000, 0, 450)))

        assert page.scrolls == []

    @pytest.mark.asyncio
    async def test_coordinate_click_scrolls_exactly(self):
        page = FakePage([])
        executor, sleep = make_executor(page, run=PlaybackRun(page_just_loaded=False))
        fingerprint = ElementFingerprint(coordinates=Coordinates(x=100, y=200), viewport=Viewport(1400, 1000, 0, 40))

        await executor.click_at_coordinates(fingerprint)

        assert page.scrolls == [(0, 40)]
        assert sleep.calls[0] == StepExecutor.COORDINATE_SCROLL_SETTLE_DELAY


class TestInputAndSelectSteps:
    """Test cases for input and select execution."""

    @pytest.mark.asyncio
    async def test_sets_input_value(self):
        page = FakePage([candidate("INPUT", "", placeholder="Email")])
        executor, _ = make_executor(page)

        await executor.execute(InputStep(ElementFingerprint(placeholder="Email"), "me@example.com"))

        assert page.actions == [("input", 0, "me@example.com")]

    @pytest.mark.asyncio
    async def test_input_on_non_input_element(self):
        page = FakePage([candidate("BUTTON", "Email")])
        executor, _ = make_executor(page)

        with pytest.raises(ElementTypeMismatchError, match="Element is not an input: BUTTON"):
            await executor.execute(InputStep(ElementFingerprint(text="Email"), "me@example.com"))

        assert page.actions == []

    @pytest.mark.asyncio
    async def test_waits_for_input_then_fails(self):
        page = FakePage([])
        executor, sleep = make_executor(page)

        with pytest.raises(ElementResolutionError, match="No input element found"):
            await executor.execute(InputStep(ElementFingerprint(placeholder="Email"), "x"))

        assert sleep.calls == [StepExecutor.ELEMENT_POLL_INTERVAL] * 2

    @pytest.mark.asyncio
    async def test_coordinate_input_types_each_character(self):
        page = FakePage([])
        executor, _ = make_executor(page)
        fingerprint = ElementFingerprint(coordinates=Coordinates(x=300, y=420))

        await executor.execute(InputStep(fingerprint, "ab"))

        assert page.pointer_events == [
            ("pointer", "down", 300, 420, "left"),
            ("pointer", "up", 300, 420, "left"),
        ]
        assert page.key_events == [
            ("key", "down", "a", (SELECT_ALL_MODIFIER,)),
            ("key", "up", "a", (SELECT_ALL_MODIFIER,)),
            ("key", "down", "Delete", ()),
            ("key", "up", "Delete", ()),
            ("key", "char", "a", ()),
            ("key", "char", "b", ()),
        ]

    @pytest.mark.asyncio
    async def test_sets_select_value(self):
        page = FakePage([candidate("SELECT", "30 days 60 days 90 days", role_attribute=None)])
        executor, _ = make_executor(page)

        await executor.execute(SelectStep(ElementFingerprint(role="select"), "90"))

        assert page.actions == [("select", 0, "90")]

    @pytest.mark.asyncio
    async def test_select_below_threshold_never_acts(self):
        page = FakePage([candidate("SELECT", "", aria_label="Account")])
        executor, _ = make_executor(page)
        fingerprint = ElementFingerprint(role="select", aria_label="Date range", placeholder="Range")

        with pytest.raises(ElementResolutionError):
            await executor.execute(SelectStep(fingerprint, "90"))

        assert page.actions == []


class TestExecutorFailures:
    """Test cases for failures outside element resolution."""

    @pytest.mark.asyncio
    async def test_unsupported_step(self):
        executor, _ = make_executor(FakePage())

        with pytest.raises(RecordingIntegrityError, match="Unsupported step type"):
            await executor.execute(object())

    @pytest.mark.asyncio
    async def test_destroyed_page(self):
        page = FakePage([candidate("BUTTON", "Next")])
        page.destroyed = True
        executor, _ = make_executor(page)

        with pytest.raises(PageUnresponsiveError):
            await executor.execute(ClickStep(ElementFingerprint(text="Next")))

    @pytest.mark.asyncio
    async def test_lookup_script_failure(self):
        page = FakePage([candidate("BUTTON", "Next")])
        page.failing_scripts[page_scripts.COLLECT_CANDIDATES] = RuntimeError("context destroyed")
        executor, _ = make_executor(page)

        with pytest.raises(StepExecutionError, match="context destroyed") as exc_info:
            await executor.execute(ClickStep(ElementFingerprint(text="Next")))

        assert exc_info.value.page_url == "https://bank.example.com/login"


class TestPageLoadWait:
    """Test cases for waiting on document readiness."""

    @pytest.mark.asyncio
    async def test_complete_page_settles(self):
        executor, sleep = make_executor(FakePage())

        assert await executor.wait_for_page_load(5.0) is True
        assert sleep.calls == [StepExecutor.PAGE_SETTLE_DELAY]

    @pytest.mark.asyncio
    async def test_loading_page_times_out(self):
        page = FakePage()
        page.ready_state = "loading"
        executor, sleep = make_executor(page)

        assert await executor.wait_for_page_load(0.5) is False
        assert sleep.calls
        assert set(sleep.calls) == {StepExecutor.PAGE_LOAD_POLL_INTERVAL}

    @pytest.mark.asyncio
    async def test_slow_ready_state_checks_count_against_timeout(self):
        page = FakePage()
        page.ready_state = "loading"
        executor, sleep = make_executor(page)
        original_evaluate = page.evaluate

        async def slow_evaluate(script, *args, timeout=None):
            sleep.now += 0.3
            return await original_evaluate(script, *args, timeout=timeout)

        page.evaluate = slow_evaluate

        assert await executor.wait_for_page_load(1.0) is False

        checks = [script for script, _ in page.evaluations if script == page_scripts.READY_STATE]
        # Each check costs 0.3s plus a 0.1s poll: checks start at 0.0, 0.4 and 0.8
        assert len(checks) == 3
        assert sleep.now < 1.0 + 0.4

    @pytest.mark.asyncio
    async def test_slow_lookups_count_against_element_wait(self):
        page = FakePage([])
        executor, sleep = make_executor(page)
        original_evaluate = page.evaluate

        async def slow_evaluate(script, *args, timeout=None):
            sleep.now += 0.4
            return await original_evaluate(script, *args, timeout=timeout)

        page.evaluate = slow_evaluate

        assert await executor.wait_for_element(ElementFingerprint(placeholder="Email"), 1.0) is False

        lookups = [script for script, _ in page.evaluations if script == page_scripts.COLLECT_CANDIDATES]
        assert len(lookups) == 2
        assert sleep.calls == [StepExecutor.ELEMENT_POLL_INTERVAL]

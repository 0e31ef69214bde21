"""
Tests for playback data models and recording parsing.
"""

import pytest
from datetime import datetime

from src.replay.core.exceptions import RecordingIntegrityError, StepFailedError, StepExecutionError
from src.replay.core.models import (
    CandidateElement,
    ClickStep,
    ElementFingerprint,
    InputStep,
    Recording,
    SelectStep,
    StepType,
    extract_fingerprint,
    step_from_dict,
)


class TestStepParsing:
    """Test cases for turning stored step dictionaries into step variants."""

    def test_click_step_with_identification(self):
        step = step_from_dict({
            "type": "click",
            "identification": {
                "text": "Sign In",
                "role": "button",
                "ariaLabel": "Sign in",
                "parentClass": "login-form",
                "coordinates": {"x": 10, "y": 20, "elementX": 5, "elementY": 6},
                "viewport": {"width": 1400, "height": 1000, "scrollX": 0, "scrollY": 450},
            },
        })

        assert isinstance(step, ClickStep)
        assert step.step_type is StepType.CLICK
        assert step.fingerprint.aria_label == "Sign in"
        assert step.fingerprint.parent_class == "login-form"
        assert step.fingerprint.coordinates.element_x == 5
        assert step.fingerprint.viewport.scroll_y == 450

    def test_legacy_step_loads_as_coordinates_only(self):
        fingerprint = extract_fingerprint({
            "type": "click",
            "coordinates": {"x": 100, "y": 200},
            "viewport": {"width": 1400, "height": 1000, "scrollX": 0, "scrollY": 0},
        })

        assert fingerprint.coordinates.x == 100
        assert not fingerprint.has_semantic_signals()

    def test_parent_context_alone_is_not_a_semantic_signal(self):
        fingerprint = ElementFingerprint(parent_role="navigation", parent_class="toolbar")

        assert not fingerprint.has_semantic_signals()
        assert ElementFingerprint(text="Export", parent_class="toolbar").has_semantic_signals()

    def test_input_step_keeps_value(self):
        step = step_from_dict({"type": "input", "identification": {"placeholder": "Email"}, "value": "me@example.com"})

        assert isinstance(step, InputStep)
        assert step.value == "me@example.com"
        assert not step.is_redacted

    def test_redacted_value_is_flagged(self):
        step = step_from_dict({"type": "input", "identification": {"placeholder": "Password"}, "value": "redacted"})

        assert step.is_redacted

    def test_select_step(self):
        step = step_from_dict({"type": "select", "identification": {"role": "select"}, "value": "90"})

        assert isinstance(step, SelectStep)
        assert step.value == "90"

    def test_unsupported_step_type(self):
        with pytest.raises(RecordingIntegrityError, match="Unsupported step type: hover"):
            step_from_dict({"type": "hover", "identification": {"text": "Menu"}})

    def test_input_without_value(self):
        with pytest.raises(RecordingIntegrityError, match="missing its value"):
            step_from_dict({"type": "input", "identification": {"placeholder": "Email"}})

    def test_malformed_fingerprint(self):
        with pytest.raises(RecordingIntegrityError, match="Malformed fingerprint"):
            step_from_dict({"type": "click", "identification": {"title": "only a title"}})


class TestRecording:
    """Test cases for Recording serialization."""

    def test_from_dict_accepts_url_key(self):
        recording = Recording.from_dict({
            "id": 7,
            "name": "Checking",
            "url": "https://bank.example.com",
            "steps": [{"type": "click", "identification": {"text": "Accounts"}}],
        })

        assert recording.id == "7"
        assert recording.start_url == "https://bank.example.com"
        assert len(recording.steps) == 1

    def test_to_dict_and_back(self):
        recording = Recording(
            id="r1",
            name="Savings",
            start_url="https://bank.example.com",
            steps=[InputStep(ElementFingerprint(placeholder="Email"), "me@example.com")],
            last_run_at=datetime(2024, 3, 1, 6, 0),
        )

        restored = Recording.from_dict(recording.to_dict())

        assert restored == recording


class TestCandidateElement:
    """Test cases for candidate descriptors returned by the page."""

    def test_role_falls_back_to_tag_name(self):
        element = CandidateElement(index=0, tag_name="BUTTON")
        assert element.role == "button"

    def test_explicit_role_wins(self):
        element = CandidateElement(index=0, tag_name="DIV", role_attribute="button")
        assert element.role == "button"

    def test_parent_first_class_skips_long_generated_classes(self):
        element = CandidateElement(
            index=0, tag_name="A", parent_class_name="css-1x2y3z4w5v6u7t8s9r0q1p2o3n nav-item"
        )
        assert element.parent_first_class == "nav-item"

    @pytest.mark.parametrize("overrides", [
        {"width": 0},
        {"height": 0},
        {"visibility": "hidden"},
        {"display": "none"},
    ])
    def test_not_visible(self, overrides):
        fields = {"width": 10, "height": 10}
        fields.update(overrides)
        element = CandidateElement(index=0, tag_name="BUTTON", **fields)
        assert not element.is_visible


class TestStepFailedError:
    """Test cases for the terminal retry error."""

    def test_message_and_context(self):
        last_error = StepExecutionError("Element lookup failed", page_url="https://bank.example.com/login")

        error = StepFailedError(3, last_error)

        assert error.message == "Failed after 3 attempts: Element lookup failed"
        assert error.attempts == 3
        assert error.last_error is last_error
        assert error.page_url == "https://bank.example.com/login"

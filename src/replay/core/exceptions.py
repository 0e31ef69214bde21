"""Error taxonomy for recorded-step playback.

Recording-integrity errors are never retried, resolution and execution errors
are retried by the retry controller, and an unresponsive page aborts the retry
loop for the current step.
"""

from typing import Any, Dict, Optional


class PlaybackError(Exception):
    """Base class for every failure raised while replaying a recording."""

    def __init__(
        self,
        message: str,
        page_url: Optional[str] = None,
        page_title: Optional[str] = None,
        diagnostics: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.page_url = page_url
        self.page_title = page_title
        self.diagnostics = diagnostics or {}

    def __str__(self) -> str:
        if self.page_url:
            return f"{self.message} (page: {self.page_url})"
        return self.message


class RecordingIntegrityError(PlaybackError):
    """The recording itself is broken (unsupported step, malformed fingerprint)."""
    pass


class RecordingNotFoundError(RecordingIntegrityError):
    """No recording is stored under the requested id."""
    pass


class ElementResolutionError(PlaybackError):
    """The fingerprint could not be resolved to a live element with enough confidence."""
    pass


class ElementTypeMismatchError(ElementResolutionError):
    """The resolved element is not the kind of element the step needs."""
    pass


class StepExecutionError(PlaybackError):
    """A script evaluated in the page context failed."""
    pass


class PageUnresponsiveError(PlaybackError):
    """The page stopped answering; further attempts cannot succeed."""
    pass


class StepFailedError(PlaybackError):
    """Terminal failure after the retry controller exhausted its attempts."""

    def __init__(self, attempts: int, last_error: Exception):
        message = f"Failed after {attempts} attempts: {getattr(last_error, 'message', str(last_error))}"
        super().__init__(
            message,
            page_url=getattr(last_error, "page_url", None),
            page_title=getattr(last_error, "page_title", None),
            diagnostics=getattr(last_error, "diagnostics", None),
        )
        self.attempts = attempts
        self.last_error = last_error


class RunInProgressError(Exception):
    """A playback is already running; the single worker accepts no second one."""
    pass

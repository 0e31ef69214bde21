"""Core data models for recorded-step playback."""

from .playback_models import (
    REDACTED_VALUE,
    Coordinates,
    Viewport,
    ElementFingerprint,
    StepType,
    ClickStep,
    InputStep,
    SelectStep,
    RecordedStep,
    Recording,
    CandidateElement,
    ScoredCandidate,
    ResolutionOutcome,
    MatchResult,
    PlaybackRun,
    SchedulerState,
    SchedulerStatus,
    RunSummary,
    AutomationSettings,
    extract_fingerprint,
    step_from_dict,
)

__all__ = [
    "REDACTED_VALUE",
    "Coordinates",
    "Viewport",
    "ElementFingerprint",
    "StepType",
    "ClickStep",
    "InputStep",
    "SelectStep",
    "RecordedStep",
    "Recording",
    "CandidateElement",
    "ScoredCandidate",
    "ResolutionOutcome",
    "MatchResult",
    "PlaybackRun",
    "SchedulerState",
    "SchedulerStatus",
    "RunSummary",
    "AutomationSettings",
    "extract_fingerprint",
    "step_from_dict",
]

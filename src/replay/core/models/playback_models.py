"""Data models for recorded-step playback."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from ..exceptions import RecordingIntegrityError


# Recorded in place of a sensitive value; the operator supplies it at playback time.
REDACTED_VALUE = "redacted"


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key, so camelCase recorder output and snake_case both load."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass(frozen=True)
class Coordinates:
    """Absolute position of the element centre at recording time."""
    x: float
    y: float
    element_x: Optional[float] = None
    element_y: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "element_x": self.element_x,
            "element_y": self.element_y,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Coordinates':
        return cls(
            x=float(data["x"]),
            y=float(data["y"]),
            element_x=_pick(data, "element_x", "elementX"),
            element_y=_pick(data, "element_y", "elementY"),
        )


@dataclass(frozen=True)
class Viewport:
    """Viewport size and scroll offset at recording time."""
    width: int = 0
    height: int = 0
    scroll_x: float = 0
    scroll_y: float = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "scroll_x": self.scroll_x,
            "scroll_y": self.scroll_y,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Viewport':
        return cls(
            width=_pick(data, "width", default=0),
            height=_pick(data, "height", default=0),
            scroll_x=_pick(data, "scroll_x", "scrollX", default=0),
            scroll_y=_pick(data, "scroll_y", "scrollY", default=0),
        )


@dataclass(frozen=True)
class ElementFingerprint:
    """Semantic description of a target element, captured once at recording time."""
    text: Optional[str] = None
    aria_label: Optional[str] = None
    placeholder: Optional[str] = None
    title: Optional[str] = None
    role: Optional[str] = None
    nearby_labels: List[str] = field(default_factory=list)
    href: Optional[str] = None
    parent_role: Optional[str] = None
    parent_class: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    viewport: Optional[Viewport] = None

    def has_semantic_signals(self) -> bool:
        """
        True when the fingerprint describes the element itself.

        Parent context only refines a match; on its own it would let any
        visible element reach the threshold.
        """
        return any([
            self.text,
            self.role,
            self.aria_label,
            self.placeholder,
            self.href,
        ])

    def validate(self) -> None:
        """Raise if the fingerprint carries nothing that could ever locate an element."""
        if not any([self.text, self.aria_label, self.placeholder, self.role, self.href, self.coordinates]):
            raise RecordingIntegrityError(
                "Malformed fingerprint: needs at least one of text, aria_label, "
                "placeholder, role, href or coordinates"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "aria_label": self.aria_label,
            "placeholder": self.placeholder,
            "title": self.title,
            "role": self.role,
            "nearby_labels": list(self.nearby_labels),
            "href": self.href,
            "parent_role": self.parent_role,
            "parent_class": self.parent_class,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "viewport": self.viewport.to_dict() if self.viewport else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ElementFingerprint':
        coordinates = data.get("coordinates")
        viewport = data.get("viewport")
        return cls(
            text=data.get("text") or None,
            aria_label=_pick(data, "aria_label", "ariaLabel") or None,
            placeholder=data.get("placeholder") or None,
            title=data.get("title") or None,
            role=data.get("role") or None,
            nearby_labels=[label for label in _pick(data, "nearby_labels", "nearbyLabels", default=[]) if label],
            href=data.get("href") or None,
            parent_role=_pick(data, "parent_role", "parentRole") or None,
            parent_class=_pick(data, "parent_class", "parentClass") or None,
            coordinates=Coordinates.from_dict(coordinates) if coordinates else None,
            viewport=Viewport.from_dict(viewport) if viewport else None,
        )


class StepType(Enum):
    """Kinds of recorded user actions."""
    CLICK = "click"
    INPUT = "input"
    SELECT = "select"


@dataclass(frozen=True)
class ClickStep:
    fingerprint: ElementFingerprint
    step_type = StepType.CLICK

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.step_type.value, "identification": self.fingerprint.to_dict()}


@dataclass(frozen=True)
class InputStep:
    fingerprint: ElementFingerprint
    value: str
    step_type = StepType.INPUT

    @property
    def is_redacted(self) -> bool:
        return self.value == REDACTED_VALUE

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.step_type.value, "identification": self.fingerprint.to_dict(), "value": self.value}


@dataclass(frozen=True)
class SelectStep:
    fingerprint: ElementFingerprint
    value: str
    step_type = StepType.SELECT

    @property
    def is_redacted(self) -> bool:
        return self.value == REDACTED_VALUE

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.step_type.value, "identification": self.fingerprint.to_dict(), "value": self.value}


RecordedStep = Union[ClickStep, InputStep, SelectStep]


def extract_fingerprint(data: Dict[str, Any]) -> ElementFingerprint:
    """Read the fingerprint of a stored step.

    Older recordings carry only top-level ``coordinates``/``viewport`` and no
    ``identification`` block; those load as a coordinates-only fingerprint.
    """
    identification = data.get("identification")
    if identification:
        return ElementFingerprint.from_dict(identification)
    return ElementFingerprint.from_dict({
        "coordinates": data.get("coordinates"),
        "viewport": data.get("viewport"),
    })


def step_from_dict(data: Dict[str, Any]) -> RecordedStep:
    """Build the tagged step variant for a stored step dictionary."""
    raw_type = data.get("type")
    try:
        step_type = StepType(raw_type)
    except ValueError:
        raise RecordingIntegrityError(f"Unsupported step type: {raw_type}")

    fingerprint = extract_fingerprint(data)
    fingerprint.validate()

    if step_type is StepType.CLICK:
        return ClickStep(fingerprint=fingerprint)

    value = data.get("value")
    if value is None:
        raise RecordingIntegrityError(f"{step_type.value} step is missing its value")
    if step_type is StepType.INPUT:
        return InputStep(fingerprint=fingerprint, value=str(value))
    return SelectStep(fingerprint=fingerprint, value=str(value))


@dataclass
class Recording:
    """Ordered steps replayed against a start URL. Owned by the recording store."""
    id: str
    name: str
    start_url: str
    steps: List[RecordedStep] = field(default_factory=list)
    account_id: Optional[str] = None
    last_run_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "start_url": self.start_url,
            "steps": [step.to_dict() for step in self.steps],
            "account_id": self.account_id,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Recording':
        last_run_at = data.get("last_run_at")
        return cls(
            id=str(data["id"]),
            name=data["name"],
            start_url=_pick(data, "start_url", "url", default=""),
            steps=[step_from_dict(step) for step in data.get("steps", [])],
            account_id=data.get("account_id"),
            last_run_at=datetime.fromisoformat(last_run_at) if last_run_at else None,
        )


@dataclass
class CandidateElement:
    """Structured description of one live element, as returned by the page."""
    index: int
    tag_name: str
    role_attribute: Optional[str] = None
    text: str = ""
    aria_label: str = ""
    placeholder: str = ""
    href: str = ""
    parent_role: Optional[str] = None
    parent_class_name: str = ""
    width: float = 0
    height: float = 0
    visibility: str = "visible"
    display: str = "block"

    @property
    def role(self) -> str:
        """Explicit ARIA role, falling back to the lowercase tag name."""
        return self.role_attribute or self.tag_name.lower()

    @property
    def parent_first_class(self) -> Optional[str]:
        classes = [c for c in self.parent_class_name.split() if len(c) < 30]
        return classes[0] if classes else None

    @property
    def is_visible(self) -> bool:
        return (
            self.width > 0
            and self.height > 0
            and self.visibility != "hidden"
            and self.display != "none"
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CandidateElement':
        return cls(
            index=int(data["index"]),
            tag_name=data.get("tag_name") or "",
            role_attribute=data.get("role_attribute") or None,
            text=data.get("text") or "",
            aria_label=data.get("aria_label") or "",
            placeholder=data.get("placeholder") or "",
            href=data.get("href") or "",
            parent_role=data.get("parent_role") or None,
            parent_class_name=data.get("parent_class_name") or "",
            width=data.get("width") or 0,
            height=data.get("height") or 0,
            visibility=data.get("visibility") or "visible",
            display=data.get("display") or "block",
        )


@dataclass
class ScoredCandidate:
    """A candidate with its confidence breakdown for one scoring pass."""
    candidate: CandidateElement
    score: int
    max_score: int
    confidence: int
    matches: List[str] = field(default_factory=list)

    def describe(self) -> str:
        return f"{self.candidate.tag_name.upper()} \"{self.candidate.text.strip()[:30]}\""


class ResolutionOutcome(Enum):
    """How a fingerprint resolution pass ended."""
    MATCHED = "matched"
    BELOW_THRESHOLD = "below_threshold"
    NO_CANDIDATES = "no_candidates"
    NO_SIGNALS = "no_signals"


@dataclass
class MatchResult:
    """Result of resolving a fingerprint against the live page."""
    outcome: ResolutionOutcome
    threshold: int
    best: Optional[ScoredCandidate] = None
    top_candidates: List[ScoredCandidate] = field(default_factory=list)
    candidates_considered: int = 0

    @property
    def matched(self) -> bool:
        return self.outcome is ResolutionOutcome.MATCHED

    @property
    def not_found(self) -> bool:
        """True when nothing on the page could even be scored."""
        return self.outcome in (ResolutionOutcome.NO_CANDIDATES, ResolutionOutcome.NO_SIGNALS)

    @property
    def best_confidence(self) -> int:
        return self.best.confidence if self.best else 0

    def best_if_matched(self) -> Optional[ScoredCandidate]:
        return self.best if self.matched else None


@dataclass
class PlaybackRun:
    """Transient navigation state for one recording's playback."""
    page_just_loaded: bool = True
    last_page_url: Optional[str] = None

    def reset(self) -> None:
        self.page_just_loaded = True
        self.last_page_url = None


@dataclass
class SchedulerState:
    """Mutable state owned by one scheduler instance."""
    active_schedule: Optional[str] = None
    is_running: bool = False
    current_recording_name: Optional[str] = None
    last_run_at: Optional[datetime] = None


@dataclass
class SchedulerStatus:
    """Read-only projection of the scheduler for API consumers."""
    is_running: bool
    current_recording_name: Optional[str]
    last_run_at: Optional[datetime]
    schedule_expression: Optional[str]
    interval: Optional[str]
    enabled: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_running": self.is_running,
            "current_recording_name": self.current_recording_name,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "schedule_expression": self.schedule_expression,
            "interval": self.interval,
            "enabled": self.enabled,
        }


@dataclass
class RunSummary:
    """Outcome of one pass over every stored recording."""
    started_at: datetime
    finished_at: Optional[datetime] = None
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)


@dataclass
class AutomationSettings:
    """Playback and schedule settings read from the automation settings file."""
    retry_attempts: int = 3
    retry_delay_ms: int = 2000
    schedule_enabled: bool = False
    schedule_cron: str = "0 6 * * *"
    confidence_threshold: int = 60

    def to_dict(self) -> Dict[str, Any]:
        return {
            "retry_attempts": self.retry_attempts,
            "retry_delay_ms": self.retry_delay_ms,
            "schedule_enabled": self.schedule_enabled,
            "schedule_cron": self.schedule_cron,
            "confidence_threshold": self.confidence_threshold,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AutomationSettings':
        return cls(**{key: value for key, value in data.items() if key in cls.__dataclass_fields__})

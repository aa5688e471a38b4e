"""
Pipeline Types

Ephemeral data passed between pipeline stages and returned by the analyzers.
Persisted rows live in cadence.pipeline.models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


class Bucket(str, Enum):
    """Scheduling horizons. A task sits in exactly one."""
    TODAY = "today"
    TOMORROW = "tomorrow"
    THIS_WEEK = "this_week"
    UPCOMING = "upcoming"
    SOMEDAY = "someday"


class Priority(str, Enum):
    """Priority tiers, totally ordered MUST > SHOULD > COULD."""
    MUST = "MUST"
    SHOULD = "SHOULD"
    COULD = "COULD"

    @property
    def weight(self) -> int:
        return {"MUST": 3, "SHOULD": 2, "COULD": 1}[self.value]

    def __lt__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.weight < other.weight

    def __le__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.weight <= other.weight

    def __gt__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.weight > other.weight

    def __ge__(self, other):
        if not isinstance(other, Priority):
            return NotImplemented
        return self.weight >= other.weight


class Effort(str, Enum):
    """Effort tiers."""
    TINY = "tiny"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


class Urgency(str, Enum):
    """Time sensitivity of a task."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class EmotionalTone(str, Enum):
    """Tone detected in a capture."""
    STRESSED = "stressed"
    OVERWHELMED = "overwhelmed"
    OK = "ok"
    MOTIVATED = "motivated"

    @property
    def is_strained(self) -> bool:
        return self in (EmotionalTone.STRESSED, EmotionalTone.OVERWHELMED)

    @classmethod
    def coerce(cls, value: Optional[str]) -> "EmotionalTone":
        """Map loose backend labels onto a tone, defaulting to OK."""
        if not value:
            return cls.OK
        value = value.strip().lower()
        aliases = {"neutral": cls.OK, "focused": cls.MOTIVATED, "calm": cls.OK}
        try:
            return cls(value)
        except ValueError:
            return aliases.get(value, cls.OK)


class Relationship(str, Enum):
    """How another task relates to a focus task, in display order."""
    BLOCKER = "blocker"
    PREREQUISITE = "prerequisite"
    RELATED = "related"
    CLUSTER = "cluster"

    @property
    def order(self) -> int:
        return ["blocker", "prerequisite", "related", "cluster"].index(self.value)


@dataclass
class UserContext:
    """What the pipeline knows about the person capturing."""
    user_id: Optional[str] = None
    goal: Optional[str] = None
    custom_categories: list[str] = field(default_factory=list)
    recent_messages: list[str] = field(default_factory=list)
    category_preferences: dict[str, float] = field(default_factory=dict)


@dataclass
class TaskCandidate:
    """A task pulled out of a capture, enriched stage by stage."""
    id: str
    raw: str
    cleaned: str
    confidence: float = 0.5

    # Classifier
    is_tiny: bool = False
    subtasks: list[str] = field(default_factory=list)

    # Context inferencer
    due: Optional[datetime] = None
    reminder_time: Optional[datetime] = None
    category: Optional[str] = None
    project: Optional[str] = None
    people: list[str] = field(default_factory=list)
    context_tags: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)

    # Scorer
    priority: Optional[Priority] = None
    effort: Optional[Effort] = None

    # Declared primary focus
    is_focus: bool = False
    focus_date: Optional[date] = None

    @property
    def is_heavy(self) -> bool:
        return self.effort == Effort.LARGE


@dataclass
class Extraction:
    """Extractor output for one capture."""
    raw_text: str
    candidates: list[TaskCandidate] = field(default_factory=list)
    ideas: list[str] = field(default_factory=list)
    decisions: list[str] = field(default_factory=list)
    followups: list[str] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    summary: str = ""
    emotion: EmotionalTone = EmotionalTone.OK
    clarifying_questions: list[str] = field(default_factory=list)


@dataclass
class ContextMap:
    """Batch context inferred across one capture."""
    projects: dict[str, list[str]] = field(default_factory=dict)
    categories: dict[str, list[str]] = field(default_factory=dict)
    people_mentions: list[str] = field(default_factory=list)
    implied_deadlines: dict[str, datetime] = field(default_factory=dict)
    time_sensitivity: dict[str, Urgency] = field(default_factory=dict)


@dataclass
class TaskScore:
    """Priority and effort for one candidate."""
    task_id: str
    priority: Priority
    effort: Effort
    matched_rule: str = ""

    @property
    def fiesta_ready(self) -> bool:
        return self.effort == Effort.TINY

    @property
    def big_task(self) -> bool:
        return self.effort == Effort.LARGE


@dataclass
class RelatedTaskSuggestion:
    """A candidate sharing keywords with the day's primary focus."""
    task_id: str
    task_title: str
    shared_keywords: list[str]
    suggested_bucket: Bucket


@dataclass
class AgendaRouting:
    """Candidate ids per bucket."""
    today: list[str] = field(default_factory=list)
    tomorrow: list[str] = field(default_factory=list)
    this_week: list[str] = field(default_factory=list)
    upcoming: list[str] = field(default_factory=list)
    someday: list[str] = field(default_factory=list)
    primary_focus: list[str] = field(default_factory=list)
    related_suggestions: list[RelatedTaskSuggestion] = field(default_factory=list)

    def bucket_list(self, bucket: Bucket) -> list[str]:
        return getattr(self, bucket.value)

    def bucket_of(self, task_id: str) -> Optional[Bucket]:
        for bucket in Bucket:
            if task_id in self.bucket_list(bucket):
                return bucket
        return None


@dataclass
class ClarifyingQuestion:
    """A question to ask before the captured tasks are trusted."""
    question: str
    kind: str
    task_id: Optional[str] = None


@dataclass
class FocusPrediction:
    """A ranked candidate for the day's one thing."""
    task_id: str
    task_title: str
    score: float
    confidence: float
    reasoning: list[str] = field(default_factory=list)


@dataclass
class FocusForecast:
    """All predictions for a user and day."""
    day: date
    predictions: list[FocusPrediction] = field(default_factory=list)
    reasoning: list[str] = field(default_factory=list)

    @property
    def top(self) -> Optional[FocusPrediction]:
        return self.predictions[0] if self.predictions else None


@dataclass
class UnlockedTask:
    """A task influenced by completing the focus task."""
    task_id: str
    title: str
    relationship: Relationship
    confidence: float = 0.0


@dataclass
class DominoEffect:
    """What finishing a focus task sets in motion."""
    task_id: str
    unlocked_tasks: list[UnlockedTask] = field(default_factory=list)
    reasoning: list[str] = field(default_factory=list)

    @property
    def unlocks_count(self) -> int:
        return len(self.unlocked_tasks)


def as_local(moment: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive local time; naive values pass through."""
    if moment is None or moment.tzinfo is None:
        return moment
    return moment.astimezone().replace(tzinfo=None)

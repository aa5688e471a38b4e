"""
Focus Predictor

Ranks open tasks for "the one thing" to do today. Runs against the
persisted task store, once per user per day; later calls that day are
served from the analysis cache.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Optional

from cadence.config import FocusConfig
from cadence.pipeline.cache import AnalysisCache, day_key, end_of_day
from cadence.pipeline.clusters import cluster_of
from cadence.pipeline.models import CompletionLog, Task
from cadence.pipeline.store import TaskStore
from cadence.pipeline.tables import HeuristicTables
from cadence.pipeline.types import FocusForecast, FocusPrediction
from cadence.utils.logging import get_logger

logger = get_logger(__name__)

# Candidate ranking weights
OVERDUE_WEIGHT = 100
DUE_TODAY_WEIGHT = 50
HIGH_PRIORITY_WEIGHT = 25
HABIT_WEIGHT = 10
CLUSTER_WEIGHT = 5

FAILURE_REASON = "Unable to generate focus predictions"


@dataclass
class FocusInputs:
    """Everything scoring reads besides the task itself, fetched once per prediction."""
    now: datetime
    completions: list[CompletionLog] = field(default_factory=list)
    clusters: dict[str, list[str]] = field(default_factory=dict)
    cluster_labels: set[str] = field(default_factory=set)
    last_focus: Optional[str] = None
    category_preferences: dict[str, float] = field(default_factory=dict)
    seasonal_weights: dict[str, Any] = field(default_factory=dict)
    persona: Optional[dict[str, Any]] = None

    @property
    def habit_titles(self) -> set[str]:
        return {c.task_title for c in self.completions}

    @property
    def habit_categories(self) -> set[str]:
        return {c.task_category for c in self.completions if c.task_category}


def _when(task: Task) -> Optional[datetime]:
    return task.reminder_time or task.due_date


def is_overdue(task: Task, now: datetime) -> bool:
    """A past reminder, or a due date on an earlier day."""
    if task.reminder_time is not None:
        return task.reminder_time < now
    return task.due_date is not None and task.due_date.date() < now.date()


def is_due_today(task: Task, now: datetime) -> bool:
    when = _when(task)
    return when is not None and when.date() == now.date()


def titles_overlap(a: str, b: str) -> bool:
    """Case-insensitive substring match in either direction."""
    a, b = a.lower(), b.lower()
    return bool(a and b) and (a in b or b in a)


class FocusPredictor:
    """
    Predicts the day's primary focus.

    Never raises to the caller: a missing user gives an empty forecast,
    and any failure gives an empty forecast carrying a failure reason.
    Neither is cached.
    """

    def __init__(
        self,
        store: TaskStore,
        cache: AnalysisCache,
        config: Optional[FocusConfig] = None,
        tables: Optional[HeuristicTables] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.cache = cache
        self.config = config or FocusConfig()
        self.tables = tables or HeuristicTables()
        self.clock = clock

    # =========================================================================
    # Public API
    # =========================================================================

    def predict(self, user_id: Optional[str]) -> FocusForecast:
        """All predictions above the score floor, best first."""
        now = self.clock()
        today = now.date()

        if not user_id:
            logger.warning("focus_no_user")
            return FocusForecast(day=today)

        key = day_key("focus", user_id, today)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("focus_cache_hit", user_id=user_id, day=today.isoformat())
            return cached

        try:
            inputs = self.gather_inputs(user_id, now)
            candidates = self.generate_candidates(user_id, inputs)
            predictions = [self.predict_one(task, inputs) for task in candidates]
            predictions.sort(key=lambda p: p.score, reverse=True)
            predictions = [p for p in predictions if p.score > self.config.min_score]
        except Exception as e:
            logger.error("focus_prediction_failed", user_id=user_id, error=str(e))
            return FocusForecast(day=today, reasoning=[FAILURE_REASON])

        forecast = FocusForecast(day=today, predictions=predictions)
        self.cache.set(key, forecast, end_of_day(now))
        logger.info(
            "focus_predicted",
            user_id=user_id,
            candidates=len(candidates),
            predictions=len(predictions),
            top=predictions[0].task_title if predictions else None,
        )
        return forecast

    def top(self, user_id: Optional[str]) -> Optional[FocusPrediction]:
        return self.predict(user_id).top

    def invalidate(self, user_id: Optional[str] = None, day: Optional[date] = None) -> int:
        """Drop cached forecasts: one user's for a day, one user's for all days, or everyone's."""
        if user_id is None:
            return self.cache.invalidate("focus:")
        if day is None:
            return self.cache.invalidate(f"focus:{user_id}:")
        return self.cache.invalidate(day_key("focus", user_id, day))

    # =========================================================================
    # Candidates
    # =========================================================================

    def gather_inputs(self, user_id: str, now: datetime) -> FocusInputs:
        """Read history, clusters and profile for one prediction."""
        today = now.date()
        since = now - timedelta(days=self.config.habit_window_days)
        history = self.store.focus_history(user_id, before=today, limit=10)
        profile = self.store.get_profile(user_id)

        inputs = FocusInputs(
            now=now,
            completions=self.store.recent_completions(user_id, since),
            clusters=self.store.load_clusters(user_id, today) or {},
            last_focus=history[0].focus_task if history else None,
        )
        inputs.cluster_labels = {
            label.lower()
            for label in [*inputs.clusters, *(h.cluster_label for h in history)]
            if label
        }
        if profile is not None:
            inputs.category_preferences = dict(profile.category_preferences or {})
            inputs.seasonal_weights = dict(profile.seasonal_weights or {})
            inputs.persona = profile.persona
        return inputs

    def generate_candidates(self, user_id: str, inputs: FocusInputs) -> list[Task]:
        """
        Union of the signal groups, deduplicated by id and capped.

        Groups in order: overdue, due today, high priority, habitual,
        clustered, similar to the last focus.
        """
        tasks = self.store.list_open_tasks(user_id, limit=self.config.open_task_limit)
        now = inputs.now
        high_categories = set(self.tables.high_priority_categories)

        def clustered(task: Task) -> bool:
            return any(
                label in keyword.lower()
                for keyword in (task.keywords or [])
                for label in inputs.cluster_labels
            )

        groups: list[tuple[int, Callable[[Task], bool]]] = [
            (OVERDUE_WEIGHT, lambda t: is_overdue(t, now)),
            (DUE_TODAY_WEIGHT, lambda t: is_due_today(t, now)),
            (HIGH_PRIORITY_WEIGHT, lambda t: t.is_time_based or t.category in high_categories),
            (HABIT_WEIGHT, lambda t: t.title in inputs.habit_titles or t.category in inputs.habit_categories),
            (CLUSTER_WEIGHT, clustered),
            (0, lambda t: inputs.last_focus is not None and titles_overlap(t.title, inputs.last_focus)),
        ]

        weights: dict[str, int] = {}
        chosen: dict[str, Task] = {}
        for weight, member in groups:
            for task in tasks:
                if member(task):
                    chosen.setdefault(task.id, task)
                    weights[task.id] = weights.get(task.id, 0) + weight

        ranked = sorted(chosen.values(), key=lambda t: weights[t.id], reverse=True)
        return ranked[: self.config.candidate_limit]

    # =========================================================================
    # Scoring
    # =========================================================================

    def score_candidate(self, task: Task, inputs: FocusInputs) -> tuple[float, list[str]]:
        """Raw score before normalization, and the reasons behind it."""
        reasoning: list[str] = []
        now = inputs.now

        priority = 0
        if task.is_time_based:
            priority += 15
            reasoning.append("Time-sensitive task")
        if is_overdue(task, now):
            priority += 25
            reasoning.append("Overdue task")
        elif is_due_today(task, now):
            priority += 20
            reasoning.append("Due today")
        if task.category in self.tables.high_priority_categories:
            priority += 15
            reasoning.append("High priority category")
        priority = min(priority, 40)

        habit = 0
        if task.title in inputs.habit_titles or (task.category and task.category in inputs.habit_categories):
            habit = 25
            reasoning.append("Matches your habitual patterns")

        cluster_name = cluster_of(task.id, inputs.clusters)
        cluster = 0
        if cluster_name is not None:
            cluster = 20
            reasoning.append("Part of an active task cluster")

        preference = 0.0
        weight = inputs.category_preferences.get(task.category or "")
        if weight:
            preference = min(float(weight) * 15, 15.0)
        if preference > 10:
            reasoning.append("Aligns with your focus preferences")

        seasonal = self._seasonal_boost(cluster_name or task.category or "", inputs, reasoning)

        load = 5 if len(task.title.split()) > self.tables.complex_title_words else 10
        if load == 10:
            reasoning.append("Manageable cognitive load")

        total = priority + habit + cluster + preference + seasonal + load
        total += self._persona_adjustment(task, inputs.persona, reasoning)
        return total, reasoning

    def predict_one(self, task: Task, inputs: FocusInputs) -> FocusPrediction:
        total, reasoning = self.score_candidate(task, inputs)
        score = self.normalize(total)
        return FocusPrediction(
            task_id=task.id,
            task_title=task.title,
            score=score,
            confidence=score / 100,
            reasoning=reasoning,
        )

    def normalize(self, raw: float) -> float:
        """Map a raw score onto 0-100."""
        return max(0.0, min(raw / self.config.raw_max * 100, 100.0))

    def _seasonal_boost(self, label: str, inputs: FocusInputs, reasoning: list[str]) -> float:
        if not label or not inputs.seasonal_weights:
            return 0.0
        weekday, day_of_month = inputs.now.weekday(), inputs.now.day
        boost = 0.0
        for name, pattern in self.tables.seasonal_patterns.items():
            setting = inputs.seasonal_weights.get(name)
            if not isinstance(setting, dict) or setting.get("category") != label:
                continue
            if pattern.matches(weekday, day_of_month):
                boost += float(setting.get("weight", 0)) * 100
                reasoning.append(pattern.label)
        return min(boost, 10.0)

    def _persona_adjustment(self, task: Task, persona: Optional[dict[str, Any]], reasoning: list[str]) -> float:
        if not persona:
            return 0.0
        adjustment = 0.0
        category = task.category or ""

        preferred = (persona.get("preference_domains") or {}).get(category)
        if category and preferred:
            adjustment += float(preferred) * self.config.preference_weight
            reasoning.append("Matches persona preference")

        avoided = (persona.get("avoidance_profile") or {}).get(category)
        if category and avoided:
            adjustment -= float(avoided) * self.config.avoidance_weight
            reasoning.append("Persona avoidance pattern detected")

        ambition = persona.get("ambition")
        if ambition is None:
            ambition = self.config.default_ambition
        complexity = min(len(task.title) / 200, 1.0)
        match = 1 - abs(float(ambition) - complexity)
        adjustment += match * self.config.ambition_weight
        if match > self.config.ambition_threshold:
            reasoning.append("Matches persona ambition level")
        return adjustment

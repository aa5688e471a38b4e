"""
Agenda Router

Places every scored candidate into exactly one schedule bucket while
keeping "today" under a fixed capacity.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from cadence.pipeline.types import (
    AgendaRouting,
    Bucket,
    ContextMap,
    Priority,
    RelatedTaskSuggestion,
    TaskCandidate,
    TaskScore,
)
from cadence.utils.logging import get_logger

logger = get_logger(__name__)


def calendar_bucket(moment: datetime, today: date) -> Bucket:
    """Bucket for a calendar date relative to today."""
    days = (moment.date() - today).days
    if days <= 0:
        return Bucket.TODAY
    if days == 1:
        return Bucket.TOMORROW
    if days <= 7:
        return Bucket.THIS_WEEK
    return Bucket.UPCOMING


def priority_bucket(score: TaskScore) -> Bucket:
    """Bucket for a task with neither deadline nor reminder."""
    if score.priority == Priority.MUST:
        return Bucket.THIS_WEEK if score.big_task else Bucket.TODAY
    if score.priority == Priority.SHOULD:
        if score.big_task:
            return Bucket.THIS_WEEK
        return Bucket.TODAY if score.fiesta_ready else Bucket.TOMORROW
    return Bucket.UPCOMING if score.big_task else Bucket.SOMEDAY


class AgendaRouter:
    """
    Fifth pipeline stage.

    Today's declared primary-focus tasks always lead "today" and do not
    count toward capacity. Everything else competes for the remaining
    slots; tiny tasks may exceed the cap, other overflow goes to tomorrow.
    """

    def __init__(self, capacity: int = 8, max_related_suggestions: int = 2):
        self.capacity = capacity
        self.max_related_suggestions = max_related_suggestions

    def route(
        self,
        candidates: list[TaskCandidate],
        context_map: ContextMap,
        scores: list[TaskScore],
        now: Optional[datetime] = None,
        today_load: int = 0,
    ) -> AgendaRouting:
        """
        Route candidates into buckets.

        Args:
            candidates: Candidates in capture order
            context_map: Batch context, for implied deadlines
            scores: One score per candidate
            now: Reference time
            today_load: Tasks already in today from earlier captures

        Returns:
            AgendaRouting with every scored candidate in exactly one bucket
        """
        now = now or datetime.now()
        today = now.date()
        routing = AgendaRouting()
        by_id = {s.task_id: s for s in scores}
        slots = _TodaySlots(self.capacity, today_load)

        focus = [c for c in candidates if c.id in by_id and self._is_declared_focus(c, today)]
        routing.primary_focus = [c.id for c in focus]
        if focus:
            routing.related_suggestions = self.related_tasks(focus[0], candidates, routing.primary_focus)

        remaining: list[TaskCandidate] = []
        for candidate in candidates:
            score = by_id.get(candidate.id)
            if score is None or candidate.id in routing.primary_focus:
                continue

            deadline = candidate.due or context_map.implied_deadlines.get(candidate.id)
            if deadline is not None:
                if deadline.date() < today:
                    slots.admit(routing, candidate.id)
                else:
                    self._place_on_calendar(routing, slots, candidate.id, deadline, today)
                continue

            if candidate.reminder_time is not None:
                self._place_on_calendar(routing, slots, candidate.id, candidate.reminder_time, today)
                continue

            remaining.append(candidate)

        # Stable: equal tiers keep capture order
        remaining.sort(key=lambda c: by_id[c.id].priority, reverse=True)
        for candidate in remaining:
            score = by_id[candidate.id]
            bucket = priority_bucket(score)
            if bucket == Bucket.TODAY:
                slots.admit(routing, candidate.id, overflow_ok=score.fiesta_ready)
            else:
                routing.bucket_list(bucket).append(candidate.id)

        routing.today = routing.primary_focus + [i for i in routing.today if i not in routing.primary_focus]

        logger.info(
            "agenda_routed",
            today=len(routing.today),
            tomorrow=len(routing.tomorrow),
            this_week=len(routing.this_week),
            upcoming=len(routing.upcoming),
            someday=len(routing.someday),
            primary_focus=len(routing.primary_focus),
        )
        return routing

    def related_tasks(
        self,
        focus: TaskCandidate,
        candidates: list[TaskCandidate],
        exclude: list[str],
    ) -> list[RelatedTaskSuggestion]:
        """Candidates sharing keywords with the focus task, most overlap first."""
        focus_keywords = {k.lower() for k in focus.keywords}
        if not focus_keywords:
            return []

        related = []
        for candidate in candidates:
            if candidate.id in exclude or not candidate.keywords:
                continue
            shared = [k for k in (w.lower() for w in candidate.keywords) if k in focus_keywords]
            if shared:
                related.append((candidate, shared))

        related.sort(key=lambda pair: len(pair[1]), reverse=True)
        suggestions = []
        for index, (candidate, shared) in enumerate(related[: self.max_related_suggestions]):
            suggestions.append(RelatedTaskSuggestion(
                task_id=candidate.id,
                task_title=candidate.cleaned,
                shared_keywords=shared,
                suggested_bucket=Bucket.TODAY if index == 0 else Bucket.THIS_WEEK,
            ))
        return suggestions

    def _is_declared_focus(self, candidate: TaskCandidate, today: date) -> bool:
        return candidate.is_focus and candidate.focus_date == today

    def _place_on_calendar(
        self,
        routing: AgendaRouting,
        slots: "_TodaySlots",
        task_id: str,
        moment: datetime,
        today: date,
    ) -> None:
        bucket = calendar_bucket(moment, today)
        if bucket == Bucket.TODAY:
            slots.admit(routing, task_id)
        else:
            routing.bucket_list(bucket).append(task_id)


class _TodaySlots:
    """Capacity accounting for one routing pass."""

    def __init__(self, capacity: int, used: int = 0):
        self.capacity = capacity
        self.used = used

    def admit(self, routing: AgendaRouting, task_id: str, overflow_ok: bool = False) -> None:
        """Add to today if there is room (or overflow is allowed), else tomorrow."""
        if self.used < self.capacity or overflow_ok:
            routing.today.append(task_id)
            self.used += 1
        else:
            routing.tomorrow.append(task_id)

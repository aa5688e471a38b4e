"""
Priority Scorer

Assigns each candidate a priority tier (MUST > SHOULD > COULD) and an
effort tier. Priority comes from an ordered rule chain; the first rule
that applies decides.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from cadence.pipeline.rules import Rule, RuleChain
from cadence.pipeline.tables import HeuristicTables, find_keyword
from cadence.pipeline.types import (
    ContextMap,
    Effort,
    EmotionalTone,
    Extraction,
    Priority,
    TaskCandidate,
    TaskScore,
    Urgency,
)
from cadence.utils.logging import get_logger

logger = get_logger(__name__)

_MINUTES = re.compile(r"\b(\d+)\s*(min|minute|minutes)\b", re.IGNORECASE)
_HOURS = re.compile(r"\b(\d+)\s*(hour|hours|hr|hrs)\b", re.IGNORECASE)

# Leading characters of a title compared against decision and follow-up text
_TITLE_PREFIX = 15


@dataclass
class PrioritySignals:
    """Everything the priority rules look at for one candidate."""
    text: str
    is_focus: bool = False
    urgency: Optional[Urgency] = None
    hours_until_deadline: Optional[float] = None
    tone: EmotionalTone = EmotionalTone.OK
    decisions: list[str] = field(default_factory=list)
    followups: list[str] = field(default_factory=list)

    def mentioned_in(self, notes: list[str]) -> bool:
        prefix = self.text.lower()[:_TITLE_PREFIX]
        return bool(prefix) and any(prefix in note.lower() for note in notes)


def estimate_effort(text: str, tables: HeuristicTables) -> Effort:
    """Effort from an explicit duration, then indicator words, then length."""
    minutes = _MINUTES.search(text)
    if minutes:
        count = int(minutes.group(1))
        if count <= 5:
            return Effort.TINY
        if count <= 15:
            return Effort.SMALL
        if count <= 30:
            return Effort.MEDIUM
        return Effort.LARGE

    if _HOURS.search(text):
        return Effort.LARGE

    for tier in Effort:
        if find_keyword(text, tables.effort_indicators.get(tier.value, [])):
            return tier

    words = len(text.split())
    if words <= 3:
        return Effort.TINY
    if words <= 6:
        return Effort.SMALL
    if words <= 10:
        return Effort.MEDIUM
    return Effort.LARGE


def priority_rules(tables: HeuristicTables) -> RuleChain[PrioritySignals, Priority]:
    """The priority rule chain, highest precedence first."""

    def time_sensitive(s: PrioritySignals) -> bool:
        if s.urgency == Urgency.HIGH:
            return True
        return s.hours_until_deadline is not None and s.hours_until_deadline <= 72

    def time_tier(s: PrioritySignals) -> Priority:
        if s.urgency == Urgency.HIGH:
            return Priority.MUST
        return Priority.MUST if s.hours_until_deadline <= 24 else Priority.SHOULD

    return RuleChain(
        [
            Rule("primary_focus", lambda s: s.is_focus, Priority.MUST),
            Rule("must_keyword", lambda s: find_keyword(s.text, tables.must_keywords) is not None,
                 Priority.MUST),
            Rule("time_sensitivity", time_sensitive, time_tier),
            Rule("strained_tone", lambda s: s.tone.is_strained, Priority.SHOULD),
            Rule("should_keyword", lambda s: find_keyword(s.text, tables.should_keywords) is not None,
                 Priority.SHOULD),
            Rule("could_keyword", lambda s: find_keyword(s.text, tables.could_keywords) is not None,
                 Priority.COULD),
            Rule("decision", lambda s: s.mentioned_in(s.decisions), Priority.MUST),
            Rule("followup", lambda s: s.mentioned_in(s.followups), Priority.SHOULD),
        ],
        default=Priority.SHOULD,
    )


class PriorityScorer:
    """Fourth pipeline stage. Deterministic; no backend involved."""

    def __init__(self, tables: HeuristicTables):
        self.tables = tables
        self.rules = priority_rules(tables)

    def signals(
        self,
        candidate: TaskCandidate,
        context_map: ContextMap,
        extraction: Extraction,
        now: datetime,
    ) -> PrioritySignals:
        deadline = context_map.implied_deadlines.get(candidate.id) or candidate.due
        hours = None
        if deadline is not None:
            hours = (deadline - now).total_seconds() / 3600
        return PrioritySignals(
            text=candidate.cleaned,
            is_focus=candidate.is_focus,
            urgency=context_map.time_sensitivity.get(candidate.id),
            hours_until_deadline=hours,
            tone=extraction.emotion,
            decisions=extraction.decisions,
            followups=extraction.followups,
        )

    def score(
        self,
        candidate: TaskCandidate,
        context_map: ContextMap,
        extraction: Extraction,
        now: Optional[datetime] = None,
    ) -> TaskScore:
        """Score one candidate and record the result on it."""
        now = now or datetime.now()
        match = self.rules.evaluate(self.signals(candidate, context_map, extraction, now))
        effort = estimate_effort(candidate.cleaned, self.tables)

        candidate.priority = match.outcome
        candidate.effort = effort
        return TaskScore(
            task_id=candidate.id,
            priority=match.outcome,
            effort=effort,
            matched_rule=match.rule,
        )

    def score_all(
        self,
        candidates: list[TaskCandidate],
        context_map: ContextMap,
        extraction: Extraction,
        now: Optional[datetime] = None,
    ) -> list[TaskScore]:
        now = now or datetime.now()
        scores = [self.score(c, context_map, extraction, now) for c in candidates]
        logger.debug(
            "scored",
            must=sum(1 for s in scores if s.priority == Priority.MUST),
            should=sum(1 for s in scores if s.priority == Priority.SHOULD),
            could=sum(1 for s in scores if s.priority == Priority.COULD),
        )
        return scores

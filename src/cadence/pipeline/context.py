"""
Context Inferencer

Per-task context (people, due date, category, project, tags) and the
batch ContextMap across one capture: projects, categories, implied
deadlines and time sensitivity.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from cadence.llm.interpret import InterpretationBackend
from cadence.pipeline.tables import HeuristicTables, find_keyword
from cadence.pipeline.types import (
    ContextMap,
    EmotionalTone,
    Extraction,
    TaskCandidate,
    Urgency,
    UserContext,
    as_local,
)
from cadence.utils.logging import get_logger

logger = get_logger(__name__)

CONTEXT_PROMPT = """For each task infer: category, due (ISO 8601 or null), reminder_time
(ISO 8601 or null), project (or null), people mentioned, and context markers such
as @home or @calls. Return JSON: {"tasks": [{"id", "category", "due",
"reminder_time", "project", "people", "context"}]}."""

_PERSON = re.compile(r"\b([A-Z][a-z]+(?:\s[A-Z][a-z]+)?)\b")
_WORD = re.compile(r"[a-z0-9']+")

_ANCHOR_WEEKDAY = {"monday": 0, "friday": 4, "sunday": 6}


class TaskContext(BaseModel):
    id: str
    category: Optional[str] = None
    due: Optional[datetime] = None
    reminder_time: Optional[datetime] = None
    project: Optional[str] = None
    people: list[str] = Field(default_factory=list)
    context: list[str] = Field(default_factory=list)


class ContextReply(BaseModel):
    tasks: list[TaskContext] = Field(default_factory=list)


# =============================================================================
# Deterministic inference
# =============================================================================

def extract_people(text: str, stopwords: list[str], common_words: Iterable[str] = ()) -> list[str]:
    """
    Capitalized tokens and pairs. Order kept, no repeats.

    Day and date words, and common_words (verbs and keywords that start a
    capitalized line, such as "Call"), are dropped from a match.
    """
    skip = {w.lower() for w in common_words} | {w.lower() for w in stopwords}
    people: list[str] = []
    for match in _PERSON.findall(text):
        name = " ".join(part for part in match.split() if part.lower() not in skip)
        if len(name) > 2 and name not in people:
            people.append(name)
    return people


def infer_deadline(text: str, now: datetime, tables: HeuristicTables) -> Optional[datetime]:
    """Deadline implied by the first matching phrase, keeping the current time of day."""
    for phrase in tables.deadline_phrases:
        if not re.search(phrase.pattern, text, re.IGNORECASE):
            continue
        if phrase.offset_days is not None:
            return now + timedelta(days=phrase.offset_days)
        target = _ANCHOR_WEEKDAY[phrase.anchor]
        days = (target - now.weekday()) % 7
        # Sunday means the end of this week, which may be today
        if days == 0 and phrase.anchor != "sunday":
            days = 7
        return now + timedelta(days=days)
    return None


def detect_urgency(text: str, tone: EmotionalTone, tables: HeuristicTables) -> Urgency:
    """Keyword bucket urgency; a strained tone forces high."""
    if tone.is_strained:
        return Urgency.HIGH
    for level in (Urgency.HIGH, Urgency.MEDIUM, Urgency.LOW):
        if find_keyword(text, tables.urgency_keywords.get(level.value, [])):
            return level
    return Urgency.MEDIUM


def infer_category(
    text: str,
    tables: HeuristicTables,
    preferences: Optional[dict[str, float]] = None,
) -> str:
    """Best keyword-matched category, weighted by how often the user finishes it."""
    preferences = preferences or {}
    best, best_score = tables.default_category, 0.0
    for category, keywords in tables.category_keywords.items():
        if not find_keyword(text, keywords):
            continue
        score = 1.0
        preference = preferences.get(category)
        if preference is not None:
            if preference < 0.2:
                score = 0.3
            elif preference > 0.7:
                score = 1.5
        if score > best_score:
            best, best_score = category, score
    return best


def extract_keywords(text: str, tables: HeuristicTables) -> list[str]:
    """Lowercased words longer than three letters, minus stopwords, unique, capped."""
    stop = set(tables.keyword_stopwords)
    keywords: list[str] = []
    for word in _WORD.findall(text.lower()):
        word = word.strip("'")
        if len(word) > 3 and word not in stop and word not in keywords:
            keywords.append(word)
        if len(keywords) >= tables.max_keywords:
            break
    return keywords


def infer_projects(candidates: list[TaskCandidate], topics: list[str]) -> dict[str, list[str]]:
    """Group candidates by topic match, then by any long word shared by two or more."""
    projects: dict[str, list[str]] = {}

    for topic in topics:
        if not topic.strip():
            continue
        ids = [c.id for c in candidates if topic.lower() in c.cleaned.lower()]
        if ids:
            projects[topic] = ids

    by_word: dict[str, list[str]] = {}
    for candidate in candidates:
        for word in _WORD.findall(candidate.cleaned.lower()):
            if len(word) > 4:
                ids = by_word.setdefault(word, [])
                if candidate.id not in ids:
                    ids.append(candidate.id)

    for word, ids in by_word.items():
        if len(ids) >= 2 and word not in projects:
            projects[word] = ids

    return projects


# =============================================================================
# Inferencer
# =============================================================================

class ContextInferencer:
    """
    Third pipeline stage.

    The backend fills per-task fields when it can; anything it leaves
    blank, or everything when it fails, comes from the tables.
    """

    def __init__(self, backend: InterpretationBackend, tables: HeuristicTables):
        self.backend = backend
        self.tables = tables

    async def infer(
        self,
        candidates: list[TaskCandidate],
        extraction: Extraction,
        user_context: Optional[UserContext] = None,
        now: Optional[datetime] = None,
    ) -> ContextMap:
        """Enrich candidates in place and return the batch ContextMap."""
        now = now or datetime.now()
        user_context = user_context or UserContext()

        if candidates:
            payload = {
                "tasks": [{"id": c.id, "text": c.cleaned} for c in candidates],
                "custom_categories": user_context.custom_categories,
                "today": now.date().isoformat(),
            }
            known = {c.id for c in candidates}
            replies = await self.backend.interpret_or_fallback(
                stage="context",
                system_prompt=CONTEXT_PROMPT,
                payload=payload,
                schema=ContextReply,
                parse=lambda reply: {t.id: t for t in reply.tasks if t.id in known},
                fallback=dict,
            )
            for candidate in candidates:
                reply = replies.get(candidate.id)
                if reply is not None:
                    self._apply_reply(candidate, reply)

        context_map = self.build_context_map(candidates, extraction, now)

        for candidate in candidates:
            self.fill_task(
                candidate,
                now,
                preferences=user_context.category_preferences,
                urgency=context_map.time_sensitivity.get(candidate.id, Urgency.MEDIUM),
            )
            if candidate.project is None:
                candidate.project = next(
                    (name for name, ids in context_map.projects.items() if candidate.id in ids),
                    None,
                )

        context_map.categories = {}
        for candidate in candidates:
            context_map.categories.setdefault(candidate.category, []).append(candidate.id)

        logger.debug(
            "context_inferred",
            projects=len(context_map.projects),
            deadlines=len(context_map.implied_deadlines),
            people=len(context_map.people_mentions),
        )
        return context_map

    def fill_task(
        self,
        candidate: TaskCandidate,
        now: datetime,
        preferences: Optional[dict[str, float]] = None,
        urgency: Urgency = Urgency.MEDIUM,
    ) -> TaskCandidate:
        """Fill whatever per-task context is still missing from the tables."""
        text = candidate.cleaned
        if not candidate.people:
            candidate.people = extract_people(text, self.tables.people_stopwords, self.tables.common_words)
        if candidate.due is None:
            candidate.due = infer_deadline(text, now, self.tables)
        if not candidate.category:
            candidate.category = infer_category(text, self.tables, preferences)
        if not candidate.context_tags:
            tags = [f"@{candidate.category}"]
            if urgency == Urgency.HIGH:
                tags.append("@urgent")
            candidate.context_tags = tags
        if not candidate.keywords:
            candidate.keywords = extract_keywords(text, self.tables)
        return candidate

    def build_context_map(
        self,
        candidates: list[TaskCandidate],
        extraction: Extraction,
        now: datetime,
    ) -> ContextMap:
        """Deterministic batch context across the capture."""
        context_map = ContextMap(projects=infer_projects(candidates, extraction.topics))

        all_text = " ".join(c.cleaned for c in candidates) + " " + extraction.summary
        context_map.people_mentions = extract_people(all_text, self.tables.people_stopwords, self.tables.common_words)

        for candidate in candidates:
            deadline = infer_deadline(candidate.cleaned, now, self.tables)
            if deadline is not None:
                context_map.implied_deadlines[candidate.id] = deadline
            context_map.time_sensitivity[candidate.id] = detect_urgency(
                candidate.cleaned, extraction.emotion, self.tables
            )

        return context_map

    def _apply_reply(self, candidate: TaskCandidate, reply: TaskContext) -> None:
        if reply.category and not candidate.category:
            candidate.category = reply.category.strip().lower()
        if reply.due is not None and candidate.due is None:
            candidate.due = as_local(reply.due)
        if reply.reminder_time is not None and candidate.reminder_time is None:
            candidate.reminder_time = as_local(reply.reminder_time)
        if reply.project:
            candidate.project = reply.project.strip()
        candidate.people = [p.strip() for p in reply.people if p.strip()]
        candidate.context_tags = [
            tag if tag.startswith("@") else f"@{tag}"
            for tag in (t.strip() for t in reply.context)
            if tag
        ]

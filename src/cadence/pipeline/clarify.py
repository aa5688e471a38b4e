"""
Clarification Prompter

Picks at most a few questions worth asking about a capture: missing
deadlines, missing categories, unclear project membership, priorities
that look understated, and one scheduling offer when the person is
overwhelmed.
"""

from __future__ import annotations

from typing import Optional

from cadence.pipeline.tables import HeuristicTables, find_keyword
from cadence.pipeline.types import (
    ClarifyingQuestion,
    ContextMap,
    EmotionalTone,
    Extraction,
    Priority,
    TaskCandidate,
    TaskScore,
)


class ClarificationPrompter:
    """Deterministic question picker, capped at max_questions."""

    def __init__(self, tables: HeuristicTables, max_questions: int = 3):
        self.tables = tables
        self.max_questions = max_questions

    def questions(
        self,
        candidates: list[TaskCandidate],
        context_map: ContextMap,
        scores: list[TaskScore],
        extraction: Extraction,
    ) -> list[ClarifyingQuestion]:
        """Backend questions first, then deterministic ones; no repeats."""
        by_id = {s.task_id: s for s in scores}
        asked: list[ClarifyingQuestion] = []

        def add(question: ClarifyingQuestion) -> bool:
            if len(asked) >= self.max_questions:
                return False
            if any(q.question.lower() == question.question.lower() for q in asked):
                return True
            asked.append(question)
            return True

        for text in extraction.clarifying_questions:
            add(ClarifyingQuestion(question=text, kind="extraction"))

        for candidate in candidates:
            score = by_id.get(candidate.id)
            has_deadline = (
                candidate.id in context_map.implied_deadlines
                or candidate.due is not None
                or candidate.reminder_time is not None
            )
            if score and score.priority in (Priority.MUST, Priority.SHOULD) and not has_deadline:
                if not add(self._ask(candidate, "deadline")):
                    return asked

        for candidate in candidates:
            if self._category_unclear(candidate):
                if not add(self._ask(candidate, "category")):
                    return asked

        for name, members in context_map.projects.items():
            for candidate in candidates:
                title, project = candidate.cleaned.lower(), name.lower()
                if candidate.id not in members and (project in title or title in project):
                    if not add(self._ask(candidate, "project", project=name)):
                        return asked

        for candidate in candidates:
            score = by_id.get(candidate.id)
            if score and score.priority == Priority.COULD:
                if find_keyword(candidate.cleaned, self.tables.clarify_urgency_words):
                    if not add(self._ask(candidate, "priority")):
                        return asked

        if extraction.emotion == EmotionalTone.OVERWHELMED:
            for candidate in candidates:
                score = by_id.get(candidate.id)
                if score and score.priority == Priority.SHOULD and candidate.reminder_time is None:
                    add(self._ask(candidate, "agenda"))
                    break

        return asked

    def _category_unclear(self, candidate: TaskCandidate) -> bool:
        """No category, or the default one with no category keyword behind it."""
        if not candidate.category:
            return True
        return candidate.category == self.tables.default_category and not any(
            find_keyword(candidate.cleaned, keywords)
            for keywords in self.tables.category_keywords.values()
        )

    def _ask(self, candidate: TaskCandidate, kind: str, project: Optional[str] = None) -> ClarifyingQuestion:
        title = candidate.cleaned
        text = {
            "deadline": f'When would you like "{title}" done? Today, tomorrow, or this week?',
            "category": f'What area does "{title}" fit into? Work, home, or personal?',
            "project": f'Is "{title}" part of your {project} project?',
            "priority": f'How urgent is "{title}"? Must do, should do, or nice to have?',
            "agenda": f'Do you want "{title}" scheduled for today?',
        }[kind]
        return ClarifyingQuestion(question=text, kind=kind, task_id=candidate.id)

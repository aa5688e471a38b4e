"""
Classifier

Tags each candidate tiny (under five minutes, low load) or complex, and
breaks complex candidates into a handful of subtasks.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from cadence.llm.interpret import InterpretationBackend
from cadence.pipeline.types import TaskCandidate
from cadence.utils.logging import get_logger

logger = get_logger(__name__)

CLASSIFICATION_PROMPT = """For each task decide whether it is tiny (under 5 minutes, low
mental load) or complex. For complex tasks give 2 to 4 short, concrete subtasks.
Return JSON: {"tasks": [{"id": str, "is_tiny": bool, "subtasks": [str]}]}."""


class TaskClassification(BaseModel):
    id: str
    is_tiny: bool = False
    subtasks: list[str] = Field(default_factory=list)


class ClassificationReply(BaseModel):
    tasks: list[TaskClassification] = Field(default_factory=list)


class Classifier:
    """Second pipeline stage. Never fails: unknown tasks stay non-tiny with no subtasks."""

    def __init__(self, backend: InterpretationBackend, min_subtasks: int = 2, max_subtasks: int = 4):
        self.backend = backend
        self.min_subtasks = min_subtasks
        self.max_subtasks = max_subtasks

    async def classify(self, candidates: list[TaskCandidate]) -> list[TaskCandidate]:
        """Set is_tiny and subtasks on each candidate in place."""
        if not candidates:
            return candidates

        payload = {"tasks": [{"id": c.id, "text": c.cleaned} for c in candidates]}
        known = {c.id for c in candidates}

        verdicts = await self.backend.interpret_or_fallback(
            stage="classify",
            system_prompt=CLASSIFICATION_PROMPT,
            payload=payload,
            schema=ClassificationReply,
            parse=lambda reply: {t.id: t for t in reply.tasks if t.id in known},
            fallback=dict,
        )

        for candidate in candidates:
            verdict = verdicts.get(candidate.id)
            if verdict is None:
                candidate.is_tiny = False
                candidate.subtasks = []
                continue
            candidate.is_tiny = verdict.is_tiny
            candidate.subtasks = [] if verdict.is_tiny else self._bounded_subtasks(verdict.subtasks)

        logger.debug(
            "classified",
            tiny=sum(1 for c in candidates if c.is_tiny),
            complex=sum(1 for c in candidates if not c.is_tiny),
        )
        return candidates

    def _bounded_subtasks(self, subtasks: list[str]) -> list[str]:
        steps = [s.strip() for s in subtasks if s and s.strip()][: self.max_subtasks]
        if len(steps) < self.min_subtasks:
            return []
        return steps

"""
Extractor

Turns a freeform capture into task candidates plus ideas, decisions,
follow-ups and the emotional tone of the capture.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Callable, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from cadence.llm.interpret import InterpretationBackend
from cadence.pipeline.types import (
    EmotionalTone,
    Extraction,
    TaskCandidate,
    UserContext,
    as_local,
)
from cadence.utils.logging import get_logger

logger = get_logger(__name__)

EXTRACTION_PROMPT = """You turn a person's freeform brain dump into structured tasks.
Return JSON with keys: tasks (list of {raw, cleaned, category, due, reminder_time, confidence}),
ideas, decisions, followups, topics (lists of strings), summary (string),
emotion (one of stressed, overwhelmed, ok, motivated) and clarifying_questions
(only when who or when is missing and critical). Dates are ISO 8601 or null.
Use the person's goal and custom categories when they fit."""

_BULLET = re.compile(r"^\s*(?:[-*•]+|\d+[.)]|\[[ xX]?\])\s*")


class ExtractedTask(BaseModel):
    raw: str
    cleaned: Optional[str] = None
    category: Optional[str] = None
    due: Optional[datetime] = None
    reminder_time: Optional[datetime] = None
    confidence: float = Field(default=0.7, ge=0.0, le=1.0)


class ExtractionReply(BaseModel):
    tasks: list[ExtractedTask] = Field(default_factory=list)
    ideas: list[str] = Field(default_factory=list)
    decisions: list[str] = Field(default_factory=list)
    followups: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    summary: str = ""
    emotion: Optional[str] = None
    clarifying_questions: list[str] = Field(default_factory=list)


def clean_line(line: str) -> str:
    """Strip list markers and trailing punctuation from a captured line."""
    text = _BULLET.sub("", line).strip().rstrip(".,;")
    if text:
        text = text[0].upper() + text[1:]
    return text


class Extractor:
    """
    First pipeline stage.

    The raw text is carried through untouched whatever the backend does.
    Only the copy sent to the backend is bounded in length.
    """

    def __init__(
        self,
        backend: InterpretationBackend,
        max_input_chars: int = 4000,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ):
        self.backend = backend
        self.max_input_chars = max_input_chars
        self._new_id = id_factory

    async def extract(self, text: str, user_context: Optional[UserContext] = None) -> Extraction:
        """
        Extract candidates from a capture.

        Args:
            text: The capture exactly as entered
            user_context: Goal, categories and recent conversation

        Returns:
            Extraction whose raw_text is the input, verbatim
        """
        user_context = user_context or UserContext()
        bounded = text[: self.max_input_chars]
        if len(bounded) < len(text):
            logger.info("capture_truncated", chars=len(text), limit=self.max_input_chars)

        payload = {
            "text": bounded,
            "goal": user_context.goal,
            "custom_categories": user_context.custom_categories,
            "recent_messages": user_context.recent_messages[-5:],
        }

        extraction = await self.backend.interpret_or_fallback(
            stage="extract",
            system_prompt=EXTRACTION_PROMPT,
            payload=payload,
            schema=ExtractionReply,
            parse=lambda reply: self._from_reply(text, reply),
            fallback=lambda: self.fallback(text),
        )
        logger.info(
            "extracted",
            candidates=len(extraction.candidates),
            ideas=len(extraction.ideas),
            emotion=extraction.emotion.value,
        )
        return extraction

    def fallback(self, text: str) -> Extraction:
        """One candidate per non-empty line, or the whole text as one."""
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        if not lines:
            lines = [text.strip()]

        candidates = []
        for line in lines:
            cleaned = clean_line(line) or line
            candidates.append(TaskCandidate(id=self._new_id(), raw=line, cleaned=cleaned))
        return Extraction(raw_text=text, candidates=candidates)

    def _from_reply(self, text: str, reply: ExtractionReply) -> Extraction:
        candidates = []
        for task in reply.tasks:
            raw = task.raw.strip()
            if not raw:
                continue
            cleaned = (task.cleaned or "").strip() or clean_line(raw) or raw
            candidates.append(TaskCandidate(
                id=self._new_id(),
                raw=raw,
                cleaned=cleaned,
                confidence=task.confidence,
                category=task.category or None,
                due=as_local(task.due),
                reminder_time=as_local(task.reminder_time),
            ))

        return Extraction(
            raw_text=text,
            candidates=candidates,
            ideas=reply.ideas,
            decisions=reply.decisions,
            followups=reply.followups,
            topics=reply.topics,
            summary=reply.summary,
            emotion=EmotionalTone.coerce(reply.emotion),
            clarifying_questions=[q.strip() for q in reply.clarifying_questions if q.strip()],
        )

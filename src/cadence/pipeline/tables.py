"""
Heuristic Tables

Keyword and phrase tables behind the deterministic parts of the pipeline.
Defaults live here; a YAML file can override any table.
"""

from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field

from cadence.config import deep_merge, load_yaml_config


class DeadlinePhrase(BaseModel):
    """A phrase implying a deadline: fixed day offset or a weekday anchor."""

    pattern: str
    offset_days: Optional[int] = None
    anchor: Optional[Literal["friday", "sunday", "monday"]] = None


class SeasonalPattern(BaseModel):
    """Calendar window in which a category tends to become the focus."""

    weekdays: list[int] = Field(default_factory=list)  # Monday=0
    first_day: Optional[int] = None
    last_day: Optional[int] = None
    label: str = ""

    def matches(self, weekday: int, day_of_month: int) -> bool:
        if self.weekdays and weekday not in self.weekdays:
            return False
        if self.first_day is not None and day_of_month < self.first_day:
            return False
        if self.last_day is not None and day_of_month > self.last_day:
            return False
        return bool(self.weekdays) or self.first_day is not None or self.last_day is not None


class HeuristicTables(BaseModel):
    """Every keyword table the pipeline consults."""

    # Priority scorer
    must_keywords: list[str] = [
        "urgent", "asap", "critical", "immediately", "today", "now", "emergency", "deadline",
    ]
    should_keywords: list[str] = [
        "important", "soon", "this week", "tomorrow", "need to", "should",
    ]
    could_keywords: list[str] = [
        "maybe", "consider", "eventually", "sometime", "would be nice", "if time",
    ]

    # Effort, checked tiny → large, first hit wins
    effort_indicators: dict[str, list[str]] = {
        "tiny": ["quick", "check", "send", "call", "text", "reply", "respond", "email", "message"],
        "small": ["review", "draft", "update", "schedule", "book", "order", "buy"],
        "medium": ["write", "create", "prepare", "plan", "organize", "meeting", "research"],
        "large": ["build", "develop", "implement", "design", "complete", "finish project", "overhaul"],
    }

    # Context inferencer
    urgency_keywords: dict[str, list[str]] = {
        "high": ["urgent", "asap", "immediately", "critical", "emergency", "now", "today"],
        "medium": ["soon", "important", "this week", "tomorrow", "need to"],
        "low": ["eventually", "sometime", "maybe", "consider", "might"],
    }
    deadline_phrases: list[DeadlinePhrase] = [
        DeadlinePhrase(pattern=r"\b(today|asap|now|urgent)\b", offset_days=0),
        DeadlinePhrase(pattern=r"\btomorrow\b", offset_days=1),
        DeadlinePhrase(pattern=r"\b(by|this) friday\b", anchor="friday"),
        DeadlinePhrase(pattern=r"\b(this week|by week ?end)\b", anchor="sunday"),
        DeadlinePhrase(pattern=r"\bnext week\b", offset_days=7),
        DeadlinePhrase(pattern=r"\bmonday\b", anchor="monday"),
    ]
    category_keywords: dict[str, list[str]] = {
        "work": ["meeting", "project", "deadline", "client", "office", "presentation", "report",
                 "invoice", "proposal", "email"],
        "home": ["clean", "repair", "fix", "organize", "laundry", "dishes", "groceries", "trash"],
        "personal": ["exercise", "health", "hobby", "read", "learn"],
        "errand": ["buy", "pick up", "drop off", "return", "shop"],
        "call": ["call", "phone", "reach out", "contact", "text"],
        "project": ["build", "create", "develop", "design", "implement"],
    }
    default_category: str = "personal"
    people_stopwords: list[str] = [
        "Today", "Tomorrow", "Tonight", "Yesterday", "Week", "Weekend", "Next", "This",
        "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday",
    ]

    # Keywords persisted on tasks
    keyword_stopwords: list[str] = [
        "the", "and", "for", "with", "from", "that", "this", "have", "need", "needs",
        "should", "would", "could", "about", "into", "then", "them", "they", "will",
        "today", "tomorrow", "week", "some", "make", "sure", "just", "also", "after",
        "before", "when", "once", "maybe",
    ]
    max_keywords: int = 8

    # Domino analyzer
    sequencing_words: list[str] = ["after", "once", "when", "following", "depends on"]
    prerequisite_verbs: dict[str, list[str]] = {
        "setup": ["configure", "use", "run", "test"],
        "create": ["edit", "update", "modify", "review", "share"],
        "design": ["implement", "build", "develop"],
        "research": ["decide", "plan", "choose"],
        "write": ["review", "edit", "publish", "send"],
        "draft": ["review", "edit", "revise", "send", "finalize"],
        "plan": ["execute", "implement", "start"],
    }
    action_verbs: list[str] = [
        "create", "build", "design", "develop", "write", "draft", "prepare",
        "setup", "configure", "install", "research", "analyze", "plan",
    ]
    noun_stopwords: list[str] = [
        "the", "and", "or", "but", "for", "with", "from", "to", "in", "on", "at", "by",
    ]

    # Focus predictor
    high_priority_categories: list[str] = ["urgent", "primary_focus"]
    seasonal_patterns: dict[str, SeasonalPattern] = {
        "monday_reset": SeasonalPattern(weekdays=[0], label="Monday pattern match"),
        "weekend_family": SeasonalPattern(weekdays=[5, 6], label="Weekend pattern match"),
        "month_start_admin": SeasonalPattern(first_day=1, last_day=7, label="Month-start pattern"),
        "month_end_financial": SeasonalPattern(first_day=24, label="Month-end pattern"),
    }
    complex_title_words: int = 8

    # Clarification prompter
    clarify_urgency_words: list[str] = ["important", "need", "should", "must"]

    @property
    def common_words(self) -> set[str]:
        """Every word of the keyword tables; never taken for a person's name."""
        phrases = [
            *self.must_keywords,
            *self.should_keywords,
            *self.could_keywords,
            *self.action_verbs,
            *self.prerequisite_verbs,
            *(p for tier in self.effort_indicators.values() for p in tier),
            *(p for words in self.category_keywords.values() for p in words),
            *(p for words in self.prerequisite_verbs.values() for p in words),
        ]
        return {word.lower() for phrase in phrases for word in phrase.split()}


def keyword_pattern(keyword: str) -> re.Pattern[str]:
    """Whole-word, case-insensitive pattern for a keyword or phrase."""
    return _compiled(keyword.lower())


@lru_cache(maxsize=1024)
def _compiled(keyword: str) -> re.Pattern[str]:
    return re.compile(r"\b" + re.escape(keyword) + r"\b", re.IGNORECASE)


def find_keyword(text: str, keywords: list[str]) -> Optional[str]:
    """Return the first keyword (in table order) present in text."""
    for keyword in keywords:
        if keyword_pattern(keyword).search(text):
            return keyword
    return None


def load_tables(path: Path | None = None) -> HeuristicTables:
    """Load tables, letting a YAML file override the defaults table by table."""
    overrides = load_yaml_config(path)
    if not overrides:
        return HeuristicTables()
    base = HeuristicTables().model_dump()
    return HeuristicTables.model_validate(deep_merge(base, overrides))

"""
Tests for the context inferencer.
"""

from datetime import datetime, timedelta

import pytest

from cadence.llm.interpret import InterpretationBackend
from cadence.pipeline.context import (
    ContextInferencer,
    detect_urgency,
    extract_keywords,
    extract_people,
    infer_category,
    infer_deadline,
    infer_projects,
)
from cadence.pipeline.tables import HeuristicTables
from cadence.pipeline.types import EmotionalTone, Extraction, TaskCandidate, Urgency, UserContext

from conftest import NOW, ScriptedProvider, started_gateway

TABLES = HeuristicTables()


def candidate(task_id, text, **fields):
    return TaskCandidate(id=task_id, raw=text, cleaned=text, **fields)


class TestExtractPeople:
    """Tests for people detection."""

    def test_names_and_pairs(self):
        people = extract_people("ask Sarah and John Smith about it", TABLES.people_stopwords)
        assert people == ["Sarah", "John Smith"]

    def test_day_words_skipped(self):
        people = extract_people("see Sarah on Monday", TABLES.people_stopwords)
        assert people == ["Sarah"]

    def test_leading_verb_dropped(self):
        people = extract_people("Call Sarah", TABLES.people_stopwords, TABLES.common_words)
        assert people == ["Sarah"]
        assert extract_people("Call dentist today", TABLES.people_stopwords, TABLES.common_words) == []

    def test_no_repeats(self):
        assert extract_people("Sarah then Sarah", TABLES.people_stopwords) == ["Sarah"]


class TestInferDeadline:
    """Tests for deadline phrases. NOW is a Wednesday at 10:00."""

    @pytest.mark.parametrize("text,days", [
        ("Call dentist today", 0),
        ("Send invoice asap", 0),
        ("Pay rent tomorrow", 1),
        ("Report by Friday", 2),
        ("Clean garage this week", 4),
        ("Book flights next week", 7),
        ("Dentist Monday", 5),
    ])
    def test_phrases(self, text, days):
        assert infer_deadline(text, NOW, TABLES) == NOW + timedelta(days=days)

    def test_keeps_time_of_day(self):
        assert infer_deadline("tomorrow", NOW, TABLES).hour == 10

    def test_no_phrase(self):
        assert infer_deadline("Water the plants", NOW, TABLES) is None

    def test_friday_on_a_friday_means_next_week(self):
        friday = datetime(2026, 10, 16, 9, 0)
        assert infer_deadline("by friday", friday, TABLES) == friday + timedelta(days=7)

    def test_this_week_on_a_sunday_means_today(self):
        sunday = datetime(2026, 10, 18, 9, 0)
        assert infer_deadline("this week", sunday, TABLES) == sunday


class TestUrgencyAndCategory:
    """Tests for urgency buckets and category choice."""

    def test_urgency_buckets(self):
        assert detect_urgency("Fix it asap", EmotionalTone.OK, TABLES) == Urgency.HIGH
        assert detect_urgency("Do it soon", EmotionalTone.OK, TABLES) == Urgency.MEDIUM
        assert detect_urgency("Maybe repaint", EmotionalTone.OK, TABLES) == Urgency.LOW
        assert detect_urgency("Repaint the fence", EmotionalTone.OK, TABLES) == Urgency.MEDIUM

    def test_strained_tone_forces_high(self):
        assert detect_urgency("Maybe repaint", EmotionalTone.OVERWHELMED, TABLES) == Urgency.HIGH
        assert detect_urgency("Maybe repaint", EmotionalTone.STRESSED, TABLES) == Urgency.HIGH

    def test_category_keywords(self):
        assert infer_category("Prepare client presentation", TABLES) == "work"
        assert infer_category("Do the laundry", TABLES) == "home"
        assert infer_category("Stare out the window", TABLES) == "personal"

    def test_category_preferences(self):
        text = "Fix the client report"  # work and home both match
        assert infer_category(text, TABLES) == "work"
        assert infer_category(text, TABLES, {"work": 0.1}) == "home"
        assert infer_category(text, TABLES, {"home": 0.9}) == "home"


class TestKeywordsAndProjects:
    """Tests for keyword extraction and project grouping."""

    def test_keywords(self):
        keywords = extract_keywords("Finish the quarterly report for the client", TABLES)
        assert keywords == ["finish", "quarterly", "report", "client"]

    def test_keywords_capped(self):
        text = " ".join(f"word{i}" for i in range(20))
        assert len(extract_keywords(text, TABLES)) == TABLES.max_keywords

    def test_projects_from_topics_and_shared_words(self):
        candidates = [
            candidate("1", "Draft kitchen budget"),
            candidate("2", "Order kitchen tiles"),
            candidate("3", "Walk the dog"),
        ]
        projects = infer_projects(candidates, ["budget"])
        assert projects["budget"] == ["1"]
        assert projects["kitchen"] == ["1", "2"]
        assert "3" not in [i for ids in projects.values() for i in ids]


class TestContextInferencer:
    """Tests for the inferencer stage."""

    @pytest.mark.asyncio
    async def test_fallback_fills_everything(self):
        inferencer = ContextInferencer(InterpretationBackend(None), TABLES)
        tasks = [candidate("1", "Call Sarah about the client proposal today")]
        extraction = Extraction(raw_text="x", candidates=tasks)

        context_map = await inferencer.infer(tasks, extraction, UserContext(), NOW)
        task = tasks[0]

        assert task.people == ["Sarah"]
        assert task.due == NOW
        assert task.category == "work"
        assert task.context_tags == ["@work", "@urgent"]
        assert "proposal" in task.keywords
        assert context_map.implied_deadlines["1"] == NOW
        assert context_map.time_sensitivity["1"] == Urgency.HIGH
        assert context_map.categories == {"work": ["1"]}
        assert context_map.people_mentions == ["Sarah"]

    @pytest.mark.asyncio
    async def test_backend_reply_applied(self):
        provider = ScriptedProvider({
            "tasks": [
                {
                    "id": "1",
                    "category": "Garden",
                    "due": "2026-10-20T09:00:00",
                    "project": "Spring beds",
                    "people": ["Ana"],
                    "context": ["home", "@outside"],
                },
                {"id": "unknown", "category": "work"},
            ]
        })
        backend = InterpretationBackend(await started_gateway(provider))
        inferencer = ContextInferencer(backend, TABLES)
        tasks = [candidate("1", "Plant tulip bulbs")]
        extraction = Extraction(raw_text="x", candidates=tasks)

        await inferencer.infer(tasks, extraction, UserContext(), NOW)
        task = tasks[0]

        assert task.category == "garden"
        assert task.due == datetime(2026, 10, 20, 9, 0)
        assert task.project == "Spring beds"
        assert task.people == ["Ana"]
        assert task.context_tags == ["@home", "@outside"]

    @pytest.mark.asyncio
    async def test_project_affinity(self):
        inferencer = ContextInferencer(InterpretationBackend(None), TABLES)
        tasks = [candidate("1", "Draft kitchen budget"), candidate("2", "Order kitchen tiles")]
        extraction = Extraction(raw_text="x", candidates=tasks)

        context_map = await inferencer.infer(tasks, extraction, UserContext(), NOW)
        assert context_map.projects["kitchen"] == ["1", "2"]
        assert tasks[1].project == "kitchen"

    @pytest.mark.asyncio
    async def test_strained_capture_marks_everything_urgent(self):
        inferencer = ContextInferencer(InterpretationBackend(None), TABLES)
        tasks = [candidate("1", "Maybe repaint the fence")]
        extraction = Extraction(raw_text="x", candidates=tasks, emotion=EmotionalTone.OVERWHELMED)

        context_map = await inferencer.infer(tasks, extraction, UserContext(), NOW)
        assert context_map.time_sensitivity["1"] == Urgency.HIGH
        assert "@urgent" in tasks[0].context_tags

"""
Tests for priority and effort scoring.
"""

from datetime import timedelta

import pytest

from cadence.pipeline.priority import PriorityScorer, estimate_effort, priority_rules
from cadence.pipeline.tables import HeuristicTables
from cadence.pipeline.types import (
    ContextMap,
    Effort,
    EmotionalTone,
    Extraction,
    Priority,
    TaskCandidate,
    Urgency,
)

from conftest import NOW

TABLES = HeuristicTables()


def score(text, context_map=None, extraction=None, **fields):
    candidate = TaskCandidate(id="t1", raw=text, cleaned=text, **fields)
    context_map = context_map or ContextMap()
    extraction = extraction or Extraction(raw_text=text, candidates=[candidate])
    return candidate, PriorityScorer(TABLES).score(candidate, context_map, extraction, NOW)


class TestPriorityRules:
    """Tests for the ordered priority rules."""

    def test_rule_order(self):
        assert priority_rules(TABLES).names == [
            "primary_focus",
            "must_keyword",
            "time_sensitivity",
            "strained_tone",
            "should_keyword",
            "could_keyword",
            "decision",
            "followup",
        ]

    def test_must_keyword(self):
        """A must keyword makes the dentist call a tiny MUST."""
        candidate, result = score("Call dentist today")
        assert result.priority == Priority.MUST
        assert result.matched_rule == "must_keyword"
        assert result.effort == Effort.TINY
        assert result.fiesta_ready
        assert candidate.priority == Priority.MUST
        assert candidate.effort == Effort.TINY

    def test_primary_focus_wins(self):
        _, result = score("Maybe repaint the fence", is_focus=True)
        assert result.priority == Priority.MUST
        assert result.matched_rule == "primary_focus"

    def test_deadline_within_a_day(self):
        context_map = ContextMap(implied_deadlines={"t1": NOW + timedelta(hours=20)})
        _, result = score("Renew passport", context_map)
        assert result.priority == Priority.MUST
        assert result.matched_rule == "time_sensitivity"

    def test_deadline_within_three_days(self):
        context_map = ContextMap(implied_deadlines={"t1": NOW + timedelta(hours=48)})
        _, result = score("Maybe renew passport", context_map)
        assert result.priority == Priority.SHOULD
        assert result.matched_rule == "time_sensitivity"

    def test_candidate_due_counts(self):
        _, result = score("Renew passport", due=NOW + timedelta(hours=3))
        assert result.priority == Priority.MUST

    def test_distant_deadline_ignored(self):
        context_map = ContextMap(implied_deadlines={"t1": NOW + timedelta(days=7)})
        _, result = score("Renew passport", context_map)
        assert result.matched_rule == "default"

    def test_high_urgency(self):
        context_map = ContextMap(time_sensitivity={"t1": Urgency.HIGH})
        _, result = score("Renew passport", context_map)
        assert result.priority == Priority.MUST
        assert result.matched_rule == "time_sensitivity"

    def test_strained_tone_before_could(self):
        extraction = Extraction(raw_text="x", emotion=EmotionalTone.STRESSED)
        context_map = ContextMap(time_sensitivity={"t1": Urgency.MEDIUM})
        _, result = score("Maybe repaint the fence", context_map, extraction)
        assert result.priority == Priority.SHOULD
        assert result.matched_rule == "strained_tone"

    def test_should_keyword(self):
        _, result = score("Important: renew passport")
        assert result.priority == Priority.SHOULD
        assert result.matched_rule == "should_keyword"

    def test_could_keyword(self):
        _, result = score("Maybe repaint the fence")
        assert result.priority == Priority.COULD
        assert result.matched_rule == "could_keyword"

    def test_decision_mention(self):
        extraction = Extraction(raw_text="x", decisions=["Hire the contractor for the deck"])
        _, result = score("Hire the contractor", extraction=extraction)
        assert result.priority == Priority.MUST
        assert result.matched_rule == "decision"

    def test_followup_mention(self):
        extraction = Extraction(raw_text="x", followups=["Ping landlord re: the boiler"])
        _, result = score("Ping landlord re: boiler", extraction=extraction)
        assert result.priority == Priority.SHOULD
        assert result.matched_rule == "followup"

    def test_default(self):
        _, result = score("Renew passport")
        assert result.priority == Priority.SHOULD
        assert result.matched_rule == "default"

    def test_tiers_ordered(self):
        assert Priority.MUST > Priority.SHOULD > Priority.COULD
        assert sorted([Priority.COULD, Priority.MUST, Priority.SHOULD]) == [
            Priority.COULD, Priority.SHOULD, Priority.MUST,
        ]


class TestEffort:
    """Tests for effort estimation."""

    @pytest.mark.parametrize("text,effort", [
        ("Quick 5 min stretch", Effort.TINY),
        ("Stretch for 10 minutes", Effort.SMALL),
        ("Tidy desk, 25 min", Effort.MEDIUM),
        ("Yoga for 45 minutes", Effort.LARGE),
        ("2 hours of gardening", Effort.LARGE),
    ])
    def test_explicit_duration(self, text, effort):
        assert estimate_effort(text, TABLES) == effort

    @pytest.mark.parametrize("text,effort", [
        ("Reply to Tom", Effort.TINY),
        ("Review contract", Effort.SMALL),
        ("Write blog post", Effort.MEDIUM),
        ("Build a shed", Effort.LARGE),
    ])
    def test_indicator_words(self, text, effort):
        assert estimate_effort(text, TABLES) == effort

    @pytest.mark.parametrize("text,effort", [
        ("Water plants", Effort.TINY),
        ("Sort old photos into albums", Effort.SMALL),
        ("Look through the old boxes in the attic", Effort.MEDIUM),
        ("Go through every single drawer in the house and toss what is broken", Effort.LARGE),
    ])
    def test_word_count(self, text, effort):
        assert estimate_effort(text, TABLES) == effort

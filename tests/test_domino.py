"""
Tests for the domino effect analyzer.
"""

from datetime import timedelta

import pytest

from cadence.config import DominoConfig
from cadence.pipeline.cache import MemoryCache
from cadence.pipeline.domino import (
    FAILURE_REASON,
    STANDALONE_REASON,
    DominoAnalyzer,
    jaccard,
    nouns,
    summary,
)
from cadence.pipeline.tables import HeuristicTables
from cadence.pipeline.types import DominoEffect, Relationship, UnlockedTask

from conftest import NOW

USER = "user1"


def analyzer_for(store, now=NOW):
    clock = lambda: now
    return DominoAnalyzer(store, MemoryCache(clock), DominoConfig(), HeuristicTables(), clock)


class TestJaccard:
    """Tests for keyword similarity."""

    def test_partial_overlap(self):
        assert jaccard({"design", "ui"}, {"design", "backend"}) == pytest.approx(1 / 3)

    def test_identical(self):
        assert jaccard(["a", "b"], ["b", "a"]) == 1.0

    def test_empty(self):
        assert jaccard([], ["a"]) == 0.0
        assert jaccard([], []) == 0.0

    def test_case_insensitive_and_symmetric(self):
        assert jaccard(["Report"], ["report", "x"]) == jaccard(["report", "x"], ["REPORT"]) == 0.5


class TestSummary:
    """Tests for the one-line summary."""

    def test_counts(self):
        def effect(count):
            return DominoEffect(
                task_id="t",
                unlocked_tasks=[
                    UnlockedTask(task_id=str(i), title="x", relationship=Relationship.RELATED)
                    for i in range(count)
                ],
            )

        assert summary(effect(0)) == ""
        assert summary(effect(1)) == "Completing this will unlock 1 related task."
        assert summary(effect(3)) == "Completing this will unlock 3 related tasks."


class TestRelationships:
    """Tests for how other tasks relate to the focus task."""

    def test_prerequisite(self, store):
        """Drafting a proposal is a prerequisite for reviewing it."""
        draft = store.create_task(USER, "Draft proposal", "draft proposal")
        review = store.create_task(USER, "Review proposal", "review proposal")

        effect = analyzer_for(store).analyze(USER, draft.id)

        assert len(effect.unlocked_tasks) == 1
        unlocked = effect.unlocked_tasks[0]
        assert unlocked.task_id == review.id
        assert unlocked.relationship == Relationship.PREREQUISITE
        assert unlocked.confidence == 0.8
        assert effect.reasoning == ['Prerequisite for "Review proposal"']

    def test_blocker(self, store):
        primary = store.create_task(USER, "Finish budget spreadsheet", "x")
        other = store.create_task(USER, "Send budget after sign-off", "x")

        effect = analyzer_for(store).analyze(USER, primary.id)

        unlocked = effect.unlocked_tasks[0]
        assert unlocked.task_id == other.id
        assert unlocked.relationship == Relationship.BLOCKER
        assert unlocked.confidence == 0.9
        assert 'Directly blocks "Send budget after sign-off"' in effect.reasoning

    def test_keyword_similarity(self, store):
        primary = store.create_task(USER, "Sketch dashboard", "x", keywords=["dashboard", "charts"])
        other = store.create_task(USER, "Tune charts", "x", keywords=["dashboard", "charts", "colors"])

        unlocked = analyzer_for(store).analyze(USER, primary.id).unlocked_tasks[0]
        assert unlocked.task_id == other.id
        assert unlocked.relationship == Relationship.RELATED
        assert unlocked.confidence == pytest.approx(2 / 3, abs=1e-4)

    def test_low_similarity_falls_through_to_category(self, store):
        primary = store.create_task(USER, "Sketch UI", "x", category="work", keywords=["design", "ui"])
        store.create_task(USER, "Backend notes", "x", category="work", keywords=["design", "backend"])

        unlocked = analyzer_for(store).analyze(USER, primary.id).unlocked_tasks[0]
        assert unlocked.relationship == Relationship.RELATED
        assert unlocked.confidence == 0.5

    def test_low_similarity_other_category_unrelated(self, store):
        primary = store.create_task(USER, "Sketch UI", "x", category="work", keywords=["design", "ui"])
        store.create_task(USER, "Backend notes", "x", category="home", keywords=["design", "backend"])

        effect = analyzer_for(store).analyze(USER, primary.id)
        assert effect.unlocked_tasks == []
        assert effect.reasoning == [STANDALONE_REASON]

    def test_shared_cluster(self, store):
        primary = store.create_task(USER, "Buy paint", "x", category="errand")
        other = store.create_task(USER, "Sand the walls", "x", category="home")
        store.save_clusters(USER, NOW.date(), {"renovation": [primary.id, other.id]})

        effect = analyzer_for(store).analyze(USER, primary.id)
        assert effect.reasoning[0] == 'Part of "renovation" cluster'
        unlocked = effect.unlocked_tasks[0]
        assert unlocked.relationship == Relationship.CLUSTER
        assert unlocked.confidence == 0.3

    def test_order_and_uniqueness(self, store):
        primary = store.create_task(USER, "Draft proposal", "x", category="work")
        store.create_task(USER, "Lunch with team", "x", category="work")
        store.create_task(USER, "Review proposal", "x")
        store.create_task(USER, "Email proposal after approval", "x")

        effect = analyzer_for(store).analyze(USER, primary.id)
        relationships = [u.relationship for u in effect.unlocked_tasks]

        assert relationships == [Relationship.BLOCKER, Relationship.PREREQUISITE, Relationship.RELATED]
        assert len({u.task_id for u in effect.unlocked_tasks}) == 3
        assert primary.id not in {u.task_id for u in effect.unlocked_tasks}

    def test_completed_tasks_ignored(self, store):
        primary = store.create_task(USER, "Draft proposal", "x")
        review = store.create_task(USER, "Review proposal", "x")
        store.complete_task(review.id)

        effect = analyzer_for(store).analyze(USER, primary.id)
        assert effect.unlocked_tasks == []

    def test_nouns(self):
        assert nouns("Draft the proposal for Acme", HeuristicTables()) == ["proposal", "acme"]


class TestAnalyzeBehaviour:
    """Tests for caching and failure handling."""

    def test_no_user(self, store):
        analyzer = analyzer_for(store)
        effect = analyzer.analyze(None, "any")
        assert effect.unlocked_tasks == []
        assert effect.reasoning == []
        assert len(analyzer.cache) == 0

    def test_missing_task(self, store):
        analyzer = analyzer_for(store)
        effect = analyzer.analyze(USER, "does-not-exist")
        assert effect.unlocked_tasks == []
        assert effect.reasoning == [FAILURE_REASON]
        assert len(analyzer.cache) == 0

    def test_cached_per_task_and_day(self, store, monkeypatch):
        primary = store.create_task(USER, "Draft proposal", "x")
        store.create_task(USER, "Review proposal", "x")
        analyzer = analyzer_for(store)
        calls = []
        original = analyzer._analyze

        def counting(user_id, task_id, now):
            calls.append(task_id)
            return original(user_id, task_id, now)

        monkeypatch.setattr(analyzer, "_analyze", counting)

        first = analyzer.analyze(USER, primary.id)
        assert analyzer.analyze(USER, primary.id) is first
        assert calls == [primary.id]

        analyzer.invalidate(primary.id)
        analyzer.analyze(USER, primary.id)
        assert len(calls) == 2

    def test_new_day_recomputes(self, store):
        primary = store.create_task(USER, "Draft proposal", "x")
        clock = {"now": NOW}
        cache = MemoryCache(lambda: clock["now"])
        analyzer = DominoAnalyzer(store, cache, DominoConfig(), HeuristicTables(), lambda: clock["now"])

        first = analyzer.analyze(USER, primary.id)
        clock["now"] = NOW + timedelta(days=1)
        assert analyzer.analyze(USER, primary.id) is not first

    def test_other_users_task_refused(self, store):
        primary = store.create_task("alice", "Draft proposal", "x")
        store.create_task("bob", "Review proposal for the Acme account", "x")

        effect = analyzer_for(store).analyze("bob", primary.id)
        assert effect.unlocked_tasks == []
        assert effect.reasoning == [FAILURE_REASON]

    def test_results_not_shared_between_users(self, store):
        """An analysis attempted by one user never feeds another user's answer."""
        primary = store.create_task("alice", "Draft proposal", "x")
        store.create_task("bob", "Review proposal for the Acme account", "x")
        mine = store.create_task("alice", "Review proposal", "x")
        analyzer = analyzer_for(store)

        analyzer.analyze("bob", primary.id)
        effect = analyzer.analyze("alice", primary.id)

        assert [u.task_id for u in effect.unlocked_tasks] == [mine.id]
        assert analyzer.invalidate(primary.id) == 1

"""
Tests for clarifying questions and task clusters.
"""

from cadence.pipeline.clarify import ClarificationPrompter
from cadence.pipeline.clusters import cluster_of, cluster_tasks, overloaded_clusters
from cadence.pipeline.tables import HeuristicTables
from cadence.pipeline.types import (
    ContextMap,
    Effort,
    EmotionalTone,
    Extraction,
    Priority,
    TaskCandidate,
    TaskScore,
)

from conftest import NOW


def candidate(task_id, text, **fields):
    fields.setdefault("category", "home")
    return TaskCandidate(id=task_id, raw=text, cleaned=text, **fields)


def scored(task_id, priority):
    return TaskScore(task_id=task_id, priority=priority, effort=Effort.SMALL)


def ask(candidates, scores, context_map=None, extraction=None, max_questions=3):
    prompter = ClarificationPrompter(HeuristicTables(), max_questions=max_questions)
    return prompter.questions(
        candidates,
        context_map or ContextMap(),
        scores,
        extraction or Extraction(raw_text="x"),
    )


class TestClarificationPrompter:
    """Tests for picking questions."""

    def test_missing_deadline(self):
        questions = ask([candidate("1", "Paint fence")], [scored("1", Priority.SHOULD)])
        assert len(questions) == 1
        assert questions[0].kind == "deadline"
        assert questions[0].task_id == "1"
        assert questions[0].question == 'When would you like "Paint fence" done? Today, tomorrow, or this week?'

    def test_no_question_when_deadline_known(self):
        context_map = ContextMap(implied_deadlines={"1": NOW})
        questions = ask([candidate("1", "Paint fence today")], [scored("1", Priority.MUST)], context_map)
        assert questions == []

    def test_could_tasks_not_asked_for_deadline(self):
        assert ask([candidate("1", "Paint fence")], [scored("1", Priority.COULD)]) == []

    def test_backend_questions_first(self):
        extraction = Extraction(raw_text="x", clarifying_questions=["Who is Sam?"])
        questions = ask([candidate("1", "Paint fence")], [scored("1", Priority.MUST)], extraction=extraction)
        assert [q.kind for q in questions] == ["extraction", "deadline"]
        assert questions[0].question == "Who is Sam?"

    def test_missing_category(self):
        context_map = ContextMap(implied_deadlines={"1": NOW})
        questions = ask([candidate("1", "Sort it out", category=None)], [scored("1", Priority.MUST)], context_map)
        assert [q.kind for q in questions] == ["category"]

    def test_defaulted_category_without_keywords(self):
        context_map = ContextMap(implied_deadlines={"1": NOW, "2": NOW})
        questions = ask(
            [candidate("1", "Sort it out", category="personal"), candidate("2", "Read a novel", category="personal")],
            [scored("1", Priority.MUST), scored("2", Priority.MUST)],
            context_map,
        )
        assert [(q.kind, q.task_id) for q in questions] == [("category", "1")]

    def test_unclear_project(self):
        context_map = ContextMap(
            projects={"kitchen": ["1"]},
            implied_deadlines={"1": NOW, "2": NOW},
        )
        questions = ask(
            [candidate("1", "Kitchen budget"), candidate("2", "Paint kitchen")],
            [scored("1", Priority.MUST), scored("2", Priority.MUST)],
            context_map,
        )
        assert [(q.kind, q.task_id) for q in questions] == [("project", "2")]
        assert questions[0].question == 'Is "Paint kitchen" part of your kitchen project?'

    def test_understated_priority(self):
        questions = ask([candidate("1", "Important: renew visa")], [scored("1", Priority.COULD)])
        assert [q.kind for q in questions] == ["priority"]

    def test_overwhelmed_gets_agenda_offer(self):
        context_map = ContextMap(implied_deadlines={"1": NOW})
        extraction = Extraction(raw_text="x", emotion=EmotionalTone.OVERWHELMED)
        questions = ask([candidate("1", "Paint fence")], [scored("1", Priority.SHOULD)], context_map, extraction)
        assert [q.kind for q in questions] == ["agenda"]

    def test_capped(self):
        candidates = [candidate(str(i), f"Task number {i}") for i in range(6)]
        scores = [scored(str(i), Priority.MUST) for i in range(6)]
        assert len(ask(candidates, scores)) == 3
        assert len(ask(candidates, scores, max_questions=1)) == 1

    def test_no_repeats(self):
        extraction = Extraction(
            raw_text="x",
            clarifying_questions=["Who is Sam?", "who is sam?", "Where?"],
        )
        questions = ask([], [], extraction=extraction)
        assert [q.question for q in questions] == ["Who is Sam?", "Where?"]


class Row:
    """Stand-in for a stored task."""

    def __init__(self, task_id, keywords=(), category=None):
        self.id = task_id
        self.keywords = list(keywords)
        self.category = category


class TestClusters:
    """Tests for daily clustering."""

    def test_shared_keyword_then_category(self):
        rows = [
            Row("1", ["report", "budget"]),
            Row("2", ["report"]),
            Row("3", ["budget", "report"]),
            Row("4", ["laundry"], category="home"),
            Row("5", ["dishes"], category="home"),
            Row("6", ["guitar"], category="personal"),
        ]
        clusters = cluster_tasks(rows)

        assert clusters == {"report": ["1", "2", "3"], "home": ["4", "5"]}
        assert cluster_of("5", clusters) == "home"
        assert cluster_of("6", clusters) is None

    def test_each_task_in_one_cluster(self):
        rows = [Row(str(i), ["report", "budget"]) for i in range(4)]
        clusters = cluster_tasks(rows)
        members = [i for ids in clusters.values() for i in ids]
        assert sorted(members) == ["0", "1", "2", "3"]

    def test_singletons_dropped(self):
        assert cluster_tasks([Row("1", ["x"], "home")]) == {}

    def test_overloaded(self):
        clusters = {"big": [str(i) for i in range(10)], "small": ["a", "b"]}
        assert overloaded_clusters(clusters) == ["big"]
        assert overloaded_clusters(clusters, threshold=2) == ["big", "small"]

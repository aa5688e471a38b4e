"""
Domino Effect Analyzer

Given a focus task, finds the other open tasks that finishing it would
unblock or move forward.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional

from cadence.config import DominoConfig
from cadence.pipeline.cache import AnalysisCache, day_key, expiry_within_day
from cadence.pipeline.clusters import cluster_of
from cadence.pipeline.models import Task
from cadence.pipeline.rules import Rule, RuleChain
from cadence.pipeline.store import TaskStore
from cadence.pipeline.tables import HeuristicTables, find_keyword, keyword_pattern
from cadence.pipeline.types import DominoEffect, Relationship, UnlockedTask
from cadence.utils.logging import get_logger

logger = get_logger(__name__)

STANDALONE_REASON = "Standalone task with no direct dependencies"
FAILURE_REASON = "Error analyzing dependencies"

_WORD = re.compile(r"[A-Za-z0-9']+")


def jaccard(a: Iterable[str], b: Iterable[str]) -> float:
    """Jaccard similarity of two keyword collections, case-insensitive."""
    left = {k.lower() for k in a}
    right = {k.lower() for k in b}
    if not left or not right:
        return 0.0
    return len(left & right) / len(left | right)


def summary(effect: DominoEffect) -> str:
    """One-line description of how many tasks the focus unlocks."""
    count = effect.unlocks_count
    if count == 0:
        return ""
    if count == 1:
        return "Completing this will unlock 1 related task."
    return f"Completing this will unlock {count} related tasks."


@dataclass
class TaskPair:
    """The focus task and one other open task, as the rules see them."""
    primary: Task
    other: Task
    primary_cluster: Optional[str] = None
    other_cluster: Optional[str] = None

    @property
    def other_text(self) -> str:
        return self.other.title


def words(title: str) -> list[str]:
    return _WORD.findall(title)


def nouns(title: str, tables: HeuristicTables) -> list[str]:
    """Words likely to be the subject of a title: long, not an action verb, not a stopword."""
    verbs = set(tables.action_verbs)
    stop = set(tables.noun_stopwords)
    return [
        w.lower() for w in words(title)
        if len(w) > 3 and w.lower() not in verbs and w.lower() not in stop
    ]


def domino_rules(tables: HeuristicTables, keyword_threshold: float = 0.4) -> RuleChain[TaskPair, tuple]:
    """Relationship rules, strongest first. Outcome is (relationship, confidence)."""

    def blocks(pair: TaskPair) -> bool:
        if find_keyword(pair.other_text, tables.sequencing_words) is None:
            return False
        return any(
            len(w) > 3 and keyword_pattern(w).search(pair.other_text)
            for w in words(pair.primary.title)
        )

    def prerequisite(pair: TaskPair) -> bool:
        for verb, followups in tables.prerequisite_verbs.items():
            if not keyword_pattern(verb).search(pair.primary.title):
                continue
            if find_keyword(pair.other_text, followups) is None:
                continue
            theirs = nouns(pair.other_text, tables)
            if any(a in b or b in a for a in nouns(pair.primary.title, tables) for b in theirs):
                return True
        return False

    def similarity(pair: TaskPair) -> float:
        return jaccard(pair.primary.keywords or [], pair.other.keywords or [])

    return RuleChain([
        Rule("blocker", blocks, (Relationship.BLOCKER, 0.9)),
        Rule("prerequisite", prerequisite, (Relationship.PREREQUISITE, 0.8)),
        Rule("keyword", lambda p: similarity(p) > keyword_threshold,
             lambda p: (Relationship.RELATED, similarity(p))),
        Rule("category", lambda p: bool(p.primary.category) and p.primary.category == p.other.category,
             (Relationship.RELATED, 0.5)),
        Rule("cluster", lambda p: p.primary_cluster is not None and p.primary_cluster == p.other_cluster,
             (Relationship.CLUSTER, 0.3)),
    ])


class DominoAnalyzer:
    """
    Infers what a focus task unlocks.

    Results are cached per task per day. A missing user gives an empty
    result; any failure gives an empty result with a failure reason and
    is not cached.
    """

    def __init__(
        self,
        store: TaskStore,
        cache: AnalysisCache,
        config: Optional[DominoConfig] = None,
        tables: Optional[HeuristicTables] = None,
        clock: Callable[[], datetime] = datetime.now,
        open_task_limit: int = 50,
    ):
        self.store = store
        self.cache = cache
        self.config = config or DominoConfig()
        self.tables = tables or HeuristicTables()
        self.clock = clock
        self.open_task_limit = open_task_limit
        self.rules = domino_rules(self.tables, self.config.keyword_threshold)

    def analyze(self, user_id: Optional[str], task_id: str) -> DominoEffect:
        """Domino effect of finishing task_id."""
        if not user_id:
            logger.warning("domino_no_user", task_id=task_id)
            return DominoEffect(task_id=task_id)

        now = self.clock()
        key = day_key("domino", task_id, now.date(), owner=user_id)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug("domino_cache_hit", task_id=task_id)
            return cached

        try:
            effect = self._analyze(user_id, task_id, now)
        except Exception as e:
            logger.error("domino_analysis_failed", task_id=task_id, error=str(e))
            return DominoEffect(task_id=task_id, reasoning=[FAILURE_REASON])

        self.cache.set(key, effect, expiry_within_day(now, timedelta(hours=self.config.cache_ttl_hours)))
        return effect

    def invalidate(self, task_id: Optional[str] = None) -> int:
        return self.cache.invalidate(f"domino:{task_id}:" if task_id else "domino:")

    def relate(self, pair: TaskPair) -> Optional[UnlockedTask]:
        """How pair.other relates to pair.primary, or None."""
        match = self.rules.evaluate(pair)
        if match is None:
            return None
        relationship, confidence = match.outcome
        return UnlockedTask(
            task_id=pair.other.id,
            title=pair.other.title,
            relationship=relationship,
            confidence=round(confidence, 4),
        )

    def _analyze(self, user_id: str, task_id: str, now: datetime) -> DominoEffect:
        primary = self.store.get_task(task_id, user_id=user_id)
        if primary is None:
            raise LookupError(f"task {task_id} not found for user {user_id}")

        others = self.store.list_open_tasks(user_id, limit=self.open_task_limit, exclude_id=task_id)
        clusters = self.store.load_clusters(user_id, now.date()) or {}
        primary_cluster = cluster_of(task_id, clusters)

        reasoning: list[str] = []
        if primary_cluster:
            reasoning.append(f'Part of "{primary_cluster}" cluster')

        unlocked: dict[str, UnlockedTask] = {}
        for other in others:
            if other.id in unlocked:
                continue
            pair = TaskPair(primary, other, primary_cluster, cluster_of(other.id, clusters))
            found = self.relate(pair)
            if found is None:
                continue
            unlocked[other.id] = found
            if found.relationship == Relationship.BLOCKER:
                reasoning.append(f'Directly blocks "{other.title}"')
            elif found.relationship == Relationship.PREREQUISITE:
                reasoning.append(f'Prerequisite for "{other.title}"')

        ordered = sorted(unlocked.values(), key=lambda u: u.relationship.order)
        if not ordered:
            reasoning.append(STANDALONE_REASON)

        logger.info("domino_analyzed", task_id=task_id, candidates=len(others), unlocks=len(ordered))
        return DominoEffect(task_id=task_id, unlocked_tasks=ordered, reasoning=reasoning)

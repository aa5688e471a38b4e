"""
Cadence Engine

Coordinates the capture pipeline (extract, classify, infer context,
score, route, persist) and the two on-demand analyses (focus
prediction and domino effect).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from cadence.config import CadenceConfig, get_config
from cadence.llm.gateway import LLMGateway
from cadence.llm.interpret import InterpretationBackend, create_gateway
from cadence.pipeline.cache import AnalysisCache, MemoryCache
from cadence.pipeline.clarify import ClarificationPrompter
from cadence.pipeline.classifier import Classifier
from cadence.pipeline.clusters import cluster_of, cluster_tasks, overloaded_clusters
from cadence.pipeline.context import ContextInferencer
from cadence.pipeline.domino import DominoAnalyzer
from cadence.pipeline.extractor import Extractor
from cadence.pipeline.focus import FocusPredictor
from cadence.pipeline.models import Task
from cadence.pipeline.priority import PriorityScorer
from cadence.pipeline.router import AgendaRouter
from cadence.pipeline.store import TaskStore
from cadence.pipeline.tables import load_tables
from cadence.pipeline.types import (
    AgendaRouting,
    Bucket,
    ClarifyingQuestion,
    ContextMap,
    DominoEffect,
    Extraction,
    FocusForecast,
    TaskCandidate,
    TaskScore,
    UserContext,
)
from cadence.utils.logging import get_logger, log_context

logger = get_logger(__name__)

PRIMARY_FOCUS_CATEGORY = "primary_focus"


class PersistenceError(Exception):
    """Captured tasks could not be saved. Carries the input so it is never lost."""

    def __init__(self, message: str, raw_text: str):
        super().__init__(message)
        self.raw_text = raw_text


@dataclass
class CaptureResult:
    """Everything one capture produced."""
    raw_text: str
    extraction: Extraction
    candidates: list[TaskCandidate] = field(default_factory=list)
    context_map: ContextMap = field(default_factory=ContextMap)
    scores: list[TaskScore] = field(default_factory=list)
    routing: AgendaRouting = field(default_factory=AgendaRouting)
    clarifying_questions: list[ClarifyingQuestion] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)


_AUTO = object()


class CadenceEngine:
    """
    Cadence task intelligence engine.

    Provides:
    - Capture: freeform text to scheduled, persisted tasks
    - Focus prediction for the day
    - Domino effect analysis for a focus task
    - Completion logging and cluster refresh
    """

    def __init__(
        self,
        config: Optional[CadenceConfig] = None,
        store: Optional[TaskStore] = None,
        gateway: Optional[LLMGateway] | object = _AUTO,
        cache: Optional[AnalysisCache] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the engine.

        Args:
            config: Configuration (default: global config)
            store: Task store (default: built from config.database)
            gateway: LLM gateway; None runs every stage on its fallback.
                Left unset, one is built from whichever API keys are present.
            cache: Analysis cache shared by focus and domino (default: in-memory)
            clock: Source of "now"
        """
        self.config = config or get_config()
        self.clock = clock
        self.store = store or TaskStore(url=self.config.database.url, echo=self.config.database.echo)

        if gateway is _AUTO:
            gateway = create_gateway(self.config.llm)
        self.gateway: Optional[LLMGateway] = gateway
        self.backend = InterpretationBackend(
            gateway,
            timeout=self.config.pipeline.backend_timeout,
            max_tokens=self.config.llm.max_tokens,
            temperature=self.config.llm.temperature,
        )

        self.tables = load_tables(self.config.pipeline.heuristics_file)
        pipeline = self.config.pipeline
        self.extractor = Extractor(self.backend, max_input_chars=pipeline.max_input_chars)
        self.classifier = Classifier(
            self.backend, min_subtasks=pipeline.min_subtasks, max_subtasks=pipeline.max_subtasks
        )
        self.context = ContextInferencer(self.backend, self.tables)
        self.scorer = PriorityScorer(self.tables)
        self.router = AgendaRouter(
            capacity=self.config.routing.today_capacity,
            max_related_suggestions=self.config.routing.max_related_suggestions,
        )
        self.prompter = ClarificationPrompter(self.tables, pipeline.max_clarifying_questions)

        self.cache = cache if cache is not None else MemoryCache(clock)
        self.focus = FocusPredictor(self.store, self.cache, self.config.focus, self.tables, clock)
        self.domino = DominoAnalyzer(
            self.store,
            self.cache,
            self.config.domino,
            self.tables,
            clock,
            open_task_limit=self.config.focus.open_task_limit,
        )

    async def start(self) -> None:
        """Start the interpretation backend, if any."""
        if self.gateway is not None:
            await self.gateway.start()
        logger.info("engine_started", backend=self.backend.available)

    async def stop(self) -> None:
        if self.gateway is not None:
            await self.gateway.stop()
        self.store.close()
        logger.info("engine_stopped")

    # =========================================================================
    # Capture
    # =========================================================================

    async def capture(
        self,
        user_id: str,
        text: str,
        user_context: Optional[UserContext] = None,
        declare_focus: bool = False,
    ) -> CaptureResult:
        """
        Run one capture through the whole pipeline and persist the tasks.

        Args:
            user_id: Owner of the captured tasks
            text: The capture, exactly as entered
            user_context: Goal, categories, recent conversation (default: from profile)
            declare_focus: Mark every captured task as today's primary focus

        Returns:
            CaptureResult with routing and the persisted rows

        Raises:
            ValueError: text is empty
            PersistenceError: tasks could not be saved
        """
        if not text or not text.strip():
            raise ValueError("Nothing to capture")

        with log_context(user_id=user_id):
            return await self._capture(user_id, text, user_context, declare_focus)

    async def _capture(
        self,
        user_id: str,
        text: str,
        user_context: Optional[UserContext],
        declare_focus: bool,
    ) -> CaptureResult:
        now = self.clock()
        user_context = user_context or self.user_context(user_id)

        extraction = await self.extractor.extract(text, user_context)
        candidates = extraction.candidates
        if declare_focus:
            for candidate in candidates:
                candidate.is_focus = True
                candidate.focus_date = now.date()
                candidate.category = PRIMARY_FOCUS_CATEGORY

        await self.classifier.classify(candidates)
        context_map = await self.context.infer(candidates, extraction, user_context, now)
        scores = self.scorer.score_all(candidates, context_map, extraction, now)
        routing = self.router.route(
            candidates, context_map, scores, now, today_load=self._today_load(user_id, now)
        )
        questions = self.prompter.questions(candidates, context_map, scores, extraction)

        tasks = self._persist(user_id, text, extraction, candidates, routing, now)

        logger.info(
            "capture_complete",
            tasks=len(tasks),
            today=len(routing.today),
            questions=len(questions),
        )
        return CaptureResult(
            raw_text=text,
            extraction=extraction,
            candidates=candidates,
            context_map=context_map,
            scores=scores,
            routing=routing,
            clarifying_questions=questions,
            tasks=tasks,
        )

    def user_context(self, user_id: str) -> UserContext:
        """Build capture context from the stored profile."""
        try:
            profile = self.store.get_profile(user_id)
        except SQLAlchemyError as e:
            logger.warning("profile_unavailable", user_id=user_id, error=str(e))
            profile = None
        if profile is None:
            return UserContext(user_id=user_id)
        return UserContext(
            user_id=user_id,
            goal=profile.current_goal,
            custom_categories=list(profile.custom_categories or []),
            category_preferences=dict(profile.category_preferences or {}),
        )

    def _today_load(self, user_id: str, now: datetime) -> int:
        try:
            today = self.store.list_bucket(user_id, Bucket.TODAY)
        except SQLAlchemyError as e:
            logger.warning("today_load_unavailable", user_id=user_id, error=str(e))
            return 0
        return sum(1 for t in today if not (t.is_focus and t.focus_date == now.date()))

    def _persist(
        self,
        user_id: str,
        text: str,
        extraction: Extraction,
        candidates: list[TaskCandidate],
        routing: AgendaRouting,
        now: datetime,
    ) -> list[Task]:
        rows = []
        for candidate in candidates:
            bucket = routing.bucket_of(candidate.id)
            if bucket is None:
                continue
            rows.append(dict(
                id=candidate.id,
                title=candidate.cleaned,
                raw_content=candidate.raw,
                ai_summary=extraction.summary or None,
                confidence=candidate.confidence,
                category=candidate.category,
                project=candidate.project,
                context=" ".join(candidate.context_tags) or None,
                keywords=candidate.keywords,
                scheduled_bucket=bucket,
                priority=candidate.priority,
                effort=candidate.effort,
                is_tiny=candidate.is_tiny,
                is_heavy=candidate.is_heavy,
                due_date=candidate.due,
                reminder_time=candidate.reminder_time,
                has_reminder=candidate.reminder_time is not None,
                is_time_based=candidate.reminder_time is not None,
                is_focus=candidate.is_focus,
                focus_date=candidate.focus_date,
            ))

        try:
            tasks = self.store.create_tasks(user_id, rows, focus_day=now.date())
        except SQLAlchemyError as e:
            logger.error("capture_persist_failed", user_id=user_id, error=str(e))
            raise PersistenceError(f"Could not save captured tasks: {e}", raw_text=text) from e

        if tasks:
            self.focus.invalidate(user_id, now.date())
        return tasks

    # =========================================================================
    # Analyses
    # =========================================================================

    def predict_focus(self, user_id: Optional[str]) -> FocusForecast:
        with log_context(user_id=user_id, analysis="focus"):
            return self.focus.predict(user_id)

    def choose_focus(self, user_id: str, task_id: str) -> Optional[Task]:
        """Make task_id today's primary focus and remember the choice."""
        today = self.clock().date()
        clusters = self.store.load_clusters(user_id, today) or {}
        try:
            task = self.store.set_focus(
                task_id, today, cluster_label=cluster_of(task_id, clusters), user_id=user_id
            )
        except SQLAlchemyError as e:
            logger.error("focus_persist_failed", task_id=task_id, error=str(e))
            raise PersistenceError(f"Could not set focus: {e}", raw_text=task_id) from e
        if task is not None:
            self.focus.invalidate(user_id, today)
            logger.info("focus_chosen", user_id=user_id, task=task.title)
        return task

    def analyze_domino(self, user_id: Optional[str], task_id: str) -> DominoEffect:
        with log_context(user_id=user_id, analysis="domino", task_id=task_id):
            return self.domino.analyze(user_id, task_id)

    def complete_task(self, user_id: str, task_id: str) -> Optional[Task]:
        """Complete one of user_id's tasks and drop analyses that counted it as open."""
        task = self.store.complete_task(task_id, at=self.clock(), user_id=user_id)
        if task is not None:
            self.focus.invalidate(task.user_id)
            self.domino.invalidate()
            logger.info("task_completed", task=task.title)
        return task

    def refresh_clusters(self, user_id: str) -> dict[str, list[str]]:
        """Recompute and store today's clusters from the open tasks."""
        today = self.clock().date()
        tasks = self.store.list_open_tasks(user_id, limit=self.config.focus.open_task_limit)
        clusters = cluster_tasks(tasks)
        self.store.save_clusters(user_id, today, clusters)

        overloaded = overloaded_clusters(clusters)
        if overloaded:
            logger.warning("clusters_overloaded", user_id=user_id, clusters=overloaded)
        logger.info("clusters_refreshed", user_id=user_id, clusters=len(clusters))

        self.focus.invalidate(user_id, today)
        self.domino.invalidate()
        return clusters

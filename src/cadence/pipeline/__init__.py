"""
Task Intelligence Pipeline

Turns freeform captures into prioritized, scheduled tasks, and predicts
the day's primary focus and what finishing it unlocks.
"""

from cadence.pipeline.cache import AnalysisCache, MemoryCache, day_key
from cadence.pipeline.clarify import ClarificationPrompter
from cadence.pipeline.classifier import Classifier
from cadence.pipeline.clusters import cluster_tasks, overloaded_clusters
from cadence.pipeline.context import ContextInferencer
from cadence.pipeline.domino import DominoAnalyzer, jaccard, summary
from cadence.pipeline.engine import CadenceEngine, CaptureResult, PersistenceError
from cadence.pipeline.extractor import Extractor
from cadence.pipeline.focus import FocusPredictor
from cadence.pipeline.models import (
    Base,
    ClusterSnapshot,
    CompletionLog,
    FocusHistory,
    Profile,
    Task,
)
from cadence.pipeline.priority import PriorityScorer, estimate_effort
from cadence.pipeline.router import AgendaRouter
from cadence.pipeline.rules import Rule, RuleChain, RuleMatch
from cadence.pipeline.store import TaskStore
from cadence.pipeline.tables import HeuristicTables, load_tables
from cadence.pipeline.types import (
    AgendaRouting,
    Bucket,
    ContextMap,
    DominoEffect,
    Effort,
    EmotionalTone,
    Extraction,
    FocusForecast,
    FocusPrediction,
    Priority,
    Relationship,
    TaskCandidate,
    TaskScore,
    UnlockedTask,
    Urgency,
    UserContext,
)

__all__ = [
    # Engine
    "CadenceEngine",
    "CaptureResult",
    "PersistenceError",
    # Stages
    "Extractor",
    "Classifier",
    "ContextInferencer",
    "PriorityScorer",
    "estimate_effort",
    "AgendaRouter",
    "ClarificationPrompter",
    # Analyses
    "FocusPredictor",
    "DominoAnalyzer",
    "jaccard",
    "summary",
    "cluster_tasks",
    "overloaded_clusters",
    # Infrastructure
    "AnalysisCache",
    "MemoryCache",
    "day_key",
    "Rule",
    "RuleChain",
    "RuleMatch",
    "HeuristicTables",
    "load_tables",
    "TaskStore",
    # Models
    "Base",
    "Task",
    "CompletionLog",
    "Profile",
    "FocusHistory",
    "ClusterSnapshot",
    # Types
    "AgendaRouting",
    "Bucket",
    "ContextMap",
    "DominoEffect",
    "Effort",
    "EmotionalTone",
    "Extraction",
    "FocusForecast",
    "FocusPrediction",
    "Priority",
    "Relationship",
    "TaskCandidate",
    "TaskScore",
    "UnlockedTask",
    "Urgency",
    "UserContext",
]

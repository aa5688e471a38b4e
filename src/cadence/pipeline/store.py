"""
Pipeline Database Store

Task store, completion log, profile store, focus history and cluster cache.
Uses synchronous SQLAlchemy sessions, one per operation.
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional, Sequence

from sqlalchemy import create_engine, delete, select
from sqlalchemy.orm import Session, sessionmaker

from cadence.pipeline.models import (
    Base,
    ClusterSnapshot,
    CompletionLog,
    FocusHistory,
    Profile,
    Task,
)
from cadence.pipeline.types import Bucket

_IMMUTABLE_TASK_FIELDS = {"id", "user_id", "raw_content", "created_at"}


def _owned(session: Session, task_id: str, user_id: Optional[str]) -> Optional[Task]:
    task = session.get(Task, task_id)
    if task is not None and user_id is not None and task.user_id != user_id:
        return None
    return task


def _focus_entry(task: Task, day: date, cluster_label: Optional[str] = None) -> FocusHistory:
    return FocusHistory(
        user_id=task.user_id,
        task_id=task.id,
        focus_task=task.title,
        cluster_label=cluster_label,
        day=day,
    )


class TaskStore:
    """
    Database store for the task intelligence pipeline.

    Every read returns detached rows; every write commits before returning.
    """

    def __init__(self, db_path: Optional[str] = None, url: Optional[str] = None, echo: bool = False):
        """
        Initialize the store.

        Args:
            db_path: Path to SQLite database. Defaults to ~/.cadence/data/cadence.db
            url: Full SQLAlchemy URL, takes precedence over db_path
            echo: Log SQL statements
        """
        if url is None:
            if db_path is None:
                db_dir = Path.home() / ".cadence" / "data"
                db_dir.mkdir(parents=True, exist_ok=True)
                db_path = str(db_dir / "cadence.db")
            url = f"sqlite:///{db_path}"

        self.url = url
        self.engine = create_engine(url, echo=echo)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False)

        # Create tables if they don't exist
        Base.metadata.create_all(self.engine)

    def _get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    def close(self) -> None:
        self.engine.dispose()

    # =========================================================================
    # Task Operations
    # =========================================================================

    def create_task(self, user_id: str, title: str, raw_content: str, **fields: Any) -> Task:
        """Create a single task."""
        return self.create_tasks(user_id, [dict(title=title, raw_content=raw_content, **fields)])[0]

    def create_tasks(
        self,
        user_id: str,
        rows: Sequence[dict[str, Any]],
        focus_day: Optional[date] = None,
    ) -> list[Task]:
        """
        Insert several tasks in one transaction.

        Rows flagged as focus for focus_day also get their focus history
        entry in that transaction.
        """
        with self._get_session() as session:
            tasks = [Task(user_id=user_id, **row) for row in rows]
            session.add_all(tasks)
            if focus_day is not None:
                session.flush()
                session.add_all(
                    _focus_entry(task, focus_day)
                    for task in tasks
                    if task.is_focus and task.focus_date == focus_day
                )
            session.commit()
            return tasks

    def get_task(self, task_id: str, user_id: Optional[str] = None) -> Optional[Task]:
        """Get a task by ID; with user_id, only if that user owns it."""
        with self._get_session() as session:
            return _owned(session, task_id, user_id)

    def list_open_tasks(
        self,
        user_id: str,
        limit: int = 50,
        exclude_id: Optional[str] = None,
    ) -> list[Task]:
        """Open tasks, newest first."""
        with self._get_session() as session:
            query = select(Task).where(Task.user_id == user_id, Task.completed.is_(False))
            if exclude_id:
                query = query.where(Task.id != exclude_id)
            query = query.order_by(Task.created_at.desc()).limit(limit)
            return list(session.scalars(query).all())

    def list_bucket(self, user_id: str, bucket: Bucket) -> list[Task]:
        """Open tasks scheduled into a bucket, oldest first."""
        with self._get_session() as session:
            query = (
                select(Task)
                .where(
                    Task.user_id == user_id,
                    Task.completed.is_(False),
                    Task.scheduled_bucket == bucket,
                )
                .order_by(Task.created_at)
            )
            return list(session.scalars(query).all())

    def update_task(self, task_id: str, **fields: Any) -> Optional[Task]:
        """Update mutable task fields."""
        forbidden = _IMMUTABLE_TASK_FIELDS.intersection(fields)
        if forbidden:
            raise ValueError(f"Cannot update immutable fields: {sorted(forbidden)}")

        with self._get_session() as session:
            task = session.get(Task, task_id)
            if task is None:
                return None
            for name, value in fields.items():
                if not hasattr(Task, name):
                    raise ValueError(f"Unknown task field: {name}")
                setattr(task, name, value)
            session.commit()
            return task

    def complete_task(
        self,
        task_id: str,
        at: Optional[datetime] = None,
        user_id: Optional[str] = None,
    ) -> Optional[Task]:
        """Mark a task completed and log it for habit detection."""
        at = at or datetime.now()
        with self._get_session() as session:
            task = _owned(session, task_id, user_id)
            if task is None:
                return None
            task.completed = True
            task.completed_at = at
            session.add(CompletionLog(
                user_id=task.user_id,
                task_id=task.id,
                task_title=task.title,
                task_category=task.category,
                completed_at=at,
            ))
            session.commit()
            return task

    def set_focus(
        self,
        task_id: str,
        day: date,
        cluster_label: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Optional[Task]:
        """Flag a task as the day's primary focus and record it in the history."""
        with self._get_session() as session:
            task = _owned(session, task_id, user_id)
            if task is None:
                return None
            task.is_focus = True
            task.focus_date = day
            session.add(_focus_entry(task, day, cluster_label))
            session.commit()
            return task

    # =========================================================================
    # History
    # =========================================================================

    def recent_completions(self, user_id: str, since: datetime, limit: int = 50) -> list[CompletionLog]:
        """Completions at or after since, newest first."""
        with self._get_session() as session:
            query = (
                select(CompletionLog)
                .where(CompletionLog.user_id == user_id, CompletionLog.completed_at >= since)
                .order_by(CompletionLog.completed_at.desc())
                .limit(limit)
            )
            return list(session.scalars(query).all())

    def focus_history(self, user_id: str, before: Optional[date] = None, limit: int = 10) -> list[FocusHistory]:
        """Past focus choices, most recent first."""
        with self._get_session() as session:
            query = select(FocusHistory).where(FocusHistory.user_id == user_id)
            if before is not None:
                query = query.where(FocusHistory.day < before)
            query = query.order_by(FocusHistory.day.desc(), FocusHistory.id.desc()).limit(limit)
            return list(session.scalars(query).all())

    # =========================================================================
    # Profiles
    # =========================================================================

    def get_profile(self, user_id: str) -> Optional[Profile]:
        with self._get_session() as session:
            return session.get(Profile, user_id)

    def upsert_profile(self, user_id: str, **fields: Any) -> Profile:
        """Create or update a user's profile."""
        with self._get_session() as session:
            profile = session.get(Profile, user_id)
            if profile is None:
                profile = Profile(user_id=user_id)
                session.add(profile)
            for name, value in fields.items():
                if not hasattr(Profile, name):
                    raise ValueError(f"Unknown profile field: {name}")
                setattr(profile, name, value)
            session.commit()
            return profile

    # =========================================================================
    # Cluster Cache
    # =========================================================================

    def save_clusters(self, user_id: str, day: date, clusters: dict[str, list[str]]) -> None:
        """Replace the user's clusters for a day."""
        with self._get_session() as session:
            session.execute(
                delete(ClusterSnapshot).where(
                    ClusterSnapshot.user_id == user_id,
                    ClusterSnapshot.day == day,
                )
            )
            session.add_all(
                ClusterSnapshot(user_id=user_id, day=day, name=name, task_ids=list(task_ids))
                for name, task_ids in clusters.items()
            )
            session.commit()

    def load_clusters(self, user_id: str, day: date) -> Optional[dict[str, list[str]]]:
        """The day's clusters, or None when none were computed for that day."""
        with self._get_session() as session:
            query = (
                select(ClusterSnapshot)
                .where(ClusterSnapshot.user_id == user_id, ClusterSnapshot.day == day)
                .order_by(ClusterSnapshot.id)
            )
            rows = session.scalars(query).all()
            if not rows:
                return None
            return {row.name: list(row.task_ids or []) for row in rows}

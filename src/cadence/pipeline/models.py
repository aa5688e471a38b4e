"""
Pipeline Data Models

SQLAlchemy models for tasks, completion history, profiles, focus history
and the day-keyed cluster cache.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, validates

from cadence.pipeline.types import Bucket, Effort, Priority


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Task(Base):
    """
    A captured task.

    raw_content holds the words exactly as captured and is never rewritten.
    """
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    raw_content: Mapped[str] = mapped_column(Text, nullable=False)
    ai_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    project: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    context: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    keywords: Mapped[list[str]] = mapped_column(JSON, default=list)

    # Scheduling
    scheduled_bucket: Mapped[Bucket] = mapped_column(
        Enum(Bucket), default=Bucket.SOMEDAY, nullable=False
    )
    priority: Mapped[Optional[Priority]] = mapped_column(Enum(Priority), nullable=True)
    effort: Mapped[Optional[Effort]] = mapped_column(Enum(Effort), nullable=True)
    is_tiny: Mapped[bool] = mapped_column(Boolean, default=False)
    is_heavy: Mapped[bool] = mapped_column(Boolean, default=False)
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Reminders
    reminder_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    has_reminder: Mapped[bool] = mapped_column(Boolean, default=False)
    is_time_based: Mapped[bool] = mapped_column(Boolean, default=False)

    # Completion
    completed: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Primary focus
    is_focus: Mapped[bool] = mapped_column(Boolean, default=False)
    focus_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now
    )

    def __repr__(self) -> str:
        return f"<Task {self.title!r} [{self.scheduled_bucket.value if self.scheduled_bucket else '-'}]>"

    @validates("raw_content")
    def _keep_raw_content(self, key: str, value: str) -> str:
        current = self.__dict__.get("raw_content")
        if current is not None and current != value:
            raise ValueError("raw_content is immutable once captured")
        return value


class CompletionLog(Base):
    """One completed task, kept for habit detection."""
    __tablename__ = "completion_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    task_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    task_title: Mapped[str] = mapped_column(String(500), nullable=False)
    task_category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    completed_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, index=True)

    def __repr__(self) -> str:
        return f"<CompletionLog {self.task_title!r} at {self.completed_at}>"


class Profile(Base):
    """
    Per-user preferences read by the pipeline.

    category_preferences: category → weight in [0, 1]
    seasonal_weights: pattern name → {"category": str, "weight": float}
    persona: {"preference_domains": {...}, "avoidance_profile": {...}, "ambition": float}
    """
    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    current_goal: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    custom_categories: Mapped[list[str]] = mapped_column(JSON, default=list)
    category_preferences: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    seasonal_weights: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    persona: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.now, onupdate=datetime.now
    )

    def __repr__(self) -> str:
        return f"<Profile {self.user_id!r}>"


class FocusHistory(Base):
    """A day's chosen primary focus."""
    __tablename__ = "focus_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    task_id: Mapped[str] = mapped_column(String(36), nullable=False)
    focus_task: Mapped[str] = mapped_column(String(500), nullable=False)
    cluster_label: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    day: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now)

    def __repr__(self) -> str:
        return f"<FocusHistory {self.focus_task!r} on {self.day}>"


class ClusterSnapshot(Base):
    """One named group of task ids, valid for a single day."""
    __tablename__ = "cluster_snapshots"
    __table_args__ = (UniqueConstraint("user_id", "day", "name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    day: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    task_ids: Mapped[list[str]] = mapped_column(JSON, default=list)

    def __repr__(self) -> str:
        return f"<ClusterSnapshot {self.name!r} ({len(self.task_ids or [])} tasks)>"

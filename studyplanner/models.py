"""SQLModel data models.

This module defines the application's database tables using SQLModel.
Timestamps are stored as ISO-8601 UTC strings (see `utils.clock.to_iso`)
so range filters can compare them as text.
"""

from typing import Optional
from sqlmodel import SQLModel, Field

from .utils.clock import utc_now_iso


class Subject(SQLModel, table=True):
    """A subject the user studies, e.g. `Mathematics`."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    priority: int = 1
    color: Optional[str] = None
    created_at: str = Field(default_factory=utc_now_iso)


class Topic(SQLModel, table=True):
    """A unit of work inside a `Subject`.

    `completed` is kept as 0/1 to match the JSON the client toggles.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    subject_id: int = Field(foreign_key='subject.id', index=True)
    title: str
    estimated_minutes: int = 30
    completed: int = 0
    created_at: str = Field(default_factory=utc_now_iso)


class StudySession(SQLModel, table=True):
    """A ledger record of one timed study interval.

    A session is open while `end_time` and `duration_minutes` are both
    `None` and closed once both are set. Subject/topic ids are plain
    references: sessions outlive the rows they point to.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: Optional[int] = Field(default=None, index=True)
    subject_id: Optional[int] = Field(default=None, index=True)
    topic_id: Optional[int] = Field(default=None, index=True)
    start_time: str = Field(default_factory=utc_now_iso, index=True)
    end_time: Optional[str] = None
    duration_minutes: Optional[int] = None
    type: str = 'pomodoro'
    created_at: str = Field(default_factory=utc_now_iso)

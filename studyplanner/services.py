"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories.
Services are intentionally thin: they perform validation, execute domain
logic and persist aggregates via repositories. Validation problems raise
`ValueError`; references to missing rows raise `NotFoundError`.
"""

import logging
from typing import List, Optional
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .utils.clock import utc_now_iso, duration_minutes

logger = logging.getLogger("studyplanner.ledger")

DEFAULT_SESSION_TYPE = "pomodoro"
# SQLite INTEGER PRIMARY KEY range
MAX_ROW_ID = 2**63 - 1


class NotFoundError(LookupError):
    """Raised when a referenced subject, topic or session does not exist."""


class SessionLedger:
    """Start/stop accounting for timed study sessions."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.StudySessionRepository(session)

    def start_session(self, subject_id: Optional[int] = None, topic_id: Optional[int] = None, kind: Optional[str] = None) -> models.StudySession:
        """Open a new session stamped with the current server time.

        `kind` defaults to `pomodoro` when missing or blank.
        """
        kind = (kind or "").strip() or DEFAULT_SESSION_TYPE
        now = utc_now_iso()
        record = models.StudySession(
            user_id=settings.DEFAULT_USER_ID,
            subject_id=subject_id,
            topic_id=topic_id,
            type=kind,
            start_time=now,
            created_at=now,
        )
        record = self.repo.create(record)
        logger.info("session_started id=%s subject_id=%s topic_id=%s type=%s", record.id, subject_id, topic_id, kind)
        return record

    def stop_session(self, session_id: int) -> models.StudySession:
        """Close a session and compute its duration in whole minutes.

        Stopping an already closed session returns it unchanged: only the
        first stop sets `end_time` and `duration_minutes`.
        """
        if not 1 <= session_id <= MAX_ROW_ID:
            raise NotFoundError(f"session not found: {session_id}")
        record = self.repo.get(session_id)
        if not record:
            raise NotFoundError(f"session not found: {session_id}")
        if record.end_time is not None:
            logger.info("session_already_closed id=%s", session_id)
            return record
        end = utc_now_iso()
        minutes = duration_minutes(record.start_time, end)
        if not self.repo.close_if_open(session_id, end, minutes):
            logger.info("session_closed_concurrently id=%s", session_id)
        record = self.repo.get(session_id)
        logger.info("session_stopped id=%s duration_minutes=%s", session_id, record.duration_minutes)
        return record


class SessionReporting:
    """Read-side queries over the session ledger."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.StudySessionRepository(session)

    def list_sessions(self, subject_id: Optional[int] = None, topic_id: Optional[int] = None, from_: Optional[str] = None, to: Optional[str] = None) -> List[models.StudySession]:
        """Return sessions matching all given filters, newest first.

        A filter left as `None` places no constraint on its field.
        """
        return self.repo.list_filtered(subject_id=subject_id, topic_id=topic_id, start_from=from_, start_to=to)

    def summarize(self, subject_id: Optional[int] = None, topic_id: Optional[int] = None, from_: Optional[str] = None, to: Optional[str] = None) -> dict:
        """Aggregate counts and minutes over the filtered sessions.

        Open sessions are counted but contribute no minutes.
        """
        sessions = self.list_sessions(subject_id=subject_id, topic_id=topic_id, from_=from_, to=to)
        total_minutes = 0
        closed = 0
        by_subject = {}
        for s in sessions:
            if s.end_time is None:
                continue
            closed += 1
            minutes = s.duration_minutes or 0
            total_minutes += minutes
            key = str(s.subject_id) if s.subject_id is not None else "none"
            by_subject[key] = by_subject.get(key, 0) + minutes
        return {
            'total_sessions': len(sessions),
            'open_sessions': len(sessions) - closed,
            'closed_sessions': closed,
            'total_minutes': total_minutes,
            'minutes_by_subject': by_subject,
        }


class SubjectService:
    """Create, list and delete subjects."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.SubjectRepository(session)

    def list_subjects(self) -> List[models.Subject]:
        return self.repo.list_all()

    def create_subject(self, name: Optional[str], priority: int = 1, color: Optional[str] = None) -> models.Subject:
        if not name or not name.strip():
            raise ValueError("name required")
        return self.repo.create(models.Subject(name=name.strip(), priority=priority, color=color))

    def delete_subject(self, subject_id: int) -> None:
        """Delete a subject and its topics; sessions referencing it are kept."""
        subject = self.repo.get(subject_id)
        if not subject:
            raise NotFoundError(f"subject not found: {subject_id}")
        self.repo.delete(subject)


class TopicService:
    """Manage topics belonging to a subject."""
    def __init__(self, session: Session):
        self.session = session
        self.repo = repositories.TopicRepository(session)
        self.subject_repo = repositories.SubjectRepository(session)

    def _require_subject(self, subject_id: int) -> models.Subject:
        subject = self.subject_repo.get(subject_id)
        if not subject:
            raise NotFoundError(f"subject not found: {subject_id}")
        return subject

    def list_topics(self, subject_id: int) -> List[models.Topic]:
        self._require_subject(subject_id)
        return self.repo.list_for_subject(subject_id)

    def create_topic(self, subject_id: int, title: Optional[str], estimated_minutes: Optional[int] = None) -> models.Topic:
        """Create a topic under `subject_id`.

        `estimated_minutes` falls back to 30 when omitted or zero.
        """
        self._require_subject(subject_id)
        if not title or not title.strip():
            raise ValueError("title required")
        if estimated_minutes is not None and estimated_minutes < 0:
            raise ValueError("estimated_minutes must be >= 0")
        topic = models.Topic(subject_id=subject_id, title=title.strip(), estimated_minutes=estimated_minutes or 30)
        return self.repo.create(topic)

    def update_topic(self, topic_id: int, title: Optional[str] = None, estimated_minutes: Optional[int] = None, completed: Optional[int] = None) -> models.Topic:
        """Apply a partial update; fields left as `None` are unchanged."""
        topic = self.repo.get(topic_id)
        if not topic:
            raise NotFoundError(f"topic not found: {topic_id}")
        if title is not None:
            if not title.strip():
                raise ValueError("title must not be empty")
            topic.title = title.strip()
        if estimated_minutes is not None:
            if estimated_minutes < 0:
                raise ValueError("estimated_minutes must be >= 0")
            topic.estimated_minutes = estimated_minutes
        if completed is not None:
            topic.completed = 1 if completed else 0
        return self.repo.save(topic)

    def delete_topic(self, topic_id: int) -> None:
        topic = self.repo.get(topic_id)
        if not topic:
            raise NotFoundError(f"topic not found: {topic_id}")
        self.repo.delete(topic)

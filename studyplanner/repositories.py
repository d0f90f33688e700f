"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (subjects,
topics, study sessions). Repositories return SQLModel objects and perform
commits/refreshes where appropriate.
"""

from typing import List, Optional
from sqlmodel import Session, select
from sqlalchemy import update
from . import models


class SubjectRepository:
    """CRUD operations for `Subject` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, subject: models.Subject) -> models.Subject:
        """Persist a new subject and return the managed instance."""
        self.session.add(subject)
        self.session.commit()
        self.session.refresh(subject)
        return subject

    def list_all(self) -> List[models.Subject]:
        return self.session.exec(select(models.Subject).order_by(models.Subject.id)).all()

    def get(self, subject_id: int) -> Optional[models.Subject]:
        """Get a `Subject` by primary key."""
        return self.session.get(models.Subject, subject_id)

    def delete(self, subject: models.Subject) -> None:
        """Delete a subject together with its topics."""
        topics = self.session.exec(
            select(models.Topic).where(models.Topic.subject_id == subject.id)
        ).all()
        for t in topics:
            self.session.delete(t)
        self.session.delete(subject)
        self.session.commit()


class TopicRepository:
    """CRUD operations for `Topic` objects."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, topic: models.Topic) -> models.Topic:
        self.session.add(topic)
        self.session.commit()
        self.session.refresh(topic)
        return topic

    def list_for_subject(self, subject_id: int) -> List[models.Topic]:
        """List all topics of `subject_id` in creation order."""
        stmt = select(models.Topic).where(models.Topic.subject_id == subject_id).order_by(models.Topic.id)
        return self.session.exec(stmt).all()

    def get(self, topic_id: int) -> Optional[models.Topic]:
        return self.session.get(models.Topic, topic_id)

    def save(self, topic: models.Topic) -> models.Topic:
        self.session.add(topic)
        self.session.commit()
        self.session.refresh(topic)
        return topic

    def delete(self, topic: models.Topic) -> None:
        self.session.delete(topic)
        self.session.commit()


class StudySessionRepository:
    """Persistence for the study session ledger."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, record: models.StudySession) -> models.StudySession:
        """Insert an open session record and return it with its id."""
        self.session.add(record)
        self.session.commit()
        self.session.refresh(record)
        return record

    def get(self, session_id: int) -> Optional[models.StudySession]:
        """Fetch a session by id, reloading its columns from the store."""
        return self.session.get(models.StudySession, session_id, populate_existing=True)

    def close_if_open(self, session_id: int, end_time: str, duration_minutes: int) -> bool:
        """Close an open session.

        The update only matches while `end_time IS NULL`, so of two racing
        stops exactly one wins. Returns True when this call closed the row.
        """
        stmt = (
            update(models.StudySession)
            .where(models.StudySession.id == session_id, models.StudySession.end_time.is_(None))
            .values(end_time=end_time, duration_minutes=duration_minutes)
        )
        result = self.session.connection().execute(stmt)
        self.session.commit()
        return result.rowcount == 1

    def list_filtered(
        self,
        subject_id: Optional[int] = None,
        topic_id: Optional[int] = None,
        start_from: Optional[str] = None,
        start_to: Optional[str] = None,
    ) -> List[models.StudySession]:
        """Return sessions matching every given filter, newest start first.

        `start_from`/`start_to` are inclusive bounds compared against the
        stored ISO-8601 `start_time` strings.
        """
        stmt = select(models.StudySession)
        if subject_id is not None:
            stmt = stmt.where(models.StudySession.subject_id == subject_id)
        if topic_id is not None:
            stmt = stmt.where(models.StudySession.topic_id == topic_id)
        if start_from is not None:
            stmt = stmt.where(models.StudySession.start_time >= start_from)
        if start_to is not None:
            stmt = stmt.where(models.StudySession.start_time <= start_to)
        stmt = stmt.order_by(models.StudySession.start_time.desc(), models.StudySession.id.desc())
        return self.session.exec(stmt).all()

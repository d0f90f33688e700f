"""Pydantic request schemas used by the API.

Required fields that the API must reject with 400 (not FastAPI's default
422) are declared optional here and checked by the services.
"""

from pydantic import BaseModel
from typing import Optional


class SessionStartIn(BaseModel):
    """Payload for `POST /sessions/start`."""
    subject_id: Optional[int] = None
    topic_id: Optional[int] = None
    type: Optional[str] = None


class SessionStopIn(BaseModel):
    """Payload for `POST /sessions/stop`."""
    session_id: Optional[int] = None


class SubjectIn(BaseModel):
    name: Optional[str] = None
    priority: int = 1
    color: Optional[str] = None


class TopicIn(BaseModel):
    title: Optional[str] = None
    estimated_minutes: Optional[int] = None


class TopicUpdate(BaseModel):
    """Partial topic update; omitted fields are left unchanged."""
    title: Optional[str] = None
    estimated_minutes: Optional[int] = None
    completed: Optional[int] = None

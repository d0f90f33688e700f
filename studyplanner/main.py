"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints used by the study planner.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses.

Endpoints implemented (under `settings.API_PREFIX`, default `/api`):
- POST /sessions/start
- POST /sessions/stop
- GET /sessions
- GET /sessions/summary
- GET /subjects, POST /subjects, DELETE /subjects/{subject_id}
- GET /subjects/{subject_id}/topics, POST /subjects/{subject_id}/topics
- PUT /topics/{topic_id}, DELETE /topics/{topic_id}
"""

from fastapi import FastAPI, APIRouter, Depends, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from sqlmodel import Session
from typing import Optional
import json
import logging
import time
import uuid
from .database import create_db_and_tables, get_session
from . import services
from .schemas import SessionStartIn, SessionStopIn, SubjectIn, TopicIn, TopicUpdate
from .config import settings

app = FastAPI(title="Study Planner API")
logger = logging.getLogger("studyplanner.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

# The single-page client is served from another origin during development.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()

router = APIRouter(prefix=settings.API_PREFIX)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        logger.exception(
            "request_failed %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "duration_ms": elapsed_ms,
                },
                ensure_ascii=True,
            ),
        )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    if request.url.path.startswith(settings.API_PREFIX or "/"):
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                },
                ensure_ascii=True,
            ),
        )
    return response


@router.post('/sessions/start')
def start_session(payload: SessionStartIn, db: Session = Depends(get_session)):
    """Open a study session stamped with the server clock.

    `type` defaults to `pomodoro`. The created record is returned with
    `end_time` and `duration_minutes` set to null.
    """
    ledger = services.SessionLedger(db)
    return ledger.start_session(payload.subject_id, payload.topic_id, payload.type)


@router.post('/sessions/stop')
def stop_session(payload: SessionStopIn, db: Session = Depends(get_session)):
    """Close a study session and return it with its duration in minutes."""
    if payload.session_id is None:
        raise HTTPException(status_code=400, detail='session_id required')
    ledger = services.SessionLedger(db)
    try:
        return ledger.stop_session(payload.session_id)
    except services.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get('/sessions')
def list_sessions(
    subject_id: Optional[int] = None,
    topic_id: Optional[int] = None,
    from_: Optional[str] = Query(default=None, alias='from'),
    to: Optional[str] = None,
    db: Session = Depends(get_session),
):
    """List sessions newest first.

    Filters are combined with AND. `from`/`to` bound `start_time` by plain
    ISO-8601 string comparison.
    """
    reporting = services.SessionReporting(db)
    return reporting.list_sessions(subject_id=subject_id, topic_id=topic_id, from_=from_, to=to)


@router.get('/sessions/summary')
def sessions_summary(
    subject_id: Optional[int] = None,
    topic_id: Optional[int] = None,
    from_: Optional[str] = Query(default=None, alias='from'),
    to: Optional[str] = None,
    db: Session = Depends(get_session),
):
    """Totals over the sessions selected by the same filters as `GET /sessions`."""
    reporting = services.SessionReporting(db)
    return reporting.summarize(subject_id=subject_id, topic_id=topic_id, from_=from_, to=to)


@router.get('/subjects')
def list_subjects(db: Session = Depends(get_session)):
    return services.SubjectService(db).list_subjects()


@router.post('/subjects')
def create_subject(payload: SubjectIn, db: Session = Depends(get_session)):
    svc = services.SubjectService(db)
    try:
        return svc.create_subject(payload.name, payload.priority, payload.color)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete('/subjects/{subject_id}')
def delete_subject(subject_id: int, db: Session = Depends(get_session)):
    """Delete a subject and its topics. Recorded sessions are kept."""
    try:
        services.SubjectService(db).delete_subject(subject_id)
    except services.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {'deleted': subject_id}


@router.get('/subjects/{subject_id}/topics')
def list_topics(subject_id: int, db: Session = Depends(get_session)):
    try:
        return services.TopicService(db).list_topics(subject_id)
    except services.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post('/subjects/{subject_id}/topics')
def create_topic(subject_id: int, payload: TopicIn, db: Session = Depends(get_session)):
    """Add a topic to a subject. `title` is required."""
    svc = services.TopicService(db)
    try:
        return svc.create_topic(subject_id, payload.title, payload.estimated_minutes)
    except services.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put('/topics/{topic_id}')
def update_topic(topic_id: int, payload: TopicUpdate, db: Session = Depends(get_session)):
    """Partially update a topic (title, estimated_minutes, completed)."""
    svc = services.TopicService(db)
    try:
        return svc.update_topic(topic_id, payload.title, payload.estimated_minutes, payload.completed)
    except services.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete('/topics/{topic_id}')
def delete_topic(topic_id: int, db: Session = Depends(get_session)):
    try:
        services.TopicService(db).delete_topic(topic_id)
    except services.NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {'deleted': topic_id}


app.include_router(router)


@app.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}

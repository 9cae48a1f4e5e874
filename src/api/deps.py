"""
Build the scheduler and interviewer for the API (used in lifespan and routes).
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import HTTPException, Request, status

from src.db.progress_store import SQLProgressStore
from src.db.session import AsyncSessionLocal
from src.interview.service import InterviewService
from src.llm import ChatClient, create_client
from src.srs.errors import Conflict, InvalidQuality, NotFound, Outcome, PersistenceUnavailable
from src.srs.scheduler_service import SchedulerService


logger = logging.getLogger(__name__)

_ERROR_STATUS = {
    InvalidQuality: 422,
    NotFound: status.HTTP_404_NOT_FOUND,
    Conflict: status.HTTP_409_CONFLICT,
    PersistenceUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def build_scheduler() -> SchedulerService:
    return SchedulerService(SQLProgressStore(AsyncSessionLocal))


def build_chat_client() -> Optional[ChatClient]:
    """Return a chat client, or None when no API key is configured."""
    try:
        return create_client()
    except ValueError as e:
        logger.warning("Interview disabled: %s", e)
        return None


def get_scheduler(request: Request) -> SchedulerService:
    return request.app.state.scheduler


def get_interview_service(request: Request) -> InterviewService:
    client = getattr(request.app.state, "chat_client", None)
    if client is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Interview model not configured",
        )
    return InterviewService(get_scheduler(request), client)


def unwrap_or_raise(outcome: Outcome):
    """Return the outcome's value or raise the matching HTTPException."""
    if outcome.ok:
        return outcome.value
    error = outcome.error
    code = _ERROR_STATUS.get(type(error), status.HTTP_500_INTERNAL_SERVER_ERROR)
    raise HTTPException(status_code=code, detail={"kind": error.kind, "message": str(error)})

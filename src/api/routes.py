"""
API routes: health and mock interview.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from src.api.deps import get_interview_service, unwrap_or_raise
from src.api.models import (
    HealthResponse,
    InterviewFeedbackRequest,
    InterviewFeedbackResponse,
    InterviewQuestionResponse,
    StudyFilters,
)
from src.interview.service import InterviewService
from src.srs.store import ProgressFilters

router = APIRouter(prefix="/api", tags=["api"])


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    """Health check."""
    return HealthResponse(status="ok")


@router.post("/interview/question", response_model=InterviewQuestionResponse)
async def interview_question(
    payload: StudyFilters,
    svc: Annotated[InterviewService, Depends(get_interview_service)],
) -> InterviewQuestionResponse:
    """Ask the next question from the study queue, phrased by the interviewer model."""
    filters = ProgressFilters(
        category=payload.category,
        difficulty=payload.difficulty,
        exclude_ids=frozenset(payload.exclude_ids),
    )
    turn = unwrap_or_raise(await svc.next_question(filters))
    if turn is None:
        return InterviewQuestionResponse(done=True)
    return InterviewQuestionResponse(
        question_id=turn.question_id,
        bucket=turn.bucket,
        message=turn.message,
        done=False,
    )


@router.post("/interview/feedback", response_model=InterviewFeedbackResponse)
async def interview_feedback(
    payload: InterviewFeedbackRequest,
    svc: Annotated[InterviewService, Depends(get_interview_service)],
) -> InterviewFeedbackResponse:
    """Grade a free-text answer and suggest a quality rating."""
    feedback = unwrap_or_raise(await svc.feedback(payload.question_id, payload.answer))
    return InterviewFeedbackResponse(
        question_id=payload.question_id,
        suggested_quality=feedback.suggested_quality,
        verdict=feedback.verdict,
        strengths=feedback.strengths,
        improvements=feedback.improvements,
        summary=feedback.summary,
    )

from __future__ import annotations

import datetime as dt
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException

from src.api.deps import get_scheduler, unwrap_or_raise
from src.api.models import (
    CategoryProgressOut,
    DashboardResponse,
    DueCardsResponse,
    IntervalPreviewResponse,
    NextCardResponse,
    RecentReviewOut,
    ResetProgressResponse,
    ReviewRequest,
    ReviewResponse,
    ReviewStateOut,
    StudyCardOut,
    StudyFilters,
)
from src.srs.display import format_interval, interval_previews, mastery_level
from src.srs.scheduler_service import SchedulerService, StudyCard
from src.srs.state import QUALITY_BUTTONS, ReviewState
from src.srs.store import ProgressFilters


router = APIRouter(prefix="/api/study", tags=["study"])


def _to_filters(payload: StudyFilters) -> ProgressFilters:
    return ProgressFilters(
        category=payload.category,
        difficulty=payload.difficulty,
        exclude_ids=frozenset(payload.exclude_ids),
    )


def _state_out(state: ReviewState) -> ReviewStateOut:
    return ReviewStateOut(
        ease_factor=state.ease_factor,
        interval_days=state.interval,
        repetitions=state.repetitions,
        next_review_at=state.next_review_date,
        last_reviewed_at=state.last_review_date,
        mastery=mastery_level(state),
    )


def _card_out(card: StudyCard, svc: SchedulerService, now: dt.datetime) -> StudyCardOut:
    return StudyCardOut(
        question_id=card.question_id,
        category=card.meta.category,
        difficulty=card.meta.difficulty,
        question=card.meta.question,
        answer=card.meta.answer,
        bucket=card.bucket,
        is_new=card.is_new,
        state=_state_out(card.state),
        interval_previews=interval_previews(card.state, now, svc.calculator),
    )


@router.post("/next", response_model=NextCardResponse)
async def get_next_card(
    payload: StudyFilters,
    svc: Annotated[SchedulerService, Depends(get_scheduler)],
) -> NextCardResponse:
    """
    Return the most urgent card for the given filters, or `done` when none is left.
    """
    now = dt.datetime.now(dt.timezone.utc)
    card = unwrap_or_raise(await svc.get_next_card(_to_filters(payload), now=now))
    if card is None:
        return NextCardResponse(card=None, done=True)
    return NextCardResponse(card=_card_out(card, svc, now), done=False)


@router.post("/review", response_model=ReviewResponse)
async def record_review(
    payload: ReviewRequest,
    svc: Annotated[SchedulerService, Depends(get_scheduler)],
) -> ReviewResponse:
    """
    Record a rating and return the updated schedule for the card.
    """
    if payload.quality is not None:
        quality = payload.quality
    elif payload.button is not None:
        quality = QUALITY_BUTTONS[payload.button]
    else:
        raise HTTPException(status_code=422, detail="Either quality or button is required")

    result = unwrap_or_raise(
        await svc.record_review(
            payload.question_id,
            quality,
            response_time_ms=payload.response_time_ms,
            was_revealed=payload.was_revealed,
        )
    )
    return ReviewResponse(
        question_id=payload.question_id,
        quality=quality,
        state=_state_out(result.new_state),
        interval_delta_days=result.interval_delta,
        ease_factor_delta=result.ease_factor_delta,
        next_review_in=format_interval(result.new_state.interval),
    )


@router.get("/preview/{question_id}", response_model=IntervalPreviewResponse)
async def get_interval_preview(
    question_id: str,
    svc: Annotated[SchedulerService, Depends(get_scheduler)],
) -> IntervalPreviewResponse:
    previews = unwrap_or_raise(await svc.get_interval_preview(question_id))
    return IntervalPreviewResponse(question_id=question_id, previews=previews)


@router.get("/due", response_model=DueCardsResponse)
async def get_due_cards(
    svc: Annotated[SchedulerService, Depends(get_scheduler)],
    category: Optional[str] = None,
    difficulty: Optional[str] = None,
) -> DueCardsResponse:
    filters = ProgressFilters(category=category, difficulty=difficulty)
    buckets = unwrap_or_raise(await svc.get_due_cards(filters))
    return DueCardsResponse(
        overdue=buckets.overdue,
        due_today=buckets.due_today,
        new=buckets.new,
        upcoming=buckets.upcoming,
        counts=buckets.counts(),
    )


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(
    svc: Annotated[SchedulerService, Depends(get_scheduler)],
    category: Optional[str] = None,
) -> DashboardResponse:
    dashboard = unwrap_or_raise(await svc.get_dashboard(ProgressFilters(category=category)))
    return DashboardResponse(
        total_questions=dashboard.total_questions,
        total_studied=dashboard.total_studied,
        total_mastered=dashboard.total_mastered,
        streak_days=dashboard.streak_days,
        last_study_date=dashboard.last_study_date,
        due_counts=dashboard.due.counts(),
        categories=[
            CategoryProgressOut(
                category=entry.category,
                total_questions=entry.total_questions,
                studied_questions=entry.studied_questions,
                mastered_questions=entry.mastered_questions,
                average_ease_factor=entry.average_ease_factor,
                due_count=entry.due_count,
            )
            for entry in dashboard.categories
        ],
        recent_reviews=[
            RecentReviewOut(
                question_id=question_id,
                reviewed_at=entry.reviewed_at,
                quality=entry.quality,
                response_time_ms=entry.response_time_ms,
                was_revealed=entry.was_revealed,
            )
            for question_id, entry in dashboard.recent_reviews
        ],
    )


@router.post("/progress/{question_id}/reset", response_model=ResetProgressResponse)
async def reset_progress(
    question_id: str,
    svc: Annotated[SchedulerService, Depends(get_scheduler)],
) -> ResetProgressResponse:
    record = unwrap_or_raise(await svc.reset_progress(question_id))
    return ResetProgressResponse(question_id=question_id, state=_state_out(record.state))
